from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.constants.roles import SUPERUSER_ROLES
from app.utils.check_roles import require_role
from app.utils.get_user import get_current_user
from app.utils.response import success_response, APIResponse

from app.schemas.procurement.approval_schemas import ApprovalConfigUpsert, ApprovalConfigOut

from app.services.procurement.approval_config_service import (
    read_approval_config,
    upsert_approval_config,
)

router = APIRouter(
    prefix="/approval-config",
    tags=["Approval Config"],
)


@router.get("/", response_model=APIResponse[Optional[ApprovalConfigOut]])
async def get_approval_config_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    config = await read_approval_config(db, user.tenant_id)
    message = "Approval config fetched successfully" if config else "No approval thresholds configured"
    return success_response(message, config)


@router.put("/", response_model=APIResponse[ApprovalConfigOut])
async def upsert_approval_config_api(
    payload: ApprovalConfigUpsert,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(SUPERUSER_ROLES)),
):
    config = await upsert_approval_config(
        db, tenant_id=user.tenant_id, actor_id=user.id, payload=payload
    )
    return success_response("Approval config saved successfully", config)
