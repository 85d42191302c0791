import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models.procurement.approval_models import ApprovalConfig
from app.schemas.procurement.approval_schemas import ApprovalConfigUpsert, ApprovalConfigOut
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.core.config import DEFAULT_LEVEL2_ROLE, DEFAULT_LEVEL3_ROLE
from app.core.exceptions import AppException
from app.services.users.role_directory import get_tenant_user, profile_for_user
from app.services.procurement.approval_authorization import ApprovalThresholds
from app.utils.activity_helpers import emit_activity

logger = logging.getLogger(__name__)

PO_CONFIG_TYPE = "purchase_order"


async def get_approval_config(
    db: AsyncSession,
    tenant_id: int,
) -> Optional[ApprovalConfig]:
    return await db.scalar(
        select(ApprovalConfig).where(
            ApprovalConfig.tenant_id == tenant_id,
            ApprovalConfig.config_type == PO_CONFIG_TYPE,
        )
    )


async def get_approval_thresholds(
    db: AsyncSession,
    tenant_id: int,
) -> Optional[ApprovalThresholds]:
    config = await get_approval_config(db, tenant_id)
    return ApprovalThresholds.from_config(config) if config else None


async def upsert_approval_config(
    db: AsyncSession,
    *,
    tenant_id: int,
    actor_id: int,
    payload: ApprovalConfigUpsert,
) -> ApprovalConfigOut:
    user = await get_tenant_user(db, tenant_id, actor_id)
    if not profile_for_user(user).is_superuser:
        raise AppException(
            403,
            "Only owners and admins can change approval thresholds",
            ErrorCode.PERMISSION_DENIED,
        )

    if Decimal(payload.level2_limit) <= Decimal(payload.level1_limit):
        raise AppException(
            400,
            "level2_limit must be greater than level1_limit",
            ErrorCode.INVALID_APPROVAL_CONFIG,
            {"level1_limit": payload.level1_limit, "level2_limit": payload.level2_limit},
        )

    config = await get_approval_config(db, tenant_id)
    if config is None:
        config = ApprovalConfig(
            tenant_id=tenant_id,
            config_type=PO_CONFIG_TYPE,
            created_by_id=actor_id,
        )
        db.add(config)

    config.level1_limit = payload.level1_limit
    config.level2_limit = payload.level2_limit
    config.level2_role = payload.level2_role or config.level2_role or DEFAULT_LEVEL2_ROLE
    config.level3_role = payload.level3_role or config.level3_role or DEFAULT_LEVEL3_ROLE
    config.updated_by_id = actor_id

    await emit_activity(
        db=db,
        tenant_id=tenant_id,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.UPDATE_APPROVAL_CONFIG,
        changes=(
            f"level1={config.level1_limit}, level2={config.level2_limit}, "
            f"level2_role={config.level2_role}, level3_role={config.level3_role}"
        ),
    )

    await db.commit()
    await db.refresh(config)

    logger.info(
        "Approval thresholds updated",
        extra={"tenant_id": tenant_id, "actor_id": actor_id},
    )

    return ApprovalConfigOut.model_validate(config)


async def read_approval_config(
    db: AsyncSession,
    tenant_id: int,
) -> Optional[ApprovalConfigOut]:
    config = await get_approval_config(db, tenant_id)
    return ApprovalConfigOut.model_validate(config) if config else None
