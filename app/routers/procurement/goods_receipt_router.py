from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.get_user import get_current_user
from app.utils.response import success_response, APIResponse

from app.schemas.procurement.goods_receipt_schemas import (
    GoodsReceiptCreate,
    GoodsReceiptOut,
    GoodsReceiptSubmitOut,
    GoodsReceiptListData,
)

from app.services.procurement.goods_receipt_service import (
    submit_goods_receipt,
    get_goods_receipt,
    list_goods_receipts,
)

router = APIRouter(
    prefix="/goods-receipts",
    tags=["Goods Receipts"],
)

# =========================
# SUBMIT
# =========================
@router.post("/", response_model=APIResponse[GoodsReceiptSubmitOut])
async def submit_goods_receipt_api(
    payload: GoodsReceiptCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    data = await submit_goods_receipt(
        db, tenant_id=user.tenant_id, actor_id=user.id, payload=payload
    )
    return success_response("Goods receipt recorded successfully", data)


# =========================
# LIST
# =========================
@router.get("/", response_model=APIResponse[GoodsReceiptListData])
async def list_goods_receipts_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),

    po_id: int | None = Query(None),
    search: str | None = Query(None, description="GRN number"),
    status: str | None = Query(None),

    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    data = await list_goods_receipts(
        db,
        tenant_id=user.tenant_id,
        po_id=po_id,
        search=search,
        status=status,
        page=page,
        page_size=page_size,
    )
    return success_response("Goods receipts fetched successfully", data)


# =========================
# GET BY ID
# =========================
@router.get("/{grn_id}", response_model=APIResponse[GoodsReceiptOut])
async def get_goods_receipt_api(
    grn_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    grn = await get_goods_receipt(db, tenant_id=user.tenant_id, grn_id=grn_id)
    return success_response("Goods receipt fetched successfully", grn)
