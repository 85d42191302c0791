from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.get_user import get_current_user
from app.utils.response import success_response, APIResponse
from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus

from app.schemas.procurement.purchase_order_schemas import (
    PurchaseOrderCreate,
    PurchaseOrderUpdate,
    POStatusChange,
    PurchaseOrderOut,
    PurchaseOrderListData,
)
from app.schemas.procurement.approval_schemas import POTransitionOut, ApprovalHistoryListData
from app.schemas.procurement.po_payment_schemas import (
    POPaymentCreate,
    POPaymentRecordOut,
    POPaymentListData,
)

from app.services.procurement.purchase_order_service import (
    create_purchase_order,
    get_purchase_order,
    list_purchase_orders,
    update_purchase_order,
)
from app.services.procurement.po_state_machine import transition_status
from app.services.procurement.approval_history_service import list_approval_history
from app.services.procurement.po_payment_service import record_po_payment, list_po_payments

router = APIRouter(
    prefix="/purchase-orders",
    tags=["Purchase Orders"],
)

# =========================
# CREATE
# =========================
@router.post("/", response_model=APIResponse[PurchaseOrderOut])
async def create_purchase_order_api(
    payload: PurchaseOrderCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    po = await create_purchase_order(
        db, tenant_id=user.tenant_id, actor_id=user.id, payload=payload
    )
    return success_response("Purchase order created successfully", po)


# =========================
# LIST
# =========================
@router.get("/", response_model=APIResponse[PurchaseOrderListData])
async def list_purchase_orders_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),

    status: POStatus | None = Query(None),
    payment_status: POPaymentStatus | None = Query(None),
    vendor_id: int | None = Query(None),
    search: str | None = Query(None, description="PO number"),

    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),

    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    data = await list_purchase_orders(
        db,
        tenant_id=user.tenant_id,
        status=status,
        payment_status=payment_status,
        vendor_id=vendor_id,
        search=search,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )
    return success_response("Purchase orders fetched successfully", data)


# =========================
# GET BY ID
# =========================
@router.get("/{po_id}", response_model=APIResponse[PurchaseOrderOut])
async def get_purchase_order_api(
    po_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    po = await get_purchase_order(db, tenant_id=user.tenant_id, po_id=po_id)
    return success_response("Purchase order fetched successfully", po)


# =========================
# UPDATE (DRAFT ONLY)
# =========================
@router.patch("/{po_id}", response_model=APIResponse[PurchaseOrderOut])
async def update_purchase_order_api(
    po_id: int,
    payload: PurchaseOrderUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    po = await update_purchase_order(
        db, tenant_id=user.tenant_id, po_id=po_id, actor_id=user.id, payload=payload
    )
    return success_response("Purchase order updated successfully", po)


# =========================
# STATUS TRANSITION
# =========================
@router.patch("/{po_id}/status", response_model=APIResponse[POTransitionOut])
async def transition_purchase_order_api(
    po_id: int,
    payload: POStatusChange,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    result = await transition_status(
        db,
        tenant_id=user.tenant_id,
        po_id=po_id,
        actor_id=user.id,
        target_status=payload.status,
        rejection_reason=payload.rejection_reason,
    )
    return success_response(
        f"Purchase order moved to {result.purchase_order.status.value}", result
    )


# =========================
# APPROVAL HISTORY
# =========================
@router.get("/{po_id}/history", response_model=APIResponse[ApprovalHistoryListData])
async def list_po_history_api(
    po_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    data = await list_approval_history(db, tenant_id=user.tenant_id, po_id=po_id)
    return success_response("Approval history fetched successfully", data)


# =========================
# PAYMENTS
# =========================
@router.post("/{po_id}/payments", response_model=APIResponse[POPaymentRecordOut])
async def record_po_payment_api(
    po_id: int,
    payload: POPaymentCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    data = await record_po_payment(
        db, tenant_id=user.tenant_id, po_id=po_id, actor_id=user.id, payload=payload
    )
    return success_response("Payment recorded successfully", data)


@router.get("/{po_id}/payments", response_model=APIResponse[POPaymentListData])
async def list_po_payments_api(
    po_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
):
    data = await list_po_payments(db, tenant_id=user.tenant_id, po_id=po_id)
    return success_response("Payments fetched successfully", data)
