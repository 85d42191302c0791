import logging
from datetime import date
from decimal import Decimal
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, asc, desc
from sqlalchemy.exc import IntegrityError

from app.models.procurement.purchase_order_models import PurchaseOrder, PurchaseOrderItem
from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus
from app.schemas.procurement.purchase_order_schemas import (
    PurchaseOrderCreate,
    PurchaseOrderUpdate,
    PurchaseOrderItemCreate,
    PurchaseOrderOut,
    PurchaseOrderItemOut,
    PurchaseOrderListData,
    PurchaseOrderListItem,
)
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.core.exceptions import AppException
from app.services.users.role_directory import get_tenant_user
from app.services.procurement.po_transitions import allowed_transitions
from app.services.procurement.quantity_ledger import pending_quantity
from app.utils.activity_helpers import emit_activity
from app.utils.decimal_utils import money
from app.utils.document_numbers import next_document_number

logger = logging.getLogger(__name__)

PO_NUMBER_PREFIX = "PO"

# =====================================================
# SORT MAP
# =====================================================
ALLOWED_SORT_FIELDS = {
    "created_at": PurchaseOrder.created_at,
    "order_date": PurchaseOrder.order_date,
    "total_amount": PurchaseOrder.total_amount,
    "status": PurchaseOrder.status,
    "po_number": PurchaseOrder.po_number,
}


# =====================================================
# SHARED LOOKUPS
# =====================================================
async def get_purchase_order_row(
    db: AsyncSession,
    tenant_id: int,
    po_id: int,
    *,
    for_update: bool = False,
) -> PurchaseOrder:
    stmt = select(PurchaseOrder).where(
        PurchaseOrder.id == po_id,
        PurchaseOrder.tenant_id == tenant_id,
    )
    if for_update:
        # locking read must not hand back stale identity-map state
        stmt = stmt.with_for_update(of=PurchaseOrder).execution_options(populate_existing=True)

    result = await db.execute(stmt)
    po = result.unique().scalar_one_or_none()

    if not po:
        raise AppException(
            404,
            "Purchase order not found",
            ErrorCode.NOT_FOUND,
            {"po_id": po_id},
        )
    return po


def _map_item(item: PurchaseOrderItem) -> PurchaseOrderItemOut:
    return PurchaseOrderItemOut(
        id=item.id,
        material_id=item.material_id,
        material_name=item.material_name,
        unit_of_measure=item.unit_of_measure,
        quantity=item.quantity,
        unit_price=item.unit_price,
        line_total=item.line_total,
        received_quantity=item.received_quantity,
        pending_quantity=pending_quantity(
            Decimal(item.quantity), Decimal(item.received_quantity or 0)
        ),
    )


def map_purchase_order(po: PurchaseOrder) -> PurchaseOrderOut:
    return PurchaseOrderOut(
        id=po.id,
        tenant_id=po.tenant_id,
        po_number=po.po_number,
        vendor_id=po.vendor_id,
        order_date=po.order_date,
        expected_delivery=po.expected_delivery,
        payment_terms=po.payment_terms,
        shipping_address=po.shipping_address,
        notes=po.notes,
        total_amount=po.total_amount,
        status=po.status,
        payment_status=po.payment_status,
        version=po.version,
        created_by=po.created_by_id,
        created_by_name=po.created_by_username,
        approved_by=po.approved_by_id,
        rejection_reason=po.rejection_reason,
        submitted_at=po.submitted_at,
        approved_at=po.approved_at,
        rejected_at=po.rejected_at,
        sent_to_vendor_at=po.sent_to_vendor_at,
        acknowledged_at=po.acknowledged_at,
        dispatched_at=po.dispatched_at,
        fully_received_at=po.fully_received_at,
        closed_at=po.closed_at,
        cancelled_at=po.cancelled_at,
        created_at=po.created_at,
        updated_at=po.updated_at,
        allowed_transitions=allowed_transitions(po.status),
        items=[_map_item(i) for i in po.items],
    )


def _build_items(items: List[PurchaseOrderItemCreate]) -> List[PurchaseOrderItem]:
    return [
        PurchaseOrderItem(
            material_id=i.material_id,
            material_name=i.material_name,
            unit_of_measure=i.unit_of_measure,
            quantity=i.quantity,
            unit_price=i.unit_price,
            line_total=money(i.quantity * i.unit_price),
            received_quantity=Decimal("0"),
        )
        for i in items
    ]


def _order_total(items: List[PurchaseOrderItem]) -> Decimal:
    total = money(sum((i.line_total for i in items), Decimal("0")))
    # a zero-value order could never be paid, so it could never close
    if total <= 0:
        raise AppException(
            400,
            "Purchase order total must be greater than zero",
            ErrorCode.INVALID_PO_TOTAL,
            {"total_amount": total},
        )
    return total


async def _next_po_number(db: AsyncSession, tenant_id: int) -> str:
    last = await db.scalar(
        select(PurchaseOrder.po_number)
        .where(PurchaseOrder.tenant_id == tenant_id)
        .order_by(PurchaseOrder.id.desc())
        .limit(1)
    )
    return next_document_number(last, PO_NUMBER_PREFIX)


# =====================================================
# CREATE
# =====================================================
async def create_purchase_order(
    db: AsyncSession,
    *,
    tenant_id: int,
    actor_id: int,
    payload: PurchaseOrderCreate,
) -> PurchaseOrderOut:

    if not payload.items:
        raise AppException(
            400,
            "Purchase order must contain at least one item",
            ErrorCode.EMPTY_LINES,
        )

    user = await get_tenant_user(db, tenant_id, actor_id)

    items = _build_items(payload.items)
    po = PurchaseOrder(
        tenant_id=tenant_id,
        po_number=await _next_po_number(db, tenant_id),
        vendor_id=payload.vendor_id,
        order_date=payload.order_date or date.today(),
        expected_delivery=payload.expected_delivery,
        payment_terms=payload.payment_terms,
        shipping_address=payload.shipping_address,
        notes=payload.notes,
        total_amount=_order_total(items),
        status=POStatus.draft,
        payment_status=POPaymentStatus.unpaid,
        version=1,
        created_by_id=user.id,
        items=items,
    )

    try:
        db.add(po)
        await db.flush()

        await emit_activity(
            db=db,
            tenant_id=tenant_id,
            user_id=user.id,
            username=user.username,
            code=ActivityCode.CREATE_PURCHASE_ORDER,
            target_name=po.po_number,
            amount=po.total_amount,
        )

        await db.commit()

    except IntegrityError:
        await db.rollback()
        raise AppException(
            409,
            "Purchase order number already taken, please retry",
            ErrorCode.CONFLICT,
        )

    await db.refresh(po)
    logger.info(
        "Purchase order created",
        extra={"tenant_id": tenant_id, "po_id": po.id, "po_number": po.po_number},
    )
    return map_purchase_order(po)


# =====================================================
# GET
# =====================================================
async def get_purchase_order(
    db: AsyncSession,
    *,
    tenant_id: int,
    po_id: int,
) -> PurchaseOrderOut:
    po = await get_purchase_order_row(db, tenant_id, po_id)
    return map_purchase_order(po)


# =====================================================
# LIST
# =====================================================
async def list_purchase_orders(
    db: AsyncSession,
    *,
    tenant_id: int,
    status: POStatus | None = None,
    payment_status: POPaymentStatus | None = None,
    vendor_id: int | None = None,
    search: str | None = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    order: str = "desc",
) -> PurchaseOrderListData:

    filters = [PurchaseOrder.tenant_id == tenant_id]

    if status:
        filters.append(PurchaseOrder.status == status)
    if payment_status:
        filters.append(PurchaseOrder.payment_status == payment_status)
    if vendor_id:
        filters.append(PurchaseOrder.vendor_id == vendor_id)
    if search:
        filters.append(PurchaseOrder.po_number.ilike(f"%{search}%"))

    total = await db.scalar(
        select(func.count()).select_from(PurchaseOrder).where(*filters)
    )

    sort_col = ALLOWED_SORT_FIELDS.get(sort_by, PurchaseOrder.created_at)
    sort_order = desc(sort_col) if order.lower() == "desc" else asc(sort_col)

    rows = await db.execute(
        select(
            PurchaseOrder.id,
            PurchaseOrder.po_number,
            PurchaseOrder.vendor_id,
            PurchaseOrder.order_date,
            PurchaseOrder.total_amount,
            PurchaseOrder.status,
            PurchaseOrder.payment_status,
            PurchaseOrder.created_at,
            func.count(PurchaseOrderItem.id).label("no_of_items"),
        )
        .outerjoin(PurchaseOrderItem, PurchaseOrderItem.po_id == PurchaseOrder.id)
        .where(*filters)
        .group_by(PurchaseOrder.id)
        .order_by(sort_order, PurchaseOrder.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return PurchaseOrderListData(
        total=total or 0,
        items=[
            PurchaseOrderListItem(
                id=r.id,
                po_number=r.po_number,
                vendor_id=r.vendor_id,
                order_date=r.order_date,
                total_amount=r.total_amount,
                status=r.status,
                payment_status=r.payment_status,
                no_of_items=r.no_of_items,
                created_at=r.created_at,
            )
            for r in rows.all()
        ],
    )


# =====================================================
# UPDATE (DRAFT ONLY)
# =====================================================
async def update_purchase_order(
    db: AsyncSession,
    *,
    tenant_id: int,
    po_id: int,
    actor_id: int,
    payload: PurchaseOrderUpdate,
) -> PurchaseOrderOut:

    user = await get_tenant_user(db, tenant_id, actor_id)
    po = await get_purchase_order_row(db, tenant_id, po_id, for_update=True)

    if po.status != POStatus.draft:
        raise AppException(
            400,
            "Cannot edit purchase order in current status. Only draft POs can be edited.",
            ErrorCode.PO_NOT_EDITABLE,
            {"status": po.status.value},
        )

    changes: list[str] = []

    for field in ("vendor_id", "expected_delivery", "payment_terms", "shipping_address", "notes"):
        value = getattr(payload, field)
        if value is not None and value != getattr(po, field):
            setattr(po, field, value)
            changes.append(field)

    if payload.items is not None:
        if not payload.items:
            raise AppException(
                400,
                "Purchase order must contain at least one item",
                ErrorCode.EMPTY_LINES,
            )
        # delete-orphan cascade drops the old lines
        items = _build_items(payload.items)
        total = _order_total(items)
        po.items = items
        po.total_amount = total
        changes.append("items")

    if not changes:
        raise AppException(400, "No changes detected", ErrorCode.NO_CHANGES_DETECTED)

    po.version += 1
    po.updated_by_id = user.id

    await emit_activity(
        db=db,
        tenant_id=tenant_id,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.UPDATE_PURCHASE_ORDER,
        target_name=po.po_number,
        changes=", ".join(changes),
    )

    await db.commit()
    await db.refresh(po)

    return map_purchase_order(po)
