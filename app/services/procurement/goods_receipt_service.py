import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.models.procurement.goods_receipt_models import GoodsReceipt, GoodsReceiptItem
from app.models.procurement.purchase_order_models import PurchaseOrder
from app.models.procurement.approval_models import ApprovalHistory
from app.models.enums.purchase_order_status import POStatus
from app.schemas.procurement.goods_receipt_schemas import (
    GoodsReceiptCreate,
    GoodsReceiptLineCreate,
    GoodsReceiptLineOut,
    GoodsReceiptOut,
    GoodsReceiptSubmitOut,
    GoodsReceiptListData,
)
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.constants.grn import GRN_NUMBER_PREFIX, GRN_NUMBER_WIDTH, GRNStatus
from app.core.event_bus import POEventType, PODomainEvent, get_event_bus
from app.core.exceptions import AppException
from app.services.users.role_directory import get_tenant_user
from app.services.procurement.purchase_order_service import get_purchase_order_row
from app.services.procurement.po_state_machine import apply_system_transition, transition_event
from app.services.procurement.po_transitions import RECEIVABLE_STATUSES
from app.services.procurement.quantity_ledger import (
    ZERO,
    aggregate_accepted,
    check_receipt,
    derive_fulfillment_status,
)
from app.utils.activity_helpers import emit_activity
from app.utils.decimal_utils import quantity, to_decimal
from app.utils.document_numbers import next_document_number

logger = logging.getLogger(__name__)


# =====================================================
# MAPPERS
# =====================================================
def map_goods_receipt(grn: GoodsReceipt) -> GoodsReceiptOut:
    return GoodsReceiptOut(
        id=grn.id,
        tenant_id=grn.tenant_id,
        grn_number=grn.grn_number,
        po_id=grn.po_id,
        status=grn.status,
        received_date=grn.received_date,
        received_by=grn.received_by_id,
        received_by_name=grn.received_by.username if grn.received_by else None,
        delivery_note_number=grn.delivery_note_number,
        vehicle_number=grn.vehicle_number,
        notes=grn.notes,
        created_at=grn.created_at,
        lines=[GoodsReceiptLineOut.model_validate(i) for i in grn.items],
    )


# =====================================================
# LINE VALIDATION (NO STATE TOUCHED)
# =====================================================
def _validate_lines(lines: List[GoodsReceiptLineCreate]) -> dict[int, Decimal]:
    """Returns accepted quantity requested per PO item, summed across lines."""
    if not lines:
        raise AppException(
            400,
            "Goods receipt must contain at least one line",
            ErrorCode.EMPTY_LINES,
        )

    requested: dict[int, Decimal] = {}

    for idx, line in enumerate(lines):
        raw = (line.quantity_received, line.quantity_accepted, line.quantity_rejected)
        # sign of the raw input: rounding would turn -0.0004 into -0.000
        if any(to_decimal(q) < ZERO for q in raw):
            raise AppException(
                400,
                "Receipt quantities cannot be negative",
                ErrorCode.NEGATIVE_QUANTITY,
                {"line": idx, "po_item_id": line.po_item_id},
            )

        received, accepted, rejected = (quantity(q) for q in raw)

        if accepted + rejected > received:
            raise AppException(
                400,
                "Accepted plus rejected quantity exceeds quantity received",
                ErrorCode.RECEIPT_QUANTITY_MISMATCH,
                {
                    "line": idx,
                    "po_item_id": line.po_item_id,
                    "received": received,
                    "accepted": accepted,
                    "rejected": rejected,
                },
            )

        if rejected > ZERO and not (line.rejection_reason or "").strip():
            raise AppException(
                400,
                "Rejection reason is required when quantity is rejected",
                ErrorCode.REJECTION_REASON_REQUIRED,
                {"line": idx, "po_item_id": line.po_item_id},
            )

        requested[line.po_item_id] = requested.get(line.po_item_id, ZERO) + accepted

    return requested


# =====================================================
# LOOKUPS
# =====================================================
async def _accepted_quantities(
    db: AsyncSession,
    tenant_id: int,
    po_id: int,
) -> dict[int, Decimal]:
    rows = await db.execute(
        select(GoodsReceiptItem.po_item_id, GoodsReceiptItem.quantity_accepted)
        .join(GoodsReceipt, GoodsReceipt.id == GoodsReceiptItem.grn_id)
        .where(
            GoodsReceipt.tenant_id == tenant_id,
            GoodsReceipt.po_id == po_id,
            GoodsReceipt.status == GRNStatus.COMPLETED.value,
        )
    )
    return aggregate_accepted(rows.all())


async def _next_grn_number(db: AsyncSession, tenant_id: int) -> str:
    last = await db.scalar(
        select(GoodsReceipt.grn_number)
        .where(GoodsReceipt.tenant_id == tenant_id)
        .order_by(GoodsReceipt.id.desc())
        .limit(1)
    )
    return next_document_number(last, GRN_NUMBER_PREFIX, GRN_NUMBER_WIDTH)


# =====================================================
# LINE PERSISTENCE + COMPENSATION
# =====================================================
async def _insert_receipt_items(
    db: AsyncSession,
    grn: GoodsReceipt,
    lines: List[GoodsReceiptLineCreate],
) -> None:
    db.add_all(
        [
            GoodsReceiptItem(
                grn_id=grn.id,
                po_item_id=line.po_item_id,
                quantity_received=quantity(line.quantity_received),
                quantity_accepted=quantity(line.quantity_accepted),
                quantity_rejected=quantity(line.quantity_rejected),
                rejection_reason=line.rejection_reason,
                storage_location=line.storage_location,
                notes=line.notes,
            )
            for line in lines
        ]
    )
    await db.flush()


async def _delete_receipt_header(db: AsyncSession, tenant_id: int, grn_id: int) -> None:
    await db.execute(
        delete(GoodsReceipt).where(
            GoodsReceipt.id == grn_id,
            GoodsReceipt.tenant_id == tenant_id,
        )
    )
    await db.commit()


async def _discard_orphan_header(
    db: AsyncSession,
    *,
    tenant_id: int,
    grn_id: int,
    grn_number: str,
    po_id: int,
) -> None:
    """Make sure no header survives without its lines. Raises DATA_INTEGRITY_ALERT if that cannot be guaranteed."""
    try:
        await _delete_receipt_header(db, tenant_id, grn_id)
    except SQLAlchemyError:
        await db.rollback()
        logger.critical(
            f"Orphaned goods receipt header {grn_number} could not be removed",
            exc_info=True,
            extra={"tenant_id": tenant_id, "grn_id": grn_id, "po_id": po_id},
        )
        raise AppException(
            500,
            "Goods receipt left in an inconsistent state. Manual cleanup required.",
            ErrorCode.DATA_INTEGRITY_ALERT,
            {"grn_id": grn_id, "grn_number": grn_number, "po_id": po_id},
        )


# =====================================================
# RECONCILIATION
# =====================================================
async def _reconcile_po(
    db: AsyncSession,
    po: PurchaseOrder,
    *,
    actor_id: Optional[int],
) -> Optional[ApprovalHistory]:
    """
    Rebuild received quantities from every completed GRN and move the PO to
    the status they imply. Full recompute each time, so running it twice is
    harmless. Does not commit.
    """
    accepted = await _accepted_quantities(db, po.tenant_id, po.id)

    for item in po.items:
        item.received_quantity = accepted.get(item.id, ZERO)
    await db.flush()

    target = derive_fulfillment_status(
        (quantity(item.quantity), accepted.get(item.id, ZERO)) for item in po.items
    )
    if target is None or target == po.status:
        return None

    return await apply_system_transition(db, po, target, actor_id=actor_id)


async def recompute_receipt_status(
    db: AsyncSession,
    *,
    tenant_id: int,
    po_id: int,
    actor_id: Optional[int] = None,
) -> POStatus:
    po = await get_purchase_order_row(db, tenant_id, po_id, for_update=True)

    entry = await _reconcile_po(db, po, actor_id=actor_id)
    await db.commit()

    if entry is not None:
        await get_event_bus().publish(transition_event(po, entry))

    return po.status


# =====================================================
# SUBMIT
# =====================================================
def _not_receivable(po: PurchaseOrder) -> AppException:
    return AppException(
        400,
        f'Cannot receive goods against a purchase order in "{po.status.value}" status',
        ErrorCode.INVALID_PO_STATE_FOR_RECEIPT,
        {
            "status": po.status.value,
            "allowed": sorted(s.value for s in RECEIVABLE_STATUSES),
        },
    )


async def submit_goods_receipt(
    db: AsyncSession,
    *,
    tenant_id: int,
    actor_id: int,
    payload: GoodsReceiptCreate,
) -> GoodsReceiptSubmitOut:

    requested = _validate_lines(payload.lines)

    po = await get_purchase_order_row(db, tenant_id, payload.po_id, for_update=True)
    actor = await get_tenant_user(db, tenant_id, actor_id)

    # a fully received PO still gets the quantity check so callers see OVER_RECEIPT
    if po.status not in RECEIVABLE_STATUSES and po.status != POStatus.fully_received:
        raise _not_receivable(po)

    items_by_id = {item.id: item for item in po.items}
    unknown = [pid for pid in requested if pid not in items_by_id]
    if unknown:
        raise AppException(
            400,
            "Receipt lines reference items that do not belong to this purchase order",
            ErrorCode.INVALID_PO_ITEM,
            {"po_id": po.id, "po_item_ids": unknown},
        )

    already = await _accepted_quantities(db, tenant_id, po.id)

    for po_item_id, qty in requested.items():
        item = items_by_id[po_item_id]
        check = check_receipt(quantity(item.quantity), already.get(po_item_id, ZERO), qty)
        if not check.admissible:
            raise AppException(
                400,
                f"Cannot accept {qty} of {item.material_name}; only {check.pending} pending",
                ErrorCode.OVER_RECEIPT,
                {
                    "po_item_id": po_item_id,
                    "material": item.material_name,
                    "ordered": check.ordered,
                    "already_accepted": check.already_accepted,
                    "pending": check.pending,
                    "requested": check.requested,
                },
            )

    if po.status not in RECEIVABLE_STATUSES:
        raise _not_receivable(po)

    grn = GoodsReceipt(
        tenant_id=tenant_id,
        grn_number=await _next_grn_number(db, tenant_id),
        po_id=po.id,
        status=GRNStatus.COMPLETED.value,
        received_date=payload.received_date or date.today(),
        received_by_id=actor.id,
        delivery_note_number=payload.delivery_note_number,
        vehicle_number=payload.vehicle_number,
        notes=payload.notes,
    )

    try:
        db.add(grn)
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise AppException(
            409,
            "Goods receipt number already taken, please retry",
            ErrorCode.CONFLICT,
        )

    grn_id, grn_number, po_id = grn.id, grn.grn_number, po.id

    try:
        await _insert_receipt_items(db, grn, payload.lines)
    except SQLAlchemyError:
        logger.error(
            f"Failed to write lines for goods receipt {grn_number}",
            exc_info=True,
            extra={"tenant_id": tenant_id, "grn_id": grn_id, "po_id": po_id},
        )
        await db.rollback()
        await _discard_orphan_header(
            db, tenant_id=tenant_id, grn_id=grn_id, grn_number=grn_number, po_id=po_id
        )
        raise AppException(
            500,
            "Goods receipt could not be saved",
            ErrorCode.RECEIPT_PERSISTENCE_FAILED,
            {"po_id": po_id},
        )

    entry = await _reconcile_po(db, po, actor_id=actor.id)

    await emit_activity(
        db=db,
        tenant_id=tenant_id,
        user_id=actor.id,
        username=actor.username,
        code=ActivityCode.CREATE_GOODS_RECEIPT,
        target_name=grn_number,
        po_number=po.po_number,
    )

    await db.commit()
    await db.refresh(grn)

    logger.info(
        f"Goods receipt {grn_number} recorded against {po.po_number}",
        extra={"tenant_id": tenant_id, "grn_id": grn_id, "po_id": po_id, "po_status": po.status.value},
    )

    events = [
        PODomainEvent(
            type=POEventType.GOODS_RECEIVED,
            tenant_id=tenant_id,
            po_id=po_id,
            actor_id=actor.id,
            data={
                "grn_id": grn_id,
                "grn_number": grn_number,
                "po_number": po.po_number,
                "po_status": po.status.value,
            },
        )
    ]
    if entry is not None:
        events.append(transition_event(po, entry))
    await get_event_bus().publish_all(events)

    return GoodsReceiptSubmitOut(
        grn=map_goods_receipt(grn),
        updated_po_status=po.status,
    )


# =====================================================
# READ
# =====================================================
async def get_goods_receipt(
    db: AsyncSession,
    *,
    tenant_id: int,
    grn_id: int,
) -> GoodsReceiptOut:
    result = await db.execute(
        select(GoodsReceipt).where(
            GoodsReceipt.id == grn_id,
            GoodsReceipt.tenant_id == tenant_id,
        )
    )
    grn = result.unique().scalar_one_or_none()
    if not grn:
        raise AppException(404, "Goods receipt not found", ErrorCode.NOT_FOUND, {"grn_id": grn_id})
    return map_goods_receipt(grn)


async def list_goods_receipts(
    db: AsyncSession,
    *,
    tenant_id: int,
    po_id: Optional[int] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> GoodsReceiptListData:

    filters = [GoodsReceipt.tenant_id == tenant_id]
    if po_id:
        filters.append(GoodsReceipt.po_id == po_id)
    if status:
        filters.append(GoodsReceipt.status == status)
    if search:
        filters.append(GoodsReceipt.grn_number.ilike(f"%{search}%"))

    total = await db.scalar(select(func.count()).select_from(GoodsReceipt).where(*filters))

    result = await db.execute(
        select(GoodsReceipt)
        .where(*filters)
        .order_by(GoodsReceipt.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return GoodsReceiptListData(
        total=total or 0,
        items=[map_goods_receipt(g) for g in result.unique().scalars().all()],
    )
