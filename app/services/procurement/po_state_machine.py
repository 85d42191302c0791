import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.models.procurement.purchase_order_models import PurchaseOrder
from app.models.procurement.approval_models import ApprovalHistory
from app.models.enums.purchase_order_status import POStatus
from app.schemas.procurement.approval_schemas import POTransitionOut
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.core.event_bus import POEventType, PODomainEvent, get_event_bus
from app.core.exceptions import AppException
from app.services.users.role_directory import get_tenant_user, profile_for_user
from app.services.procurement.approval_authorization import ApprovalAction, authorize_po_decision
from app.services.procurement.approval_config_service import get_approval_thresholds
from app.services.procurement.approval_history_service import append_history_entry, map_history_entry
from app.services.procurement.purchase_order_service import get_purchase_order_row, map_purchase_order
from app.services.procurement.po_transitions import (
    APPROVAL_TARGETS,
    allowed_transitions,
    is_system_transition,
    parse_target,
    transition_side_effects,
    validate_transition,
)
from app.utils.activity_helpers import emit_activity

logger = logging.getLogger(__name__)

SYSTEM_WRITE_ATTEMPTS = 3

EVENT_FOR_STATUS = {
    POStatus.pending_approval: POEventType.SUBMITTED,
    POStatus.approved: POEventType.APPROVED,
    POStatus.rejected: POEventType.REJECTED,
    POStatus.draft: POEventType.RETURNED_TO_DRAFT,
    POStatus.sent_to_vendor: POEventType.SENT_TO_VENDOR,
    POStatus.acknowledged: POEventType.ACKNOWLEDGED,
    POStatus.dispatched: POEventType.DISPATCHED,
    POStatus.partially_received: POEventType.PARTIALLY_RECEIVED,
    POStatus.fully_received: POEventType.FULLY_RECEIVED,
    POStatus.closed: POEventType.CLOSED,
    POStatus.cancelled: POEventType.CANCELLED,
}


def transition_event(po: PurchaseOrder, entry: ApprovalHistory) -> PODomainEvent:
    return PODomainEvent(
        type=EVENT_FOR_STATUS[entry.to_status],
        tenant_id=po.tenant_id,
        po_id=po.id,
        actor_id=entry.performed_by_id,
        data={
            "po_number": po.po_number,
            "from_status": entry.from_status.value,
            "to_status": entry.to_status.value,
            "total_amount": str(po.total_amount),
        },
    )


# =====================================================
# CONDITIONAL WRITE
# =====================================================
async def _write_status(
    db: AsyncSession,
    po: PurchaseOrder,
    target: POStatus,
    *,
    actor_id: Optional[int],
    values: dict,
) -> bool:
    """Compare-and-set keyed on the status and version we read. False means someone got there first."""
    values = dict(values)
    if actor_id is not None:
        values["updated_by_id"] = actor_id

    result = await db.execute(
        update(PurchaseOrder)
        .where(
            PurchaseOrder.id == po.id,
            PurchaseOrder.tenant_id == po.tenant_id,
            PurchaseOrder.status == po.status,
            PurchaseOrder.version == po.version,
        )
        .values(status=target, version=PurchaseOrder.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def execute_transition(
    db: AsyncSession,
    po: PurchaseOrder,
    target: POStatus,
    *,
    actor_id: Optional[int],
    rejection_reason: Optional[str] = None,
) -> ApprovalHistory:
    """Write an already-validated transition plus its history entry. Does not commit."""
    from_status = po.status
    values = transition_side_effects(
        from_status,
        target,
        actor_id=actor_id,
        now=datetime.now(timezone.utc),
        rejection_reason=rejection_reason,
    )

    if not await _write_status(db, po, target, actor_id=actor_id, values=values):
        current = await db.scalar(
            select(PurchaseOrder.status).where(
                PurchaseOrder.id == po.id,
                PurchaseOrder.tenant_id == po.tenant_id,
            )
        )
        logger.warning(
            "Stale PO status on transition",
            extra={"po_id": po.id, "expected": from_status.value, "current": getattr(current, "value", None)},
        )
        raise AppException(
            409,
            "Purchase order was changed by another request. Reload it and try again.",
            ErrorCode.INVALID_TRANSITION,
            {
                "from_status": from_status.value,
                "to_status": target.value,
                "current_status": current.value if current else None,
                "allowed": [s.value for s in allowed_transitions(current)] if current else [],
            },
        )

    await db.refresh(po)

    entry = await append_history_entry(
        db,
        tenant_id=po.tenant_id,
        po_id=po.id,
        from_status=from_status,
        to_status=target,
        performed_by_id=actor_id,
        comments=rejection_reason if target == POStatus.rejected else None,
    )

    logger.info(
        f"PO {po.po_number} {from_status.value} -> {target.value}",
        extra={"tenant_id": po.tenant_id, "po_id": po.id, "actor_id": actor_id},
    )
    return entry


# =====================================================
# CALLER-REQUESTED TRANSITIONS
# =====================================================
async def transition_status(
    db: AsyncSession,
    *,
    tenant_id: int,
    po_id: int,
    actor_id: int,
    target_status: POStatus | str,
    rejection_reason: Optional[str] = None,
) -> POTransitionOut:

    po = await get_purchase_order_row(db, tenant_id, po_id, for_update=True)
    actor = await get_tenant_user(db, tenant_id, actor_id)

    try:
        target = parse_target(po.status, target_status)
        validate_transition(po.status, target, po.payment_status)

        if target in APPROVAL_TARGETS:
            authorize_po_decision(
                profile_for_user(actor),
                ApprovalAction.approve if target == POStatus.approved else ApprovalAction.reject,
                po_created_by_id=po.created_by_id,
                po_total=po.total_amount,
                thresholds=await get_approval_thresholds(db, tenant_id),
            )
    except AppException as exc:
        logger.warning(
            f"PO transition refused: {exc.error_code.value}",
            extra={"tenant_id": tenant_id, "po_id": po_id, "actor_id": actor_id, "target": str(target_status)},
        )
        raise

    from_status = po.status
    entry = await execute_transition(
        db,
        po,
        target,
        actor_id=actor.id,
        rejection_reason=rejection_reason,
    )

    await emit_activity(
        db=db,
        tenant_id=tenant_id,
        user_id=actor.id,
        username=actor.username,
        code=ActivityCode.TRANSITION_PURCHASE_ORDER,
        target_name=po.po_number,
        from_status=from_status.value,
        to_status=target.value,
    )

    await db.commit()

    await get_event_bus().publish(transition_event(po, entry))

    return POTransitionOut(
        purchase_order=map_purchase_order(po),
        history_entry=map_history_entry(entry),
    )


# =====================================================
# SYSTEM TRANSITIONS (RECEIPTS ONLY)
# =====================================================
async def apply_system_transition(
    db: AsyncSession,
    po: PurchaseOrder,
    target: POStatus,
    *,
    actor_id: Optional[int],
) -> Optional[ApprovalHistory]:
    """
    Move a PO to a receipt-derived status. Does not commit.

    Returns None when nothing had to change. On a lost race the PO is re-read
    and the decision taken again, since the derived target is recomputed from
    source anyway.
    """
    for _ in range(SYSTEM_WRITE_ATTEMPTS):
        if po.status == target:
            return None

        if not is_system_transition(po.status, target):
            logger.warning(
                "Receipt-derived status not reachable from current status",
                extra={"po_id": po.id, "current": po.status.value, "derived": target.value},
            )
            return None

        from_status = po.status
        values = transition_side_effects(
            from_status, target, actor_id=actor_id, now=datetime.now(timezone.utc)
        )
        if await _write_status(db, po, target, actor_id=actor_id, values=values):
            await db.refresh(po)
            entry = await append_history_entry(
                db,
                tenant_id=po.tenant_id,
                po_id=po.id,
                from_status=from_status,
                to_status=target,
                performed_by_id=actor_id,
            )
            logger.info(
                f"PO {po.po_number} {from_status.value} -> {target.value} (receipt reconciliation)",
                extra={"tenant_id": po.tenant_id, "po_id": po.id},
            )
            return entry

        await db.refresh(po)

    raise AppException(
        409,
        "Purchase order keeps changing underneath the receipt. Please retry.",
        ErrorCode.INVALID_TRANSITION,
        {"current_status": po.status.value, "to_status": target.value, "allowed": []},
    )
