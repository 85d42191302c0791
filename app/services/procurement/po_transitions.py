"""
Purchase order transition table.

Human-requested moves live in HUMAN_TRANSITIONS. partially_received and
fully_received are reachable only through SYSTEM_TRANSITIONS, which only the
goods-receipt reconciliation uses.
"""

from datetime import datetime
from typing import Optional

from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus
from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException

S = POStatus

HUMAN_TRANSITIONS: dict[POStatus, tuple[POStatus, ...]] = {
    S.draft: (S.pending_approval, S.cancelled),
    S.pending_approval: (S.approved, S.rejected, S.cancelled),
    S.approved: (S.sent_to_vendor, S.draft, S.cancelled),
    S.rejected: (),
    S.sent_to_vendor: (S.acknowledged, S.dispatched, S.cancelled),
    S.acknowledged: (S.dispatched, S.cancelled),
    S.dispatched: (S.cancelled,),
    S.partially_received: (S.cancelled,),
    S.fully_received: (S.closed,),
    S.closed: (),
    S.cancelled: (),
}

SYSTEM_TRANSITIONS: dict[POStatus, tuple[POStatus, ...]] = {
    S.acknowledged: (S.partially_received, S.fully_received),
    S.dispatched: (S.partially_received, S.fully_received),
    S.partially_received: (S.fully_received,),
}

TERMINAL_STATUSES = frozenset({S.rejected, S.closed, S.cancelled})

# goods may only be received against these
RECEIVABLE_STATUSES = frozenset({S.dispatched, S.acknowledged, S.partially_received})

APPROVAL_TARGETS = frozenset({S.approved, S.rejected})


def allowed_transitions(status: POStatus) -> list[POStatus]:
    return list(HUMAN_TRANSITIONS.get(status, ()))


def _invalid(current: POStatus, target: str, allowed: list[POStatus]) -> AppException:
    return AppException(
        400,
        f'Cannot transition from "{current.value}" to "{target}"',
        ErrorCode.INVALID_TRANSITION,
        {
            "from_status": current.value,
            "to_status": target,
            "allowed": [s.value for s in allowed],
        },
    )


def parse_target(current: POStatus, target) -> POStatus:
    try:
        return POStatus(target)
    except ValueError:
        allowed = [] if current in TERMINAL_STATUSES else allowed_transitions(current)
        raise _invalid(current, str(target), allowed)


def validate_transition(
    current: POStatus,
    target: POStatus,
    payment_status: POPaymentStatus,
) -> None:
    """Raise unless a caller may move a PO from current to target."""
    if current in TERMINAL_STATUSES:
        raise _invalid(current, target.value, [])

    if target == S.closed:
        if current != S.fully_received or payment_status != POPaymentStatus.fully_paid:
            raise AppException(
                400,
                "PO can only be closed when fully received and fully paid",
                ErrorCode.PRECONDITION_FAILED,
                {
                    "status": current.value,
                    "payment_status": payment_status.value,
                    "required_status": S.fully_received.value,
                    "required_payment_status": POPaymentStatus.fully_paid.value,
                },
            )
        return

    allowed = allowed_transitions(current)
    if target not in allowed:
        raise _invalid(current, target.value, allowed)


def is_system_transition(current: POStatus, target: POStatus) -> bool:
    return target in SYSTEM_TRANSITIONS.get(current, ())


def transition_side_effects(
    current: POStatus,
    target: POStatus,
    *,
    actor_id: Optional[int],
    now: datetime,
    rejection_reason: Optional[str] = None,
) -> dict:
    """Column values to write alongside the new status."""
    values: dict = {}

    if target == S.pending_approval:
        values["submitted_at"] = now
    elif target == S.approved:
        values["approved_by_id"] = actor_id
        values["approved_at"] = now
    elif target == S.rejected:
        values["rejected_by_id"] = actor_id
        values["rejected_at"] = now
        if rejection_reason:
            values["rejection_reason"] = rejection_reason
    elif target == S.sent_to_vendor:
        values["sent_to_vendor_at"] = now
    elif target == S.acknowledged:
        values["acknowledged_at"] = now
    elif target == S.dispatched:
        values["dispatched_at"] = now
    elif target == S.fully_received:
        values["fully_received_at"] = now
    elif target == S.closed:
        values["closed_at"] = now
        values["closed_by_id"] = actor_id
    elif target == S.cancelled:
        values["cancelled_at"] = now
        values["cancelled_by_id"] = actor_id
    elif target == S.draft and current == S.approved:
        # resubmission needs a fresh approval
        values["approved_by_id"] = None
        values["approved_at"] = None

    return values
