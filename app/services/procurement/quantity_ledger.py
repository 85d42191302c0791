"""
Receipt quantity arithmetic.

Pure functions only: callers load the figures, this module decides whether a
receipt fits and what the order's fulfilment looks like afterwards.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from app.models.enums.purchase_order_status import POStatus

ZERO = Decimal("0")


class ItemFulfillment(str, Enum):
    pending = "pending"
    partial = "partial"
    complete = "complete"


@dataclass(frozen=True)
class ReceiptCheck:
    ordered: Decimal
    already_accepted: Decimal
    pending: Decimal
    requested: Decimal

    @property
    def admissible(self) -> bool:
        return ZERO <= self.requested <= self.pending


def pending_quantity(ordered: Decimal, already_accepted: Decimal) -> Decimal:
    # Clamp: data accepted before a quantity correction can exceed the order
    return max(ordered - already_accepted, ZERO)


def check_receipt(
    ordered: Decimal,
    already_accepted: Decimal,
    requested: Decimal,
) -> ReceiptCheck:
    return ReceiptCheck(
        ordered=ordered,
        already_accepted=already_accepted,
        pending=pending_quantity(ordered, already_accepted),
        requested=requested,
    )


def classify_item(ordered: Decimal, accepted: Decimal) -> ItemFulfillment:
    if accepted >= ordered:
        return ItemFulfillment.complete
    if accepted > ZERO:
        return ItemFulfillment.partial
    return ItemFulfillment.pending


def aggregate_accepted(rows: Iterable[tuple[int, Decimal]]) -> dict[int, Decimal]:
    """Sum accepted quantity per PO item from (po_item_id, quantity_accepted) rows."""
    totals: dict[int, Decimal] = {}
    for po_item_id, accepted in rows:
        totals[po_item_id] = totals.get(po_item_id, ZERO) + Decimal(accepted or 0)
    return totals


def derive_fulfillment_status(
    items: Iterable[tuple[Decimal, Decimal]],
) -> Optional[POStatus]:
    """
    Classify a whole order from (ordered, accepted) pairs covering ALL of its items.

    Returns fully_received when every item is complete, partially_received when
    anything has been accepted, and None when nothing has arrived yet.
    """
    states = [classify_item(ordered, accepted) for ordered, accepted in items]
    if not states:
        return None
    if all(s == ItemFulfillment.complete for s in states):
        return POStatus.fully_received
    if any(s != ItemFulfillment.pending for s in states):
        return POStatus.partially_received
    return None
