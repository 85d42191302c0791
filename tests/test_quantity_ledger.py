from decimal import Decimal

from app.models.enums.purchase_order_status import POStatus
from app.services.procurement.quantity_ledger import (
    ItemFulfillment,
    aggregate_accepted,
    check_receipt,
    classify_item,
    derive_fulfillment_status,
    pending_quantity,
)

D = Decimal


def test_pending_is_ordered_minus_accepted():
    assert pending_quantity(D("100"), D("40")) == D("60")


def test_pending_never_goes_negative():
    assert pending_quantity(D("10"), D("12")) == D("0")


def test_receipt_within_pending_is_admissible():
    check = check_receipt(D("100"), D("40"), D("60"))
    assert check.admissible
    assert check.pending == D("60")


def test_receipt_above_pending_is_refused():
    check = check_receipt(D("100"), D("100"), D("1"))
    assert not check.admissible
    assert check.pending == D("0")
    assert check.requested == D("1")


def test_negative_request_is_never_admissible():
    assert not check_receipt(D("100"), D("0"), D("-1")).admissible


def test_zero_acceptance_is_admissible():
    assert check_receipt(D("5"), D("5"), D("0")).admissible


def test_classify_item():
    assert classify_item(D("10"), D("0")) == ItemFulfillment.pending
    assert classify_item(D("10"), D("3")) == ItemFulfillment.partial
    assert classify_item(D("10"), D("10")) == ItemFulfillment.complete


def test_aggregate_accepted_sums_per_item():
    rows = [(1, D("10")), (2, D("5")), (1, D("2.5")), (3, None)]
    assert aggregate_accepted(rows) == {1: D("12.5"), 2: D("5"), 3: D("0")}


def test_all_items_complete_is_fully_received():
    pairs = [(D("10"), D("10")), (D("4"), D("4"))]
    assert derive_fulfillment_status(pairs) == POStatus.fully_received


def test_one_item_partly_in_is_partially_received():
    pairs = [(D("10"), D("10")), (D("4"), D("0"))]
    assert derive_fulfillment_status(pairs) == POStatus.partially_received


def test_nothing_accepted_means_no_change():
    pairs = [(D("10"), D("0")), (D("4"), D("0"))]
    assert derive_fulfillment_status(pairs) is None


def test_no_items_means_no_change():
    assert derive_fulfillment_status([]) is None


def test_derivation_is_stable_for_same_input():
    pairs = [(D("10"), D("6")), (D("4"), D("4"))]
    assert derive_fulfillment_status(pairs) == derive_fulfillment_status(pairs)
