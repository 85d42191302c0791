from datetime import datetime, timezone
from itertools import product

import pytest

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus
from app.services.procurement.po_transitions import (
    TERMINAL_STATUSES,
    allowed_transitions,
    is_system_transition,
    parse_target,
    transition_side_effects,
    validate_transition,
)

S = POStatus
NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def refused(current, target, payment=POPaymentStatus.unpaid) -> AppException:
    with pytest.raises(AppException) as exc:
        validate_transition(current, target, payment)
    return exc.value


@pytest.mark.parametrize(
    "current,target",
    [
        (S.draft, S.pending_approval),
        (S.draft, S.cancelled),
        (S.pending_approval, S.approved),
        (S.pending_approval, S.rejected),
        (S.approved, S.sent_to_vendor),
        (S.approved, S.draft),
        (S.sent_to_vendor, S.acknowledged),
        (S.sent_to_vendor, S.dispatched),
        (S.acknowledged, S.dispatched),
        (S.dispatched, S.cancelled),
        (S.partially_received, S.cancelled),
    ],
)
def test_human_moves_in_table_are_allowed(current, target):
    validate_transition(current, target, POPaymentStatus.unpaid)


def test_illegal_move_names_allowed_targets():
    err = refused(S.draft, S.approved)
    assert err.error_code == ErrorCode.INVALID_TRANSITION
    assert err.details["allowed"] == ["pending_approval", "cancelled"]


@pytest.mark.parametrize("current", [S.dispatched, S.acknowledged, S.partially_received])
def test_receipt_statuses_are_not_human_targets(current):
    for target in (S.partially_received, S.fully_received):
        if target == current:
            continue
        err = refused(current, target)
        assert err.error_code == ErrorCode.INVALID_TRANSITION


@pytest.mark.parametrize("terminal,target", product(sorted(TERMINAL_STATUSES), list(S)))
def test_terminal_states_are_sealed(terminal, target):
    err = refused(terminal, target, POPaymentStatus.fully_paid)
    assert err.error_code == ErrorCode.INVALID_TRANSITION
    assert err.details["allowed"] == []


def test_unknown_target_from_terminal_has_empty_allowed():
    with pytest.raises(AppException) as exc:
        parse_target(S.closed, "reopened")
    assert exc.value.error_code == ErrorCode.INVALID_TRANSITION
    assert exc.value.details["allowed"] == []


def test_unknown_target_lists_allowed():
    with pytest.raises(AppException) as exc:
        parse_target(S.draft, "shipped")
    assert exc.value.details["allowed"] == ["pending_approval", "cancelled"]


def test_parse_target_accepts_value():
    assert parse_target(S.draft, "pending_approval") == S.pending_approval


def test_close_succeeds_only_when_received_and_paid():
    validate_transition(S.fully_received, S.closed, POPaymentStatus.fully_paid)


@pytest.mark.parametrize(
    "current,payment",
    [
        (S.fully_received, POPaymentStatus.unpaid),
        (S.fully_received, POPaymentStatus.partially_paid),
        (S.partially_received, POPaymentStatus.fully_paid),
        (S.dispatched, POPaymentStatus.unpaid),
        (S.approved, POPaymentStatus.fully_paid),
    ],
)
def test_close_without_precondition_fails(current, payment):
    err = refused(current, S.closed, payment)
    assert err.error_code == ErrorCode.PRECONDITION_FAILED


def test_allowed_transitions_for_terminal_is_empty():
    for status in TERMINAL_STATUSES:
        assert allowed_transitions(status) == []


def test_system_transitions():
    assert is_system_transition(S.dispatched, S.partially_received)
    assert is_system_transition(S.acknowledged, S.fully_received)
    assert is_system_transition(S.partially_received, S.fully_received)
    assert not is_system_transition(S.fully_received, S.partially_received)
    assert not is_system_transition(S.cancelled, S.fully_received)
    assert not is_system_transition(S.approved, S.partially_received)


def test_approval_records_approver():
    values = transition_side_effects(S.pending_approval, S.approved, actor_id=7, now=NOW)
    assert values == {"approved_by_id": 7, "approved_at": NOW}


def test_rejection_records_reason():
    values = transition_side_effects(
        S.pending_approval, S.rejected, actor_id=7, now=NOW, rejection_reason="too pricey"
    )
    assert values["rejection_reason"] == "too pricey"
    assert values["rejected_by_id"] == 7


def test_return_to_draft_clears_approver():
    values = transition_side_effects(S.approved, S.draft, actor_id=7, now=NOW)
    assert values == {"approved_by_id": None, "approved_at": None}


def test_each_target_stamps_a_timestamp():
    stamps = {
        S.pending_approval: "submitted_at",
        S.sent_to_vendor: "sent_to_vendor_at",
        S.acknowledged: "acknowledged_at",
        S.dispatched: "dispatched_at",
        S.fully_received: "fully_received_at",
        S.closed: "closed_at",
        S.cancelled: "cancelled_at",
    }
    for target, column in stamps.items():
        assert transition_side_effects(S.draft, target, actor_id=1, now=NOW)[column] == NOW
