from decimal import Decimal

import pytest

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.services.procurement.approval_authorization import (
    ApprovalAction,
    ApprovalThresholds,
    authorize_po_decision,
    build_actor_profile,
    resolve_hierarchy_level,
)

THRESHOLDS = ApprovalThresholds(
    level1_limit=Decimal("50000"),
    level2_limit=Decimal("100000"),
    level2_role="manager",
    level3_role="director",
)

CREATOR_ID = 1


def actor(*roles, user_id=2, is_owner=False, level=999):
    return build_actor_profile(user_id, [(r, level) for r in roles], is_owner=is_owner)


def decide(profile, action=ApprovalAction.approve, total="1000", thresholds=THRESHOLDS, creator=CREATOR_ID):
    authorize_po_decision(
        profile,
        action,
        po_created_by_id=creator,
        po_total=Decimal(total),
        thresholds=thresholds,
    )


def error_of(fn, *args, **kwargs) -> AppException:
    with pytest.raises(AppException) as exc:
        fn(*args, **kwargs)
    return exc.value


# ---------------------------------------------------------------------------
# hierarchy
# ---------------------------------------------------------------------------
def test_hierarchy_level_is_minimum_of_roles():
    assert resolve_hierarchy_level([4, 2, 7]) == 2


def test_hierarchy_level_without_roles_is_unranked():
    assert resolve_hierarchy_level([]) == 999


def test_owner_flag_implies_owner_role_and_level_zero():
    profile = build_actor_profile(5, [("manager", 3)], is_owner=True)
    assert "owner" in profile.roles
    assert profile.hierarchy_level == 0
    assert profile.is_superuser


# ---------------------------------------------------------------------------
# role gate
# ---------------------------------------------------------------------------
def test_non_approver_is_forbidden_below_thresholds():
    err = error_of(decide, actor("sales_rep"))
    assert err.error_code == ErrorCode.FORBIDDEN_ROLE
    assert err.status_code == 403


def test_non_approver_cannot_reject():
    err = error_of(decide, actor("sales_rep"), ApprovalAction.reject, "500000")
    assert err.error_code == ErrorCode.FORBIDDEN_ROLE


def test_approver_role_passes_gate():
    decide(actor("po_approver"))


CUSTOM = ApprovalThresholds(Decimal("5000"), Decimal("20000"), "buyer_lead", "cfo")


@pytest.mark.parametrize("action", [ApprovalAction.approve, ApprovalAction.reject])
def test_configured_level_role_alone_is_not_an_approver(action):
    err = error_of(decide, actor("buyer_lead", level=5), action, "1000", CUSTOM)
    assert err.error_code == ErrorCode.FORBIDDEN_ROLE
    assert "buyer_lead" not in err.details["required_roles"]


def test_configured_level_role_satisfies_threshold_for_an_approver():
    decide(actor("po_approver", "buyer_lead"), total="10000", thresholds=CUSTOM)


def test_level_zero_without_owner_or_admin_has_no_self_approval_bypass():
    profile = build_actor_profile(CREATOR_ID, [("manager", 0)])
    assert profile.hierarchy_level == 0
    assert not profile.is_superuser
    err = error_of(decide, profile)
    assert err.error_code == ErrorCode.SELF_APPROVAL_FORBIDDEN


# ---------------------------------------------------------------------------
# self-approval
# ---------------------------------------------------------------------------
@pytest.mark.parametrize(
    "roles",
    [("manager",), ("director",), ("po_approver",), ("manager", "director"), ("sales_rep",), ()],
)
def test_creator_can_never_approve_own_po_without_superuser(roles):
    profile = actor(*roles, user_id=CREATOR_ID)
    for total in ("10", "75000", "250000"):
        err = error_of(decide, profile, total=total)
        assert err.error_code == ErrorCode.SELF_APPROVAL_FORBIDDEN


def test_creator_cannot_reject_own_po_either():
    err = error_of(decide, actor("manager", user_id=CREATOR_ID), ApprovalAction.reject)
    assert err.error_code == ErrorCode.SELF_APPROVAL_FORBIDDEN


@pytest.mark.parametrize("roles", [("owner",), ("admin",)])
def test_owner_and_admin_may_approve_own_po(roles):
    decide(actor(*roles, user_id=CREATOR_ID), total="250000")


def test_owner_flag_may_approve_own_po():
    decide(actor(user_id=CREATOR_ID, is_owner=True), total="250000")


# ---------------------------------------------------------------------------
# thresholds
# ---------------------------------------------------------------------------
def test_mid_band_requires_level2_role():
    err = error_of(decide, actor("sales_rep"), total="75000")
    assert err.error_code == ErrorCode.INSUFFICIENT_APPROVAL_LEVEL
    assert err.details["required_role"] == "manager"


def test_mid_band_manager_succeeds():
    decide(actor("manager"), total="75000")


def test_mid_band_po_approver_lacks_level():
    err = error_of(decide, actor("po_approver"), total="75000")
    assert err.error_code == ErrorCode.INSUFFICIENT_APPROVAL_LEVEL
    assert err.details["required_role"] == "manager"


def test_level3_role_satisfies_mid_band():
    decide(actor("director"), total="75000")


def test_top_band_requires_level3_role():
    err = error_of(decide, actor("manager"), total="100000.01")
    assert err.error_code == ErrorCode.INSUFFICIENT_APPROVAL_LEVEL
    assert err.details["required_role"] == "director"


def test_top_band_director_and_admin_succeed():
    decide(actor("director"), total="150000")
    decide(actor("admin"), total="150000")


def test_limits_are_inclusive_of_lower_band():
    decide(actor("po_approver"), total="50000")
    decide(actor("manager"), total="100000")


def test_rejection_skips_thresholds():
    decide(actor("po_approver"), ApprovalAction.reject, "999999")


def test_no_config_means_no_thresholds():
    decide(actor("po_approver"), total="10000000", thresholds=None)
