"""
Who may approve or reject a purchase order.

Checks run in this order and stop at the first failure:

1. self-approval: the creator may not decide on their own PO unless they are
   owner/admin;
2. amount thresholds (approval only, when the tenant configured them): above
   level2_limit needs owner/admin/level-3 role, above level1_limit needs
   owner/admin/level-2/level-3 role;
3. role gate: the actor needs one of the fixed approver roles. Configured
   level roles only count toward the thresholds.

Rejection skips step 2: any qualified approver may reject at any amount.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from functools import reduce
from typing import Iterable, Optional

from app.constants.error_codes import ErrorCode
from app.constants.roles import (
    APPROVER_ROLES,
    SUPERUSER_ROLES,
    OWNER,
    OWNER_HIERARCHY_LEVEL,
    UNRANKED_HIERARCHY_LEVEL,
)
from app.core.exceptions import AppException


class ApprovalAction(str, Enum):
    approve = "approve"
    reject = "reject"


@dataclass(frozen=True)
class ActorProfile:
    user_id: int
    roles: frozenset
    hierarchy_level: int = UNRANKED_HIERARCHY_LEVEL
    is_owner: bool = False

    @property
    def is_superuser(self) -> bool:
        return self.is_owner or bool(self.roles & SUPERUSER_ROLES)

    def holds_any(self, roles: Iterable[str]) -> bool:
        return bool(self.roles & frozenset(roles))


@dataclass(frozen=True)
class ApprovalThresholds:
    level1_limit: Decimal
    level2_limit: Decimal
    level2_role: str
    level3_role: str

    @classmethod
    def from_config(cls, config) -> "ApprovalThresholds":
        return cls(
            level1_limit=Decimal(config.level1_limit),
            level2_limit=Decimal(config.level2_limit),
            level2_role=config.level2_role,
            level3_role=config.level3_role,
        )


def resolve_hierarchy_level(levels: Iterable[int], is_owner: bool = False) -> int:
    if is_owner:
        return OWNER_HIERARCHY_LEVEL
    return reduce(min, levels, UNRANKED_HIERARCHY_LEVEL)


def build_actor_profile(
    user_id: int,
    role_levels: Iterable[tuple[str, int]],
    is_owner: bool = False,
) -> ActorProfile:
    role_levels = list(role_levels)
    roles = frozenset(slug for slug, _ in role_levels)
    if is_owner:
        roles = roles | {OWNER}
    return ActorProfile(
        user_id=user_id,
        roles=roles,
        hierarchy_level=resolve_hierarchy_level((lvl for _, lvl in role_levels), is_owner),
        is_owner=is_owner,
    )


def required_threshold_role(
    thresholds: Optional[ApprovalThresholds],
    amount: Decimal,
) -> Optional[tuple[str, frozenset]]:
    """(role to name in the error, roles that satisfy it) or None when no threshold applies."""
    if thresholds is None:
        return None

    if amount > thresholds.level2_limit:
        return thresholds.level3_role, SUPERUSER_ROLES | {thresholds.level3_role}

    if amount > thresholds.level1_limit:
        return thresholds.level2_role, SUPERUSER_ROLES | {
            thresholds.level2_role,
            thresholds.level3_role,
        }

    return None


def authorize_po_decision(
    actor: ActorProfile,
    action: ApprovalAction,
    *,
    po_created_by_id: Optional[int],
    po_total: Decimal,
    thresholds: Optional[ApprovalThresholds] = None,
) -> None:
    verb = "approve" if action == ApprovalAction.approve else "reject"

    if po_created_by_id == actor.user_id and not actor.is_superuser:
        raise AppException(
            403,
            f"You cannot {verb} your own purchase order. Please have another approver review it.",
            ErrorCode.SELF_APPROVAL_FORBIDDEN,
            {"actor_id": actor.user_id},
        )

    if action == ApprovalAction.approve:
        required = required_threshold_role(thresholds, Decimal(po_total))
        if required:
            required_role, satisfying = required
            if not actor.holds_any(satisfying):
                raise AppException(
                    403,
                    f"This PO amount ({po_total}) requires {required_role} or higher approval",
                    ErrorCode.INSUFFICIENT_APPROVAL_LEVEL,
                    {
                        "required_role": required_role,
                        "po_total": po_total,
                        "actor_roles": sorted(actor.roles),
                    },
                )

    if not actor.holds_any(APPROVER_ROLES):
        raise AppException(
            403,
            f"You do not have permission to {verb} purchase orders",
            ErrorCode.FORBIDDEN_ROLE,
            {"required_roles": sorted(APPROVER_ROLES), "actor_roles": sorted(actor.roles)},
        )
