# app/constants/roles.py

OWNER = "owner"
ADMIN = "admin"
MANAGER = "manager"
DIRECTOR = "director"
PO_APPROVER = "po_approver"

# Roles that may approve or reject purchase orders
APPROVER_ROLES = frozenset({OWNER, ADMIN, MANAGER, DIRECTOR, PO_APPROVER})

# Roles exempt from the self-approval guard and from amount thresholds
SUPERUSER_ROLES = frozenset({OWNER, ADMIN})

OWNER_HIERARCHY_LEVEL = 0
UNRANKED_HIERARCHY_LEVEL = 999
