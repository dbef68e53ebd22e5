"""
Role-based access control for shop staff.

Each role maps to the resources it may touch and the actions allowed on
each. Anything not listed is denied.
"""
from typing import Dict, FrozenSet, Union

from carworld.models.user import UserRole

CRUD = frozenset({"read", "create", "update", "delete"})
INVOICE_ADMIN = CRUD | {"approve", "reject"}

# Admin and Manager share the full matrix
_FULL_ACCESS: Dict[str, FrozenSet[str]] = {
    "products": CRUD,
    "inventory": CRUD,
    "employees": CRUD,
    "customers": CRUD,
    "orders": CRUD,
    "invoices": INVOICE_ADMIN,
    "coupons": CRUD,
    "warranties": CRUD,
    "reports": frozenset({"read"}),
    "notifications": frozenset({"read", "update"}),
    "users": CRUD,
    "suppliers": CRUD,
    "purchaseOrders": CRUD,
    "attendance": CRUD,
    "leaves": CRUD,
    "tasks": CRUD,
    "communications": CRUD,
    "feedbacks": CRUD,
    "supportTickets": CRUD,
}

ROLE_PERMISSIONS: Dict[UserRole, Dict[str, FrozenSet[str]]] = {
    UserRole.ADMIN: dict(_FULL_ACCESS),
    UserRole.MANAGER: dict(_FULL_ACCESS),
    UserRole.INVENTORY_MANAGER: {
        "products": CRUD,
        "inventory": CRUD,
        "orders": CRUD,
    },
    UserRole.SALES_EXECUTIVE: {
        "customers": CRUD,
        "orders": CRUD,
        "invoices": frozenset({"read", "create"}),
        "warranties": frozenset({"read", "create"}),
    },
    UserRole.HR_MANAGER: {
        "employees": CRUD,
        "attendance": CRUD,
        "tasks": CRUD,
        "leaves": CRUD,
        "users": CRUD,
    },
    UserRole.SERVICE_STAFF: {
        "supportTickets": frozenset({"read", "create", "update"}),
        "feedbacks": frozenset({"read", "create"}),
    },
}


def _as_role(role: Union[UserRole, str, None]):
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


def has_permission(role: Union[UserRole, str, None], resource: str, action: str) -> bool:
    """True when `role` may perform `action` on `resource`"""
    user_role = _as_role(role)
    if user_role is None:
        return False
    permissions = ROLE_PERMISSIONS.get(user_role)
    if not permissions:
        return False
    return action in permissions.get(resource, frozenset())


def permissions_for(role: Union[UserRole, str, None]) -> Dict[str, list]:
    """Serializable view of a role's permissions (sent to clients after login)"""
    user_role = _as_role(role)
    if user_role is None:
        return {}
    return {
        resource: sorted(actions)
        for resource, actions in ROLE_PERMISSIONS.get(user_role, {}).items()
    }
