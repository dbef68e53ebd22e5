# Authentication module

from carworld.modules.auth.dependencies import (
    get_current_user,
    get_current_admin,
    require_permission,
    require_role,
)
from carworld.modules.auth.permissions import (
    ROLE_PERMISSIONS,
    has_permission,
    permissions_for,
)

__all__ = [
    "get_current_user",
    "get_current_admin",
    "require_permission",
    "require_role",
    "ROLE_PERMISSIONS",
    "has_permission",
    "permissions_for",
]
