"""
Route authorization.

``authorize`` decides, per navigation, whether a view may render for the
current identity. ``has_permission`` answers finer-grained capability checks
from a single role table.
"""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from schemas import User, UserRole


class Decision(str, Enum):
    RENDER = "render"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_HOME = "redirect_home"


class Permission(str, Enum):
    BROWSE_CATALOG = "browse_catalog"
    REQUEST_ORDER = "request_order"
    VIEW_OWN_ORDERS = "view_own_orders"
    VIEW_ALL_ORDERS = "view_all_orders"
    MANAGE_ORDERS = "manage_orders"
    MANAGE_INVENTORY = "manage_inventory"
    MANAGE_USERS = "manage_users"
    VIEW_DASHBOARD_STATS = "view_dashboard_stats"


ROLE_PERMISSIONS = {
    UserRole.ADMIN: frozenset(Permission),
    UserRole.USER: frozenset({
        Permission.BROWSE_CATALOG,
        Permission.REQUEST_ORDER,
        Permission.VIEW_OWN_ORDERS,
    }),
}

ADMIN_AREA = frozenset({UserRole.ADMIN})
CATALOG_AREA = frozenset({UserRole.USER, UserRole.ADMIN})

LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"


def authorize(identity: Optional[User], roles: Optional[Iterable[UserRole]] = None) -> Decision:
    """Decide what to do with a request for a view restricted to ``roles``.

    An empty or missing role set admits any authenticated identity.
    """
    if identity is None:
        return Decision.REDIRECT_LOGIN
    allowed = frozenset(roles or ())
    if allowed and identity.role not in allowed:
        return Decision.REDIRECT_HOME
    return Decision.RENDER


def redirect_target(decision: Decision) -> Optional[str]:
    if decision is Decision.REDIRECT_LOGIN:
        return LOGIN_PATH
    if decision is Decision.REDIRECT_HOME:
        return HOME_PATH
    return None


def has_permission(identity: Optional[User], permission: Permission) -> bool:
    if identity is None:
        return False
    return permission in ROLE_PERMISSIONS.get(identity.role, frozenset())


def roles_with(permission: Permission) -> frozenset:
    """Role set that grants ``permission``, for use with ``authorize``."""
    return frozenset(role for role, granted in ROLE_PERMISSIONS.items() if permission in granted)
