"""Tests for the authorization guard."""

from __future__ import annotations

import pytest

from guard import (
    ADMIN_AREA,
    CATALOG_AREA,
    Decision,
    Permission,
    authorize,
    has_permission,
    redirect_target,
    roles_with,
)
from schemas import User, UserRole

ADMIN = User(id="admin-1", username="admin", role=UserRole.ADMIN, full_name="System Administrator")
DOCTOR = User(id="user-1", username="doctor", role=UserRole.USER, full_name="Dr. Sarah Smith", discount_tier=0.85)


class TestAuthorize:
    """Tests for authorize()."""

    @pytest.mark.parametrize("roles", [None, [], ADMIN_AREA, CATALOG_AREA])
    def test_anonymous_goes_to_login(self, roles) -> None:
        assert authorize(None, roles) is Decision.REDIRECT_LOGIN

    @pytest.mark.parametrize("identity", [ADMIN, DOCTOR])
    def test_no_restriction_admits_any_identity(self, identity: User) -> None:
        assert authorize(identity) is Decision.RENDER
        assert authorize(identity, []) is Decision.RENDER

    def test_admin_area(self) -> None:
        assert authorize(ADMIN, ADMIN_AREA) is Decision.RENDER
        assert authorize(DOCTOR, ADMIN_AREA) is Decision.REDIRECT_HOME

    def test_catalog_area(self) -> None:
        assert authorize(ADMIN, CATALOG_AREA) is Decision.RENDER
        assert authorize(DOCTOR, CATALOG_AREA) is Decision.RENDER

    def test_accepts_any_iterable(self) -> None:
        assert authorize(DOCTOR, (r for r in [UserRole.USER])) is Decision.RENDER

    def test_redirect_targets(self) -> None:
        assert redirect_target(Decision.REDIRECT_LOGIN) == "/login"
        assert redirect_target(Decision.REDIRECT_HOME) == "/dashboard"
        assert redirect_target(Decision.RENDER) is None


class TestPermissions:
    """Tests for the role capability table."""

    def test_admin_has_everything(self) -> None:
        assert all(has_permission(ADMIN, p) for p in Permission)

    def test_user_permissions(self) -> None:
        assert has_permission(DOCTOR, Permission.REQUEST_ORDER)
        assert has_permission(DOCTOR, Permission.BROWSE_CATALOG)
        assert not has_permission(DOCTOR, Permission.MANAGE_USERS)
        assert not has_permission(DOCTOR, Permission.VIEW_ALL_ORDERS)

    def test_anonymous_has_nothing(self) -> None:
        assert not has_permission(None, Permission.BROWSE_CATALOG)

    def test_roles_with(self) -> None:
        assert roles_with(Permission.MANAGE_INVENTORY) == ADMIN_AREA
        assert roles_with(Permission.REQUEST_ORDER) == CATALOG_AREA
