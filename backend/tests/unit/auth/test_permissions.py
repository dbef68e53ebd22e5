"""
Unit Tests for the role permission matrix
"""
import pytest

from carworld.models.user import UserRole
from carworld.modules.auth.permissions import has_permission, permissions_for, ROLE_PERMISSIONS


class TestHasPermission:
    """Test has_permission across roles"""

    @pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.MANAGER])
    def test_full_access_roles(self, role):
        assert has_permission(role, "products", "delete") is True
        assert has_permission(role, "invoices", "approve") is True
        assert has_permission(role, "invoices", "reject") is True
        assert has_permission(role, "reports", "read") is True

    def test_reports_are_read_only(self):
        assert has_permission(UserRole.ADMIN, "reports", "create") is False

    def test_inventory_manager(self):
        assert has_permission(UserRole.INVENTORY_MANAGER, "products", "create") is True
        assert has_permission(UserRole.INVENTORY_MANAGER, "orders", "update") is True
        assert has_permission(UserRole.INVENTORY_MANAGER, "customers", "read") is False
        assert has_permission(UserRole.INVENTORY_MANAGER, "invoices", "read") is False

    def test_sales_executive_cannot_approve_invoices(self):
        assert has_permission(UserRole.SALES_EXECUTIVE, "invoices", "create") is True
        assert has_permission(UserRole.SALES_EXECUTIVE, "invoices", "approve") is False
        assert has_permission(UserRole.SALES_EXECUTIVE, "warranties", "update") is False

    def test_hr_manager(self):
        assert has_permission(UserRole.HR_MANAGER, "users", "create") is True
        assert has_permission(UserRole.HR_MANAGER, "leaves", "update") is True
        assert has_permission(UserRole.HR_MANAGER, "products", "read") is False

    def test_service_staff(self):
        assert has_permission(UserRole.SERVICE_STAFF, "supportTickets", "update") is True
        assert has_permission(UserRole.SERVICE_STAFF, "supportTickets", "delete") is False
        assert has_permission(UserRole.SERVICE_STAFF, "feedbacks", "update") is False

    def test_role_given_as_display_string(self):
        assert has_permission("Sales Executive", "customers", "create") is True

    @pytest.mark.parametrize("role", [None, "", "Owner", "admin"])
    def test_unknown_role_denied(self, role):
        assert has_permission(role, "products", "read") is False

    def test_unknown_resource_denied(self):
        assert has_permission(UserRole.ADMIN, "spaceships", "read") is False


class TestPermissionsFor:
    """Test the serializable permission view"""

    def test_actions_are_sorted_lists(self):
        perms = permissions_for(UserRole.SERVICE_STAFF)

        assert perms == {
            "supportTickets": ["create", "read", "update"],
            "feedbacks": ["create", "read"],
        }

    def test_every_role_has_an_entry(self):
        for role in UserRole:
            assert role in ROLE_PERMISSIONS
            assert permissions_for(role)

    def test_unknown_role(self):
        assert permissions_for("Owner") == {}
