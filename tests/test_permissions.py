"""
Role flags.
"""
import pytest

from portal.auth.permissions import PERMISSIONS, PermissionModel
from portal.errors import PermissionDenied
from portal.models.user import CurrentUser


def actor(role, blocked=False):
    return CurrentUser(uid=f"u-{role}", email=f"{role}@escola.com", display_name=role, role=role, blocked=blocked)


class TestPermissionModel:

    def test_admin_has_everything_but_user_dashboard(self):
        model = PermissionModel()
        admin = actor("admin")
        assert all(model.has_permission(admin, p) for p in PERMISSIONS if p != "userdashboard")
        assert not model.has_permission(admin, "userdashboard")

    def test_superadmin_has_everything(self):
        model = PermissionModel()
        assert all(model.has_permission(actor("superadmin"), p) for p in PERMISSIONS)

    def test_only_operational_staff_manage_stock(self):
        model = PermissionModel()
        assert model.has_permission(actor("operacional"), "estoque")
        assert not model.has_permission(actor("financeiro"), "estoque")
        assert not model.has_permission(actor("user"), "estoque")

    def test_blocked_user_has_nothing(self):
        assert not PermissionModel().has_permission(actor("admin", blocked=True), "dashboard")

    def test_unknown_role_has_nothing(self):
        assert PermissionModel().permissions_for("visitante") == {}

    def test_require_accepts_any_listed_flag(self):
        model = PermissionModel()
        model.require(actor("financeiro"), "solicitacoes", "compras-financeiro")
        with pytest.raises(PermissionDenied) as exc_info:
            model.require(actor("user"), "solicitacoes", "compras-financeiro")
        assert exc_info.value.permissions == ("solicitacoes", "compras-financeiro")

    def test_anonymous_is_denied(self):
        with pytest.raises(PermissionDenied):
            PermissionModel().require(None, "profile")

    def test_stored_roles_override_defaults(self, store):
        store.set_doc("roles", "user", {"permissions": {"profile": True}})
        store.set_doc("roles", "pedagogico", {"permissions": {"compras-pedagogico": True}})

        model = PermissionModel.from_store(store)

        assert not model.has_permission(actor("user"), "nova-compra")
        assert model.has_permission(actor("pedagogico"), "compras-pedagogico")
        assert model.has_permission(actor("admin"), "dashboard")

    def test_is_admin(self):
        model = PermissionModel()
        assert model.is_admin(actor("admin"))
        assert model.is_admin(actor("superadmin"))
        assert not model.is_admin(actor("financeiro"))
