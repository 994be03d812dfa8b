"""
Registration, login and account administration.
"""
import pytest

from portal.errors import DuplicateUser, InvalidCredentials, PermissionDenied, UserBlocked, WeakPassword

PASSWORD = "Segura123"


class TestRegistration:

    def test_new_user_gets_user_role(self, services):
        user = services.auth.register_user("Carla@Escola.com", "Carla", PASSWORD)

        assert user.email == "carla@escola.com"
        assert user.role == "user"

    def test_configured_email_becomes_superadmin(self, services):
        assert services.auth.register_user("diretoria@escola.com", "Diretoria", PASSWORD).role == "superadmin"

    @pytest.mark.parametrize("password", ["Curta1", "semmaiuscula1", "SEMMINUSCULA1", "SemNumeros"])
    def test_weak_passwords(self, services, password):
        with pytest.raises(WeakPassword):
            services.auth.register_user("carla@escola.com", "Carla", password)

    def test_duplicate_email(self, services):
        services.auth.register_user("carla@escola.com", "Carla", PASSWORD)
        with pytest.raises(DuplicateUser):
            services.auth.register_user("CARLA@escola.com", "Outra", PASSWORD)

    def test_password_is_not_stored_in_clear(self, services, store):
        user = services.auth.register_user("carla@escola.com", "Carla", PASSWORD)

        doc = store.get_doc("users", user.uid)

        assert doc["password"] != PASSWORD
        assert doc["salt"]
        assert "password" not in services.auth.get_user(user.uid).model_dump()


class TestLogin:

    def test_login_updates_last_active(self, services, clock):
        user = services.auth.register_user("carla@escola.com", "Carla", PASSWORD)
        clock.advance(hours=1)

        current = services.auth.login(" carla@escola.com ", PASSWORD)

        assert current.uid == user.uid
        assert services.auth.get_user(user.uid).last_active == clock.now

    def test_wrong_password(self, services):
        services.auth.register_user("carla@escola.com", "Carla", PASSWORD)
        with pytest.raises(InvalidCredentials):
            services.auth.login("carla@escola.com", "Errada123")

    def test_unknown_email(self, services):
        with pytest.raises(InvalidCredentials):
            services.auth.login("ninguem@escola.com", PASSWORD)

    def test_blocked_user(self, services, admin):
        user = services.auth.register_user("carla@escola.com", "Carla", PASSWORD)
        services.auth.block_user(admin, user.uid)

        with pytest.raises(UserBlocked):
            services.auth.login("carla@escola.com", PASSWORD)


class TestAdministration:

    def test_update_role(self, services, admin):
        user = services.auth.register_user("carla@escola.com", "Carla", PASSWORD)

        services.auth.update_role(admin, user.uid, "financeiro")

        assert services.auth.login("carla@escola.com", PASSWORD).role == "financeiro"

    def test_only_superadmin_grants_superadmin(self, services, admin):
        user = services.auth.register_user("carla@escola.com", "Carla", PASSWORD)
        with pytest.raises(ValueError):
            services.auth.update_role(admin, user.uid, "superadmin")

    def test_unknown_role(self, services, admin):
        user = services.auth.register_user("carla@escola.com", "Carla", PASSWORD)
        with pytest.raises(ValueError):
            services.auth.update_role(admin, user.uid, "diretor")

    def test_user_cannot_manage_accounts(self, services, alice):
        user = services.auth.register_user("carla@escola.com", "Carla", PASSWORD)
        with pytest.raises(PermissionDenied):
            services.auth.block_user(alice, user.uid)

    def test_cannot_block_self(self, services):
        boss = services.auth.register_user("diretoria@escola.com", "Diretoria", PASSWORD)
        with pytest.raises(ValueError):
            services.auth.block_user(boss, boss.uid)

    def test_get_all_users_sorted_by_email(self, services):
        services.auth.register_user("zeca@escola.com", "Zeca", PASSWORD)
        services.auth.register_user("ana@escola.com", "Ana", PASSWORD)

        assert [u.email for u in services.auth.get_all_users()] == ["ana@escola.com", "zeca@escola.com"]
