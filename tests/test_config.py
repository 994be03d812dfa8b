"""
Settings loading and service wiring.
"""
import pytest
from pydantic import ValidationError

from portal.bootstrap import build_services, create_store
from portal.config import PortalSettings, load_settings
from portal.errors import StoreError
from portal.services.store import MemoryStore


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings(environ={})
        assert settings.backend == "firebase"
        assert settings.notification_display_limit == 5
        assert settings.notification_retention == "delete"
        assert settings.hidden_cutoff_days == {"reservations": 30, "purchases": 90, "supports": 30}

    def test_secrets_tables(self):
        secrets = {
            "firebase_credentials": {"project_id": "escola"},
            "portal": {"notification_retention": "display", "superadmin_email": "diretoria@escola.com"},
        }

        settings = load_settings(secrets, environ={})

        assert settings.firebase_credentials == {"project_id": "escola"}
        assert settings.notification_retention == "display"
        assert settings.superadmin_email == "diretoria@escola.com"

    def test_environment_overrides_secrets(self):
        settings = load_settings({"portal": {"backend": "firebase"}},
                                 environ={"PORTAL_BACKEND": "memory", "PORTAL_NOTIFICATION_DISPLAY_LIMIT": "8"})
        assert settings.backend == "memory"
        assert settings.notification_display_limit == 8

    def test_invalid_retention(self):
        with pytest.raises(ValidationError):
            load_settings({"portal": {"notification_retention": "archive"}}, environ={})


class TestBootstrap:

    def test_memory_backend(self):
        assert isinstance(create_store(PortalSettings(backend="memory")), MemoryStore)

    def test_firebase_backend_needs_credentials(self):
        with pytest.raises(StoreError):
            create_store(PortalSettings(backend="firebase"))

    def test_services_share_settings(self, tmp_path):
        settings = PortalSettings(backend="memory", notification_display_limit=3, notification_retention="display",
                                  unread_state_dir=str(tmp_path))

        services = build_services(settings)

        assert services.notifications.display_limit == 3
        assert services.notifications.retention == "display"
        assert services.requests.hidden_cutoff_days["purchases"] == 90
        assert services.reservations.checker is services.checker
        assert services.stock.store is services.store
