"""Portal configuration and logging setup."""
import logging
import os
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, Field

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
ENV_PREFIX = "PORTAL_"


class PortalSettings(BaseModel):
    """Runtime settings, normally read from ``.streamlit/secrets.toml``."""
    backend: Literal["firebase", "memory"] = "firebase"
    firebase_credentials: Optional[Dict[str, Any]] = None
    storage_bucket: Optional[str] = None
    notification_display_limit: int = Field(default=5, ge=1)
    # "delete" removes notifications beyond the limit for everybody,
    # "display" only hides them from the viewer's list.
    notification_retention: Literal["delete", "display"] = "delete"
    hidden_cutoff_days: Dict[str, int] = Field(default_factory=lambda: {
        "reservations": 30,
        "purchases": 90,
        "supports": 30,
    })
    unread_state_dir: str = ".portal_state"
    superadmin_email: Optional[str] = None
    log_level: str = "INFO"
    # Decides what "today" is for the reservation calendar.
    timezone: str = "America/Sao_Paulo"


def load_settings(secrets: Optional[Mapping[str, Any]] = None,
                  environ: Optional[Mapping[str, str]] = None) -> PortalSettings:
    """
    Builds the settings from a secrets mapping plus ``PORTAL_*`` overrides.

    Args:
        secrets: Typically ``st.secrets``. The ``firebase_credentials`` table
            and an optional ``portal`` table are read from it.
        environ: Environment mapping, ``os.environ`` by default.

    Returns:
        PortalSettings: The validated settings.
    """
    environ = os.environ if environ is None else environ
    data: Dict[str, Any] = {}
    if secrets:
        if "portal" in secrets:
            data.update(dict(secrets["portal"]))
        if "firebase_credentials" in secrets:
            data["firebase_credentials"] = dict(secrets["firebase_credentials"])
    for name in PortalSettings.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in environ and name not in ("firebase_credentials", "hidden_cutoff_days"):
            data[name] = environ[key]
    return PortalSettings(**data)


def configure_logging(settings: PortalSettings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
