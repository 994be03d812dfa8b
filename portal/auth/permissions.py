"""
Role to feature-flag mapping.

The same flags gate what the UI renders and what the services accept, so a
client that skips the UI still cannot mutate data its role does not allow.
"""
import logging
from typing import Dict, Iterable, Mapping, Optional

from portal.errors import PermissionDenied
from portal.models.user import CurrentUser

logger = logging.getLogger(__name__)

PERMISSIONS = (
    "dashboard",
    "userdashboard",
    "equipamentos",
    "disponibilidade",
    "estoque",
    "usuarios",
    "solicitacoes",
    "user-solicitacoes",
    "nova-reserva",
    "nova-compra",
    "nova-suporte",
    "notificacoes",
    "notificacoes-envio",
    "compras-financeiro",
    "compras-pedagogico",
    "suporte-operacional",
    "calendario-reservas",
    "roles-management",
    "profile",
    "notice-board-edit",
)

DEFAULT_ROLES: Dict[str, Dict[str, bool]] = {
    "admin": {p: p != "userdashboard" for p in PERMISSIONS},
    "financeiro": {
        "userdashboard": True,
        "compras-financeiro": True,
        "user-solicitacoes": True,
        "notificacoes": True,
        "notificacoes-envio": True,
        "profile": True,
    },
    "operacional": {
        "userdashboard": True,
        "suporte-operacional": True,
        "equipamentos": True,
        "estoque": True,
        "user-solicitacoes": True,
        "notificacoes": True,
        "profile": True,
    },
    "user": {
        "userdashboard": True,
        "user-solicitacoes": True,
        "nova-reserva": True,
        "nova-compra": True,
        "nova-suporte": True,
        "notificacoes": True,
        "profile": True,
    },
}

SUPERADMIN = "superadmin"
ADMIN_ROLES = ("admin", SUPERADMIN)

# Which flags may change the status of (or chat as staff on) each collection.
STAFF_PERMISSIONS: Dict[str, tuple] = {
    "reservations": ("solicitacoes", "calendario-reservas"),
    "purchases": ("solicitacoes", "compras-financeiro", "compras-pedagogico"),
    "supports": ("solicitacoes", "suporte-operacional"),
}

CREATE_PERMISSIONS: Dict[str, str] = {
    "reservation": "nova-reserva",
    "purchase": "nova-compra",
    "support": "nova-suporte",
}


class PermissionModel:
    """Resolves a user's flags from the default roles plus stored overrides."""

    def __init__(self, roles: Optional[Mapping[str, Mapping[str, bool]]] = None):
        self.roles: Dict[str, Dict[str, bool]] = {k: dict(v) for k, v in DEFAULT_ROLES.items()}
        for name, perms in (roles or {}).items():
            self.roles[name] = dict(perms)

    @classmethod
    def from_store(cls, store) -> "PermissionModel":
        """Loads role documents from the ``roles`` collection on top of the defaults."""
        stored = {doc["id"]: doc.get("permissions", {}) for doc in store.get_docs("roles")}
        return cls(stored)

    def permissions_for(self, role: str) -> Dict[str, bool]:
        if role == SUPERADMIN:
            return {p: True for p in PERMISSIONS}
        return dict(self.roles.get(role, {}))

    def has_permission(self, user: Optional[CurrentUser], permission: str) -> bool:
        if user is None or user.blocked:
            return False
        return bool(self.permissions_for(user.role).get(permission, False))

    def has_any(self, user: Optional[CurrentUser], permissions: Iterable[str]) -> bool:
        return any(self.has_permission(user, p) for p in permissions)

    def require(self, user: Optional[CurrentUser], *permissions: str) -> None:
        """Raises ``PermissionDenied`` unless the user holds at least one of the flags."""
        if not self.has_any(user, permissions):
            email = user.email if user else "anônimo"
            logger.warning(f"Acesso negado para {email}: requer {permissions}")
            raise PermissionDenied(email, permissions)

    def is_admin(self, user: Optional[CurrentUser]) -> bool:
        return user is not None and not user.blocked and user.role in ADMIN_ROLES
