"""Exceptions raised by the portal services.

Every service error derives from :class:`PortalError` so the Streamlit layer
can turn any of them into a user-facing message with a single ``except``.
Input validation errors are pydantic's own ``ValidationError``.
"""
from typing import List, Optional


class PortalError(Exception):
    """Base class for all portal errors."""


class StoreError(PortalError):
    """A read or write against the document store failed."""


class NotFound(PortalError):
    """A document does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Documento '{doc_id}' não encontrado em '{collection}'.")
        self.collection = collection
        self.doc_id = doc_id


class RequestNotFound(NotFound):
    """A request document does not exist."""


class PermissionDenied(PortalError):
    """The acting user lacks every permission the operation accepts."""

    def __init__(self, user_email: str, permissions):
        perms = ", ".join(permissions)
        super().__init__(f"Usuário '{user_email}' sem permissão ({perms}).")
        self.user_email = user_email
        self.permissions = tuple(permissions)


class InvalidTransition(PortalError):
    """A status change that the request type's transition table forbids."""

    def __init__(self, request_type: str, current: str, target: str):
        super().__init__(
            f"Transição inválida para '{request_type}': '{current}' -> '{target}'.")
        self.request_type = request_type
        self.current = current
        self.target = target


class RejectionReasonRequired(PortalError):
    """A purchase was rejected without a justification."""

    def __init__(self):
        super().__init__("Informe o motivo da rejeição.")


class DateNotAvailable(PortalError):
    """The reservation date is not open for booking."""


class ReservationConflict(PortalError):
    """The reservation overlaps existing bookings of the same equipment."""

    def __init__(self, conflicts: list):
        names = ", ".join(sorted({c.equipment_name for c in conflicts}))
        super().__init__(f"Conflito de horário para: {names}.")
        self.conflicts = conflicts


class BatchNotificationError(StoreError):
    """A batch of notifications was only partially written."""

    def __init__(self, created_ids: List[str], failed_index: int, cause: Optional[Exception] = None):
        super().__init__(
            f"Falha ao criar notificação {failed_index + 1}; {len(created_ids)} já criadas.")
        self.created_ids = created_ids
        self.failed_index = failed_index
        self.__cause__ = cause


class InvalidCredentials(PortalError):
    """Unknown e-mail or wrong password."""


class UserBlocked(PortalError):
    """The account was blocked by an administrator."""


class WeakPassword(PortalError):
    """The password does not satisfy the strength rules."""


class DuplicateUser(PortalError):
    """An account with this e-mail already exists."""


class EquipmentNotReservable(PortalError):
    """Equipment flagged as not available for reservation."""


class DuplicateStockItem(PortalError):
    """A stock item with the same name is already registered."""

    def __init__(self, existing):
        super().__init__(f"Um item com o nome \"{existing.name}\" já está cadastrado no estoque.")
        self.existing = existing
