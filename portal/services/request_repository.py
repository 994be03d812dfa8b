# Request storage and lifecycle
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from portal.auth.permissions import CREATE_PERMISSIONS, STAFF_PERMISSIONS, PermissionModel
from portal.clock import Clock, utcnow
from portal.errors import PermissionDenied, RejectionReasonRequired, RequestNotFound
from portal.models.notification import OutboxEvent
from portal.models.request import (PurchaseRequest, ReservationRequest, SupportRequest, Message, REQUEST_COLLECTIONS,
                                   TYPE_TO_COLLECTION, RequestDraft, request_from_document)
from portal.models.user import CurrentUser
from portal.services import status_machine
from portal.services.store import DocumentStore, Write

logger = logging.getLogger(__name__)

OUTBOX_COLLECTION = "outbox"
STATUS_LINK = "minhas-solicitacoes"

_MODELS = {
    "reservation": ReservationRequest,
    "purchase": PurchaseRequest,
    "support": SupportRequest,
}


def _sort_key(request) -> datetime:
    return request.created_at or datetime.min.replace(tzinfo=timezone.utc)


class RequestRepository:
    """
    Stores reservations, purchases and support tickets in one collection per type.

    Status changes go through the transition tables in ``status_machine`` and
    are committed together with an outbox event; ``OutboxWorker`` turns those
    events into notifications.
    """

    def __init__(self, store: DocumentStore, permissions: PermissionModel,
                 hidden_cutoff_days: Optional[Mapping[str, int]] = None, clock: Clock = utcnow):
        self.store = store
        self.permissions = permissions
        self.hidden_cutoff_days = dict(hidden_cutoff_days or {})
        self.clock = clock

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_by_id(self, request_id: str, collection: str):
        doc = self.store.get_doc(collection, request_id)
        if doc is None:
            raise RequestNotFound(collection, request_id)
        return request_from_document(doc, collection)

    def get_all(self, include_hidden: bool = False) -> List:
        """
        Returns the requests of every type, newest first.

        Args:
            include_hidden (bool): When False, archived requests and closed
                requests older than their collection's cutoff are left out.
        """
        requests = []
        for collection in REQUEST_COLLECTIONS:
            filters = None if include_hidden else [("hidden", "==", False)]
            for doc in self.store.get_docs(collection, filters):
                request = request_from_document(doc, collection)
                if include_hidden or not self._is_stale(request, doc):
                    requests.append(request)
        return sorted(requests, key=_sort_key, reverse=True)

    def _is_stale(self, request, doc: Dict[str, Any]) -> bool:
        if request.status not in status_machine.CLOSED_STATUSES:
            return False
        days = self.hidden_cutoff_days.get(request.collection_name)
        if days is None:
            return False
        closed_at = doc.get("statusUpdatedAt") or request.created_at
        return closed_at is not None and closed_at < self.clock() - timedelta(days=days)

    def get_for_user(self, email: str) -> List:
        """The requester's own requests, canceled ones excluded."""
        requests = []
        for collection in REQUEST_COLLECTIONS:
            docs = self.store.get_docs(collection, [("userEmail", "==", email), ("status", "!=", "canceled")])
            requests.extend(request_from_document(doc, collection) for doc in docs)
        return sorted(requests, key=_sort_key, reverse=True)

    def get_by_type(self, request_type: str, include_hidden: bool = False) -> List:
        return [r for r in self.get_all(include_hidden) if r.type == request_type]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, actor: CurrentUser, draft: RequestDraft, **extra: Any) -> str:
        """
        Writes a new pending request on behalf of ``actor``.

        Args:
            actor (CurrentUser): The requester.
            draft (RequestDraft): Validated form data.
            **extra: Additional stored fields (e.g. ``equipment_names``).

        Returns:
            str: The new document id.
        """
        request_type = draft.request_type
        self.permissions.require(actor, CREATE_PERMISSIONS[request_type])
        collection = TYPE_TO_COLLECTION[request_type]
        fields = draft.model_dump(exclude={"request_type"})
        fields.update(extra)
        request = _MODELS[request_type](
            user_id=actor.uid,
            user_name=actor.display_name,
            user_email=actor.email,
            created_at=self.clock(),
            **fields,
        )
        request_id = self.store.add_doc(collection, request.to_document())
        logger.info(f"Solicitação {request_id} ({request_type}) criada por {actor.email}.")
        return request_id

    def update_status(self, actor: CurrentUser, request_id: str, collection: str, new_status: str,
                      rejection_reason: Optional[str] = None) -> bool:
        """
        Moves a request to ``new_status`` and queues the requester's notification.

        Returns:
            bool: False when the request already had that status.

        Raises:
            InvalidTransition: The transition table does not allow the change.
            RejectionReasonRequired: A purchase was rejected without a reason.
        """
        self.permissions.require(actor, *STAFF_PERMISSIONS[collection])
        return self._apply_status(actor, request_id, collection, new_status, rejection_reason, notify=True)

    def cancel(self, actor: CurrentUser, request_id: str, collection: str) -> bool:
        """Cancels a request; the requester may cancel their own."""
        request = self.get_by_id(request_id, collection)
        if request.user_email != actor.email:
            self.permissions.require(actor, *STAFF_PERMISSIONS[collection])
        notify = request.user_email != actor.email
        return self._apply_status(actor, request_id, collection, status_machine.CANCELED, None, notify=notify)

    def _apply_status(self, actor: CurrentUser, request_id: str, collection: str, new_status: str,
                      rejection_reason: Optional[str], notify: bool) -> bool:
        request = self.get_by_id(request_id, collection)
        if request.status == new_status:
            logger.info(f"Solicitação {request_id} já está em '{new_status}'.")
            return False
        status_machine.validate_transition(request.type, request.status, new_status)

        now = self.clock()
        update: Dict[str, Any] = {"status": new_status, "statusUpdatedAt": now}
        label = status_machine.STATUS_LABELS.get(new_status, new_status)
        title = "Alteração de Status"
        message = f"Status da sua solicitação foi alterado para: {label}"
        if request.type == "purchase":
            if new_status == "rejected":
                reason = (rejection_reason or "").strip()
                if not reason:
                    raise RejectionReasonRequired()
                update["rejectionReason"] = reason
                title = "Solicitação Reprovada"
                message = f"Sua solicitação de compra foi reprovada. Motivo: {reason}"
            elif new_status == "approved":
                update["financeiroVisible"] = True
            elif new_status == "delivered" and request.delivery_date is None:
                update["deliveryDate"] = now

        writes = [Write("update", collection, request_id, update)]
        if notify:
            event = OutboxEvent(request_id=request_id, collection=collection, recipient=request.user_email,
                                title=title, message=message, link=STATUS_LINK, created_at=now)
            writes.append(Write("set", OUTBOX_COLLECTION, self.store.new_id(OUTBOX_COLLECTION), event.to_document()))
        self.store.commit(writes)
        logger.info(f"Status de {request_id} alterado de '{request.status}' para '{new_status}' por {actor.email}.")
        return True

    def append_message(self, actor: CurrentUser, request_id: str, collection: str, text: str,
                       is_admin: bool) -> Message:
        """
        Appends a chat message to the request's thread.

        Staff write as admins; requesters may only write on their own requests.
        """
        request = self.get_by_id(request_id, collection)
        is_staff = self.permissions.has_any(actor, STAFF_PERMISSIONS[collection])
        if is_admin and not is_staff:
            raise PermissionDenied(actor.email, STAFF_PERMISSIONS[collection])
        if not is_admin and request.user_email != actor.email and not is_staff:
            raise PermissionDenied(actor.email, ("owner",))

        now = self.clock()
        message = Message(
            id=f"msg_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}",
            message=text.strip(),
            is_admin=is_admin,
            user_name=actor.display_name,
            user_id=actor.uid,
            timestamp=now,
        )
        self.store.array_union(collection, request_id, "messages", [message.model_dump(by_alias=True)],
                               extra={"hasUnreadMessages": True})
        logger.info(f"Mensagem adicionada à solicitação {request_id} por {actor.email}.")
        return message

    def set_hidden(self, actor: CurrentUser, request_id: str, collection: str, hidden: bool = True) -> None:
        self.permissions.require(actor, *STAFF_PERMISSIONS[collection])
        self.store.update_doc(collection, request_id, {"hidden": hidden})

    def delete(self, actor: CurrentUser, request_id: str, collection: str) -> None:
        self.permissions.require(actor, *STAFF_PERMISSIONS[collection])
        self.store.delete_doc(collection, request_id)
        logger.info(f"Solicitação {request_id} excluída de '{collection}' por {actor.email}.")
