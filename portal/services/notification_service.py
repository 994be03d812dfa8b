# Notification delivery and read tracking
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from portal.auth.permissions import PermissionModel
from portal.clock import Clock, utcnow
from portal.errors import BatchNotificationError, StoreError
from portal.models.notification import Notification
from portal.models.user import CurrentUser
from portal.services.store import DocumentStore

logger = logging.getLogger(__name__)

COLLECTION = "notifications"
STATUS_TITLE = "Alteração de Status"


def _newest_first(items: List[Notification]) -> List[Notification]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(items, key=lambda n: n.created_at or epoch, reverse=True)


class NotificationService:
    """
    Creates notifications, lists them per viewer and tracks who has read them.

    Args:
        display_limit: How many notifications a viewer's list holds.
        retention: ``"delete"`` removes notifications beyond the limit from
            the store whenever a viewer lists theirs; ``"display"`` only
            truncates the returned list.
    """

    def __init__(self, store: DocumentStore, permissions: PermissionModel, clock: Clock = utcnow,
                 display_limit: int = 5, retention: str = "delete"):
        self.store = store
        self.permissions = permissions
        self.clock = clock
        self.display_limit = display_limit
        self.retention = retention

    def create(self, notification: Notification, notification_id: Optional[str] = None) -> str:
        """Writes a notification with an empty ``readBy`` and ``createdAt=now``."""
        stored = notification.model_copy(update={"read_by": [], "created_at": self.clock()})
        if notification_id is None:
            notification_id = self.store.add_doc(COLLECTION, stored.to_document())
        else:
            self.store.set_doc(COLLECTION, notification_id, stored.to_document())
        scope = "global" if stored.is_global else f"{len(stored.recipients)} destinatário(s)"
        logger.info(f"Notificação {notification_id} criada ({scope}).")
        return notification_id

    def create_batch(self, notifications: Iterable[Notification]) -> List[str]:
        """
        Writes the notifications one by one.

        Raises:
            BatchNotificationError: A write failed; ``created_ids`` holds the
                notifications written before it, which are not rolled back.
        """
        created: List[str] = []
        for index, notification in enumerate(notifications):
            try:
                created.append(self.create(notification))
            except StoreError as e:
                logger.error(f"Lote de notificações interrompido no item {index}: {e}")
                raise BatchNotificationError(created, index, e)
        return created

    def send(self, actor: CurrentUser, title: str, message: str, recipients: Optional[List[str]] = None,
             link: Optional[str] = None) -> List[str]:
        """Admin broadcast: global when ``recipients`` is empty, otherwise targeted."""
        self.permissions.require(actor, "notificacoes-envio")
        recipients = list(dict.fromkeys(recipients or []))
        notification = Notification(title=title, message=message, link=(link or "").strip() or None,
                                    recipients=recipients, is_batch=len(recipients) > 1)
        return self.create_batch([notification])

    def get_for_user(self, email: str) -> List[Notification]:
        """
        Global plus targeted notifications for ``email``, newest first.

        Lists longer than the display limit trigger the retention policy.
        """
        found = {}
        for filters in ([("recipients", "==", [])], [("recipients", "array_contains", email)]):
            for doc in self.store.get_docs(COLLECTION, filters):
                found[doc["id"]] = Notification(**doc)
        notifications = _newest_first(list(found.values()))
        if len(notifications) <= self.display_limit:
            return notifications

        kept, excess = notifications[:self.display_limit], notifications[self.display_limit:]
        if self.retention == "delete":
            for notification in excess:
                self.store.delete_doc(COLLECTION, notification.id)
            logger.info(f"{len(excess)} notificações antigas excluídas ao listar para {email}.")
        return kept

    def get_all(self, kind: str = "all", search: str = "") -> List[Notification]:
        """
        Admin listing.

        Args:
            kind: ``all``, ``global``, ``individual`` (targeted, not status
                changes) or ``status`` (status-change notifications).
            search: Case-insensitive match on title or message.
        """
        notifications = _newest_first([Notification(**doc) for doc in self.store.get_docs(COLLECTION)])
        if kind == "global":
            notifications = [n for n in notifications if n.is_global]
        elif kind == "individual":
            notifications = [n for n in notifications if not n.is_global and n.title != STATUS_TITLE]
        elif kind == "status":
            notifications = [n for n in notifications if n.title == STATUS_TITLE]
        elif kind != "all":
            raise ValueError(f"Filtro desconhecido: {kind}")
        term = search.lower()
        return [n for n in notifications if term in n.title.lower() or term in n.message.lower()]

    def mark_read(self, notification_id: str, email: str) -> None:
        self.store.array_union(COLLECTION, notification_id, "readBy", [email])

    def mark_all_read(self, notifications: Iterable[Notification], email: str) -> int:
        count = 0
        for notification in notifications:
            if not notification.is_read_by(email):
                self.mark_read(notification.id, email)
                count += 1
        return count

    @staticmethod
    def unread_count(notifications: Iterable[Notification], email: str) -> int:
        return sum(1 for n in notifications if n.is_visible_to(email) and not n.is_read_by(email))

    def delete(self, notification_id: str) -> None:
        self.store.delete_doc(COLLECTION, notification_id)
        logger.info(f"Notificação {notification_id} excluída.")
