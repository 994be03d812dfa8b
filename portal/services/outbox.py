# Delivery of notifications queued with status changes
import logging
from typing import List

from portal.clock import Clock, utcnow
from portal.models.notification import Notification, OutboxEvent
from portal.services.notification_service import COLLECTION as NOTIFICATIONS, NotificationService
from portal.services.request_repository import OUTBOX_COLLECTION
from portal.services.store import DocumentStore

logger = logging.getLogger(__name__)


class OutboxWorker:
    """
    Turns pending outbox events into targeted notifications.

    The notification reuses the event id. An event delivered twice (e.g. a
    crash between the two writes) finds its notification already stored and
    only gets marked delivered, so neither a duplicate nor a reset of the
    recipient's read state can happen.
    """

    def __init__(self, store: DocumentStore, notifications: NotificationService, clock: Clock = utcnow):
        self.store = store
        self.notifications = notifications
        self.clock = clock

    def pending(self) -> List[OutboxEvent]:
        docs = self.store.get_docs(OUTBOX_COLLECTION, [("delivered", "==", False)])
        events = [OutboxEvent(**doc) for doc in docs]
        return sorted(events, key=lambda e: e.created_at or self.clock())

    def drain(self) -> int:
        """Delivers every pending event; returns how many were delivered."""
        delivered = 0
        for event in self.pending():
            if self.store.get_doc(NOTIFICATIONS, event.id) is None:
                notification = Notification(title=event.title, message=event.message, link=event.link,
                                            recipients=[event.recipient], is_batch=False)
                self.notifications.create(notification, notification_id=event.id)
            else:
                logger.info(f"Notificação {event.id} já existia; evento apenas marcado como entregue.")
            self.store.update_doc(OUTBOX_COLLECTION, event.id, {"delivered": True, "deliveredAt": self.clock()})
            delivered += 1
        if delivered:
            logger.info(f"{delivered} notificação(ões) de status entregue(s).")
        return delivered
