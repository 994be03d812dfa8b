from datetime import datetime
from typing import List, Optional

from pydantic import constr

from portal.models.request import DocumentModel


class Notification(DocumentModel):
    """A notification; global when ``recipients`` is empty."""
    id: Optional[str] = None
    title: constr(min_length=1)
    message: constr(min_length=1)
    link: Optional[str] = None
    created_at: Optional[datetime] = None
    recipients: List[str] = []
    read_by: List[str] = []
    is_batch: bool = False

    @property
    def is_global(self) -> bool:
        return len(self.recipients) == 0

    def is_visible_to(self, email: str) -> bool:
        return self.is_global or email in self.recipients

    def is_read_by(self, email: str) -> bool:
        return email in self.read_by


class OutboxEvent(DocumentModel):
    """Pending side effect written atomically with a status change."""
    id: Optional[str] = None
    kind: str = "status_change"
    request_id: str
    collection: str
    recipient: str
    title: str
    message: str
    link: Optional[str] = None
    created_at: Optional[datetime] = None
    delivered: bool = False
    delivered_at: Optional[datetime] = None
