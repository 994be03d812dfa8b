# Reservation calendar availability
import logging
from datetime import date, datetime, tzinfo
from typing import Iterable, List, Optional

from portal.auth.permissions import PermissionModel
from portal.clock import Clock, utcnow
from portal.models.user import CurrentUser
from portal.services.store import DocumentStore, Write

logger = logging.getLogger(__name__)

COLLECTION = "availability"


def _as_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        return None


class AvailabilityService:
    """
    Dates open for reservations, one document per day keyed ``YYYY-MM-DD``.

    Reading the dates also deletes the ones already in the past.
    """

    def __init__(self, store: DocumentStore, permissions: PermissionModel, clock: Clock = utcnow,
                 tz: Optional[tzinfo] = None):
        self.store = store
        self.permissions = permissions
        self.clock = clock
        self.tz = tz

    def today(self) -> date:
        now = self.clock()
        return (now.astimezone(self.tz) if self.tz else now).date()

    def is_in_past(self, day: date) -> bool:
        return day < self.today()

    def get_available_dates(self) -> List[date]:
        """
        Returns the open dates from today on, pruning past ones from the store.
        """
        docs = self.store.get_docs(COLLECTION)
        dates, stale = [], []
        for doc in docs:
            day = _as_date(doc.get("date", doc["id"]))
            if day is None or self.is_in_past(day):
                stale.append(doc["id"])
            else:
                dates.append(day)
        if stale:
            self.store.commit([Write("delete", COLLECTION, doc_id) for doc_id in stale])
            logger.info(f"{len(stale)} datas passadas removidas da disponibilidade.")
        return sorted(dates)

    def is_available(self, day: date) -> bool:
        if self.is_in_past(day):
            return False
        return self.store.get_doc(COLLECTION, day.isoformat()) is not None

    def add_dates(self, actor: CurrentUser, dates: Iterable[date]) -> int:
        """Opens the given dates; past dates are ignored. Returns how many were written."""
        self.permissions.require(actor, "disponibilidade")
        days = sorted({d for d in dates if not self.is_in_past(d)})
        if days:
            self.store.commit([Write("set", COLLECTION, d.isoformat(), {"date": d.isoformat()}) for d in days])
            logger.info(f"{len(days)} datas liberadas por {actor.email}.")
        return len(days)

    def remove_dates(self, actor: CurrentUser, dates: Iterable[date]) -> int:
        self.permissions.require(actor, "disponibilidade")
        days = sorted(set(dates))
        if days:
            self.store.commit([Write("delete", COLLECTION, d.isoformat()) for d in days])
            logger.info(f"{len(days)} datas removidas por {actor.email}.")
        return len(days)
