# Reservation conflict detection
import logging
from datetime import date
from typing import Iterable, List

from pydantic import BaseModel

from portal.models.request import ReservationRequest, request_from_document
from portal.services.equipment_service import EquipmentService
from portal.services.store import DocumentStore

logger = logging.getLogger(__name__)

COLLECTION = "reservations"
# Reservations in these states no longer hold their equipment.
RELEASED_STATUSES = frozenset({"canceled", "rejected"})


class Conflict(BaseModel):
    equipment_id: str
    equipment_name: str
    start_time: str
    end_time: str
    reservation_id: str


def to_minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def intervals_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    """Half-open overlap: a booking ending at 10:00 does not clash with one starting at 10:00."""
    return to_minutes(start_a) < to_minutes(end_b) and to_minutes(start_b) < to_minutes(end_a)


class ConflictChecker:
    """Finds existing reservations that would clash with a candidate booking."""

    def __init__(self, store: DocumentStore, equipment: EquipmentService):
        self.store = store
        self.equipment = equipment

    def reservations_on(self, day: date) -> List[ReservationRequest]:
        docs = self.store.get_docs(COLLECTION, [("date", "==", day.isoformat())])
        reservations = [request_from_document(doc, COLLECTION) for doc in docs]
        return sorted(reservations, key=lambda r: r.start_time)

    def check_conflicts(self, day: date, start_time: str, end_time: str,
                        equipment_ids: Iterable[str]) -> List[Conflict]:
        """
        Lists every (equipment, reservation) pair that overlaps the candidate.

        Args:
            day (date): Reservation date.
            start_time (str): Candidate start, ``HH:mm``.
            end_time (str): Candidate end, ``HH:mm``.
            equipment_ids (Iterable[str]): Equipment the candidate wants.

        Returns:
            List[Conflict]: Empty when the booking is free.
        """
        wanted = list(dict.fromkeys(equipment_ids))
        pairs = []
        for existing in self.reservations_on(day):
            if existing.status in RELEASED_STATUSES:
                continue
            if not intervals_overlap(existing.start_time, existing.end_time, start_time, end_time):
                continue
            for equipment_id in wanted:
                if equipment_id in existing.equipment_ids:
                    pairs.append((equipment_id, existing))
        if not pairs:
            return []

        names = self.equipment.get_names({equipment_id for equipment_id, _ in pairs})
        conflicts = [
            Conflict(equipment_id=equipment_id, equipment_name=names[equipment_id],
                     start_time=existing.start_time, end_time=existing.end_time, reservation_id=existing.id)
            for equipment_id, existing in pairs
        ]
        logger.info(f"{len(conflicts)} conflito(s) em {day.isoformat()} {start_time}-{end_time}.")
        return conflicts
