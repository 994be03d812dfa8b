import logging

from portal.errors import DateNotAvailable, EquipmentNotReservable, ReservationConflict
from portal.models.request import ReservationData
from portal.models.user import CurrentUser
from portal.services.availability_service import AvailabilityService
from portal.services.conflict_checker import ConflictChecker
from portal.services.equipment_service import EquipmentService
from portal.services.request_repository import RequestRepository

logger = logging.getLogger(__name__)


class ReservationService:
    """Books equipment: availability and conflicts are checked before the write."""

    def __init__(self, repository: RequestRepository, availability: AvailabilityService,
                 checker: ConflictChecker, equipment: EquipmentService):
        self.repository = repository
        self.availability = availability
        self.checker = checker
        self.equipment = equipment

    def create_reservation(self, actor: CurrentUser, data: ReservationData) -> str:
        if not self.availability.is_available(data.date):
            raise DateNotAvailable(f"A data {data.date.strftime('%d/%m/%Y')} não está disponível para reservas.")

        items = [self.equipment.get_by_id(equipment_id) for equipment_id in data.equipment_ids]
        blocked = [item.name for item in items if not item.is_available_for_reservation]
        if blocked:
            raise EquipmentNotReservable(f"Equipamento indisponível para reserva: {', '.join(blocked)}")

        conflicts = self.checker.check_conflicts(data.date, data.start_time, data.end_time, data.equipment_ids)
        if conflicts:
            raise ReservationConflict(conflicts)

        return self.repository.create(actor, data, equipment_names=[item.name for item in items])
