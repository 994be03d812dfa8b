# Service wiring shared by the Streamlit app and the tests
import logging
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from portal.auth.auth_service import AuthService
from portal.auth.permissions import PermissionModel
from portal.clock import Clock, utcnow
from portal.config import PortalSettings
from portal.errors import StoreError
from portal.services.availability_service import AvailabilityService
from portal.services.conflict_checker import ConflictChecker
from portal.services.equipment_service import EquipmentService
from portal.services.notice_service import NoticeService
from portal.services.notification_service import NotificationService
from portal.services.outbox import OutboxWorker
from portal.services.request_repository import RequestRepository
from portal.services.reservation_service import ReservationService
from portal.services.stock_service import StockService
from portal.services.store import DocumentStore, MemoryStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: PortalSettings
    store: DocumentStore
    permissions: PermissionModel
    auth: AuthService
    equipment: EquipmentService
    stock: StockService
    availability: AvailabilityService
    requests: RequestRepository
    checker: ConflictChecker
    reservations: ReservationService
    notifications: NotificationService
    outbox: OutboxWorker
    notices: NoticeService


def create_store(settings: PortalSettings) -> DocumentStore:
    if settings.backend == "memory":
        return MemoryStore()
    if not settings.firebase_credentials:
        raise StoreError("Credenciais do Firebase não encontradas nos segredos.")
    # Imported here so the memory backend runs without firebase-admin configured.
    from portal.services.firebase_service import FirebaseService
    return FirebaseService(settings.firebase_credentials, settings.storage_bucket)


def build_services(settings: PortalSettings, store: Optional[DocumentStore] = None,
                   clock: Clock = utcnow) -> Services:
    """
    Wires every service over one store.

    Args:
        settings (PortalSettings): Loaded configuration.
        store (Optional[DocumentStore]): Overrides the backend chosen by ``settings``.
        clock (Clock): Time source, injected by the tests.

    Returns:
        Services: The service container.
    """
    store = store if store is not None else create_store(settings)
    permissions = PermissionModel.from_store(store)
    equipment = EquipmentService(store, permissions)
    availability = AvailabilityService(store, permissions, clock, ZoneInfo(settings.timezone))
    requests = RequestRepository(store, permissions, settings.hidden_cutoff_days, clock)
    checker = ConflictChecker(store, equipment)
    notifications = NotificationService(store, permissions, clock, settings.notification_display_limit,
                                        settings.notification_retention)
    services = Services(
        settings=settings,
        store=store,
        permissions=permissions,
        auth=AuthService(store, permissions, settings.superadmin_email, clock),
        equipment=equipment,
        stock=StockService(store, permissions, clock),
        availability=availability,
        requests=requests,
        checker=checker,
        reservations=ReservationService(requests, availability, checker, equipment),
        notifications=notifications,
        outbox=OutboxWorker(store, notifications, clock),
        notices=NoticeService(store, permissions, clock),
    )
    logger.info(f"Serviços inicializados (backend '{settings.backend}').")
    return services
