"""
Shared fixtures: every service wired over the in-memory store with a clock
the tests can move.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from portal.bootstrap import build_services
from portal.config import PortalSettings
from portal.models.equipment import Equipment
from portal.models.stock import StockItem
from portal.errors import StoreError
from portal.models.user import CurrentUser
from portal.services.store import MemoryStore


class FakeClock:
    """Callable clock starting at 2025-05-20 12:00 UTC."""

    def __init__(self, start: datetime = datetime(2025, 5, 20, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FlakyStore(MemoryStore):
    """MemoryStore whose next read, write or upload raises ``StoreError`` once ``fail_next`` is set."""

    def __init__(self):
        super().__init__()
        self.fail_next = None

    def _fail(self):
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise StoreError(str(error)) from error

    def get_doc(self, collection, doc_id):
        self._fail()
        return super().get_doc(collection, doc_id)

    def get_docs(self, collection, filters=None):
        self._fail()
        return super().get_docs(collection, filters)

    def commit(self, writes):
        self._fail()
        super().commit(writes)

    def array_union(self, collection, doc_id, field, values, extra=None):
        self._fail()
        super().array_union(collection, doc_id, field, values, extra)

    def upload_file(self, path, data, content_type):
        self._fail()
        return super().upload_file(path, data, content_type)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def settings(tmp_path):
    return PortalSettings(backend="memory", unread_state_dir=str(tmp_path / "state"),
                          superadmin_email="diretoria@escola.com")


@pytest.fixture
def services(settings, store, clock):
    return build_services(settings, store=store, clock=clock)


@pytest.fixture
def admin():
    return CurrentUser(uid="u-admin", email="admin@escola.com", display_name="Admin", role="admin")


@pytest.fixture
def alice():
    return CurrentUser(uid="u-alice", email="alice@escola.com", display_name="Alice", role="user")


@pytest.fixture
def bob():
    return CurrentUser(uid="u-bob", email="bob@escola.com", display_name="Bob", role="user")


@pytest.fixture
def financeiro():
    return CurrentUser(uid="u-fin", email="fin@escola.com", display_name="Financeiro", role="financeiro")


@pytest.fixture
def operacional():
    return CurrentUser(uid="u-op", email="op@escola.com", display_name="Operacional", role="operacional")


@pytest.fixture
def reservation_day(services, admin):
    """An open date in the future of the fake clock."""
    day = date(2025, 6, 1)
    services.availability.add_dates(admin, [day])
    return day


@pytest.fixture
def equipment_ids(services, admin):
    ids = services.equipment.add_many(admin, [
        Equipment(name="E1", type="Notebook"),
        Equipment(name="E2", type="iPad"),
        Equipment(name="Projetor Sala 3", type="Projetor", is_available_for_reservation=False),
    ])
    return {"E1": ids[0], "E2": ids[1], "projetor": ids[2]}


@pytest.fixture
def make_stock_item():
    def build(name="Toner HP 85A", **overrides):
        fields = dict(name=name, quantity=4, category="TI", unit="Fundamental", location="TI",
                      condition="Ótimo", unit_value=120.5)
        fields.update(overrides)
        return StockItem(**fields)
    return build
