"""
Shared fixtures: a sample workshop aggregate, a fake remote store and a
controllable clock.
"""

from copy import deepcopy

import pytest

from core.exceptions import StoreUnavailableError
from models.atelier import AtelierData, AtelierSnapshot
from services.access import AccessMode, AccessSession
from services.dispatch import DispatchService
from services.ledger import OrderLedger


SAMPLE_DATA = {
    "orders": [
        {
            "id": "o-1", "ticketId": "CMD-AAAAAA", "clientId": "c-1", "modelId": "m-1",
            "date": "2024-05-05T10:00:00+00:00", "status": "En attente de validation",
            "price": 25000,
        },
        {
            "id": "o-2", "ticketId": "CMD-BBBBBB", "clientId": "c-2", "modelId": "m-2",
            "date": "2024-05-04T10:00:00+00:00", "status": "En attente de validation",
            "workstationId": "waiting-room", "price": 40000,
        },
        {
            "id": "o-3", "ticketId": "CMD-CCCCCC", "clientId": "c-1", "modelId": "m-2",
            "date": "2024-05-03T10:00:00+00:00", "status": "En attente de validation",
            "workstationId": "waiting-room",
        },
        {
            "id": "o-4", "ticketId": "CMD-DDDDDD", "clientId": "c-2", "modelId": "m-1",
            "date": "2024-05-02T10:00:00+00:00", "status": "En cours de couture",
            "workstationId": "ws-1", "price": 15000, "notes": "Ourlet court",
        },
        {
            "id": "o-5", "ticketId": "CMD-EEEEEE", "clientId": "c-1", "modelId": "m-1",
            "date": "2024-04-01T10:00:00+00:00", "status": "Livré",
            "workstationId": "ws-2", "price": 30000,
        },
    ],
    "workstations": [
        {"id": "ws-1", "name": "Poste Couture", "accessCode": "POSTE-AB12"},
        {"id": "ws-2", "name": "Poste Finition", "accessCode": "POSTE-CD34"},
    ],
    "notifications": [
        {"id": "n-1", "message": "Ancienne notification", "date": "2024-05-01T09:00:00+00:00", "read": False},
    ],
    "clients": [
        {"id": "c-1", "name": "Awa Diop", "phone": "770000001", "measurements": {"tour": 90}},
        {"id": "c-2", "name": "Moussa Ndiaye", "phone": "770000002", "measurements": {}},
    ],
    "models": [
        {"id": "m-1", "title": "Boubou brodé"},
        {"id": "m-2", "title": "Robe de soirée"},
    ],
    "appointments": [{"id": "a-1", "clientId": "c-1"}],
    "fournitures": [],
    "expenses": [{"id": "e-1", "amount": 5000}],
    "tutoriels": [],
    "managerProfile": {"name": "Atelier Diop"},
    "managerAccessCode": "1234",
    "modelOfTheMonthId": "m-1",
    "favoriteIds": ["m-2"],
    "isNew": False,
}


def make_envelope(data=None, subscription_status="active", expires_at=None):
    return {
        "id": "atelier-test",
        "name": "Atelier Diop",
        "managerId": "user-1",
        "subscription": {"status": subscription_status, "expiresAt": expires_at, "plan": "pro"},
        "data": deepcopy(data if data is not None else SAMPLE_DATA),
        "createdAt": "2024-01-01T00:00:00+00:00",
    }


class FakeStore:
    """In-memory stand-in for RemoteAtelierStore."""

    def __init__(self, envelope=None):
        self.envelope = envelope if envelope is not None else make_envelope()
        self.writes = []
        self.fail_writes = False
        self.closed = False

    def fetch_atelier(self, atelier_id):
        return AtelierSnapshot.from_dict(deepcopy(self.envelope), atelier_id)

    def write_aggregate(self, atelier_id, aggregate):
        if self.fail_writes:
            raise StoreUnavailableError("write", "connection refused")
        self.writes.append((atelier_id, aggregate))

    def close(self):
        self.closed = True


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def sample_data():
    return AtelierData.from_dict(deepcopy(SAMPLE_DATA))


@pytest.fixture
def ledger(sample_data):
    return OrderLedger(sample_data)


@pytest.fixture
def dispatch(ledger):
    return DispatchService(ledger)


@pytest.fixture
def manager():
    return AccessSession(mode=AccessMode.MANAGER, page="dashboard")


@pytest.fixture
def client_session():
    return AccessSession()


@pytest.fixture
def ws1():
    return AccessSession(mode=AccessMode.WORKSTATION, workstation_id="ws-1")


@pytest.fixture
def ws2():
    return AccessSession(mode=AccessMode.WORKSTATION, workstation_id="ws-2")


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_clock():
    return FakeClock()
