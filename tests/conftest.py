"""
Shared fixtures for the invoice tracker test suite
"""
import os
import sys
from datetime import datetime, timedelta

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()

from invoice_tracker.config import Settings
from invoice_tracker.services import build_services
from invoice_tracker.storage import MemoryStorage, SqlStorage


class FakeClock:
    """Deterministic utcnow replacement"""

    def __init__(self, start: datetime = datetime(2024, 3, 15, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def invoice_payload(**overrides):
    """Valid create payload in wire (camelCase) form"""
    payload = {
        "invoiceNumber": "INV-1001",
        "vendorName": "ABC Corp",
        "vendorNumber": "V100",
        "invoiceDate": "2024-03-01",
        "invoiceAmount": "1500.00",
        "dueDate": "2024-03-31",
        "vin": "12345678",
        "invoiceType": "Charge",
        "description": "Transmission repair",
        "uploadedBy": 1,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=["memory", "sql"])
def storage(request, clock):
    """Every storage-level test runs against both backends"""
    if request.param == "memory":
        backend = MemoryStorage(clock)
    else:
        backend = SqlStorage.from_url("sqlite://", clock)
    yield backend
    backend.close()


@pytest.fixture
def settings():
    return Settings(storage_backend="memory")


@pytest.fixture
def services(storage, settings):
    return build_services(storage, settings)


@pytest.fixture
def memory_services(clock, settings):
    return build_services(MemoryStorage(clock), settings)
