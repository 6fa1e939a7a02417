"""Shared fixtures for the car ledger tests."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from api.app import create_app
from carledger.services import ExpenseService
from carledger.storage import ExpenseStore

OWNER = "user_1"
OTHER_OWNER = "user_2"
NOW = datetime(2024, 5, 25, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; call ``advance`` to move time forward."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> ExpenseStore:
    return ExpenseStore(clock=clock)


@pytest.fixture
def service(store: ExpenseStore, clock: FakeClock) -> ExpenseService:
    return ExpenseService(store, clock=clock)


@pytest.fixture
def app(store: ExpenseStore, clock: FakeClock):
    app = create_app(
        store=store,
        clock=clock,
        config={"ENV": "dev", "SEED": "", "DATA_DIR": None, "PAGE_LIMIT": 20},
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def expense_payload(**overrides) -> dict:
    payload = {
        "car_id": "car_1",
        "category": "FUEL",
        "amount": "50000",
        "description": "Fill up",
        "date": "2024-05-20",
        "payment_method": "CARD",
    }
    payload.update(overrides)
    return payload
