"""Pytest configuration and shared fixtures.

Every test gets its own file-backed SQLite database and an in-memory
payment gateway. Run with: pytest -v
"""

import itertools
import os
from dataclasses import replace
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite:///./boxoffice-test.db")
os.environ.setdefault("CREATE_DATABASE", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from boxoffice.api.deps import get_booking_engine
from boxoffice.core.config import settings
from boxoffice.core.errors import PaymentGatewayError, RefundFailedError
from boxoffice.core.security import ROLE_ADMIN, Requester, create_access_token
from boxoffice.db.base import Base
from boxoffice.db.session import get_db
from boxoffice.models.room import Room
from boxoffice.services.booking import BookingEngine, schedule_showing
from boxoffice.services.inventory import ShowingLocks
from boxoffice.services.payments import (
    PAYMENT_SUCCEEDED,
    PaymentGateway,
    PaymentIntent,
    PaymentRecord,
)


class FakeGateway(PaymentGateway):
    """In-memory payment provider. Intents only succeed once ``pay`` is called."""

    def __init__(self):
        self.intents: dict[str, PaymentRecord] = {}
        self.refunds: list[str] = []
        self.fail_refunds = False
        self.fail_retrieve = False
        self._ids = itertools.count(1)

    def create_intent(self, amount, currency, metadata):
        intent_id = f"pi_test_{next(self._ids)}"
        self.intents[intent_id] = PaymentRecord(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            metadata=dict(metadata),
        )
        return PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret",
            amount=amount,
            currency=currency,
        )

    def pay(self, intent_id, amount=None, metadata=None):
        """Mark an intent succeeded, optionally capturing a different amount or metadata."""
        record = self.intents[intent_id]
        self.intents[intent_id] = replace(
            record,
            status=PAYMENT_SUCCEEDED,
            amount=record.amount if amount is None else amount,
            metadata={**record.metadata, **(metadata or {})},
        )
        return intent_id

    def retrieve(self, payment_id):
        if self.fail_retrieve:
            raise PaymentGatewayError()
        return self.intents.get(payment_id)

    def refund(self, payment_id):
        if self.fail_refunds:
            raise RefundFailedError()
        self.refunds.append(payment_id)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'boxoffice.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def engine(session_factory, gateway) -> BookingEngine:
    return BookingEngine(
        session_factory=session_factory,
        gateway=gateway,
        locks=ShowingLocks(timeout=5),
        currency="eur",
        max_attempts=3,
    )


@pytest.fixture
def strict_inventory(monkeypatch):
    monkeypatch.setattr(settings, "STRICT_INVENTORY_CHECKS", True)


@pytest.fixture
def make_showing(session_factory):
    """Create a room and a showing in it; returns the showing id."""
    names = itertools.count(1)

    def _make(
        capacity=10,
        room_type="classic",
        plan=None,
        base_price="10.00",
        seated=True,
        total_seats=None,
    ):
        with session_factory() as db:
            room = Room(
                name=f"Room {next(names)}",
                room_type=room_type,
                capacity=capacity,
                plan=plan,
            )
            db.add(room)
            db.flush()
            showing = schedule_showing(
                db,
                room,
                title="Test Showing",
                base_price=Decimal(base_price),
                seated=seated,
                total_seats=total_seats,
            )
            db.commit()
            return showing.id

    return _make


@pytest.fixture
def alice() -> Requester:
    return Requester(user_id="alice")


@pytest.fixture
def bob() -> Requester:
    return Requester(user_id="bob")


@pytest.fixture
def admin() -> Requester:
    return Requester(user_id="root", role=ROLE_ADMIN)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def client(session_factory, engine):
    from boxoffice.main import app

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_booking_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer headers as the identity service would issue them."""

    def _headers(user_id: str, role: str = "user") -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}

    return _headers
