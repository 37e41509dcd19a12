"""Shared pytest fixtures for the holiday-club booking test suite."""

from __future__ import annotations

import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from holiday_club.api.payments import get_webhook_secret
from holiday_club.db.base import BookingRepository
from holiday_club.db.factory import get_booking_repository
from holiday_club.db.models import Base
from holiday_club.db.seed import generate_club_days
from holiday_club.db.sqlite_repo import SQLiteBookingRepository
from holiday_club.main import app
from holiday_club.services.checkout import (
    CheckoutGateway,
    CheckoutGatewayError,
    CheckoutRequest,
    CheckoutSession,
    PaymentStatus,
    get_checkout_gateway,
)
from tests.seed_test_data import (
    EASTER_CLOSED_DAY,
    WEBHOOK_SECRET,
    create_test_booking_days,
    create_test_bookings,
    create_test_clubs,
    create_test_options,
    create_test_promo_codes,
)

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeCheckoutGateway(CheckoutGateway):
    """Records checkout requests instead of calling the payment provider."""

    def __init__(self, fail: bool = False) -> None:
        self.requests: list[CheckoutRequest] = []
        self.fail = fail
        self.payment_status = "paid"

    async def create_session(self, request: CheckoutRequest) -> CheckoutSession:
        self.requests.append(request)
        if self.fail:
            raise CheckoutGatewayError("Payment provider returned 500")
        return CheckoutSession(
            id=f"cs_test_{request.booking_id}",
            url=f"https://checkout.example.com/pay/{request.booking_id}",
        )

    async def get_payment_status(self, session_id: str) -> PaymentStatus:
        if self.fail:
            raise CheckoutGatewayError("Payment provider unreachable")
        paid = self.payment_status == "paid"
        return PaymentStatus(
            session_id=session_id,
            payment_status=self.payment_status,
            payment_intent_id=f"pi_{session_id}" if paid else None,
            url=None if paid else f"https://checkout.example.com/pay/{session_id}",
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_path(tmp_path) -> str:
    """Create a temporary SQLite database seeded with test data and return its path."""
    path = str(tmp_path / "test_bookings.db")
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)

    now = datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    clubs = create_test_clubs()
    with Session(sync_engine) as session:
        session.add_all(clubs)
        session.flush()
        session.add_all(generate_club_days(clubs[0], 20, [EASTER_CLOSED_DAY]))
        session.add_all(generate_club_days(clubs[1], 2))
        session.add_all(generate_club_days(clubs[3], 10))
        session.add_all(create_test_options())
        session.add_all(create_test_promo_codes(now))
        session.add_all(create_test_bookings())
        session.flush()
        session.add_all(create_test_booking_days())
        session.commit()

    sync_engine.dispose()
    return path


@pytest.fixture()
def test_repo(db_path) -> SQLiteBookingRepository:
    """Return an async :class:`SQLiteBookingRepository` backed by the test database."""
    return SQLiteBookingRepository(db_path)


@pytest.fixture()
def fake_gateway() -> FakeCheckoutGateway:
    return FakeCheckoutGateway()


@pytest.fixture()
def test_client(db_path, fake_gateway) -> TestClient:
    """Return a FastAPI ``TestClient`` wired to the test database and a fake payment gateway."""
    repo = SQLiteBookingRepository(db_path)

    def _override() -> BookingRepository:
        return repo

    app.dependency_overrides[get_booking_repository] = _override
    app.dependency_overrides[get_checkout_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_webhook_secret] = lambda: WEBHOOK_SECRET

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
