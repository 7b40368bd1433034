"""Pytest configuration and fixtures for unit tests."""

import httpx
import pytest

from cleanslate.core import db_client
from cleanslate.core.config import settings
from cleanslate.domain.create_models import AppointmentCreate, CustomerCreate, MemberCreate
from cleanslate.domain.directory import MemberRole, PayoutMode
from cleanslate.modules.appointments import service as appointment_service
from cleanslate.modules.directory import service as directory_service


@pytest.fixture
async def db(tmp_path, monkeypatch):
    """Fresh SQLite database with the full schema for each test."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "cleanslate_test.db"))
    await db_client.init_db()
    yield
    await db_client.close_connection()


@pytest.fixture
async def owner(db):
    """Tenant owner member record."""
    return await directory_service.create_member(
        member=MemberCreate(name="Olivia Owner", email="olivia@example.com", role=MemberRole.OWNER)
    )


@pytest.fixture
async def other_owner(db):
    """Owner of a second, unrelated tenant."""
    return await directory_service.create_member(member=MemberCreate(name="Oscar Other", role=MemberRole.OWNER))


@pytest.fixture
async def helper(owner):
    """Helper on the owner's team paid 25% of the appointment price."""
    return await directory_service.create_member(
        member=MemberCreate(
            name="Hana Helper",
            role=MemberRole.HELPER,
            company_id=owner["id"],
            payout_mode=PayoutMode.PERCENTAGE,
            payout_value=25,
        )
    )


@pytest.fixture
async def customer(owner):
    """Weekly customer of the owner."""
    return await directory_service.create_customer(
        customer=CustomerCreate(owner_id=owner["id"], name="Carla Customer", service_type="weekly")
    )


@pytest.fixture
def make_appointment(owner, customer):
    """Factory creating appointments for the default owner and customer."""

    async def _make(**overrides):
        payload = {"customer_id": customer.id, "date": "2024-01-01", "start_time": "09:00", "price": 100.0}
        payload.update(overrides)
        return await appointment_service.create_appointment(owner_id=owner["id"], data=AppointmentCreate(**payload))

    return _make


@pytest.fixture
async def client(db):
    """HTTP client bound to the FastAPI app (lifespan not run; `db` sets up storage)."""
    from cleanslate.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
