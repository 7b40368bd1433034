"""Update models for database operations."""

from typing import Any

from pydantic import BaseModel, Field

from cleanslate.domain.appointment import AppointmentStatus
from cleanslate.domain.create_models import TIME_PATTERN
from cleanslate.domain.ledger import TransactionStatus


class AppointmentUpdate(BaseModel):
    """Partial update payload for an appointment.

    Only fields present in the request are applied; an explicit null clears
    the field (e.g. `assigned_helper_id: null` unassigns the helper).
    """

    customer_id: str | None = None
    date: str | None = None
    start_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    end_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    estimated_duration_minutes: int | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, ge=0)
    helper_fee: float | None = Field(default=None, ge=0)
    assigned_helper_id: str | None = None
    is_recurring: bool | None = None
    recurrence_rule: str | None = None
    notes: str | None = None
    checklist: list[Any] | None = None


class AppointmentStatusUpdate(BaseModel):
    """Payload for changing an appointment's status."""

    status: AppointmentStatus
    send_invoice: bool = False


class TransactionStatusUpdate(BaseModel):
    """Payload for settling or reopening a ledger entry."""

    status: TransactionStatus
