"""Pydantic models for creating records in database."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from cleanslate.domain.appointment import AppointmentStatus
from cleanslate.domain.directory import MemberRole, PayoutMode


TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

USER_CREATABLE_STATUSES = {AppointmentStatus.SCHEDULED, AppointmentStatus.IN_PROGRESS}


class AppointmentCreate(BaseModel):
    """Pydantic model for creating an appointment record."""

    customer_id: str = Field(..., description="Customer ID (must belong to the caller's tenant)")
    date: str = Field(..., description="Calendar day (yyyy-mm-dd or ISO timestamp)")
    start_time: str | None = Field(default=None, pattern=TIME_PATTERN, description="Local start time (HH:mm)")
    end_time: str | None = Field(default=None, pattern=TIME_PATTERN, description="Local end time (HH:mm)")
    estimated_duration_minutes: int | None = Field(default=None, ge=0)
    price: float = Field(default=0.0, ge=0)
    helper_fee: float | None = Field(default=None, ge=0, description="Explicit fee; omitted means compute it")
    assigned_helper_id: str | None = None
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED)
    is_recurring: bool = False
    recurrence_rule: str | None = None
    notes: str | None = None
    checklist: list[Any] | None = Field(default=None, description="Checklist titles or {title: ...} entries")

    @field_validator("status")
    @classmethod
    def validate_initial_status(cls, v: AppointmentStatus) -> AppointmentStatus:
        """Only SCHEDULED and IN_PROGRESS can be requested on creation."""
        if v not in USER_CREATABLE_STATUSES:
            msg = f"Appointments cannot be created as {v}"
            raise ValueError(msg)
        return v


class MemberCreate(BaseModel):
    """Pydantic model for creating a member record."""

    name: str = Field(..., description="Display name")
    email: str | None = None
    role: MemberRole = Field(default=MemberRole.HELPER)
    company_id: str | None = Field(default=None, description="Owner ID of the team a helper belongs to")
    payout_mode: PayoutMode = Field(default=PayoutMode.FIXED)
    payout_value: float = Field(default=0.0, ge=0)


class CustomerCreate(BaseModel):
    """Pydantic model for creating a customer record."""

    owner_id: str
    name: str
    notes: str | None = None
    service_type: str | None = None
    phone: str | None = None
    address: str | None = None
