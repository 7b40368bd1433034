"""Appointment domain models and enums."""

import json
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from cleanslate.domain.directory import Customer


class AppointmentStatus(StrEnum):
    """Appointment lifecycle state."""

    NOT_CONFIRMED = "NOT_CONFIRMED"  # Generated by the recurrence engine, awaiting confirmation
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ChecklistItem(BaseModel):
    """Ordered task belonging to one appointment."""

    id: str = Field(..., description="Unique checklist item ID")
    appointment_id: str = Field(..., description="Parent appointment ID")
    title: str = Field(..., description="Task title")
    sort_order: int = Field(default=0, description="Position within the checklist")
    completed_at: str | None = Field(default=None, description="Completion timestamp (ISO format)")
    completed_by_id: str | None = Field(default=None, description="Member who completed the task")


class Appointment(BaseModel):
    """Appointment data transfer object."""

    id: str = Field(..., description="Unique appointment ID from database")
    created: str = Field(..., description="Creation timestamp (ISO format)")
    updated: str = Field(..., description="Last update timestamp (ISO format)")
    owner_id: str = Field(..., description="Tenant (account owner) ID")
    customer_id: str | None = Field(default=None, description="Customer ID")
    assigned_helper_id: str | None = Field(default=None, description="Assigned helper member ID")
    date: str = Field(..., description="Calendar day, stored at a fixed time-of-day (ISO format)")
    start_time: str | None = Field(default=None, description="Local start time (HH:mm)")
    end_time: str | None = Field(default=None, description="Local end time (HH:mm)")
    estimated_duration_minutes: int | None = Field(default=None, description="Estimated duration")
    price: float = Field(default=0.0, description="Appointment price")
    helper_fee: float | None = Field(default=None, description="Helper payout; None means derive from payout config")
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED, description="Current lifecycle state")
    started_at: str | None = Field(default=None, description="First start timestamp")
    finished_at: str | None = Field(default=None, description="First completion timestamp")
    is_recurring: bool = Field(default=False, description="Whether this appointment anchors a series")
    recurrence_rule: str | None = Field(default=None, description="Normalized recurrence rule")
    recurrence_series_id: str | None = Field(default=None, description="Series shared by anchor and occurrences")
    notes: str | None = Field(default=None, description="Free-form notes")
    checklist_snapshot: list[str] | None = Field(default=None, description="Checklist titles captured on save")
    invoice_token: str | None = Field(default=None, description="Public invoice token")
    invoice_number: str | None = Field(default=None, description="Invoice number")
    invoice_sent_at: str | None = Field(default=None, description="When the invoice was sent")
    customer: Customer | None = Field(default=None, description="Customer relation, when loaded")
    checklist_items: list[ChecklistItem] = Field(default_factory=list, description="Checklist, when loaded")

    @field_validator("checklist_snapshot", mode="before")
    @classmethod
    def decode_checklist_snapshot(cls, v: object) -> object:
        """Decode the snapshot when it comes straight from storage as JSON text."""
        if isinstance(v, str):
            return json.loads(v) if v else None
        return v


class StatusChangeResult(BaseModel):
    """Outcome of a status change."""

    appointment: Appointment
    invoice_url: str | None = Field(default=None, description="Public invoice link, when an invoice was sent")


class DaySummary(BaseModel):
    """Counts and payout totals for one worker's day."""

    total: int = 0
    scheduled: int = Field(default=0, description="SCHEDULED and NOT_CONFIRMED appointments")
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
    payout_total: float = Field(default=0.0, description="Sum of fees for non-cancelled appointments")


class HelperDay(BaseModel):
    """A worker's appointments for one day with their summary."""

    helper_id: str
    date: str = Field(..., description="Calendar day (yyyy-mm-dd)")
    appointments: list[Appointment] = Field(default_factory=list)
    summary: DaySummary = Field(default_factory=DaySummary)
