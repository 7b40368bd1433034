"""Customer and team member models consumed by the appointment engine."""

from enum import StrEnum

from pydantic import BaseModel, Field


class MemberRole(StrEnum):
    """Role of a member in an account."""

    OWNER = "OWNER"
    HELPER = "HELPER"


class PayoutMode(StrEnum):
    """Basis for computing a helper's fee."""

    FIXED = "FIXED"  # Flat fee per appointment
    PERCENTAGE = "PERCENTAGE"  # Share of the appointment price


class HelperPayoutConfig(BaseModel):
    """Payout configuration attached to a worker identity."""

    mode: PayoutMode = Field(default=PayoutMode.FIXED, description="Payout basis")
    value: float = Field(default=0.0, description="Flat fee or percentage, depending on mode")


class HelperProfile(BaseModel):
    """Assignable worker, normalized whether it is the owner or a team member."""

    id: str
    name: str
    email: str | None = None
    is_owner: bool = False
    payout: HelperPayoutConfig = Field(default_factory=HelperPayoutConfig)


class Customer(BaseModel):
    """Customer record owned by a tenant."""

    id: str
    owner_id: str
    name: str
    notes: str | None = None
    service_type: str | None = Field(default=None, description="Declared service cadence (weekly, biweekly, ...)")
    phone: str | None = None
    address: str | None = None
