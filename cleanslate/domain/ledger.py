"""Revenue ledger domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field


class TransactionType(StrEnum):
    """Ledger entry type."""

    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class TransactionStatus(StrEnum):
    """Ledger entry settlement status."""

    PENDING = "PENDING"
    PAID = "PAID"


class RevenueTransaction(BaseModel):
    """Ledger entry derived from an appointment."""

    id: str = Field(..., description="Unique transaction ID")
    owner_id: str = Field(..., description="Tenant ID")
    appointment_id: str | None = Field(default=None, description="Source appointment (None once it is deleted)")
    type: TransactionType = Field(default=TransactionType.REVENUE, description="Entry type")
    status: TransactionStatus = Field(default=TransactionStatus.PENDING, description="Settlement status")
    amount: float = Field(..., description="Entry amount")
    due_date: str | None = Field(default=None, description="Due date (ISO format)")
    paid_at: str | None = Field(default=None, description="Settlement timestamp")
    description: str | None = Field(default=None, description="Free-form description")
