"""Domain models and DTOs."""

from cleanslate.domain.appointment import (
    Appointment,
    AppointmentStatus,
    ChecklistItem,
    DaySummary,
    HelperDay,
    StatusChangeResult,
)
from cleanslate.domain.create_models import AppointmentCreate, CustomerCreate, MemberCreate
from cleanslate.domain.directory import Customer, HelperPayoutConfig, HelperProfile, MemberRole, PayoutMode
from cleanslate.domain.ledger import RevenueTransaction, TransactionStatus, TransactionType
from cleanslate.domain.update_models import AppointmentStatusUpdate, AppointmentUpdate, TransactionStatusUpdate


__all__ = [
    "Appointment",
    "AppointmentCreate",
    "AppointmentStatus",
    "AppointmentStatusUpdate",
    "AppointmentUpdate",
    "ChecklistItem",
    "Customer",
    "CustomerCreate",
    "DaySummary",
    "HelperDay",
    "HelperPayoutConfig",
    "HelperProfile",
    "MemberCreate",
    "MemberRole",
    "PayoutMode",
    "RevenueTransaction",
    "StatusChangeResult",
    "TransactionStatus",
    "TransactionStatusUpdate",
    "TransactionType",
]
