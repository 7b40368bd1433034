"""State transition functions for the appointment lifecycle."""

import logging
import secrets
from typing import Any

from cleanslate.core import db_client
from cleanslate.core.config import constants
from cleanslate.core.dates import utc_now_iso
from cleanslate.core.errors import InvalidStateTransitionError
from cleanslate.core.logging import span
from cleanslate.domain.appointment import AppointmentStatus
from cleanslate.modules.appointments import ledger, recurrence


logger = logging.getLogger(__name__)


TRANSITIONS: dict[AppointmentStatus, set[AppointmentStatus]] = {
    AppointmentStatus.NOT_CONFIRMED: {
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.IN_PROGRESS: {
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.COMPLETED: {AppointmentStatus.COMPLETED},  # Re-finish refreshes the ledger
    AppointmentStatus.CANCELLED: set(),
}


def can_transition(*, current: AppointmentStatus | str, target: AppointmentStatus) -> bool:
    """Whether `target` is reachable from `current`."""
    return target in TRANSITIONS[AppointmentStatus(current)]


def _ensure_transition(appointment: dict[str, Any], target: AppointmentStatus) -> None:
    current = appointment["status"]
    if not can_transition(current=current, target=target):
        msg = f"Cannot move appointment {appointment['id']} from {current} to {target}"
        raise InvalidStateTransitionError(msg)


def invoice_number_for(appointment_id: str) -> str:
    """Invoice number derived from the appointment id."""
    return f"INV-{int(appointment_id):08d}"


async def transition_to_in_progress(*, appointment: dict[str, Any]) -> dict[str, Any]:
    """Start an appointment; started_at is set on the first start only."""
    with span("appointment_state_machine.transition_to_in_progress", appointment_id=appointment["id"]):
        _ensure_transition(appointment, AppointmentStatus.IN_PROGRESS)

        if appointment["status"] == AppointmentStatus.IN_PROGRESS and appointment.get("started_at"):
            return appointment

        data: dict[str, Any] = {"status": AppointmentStatus.IN_PROGRESS}
        if not appointment.get("started_at"):
            data["started_at"] = utc_now_iso()

        updated = await db_client.update_record(collection="appointments", record_id=appointment["id"], data=data)
        logger.info("Transitioned appointment %s to IN_PROGRESS", appointment["id"])
        return updated


async def transition_to_completed(*, appointment: dict[str, Any]) -> dict[str, Any]:
    """Complete an appointment.

    Stamps started_at/finished_at when unset, issues the invoice token and number
    on the first completion, upserts the REVENUE entry with the current price and
    date, then tops up the recurrence window when the appointment is part of a
    series.
    """
    with span("appointment_state_machine.transition_to_completed", appointment_id=appointment["id"]):
        _ensure_transition(appointment, AppointmentStatus.COMPLETED)

        now = utc_now_iso()
        data: dict[str, Any] = {"status": AppointmentStatus.COMPLETED}
        if not appointment.get("started_at"):
            data["started_at"] = now
        if not appointment.get("finished_at"):
            data["finished_at"] = now
        if not appointment.get("invoice_token"):
            data["invoice_token"] = secrets.token_hex(constants.INVOICE_TOKEN_BYTES)
            data["invoice_number"] = invoice_number_for(appointment["id"])

        async with db_client.atomic():
            updated = await db_client.update_record(
                collection="appointments",
                record_id=appointment["id"],
                data=data,
            )
            await ledger.upsert_revenue(
                appointment_id=updated["id"],
                owner_id=updated["owner_id"],
                amount=updated["price"],
                due_date=updated["date"],
            )

        logger.info("Transitioned appointment %s to COMPLETED", appointment["id"])

        if updated.get("recurrence_series_id") and updated.get("recurrence_rule"):
            await recurrence.top_up_series(completed=updated)

        return updated


async def transition_to_cancelled(*, appointment: dict[str, Any]) -> dict[str, Any]:
    """Cancel an appointment and retract its PENDING ledger entries."""
    with span("appointment_state_machine.transition_to_cancelled", appointment_id=appointment["id"]):
        _ensure_transition(appointment, AppointmentStatus.CANCELLED)

        async with db_client.atomic():
            updated = await db_client.update_record(
                collection="appointments",
                record_id=appointment["id"],
                data={"status": AppointmentStatus.CANCELLED},
            )
            await ledger.retract_pending(appointment_id=appointment["id"])

        logger.info("Transitioned appointment %s to CANCELLED", appointment["id"])
        return updated


async def transition_to_scheduled(*, appointment: dict[str, Any]) -> dict[str, Any]:
    """Confirm a generated occurrence."""
    with span("appointment_state_machine.transition_to_scheduled", appointment_id=appointment["id"]):
        _ensure_transition(appointment, AppointmentStatus.SCHEDULED)

        if appointment["status"] == AppointmentStatus.SCHEDULED:
            return appointment

        updated = await db_client.update_record(
            collection="appointments",
            record_id=appointment["id"],
            data={"status": AppointmentStatus.SCHEDULED},
        )
        logger.info("Transitioned appointment %s to SCHEDULED", appointment["id"])
        return updated
