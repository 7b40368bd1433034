"""Read-triggered completion of overdue appointments."""

import logging
from datetime import datetime, time
from typing import Any

from cleanslate.core.dates import from_stored_date
from cleanslate.core.logging import log_with_context, span
from cleanslate.domain.appointment import AppointmentStatus
from cleanslate.modules.appointments import state_machine


logger = logging.getLogger(__name__)


SWEEPABLE_STATUSES = {AppointmentStatus.SCHEDULED, AppointmentStatus.IN_PROGRESS}


def is_overdue(appointment: dict[str, Any], *, now: datetime) -> bool:
    """Whether a SCHEDULED/IN_PROGRESS appointment's scheduled end has passed.

    With an end time the end is date + end_time (local); without one the
    appointment is overdue once its day is before today.
    """
    if appointment["status"] not in SWEEPABLE_STATUSES:
        return False

    day = from_stored_date(appointment["date"])
    end_time = appointment.get("end_time")
    if end_time:
        return datetime.combine(day, time.fromisoformat(end_time)) <= now
    return day < now.date()


async def sweep_overdue(
    *,
    appointments: list[dict[str, Any]],
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Complete every overdue appointment through the regular finish path.

    Returns the input list with completed records substituted. A failure on one
    appointment is logged and that appointment is returned unchanged.
    """
    current = now or datetime.now()
    overdue = [a for a in appointments if is_overdue(a, now=current)]
    if not overdue:
        return appointments

    with span("auto_finish.sweep_overdue", count=len(overdue)):
        finished: dict[str, dict[str, Any]] = {}
        for appointment in overdue:
            try:
                finished[appointment["id"]] = await state_machine.transition_to_completed(appointment=appointment)
            except Exception as e:
                log_with_context(
                    logger,
                    "error",
                    f"Auto-finish failed for appointment {appointment['id']}: {e}",
                    appointment_id=appointment["id"],
                    owner_id=appointment.get("owner_id"),
                )

        logger.info("Auto-finished %d of %d overdue appointments", len(finished), len(overdue))
        return [finished.get(a["id"], a) for a in appointments]
