"""Rolling-window recurrence generation.

A series never materializes more than `RECURRENCE_MAX_OCCURRENCES` appointments
ahead of its progress, and nothing is generated past the anchor date plus
`RECURRENCE_HORIZON_DAYS`. Creation is insert-if-absent: an existence check
skips known slots and the unique slot index rejects a concurrent duplicate.
"""

import json
import logging
from datetime import date, timedelta
from typing import Any

from cleanslate.core import db_client
from cleanslate.core.config import constants
from cleanslate.core.dates import day_bounds, from_stored_date, to_stored_date
from cleanslate.core.logging import span
from cleanslate.core.recurrence_parser import get_recurrence_interval_days
from cleanslate.domain.appointment import AppointmentStatus
from cleanslate.modules.appointments import checklist


logger = logging.getLogger(__name__)

# Fields an occurrence inherits from the appointment it is generated from
COPIED_FIELDS = (
    "owner_id",
    "customer_id",
    "assigned_helper_id",
    "start_time",
    "end_time",
    "estimated_duration_minutes",
    "price",
    "notes",
    "recurrence_rule",
    "checklist_snapshot",
)


def horizon_for(anchor_day: date) -> date:
    """Last day a series anchored on `anchor_day` may generate into."""
    return anchor_day + timedelta(days=constants.RECURRENCE_HORIZON_DAYS)


async def occurrence_exists(*, source: dict[str, Any], day: date) -> bool:
    """Whether the tenant already has an appointment for this customer, day, and start time."""
    start, end = day_bounds(day)
    count = await db_client.count_records(
        collection="appointments",
        filter_query=f'date >= "{start}" && date <= "{end}"',
        match={
            "owner_id": source["owner_id"],
            "customer_id": source.get("customer_id"),
            "start_time": source.get("start_time"),
        },
    )
    return count > 0


def build_occurrence(*, source: dict[str, Any], day: date, series_id: str) -> dict[str, Any]:
    """Build the record for a generated occurrence on `day`."""
    data = {field: source.get(field) for field in COPIED_FIELDS}
    data.update(
        {
            "date": to_stored_date(day),
            "status": AppointmentStatus.NOT_CONFIRMED,
            "is_recurring": False,
            "recurrence_series_id": series_id,
        }
    )
    return data


def _snapshot_titles(source: dict[str, Any]) -> list[str] | None:
    snapshot = source.get("checklist_snapshot")
    if isinstance(snapshot, str):
        snapshot = json.loads(snapshot)
    return checklist.normalize_checklist_snapshot(snapshot)


async def create_occurrences(*, source: dict[str, Any], days: list[date], series_id: str) -> list[dict[str, Any]]:
    """Create occurrences for `days` in one transaction, skipping slots that are already taken."""
    if not days:
        return []

    titles = _snapshot_titles(source)
    created: list[dict[str, Any]] = []
    async with db_client.atomic():
        for day in days:
            try:
                record = await db_client.create_record(
                    collection="appointments",
                    data=build_occurrence(source=source, day=day, series_id=series_id),
                )
            except db_client.RecordExistsError:
                logger.info("Occurrence on %s already exists for series %s, skipping", day, series_id)
                continue
            await checklist.replace_from_snapshot(appointment_id=record["id"], titles=titles)
            created.append(record)
    return created


async def seed_occurrences(*, anchor: dict[str, Any]) -> list[dict[str, Any]]:
    """Generate the first occurrences of a newly created recurring anchor.

    Produces up to `RECURRENCE_MAX_OCCURRENCES` appointments at anchor date +
    i * interval, stopping at the horizon. Safe to call again: existing slots are
    skipped.
    """
    interval = get_recurrence_interval_days(anchor.get("recurrence_rule"))
    if not anchor.get("is_recurring") or interval is None:
        return []

    with span("recurrence.seed_occurrences", anchor_id=anchor["id"]):
        anchor_day = from_stored_date(anchor["date"])
        horizon = horizon_for(anchor_day)
        series_id = anchor.get("recurrence_series_id") or anchor["id"]

        days = []
        for i in range(1, constants.RECURRENCE_MAX_OCCURRENCES + 1):
            day = anchor_day + timedelta(days=interval * i)
            if day > horizon:
                break
            if await occurrence_exists(source=anchor, day=day):
                continue
            days.append(day)

        created = await create_occurrences(source=anchor, days=days, series_id=series_id)
        logger.info("Seeded %d occurrences for anchor %s (series %s)", len(created), anchor["id"], series_id)
        return created


async def _series_anchor(*, owner_id: str, series_id: str) -> dict[str, Any] | None:
    """The recurring anchor of a series, or None when it has been deleted."""
    return await db_client.get_first_record(
        collection="appointments",
        match={"owner_id": owner_id, "recurrence_series_id": series_id, "is_recurring": True},
        sort="date ASC",
    )


async def _series_start_day(*, owner_id: str, series_id: str, anchor: dict[str, Any] | None) -> date | None:
    """Date of the series anchor, or of its earliest member when the anchor is gone."""
    if anchor is None:
        anchor = await db_client.get_first_record(
            collection="appointments",
            match={"owner_id": owner_id, "recurrence_series_id": series_id},
            sort="date ASC",
        )
    return from_stored_date(anchor["date"]) if anchor else None


async def top_up_series(*, completed: dict[str, Any]) -> dict[str, Any] | None:
    """Keep the look-ahead window full after a series member completes.

    Creates at most one occurrence, spaced one interval after the latest future
    occurrence (or after the completed one when none is left). Cancelled members
    still occupy the window and their slots are never regenerated. The new
    occurrence is copied from the series anchor, or from the completed member
    when the anchor has been deleted.

    Returns:
        The created occurrence, or None when the window is full, the horizon is
        reached, or the slot is already taken
    """
    series_id = completed.get("recurrence_series_id")
    interval = get_recurrence_interval_days(completed.get("recurrence_rule"))
    if not series_id or interval is None:
        return None

    with span("recurrence.top_up_series", appointment_id=completed["id"], series_id=series_id):
        completed_day = from_stored_date(completed["date"])
        _, end_of_day = day_bounds(completed_day)
        future = await db_client.list_records(
            collection="appointments",
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
            filter_query=f'date > "{end_of_day}"',
            match={"owner_id": completed["owner_id"], "recurrence_series_id": series_id},
            sort="date DESC",
        )
        if len(future) >= constants.RECURRENCE_MAX_OCCURRENCES:
            logger.debug("Series %s already has %d future occurrences", series_id, len(future))
            return None

        base_day = from_stored_date(future[0]["date"]) if future else completed_day
        next_day = base_day + timedelta(days=interval)

        anchor = await _series_anchor(owner_id=completed["owner_id"], series_id=series_id)
        start_day = await _series_start_day(owner_id=completed["owner_id"], series_id=series_id, anchor=anchor)
        if next_day > horizon_for(start_day or completed_day):
            logger.info("Series %s reached its horizon", series_id)
            return None

        source = anchor or completed
        if await occurrence_exists(source=source, day=next_day):
            return None

        created = await create_occurrences(source=source, days=[next_day], series_id=series_id)
        if not created:
            return None
        logger.info("Topped up series %s with occurrence on %s", series_id, next_day)
        return created[0]
