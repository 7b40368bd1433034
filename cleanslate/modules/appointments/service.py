"""Appointment service for CRUD operations, listings, and lifecycle actions."""

import logging
import secrets
from datetime import date
from typing import Any

from cleanslate.core import db_client
from cleanslate.core.config import constants, settings
from cleanslate.core.dates import (
    day_bounds,
    month_days,
    parse_calendar_day,
    to_stored_date,
    utc_now_iso,
    week_days,
)
from cleanslate.core.errors import AppointmentConflictError, AppointmentNotFoundError, InvalidStateTransitionError
from cleanslate.core.logging import span
from cleanslate.domain.appointment import Appointment, AppointmentStatus, DaySummary, HelperDay, StatusChangeResult
from cleanslate.domain.create_models import AppointmentCreate
from cleanslate.domain.directory import Customer, HelperPayoutConfig
from cleanslate.domain.update_models import AppointmentUpdate
from cleanslate.modules.appointments import auto_finish, checklist, ledger, recurrence, state_machine
from cleanslate.modules.appointments.payout import compute_fee_for, round_currency
from cleanslate.modules.directory import service as directory_service


logger = logging.getLogger(__name__)


async def _get_owned(*, owner_id: str, appointment_id: str) -> dict[str, Any]:
    """Fetch an appointment within the owner's tenant.

    Raises:
        AppointmentNotFoundError: If the id does not resolve for this owner
    """
    record = None
    if str(appointment_id).isdigit():
        record = await db_client.get_first_record(
            collection="appointments",
            match={"id": int(appointment_id), "owner_id": owner_id},
        )
    if record is None:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
    return record


def _to_model(
    record: dict[str, Any],
    *,
    customer: Customer | None = None,
    items: list[Any] | None = None,
) -> Appointment:
    return Appointment.model_validate({**record, "customer": customer, "checklist_items": items or []})


async def _load_customers(*, owner_id: str, records: list[dict[str, Any]]) -> dict[str, Customer]:
    customers: dict[str, Customer] = {}
    for customer_id in {r["customer_id"] for r in records if r.get("customer_id")}:
        customer = await directory_service.get_customer(owner_id=owner_id, customer_id=customer_id)
        if customer is not None:
            customers[customer_id] = customer
    return customers


async def _detail(*, owner_id: str, record: dict[str, Any]) -> Appointment:
    """Appointment with its customer and checklist, seeding a default checklist when empty."""
    customer = None
    if record.get("customer_id"):
        customer = await directory_service.get_customer(owner_id=owner_id, customer_id=record["customer_id"])
    items = await checklist.ensure_default(
        appointment=record,
        customer=customer.model_dump() if customer else None,
    )
    return _to_model(record, customer=customer, items=items)


async def create_appointment(*, owner_id: str, data: AppointmentCreate) -> Appointment:
    """Create an appointment, its checklist, and (for recurring anchors) its first occurrences.

    Args:
        owner_id: Tenant ID from the identity collaborator
        data: Validated creation payload

    Returns:
        Created appointment with customer and checklist

    Raises:
        CustomerNotFoundError: If the customer is not in the tenant
        HelperNotFoundError: If the helper is neither the owner nor on the team
        InvalidDateError: If the date cannot be parsed
        AppointmentConflictError: If the customer already has an active appointment in that slot
    """
    with span("appointment_service.create_appointment", owner_id=owner_id):
        customer = await directory_service.ensure_customer_ownership(customer_id=data.customer_id, owner_id=owner_id)
        helper = None
        if data.assigned_helper_id:
            helper = await directory_service.resolve_helper(helper_id=data.assigned_helper_id, owner_id=owner_id)
        day = parse_calendar_day(data.date)

        helper_fee = data.helper_fee
        if helper_fee is None and helper is not None:
            helper_fee = compute_fee_for(price=data.price, payout=helper.payout)

        snapshot = checklist.normalize_checklist_snapshot(data.checklist)

        record_data: dict[str, Any] = {
            "owner_id": owner_id,
            "customer_id": customer.id,
            "assigned_helper_id": helper.id if helper else None,
            "date": to_stored_date(day),
            "start_time": data.start_time,
            "end_time": data.end_time,
            "estimated_duration_minutes": data.estimated_duration_minutes,
            "price": data.price,
            "helper_fee": helper_fee,
            "status": data.status,
            "is_recurring": data.is_recurring,
            "recurrence_rule": data.recurrence_rule,
            "recurrence_series_id": secrets.token_hex(constants.SERIES_ID_BYTES) if data.is_recurring else None,
            "notes": data.notes,
            "checklist_snapshot": snapshot or None,
        }
        if data.status == AppointmentStatus.IN_PROGRESS:
            record_data["started_at"] = utc_now_iso()

        try:
            record = await db_client.create_record(collection="appointments", data=record_data)
        except db_client.RecordExistsError as e:
            raise AppointmentConflictError(f"Customer {customer.id} already booked on {day}") from e

        items = await checklist.replace_from_snapshot(appointment_id=record["id"], titles=snapshot)

        if data.is_recurring:
            await recurrence.seed_occurrences(anchor=record)

        logger.info("Created appointment %s for customer %s on %s", record["id"], customer.id, day)
        return _to_model(record, customer=customer, items=items)


async def update_appointment(*, owner_id: str, appointment_id: str, data: AppointmentUpdate) -> Appointment:
    """Apply a partial update.

    Only fields present in `data` are changed. The helper fee is recomputed from
    the helper's payout config when the caller did not send one and a helper is
    assigned after the update.

    Raises:
        AppointmentNotFoundError, CustomerNotFoundError, HelperNotFoundError,
        InvalidDateError, AppointmentConflictError
    """
    with span("appointment_service.update_appointment", owner_id=owner_id, appointment_id=appointment_id):
        existing = await _get_owned(owner_id=owner_id, appointment_id=appointment_id)
        changes = data.model_dump(exclude_unset=True)
        for required in ("price", "is_recurring"):
            if changes.get(required, False) is None:
                changes.pop(required)

        if changes.get("customer_id") is not None:
            await directory_service.ensure_customer_ownership(customer_id=changes["customer_id"], owner_id=owner_id)
        else:
            changes.pop("customer_id", None)

        helper_id = changes.get("assigned_helper_id", existing.get("assigned_helper_id"))
        helper = None
        if helper_id:
            helper = await directory_service.resolve_helper(helper_id=helper_id, owner_id=owner_id)

        if changes.get("date") is not None:
            changes["date"] = to_stored_date(parse_calendar_day(changes["date"]))
        else:
            changes.pop("date", None)

        snapshot = None
        if "checklist" in changes:
            snapshot = checklist.normalize_checklist_snapshot(changes.pop("checklist"))
            if snapshot:
                changes["checklist_snapshot"] = snapshot

        if "helper_fee" not in changes and helper is not None:
            price = changes.get("price", existing["price"])
            helper_fee = compute_fee_for(price=price, payout=helper.payout)
            if helper_fee is not None:
                changes["helper_fee"] = helper_fee

        if changes.get("is_recurring") and not existing.get("recurrence_series_id"):
            changes["recurrence_series_id"] = secrets.token_hex(constants.SERIES_ID_BYTES)

        record = existing
        if changes:
            try:
                record = await db_client.update_record(
                    collection="appointments",
                    record_id=existing["id"],
                    data=changes,
                )
            except db_client.RecordExistsError as e:
                raise AppointmentConflictError(f"Slot taken for appointment {appointment_id}") from e

        if snapshot:
            await checklist.replace_from_snapshot(appointment_id=record["id"], titles=snapshot)

        if changes.get("is_recurring"):
            await recurrence.seed_occurrences(anchor=record)

        logger.info("Updated appointment %s (%s)", record["id"], ", ".join(sorted(changes)) or "no changes")
        return await _detail(owner_id=owner_id, record=record)


async def get_appointment(*, owner_id: str, appointment_id: str) -> Appointment:
    """Get full appointment detail.

    Applies the auto-finish sweep to this appointment and seeds a default
    checklist when it has none.

    Raises:
        AppointmentNotFoundError: If the id does not resolve for this owner
    """
    with span("appointment_service.get_appointment", owner_id=owner_id, appointment_id=appointment_id):
        record = await _get_owned(owner_id=owner_id, appointment_id=appointment_id)
        [record] = await auto_finish.sweep_overdue(appointments=[record])
        return await _detail(owner_id=owner_id, record=record)


async def set_status(
    *,
    owner_id: str,
    appointment_id: str,
    status: AppointmentStatus,
    send_invoice: bool = False,
) -> StatusChangeResult:
    """Move an appointment to `status` through the matching lifecycle action.

    When completing with `send_invoice`, stamps invoice_sent_at and returns the
    public invoice link.

    Raises:
        AppointmentNotFoundError: If the id does not resolve for this owner
        InvalidStateTransitionError: If the status cannot be reached
    """
    with span("appointment_service.set_status", owner_id=owner_id, appointment_id=appointment_id, status=status):
        existing = await _get_owned(owner_id=owner_id, appointment_id=appointment_id)

        if status == AppointmentStatus.IN_PROGRESS:
            record = await state_machine.transition_to_in_progress(appointment=existing)
        elif status == AppointmentStatus.COMPLETED:
            record = await state_machine.transition_to_completed(appointment=existing)
        elif status == AppointmentStatus.CANCELLED:
            record = await state_machine.transition_to_cancelled(appointment=existing)
        elif status == AppointmentStatus.SCHEDULED:
            record = await state_machine.transition_to_scheduled(appointment=existing)
        else:
            msg = f"{status} cannot be set directly"
            raise InvalidStateTransitionError(msg)

        invoice_url = None
        if send_invoice and status == AppointmentStatus.COMPLETED:
            record = await db_client.update_record(
                collection="appointments",
                record_id=record["id"],
                data={"invoice_sent_at": utc_now_iso()},
            )
            invoice_url = f"{settings.app_url.rstrip('/')}/invoice/{record['id']}"
            logger.info("Invoice %s sent for appointment %s", record["invoice_number"], record["id"])

        return StatusChangeResult(appointment=_to_model(record), invoice_url=invoice_url)


async def start_appointment(*, owner_id: str, appointment_id: str) -> Appointment:
    """Start an appointment (idempotent)."""
    result = await set_status(owner_id=owner_id, appointment_id=appointment_id, status=AppointmentStatus.IN_PROGRESS)
    return result.appointment


async def finish_appointment(*, owner_id: str, appointment_id: str) -> Appointment:
    """Complete an appointment."""
    result = await set_status(owner_id=owner_id, appointment_id=appointment_id, status=AppointmentStatus.COMPLETED)
    return result.appointment


async def cancel_appointment(*, owner_id: str, appointment_id: str) -> Appointment:
    """Cancel an appointment."""
    result = await set_status(owner_id=owner_id, appointment_id=appointment_id, status=AppointmentStatus.CANCELLED)
    return result.appointment


async def _delete_ids(ids: list[str]) -> None:
    async with db_client.atomic():
        for record_id in ids:
            await ledger.retract_pending(appointment_id=record_id)
            await db_client.delete_record(collection="appointments", record_id=record_id)


async def delete_appointment(*, owner_id: str, appointment_id: str) -> None:
    """Delete one appointment; its checklist goes with it, PAID ledger history stays.

    Raises:
        AppointmentNotFoundError: If the id does not resolve for this owner
    """
    with span("appointment_service.delete_appointment", owner_id=owner_id, appointment_id=appointment_id):
        existing = await _get_owned(owner_id=owner_id, appointment_id=appointment_id)
        await _delete_ids([existing["id"]])
        logger.info("Deleted appointment %s", existing["id"])


def _series_match(appointment: dict[str, Any]) -> dict[str, Any]:
    """Equality match selecting the series an appointment belongs to.

    Prefers the series id; legacy rows without one fall back to heuristics.
    """
    base = {"owner_id": appointment["owner_id"]}
    if appointment.get("recurrence_series_id"):
        return {**base, "recurrence_series_id": appointment["recurrence_series_id"]}

    if appointment.get("recurrence_rule"):
        return {
            **base,
            "customer_id": appointment.get("customer_id"),
            "start_time": appointment.get("start_time"),
            "recurrence_rule": appointment["recurrence_rule"],
        }

    match = {
        **base,
        "customer_id": appointment.get("customer_id"),
        "start_time": appointment.get("start_time"),
        "is_recurring": bool(appointment.get("is_recurring")),
    }
    if appointment.get("price") is not None:
        match["price"] = appointment["price"]
    if appointment.get("notes"):
        match["notes"] = appointment["notes"]
    return match


async def delete_series(*, owner_id: str, appointment_id: str) -> int:
    """Delete every appointment in the series of `appointment_id`.

    Returns:
        Number of appointments deleted

    Raises:
        AppointmentNotFoundError: If the id does not resolve for this owner
    """
    with span("appointment_service.delete_series", owner_id=owner_id, appointment_id=appointment_id):
        existing = await _get_owned(owner_id=owner_id, appointment_id=appointment_id)
        members = await db_client.list_records(
            collection="appointments",
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
            match=_series_match(existing),
        )
        ids = [m["id"] for m in members] or [existing["id"]]

        await _delete_ids(ids)
        logger.info("Deleted series of appointment %s (%d appointments)", existing["id"], len(ids))
        return len(ids)


async def _list_range(
    *,
    owner_id: str,
    start: date,
    end: date,
    match: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """List an owner's appointments between two days (inclusive), after the auto-finish sweep."""
    low, high = day_bounds(start, end)
    records = await db_client.list_records(
        collection="appointments",
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
        filter_query=f'date >= "{low}" && date <= "{high}"',
        match={"owner_id": owner_id, **(match or {})},
        sort="date ASC, start_time ASC",
    )
    return await auto_finish.sweep_overdue(appointments=records)


async def _with_customers(*, owner_id: str, records: list[dict[str, Any]]) -> list[Appointment]:
    customers = await _load_customers(owner_id=owner_id, records=records)
    return [_to_model(r, customer=customers.get(r.get("customer_id"))) for r in records]


async def list_day(
    *,
    owner_id: str,
    day: str | date,
    customer_id: str | None = None,
    status: AppointmentStatus | None = None,
) -> list[Appointment]:
    """List one day's appointments, optionally filtered by customer and status.

    The status filter applies after the sweep, so overdue appointments are
    reported as COMPLETED.
    """
    with span("appointment_service.list_day", owner_id=owner_id):
        target = parse_calendar_day(day)
        match = {"customer_id": customer_id} if customer_id else None
        records = await _list_range(owner_id=owner_id, start=target, end=target, match=match)
        if status is not None:
            records = [r for r in records if r["status"] == status]
        return await _with_customers(owner_id=owner_id, records=records)


async def list_today(*, owner_id: str) -> list[Appointment]:
    """List today's appointments."""
    return await list_day(owner_id=owner_id, day=date.today())


async def list_week(*, owner_id: str, start_date: str | date) -> list[Appointment]:
    """List the seven days starting at `start_date`."""
    with span("appointment_service.list_week", owner_id=owner_id):
        start, end = week_days(parse_calendar_day(start_date))
        records = await _list_range(owner_id=owner_id, start=start, end=end)
        return await _with_customers(owner_id=owner_id, records=records)


async def list_month(*, owner_id: str, year: int, month: int) -> list[Appointment]:
    """List a calendar month."""
    with span("appointment_service.list_month", owner_id=owner_id):
        start, end = month_days(year, month)
        records = await _list_range(owner_id=owner_id, start=start, end=end)
        return await _with_customers(owner_id=owner_id, records=records)


def summarize_day(
    appointments: list[dict[str, Any]],
    *,
    payout: HelperPayoutConfig | None = None,
) -> DaySummary:
    """Count a day's appointments by status and total the payouts.

    Cancelled appointments are counted but earn nothing. An appointment without
    a stored fee is priced from `payout`.
    """
    summary = DaySummary(total=len(appointments))
    payout_total = 0.0
    for appointment in appointments:
        status = appointment["status"]
        if status in (AppointmentStatus.SCHEDULED, AppointmentStatus.NOT_CONFIRMED):
            summary.scheduled += 1
        elif status == AppointmentStatus.IN_PROGRESS:
            summary.in_progress += 1
        elif status == AppointmentStatus.COMPLETED:
            summary.completed += 1
        elif status == AppointmentStatus.CANCELLED:
            summary.cancelled += 1
            continue

        fee = appointment.get("helper_fee")
        if fee is None and payout is not None:
            fee = compute_fee_for(price=appointment.get("price"), payout=payout)
        payout_total += fee or 0.0

    summary.payout_total = round_currency(payout_total)
    return summary


async def get_helper_day(*, owner_id: str, helper_id: str, day: str | date) -> HelperDay:
    """A helper's appointments for one day with checklists and the day summary.

    Raises:
        HelperNotFoundError: If the helper is neither the owner nor on the team
        InvalidDateError: If the day cannot be parsed
    """
    with span("appointment_service.get_helper_day", owner_id=owner_id, helper_id=helper_id):
        helper = await directory_service.resolve_helper(helper_id=helper_id, owner_id=owner_id)
        target = parse_calendar_day(day)
        records = await _list_range(
            owner_id=owner_id,
            start=target,
            end=target,
            match={"assigned_helper_id": helper.id},
        )

        customers = await _load_customers(owner_id=owner_id, records=records)
        appointments = []
        for record in records:
            customer = customers.get(record.get("customer_id"))
            items = await checklist.ensure_default(
                appointment=record,
                customer=customer.model_dump() if customer else None,
            )
            appointments.append(_to_model(record, customer=customer, items=items))

        return HelperDay(
            helper_id=helper.id,
            date=target.isoformat(),
            appointments=appointments,
            summary=summarize_day(records, payout=helper.payout),
        )
