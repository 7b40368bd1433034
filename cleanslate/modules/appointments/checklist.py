"""Checklist synchronization for appointments."""

import logging
from typing import Any

from cleanslate.core import db_client
from cleanslate.core.config import constants
from cleanslate.core.dates import utc_now_iso
from cleanslate.core.errors import ChecklistItemNotFoundError
from cleanslate.core.logging import span
from cleanslate.domain.appointment import ChecklistItem


logger = logging.getLogger(__name__)


GENERIC_TEMPLATE = ["Full kitchen", "Full bathroom", "Common areas and bedrooms"]
WEEKLY_TEMPLATE = ["Quick kitchen clean", "Bathrooms and powder room", "Change bed linen"]
BIWEEKLY_TEMPLATE = ["Full kitchen", "Deep bathroom clean", "Rugs and furniture"]
STANDARD_TEMPLATE = ["Full kitchen", "Full bathroom", "Change bed linen", "Tidy common areas"]

BIWEEKLY_MARKERS = ("biweekly", "bi-weekly", "fortnight", "every 2 weeks", "every other week")


def normalize_checklist_snapshot(value: Any) -> list[str] | None:
    """Normalize checklist input into a list of titles.

    Accepts plain strings or `{"title": ...}` entries; titles are trimmed and
    blanks dropped. Anything that is not a list yields None.
    """
    if not isinstance(value, list):
        return None

    titles = []
    for entry in value:
        if isinstance(entry, str):
            title = entry.strip()
        elif isinstance(entry, dict) and isinstance(entry.get("title"), str):
            title = entry["title"].strip()
        else:
            title = ""
        if title:
            titles.append(title)
    return titles


def titles_from_notes(notes: str | None) -> list[str]:
    """One checklist title per non-blank line of free-form notes."""
    if not notes:
        return []
    return [line.strip() for line in notes.splitlines() if line.strip()]


def template_for_service_type(service_type: str | None) -> list[str]:
    """Pick a built-in checklist by a coarse match on the declared service cadence."""
    if not service_type:
        return list(GENERIC_TEMPLATE)

    normalized = service_type.lower()
    if any(marker in normalized for marker in BIWEEKLY_MARKERS):
        return list(BIWEEKLY_TEMPLATE)
    if "weekly" in normalized:
        return list(WEEKLY_TEMPLATE)
    return list(STANDARD_TEMPLATE)


async def list_items(*, appointment_id: str) -> list[ChecklistItem]:
    """List an appointment's checklist in display order."""
    records = await db_client.list_records(
        collection="checklist_items",
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
        match={"appointment_id": appointment_id},
        sort="sort_order ASC, id ASC",
    )
    return [ChecklistItem.model_validate(r) for r in records]


async def replace_from_snapshot(*, appointment_id: str, titles: list[str] | None) -> list[ChecklistItem]:
    """Replace the appointment's checklist with `titles`, in order.

    An empty or missing snapshot is a no-op and keeps the existing items.
    Delete and recreate run in one transaction.
    """
    if not titles:
        return await list_items(appointment_id=appointment_id)

    with span("checklist.replace_from_snapshot", appointment_id=appointment_id):
        async with db_client.atomic():
            await db_client.delete_records(collection="checklist_items", match={"appointment_id": appointment_id})
            for position, title in enumerate(titles):
                await db_client.create_record(
                    collection="checklist_items",
                    data={"appointment_id": appointment_id, "title": title, "sort_order": position},
                )

        logger.info("Replaced checklist for appointment %s (%d items)", appointment_id, len(titles))
        return await list_items(appointment_id=appointment_id)


async def ensure_default(
    *,
    appointment: dict[str, Any],
    customer: dict[str, Any] | None = None,
) -> list[ChecklistItem]:
    """Seed a checklist for an appointment that has none.

    Sources, first non-empty wins: the appointment's notes, the customer's notes,
    a template for the customer's service cadence.
    """
    items = await list_items(appointment_id=appointment["id"])
    if items:
        return items

    customer = customer or {}
    titles = (
        titles_from_notes(appointment.get("notes"))
        or titles_from_notes(customer.get("notes"))
        or template_for_service_type(customer.get("service_type"))
    )
    logger.debug("Seeding default checklist for appointment %s", appointment["id"])
    return await replace_from_snapshot(appointment_id=appointment["id"], titles=titles)


async def toggle_item(*, appointment_id: str, item_id: str, member_id: str) -> ChecklistItem:
    """Flip an item between done (stamped with who and when) and not done.

    Raises:
        ChecklistItemNotFoundError: If the item does not belong to the appointment
    """
    with span("checklist.toggle_item", appointment_id=appointment_id, item_id=item_id):
        record = None
        if str(item_id).isdigit():
            record = await db_client.get_first_record(
                collection="checklist_items",
                match={"id": int(item_id), "appointment_id": appointment_id},
            )
        if record is None:
            raise ChecklistItemNotFoundError(f"Checklist item {item_id} not found")

        if record.get("completed_at"):
            data = {"completed_at": None, "completed_by_id": None}
        else:
            data = {"completed_at": utc_now_iso(), "completed_by_id": member_id}

        updated = await db_client.update_record(collection="checklist_items", record_id=item_id, data=data)
        return ChecklistItem.model_validate(updated)
