"""Unit tests for rolling-window recurrence generation."""

from datetime import date, timedelta

import pytest

from cleanslate.core import db_client
from cleanslate.core.config import constants
from cleanslate.core.dates import to_stored_date
from cleanslate.domain.appointment import AppointmentStatus
from cleanslate.domain.ledger import TransactionStatus
from cleanslate.modules.appointments import ledger, recurrence, state_machine


WEEKLY = "FREQ=WEEKLY"


async def _series(owner_id: str, series_id: str) -> list[dict]:
    return await db_client.list_records(
        collection="appointments",
        match={"owner_id": owner_id, "recurrence_series_id": series_id},
        sort="date ASC",
    )


@pytest.fixture
async def anchor(make_appointment):
    """Weekly anchor on 2024-01-01 priced 100."""
    return await make_appointment(date="2024-01-01", is_recurring=True, recurrence_rule=WEEKLY, checklist=["Floors"])


@pytest.mark.unit
class TestSeedOccurrences:
    """Tests for seeding a new anchor."""

    async def test_weekly_anchor_seeds_four_occurrences(self, owner, anchor):
        """Test the anchor gets four NOT_CONFIRMED weekly occurrences in its series."""
        series = await _series(owner["id"], anchor.recurrence_series_id)

        assert [r["date"][:10] for r in series] == [
            "2024-01-01",
            "2024-01-08",
            "2024-01-15",
            "2024-01-22",
            "2024-01-29",
        ]
        occurrences = series[1:]
        assert all(r["status"] == AppointmentStatus.NOT_CONFIRMED for r in occurrences)
        assert all(r["is_recurring"] == 0 for r in occurrences)
        assert all(r["price"] == 100.0 and r["start_time"] == "09:00" for r in occurrences)
        assert all(r["customer_id"] == anchor.customer_id for r in occurrences)

    async def test_occurrences_copy_checklist(self, anchor, owner):
        """Test each occurrence gets the anchor's checklist items."""
        series = await _series(owner["id"], anchor.recurrence_series_id)

        for record in series[1:]:
            items = await db_client.list_records(collection="checklist_items", match={"appointment_id": record["id"]})
            assert [i["title"] for i in items] == ["Floors"]

    async def test_biweekly_interval(self, owner, make_appointment):
        """Test an every-other-week rule spaces occurrences 14 days apart."""
        anchor = await make_appointment(is_recurring=True, recurrence_rule="FREQ=WEEKLY;INTERVAL=2")

        series = await _series(owner["id"], anchor.recurrence_series_id)

        assert [r["date"][:10] for r in series[1:]] == ["2024-01-15", "2024-01-29", "2024-02-12", "2024-02-26"]

    async def test_unsupported_rule_generates_nothing(self, make_appointment):
        """Test a recurring flag with a non-weekly rule creates only the anchor."""
        await make_appointment(is_recurring=True, recurrence_rule="FREQ=DAILY")

        assert await db_client.count_records(collection="appointments") == 1

    async def test_reseeding_is_idempotent(self, anchor):
        """Test seeding the same anchor again creates nothing."""
        record = await db_client.get_record(collection="appointments", record_id=anchor.id)

        created = await recurrence.seed_occurrences(anchor=record)

        assert created == []
        assert await db_client.count_records(collection="appointments") == 5

    async def test_existing_slot_is_skipped(self, owner, make_appointment):
        """Test a pre-existing appointment in a slot is not duplicated."""
        await make_appointment(date="2024-01-15")

        anchor = await make_appointment(is_recurring=True, recurrence_rule=WEEKLY)

        series = await _series(owner["id"], anchor.recurrence_series_id)
        assert [r["date"][:10] for r in series[1:]] == ["2024-01-08", "2024-01-22", "2024-01-29"]

    async def test_unique_index_dedupes_when_check_is_bypassed(self, anchor, monkeypatch):
        """Test a writer that passed a stale existence check is rejected by the slot index."""
        record = await db_client.get_record(collection="appointments", record_id=anchor.id)

        async def stale_check(*, source, day):
            return False

        monkeypatch.setattr(recurrence, "occurrence_exists", stale_check)

        created = await recurrence.seed_occurrences(anchor=record)

        assert created == []
        assert await db_client.count_records(collection="appointments") == 5

    async def test_seed_respects_horizon(self, owner, customer, monkeypatch):
        """Test nothing is generated past anchor date + 365 days."""
        record = await db_client.create_record(
            collection="appointments",
            data={
                "owner_id": owner["id"],
                "customer_id": customer.id,
                "date": "2024-01-01T12:00:00",
                "start_time": "09:00",
                "is_recurring": True,
                "recurrence_rule": WEEKLY,
                "recurrence_series_id": "series-horizon",
            },
        )
        monkeypatch.setattr(constants, "RECURRENCE_HORIZON_DAYS", 15)

        created = await recurrence.seed_occurrences(anchor=record)

        assert [r["date"][:10] for r in created] == ["2024-01-08", "2024-01-15"]


@pytest.mark.unit
class TestTopUpSeries:
    """Tests for topping up a series on completion."""

    async def test_finishing_anchor_keeps_window_full(self, owner, anchor):
        """Test finishing the anchor adds nothing when four occurrences lie ahead."""
        record = await db_client.get_record(collection="appointments", record_id=anchor.id)

        await state_machine.transition_to_completed(appointment=record)

        entries = await ledger.list_for_appointment(owner_id=owner["id"], appointment_id=anchor.id)
        assert len(entries) == 1
        assert entries[0].status == TransactionStatus.PENDING
        assert entries[0].amount == 100.0
        assert entries[0].due_date[:10] == "2024-01-01"
        assert len(await _series(owner["id"], anchor.recurrence_series_id)) == 5

    async def test_finishing_occurrence_adds_one_after_latest(self, owner, anchor):
        """Test completing 01-08 with two future occurrences generates 02-05."""
        series = await _series(owner["id"], anchor.recurrence_series_id)
        by_day = {r["date"][:10]: r for r in series}
        await db_client.delete_record(collection="appointments", record_id=by_day["2024-01-15"]["id"])

        await state_machine.transition_to_completed(appointment=by_day["2024-01-08"])

        dates = [r["date"][:10] for r in await _series(owner["id"], anchor.recurrence_series_id)]
        assert dates == ["2024-01-01", "2024-01-08", "2024-01-22", "2024-01-29", "2024-02-05"]

    async def test_new_occurrence_copies_anchor(self, owner, anchor):
        """Test the topped-up occurrence is a NOT_CONFIRMED copy of the anchor in the same series."""
        series = await _series(owner["id"], anchor.recurrence_series_id)
        last = await db_client.update_record(
            collection="appointments", record_id=series[-1]["id"], data={"price": 150.0}
        )

        await state_machine.transition_to_completed(appointment=last)

        created = (await _series(owner["id"], anchor.recurrence_series_id))[-1]
        assert created["date"][:10] == "2024-02-05"
        assert created["status"] == AppointmentStatus.NOT_CONFIRMED
        assert created["is_recurring"] == 0
        assert created["recurrence_series_id"] == anchor.recurrence_series_id
        assert created["customer_id"] == anchor.customer_id
        assert created["price"] == 100.0

    async def test_new_occurrence_copies_completed_member_without_anchor(self, owner, anchor):
        """Test a series whose anchor was deleted tops up from the completed member."""
        series = await _series(owner["id"], anchor.recurrence_series_id)
        await db_client.delete_record(collection="appointments", record_id=anchor.id)
        last = await db_client.update_record(
            collection="appointments", record_id=series[-1]["id"], data={"price": 150.0}
        )

        await state_machine.transition_to_completed(appointment=last)

        created = (await _series(owner["id"], anchor.recurrence_series_id))[-1]
        assert created["date"][:10] == "2024-02-05"
        assert created["price"] == 150.0

    async def test_cancelled_last_occurrence_does_not_stall_series(self, owner, anchor):
        """Test the series keeps generating after its last occurrence is cancelled."""
        series = await _series(owner["id"], anchor.recurrence_series_id)
        await state_machine.transition_to_cancelled(appointment=series[-1])

        for record in series[:4]:
            fresh = await db_client.get_record(collection="appointments", record_id=record["id"])
            await state_machine.transition_to_completed(appointment=fresh)

        after = await _series(owner["id"], anchor.recurrence_series_id)
        live_ahead = [
            r["date"][:10]
            for r in after
            if r["date"][:10] > "2024-01-22" and r["status"] != AppointmentStatus.CANCELLED
        ]
        assert live_ahead == ["2024-02-05", "2024-02-12", "2024-02-19"]

    async def test_cancelled_occurrence_counts_toward_cap(self, owner, anchor):
        """Test a mid-series cancellation does not let the window grow past four."""
        series = await _series(owner["id"], anchor.recurrence_series_id)
        await state_machine.transition_to_cancelled(appointment=series[2])
        record = await db_client.get_record(collection="appointments", record_id=anchor.id)

        completed = await state_machine.transition_to_completed(appointment=record)

        after = await _series(owner["id"], anchor.recurrence_series_id)
        ahead = [r["date"][:10] for r in after if r["date"] > completed["date"]]
        assert ahead == ["2024-01-08", "2024-01-15", "2024-01-22", "2024-01-29"]

    async def test_look_ahead_never_exceeds_cap(self, owner, anchor):
        """Test the number of future occurrences after each completion stays at most four."""
        for _ in range(6):
            series = await _series(owner["id"], anchor.recurrence_series_id)
            pending = [r for r in series if r["status"] != AppointmentStatus.COMPLETED]
            completed = await state_machine.transition_to_completed(appointment=pending[0])

            after = await _series(owner["id"], anchor.recurrence_series_id)
            ahead = [r for r in after if r["date"] > completed["date"]]
            assert len(ahead) <= 4

    async def test_top_up_stops_at_horizon(self, owner, customer):
        """Test no occurrence is created past the anchor's horizon."""
        anchor_day = date(2024, 1, 1)
        common = {
            "owner_id": owner["id"],
            "customer_id": customer.id,
            "start_time": "09:00",
            "recurrence_rule": WEEKLY,
            "recurrence_series_id": "series-end",
        }
        await db_client.create_record(
            collection="appointments",
            data={**common, "date": to_stored_date(anchor_day), "is_recurring": True, "status": "COMPLETED"},
        )
        last_day = anchor_day + timedelta(days=364)
        last = await db_client.create_record(
            collection="appointments",
            data={**common, "date": to_stored_date(last_day), "status": "NOT_CONFIRMED"},
        )

        assert await recurrence.top_up_series(completed=last) is None
        assert await db_client.count_records(collection="appointments") == 2

    async def test_non_series_appointment_is_ignored(self, make_appointment):
        """Test one-off appointments never top up."""
        appointment = await make_appointment()
        record = await db_client.get_record(collection="appointments", record_id=appointment.id)

        assert await recurrence.top_up_series(completed=record) is None
