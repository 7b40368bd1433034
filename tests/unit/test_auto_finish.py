"""Unit tests for auto-finishing overdue appointments."""

from datetime import datetime

import pytest

from cleanslate.core import db_client
from cleanslate.domain.appointment import AppointmentStatus
from cleanslate.modules.appointments import auto_finish, state_machine


NOW = datetime(2024, 1, 2, 10, 0)


def _appointment(**overrides) -> dict:
    record = {"id": "1", "status": AppointmentStatus.SCHEDULED, "date": "2024-01-02T12:00:00", "end_time": None}
    record.update(overrides)
    return record


@pytest.mark.unit
class TestIsOverdue:
    """Tests for is_overdue function."""

    @pytest.mark.parametrize(
        ("overrides", "expected"),
        [
            ({"end_time": "09:30"}, True),
            ({"end_time": "10:00"}, True),
            ({"end_time": "11:00"}, False),
            ({}, False),
            ({"date": "2024-01-01T12:00:00"}, True),
            ({"date": "2024-01-01T12:00:00", "status": AppointmentStatus.IN_PROGRESS}, True),
            ({"date": "2024-01-01T12:00:00", "status": AppointmentStatus.NOT_CONFIRMED}, False),
            ({"date": "2024-01-01T12:00:00", "status": AppointmentStatus.CANCELLED}, False),
            ({"date": "2024-01-01T12:00:00", "status": AppointmentStatus.COMPLETED}, False),
        ],
    )
    def test_is_overdue(self, overrides, expected):
        """Test the end of the appointment is compared against now."""
        assert auto_finish.is_overdue(_appointment(**overrides), now=NOW) is expected


@pytest.mark.unit
class TestSweepOverdue:
    """Tests for sweep_overdue function."""

    async def _records(self) -> list[dict]:
        return await db_client.list_records(collection="appointments", sort="date ASC")

    async def test_completes_overdue_and_keeps_others(self, make_appointment):
        """Test only the overdue appointment is completed."""
        await make_appointment(date="2024-01-01")
        await make_appointment(date="2024-01-03")

        swept = await auto_finish.sweep_overdue(appointments=await self._records(), now=NOW)

        assert [r["status"] for r in swept] == [AppointmentStatus.COMPLETED, AppointmentStatus.SCHEDULED]
        assert swept[0]["invoice_number"] is not None

    async def test_nothing_overdue_returns_input(self, make_appointment):
        """Test the input is returned untouched when nothing is due."""
        await make_appointment(date="2024-01-03")
        records = await self._records()

        assert await auto_finish.sweep_overdue(appointments=records, now=NOW) is records

    async def test_failure_on_one_appointment_is_skipped(self, make_appointment, monkeypatch):
        """Test one failed completion does not stop the others."""
        broken = await make_appointment(date="2024-01-01", start_time="08:00")
        await make_appointment(date="2024-01-01", start_time="13:00")
        original = state_machine.transition_to_completed

        async def flaky_complete(*, appointment):
            if appointment["id"] == broken.id:
                raise db_client.DatabaseError("locked")
            return await original(appointment=appointment)

        monkeypatch.setattr(state_machine, "transition_to_completed", flaky_complete)

        swept = await auto_finish.sweep_overdue(appointments=await self._records(), now=NOW)

        by_id = {r["id"]: r["status"] for r in swept}
        assert by_id[broken.id] == AppointmentStatus.SCHEDULED
        assert sorted(by_id.values()) == [AppointmentStatus.COMPLETED, AppointmentStatus.SCHEDULED]
