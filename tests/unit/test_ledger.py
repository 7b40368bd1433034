"""Unit tests for revenue ledger synchronization."""

import asyncio

import pytest

from cleanslate.core import db_client
from cleanslate.core.errors import TransactionNotFoundError
from cleanslate.domain.ledger import TransactionStatus, TransactionType
from cleanslate.modules.appointments import ledger


@pytest.fixture
async def appointment(make_appointment):
    """Plain scheduled appointment worth 100."""
    return await make_appointment()


@pytest.mark.unit
class TestUpsertRevenue:
    """Tests for upsert_revenue function."""

    async def test_creates_pending_entry(self, owner, appointment):
        """Test the first call creates one PENDING REVENUE entry."""
        entry = await ledger.upsert_revenue(
            appointment_id=appointment.id,
            owner_id=owner["id"],
            amount=100.0,
            due_date=appointment.date,
        )

        assert entry.type == TransactionType.REVENUE
        assert entry.status == TransactionStatus.PENDING
        assert entry.amount == 100.0
        assert entry.due_date == appointment.date

    async def test_repeated_calls_refresh_single_entry(self, owner, appointment):
        """Test later calls update amount and due date without duplicating."""
        for amount in (100.0, 150.0, 175.0):
            await ledger.upsert_revenue(
                appointment_id=appointment.id,
                owner_id=owner["id"],
                amount=amount,
                due_date="2024-01-02T12:00:00",
            )

        entries = await ledger.list_for_appointment(owner_id=owner["id"], appointment_id=appointment.id)
        assert len(entries) == 1
        assert entries[0].amount == 175.0
        assert entries[0].due_date == "2024-01-02T12:00:00"

    async def test_concurrent_calls_produce_one_entry(self, owner, appointment):
        """Test concurrent upserts converge on one row."""
        await asyncio.gather(
            *(
                ledger.upsert_revenue(
                    appointment_id=appointment.id,
                    owner_id=owner["id"],
                    amount=100.0,
                    due_date=appointment.date,
                )
                for _ in range(5)
            )
        )

        assert await db_client.count_records(collection="transactions", match={"appointment_id": appointment.id}) == 1

    async def test_refresh_keeps_paid_status(self, owner, appointment):
        """Test a refresh leaves status and paid_at of a settled entry alone."""
        entry = await ledger.upsert_revenue(
            appointment_id=appointment.id, owner_id=owner["id"], amount=100.0, due_date=appointment.date
        )
        paid = await ledger.set_transaction_status(
            owner_id=owner["id"], transaction_id=entry.id, status=TransactionStatus.PAID
        )

        refreshed = await ledger.upsert_revenue(
            appointment_id=appointment.id, owner_id=owner["id"], amount=120.0, due_date=appointment.date
        )

        assert refreshed.status == TransactionStatus.PAID
        assert refreshed.paid_at == paid.paid_at
        assert refreshed.amount == 120.0


@pytest.mark.unit
class TestRetractPending:
    """Tests for retract_pending function."""

    async def test_removes_only_pending_entries(self, owner, appointment):
        """Test PAID entries survive a retraction."""
        await ledger.upsert_revenue(
            appointment_id=appointment.id, owner_id=owner["id"], amount=100.0, due_date=appointment.date
        )
        await db_client.create_record(
            collection="transactions",
            data={
                "owner_id": owner["id"],
                "appointment_id": appointment.id,
                "type": TransactionType.EXPENSE,
                "status": TransactionStatus.PAID,
                "amount": 20.0,
                "paid_at": "2024-01-01T15:00:00Z",
            },
        )

        removed = await ledger.retract_pending(appointment_id=appointment.id)

        entries = await ledger.list_for_appointment(owner_id=owner["id"], appointment_id=appointment.id)
        assert removed == 1
        assert [(e.type, e.status) for e in entries] == [(TransactionType.EXPENSE, TransactionStatus.PAID)]

    async def test_no_entries_is_noop(self, appointment):
        """Test retracting with nothing to remove."""
        assert await ledger.retract_pending(appointment_id=appointment.id) == 0


@pytest.mark.unit
class TestSetTransactionStatus:
    """Tests for set_transaction_status function."""

    async def test_paid_then_pending_clears_paid_at(self, owner, appointment):
        """Test settling stamps paid_at and reopening clears it."""
        entry = await ledger.upsert_revenue(
            appointment_id=appointment.id, owner_id=owner["id"], amount=100.0, due_date=appointment.date
        )

        paid = await ledger.set_transaction_status(
            owner_id=owner["id"], transaction_id=entry.id, status=TransactionStatus.PAID
        )
        assert paid.status == TransactionStatus.PAID
        assert paid.paid_at is not None

        reopened = await ledger.set_transaction_status(
            owner_id=owner["id"], transaction_id=entry.id, status=TransactionStatus.PENDING
        )
        assert reopened.status == TransactionStatus.PENDING
        assert reopened.paid_at is None

    async def test_other_tenant_cannot_settle(self, owner, other_owner, appointment):
        """Test entries are scoped by tenant."""
        entry = await ledger.upsert_revenue(
            appointment_id=appointment.id, owner_id=owner["id"], amount=100.0, due_date=appointment.date
        )

        with pytest.raises(TransactionNotFoundError):
            await ledger.set_transaction_status(
                owner_id=other_owner["id"], transaction_id=entry.id, status=TransactionStatus.PAID
            )
