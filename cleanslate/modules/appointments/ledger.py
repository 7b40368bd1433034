"""Revenue ledger synchronization for appointments."""

import logging

from cleanslate.core import db_client
from cleanslate.core.config import constants
from cleanslate.core.dates import utc_now_iso
from cleanslate.core.errors import TransactionNotFoundError
from cleanslate.core.logging import span
from cleanslate.domain.ledger import RevenueTransaction, TransactionStatus, TransactionType


logger = logging.getLogger(__name__)


async def upsert_revenue(*, appointment_id: str, owner_id: str, amount: float, due_date: str) -> RevenueTransaction:
    """Create or refresh the REVENUE entry for an appointment.

    A new entry starts PENDING. An existing entry only gets its amount and due
    date refreshed; status and paid_at are left alone. The UNIQUE(appointment_id,
    type) constraint makes concurrent calls converge on one row.
    """
    with span("ledger.upsert_revenue", appointment_id=appointment_id):
        record = await db_client.upsert_record(
            collection="transactions",
            data={
                "owner_id": owner_id,
                "appointment_id": appointment_id,
                "type": TransactionType.REVENUE,
                "status": TransactionStatus.PENDING,
                "amount": amount,
                "due_date": due_date,
            },
            conflict_fields=("appointment_id", "type"),
            update_fields=("amount", "due_date"),
        )
        logger.info("Upserted revenue for appointment %s (amount=%s)", appointment_id, amount)
        return RevenueTransaction.model_validate(record)


async def retract_pending(*, appointment_id: str) -> int:
    """Delete the appointment's PENDING entries; PAID entries are never touched here."""
    with span("ledger.retract_pending", appointment_id=appointment_id):
        removed = await db_client.delete_records(
            collection="transactions",
            match={"appointment_id": appointment_id, "status": TransactionStatus.PENDING},
        )
        if removed:
            logger.info("Retracted %d pending entries for appointment %s", removed, appointment_id)
        return removed


async def list_for_appointment(*, owner_id: str, appointment_id: str) -> list[RevenueTransaction]:
    """List ledger entries linked to an appointment."""
    records = await db_client.list_records(
        collection="transactions",
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
        match={"owner_id": owner_id, "appointment_id": appointment_id},
    )
    return [RevenueTransaction.model_validate(r) for r in records]


async def set_transaction_status(
    *,
    owner_id: str,
    transaction_id: str,
    status: TransactionStatus,
) -> RevenueTransaction:
    """Mark an entry PAID (stamping paid_at) or reopen it as PENDING (clearing paid_at).

    Raises:
        TransactionNotFoundError: If the entry does not belong to the owner
    """
    with span("ledger.set_transaction_status", transaction_id=transaction_id):
        existing = None
        if str(transaction_id).isdigit():
            existing = await db_client.get_first_record(
                collection="transactions",
                match={"id": int(transaction_id), "owner_id": owner_id},
            )
        if existing is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")

        paid_at = utc_now_iso() if status == TransactionStatus.PAID else None
        record = await db_client.update_record(
            collection="transactions",
            record_id=transaction_id,
            data={"status": status, "paid_at": paid_at},
        )
        logger.info("Transaction %s marked %s", transaction_id, status)
        return RevenueTransaction.model_validate(record)
