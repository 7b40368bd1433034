"""Directory service: customers, members, and ownership checks."""

import logging
from typing import Any

from cleanslate.core import db_client
from cleanslate.core.errors import CustomerNotFoundError, HelperNotFoundError
from cleanslate.core.logging import span
from cleanslate.domain.create_models import CustomerCreate, MemberCreate
from cleanslate.domain.directory import Customer, HelperPayoutConfig, HelperProfile, MemberRole


logger = logging.getLogger(__name__)


async def create_member(*, member: MemberCreate) -> dict[str, Any]:
    """Create an owner or helper member record."""
    with span("directory_service.create_member"):
        record = await db_client.create_record(collection="members", data=member.model_dump(exclude_none=True))
        logger.info("Created member %s (%s)", record["id"], record["role"])
        return record


async def create_customer(*, customer: CustomerCreate) -> Customer:
    """Create a customer owned by `customer.owner_id`."""
    with span("directory_service.create_customer"):
        record = await db_client.create_record(collection="customers", data=customer.model_dump(exclude_none=True))
        logger.info("Created customer %s for owner %s", record["id"], record["owner_id"])
        return Customer.model_validate(record)


async def get_customer(*, owner_id: str, customer_id: str) -> Customer | None:
    """Get a customer within the owner's tenant, or None."""
    if not str(customer_id).isdigit():
        return None
    record = await db_client.get_first_record(
        collection="customers",
        match={"id": int(customer_id), "owner_id": owner_id},
    )
    return Customer.model_validate(record) if record else None


async def ensure_customer_ownership(*, customer_id: str, owner_id: str) -> Customer:
    """Return the customer if it belongs to the owner.

    Raises:
        CustomerNotFoundError: If the customer is missing or owned by another tenant
    """
    customer = await get_customer(owner_id=owner_id, customer_id=customer_id)
    if customer is None:
        logger.warning("Customer %s not found for owner %s", customer_id, owner_id)
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    return customer


def _to_profile(record: dict[str, Any], *, is_owner: bool) -> HelperProfile:
    return HelperProfile(
        id=record["id"],
        name=record["name"],
        email=record.get("email"),
        is_owner=is_owner,
        payout=HelperPayoutConfig(mode=record["payout_mode"], value=record["payout_value"]),
    )


async def resolve_helper(*, helper_id: str, owner_id: str) -> HelperProfile:
    """Resolve an assignable worker: the tenant owner itself or a HELPER on the owner's team.

    Raises:
        HelperNotFoundError: If the id resolves to neither
    """
    with span("directory_service.resolve_helper"):
        if str(helper_id).isdigit():
            if str(helper_id) == str(owner_id):
                record = await db_client.get_first_record(collection="members", match={"id": int(helper_id)})
                if record is not None:
                    return _to_profile(record, is_owner=True)
            else:
                record = await db_client.get_first_record(
                    collection="members",
                    match={"id": int(helper_id), "company_id": owner_id, "role": MemberRole.HELPER},
                )
                if record is not None:
                    return _to_profile(record, is_owner=False)

        logger.warning("Helper %s not found in team of owner %s", helper_id, owner_id)
        raise HelperNotFoundError(f"Helper {helper_id} not found")
