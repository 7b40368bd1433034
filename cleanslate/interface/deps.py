"""Request dependencies shared by routers."""

import logging

from fastapi import Header, HTTPException, status


logger = logging.getLogger(__name__)


async def get_owner_id(x_owner_id: str | None = Header(default=None)) -> str:
    """Tenant ID supplied by the identity layer in front of this service."""
    if not x_owner_id or not x_owner_id.strip():
        logger.warning("Request without tenant header")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Owner-Id header")
    return x_owner_id.strip()
