from __future__ import annotations

from fastapi import Header

from sponsorguard.core.schema import CurrentUser
from sponsorguard.core.validation import AuthenticationError


async def current_user(
    x_user_id: str | None = Header(default=None),
    x_tenant_id: str | None = Header(default=None),
) -> CurrentUser:
    """Identity set by the upstream session layer."""

    user_id = (x_user_id or "").strip()
    tenant_id = (x_tenant_id or "").strip()
    if not user_id or not tenant_id:
        raise AuthenticationError("X-User-Id and X-Tenant-Id headers are required")
    return CurrentUser(id=user_id, tenant_id=tenant_id)
