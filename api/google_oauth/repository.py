"""
OAuth state persistence (raw SQL).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from core import db


async def insert_oauth_state(
    *,
    state_token: str,
    tenant_id: str,
    admin_email: str,
    redirect_uri: str,
    expires_at: datetime,
) -> None:
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    await db.execute(
        """
        INSERT INTO google_oauth_state (state_token, customer_id, admin_email, redirect_uri, expires_at)
        VALUES ($1, $2, $3, $4, $5)
        """,
        state_token,
        tenant_id,
        admin_email,
        redirect_uri,
        expires_at,
    )


async def get_oauth_state(state_token: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        SELECT state_token, customer_id, admin_email, redirect_uri, expires_at
        FROM google_oauth_state
        WHERE state_token = $1
        """,
        state_token,
    )


async def delete_oauth_state(state_token: str) -> None:
    await db.execute(
        """
        DELETE FROM google_oauth_state
        WHERE state_token = $1
        """,
        state_token,
    )
