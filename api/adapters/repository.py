"""
Tenant data-source configuration persistence (raw SQL).

Tables:
- customers                      (id, data_source)
- customer_teable_config         one active row per tenant
- customer_google_sheets_config  one active row per tenant; OAuth tokens are
                                 stored encrypted (see core.vault)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from core import db


async def get_tenant(tenant_id: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        SELECT id, data_source
        FROM customers
        WHERE id = $1
        """,
        tenant_id,
    )


async def set_tenant_data_source(tenant_id: str, data_source: str) -> None:
    await db.execute(
        """
        UPDATE customers
        SET data_source = $2
        WHERE id = $1
        """,
        tenant_id,
        data_source,
    )


async def get_teable_config(tenant_id: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        SELECT id, customer_id, base_url, space_id, base_id, access_token
        FROM customer_teable_config
        WHERE customer_id = $1
          AND is_active = true
        ORDER BY created_at DESC
        LIMIT 1
        """,
        tenant_id,
    )


async def get_google_sheets_config(tenant_id: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        SELECT id, customer_id, spreadsheet_id, sheet_name,
               oauth_access_token, oauth_refresh_token, oauth_token_expires_at,
               oauth_user_email, field_mappings
        FROM customer_google_sheets_config
        WHERE customer_id = $1
          AND is_active = true
        ORDER BY created_at DESC
        LIMIT 1
        """,
        tenant_id,
    )


async def update_field_mappings(tenant_id: str, field_mappings: dict[str, Any]) -> bool:
    row = await db.fetch_one(
        """
        UPDATE customer_google_sheets_config
        SET field_mappings = $2
        WHERE customer_id = $1
          AND is_active = true
        RETURNING id
        """,
        tenant_id,
        field_mappings,
    )
    return row is not None


async def update_sheet_selection(tenant_id: str, *, spreadsheet_id: str, sheet_name: str) -> bool:
    row = await db.fetch_one(
        """
        UPDATE customer_google_sheets_config
        SET spreadsheet_id = $2,
            sheet_name = $3
        WHERE customer_id = $1
          AND is_active = true
        RETURNING id
        """,
        tenant_id,
        spreadsheet_id,
        sheet_name,
    )
    return row is not None


async def update_access_token(config_id: int, *, encrypted_access_token: str, expires_at: datetime) -> None:
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    await db.execute(
        """
        UPDATE customer_google_sheets_config
        SET oauth_access_token = $2,
            oauth_token_expires_at = $3
        WHERE id = $1
        """,
        config_id,
        encrypted_access_token,
        expires_at,
    )


async def replace_google_sheets_credentials(
    tenant_id: str,
    *,
    encrypted_access_token: str,
    encrypted_refresh_token: str,
    expires_at: datetime,
    user_email: str | None,
) -> None:
    """
    Deactivate the tenant's current Sheets config and store a fresh one.
    """
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    await db.execute_many_in_transaction(
        [
            (
                """
                UPDATE customer_google_sheets_config
                SET is_active = false
                WHERE customer_id = $1
                """,
                (tenant_id,),
            ),
            (
                """
                INSERT INTO customer_google_sheets_config (
                  customer_id, spreadsheet_id, sheet_name,
                  oauth_access_token, oauth_refresh_token, oauth_token_expires_at,
                  oauth_user_email, is_active
                )
                VALUES ($1, '', '', $2, $3, $4, $5, true)
                """,
                (tenant_id, encrypted_access_token, encrypted_refresh_token, expires_at, user_email),
            ),
        ]
    )
