"""
Onboarding status persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

from core import db


async def upsert_onboarding_status(
    tenant_id: str,
    *,
    field_mappings: dict[str, Any],
    location_fields_detected: bool,
    current_step: str,
) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        INSERT INTO customer_onboarding_status (
          customer_id, field_mappings, location_fields_detected, current_step
        )
        VALUES ($1, $2, $3, $4)
        ON CONFLICT (customer_id) DO UPDATE
        SET field_mappings = EXCLUDED.field_mappings,
            location_fields_detected = EXCLUDED.location_fields_detected,
            current_step = EXCLUDED.current_step,
            updated_at = now()
        RETURNING customer_id, field_mappings, location_fields_detected, current_step
        """,
        tenant_id,
        field_mappings,
        location_fields_detected,
        current_step,
    )


async def mark_field_mappings_saved(tenant_id: str, *, field_mappings: dict[str, Any]) -> None:
    await db.execute(
        """
        UPDATE customer_onboarding_status
        SET field_mappings = $2,
            location_fields_detected = true,
            current_step = 'complete',
            updated_at = now()
        WHERE customer_id = $1
        """,
        tenant_id,
        field_mappings,
    )
