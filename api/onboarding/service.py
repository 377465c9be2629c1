"""
Onboarding business logic.

Detection runs against a throwaway adapter (never the cached one) so that
spreadsheet/sheet overrides and an empty field mapping can be applied
without disturbing live traffic.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from fastapi import HTTPException

from adapters import repository as config_repository
from adapters.factory import AdapterFactory
from adapters.schemas import DATA_SOURCE_GOOGLE_SHEETS, FieldMapping, GoogleSheetsConfig
from detection.fields import detect_location_fields
from geometry import codec
from records.service import backend_errors

from . import repository

logger = logging.getLogger(__name__)

SAMPLE_RECORD_LIMIT = 10
SAMPLE_FEATURES_RETURNED = 3


def _sample_rows(headers: list[str], features: list[dict[str, Any]]) -> list[list[Any]]:
    """
    Rebuild header-aligned rows from features.

    Adapters move the geometry cell out of `properties`; put its WKT back so
    the heuristic can see geometry-looking values.
    """
    rows = []
    for feature in features:
        properties = feature.get("properties") or {}
        geometry_wkt = codec.to_wkt(feature.get("geometry"))
        row = []
        for header in headers:
            if header in properties:
                row.append(properties[header])
            else:
                row.append(geometry_wkt)
        rows.append(row)
    return rows


def _header_name(field: dict[str, Any]) -> str:
    return str(field.get("name") or field.get("title") or field.get("id") or "")


async def detect_fields(
    factory: AdapterFactory,
    tenant_id: str,
    *,
    table_id: str | None = None,
    spreadsheet_id: str | None = None,
    sheet_name: str | None = None,
) -> dict[str, Any]:
    with backend_errors("load data source configuration", tenant_id=tenant_id):
        data_source = await factory.get_data_source_type(tenant_id)
        config = await factory.load_config(tenant_id, table_id, data_source=data_source)

    if isinstance(config, GoogleSheetsConfig):
        config = replace(
            config,
            spreadsheet_id=spreadsheet_id or config.spreadsheet_id,
            sheet_name=sheet_name or config.sheet_name,
            field_mapping=FieldMapping(),
        )

    with backend_errors("detect location fields", tenant_id=tenant_id):
        adapter = factory.create_adapter(data_source, config)
        await adapter.connect()
        schema = await adapter.get_schema()
        collection = await adapter.fetch_records(limit=SAMPLE_RECORD_LIMIT, offset=0)

    headers = [name for name in (_header_name(f) for f in schema) if name]
    features = collection.get("features") or []
    detection = detect_location_fields(headers, _sample_rows(headers, features))
    mapping = detection.to_field_mapping()

    await repository.upsert_onboarding_status(
        tenant_id,
        field_mappings=mapping.to_stored(),
        location_fields_detected=detection.has_location_data,
        current_step="complete" if detection.has_location_data else "location_detection",
    )

    if not detection.has_location_data:
        logger.info("location_fields_missing tenant_id=%s headers=%s", tenant_id, len(headers))

    return {
        "success": True,
        "detected": detection.as_dict(),
        "fieldMappings": mapping.to_stored(),
        "allFields": headers,
        "sampleData": features[:SAMPLE_FEATURES_RETURNED],
        "requiresAssistance": not detection.has_location_data,
    }


async def save_field_mappings(
    factory: AdapterFactory,
    tenant_id: str,
    mapping: FieldMapping,
) -> dict[str, Any]:
    with backend_errors("load data source configuration", tenant_id=tenant_id):
        data_source = await factory.get_data_source_type(tenant_id)

    stored = mapping.to_stored()
    if data_source == DATA_SOURCE_GOOGLE_SHEETS:
        updated = await config_repository.update_field_mappings(tenant_id, stored)
        if not updated:
            raise HTTPException(status_code=404, detail="Google Sheets configuration not found.")

    await repository.mark_field_mappings_saved(tenant_id, field_mappings=stored)

    # Live adapters hold the old mapping.
    factory.clear_cache(tenant_id)
    return {"success": True, "fieldMappings": stored}


async def save_google_sheets_config(
    factory: AdapterFactory,
    tenant_id: str,
    *,
    spreadsheet_id: str,
    sheet_name: str,
    mapping: FieldMapping,
) -> dict[str, Any]:
    """
    Point the tenant's OAuth-connected Sheets config at a spreadsheet tab and
    make Google Sheets the tenant's data source.
    """
    selected = await config_repository.update_sheet_selection(
        tenant_id,
        spreadsheet_id=spreadsheet_id,
        sheet_name=sheet_name,
    )
    if not selected:
        raise HTTPException(
            status_code=404,
            detail="OAuth configuration not found. Please authenticate first.",
        )

    stored = mapping.to_stored()
    await config_repository.update_field_mappings(tenant_id, stored)
    await config_repository.set_tenant_data_source(tenant_id, DATA_SOURCE_GOOGLE_SHEETS)

    factory.clear_cache(tenant_id)
    logger.info("sheets_config_saved tenant_id=%s sheet=%s", tenant_id, sheet_name)
    return {"success": True, "fieldMappings": stored}
