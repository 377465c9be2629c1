"""
Onboarding endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from adapters.dependencies import get_adapter_factory
from adapters.factory import AdapterFactory
from auth import dependencies as auth_dependencies

from . import schemas, service

router = APIRouter(prefix="/onboarding/{tenant_id}")


@router.post("/detect-location-fields")
async def detect_location_fields(
    request: schemas.DetectFieldsRequest,
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.detect_fields(
        factory,
        tenant_id,
        table_id=request.table_id,
        spreadsheet_id=request.spreadsheet_id,
        sheet_name=request.sheet_name,
    )


@router.put("/field-mappings")
async def save_field_mappings(
    request: schemas.SaveFieldMappingsRequest,
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.save_field_mappings(factory, tenant_id, request.field_mappings)


@router.put("/google-sheets-config")
async def save_google_sheets_config(
    request: schemas.SaveSheetsConfigRequest,
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.save_google_sheets_config(
        factory,
        tenant_id,
        spreadsheet_id=request.spreadsheet_id,
        sheet_name=request.sheet_name,
        mapping=request.field_mappings,
    )
