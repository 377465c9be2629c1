"""
Record, schema and table endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from adapters.dependencies import get_adapter_factory
from adapters.factory import AdapterFactory
from auth import dependencies as auth_dependencies

from . import schemas, service

router = APIRouter(prefix="/data/{tenant_id}")


@router.get("/records")
async def list_records(
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    table_id: str | None = Query(default=None, alias="tableId"),
    limit: int = Query(100, ge=1, le=10000),
    offset: int = Query(0, ge=0),
    filter: str | None = Query(default=None),
    sort: str | None = Query(default=None),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.list_records(
        factory,
        tenant_id,
        table_id=table_id,
        limit=limit,
        offset=offset,
        filter_raw=filter,
        sort=sort,
    )


@router.get("/records/{record_id}")
async def get_record(
    record_id: str,
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    table_id: str | None = Query(default=None, alias="tableId"),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.get_record(factory, tenant_id, record_id, table_id=table_id)


@router.post("/records", status_code=status.HTTP_201_CREATED)
async def create_record(
    request: schemas.FeatureIn,
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    table_id: str | None = Query(default=None, alias="tableId"),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.create_record(factory, tenant_id, request.as_feature(), table_id=table_id)


@router.put("/records/{record_id}")
async def update_record(
    record_id: str,
    request: schemas.FeatureIn,
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    table_id: str | None = Query(default=None, alias="tableId"),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.update_record(
        factory,
        tenant_id,
        record_id,
        request.as_feature(),
        table_id=table_id,
    )


@router.delete("/records/{record_id}")
async def delete_record(
    record_id: str,
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    table_id: str | None = Query(default=None, alias="tableId"),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.delete_record(factory, tenant_id, record_id, table_id=table_id)


@router.get("/schema")
async def get_schema(
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    table_id: str | None = Query(default=None, alias="tableId"),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.schema(factory, tenant_id, table_id=table_id)


@router.get("/tables")
async def get_tables(
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.tables(factory, tenant_id)


@router.get("/connection")
async def test_connection(
    tenant_id: str = Depends(auth_dependencies.require_tenant_access),
    factory: AdapterFactory = Depends(get_adapter_factory),
) -> dict:
    return await service.connection_status(factory, tenant_id)
