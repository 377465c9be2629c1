"""
Record endpoints business logic.

Resolves the tenant's adapter through the AdapterFactory and converts adapter
and backend failures into HTTP errors.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import HTTPException

from adapters.base import AdapterError, AdapterNotImplementedError, DataSourceAdapter, RecordNotFoundError
from adapters.factory import (
    AdapterFactory,
    ConfigurationNotFoundError,
    TenantNotFoundError,
    UnsupportedDataSourceError,
)
from core.http import BackendHTTPError
from core.vault import VaultError

logger = logging.getLogger(__name__)


@contextmanager
def backend_errors(action: str, *, tenant_id: str) -> Iterator[None]:
    try:
        yield
    except (TenantNotFoundError, ConfigurationNotFoundError, RecordNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except UnsupportedDataSourceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except AdapterNotImplementedError as exc:
        raise HTTPException(status_code=501, detail=str(exc)) from exc
    except VaultError as exc:
        logger.error("credential_decrypt_failed tenant_id=%s action=%s", tenant_id, action)
        raise HTTPException(status_code=500, detail="Stored credentials could not be decrypted.") from exc
    except (AdapterError, BackendHTTPError) as exc:
        logger.warning("backend_call_failed tenant_id=%s action=%s error=%s", tenant_id, action, exc)
        raise HTTPException(status_code=502, detail=f"Failed to {action}: {exc}") from exc


def parse_filter(raw: str | None) -> Any:
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid filter format.") from exc


async def resolve_adapter(
    factory: AdapterFactory,
    tenant_id: str,
    table_id: str | None = None,
) -> DataSourceAdapter:
    with backend_errors("connect to data source", tenant_id=tenant_id):
        return await factory.get_adapter(tenant_id, table_id)


async def list_records(
    factory: AdapterFactory,
    tenant_id: str,
    *,
    table_id: str | None,
    limit: int,
    offset: int,
    filter_raw: str | None = None,
    sort: str | None = None,
) -> dict[str, Any]:
    record_filter = parse_filter(filter_raw)
    adapter = await resolve_adapter(factory, tenant_id, table_id)
    with backend_errors("fetch records", tenant_id=tenant_id):
        collection = await adapter.fetch_records(limit=limit, offset=offset, filter=record_filter, sort=sort)
    collection["dataSource"] = adapter.data_source_type()
    return collection


async def get_record(
    factory: AdapterFactory,
    tenant_id: str,
    record_id: str,
    *,
    table_id: str | None,
) -> dict[str, Any]:
    adapter = await resolve_adapter(factory, tenant_id, table_id)
    with backend_errors("fetch record", tenant_id=tenant_id):
        feature = await adapter.get_record(record_id)
    if feature is None:
        raise HTTPException(status_code=404, detail="Record not found.")
    return feature


async def create_record(
    factory: AdapterFactory,
    tenant_id: str,
    feature: dict[str, Any],
    *,
    table_id: str | None,
) -> dict[str, Any]:
    adapter = await resolve_adapter(factory, tenant_id, table_id)
    with backend_errors("create record", tenant_id=tenant_id):
        created = await adapter.create_record(feature)
    logger.info(
        "record_created tenant_id=%s data_source=%s record_id=%s",
        tenant_id,
        adapter.data_source_type(),
        created.get("id"),
    )
    return created


async def update_record(
    factory: AdapterFactory,
    tenant_id: str,
    record_id: str,
    feature: dict[str, Any],
    *,
    table_id: str | None,
) -> dict[str, Any]:
    adapter = await resolve_adapter(factory, tenant_id, table_id)
    with backend_errors("update record", tenant_id=tenant_id):
        updated = await adapter.update_record(record_id, feature)
    logger.info(
        "record_updated tenant_id=%s data_source=%s record_id=%s",
        tenant_id,
        adapter.data_source_type(),
        record_id,
    )
    return updated


async def delete_record(
    factory: AdapterFactory,
    tenant_id: str,
    record_id: str,
    *,
    table_id: str | None,
) -> dict[str, Any]:
    adapter = await resolve_adapter(factory, tenant_id, table_id)
    with backend_errors("delete record", tenant_id=tenant_id):
        result = await adapter.delete_record(record_id)
    logger.info(
        "record_deleted tenant_id=%s data_source=%s record_id=%s",
        tenant_id,
        adapter.data_source_type(),
        record_id,
    )
    return result


async def schema(factory: AdapterFactory, tenant_id: str, *, table_id: str | None) -> dict[str, Any]:
    adapter = await resolve_adapter(factory, tenant_id, table_id)
    with backend_errors("read schema", tenant_id=tenant_id):
        fields = await adapter.get_schema()
    return {"dataSource": adapter.data_source_type(), "fields": fields}


async def tables(factory: AdapterFactory, tenant_id: str) -> dict[str, Any]:
    adapter = await resolve_adapter(factory, tenant_id)
    with backend_errors("list tables", tenant_id=tenant_id):
        table_list = await adapter.get_table_list()
    return {"dataSource": adapter.data_source_type(), "tables": table_list}


async def connection_status(factory: AdapterFactory, tenant_id: str) -> dict[str, Any]:
    adapter = await resolve_adapter(factory, tenant_id)
    with backend_errors("test connection", tenant_id=tenant_id):
        result = await adapter.test_connection()
    return {"dataSource": adapter.data_source_type(), **result.as_dict()}
