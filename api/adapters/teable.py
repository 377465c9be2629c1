"""
Teable (table-API backend) adapter.

Used endpoints:
- GET    /api/base/{baseId}/table            -> table list
- GET    /api/table/{tableId}/record         -> {"records": [{"id", "fields"}], ...}
- GET    /api/table/{tableId}/record/{id}    -> {"id", "fields"}
- POST   /api/table/{tableId}/record         -> {"records": [...]}
- PATCH  /api/table/{tableId}/record/{id}    -> {"id", "fields"}
- PATCH  /api/table/{tableId}/record         -> {"records": [...]}  (batch form)
- DELETE /api/table/{tableId}/record/{id}
- GET    /api/table/{tableId}/field          -> field descriptors
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any

import httpx

from core.http import BackendHTTPError, normalize_base_url, request_json
from geometry import codec

from .base import (
    AdapterError,
    ConnectionResult,
    DataSourceAdapter,
    make_feature,
    make_feature_collection,
)
from .schemas import DATA_SOURCE_TEABLE, TeableConfig

logger = logging.getLogger(__name__)

GEOMETRY_FIELD_NAMES = ("geometry", "geom", "shape", "wkt", "the_geom")


class TeableAdapter(DataSourceAdapter):
    def __init__(
        self,
        config: TeableConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self.config = replace(config)
        self.base_url = (config.base_url or "").strip().rstrip("/")
        self.space_id = config.space_id
        self.base_id = config.base_id
        self.access_token = config.access_token
        self.table_id = config.table_id or None
        self._transport = transport

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        if not self.base_url or not self.access_token:
            raise AdapterError("Teable API not properly configured.")

        return await request_json(
            label="Teable",
            method=method,
            url=endpoint,
            base_url=normalize_base_url(self.base_url, label="Teable"),
            headers={"Authorization": f"Bearer {self.access_token}"},
            params=params,
            json=body,
            transport=self._transport,
        )

    def _require_table(self) -> str:
        if not self.table_id:
            raise AdapterError("Table ID not set for Teable adapter.")
        return self.table_id

    async def connect(self) -> None:
        result = await self.test_connection()
        if not result.success:
            raise AdapterError(result.error or "Failed to connect to Teable.")
        self.connected = True

    async def test_connection(self) -> ConnectionResult:
        # Teable deployments differ in which read endpoints they expose; any one answering is enough.
        endpoints = [
            f"/api/base/{self.base_id}/table",
            f"/api/base/{self.base_id}",
            f"/api/space/{self.space_id}/base",
            f"/api/space/{self.space_id}",
        ]
        last_error: str | None = None
        for endpoint in endpoints:
            try:
                await self._request("GET", endpoint)
            except (BackendHTTPError, AdapterError) as exc:
                last_error = str(exc)
                logger.debug("teable_probe_failed endpoint=%s error=%s", endpoint, exc)
                continue
            return ConnectionResult(success=True, details={"endpoint": endpoint})

        return ConnectionResult(
            success=False,
            error=f"All test endpoints failed (last error: {last_error})",
        )

    async def fetch_records(
        self,
        limit: int = 100,
        offset: int = 0,
        filter: Any = None,
        sort: str | None = None,
    ) -> dict[str, Any]:
        table_id = self._require_table()

        params: dict[str, Any] = {}
        if limit:
            params["limit"] = limit
        if offset:
            params["offset"] = offset
        if sort:
            params["sort"] = sort
        if filter:
            params["filter"] = json.dumps(filter)

        result = await self._request("GET", f"/api/table/{table_id}/record", params=params or None)
        result = result or {}
        collection = self.to_feature_collection(result.get("records") or [])

        metadata: dict[str, Any] = {"limit": limit, "offset": offset}
        total = result.get("total")
        if isinstance(total, int):
            metadata["total"] = total
            metadata["hasMore"] = offset + len(collection["features"]) < total
        collection["metadata"] = metadata
        collection["dataSource"] = self.data_source_type()
        return collection

    async def get_record(self, record_id: str) -> dict[str, Any] | None:
        table_id = self._require_table()
        try:
            result = await self._request("GET", f"/api/table/{table_id}/record/{record_id}")
        except BackendHTTPError as exc:
            if exc.status_code == 404:
                return None
            raise

        if not result:
            return None
        features = self.to_feature_collection([result])["features"]
        return features[0] if features else None

    async def create_record(self, feature: dict[str, Any]) -> dict[str, Any]:
        table_id = self._require_table()
        body = {"records": [{"fields": self.from_feature(feature)}]}

        result = await self._request("POST", f"/api/table/{table_id}/record", body=body)
        records = (result or {}).get("records") or []
        if not records:
            raise AdapterError("Teable returned no created record.")
        return self.to_feature_collection([records[0]])["features"][0]

    async def update_record(self, record_id: str, feature: dict[str, Any]) -> dict[str, Any]:
        table_id = self._require_table()
        fields = self.from_feature(feature)

        try:
            result = await self._request(
                "PATCH",
                f"/api/table/{table_id}/record/{record_id}",
                body={"record": {"fields": fields}},
            )
            records = [result] if result else []
        except BackendHTTPError as exc:
            logger.warning(
                "teable_update_fallback table_id=%s record_id=%s error=%s",
                table_id,
                record_id,
                exc,
            )
            result = await self._request(
                "PATCH",
                f"/api/table/{table_id}/record",
                body={"records": [{"id": record_id, "fields": fields}]},
            )
            records = (result or {}).get("records") or ([result] if result else [])

        if not records:
            raise AdapterError(f"Teable returned no updated record for {record_id}.")
        return self.to_feature_collection(records[:1])["features"][0]

    async def delete_record(self, record_id: str) -> dict[str, Any]:
        table_id = self._require_table()
        await self._request("DELETE", f"/api/table/{table_id}/record/{record_id}")
        return {"success": True, "id": record_id}

    async def get_schema(self) -> list[dict[str, Any]]:
        if not self.table_id:
            tables = await self.get_table_list()
            if not tables:
                raise AdapterError("No tables found in Teable base.")
            self.table_id = tables[0]["id"]

        response = await self._request("GET", f"/api/table/{self.table_id}/field")
        if isinstance(response, dict):
            return response.get("fields") or []
        return response or []

    async def get_table_list(self) -> list[dict[str, Any]]:
        response = await self._request("GET", f"/api/base/{self.base_id}/table")
        if isinstance(response, dict):
            return response.get("tables") or []
        return response or []

    def to_feature_collection(self, records: list[dict[str, Any]]) -> dict[str, Any]:
        features = []
        for record in records:
            properties = dict(record.get("fields") or {})
            geometry = None

            geometry_field = self.find_geometry_field(properties)
            if geometry_field is not None:
                geometry = self.normalize_geometry(properties.pop(geometry_field))

            features.append(make_feature(record.get("id"), geometry, properties))
        return make_feature_collection(features)

    def from_feature(self, feature: dict[str, Any]) -> dict[str, Any]:
        fields = dict(feature.get("properties") or {})

        geometry = feature.get("geometry")
        if geometry:
            wkt = codec.to_wkt(geometry)
            if wkt:
                fields["geometry"] = wkt
        return fields

    def normalize_geometry(self, value: Any) -> dict[str, Any] | None:
        if not value:
            return None
        if isinstance(value, str):
            return codec.parse_wkt(value) or codec.parse_geojson(value)
        if isinstance(value, dict):
            return codec.parse_geojson(value)
        return None

    def find_geometry_field(self, properties: dict[str, Any]) -> str | None:
        for name in GEOMETRY_FIELD_NAMES:
            if name in properties:
                return name

        for key, value in properties.items():
            if codec.has_wkt_prefix(value) and self.normalize_geometry(value) is not None:
                return key
        return None

    def data_source_type(self) -> str:
        return DATA_SOURCE_TEABLE
