"""
Data source adapter contract.

Concrete adapters (Teable, Google Sheets) override every method. Calling an
operation the subclass does not implement raises AdapterNotImplementedError
instead of silently doing nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.http import BackendHTTPError


class AdapterError(RuntimeError):
    pass


class AdapterNotImplementedError(AdapterError, NotImplementedError):
    pass


class RecordNotFoundError(AdapterError):
    def __init__(self, record_id: Any) -> None:
        super().__init__(f'Record with ID "{record_id}" not found')
        self.record_id = record_id


@dataclass(frozen=True)
class ConnectionResult:
    success: bool
    error: str | None = None
    details: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            payload["error"] = self.error
        if self.details:
            payload.update(self.details)
        return payload


def make_feature(record_id: Any, geometry: dict | None, properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "id": record_id,
        "geometry": geometry,
        "properties": properties,
    }


def make_feature_collection(features: list[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": features}


class DataSourceAdapter:
    def __init__(self) -> None:
        self.connected = False

    def _not_implemented(self, operation: str) -> AdapterNotImplementedError:
        return AdapterNotImplementedError(
            f"{operation}() must be implemented by {type(self).__name__}"
        )

    async def connect(self) -> None:
        raise self._not_implemented("connect")

    async def disconnect(self) -> None:
        self.connected = False

    async def test_connection(self) -> ConnectionResult:
        raise self._not_implemented("test_connection")

    async def fetch_records(
        self,
        limit: int = 100,
        offset: int = 0,
        filter: Any = None,
        sort: str | None = None,
    ) -> dict[str, Any]:
        raise self._not_implemented("fetch_records")

    async def get_record(self, record_id: str) -> dict[str, Any] | None:
        raise self._not_implemented("get_record")

    async def create_record(self, feature: dict[str, Any]) -> dict[str, Any]:
        raise self._not_implemented("create_record")

    async def update_record(self, record_id: str, feature: dict[str, Any]) -> dict[str, Any]:
        raise self._not_implemented("update_record")

    async def delete_record(self, record_id: str) -> dict[str, Any]:
        raise self._not_implemented("delete_record")

    async def get_schema(self) -> list[dict[str, Any]]:
        raise self._not_implemented("get_schema")

    async def get_table_list(self) -> list[dict[str, Any]]:
        raise self._not_implemented("get_table_list")

    def to_feature_collection(self, records: list[Any]) -> dict[str, Any]:
        raise self._not_implemented("to_feature_collection")

    def from_feature(self, feature: dict[str, Any]) -> Any:
        raise self._not_implemented("from_feature")

    def normalize_geometry(self, value: Any) -> dict[str, Any] | None:
        raise self._not_implemented("normalize_geometry")

    def data_source_type(self) -> str:
        raise self._not_implemented("data_source_type")


__all__ = [
    "AdapterError",
    "AdapterNotImplementedError",
    "BackendHTTPError",
    "ConnectionResult",
    "DataSourceAdapter",
    "RecordNotFoundError",
    "make_feature",
    "make_feature_collection",
]
