"""
Google Sheets (spreadsheet-API backend) adapter.

Talks to the Sheets REST API v4 with the tenant's (already decrypted) OAuth
access token. Sheets has strict per-minute quotas, so the header row and the
data range are kept in a short-lived read-through cache; every mutation
drops the cache before returning so the next read sees the change.

Row 1 is the header row; data starts at row 2. A spreadsheet has no native
types, so the FieldMapping decides which columns hold geometry.
"""

from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable
from urllib.parse import quote

import httpx

from core.http import BackendHTTPError, request_json
from geometry import codec

from .base import (
    AdapterError,
    ConnectionResult,
    DataSourceAdapter,
    RecordNotFoundError,
    make_feature,
    make_feature_collection,
)
from .schemas import DATA_SOURCE_GOOGLE_SHEETS, GoogleSheetsConfig

logger = logging.getLogger(__name__)

SHEETS_API_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"
DEFAULT_CACHE_TTL_S = 30.0
DATA_RANGE = "2:10000"
SCHEMA_SAMPLE_ROWS = 10
VALUE_INPUT_OPTION = "USER_ENTERED"

_PLAIN_SHEET_NAME = re.compile(r"^[A-Za-z0-9_]+$")


def cache_ttl_s() -> float:
    raw = os.environ.get("SHEETS_CACHE_TTL_S", "").strip()
    if not raw:
        return DEFAULT_CACHE_TTL_S
    try:
        return max(0.0, float(raw))
    except ValueError:
        return DEFAULT_CACHE_TTL_S


def column_to_letter(column: int) -> str:
    """
    1 -> A, 26 -> Z, 27 -> AA, 52 -> AZ, 703 -> AAA.
    """
    letters = ""
    while column > 0:
        column, remainder = divmod(column - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def a1_range(sheet_name: str, cells: str) -> str:
    if _PLAIN_SHEET_NAME.match(sheet_name):
        return f"{sheet_name}!{cells}"
    escaped = sheet_name.replace("'", "''")
    return f"'{escaped}'!{cells}"


def infer_column_type(samples: list[Any]) -> str:
    if not samples:
        return "text"

    def _is_number(value: Any) -> bool:
        try:
            float(str(value).strip())
        except ValueError:
            return False
        return True

    def _is_date(value: Any) -> bool:
        try:
            datetime.fromisoformat(str(value).strip())
        except ValueError:
            return False
        return True

    if all(_is_number(v) for v in samples):
        return "number"
    if all(_is_date(v) for v in samples):
        return "date"
    return "text"


def _cell(row: list[Any], index: int) -> Any:
    # The API drops trailing empty cells, so rows can be shorter than the header.
    return row[index] if 0 <= index < len(row) else ""


class GoogleSheetsAdapter(DataSourceAdapter):
    def __init__(
        self,
        config: GoogleSheetsConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        cache_ttl: float | None = None,
    ) -> None:
        super().__init__()
        self.config = replace(config, field_mapping=config.field_mapping.model_copy())
        self.spreadsheet_id = config.spreadsheet_id
        self.sheet_name = config.sheet_name
        self.access_token = config.access_token
        self.field_mapping = self.config.field_mapping
        self.cache_ttl = cache_ttl_s() if cache_ttl is None else cache_ttl
        self._transport = transport
        self._clock = clock
        self._cached_headers: list[str] | None = None
        self._headers_loaded_at: float | None = None
        self._cached_rows: list[list[Any]] | None = None
        self._rows_loaded_at: float | None = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        if not self.spreadsheet_id or not self.access_token:
            raise AdapterError("Google Sheets adapter is missing spreadsheet id or access token.")

        return await request_json(
            label="Google Sheets",
            method=method,
            url=f"{SHEETS_API_BASE_URL}/{quote(self.spreadsheet_id, safe='')}{path}",
            headers={"Authorization": f"Bearer {self.access_token}"},
            params=params,
            json=body,
            transport=self._transport,
        )

    async def _get_values(self, cells: str) -> list[list[Any]]:
        encoded = quote(a1_range(self.sheet_name, cells), safe="")
        response = await self._request("GET", f"/values/{encoded}")
        return (response or {}).get("values") or []

    async def _get_metadata(self) -> dict[str, Any]:
        return await self._request("GET", "") or {}

    # -- cache -----------------------------------------------------------

    def _is_fresh(self, loaded_at: float | None) -> bool:
        return loaded_at is not None and (self._clock() - loaded_at) < self.cache_ttl

    def invalidate_cache(self) -> None:
        self._cached_headers = None
        self._headers_loaded_at = None
        self._cached_rows = None
        self._rows_loaded_at = None

    async def get_headers(self) -> list[str]:
        if self._cached_headers is not None and self._is_fresh(self._headers_loaded_at):
            return self._cached_headers

        values = await self._get_values("1:1")
        self._cached_headers = [str(h) for h in values[0]] if values else []
        self._headers_loaded_at = self._clock()
        return self._cached_headers

    async def get_rows(self) -> list[list[Any]]:
        if self._cached_rows is not None and self._is_fresh(self._rows_loaded_at):
            return self._cached_rows

        self._cached_rows = await self._get_values(DATA_RANGE)
        self._rows_loaded_at = self._clock()
        logger.debug(
            "sheets_rows_loaded spreadsheet_id=%s sheet=%s rows=%s",
            self.spreadsheet_id,
            self.sheet_name,
            len(self._cached_rows),
        )
        return self._cached_rows

    # -- connection ------------------------------------------------------

    async def connect(self) -> None:
        result = await self.test_connection()
        if not result.success:
            raise AdapterError(f"Google Sheets connection failed: {result.error}")
        self.connected = True

    async def test_connection(self) -> ConnectionResult:
        try:
            metadata = await self._get_metadata()
        except (BackendHTTPError, AdapterError) as exc:
            return ConnectionResult(success=False, error=str(exc))

        title = (metadata.get("properties") or {}).get("title")
        return ConnectionResult(success=True, details={"spreadsheet": title})

    async def ensure_connected(self) -> None:
        if not self.connected:
            await self.connect()

    # -- records ---------------------------------------------------------

    def _id_index(self, headers: list[str]) -> int:
        id_column = self.field_mapping.id_column or (headers[0] if headers else None)
        if id_column is None or id_column not in headers:
            raise AdapterError(f'ID column "{id_column}" not found')
        return headers.index(id_column)

    @staticmethod
    def _find_row(rows: list[list[Any]], id_index: int, record_id: Any) -> int:
        wanted = str(record_id)
        for position, row in enumerate(rows):
            if str(_cell(row, id_index)) == wanted:
                return position
        return -1

    async def fetch_records(
        self,
        limit: int = 1000,
        offset: int = 0,
        filter: Any = None,
        sort: str | None = None,
    ) -> dict[str, Any]:
        await self.ensure_connected()

        headers = await self.get_headers()
        rows = await self.get_rows()

        start = max(offset, 0)
        end = min(start + limit, len(rows))
        collection = self.to_feature_collection(rows[start:end], headers, start_index=start)
        collection["metadata"] = {
            "total": len(rows),
            "limit": limit,
            "offset": offset,
            "hasMore": end < len(rows),
        }
        collection["dataSource"] = self.data_source_type()
        return collection

    async def get_record(self, record_id: str) -> dict[str, Any] | None:
        await self.ensure_connected()

        headers = await self.get_headers()
        rows = await self.get_rows()
        position = self._find_row(rows, self._id_index(headers), record_id)
        if position == -1:
            return None
        return self.to_feature_collection([rows[position]], headers, start_index=position)["features"][0]

    async def create_record(self, feature: dict[str, Any]) -> dict[str, Any]:
        await self.ensure_connected()

        headers = await self.get_headers()
        if not headers:
            raise AdapterError("Sheet has no header row.")

        row = self.from_feature(feature, headers)
        target = quote(a1_range(self.sheet_name, f"A:{column_to_letter(len(headers))}"), safe="")
        try:
            await self._request(
                "POST",
                f"/values/{target}:append",
                params={"valueInputOption": VALUE_INPUT_OPTION, "insertDataOption": "INSERT_ROWS"},
                body={"values": [row]},
            )
        finally:
            self.invalidate_cache()

        rows = await self.get_rows()
        if not rows:
            raise AdapterError("Appended row not found after create.")
        position = len(rows) - 1
        return self.to_feature_collection([rows[position]], headers, start_index=position)["features"][0]

    async def update_record(self, record_id: str, feature: dict[str, Any]) -> dict[str, Any]:
        await self.ensure_connected()

        headers = await self.get_headers()
        rows = await self.get_rows()
        position = self._find_row(rows, self._id_index(headers), record_id)
        if position == -1:
            raise RecordNotFoundError(record_id)

        updated = self.from_feature(feature, headers, existing_row=rows[position])
        sheet_row = position + 2
        cells = f"A{sheet_row}:{column_to_letter(len(headers))}{sheet_row}"
        target = a1_range(self.sheet_name, cells)
        try:
            await self._request(
                "PUT",
                f"/values/{quote(target, safe='')}",
                params={"valueInputOption": VALUE_INPUT_OPTION},
                body={"range": target, "majorDimension": "ROWS", "values": [updated]},
            )
        finally:
            self.invalidate_cache()

        return self.to_feature_collection([updated], headers, start_index=position)["features"][0]

    async def delete_record(self, record_id: str) -> dict[str, Any]:
        await self.ensure_connected()

        headers = await self.get_headers()
        rows = await self.get_rows()
        position = self._find_row(rows, self._id_index(headers), record_id)
        if position == -1:
            raise RecordNotFoundError(record_id)

        sheet_id = await self.get_sheet_id()
        # Zero-based grid index; index 0 is the header row.
        start_index = position + 1
        try:
            await self._request(
                "POST",
                ":batchUpdate",
                body={
                    "requests": [
                        {
                            "deleteDimension": {
                                "range": {
                                    "sheetId": sheet_id,
                                    "dimension": "ROWS",
                                    "startIndex": start_index,
                                    "endIndex": start_index + 1,
                                }
                            }
                        }
                    ]
                },
            )
        finally:
            self.invalidate_cache()

        return {"success": True, "id": record_id}

    async def get_schema(self) -> list[dict[str, Any]]:
        await self.ensure_connected()

        headers = await self.get_headers()
        rows = await self.get_rows()
        sample = rows[:SCHEMA_SAMPLE_ROWS]

        schema = []
        for index, header in enumerate(headers):
            values = [_cell(row, index) for row in sample]
            values = [v for v in values if v is not None and v != ""]
            schema.append({"name": header, "type": infer_column_type(values), "index": index})
        return schema

    async def get_table_list(self) -> list[dict[str, Any]]:
        await self.ensure_connected()

        metadata = await self._get_metadata()
        tables = []
        for sheet in metadata.get("sheets") or []:
            props = sheet.get("properties") or {}
            grid = props.get("gridProperties") or {}
            tables.append(
                {
                    "id": props.get("sheetId"),
                    "name": props.get("title"),
                    "rowCount": grid.get("rowCount"),
                    "columnCount": grid.get("columnCount"),
                }
            )
        return tables

    async def get_sheet_id(self) -> int:
        """
        Resolve the integer sheetId of the configured tab by its title.
        """
        metadata = await self._get_metadata()
        for sheet in metadata.get("sheets") or []:
            props = sheet.get("properties") or {}
            if props.get("title") == self.sheet_name:
                return int(props.get("sheetId", 0))
        raise AdapterError(f'Sheet "{self.sheet_name}" not found in spreadsheet metadata.')

    # -- translation -----------------------------------------------------

    def to_feature_collection(
        self,
        records: list[list[Any]],
        headers: list[str] | None = None,
        *,
        start_index: int = 0,
    ) -> dict[str, Any]:
        if headers is None:
            if self._cached_headers is None:
                raise AdapterError("Sheet headers are not loaded.")
            headers = self._cached_headers

        mapping = self.field_mapping
        id_column = mapping.id_column or (headers[0] if headers else None)
        lat_column = mapping.latitude_column
        lng_column = mapping.longitude_column

        features = []
        for offset, row in enumerate(records):
            cells = {header: _cell(row, index) for index, header in enumerate(headers)}
            consumed: set[str] = set()
            geometry = None

            if mapping.geometry_column and mapping.geometry_column in cells:
                geometry = self.normalize_geometry(cells[mapping.geometry_column])
                if geometry is not None:
                    consumed.add(mapping.geometry_column)

            if geometry is None and lat_column in cells and lng_column in cells:
                lat = cells[lat_column]
                lng = cells[lng_column]
                if lat not in (None, "") and lng not in (None, ""):
                    geometry = codec.parse_lat_lng(lat, lng)
                    if geometry is not None:
                        consumed.update((lat_column, lng_column))

            properties = {h: v for h, v in cells.items() if h not in consumed}
            record_id = cells.get(id_column) if id_column else None
            if record_id in (None, ""):
                record_id = f"row-{start_index + offset}"

            features.append(make_feature(record_id, geometry, properties))
        return make_feature_collection(features)

    def from_feature(
        self,
        feature: dict[str, Any],
        headers: list[str] | None = None,
        existing_row: list[Any] | None = None,
    ) -> list[Any]:
        """
        Build (or update in place) a sheet row for `feature`.

        When `existing_row` is given its values are kept for every column the
        feature does not touch.
        """
        if headers is None:
            if self._cached_headers is None:
                raise AdapterError("Sheet headers are not loaded.")
            headers = self._cached_headers

        row = list(existing_row) if existing_row is not None else []
        if len(row) < len(headers):
            row.extend([""] * (len(headers) - len(row)))

        mapping = self.field_mapping
        geometry = feature.get("geometry")
        if geometry:
            if mapping.geometry_column:
                if mapping.geometry_column not in headers:
                    raise AdapterError(f'Mapped geometry column "{mapping.geometry_column}" not found in sheet headers')
                row[headers.index(mapping.geometry_column)] = codec.to_wkt(geometry) or ""
            elif mapping.latitude_column and mapping.longitude_column:
                for column in (mapping.latitude_column, mapping.longitude_column):
                    if column not in headers:
                        raise AdapterError(f'Mapped coordinate column "{column}" not found in sheet headers')
                if geometry.get("type") == "Point":
                    lng, lat = geometry["coordinates"][0], geometry["coordinates"][1]
                    row[headers.index(mapping.longitude_column)] = lng
                    row[headers.index(mapping.latitude_column)] = lat
                else:
                    logger.warning(
                        "sheets_geometry_not_written spreadsheet_id=%s type=%s reason=latlng_mapping_needs_point",
                        self.spreadsheet_id,
                        geometry.get("type"),
                    )
            else:
                logger.warning(
                    "sheets_geometry_not_written spreadsheet_id=%s reason=no_geometry_mapping",
                    self.spreadsheet_id,
                )

        for key, value in (feature.get("properties") or {}).items():
            if key in headers:
                row[headers.index(key)] = "" if value is None else str(value)

        return row

    def normalize_geometry(self, value: Any) -> dict[str, Any] | None:
        return codec.auto_detect(value)

    def data_source_type(self) -> str:
        return DATA_SOURCE_GOOGLE_SHEETS
