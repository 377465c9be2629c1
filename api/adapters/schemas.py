"""
Adapter configuration and field-mapping models.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, field_validator

DATA_SOURCE_TEABLE = "teable"
DATA_SOURCE_GOOGLE_SHEETS = "google_sheets"


class FieldMapping(BaseModel):
    """
    Which backend columns play which geographic role.

    Persisted as jsonb with exactly these keys.
    """

    geometry_column: str | None = None
    latitude_column: str | None = None
    longitude_column: str | None = None
    address_column: str | None = None
    id_column: str | None = None
    name_column: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_stored(cls, value: Any) -> FieldMapping:
        if value is None:
            return cls()
        if isinstance(value, str):
            value = json.loads(value) if value.strip() else {}
        if not isinstance(value, dict):
            return cls()
        return cls.model_validate(value)

    def to_stored(self) -> dict[str, str | None]:
        return self.model_dump()


@dataclass(frozen=True)
class TeableConfig:
    base_url: str
    space_id: str
    base_id: str
    access_token: str
    table_id: str | None = None


@dataclass(frozen=True)
class GoogleSheetsConfig:
    spreadsheet_id: str
    sheet_name: str
    access_token: str
    refresh_token: str | None = None
    field_mapping: FieldMapping = field(default_factory=FieldMapping)
