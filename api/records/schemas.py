"""
GeoJSON request bodies for record endpoints.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from geometry import codec


class FeatureIn(BaseModel):
    type: Literal["Feature"]
    id: str | int | None = None
    geometry: dict[str, Any] | None = None
    properties: dict[str, Any] = Field(default_factory=dict)

    @field_validator("properties", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def as_feature(self) -> dict[str, Any]:
        # Malformed geometry is dropped rather than rejected; the adapter stores the properties.
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": codec.parse_geojson(self.geometry) if self.geometry else None,
            "properties": dict(self.properties),
        }
