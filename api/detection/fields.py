"""
Location field detection.

Given column headers and a few sample rows, guess which columns play the
geometry / latitude / longitude / address / id / name roles. The result is
advisory: `has_location_data == False` is a normal outcome that the
onboarding flow routes to a human, not an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from adapters.schemas import FieldMapping
from geometry import codec

GEOMETRY_KEYWORDS = ("geometry", "geom", "wkt", "shape", "the_geom", "geojson", "geo")
LATITUDE_KEYWORDS = ("latitude", "lat", "northing", "y")
LONGITUDE_KEYWORDS = ("longitude", "lon", "lng", "long", "easting", "x")
ADDRESS_KEYWORDS = ("address", "location", "addr", "street", "place")
ID_KEYWORDS = ("id", "objectid", "fid", "gid", "feature_id")
NAME_KEYWORDS = ("name", "title", "label", "description", "desc")

GEOMETRY_SCORE = 30
COORDINATE_SCORE = 20
ADDRESS_SCORE = 10

GEOMETRY_SAMPLE_SIZE = 5

NO_LOCATION_SUGGESTION = (
    "No location data detected. You may need to add geometry, lat/lng, or address columns."
)


@dataclass(frozen=True)
class FieldDetection:
    geometry_column: str | None = None
    latitude_column: str | None = None
    longitude_column: str | None = None
    address_column: str | None = None
    id_column: str | None = None
    name_column: str | None = None
    confidence: int = 0
    suggestions: list[str] = field(default_factory=list)

    @property
    def has_location_data(self) -> bool:
        return bool(
            self.geometry_column
            or (self.latitude_column and self.longitude_column)
            or self.address_column
        )

    def to_field_mapping(self) -> FieldMapping:
        return FieldMapping(
            geometry_column=self.geometry_column,
            latitude_column=self.latitude_column,
            longitude_column=self.longitude_column,
            address_column=self.address_column,
            id_column=self.id_column,
            name_column=self.name_column,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "geometryColumn": self.geometry_column,
            "latitudeColumn": self.latitude_column,
            "longitudeColumn": self.longitude_column,
            "addressColumn": self.address_column,
            "idColumn": self.id_column,
            "nameColumn": self.name_column,
            "confidence": self.confidence,
            "suggestions": list(self.suggestions),
            "hasLocationData": self.has_location_data,
        }


def _contains_any(header: str, keywords: Sequence[str]) -> bool:
    return any(keyword in header for keyword in keywords)


def _matches_suffix(header: str, keywords: Sequence[str]) -> bool:
    # One-letter keywords ("x", "y") would match half of all English words as a suffix.
    for keyword in keywords:
        if header == keyword:
            return True
        if len(keyword) > 1 and header.endswith(keyword):
            return True
    return False


def _column_values(
    sample_rows: Sequence[Sequence[Any] | Mapping[str, Any]],
    header: str,
    index: int,
) -> list[Any]:
    values: list[Any] = []
    for row in sample_rows:
        if isinstance(row, Mapping):
            value = row.get(header)
        else:
            value = row[index] if index < len(row) else None
        if value not in (None, ""):
            values.append(value)
    return values


def detect_location_fields(
    headers: Sequence[str],
    sample_rows: Sequence[Sequence[Any] | Mapping[str, Any]],
) -> FieldDetection:
    found: dict[str, str | None] = {
        "geometry": None,
        "latitude": None,
        "longitude": None,
        "address": None,
        "id": None,
        "name": None,
    }
    confidence = 0
    suggestions: list[str] = []

    for index, header in enumerate(headers):
        header = str(header)
        lower = header.strip().lower()

        if found["geometry"] is None and _contains_any(lower, GEOMETRY_KEYWORDS):
            samples = _column_values(sample_rows, header, index)[:GEOMETRY_SAMPLE_SIZE]
            # A name like "geo_region" alone is not enough; require WKT-looking values.
            if any(codec.has_wkt_prefix(value) for value in samples):
                found["geometry"] = header
                confidence += GEOMETRY_SCORE
                suggestions.append(f"Geometry column detected: {header}")

        if _matches_suffix(lower, LATITUDE_KEYWORDS):
            if found["latitude"] is None:
                found["latitude"] = header
                confidence += COORDINATE_SCORE
        elif _matches_suffix(lower, LONGITUDE_KEYWORDS):
            if found["longitude"] is None:
                found["longitude"] = header
                confidence += COORDINATE_SCORE

        if found["address"] is None and _contains_any(lower, ADDRESS_KEYWORDS):
            found["address"] = header
            confidence += ADDRESS_SCORE
            suggestions.append(f"Address column found: {header} (requires geocoding)")

        if found["id"] is None and _matches_suffix(lower, ID_KEYWORDS):
            found["id"] = header

        if found["name"] is None and _contains_any(lower, NAME_KEYWORDS):
            found["name"] = header

    if found["latitude"] and found["longitude"]:
        suggestions.append(f"Lat/Lng pair detected: {found['latitude']}, {found['longitude']}")

    if found["id"] is None and len(headers) > 0:
        found["id"] = str(headers[0])
        suggestions.append(f"Using first column as ID: {headers[0]}")

    if found["name"] is None and len(headers) > 1:
        found["name"] = str(headers[1])

    has_location_data = bool(
        found["geometry"] or (found["latitude"] and found["longitude"]) or found["address"]
    )
    if not has_location_data:
        suggestions.append(NO_LOCATION_SUGGESTION)

    return FieldDetection(
        geometry_column=found["geometry"],
        latitude_column=found["latitude"],
        longitude_column=found["longitude"],
        address_column=found["address"],
        id_column=found["id"],
        name_column=found["name"],
        confidence=confidence,
        suggestions=suggestions,
    )
