"""
Geometry codec.

All geometries handled by the service are GeoJSON geometry dicts with
coordinates in [longitude, latitude] order. WKT only ever appears inside
backend-native storage.

Parsing never raises: malformed input becomes None ("no geometry") and the
caller decides whether an ungeometried feature is acceptable.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import shapely.wkt
from shapely.errors import ShapelyError
from shapely.geometry import mapping, shape

logger = logging.getLogger(__name__)

GEOMETRY_TYPES = (
    "Point",
    "LineString",
    "Polygon",
    "MultiPoint",
    "MultiLineString",
    "MultiPolygon",
    "GeometryCollection",
)

# Longest first so MULTIPOINT is not reported as POINT.
WKT_PREFIXES = (
    "GEOMETRYCOLLECTION",
    "MULTILINESTRING",
    "MULTIPOLYGON",
    "MULTIPOINT",
    "LINESTRING",
    "POLYGON",
    "POINT",
)


# Keyword, optional dimension tag, then "(" or EMPTY; "Point of contact" is prose.
_WKT_HEAD = re.compile(
    r"^\s*(?:" + "|".join(WKT_PREFIXES) + r")\s*(?:ZM|Z|M)?\s*(?:\(|EMPTY\b)",
    re.IGNORECASE,
)


def has_wkt_prefix(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return _WKT_HEAD.match(value) is not None


def _listify(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_listify(v) for v in value]
    return value


def _from_mapping(mapped: dict[str, Any]) -> dict[str, Any]:
    if mapped["type"] == "GeometryCollection":
        return {
            "type": "GeometryCollection",
            "geometries": [_from_mapping(g) for g in mapped.get("geometries", [])],
        }
    return {"type": mapped["type"], "coordinates": _listify(mapped["coordinates"])}


def parse_wkt(text: Any) -> dict[str, Any] | None:
    if not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None

    try:
        geom = shapely.wkt.loads(trimmed)
    except (ShapelyError, ValueError, TypeError):
        logger.debug("wkt_parse_failed value=%r", trimmed[:80])
        return None

    if geom.is_empty:
        return None
    parsed = _from_mapping(mapping(geom))
    return parsed if validate(parsed) else None


def parse_geojson(value: Any) -> dict[str, Any] | None:
    """
    Accept a geometry dict or JSON text; return it only if it is a valid geometry.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None

    if not isinstance(value, dict) or not value.get("type"):
        return None
    if "coordinates" not in value and "geometries" not in value:
        return None
    return value if validate(value) else None


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None


def parse_lat_lng(lat: Any, lng: Any) -> dict[str, Any] | None:
    latitude = _to_float(lat)
    longitude = _to_float(lng)
    if latitude is None or longitude is None:
        return None

    # NaN fails both comparisons, so it is rejected here as well.
    if not (-90.0 <= latitude <= 90.0) or not (-180.0 <= longitude <= 180.0):
        return None

    return {"type": "Point", "coordinates": [longitude, latitude]}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def auto_detect(
    value: Any,
    lat_column: str | None = None,
    lng_column: str | None = None,
    record: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """
    Best-effort geometry from an arbitrary cell value.

    Order: lat/lng pair from `record` (when both columns and the record are
    given), WKT prefix, GeoJSON text, already-structured geometry dict.
    """
    if lat_column and lng_column and record is not None:
        lat = record.get(lat_column)
        lng = record.get(lng_column)
        if not _is_blank(lat) and not _is_blank(lng):
            point = parse_lat_lng(lat, lng)
            if point is not None:
                return point

    if isinstance(value, str):
        trimmed = value.strip()
        if has_wkt_prefix(trimmed):
            return parse_wkt(trimmed)
        if trimmed.startswith("{") or trimmed.startswith("["):
            return parse_geojson(trimmed)
        return None

    if isinstance(value, dict) and value.get("type"):
        return value if validate(value) else None

    return None


def to_wkt(geometry: dict[str, Any] | None) -> str | None:
    if not geometry or not validate(geometry):
        return None
    try:
        return shape(geometry).wkt
    except (ShapelyError, ValueError, TypeError, KeyError, IndexError):
        logger.debug("wkt_serialize_failed type=%s", geometry.get("type"))
        return None


def validate(geometry: Any) -> bool:
    if not isinstance(geometry, dict):
        return False

    geometry_type = geometry.get("type")
    if geometry_type not in GEOMETRY_TYPES:
        return False

    if geometry_type == "GeometryCollection":
        members = geometry.get("geometries")
        if not isinstance(members, list) or not members:
            return False
        return all(validate(member) for member in members)

    coordinates = geometry.get("coordinates")
    return isinstance(coordinates, (list, tuple)) and len(coordinates) > 0


def _is_position(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) >= 2
        and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value[:2])
    )


def _positions(coordinates: Any) -> list[Any]:
    if _is_position(coordinates):
        return [coordinates]
    if isinstance(coordinates, (list, tuple)):
        found: list[Any] = []
        for item in coordinates:
            found.extend(_positions(item))
        return found
    return []


def extract_coordinates(geometry: dict[str, Any] | None) -> list[Any]:
    if not isinstance(geometry, dict):
        return []
    if geometry.get("type") == "GeometryCollection":
        found: list[Any] = []
        for member in geometry.get("geometries") or []:
            found.extend(extract_coordinates(member))
        return found
    return _positions(geometry.get("coordinates"))


def bounds(geometry: dict[str, Any] | None) -> dict[str, float] | None:
    if not validate(geometry):
        return None

    positions = extract_coordinates(geometry)
    if not positions:
        return None

    lngs = [p[0] for p in positions]
    lats = [p[1] for p in positions]
    return {
        "minLng": min(lngs),
        "maxLng": max(lngs),
        "minLat": min(lats),
        "maxLat": max(lats),
    }
