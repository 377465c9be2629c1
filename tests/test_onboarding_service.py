import asyncio

import httpx
import pytest
from fastapi import HTTPException

from adapters import repository as config_repository
from adapters.cache import cache_key
from adapters.factory import AdapterFactory
from adapters.schemas import FieldMapping
from onboarding import repository as onboarding_repository
from onboarding import service


@pytest.fixture
def saved(monkeypatch):
    calls: dict[str, list] = {"status": [], "saved": [], "mappings": []}

    async def upsert_onboarding_status(tenant_id, **kwargs):
        calls["status"].append((tenant_id, kwargs))
        return None

    async def mark_field_mappings_saved(tenant_id, *, field_mappings):
        calls["saved"].append((tenant_id, field_mappings))

    async def update_field_mappings(tenant_id, field_mappings):
        calls["mappings"].append((tenant_id, field_mappings))
        return tenant_id != "t-gone"

    monkeypatch.setattr(onboarding_repository, "upsert_onboarding_status", upsert_onboarding_status)
    monkeypatch.setattr(onboarding_repository, "mark_field_mappings_saved", mark_field_mappings_saved)
    monkeypatch.setattr(config_repository, "update_field_mappings", update_field_mappings)
    return calls


def teable_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/base/bse1/table":
            return httpx.Response(200, json=[{"id": "tbl1", "name": "Plots"}])
        if path == "/api/table/tbl1/field":
            return httpx.Response(
                200,
                json=[{"name": "id"}, {"name": "name"}, {"name": "latitude"}, {"name": "longitude"}],
            )
        if path == "/api/table/tbl1/record":
            return httpx.Response(
                200,
                json={
                    "records": [
                        {"id": "rec1", "fields": {"id": 1, "name": "a", "latitude": 37.7, "longitude": -122.4}},
                        {"id": "rec2", "fields": {"id": 2, "name": "b", "latitude": 37.8, "longitude": -122.5}},
                    ]
                },
            )
        return httpx.Response(404, text="unknown")

    return httpx.MockTransport(handler)


def test_detect_fields_on_teable(vault, store, saved):
    factory = AdapterFactory(vault=vault, store=store, transport=teable_transport())

    result = asyncio.run(service.detect_fields(factory, "t-teable"))

    assert result["success"] is True
    assert result["requiresAssistance"] is False
    assert result["allFields"] == ["id", "name", "latitude", "longitude"]
    assert result["detected"]["latitudeColumn"] == "latitude"
    assert result["fieldMappings"]["longitude_column"] == "longitude"
    assert len(result["sampleData"]) == 2

    tenant_id, status = saved["status"][0]
    assert tenant_id == "t-teable"
    assert status["location_fields_detected"] is True
    assert status["current_step"] == "complete"
    # Detection never touches the live adapter cache.
    assert len(factory.cache) == 0


def test_detect_fields_on_sheets_uses_override_and_blank_mapping(vault, store, saved):
    store.tenants["t-sheets"] = {"id": "t-sheets", "data_source": "google_sheets"}
    store.google_sheets["t-sheets"] = {
        "spreadsheet_id": "configured-sheet",
        "sheet_name": "Plots",
        "oauth_access_token": vault.encrypt("ya29.access"),
        "field_mappings": {"latitude_column": "lat", "longitude_column": "lng"},
    }
    seen_paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        seen_paths.append(path)
        if path == "/v4/spreadsheets/other-sheet":
            return httpx.Response(200, json={"properties": {"title": "Other"}})
        if path.endswith("/values/Parcels!1:1"):
            return httpx.Response(200, json={"values": [["parcel", "geom", "owner"]]})
        if path.endswith("/values/Parcels!2:10000"):
            return httpx.Response(
                200,
                json={"values": [["P-1", "POLYGON ((0 0, 1 0, 1 1, 0 0))", "ann"], ["P-2", "", "bo"]]},
            )
        return httpx.Response(404, text="unknown")

    factory = AdapterFactory(vault=vault, store=store, transport=httpx.MockTransport(handler))

    result = asyncio.run(
        service.detect_fields(factory, "t-sheets", spreadsheet_id="other-sheet", sheet_name="Parcels")
    )

    assert all(p.startswith("/v4/spreadsheets/other-sheet") for p in seen_paths)
    assert result["detected"]["geometryColumn"] == "geom"
    assert result["detected"]["idColumn"] == "parcel"
    assert result["detected"]["hasLocationData"] is True


def test_detect_fields_without_location_requires_assistance(vault, store, saved):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/base/bse1/table":
            return httpx.Response(200, json=[{"id": "tbl1"}])
        if path == "/api/table/tbl1/field":
            return httpx.Response(200, json=[{"name": "sku"}, {"name": "description"}, {"name": "price"}])
        return httpx.Response(200, json={"records": [{"id": "rec1", "fields": {"sku": "A", "description": "x", "price": 1}}]})

    factory = AdapterFactory(vault=vault, store=store, transport=httpx.MockTransport(handler))

    result = asyncio.run(service.detect_fields(factory, "t-teable"))

    assert result["requiresAssistance"] is True
    assert saved["status"][0][1]["current_step"] == "location_detection"


def test_detect_fields_unknown_tenant_is_404(vault, store, saved):
    factory = AdapterFactory(vault=vault, store=store, transport=teable_transport())

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(service.detect_fields(factory, "nobody"))

    assert excinfo.value.status_code == 404


def test_save_field_mappings_clears_tenant_cache(vault, store, saved):
    store.tenants["t-sheets"] = {"id": "t-sheets", "data_source": "google_sheets"}
    factory = AdapterFactory(vault=vault, store=store)
    factory.cache.put(cache_key("t-sheets"), object())
    factory.cache.put(cache_key("t-teable"), object())
    mapping = FieldMapping(geometry_column="geom", id_column="parcel")

    result = asyncio.run(service.save_field_mappings(factory, "t-sheets", mapping))

    assert result["success"] is True
    assert saved["mappings"] == [("t-sheets", mapping.to_stored())]
    assert saved["saved"] == [("t-sheets", mapping.to_stored())]
    assert factory.cache.keys() == [("t-teable", "default")]


def test_save_field_mappings_without_sheets_config_is_404(vault, store, saved):
    store.tenants["t-gone"] = {"id": "t-gone", "data_source": "google_sheets"}
    factory = AdapterFactory(vault=vault, store=store)

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(service.save_field_mappings(factory, "t-gone", FieldMapping()))

    assert excinfo.value.status_code == 404


def test_save_google_sheets_config_switches_data_source(monkeypatch, vault, store, saved):
    selections = []
    sources = []

    async def update_sheet_selection(tenant_id, *, spreadsheet_id, sheet_name):
        selections.append((tenant_id, spreadsheet_id, sheet_name))
        return True

    async def set_tenant_data_source(tenant_id, data_source):
        sources.append((tenant_id, data_source))

    monkeypatch.setattr(config_repository, "update_sheet_selection", update_sheet_selection)
    monkeypatch.setattr(config_repository, "set_tenant_data_source", set_tenant_data_source)
    factory = AdapterFactory(vault=vault, store=store)
    factory.cache.put(cache_key("t-teable"), object())
    mapping = FieldMapping(latitude_column="lat", longitude_column="lng")

    result = asyncio.run(
        service.save_google_sheets_config(
            factory,
            "t-teable",
            spreadsheet_id="sheet123",
            sheet_name="Plots",
            mapping=mapping,
        )
    )

    assert result["success"] is True
    assert selections == [("t-teable", "sheet123", "Plots")]
    assert saved["mappings"] == [("t-teable", mapping.to_stored())]
    assert sources == [("t-teable", "google_sheets")]
    assert len(factory.cache) == 0


def test_save_google_sheets_config_requires_oauth_first(monkeypatch, vault, store, saved):
    async def update_sheet_selection(tenant_id, *, spreadsheet_id, sheet_name):
        return False

    monkeypatch.setattr(config_repository, "update_sheet_selection", update_sheet_selection)

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(
            service.save_google_sheets_config(
                AdapterFactory(vault=vault, store=store),
                "t1",
                spreadsheet_id="s",
                sheet_name="Plots",
                mapping=FieldMapping(),
            )
        )

    assert excinfo.value.status_code == 404
    assert saved["mappings"] == []
