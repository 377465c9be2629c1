import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from adapters.base import ConnectionResult, DataSourceAdapter, RecordNotFoundError, make_feature, make_feature_collection
from adapters.factory import TenantNotFoundError
from auth import dependencies as auth_dependencies
from core.http import BackendHTTPError
from core.vault import VaultError
from records import router as records_router


class MemoryAdapter(DataSourceAdapter):
    """
    Adapter over a dict; leaves get_table_list unimplemented.
    """

    def __init__(self) -> None:
        super().__init__()
        self.connected = True
        self.records = {"r1": make_feature("r1", {"type": "Point", "coordinates": [1, 2]}, {"name": "one"})}
        self.last_fetch: dict | None = None

    async def fetch_records(self, limit=100, offset=0, filter=None, sort=None):
        self.last_fetch = {"limit": limit, "offset": offset, "filter": filter, "sort": sort}
        return make_feature_collection(list(self.records.values()))

    async def get_record(self, record_id):
        return self.records.get(record_id)

    async def create_record(self, feature):
        created = make_feature("r2", feature["geometry"], feature["properties"])
        self.records["r2"] = created
        return created

    async def update_record(self, record_id, feature):
        if record_id not in self.records:
            raise RecordNotFoundError(record_id)
        self.records[record_id] = make_feature(record_id, feature["geometry"], feature["properties"])
        return self.records[record_id]

    async def delete_record(self, record_id):
        self.records.pop(record_id)
        return {"success": True, "id": record_id}

    async def get_schema(self):
        raise BackendHTTPError("Teable API error: 500 boom", status_code=500)

    async def test_connection(self):
        return ConnectionResult(success=True, details={"endpoint": "/api/base/b/table"})

    def data_source_type(self):
        return "teable"


class StubFactory:
    def __init__(self, adapter=None, error=None) -> None:
        self.adapter = adapter
        self.error = error
        self.requested: list[tuple] = []

    async def get_adapter(self, tenant_id, table_id=None):
        self.requested.append((tenant_id, table_id))
        if self.error is not None:
            raise self.error
        return self.adapter


def _client(factory, claims=None):
    app = FastAPI()
    app.include_router(records_router.router)
    app.state.adapter_factory = factory
    if claims is not None:
        app.dependency_overrides[auth_dependencies.get_current_claims] = lambda: claims
    return TestClient(app)


TENANT_CLAIMS = {"type": "access", "tenant_id": "t1", "role": "admin"}


@pytest.fixture
def adapter():
    return MemoryAdapter()


@pytest.fixture
def factory(adapter):
    return StubFactory(adapter)


def test_list_records(factory, adapter):
    client = _client(factory, TENANT_CLAIMS)

    resp = client.get(
        "/data/t1/records",
        params={"tableId": "tbl1", "limit": 5, "offset": 2, "filter": '{"name": "one"}', "sort": "name"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["type"] == "FeatureCollection"
    assert body["dataSource"] == "teable"
    assert body["features"][0]["geometry"] == {"type": "Point", "coordinates": [1, 2]}
    assert factory.requested == [("t1", "tbl1")]
    assert adapter.last_fetch == {"limit": 5, "offset": 2, "filter": {"name": "one"}, "sort": "name"}


def test_invalid_filter_is_rejected(factory):
    resp = _client(factory, TENANT_CLAIMS).get("/data/t1/records", params={"filter": "{nope"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid filter format."


def test_get_record_and_missing_record(factory):
    client = _client(factory, TENANT_CLAIMS)

    assert client.get("/data/t1/records/r1").json()["properties"] == {"name": "one"}
    assert client.get("/data/t1/records/zzz").status_code == 404


def test_create_record(factory, adapter):
    client = _client(factory, TENANT_CLAIMS)

    resp = client.post(
        "/data/t1/records",
        json={
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [-122.42, 37.77]},
            "properties": {"name": "Plot A"},
        },
    )

    assert resp.status_code == 201
    assert resp.json()["id"] == "r2"
    assert adapter.records["r2"]["geometry"] == {"type": "Point", "coordinates": [-122.42, 37.77]}


def test_create_drops_malformed_geometry(factory, adapter):
    client = _client(factory, TENANT_CLAIMS)

    resp = client.post(
        "/data/t1/records",
        json={"type": "Feature", "geometry": {"type": "Point", "coordinates": []}, "properties": {"a": 1}},
    )

    assert resp.status_code == 201
    assert adapter.records["r2"]["geometry"] is None


def test_create_rejects_non_feature(factory):
    resp = _client(factory, TENANT_CLAIMS).post("/data/t1/records", json={"type": "Point", "coordinates": [1, 2]})

    assert resp.status_code == 422


def test_update_unknown_record_is_404(factory):
    resp = _client(factory, TENANT_CLAIMS).put(
        "/data/t1/records/missing",
        json={"type": "Feature", "geometry": None, "properties": {}},
    )

    assert resp.status_code == 404
    assert "missing" in resp.json()["detail"]


def test_delete_record(factory, adapter):
    resp = _client(factory, TENANT_CLAIMS).delete("/data/t1/records/r1")

    assert resp.json() == {"success": True, "id": "r1"}
    assert adapter.records == {}


def test_backend_failure_is_502(factory):
    resp = _client(factory, TENANT_CLAIMS).get("/data/t1/schema")

    assert resp.status_code == 502
    assert resp.json()["detail"].startswith("Failed to read schema")


def test_unimplemented_operation_is_501(factory):
    assert _client(factory, TENANT_CLAIMS).get("/data/t1/tables").status_code == 501


def test_connection_status(factory):
    resp = _client(factory, TENANT_CLAIMS).get("/data/t1/connection")

    assert resp.json() == {"dataSource": "teable", "success": True, "endpoint": "/api/base/b/table"}


@pytest.mark.parametrize(
    "error,status_code",
    [
        (TenantNotFoundError("Tenant not found: t1"), 404),
        (VaultError("tag mismatch"), 500),
    ],
)
def test_factory_errors_are_mapped(error, status_code):
    resp = _client(StubFactory(error=error), TENANT_CLAIMS).get("/data/t1/records")

    assert resp.status_code == status_code


def test_other_tenant_is_forbidden(factory):
    resp = _client(factory, TENANT_CLAIMS).get("/data/t2/records")

    assert resp.status_code == 403
    assert factory.requested == []


def test_super_admin_may_access_any_tenant(factory):
    resp = _client(factory, {"type": "access", "role": "super_admin"}).get("/data/t2/records")

    assert resp.status_code == 200


def test_missing_token_is_401(factory):
    assert _client(factory).get("/data/t1/records").status_code == 401
