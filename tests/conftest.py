import httpx
import pytest

from core.vault import CredentialVault


class FakeConfigStore:
    """
    Stand-in for adapters.repository with in-memory tenant rows.
    """

    def __init__(self) -> None:
        self.tenants: dict[str, dict] = {}
        self.teable: dict[str, dict] = {}
        self.google_sheets: dict[str, dict] = {}
        self.lookups = 0

    async def get_tenant(self, tenant_id):
        self.lookups += 1
        return self.tenants.get(tenant_id)

    async def get_teable_config(self, tenant_id):
        return self.teable.get(tenant_id)

    async def get_google_sheets_config(self, tenant_id):
        return self.google_sheets.get(tenant_id)


@pytest.fixture
def ok_transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"properties": {"title": "ok"}, "records": [], "sheets": []})

    return httpx.MockTransport(handler)


@pytest.fixture
def vault():
    return CredentialVault("unit-test-secret", iterations=1000)


@pytest.fixture
def store():
    store = FakeConfigStore()
    store.tenants["t-teable"] = {"id": "t-teable", "data_source": "teable"}
    store.teable["t-teable"] = {
        "base_url": "https://teable.example.com",
        "space_id": "spc1",
        "base_id": "bse1",
        "access_token": "plain-token",
    }
    return store
