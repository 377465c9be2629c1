"""
Adapter factory: tenant -> connected, cached DataSourceAdapter.

The factory is the only owner of adapter configuration. It reads the tenant's
declared data source, loads that backend's active config row, decrypts OAuth
tokens through the CredentialVault (Google Sheets only), builds and connects
the adapter, and caches it per (tenant, table).

Stored configuration changes are not detected here; whoever changes a
tenant's backend config must call `clear_cache(tenant_id)`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from core.vault import CredentialVault

from . import repository
from .base import AdapterError, DataSourceAdapter
from .cache import AdapterCache, cache_key
from .google_sheets import GoogleSheetsAdapter
from .schemas import (
    DATA_SOURCE_GOOGLE_SHEETS,
    DATA_SOURCE_TEABLE,
    FieldMapping,
    GoogleSheetsConfig,
    TeableConfig,
)
from .teable import TeableAdapter

logger = logging.getLogger(__name__)


class TenantNotFoundError(AdapterError):
    pass


class ConfigurationNotFoundError(AdapterError):
    pass


class UnsupportedDataSourceError(AdapterError):
    pass


AdapterConfig = TeableConfig | GoogleSheetsConfig


class AdapterFactory:
    def __init__(
        self,
        *,
        vault: CredentialVault,
        store: Any = repository,
        cache: AdapterCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        # `store` is anything exposing the async config lookups of adapters.repository.
        self.vault = vault
        self.store = store
        self.cache = cache if cache is not None else AdapterCache()
        self.transport = transport

    async def get_adapter(self, tenant_id: str, table_id: str | None = None) -> DataSourceAdapter:
        key = cache_key(tenant_id, table_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        generation = self.cache.generation(tenant_id)
        data_source = await self.get_data_source_type(tenant_id)
        config = await self.load_config(tenant_id, table_id, data_source=data_source)
        adapter = self.create_adapter(data_source, config)
        await adapter.connect()

        # Two concurrent misses may both get here; the later put wins and both adapters are usable.
        if not self.cache.put_if_current(key, adapter, generation):
            # Invalidated while connecting; the config this adapter holds may be stale.
            logger.info("adapter_not_cached tenant_id=%s table_id=%s reason=invalidated", tenant_id, key[1])
            return adapter
        logger.info(
            "adapter_created tenant_id=%s table_id=%s data_source=%s",
            tenant_id,
            key[1],
            data_source,
        )
        return adapter

    def clear_cache(self, tenant_id: str | None = None) -> int:
        if tenant_id:
            return self.cache.invalidate_tenant(tenant_id)
        return self.cache.invalidate_all()

    async def get_data_source_type(self, tenant_id: str) -> str:
        tenant = await self.store.get_tenant(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(f"Tenant not found: {tenant_id}")
        return str(tenant.get("data_source") or "")

    async def load_config(
        self,
        tenant_id: str,
        table_id: str | None = None,
        *,
        data_source: str | None = None,
    ) -> AdapterConfig:
        if data_source is None:
            data_source = await self.get_data_source_type(tenant_id)

        if data_source == DATA_SOURCE_TEABLE:
            return await self._load_teable_config(tenant_id, table_id)
        if data_source == DATA_SOURCE_GOOGLE_SHEETS:
            return await self._load_google_sheets_config(tenant_id)
        raise UnsupportedDataSourceError(f"Unsupported data source type: {data_source}")

    async def _load_teable_config(self, tenant_id: str, table_id: str | None) -> TeableConfig:
        row = await self.store.get_teable_config(tenant_id)
        if row is None:
            raise ConfigurationNotFoundError("Teable configuration not found for tenant.")

        return TeableConfig(
            base_url=str(row.get("base_url") or ""),
            space_id=str(row.get("space_id") or ""),
            base_id=str(row.get("base_id") or ""),
            access_token=str(row.get("access_token") or ""),
            table_id=table_id,
        )

    async def _load_google_sheets_config(self, tenant_id: str) -> GoogleSheetsConfig:
        row = await self.store.get_google_sheets_config(tenant_id)
        if row is None:
            raise ConfigurationNotFoundError("Google Sheets configuration not found for tenant.")
        if not row.get("oauth_access_token"):
            raise ConfigurationNotFoundError("Google Sheets configuration has no OAuth token.")

        # VaultError propagates: an undecryptable token must not become an empty credential.
        access_token = self.vault.decrypt(row["oauth_access_token"])
        refresh_token = None
        if row.get("oauth_refresh_token"):
            refresh_token = self.vault.decrypt(row["oauth_refresh_token"])

        return GoogleSheetsConfig(
            spreadsheet_id=str(row.get("spreadsheet_id") or ""),
            sheet_name=str(row.get("sheet_name") or ""),
            access_token=access_token,
            refresh_token=refresh_token,
            field_mapping=FieldMapping.from_stored(row.get("field_mappings")),
        )

    def create_adapter(self, data_source: str, config: AdapterConfig) -> DataSourceAdapter:
        """
        Build an unconnected, uncached adapter for `config`.
        """
        if data_source == DATA_SOURCE_TEABLE and isinstance(config, TeableConfig):
            return TeableAdapter(config, transport=self.transport)
        if data_source == DATA_SOURCE_GOOGLE_SHEETS and isinstance(config, GoogleSheetsConfig):
            return GoogleSheetsAdapter(config, transport=self.transport)
        raise UnsupportedDataSourceError(f"Unsupported data source type: {data_source}")
