import asyncio

import pytest

from adapters.base import (
    AdapterNotImplementedError,
    ConnectionResult,
    DataSourceAdapter,
    make_feature,
    make_feature_collection,
)


class HalfAdapter(DataSourceAdapter):
    async def connect(self) -> None:
        self.connected = True


def test_unimplemented_async_operations_raise():
    adapter = HalfAdapter()

    asyncio.run(adapter.connect())
    assert adapter.connected is True

    with pytest.raises(AdapterNotImplementedError, match="fetch_records"):
        asyncio.run(adapter.fetch_records())
    with pytest.raises(AdapterNotImplementedError, match="HalfAdapter"):
        asyncio.run(adapter.delete_record("1"))


def test_unimplemented_sync_operations_raise():
    adapter = DataSourceAdapter()

    with pytest.raises(NotImplementedError):
        adapter.to_feature_collection([])
    with pytest.raises(NotImplementedError):
        adapter.data_source_type()


def test_disconnect_resets_flag():
    adapter = HalfAdapter()
    asyncio.run(adapter.connect())
    asyncio.run(adapter.disconnect())
    assert adapter.connected is False


def test_connection_result_dict():
    assert ConnectionResult(success=True, details={"endpoint": "/x"}).as_dict() == {
        "success": True,
        "endpoint": "/x",
    }
    assert ConnectionResult(success=False, error="boom").as_dict() == {"success": False, "error": "boom"}


def test_feature_helpers():
    feature = make_feature("r1", None, {"a": 1})
    assert feature == {"type": "Feature", "id": "r1", "geometry": None, "properties": {"a": 1}}
    assert make_feature_collection([feature]) == {"type": "FeatureCollection", "features": [feature]}
