from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import aiohttp
import pytest
from influxdb_client.client.exceptions import InfluxDBError
from influxdb_client.rest import ApiException

from pythingy import _store
from pythingy._store import InfluxStore
from pythingy.config import ThingyConfig
from pythingy.exceptions import ThingyConnectionError, ThingyQueryError
from pythingy.models.point import Point


class _FakeWriteApi:
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.writes: list[dict[str, Any]] = []
        self.closed = False

    def write(self, **kwargs: Any) -> None:
        self.writes.append(kwargs)

    def close(self) -> None:
        self.closed = True


class _FakeBucketsApi:
    def __init__(self, bucket: Any = None, error: Exception | None = None) -> None:
        self.bucket = bucket
        self.error = error
        self.looked_up: list[str] = []

    def find_bucket_by_name(self, name: str) -> Any:
        self.looked_up.append(name)
        if self.error is not None:
            raise self.error
        return self.bucket


class _FakeSyncClient:
    instances: list[_FakeSyncClient] = []
    buckets = _FakeBucketsApi()

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.write_apis: list[_FakeWriteApi] = []
        self.closed = False
        _FakeSyncClient.instances.append(self)

    def write_api(self, **kwargs: Any) -> _FakeWriteApi:
        api = _FakeWriteApi(**kwargs)
        self.write_apis.append(api)
        return api

    def buckets_api(self) -> _FakeBucketsApi:
        return self.buckets

    def close(self) -> None:
        self.closed = True


class _FakeQueryApi:
    def __init__(self, owner: _FakeAsyncClient) -> None:
        self.owner = owner

    async def query_stream(self, query: str, org: str | None = None) -> AsyncIterator[Any]:
        self.owner.queries.append((query, org))
        if self.owner.fail_on_start is not None:
            raise self.owner.fail_on_start
        return self._records()

    async def _records(self) -> AsyncIterator[Any]:
        for index, values in enumerate(self.owner.records):
            if self.owner.fail_after == index:
                assert self.owner.fail_mid_stream is not None
                raise self.owner.fail_mid_stream
            yield SimpleNamespace(values=values)


class _FakeAsyncClient:
    instances: list[_FakeAsyncClient] = []
    records: list[dict[str, Any]] = []
    fail_on_start: Exception | None = None
    fail_mid_stream: Exception | None = None
    fail_after: int | None = None

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.queries: list[tuple[str, str | None]] = []
        self.closed = False
        _FakeAsyncClient.instances.append(self)

    def query_api(self) -> _FakeQueryApi:
        return _FakeQueryApi(self)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_influx(monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    _FakeSyncClient.instances = []
    _FakeSyncClient.buckets = _FakeBucketsApi()
    _FakeAsyncClient.instances = []
    _FakeAsyncClient.records = []
    _FakeAsyncClient.fail_on_start = None
    _FakeAsyncClient.fail_mid_stream = None
    _FakeAsyncClient.fail_after = None
    monkeypatch.setattr(_store, "InfluxDBClient", _FakeSyncClient)
    monkeypatch.setattr(_store, "InfluxDBClientAsync", _FakeAsyncClient)
    return SimpleNamespace(sync=_FakeSyncClient, async_=_FakeAsyncClient)


def _config() -> ThingyConfig:
    return ThingyConfig(influx_url="http://influx:8086", influx_token="tok", influx_org="org", influx_bucket="bucket")


async def _open_store() -> InfluxStore:
    store = InfluxStore(_config())
    await store.open()
    return store


# ------------------------------------------------------------------
# Lifecycle and writes
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_open_creates_clients_and_close_releases_them(fake_influx: SimpleNamespace) -> None:
    store = await _open_store()

    assert store.is_open
    sync_client = fake_influx.sync.instances[-1]
    async_client = fake_influx.async_.instances[-1]
    assert sync_client.kwargs == {"url": "http://influx:8086", "token": "tok", "org": "org"}
    write_api = sync_client.write_apis[-1]
    assert write_api.kwargs["write_options"].batch_size == 10
    assert write_api.kwargs["write_options"].flush_interval == 1000

    await store.close()

    assert not store.is_open
    assert write_api.closed
    assert sync_client.closed
    assert async_client.closed


@pytest.mark.asyncio
async def test_write_point_forwards_bucket_org_and_record(fake_influx: SimpleNamespace) -> None:
    store = await _open_store()
    point = Point.create(
        "thingy91",
        tags={"device": "blue-1"},
        fields={"TEMP": 21.5},
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
    )

    store.write_point(point)

    (write,) = fake_influx.sync.instances[-1].write_apis[-1].writes
    assert write["bucket"] == "bucket"
    assert write["org"] == "org"
    assert write["record"].to_line_protocol() == "thingy91,device=blue-1 TEMP=21.5 1714564800000"


@pytest.mark.asyncio
async def test_closed_store_raises_connection_error(fake_influx: SimpleNamespace) -> None:
    store = InfluxStore(_config())
    point = Point.create("thingy91", tags={}, fields={"TEMP": 1.0}, timestamp=datetime.now(UTC))

    with pytest.raises(ThingyConnectionError):
        store.write_point(point)
    with pytest.raises(ThingyConnectionError):
        async for _ in store.query_stream("q"):
            pass
    with pytest.raises(ThingyConnectionError):
        store.retention_policy()


# ------------------------------------------------------------------
# Streaming queries
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_query_stream_yields_record_values(fake_influx: SimpleNamespace) -> None:
    fake_influx.async_.records = [{"_value": 1.0}, {"_value": 2.0}]
    store = await _open_store()

    values = [values async for values in store.query_stream("from(bucket: \"bucket\")")]

    assert values == [{"_value": 1.0}, {"_value": 2.0}]
    assert fake_influx.async_.instances[-1].queries == [('from(bucket: "bucket")', "org")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        ApiException(status=400, reason="Bad Request"),
        InfluxDBError(message="bucket not found"),
        aiohttp.ClientConnectionError("connection refused"),
    ],
)
async def test_query_errors_before_first_row_map_to_query_error(
    fake_influx: SimpleNamespace, error: Exception
) -> None:
    fake_influx.async_.fail_on_start = error
    store = await _open_store()

    with pytest.raises(ThingyQueryError) as exc_info:
        async for _ in store.query_stream("q"):
            pass

    assert exc_info.value.query == "q"
    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_query_error_mid_stream_maps_to_query_error(fake_influx: SimpleNamespace) -> None:
    fake_influx.async_.records = [{"_value": 1.0}, {"_value": 2.0}]
    fake_influx.async_.fail_after = 1
    fake_influx.async_.fail_mid_stream = aiohttp.ClientPayloadError("connection reset")
    store = await _open_store()
    seen: list[Any] = []

    with pytest.raises(ThingyQueryError):
        async for values in store.query_stream("q"):
            seen.append(values)

    assert seen == [{"_value": 1.0}]


@pytest.mark.asyncio
async def test_api_exception_message_carries_http_status(fake_influx: SimpleNamespace) -> None:
    fake_influx.async_.fail_on_start = ApiException(status=401, reason="Unauthorized")
    store = await _open_store()

    with pytest.raises(ThingyQueryError, match="HTTP 401 Unauthorized"):
        async for _ in store.query_stream("q"):
            pass


# ------------------------------------------------------------------
# Retention policy
# ------------------------------------------------------------------


def _bucket(*rules: tuple[str, int]) -> SimpleNamespace:
    return SimpleNamespace(retention_rules=[SimpleNamespace(type=kind, every_seconds=every) for kind, every in rules])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("bucket", "expected"),
    [
        (_bucket(("expire", 259200)), (3, "d")),
        (_bucket(("expire", 7200)), (2, "h")),
        (_bucket(("shard", 3600)), (0, "h")),
        (_bucket(), (0, "h")),
        (None, (0, "h")),
    ],
)
async def test_retention_policy_maps_bucket_rules(
    fake_influx: SimpleNamespace, bucket: Any, expected: tuple[float, str]
) -> None:
    fake_influx.sync.buckets = _FakeBucketsApi(bucket)
    store = await _open_store()

    policy = store.retention_policy()

    assert (policy.value, policy.unit) == expected
    assert fake_influx.sync.buckets.looked_up == ["bucket"]


@pytest.mark.asyncio
async def test_retention_lookup_failure_maps_to_query_error(fake_influx: SimpleNamespace) -> None:
    fake_influx.sync.buckets = _FakeBucketsApi(error=ApiException(status=404, reason="Not Found"))
    store = await _open_store()

    with pytest.raises(ThingyQueryError):
        store.retention_policy()
