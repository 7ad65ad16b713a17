"""InfluxDB time-series store.

Writes go through the batching ``WriteApi`` of the synchronous client
(fire-and-forget; the client flushes on its own thread). Queries stream
through ``InfluxDBClientAsync`` so rows can be consumed as they arrive.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any, Protocol

import aiohttp
from influxdb_client import InfluxDBClient, WriteApi, WriteOptions
from influxdb_client.client.exceptions import InfluxDBError
from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync
from influxdb_client.rest import ApiException

from pythingy.config import ThingyConfig
from pythingy.exceptions import ThingyConnectionError, ThingyQueryError
from pythingy.models.point import Point
from pythingy.models.timer import RetentionPolicy

_logger = logging.getLogger(__name__)


class TimeSeriesStore(Protocol):
    """Structural store interface used by the encoder and the row stream.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`InfluxStore`) concrete.
    """

    def write_point(self, point: Point) -> None:
        ...

    def query_stream(self, query: str) -> AsyncIterator[Mapping[str, Any]]:
        ...


class InfluxStore:
    """:class:`TimeSeriesStore` backed by InfluxDB 2.x."""

    def __init__(self, config: ThingyConfig) -> None:
        self._config = config
        self._client: InfluxDBClient | None = None
        self._write_api: WriteApi | None = None
        self._async_client: InfluxDBClientAsync | None = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def open(self) -> None:
        """Create the write and query clients. Must run inside the event loop."""
        if self._client is not None:
            return
        config = self._config
        self._client = InfluxDBClient(url=config.influx_url, token=config.influx_token, org=config.influx_org)
        self._write_api = self._client.write_api(
            write_options=WriteOptions(
                batch_size=config.batch_size,
                flush_interval=config.flush_interval_ms,
            ),
            error_callback=self._on_write_error,
        )
        self._async_client = InfluxDBClientAsync(
            url=config.influx_url,
            token=config.influx_token,
            org=config.influx_org,
        )
        _logger.debug("InfluxDB clients opened url=%s bucket=%s", config.influx_url, config.influx_bucket)

    async def close(self) -> None:
        """Flush pending writes and close both clients."""
        write_api = self._write_api
        client = self._client
        async_client = self._async_client
        self._write_api = None
        self._client = None
        self._async_client = None
        try:
            if write_api is not None:
                write_api.close()
            if client is not None:
                client.close()
        finally:
            if async_client is not None:
                await async_client.close()
        _logger.debug("InfluxDB clients closed")

    def _on_write_error(self, conf: tuple[str, str, str], data: Any, exception: InfluxDBError) -> None:
        _logger.warning("InfluxDB batch write failed bucket=%s: %s", conf[0], exception)

    def write_point(self, point: Point) -> None:
        """Queue *point* for the next batch flush."""
        write_api = self._write_api
        if write_api is None:
            raise ThingyConnectionError("InfluxStore is not open")
        write_api.write(
            bucket=self._config.influx_bucket,
            org=self._config.influx_org,
            record=point.to_influx(),
        )

    async def query_stream(self, query: str) -> AsyncIterator[Mapping[str, Any]]:
        """Yield each record's ``values`` mapping as the store streams it."""
        async_client = self._async_client
        if async_client is None:
            raise ThingyConnectionError("InfluxStore is not open")
        try:
            records = await async_client.query_api().query_stream(query, org=self._config.influx_org)
            async for record in records:
                yield record.values
        except ApiException as exc:
            raise ThingyQueryError(
                f"InfluxDB rejected query: HTTP {exc.status} {exc.reason}",
                query=query,
            ) from exc
        except (InfluxDBError, aiohttp.ClientError) as exc:
            raise ThingyQueryError(f"InfluxDB query failed: {exc}", query=query) from exc

    def retention_policy(self) -> RetentionPolicy:
        """Look up the bucket's expiry rule. Blocking; run in an executor."""
        client = self._client
        if client is None:
            raise ThingyConnectionError("InfluxStore is not open")
        try:
            bucket = client.buckets_api().find_bucket_by_name(self._config.influx_bucket)
        except (ApiException, InfluxDBError) as exc:
            raise ThingyQueryError(f"Bucket lookup failed: {exc}") from exc
        if bucket is None or not bucket.retention_rules:
            return RetentionPolicy.from_seconds(None)
        rule = bucket.retention_rules[0]
        if rule.type != "expire":
            return RetentionPolicy.from_seconds(None)
        return RetentionPolicy.from_seconds(rule.every_seconds)
