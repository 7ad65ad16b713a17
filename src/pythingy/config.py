"""Client configuration for pythingy."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pythingy._constants import (
    DEFAULT_BUCKET,
    DEFAULT_COMMAND_TOPIC,
    DEFAULT_MEASUREMENT,
    DEFAULT_ORG,
    DEFAULT_PROPERTY_INTERVAL,
    DEFAULT_STATISTIC_INTERVAL,
    DEFAULT_SUBSCRIBE_TOPICS,
    FIELD_KINDS,
)
from pythingy.exceptions import ThingyConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclasses.dataclass(frozen=True)
class ThingyConfig:
    """Client configuration.

    Parameters
    ----------
    mqtt_host : str
        MQTT broker host name.
    mqtt_port : int
        MQTT broker port.
    mqtt_username : str or None
        Broker user name, if the broker requires authentication.
    mqtt_password : str or None
        Broker password.
    mqtt_tls : bool
        Connect to the broker over TLS.
    mqtt_client_id : str
        Client id presented to the broker. Empty lets paho generate one.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_topics : tuple of str
        Topic patterns to subscribe to. Topics must carry
        ``things/<deviceId>`` to be device-scoped.
    mqtt_enabled : bool
        Start the MQTT listener when the client is entered.
    command_topic : str
        Topic template for outbound commands; ``{device_id}`` is substituted.
    publish_timeout : float
        Seconds to wait for the broker to acknowledge a published command.
    influx_url : str
        InfluxDB 2.x base URL.
    influx_token : str
        InfluxDB API token.
    influx_org : str
        InfluxDB organisation.
    influx_bucket : str
        Bucket telemetry is written to and queried from.
    measurement : str
        Measurement name used for every telemetry point.
    batch_size : int
        Points buffered by the InfluxDB write API before a flush.
    flush_interval_ms : int
        Maximum time points stay buffered before a flush.
    property_interval : str
        Default Flux range for ``get_property``.
    statistic_interval : str
        Default Flux range for ``get_statistic``.
    persisted_app_ids : frozenset of str
        ``appId`` values written to the time-series store.
    """

    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False
    mqtt_client_id: str = ""
    mqtt_keepalive: int = 60
    mqtt_topics: tuple[str, ...] = DEFAULT_SUBSCRIBE_TOPICS
    mqtt_enabled: bool = True
    command_topic: str = DEFAULT_COMMAND_TOPIC
    publish_timeout: float = 5.0
    influx_url: str = "http://localhost:8086"
    influx_token: str = ""
    influx_org: str = DEFAULT_ORG
    influx_bucket: str = DEFAULT_BUCKET
    measurement: str = DEFAULT_MEASUREMENT
    batch_size: int = 10
    flush_interval_ms: int = 1000
    property_interval: str = DEFAULT_PROPERTY_INTERVAL
    statistic_interval: str = DEFAULT_STATISTIC_INTERVAL
    persisted_app_ids: frozenset[str] = frozenset(FIELD_KINDS)

    def command_topic_for(self, device_id: str) -> str:
        """Render the outbound command topic for *device_id*."""
        return self.command_topic.format(device_id=device_id)

    def validate(self) -> None:
        """Raise :class:`ThingyConfigError` when mandatory values are missing."""
        if not self.influx_url:
            raise ThingyConfigError("influx_url is required")
        if not self.influx_token:
            raise ThingyConfigError("influx_token is required (set THINGY_INFLUX_TOKEN)")
        if self.mqtt_enabled and not self.mqtt_host:
            raise ThingyConfigError("mqtt_host is required when MQTT is enabled")
        if "{device_id}" not in self.command_topic:
            raise ThingyConfigError("command_topic must contain a {device_id} placeholder")

    @classmethod
    def from_env(cls, **overrides: Any) -> ThingyConfig:
        """Create configuration from environment variables.

        Reads ``THINGY_*`` variables. Explicit keyword arguments override
        environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "THINGY_MQTT_HOST": "mqtt_host",
            "THINGY_MQTT_USERNAME": "mqtt_username",
            "THINGY_MQTT_PASSWORD": "mqtt_password",
            "THINGY_MQTT_CLIENT_ID": "mqtt_client_id",
            "THINGY_COMMAND_TOPIC": "command_topic",
            "THINGY_INFLUX_URL": "influx_url",
            "THINGY_INFLUX_TOKEN": "influx_token",
            "THINGY_INFLUX_ORG": "influx_org",
            "THINGY_INFLUX_BUCKET": "influx_bucket",
            "THINGY_MEASUREMENT": "measurement",
            "THINGY_PROPERTY_INTERVAL": "property_interval",
            "THINGY_STATISTIC_INTERVAL": "statistic_interval",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_INT_MAP = {
            "THINGY_MQTT_PORT": "mqtt_port",
            "THINGY_MQTT_KEEPALIVE": "mqtt_keepalive",
            "THINGY_BATCH_SIZE": "batch_size",
            "THINGY_FLUSH_INTERVAL_MS": "flush_interval_ms",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = int(val)
                except ValueError as exc:
                    raise ThingyConfigError(f"{env_key} must be an integer, got {val!r}") from exc

        timeout_env = env.get("THINGY_PUBLISH_TIMEOUT")
        if timeout_env is not None and "publish_timeout" not in overrides:
            try:
                config_kwargs["publish_timeout"] = float(timeout_env)
            except ValueError as exc:
                raise ThingyConfigError(f"THINGY_PUBLISH_TIMEOUT must be a number, got {timeout_env!r}") from exc

        topics_env = env.get("THINGY_MQTT_TOPICS")
        if topics_env is not None and "mqtt_topics" not in overrides:
            config_kwargs["mqtt_topics"] = _env_list(topics_env)

        persisted_env = env.get("THINGY_PERSISTED_APP_IDS")
        if persisted_env is not None and "persisted_app_ids" not in overrides:
            config_kwargs["persisted_app_ids"] = frozenset(_env_list(persisted_env))

        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("THINGY_MQTT_TLS"), False)

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("THINGY_MQTT_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
