from __future__ import annotations

import os

import pytest

from pythingy.config import ThingyConfig
from pythingy.exceptions import ThingyConfigError


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("THINGY_"):
            monkeypatch.delenv(key, raising=False)


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)

    config = ThingyConfig.from_env()

    assert config.mqtt_host == "localhost"
    assert config.mqtt_port == 1883
    assert config.influx_bucket == "pnsBucket"
    assert config.measurement == "thingy91"
    assert config.mqtt_enabled is True
    assert config.mqtt_tls is False
    assert "BUTTON" in config.persisted_app_ids


def test_from_env_reads_thingy_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("THINGY_MQTT_HOST", "broker.local")
    monkeypatch.setenv("THINGY_MQTT_PORT", "8883")
    monkeypatch.setenv("THINGY_MQTT_TLS", "yes")
    monkeypatch.setenv("THINGY_MQTT_TOPICS", "things/+/shadow/update, things/+/events ,")
    monkeypatch.setenv("THINGY_INFLUX_TOKEN", "tok")
    monkeypatch.setenv("THINGY_PERSISTED_APP_IDS", "TEMP,HUMID")
    monkeypatch.setenv("THINGY_PUBLISH_TIMEOUT", "2.5")

    config = ThingyConfig.from_env()

    assert config.mqtt_host == "broker.local"
    assert config.mqtt_port == 8883
    assert config.mqtt_tls is True
    assert config.mqtt_topics == ("things/+/shadow/update", "things/+/events")
    assert config.influx_token == "tok"
    assert config.persisted_app_ids == frozenset({"TEMP", "HUMID"})
    assert config.publish_timeout == 2.5


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("THINGY_MQTT_PORT", "8883")
    monkeypatch.setenv("THINGY_MQTT_ENABLED", "false")

    config = ThingyConfig.from_env(mqtt_port=1884, mqtt_enabled=True)

    assert config.mqtt_port == 1884
    assert config.mqtt_enabled is True


def test_invalid_integer_raises_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("THINGY_BATCH_SIZE", "ten")

    with pytest.raises(ThingyConfigError):
        ThingyConfig.from_env()


def test_validate_requires_token() -> None:
    with pytest.raises(ThingyConfigError):
        ThingyConfig().validate()
    ThingyConfig(influx_token="tok").validate()


def test_validate_requires_device_placeholder() -> None:
    with pytest.raises(ThingyConfigError):
        ThingyConfig(influx_token="tok", command_topic="things/commands").validate()


def test_command_topic_for_device() -> None:
    assert ThingyConfig().command_topic_for("blue-1") == "things/blue-1/shadow/update/accepted"


def test_invalid_publish_timeout_raises_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("THINGY_PUBLISH_TIMEOUT", "soon")

    with pytest.raises(ThingyConfigError):
        ThingyConfig.from_env()
