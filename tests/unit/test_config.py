from __future__ import annotations

import os

import pytest

from rc_component_core.config import ConfigError, load_config


def _clear_env(keys: list[str]) -> None:
    for k in keys:
        os.environ.pop(k, None)


REQ = ["MQTT_HOST", "MQTT_PORT"]
OPT = [
    "MQTT_USERNAME",
    "MQTT_PASSWORD",
    "RC_NODE_ID",
    "RC_DESIRED_HZ",
    "RC_DEAD_ZONE",
    "RC_TOPIC_CMD_VEL",
    "RC_TOPIC_RC_IN",
    "RC_TOPIC_TAKE_OVER",
    "RC_STATUS_INTERVAL",
    "RC_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # register every key so values written by load_dotenv are undone too
    for k in REQ + OPT:
        monkeypatch.setenv(k, "")
        monkeypatch.delenv(k)


def _base_env(monkeypatch, **extra: str) -> None:
    monkeypatch.setenv("MQTT_HOST", "localhost")
    monkeypatch.setenv("MQTT_PORT", "1883")
    for k, v in extra.items():
        monkeypatch.setenv(k, v)


def test_missing_required_env_raises():
    _clear_env(REQ)

    with pytest.raises(ConfigError) as exc:
        load_config(dotenv_enabled=False)

    # Ensure it names a missing key
    assert "Missing required environment variable" in str(exc.value)


def test_valid_env_loads_with_defaults(mock_env):
    cfg = load_config(dotenv_enabled=False)

    assert cfg.mqtt_host == "test.mqtt.local"
    assert cfg.mqtt_port == 1883
    assert cfg.mqtt_username is None
    assert cfg.mqtt_password is None
    assert cfg.node_id == "test_node"
    assert cfg.desired_hz == 200.0
    assert cfg.dead_zone == 0.05
    assert cfg.topic_cmd_vel == "/cmd_vel"
    assert cfg.topic_rc_in == "/mavros/rc/in"
    assert cfg.topic_take_over == "take_over"
    assert cfg.status_interval_s == 1.0
    assert cfg.rc_timeout_s == 0.0
    assert isinstance(cfg.version, str)
    assert cfg.version  # non-empty


def test_node_id_defaults(monkeypatch):
    _base_env(monkeypatch)
    assert load_config(dotenv_enabled=False).node_id == "robotnik"


def test_overrides(monkeypatch):
    _base_env(
        monkeypatch,
        MQTT_USERNAME="node",
        MQTT_PASSWORD="pw",
        RC_DESIRED_HZ="50",
        RC_DEAD_ZONE="0.1",
        RC_TOPIC_CMD_VEL="/base/cmd_vel",
        RC_STATUS_INTERVAL="0",
        RC_TIMEOUT="0.5",
    )
    cfg = load_config(dotenv_enabled=False)

    assert cfg.mqtt_username == "node"
    assert cfg.mqtt_password == "pw"
    assert cfg.desired_hz == 50.0
    assert cfg.dead_zone == 0.1
    assert cfg.topic_cmd_vel == "/base/cmd_vel"
    assert cfg.status_interval_s == 0.0
    assert cfg.rc_timeout_s == 0.5


def test_invalid_port_not_int_raises(monkeypatch):
    _base_env(monkeypatch, MQTT_PORT="not-a-number")

    with pytest.raises(ConfigError) as exc:
        load_config(dotenv_enabled=False)

    assert "Invalid integer for MQTT_PORT" in str(exc.value)


@pytest.mark.parametrize("port", ["0", "65536", "-1"])
def test_port_out_of_range_raises(monkeypatch, port: str):
    _base_env(monkeypatch, MQTT_PORT=port)

    with pytest.raises(ConfigError) as exc:
        load_config(dotenv_enabled=False)

    assert "MQTT_PORT out of range" in str(exc.value)


@pytest.mark.parametrize(
    "key, value, message",
    [
        ("RC_DESIRED_HZ", "0", "RC_DESIRED_HZ must be > 0"),
        ("RC_DESIRED_HZ", "fast", "Invalid number for RC_DESIRED_HZ"),
        ("RC_DESIRED_HZ", "inf", "RC_DESIRED_HZ must be finite"),
        ("RC_DEAD_ZONE", "1.0", "RC_DEAD_ZONE must be in [0, 1)"),
        ("RC_DEAD_ZONE", "-0.1", "RC_DEAD_ZONE must be in [0, 1)"),
        ("RC_STATUS_INTERVAL", "-1", "RC_STATUS_INTERVAL must be >= 0"),
        ("RC_TIMEOUT", "-0.5", "RC_TIMEOUT must be >= 0"),
    ],
)
def test_invalid_tuning_raises(monkeypatch, key, value, message):
    _base_env(monkeypatch, **{key: value})

    with pytest.raises(ConfigError) as exc:
        load_config(dotenv_enabled=False)

    assert message in str(exc.value)


def test_env_file_fills_missing_but_env_wins(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("MQTT_HOST=from-file\nMQTT_PORT=1884\nRC_DEAD_ZONE=0.2\n")
    monkeypatch.setenv("MQTT_HOST", "from-env")
    monkeypatch.setattr("rc_component_core.config._env_paths", lambda: [env_file])

    cfg = load_config()

    assert cfg.mqtt_host == "from-env"
    assert cfg.mqtt_port == 1884
    assert cfg.dead_zone == 0.2
