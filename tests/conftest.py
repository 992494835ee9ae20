"""
Pytest configuration and shared fixtures
"""
import os
import sys
import pytest
from unittest.mock import MagicMock

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rc_component_core.components.context import ComponentContext  # noqa: E402


@pytest.fixture
def mock_env(monkeypatch):
    """Set up mock environment variables"""
    env_vars = {
        'MQTT_HOST': 'test.mqtt.local',
        'MQTT_PORT': '1883',
        'RC_NODE_ID': 'test_node',
    }

    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)

    return env_vars


@pytest.fixture
def mock_mqtt():
    """Mock of the node MQTT client as components see it (publish/subscribe/unsubscribe)."""
    client = MagicMock()
    client.is_connected.return_value = True
    client.publish.return_value = (0, 1)  # (rc, mid)
    return client


@pytest.fixture
def context(mock_mqtt):
    return ComponentContext.create(node_id="test_node", mqtt=mock_mqtt, config=None)


@pytest.fixture
def offline_context():
    """Context without messaging."""
    return ComponentContext.create(node_id="test_node", mqtt=None, config=None)


@pytest.fixture
def rc_channels():
    """
    Neutral RC channel array (8 channels).

    idx 1 level = 2006 (full scale), 2 w / 3 x / 4 y at center, 6 take-over = 2006 (auto).
    """
    return [1494, 2006, 1494, 1494, 1494, 1494, 2006, 1494]
