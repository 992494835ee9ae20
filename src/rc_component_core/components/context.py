"""
Runtime handed to every component at construction.

Carries the node identity, the shared MQTT client (or None when running
offline), the loaded NodeConfig and the node's topic schema.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from rc_component_core.mqtt_topics import TopicSchema

Handler = Callable[[str], None]


class MqttClient(Protocol):
    """The slice of NodeMQTTClient components are allowed to use."""

    def publish(self, topic: str, payload: Any, *, qos: int = 0, retain: bool = False) -> Any: ...

    def subscribe(self, topic: str, handler: Handler, *, qos: int = 0) -> None: ...

    def unsubscribe(self, topic: str) -> None: ...


@dataclass(frozen=True, slots=True)
class ComponentContext:
    node_id: str
    mqtt: Optional[MqttClient]
    config: object
    topics: TopicSchema

    @property
    def online(self) -> bool:
        """True when a messaging client is attached."""
        return self.mqtt is not None

    def topic(self, name: str) -> str:
        """Resolve a configured I/O topic name for this node."""
        return self.topics.resolve(name)

    def logger(self, component_id: str) -> logging.Logger:
        return logging.getLogger(f"rc.component.{component_id}")

    @classmethod
    def create(
        cls,
        *,
        node_id: str,
        mqtt: Optional[MqttClient],
        config: object = None,
    ) -> "ComponentContext":
        # TopicSchema validates the id format; this only guards the type
        if not isinstance(node_id, str) or not node_id:
            raise ValueError("node_id must be a non-empty string")
        return cls(node_id=node_id, mqtt=mqtt, config=config, topics=TopicSchema(node_id))
