"""
MQTT client for rc-component-core.

Connects with an offline LWT on the node status topic, publishes retained
online status on connect, and routes subscribed topics to component handlers.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

from rc_component_core.mqtt_topics import TopicSchema

logger = logging.getLogger(__name__)

Handler = Callable[[str], None]


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class StatusPayload:
    state: str
    node_id: str
    version: str
    connected_since_ts: str
    uptime_s: float

    def to_json(self) -> str:
        return json.dumps({
            "state": self.state,
            "node_id": self.node_id,
            "version": self.version,
            "connected_since_ts": self.connected_since_ts,
            "uptime_s": self.uptime_s,
        })


class NodeMQTTClient:
    """
    MQTT client shared by all components of a node.

    Handlers registered with subscribe() survive reconnects (re-subscribed in
    _on_connect). Messages are decoded as UTF-8 and handed to handlers on a
    single worker by default so each topic is delivered in order.
    """

    def __init__(
        self,
        host: str,
        port: int,
        node_id: str,
        version: str,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        keepalive: int = 60,
        max_workers: int = 1,
    ) -> None:
        self.host = host
        self.port = port
        self.node_id = node_id
        self.version = version
        self.username = username
        self.password = password
        self.keepalive = keepalive

        self.topics = TopicSchema(node_id)
        self.client_id = f"rc.node.{node_id}"

        self._client: Optional[mqtt.Client] = None
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="mqtt-rx"
        )

        self._handlers: dict[str, tuple[Handler, int]] = {}
        self._handlers_lock = threading.Lock()
        self._connected_since_ts: Optional[str] = None
        self._connected_ts: Optional[float] = None

    # -------------------------
    # Subscriptions
    # -------------------------
    def subscribe(self, topic: str, handler: Handler, *, qos: int = 0) -> None:
        """Route `topic` to `handler`. Subscribes now if connected, else on connect."""
        with self._handlers_lock:
            self._handlers[topic] = (handler, qos)
        if self._client and self._client.is_connected():
            self._client.subscribe(topic, qos=qos)
            logger.info("Subscribed: %s", topic)

    def unsubscribe(self, topic: str) -> None:
        with self._handlers_lock:
            removed = self._handlers.pop(topic, None)
        if removed is None:
            return
        if self._client and self._client.is_connected():
            try:
                self._client.unsubscribe(topic)
                logger.info("Unsubscribed: %s", topic)
            except Exception as exc:
                logger.warning("Failed to unsubscribe %s: %s", topic, exc)

    # -------------------------
    # Status
    # -------------------------
    def _status_payload(self, state: str) -> StatusPayload:
        uptime_s = 0.0
        if self._connected_ts is not None:
            uptime_s = max(0.0, time.time() - self._connected_ts)
        return StatusPayload(
            state=state,
            node_id=self.node_id,
            version=self.version,
            connected_since_ts=self._connected_since_ts or _utc_iso(),
            uptime_s=uptime_s,
        )

    def _publish_status(self, state: str) -> None:
        if not self._client:
            return
        self._client.publish(
            self.topics.status(),
            payload=self._status_payload(state).to_json(),
            qos=1,
            retain=True,
        )

    # -------------------------
    # paho callbacks (VERSION2 API)
    # -------------------------
    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any = None) -> None:
        if reason_code.is_failure:
            logger.error("MQTT connect failed rc=%s", reason_code)
            return

        logger.info("Connected to MQTT broker as %s", self.client_id)
        # Only set connected_since_ts on first connect (maintain stability)
        if self._connected_since_ts is None:
            self._connected_ts = time.time()
            self._connected_since_ts = _utc_iso()

        with self._handlers_lock:
            subscriptions = [(topic, qos) for topic, (_, qos) in self._handlers.items()]
        for topic, qos in subscriptions:
            client.subscribe(topic, qos=qos)
            logger.info("Subscribed: %s", topic)

        self._publish_status("online")

    def _on_disconnect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any = None) -> None:
        if reason_code.is_failure:
            logger.warning("Unexpected disconnect rc=%s", reason_code)

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        with self._handlers_lock:
            entry = self._handlers.get(msg.topic)
        if not entry:
            logger.warning("Unhandled topic: %s", msg.topic)
            return
        try:
            payload_str = msg.payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.error("Payload decode failed topic=%s err=%s", msg.topic, exc)
            return
        handler, _ = entry
        self._executor.submit(self._run_handler, msg.topic, handler, payload_str)

    @staticmethod
    def _run_handler(topic: str, handler: Handler, payload: str) -> None:
        try:
            handler(payload)
        except Exception:
            logger.exception("Handler failed for topic %s", topic)

    # -------------------------
    # Connection
    # -------------------------
    def connect(self) -> bool:
        try:
            client = mqtt.Client(
                mqtt.CallbackAPIVersion.VERSION2,
                client_id=self.client_id,
                protocol=mqtt.MQTTv311,
            )
            if self.username:
                client.username_pw_set(self.username, self.password)

            # LWT is minimal: set once at connect; broker publishes on disconnect/crash.
            lwt_payload = {"state": "offline", "node_id": self.node_id, "version": self.version}
            client.will_set(
                self.topics.status(),
                payload=json.dumps(lwt_payload),
                qos=1,
                retain=True,
            )

            client.on_connect = self._on_connect
            client.on_disconnect = self._on_disconnect
            client.on_message = self._on_message

            client.connect(self.host, self.port, keepalive=self.keepalive)
            client.loop_start()

            self._client = client
            return True
        except Exception:
            logger.exception("Failed to connect to MQTT broker")
            return False

    def wait_connected(self, timeout_s: float = 5.0, poll_s: float = 0.1) -> bool:
        deadline = time.monotonic() + timeout_s
        while time.monotonic() < deadline:
            if self.is_connected():
                return True
            time.sleep(poll_s)
        return self.is_connected()

    def disconnect(self) -> None:
        if not self._client:
            return
        try:
            self._publish_status("offline")
            self._client.loop_stop()
            self._client.disconnect()
        finally:
            self._client = None
            self._executor.shutdown(wait=False, cancel_futures=True)

    def is_connected(self) -> bool:
        return bool(self._client and self._client.is_connected())

    def publish(self, topic: str, payload: Any, *, qos: int = 0, retain: bool = False) -> Any:
        if not self._client:
            raise RuntimeError("MQTT client not connected")
        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload)
        return self._client.publish(topic, payload=payload, qos=qos, retain=retain)
