"""
Component state, lifecycle result codes and status reporting.

State codes follow the robot state message convention (100 steps) so the
published status stays comparable with other robot components.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class ComponentState(IntEnum):
    """Execution state of a component, ordered by severity."""

    INIT = 100
    STANDBY = 200
    READY = 300
    EMERGENCY = 500
    FAILURE = 600
    SHUTDOWN = 700


class ReturnValue(IntEnum):
    """Result codes returned by the lifecycle API (never raised)."""

    OK = 0
    INITIALIZED = 1
    THREAD_RUNNING = 2
    ERROR = -1
    NOT_INITIALIZED = -2
    THREAD_NOT_RUNNING = -3
    COM_ERROR = -4
    NOT_ERROR = -5


def state_to_string(state: Any) -> str:
    try:
        return ComponentState(state).name
    except ValueError:
        return "UNKNOWN"


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class StatusSnapshot:
    component_id: str
    state: int
    state_description: str
    desired_freq: float
    real_freq: float
    initialized: bool
    running: bool
    ts: str

    @staticmethod
    def create(
        *,
        component_id: str,
        state: ComponentState,
        desired_freq: float,
        real_freq: float,
        initialized: bool,
        running: bool,
    ) -> "StatusSnapshot":
        return StatusSnapshot(
            component_id=component_id,
            state=int(state),
            state_description=state_to_string(state),
            desired_freq=float(desired_freq),
            real_freq=float(real_freq),
            initialized=initialized,
            running=running,
            ts=_utc_iso(),
        )

    def to_json(self) -> str:
        return json.dumps(asdict(self))


class StatusPublisher(Protocol):
    def publish(self, topic: str, payload: Any, *, qos: int = 0, retain: bool = False) -> Any: ...


class StatusReporter:
    """
    Publishes component status snapshots at a fixed cadence.

    interval_s == 0 disables periodic publishing; forced publishes still go out.
    Publish failures are logged and dropped so reporting never stalls the loop.
    """

    def __init__(self, publisher: Optional[StatusPublisher], topic: str, interval_s: float = 1.0) -> None:
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")
        self.publisher = publisher
        self.topic = topic
        self.interval_s = interval_s
        self._last_publish: Optional[float] = None

    def maybe_publish(self, snapshot: StatusSnapshot, *, force: bool = False) -> bool:
        if self.publisher is None:
            return False
        now = time.monotonic()
        if not force:
            if self.interval_s == 0:
                return False
            if self._last_publish is not None and now - self._last_publish < self.interval_s:
                return False
        try:
            self.publisher.publish(self.topic, snapshot.to_json(), qos=0, retain=True)
        except Exception as exc:
            logger.warning("Status publish failed topic=%s err=%s", self.topic, exc)
            return False
        self._last_publish = now
        return True
