"""
RC controller component.

Subscribes to RC input (mavros RCIn-style channel arrays), maps each message
to a velocity command plus a take-over flag, and publishes both from the
control loop:

- cmd_vel: Twist-shaped JSON, only in READY and only while take-over is asserted
- take_over: {"data": bool}, every READY tick

Other states publish nothing on these topics; the component status keeps
publishing through the base class.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from rc_component_core.components.base import Component
from rc_component_core.components.context import ComponentContext
from rc_component_core.components.status import ComponentState
from rc_component_core.rc.mapping import (
    RcMappingConfig,
    RcSample,
    map_channels,
    parse_rc_payload,
)


@dataclass(frozen=True, slots=True)
class RcControllerParams:
    topic_cmd_vel: str = "/cmd_vel"
    topic_rc_in: str = "/mavros/rc/in"
    topic_take_over: str = "take_over"
    desired_hz: float = 200.0
    status_interval_s: float = 1.0
    rc_timeout_s: float = 0.0  # 0 disables the input watchdog
    mapping: RcMappingConfig = field(default_factory=RcMappingConfig)

    @staticmethod
    def from_config(cfg: object) -> "RcControllerParams":
        """Build params from a NodeConfig-like object; missing attributes keep defaults."""
        defaults = RcControllerParams()
        dead_zone = getattr(cfg, "dead_zone", defaults.mapping.dead_zone)
        return RcControllerParams(
            topic_cmd_vel=getattr(cfg, "topic_cmd_vel", defaults.topic_cmd_vel),
            topic_rc_in=getattr(cfg, "topic_rc_in", defaults.topic_rc_in),
            topic_take_over=getattr(cfg, "topic_take_over", defaults.topic_take_over),
            desired_hz=getattr(cfg, "desired_hz", defaults.desired_hz),
            status_interval_s=getattr(cfg, "status_interval_s", defaults.status_interval_s),
            rc_timeout_s=getattr(cfg, "rc_timeout_s", defaults.rc_timeout_s),
            mapping=RcMappingConfig(dead_zone=dead_zone),
        )


class RcController(Component):
    component_id = "rc_controller"

    def __init__(
        self,
        context: ComponentContext,
        params: Optional[RcControllerParams] = None,
        *,
        component_id: Optional[str] = None,
    ) -> None:
        self.params = params or RcControllerParams.from_config(context.config)
        super().__init__(
            context,
            component_id=component_id,
            desired_frequency=self.params.desired_hz,
            status_interval_s=self.params.status_interval_s,
        )
        self.topic_cmd_vel = context.topic(self.params.topic_cmd_vel)
        self.topic_rc_in = context.topic(self.params.topic_rc_in)
        self.topic_take_over = context.topic(self.params.topic_take_over)

        # only on_rc_in (MQTT thread) replaces it while running; the loop thread only reads it
        self._sample: RcSample = RcSample.neutral()
        self._last_rx: Optional[float] = None

    @property
    def sample(self) -> RcSample:
        return self._sample

    # -------------------------
    # Resources
    # -------------------------
    def setup_resources(self) -> None:
        self._sample = RcSample.neutral()
        self._last_rx = None
        if not self.context.online:
            self.log.warning("no MQTT client; RC input will not be received")
            return
        self.context.mqtt.subscribe(self.topic_rc_in, self.on_rc_in)
        self.log.info(
            "rc_in=%s cmd_vel=%s take_over=%s dead_zone=%.3f",
            self.topic_rc_in,
            self.topic_cmd_vel,
            self.topic_take_over,
            self.params.mapping.dead_zone,
        )

    def release_resources(self) -> None:
        if self.context.online:
            self.context.mqtt.unsubscribe(self.topic_rc_in)
        self._sample = RcSample.neutral()

    # -------------------------
    # Input
    # -------------------------
    def on_rc_in(self, payload: str) -> None:
        try:
            channels = parse_rc_payload(payload)
            sample = map_channels(channels, self.params.mapping)
        except ValueError as exc:
            self.log.error("rc_in rejected: %s", exc)
            return
        self._sample = sample
        self._last_rx = time.monotonic()

    def rc_input_stale(self) -> bool:
        timeout = self.params.rc_timeout_s
        last = self._last_rx
        if timeout <= 0 or last is None:
            return False
        return time.monotonic() - last > timeout

    # -------------------------
    # States
    # -------------------------
    def all_state(self) -> None:
        if self.get_state() is ComponentState.READY and self.rc_input_stale():
            self.log.error("rc_in timeout (%.2fs); entering EMERGENCY", self.params.rc_timeout_s)
            self.switch_to_state(ComponentState.EMERGENCY)

    def init_state(self) -> None:
        self.switch_to_state(ComponentState.READY)

    def emergency_state(self) -> None:
        if not self.rc_input_stale():
            self.log.info("leaving EMERGENCY")
            self.switch_to_state(ComponentState.READY)

    def ready_state(self) -> None:
        mqtt = self.context.mqtt
        if mqtt is None:
            return
        sample = self._sample
        try:
            if sample.take_over:
                mqtt.publish(self.topic_cmd_vel, sample.command.to_dict())
            mqtt.publish(self.topic_take_over, {"data": sample.take_over})
        except Exception as exc:
            self.log.error("publish failed (%s); entering EMERGENCY", exc)
            self.switch_to_state(ComponentState.EMERGENCY)
