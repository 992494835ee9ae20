"""
RC mapping - transforms raw RC channel values into a velocity command.

Stateless and pure: one channel array in, one RcSample out.

Channel values are PWM-style integers: 982 (min) .. 1494 (center) .. 2006 (max).
- level channel scales every output: 982 (min) -> 0.0, 2006 (max) -> 1.0
- x/y/w sticks map to -1.0 .. 1.0 around center (y and w inverted)
- dead zone: |value| below the threshold is clamped to exactly 0.0 per axis
- take-over switch: above center -> automatic, at/below center -> manual
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any, Sequence


class IncompleteRcInput(ValueError):
    """Raised when an RC message does not contain every mapped channel."""


@dataclass(frozen=True, slots=True)
class ChannelMap:
    """Index of each semantic input in the channel array."""
    level: int = 1
    w: int = 2
    x: int = 3
    y: int = 4
    take_over: int = 6

    @property
    def max_index(self) -> int:
        return max(self.level, self.w, self.x, self.y, self.take_over)


@dataclass(frozen=True, slots=True)
class RcMappingConfig:
    dead_zone: float = 0.05
    max_linear_speed: float = 3.0     # m/s
    max_angular_speed: float = 6.28   # rad/s
    min_value: float = 982.0
    max_value: float = 2006.0
    center_value: float = 1494.0
    channels: ChannelMap = field(default_factory=ChannelMap)

    def __post_init__(self) -> None:
        if not (0.0 <= self.dead_zone < 1.0):
            raise ValueError(f"dead_zone out of range: {self.dead_zone}")
        if self.max_value <= self.min_value:
            raise ValueError("max_value must be greater than min_value")

    @property
    def range(self) -> float:
        return self.max_value - self.min_value


@dataclass(frozen=True, slots=True)
class VelocityCommand:
    """Twist-shaped velocity command. Only linear x/y and angular z are driven."""
    linear_x: float = 0.0
    linear_y: float = 0.0
    linear_z: float = 0.0
    angular_x: float = 0.0
    angular_y: float = 0.0
    angular_z: float = 0.0

    @property
    def is_stop(self) -> bool:
        return self.linear_x == 0.0 and self.linear_y == 0.0 and self.angular_z == 0.0

    def to_dict(self) -> dict[str, dict[str, float]]:
        return {
            "linear": {"x": self.linear_x, "y": self.linear_y, "z": self.linear_z},
            "angular": {"x": self.angular_x, "y": self.angular_y, "z": self.angular_z},
        }


@dataclass(frozen=True, slots=True)
class RcSample:
    command: VelocityCommand
    take_over: bool

    @classmethod
    def neutral(cls) -> "RcSample":
        return cls(command=VelocityCommand(), take_over=False)


def apply_dead_zone(value: float, dead_zone: float) -> float:
    if -dead_zone < value < dead_zone:
        return 0.0
    return value


def map_channels(channels: Sequence[int], config: RcMappingConfig) -> RcSample:
    """
    Convert one RC channel array into a velocity command and take-over flag.

    Raises IncompleteRcInput if a mapped channel index is missing.
    """
    ch = config.channels
    if len(channels) <= ch.max_index:
        raise IncompleteRcInput(
            f"expected at least {ch.max_index + 1} channels, got {len(channels)}"
        )

    half_range = config.range / 2.0
    level = (float(channels[ch.level]) - config.min_value) / config.range
    level = min(1.0, max(0.0, level))

    x = (float(channels[ch.x]) - config.center_value) / half_range
    y = -1.0 * (float(channels[ch.y]) - config.center_value) / half_range
    w = -1.0 * (float(channels[ch.w]) - config.center_value) / half_range

    x = apply_dead_zone(x, config.dead_zone)
    y = apply_dead_zone(y, config.dead_zone)
    w = apply_dead_zone(w, config.dead_zone)

    command = VelocityCommand(
        linear_x=x * level * config.max_linear_speed,
        linear_y=y * level * config.max_linear_speed,
        angular_z=w * level * config.max_angular_speed,
    )
    take_over = not (channels[ch.take_over] > config.center_value)
    return RcSample(command=command, take_over=take_over)


def parse_rc_payload(payload: str) -> list[int]:
    """
    Parse an RC input message.

    Accepts the mavros RCIn shape {"channels": [...], "rssi": n} or a bare
    JSON list of channel values. Raises ValueError on malformed payloads.
    """
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("channels")
    if not isinstance(data, list):
        raise ValueError("payload must be a list or an object with a 'channels' list")

    channels: list[int] = []
    for value in data:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"channel value is not a number: {value!r}")
        if not math.isfinite(value):
            raise ValueError(f"channel value is not finite: {value!r}")
        channels.append(int(value))
    return channels
