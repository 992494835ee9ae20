"""
MQTT Topic Schema for rc-component-core.

All node topics under rc/nodes/<node_id>/.
Node retained: status (online/offline, LWT).
Component retained: components/<component_id>/state.
Component I/O topics are resolved from configured names: a leading "/" makes
the name absolute (ROS style "/cmd_vel" -> "cmd_vel"), anything else is
relative to the node base.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_NODE_ID_RE = re.compile(r"^[a-z0-9_]+$")
_COMPONENT_ID_RE = re.compile(r"^[a-z0-9_]+$")
_WILDCARDS = ("+", "#")


class TopicSchemaError(ValueError):
    """Raised when an invalid identifier is used to construct topics."""


def _validate_node_id(node_id: str) -> str:
    if not isinstance(node_id, str) or not node_id:
        raise TopicSchemaError("node_id must be a non-empty string")
    if not _NODE_ID_RE.fullmatch(node_id):
        raise TopicSchemaError(
            f"node_id '{node_id}' is invalid; allowed: [a-z0-9_]+"
        )
    return node_id


def _validate_component_id(component_id: str) -> str:
    if not isinstance(component_id, str) or not component_id:
        raise TopicSchemaError("component_id must be a non-empty string")
    if not _COMPONENT_ID_RE.fullmatch(component_id):
        raise TopicSchemaError(
            f"component_id '{component_id}' is invalid; allowed: [a-z0-9_]+"
        )
    return component_id


@dataclass(frozen=True, slots=True)
class TopicSchema:
    """
    MQTT topic schema for a single node.
    Root: rc/nodes/<node_id>
    """

    node_id: str

    def __post_init__(self) -> None:
        _validate_node_id(self.node_id)

    @property
    def base(self) -> str:
        return f"rc/nodes/{self.node_id}"

    # -------------------------
    # Node retained
    # -------------------------
    def status(self) -> str:
        return f"{self.base}/status"

    # -------------------------
    # Component topics
    # -------------------------
    def component_base(self, component_id: str) -> str:
        _validate_component_id(component_id)
        return f"{self.base}/components/{component_id}"

    def component_state(self, component_id: str) -> str:
        return f"{self.component_base(component_id)}/state"

    # -------------------------
    # Configured I/O topics
    # -------------------------
    def resolve(self, name: str) -> str:
        """Resolve a configured topic name (absolute with leading '/', else node-relative)."""
        if not isinstance(name, str) or not name.strip("/"):
            raise TopicSchemaError("topic name must be a non-empty string")
        if any(w in name for w in _WILDCARDS):
            raise TopicSchemaError(f"topic name '{name}' must not contain wildcards")
        if name.startswith("/"):
            return name.lstrip("/")
        return f"{self.base}/{name}"
