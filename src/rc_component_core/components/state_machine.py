"""
Per-tick state dispatch for periodic components.

The machine holds the current and previous state and, on every tick, runs the
cross-cutting all_state hook followed by exactly one state hook. It performs
no transition-legality checks: hooks move the machine with switch_to_state()
and the new state's hook runs on the next tick.

No threading here; the control loop is the only writer while running.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from rc_component_core.components.status import ComponentState, state_to_string

logger = logging.getLogger(__name__)

# state -> hook method name on the hooks object
STATE_HOOKS: dict[ComponentState, str] = {
    ComponentState.INIT: "init_state",
    ComponentState.STANDBY: "standby_state",
    ComponentState.READY: "ready_state",
    ComponentState.EMERGENCY: "emergency_state",
    ComponentState.FAILURE: "failure_state",
    ComponentState.SHUTDOWN: "shutdown_state",
}


class StateMachine:
    def __init__(self, hooks: object, *, name: str = "component") -> None:
        self.name = name
        self.current_state: ComponentState = ComponentState.INIT
        self.previous_state: ComponentState = ComponentState.INIT
        self._all_state: Callable[[], None] = getattr(hooks, "all_state")
        self._dispatch: dict[ComponentState, Callable[[], None]] = {
            state: getattr(hooks, method) for state, method in STATE_HOOKS.items()
        }

    def switch_to_state(self, new_state: ComponentState) -> None:
        new_state = ComponentState(new_state)
        if new_state != self.current_state:
            logger.info(
                "%s: %s -> %s",
                self.name,
                self.current_state.name,
                new_state.name,
            )
        self.previous_state = self.current_state
        self.current_state = new_state

    def tick(self) -> ComponentState:
        """
        Run one dispatch cycle and return the state whose hook ran.

        all_state runs first; a switch it makes selects this tick's state hook.
        Switches made by a state hook take effect on the next tick.
        """
        self._all_state()
        state = self.current_state
        self._dispatch[state]()
        return state

    def is_transition(self) -> bool:
        """True when the last switch_to_state() changed the state."""
        return self.current_state != self.previous_state

    def get_state(self) -> ComponentState:
        return self.current_state

    def get_state_string(self, state: Optional[int] = None) -> str:
        return state_to_string(self.current_state if state is None else state)
