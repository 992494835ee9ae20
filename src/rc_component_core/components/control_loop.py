"""
Fixed-rate control loop.

Runs StateMachine.tick() plus the publish hook once per period on the thread
that calls run(). Scheduling is cooperative: the only suspension point is the
end-of-tick wait, and a slow tick simply shortens or skips that wait (no
catch-up, no dropped-tick recovery).
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Optional

from rc_component_core.components.state_machine import StateMachine
from rc_component_core.components.status import ComponentState

logger = logging.getLogger(__name__)

DEFAULT_DESIRED_HZ = 200.0
DEFAULT_FREQ_WINDOW = 50


class ControlLoop:
    def __init__(
        self,
        state_machine: StateMachine,
        publish: Callable[[], None],
        *,
        desired_frequency: float = DEFAULT_DESIRED_HZ,
        window: int = DEFAULT_FREQ_WINDOW,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        if desired_frequency <= 0:
            raise ValueError("desired_frequency must be > 0")
        if window < 2:
            raise ValueError("window must be >= 2")
        self.state_machine = state_machine
        self._publish = publish
        self.desired_frequency = float(desired_frequency)
        self.measured_frequency = 0.0
        self.ticks = 0
        self._tick_starts: Deque[float] = deque(maxlen=window)
        self._stop_event = stop_event or threading.Event()

    @property
    def period(self) -> float:
        return 1.0 / self.desired_frequency

    def request_stop(self) -> None:
        self._stop_event.set()

    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        """
        Tick until a stop is requested or a tick runs the SHUTDOWN hook.

        On a requested stop the machine is switched to SHUTDOWN and one final
        tick runs so shutdown_state executes and its status is published.
        """
        name = self.state_machine.name
        logger.info("%s: control loop started at %.1f Hz", name, self.desired_frequency)
        reached_shutdown = False

        while not self._stop_event.is_set():
            t_start = time.monotonic()
            self._record_tick(t_start)

            if self._run_tick() is ComponentState.SHUTDOWN:
                reached_shutdown = True
                break

            remaining = self.period - (time.monotonic() - t_start)
            if remaining > 0:
                self._stop_event.wait(remaining)

        if not reached_shutdown:
            self.state_machine.switch_to_state(ComponentState.SHUTDOWN)
            self._run_tick()

        logger.info("%s: control loop ended after %d ticks", name, self.ticks)

    def _run_tick(self) -> Optional[ComponentState]:
        dispatched: Optional[ComponentState] = None
        try:
            dispatched = self.state_machine.tick()
        except Exception:
            if self.state_machine.current_state is ComponentState.SHUTDOWN:
                # SHUTDOWN is terminal: a failing hook still ends the loop
                logger.exception("%s: hook failed in SHUTDOWN", self.state_machine.name)
                dispatched = ComponentState.SHUTDOWN
            else:
                logger.exception(
                    "%s: hook failed in %s; switching to FAILURE",
                    self.state_machine.name,
                    self.state_machine.get_state_string(),
                )
                self.state_machine.switch_to_state(ComponentState.FAILURE)

        try:
            self._publish()
        except Exception:
            logger.exception("%s: publish hook failed", self.state_machine.name)

        self.ticks += 1
        return dispatched

    def _record_tick(self, t_start: float) -> None:
        self._tick_starts.append(t_start)
        n = len(self._tick_starts)
        if n < 2:
            return
        span = self._tick_starts[-1] - self._tick_starts[0]
        if span > 0:
            self.measured_frequency = (n - 1) / span
