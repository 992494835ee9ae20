# rc_component_core/components/base.py

from __future__ import annotations

import threading
from typing import Optional

from rc_component_core.components.context import ComponentContext
from rc_component_core.components.control_loop import (
    DEFAULT_DESIRED_HZ,
    DEFAULT_FREQ_WINDOW,
    ControlLoop,
)
from rc_component_core.components.state_machine import StateMachine
from rc_component_core.components.status import (
    ComponentState,
    ReturnValue,
    StatusReporter,
    StatusSnapshot,
)


class ComponentHooks:
    """
    Overridable hooks called by the component lifecycle and control loop.

    Every hook is a no-op by default; implement only the ones you need.
    setup_resources/release_resources may raise or return ReturnValue.ERROR
    to report failure. State hooks run on the loop thread and must not block.
    """

    def setup_resources(self) -> Optional[ReturnValue]:
        return None

    def release_resources(self) -> Optional[ReturnValue]:
        return None

    def all_state(self) -> None:
        pass

    def init_state(self) -> None:
        pass

    def standby_state(self) -> None:
        pass

    def ready_state(self) -> None:
        pass

    def emergency_state(self) -> None:
        pass

    def failure_state(self) -> None:
        pass

    def shutdown_state(self) -> None:
        pass

    def publish(self) -> None:
        pass


def _failed(rv: Optional[ReturnValue]) -> bool:
    return rv is not None and int(rv) < 0


class Component(ComponentHooks):
    """
    Base class for periodic control components.

    Lifecycle: UNINITIALIZED -> setup() -> INITIALIZED -> start() -> RUNNING
    -> stop() -> UNINITIALIZED (stop() also runs shutdown()).
    Out-of-order calls return a ReturnValue; nothing here raises.

    Hooks come from the subclass itself, or from a separate hooks object
    passed as `hooks=` (its optional bind(component) is called once).

    start/stop/setup/shutdown are meant to be called from one controlling
    thread; concurrent calls to them are not supported. get_state(),
    get_state_string(), get_update_rate() and status() are safe from any
    thread: the loop thread is the single writer of those values.
    """

    component_id: str = "component"

    def __init__(
        self,
        context: ComponentContext,
        *,
        component_id: Optional[str] = None,
        hooks: Optional[ComponentHooks] = None,
        desired_frequency: float = DEFAULT_DESIRED_HZ,
        status_interval_s: float = 1.0,
        freq_window: int = DEFAULT_FREQ_WINDOW,
    ) -> None:
        if desired_frequency <= 0:
            raise ValueError("desired_frequency must be > 0")
        if component_id is not None:
            self.component_id = component_id

        self.context = context
        self.log = context.logger(self.component_id)
        self.desired_frequency = float(desired_frequency)
        self.freq_window = freq_window

        self._hooks: ComponentHooks = hooks if hooks is not None else self
        self._state_machine = StateMachine(self._hooks, name=self.component_id)
        self._status_reporter = StatusReporter(
            context.mqtt,
            context.topics.component_state(self.component_id),
            status_interval_s,
        )

        self._initialized = False
        self._running = False
        self._loop: Optional[ControlLoop] = None
        self._thread: Optional[threading.Thread] = None

        bind = getattr(hooks, "bind", None) if hooks is not None else None
        if callable(bind):
            bind(self)

    # -------------------------
    # Lifecycle
    # -------------------------
    def setup(self) -> ReturnValue:
        if self._initialized:
            return ReturnValue.INITIALIZED
        try:
            rv = self._hooks.setup_resources()
        except Exception:
            self.log.exception("setup failed")
            return ReturnValue.ERROR
        if _failed(rv):
            self.log.error("setup failed rv=%s", rv)
            return ReturnValue.ERROR
        self._initialized = True
        self.log.info("initialized")
        return ReturnValue.OK

    def shutdown(self) -> ReturnValue:
        if self._running:
            return ReturnValue.THREAD_RUNNING
        if not self._initialized:
            return ReturnValue.NOT_INITIALIZED
        try:
            rv = self._hooks.release_resources()
        except Exception:
            self.log.exception("shutdown failed")
            return ReturnValue.ERROR
        if _failed(rv):
            self.log.error("shutdown failed rv=%s", rv)
            return ReturnValue.ERROR
        self._initialized = False
        self.log.info("resources released")
        return ReturnValue.OK

    def start(self) -> ReturnValue:
        """Run setup() if needed and launch the control loop thread."""
        if not self._initialized and self.setup() != ReturnValue.OK:
            return ReturnValue.ERROR
        if self._running:
            return ReturnValue.THREAD_RUNNING

        # a previous run ended in SHUTDOWN; restart from INIT
        if self._state_machine.current_state is ComponentState.SHUTDOWN:
            self._state_machine.switch_to_state(ComponentState.INIT)

        loop = ControlLoop(
            self._state_machine,
            self._publish_tick,
            desired_frequency=self.desired_frequency,
            window=self.freq_window,
        )
        thread = threading.Thread(
            target=loop.run,
            name=f"rc-loop-{self.component_id}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError:
            self.log.exception("failed to start control loop thread")
            return ReturnValue.ERROR

        self._loop = loop
        self._thread = thread
        self._running = True
        self.log.info("started (%.1f Hz)", self.desired_frequency)
        self._status_reporter.maybe_publish(self.status(), force=True)
        return ReturnValue.OK

    def stop(self) -> ReturnValue:
        """
        Ask the loop to exit, wait for it, then release resources.

        Blocks until the tick in progress completes. There is no join
        timeout: a hook that never returns hangs stop().
        """
        if not self._running:
            return ReturnValue.THREAD_NOT_RUNNING

        if self._loop is None or self._thread is None:
            self.log.error("running without a control loop; cannot stop")
            self._running = False
            return ReturnValue.ERROR
        self._loop.request_stop()
        self._thread.join()
        self._thread = None
        self._running = False

        rv = self.shutdown()
        self._status_reporter.maybe_publish(self.status(), force=True)
        self.log.info("stopped (state=%s)", self.get_state_string())
        return ReturnValue.OK if rv == ReturnValue.OK else ReturnValue.ERROR

    # -------------------------
    # State
    # -------------------------
    def switch_to_state(self, new_state: ComponentState) -> None:
        self._state_machine.switch_to_state(new_state)

    def get_state(self) -> ComponentState:
        return self._state_machine.current_state

    def get_previous_state(self) -> ComponentState:
        return self._state_machine.previous_state

    def get_state_string(self, state: Optional[int] = None) -> str:
        return self._state_machine.get_state_string(state)

    def get_update_rate(self) -> float:
        loop = self._loop
        return loop.measured_frequency if loop is not None else 0.0

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def running(self) -> bool:
        return self._running

    @property
    def loop_alive(self) -> bool:
        """False once the loop thread exited, including via a SHUTDOWN hook."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    def status(self) -> StatusSnapshot:
        return StatusSnapshot.create(
            component_id=self.component_id,
            state=self.get_state(),
            desired_freq=self.desired_frequency,
            real_freq=self.get_update_rate(),
            initialized=self._initialized,
            running=self._running,
        )

    def _publish_tick(self) -> None:
        try:
            self._hooks.publish()
        finally:
            self._status_reporter.maybe_publish(self.status())
