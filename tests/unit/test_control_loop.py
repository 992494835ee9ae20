from __future__ import annotations

import threading
import time

import pytest

from rc_component_core.components.base import ComponentHooks
from rc_component_core.components.control_loop import ControlLoop
from rc_component_core.components.state_machine import StateMachine
from rc_component_core.components.status import ComponentState


class Hooks(ComponentHooks):
    def __init__(self):
        self.sm: StateMachine | None = None
        self.calls: list[str] = []
        self.shutdown_after_init = False
        self.raise_in_ready = False

    def init_state(self):
        self.calls.append("init")
        self.sm.switch_to_state(
            ComponentState.SHUTDOWN if self.shutdown_after_init else ComponentState.READY
        )

    def ready_state(self):
        self.calls.append("ready")
        if self.raise_in_ready:
            raise RuntimeError("boom")

    def failure_state(self):
        self.calls.append("failure")

    def shutdown_state(self):
        self.calls.append("shutdown")


def _make(desired_frequency: float = 200.0, publish=None):
    hooks = Hooks()
    hooks.sm = StateMachine(hooks, name="loop_test")
    published: list[ComponentState] = []

    def _publish():
        published.append(hooks.sm.current_state)

    loop = ControlLoop(hooks.sm, publish or _publish, desired_frequency=desired_frequency)
    return hooks, loop, published


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def test_rejects_non_positive_frequency():
    hooks = Hooks()
    sm = StateMachine(hooks)
    with pytest.raises(ValueError):
        ControlLoop(sm, lambda: None, desired_frequency=0.0)
    with pytest.raises(ValueError):
        ControlLoop(sm, lambda: None, desired_frequency=-5.0)


def test_loop_exits_after_shutdown_hook_runs():
    hooks, loop, published = _make()
    hooks.shutdown_after_init = True

    loop.run()  # returns on its own, no stop requested

    assert hooks.calls == ["init", "shutdown"]
    assert hooks.sm.current_state is ComponentState.SHUTDOWN
    assert loop.ticks == 2
    assert len(published) == 2


def test_stop_before_first_tick_runs_final_shutdown_tick():
    hooks, loop, published = _make()
    loop.request_stop()

    loop.run()

    assert hooks.calls == ["shutdown"]
    assert hooks.sm.current_state is ComponentState.SHUTDOWN
    assert published == [ComponentState.SHUTDOWN]


def test_publish_runs_every_tick_in_every_state():
    hooks, loop, published = _make(desired_frequency=500.0)
    t = threading.Thread(target=loop.run, daemon=True)
    t.start()
    assert _wait_for(lambda: len(published) >= 10)
    loop.request_stop()
    t.join(timeout=2.0)
    assert not t.is_alive()

    assert published[0] is ComponentState.READY  # INIT tick already switched
    assert published[-1] is ComponentState.SHUTDOWN
    assert len(published) == loop.ticks


def test_hook_exception_switches_to_failure_and_loop_keeps_ticking():
    hooks, loop, published = _make(desired_frequency=500.0)
    hooks.raise_in_ready = True
    t = threading.Thread(target=loop.run, daemon=True)
    t.start()

    assert _wait_for(lambda: "failure" in hooks.calls)
    assert _wait_for(lambda: hooks.calls.count("failure") >= 3)
    assert t.is_alive()

    loop.request_stop()
    t.join(timeout=2.0)
    assert not t.is_alive()
    assert hooks.sm.current_state is ComponentState.SHUTDOWN


def test_publish_exception_does_not_change_state():
    calls = {"n": 0}

    def bad_publish():
        calls["n"] += 1
        raise RuntimeError("transport down")

    hooks, loop, _ = _make(desired_frequency=500.0, publish=bad_publish)
    t = threading.Thread(target=loop.run, daemon=True)
    t.start()
    assert _wait_for(lambda: calls["n"] >= 5)
    assert hooks.sm.current_state is ComponentState.READY

    loop.request_stop()
    t.join(timeout=2.0)
    assert not t.is_alive()


def test_measured_frequency_from_tick_window():
    hooks, loop, _ = _make()
    assert loop.measured_frequency == 0.0

    for i in range(60):
        loop._record_tick(i * 0.005)

    assert loop.measured_frequency == pytest.approx(200.0)


def test_measured_frequency_drops_when_ticks_fall_behind():
    hooks, loop, _ = _make()
    for i in range(60):
        loop._record_tick(i * 0.010)  # ticks take twice the period

    assert loop.measured_frequency == pytest.approx(100.0)


def test_stop_does_not_interrupt_tick_in_progress():
    started = threading.Event()
    release = threading.Event()
    finished = []

    class SlowHooks(Hooks):
        def ready_state(self):
            started.set()
            release.wait(2.0)
            finished.append(True)

    hooks = SlowHooks()
    hooks.sm = StateMachine(hooks, name="slow")
    loop = ControlLoop(hooks.sm, lambda: None, desired_frequency=100.0)
    t = threading.Thread(target=loop.run, daemon=True)
    t.start()

    assert started.wait(2.0)
    loop.request_stop()
    time.sleep(0.05)
    assert t.is_alive()  # still inside ready_state
    release.set()
    t.join(timeout=2.0)

    assert finished == [True]
    assert hooks.sm.current_state is ComponentState.SHUTDOWN


class FailingShutdownHooks(Hooks):
    def shutdown_state(self):
        super().shutdown_state()
        raise RuntimeError("release failed")


def test_failing_shutdown_hook_still_ends_loop():
    hooks = FailingShutdownHooks()
    hooks.sm = StateMachine(hooks, name="failing_shutdown")
    hooks.shutdown_after_init = True
    loop = ControlLoop(hooks.sm, lambda: None, desired_frequency=500.0)

    t = threading.Thread(target=loop.run, daemon=True)
    t.start()
    t.join(timeout=2.0)

    assert not t.is_alive()
    assert hooks.calls == ["init", "shutdown"]
    assert hooks.sm.current_state is ComponentState.SHUTDOWN
    assert loop.ticks == 2


def test_failing_shutdown_hook_on_stop_keeps_shutdown_state():
    hooks = FailingShutdownHooks()
    hooks.sm = StateMachine(hooks, name="failing_shutdown")
    loop = ControlLoop(hooks.sm, lambda: None, desired_frequency=500.0)

    t = threading.Thread(target=loop.run, daemon=True)
    t.start()
    assert _wait_for(lambda: "ready" in hooks.calls)
    loop.request_stop()
    t.join(timeout=2.0)

    assert not t.is_alive()
    assert hooks.calls.count("shutdown") == 1
    assert hooks.sm.current_state is ComponentState.SHUTDOWN
