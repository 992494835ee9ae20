"""
rc-component-core entrypoint.

CLI:
  rc-component-core run        -> connect MQTT, run the RC controller until SIGINT/SIGTERM
  rc-component-core --version
"""

from __future__ import annotations

import argparse
import logging
import signal
import threading
from dataclasses import dataclass, field
from typing import Optional

from rc_component_core.components.status import ReturnValue
from rc_component_core.config import package_version
from rc_component_core.core.log_config import configure_logging

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.5


def get_version_string() -> str:
    return package_version()


@dataclass
class Runtime:
    shutdown: threading.Event
    mqtt: Optional[object] = None
    components: list[object] = field(default_factory=list)


def _install_signal_handlers(shutdown: threading.Event) -> None:
    def _handler(signum: int, frame) -> None:  # frame is unused, keep signature
        logger.info("Received signal %s; requesting shutdown", signum)
        shutdown.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def run_node(shutdown: Optional[threading.Event] = None) -> int:
    """
    Runtime mode: connect to MQTT, start the RC controller, block until the
    shutdown token is set. Returns process exit code.

    When no token is given one is created and wired to SIGINT/SIGTERM.
    """
    # Lazy imports keep --version isolated from runtime env/config.
    from rc_component_core.components.context import ComponentContext
    from rc_component_core.config import load_config
    from rc_component_core.mqtt_client import NodeMQTTClient
    from rc_component_core.rc.controller import RcController

    if shutdown is None:
        shutdown = threading.Event()
        _install_signal_handlers(shutdown)

    cfg = load_config()
    rt = Runtime(shutdown=shutdown)

    logger.info("============================================================")
    logger.info("rc-component-core")
    logger.info("Version: %s", cfg.version)
    logger.info("Node: %s", cfg.node_id)
    logger.info("============================================================")

    mqtt = NodeMQTTClient(
        cfg.mqtt_host,
        cfg.mqtt_port,
        cfg.node_id,
        cfg.version,
        username=cfg.mqtt_username,
        password=cfg.mqtt_password,
    )
    rt.mqtt = mqtt

    if not mqtt.connect():
        logger.error("MQTT connection failed")
        return 1

    if not mqtt.wait_connected(timeout_s=5.0):
        logger.warning("Connection not established after 5 seconds, proceeding anyway")

    context = ComponentContext.create(node_id=cfg.node_id, mqtt=mqtt, config=cfg)
    controller = RcController(context)
    rv = controller.start()
    if rv != ReturnValue.OK:
        logger.error("Failed to start %s: %s", controller.component_id, rv.name)
        _shutdown(rt)
        return 1
    rt.components.append(controller)

    logger.info("Node running (shutdown via SIGINT/SIGTERM)")

    try:
        while not shutdown.is_set():
            shutdown.wait(POLL_INTERVAL_S)
    finally:
        _shutdown(rt)

    return 0


def _shutdown(rt: Runtime) -> None:
    logger.info("Shutting down...")

    # Stop components first (they may depend on mqtt connection)
    for component in rt.components:
        rv = component.stop()
        if rv != ReturnValue.OK:
            logger.error("Error stopping component: %s", rv)
    if rt.components:
        logger.info("Components stopped")

    if rt.mqtt:
        try:
            rt.mqtt.disconnect()
        except Exception:
            logger.exception("Error disconnecting MQTT")
        logger.info("MQTT disconnected")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="rc-component-core")
    p.add_argument("--version", action="version", version=get_version_string())

    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("run", help="Run the RC controller node")

    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if args.cmd == "run":
        configure_logging()
        raise SystemExit(run_node())

    raise SystemExit(2)


if __name__ == "__main__":
    main()
