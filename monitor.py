"""joybridge monitor: a minimal consumer of the event stream

Connects to a running bridge and logs button edges, stick angles and
connection changes at a fixed tick rate. Useful for checking a controller
without the game running.
"""
import argparse
import logging
import time

from client.joycon_client import JoyConClient
from core.config import BridgeConfig, LOG_FORMAT, LOG_LEVELS, configure_logging, load_config
from core.state import BUTTON_NAMES, ControllerSide

LOG = logging.getLogger("joybridge.monitor")


def tick(client, last_angles):
    """Log what changed since the previous tick; returns the current stick angles."""
    for side in (ControllerSide.L, ControllerSide.R):
        for name in sorted(BUTTON_NAMES[side]):
            if client.is_just_pressed(name, side):
                LOG.info("%s_%s pressed", name, side.value)
            elif client.is_just_released(name, side):
                LOG.info("%s_%s released", name, side.value)

    angles = (client.left_stick_angle, client.right_stick_angle)
    if angles != last_angles:
        LOG.info("sticks: left=%s right=%s", *angles)
    client.update()
    return angles


def main(argv=None):
    parser = argparse.ArgumentParser(description="Log events from a joybridge server")
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--url", help="bridge WebSocket URL (default: ws://localhost:8080)")
    parser.add_argument("--hz", type=int, default=60, help="update frequency")
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Logging level (default: INFO)")
    args = parser.parse_args(argv)

    config = load_config(args.config) if args.config else BridgeConfig()
    config = config.with_overrides(url=args.url, log_level=args.log_level)
    configure_logging(config.log_level, LOG_FORMAT, config.debug_modules)

    client = JoyConClient(config.url)
    client.on_state_change(lambda state, status: LOG.info("connection: %s", status))
    client.start()

    period = 1.0 / args.hz
    angles = (None, None)
    try:
        LOG.info("monitoring %s — press Ctrl+C to stop", config.url)
        while True:
            angles = tick(client, angles)
            time.sleep(period)
    except KeyboardInterrupt:
        LOG.info("shutdown requested")
    finally:
        client.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
