"""Entry point for joybridge

Opens every attached Joy-Con, and serves their button transitions and stick
angles to WebSocket clients.
"""
import argparse
import asyncio
import logging

from websockets.asyncio.server import serve

from bridge.hub import BroadcastHub, ClientRegistry
from core.config import BridgeConfig, LOG_FORMAT, LOG_LEVELS, configure_logging, load_config
from devices.joycon_hidapi import NoControllersError, open_sessions

LOG = logging.getLogger("joybridge.app")


def build_parser():
    parser = argparse.ArgumentParser(description="joybridge: Joy-Con HID → WebSocket event stream")
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--host", help="WebSocket bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="WebSocket port (default: 8080)")
    parser.add_argument("--log-level", choices=LOG_LEVELS,
                        help="Logging level (default: INFO)")
    parser.add_argument("--log-format", default=LOG_FORMAT,
                        help="Logging format string (default: %(default)s)")
    parser.add_argument("--debug-modules", nargs="*", default=None,
                        help="Modules to set to DEBUG level (e.g., 'session', 'hub', 'report')")
    return parser


async def run_bridge(config: BridgeConfig, stop=None):
    """Run until `stop` is set (or forever). Raises NoControllersError."""
    loop = asyncio.get_running_loop()
    hub = BroadcastHub(ClientRegistry(), loop)
    sessions = open_sessions(hub.broadcast)
    LOG.info("%d Joy-Con session(s) running", len(sessions))

    try:
        async with serve(hub.handle_client, config.host, config.port):
            LOG.info("WebSocket server listening on ws://%s:%d", config.host, config.port)
            if stop is None:
                await asyncio.Future()
            else:
                await stop.wait()
    finally:
        for session in sessions:
            session.stop()


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = load_config(args.config) if args.config else BridgeConfig()
    config = config.with_overrides(
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        debug_modules=tuple(args.debug_modules) if args.debug_modules is not None else None,
    )
    configure_logging(config.log_level, args.log_format, config.debug_modules)

    try:
        asyncio.run(run_bridge(config))
    except NoControllersError as e:
        LOG.error("%s", e)
        return 1
    except KeyboardInterrupt:
        LOG.info("shutdown requested")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
