"""Bridge configuration loaded from a YAML file.

Example (see config/bridge.yaml):

  server:
    host: 0.0.0.0
    port: 8080
  client:
    url: ws://localhost:8080
  logging:
    level: INFO
    debug_modules: [session, hub]
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Tuple

import yaml

LOG = logging.getLogger("joybridge.config")

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_URL = "ws://localhost:8080"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class BridgeConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    url: str = DEFAULT_URL
    log_level: str = "INFO"
    debug_modules: Tuple[str, ...] = field(default_factory=tuple)

    def with_overrides(self, **overrides) -> "BridgeConfig":
        """Return a copy with every non-None override applied (CLI flags win)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def _section(data: dict, name: str) -> dict:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"config section '{name}' must be a mapping")
    return value


def config_from_dict(data: dict) -> BridgeConfig:
    if data is None:
        return BridgeConfig()
    if not isinstance(data, dict):
        raise ValueError("config root must be a mapping")

    server = _section(data, "server")
    client = _section(data, "client")
    log = _section(data, "logging")

    port = server.get("port", DEFAULT_PORT)
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
        raise ValueError(f"server.port must be an integer 0-65535, got {port!r}")

    level = str(log.get("level", "INFO")).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {', '.join(LOG_LEVELS)}")

    modules = log.get("debug_modules") or []
    if isinstance(modules, str):
        modules = [modules]

    return BridgeConfig(
        host=str(server.get("host", DEFAULT_HOST)),
        port=port,
        url=str(client.get("url", DEFAULT_URL)),
        log_level=level,
        debug_modules=tuple(str(m) for m in modules),
    )


def load_config(path: str) -> BridgeConfig:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    cfg = config_from_dict(data)
    LOG.debug("loaded config from %s: %s", path, cfg)
    return cfg


LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"


def configure_logging(level="INFO", fmt=LOG_FORMAT, debug_modules=()):
    logging.basicConfig(level=getattr(logging, level), format=fmt)
    # Set DEBUG level for specific modules if requested
    for module in debug_modules:
        logger_name = module if module.startswith("joybridge.") else f"joybridge.{module}"
        logging.getLogger(logger_name).setLevel(logging.DEBUG)
