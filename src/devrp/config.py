"""Configuration loading and merging for the devrp registry server."""

import logging
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

import yaml

from .errors import ConfigError
from .sweeper import SWEEP_INTERVAL
from .traefik import RouteSettings


logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 10.0  # seconds between client heartbeats


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080

    # Directory shared with Traefik's file provider
    config_dir: str = "/config"
    config_filename: str = "dynamic.yml"

    # Seconds without a heartbeat before a client is evicted
    heartbeat_timeout: float = 30.0

    # Route generation
    domain: str = "localhost"
    entrypoint: str = "web"
    upstream_host: str = "host.docker.internal"
    router_prefix: str = "sub-"
    service_prefix: str = "local-"

    log_level: str = "INFO"

    @property
    def config_path(self) -> Path:
        return Path(self.config_dir) / self.config_filename

    @property
    def route_settings(self) -> RouteSettings:
        return RouteSettings(
            domain=self.domain,
            entrypoint=self.entrypoint,
            upstream_host=self.upstream_host,
            router_prefix=self.router_prefix,
            service_prefix=self.service_prefix,
        )


_DURATION_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9, "us": 1e-6, "µs": 1e-6, "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0,
}


def parse_duration(value: str | int | float) -> float:
    """Parse a duration such as ``30s``, ``1m30s`` or ``500ms`` into seconds.

    Bare numbers are taken as seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    pos = 0
    total = 0.0
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


def load_config(path: str | Path) -> ServerConfig:
    """Load a ServerConfig from a YAML file."""
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")

    valid_fields = {f.name for f in fields(ServerConfig)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    if "heartbeat_timeout" in filtered:
        try:
            filtered["heartbeat_timeout"] = parse_duration(filtered["heartbeat_timeout"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{path}: {exc}") from exc
    return ServerConfig(**filtered)


def apply_env(config: ServerConfig, environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Overlay HOST, PORT, CONFIG_DIR, HEARTBEAT_TIMEOUT and LOG_LEVEL."""
    env = os.environ if environ is None else environ

    if env.get("HOST"):
        config.host = env["HOST"]
    if env.get("PORT"):
        try:
            config.port = int(env["PORT"])
        except ValueError as exc:
            raise ConfigError(f"invalid PORT: {env['PORT']!r}") from exc
    if env.get("CONFIG_DIR"):
        config.config_dir = env["CONFIG_DIR"]
    if env.get("HEARTBEAT_TIMEOUT"):
        try:
            config.heartbeat_timeout = parse_duration(env["HEARTBEAT_TIMEOUT"])
        except ValueError:
            logger.warning(
                "Ignoring invalid HEARTBEAT_TIMEOUT %r, keeping %ss",
                env["HEARTBEAT_TIMEOUT"], config.heartbeat_timeout,
            )
    if env.get("LOG_LEVEL"):
        config.log_level = env["LOG_LEVEL"]
    return config


def merge_cli_args(config: ServerConfig, args) -> ServerConfig:
    """Overlay CLI arguments onto an existing config. CLI values take precedence."""
    for f in fields(ServerConfig):
        cli_val = getattr(args, f.name, None)
        if cli_val is not None:
            setattr(config, f.name, cli_val)
    return config


def validate_config(config: ServerConfig) -> None:
    """Reject timing and port settings the server cannot run with."""
    if not 1 <= config.port <= 65535:
        raise ConfigError(f"listen port out of range: {config.port}")
    if config.heartbeat_timeout <= SWEEP_INTERVAL:
        raise ConfigError(
            f"heartbeat timeout ({config.heartbeat_timeout}s) must be longer "
            f"than the sweep interval ({SWEEP_INTERVAL}s)"
        )
    if config.heartbeat_timeout <= HEARTBEAT_INTERVAL:
        logger.warning(
            "Heartbeat timeout %ss is not longer than the client heartbeat "
            "interval %ss; clients will be evicted between heartbeats",
            config.heartbeat_timeout, HEARTBEAT_INTERVAL,
        )
