"""Registry service: ties the registry, config writer and sweeper together."""

import logging
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List

from .config import ServerConfig
from .registry import ClientRecord, ClientRegistry, start_registry_server
from .sweeper import SWEEP_INTERVAL, ExpirySweeper
from .traefik import ConfigWriter


logger = logging.getLogger(__name__)


class RegistryService:
    """Registry operations plus the Traefik regeneration they trigger.

    The registry itself never writes the routing document; register,
    unregister and sweeper evictions call :meth:`regenerate` once the
    mutation has completed. Heartbeats do not change routing.
    """

    def __init__(
        self,
        config: ServerConfig,
        clock: Callable[[], float] = time.time,
        sweep_interval: float = SWEEP_INTERVAL,
    ):
        self.config = config
        self.domain = config.domain
        self.registry = ClientRegistry(clock=clock)
        self.writer = ConfigWriter(config.config_path, config.route_settings)
        self.sweeper = ExpirySweeper(
            self.registry,
            timeout=config.heartbeat_timeout,
            on_evict=lambda _evicted: self.regenerate(),
            interval=sweep_interval,
        )

    def regenerate(self) -> bool:
        return self.writer.sync(self.registry.snapshot)

    def register(self, display_name: str, port: int) -> ClientRecord:
        record = self.registry.register(display_name, port)
        logger.info("Client registered: %s -> port %d", record.display_name, record.port)
        self.regenerate()
        return record

    def heartbeat(self, identifier: str) -> ClientRecord:
        return self.registry.heartbeat(identifier)

    def unregister(self, identifier: str) -> ClientRecord:
        record = self.registry.unregister(identifier)
        logger.info("Client unregistered: %s", record.display_name)
        self.regenerate()
        return record

    def count(self) -> int:
        return self.registry.count()

    def list_clients(self) -> List[Dict[str, Any]]:
        return [r.to_dict(self.domain) for r in self.registry.snapshot()]

    def start(self) -> None:
        # Overwrite whatever a previous run left behind; nothing is live yet
        self.regenerate()
        self.sweeper.start()

    def stop(self) -> None:
        self.sweeper.stop(timeout=5)


def serve(config: ServerConfig) -> None:
    """Run the registry server until SIGINT or SIGTERM."""
    try:
        Path(config.config_dir).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.critical("Failed to create config directory %s: %s", config.config_dir, exc)
        sys.exit(1)

    service = RegistryService(config)
    service.start()
    try:
        server = start_registry_server(service, host=config.host, port=config.port)
    except OSError as exc:
        service.stop()
        logger.critical("Failed to listen on %s:%d: %s", config.host, config.port, exc)
        sys.exit(1)

    logger.info(
        "Server listening on %s:%d (heartbeat timeout: %ss, config: %s)",
        config.host, config.port, config.heartbeat_timeout, config.config_path,
    )

    stop = threading.Event()

    def _on_signal(signum, frame):
        stop.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    try:
        while not stop.wait(1.0):
            pass
    finally:
        logger.info("Shutting down...")
        server.shutdown()
        server.server_close()
        service.stop()
