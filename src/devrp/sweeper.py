"""Periodic eviction of clients that stopped sending heartbeats."""

import logging
import threading
from typing import Callable

from .registry import ClientRegistry


logger = logging.getLogger(__name__)

SWEEP_INTERVAL = 5.0


class ExpirySweeper:
    """Background thread that calls ``registry.expire_stale`` every *interval*.

    *on_evict* receives the evicted canonical ids and is only called when at
    least one client was removed.
    """

    def __init__(
        self,
        registry: ClientRegistry,
        timeout: float,
        on_evict: Callable[[list[str]], None],
        interval: float = SWEEP_INTERVAL,
    ):
        if interval >= timeout:
            raise ValueError(
                f"sweep interval ({interval}s) must be shorter than the "
                f"heartbeat timeout ({timeout}s)"
            )
        self.registry = registry
        self.timeout = timeout
        self.interval = interval
        self._on_evict = on_evict
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def sweep(self) -> list[str]:
        """Run one eviction pass and return the evicted ids."""
        evicted = self.registry.expire_stale(self.timeout)
        for cid in evicted:
            logger.info("Client expired (no heartbeat): %s", cid)
        if evicted:
            self._on_evict(evicted)
        return evicted

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Sweep failed")

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="devrp-sweeper", daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
