"""Client-side heartbeat loop keeping a registration alive."""

import sys
import threading

from .config import HEARTBEAT_INTERVAL
from .registry import RegistryClient


def run_heartbeat(
    client: RegistryClient,
    ident: str,
    stop: threading.Event,
    interval: float = HEARTBEAT_INTERVAL,
) -> None:
    """Send a heartbeat for *ident* every *interval* seconds until *stop* is set.

    Failures are reported once per transition, not on every cycle, so a
    restarting registry does not flood the wrapped command's terminal.
    """
    healthy = True
    while not stop.wait(interval):
        ok = client.heartbeat(ident)
        if ok != healthy:
            state = "restored" if ok else "failing"
            print(f"[heartbeat] {ident}: {state}", file=sys.stderr)
            healthy = ok


def start_heartbeat(
    client: RegistryClient,
    ident: str,
    interval: float = HEARTBEAT_INTERVAL,
) -> tuple[threading.Thread, threading.Event]:
    """Run :func:`run_heartbeat` on a daemon thread; set the event to stop it."""
    stop = threading.Event()
    thread = threading.Thread(
        target=run_heartbeat,
        args=(client, ident, stop, interval),
        name=f"heartbeat-{ident}",
        daemon=True,
    )
    thread.start()
    return thread, stop
