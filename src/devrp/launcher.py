"""Run a command behind the registry: pick a port, register, heartbeat, clean up."""

import os
import random
import signal
import socket
import subprocess
import sys
from typing import Mapping, Optional

from .config import HEARTBEAT_INTERVAL
from .errors import RegistrationFailed
from .heartbeat import start_heartbeat
from .registry import RegistryClient


PORT_RANGE = (3000, 3100)
PORT_ATTEMPTS = 50


def _port_is_free(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind(("", port))
        except OSError:
            return False
    return True


def find_free_port(
    low: int = PORT_RANGE[0],
    high: int = PORT_RANGE[1],
    attempts: int = PORT_ATTEMPTS,
    environ: Optional[Mapping[str, str]] = None,
) -> int:
    """Return ``$PORT`` if set, else a random bindable port in [low, high].

    Raises RuntimeError if no free port turns up within *attempts* tries.
    """
    env = os.environ if environ is None else environ
    value = env.get("PORT")
    if value:
        try:
            return int(value)
        except ValueError:
            pass

    for _ in range(attempts):
        port = random.randint(low, high)
        if _port_is_free(port):
            return port
    raise RuntimeError(f"no free port found in range {low}-{high}")


def run_registered(
    command: list[str],
    ident: str,
    server: str = "http://localhost:8080",
    port: Optional[int] = None,
    heartbeat_interval: float = HEARTBEAT_INTERVAL,
) -> int:
    """Register *ident*, run *command* with ``PORT`` set, and return its exit code.

    SIGINT and SIGTERM are forwarded to the child. The registration is
    removed once the child exits.
    """
    if port is None:
        try:
            port = find_free_port()
        except RuntimeError:
            print(
                f"Failed to find free port in range {PORT_RANGE[0]}-{PORT_RANGE[1]}",
                file=sys.stderr,
            )
            return 1

    client = RegistryClient(server)
    try:
        hostname = client.register(ident, port)
    except RegistrationFailed as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"Registered {hostname} -> port {port}", file=sys.stderr)

    thread, stop = start_heartbeat(client, ident, heartbeat_interval)

    env = os.environ.copy()
    env["PORT"] = str(port)

    proc = None
    previous = {}

    def _forward(signum, frame):
        if proc is not None and proc.poll() is None:
            proc.send_signal(signal.SIGTERM)

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous[sig] = signal.signal(sig, _forward)
        try:
            proc = subprocess.Popen(command, env=env)
        except OSError as exc:
            print(f"Failed to start {command[0]}: {exc}", file=sys.stderr)
            return 1
        code = proc.wait()
        # Killed by a signal: report it the way a shell would
        return 128 - code if code < 0 else code
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        stop.set()
        thread.join(timeout=heartbeat_interval)
        if client.unregister(ident):
            print(f"Unregistered {hostname}", file=sys.stderr)
