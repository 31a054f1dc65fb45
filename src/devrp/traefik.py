"""Traefik dynamic configuration: build, render and atomically write it."""

import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

import yaml

from .errors import PersistenceFailure
from .registry import ClientRecord


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteSettings:
    """Fixed parts of every generated router and service."""
    domain: str = "localhost"
    entrypoint: str = "web"
    upstream_host: str = "host.docker.internal"
    router_prefix: str = "sub-"
    service_prefix: str = "local-"


def build_routing_document(
    records: Iterable[ClientRecord],
    settings: RouteSettings = RouteSettings(),
) -> dict:
    """Build the ``http.routers`` / ``http.services`` document for *records*.

    Entries are emitted in canonical-id order regardless of input order, so
    the same live set always renders to the same bytes.
    """
    routers: dict = {}
    services: dict = {}
    for record in sorted(records, key=lambda r: r.canonical_id):
        service_name = f"{settings.service_prefix}{record.canonical_id}"
        routers[f"{settings.router_prefix}{record.canonical_id}"] = {
            "entryPoints": [settings.entrypoint],
            "rule": f"Host(`{record.hostname(settings.domain)}`)",
            "service": service_name,
        }
        services[service_name] = {
            "loadBalancer": {
                "servers": [
                    {"url": f"http://{settings.upstream_host}:{record.port}"},
                ],
            },
        }
    return {"http": {"routers": routers, "services": services}}


def render_routing_document(document: dict) -> str:
    """Serialize a routing document to YAML."""
    return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)


def write_routing_document(path: str | Path, text: str) -> None:
    """Replace *path* with *text* so a watcher never sees a partial file.

    The content goes to a temp file in the same directory which is then
    renamed over the target.
    """
    path = Path(path)
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp",
        )
        with os.fdopen(fd, "w") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; the proxy usually runs as another user
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except OSError as exc:
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
        raise PersistenceFailure(f"failed to write {path}: {exc}") from exc


class ConfigWriter:
    """Regenerates the routing document from a registry snapshot.

    Only one regeneration runs at a time, and its snapshot is taken after
    any mutation that triggered it has completed.
    """

    def __init__(self, path: str | Path, settings: RouteSettings = RouteSettings()):
        self.path = Path(path)
        self.settings = settings
        self._lock = threading.Lock()
        self._last_written: str | None = None

    def sync(self, snapshot: Callable[[], list[ClientRecord]]) -> bool:
        """Write the document for ``snapshot()``. Returns False on failure."""
        with self._lock:
            records = snapshot()
            try:
                text = render_routing_document(
                    build_routing_document(records, self.settings)
                )
            except yaml.YAMLError:
                logger.exception("Failed to render Traefik config")
                return False

            if text == self._last_written and self.path.exists():
                logger.debug("Traefik config unchanged, skipping write")
                return True

            try:
                write_routing_document(self.path, text)
            except PersistenceFailure as exc:
                logger.error("Failed to write config: %s", exc)
                return False

            self._last_written = text
            logger.info("Generated Traefik config with %d routes", len(records))
            return True
