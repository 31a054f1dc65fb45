import json
import urllib.error
import urllib.request

import pytest

from devrp.config import ServerConfig
from devrp.registry import start_registry_server
from devrp.server import RegistryService


class FakeClock:
    """Manually advanced clock for liveness tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path) -> ServerConfig:
    return ServerConfig(host="127.0.0.1", port=0, config_dir=str(tmp_path))


@pytest.fixture
def service(config, clock) -> RegistryService:
    return RegistryService(config, clock=clock)


@pytest.fixture
def api(service):
    """Serve *service* on an ephemeral port; yields the base URL."""
    server = start_registry_server(service, host="127.0.0.1", port=0)
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def request_json(url, method="GET", payload=None, raw=None):
    """Return ``(status, decoded_body)`` for a request, including HTTP errors."""
    data = raw if raw is not None else (
        json.dumps(payload).encode() if payload is not None else None
    )
    req = urllib.request.Request(url, data=data, method=method)
    if data is not None:
        req.add_header("Content-Type", "application/json")
    opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))
    try:
        with opener.open(req, timeout=3) as resp:
            body = resp.read().decode()
            return resp.status, json.loads(body) if body else {}
    except urllib.error.HTTPError as exc:
        body = exc.read().decode()
        return exc.code, json.loads(body) if body else {}
