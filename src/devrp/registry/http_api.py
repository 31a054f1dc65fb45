"""
Registration HTTP API

This module provides:
- make_handler: request handler class bound to a registry service
- start_registry_server: launches a ThreadingHTTPServer in a daemon thread
- RegistryClient: thin HTTP client matching the API shape
"""

import json
import logging
import threading
import urllib.error
import urllib.parse
import urllib.request
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional

from ..errors import InvalidRequest, RegistrationFailed, RegistryError


logger = logging.getLogger(__name__)

_POST_ROUTES = ("/register", "/heartbeat", "/unregister")
_GET_ROUTES = ("/status", "/clients")


# ---------------------------------------------------------------------------
# HTTP handler
# ---------------------------------------------------------------------------

def _parse_register_body(raw: bytes) -> tuple[str, int]:
    """Extract ``(id, port)``; a missing id is empty and a missing port is 0."""
    try:
        data = json.loads(raw.decode("utf-8")) if raw else None
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise InvalidRequest()
    if not isinstance(data, dict):
        raise InvalidRequest()

    ident = data.get("id", "")
    port = data.get("port", 0)
    if ident is None:
        ident = ""
    if port is None:
        port = 0
    if not isinstance(ident, str):
        raise InvalidRequest()
    if isinstance(port, bool) or not isinstance(port, int):
        raise InvalidRequest()
    return ident, port


def make_handler(service):
    """Create a handler class bound to the given service instance."""

    class RegistryHTTPHandler(BaseHTTPRequestHandler):

        def log_message(self, format, *args):
            logger.debug("%s - %s", self.address_string(), format % args)

        def _json_response(self, data: Any, status: int = 200):
            body = json.dumps(data).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(body)

        def _error(self, status: int, message: str):
            self._json_response({"status": "error", "message": message}, status=status)

        def _read_body(self) -> bytes | None:
            """Return the request body, or None if Content-Length is unusable."""
            try:
                length = int(self.headers.get("Content-Length") or 0)
            except ValueError:
                return None
            if length < 0:
                return None
            return self.rfile.read(length) if length > 0 else b""

        def _route(self, method: str):
            parsed = urllib.parse.urlparse(self.path)
            path = parsed.path.rstrip("/")
            qs = urllib.parse.parse_qs(parsed.query)
            # Always consume the body so rejected requests still close cleanly
            body = self._read_body()
            if body is None:
                # Unknown body length; the connection cannot be reused
                self.close_connection = True
                self._error(400, InvalidRequest.message)
                return

            allowed = "POST" if path in _POST_ROUTES else "GET" if path in _GET_ROUTES else None
            if allowed is None:
                self._error(404, "not found")
                return
            if method != allowed:
                self._error(405, "method not allowed")
                return

            try:
                if path == "/register":
                    ident, port = _parse_register_body(body)
                    record = service.register(ident, port)
                    self._json_response({
                        "status": "registered",
                        "url": record.hostname(service.domain),
                    })

                elif path == "/heartbeat":
                    service.heartbeat(self._require_id(qs))
                    self._json_response({"status": "ok"})

                elif path == "/unregister":
                    service.unregister(self._require_id(qs))
                    self._json_response({"status": "unregistered"})

                elif path == "/status":
                    self._json_response({"status": "ok", "clients": service.count()})

                elif path == "/clients":
                    self._json_response({"clients": service.list_clients()})

            except RegistryError as exc:
                self._error(exc.status, exc.message)

        @staticmethod
        def _require_id(qs: Dict[str, List[str]]) -> str:
            ident = qs.get("id", [""])[0]
            if not ident:
                raise InvalidRequest("missing id parameter")
            return ident

        def do_GET(self):
            self._route("GET")

        def do_POST(self):
            self._route("POST")

        def do_PUT(self):
            self._route("PUT")

        def do_DELETE(self):
            self._route("DELETE")

        def do_PATCH(self):
            self._route("PATCH")

        def do_HEAD(self):
            self._route("HEAD")

        def do_OPTIONS(self):
            self._route("OPTIONS")

    return RegistryHTTPHandler


def start_registry_server(
    service,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> ThreadingHTTPServer:
    """Start a ThreadingHTTPServer in a daemon thread and return the server."""
    handler = make_handler(service)
    server = ThreadingHTTPServer((host, port), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


# ---------------------------------------------------------------------------
# HTTP client (used by the run wrapper and the clients subcommand)
# ---------------------------------------------------------------------------

class RegistryClient:
    """Thin HTTP client for the registration API."""

    def __init__(self, server: str = "http://localhost:8080", timeout: float = 5):
        self._base = server.rstrip("/")
        self._timeout = timeout
        # Local registry; never go through http_proxy
        self._opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        data = json.dumps(payload).encode() if payload is not None else None
        req = urllib.request.Request(f"{self._base}{path}", data=data, method=method)
        if data is not None:
            req.add_header("Content-Type", "application/json")
        with self._opener.open(req, timeout=self._timeout) as resp:
            return json.loads(resp.read().decode())

    @staticmethod
    def _query(ident: str) -> str:
        return urllib.parse.urlencode({"id": ident})

    def register(self, ident: str, port: int) -> str:
        """Register *ident* on *port* and return the public hostname."""
        try:
            data = self._request("POST", "/register", {"id": ident, "port": port})
        except urllib.error.HTTPError as exc:
            message = exc.reason
            try:
                message = json.loads(exc.read().decode()).get("message", message)
            except (ValueError, AttributeError):
                pass
            raise RegistrationFailed(f"register failed: {exc.code} {message}", status=exc.code)
        except (urllib.error.URLError, OSError) as exc:
            raise RegistrationFailed(f"register failed: {exc}")
        return data["url"]

    def heartbeat(self, ident: str) -> bool:
        try:
            self._request("POST", f"/heartbeat?{self._query(ident)}")
            return True
        except (urllib.error.URLError, OSError):
            return False

    def unregister(self, ident: str) -> bool:
        try:
            self._request("POST", f"/unregister?{self._query(ident)}")
            return True
        except (urllib.error.URLError, OSError):
            return False

    def status(self) -> Optional[Dict[str, Any]]:
        try:
            return self._request("GET", "/status")
        except (urllib.error.URLError, OSError):
            return None

    def list_clients(self) -> Optional[List[Dict[str, Any]]]:
        try:
            return self._request("GET", "/clients")["clients"]
        except (urllib.error.URLError, OSError):
            return None
