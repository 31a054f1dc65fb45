"""CLI entry point for devrp."""

import argparse
import json
import logging
import os
import sys

from .config import (
    ServerConfig,
    apply_env,
    load_config,
    merge_cli_args,
    parse_duration,
    validate_config,
)
from .errors import ConfigError
from .launcher import run_registered
from .registry import RegistryClient
from .scaffold import write_scaffold


def _duration(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))


def _add_server_args(parser: argparse.ArgumentParser) -> None:
    """Add config flags for the registry server."""
    parser.add_argument("--config", type=str, help="Path to YAML config file")
    parser.add_argument("--host", type=str, help="Listen address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Listen port (default: 8080)")
    parser.add_argument(
        "--config-dir", type=str, dest="config_dir",
        help="Directory shared with Traefik's file provider (default: /config)",
    )
    parser.add_argument(
        "--heartbeat-timeout", type=_duration, dest="heartbeat_timeout",
        help="Evict clients silent for longer than this, e.g. 30s or 1m (default: 30s)",
    )
    parser.add_argument(
        "--log-level", type=str, dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )


def _build_config(args) -> ServerConfig:
    """Build a ServerConfig from a config file + environment + CLI overrides."""
    if getattr(args, "config", None):
        config = load_config(args.config)
    else:
        config = ServerConfig()
    apply_env(config)
    merge_cli_args(config, args)
    return config


def cmd_serve(args) -> None:
    """Run the registry server."""
    try:
        config = _build_config(args)
    except (ConfigError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        validate_config(config)
    except ConfigError as exc:
        logging.getLogger(__name__).critical("%s", exc)
        sys.exit(1)

    from .server import serve
    serve(config)


def cmd_run(args) -> None:
    """Register with the server and run a command behind it."""
    command = list(args.command)
    # Strip leading '--' separator that REMAINDER captures
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        print("No command provided", file=sys.stderr)
        sys.exit(1)

    server = args.server or os.environ.get("SERVER") or "http://localhost:8080"
    ident = args.id or os.environ.get("ID") or "myapp"
    sys.exit(run_registered(command, ident, server=server, port=args.port))


# ---------------------------------------------------------------------------
# devrp clients subcommand
# ---------------------------------------------------------------------------

def _format_clients(clients, fmt: str) -> str:
    """Format the ``GET /clients`` payload for output."""
    if fmt == "json":
        return json.dumps(clients, indent=2)
    lines = []
    for c in clients:
        lines.append(f"{c['domain']}  -> :{c['port']}  last_heartbeat={c['last_heartbeat']}")
    return "\n".join(lines) if lines else "(no clients)"


def cmd_clients_list(args) -> None:
    client = RegistryClient(args.server)
    clients = client.list_clients()
    if clients is None:
        print(f"Error: registry at {args.server} is unreachable.", file=sys.stderr)
        sys.exit(1)
    print(_format_clients(clients, args.format))


def cmd_clients_status(args) -> None:
    client = RegistryClient(args.server)
    status = client.status()
    if status is None:
        print(f"Error: registry at {args.server} is unreachable.", file=sys.stderr)
        sys.exit(1)
    if args.format == "json":
        print(json.dumps(status, indent=2))
    else:
        print(f"{status['status']}  clients={status['clients']}")


def _add_clients_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--server", "-s", type=str,
        default=os.environ.get("SERVER", "http://localhost:8080"),
        help="Registry URL (default: $SERVER or http://localhost:8080)",
    )
    parser.add_argument(
        "--format", choices=["text", "json"], default="text",
        help="Output format (default: text)",
    )


def cmd_init(args) -> None:
    """Write docker-compose.yml, traefik.yml and the registry Dockerfile."""
    config = ServerConfig()
    merge_cli_args(config, args)
    try:
        validate_config(config)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    write_scaffold(args.output_dir, config, proxy_port=args.proxy_port, force=args.force)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="devrp",
        description="devrp: stable *.localhost hostnames for local dev servers",
    )
    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the registration server")
    _add_server_args(serve_parser)
    serve_parser.set_defaults(func=cmd_serve)

    # run
    run_parser = subparsers.add_parser(
        "run", help="Register a hostname and run a command on its port",
    )
    run_parser.add_argument(
        "--server", "-s", type=str, default=None,
        help="Registry URL (default: $SERVER or http://localhost:8080)",
    )
    run_parser.add_argument(
        "--id", "-i", type=str, default=None,
        help="Client identifier / subdomain (default: $ID or myapp)",
    )
    run_parser.add_argument(
        "--port", "-p", type=int, default=None,
        help="Port for the command (default: $PORT or a free port in 3000-3100)",
    )
    run_parser.add_argument(
        "command", nargs=argparse.REMAINDER,
        help="Command to run (put after --)",
    )
    run_parser.set_defaults(func=cmd_run)

    # clients
    clients_parser = subparsers.add_parser("clients", help="Query the registry")
    clients_sub = clients_parser.add_subparsers(dest="clients_command")

    cl_list = clients_sub.add_parser("list", help="List registered clients")
    _add_clients_args(cl_list)
    cl_list.set_defaults(func=cmd_clients_list)

    cl_status = clients_sub.add_parser("status", help="Show registry status")
    _add_clients_args(cl_status)
    cl_status.set_defaults(func=cmd_clients_status)

    # init
    init_parser = subparsers.add_parser(
        "init", help="Write docker-compose.yml, traefik.yml and a Dockerfile",
    )
    init_parser.add_argument(
        "--output-dir", type=str, default=".", dest="output_dir",
        help="Directory to write the files into (default: .)",
    )
    init_parser.add_argument(
        "--server-port", type=int, dest="port",
        help="Registry listen port (default: 8080)",
    )
    init_parser.add_argument(
        "--proxy-port", type=int, default=80, dest="proxy_port",
        help="Host port Traefik listens on (default: 80)",
    )
    init_parser.add_argument(
        "--heartbeat-timeout", type=_duration, dest="heartbeat_timeout",
        help="Registry heartbeat timeout (default: 30s)",
    )
    init_parser.add_argument(
        "--force", action="store_true",
        help="Overwrite existing files",
    )
    init_parser.set_defaults(func=cmd_init)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "clients" and not args.clients_command:
        clients_parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
