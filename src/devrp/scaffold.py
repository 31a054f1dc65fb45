"""Render the docker-compose, Traefik and Dockerfile scaffold for the registry."""

import sys
from pathlib import Path

from jinja2 import Environment, PackageLoader

from .config import ServerConfig


SCAFFOLD_FILES = {
    "docker-compose.yml": "docker-compose.yml.j2",
    "traefik.yml": "traefik.yml.j2",
    "Dockerfile": "Dockerfile.j2",
}


def _get_template_env() -> Environment:
    return Environment(
        loader=PackageLoader("devrp", "templates"),
        keep_trailing_newline=True,
    )


def render_scaffold(config: ServerConfig, proxy_port: int = 80) -> dict[str, str]:
    """Render every scaffold file. Returns a mapping of filename to content."""
    env = _get_template_env()
    return {
        name: env.get_template(template).render(config=config, proxy_port=proxy_port)
        for name, template in SCAFFOLD_FILES.items()
    }


def write_scaffold(
    output_dir: str | Path,
    config: ServerConfig,
    proxy_port: int = 80,
    force: bool = False,
) -> list[Path]:
    """Write the scaffold into *output_dir*. Existing files are kept unless *force*."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name, content in render_scaffold(config, proxy_port).items():
        path = output_dir / name
        if path.exists() and not force:
            print(f"Skipping {path} (exists, use --force to overwrite)", file=sys.stderr)
            continue
        path.write_text(content)
        print(f"Wrote {path}", file=sys.stderr)
        written.append(path)
    return written
