"""devrp: stable *.localhost hostnames for local dev servers behind Traefik."""

__version__ = '0.1.0'
