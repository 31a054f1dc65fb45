"""
In-process Client Registry

This package provides:
1. ClientRegistry - reader/writer-locked registry of live clients
2. make_handler / start_registry_server - the registration HTTP API
3. RegistryClient - HTTP client for the registration API
"""

from .client_registry import (
    ClientRecord,
    ClientRegistry,
    ReadWriteLock,
    format_timestamp,
)
from .http_api import (
    RegistryClient,
    make_handler,
    start_registry_server,
)

__all__ = [
    'ClientRecord',
    'ClientRegistry',
    'ReadWriteLock',
    'RegistryClient',
    'format_timestamp',
    'make_handler',
    'start_registry_server',
]
