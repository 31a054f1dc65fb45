"""Hostname label validation and canonical keys for registered clients."""

import re


MAX_IDENTIFIER_LENGTH = 1500
MAX_LABEL_LENGTH = 63

_LABEL_RE = re.compile(r"[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?")


def validate_identifier(identifier) -> bool:
    """Return True if *identifier* is usable as a (multi-level) subdomain.

    The identifier is split on ``.``; every label must be 1-63 ASCII
    alphanumerics or hyphens and must not start or end with a hyphen.
    """
    if not isinstance(identifier, str):
        return False
    if len(identifier) > MAX_IDENTIFIER_LENGTH:
        return False
    for label in identifier.split("."):
        if not label or len(label) > MAX_LABEL_LENGTH:
            return False
        if _LABEL_RE.fullmatch(label) is None:
            return False
    return True


def canonicalize(identifier: str) -> str:
    """Map an identifier to the dot-free key used for lookups and route names."""
    return identifier.replace(".", "_")
