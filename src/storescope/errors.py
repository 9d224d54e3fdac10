"""Exception hierarchy shared across the storescope package."""

from __future__ import annotations


class StorescopeError(Exception):
    """Base class for all storescope errors."""


class OriginUnreachableError(StorescopeError):
    """Brief: A single origin could not be sampled.

    Inputs:
      - hostname: Canonical hostname of the origin that failed.
      - reason: Optional human-readable reason (closed, timed out, refused).

    Outputs:
      - Exception instance; the collection coordinator treats it as
        "skip this origin" and keeps going.
    """

    def __init__(self, hostname: str, reason: str = "") -> None:
        self.hostname = hostname
        self.reason = reason
        msg = f"origin {hostname or '<unknown>'} unreachable"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class CookieEnumerationError(StorescopeError):
    """The host refused or failed to list cookies; fatal for a cycle."""


class SettingsStoreError(StorescopeError):
    """Reading or writing persisted filter settings failed."""


class ConfigError(ValueError):
    """Invalid storescope YAML configuration."""
