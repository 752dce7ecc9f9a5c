"""Exceptions raised by the RCON client."""

from __future__ import annotations


class RconError(Exception):
    """Base exception for RCON errors."""


class AuthenticationError(RconError):
    """Raised when the server rejects the RCON password."""


class ConnectionError(RconError):  # noqa: A001
    """Raised when the connection to the server is lost or cannot be established."""


class ProtocolDecodeError(RconError):
    """Raised when data from the server is not a valid or expected packet."""
