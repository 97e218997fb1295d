"""Provides shared helpers and the application's exception hierarchy.

This module contains common utilities that are used across the tracker_relo
package.

Classes:
    TrackerReloError: Base class of every error raised by the package.
    ConfigError: The configuration store could not be read or written.
    ClientConnectionError: A backend handshake, login or request failed.
    ProtocolError: A backend answered with something we cannot interpret.
    ReplaceError: A single tracker replacement failed.
    UnsupportedBackendError: The requested backend kind is unknown.
    Timeouts: The connect/read timeout pair used for every HTTP request.

Functions:
    build_base_url: Builds the scheme://host:port prefix for a backend.
"""
import os
from typing import Tuple


class TrackerReloError(Exception):
    """Base exception for all tracker_relo errors.

    Every error carries a human-readable message only; nothing in the package
    distinguishes retryable from non-retryable failures because nothing retries.
    """
    pass


class ConfigError(TrackerReloError):
    """Raised when the configuration store cannot be read or written."""
    pass


class ClientConnectionError(TrackerReloError):
    """Raised when connecting or authenticating to a backend fails.

    This is fatal to the pipeline that triggered it.
    """
    pass


class ProtocolError(TrackerReloError):
    """Raised when a backend response has an unexpected status or shape."""
    pass


class ReplaceError(TrackerReloError):
    """Raised when replacing a single tracker URL fails.

    The orchestrator records this in the per-item outcome instead of aborting
    the remaining replacements.
    """
    pass


class UnsupportedBackendError(TrackerReloError):
    """Raised for an unknown backend kind, before any network I/O happens."""
    pass


class Timeouts:
    CONNECT = float(os.getenv('TR_CONNECT_TIMEOUT', '5'))
    REQUEST = float(os.getenv('TR_REQUEST_TIMEOUT', '10'))

    @classmethod
    def as_tuple(cls) -> Tuple[float, float]:
        """Returns the (connect, read) pair in the form `requests` expects."""
        return (cls.CONNECT, cls.REQUEST)


def build_base_url(host: str, port: int, use_https: bool) -> str:
    """Builds the base URL of a backend's web interface.

    Example:
        ('127.0.0.1', 8080, False) -> 'http://127.0.0.1:8080'

    Args:
        host: Host name or IP address of the backend.
        port: TCP port of the backend's web interface.
        use_https: Whether to use the https scheme.

    Returns:
        The base URL without a trailing slash.
    """
    scheme = "https" if use_https else "http"
    return f"{scheme}://{host.strip()}:{port}"
