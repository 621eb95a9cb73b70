"""Plugin store errors - a closed set of failure kinds with structured context."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""

    TRANSPORT = "transport"
    DECODE = "decode"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    IO = "io"


class PluginStoreError(Exception):
    """Base class for every error raised by the plugin subsystem.

    Args:
        message: Human-readable description
        package: Registry package involved, if any
        step: Resolution/install step that failed (e.g. "latest-tag", "bundle")
    """

    kind: ErrorKind = ErrorKind.IO

    def __init__(self, message: str, *, package: Optional[str] = None, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.package = package
        self.step = step

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error for API responses."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "package": self.package,
            "step": self.step,
        }


class TransportError(PluginStoreError):
    """Request failed or returned a non-success status."""

    kind = ErrorKind.TRANSPORT


class DecodeError(PluginStoreError):
    """Response body or manifest did not have the expected shape."""

    kind = ErrorKind.DECODE


class NotFoundError(PluginStoreError):
    """An expected tag, record, URL, archive entry or file is absent."""

    kind = ErrorKind.NOT_FOUND


class PluginValidationError(PluginStoreError):
    """Input rejected before any work was done (package name, plugin id, config)."""

    kind = ErrorKind.VALIDATION


class PluginIOError(PluginStoreError):
    """Directory or file create/read/write/remove failure."""

    kind = ErrorKind.IO
