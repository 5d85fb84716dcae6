"""
Mixer Errors - Domain-specific error types.

Error hierarchy:
    MixerError (base)
    ├── ValidationError   (bad property value, raised by setters/constructors)
    ├── NotFoundError     (audio or HRTF file missing at access time)
    └── StateError        (operation impossible in the current state)
"""

from __future__ import annotations

from typing import Any


class MixerError(Exception):
    """Base error for all binaural mixer errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(MixerError, ValueError):
    """
    Raised synchronously when a property or constructor argument is invalid.

    Examples:
    - Non-scalar azimuth
    - PRECOMPOSED that is not a bool
    - TARGET that is not a single Source
    """

    def __init__(
        self,
        name: str,
        message: str,
        value: Any = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(f"{name.upper()} {message}", details)
        self.name = name
        self.value = value


class NotFoundError(MixerError):
    """Raised when a referenced audio or HRTF file does not exist."""

    def __init__(self, path: Any, kind: str = "audio", details: dict[str, Any] | None = None):
        super().__init__(f"{kind} file does not exist: {path}", details)
        self.path = path
        self.kind = kind


class StateError(MixerError):
    """
    Raised when an operation cannot run in the current state.

    Typically a write() or signal read on an entity with no filename.
    """
