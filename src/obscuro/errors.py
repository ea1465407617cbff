"""Typed exceptions raised by the redaction core.

Every failure inside the core surfaces as one of the ``CoreError`` subclasses
below so callers can tell bad input apart from a rendering fault. Boundary
code (HTTP, CLI) maps them to user-facing messages.
"""

from __future__ import annotations


class CoreError(Exception):
    """Base class for all redaction core failures."""

    kind = "core_error"


class InvalidInputError(CoreError):
    """Raised when the input bytes are not a readable PDF document."""

    kind = "invalid_input"


class ExtractionError(CoreError):
    """Raised when a page's text layout cannot be decoded."""

    kind = "extraction_failure"

    def __init__(self, message: str, page_index: int | None = None) -> None:
        super().__init__(message)
        self.page_index = page_index


class RenderError(CoreError):
    """Raised for out-of-bounds mark geometry or re-serialization failure."""

    kind = "render_failure"

    def __init__(self, message: str, page_index: int | None = None) -> None:
        super().__init__(message)
        self.page_index = page_index


class ConfigurationError(CoreError):
    """Raised for malformed rule patterns, rule files, or stamp settings."""

    kind = "configuration_error"


__all__ = [
    "CoreError",
    "InvalidInputError",
    "ExtractionError",
    "RenderError",
    "ConfigurationError",
]
