"""Configuration primitives for the Obscuro pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from obscuro.errors import ConfigurationError


class RedactionStrategy(str, Enum):
    """How marks are applied to the output document.

    ``OVERLAY`` paints opaque rectangles on top of the page. The original text
    objects stay in the file and remain extractable (copy/paste, text search).
    ``REMOVE`` applies redaction annotations, deleting text under each mark
    before painting it.
    """

    OVERLAY = "overlay"
    REMOVE = "remove"


OVERLAY_LIMITATION = (
    "Overlay redaction is visual only: underlying text objects are not removed "
    "and can still be extracted from the output PDF."
)


@dataclass
class RunConfig:
    """Runtime configuration for detection and rendering."""

    margin_factor: float = 1.2
    fill_rgb: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    strategy: RedactionStrategy = RedactionStrategy.OVERLAY
    workers: int = 1
    rules_path: Optional[str] = None
    categories: Optional[List[str]] = None
    instrument: bool = True

    def validate(self) -> "RunConfig":
        if self.margin_factor < 1.0:
            raise ConfigurationError("margin_factor must be >= 1.0")
        if len(self.fill_rgb) != 3 or any(not 0.0 <= c <= 1.0 for c in self.fill_rgb):
            raise ConfigurationError("fill_rgb must be three components in [0, 1]")
        if self.workers < 1:
            raise ConfigurationError("workers must be >= 1")
        try:
            self.strategy = RedactionStrategy(self.strategy)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown strategy: {self.strategy}") from exc
        return self


class PageResult(BaseModel):
    """Per-page output payload."""

    page_index: int
    width: float
    height: float
    rotation: int = 0
    runs: int = 0
    matches: int = 0
    marks_applied: int = 0
    by_category: Dict[str, int] = {}
    stamped: bool = True


__all__ = ["RunConfig", "PageResult", "RedactionStrategy", "OVERLAY_LIMITATION"]
