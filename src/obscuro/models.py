"""Value types shared by the extraction, detection, and rendering stages.

Two coordinate spaces are in play:

* Page space, as reported by PyMuPDF: origin at the top-left corner, y grows
  downward. ``TextRun`` geometry lives here.
* Native PDF space: origin at the bottom-left corner, y grows upward.
  ``RedactionMark`` rectangles live here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

RGB = Tuple[float, float, float]


@dataclass(frozen=True)
class TextRun:
    """Positioned text fragment exactly as emitted by the page layout."""

    text: str
    x: float
    y: float
    width: float
    height: float
    font: str = ""
    size: float = 0.0
    baseline: float = 0.0

    @property
    def x1(self) -> float:
        return self.x + self.width

    @property
    def y1(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class Page:
    """A single page with its runs in encounter order."""

    index: int
    width: float
    height: float
    runs: Tuple[TextRun, ...] = ()
    rotation: int = 0


@dataclass(frozen=True)
class Match:
    """A run that satisfied a detection rule."""

    page_index: int
    text: str
    category: str
    run: TextRun


@dataclass(frozen=True)
class RedactionMark:
    """Occlusion rectangle in native PDF space (bottom-left origin)."""

    page_index: int
    x: float
    y: float
    width: float
    height: float
    color: RGB = (0.0, 0.0, 0.0)
    opacity: float = 1.0
    category: str = ""

    def covers(self, run: TextRun, page_height: float) -> bool:
        """Return True if this mark fully contains ``run``'s bounding box."""
        bottom = page_height - run.y1
        top = page_height - run.y
        eps = 1e-6
        return (
            self.x <= run.x + eps
            and self.x + self.width >= run.x1 - eps
            and self.y <= bottom + eps
            and self.y + self.height >= top - eps
        )


@dataclass(frozen=True)
class StampConfig:
    """Fixed compliance annotation drawn once on every output page.

    ``x_offset`` is subtracted from the horizontal page centre (an approximate
    half-width of the text); ``y`` is measured from the bottom edge.
    """

    text: str = "HIPAA COMPLIANT"
    x_offset: float = 80.0
    y: float = 30.0
    size: float = 20.0
    color: RGB = (0.0, 0.5, 0.0)
    opacity: float = 0.7
    font: str = "helv"

    def origin(self, page_width: float) -> Tuple[float, float]:
        """Baseline origin of the stamp in native PDF space."""
        return (page_width / 2 - self.x_offset, self.y)


__all__ = [
    "RGB",
    "TextRun",
    "Page",
    "Match",
    "RedactionMark",
    "StampConfig",
]
