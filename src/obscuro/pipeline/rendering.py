"""Rendering helpers: turn matches into marks and write the redacted PDF."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import fitz  # PyMuPDF

from obscuro.errors import RenderError
from obscuro.extract import open_document
from obscuro.logging import get_logger
from obscuro.models import Match, Page, RedactionMark, StampConfig
from obscuro.redact import draw_marks, draw_stamp, remove_under_marks

from .config import PageResult, RedactionStrategy, RunConfig

logger = get_logger(__name__)

# Runs may overhang the page edge by rounding noise in the layout engine.
BOUNDS_TOLERANCE = 0.5


@dataclass
class RenderResult:
    output: bytes
    marks: List[RedactionMark]
    pages: List[PageResult]
    content_removed: bool
    duration: float = 0.0
    stamps: Dict[int, tuple] = field(default_factory=dict)


def mark_for_match(
    match: Match,
    page: Page,
    margin_factor: float = 1.2,
    color=(0.0, 0.0, 0.0),
) -> RedactionMark:
    """Compute the occlusion rectangle for ``match`` in native PDF space.

    ``rect_y = page_height - run_y - run_height`` flips the run's top-left
    geometry to a bottom-left origin. The height is then scaled by
    ``margin_factor`` around the run's vertical centre to cover ascenders
    and descenders, and the added margin is clamped to the page.
    """
    if margin_factor < 1.0:
        raise RenderError("margin_factor must be >= 1.0", page_index=page.index)
    run = match.run
    tol = BOUNDS_TOLERANCE
    if (
        run.width < 0
        or run.height < 0
        or run.x < -tol
        or run.y < -tol
        or run.x1 > page.width + tol
        or run.y1 > page.height + tol
    ):
        raise RenderError(
            f"Match geometry outside page {page.index} bounds", page_index=page.index
        )

    rect_y = page.height - run.y - run.height
    inflated = run.height * margin_factor
    pad = (inflated - run.height) / 2
    bottom = max(min(0.0, rect_y), rect_y - pad)
    top = min(max(page.height, rect_y + run.height), rect_y + run.height + pad)
    return RedactionMark(
        page_index=page.index,
        x=run.x,
        y=bottom,
        width=run.width,
        height=top - bottom,
        color=tuple(color),
        opacity=1.0,
        category=match.category,
    )


def plan_marks(
    pages: Sequence[Page],
    matches: Sequence[Match],
    margin_factor: float = 1.2,
    color=(0.0, 0.0, 0.0),
) -> List[RedactionMark]:
    """Derive one mark per match, validating every match against its page."""
    by_index = {p.index: p for p in pages}
    marks: List[RedactionMark] = []
    for m in matches:
        page = by_index.get(m.page_index)
        if page is None:
            raise RenderError(
                f"Match references missing page {m.page_index}", page_index=m.page_index
            )
        marks.append(mark_for_match(m, page, margin_factor, color))
    return marks


def _page_geometry(doc: fitz.Document) -> List[Page]:
    out: List[Page] = []
    for pno in range(doc.page_count):
        rect = doc.load_page(pno).rect
        out.append(Page(index=pno + 1, width=float(rect.width), height=float(rect.height)))
    return out


def render_document(
    data: bytes,
    matches: Sequence[Match],
    stamp: Optional[StampConfig] = None,
    cfg: Optional[RunConfig] = None,
    pages: Optional[Sequence[Page]] = None,
) -> RenderResult:
    """Apply marks and the stamp to a copy of ``data``.

    All marks are planned before the document is touched, so a bad match
    fails the call without producing output. Marks on a page are drawn
    first, the stamp last, and every page is stamped.
    """
    stamp = stamp or StampConfig()
    cfg = cfg or RunConfig()
    start = time.perf_counter()
    strategy = RedactionStrategy(cfg.strategy)
    run_counts = {p.index: len(p.runs) for p in pages or []}

    with open_document(data) as doc:
        geometry = _page_geometry(doc)
        marks = plan_marks(geometry, matches, cfg.margin_factor, cfg.fill_rgb)
        by_page: Dict[int, List[RedactionMark]] = {}
        for mark in marks:
            by_page.setdefault(mark.page_index, []).append(mark)

        results: List[PageResult] = []
        stamps: Dict[int, tuple] = {}
        for page_geo in geometry:
            page = doc.load_page(page_geo.index - 1)
            page_marks = by_page.get(page_geo.index, [])
            try:
                if strategy is RedactionStrategy.REMOVE:
                    applied = remove_under_marks(page, page_marks)
                else:
                    applied = draw_marks(page, page_marks)
                stamps[page_geo.index] = draw_stamp(page, stamp)
            except (RuntimeError, ValueError) as exc:
                raise RenderError(
                    f"Drawing failed on page {page_geo.index}: {exc}",
                    page_index=page_geo.index,
                ) from exc
            categories: Dict[str, int] = {}
            for mark in page_marks:
                categories[mark.category] = categories.get(mark.category, 0) + 1
            results.append(
                PageResult(
                    page_index=page_geo.index,
                    width=page_geo.width,
                    height=page_geo.height,
                    rotation=int(page.rotation or 0),
                    runs=run_counts.get(page_geo.index, 0),
                    matches=len(page_marks),
                    marks_applied=applied,
                    by_category=categories,
                    stamped=True,
                )
            )

        try:
            output = doc.tobytes(garbage=3, deflate=True)
        except (RuntimeError, ValueError) as exc:
            raise RenderError(f"Cannot serialize redacted PDF: {exc}") from exc

    duration = time.perf_counter() - start
    logger.debug(
        "Rendered document",
        extra={"extra": {"pages": len(results), "marks": len(marks), "strategy": strategy.value}},
    )
    return RenderResult(
        output=output,
        marks=marks,
        pages=results,
        content_removed=strategy is RedactionStrategy.REMOVE,
        duration=duration,
        stamps=stamps,
    )


def render(
    data: bytes,
    matches: Sequence[Match],
    stamp: Optional[StampConfig] = None,
    cfg: Optional[RunConfig] = None,
) -> bytes:
    """Return redacted PDF bytes for ``data`` and ``matches``."""
    return render_document(data, matches, stamp, cfg).output


__all__ = ["RenderResult", "mark_for_match", "plan_marks", "render_document", "render"]
