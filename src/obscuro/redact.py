"""Redaction drawing routines.

Low-level helpers that paint marks and the compliance stamp onto PyMuPDF
pages. Mark rectangles arrive in native PDF space (bottom-left origin) and
are flipped back into PyMuPDF page space here, right before drawing.
"""

from typing import Iterable, List, Sequence, Tuple

import fitz  # PyMuPDF

from .models import RedactionMark, StampConfig


def to_page_rect(mark: RedactionMark, page_height: float) -> fitz.Rect:
    """Convert a native-space mark into a PyMuPDF rectangle.

    Parameters
    ----------
    mark:
        Mark with ``y`` measured upward from the bottom edge.
    page_height:
        Height of the page the mark belongs to.

    Returns
    -------
    fitz.Rect
        Rectangle with ``y0``/``y1`` measured downward from the top edge.
    """
    top = page_height - (mark.y + mark.height)
    return fitz.Rect(mark.x, top, mark.x + mark.width, top + mark.height)


def draw_marks(page: fitz.Page, marks: Sequence[RedactionMark]) -> int:
    """Paint each mark as a filled rectangle on top of the page content.

    Rectangles are drawn independently in the given order; overlapping marks
    simply stack. Returns the number of rectangles drawn.
    """
    height = page.rect.height
    for mark in marks:
        page.draw_rect(
            to_page_rect(mark, height),
            color=None,
            fill=tuple(mark.color),
            fill_opacity=mark.opacity,
            width=0,
            overlay=True,
        )
    return len(marks)


def remove_under_marks(page: fitz.Page, marks: Sequence[RedactionMark]) -> int:
    """Delete page content under each mark and fill the area.

    Uses redaction annotations, so text objects inside the rectangles are
    removed from the content stream rather than just covered.
    """
    if not marks:
        return 0
    height = page.rect.height
    for mark in marks:
        page.add_redact_annot(to_page_rect(mark, height), fill=tuple(mark.color))
    page.apply_redactions()
    return len(marks)


def draw_stamp(page: fitz.Page, stamp: StampConfig) -> Tuple[float, float]:
    """Write the stamp text near the bottom of the page.

    Returns the baseline origin used, in native PDF space.
    """
    rect = page.rect
    x, y = stamp.origin(rect.width)
    page.insert_text(
        fitz.Point(x, rect.height - y),
        stamp.text,
        fontsize=stamp.size,
        fontname=stamp.font,
        color=tuple(stamp.color),
        fill_opacity=stamp.opacity,
        overlay=True,
    )
    return (x, y)


def draw_preview(
    data: bytes,
    marks: Iterable[RedactionMark],
    *,
    outline_rgb=(0.0, 0.7, 0.0),
    width: float = 1.5,
    zoom: float = 1.0,
) -> List[bytes]:
    """Render PNG previews with outline boxes where marks would be drawn.

    Used for dry runs: the source document is opened in memory, outlined,
    rasterized, and discarded.
    """
    by_page = {}
    for mark in marks:
        by_page.setdefault(mark.page_index, []).append(mark)
    images: List[bytes] = []
    doc = fitz.open(stream=bytes(data), filetype="pdf")
    try:
        for pno in range(doc.page_count):
            page = doc.load_page(pno)
            height = page.rect.height
            for mark in by_page.get(pno + 1, []):
                page.draw_rect(to_page_rect(mark, height), color=outline_rgb, width=width)
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom))
            images.append(pix.tobytes("png"))
    finally:
        doc.close()
    return images
