"""Text layout extraction.

Functions in this module parse PDF bytes with PyMuPDF and return each page's
positioned text runs (one run per layout span) in encounter order. The input
buffer is opened read-only in memory and never modified.

Geometry is reported in PyMuPDF page space (top-left origin). Pages carrying a
``/Rotate`` entry are extracted as-is; mark placement on rotated pages is a
known open issue and is logged as a warning.
"""

from contextlib import contextmanager
from typing import Iterator, List, Tuple

import fitz  # PyMuPDF

from .errors import ExtractionError, InvalidInputError
from .logging import get_logger
from .models import Page, TextRun

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF-"

# MuPDF warning fragments that mean page content was dropped.
DECODE_ERRORS = (
    "library error",
    "zlib error",
    "syntax error",
    "format error",
    "lzw error",
    "cannot parse",
)


@contextmanager
def open_document(data: bytes) -> Iterator[fitz.Document]:
    """Open ``data`` as an in-memory PDF and close it on exit.

    Raises
    ------
    InvalidInputError
        If the bytes are empty, not a PDF, encrypted, or have no pages.
    """
    if not data:
        raise InvalidInputError("Input is empty")
    if PDF_MAGIC not in data[:1024]:
        raise InvalidInputError("Input is not a PDF document")
    try:
        doc = fitz.open(stream=bytes(data), filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        raise InvalidInputError(f"Unreadable PDF: {exc}") from exc
    try:
        if doc.needs_pass:
            raise InvalidInputError("Encrypted PDFs are not supported")
        if doc.page_count == 0:
            raise InvalidInputError("PDF has no pages")
        yield doc
    finally:
        doc.close()


def extract_page(page: fitz.Page, index: int) -> Page:
    """Extract runs from a single PyMuPDF page.

    Parameters
    ----------
    page:
        Loaded PyMuPDF page.
    index:
        1-based page number recorded on the result.

    Returns
    -------
    Page
        Page dimensions plus runs in encounter order. Whitespace-only spans
        are skipped.

    Raises
    ------
    ExtractionError
        If the page's content stream cannot be decoded, including failures
        MuPDF only reports as warnings.
    """
    # MuPDF reports content stream decode failures as warnings, not exceptions.
    fitz.TOOLS.mupdf_warnings(reset=True)
    try:
        layout = page.get_text("dict", sort=False)
    except (RuntimeError, ValueError) as exc:
        raise ExtractionError(f"Cannot decode page {index}: {exc}", page_index=index) from exc
    warnings = fitz.TOOLS.mupdf_warnings(reset=True) or ""
    problems = [
        line for line in warnings.splitlines() if any(m in line for m in DECODE_ERRORS)
    ]
    if problems:
        raise ExtractionError(f"Cannot decode page {index}: {problems[0]}", page_index=index)

    runs: List[TextRun] = []
    for block in layout.get("blocks", []):
        if block.get("type") != 0:  # images
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "")
                if not text.strip():
                    continue
                x0, y0, x1, y1 = span["bbox"]
                runs.append(
                    TextRun(
                        text=text,
                        x=float(x0),
                        y=float(y0),
                        width=float(x1 - x0),
                        height=float(y1 - y0),
                        font=span.get("font", ""),
                        size=float(span.get("size", 0.0)),
                        baseline=float(span.get("origin", (x0, y1))[1]),
                    )
                )

    rotation = int(page.rotation or 0)
    if rotation:
        logger.warning(
            "Rotated page extracted without rotation handling",
            extra={"extra": {"page": index, "rotation": rotation}},
        )
    rect = page.rect
    return Page(
        index=index,
        width=float(rect.width),
        height=float(rect.height),
        runs=tuple(runs),
        rotation=rotation,
    )


def extract_document(doc: fitz.Document) -> Tuple[Page, ...]:
    pages: List[Page] = []
    for pno in range(doc.page_count):
        try:
            fpage = doc.load_page(pno)
        except (RuntimeError, ValueError) as exc:
            raise ExtractionError(
                f"Cannot load page {pno + 1}: {exc}", page_index=pno + 1
            ) from exc
        pages.append(extract_page(fpage, pno + 1))
    return tuple(pages)


def extract(data: bytes) -> Tuple[Page, ...]:
    """Parse ``data`` into pages of positioned text runs.

    Raises
    ------
    InvalidInputError
        The bytes are not a usable PDF.
    ExtractionError
        A page's content could not be decoded.
    """
    with open_document(data) as doc:
        pages = extract_document(doc)
    logger.debug(
        "Extracted layout",
        extra={"extra": {"pages": len(pages), "runs": sum(len(p.runs) for p in pages)}},
    )
    return pages


def page_text(page: Page) -> str:
    """Join run texts of ``page`` in encounter order (diagnostics only)."""
    return "\n".join(run.text for run in page.runs)


__all__ = ["open_document", "extract", "extract_page", "extract_document", "page_text"]
