from typing import Dict, List, Optional, Sequence, Tuple

import fitz
import pytest

SAMPLE_RUN = "Patient: Dr. Jane Doe, Visit Date: 01/15/2023"

Line = Tuple[float, float, str]


def make_pdf(
    pages: Sequence[Sequence[Line]],
    size: Tuple[float, float] = (612, 792),
    rotate: Optional[Dict[int, int]] = None,
) -> bytes:
    """Build an in-memory PDF; each line is ``(x, baseline_y_from_top, text)``."""
    doc = fitz.open()
    for i, lines in enumerate(pages):
        page = doc.new_page(width=size[0], height=size[1])
        for x, y, text in lines:
            page.insert_text((x, y), text, fontsize=12, fontname="helv")
        if rotate and i in rotate:
            page.set_rotation(rotate[i])
    data = doc.tobytes()
    doc.close()
    return data


def page_texts(data: bytes) -> List[str]:
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        return [page.get_text() for page in doc]
    finally:
        doc.close()


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def intake_pdf() -> bytes:
    return make_pdf(
        [
            [
                (72, 100, SAMPLE_RUN),
                (72, 140, "blood pressure within normal range"),
                (72, 180, "Referred by Mercy General Hospital"),
            ],
            [(72, 100, "no identifiers on this page")],
            [(72, 300, "follow-up scheduled 2023-02-20")],
        ]
    )


def corrupt_contents(data: bytes, pno: int = 0) -> bytes:
    """Replace page ``pno``'s content streams with bytes that fail to inflate."""
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        for xref in doc[pno].get_contents():
            doc.update_stream(xref, b"\x00garbage", compress=False)
            doc.xref_set_key(xref, "Filter", "/FlateDecode")
        return doc.tobytes()
    finally:
        doc.close()
