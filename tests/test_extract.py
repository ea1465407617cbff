import pytest

from obscuro.errors import ExtractionError, InvalidInputError
from obscuro.extract import extract, page_text

from conftest import SAMPLE_RUN, corrupt_contents, make_pdf


def test_extract_single_run_geometry():
    pages = extract(make_pdf([[(72, 100, SAMPLE_RUN)]]))
    assert len(pages) == 1
    page = pages[0]
    assert page.index == 1
    assert page.width == pytest.approx(612)
    assert page.height == pytest.approx(792)
    assert page.rotation == 0
    assert [r.text for r in page.runs] == [SAMPLE_RUN]

    run = page.runs[0]
    assert run.x == pytest.approx(72, abs=0.5)
    assert run.baseline == pytest.approx(100, abs=0.5)
    assert run.y < 100 < run.y1
    assert run.width > 0 and run.height > 0
    assert run.size == pytest.approx(12, abs=0.1)
    assert run.font


def test_extract_preserves_encounter_order_and_page_numbers():
    data = make_pdf(
        [
            [(72, 500, "second on the page"), (72, 100, "drawn last but on top")],
            [(72, 100, "page two")],
        ]
    )
    pages = extract(data)
    assert [p.index for p in pages] == [1, 2]
    assert [r.text for r in pages[0].runs] == ["second on the page", "drawn last but on top"]
    assert page_text(pages[1]) == "page two"


def test_extract_page_without_text():
    pages = extract(make_pdf([[]]))
    assert len(pages) == 1
    assert pages[0].runs == ()


@pytest.mark.parametrize("data", [b"", b"not a pdf at all", b"%PDF-1.0\n"])
def test_extract_rejects_invalid_input(data):
    with pytest.raises(InvalidInputError):
        extract(data)


def test_extract_does_not_modify_input():
    data = bytearray(make_pdf([[(72, 100, SAMPLE_RUN)]]))
    before = bytes(data)
    extract(data)
    assert bytes(data) == before


def test_extract_records_rotation():
    data = make_pdf([[(72, 100, "Jane Doe")]], rotate={0: 90})
    page = extract(data)[0]
    assert page.rotation == 90
    assert [r.text for r in page.runs] == ["Jane Doe"]


def test_extract_raises_for_undecodable_content_stream():
    data = corrupt_contents(
        make_pdf([[(72, 100, "vitals stable")], [(72, 100, SAMPLE_RUN)]]), pno=1
    )
    with pytest.raises(ExtractionError) as info:
        extract(data)
    assert info.value.page_index == 2
    assert info.value.kind == "extraction_failure"


def test_extract_clean_document_after_failure_still_works():
    with pytest.raises(ExtractionError):
        extract(corrupt_contents(make_pdf([[(72, 100, SAMPLE_RUN)]])))
    pages = extract(make_pdf([[(72, 100, SAMPLE_RUN)]]))
    assert [r.text for r in pages[0].runs] == [SAMPLE_RUN]
