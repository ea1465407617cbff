import fitz
import pytest

from obscuro.errors import RenderError
from obscuro.extract import extract
from obscuro.models import Match, Page, StampConfig, TextRun
from obscuro.pipeline.config import RedactionStrategy, RunConfig
from obscuro.pipeline.detection import match
from obscuro.pipeline.orchestration import run
from obscuro.pipeline.rendering import mark_for_match, plan_marks, render, render_document
from obscuro.redact import to_page_rect
from obscuro.rules import default_rules

from conftest import SAMPLE_RUN, make_pdf, page_texts

PAGE = Page(index=1, width=612.0, height=792.0)


def _match(run, page_index=1, category="NAME"):
    return Match(page_index=page_index, text=run.text, category=category, run=run)


def test_mark_flips_and_inflates_run_box():
    run = TextRun(text="Jane Doe", x=72.0, y=90.0, width=100.0, height=12.0)
    mark = mark_for_match(_match(run), PAGE)
    # rect_y = 792 - 90 - 12
    assert mark.x == pytest.approx(72.0)
    assert mark.width == pytest.approx(100.0)
    assert mark.height == pytest.approx(14.4)
    assert mark.y == pytest.approx(690.0 - 1.2)
    assert mark.color == (0.0, 0.0, 0.0)
    assert mark.opacity == 1.0
    assert mark.covers(run, PAGE.height)


def test_mark_margin_is_clamped_to_page():
    page = Page(index=1, width=200.0, height=100.0)
    run = TextRun(text="Jane Doe", x=10.0, y=0.0, width=50.0, height=10.0)
    mark = mark_for_match(_match(run), page, margin_factor=1.5)
    assert mark.y + mark.height == pytest.approx(100.0)
    assert mark.y == pytest.approx(90.0 - 2.5)
    assert mark.covers(run, page.height)


def test_margin_factor_one_gives_exact_box():
    run = TextRun(text="x", x=5.0, y=5.0, width=5.0, height=5.0)
    mark = mark_for_match(_match(run), PAGE, margin_factor=1.0)
    assert (mark.y, mark.height) == (pytest.approx(782.0), pytest.approx(5.0))


def test_out_of_bounds_geometry_raises():
    run = TextRun(text="Jane Doe", x=700.0, y=90.0, width=100.0, height=12.0)
    with pytest.raises(RenderError):
        mark_for_match(_match(run), PAGE)
    with pytest.raises(RenderError):
        plan_marks([PAGE], [_match(TextRun("Jane Doe", 1, 1, 1, 1), page_index=3)])


def test_to_page_rect_inverts_flip():
    run = TextRun(text="Jane Doe", x=72.0, y=90.0, width=100.0, height=12.0)
    mark = mark_for_match(_match(run), PAGE, margin_factor=1.0)
    rect = to_page_rect(mark, PAGE.height)
    assert (rect.x0, rect.y0, rect.x1, rect.y1) == pytest.approx((72.0, 90.0, 172.0, 102.0))


def _black_fills(page):
    return [
        d["rect"]
        for d in page.get_drawings()
        if d.get("fill") is not None and tuple(d["fill"]) == (0.0, 0.0, 0.0)
    ]


def test_render_overlay_draws_marks_and_stamps_every_page():
    data = make_pdf([[(72, 100, SAMPLE_RUN), (72, 140, "nothing to see")], [(72, 100, "quiet page")]])
    pages = extract(data)
    matches = match(pages, default_rules())
    result = render_document(data, matches, pages=pages)

    assert len(result.marks) == 1
    assert result.content_removed is False
    assert [p.marks_applied for p in result.pages] == [1, 0]
    assert all(p.stamped for p in result.pages)
    assert result.stamps[1] == pytest.approx((612 / 2 - 80, 30))

    out = fitz.open(stream=result.output, filetype="pdf")
    try:
        assert out.page_count == 2
        fills = _black_fills(out[0])
        assert len(fills) == 1
        expected = to_page_rect(result.marks[0], 792)
        assert tuple(fills[0]) == pytest.approx(tuple(expected), abs=0.5)
        assert _black_fills(out[1]) == []
    finally:
        out.close()

    texts = page_texts(result.output)
    assert all(t.count("HIPAA COMPLIANT") == 1 for t in texts)
    # overlay only: the original text is still in the file
    assert "Jane Doe" in texts[0]


def test_render_remove_strategy_deletes_text_under_marks():
    data = make_pdf([[(72, 100, SAMPLE_RUN), (72, 200, "nothing to see")]])
    matches = match(extract(data), default_rules())
    cfg = RunConfig(strategy=RedactionStrategy.REMOVE)
    result = render_document(data, matches, cfg=cfg)
    assert result.content_removed is True
    text = page_texts(result.output)[0]
    assert "Jane Doe" not in text
    assert "nothing to see" in text
    assert "HIPAA COMPLIANT" in text


def test_render_returns_bytes_with_same_page_sizes():
    data = make_pdf([[(72, 100, "Dr. Jane Doe")], []], size=(595, 842))
    out = render(data, match(extract(data), default_rules()), StampConfig())
    doc = fitz.open(stream=out, filetype="pdf")
    try:
        assert [(p.rect.width, p.rect.height) for p in doc] == [(595, 842), (595, 842)]
    finally:
        doc.close()


def test_serialization_failure_raises_render_error(monkeypatch):
    data = make_pdf([[(72, 100, SAMPLE_RUN)]])
    matches = match(extract(data), default_rules())

    def fail_tobytes(self, *args, **kwargs):
        raise RuntimeError("cannot write document")

    monkeypatch.setattr(fitz.Document, "tobytes", fail_tobytes)
    with pytest.raises(RenderError) as info:
        render_document(data, matches)
    assert info.value.kind == "render_failure"

    result = None
    with pytest.raises(RenderError):
        result = run(data)
    assert result is None
