"""High-level orchestration for Obscuro redaction runs.

``redact`` is the core contract: PDF bytes plus a rule set and stamp in,
redacted PDF bytes out, or a ``CoreError``. The core does no file or
network I/O; ``redact_file`` is a thin boundary helper for the CLI and batch
runner.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from obscuro.errors import ConfigurationError
from obscuro.extract import extract
from obscuro.logging import get_logger
from obscuro.models import Match, RedactionMark, StampConfig
from obscuro.rules import RuleSet, load_rules

from .config import OVERLAY_LIMITATION, PageResult, RunConfig
from .detection import match, summarize
from .rendering import plan_marks, render_document

logger = get_logger("obscuro")


@dataclass
class RedactionResult:
    """Outcome of a pipeline call.

    ``output`` is None for dry runs. ``content_removed`` is False for the
    overlay strategy; ``limitation`` then carries the caveat callers must
    surface.
    """

    output: Optional[bytes]
    matches: List[Match]
    marks: List[RedactionMark]
    pages: List[PageResult]
    content_removed: bool = False
    limitation: Optional[str] = None
    timings: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pages": [p.model_dump() for p in self.pages],
            "matches": summarize(self.matches),
            "marks": len(self.marks),
            "content_removed": self.content_removed,
            "limitation": self.limitation,
            "timings": self.timings,
        }


def validate_stamp(stamp: StampConfig, rules: RuleSet) -> StampConfig:
    """Reject stamps the pipeline would itself redact on resubmission."""
    if not stamp.text or not stamp.text.strip():
        raise ConfigurationError("Stamp text must not be empty")
    if stamp.size <= 0:
        raise ConfigurationError("Stamp size must be positive")
    if not 0.0 <= stamp.opacity <= 1.0:
        raise ConfigurationError("Stamp opacity must be within [0, 1]")
    hit = rules.first_match(stamp.text)
    if hit is not None:
        raise ConfigurationError(
            f"Stamp text satisfies detection rule {hit.category}; choose a different stamp"
        )
    return stamp


def _resolve_rules(rules: Optional[RuleSet], cfg: RunConfig) -> RuleSet:
    resolved = rules if rules is not None else load_rules(cfg.rules_path)
    if cfg.categories:
        resolved = resolved.select(cfg.categories)
    return resolved


def _prepare(
    rules: Optional[RuleSet], stamp: Optional[StampConfig], cfg: Optional[RunConfig]
) -> tuple[RuleSet, StampConfig, RunConfig]:
    cfg = (cfg or RunConfig()).validate()
    resolved = _resolve_rules(rules, cfg)
    stamp = validate_stamp(stamp or StampConfig(), resolved)
    return resolved, stamp, cfg


def run(
    data: bytes,
    rules: Optional[RuleSet] = None,
    stamp: Optional[StampConfig] = None,
    cfg: Optional[RunConfig] = None,
) -> RedactionResult:
    """Extract, match, and render ``data``; return output plus diagnostics.

    Any stage failure propagates as a ``CoreError`` and no output is
    produced. ``data`` is only read.
    """
    rules, stamp, cfg = _prepare(rules, stamp, cfg)

    t0 = time.perf_counter()
    pages = extract(data)
    t_extract = time.perf_counter()
    matches = match(pages, rules, workers=cfg.workers)
    t_match = time.perf_counter()
    rendered = render_document(data, matches, stamp, cfg, pages=pages)
    t_end = time.perf_counter()

    timings: Dict[str, float] = {}
    if cfg.instrument:
        timings = {
            "extract": t_extract - t0,
            "match": t_match - t_extract,
            "render": rendered.duration,
            "total": t_end - t0,
        }

    logger.info(
        "Redaction complete",
        extra={
            "extra": {
                "pages": len(pages),
                "matches": len(matches),
                "marks": len(rendered.marks),
                "strategy": cfg.strategy.value,
                "rules": rules.name,
            }
        },
    )
    return RedactionResult(
        output=rendered.output,
        matches=matches,
        marks=rendered.marks,
        pages=rendered.pages,
        content_removed=rendered.content_removed,
        limitation=None if rendered.content_removed else OVERLAY_LIMITATION,
        timings=timings,
    )


def detect(
    data: bytes,
    rules: Optional[RuleSet] = None,
    cfg: Optional[RunConfig] = None,
) -> RedactionResult:
    """Dry run: report matches and planned marks without rendering."""
    cfg = (cfg or RunConfig()).validate()
    rules = _resolve_rules(rules, cfg)
    pages = extract(data)
    matches = match(pages, rules, workers=cfg.workers)
    marks = plan_marks(pages, matches, cfg.margin_factor, cfg.fill_rgb)
    results: List[PageResult] = []
    for page in pages:
        page_matches = [m for m in matches if m.page_index == page.index]
        results.append(
            PageResult(
                page_index=page.index,
                width=page.width,
                height=page.height,
                rotation=page.rotation,
                runs=len(page.runs),
                matches=len(page_matches),
                marks_applied=0,
                by_category=summarize(page_matches),
                stamped=False,
            )
        )
    return RedactionResult(output=None, matches=matches, marks=marks, pages=results)


def redact(
    data: bytes,
    rules: Optional[RuleSet] = None,
    stamp: Optional[StampConfig] = None,
    cfg: Optional[RunConfig] = None,
) -> bytes:
    """Return redacted PDF bytes for ``data``."""
    return run(data, rules, stamp, cfg).output  # type: ignore[return-value]


def redact_file(
    input_path: str,
    output_path: str,
    rules: Optional[RuleSet] = None,
    stamp: Optional[StampConfig] = None,
    cfg: Optional[RunConfig] = None,
) -> RedactionResult:
    """Read ``input_path``, redact it, and write ``output_path``.

    The output file is only written after the whole pipeline succeeded.
    """
    path = Path(input_path)
    if not path.exists():
        raise FileNotFoundError(f"Input not found: {input_path}")
    result = run(path.read_bytes(), rules, stamp, cfg)
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.output or b"")
    return result


__all__ = ["RedactionResult", "validate_stamp", "run", "detect", "redact", "redact_file"]
