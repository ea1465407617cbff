"""Composable building blocks for the Obscuro redaction pipeline."""

from .config import OVERLAY_LIMITATION, PageResult, RedactionStrategy, RunConfig
from .detection import match, match_page, summarize
from .orchestration import RedactionResult, detect, redact, redact_file, run
from .rendering import RenderResult, plan_marks, render, render_document

__all__ = [
    "RunConfig",
    "PageResult",
    "RedactionStrategy",
    "OVERLAY_LIMITATION",
    "match",
    "match_page",
    "summarize",
    "plan_marks",
    "render",
    "render_document",
    "RenderResult",
    "RedactionResult",
    "detect",
    "redact",
    "redact_file",
    "run",
]
