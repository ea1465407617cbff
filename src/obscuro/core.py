"""Public entry points for the Obscuro pipeline.

The implementation lives in ``obscuro.pipeline`` modules split by
responsibility (detection, rendering, orchestration). This module re-exports
the surface area expected by callers, together with the rule and model types
they need to build a call.
"""

from __future__ import annotations

from .errors import (
    ConfigurationError,
    CoreError,
    ExtractionError,
    InvalidInputError,
    RenderError,
)
from .extract import extract
from .models import Match, Page, RedactionMark, StampConfig, TextRun
from .pipeline import (
    OVERLAY_LIMITATION,
    PageResult,
    RedactionResult,
    RedactionStrategy,
    RunConfig,
    detect,
    match,
    redact,
    redact_file,
    render,
    run,
)
from .rules import Rule, RuleSet, default_rules, load_rules

__all__ = [
    "ConfigurationError",
    "CoreError",
    "ExtractionError",
    "InvalidInputError",
    "RenderError",
    "extract",
    "match",
    "render",
    "redact",
    "redact_file",
    "run",
    "detect",
    "Match",
    "Page",
    "RedactionMark",
    "StampConfig",
    "TextRun",
    "OVERLAY_LIMITATION",
    "PageResult",
    "RedactionResult",
    "RedactionStrategy",
    "RunConfig",
    "Rule",
    "RuleSet",
    "default_rules",
    "load_rules",
]
