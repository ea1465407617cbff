"""Span matching: apply a rule set to extracted runs."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Sequence

from obscuro.logging import get_logger
from obscuro.models import Match, Page
from obscuro.rules import RuleSet

logger = get_logger(__name__)


def match_page(page: Page, rules: RuleSet) -> List[Match]:
    """Match every run of ``page`` against ``rules``.

    Rules are tried in declaration order and the first hit wins, so a run
    yields at most one match. Output follows run encounter order.
    """
    out: List[Match] = []
    for run in page.runs:
        rule = rules.first_match(run.text)
        if rule is not None:
            out.append(
                Match(page_index=page.index, text=run.text, category=rule.category, run=run)
            )
    return out


def match(pages: Sequence[Page], rules: RuleSet, workers: int = 1) -> List[Match]:
    """Return matches ordered by page, then by run encounter order.

    Pages are independent, so with ``workers > 1`` they are matched on a
    bounded thread pool. ``Executor.map`` keeps input order, which makes the
    output identical to the sequential path.
    """
    ordered = sorted(pages, key=lambda p: p.index)
    if workers > 1 and len(ordered) > 1:
        with ThreadPoolExecutor(max_workers=min(workers, len(ordered))) as ex:
            per_page = list(ex.map(lambda p: match_page(p, rules), ordered))
    else:
        per_page = [match_page(p, rules) for p in ordered]
    matches = [m for page_matches in per_page for m in page_matches]
    logger.debug(
        "Matched runs",
        extra={"extra": {"pages": len(ordered), "matches": len(matches), "rules": rules.name}},
    )
    return matches


def summarize(matches: Iterable[Match]) -> Dict[str, int]:
    """Count matches per category."""
    counts: Dict[str, int] = {}
    for m in matches:
        counts[m.category] = counts.get(m.category, 0) + 1
    return counts


__all__ = ["match", "match_page", "summarize"]
