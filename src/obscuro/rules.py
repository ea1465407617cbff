"""Detection rules for protected health information.

A ``RuleSet`` is an immutable, ordered collection of ``Rule`` bindings
(category + compiled pattern). Rules are evaluated against the text of a
single extracted run; the first rule that matches decides the category.
Patterns use the third-party ``regex`` package.

Rule sets are plain values: build one with :func:`default_rules`, load one
from YAML/JSON with :meth:`RuleSet.from_file`, or derive a new one with
``with_rule`` / ``without`` / ``select``. Nothing here holds global state, so
differently configured calls can run side by side.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import orjson
import regex as re
import yaml

from .errors import ConfigurationError

NAME_WITH_TITLE = "NAME_WITH_TITLE"
NAME = "NAME"
DATE_NUMERIC = "DATE_NUMERIC"
DATE_LONG = "DATE_LONG"
DATE_ISO = "DATE_ISO"
INSTITUTION = "INSTITUTION"

_MONTHS = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?"
    r"|Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)\.?"
)
_ORDINAL = r"(?:st|nd|rd|th)?"

NAME_WITH_TITLE_PATTERN = (
    r"\b(?:Dr|Mr|Mrs|Ms|Miss|Mx|Prof)\.?\s+[A-Z][a-z]+(?:\s+[A-Z]\.)?(?:\s+[A-Z][a-z]+)+"
)
NAME_PATTERN = r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,2}\b"
DATE_NUMERIC_PATTERN = r"\b\d{1,2}/\d{1,2}/(?:\d{4}|\d{2})\b"
DATE_LONG_PATTERN = (
    rf"\b{_MONTHS}\s+\d{{1,2}}{_ORDINAL},?\s+\d{{4}}\b"
    rf"|\b\d{{1,2}}{_ORDINAL}\s+{_MONTHS},?\s+\d{{4}}\b"
)
DATE_ISO_PATTERN = r"\b\d{4}-\d{2}-\d{2}\b"

DEFAULT_INSTITUTION_TERMS: Tuple[str, ...] = (
    "Hospital",
    "Medical Center",
    "Medical Centre",
    "Clinic",
    "Health System",
    "Healthcare",
    "Medical Group",
    "Pharmacy",
    "Laboratory",
    "Insurance",
)


@dataclass(frozen=True)
class Rule:
    """A category label bound to a compiled pattern."""

    category: str
    pattern: Any = field(compare=False)
    source: str = ""

    @staticmethod
    def compile(category: str, source: str, flags: int = 0) -> "Rule":
        """Compile ``source`` into a rule, raising ``ConfigurationError`` on failure."""
        if not isinstance(category, str) or not category.strip():
            raise ConfigurationError("Rule category must be a non-empty string")
        cat = category.strip().upper()
        if not isinstance(source, str) or not source:
            raise ConfigurationError(f"Rule {cat} pattern must be a non-empty string")
        try:
            compiled = re.compile(source, flags)
        except (re.error, TypeError) as exc:
            raise ConfigurationError(f"Malformed pattern for rule {cat}: {exc}") from exc
        return Rule(category=cat, pattern=compiled, source=source)

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def institution_rule(terms: Iterable[str], category: str = INSTITUTION) -> Rule:
    """Build a case-insensitive rule matching any of the literal ``terms``."""
    if isinstance(terms, str):
        raise ConfigurationError("Institution terms must be a list, not a single string")
    cleaned = sorted({t.strip() for t in terms if t and t.strip()}, key=lambda t: (-len(t), t))
    if not cleaned:
        raise ConfigurationError("Institution rule requires at least one term")
    alternation = "|".join(re.escape(t).replace(r"\ ", r"\s+") for t in cleaned)
    return Rule.compile(category, rf"\b(?:{alternation})\b", re.IGNORECASE)


@dataclass(frozen=True)
class RuleSet:
    """Ordered, immutable collection of rules.

    Attributes
    ----------
    rules:
        Rules in evaluation order; earlier rules take precedence.
    name:
        Human-friendly identifier (e.g. the file stem it was loaded from).
    """

    rules: Tuple[Rule, ...] = ()
    name: str = "custom"

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def first_match(self, text: str) -> Optional[Rule]:
        """Return the first rule (in declaration order) that matches ``text``."""
        for rule in self.rules:
            if rule.matches(text):
                return rule
        return None

    def categories(self) -> List[str]:
        seen: List[str] = []
        for rule in self.rules:
            if rule.category not in seen:
                seen.append(rule.category)
        return seen

    def with_rule(self, rule: Rule, before: Optional[str] = None) -> "RuleSet":
        """Return a copy with ``rule`` appended, or inserted ahead of category ``before``."""
        rules = list(self.rules)
        if before is None:
            rules.append(rule)
        else:
            target = before.upper()
            idx = next((i for i, r in enumerate(rules) if r.category == target), len(rules))
            rules.insert(idx, rule)
        return RuleSet(rules=tuple(rules), name=self.name)

    def without(self, category: str) -> "RuleSet":
        target = (category or "").upper()
        return RuleSet(
            rules=tuple(r for r in self.rules if r.category != target), name=self.name
        )

    def select(self, categories: Iterable[str]) -> "RuleSet":
        """Keep only rules whose category is listed, preserving order."""
        wanted = {c.upper() for c in categories}
        return RuleSet(
            rules=tuple(r for r in self.rules if r.category in wanted), name=self.name
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rules": [{"category": r.category, "pattern": r.source} for r in self.rules],
        }

    @staticmethod
    def from_mapping(data: Dict[str, Any], name: str = "custom") -> "RuleSet":
        """Build a rule set from a parsed YAML/JSON mapping.

        Expected shape::

            name: hipaa
            rules:
              - category: DATE_ISO
                pattern: '\\b\\d{4}-\\d{2}-\\d{2}\\b'
                ignore_case: false
            institution_terms: [Hospital, Clinic]
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Rule file must contain a mapping at top level")
        rules: List[Rule] = []
        for i, item in enumerate(data.get("rules") or []):
            if not isinstance(item, dict):
                raise ConfigurationError(f"Rule #{i} must be a mapping")
            flags = re.IGNORECASE if item.get("ignore_case") else 0
            rules.append(Rule.compile(item.get("category", ""), item.get("pattern", ""), flags))
        terms = data.get("institution_terms")
        if terms is not None and (
            not isinstance(terms, list) or not all(isinstance(t, str) for t in terms)
        ):
            raise ConfigurationError("institution_terms must be a list of strings")
        if terms:
            rule = institution_rule(terms)
            position = data.get("institution_before")
            if position is not None and not isinstance(position, str):
                raise ConfigurationError("institution_before must be a category name")
            rules = list(RuleSet(tuple(rules)).with_rule(rule, before=position).rules)
        if not rules:
            raise ConfigurationError("Rule file defines no rules")
        return RuleSet(rules=tuple(rules), name=str(data.get("name") or name))

    @staticmethod
    def from_file(path: Union[str, Path, Traversable]) -> "RuleSet":
        if isinstance(path, Traversable) and not isinstance(path, Path):
            text = path.read_text(encoding="utf-8")
            stem = Path(path.name).stem
            suffix = Path(path.name).suffix.lower()
        else:
            p = Path(path)
            if not p.exists():
                raise ConfigurationError(f"Rule file not found: {path}")
            text = p.read_text(encoding="utf-8")
            stem = p.stem
            suffix = p.suffix.lower()
        try:
            if suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(text)
            else:
                data = orjson.loads(text)
        except (yaml.YAMLError, orjson.JSONDecodeError) as exc:
            raise ConfigurationError(f"Unreadable rule file {stem}: {exc}") from exc
        return RuleSet.from_mapping(data, name=stem)


def default_rules(institution_terms: Iterable[str] = DEFAULT_INSTITUTION_TERMS) -> RuleSet:
    """Baseline PHI rules in evaluation order.

    The bare capitalized-name rule goes last so titled names, dates and
    institution terms keep their more specific category.
    """
    return RuleSet(
        rules=(
            Rule.compile(NAME_WITH_TITLE, NAME_WITH_TITLE_PATTERN),
            Rule.compile(DATE_NUMERIC, DATE_NUMERIC_PATTERN),
            Rule.compile(DATE_LONG, DATE_LONG_PATTERN),
            Rule.compile(DATE_ISO, DATE_ISO_PATTERN),
            institution_rule(institution_terms),
            Rule.compile(NAME, NAME_PATTERN),
        ),
        name="default",
    )


def find_builtin_rules(name: str) -> Optional[Traversable]:
    """Locate a packaged rule file by name (e.g. ``hipaa``)."""
    for suffix in (".yaml", ".yml", ".json"):
        ref = resources.files("obscuro.data").joinpath("rules", f"{name}{suffix}")
        if ref.is_file():
            return ref
    return None


def load_rules(ref: Optional[str]) -> RuleSet:
    """Resolve ``ref`` as a file path, then a builtin name; default rules when empty."""
    if not ref:
        return default_rules()
    path = Path(ref)
    if path.exists():
        return RuleSet.from_file(path)
    found = find_builtin_rules(ref)
    if found is None:
        raise ConfigurationError(f"Unknown rule set: {ref}")
    return RuleSet.from_file(found)


__all__ = [
    "Rule",
    "RuleSet",
    "default_rules",
    "institution_rule",
    "find_builtin_rules",
    "load_rules",
    "DEFAULT_INSTITUTION_TERMS",
    "NAME_WITH_TITLE",
    "NAME",
    "DATE_NUMERIC",
    "DATE_LONG",
    "DATE_ISO",
    "INSTITUTION",
]
