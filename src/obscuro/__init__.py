"""Obscuro

PHI redaction for text-based PDFs: positioned text runs are matched against a
rule set and covered with opaque marks, and every page receives a compliance
stamp. See ``obscuro.core`` for the pipeline APIs and ``obscuro.cli`` /
``obscuro.api`` for user entrypoints.
"""

__all__ = [
    "core",
    "rules",
    "extract",
    "redact",
    "models",
    "errors",
    "audit",
    "batch",
    "api",
    "cli",
    "logging",
    "settings",
    "health",
]

__version__ = "0.1.0"
