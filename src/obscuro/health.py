"""Infrastructure readiness checks for API / Kubernetes probes."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
import tempfile

from .errors import ConfigurationError
from .settings import ServiceSettings


@dataclass
class HealthCheckResult:
    name: str
    status: str  # "pass" | "fail" | "warn"
    detail: Optional[str] = None
    required: bool = True


def _check_pymupdf() -> HealthCheckResult:
    try:
        import fitz

        doc = fitz.open()
        doc.new_page()
        doc.tobytes()
        doc.close()
    except Exception as exc:  # pragma: no cover - depends on runtime
        return HealthCheckResult(name="pymupdf", status="fail", detail=str(exc))
    version = getattr(fitz, "VersionBind", None)
    return HealthCheckResult(name="pymupdf", status="pass", detail=version)


def _check_rules(ref: Optional[str]) -> HealthCheckResult:
    from .rules import load_rules

    try:
        rules = load_rules(ref)
    except ConfigurationError as exc:
        return HealthCheckResult(name="rules", status="fail", detail=str(exc))
    return HealthCheckResult(
        name="rules", status="pass", detail=f"{rules.name}: {len(rules)} rules"
    )


def _check_storage(settings: ServiceSettings) -> HealthCheckResult:
    if settings.storage == "memory":
        return HealthCheckResult(
            name="storage",
            status="warn",
            detail="In-memory storage; outputs are lost on restart",
            required=False,
        )
    root = Path(settings.storage_dir)
    try:
        root.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=root):
            pass
    except OSError as exc:
        return HealthCheckResult(name="storage", status="fail", detail=str(exc))
    return HealthCheckResult(name="storage", status="pass")


def run_readiness_checks(settings: ServiceSettings) -> List[HealthCheckResult]:
    checks: List[HealthCheckResult] = [_check_pymupdf(), _check_rules(settings.rules)]
    if settings.readiness_check_storage:
        checks.append(_check_storage(settings))
    return checks
