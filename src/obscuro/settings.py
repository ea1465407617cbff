"""Service configuration helpers for deployment environments.

Runtime configuration for the HTTP boundary and CLI, read from ``OBSCURO_*``
environment variables. Importing this module has no side effects, so it can
be used from both CLI tools and FastAPI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional
import os

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _parse_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _split_csv(value: str | None) -> List[str]:
    if not value:
        return []
    parts = [p.strip() for p in value.split(",") if p.strip()]
    return parts


@dataclass
class ServiceSettings:
    """Runtime settings tailored for container/Kubernetes deployments."""

    api_host: str = "127.0.0.1"
    api_port: int = 8000
    api_token: Optional[str] = None
    cors_origins: List[str] = field(default_factory=list)
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    storage: str = "disk"  # 'disk' or 'memory'
    storage_dir: str = "uploads"
    rules: Optional[str] = None
    strategy: str = "overlay"
    margin_factor: float = 1.2
    workers: int = 1
    readiness_check_storage: bool = True
    allowance_warn_only_checks: bool = True

    @staticmethod
    def from_env() -> "ServiceSettings":
        cors_raw = os.environ.get("OBSCURO_API_CORS_ORIGINS")
        settings = ServiceSettings(
            api_host=os.environ.get("OBSCURO_API_HOST", "127.0.0.1"),
            api_port=int(os.environ.get("OBSCURO_API_PORT", "8000")),
            api_token=os.environ.get("OBSCURO_API_TOKEN"),
            cors_origins=_split_csv(cors_raw),
            max_upload_bytes=int(
                os.environ.get("OBSCURO_MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))
            ),
            storage=os.environ.get("OBSCURO_STORAGE", "disk").strip().lower(),
            storage_dir=os.environ.get("OBSCURO_STORAGE_DIR", "uploads"),
            rules=os.environ.get("OBSCURO_RULES") or None,
            strategy=os.environ.get("OBSCURO_STRATEGY", "overlay").strip().lower(),
            margin_factor=float(os.environ.get("OBSCURO_MARGIN_FACTOR", "1.2")),
            workers=int(os.environ.get("OBSCURO_WORKERS", "1")),
            readiness_check_storage=_parse_bool(
                os.environ.get("OBSCURO_READY_CHECK_STORAGE"), default=True
            ),
            allowance_warn_only_checks=_parse_bool(
                os.environ.get("OBSCURO_READY_WARN_ONLY"), default=True
            ),
        )
        return settings


@lru_cache(maxsize=1)
def get_settings() -> ServiceSettings:
    """Return cached service settings."""
    return ServiceSettings.from_env()


def reset_settings_cache() -> None:
    """Reset cached settings (useful in tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
