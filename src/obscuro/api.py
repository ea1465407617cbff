"""FastAPI service exposing the Obscuro redaction pipeline.

The HTTP layer is the boundary around the core:

* ``POST /upload`` accepts a single PDF (multipart field ``pdf``), enforces
  the MIME type and the configured size limit before the core runs, and
  stores the redacted output through an injected ``OutputStore``.
* ``GET /download/{filename}`` returns a stored output.
* ``/health``, ``/livez`` and ``/readyz`` serve probes; ``/metrics`` exposes
  Prometheus counters.

Errors are returned as ``{"error": "..."}`` with a non-2xx status. Core
failures are mapped to a generic message; internal detail is only logged.

Run locally::

    uvicorn obscuro.api:app --host 0.0.0.0 --port 8000

Or via console script::

    obscuro-api --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Literal, Optional, Protocol
from uuid import uuid4

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    HTTPException,
    Request,
    Response,
    Security,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from prometheus_client import CollectorRegistry, Counter, make_asgi_app
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import CoreError, ExtractionError, InvalidInputError
from .health import run_readiness_checks
from .logging import get_logger
from .pipeline import RunConfig, run
from .rules import RuleSet, load_rules
from .settings import ServiceSettings, get_settings

settings: ServiceSettings = get_settings()
logger = get_logger(__name__)

auth_scheme = HTTPBearer(auto_error=False)

PDF_MIME = "application/pdf"
GENERIC_FAILURE = "Failed to process PDF"
_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


class OutputStore(Protocol):
    """Write/read capability for redacted outputs."""

    def save(self, name: str, data: bytes) -> None: ...

    def load(self, name: str) -> Optional[bytes]: ...


class LocalDirStore:
    """Stores outputs as files under a root directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def save(self, name: str, data: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / name).write_bytes(data)

    def load(self, name: str) -> Optional[bytes]:
        path = self.root / name
        if not path.is_file():
            return None
        return path.read_bytes()


class MemoryStore:
    """Keeps outputs in process memory (tests, ephemeral deployments)."""

    def __init__(self) -> None:
        self._items: Dict[str, bytes] = {}

    def save(self, name: str, data: bytes) -> None:
        self._items[name] = data

    def load(self, name: str) -> Optional[bytes]:
        return self._items.get(name)


def build_store(svc_settings: ServiceSettings) -> OutputStore:
    if svc_settings.storage == "memory":
        return MemoryStore()
    return LocalDirStore(svc_settings.storage_dir)


store: OutputStore = build_store(settings)


class UploadResponse(BaseModel):
    """Success payload for ``POST /upload``."""

    success: bool = True
    message: str
    downloadPath: str
    contentRemoved: bool = False
    limitation: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    """Canonical health endpoint payload."""

    status: Literal["ok"] = "ok"


class ReadinessCheckModel(BaseModel):
    """Single readiness check result."""

    name: str
    status: Literal["pass", "warn", "fail"]
    detail: Optional[str] = None
    required: bool


class ReadyResponse(BaseModel):
    """Aggregated readiness response."""

    ready: bool
    checks: List[ReadinessCheckModel]


registry = CollectorRegistry()
REQUESTS = Counter("obscuro_requests_total", "API requests", ["route"], registry=registry)
FAILURES = Counter(
    "obscuro_core_failures_total", "Core failures by kind", ["kind"], registry=registry
)


app = FastAPI(
    title="Obscuro API",
    description="PHI redaction microservice built on top of the Obscuro pipeline.",
    version="0.1.0",
    openapi_tags=[
        {"name": "health", "description": "Service health and readiness probes."},
        {"name": "redaction", "description": "Upload PDFs and download redacted output."},
    ],
)

if settings.cors_origins:
    allow_origins = ["*"] if "*" in settings.cors_origins else settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.mount("/metrics", make_asgi_app(registry=registry))


@app.exception_handler(StarletteHTTPException)
async def _error_envelope(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


health_router = APIRouter(tags=["health"])
redaction_router = APIRouter(tags=["redaction"])


def require_auth(
    credentials: HTTPAuthorizationCredentials = Security(auth_scheme),
) -> None:
    """Simple bearer-token protection for managed cluster deployments."""

    token = settings.api_token
    if token is None:
        return
    if credentials is None or credentials.credentials != token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def _increment_metric(route: str) -> None:
    REQUESTS.labels(route=route).inc()


@lru_cache(maxsize=1)
def service_rules() -> RuleSet:
    return load_rules(settings.rules)


def service_config() -> RunConfig:
    return RunConfig(
        margin_factor=settings.margin_factor,
        strategy=settings.strategy,
        workers=settings.workers,
    )


def _output_name(filename: Optional[str]) -> str:
    stem = Path(filename or "document").stem or "document"
    stem = _SAFE_NAME.sub("_", stem)[:80]
    return f"redacted-{uuid4().hex}-{stem}.pdf"


async def _read_limited(upload: UploadFile, limit: int) -> bytes:
    data = await upload.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {limit} byte limit",
        )
    return data


@health_router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    _increment_metric("health")
    return HealthResponse()


@health_router.get("/livez", response_model=HealthResponse)
def livez() -> HealthResponse:
    return HealthResponse(status="ok")


@health_router.get("/readyz", response_model=ReadyResponse)
def readyz():
    checks = run_readiness_checks(settings)
    ready = True
    payload: List[ReadinessCheckModel] = []
    for check in checks:
        payload.append(
            ReadinessCheckModel(
                name=check.name,
                status=check.status,
                detail=check.detail,
                required=check.required,
            )
        )
        if check.required and check.status == "fail":
            ready = False
        if (
            check.required
            and check.status == "warn"
            and not settings.allowance_warn_only_checks
        ):
            ready = False
    response = ReadyResponse(ready=ready, checks=payload)
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=response.model_dump())


@redaction_router.post(
    "/upload",
    response_model=UploadResponse,
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse},
               415: {"model": ErrorResponse}, 422: {"model": ErrorResponse},
               500: {"model": ErrorResponse}},
)
async def upload(
    request: Request,
    pdf: Optional[UploadFile] = File(None),
    auth: None = Depends(require_auth),
) -> UploadResponse:
    _increment_metric("upload")
    limit = settings.max_upload_bytes
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit + 64 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {limit} byte limit",
        )
    if pdf is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No PDF file uploaded")
    if (pdf.content_type or "").split(";")[0].strip().lower() != PDF_MIME:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Only PDF files are allowed",
        )
    data = await _read_limited(pdf, limit)
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No PDF file uploaded")

    try:
        rules = service_rules()
        result = await run_in_threadpool(run, data, rules, None, service_config())
    except CoreError as exc:
        FAILURES.labels(kind=exc.kind).inc()
        logger.error("Redaction failed", extra={"extra": {"kind": exc.kind, "detail": str(exc)}})
        code = (
            status.HTTP_422_UNPROCESSABLE_ENTITY
            if isinstance(exc, (InvalidInputError, ExtractionError))
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        raise HTTPException(status_code=code, detail=GENERIC_FAILURE) from exc

    name = _output_name(pdf.filename)
    try:
        store.save(name, result.output or b"")
    except OSError as exc:
        logger.error("Storing output failed", extra={"extra": {"detail": str(exc)}})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=GENERIC_FAILURE
        ) from exc

    return UploadResponse(
        message="PDF processed successfully",
        downloadPath=f"/download/{name}",
        contentRemoved=result.content_removed,
        limitation=result.limitation,
    )


@redaction_router.get("/download/{filename}")
def download(filename: str, auth: None = Depends(require_auth)) -> Response:
    _increment_metric("download")
    if _SAFE_NAME.search(filename) or filename.startswith("."):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    data = store.load(filename)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return Response(
        content=data,
        media_type=PDF_MIME,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


app.include_router(health_router)
app.include_router(redaction_router)


def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: bool = False,
    workers: int = 1,
    log_level: str = "info",
) -> None:
    """Launch the API server via ``uvicorn``."""

    import uvicorn

    bind_host = host or settings.api_host
    bind_port = port or settings.api_port
    uvicorn.run(
        "obscuro.api:app",
        host=bind_host,
        port=bind_port,
        reload=reload,
        workers=workers,
        log_level=log_level,
    )


def main() -> None:
    """Console entry point (``obscuro-api``)."""
    import typer

    def _serve(
        host: Optional[str] = typer.Option(None, help="Bind host"),
        port: Optional[int] = typer.Option(None, help="Bind port"),
        reload: bool = typer.Option(False, help="Auto-reload on code changes"),
    ) -> None:
        run_server(host=host, port=port, reload=reload)

    typer.run(_serve)
