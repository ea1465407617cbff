import importlib

import pytest
from fastapi.testclient import TestClient

import obscuro.settings as settings
from obscuro.health import HealthCheckResult

from conftest import corrupt_contents, make_pdf, page_texts

AUTH = {"Authorization": "Bearer super-secret"}


def _make_client(monkeypatch: pytest.MonkeyPatch, **env):
    monkeypatch.setenv("OBSCURO_API_TOKEN", "super-secret")
    monkeypatch.setenv("OBSCURO_STORAGE", "memory")
    monkeypatch.setenv("OBSCURO_READY_CHECK_STORAGE", "false")
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    settings.reset_settings_cache()
    import obscuro.api as api  # noqa: F401

    api = importlib.reload(api)
    return TestClient(api.app), api


def test_upload_requires_bearer_token(monkeypatch):
    client, _ = _make_client(monkeypatch)

    resp = client.post(
        "/upload",
        files={"pdf": ("dummy.pdf", b"%PDF-1.0\n", "application/pdf")},
    )
    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}

    resp = client.get("/download/anything.pdf")
    assert resp.status_code == 401


def test_upload_then_download(monkeypatch):
    client, _ = _make_client(monkeypatch)
    data = make_pdf([[(72, 100, "Dr. Jane Doe"), (72, 140, "vitals stable")]])

    resp = client.post(
        "/upload", headers=AUTH, files={"pdf": ("chart 1.pdf", data, "application/pdf")}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "PDF processed successfully"
    assert body["downloadPath"].startswith("/download/redacted-")
    assert body["downloadPath"].endswith("-chart_1.pdf")
    assert body["contentRemoved"] is False
    assert body["limitation"]

    dl = client.get(body["downloadPath"], headers=AUTH)
    assert dl.status_code == 200
    assert dl.headers["content-type"] == "application/pdf"
    assert "HIPAA COMPLIANT" in page_texts(dl.content)[0]


def test_upload_with_remove_strategy(monkeypatch):
    client, _ = _make_client(monkeypatch, OBSCURO_STRATEGY="remove")
    data = make_pdf([[(72, 100, "Dr. Jane Doe")]])
    resp = client.post("/upload", headers=AUTH, files={"pdf": ("a.pdf", data, "application/pdf")})
    assert resp.status_code == 200
    assert resp.json()["contentRemoved"] is True
    dl = client.get(resp.json()["downloadPath"], headers=AUTH)
    assert "Jane Doe" not in page_texts(dl.content)[0]


def test_upload_rejects_missing_and_wrong_type(monkeypatch):
    client, _ = _make_client(monkeypatch)

    resp = client.post(
        "/upload", headers=AUTH, files={"document": ("a.pdf", b"%PDF-1.4", "application/pdf")}
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "No PDF file uploaded"}

    resp = client.post("/upload", headers=AUTH, files={"pdf": ("a.pdf", b"", "application/pdf")})
    assert resp.status_code == 400

    resp = client.post("/upload", headers=AUTH, files={"pdf": ("notes.txt", b"hello", "text/plain")})
    assert resp.status_code == 415
    assert resp.json() == {"error": "Only PDF files are allowed"}


def test_oversize_upload_never_reaches_the_core(monkeypatch):
    client, api = _make_client(monkeypatch, OBSCURO_MAX_UPLOAD_BYTES="1024")

    def boom(*_args, **_kwargs):
        raise AssertionError("core must not run for oversize uploads")

    monkeypatch.setattr(api, "run", boom)
    resp = client.post(
        "/upload", headers=AUTH, files={"pdf": ("big.pdf", b"%PDF-" + b"0" * 4096, "application/pdf")}
    )
    assert resp.status_code == 413
    assert "error" in resp.json()


def test_invalid_pdf_maps_to_generic_error(monkeypatch):
    client, _ = _make_client(monkeypatch)
    resp = client.post(
        "/upload", headers=AUTH, files={"pdf": ("dummy.pdf", b"%PDF-1.0\n", "application/pdf")}
    )
    assert resp.status_code == 422
    assert resp.json() == {"error": "Failed to process PDF"}


def test_download_unknown_or_unsafe_name(monkeypatch):
    client, _ = _make_client(monkeypatch)
    assert client.get("/download/missing.pdf", headers=AUTH).status_code == 404
    resp = client.get("/download/..%2Fsecret.pdf", headers=AUTH)
    assert resp.status_code == 404


def test_health_and_metrics(monkeypatch):
    client, _ = _make_client(monkeypatch)
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/livez").status_code == 200
    metrics = client.get("/metrics/")
    assert metrics.status_code == 200
    assert "obscuro_requests_total" in metrics.text


def test_readyz_reflects_health(monkeypatch):
    client, api = _make_client(monkeypatch)

    def fake_checks(_settings):
        return [HealthCheckResult(name="pymupdf", status="fail", detail="missing", required=True)]

    monkeypatch.setattr(api, "run_readiness_checks", fake_checks)
    resp = client.get("/readyz")
    assert resp.status_code == 503
    payload = resp.json()
    assert payload["ready"] is False
    assert payload["checks"][0]["name"] == "pymupdf"


def test_readyz_passes_with_defaults(monkeypatch):
    client, _ = _make_client(monkeypatch)
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json()["ready"] is True


def test_undecodable_page_maps_to_generic_error(monkeypatch):
    client, _ = _make_client(monkeypatch)
    data = corrupt_contents(make_pdf([[(72, 100, "Dr. Jane Doe")]]))
    resp = client.post("/upload", headers=AUTH, files={"pdf": ("c.pdf", data, "application/pdf")})
    assert resp.status_code == 422
    assert resp.json() == {"error": "Failed to process PDF"}
