"""Audit records for Obscuro runs.

Builds an audit JSON describing a redaction call: config snapshot, input and
output hashes, version, per-page mark summaries, the strategy used and its
limitation, and an optional HMAC signature when ``OBSCURO_HMAC_KEY`` is set.
Records never contain matched text.
"""

from __future__ import annotations

from typing import Dict, Any, List, Optional
from pathlib import Path
import getpass
import hashlib
import hmac
import os
import socket
import time

import orjson

from .pipeline.orchestration import RedactionResult


def _sha256(data: Optional[bytes]) -> Optional[str]:
    if data is None:
        return None
    return hashlib.sha256(data).hexdigest()


def sign_record(record: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Return the HMAC block for ``record`` (computed without any prior signature)."""
    unsigned = {k: v for k, v in record.items() if k != "hmac"}
    data_bytes = orjson.dumps(unsigned, option=orjson.OPT_SORT_KEYS)
    sig = hmac.new(key.encode("utf-8"), data_bytes, hashlib.sha256).hexdigest()
    return {"alg": "HMAC-SHA256", "key_hint": "env:OBSCURO_HMAC_KEY", "value": sig}


def build_audit(
    input_ref: str,
    input_bytes: bytes,
    result: RedactionResult,
    cfg: Dict[str, Any],
    rules: Optional[Dict[str, Any]] = None,
    errors: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Assemble an audit record for a finished call."""
    from obscuro import __version__ as version

    page_summaries = []
    for p in result.pages:
        page_summaries.append({
            "page_index": p.page_index,
            "marks": p.marks_applied,
            "by_category": dict(p.by_category),
            "stamped": p.stamped,
        })

    record: Dict[str, Any] = {
        "version": version,
        "timestamp": int(time.time()),
        "user": getpass.getuser(),
        "host": socket.gethostname(),
        "input": {"ref": input_ref, "sha256": _sha256(input_bytes)},
        "output": {"sha256": _sha256(result.output)},
        "config": cfg,
        "rules": rules,
        "result": {
            "summary": {
                "pages": len(result.pages),
                "marks": len(result.marks),
            },
            "pages": page_summaries,
            "content_removed": result.content_removed,
            "limitation": result.limitation,
        },
        "errors": errors or [],
    }

    key = os.environ.get("OBSCURO_HMAC_KEY")
    if key:
        record["hmac"] = sign_record(record, key)
    return record


def write_audit(path: str | Path, record: Dict[str, Any]) -> Path:
    """Write ``record`` as indented JSON and return the path."""
    audit_path = Path(path)
    audit_path.write_bytes(orjson.dumps(record, option=orjson.OPT_INDENT_2, default=str))
    return audit_path
