from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dubbing_studio.config import get_settings
from dubbing_studio.utils.log import logger, redact_text, request_id_var

_write_lock = threading.Lock()

# Keys whose values are filesystem locations or source URLs; never written.
_LOCATION_KEYS = frozenset({"path", "file", "filename", "source_file", "source_url", "output_files"})
_MAX_TEXT = 200


def audit_log_path() -> Path:
    return Path(get_settings().log_dir) / "audit.jsonl"


def _summarize(key: str, value: Any) -> Any:
    if key.strip().lower() in _LOCATION_KEYS:
        return {"redacted": True}
    if isinstance(value, str):
        if len(value) > _MAX_TEXT:
            return {"redacted": True, "len": len(value)}
        return redact_text(value)
    if isinstance(value, dict):
        return {"keys": len(value)}
    if isinstance(value, (list, tuple)):
        return {"count": len(value)}
    return value


def emit(
    event_type: str,
    *,
    user_id: str | None = None,
    job_id: str | None = None,
    outcome: str | None = None,
    meta: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> None:
    """
    Append one JSON line to `<log_dir>/audit.jsonl`.

    Only ids, outcomes and short scalar metadata are recorded. A failed write
    is logged and swallowed so auditing never breaks a request.
    """
    rec: dict[str, Any] = {
        "ts": datetime.now(tz=timezone.utc).isoformat(),
        "event": str(event_type),
        "outcome": str(outcome or "ok"),
        "request_id": request_id or request_id_var.get(),
        "user_id": user_id,
        "job_id": job_id,
    }
    if meta:
        rec["meta"] = {str(k): _summarize(str(k), v) for k, v in meta.items()}
    line = json.dumps({k: v for k, v in rec.items() if v}, ensure_ascii=False, separators=(",", ":"))
    path = audit_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with _write_lock, path.open("a", encoding="utf-8") as fp:
            fp.write(line + "\n")
    except OSError as ex:
        logger.warning("audit_write_failed", audit_event=str(event_type), error=str(ex))
