import json
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Debug flag: enable when running tests or when env var BATTLESHIP_DEBUG is set
DEBUG = bool(os.getenv('BATTLESHIP_DEBUG')) or ('unittest' in sys.modules) or ('PYTEST_CURRENT_TEST' in os.environ)

# Audit files are on unless BATTLESHIP_AUDIT=0
AUDIT_ENABLED = os.getenv('BATTLESHIP_AUDIT', '1') != '0'

# Maintain per-session filename base so all writes go to the same timestamped file
_SESSION_FILE_BASE: Dict[str, str] = {}


def dbg(session_id: Optional[str], *args, **kwargs) -> None:
    """Debug helper: prints when DEBUG, and mirrors the line into the session audit log."""
    if DEBUG:
        print(*args, **kwargs)
    if session_id:
        msg = " ".join(str(a) for a in args)
        audit_write(session_id, {"type": "debug", "msg": msg})


def _ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _log_dir() -> str:
    custom = os.getenv('BATTLESHIP_LOG_DIR')
    if custom:
        return os.path.abspath(custom)
    # ../../logs/sessions relative to this file
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "logs", "sessions"))


def _file_base_for(session_id: str) -> str:
    """Return a stable '<timestamp>_<session_id>' base for this process."""
    if session_id in _SESSION_FILE_BASE:
        return _SESSION_FILE_BASE[session_id]
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    base = f"{ts}_{session_id}"
    _SESSION_FILE_BASE[session_id] = base
    return base


def audit_write(session_id: str, record: Dict[str, Any]) -> None:
    """Append a structured JSON line to the per-session audit log.

    The file is stored under logs/sessions/<timestamp>_<session_id>.log relative to repo root.
    """
    if not AUDIT_ENABLED:
        return
    base_dir = _log_dir()
    record = dict(record)
    record.setdefault("ts", datetime.now(timezone.utc).isoformat())
    record.setdefault("session_id", session_id)
    base = _file_base_for(session_id)
    log_path = os.path.join(base_dir, f"{base}.log")
    try:
        _ensure_dir(base_dir)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
    except OSError:
        # Never raise from audit logging; it's best-effort.
        pass


def forget_session(session_id: str) -> None:
    """Drop the cached file base once a session is gone."""
    _SESSION_FILE_BASE.pop(session_id, None)
