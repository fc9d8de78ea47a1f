from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional


_DEFAULT_STATUS = {
    "BAD_REQUEST": 400,
    "AUTH_INVALID": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "INTEGRITY": 500,
    "INTERNAL": 500,
}


class ApiError(Exception):
    def __init__(self, code: str, message: str, http_status: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.code = str(code or "INTERNAL").upper()
        self.message = str(message or "")
        self.http_status = int(http_status if http_status is not None else _DEFAULT_STATUS.get(self.code, 400))
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            out["details"] = self.details
        return out


class StorageIntegrityError(ApiError):
    """A stored record points at a related record that does not exist."""

    def __init__(self, message: str, details: Any = None):
        super().__init__("INTEGRITY", message, http_status=500, details=details)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(name: Any) -> str:
    s = str(name or "").strip().replace("\\", "/").split("/")[-1]
    s = _UNSAFE_FILENAME_RE.sub("_", s).strip("._")
    if not s:
        return "file"
    return s[:150]


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if not s:
        return default
    return s in {"1", "true", "yes", "y", "on"}
