from __future__ import annotations

import logging

from storage.base import Storage
from storage.records import TimeOffBalance
from utils import ApiError


_log = logging.getLogger("time_off")

LEAVE_KINDS = ("vacation", "sick", "personal")


def _kind(kind: str) -> str:
    k = str(kind or "").strip().lower()
    if k not in LEAVE_KINDS:
        raise ApiError("BAD_REQUEST", f"Unknown leave type: {kind!r}")
    return k


def remaining(balance: TimeOffBalance) -> dict[str, int]:
    return {k: getattr(balance, f"{k}_total") - getattr(balance, f"{k}_used") for k in LEAVE_KINDS}


def balance_summary(storage: Storage, user_id: int) -> dict:
    bal = storage.get_time_off_balance(user_id)
    if bal is None:
        raise ApiError("NOT_FOUND", "Time off balance not found")
    out = bal.to_dict()
    out["remaining"] = remaining(bal)
    return out


def _adjust(storage: Storage, user_id: int, kind: str, days: int) -> TimeOffBalance:
    k = _kind(kind)
    bal = storage.get_time_off_balance(user_id)
    if bal is None:
        raise ApiError("NOT_FOUND", "Time off balance not found")
    used = getattr(bal, f"{k}_used") + days
    if used < 0:
        raise ApiError("BAD_REQUEST", f"Cannot credit more {k} days than were used")
    if used > getattr(bal, f"{k}_total"):
        raise ApiError("BAD_REQUEST", f"Insufficient {k} balance")
    updated = storage.update_time_off_balance(user_id, {f"{k}_used": used})
    if updated is None:
        raise ApiError("NOT_FOUND", "Time off balance not found")
    return updated


def apply_time_off(storage: Storage, user_id: int, kind: str, days: int) -> TimeOffBalance:
    n = int(days)
    if n <= 0:
        raise ApiError("BAD_REQUEST", "Days must be positive")
    bal = _adjust(storage, user_id, kind, n)
    _log.info("time off applied user=%s kind=%s days=%s", user_id, kind, n)
    return bal


def credit_time_off(storage: Storage, user_id: int, kind: str, days: int) -> TimeOffBalance:
    n = int(days)
    if n <= 0:
        raise ApiError("BAD_REQUEST", "Days must be positive")
    bal = _adjust(storage, user_id, kind, -n)
    _log.info("time off credited user=%s kind=%s days=%s", user_id, kind, n)
    return bal


def set_allowance(storage: Storage, user_id: int, kind: str, total: int) -> TimeOffBalance:
    k = _kind(kind)
    n = int(total)
    bal = storage.get_time_off_balance(user_id)
    if bal is None:
        raise ApiError("NOT_FOUND", "Time off balance not found")
    if n < getattr(bal, f"{k}_used"):
        raise ApiError("BAD_REQUEST", f"{k} allowance cannot drop below days already used")
    return storage.update_time_off_balance(user_id, {f"{k}_total": n})  # type: ignore[return-value]
