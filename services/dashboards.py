from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from storage.base import Storage
from storage.records import ReportDashboard
from utils import ApiError


_log = logging.getLogger("dashboards")

_EDITABLE = ("name", "layout", "is_default")


def demote_other_defaults(storage: Storage, *, user_id: int, keep_id: int) -> int:
    """Clear ``is_default`` on every other dashboard of ``user_id``; returns how many changed."""
    changed = 0
    for d in storage.list_dashboards(user_id):
        if d.id != keep_id and d.is_default:
            storage.update_dashboard(d.id, {"is_default": False})
            changed += 1
    return changed


def _owned(storage: Storage, *, user_id: int, dashboard_id: int) -> ReportDashboard:
    dash = storage.get_dashboard(dashboard_id)
    if dash is None:
        raise ApiError("NOT_FOUND", "Dashboard not found")
    if dash.user_id != user_id:
        raise ApiError("FORBIDDEN", "Forbidden")
    return dash


def save_dashboard(storage: Storage, *, user_id: int, name: str, layout: Any, is_default: bool = False) -> ReportDashboard:
    if not str(name or "").strip():
        raise ApiError("BAD_REQUEST", "Dashboard name is required")
    if layout is None:
        raise ApiError("BAD_REQUEST", "Dashboard layout is required")
    dash = storage.create_dashboard(
        {"user_id": user_id, "name": str(name).strip(), "layout": layout, "is_default": bool(is_default)}
    )
    if dash.is_default:
        demote_other_defaults(storage, user_id=user_id, keep_id=dash.id)
    return dash


def edit_dashboard(storage: Storage, *, user_id: int, dashboard_id: int, changes: Mapping[str, Any]) -> ReportDashboard:
    _owned(storage, user_id=user_id, dashboard_id=dashboard_id)
    patch = {k: v for k, v in dict(changes or {}).items() if k in _EDITABLE and v is not None}
    dash = storage.update_dashboard(dashboard_id, patch)
    if dash is None:
        raise ApiError("NOT_FOUND", "Dashboard not found")
    if dash.is_default:
        demote_other_defaults(storage, user_id=user_id, keep_id=dash.id)
    return dash


def remove_dashboard(storage: Storage, *, user_id: int, dashboard_id: int) -> None:
    _owned(storage, user_id=user_id, dashboard_id=dashboard_id)
    storage.delete_dashboard(dashboard_id)
    _log.info("dashboard=%s deleted by user=%s", dashboard_id, user_id)


def default_dashboard(storage: Storage, user_id: int) -> Optional[ReportDashboard]:
    return storage.get_default_dashboard(user_id)
