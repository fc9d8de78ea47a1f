from __future__ import annotations

import copy
import dataclasses
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from storage.base import Storage
from storage.records import (
    COMPLETED,
    Document,
    DocumentCategory,
    Employee,
    EmployeeOnboardingRecord,
    Event,
    OnboardingProgress,
    OnboardingStep,
    ReportDashboard,
    TimeOffBalance,
    check_create_fields,
    check_status,
    merge,
)
from utils import ApiError, StorageIntegrityError, as_utc, utc_now


_log = logging.getLogger("storage.memory")


class _Table:
    """Rows keyed by id, in insertion order, with a counter that never rewinds."""

    def __init__(self):
        self.rows: dict[int, Any] = {}
        self._next_id = 1

    def allocate(self) -> int:
        i = self._next_id
        self._next_id += 1
        return i

    def put(self, row: Any) -> Any:
        self.rows[row.id] = row
        return row

    def values(self) -> list[Any]:
        return list(self.rows.values())


def _index_add(index: dict[str, list[int]], key: Any, row_id: int) -> None:
    index.setdefault(str(key), []).append(row_id)


def _index_remove(index: dict[str, list[int]], key: Any, row_id: int) -> None:
    ids = index.get(str(key))
    if not ids:
        return
    if row_id in ids:
        ids.remove(row_id)
    if not ids:
        index.pop(str(key), None)


def _detach(data: dict[str, Any]) -> dict[str, Any]:
    # layout / metadata blobs must not alias caller-owned dicts.
    return {k: copy.deepcopy(v) if isinstance(v, (dict, list)) else v for k, v in data.items()}


def _snapshot(row: Any) -> Any:
    """Copy of a stored record whose JSON blobs the caller may mutate freely."""
    if row is None:
        return None
    blobs = {f.name: copy.deepcopy(getattr(row, f.name)) for f in dataclasses.fields(row) if isinstance(getattr(row, f.name), (dict, list))}
    return dataclasses.replace(row, **blobs) if blobs else row


class MemStorage(Storage):
    """Process-local backend; every operation holds one re-entrant lock."""

    backend = "memory"

    def __init__(self, *, clock: Callable[[], datetime] = utc_now, strict_identity: bool = False):
        self._clock = clock
        self._strict_identity = bool(strict_identity)
        self._lock = threading.RLock()

        self._users = _Table()
        self._steps = _Table()
        self._progress = _Table()
        self._categories = _Table()
        self._documents = _Table()
        self._events = _Table()
        self._balances = _Table()
        self._dashboards = _Table()

        # Secondary indexes; lookups resolve to the earliest matching row.
        self._user_ids_by_username: dict[str, list[int]] = {}
        self._user_ids_by_email: dict[str, list[int]] = {}
        self._progress_by_user_step: dict[tuple[int, int], int] = {}
        self._category_by_name: dict[str, int] = {}
        self._balance_by_user: dict[int, int] = {}

    def _now(self) -> datetime:
        return as_utc(self._clock())  # type: ignore[return-value]

    # --- identity -------------------------------------------------------

    def list_users(self) -> list[Employee]:
        with self._lock:
            return self._users.values()

    def get_user(self, user_id: int) -> Optional[Employee]:
        with self._lock:
            return self._users.rows.get(user_id)

    def _first_indexed(self, index: dict[str, list[int]], key: Any) -> Optional[Employee]:
        ids = index.get(str(key or ""))
        if not ids:
            return None
        return self._users.rows.get(ids[0])

    def get_user_by_username(self, username: str) -> Optional[Employee]:
        with self._lock:
            return self._first_indexed(self._user_ids_by_username, username)

    def get_user_by_email(self, email: str) -> Optional[Employee]:
        with self._lock:
            return self._first_indexed(self._user_ids_by_email, email)

    def _check_identity_free(self, *, username: Optional[str], email: Optional[str], user_id: int = 0) -> None:
        if username is not None:
            owner = self._first_indexed(self._user_ids_by_username, username)
            if owner and owner.id != user_id:
                raise ApiError("CONFLICT", f"Username already taken: {username}")
        if email is not None:
            owner = self._first_indexed(self._user_ids_by_email, email)
            if owner and owner.id != user_id:
                raise ApiError("CONFLICT", f"Email already registered: {email}")

    def create_user(self, fields: Mapping[str, Any]) -> Employee:
        data = check_create_fields(Employee, fields)
        with self._lock:
            if self._strict_identity:
                self._check_identity_free(username=data["username"], email=data["email"])
            user = self._users.put(Employee(id=self._users.allocate(), last_login=self._now(), **data))
            _index_add(self._user_ids_by_username, user.username, user.id)
            _index_add(self._user_ids_by_email, user.email, user.id)
            return user

    def update_user(self, user_id: int, changes: Mapping[str, Any]) -> Optional[Employee]:
        with self._lock:
            current = self._users.rows.get(user_id)
            if current is None:
                return None
            updated = merge(current, changes)
            if self._strict_identity:
                self._check_identity_free(
                    username=updated.username if updated.username != current.username else None,
                    email=updated.email if updated.email != current.email else None,
                    user_id=user_id,
                )
            if updated.username != current.username:
                _index_remove(self._user_ids_by_username, current.username, user_id)
                _index_add(self._user_ids_by_username, updated.username, user_id)
                self._user_ids_by_username[updated.username].sort()
            if updated.email != current.email:
                _index_remove(self._user_ids_by_email, current.email, user_id)
                _index_add(self._user_ids_by_email, updated.email, user_id)
                self._user_ids_by_email[updated.email].sort()
            return self._users.put(updated)

    # --- onboarding steps -----------------------------------------------

    def list_onboarding_steps(self) -> list[OnboardingStep]:
        with self._lock:
            return sorted(self._steps.values(), key=lambda s: s.order)

    def get_onboarding_step(self, step_id: int) -> Optional[OnboardingStep]:
        with self._lock:
            return self._steps.rows.get(step_id)

    def create_onboarding_step(self, fields: Mapping[str, Any]) -> OnboardingStep:
        data = check_create_fields(OnboardingStep, fields)
        with self._lock:
            return self._steps.put(OnboardingStep(id=self._steps.allocate(), **data))

    # --- per-employee progress ------------------------------------------

    def list_onboarding_progress(self, user_id: int) -> list[OnboardingProgress]:
        with self._lock:
            joined = []
            for rec in self._progress.values():
                if rec.user_id != user_id:
                    continue
                step = self._steps.rows.get(rec.step_id)
                if step is None:
                    _log.error("progress record=%s points at missing step=%s", rec.id, rec.step_id)
                    raise StorageIntegrityError(f"Onboarding step not found: {rec.step_id}")
                joined.append(OnboardingProgress(record=rec, step=step))
            return sorted(joined, key=lambda p: (p.step.order, p.step.id))

    def create_onboarding_record(self, fields: Mapping[str, Any]) -> EmployeeOnboardingRecord:
        data = check_create_fields(EmployeeOnboardingRecord, fields)
        key = (int(data["user_id"]), int(data["step_id"]))
        with self._lock:
            if key in self._progress_by_user_step:
                raise ApiError("CONFLICT", f"Onboarding record already exists for user={key[0]} step={key[1]}")
            completed_at = self._now() if data.get("status") == COMPLETED else None
            rec = self._progress.put(
                EmployeeOnboardingRecord(id=self._progress.allocate(), completed_at=completed_at, **data)
            )
            self._progress_by_user_step[key] = rec.id
            return rec

    def set_onboarding_status(
        self, record_id: int, status: str, completed_at: Optional[datetime] = None
    ) -> Optional[EmployeeOnboardingRecord]:
        new_status = check_status(status)
        with self._lock:
            current = self._progress.rows.get(record_id)
            if current is None:
                return None
            stamp = current.completed_at
            if new_status == COMPLETED:
                stamp = as_utc(completed_at) if completed_at is not None else self._now()
            return self._progress.put(
                EmployeeOnboardingRecord(
                    id=current.id,
                    user_id=current.user_id,
                    step_id=current.step_id,
                    status=new_status,
                    completed_at=stamp,
                )
            )

    # --- documents ------------------------------------------------------

    @staticmethod
    def _newest_first(docs: list[Document]) -> list[Document]:
        # Stable under reverse=True, so equal timestamps keep insertion order.
        return sorted(docs, key=lambda d: d.uploaded_at, reverse=True)

    def list_documents(self) -> list[Document]:
        with self._lock:
            return [_snapshot(d) for d in self._newest_first(self._documents.values())]

    def list_documents_for_user(self, user_id: int) -> list[Document]:
        with self._lock:
            docs = [d for d in self._documents.values() if d.uploaded_by == user_id or d.is_public]
            return [_snapshot(d) for d in self._newest_first(docs)]

    def list_documents_by_category(self, category_id: int) -> list[Document]:
        with self._lock:
            docs = [d for d in self._documents.values() if d.category_id == category_id]
            return [_snapshot(d) for d in self._newest_first(docs)]

    def get_document(self, document_id: int) -> Optional[Document]:
        with self._lock:
            return _snapshot(self._documents.rows.get(document_id))

    def create_document(self, fields: Mapping[str, Any]) -> Document:
        data = _detach(check_create_fields(Document, fields))
        with self._lock:
            return _snapshot(self._documents.put(Document(id=self._documents.allocate(), uploaded_at=self._now(), **data)))

    def delete_document(self, document_id: int) -> bool:
        with self._lock:
            return self._documents.rows.pop(document_id, None) is not None

    # --- document categories --------------------------------------------

    def list_document_categories(self) -> list[DocumentCategory]:
        with self._lock:
            return self._categories.values()

    def get_document_category(self, category_id: int) -> Optional[DocumentCategory]:
        with self._lock:
            return self._categories.rows.get(category_id)

    def create_document_category(self, fields: Mapping[str, Any]) -> DocumentCategory:
        data = check_create_fields(DocumentCategory, fields)
        with self._lock:
            if data["name"] in self._category_by_name:
                raise ApiError("CONFLICT", f"Document category already exists: {data['name']}")
            cat = self._categories.put(DocumentCategory(id=self._categories.allocate(), **data))
            self._category_by_name[cat.name] = cat.id
            return cat

    # --- events ---------------------------------------------------------

    def list_events(self) -> list[Event]:
        with self._lock:
            return sorted(self._events.values(), key=lambda e: e.start_date)

    def get_event(self, event_id: int) -> Optional[Event]:
        with self._lock:
            return self._events.rows.get(event_id)

    def create_event(self, fields: Mapping[str, Any]) -> Event:
        data = check_create_fields(Event, fields)
        with self._lock:
            return self._events.put(Event(id=self._events.allocate(), **data))

    # --- time-off -------------------------------------------------------

    def get_time_off_balance(self, user_id: int) -> Optional[TimeOffBalance]:
        with self._lock:
            balance_id = self._balance_by_user.get(user_id)
            return self._balances.rows.get(balance_id) if balance_id is not None else None

    def create_time_off_balance(self, fields: Mapping[str, Any]) -> TimeOffBalance:
        data = check_create_fields(TimeOffBalance, fields)
        with self._lock:
            if data["user_id"] in self._balance_by_user:
                raise ApiError("CONFLICT", f"Time-off balance already exists for user={data['user_id']}")
            bal = self._balances.put(TimeOffBalance(id=self._balances.allocate(), **data))
            self._balance_by_user[bal.user_id] = bal.id
            return bal

    def update_time_off_balance(self, user_id: int, changes: Mapping[str, Any]) -> Optional[TimeOffBalance]:
        with self._lock:
            current = self.get_time_off_balance(user_id)
            if current is None:
                return None
            return self._balances.put(merge(current, changes))

    # --- dashboards -----------------------------------------------------

    def list_dashboards(self, user_id: int) -> list[ReportDashboard]:
        with self._lock:
            return [_snapshot(d) for d in self._dashboards.values() if d.user_id == user_id]

    def get_dashboard(self, dashboard_id: int) -> Optional[ReportDashboard]:
        with self._lock:
            return _snapshot(self._dashboards.rows.get(dashboard_id))

    def _demote_other_defaults(self, keep: ReportDashboard) -> None:
        for d in self._dashboards.values():
            if d.user_id == keep.user_id and d.id != keep.id and d.is_default:
                self._dashboards.put(merge(d, {"is_default": False}))
                _log.info("dashboard=%s no longer default for user=%s (replaced by %s)", d.id, d.user_id, keep.id)

    def create_dashboard(self, fields: Mapping[str, Any]) -> ReportDashboard:
        data = _detach(check_create_fields(ReportDashboard, fields))
        with self._lock:
            dash = self._dashboards.put(ReportDashboard(id=self._dashboards.allocate(), **data))
            if dash.is_default:
                self._demote_other_defaults(dash)
            return _snapshot(dash)

    def update_dashboard(self, dashboard_id: int, changes: Mapping[str, Any]) -> Optional[ReportDashboard]:
        with self._lock:
            current = self._dashboards.rows.get(dashboard_id)
            if current is None:
                return None
            dash = self._dashboards.put(merge(current, _detach(dict(changes or {}))))
            if dash.is_default:
                self._demote_other_defaults(dash)
            return _snapshot(dash)

    def delete_dashboard(self, dashboard_id: int) -> bool:
        with self._lock:
            return self._dashboards.rows.pop(dashboard_id, None) is not None

    def close(self) -> None:
        _log.info("memory storage closed users=%s documents=%s", len(self._users.rows), len(self._documents.rows))
