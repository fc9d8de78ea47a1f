from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator, Mapping, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from cache_layer import ReferenceCache, reference_key
from db import Base, get_pool_stats, make_engine, make_session_factory
from models import (
    DocumentCategoryRow,
    DocumentRow,
    EmployeeOnboardingRow,
    EventRow,
    OnboardingStepRow,
    ReportDashboardRow,
    TimeOffBalanceRow,
    UserRow,
)
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


_log = logging.getLogger("storage.sql")

_STEPS_TABLE = "onboarding_steps"
_CATEGORIES_TABLE = "document_categories"

# Record attribute -> mapped column attribute, where they differ.
_COLUMN_ATTR = {"metadata": "metadata_"}


def _to_record(cls, row: Any):
    data: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        value = getattr(row, _COLUMN_ATTR.get(f.name, f.name))
        if isinstance(value, datetime):
            value = as_utc(value)
        data[f.name] = value
    return cls(**data)


def _row_values(data: Mapping[str, Any]) -> dict[str, Any]:
    return {_COLUMN_ATTR.get(k, k): v for k, v in data.items()}


def _copy_onto(row: Any, record: Any) -> None:
    for f in dataclasses.fields(record):
        if f.name == "id":
            continue
        setattr(row, _COLUMN_ATTR.get(f.name, f.name), getattr(record, f.name))


class SqlStorage(Storage):
    """SQLAlchemy backend; each operation runs in its own session and transaction."""

    backend = "sql"

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        engine: Optional[Engine] = None,
        clock: Callable[[], datetime] = utc_now,
        strict_identity: bool = False,
        cache_ttl_seconds: int = 60,
        echo: bool = False,
        create_schema: bool = True,
    ):
        if engine is None and not database_url:
            raise ValueError("SqlStorage needs a database_url or an engine")
        self._owns_engine = engine is None
        self._engine = engine if engine is not None else make_engine(str(database_url), echo=echo)
        self._sessions = make_session_factory(self._engine)
        self._clock = clock
        self._strict_identity = bool(strict_identity)
        self._cache = ReferenceCache(ttl_seconds=cache_ttl_seconds)
        if create_schema:
            Base.metadata.create_all(bind=self._engine)

    def _now(self) -> datetime:
        return as_utc(self._clock())  # type: ignore[return-value]

    @contextmanager
    def _tx(self) -> Iterator[Any]:
        db = self._sessions()
        try:
            yield db
            db.commit()
        except IntegrityError as e:
            db.rollback()
            _log.warning("integrity violation rolled back: %s", getattr(e, "orig", e))
            raise ApiError("CONFLICT", "Record conflicts with an existing record") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def pool_stats(self) -> dict[str, Any]:
        out = get_pool_stats(self._engine)
        out["reference_cache"] = self._cache.stats()
        return out

    # --- identity -------------------------------------------------------

    def list_users(self) -> list[Employee]:
        with self._sessions() as db:
            rows = db.execute(select(UserRow).order_by(UserRow.id)).scalars().all()
            return [_to_record(Employee, r) for r in rows]

    def get_user(self, user_id: int) -> Optional[Employee]:
        with self._sessions() as db:
            row = db.get(UserRow, user_id)
            return _to_record(Employee, row) if row else None

    @staticmethod
    def _first_user(db, column, value: Any) -> Optional[UserRow]:
        return db.execute(select(UserRow).where(column == value).order_by(UserRow.id).limit(1)).scalars().first()

    def get_user_by_username(self, username: str) -> Optional[Employee]:
        with self._sessions() as db:
            row = self._first_user(db, UserRow.username, str(username or ""))
            return _to_record(Employee, row) if row else None

    def get_user_by_email(self, email: str) -> Optional[Employee]:
        with self._sessions() as db:
            row = self._first_user(db, UserRow.email, str(email or ""))
            return _to_record(Employee, row) if row else None

    def _check_identity_free(self, db, *, username: Optional[str], email: Optional[str], user_id: int = 0) -> None:
        if username is not None:
            owner = self._first_user(db, UserRow.username, username)
            if owner is not None and owner.id != user_id:
                raise ApiError("CONFLICT", f"Username already taken: {username}")
        if email is not None:
            owner = self._first_user(db, UserRow.email, email)
            if owner is not None and owner.id != user_id:
                raise ApiError("CONFLICT", f"Email already registered: {email}")

    def create_user(self, fields: Mapping[str, Any]) -> Employee:
        data = check_create_fields(Employee, fields)
        with self._tx() as db:
            if self._strict_identity:
                self._check_identity_free(db, username=data["username"], email=data["email"])
            row = UserRow(last_login=self._now(), **_row_values(data))
            db.add(row)
            db.flush()
            return _to_record(Employee, row)

    def update_user(self, user_id: int, changes: Mapping[str, Any]) -> Optional[Employee]:
        with self._tx() as db:
            row = db.get(UserRow, user_id)
            if row is None:
                return None
            current = _to_record(Employee, row)
            updated = merge(current, changes)
            if self._strict_identity:
                self._check_identity_free(
                    db,
                    username=updated.username if updated.username != current.username else None,
                    email=updated.email if updated.email != current.email else None,
                    user_id=user_id,
                )
            _copy_onto(row, updated)
            return updated

    # --- onboarding steps -----------------------------------------------

    def _load_steps(self) -> tuple[OnboardingStep, ...]:
        with self._sessions() as db:
            rows = db.execute(select(OnboardingStepRow).order_by(OnboardingStepRow.order, OnboardingStepRow.id)).scalars().all()
            return tuple(_to_record(OnboardingStep, r) for r in rows)

    def _cached_steps(self) -> tuple[OnboardingStep, ...]:
        return self._cache.load(reference_key(_STEPS_TABLE), self._load_steps)

    def list_onboarding_steps(self) -> list[OnboardingStep]:
        return list(self._cached_steps())

    def get_onboarding_step(self, step_id: int) -> Optional[OnboardingStep]:
        with self._sessions() as db:
            row = db.get(OnboardingStepRow, step_id)
            return _to_record(OnboardingStep, row) if row else None

    def create_onboarding_step(self, fields: Mapping[str, Any]) -> OnboardingStep:
        data = check_create_fields(OnboardingStep, fields)
        with self._tx() as db:
            row = OnboardingStepRow(**_row_values(data))
            db.add(row)
            db.flush()
            step = _to_record(OnboardingStep, row)
        self._cache.invalidate(_STEPS_TABLE)
        return step

    # --- per-employee progress ------------------------------------------

    def list_onboarding_progress(self, user_id: int) -> list[OnboardingProgress]:
        with self._sessions() as db:
            rows = (
                db.execute(select(EmployeeOnboardingRow).where(EmployeeOnboardingRow.user_id == user_id).order_by(EmployeeOnboardingRow.id))
                .scalars()
                .all()
            )
            records = [_to_record(EmployeeOnboardingRecord, r) for r in rows]

        steps = {s.id: s for s in self._cached_steps()}
        if any(r.step_id not in steps for r in records):
            # The cached step list may predate a step created elsewhere.
            self._cache.invalidate(_STEPS_TABLE)
            steps = {s.id: s for s in self._cached_steps()}

        joined = []
        for rec in records:
            step = steps.get(rec.step_id)
            if step is None:
                _log.error("progress record=%s points at missing step=%s", rec.id, rec.step_id)
                raise StorageIntegrityError(f"Onboarding step not found: {rec.step_id}")
            joined.append(OnboardingProgress(record=rec, step=step))
        return sorted(joined, key=lambda p: (p.step.order, p.step.id))

    def create_onboarding_record(self, fields: Mapping[str, Any]) -> EmployeeOnboardingRecord:
        data = check_create_fields(EmployeeOnboardingRecord, fields)
        with self._tx() as db:
            dup = db.execute(
                select(EmployeeOnboardingRow.id)
                .where(EmployeeOnboardingRow.user_id == data["user_id"])
                .where(EmployeeOnboardingRow.step_id == data["step_id"])
            ).first()
            if dup is not None:
                raise ApiError(
                    "CONFLICT", f"Onboarding record already exists for user={data['user_id']} step={data['step_id']}"
                )
            completed_at = self._now() if data.get("status") == COMPLETED else None
            row = EmployeeOnboardingRow(completed_at=completed_at, **_row_values(data))
            db.add(row)
            db.flush()
            return _to_record(EmployeeOnboardingRecord, row)

    def set_onboarding_status(
        self, record_id: int, status: str, completed_at: Optional[datetime] = None
    ) -> Optional[EmployeeOnboardingRecord]:
        new_status = check_status(status)
        with self._tx() as db:
            row = db.get(EmployeeOnboardingRow, record_id)
            if row is None:
                return None
            row.status = new_status
            if new_status == COMPLETED:
                row.completed_at = as_utc(completed_at) if completed_at is not None else self._now()
            db.flush()
            return _to_record(EmployeeOnboardingRecord, row)

    # --- documents ------------------------------------------------------

    def _documents(self, *criteria) -> list[Document]:
        with self._sessions() as db:
            stmt = select(DocumentRow).where(*criteria).order_by(DocumentRow.uploaded_at.desc(), DocumentRow.id.asc())
            return [_to_record(Document, r) for r in db.execute(stmt).scalars().all()]

    def list_documents(self) -> list[Document]:
        return self._documents()

    def list_documents_for_user(self, user_id: int) -> list[Document]:
        return self._documents(or_(DocumentRow.uploaded_by == user_id, DocumentRow.is_public.is_(True)))

    def list_documents_by_category(self, category_id: int) -> list[Document]:
        return self._documents(DocumentRow.category_id == category_id)

    def get_document(self, document_id: int) -> Optional[Document]:
        with self._sessions() as db:
            row = db.get(DocumentRow, document_id)
            return _to_record(Document, row) if row else None

    def create_document(self, fields: Mapping[str, Any]) -> Document:
        data = check_create_fields(Document, fields)
        with self._tx() as db:
            row = DocumentRow(uploaded_at=self._now(), **_row_values(data))
            db.add(row)
            db.flush()
            return _to_record(Document, row)

    def delete_document(self, document_id: int) -> bool:
        with self._tx() as db:
            row = db.get(DocumentRow, document_id)
            if row is None:
                return False
            db.delete(row)
            return True

    # --- document categories --------------------------------------------

    def _load_categories(self) -> tuple[DocumentCategory, ...]:
        with self._sessions() as db:
            rows = db.execute(select(DocumentCategoryRow).order_by(DocumentCategoryRow.id)).scalars().all()
            return tuple(_to_record(DocumentCategory, r) for r in rows)

    def list_document_categories(self) -> list[DocumentCategory]:
        return list(self._cache.load(reference_key(_CATEGORIES_TABLE), self._load_categories))

    def get_document_category(self, category_id: int) -> Optional[DocumentCategory]:
        with self._sessions() as db:
            row = db.get(DocumentCategoryRow, category_id)
            return _to_record(DocumentCategory, row) if row else None

    def create_document_category(self, fields: Mapping[str, Any]) -> DocumentCategory:
        data = check_create_fields(DocumentCategory, fields)
        with self._tx() as db:
            dup = db.execute(select(DocumentCategoryRow.id).where(DocumentCategoryRow.name == data["name"])).first()
            if dup is not None:
                raise ApiError("CONFLICT", f"Document category already exists: {data['name']}")
            row = DocumentCategoryRow(**_row_values(data))
            db.add(row)
            db.flush()
            category = _to_record(DocumentCategory, row)
        self._cache.invalidate(_CATEGORIES_TABLE)
        return category

    # --- events ---------------------------------------------------------

    def list_events(self) -> list[Event]:
        with self._sessions() as db:
            rows = db.execute(select(EventRow).order_by(EventRow.start_date, EventRow.id)).scalars().all()
            return [_to_record(Event, r) for r in rows]

    def get_event(self, event_id: int) -> Optional[Event]:
        with self._sessions() as db:
            row = db.get(EventRow, event_id)
            return _to_record(Event, row) if row else None

    def create_event(self, fields: Mapping[str, Any]) -> Event:
        data = check_create_fields(Event, fields)
        with self._tx() as db:
            row = EventRow(**_row_values(data))
            db.add(row)
            db.flush()
            return _to_record(Event, row)

    # --- time-off -------------------------------------------------------

    @staticmethod
    def _balance_row(db, user_id: int) -> Optional[TimeOffBalanceRow]:
        return db.execute(select(TimeOffBalanceRow).where(TimeOffBalanceRow.user_id == user_id)).scalars().first()

    def get_time_off_balance(self, user_id: int) -> Optional[TimeOffBalance]:
        with self._sessions() as db:
            row = self._balance_row(db, user_id)
            return _to_record(TimeOffBalance, row) if row else None

    def create_time_off_balance(self, fields: Mapping[str, Any]) -> TimeOffBalance:
        data = check_create_fields(TimeOffBalance, fields)
        with self._tx() as db:
            if self._balance_row(db, data["user_id"]) is not None:
                raise ApiError("CONFLICT", f"Time-off balance already exists for user={data['user_id']}")
            row = TimeOffBalanceRow(**_row_values(data))
            db.add(row)
            db.flush()
            return _to_record(TimeOffBalance, row)

    def update_time_off_balance(self, user_id: int, changes: Mapping[str, Any]) -> Optional[TimeOffBalance]:
        with self._tx() as db:
            row = self._balance_row(db, user_id)
            if row is None:
                return None
            updated = merge(_to_record(TimeOffBalance, row), changes)
            _copy_onto(row, updated)
            return updated

    # --- dashboards -----------------------------------------------------

    def list_dashboards(self, user_id: int) -> list[ReportDashboard]:
        with self._sessions() as db:
            rows = (
                db.execute(select(ReportDashboardRow).where(ReportDashboardRow.user_id == user_id).order_by(ReportDashboardRow.id))
                .scalars()
                .all()
            )
            return [_to_record(ReportDashboard, r) for r in rows]

    def get_dashboard(self, dashboard_id: int) -> Optional[ReportDashboard]:
        with self._sessions() as db:
            row = db.get(ReportDashboardRow, dashboard_id)
            return _to_record(ReportDashboard, row) if row else None

    @staticmethod
    def _demote_other_defaults(db, keep: ReportDashboardRow) -> None:
        res = db.execute(
            update(ReportDashboardRow)
            .where(ReportDashboardRow.user_id == keep.user_id)
            .where(ReportDashboardRow.id != keep.id)
            .where(ReportDashboardRow.is_default.is_(True))
            .values(is_default=False)
        )
        if res.rowcount:
            _log.info("demoted %s default dashboard(s) for user=%s (replaced by %s)", res.rowcount, keep.user_id, keep.id)

    def create_dashboard(self, fields: Mapping[str, Any]) -> ReportDashboard:
        data = check_create_fields(ReportDashboard, fields)
        with self._tx() as db:
            row = ReportDashboardRow(**_row_values(data))
            db.add(row)
            db.flush()
            if row.is_default:
                self._demote_other_defaults(db, row)
            return _to_record(ReportDashboard, row)

    def update_dashboard(self, dashboard_id: int, changes: Mapping[str, Any]) -> Optional[ReportDashboard]:
        with self._tx() as db:
            row = db.get(ReportDashboardRow, dashboard_id)
            if row is None:
                return None
            updated = merge(_to_record(ReportDashboard, row), changes)
            _copy_onto(row, updated)
            db.flush()
            if updated.is_default:
                self._demote_other_defaults(db, row)
            return updated

    def delete_dashboard(self, dashboard_id: int) -> bool:
        with self._tx() as db:
            row = db.get(ReportDashboardRow, dashboard_id)
            if row is None:
                return False
            db.delete(row)
            return True

    def close(self) -> None:
        self._cache.clear()
        if self._owns_engine:
            self._engine.dispose()
        _log.info("sql storage closed")
