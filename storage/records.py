"""Plain records returned by every storage backend.

Records are immutable; updates produce a new record via ``dataclasses.replace``.
Attribute names are snake_case, ``to_dict()`` renders the camelCase shape the
portal front-end consumes.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Mapping, Optional, TypeVar

from utils import ApiError, as_utc


NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
ONBOARDING_STATUSES = (NOT_STARTED, IN_PROGRESS, COMPLETED)

ROLES = ("employee", "admin")

R = TypeVar("R", bound="_Record")


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, _Record):
        return value.to_dict()
    return value


class _Record:
    # Assigned by the store; callers may not supply them on create.
    __managed__: ClassVar[tuple[str, ...]] = ("id",)
    # May never change after create.
    __immutable__: ClassVar[tuple[str, ...]] = ("id",)
    __private__: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in dataclasses.fields(cls)}  # type: ignore[arg-type]

    @classmethod
    def required_fields(cls) -> set[str]:
        return {
            f.name
            for f in dataclasses.fields(cls)  # type: ignore[arg-type]
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING  # type: ignore[misc]
        } - set(cls.__managed__)

    @classmethod
    def validate(cls, data: dict[str, Any]) -> dict[str, Any]:
        for k, v in data.items():
            if isinstance(v, datetime):
                data[k] = as_utc(v)
        return data

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in dataclasses.fields(self):  # type: ignore[arg-type]
            if f.name in self.__private__:
                continue
            out[camel_case(f.name)] = _plain(getattr(self, f.name))
        return out


def check_create_fields(cls: type[R], fields: Mapping[str, Any]) -> dict[str, Any]:
    data = dict(fields or {})
    unknown = sorted(set(data) - cls.field_names())
    if unknown:
        raise ApiError("BAD_REQUEST", f"Unknown {cls.__name__} field(s): {', '.join(unknown)}")
    managed = sorted(set(data) & set(cls.__managed__))
    if managed:
        raise ApiError("BAD_REQUEST", f"{cls.__name__} field(s) are assigned by the store: {', '.join(managed)}")
    missing = sorted(n for n in cls.required_fields() if data.get(n) is None)
    if missing:
        raise ApiError("BAD_REQUEST", f"Missing {cls.__name__} field(s): {', '.join(missing)}")
    return cls.validate(data)


def check_update_fields(cls: type[R], changes: Mapping[str, Any]) -> dict[str, Any]:
    data = dict(changes or {})
    unknown = sorted(set(data) - cls.field_names())
    if unknown:
        raise ApiError("BAD_REQUEST", f"Unknown {cls.__name__} field(s): {', '.join(unknown)}")
    frozen = sorted(set(data) & set(cls.__immutable__))
    if frozen:
        raise ApiError("BAD_REQUEST", f"{cls.__name__} field(s) cannot be changed: {', '.join(frozen)}")
    missing = sorted(n for n in cls.required_fields() if n in data and data[n] is None)
    if missing:
        raise ApiError("BAD_REQUEST", f"{cls.__name__} field(s) cannot be cleared: {', '.join(missing)}")
    return cls.validate(data)


def merge(record: R, changes: Mapping[str, Any]) -> R:
    """Shallow merge: keys absent from ``changes`` keep their current value."""
    return dataclasses.replace(record, **check_update_fields(type(record), changes))


def check_status(status: Any) -> str:
    s = str(status or "").strip().lower()
    if s not in ONBOARDING_STATUSES:
        raise ApiError("BAD_REQUEST", f"Invalid onboarding status: {status!r}")
    return s


@dataclass(frozen=True)
class Employee(_Record):
    __managed__: ClassVar[tuple[str, ...]] = ("id", "last_login")
    __private__: ClassVar[tuple[str, ...]] = ("password",)

    id: int
    username: str
    password: str
    first_name: str
    last_name: str
    email: str
    company_email: Optional[str] = None
    role: str = "employee"
    gender: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    job_area: Optional[str] = None
    avatar: Optional[str] = None
    last_login: Optional[datetime] = None

    linkedin: Optional[str] = None
    github: Optional[str] = None
    behance: Optional[str] = None
    dribbble: Optional[str] = None
    twitter: Optional[str] = None
    website: Optional[str] = None

    pan_number: Optional[str] = None
    aadhaar_number: Optional[str] = None
    passport_number: Optional[str] = None

    pf_number: Optional[str] = None
    uan_number: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_name: Optional[str] = None
    ifsc_code: Optional[str] = None

    phone_number: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_number: Optional[str] = None
    emergency_contact_relation: Optional[str] = None

    current_address: Optional[str] = None
    permanent_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    pincode: Optional[str] = None

    employee_id: Optional[str] = None
    joining_date: Optional[datetime] = None
    probation_end_date: Optional[datetime] = None
    employment_type: Optional[str] = None
    work_location: Optional[str] = None

    @classmethod
    def validate(cls, data: dict[str, Any]) -> dict[str, Any]:
        data = super().validate(data)
        if "role" in data:
            role = str(data["role"] or "").strip().lower()
            if role not in ROLES:
                raise ApiError("BAD_REQUEST", f"Invalid role: {data['role']!r}")
            data["role"] = role
        return data

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class OnboardingStep(_Record):
    id: int
    name: str
    order: int
    description: Optional[str] = None


@dataclass(frozen=True)
class EmployeeOnboardingRecord(_Record):
    __managed__: ClassVar[tuple[str, ...]] = ("id", "completed_at")
    __immutable__: ClassVar[tuple[str, ...]] = ("id", "user_id", "step_id")

    id: int
    user_id: int
    step_id: int
    status: str = NOT_STARTED
    completed_at: Optional[datetime] = None

    @classmethod
    def validate(cls, data: dict[str, Any]) -> dict[str, Any]:
        data = super().validate(data)
        if "status" in data:
            data["status"] = check_status(data["status"])
        return data


@dataclass(frozen=True)
class OnboardingProgress(_Record):
    """A progress record joined with the step it tracks."""

    record: EmployeeOnboardingRecord
    step: OnboardingStep

    @property
    def id(self) -> int:
        return self.record.id

    @property
    def status(self) -> str:
        return self.record.status

    @property
    def completed_at(self) -> Optional[datetime]:
        return self.record.completed_at

    def to_dict(self) -> dict[str, Any]:
        out = self.record.to_dict()
        out["step"] = self.step.to_dict()
        return out


@dataclass(frozen=True)
class DocumentCategory(_Record):
    id: int
    name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Document(_Record):
    __managed__: ClassVar[tuple[str, ...]] = ("id", "uploaded_at")

    id: int
    name: str
    filename: str
    filesize: int
    mime_type: str
    uploaded_by: int
    uploaded_at: Optional[datetime] = None
    category_id: Optional[int] = None
    is_public: bool = False
    is_verified: bool = False
    metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class Event(_Record):
    id: int
    title: str
    start_date: datetime
    end_date: datetime
    created_by: int
    description: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class TimeOffBalance(_Record):
    __immutable__: ClassVar[tuple[str, ...]] = ("id", "user_id")

    id: int
    user_id: int
    vacation_total: int = 20
    vacation_used: int = 0
    sick_total: int = 10
    sick_used: int = 0
    personal_total: int = 5
    personal_used: int = 0


@dataclass(frozen=True)
class ReportDashboard(_Record):
    __immutable__: ClassVar[tuple[str, ...]] = ("id", "user_id")

    id: int
    user_id: int
    name: str
    layout: Any
    is_default: bool = False
