from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from passwords import hash_password, verify_password
from storage.base import Storage
from storage.records import NOT_STARTED, Employee
from utils import ApiError, utc_now


_log = logging.getLogger("provisioning")

_USERNAME_UNSAFE_RE = re.compile(r"[^a-z0-9.]+")

# Profile edits never touch these; they have dedicated flows.
_PROFILE_LOCKED = {"id", "password", "role", "last_login", "username"}


@dataclass(frozen=True)
class ProvisionedAccount:
    user: Employee
    username: str
    email: str
    initial_password: str

    def to_dict(self) -> dict[str, Any]:
        out = self.user.to_dict()
        out["generatedCredentials"] = {
            "username": self.username,
            "email": self.email,
            "defaultPassword": self.initial_password,
        }
        return out


def _slug(value: Any) -> str:
    s = str(value or "").strip().lower().replace(" ", "")
    return _USERNAME_UNSAFE_RE.sub("", s)


def generate_username(storage: Storage, first_name: str, last_name: str) -> str:
    base = f"{_slug(first_name)}.{_slug(last_name)}"
    if base == ".":
        raise ApiError("BAD_REQUEST", "First name and last name are required")
    if storage.get_user_by_username(base) is None:
        return base
    suffix = 1
    while storage.get_user_by_username(f"{base}{suffix}") is not None:
        suffix += 1
    return f"{base}{suffix}"


def _start_employee(storage: Storage, user: Employee) -> None:
    for step in storage.list_onboarding_steps():
        storage.create_onboarding_record({"user_id": user.id, "step_id": step.id, "status": NOT_STARTED})
    storage.create_time_off_balance({"user_id": user.id})


def provision_employee(storage: Storage, cfg: Any, fields: Mapping[str, Any]) -> ProvisionedAccount:
    """HR-side account creation with a generated username, system email and temporary password."""
    data = dict(fields or {})
    first = str(data.get("first_name") or "").strip()
    last = str(data.get("last_name") or "").strip()
    if not first or not last:
        raise ApiError("BAD_REQUEST", "First name and last name are required")

    domain = str(getattr(cfg, "SYSTEM_EMAIL_DOMAIN", "") or "wugweb.design")
    initial_password = str(getattr(cfg, "DEFAULT_EMPLOYEE_PASSWORD", "") or "")
    if not initial_password:
        raise ApiError("INTERNAL", "DEFAULT_EMPLOYEE_PASSWORD is not configured")

    username = generate_username(storage, first, last)
    email = f"{username}@{domain}"
    if storage.get_user_by_email(email) is not None:
        raise ApiError("CONFLICT", f"Email already registered: {email}")

    data.pop("id", None)
    data.pop("last_login", None)
    data.update(
        {
            "first_name": first,
            "last_name": last,
            "username": username,
            "email": email,
            "password": hash_password(initial_password, enforce_policy=False),
            "role": data.get("role") or "employee",
        }
    )
    user = storage.create_user(data)
    _start_employee(storage, user)
    _log.info("provisioned user=%s username=%s role=%s", user.id, username, user.role)
    return ProvisionedAccount(user=user, username=username, email=email, initial_password=initial_password)


def register_employee(storage: Storage, fields: Mapping[str, Any]) -> Employee:
    """Self-registration with a caller-chosen username, email and password."""
    data = dict(fields or {})
    username = str(data.get("username") or "").strip()
    email = str(data.get("email") or "").strip().lower()
    if not username or not email:
        raise ApiError("BAD_REQUEST", "Username and email are required")
    if storage.get_user_by_username(username) is not None:
        raise ApiError("CONFLICT", "Username already exists")
    if storage.get_user_by_email(email) is not None:
        raise ApiError("CONFLICT", "Email already exists")

    data.pop("id", None)
    data.pop("last_login", None)
    data.update(
        {
            "username": username,
            "email": email,
            "password": hash_password(str(data.get("password") or "")),
            "role": "employee",
        }
    )
    user = storage.create_user(data)
    _start_employee(storage, user)
    _log.info("registered user=%s username=%s", user.id, username)
    return user


def verify_login(storage: Storage, email: str, password: str) -> Optional[Employee]:
    user = storage.get_user_by_email(str(email or "").strip().lower())
    if user is None or not verify_password(password, user.password):
        _log.info("login rejected")
        return None
    return storage.update_user(user.id, {"last_login": utc_now()})


def update_profile(storage: Storage, user_id: int, changes: Mapping[str, Any]) -> Employee:
    cleaned = {k: v for k, v in dict(changes or {}).items() if k not in _PROFILE_LOCKED}
    if "email" in cleaned:
        email = str(cleaned["email"] or "").strip().lower()
        if not email:
            raise ApiError("BAD_REQUEST", "Email cannot be empty")
        owner = storage.get_user_by_email(email)
        if owner is not None and owner.id != user_id:
            raise ApiError("CONFLICT", "Email already exists")
        cleaned["email"] = email
    user = storage.update_user(user_id, cleaned)
    if user is None:
        raise ApiError("NOT_FOUND", "User not found")
    return user


def change_password(storage: Storage, user_id: int, current_password: str, new_password: str) -> Employee:
    user = storage.get_user(user_id)
    if user is None:
        raise ApiError("NOT_FOUND", "User not found")
    if not verify_password(current_password, user.password):
        raise ApiError("AUTH_INVALID", "Current password is incorrect")
    if current_password == new_password:
        raise ApiError("BAD_REQUEST", "New password must differ from the current one")
    updated = storage.update_user(user_id, {"password": hash_password(new_password)})
    _log.info("password changed user=%s", user_id)
    return updated  # type: ignore[return-value]


def set_role(storage: Storage, *, actor_id: int, user_id: int, role: str) -> Employee:
    actor = storage.get_user(actor_id)
    if actor is None or not actor.is_admin:
        raise ApiError("FORBIDDEN", "Only admins can change roles")
    updated = storage.update_user(user_id, {"role": role})
    if updated is None:
        raise ApiError("NOT_FOUND", "User not found")
    _log.info("role changed user=%s role=%s by=%s", user_id, updated.role, actor_id)
    return updated
