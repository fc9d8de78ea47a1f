from __future__ import annotations

import logging
from typing import Any, Optional

from storage.base import Storage, progress_percentage
from storage.records import COMPLETED, EmployeeOnboardingRecord, check_status
from utils import ApiError


_log = logging.getLogger("onboarding")

# Profile attributes an employee must fill in before onboarding counts as done.
REQUIRED_PROFILE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "phoneNumber": "phone_number",
    "emergencyContactName": "emergency_contact_name",
    "emergencyContactNumber": "emergency_contact_number",
    "currentAddress": "current_address",
    "bankAccountNumber": "bank_account_number",
    "bankName": "bank_name",
    "ifscCode": "ifsc_code",
    "panNumber": "pan_number",
    "aadhaarNumber": "aadhaar_number",
}


def onboarding_summary(storage: Storage, user_id: int) -> dict[str, Any]:
    progress = storage.list_onboarding_progress(user_id)
    completed = sum(1 for p in progress if p.status == COMPLETED)
    pct = progress_percentage(progress)
    _log.debug("onboarding user=%s %s/%s (%s%%)", user_id, completed, len(progress), pct)
    return {
        "steps": [p.to_dict() for p in progress],
        "completedSteps": completed,
        "totalSteps": len(progress),
        "progress": pct,
    }


def update_step(storage: Storage, *, user_id: int, record_id: int, status: str) -> EmployeeOnboardingRecord:
    new_status = check_status(status)
    actor = storage.get_user(user_id)
    if actor is None:
        raise ApiError("NOT_FOUND", "User not found")
    if not actor.is_admin and all(p.id != record_id for p in storage.list_onboarding_progress(user_id)):
        # Employees only see their own records; someone else's reads as absent.
        raise ApiError("NOT_FOUND", "Onboarding record not found")

    rec = storage.set_onboarding_status(record_id, new_status)
    if rec is None:
        raise ApiError("NOT_FOUND", "Onboarding record not found")
    _log.info("onboarding record=%s user=%s status=%s", rec.id, rec.user_id, rec.status)
    return rec


def onboarding_status(storage: Storage, user_id: int) -> Optional[dict[str, Any]]:
    user = storage.get_user(user_id)
    if user is None:
        return None

    fields = {key: bool(str(getattr(user, attr) or "").strip()) for key, attr in REQUIRED_PROFILE_FIELDS.items()}
    has_required = all(fields.values())

    progress = storage.list_onboarding_progress(user_id)
    completed = sum(1 for p in progress if p.status == COMPLETED)
    total = len(progress)
    all_steps_done = total > 0 and completed == total
    is_onboarded = has_required and all_steps_done

    return {
        "isOnboarded": is_onboarded,
        "shouldBeOnboarded": user.role == "employee" and not is_onboarded,
        "hasRequiredFields": has_required,
        "missingFields": [k for k, ok in fields.items() if not ok],
        "requiredFields": fields,
        "completedSteps": completed,
        "totalSteps": total,
        "progressPercentage": progress_percentage(progress),
    }
