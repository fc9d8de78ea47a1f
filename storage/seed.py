from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from passwords import hash_password
from storage.base import Storage
from storage.records import COMPLETED, IN_PROGRESS, NOT_STARTED


_log = logging.getLogger("storage.seed")


DEFAULT_ONBOARDING_STEPS = [
    {"name": "Personal Information", "description": "Complete your personal information", "order": 1},
    {"name": "Employment Details", "description": "Verify your employment details", "order": 2},
    {"name": "Tax Information", "description": "Provide your tax information", "order": 3},
    {"name": "Company Policy Acknowledgement", "description": "Read and acknowledge company policies", "order": 4},
    {"name": "Equipment Setup", "description": "Setup your company equipment", "order": 5},
]

DEFAULT_DOCUMENT_CATEGORIES = [
    {"name": "Salary Slips", "description": "Monthly salary slips"},
    {"name": "Contracts", "description": "Employment contracts and agreements"},
    {"name": "Policies", "description": "Company policies and guidelines"},
    {"name": "Tax Documents", "description": "Tax-related documents"},
    {"name": "Benefits", "description": "Benefits and insurance information"},
]

DEFAULT_DASHBOARD_LAYOUT = {
    "charts": [
        {"type": "productivity", "title": "Productivity Trends", "timeframe": "monthly"},
        {"type": "projectCompletion", "title": "Project Completion", "timeframe": "quarterly"},
    ]
}


def _month_day(now: datetime, day: int, hour: int, minute: int) -> datetime:
    return datetime(now.year, now.month, day, hour, minute, tzinfo=timezone.utc)


def seed_defaults(storage: Storage, cfg: Optional[Any] = None, *, now: Optional[datetime] = None) -> bool:
    """Populate an empty store with the demo admin, a sample employee and reference data.

    Returns False without touching anything when users already exist.
    """
    if storage.list_users():
        return False

    now = now or datetime.now(timezone.utc)
    admin_password = str(getattr(cfg, "DEFAULT_EMPLOYEE_PASSWORD", "") or "WugWeb123@")

    admin = storage.create_user(
        {
            "username": "vedanshu",
            "password": hash_password(admin_password, enforce_policy=False),
            "first_name": "Vedanshu",
            "last_name": "Srivastava",
            "email": "vedanshu@wugweb.com",
            "role": "admin",
            "department": "HR",
            "position": "HR Manager",
            "avatar": "",
        }
    )
    emily = storage.create_user(
        {
            "username": "emily",
            "password": hash_password("emily123", enforce_policy=False),
            "first_name": "Emily",
            "last_name": "Smith",
            "email": "emily@example.com",
            "role": "employee",
            "department": "Marketing",
            "position": "Marketing Specialist",
            "avatar": "",
        }
    )

    steps = [storage.create_onboarding_step(s) for s in DEFAULT_ONBOARDING_STEPS]

    # First three done over the last three days, fourth under way, fifth untouched.
    for i, step in enumerate(steps[:3]):
        rec = storage.create_onboarding_record({"user_id": emily.id, "step_id": step.id, "status": COMPLETED})
        storage.set_onboarding_status(rec.id, COMPLETED, now - timedelta(days=3 - i))
    storage.create_onboarding_record({"user_id": emily.id, "step_id": steps[3].id, "status": IN_PROGRESS})
    storage.create_onboarding_record({"user_id": emily.id, "step_id": steps[4].id, "status": NOT_STARTED})

    categories = [storage.create_document_category(c) for c in DEFAULT_DOCUMENT_CATEGORIES]

    samples = [
        ("May 2023 Salary Slip", "may_2023_salary_slip.pdf", 257000, categories[0].id, False),
        ("Employment Contract", "employment_contract.pdf", 542000, categories[1].id, False),
        ("Health Insurance Policy", "health_insurance_policy.pdf", 385000, categories[4].id, True),
    ]
    for name, filename, size, category_id, public in samples:
        storage.create_document(
            {
                "name": name,
                "filename": filename,
                "filesize": size,
                "mime_type": "application/pdf",
                "category_id": category_id,
                "uploaded_by": admin.id,
                "is_public": public,
                "metadata": {},
            }
        )

    events = [
        ("Team Meeting", "Regular team meeting to discuss ongoing projects", 15, (10, 0), (11, 30), "Conference Room A", "Marketing Department"),
        ("Quarterly Review", "Quarterly performance review session", 18, (14, 0), (15, 30), "HR Office", "Performance Review"),
        ("Company Town Hall", "Company-wide town hall meeting", 22, (9, 0), (10, 30), "Main Auditorium", "All Employees"),
    ]
    for title, description, day, start, end, location, category in events:
        storage.create_event(
            {
                "title": title,
                "description": description,
                "start_date": _month_day(now, day, *start),
                "end_date": _month_day(now, day, *end),
                "location": location,
                "category": category,
                "created_by": admin.id,
            }
        )

    storage.create_time_off_balance(
        {
            "user_id": emily.id,
            "vacation_total": 20,
            "vacation_used": 5,
            "sick_total": 10,
            "sick_used": 4,
            "personal_total": 5,
            "personal_used": 3,
        }
    )
    storage.create_dashboard(
        {"user_id": emily.id, "name": "Default Dashboard", "layout": DEFAULT_DASHBOARD_LAYOUT, "is_default": True}
    )

    _log.info(
        "seeded backend=%s users=%s steps=%s categories=%s", storage.backend, 2, len(steps), len(categories)
    )
    return True
