from __future__ import annotations

from datetime import datetime, timezone

from passwords import verify_password
from storage import MemStorage, SqlStorage, open_storage, seed_defaults


NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


def test_seed_populates_demo_data(storage, cfg):
    assert seed_defaults(storage, cfg, now=NOW) is True

    admin = storage.get_user_by_username("vedanshu")
    emily = storage.get_user_by_email("emily@example.com")
    assert admin.role == "admin" and emily.role == "employee"
    assert verify_password("WugWeb123@", admin.password)
    assert verify_password("emily123", emily.password)

    steps = storage.list_onboarding_steps()
    assert [s.order for s in steps] == [1, 2, 3, 4, 5]
    assert steps[0].name == "Personal Information"

    progress = storage.list_onboarding_progress(emily.id)
    assert [p.status for p in progress] == ["completed", "completed", "completed", "in_progress", "not_started"]
    assert progress[0].completed_at == datetime(2024, 6, 7, 12, 0, tzinfo=timezone.utc)
    assert storage.percent_complete(emily.id) == 60

    assert len(storage.list_document_categories()) == 5
    # Emily owns nothing; she sees only the public insurance policy.
    assert [d.name for d in storage.list_documents_for_user(emily.id)] == ["Health Insurance Policy"]
    assert len(storage.list_documents()) == 3

    assert [e.title for e in storage.list_events()] == ["Team Meeting", "Quarterly Review", "Company Town Hall"]

    bal = storage.get_time_off_balance(emily.id)
    assert (bal.vacation_used, bal.sick_used, bal.personal_used) == (5, 4, 3)
    assert storage.get_default_dashboard(emily.id).name == "Default Dashboard"


def test_seed_is_idempotent(storage, cfg):
    assert seed_defaults(storage, cfg, now=NOW) is True
    assert seed_defaults(storage, cfg, now=NOW) is False
    assert len(storage.list_users()) == 2
    assert len(storage.list_onboarding_steps()) == 5


def test_open_storage_memory(cfg):
    cfg.STORAGE_BACKEND = "memory"
    cfg.SEED_DEFAULTS = True
    with open_storage(cfg) as s:
        assert isinstance(s, MemStorage)
        assert len(s.list_users()) == 2


def test_open_storage_sql(cfg, tmp_path):
    cfg.STORAGE_BACKEND = "sql"
    cfg.DATABASE_URL = f"sqlite:///{tmp_path / 'portal.db'}"
    cfg.SEED_DEFAULTS = True
    with open_storage(cfg) as s:
        assert isinstance(s, SqlStorage)
        assert s.get_user_by_username("emily") is not None
        assert "reference_cache" in s.pool_stats()

    # Data survives a reopen; seeding does not run twice.
    with open_storage(cfg) as s:
        assert len(s.list_users()) == 2
