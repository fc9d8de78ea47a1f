from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from config import Config
from services.file_store import LocalFileStore
from storage import MemStorage, SqlStorage


class StepClock:
    """Frozen clock the tests move forward explicitly."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    return StepClock(datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture(params=["memory", "sql"])
def make_storage(request, clock):
    opened = []

    def _make(**kwargs):
        kwargs.setdefault("clock", clock)
        if request.param == "memory":
            s = MemStorage(**kwargs)
        else:
            s = SqlStorage("sqlite://", **kwargs)
        opened.append(s)
        return s

    yield _make
    for s in opened:
        s.close()


@pytest.fixture()
def storage(make_storage):
    return make_storage()


@pytest.fixture()
def cfg(tmp_path):
    c = Config()
    c.APP_ENV = "test"
    c.IS_PRODUCTION = False
    c.STORAGE_BACKEND = "memory"
    c.SEED_DEFAULTS = False
    c.UPLOAD_DIR = str(tmp_path / "uploads")
    c.MAX_DOC_UPLOAD_MB = 1
    c.SYSTEM_EMAIL_DOMAIN = "wugweb.design"
    c.DEFAULT_EMPLOYEE_PASSWORD = "WugWeb123@"
    c.COMPANY_NAME = "Wug Web Services Pvt Ltd"
    c.COMPANY_ADDRESS = "Sector 16-B, Noida"
    return c


@pytest.fixture()
def files(cfg):
    return LocalFileStore(cfg.UPLOAD_DIR)


@pytest.fixture()
def make_user(storage):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "username": f"user{n}",
            "password": "opaque",
            "first_name": f"First{n}",
            "last_name": f"Last{n}",
            "email": f"user{n}@example.com",
        }
        fields.update(overrides)
        return storage.create_user(fields)

    return _make


@pytest.fixture()
def make_steps(storage):
    def _make(orders=(1, 2, 3, 4, 5)):
        return [storage.create_onboarding_step({"name": f"Step {o}", "order": o}) for o in orders]

    return _make
