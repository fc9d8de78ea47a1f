from __future__ import annotations

from datetime import datetime, timezone

import pytest

from storage import progress_percentage
from utils import ApiError, StorageIntegrityError


def test_steps_sorted_by_order_with_stable_ties(storage):
    for name, order in [("b", 2), ("a", 1), ("c", 2), ("d", 0)]:
        storage.create_onboarding_step({"name": name, "order": order})

    assert [s.name for s in storage.list_onboarding_steps()] == ["d", "a", "b", "c"]


def test_step_cache_sees_new_steps(storage):
    storage.create_onboarding_step({"name": "first", "order": 1})
    assert len(storage.list_onboarding_steps()) == 1
    storage.create_onboarding_step({"name": "second", "order": 2})
    assert [s.name for s in storage.list_onboarding_steps()] == ["first", "second"]
    assert storage.get_onboarding_step(2).name == "second"
    assert storage.get_onboarding_step(99) is None


def test_sixty_percent_after_three_of_five(storage, make_user, make_steps):
    e = make_user()
    steps = make_steps()
    statuses = ["completed", "completed", "completed", "not_started", "not_started"]
    for step, status in zip(steps, statuses):
        storage.create_onboarding_record({"user_id": e.id, "step_id": step.id, "status": status})

    assert storage.percent_complete(e.id) == 60
    # Pure read.
    assert storage.percent_complete(e.id) == 60


def test_percent_complete_is_zero_without_records(storage, make_user):
    assert storage.percent_complete(make_user().id) == 0
    assert storage.percent_complete(12345) == 0


def test_percent_complete_rounds_half_up(storage, make_user, make_steps):
    e = make_user()
    steps = make_steps(orders=range(1, 9))
    for i, step in enumerate(steps):
        storage.create_onboarding_record({"user_id": e.id, "step_id": step.id, "status": "completed" if i == 0 else "in_progress"})

    # 1 of 8 is 12.5%.
    assert storage.percent_complete(e.id) == 13


class _R:
    def __init__(self, status):
        self.status = status


def test_progress_percentage_stays_in_bounds():
    for n in range(1, 8):
        for k in range(n + 1):
            pct = progress_percentage([_R("completed")] * k + [_R("not_started")] * (n - k))
            assert 0 <= pct <= 100
            assert pct == int(100 * k / n + 0.5)


def test_progress_joined_and_sorted_by_step_order(storage, make_user):
    e = make_user()
    late = storage.create_onboarding_step({"name": "Equipment", "order": 5})
    early = storage.create_onboarding_step({"name": "Personal", "order": 1})
    mid = storage.create_onboarding_step({"name": "Tax", "order": 3})
    for step in (late, early, mid):
        storage.create_onboarding_record({"user_id": e.id, "step_id": step.id})

    other = make_user()
    storage.create_onboarding_record({"user_id": other.id, "step_id": early.id})

    progress = storage.list_onboarding_progress(e.id)
    assert [p.step.name for p in progress] == ["Personal", "Tax", "Equipment"]
    assert all(p.record.user_id == e.id for p in progress)
    assert all(p.status == "not_started" and p.completed_at is None for p in progress)

    d = progress[0].to_dict()
    assert d["stepId"] == early.id and d["step"]["name"] == "Personal"


def test_progress_ties_on_order_follow_step_creation(storage, make_user):
    e = make_user()
    b = storage.create_onboarding_step({"name": "b", "order": 2})
    a = storage.create_onboarding_step({"name": "a", "order": 1})
    c = storage.create_onboarding_step({"name": "c", "order": 2})
    # Records created against the grain of step creation.
    for step in (c, a, b):
        storage.create_onboarding_record({"user_id": e.id, "step_id": step.id})

    assert [p.step.name for p in storage.list_onboarding_progress(e.id)] == ["a", "b", "c"]


def test_missing_step_is_an_integrity_error(storage, make_user):
    e = make_user()
    storage.create_onboarding_record({"user_id": e.id, "step_id": 404})

    with pytest.raises(StorageIntegrityError) as exc:
        storage.list_onboarding_progress(e.id)
    assert "404" in exc.value.message
    assert exc.value.code == "INTEGRITY"


def test_create_completed_record_stamps_completion(storage, make_user, make_steps, clock):
    e = make_user()
    s1, s2 = make_steps(orders=(1, 2))

    done = storage.create_onboarding_record({"user_id": e.id, "step_id": s1.id, "status": "completed"})
    todo = storage.create_onboarding_record({"user_id": e.id, "step_id": s2.id, "status": "in_progress"})

    assert done.completed_at == clock.now
    assert todo.completed_at is None


def test_completed_at_is_kept_when_status_regresses(storage, make_user, make_steps, clock):
    e = make_user()
    (step,) = make_steps(orders=(1,))
    rec = storage.create_onboarding_record({"user_id": e.id, "step_id": step.id})

    clock.advance(hours=1)
    done = storage.set_onboarding_status(rec.id, "completed")
    assert done.status == "completed"
    assert done.completed_at == clock.now

    clock.advance(hours=1)
    back = storage.set_onboarding_status(rec.id, "in_progress")
    assert back.status == "in_progress"
    assert back.completed_at == done.completed_at
    assert storage.list_onboarding_progress(e.id)[0].completed_at == done.completed_at


def test_explicit_completion_time_is_used(storage, make_user, make_steps):
    e = make_user()
    (step,) = make_steps(orders=(1,))
    rec = storage.create_onboarding_record({"user_id": e.id, "step_id": step.id})

    when = datetime(2024, 5, 28, 17, 30, tzinfo=timezone.utc)
    assert storage.set_onboarding_status(rec.id, "completed", when).completed_at == when


def test_set_status_on_missing_record_returns_none(storage):
    assert storage.set_onboarding_status(77, "completed") is None


def test_invalid_status_is_rejected(storage, make_user, make_steps):
    e = make_user()
    (step,) = make_steps(orders=(1,))
    with pytest.raises(ApiError) as exc:
        storage.create_onboarding_record({"user_id": e.id, "step_id": step.id, "status": "done"})
    assert exc.value.code == "BAD_REQUEST"

    rec = storage.create_onboarding_record({"user_id": e.id, "step_id": step.id})
    with pytest.raises(ApiError):
        storage.set_onboarding_status(rec.id, "skipped")


def test_one_record_per_employee_and_step(storage, make_user, make_steps):
    e = make_user()
    (step,) = make_steps(orders=(1,))
    storage.create_onboarding_record({"user_id": e.id, "step_id": step.id})

    with pytest.raises(ApiError) as exc:
        storage.create_onboarding_record({"user_id": e.id, "step_id": step.id, "status": "completed"})
    assert exc.value.code == "CONFLICT"
    assert len(storage.list_onboarding_progress(e.id)) == 1
