from __future__ import annotations

import pytest

from services.time_off import apply_time_off, balance_summary, credit_time_off, set_allowance
from utils import ApiError


def _ready(storage, make_user):
    u = make_user()
    storage.create_time_off_balance({"user_id": u.id})
    return u


def test_summary_adds_remaining_days(storage, make_user):
    u = _ready(storage, make_user)
    apply_time_off(storage, u.id, "sick", 3)

    summary = balance_summary(storage, u.id)
    assert summary["sickUsed"] == 3
    assert summary["remaining"] == {"vacation": 20, "sick": 7, "personal": 5}


def test_apply_cannot_exceed_allowance(storage, make_user):
    u = _ready(storage, make_user)
    apply_time_off(storage, u.id, "Personal", 5)

    with pytest.raises(ApiError) as e:
        apply_time_off(storage, u.id, "personal", 1)
    assert e.value.code == "BAD_REQUEST"
    assert storage.get_time_off_balance(u.id).personal_used == 5


def test_credit_returns_days(storage, make_user):
    u = _ready(storage, make_user)
    apply_time_off(storage, u.id, "vacation", 4)
    assert credit_time_off(storage, u.id, "vacation", 1).vacation_used == 3

    with pytest.raises(ApiError):
        credit_time_off(storage, u.id, "vacation", 10)


@pytest.mark.parametrize("kind, days", [("holiday", 1), ("sick", 0), ("sick", -2)])
def test_rejects_bad_requests(storage, make_user, kind, days):
    u = _ready(storage, make_user)
    with pytest.raises(ApiError) as e:
        apply_time_off(storage, u.id, kind, days)
    assert e.value.code == "BAD_REQUEST"


def test_missing_balance(storage, make_user):
    u = make_user()
    for call in (
        lambda: balance_summary(storage, u.id),
        lambda: apply_time_off(storage, u.id, "sick", 1),
        lambda: set_allowance(storage, u.id, "sick", 12),
    ):
        with pytest.raises(ApiError) as e:
            call()
        assert e.value.code == "NOT_FOUND"


def test_allowance_cannot_drop_below_used(storage, make_user):
    u = _ready(storage, make_user)
    apply_time_off(storage, u.id, "vacation", 6)

    assert set_allowance(storage, u.id, "vacation", 25).vacation_total == 25
    with pytest.raises(ApiError):
        set_allowance(storage, u.id, "vacation", 5)
