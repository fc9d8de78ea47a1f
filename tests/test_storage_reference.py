from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from utils import ApiError


def test_categories_are_unique_by_name(storage):
    a = storage.create_document_category({"name": "Identity", "description": "IDs"})
    b = storage.create_document_category({"name": "Payment"})

    with pytest.raises(ApiError) as e:
        storage.create_document_category({"name": "Identity"})
    assert e.value.code == "CONFLICT"

    assert [c.name for c in storage.list_document_categories()] == ["Identity", "Payment"]
    assert storage.get_document_category(a.id).description == "IDs"
    assert storage.get_document_category(b.id).description is None
    assert storage.get_document_category(99) is None


def _event(storage, title, start, created_by=1):
    return storage.create_event(
        {"title": title, "start_date": start, "end_date": start + timedelta(hours=1), "created_by": created_by}
    )


def test_events_sorted_by_start(storage):
    base = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)
    _event(storage, "later", base + timedelta(days=3))
    _event(storage, "soon", base)
    _event(storage, "middle", base + timedelta(days=1))

    assert [e.title for e in storage.list_events()] == ["soon", "middle", "later"]


def test_events_for_user_is_the_full_calendar(storage, make_user):
    u1, u2 = make_user(), make_user()
    base = datetime(2024, 6, 1, tzinfo=timezone.utc)
    ev = _event(storage, "town hall", base, created_by=u1.id)

    assert storage.list_events_for_user(u2.id) == storage.list_events() == [ev]
    assert storage.get_event(ev.id) == ev
    assert storage.get_event(ev.id + 1) is None


def test_naive_event_times_are_treated_as_utc(storage):
    ev = _event(storage, "naive", datetime(2024, 6, 1, 9, 0))
    assert ev.start_date.tzinfo is not None
    assert storage.get_event(ev.id).start_date == datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


def test_time_off_defaults_and_merge(storage, make_user):
    u = make_user()
    bal = storage.create_time_off_balance({"user_id": u.id})

    assert (bal.vacation_total, bal.vacation_used) == (20, 0)
    assert (bal.sick_total, bal.sick_used) == (10, 0)
    assert (bal.personal_total, bal.personal_used) == (5, 0)

    storage.update_time_off_balance(u.id, {"vacation_used": 2})
    updated = storage.update_time_off_balance(u.id, {"sick_used": 1})
    assert (updated.vacation_used, updated.sick_used, updated.personal_used) == (2, 1, 0)
    assert storage.get_time_off_balance(u.id) == updated


def test_time_off_is_one_per_user(storage, make_user):
    u = make_user()
    storage.create_time_off_balance({"user_id": u.id})
    with pytest.raises(ApiError) as e:
        storage.create_time_off_balance({"user_id": u.id, "vacation_total": 30})
    assert e.value.code == "CONFLICT"
    assert storage.get_time_off_balance(u.id).vacation_total == 20


def test_time_off_missing(storage):
    assert storage.get_time_off_balance(5) is None
    assert storage.update_time_off_balance(5, {"sick_used": 1}) is None


def test_time_off_owner_cannot_change(storage, make_user):
    u = make_user()
    storage.create_time_off_balance({"user_id": u.id})
    with pytest.raises(ApiError):
        storage.update_time_off_balance(u.id, {"user_id": u.id + 1})


LAYOUT = {"charts": [{"type": "productivity"}]}


def test_manual_demotion_leaves_one_default(storage, make_user):
    e = make_user()
    d1 = storage.create_dashboard({"user_id": e.id, "name": "D1", "layout": LAYOUT, "is_default": True})
    d2 = storage.create_dashboard({"user_id": e.id, "name": "D2", "layout": LAYOUT, "is_default": True})

    # The caller-side pass still works (and finds nothing left to do).
    for d in storage.list_dashboards(e.id):
        if d.id != d2.id and d.is_default:
            storage.update_dashboard(d.id, {"is_default": False})

    assert storage.get_default_dashboard(e.id).id == d2.id
    dashboards = storage.list_dashboards(e.id)
    assert [d.id for d in dashboards] == [d1.id, d2.id]
    assert sum(1 for d in dashboards if d.is_default) == 1


def test_store_keeps_single_default_per_user(storage, make_user):
    e, other = make_user(), make_user()
    d1 = storage.create_dashboard({"user_id": e.id, "name": "D1", "layout": LAYOUT, "is_default": True})
    o1 = storage.create_dashboard({"user_id": other.id, "name": "O1", "layout": LAYOUT, "is_default": True})
    d2 = storage.create_dashboard({"user_id": e.id, "name": "D2", "layout": LAYOUT, "is_default": True})

    assert storage.get_dashboard(d1.id).is_default is False
    assert storage.get_default_dashboard(e.id).id == d2.id
    assert storage.get_default_dashboard(other.id).id == o1.id

    storage.update_dashboard(d1.id, {"is_default": True})
    assert storage.get_default_dashboard(e.id).id == d1.id
    assert storage.get_dashboard(d2.id).is_default is False


def test_dashboard_update_delete_and_ids(storage, make_user):
    e = make_user()
    d1 = storage.create_dashboard({"user_id": e.id, "name": "D1", "layout": LAYOUT})
    assert storage.get_default_dashboard(e.id) is None

    renamed = storage.update_dashboard(d1.id, {"name": "Renamed"})
    assert renamed.name == "Renamed" and renamed.layout == LAYOUT

    assert storage.delete_dashboard(d1.id) is True
    assert storage.delete_dashboard(d1.id) is False
    assert storage.update_dashboard(d1.id, {"name": "x"}) is None
    assert storage.list_dashboards(e.id) == []

    d2 = storage.create_dashboard({"user_id": e.id, "name": "D2", "layout": LAYOUT})
    assert d2.id > d1.id


def test_returned_layout_is_not_aliased(storage, make_user):
    e = make_user()
    d = storage.create_dashboard({"user_id": e.id, "name": "D1", "layout": {"charts": [{"type": "productivity"}]}})

    d.layout["charts"].clear()
    storage.get_dashboard(d.id).layout["charts"].append({"type": "attendance"})
    storage.list_dashboards(e.id)[0].layout["charts"].append({"type": "leave"})
    storage.update_dashboard(d.id, {"name": "Renamed"}).layout["charts"].clear()

    assert storage.get_dashboard(d.id).layout == LAYOUT
