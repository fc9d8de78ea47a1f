from __future__ import annotations

import pytest

from passwords import hash_password, verify_password
from services.accounts import (
    change_password,
    generate_username,
    provision_employee,
    register_employee,
    set_role,
    update_profile,
    verify_login,
)
from utils import ApiError


STRONG = "Sup3r$ecretPass"


def test_generated_usernames_get_numeric_suffixes(storage, cfg, make_steps):
    make_steps()
    first = provision_employee(storage, cfg, {"first_name": "John", "last_name": "Doe"})
    second = provision_employee(storage, cfg, {"first_name": "john", "last_name": "DOE"})
    third = provision_employee(storage, cfg, {"first_name": "John", "last_name": "Doe"})

    assert [a.username for a in (first, second, third)] == ["john.doe", "john.doe1", "john.doe2"]
    assert third.email == "john.doe2@wugweb.design"
    assert generate_username(storage, "Mary Ann", "O'Neil") == "maryann.oneil"


def test_provisioning_starts_onboarding_and_time_off(storage, cfg, make_steps):
    steps = make_steps()
    acct = provision_employee(storage, cfg, {"first_name": "Priya", "last_name": "Patel", "department": "Design"})

    user = storage.get_user(acct.user.id)
    assert user.department == "Design"
    assert user.role == "employee"
    assert user.password != cfg.DEFAULT_EMPLOYEE_PASSWORD
    assert verify_password(cfg.DEFAULT_EMPLOYEE_PASSWORD, user.password)

    progress = storage.list_onboarding_progress(user.id)
    assert [p.step.id for p in progress] == [s.id for s in steps]
    assert {p.status for p in progress} == {"not_started"}
    assert storage.percent_complete(user.id) == 0

    bal = storage.get_time_off_balance(user.id)
    assert (bal.vacation_total, bal.sick_total, bal.personal_total) == (20, 10, 5)

    body = acct.to_dict()
    assert "password" not in body
    assert body["generatedCredentials"] == {
        "username": "priya.patel",
        "email": "priya.patel@wugweb.design",
        "defaultPassword": cfg.DEFAULT_EMPLOYEE_PASSWORD,
    }


def test_provisioning_requires_names(storage, cfg):
    with pytest.raises(ApiError) as e:
        provision_employee(storage, cfg, {"first_name": "Solo"})
    assert e.value.code == "BAD_REQUEST"
    assert storage.list_users() == []


def test_login_checks_hash_and_stamps_last_login(storage, make_user):
    u = make_user(email="emily@example.com", password=hash_password(STRONG))

    assert verify_login(storage, "emily@example.com", "wrong-password") is None
    assert verify_login(storage, "nobody@example.com", STRONG) is None

    logged_in = verify_login(storage, "Emily@Example.com ", STRONG)
    assert logged_in.id == u.id
    assert logged_in.last_login > u.last_login


def test_plaintext_password_never_verifies(storage, make_user):
    make_user(email="legacy@example.com", password=STRONG)
    assert verify_login(storage, "legacy@example.com", STRONG) is None


def test_register_checks_uniqueness_and_policy(storage, make_steps):
    make_steps(orders=(1, 2))
    fields = {"username": "alice", "email": "alice@example.com", "password": STRONG, "first_name": "Alice", "last_name": "A"}
    user = register_employee(storage, fields)
    assert len(storage.list_onboarding_progress(user.id)) == 2

    with pytest.raises(ApiError) as e:
        register_employee(storage, {**fields, "email": "other@example.com"})
    assert e.value.code == "CONFLICT"

    with pytest.raises(ApiError) as e:
        register_employee(storage, {**fields, "username": "other"})
    assert e.value.message == "Email already exists"

    with pytest.raises(ApiError) as e:
        register_employee(storage, {**fields, "username": "bob", "email": "bob@example.com", "password": "short"})
    assert e.value.code == "BAD_REQUEST"

    # Self-registration can never grant admin.
    carol = register_employee(storage, {**fields, "username": "carol", "email": "carol@example.com", "role": "admin"})
    assert carol.role == "employee"


def test_profile_update_ignores_locked_fields(storage, make_user):
    u = make_user(password="hash")
    updated = update_profile(storage, u.id, {"city": "Noida", "role": "admin", "password": "x", "username": "root"})

    assert updated.city == "Noida"
    assert updated.role == "employee"
    assert updated.password == "hash"
    assert updated.username == u.username

    with pytest.raises(ApiError) as e:
        update_profile(storage, 999, {"city": "Pune"})
    assert e.value.code == "NOT_FOUND"


def test_profile_email_cannot_take_another_login(storage, make_user):
    victim = make_user(email="victim@example.com")
    other = make_user(email="other@example.com")

    with pytest.raises(ApiError) as e:
        update_profile(storage, other.id, {"email": " Victim@Example.com "})
    assert e.value.code == "CONFLICT"
    assert [u.id for u in storage.list_users() if u.email == "victim@example.com"] == [victim.id]

    # Re-saving your own address is fine.
    assert update_profile(storage, victim.id, {"email": "victim@example.com"}).email == "victim@example.com"


def test_profile_email_is_lowercased_for_login(storage, make_user):
    u = make_user(password=hash_password(STRONG))
    updated = update_profile(storage, u.id, {"email": "Bob.New@Example.com"})

    assert updated.email == "bob.new@example.com"
    assert verify_login(storage, "Bob.New@Example.com", STRONG).id == u.id


def test_change_password(storage, make_user):
    u = make_user(password=hash_password(STRONG))

    with pytest.raises(ApiError) as e:
        change_password(storage, u.id, "not-it", "An0ther$ecretPass")
    assert e.value.code == "AUTH_INVALID"

    change_password(storage, u.id, STRONG, "An0ther$ecretPass")
    assert verify_password("An0ther$ecretPass", storage.get_user(u.id).password)


def test_only_admins_change_roles(storage, make_user):
    admin = make_user(role="admin")
    staff = make_user()

    with pytest.raises(ApiError) as e:
        set_role(storage, actor_id=staff.id, user_id=staff.id, role="admin")
    assert e.value.code == "FORBIDDEN"

    assert set_role(storage, actor_id=admin.id, user_id=staff.id, role="admin").role == "admin"
