from __future__ import annotations

import pytest

from passwords import hash_password, is_password_hash, policy_violations, validate_password_policy, verify_password
from utils import ApiError


def test_policy_lists_every_gap():
    assert policy_violations("Sup3r$ecretPass") == []
    assert policy_violations("short") == [
        "at least 12 characters",
        "an uppercase letter",
        "a number",
        "a special character",
    ]


def test_policy_error_carries_details():
    with pytest.raises(ApiError) as e:
        validate_password_policy("alllowercaseletters")
    assert e.value.http_status == 400
    assert "an uppercase letter" in e.value.details["policy"]

    with pytest.raises(ApiError) as e:
        validate_password_policy("")
    assert e.value.message == "Missing password"


def test_temporary_passwords_skip_policy():
    hashed = hash_password("WugWeb123@", enforce_policy=False)
    assert hashed.startswith("scrypt:")
    assert verify_password("WugWeb123@", hashed)
    with pytest.raises(ApiError):
        hash_password("WugWeb123@")
    with pytest.raises(ApiError):
        hash_password("", enforce_policy=False)


def test_verify_rejects_non_hashes():
    assert not is_password_hash("emily123")
    assert not verify_password("emily123", "emily123")
    assert not verify_password("x", "")
