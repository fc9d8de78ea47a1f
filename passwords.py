from __future__ import annotations

import re

from werkzeug.security import check_password_hash, generate_password_hash

from utils import ApiError


MIN_LENGTH = 12
MAX_LENGTH = 256

# (pattern, what the password is missing when the pattern does not match)
_CHARACTER_RULES = (
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"\d"), "a number"),
    (re.compile(r"[^A-Za-z0-9]"), "a special character"),
)

# Werkzeug hash strings start with "<method>:"; anything else is not a stored hash.
_HASH_METHODS = ("scrypt:", "pbkdf2:")


def policy_violations(password: str) -> list[str]:
    pwd = str(password or "")
    problems = []
    if len(pwd) < MIN_LENGTH:
        problems.append(f"at least {MIN_LENGTH} characters")
    if len(pwd) > MAX_LENGTH:
        problems.append(f"at most {MAX_LENGTH} characters")
    problems.extend(label for rule, label in _CHARACTER_RULES if not rule.search(pwd))
    return problems


def validate_password_policy(password: str) -> str:
    pwd = str(password or "")
    if not pwd:
        raise ApiError("BAD_REQUEST", "Missing password")
    problems = policy_violations(pwd)
    if problems:
        raise ApiError("BAD_REQUEST", "Password needs " + ", ".join(problems), details={"policy": problems})
    return pwd


def hash_password(password: str, *, enforce_policy: bool = True) -> str:
    """Hash for storage. HR-issued temporary passwords skip the policy check."""
    pwd = validate_password_policy(password) if enforce_policy else str(password or "")
    if not pwd:
        raise ApiError("BAD_REQUEST", "Missing password")
    return generate_password_hash(pwd, method="scrypt", salt_length=16)


def is_password_hash(value: str) -> bool:
    return str(value or "").startswith(_HASH_METHODS)


def verify_password(password: str, password_hash: str) -> bool:
    # Seed rows or imports may carry plaintext; never compare those directly.
    if not is_password_hash(password_hash):
        return False
    try:
        return check_password_hash(password_hash, str(password or ""))
    except ValueError:
        return False
