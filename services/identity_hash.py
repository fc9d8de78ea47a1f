from __future__ import annotations

import re
from typing import Any


_NON_DIGIT_RE = re.compile(r"\D+")
_AADHAAR_NAME_RE = re.compile(r"aadhaar|aadhar", re.IGNORECASE)

AADHAAR_LENGTH = 12


def normalize_aadhaar(value: Any) -> str:
    return _NON_DIGIT_RE.sub("", str(value or ""))


def aadhaar_last4(value: Any) -> str:
    digits = normalize_aadhaar(value)
    return digits[-4:] if len(digits) >= 4 else ""


def mask_aadhaar(value: Any) -> str:
    """``XXXX XXXX 1234`` for a 12-digit number, empty string otherwise."""
    digits = normalize_aadhaar(value)
    if len(digits) != AADHAAR_LENGTH:
        return ""
    return f"XXXX XXXX {digits[-4:]}"


def is_aadhaar_document(name: Any) -> bool:
    return bool(_AADHAAR_NAME_RE.search(str(name or "")))


def masked_filename(filename: str) -> str:
    # report.final.png -> report_masked.final.png
    name = str(filename or "")
    stem, dot, rest = name.partition(".")
    return f"{stem}_masked{dot}{rest}"
