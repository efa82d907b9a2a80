"""
Input normalization for inquiry form data.

Everything here is pure and forgiving: bad input becomes None (or an
empty string for names) instead of raising, so a partially valid lead
can still reach the CRM.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NON_DIGIT = re.compile(r"\D")
_FIRST_INT = re.compile(r"\d+")

DOMESTIC_TRUNK_DIGIT = "1"

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%a %b %d %Y",
)

# (upper bound exclusive, tag); the last band is open-ended
BUDGET_BANDS: list[tuple[Optional[int], str]] = [
    (3000, "budget:under-3k"),
    (5000, "budget:3k-5k"),
    (10000, "budget:5k-10k"),
    (20000, "budget:10k-20k"),
    (None, "budget:20k-plus"),
]


def normalize_email(email: Optional[str]) -> Optional[str]:
    if not email or not isinstance(email, str):
        return None
    normalized = email.strip().lower()
    if not _EMAIL_RE.match(normalized):
        return None
    return normalized


def normalize_phone(phone: Optional[str], default_country_code: str = "1") -> Optional[str]:
    """
    Best-effort E.164. Not telecom validation.

    "+" is kept as a signal that the number is already international:
      +<10..15 digits>            -> passed through
      11 digits starting with 1   -> already domestic-qualified
      10 digits                   -> default country code prepended
      other 10..15 digits         -> "+" prepended
      fewer than 10 / more than 15 -> None

    A "+" number with exactly 10 digits is not given the default country
    code; the "+" wins over the domestic 10-digit rule.
    """
    if phone is None:
        return None
    cleaned = str(phone).strip()
    if not cleaned:
        return None
    has_plus = cleaned.startswith("+")
    digits = _NON_DIGIT.sub("", cleaned)

    if len(digits) < 10 or len(digits) > 15:
        return None
    if has_plus:
        return f"+{digits}"
    if len(digits) == 11 and digits.startswith(DOMESTIC_TRUNK_DIGIT):
        return f"+{digits}"
    if len(digits) == 10:
        cc = _NON_DIGIT.sub("", default_country_code) or DOMESTIC_TRUNK_DIGIT
        return f"+{cc}{digits}"
    return f"+{digits}"


def normalize_date(value: Any) -> Optional[str]:
    """Coerce a date-ish value to YYYY-MM-DD, or None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return None
    txt = value.strip()
    if not txt:
        return None

    iso = txt[:-1] + "+00:00" if txt.endswith("Z") else txt
    try:
        return datetime.fromisoformat(iso).date().isoformat()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(txt, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def normalize_name(name: Optional[str]) -> str:
    if not name or not isinstance(name, str):
        return ""
    return name.strip()


def split_name(full_name: Optional[str]) -> tuple[str, str]:
    """'  Ana  María  López ' -> ('Ana', 'María López')"""
    parts = normalize_name(full_name).split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def extract_budget_amount(budget: Optional[str]) -> Optional[int]:
    """'$5,000 - $8,000' -> 5000 (lower bound)"""
    if not budget:
        return None
    match = _FIRST_INT.search(str(budget).replace(",", ""))
    if not match:
        return None
    return int(match.group(0))


def budget_bucket(budget: Optional[str]) -> Optional[str]:
    amount = extract_budget_amount(budget)
    if amount is None:
        return None
    for upper, tag in BUDGET_BANDS:
        if upper is None or amount < upper:
            return tag
    return None


def parse_guests(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    match = _FIRST_INT.search(str(value))
    if not match:
        return None
    guests = int(match.group(0))
    return guests if guests > 0 else None
