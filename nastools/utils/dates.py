"""
Date-only helpers. Air dates travel as 'YYYY-MM-DD' strings; providers
occasionally send unpadded months/days ('2024-1-5') which are normalized here.
"""
import re
from datetime import date
from typing import Optional

FLEXIBLE_DATE_ONLY_PATTERN = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')
CANONICAL_DATE_ONLY_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def today_date_only() -> str:
    return date.today().isoformat()


def parse_iso_like_date(value: Optional[str]) -> Optional[date]:
    """'2024-1-5' -> date(2024, 1, 5); None for anything that is not a real calendar date"""
    if not value:
        return None
    match = FLEXIBLE_DATE_ONLY_PATTERN.match(value.strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def normalize_date_only(value: Optional[str]) -> Optional[str]:
    parsed = parse_iso_like_date(value)
    return parsed.isoformat() if parsed else None


def parse_canonical_date_only(value: Optional[str]) -> Optional[date]:
    if not value or not CANONICAL_DATE_ONLY_PATTERN.match(value):
        return None
    return parse_iso_like_date(value)


def is_on_or_before_date_only(left: str, right: str) -> Optional[bool]:
    """True/False when both are canonical dates, None otherwise"""
    left_date = parse_canonical_date_only(left)
    right_date = parse_canonical_date_only(right)
    if left_date is None or right_date is None:
        return None
    return left_date <= right_date
