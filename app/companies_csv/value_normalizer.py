"""
Value Normalizer

Per-cell cleaning for the Companies House import. Every function here is
total: any input string produces a cleaned string, never an exception.
"""

import math
import re
from typing import Any, Optional

from .schema_tables import (
    EMBEDDED_DATE_PARTS,
    LENIENT_DATE_SENTINELS,
    NON_DATE_SENTINELS,
    ColumnKind,
    column_kind,
    is_count_column,
    is_lenient_date_column,
)

_INTEGER_TEXT = re.compile(r"^[+-]?\d+(\.\d*)?$")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def format_uk_date(value: str) -> Optional[str]:
    """DD/MM/YYYY -> YYYY-MM-DD, or None when the value is not in that form."""
    parts = value.split("/")
    if len(parts) != 3:
        return None
    day, month, year = parts
    if len(day) != 2 or len(month) != 2 or len(year) != 4:
        return None
    if not (day.isdigit() and month.isdigit() and year.isdigit()):
        return None
    return f"{year}-{month}-{day}"


def _parse_integer(value: str) -> Optional[int]:
    if not _INTEGER_TEXT.match(value):
        return None
    return int(value.split(".")[0])


def _embedded_date_part(value: str, index: int) -> Optional[int]:
    parts = value.split("/")
    if len(parts) != 3:
        return None
    return _parse_integer(parts[index].strip())


def clean_date(value: str) -> str:
    if not value or value.upper() in NON_DATE_SENTINELS:
        return ""
    return format_uk_date(value) or value


def clean_lenient_date(value: str) -> str:
    if not value or value.upper() in LENIENT_DATE_SENTINELS:
        return ""
    return format_uk_date(value) or value


def clean_integer(value: str, column: str) -> str:
    number = _parse_integer(value)
    if number is None and column in EMBEDDED_DATE_PARTS:
        number = _embedded_date_part(value, EMBEDDED_DATE_PARTS[column])
    return "" if number is None else str(number)


def clean_count(value: str) -> str:
    # Source files occasionally carry counts as "3.0"
    number = _parse_integer(value)
    return "" if number is None else str(number)


def clean_value(value: Any, column: str) -> str:
    """Clean one raw cell destined for the given canonical column."""
    text = _as_text(value)
    kind = column_kind(column)

    if kind == ColumnKind.DATE:
        return clean_date(text)
    if kind == ColumnKind.INTEGER:
        return clean_integer(text, column)
    if is_lenient_date_column(column):
        return clean_lenient_date(text)
    if column in EMBEDDED_DATE_PARTS:
        return clean_integer(text, column)
    if is_count_column(column):
        return clean_count(text) if text else ""
    return text
