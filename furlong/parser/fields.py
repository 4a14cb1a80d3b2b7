"""Field access and primitive coercion for positional DRF lines.

All helpers are total: out-of-range indices, blanks and junk fall back to the
caller's default instead of raising.
"""

import csv
import math
from typing import Optional, Sequence


def split_csv_line(line: str) -> list[str]:
    """Split one comma-delimited line, honouring quotes and doubled-quote escapes."""
    try:
        return next(csv.reader([line], skipinitialspace=False))
    except (csv.Error, StopIteration):
        # Unbalanced quoting: fall back to a plain split rather than losing the line
        return [part.strip('"') for part in line.split(",")]


def split_fixed_width(line: str) -> list[str]:
    return line.split()


def get_field(fields: Sequence[str], index: int, default: str = "") -> str:
    """Stripped field at ``index``, or ``default`` when missing or blank."""
    if index < 0 or index >= len(fields):
        return default
    value = fields[index]
    if value is None:
        return default
    value = str(value).strip()
    return value if value else default


def _to_float(value) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    if not math.isfinite(num):
        return None
    return num


def parse_int(value, default: int = 0) -> int:
    num = _to_float(value)
    return int(num) if num is not None else default


def parse_float(value, default: float = 0.0) -> float:
    num = _to_float(value)
    return num if num is not None else default


def parse_optional_int(value) -> Optional[int]:
    num = _to_float(value)
    return int(num) if num is not None else None


def parse_optional_float(value) -> Optional[float]:
    return _to_float(value)


def get_int(fields: Sequence[str], index: int, default: int = 0) -> int:
    return parse_int(get_field(fields, index), default)


def get_float(fields: Sequence[str], index: int, default: float = 0.0) -> float:
    return parse_float(get_field(fields, index), default)


def get_optional_int(fields: Sequence[str], index: int) -> Optional[int]:
    return parse_optional_int(get_field(fields, index))


def get_optional_float(fields: Sequence[str], index: int) -> Optional[float]:
    return parse_optional_float(get_field(fields, index))


def get_bool(fields: Sequence[str], index: int) -> bool:
    """DRF flags are Y/N, 1/0 or T/F; anything else is False."""
    return get_field(fields, index).upper() in ("Y", "1", "T", "TRUE", "YES")
