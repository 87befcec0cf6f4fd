"""
Shared helpers for the training traceability app.
"""
from typing import Optional
import datetime as _dt


def safe_parse_date(value, fmt: str = '%Y-%m-%d') -> Optional[_dt.date]:
    """Parse date-like values to a date object or return None for invalid/empty inputs."""
    if value is None:
        return None
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    v = str(value).strip()
    if v == '':
        return None
    try:
        return _dt.datetime.strptime(v, fmt).date()
    except ValueError:
        return None


def format_long_date(value) -> str:
    """Render a date as e.g. 'March 5, 2025'."""
    d = safe_parse_date(value)
    if d is None:
        return ''
    return f'{d:%B} {d.day}, {d.year}'


def pass_rate(passed: int, total: int) -> int:
    """Whole-number percentage of passed trainees, 0 when there are none."""
    if not total:
        return 0
    return round(passed / total * 100)
