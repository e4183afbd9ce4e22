"""School-day helpers. Every calendar date the ledger stores is a day in SCHOOL_TIMEZONE."""
from datetime import date, datetime
from typing import Union
from zoneinfo import ZoneInfo

from school_ledger.core.config import settings
from school_ledger.core.exceptions import ValidationError


def school_timezone() -> ZoneInfo:
    return ZoneInfo(settings.SCHOOL_TIMEZONE)


def school_today() -> date:
    """Today's date in the school's timezone"""
    return datetime.now(school_timezone()).date()


def to_school_date(value: Union[date, datetime, str]) -> date:
    """
    Collapse a date or timestamp to the school day it falls on.

    Aware timestamps are converted to the school timezone first; naive
    timestamps are taken as school-local wall time. Any instant between
    00:00:00.000 and 23:59:59.999 of a day maps to that day.
    """
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}", field="date")

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(school_timezone())
        return value.date()

    if isinstance(value, date):
        return value

    raise ValidationError(f"Invalid date: {value!r}", field="date")
