import re
from datetime import date, datetime
from typing import Optional

# display form used by the order form, and the persisted form
DISPLAY_DATE_RE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")
ISO_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})\s*$")


class InvalidDateError(ValueError):
    pass


def parse_display_date(value: Optional[str]) -> date:
    """Parse DD/MM/YYYY (or an already-ISO YYYY-MM-DD) into a date."""
    if not value or not str(value).strip():
        raise InvalidDateError("date is empty")
    text = str(value)
    m = DISPLAY_DATE_RE.match(text)
    try:
        if m:
            day, month, year = (int(g) for g in m.groups())
            return date(year, month, day)
        m = ISO_DATE_RE.match(text)
        if m:
            year, month, day = (int(g) for g in m.groups())
            return date(year, month, day)
    except ValueError as e:
        raise InvalidDateError(f"invalid date: {value!r}") from e
    raise InvalidDateError(f"unrecognised date format: {value!r}")


def to_iso_date(value: Optional[str]) -> str:
    return parse_display_date(value).isoformat()


def to_display_date(value: Optional[str]) -> str:
    """ISO (or datetime-ish) string from the store back to DD/MM/YYYY; blank if unusable."""
    if not value:
        return ""
    try:
        parsed = parse_display_date(str(value)[:10])
    except InvalidDateError:
        try:
            parsed = datetime.fromisoformat(str(value)).date()
        except ValueError:
            return ""
    return parsed.strftime("%d/%m/%Y")


def is_before_today(value: date, today: date) -> bool:
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(today, datetime):
        today = today.date()
    return value < today
