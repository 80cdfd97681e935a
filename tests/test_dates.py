from datetime import date

import pytest

from tailor_intake.utils.dates import InvalidDateError, is_before_today, parse_display_date, to_display_date, to_iso_date
from tailor_intake.utils.numbers import parse_number


def test_display_date_converts_to_iso():
    assert to_iso_date("05/03/2026") == "2026-03-05"
    assert to_iso_date("5/3/2026") == "2026-03-05"
    assert to_iso_date("2026-03-05") == "2026-03-05"


@pytest.mark.parametrize("value", ["", None, "32/01/2026", "29/02/2026", "2026/03/05", "tomorrow", "03-05-2026"])
def test_unparsable_dates_are_rejected(value):
    with pytest.raises(InvalidDateError):
        parse_display_date(value)


def test_store_dates_render_for_display():
    assert to_display_date("2026-12-25") == "25/12/2026"
    assert to_display_date("2026-12-25T00:00:00") == "25/12/2026"
    assert to_display_date(None) == ""
    assert to_display_date("garbage") == ""


def test_before_today_ignores_time_of_day():
    today = date(2026, 10, 19)
    assert not is_before_today(date(2026, 10, 19), today)
    assert is_before_today(date(2026, 10, 18), today)


@pytest.mark.parametrize("raw,expected", [
    ("100", 100.0),
    (" 1,250.50 ", 1250.5),
    (42, 42.0),
    ("", None),
    ("abc", None),
    ("nan", None),
    (None, None),
])
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected
