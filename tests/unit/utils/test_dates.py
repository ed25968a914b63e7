from datetime import date, datetime

import pytest

from medidoc.utils.dates import format_au_date


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-05", "5 March 2024"),
        ("2024-12-25T09:30:00Z", "25 December 2024"),
        ("2024-01-01T23:00:00+10:00", "1 January 2024"),
        (date(2023, 7, 10), "10 July 2023"),
        (datetime(2023, 7, 10, 8, 0), "10 July 2023"),
    ],
)
def test_format_au_date(value, expected):
    assert format_au_date(value) == expected


@pytest.mark.parametrize("value", [None, "", "   "])
def test_empty_value_uses_today(value):
    assert format_au_date(value, today=date(2024, 2, 29)) == "29 February 2024"


def test_unparseable_value_is_returned_unchanged():
    assert format_au_date("next Tuesday") == "next Tuesday"
