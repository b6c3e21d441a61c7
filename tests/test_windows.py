from datetime import datetime, timedelta, timezone

import pytest

from muniscore.exceptions import InvalidInputError
from muniscore.logic.windows import (
    TimeWindow,
    current_period,
    month_window,
    overlaps_window,
    parse_period,
    period_label,
    to_reference_time,
)


def test_month_window_covers_whole_month():
    window = month_window(2024, 2)
    assert window.start == datetime(2024, 2, 1)
    assert window.end == datetime(2024, 2, 29, 23, 59, 59, 999000)
    assert window.contains(datetime(2024, 2, 29, 23, 0))
    assert not window.contains(datetime(2024, 3, 1))


def test_month_window_december():
    window = month_window(2023, 12)
    assert window.end == datetime(2023, 12, 31, 23, 59, 59, 999000)


@pytest.mark.parametrize(
    "start, deadline, expected",
    [
        # starts inside
        (datetime(2024, 3, 10), datetime(2024, 4, 10), True),
        # ends inside
        (datetime(2024, 2, 10), datetime(2024, 3, 5), True),
        # spans the whole month
        (datetime(2024, 2, 1), datetime(2024, 4, 30), True),
        # fully inside
        (datetime(2024, 3, 2), datetime(2024, 3, 3), True),
        # ends exactly at month start
        (datetime(2024, 2, 1), datetime(2024, 3, 1), True),
        # entirely before
        (datetime(2024, 1, 1), datetime(2024, 2, 28), False),
        # entirely after
        (datetime(2024, 4, 1), datetime(2024, 4, 30), False),
    ],
)
def test_overlaps_window(start, deadline, expected):
    assert overlaps_window(start, deadline, month_window(2024, 3)) is expected


def test_window_rejects_inverted_range():
    with pytest.raises(InvalidInputError):
        TimeWindow(start=datetime(2024, 3, 2), end=datetime(2024, 3, 1))


@pytest.mark.parametrize("label, expected", [("2024-03", (2024, 3)), ("2024-3", (2024, 3)), (" 2000-12 ", (2000, 12))])
def test_parse_period_valid(label, expected):
    assert parse_period(label) == expected


@pytest.mark.parametrize("label", ["2024-13", "2024-00", "1999-05", "2101-01", "march", "", None, "2024/03"])
def test_parse_period_invalid(label):
    with pytest.raises(InvalidInputError):
        parse_period(label)


def test_period_label_is_zero_padded():
    assert period_label(2024, 3) == "2024-03"


def test_month_window_rejects_invalid_month():
    with pytest.raises(InvalidInputError):
        month_window(2024, 13)


def test_aware_datetimes_are_normalized_to_reference_calendar():
    aware = datetime(2024, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=-4)))
    # Default reference calendar is UTC
    assert to_reference_time(aware) == datetime(2024, 3, 1, 16, 0)
    naive = datetime(2024, 3, 1, 12, 0)
    assert to_reference_time(naive) is naive


def test_current_period_uses_given_moment():
    assert current_period(datetime(2024, 7, 31, 23, 59)) == (2024, 7)


def test_month_window_ends_at_last_millisecond():
    january = month_window(2024, 1)
    assert january.contains(datetime(2024, 1, 31, 23, 59, 59, 999000))
    assert not january.contains(datetime(2024, 1, 31, 23, 59, 59, 999500))
    # Starts after the window closes and ends in February
    assert not overlaps_window(datetime(2024, 1, 31, 23, 59, 59, 999500), datetime(2024, 2, 10), january)
