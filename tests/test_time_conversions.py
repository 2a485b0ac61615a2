import pytest

from donotcare.utils.time_conversions import (
    convert_to_seconds,
    format_countdown,
    format_elapsed,
    format_seconds_to_hms,
)


def test_convert_to_seconds():
    assert convert_to_seconds(minutes=40) == 2400
    assert convert_to_seconds(hours=1, minutes=2, seconds=5) == 3725
    with pytest.raises(ValueError):
        convert_to_seconds(seconds=-1)


@pytest.mark.parametrize("seconds, expected", [
    (0, "00:00"),
    (59.9, "00:59"),
    (3599, "59:59"),
    (3600, "01:00:00"),
    (-5, "00:00"),
])
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected


def test_format_countdown_keeps_minutes():
    assert format_countdown(2400) == "40:00"
    assert format_countdown(4000) == "66:40"
    assert format_countdown(0) == "00:00"


def test_format_seconds_to_hms():
    assert format_seconds_to_hms(3725) == "01:02:05"
    assert format_seconds_to_hms(-1) == "-Invalid Time-"
