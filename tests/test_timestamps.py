import pytest

from chefstacks.app.services.timestamps import format_timestamp, normalize_timestamp, parse_timestamp


@pytest.mark.parametrize(
    "text,expected",
    [
        ("0:45", 45),
        ("02:10", 130),
        ("@12:30", 750),
        ("1:02:03", 3723),
        ("00:00:00", 0),
    ],
)
def test_parse_timestamp(text, expected):
    assert parse_timestamp(text) == expected


@pytest.mark.parametrize("text", ["", None, "abc", "1:75", "1:60:00", "12", "1:2", "1:02:03:04", "-1:00"])
def test_malformed_timestamp_yields_none(text):
    assert parse_timestamp(text) is None


def test_format_timestamp_is_zero_padded():
    assert format_timestamp(0) == "00:00:00"
    assert format_timestamp(3723) == "01:02:03"
    assert format_timestamp(-5) == "00:00:00"


def test_normalize_is_canonical():
    assert normalize_timestamp("2:05") == "00:02:05"
    assert normalize_timestamp("00:02:05") == "00:02:05"
    assert normalize_timestamp(normalize_timestamp("1:02:03")) == "01:02:03"
    assert normalize_timestamp("garbage") is None
