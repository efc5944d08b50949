# tests/test_relative_time.py
import pytest

from hostel_portal.drafts import format_relative_time
from hostel_portal.drafts.timefmt import DAY_MS, HOUR_MS, MINUTE_MS


@pytest.mark.parametrize(
    "age_ms, expected",
    [
        (0, "just now"),
        (30_000, "just now"),
        (MINUTE_MS - 1, "just now"),
        (MINUTE_MS, "1 minute ago"),
        (120_000, "2 minutes ago"),
        (59 * MINUTE_MS + 59_999, "59 minutes ago"),
        (3_600_000, "1 hours ago"),
        (119 * MINUTE_MS, "1 hours ago"),
        (2 * HOUR_MS, "2 hours ago"),
        (DAY_MS, "1 days ago"),
        (172_800_000, "2 days ago"),
    ],
)
def test_legacy_rendering(age_ms, expected):
    assert format_relative_time(age_ms) == expected


@pytest.mark.parametrize(
    "age_ms, expected",
    [
        (MINUTE_MS, "1 minute ago"),
        (3_600_000, "1 hour ago"),
        (2 * HOUR_MS, "2 hours ago"),
        (DAY_MS, "1 day ago"),
        (3 * DAY_MS, "3 days ago"),
    ],
)
def test_strict_plurals(age_ms, expected):
    assert format_relative_time(age_ms, strict_plurals=True) == expected


def test_negative_age_is_just_now():
    # reloj del cliente adelantado respecto al registro
    assert format_relative_time(-5000) == "just now"
