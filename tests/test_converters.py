# tests/test_converters.py
import pytest

from hostel_portal.converters import (
    apology_type_label,
    normalize_status,
    parse_complaint_status,
    priority_label,
    status_counts,
    status_label,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("pending", "open"),
        ("Pending", "open"),
        ("in-review", "inprogress"),
        ("in_progress", "inprogress"),
        ("InProgress", "inprogress"),
        ("resolved", "resolved"),
        ("accepted", "accepted"),
        ("", "open"),
        (None, "open"),
        ("archived", "open"),
    ],
)
def test_normalize_status(raw, expected):
    assert normalize_status(raw) == expected


def test_status_labels():
    assert status_label("in-progress") == "In Progress"
    assert status_label("pending") == "Open"
    assert status_label("submitted") == "Submitted"
    assert status_label("weird") == "Open"


def test_parse_complaint_status_is_strict():
    assert parse_complaint_status("in-progress") == "inprogress"
    assert parse_complaint_status("pending") == "open"
    assert parse_complaint_status("accepted") is None
    assert parse_complaint_status("bogus") is None
    assert parse_complaint_status("") is None


def test_priority_label():
    assert priority_label("high") == "High Priority"
    assert priority_label("MEDIUM") == "Medium"
    assert priority_label("low") == "Low"
    assert priority_label("urgent") is None
    assert priority_label(None) is None


def test_apology_type_label():
    assert apology_type_label("outing") == "Outing"
    assert apology_type_label("") is None


def test_status_counts_normalises():
    assert status_counts(["open", "pending", "in-progress", "resolved", "accepted"]) == {
        "open": 2,
        "inprogress": 1,
        "resolved": 1,
    }
