from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from mailtrack.staleness import (
    Staleness,
    clamp_threshold,
    classify,
    last_sent_at,
    parse_timestamp,
)

NOW = datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)


def days_ago(days):
    return NOW - timedelta(days=days)


@pytest.mark.parametrize(
    "days, expected",
    [
        (0, Staleness.FRESH),
        (8.9, Staleness.FRESH),
        (9, Staleness.CAUTION),
        (17.9, Staleness.CAUTION),
        (18, Staleness.WARNING),
        (27, Staleness.WARNING),
        (29.99, Staleness.WARNING),
        (30, Staleness.CRITICAL),
        (400, Staleness.CRITICAL),
    ],
)
def test_buckets_with_default_threshold(days, expected):
    assert classify(days_ago(days), now=NOW) == expected


def test_lower_bounds_are_inclusive_for_other_thresholds():
    assert classify(days_ago(6), 10, NOW) == Staleness.WARNING
    assert classify(days_ago(3), 10, NOW) == Staleness.CAUTION
    assert classify(days_ago(2.9), 10, NOW) == Staleness.FRESH
    assert classify(days_ago(7), 7, NOW) == Staleness.CRITICAL


@pytest.mark.parametrize("value", [None, "", "yesterday", "2024-13-45", 42])
def test_missing_or_unparsable_is_unknown(value):
    assert classify(value, 30, NOW) == Staleness.UNKNOWN


def test_accepts_iso_strings_and_naive_datetimes():
    assert classify("2025-01-01T12:00:00Z", 30, NOW) == Staleness.CRITICAL
    assert classify("2025-01-21T12:00:00+00:00", 30, NOW) == Staleness.CAUTION
    naive = days_ago(20).replace(tzinfo=None)
    assert classify(naive, 30, NOW) == Staleness.WARNING


def test_future_timestamps_are_fresh():
    assert classify(NOW + timedelta(days=3), 30, NOW) == Staleness.FRESH


def test_threshold_must_be_positive():
    with pytest.raises(ValueError):
        classify(NOW, 0, NOW)


def test_severity_and_color():
    ordered = sorted(Staleness, key=lambda s: s.severity)
    assert ordered == [
        Staleness.UNKNOWN,
        Staleness.FRESH,
        Staleness.CAUTION,
        Staleness.WARNING,
        Staleness.CRITICAL,
    ]
    assert Staleness.CRITICAL.color == "red"
    assert Staleness.UNKNOWN.color == "gray"


def test_clamp_threshold():
    assert clamp_threshold(1) == 7
    assert clamp_threshold(45) == 45
    assert clamp_threshold(500) == 120


def test_parse_timestamp_converts_to_utc():
    parsed = parse_timestamp("2025-01-01T02:00:00+02:00")
    assert parsed == datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)


def test_last_sent_at_prefers_newest():
    contact = SimpleNamespace(
        last_sent_at=days_ago(10),
        sent_mails=[SimpleNamespace(sent_at=days_ago(3)), SimpleNamespace(sent_at=days_ago(50))],
    )
    assert last_sent_at(contact) == days_ago(3)
    assert last_sent_at(SimpleNamespace(last_sent_at=None, sent_mails=[])) is None
