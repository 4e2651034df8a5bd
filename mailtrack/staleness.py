"""Staleness classification of contacts.

A contact's staleness bucket is derived from the days elapsed since the
last mail sent to it, relative to a user-chosen threshold ``T``:

* ``days >= T`` is critical
* ``0.6 * T <= days < T`` is warning
* ``0.3 * T <= days < 0.6 * T`` is caution
* ``days < 0.3 * T`` is fresh

A missing or unparsable timestamp is unknown.
"""

import enum
from datetime import datetime, timezone
from typing import Any, Optional, Union

DEFAULT_THRESHOLD_DAYS = 30
MIN_THRESHOLD_DAYS = 7
MAX_THRESHOLD_DAYS = 120

SECONDS_PER_DAY = 86400


class Staleness(str, enum.Enum):
    UNKNOWN = "unknown"
    FRESH = "fresh"
    CAUTION = "caution"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        """Ordinal used for sorting; unknown ranks below fresh."""
        return _SEVERITY[self]

    @property
    def color(self) -> str:
        return _COLORS[self]


_SEVERITY = {
    Staleness.UNKNOWN: -1,
    Staleness.FRESH: 0,
    Staleness.CAUTION: 1,
    Staleness.WARNING: 2,
    Staleness.CRITICAL: 3,
}

_COLORS = {
    Staleness.UNKNOWN: "gray",
    Staleness.FRESH: "green",
    Staleness.CAUTION: "yellow",
    Staleness.WARNING: "orange",
    Staleness.CRITICAL: "red",
}


def clamp_threshold(days: int) -> int:
    """Limit a user supplied threshold to the supported range."""
    return max(MIN_THRESHOLD_DAYS, min(MAX_THRESHOLD_DAYS, int(days)))


def parse_timestamp(value: Union[datetime, str, None]) -> Optional[datetime]:
    """
    Turn a datetime or ISO-8601 string into an aware UTC datetime.

    Returns ``None`` for missing or unparsable input. Naive values are
    taken to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def classify(
    timestamp: Union[datetime, str, None],
    threshold: float = DEFAULT_THRESHOLD_DAYS,
    now: Optional[datetime] = None,
) -> Staleness:
    """
    Bucket the time since ``timestamp`` against ``threshold`` days.

    Args:
        timestamp: When the last mail was sent, if ever.
        threshold: Days after which a contact is critical.
        now: Reference time, defaults to the current UTC time.

    Raises:
        ValueError: If ``threshold`` is not positive.

    Returns:
        Staleness: The bucket. Lower bounds are inclusive.
    """
    if threshold <= 0:
        raise ValueError("threshold must be positive")

    sent = parse_timestamp(timestamp)
    if sent is None:
        return Staleness.UNKNOWN

    reference = parse_timestamp(now) or datetime.now(timezone.utc)
    days = (reference - sent).total_seconds() / SECONDS_PER_DAY

    if days >= threshold:
        return Staleness.CRITICAL
    if days >= threshold * 0.6:
        return Staleness.WARNING
    if days >= threshold * 0.3:
        return Staleness.CAUTION
    return Staleness.FRESH


def last_sent_at(contact: Any) -> Optional[datetime]:
    """
    Return the most recent send time known for a contact.

    Takes the later of ``last_sent_at`` and the newest sent mail.
    """
    candidates = []
    explicit = parse_timestamp(getattr(contact, "last_sent_at", None))
    if explicit is not None:
        candidates.append(explicit)
    for mail in getattr(contact, "sent_mails", None) or []:
        sent = parse_timestamp(mail.sent_at)
        if sent is not None:
            candidates.append(sent)
    return max(candidates) if candidates else None
