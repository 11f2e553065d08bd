"""
services/time_window.py

Jurisdiction offsets and trial-start arithmetic.

Scheduled dates and times are stored as the jurisdiction's local wall clock
(whatever the attorney picked on the scheduling form). To compare against
them, "now" is moved into that local frame by adding the jurisdiction's fixed
UTC offset; both sides are then naive timestamps.

    local_now          = now_utc + offset
    minutes_until_trial = scheduled_start - local_now   (whole minutes)

Offsets are fixed standard-time values. There is no daylight-saving
adjustment.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

logger = logging.getLogger(__name__)

EASTERN = -300
CENTRAL = -360
MOUNTAIN = -420
PACIFIC = -480
ALASKA = -540
HAWAII = -600
INDIA = 330

_REGIONS: dict[int, tuple[str, ...]] = {
    EASTERN: (
        "Connecticut", "Delaware", "Florida", "Georgia", "Maine", "Maryland",
        "Massachusetts", "Michigan", "New Hampshire", "New Jersey", "New York",
        "North Carolina", "Ohio", "Pennsylvania", "Rhode Island", "South Carolina",
        "Vermont", "Virginia", "West Virginia",
    ),
    CENTRAL: (
        "Alabama", "Arkansas", "Illinois", "Iowa", "Kansas", "Kentucky",
        "Louisiana", "Minnesota", "Mississippi", "Missouri", "Nebraska",
        "North Dakota", "Oklahoma", "South Dakota", "Tennessee", "Texas",
        "Wisconsin",
    ),
    MOUNTAIN: ("Arizona", "Colorado", "Idaho", "Montana", "New Mexico", "Utah", "Wyoming"),
    PACIFIC: ("California", "Nevada", "Oregon", "Washington"),
    ALASKA: ("Alaska",),
    HAWAII: ("Hawaii",),
    INDIA: ("India",),
}

# label -> UTC offset in minutes
JURISDICTION_OFFSETS: dict[str, int] = {
    label: offset for offset, labels in _REGIONS.items() for label in labels
}

_LOOKUP: dict[str, int] = {label.lower(): offset for label, offset in JURISDICTION_OFFSETS.items()}

# Widest |offset| in the table, used to bound date-range prefilters
MAX_OFFSET_MINUTES = max(abs(v) for v in JURISDICTION_OFFSETS.values())


def resolve_offset_minutes(label: str | None) -> int:
    """
    UTC offset in minutes for a jurisdiction label.
    Unknown or empty labels resolve to 0; this never raises.
    """
    key = (label or "").strip().lower()
    offset = _LOOKUP.get(key)
    if offset is None:
        if key:
            logger.debug("Unrecognized jurisdiction %r, using UTC offset 0", label)
        return 0
    return offset


def as_naive_utc(now_utc: datetime | None = None) -> datetime:
    """Naive UTC timestamp; aware values are converted, None means now."""
    if now_utc is None:
        return datetime.utcnow()
    if now_utc.tzinfo is not None:
        return now_utc.astimezone(timezone.utc).replace(tzinfo=None)
    return now_utc


def local_now(label: str | None, now_utc: datetime) -> datetime:
    """Jurisdiction-local wall clock for the given instant (naive)."""
    return as_naive_utc(now_utc) + timedelta(minutes=resolve_offset_minutes(label))


def scheduled_start(scheduled_date: date, scheduled_time: time) -> datetime:
    return datetime.combine(scheduled_date, scheduled_time)


def minutes_until_trial(
    scheduled_date: date,
    scheduled_time: time,
    label: str | None,
    now_utc: datetime,
) -> int:
    """
    Signed whole minutes from local now until the scheduled start.
    Positive: future, 0: starting now, negative: already started.
    Partial minutes are truncated toward zero.
    """
    delta = scheduled_start(scheduled_date, scheduled_time) - local_now(label, now_utc)
    return int(delta.total_seconds() / 60)


def calendar_days_until(scheduled_date: date, today: date) -> int:
    """Signed calendar-day difference (scheduled - today)."""
    return (scheduled_date - today).days


def within_window(minutes: int, lower: int, upper: int) -> bool:
    return lower <= minutes <= upper


def candidate_date_range(now_utc: datetime) -> tuple[date, date]:
    """
    Scheduled-date bounds wide enough to contain every case whose local
    start could fall near now, for any offset in the table.
    """
    base = as_naive_utc(now_utc)
    spread = timedelta(minutes=MAX_OFFSET_MINUTES) + timedelta(days=1)
    return (base - spread).date(), (base + spread).date()
