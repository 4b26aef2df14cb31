"""Day-of-week and time-of-day restrictions carried by offers.

Days use 0 = Sunday ... 6 = Saturday, the convention stored in ``Offer.days_of_week``.
"""
from __future__ import annotations

import datetime as dt
from typing import Iterable

from .types import OfferSnapshot

DAY_LABELS = ["Dim", "Lun", "Mar", "Mer", "Jeu", "Ven", "Sam"]


def weekday_index(day: dt.date) -> int:
    return (day.weekday() + 1) % 7


def parse_hhmm(raw) -> dt.time | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, dt.time):
        return raw
    hours, _, rest = str(raw).partition(":")
    minutes = rest.split(":")[0] if rest else "0"
    return dt.time(int(hours), int(minutes or 0))


def _minutes(t: dt.time) -> int:
    return t.hour * 60 + t.minute


def valid_at(
    at: dt.datetime,
    *,
    days_of_week: Iterable[int] | None = None,
    time_start: dt.time | None = None,
    time_end: dt.time | None = None,
) -> bool:
    """True when ``at`` falls on an allowed day and inside the inclusive time window."""
    days = list(days_of_week or [])
    if days and weekday_index(at.date()) not in days:
        return False
    if time_start is not None and time_end is not None:
        m = _minutes(at.time())
        if m < _minutes(time_start) or m > _minutes(time_end):
            return False
    return True


def offer_valid_at(offer: OfferSnapshot, at: dt.datetime | None) -> bool:
    if at is None:
        return True
    return valid_at(at, days_of_week=offer.days_of_week, time_start=offer.time_start, time_end=offer.time_end)


def in_date_window(offer: OfferSnapshot, at: dt.datetime) -> bool:
    if offer.start_date is not None and at < offer.start_date:
        return False
    if offer.end_date is not None and at > offer.end_date:
        return False
    return True


def format_time(t: dt.time) -> str:
    return f"{t.hour:02d}h{t.minute:02d}"


def format_restrictions(
    time_start: dt.time | None,
    time_end: dt.time | None,
    days_of_week: Iterable[int] | None,
) -> str | None:
    """Short French label for a restriction, e.g. ``"Lun-Ven · 11h30 - 14h00"``."""
    parts: list[str] = []
    days = sorted(set(days_of_week or []))
    if days and len(days) < 7:
        consecutive = len(days) > 1 and all(d == days[i - 1] + 1 for i, d in enumerate(days) if i)
        if consecutive and len(days) >= 3:
            parts.append(f"{DAY_LABELS[days[0]]}-{DAY_LABELS[days[-1]]}")
        else:
            parts.append(", ".join(DAY_LABELS[d] for d in days))
    if time_start is not None and time_end is not None:
        parts.append(f"{format_time(time_start)} - {format_time(time_end)}")
    return " · ".join(parts) if parts else None
