# app/domain/services/medication_schedule.py
"""Dose schedule parsing and "which medication is due" selection."""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional, Sequence

from app.domain.models.health import MedicationInfo

_TIME_RE = re.compile(r"^([01]?\d|2[0-3])[:.]([0-5]\d)$")

# frequency code -> (label key, doses per day); doses None means "as needed"
FREQUENCIES = {
    "1": ("once_daily", 1),
    "2": ("twice_daily", 2),
    "3": ("thrice_daily", 3),
    "4": ("as_needed", None),
}

MINUTES_PER_DAY = 24 * 60


def parse_times(text: str) -> Optional[List[str]]:
    """Parse ``"8:00, 20.30"`` into ``["08:00", "20:30"]``; None if any part is invalid."""
    parts = [p.strip() for p in re.split(r"[,\s]+", text.strip()) if p.strip()]
    if not parts:
        return None

    times: List[str] = []
    for part in parts:
        match = _TIME_RE.match(part)
        if not match:
            return None
        times.append(f"{int(match.group(1)):02d}:{match.group(2)}")
    return sorted(set(times)) if len(set(times)) == len(times) else None


def _minute_of_day(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def _distance(a: int, b: int) -> int:
    diff = abs(a - b) % MINUTES_PER_DAY
    return min(diff, MINUTES_PER_DAY - diff)


def pick_due_medication(
    medications: Sequence[MedicationInfo],
    now: datetime,
) -> tuple[Optional[MedicationInfo], Optional[str]]:
    """
    Return the active medication whose scheduled time is closest to ``now``
    (wrapping around midnight) and that time. Falls back to the first active
    medication with no time when nothing is scheduled.
    """
    active = [m for m in medications if m.active]
    if not active:
        return None, None

    current = now.hour * 60 + now.minute
    best: tuple[int, MedicationInfo, str] | None = None
    for med in active:
        for slot in med.schedule:
            if not _TIME_RE.match(slot):
                continue
            distance = _distance(_minute_of_day(slot), current)
            if best is None or distance < best[0]:
                best = (distance, med, slot)

    if best is None:
        return active[0], None
    return best[1], best[2]
