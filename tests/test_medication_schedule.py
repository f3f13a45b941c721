# tests/test_medication_schedule.py
"""Tests for dose time parsing and due-medication selection."""

from datetime import datetime

from app.domain.models.health import MedicationInfo
from app.domain.services.medication_schedule import parse_times, pick_due_medication


def _med(name, schedule, active=True):
    return MedicationInfo(id=name, user_id="u", name=name, dosage="1 tab", schedule=schedule, active=active)


def test_parse_times_normalizes_and_sorts():
    assert parse_times("20:00, 8:00") == ["08:00", "20:00"]
    assert parse_times("7.30 13:05") == ["07:30", "13:05"]


def test_parse_times_rejects_bad_input():
    assert parse_times("") is None
    assert parse_times("25:00") is None
    assert parse_times("8am") is None
    assert parse_times("08:00, 8:00") is None


def test_pick_due_prefers_nearest_slot():
    meds = [_med("Night", ["21:00"]), _med("Morning", ["08:00"])]

    med, slot = pick_due_medication(meds, datetime(2025, 1, 15, 8, 40))

    assert (med.name, slot) == ("Morning", "08:00")


def test_pick_due_wraps_around_midnight():
    meds = [_med("Late", ["23:30"]), _med("Noon", ["12:00"])]

    med, slot = pick_due_medication(meds, datetime(2025, 1, 15, 0, 15))

    assert med.name == "Late"


def test_pick_due_skips_inactive_and_falls_back_to_unscheduled():
    meds = [_med("Stopped", ["08:00"], active=False), _med("AsNeeded", [])]

    med, slot = pick_due_medication(meds, datetime(2025, 1, 15, 8, 0))

    assert med.name == "AsNeeded"
    assert slot is None


def test_pick_due_with_nothing_active():
    assert pick_due_medication([], datetime(2025, 1, 15, 8, 0)) == (None, None)
