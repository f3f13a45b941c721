# app/domain/services/operational_flows.py
"""
Multi-step flows entered from the command dispatcher.

Medication:
  MEDICATION_ADD_START → MEDICATION_ADD_NAME → MEDICATION_ADD_DOSAGE
  → MEDICATION_ADD_FREQUENCY → MEDICATION_ADD_TIMES → MEDICATION_ADD_CONFIRM
Health reading:
  HEALTH_RECORD_TYPE → HEALTH_RECORD_VALUE
Settings:
  SETTINGS_LANGUAGE
Family access:
  FAMILY_MENU → FAMILY_ADD_PHONE → FAMILY_ADD_LABEL

Each step is ``(session, text) -> ReplyDirective``. Invalid input answers with
the step's error template and keeps both state and draft. Every flow leaves
to IDLE on completion or on ``cancel``. ``FAMILY_MENU`` is only an info
screen: anything but "1" returns None and is handled as a normal command.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Optional

from app.domain.i18n import label
from app.domain.models.conversation import (
    Effect,
    EffectKind,
    ReplyDirective,
    SessionPatch,
    reply,
)
from app.domain.models.session import (
    CaregiverDraft,
    ConversationState,
    HealthReadingDraft,
    MedicationDraft,
    Session,
)
from app.domain.services.medication_schedule import FREQUENCIES, parse_times
from app.domain.services.registration_flow import parse_language

S = ConversationState

CANCEL_WORDS = {"cancel", "stop", "रद्द"}

MAX_MEDICATION_NAME = 80
MAX_DOSAGE = 40
MAX_RELATIONSHIP_LABEL = 40

HEALTH_TYPES = {
    "1": "blood_pressure",
    "2": "blood_sugar",
    "3": "weight",
}

_BP_RE = re.compile(r"^(\d{2,3})\s*/\s*(\d{2,3})$")
_PHONE_RE = re.compile(r"^\+?\d{10,15}$")


def _medication_draft(session: Session) -> MedicationDraft:
    if isinstance(session.draft, MedicationDraft):
        return session.draft.model_copy(deep=True)
    return MedicationDraft()


def _health_draft(session: Session) -> HealthReadingDraft:
    if isinstance(session.draft, HealthReadingDraft):
        return session.draft.model_copy(deep=True)
    return HealthReadingDraft()


def cancel_flow() -> ReplyDirective:
    return ReplyDirective(
        template_id="CANCELLED",
        next_state=S.IDLE,
        session_patch=SessionPatch(draft=None),
    )


# ══════════════════════════════════════════════════════════════════
# Medication
# ══════════════════════════════════════════════════════════════════

def start_medication_flow() -> ReplyDirective:
    return ReplyDirective(
        template_id="MEDICATION_ADD_START",
        next_state=S.MEDICATION_ADD_START,
        session_patch=SessionPatch(draft=MedicationDraft()),
    )


def _on_medication_start(session: Session, text: str) -> ReplyDirective:
    choice = text.strip()
    if choice == "1":
        return reply("PRESCRIPTION_PHOTO_UNAVAILABLE", S.MEDICATION_ADD_NAME)
    if choice == "2":
        return reply("MEDICATION_ASK_NAME", S.MEDICATION_ADD_NAME)
    return reply("MEDICATION_ADD_START_ERROR", S.MEDICATION_ADD_START)


def _on_medication_name(session: Session, text: str) -> ReplyDirective:
    name = text.strip()
    if not name or len(name) > MAX_MEDICATION_NAME:
        return reply("MEDICATION_NAME_ERROR", S.MEDICATION_ADD_NAME)

    draft = _medication_draft(session)
    draft.name = name
    return ReplyDirective(
        template_id="MEDICATION_ASK_DOSAGE",
        next_state=S.MEDICATION_ADD_DOSAGE,
        params={"name": name},
        session_patch=SessionPatch(draft=draft),
    )


def _on_medication_dosage(session: Session, text: str) -> ReplyDirective:
    dosage = text.strip()
    if not dosage or len(dosage) > MAX_DOSAGE:
        return reply("MEDICATION_DOSAGE_ERROR", S.MEDICATION_ADD_DOSAGE)

    draft = _medication_draft(session)
    draft.dosage = dosage
    return ReplyDirective(
        template_id="MEDICATION_ASK_FREQUENCY",
        next_state=S.MEDICATION_ADD_FREQUENCY,
        session_patch=SessionPatch(draft=draft),
    )


def _confirm_directive(draft: MedicationDraft, lang_hint: Optional[str] = None) -> ReplyDirective:
    return ReplyDirective(
        template_id="MEDICATION_CONFIRM",
        next_state=S.MEDICATION_ADD_CONFIRM,
        params={
            "name": draft.name,
            "dosage": draft.dosage,
            "frequency": label(draft.frequency, lang_hint),
            "times": ", ".join(draft.times) if draft.times else "-",
        },
        session_patch=SessionPatch(draft=draft),
    )


def _on_medication_frequency(session: Session, text: str) -> ReplyDirective:
    choice = FREQUENCIES.get(text.strip())
    if choice is None:
        return reply("MEDICATION_FREQUENCY_ERROR", S.MEDICATION_ADD_FREQUENCY)

    frequency, doses = choice
    draft = _medication_draft(session)
    draft.frequency = frequency
    draft.doses_per_day = doses
    draft.times = []

    if doses is None:
        return _confirm_directive(draft, session.lang())

    return ReplyDirective(
        template_id="MEDICATION_ASK_TIMES",
        next_state=S.MEDICATION_ADD_TIMES,
        params={"count": doses},
        session_patch=SessionPatch(draft=draft),
    )


def _on_medication_times(session: Session, text: str) -> ReplyDirective:
    draft = _medication_draft(session)
    expected = draft.doses_per_day or 1
    times = parse_times(text)
    if times is None or len(times) != expected:
        return reply("MEDICATION_TIMES_ERROR", S.MEDICATION_ADD_TIMES, count=expected)

    draft.times = times
    return _confirm_directive(draft, session.lang())


def _on_medication_confirm(session: Session, text: str) -> ReplyDirective:
    choice = text.strip()
    if choice == "2":
        return cancel_flow()
    if choice != "1":
        return reply("MEDICATION_CONFIRM_ERROR", S.MEDICATION_ADD_CONFIRM)

    draft = _medication_draft(session)
    return ReplyDirective(
        template_id="MEDICATION_SAVED",
        next_state=S.IDLE,
        params={"name": draft.name},
        session_patch=SessionPatch(draft=None),
        effect=Effect(
            EffectKind.CREATE_MEDICATION,
            {
                "name": draft.name,
                "dosage": draft.dosage,
                "frequency": draft.frequency,
                "schedule": list(draft.times),
            },
        ),
    )


# ══════════════════════════════════════════════════════════════════
# Health readings
# ══════════════════════════════════════════════════════════════════

def start_health_flow() -> ReplyDirective:
    return ReplyDirective(
        template_id="HEALTH_RECORD_TYPE",
        next_state=S.HEALTH_RECORD_TYPE,
        session_patch=SessionPatch(draft=HealthReadingDraft()),
    )


def _on_health_type(session: Session, text: str) -> ReplyDirective:
    reading_type = HEALTH_TYPES.get(text.strip())
    if reading_type is None:
        return reply("HEALTH_RECORD_TYPE_ERROR", S.HEALTH_RECORD_TYPE)

    draft = _health_draft(session)
    draft.reading_type = reading_type
    return ReplyDirective(
        template_id=f"HEALTH_ASK_{reading_type.upper()}",
        next_state=S.HEALTH_RECORD_VALUE,
        session_patch=SessionPatch(draft=draft),
    )


def parse_reading(reading_type: str, text: str) -> Optional[dict]:
    """Validate a health reading; returns the effect payload or None."""
    value = text.strip().lower()

    if reading_type == "blood_pressure":
        match = _BP_RE.match(value)
        if not match:
            return None
        systolic, diastolic = int(match.group(1)), int(match.group(2))
        if not (60 <= systolic <= 250 and 30 <= diastolic <= 150 and systolic > diastolic):
            return None
        return {
            "reading_type": reading_type,
            "value": f"{systolic}/{diastolic}",
            "unit": "mmHg",
            "systolic": systolic,
            "diastolic": diastolic,
        }

    bounds = {"blood_sugar": (20, 600, "mg/dL"), "weight": (20, 300, "kg")}.get(reading_type)
    if bounds is None:
        return None
    number = re.sub(r"(mg/dl|kgs?|kilo)$", "", value).strip()
    try:
        amount = float(number)
    except ValueError:
        return None
    low, high, unit = bounds
    if not low <= amount <= high:
        return None
    return {
        "reading_type": reading_type,
        "value": f"{amount:g}",
        "unit": unit,
    }


def _on_health_value(session: Session, text: str) -> ReplyDirective:
    draft = _health_draft(session)
    if draft.reading_type is None:
        return start_health_flow()

    reading = parse_reading(draft.reading_type, text)
    if reading is None:
        return reply(f"HEALTH_{draft.reading_type.upper()}_ERROR", S.HEALTH_RECORD_VALUE)

    return ReplyDirective(
        template_id="HEALTH_SAVED",
        next_state=S.IDLE,
        params={
            "label": label(draft.reading_type, session.lang()),
            "value": f"{reading['value']} {reading['unit']}",
        },
        session_patch=SessionPatch(draft=None),
        effect=Effect(EffectKind.RECORD_HEALTH, reading),
    )


# ══════════════════════════════════════════════════════════════════
# Settings
# ══════════════════════════════════════════════════════════════════

def _on_settings_language(session: Session, text: str) -> ReplyDirective:
    language = parse_language(text)
    if language is None:
        return reply("LANGUAGE_SETTINGS", S.SETTINGS_LANGUAGE)

    return ReplyDirective(
        template_id="LANGUAGE_CHANGED",
        next_state=S.IDLE,
        session_patch=SessionPatch(language=language, draft=None),
        effect=Effect(EffectKind.UPDATE_LANGUAGE, {"language": language.value}),
    )


# ══════════════════════════════════════════════════════════════════
# Family access
# ══════════════════════════════════════════════════════════════════

def start_family_flow() -> ReplyDirective:
    return ReplyDirective(
        template_id="FAMILY_SETTINGS",
        next_state=S.FAMILY_MENU,
        session_patch=SessionPatch(draft=None),
    )


def parse_caregiver_phone(text: str) -> Optional[str]:
    """E.164-ish number; a bare 10-digit number is taken as Indian (+91)."""
    digits = re.sub(r"[\s\-()]", "", text or "")
    if not _PHONE_RE.match(digits):
        return None
    if digits.startswith("+"):
        return digits
    if len(digits) == 10:
        return f"+91{digits}"
    return f"+{digits}"


def _on_family_menu(session: Session, text: str) -> Optional[ReplyDirective]:
    if text.strip() != "1":
        return None
    return ReplyDirective(
        template_id="FAMILY_ASK_PHONE",
        next_state=S.FAMILY_ADD_PHONE,
        session_patch=SessionPatch(draft=CaregiverDraft()),
    )


def _on_family_phone(session: Session, text: str) -> ReplyDirective:
    phone = parse_caregiver_phone(text)
    if phone is None or phone == session.phone_number:
        return reply("FAMILY_PHONE_ERROR", S.FAMILY_ADD_PHONE)

    return ReplyDirective(
        template_id="FAMILY_ASK_LABEL",
        next_state=S.FAMILY_ADD_LABEL,
        session_patch=SessionPatch(draft=CaregiverDraft(caregiver_phone=phone)),
    )


def _on_family_label(session: Session, text: str) -> ReplyDirective:
    draft = session.draft if isinstance(session.draft, CaregiverDraft) else None
    if draft is None or not draft.caregiver_phone:
        return start_family_flow()

    relationship = text.strip()
    if not relationship or len(relationship) > MAX_RELATIONSHIP_LABEL or " " in relationship:
        return reply("FAMILY_LABEL_ERROR", S.FAMILY_ADD_LABEL)

    return ReplyDirective(
        template_id="FAMILY_LINKED",
        next_state=S.IDLE,
        params={"label": relationship},
        session_patch=SessionPatch(draft=None),
        effect=Effect(
            EffectKind.ADD_CAREGIVER,
            {"caregiver_phone": draft.caregiver_phone, "relationship_label": relationship},
        ),
    )


FLOW_HANDLERS: Dict[ConversationState, Callable[[Session, str], Optional[ReplyDirective]]] = {
    S.MEDICATION_ADD_START: _on_medication_start,
    S.MEDICATION_ADD_NAME: _on_medication_name,
    S.MEDICATION_ADD_DOSAGE: _on_medication_dosage,
    S.MEDICATION_ADD_FREQUENCY: _on_medication_frequency,
    S.MEDICATION_ADD_TIMES: _on_medication_times,
    S.MEDICATION_ADD_CONFIRM: _on_medication_confirm,
    S.HEALTH_RECORD_TYPE: _on_health_type,
    S.HEALTH_RECORD_VALUE: _on_health_value,
    S.SETTINGS_LANGUAGE: _on_settings_language,
    S.FAMILY_MENU: _on_family_menu,
    S.FAMILY_ADD_PHONE: _on_family_phone,
    S.FAMILY_ADD_LABEL: _on_family_label,
}
