# tests/test_registration_flow.py
"""Tests for the registration state machine (pure transitions)."""

from app.domain.i18n import t
from app.domain.models.conversation import EffectKind
from app.domain.models.session import (
    ConversationState as S,
    Language,
    RegistrationDraft,
    Session,
)
from app.domain.services.registration_flow import (
    advance_registration,
    parse_age,
    parse_conditions,
)

PHONE = "+919812345678"


def _session(state, **kwargs) -> Session:
    return Session(phone_number=PHONE, current_state=state, **kwargs)


def _step(session, text, display_name=None):
    directive = advance_registration(session, text, display_name=display_name)
    directive.apply_to(session)
    return directive


# ── Individual steps ─────────────────────────────────────


def test_first_contact_starts_registration_and_greets_by_profile_name():
    session = _session(S.START)

    directive = _step(session, "hi", display_name="Ramesh")

    assert directive.template_id == "REGISTRATION_WELCOME"
    assert directive.params["name"] == "Ramesh"
    assert session.current_state == S.REGISTRATION_START
    assert session.registration_in_progress is True
    assert isinstance(session.draft, RegistrationDraft)


def test_first_contact_without_profile_name_uses_guest_welcome():
    session = _session(S.START)

    directive = _step(session, "hi")

    assert directive.template_id == "REGISTRATION_WELCOME_GUEST"
    assert directive.params == {}
    assert t(directive.template_id, "hi").startswith("नमस्ते!")


def test_registration_start_asks_for_language_whatever_the_text():
    session = _session(S.REGISTRATION_START, registration_in_progress=True)

    directive = _step(session, "ok")

    assert directive.template_id == "LANGUAGE_SELECTION"
    assert session.current_state == S.REGISTRATION_LANGUAGE


def test_language_choice_2_selects_hindi():
    session = _session(S.REGISTRATION_LANGUAGE, registration_in_progress=True)

    directive = _step(session, "2")

    assert directive.template_id == "AGE_QUESTION"
    assert session.language == Language.HI
    assert session.current_state == S.REGISTRATION_AGE


def test_invalid_language_keeps_state():
    session = _session(S.REGISTRATION_LANGUAGE, registration_in_progress=True)

    directive = _step(session, "banana")

    assert directive.template_id == "LANGUAGE_SELECTION_ERROR"
    assert session.current_state == S.REGISTRATION_LANGUAGE
    assert session.language is None


def test_invalid_age_keeps_state_and_draft():
    draft = RegistrationDraft(age=None, name=None)
    session = _session(S.REGISTRATION_AGE, registration_in_progress=True, language=Language.EN, draft=draft)

    for text in ("banana", "0", "150", "-5", ""):
        directive = _step(session, text)
        assert directive.template_id == "AGE_ERROR"
        assert session.current_state == S.REGISTRATION_AGE
        assert isinstance(session.draft, RegistrationDraft)


def test_valid_age_is_captured_and_name_question_offers_profile_name():
    session = _session(S.REGISTRATION_AGE, registration_in_progress=True, draft=RegistrationDraft())

    directive = _step(session, " 72 ", display_name="Ramesh")

    assert directive.template_id == "NAME_QUESTION_WITH_PROFILE"
    assert directive.params["display_name"] == "Ramesh"
    assert session.draft.age == 72
    assert session.current_state == S.REGISTRATION_NAME


def test_valid_age_without_profile_name_asks_plain_name_question():
    session = _session(S.REGISTRATION_AGE, registration_in_progress=True, draft=RegistrationDraft())

    directive = _step(session, "65")

    assert directive.template_id == "NAME_QUESTION"


def test_name_1_uses_profile_name():
    session = _session(S.REGISTRATION_NAME, registration_in_progress=True, draft=RegistrationDraft(age=70))

    _step(session, "1", display_name="Ramesh")

    assert session.draft.name == "Ramesh"
    assert session.draft.age == 70
    assert session.current_state == S.REGISTRATION_CONDITIONS


def test_invalid_name_keeps_state():
    session = _session(S.REGISTRATION_NAME, registration_in_progress=True, draft=RegistrationDraft(age=70))

    directive = _step(session, "1")  # no profile name available

    assert directive.template_id == "NAME_ERROR"
    assert session.current_state == S.REGISTRATION_NAME


def test_conditions_complete_registration_with_create_user_effect():
    session = _session(
        S.REGISTRATION_CONDITIONS,
        registration_in_progress=True,
        language=Language.HI,
        draft=RegistrationDraft(age=70, name="Ramesh"),
    )

    directive = _step(session, "Diabetes, BP")

    assert session.current_state == S.REGISTRATION_COMPLETE
    assert directive.completes_registration
    assert directive.effect.kind == EffectKind.CREATE_USER
    assert directive.effect.payload == {
        "phone_number": PHONE,
        "name": "Ramesh",
        "age": 70,
        "language": "hi",
        "conditions": ["Diabetes", "BP"],
    }
    assert directive.follow_up == ("MAIN_MENU",)


def test_unknown_state_answers_generic_error_without_moving():
    session = _session(S.IDLE)

    directive = _step(session, "hello")

    assert directive.template_id == "GENERIC_ERROR"
    assert session.current_state == S.IDLE


# ── Parsers ──────────────────────────────────────────────


def test_parse_age_bounds():
    assert parse_age("1") == 1
    assert parse_age("120") == 120
    assert parse_age("121") is None
    assert parse_age("seventy") is None


def test_parse_conditions_none_words():
    assert parse_conditions("none") == []
    assert parse_conditions("नहीं") == []
    assert parse_conditions(" sugar ,, knee pain ") == ["sugar", "knee pain"]


# ── Round trip ───────────────────────────────────────────


def test_full_registration_round_trip_emits_one_create_user():
    session = _session(S.START)
    effects = []

    for text in ("hi", "start", "1", "68", "Sunita", "none"):
        directive = _step(session, text)
        if directive.effect is not None:
            effects.append(directive.effect)

    assert session.current_state == S.REGISTRATION_COMPLETE
    assert [e.kind for e in effects] == [EffectKind.CREATE_USER]
    assert effects[0].payload["name"] == "Sunita"
    assert effects[0].payload["age"] == 68
    assert effects[0].payload["conditions"] == []
