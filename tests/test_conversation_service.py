# tests/test_conversation_service.py
"""End-to-end tests for the inbound event coordinator with fake collaborators."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.core.errors import InvalidSessionError
from app.domain.i18n import t
from app.domain.models.conversation import InboundEvent, MediaRef
from app.domain.models.session import ConversationState as S, Language

SENDER = "whatsapp:+919812345678"
PHONE = "+919812345678"


def _send(event_loop, service, text, sender=SENDER, **kwargs):
    event = InboundEvent(sender_id=sender, text=text, **kwargs)
    event_loop.run_until_complete(service.handle_inbound(event))


def _session(event_loop, store, phone=PHONE):
    return event_loop.run_until_complete(store.get_or_create(phone))


def _register(event_loop, service, name="Sunita"):
    for text in ("hi", "start", "1", "68", name, "none"):
        _send(event_loop, service, text)


# ── Registration ─────────────────────────────────────────


def test_first_message_starts_registration(event_loop, service, store, transport):
    _send(event_loop, service, "hi", display_name="Ramesh")

    session = _session(event_loop, store)
    assert session.current_state == S.REGISTRATION_START
    assert session.registration_in_progress is True
    assert transport.sent == [(PHONE, t("REGISTRATION_WELCOME", "en", name="Ramesh"))]


def test_whatsapp_prefix_is_stripped_from_sender(event_loop, service, store, transport):
    _send(event_loop, service, "hi")

    assert transport.sent[0][0] == PHONE
    assert event_loop.run_until_complete(store.count()) == 1


def test_hindi_choice_replies_in_hindi(event_loop, service, store, transport):
    for text in ("hi", "start", "2"):
        _send(event_loop, service, text)

    session = _session(event_loop, store)
    assert session.language == Language.HI
    assert session.current_state == S.REGISTRATION_AGE
    assert transport.last == t("AGE_QUESTION", "hi")


def test_invalid_age_keeps_state_and_replies_with_error(event_loop, service, store, transport):
    for text in ("hi", "start", "1", "banana"):
        _send(event_loop, service, text)

    assert _session(event_loop, store).current_state == S.REGISTRATION_AGE
    assert transport.last == t("AGE_ERROR", "en")


def test_registration_round_trip_creates_exactly_one_user(event_loop, service, store, domain_store, transport):
    _register(event_loop, service)

    assert len(domain_store.create_user_calls) == 1
    assert domain_store.create_user_calls[0]["phone_number"] == PHONE
    assert domain_store.create_user_calls[0]["age"] == 68

    session = _session(event_loop, store)
    assert session.current_state == S.IDLE
    assert session.registration_in_progress is False
    assert transport.last == t("REGISTRATION_COMPLETE", "en", name="Sunita") + "\n\n" + t("MAIN_MENU", "en")

    # Subsequent input goes to the dispatcher, never back into registration
    _send(event_loop, service, "hi")
    _send(event_loop, service, "help")
    assert len(domain_store.create_user_calls) == 1
    assert transport.last == t("HELP_MENU", "en")


def test_failed_user_creation_stays_on_conditions(event_loop, service, store, domain_store, transport):
    domain_store.fail.add("create_user")

    _register(event_loop, service)

    session = _session(event_loop, store)
    assert session.current_state == S.REGISTRATION_CONDITIONS
    assert session.registration_in_progress is True
    assert transport.last == t("GENERIC_ERROR", "en")


def test_expired_session_restarts_registration(event_loop, service, store, clock, transport):
    for text in ("hi", "start", "1"):
        _send(event_loop, service, text)
    clock.advance(minutes=31)

    _send(event_loop, service, "70")

    assert _session(event_loop, store).current_state == S.REGISTRATION_START
    assert transport.last == t("REGISTRATION_WELCOME_GUEST", "en")


def test_registered_user_with_fresh_session_goes_to_dispatcher(event_loop, service, store, domain_store, transport):
    domain_store.add_user(PHONE, language="hi")

    _send(event_loop, service, "help")

    session = _session(event_loop, store)
    assert session.current_state == S.IDLE
    assert session.language == Language.HI
    assert transport.last == t("HELP_MENU", "hi")


def test_user_lookup_failure_sends_generic_error(event_loop, service, store, domain_store, transport):
    domain_store.fail.add("find_user_by_phone")

    _send(event_loop, service, "hi")

    assert transport.last == t("GENERIC_ERROR", "en")
    assert _session(event_loop, store).current_state == S.START


def test_missing_sender_raises_invalid_session(event_loop, service):
    with pytest.raises(InvalidSessionError):
        _send(event_loop, service, "hi", sender="whatsapp:")


# ── Delivery failures ────────────────────────────────────


def test_transport_failure_restores_previous_state(event_loop, service, store, transport):
    _send(event_loop, service, "hi")
    transport.fail = True

    _send(event_loop, service, "start")

    assert _session(event_loop, store).current_state == S.REGISTRATION_START


def test_transport_failure_after_user_creation_keeps_new_state(event_loop, service, store, domain_store, transport):
    for text in ("hi", "start", "1", "68", "Sunita"):
        _send(event_loop, service, text)
    transport.fail = True

    _send(event_loop, service, "none")

    assert len(domain_store.create_user_calls) == 1
    assert _session(event_loop, store).current_state == S.IDLE


# ── Session store failures ───────────────────────────────


def test_unreachable_session_store_still_replies(event_loop, service, store, transport):
    store.get_or_create = AsyncMock(side_effect=ConnectionError("redis unreachable"))

    _send(event_loop, service, "hi")

    assert transport.sent == [(PHONE, t("GENERIC_ERROR", "en"))]


def test_session_save_failure_replies_generic_error(event_loop, service, store, domain_store, transport):
    domain_store.add_user(PHONE, language="hi")
    store.update = AsyncMock(side_effect=ConnectionError("redis unreachable"))

    _send(event_loop, service, "1")

    assert transport.sent == [(PHONE, t("GENERIC_ERROR", "hi"))]


def test_session_contract_violation_still_raises(event_loop, service, store):
    store.get_or_create = AsyncMock(side_effect=InvalidSessionError("no phone"))

    with pytest.raises(InvalidSessionError):
        _send(event_loop, service, "hi")


# ── Operational effects ──────────────────────────────────


def test_add_medication_flow_persists_medication(event_loop, service, domain_store, transport):
    user = domain_store.add_user(PHONE)

    for text in ("1", "2", "Metformin", "500mg", "1", "8:00", "1"):
        _send(event_loop, service, text)

    meds = domain_store.medications[user.id]
    assert [(m.name, m.dosage, m.schedule) for m in meds] == [("Metformin", "500mg", ["08:00"])]
    assert transport.last == t("MEDICATION_SAVED", "en", name="Metformin")


def test_medication_save_failure_keeps_confirm_step(event_loop, service, store, domain_store, transport):
    domain_store.add_user(PHONE)
    domain_store.fail.add("create_medication")

    for text in ("1", "2", "Metformin", "500mg", "4", "1"):
        _send(event_loop, service, text)

    session = _session(event_loop, store)
    assert session.current_state == S.MEDICATION_ADD_CONFIRM
    assert session.draft.name == "Metformin"
    assert transport.last == t("GENERIC_ERROR", "en")


def test_taken_marks_nearest_scheduled_medication(event_loop, service, domain_store, transport):
    # Clock is 03:00 UTC = 08:30 in Asia/Kolkata
    user = domain_store.add_user(PHONE)
    domain_store.add_medication(user, "Amlodipine", schedule=["21:00"])
    morning = domain_store.add_medication(user, "Metformin", schedule=["08:00"])

    _send(event_loop, service, "taken")

    assert domain_store.adherence == [(user.id, morning.id, "08:00")]
    assert transport.last == t("ADHERENCE_RECORDED", "en", name="Metformin")


def test_taken_without_medications(event_loop, service, domain_store, transport):
    domain_store.add_user(PHONE)

    _send(event_loop, service, "taken")

    assert domain_store.adherence == []
    assert transport.last == t("ADHERENCE_NONE", "en")


def test_schedule_lists_medications(event_loop, service, domain_store, transport):
    user = domain_store.add_user(PHONE)
    domain_store.add_medication(user, "Metformin", "500mg", schedule=["08:00", "20:00"])

    _send(event_loop, service, "schedule")

    assert "1. *Metformin* - 500mg (08:00, 20:00)" in transport.last


def test_weekly_report_fills_missing_readings(event_loop, service, domain_store, transport):
    domain_store.add_user(PHONE)

    _send(event_loop, service, "3")

    assert "130/85 mmHg" in transport.last
    assert "80%" in transport.last
    assert t("NOT_RECORDED", "en") in transport.last


def test_interactions_with_single_medication_skip_generator(event_loop, service, domain_store, generator, transport):
    user = domain_store.add_user(PHONE)
    domain_store.add_medication(user, "Metformin")
    generator.fail = True

    _send(event_loop, service, "interactions")

    assert transport.last == t("INTERACTIONS_NOT_NEEDED", "en")


def test_generator_timeout_sends_fallback(event_loop, service, store, domain_store, generator, transport):
    user = domain_store.add_user(PHONE)
    domain_store.add_medication(user, "Metformin")
    domain_store.add_medication(user, "Aspirin")
    generator.delay = 0.5

    _send(event_loop, service, "interactions")

    assert transport.last == t("INTERACTIONS_UNAVAILABLE", "en")
    assert _session(event_loop, store).current_state == S.IDLE


def test_recommendation_failure_sends_fallback_tips(event_loop, service, domain_store, generator, transport):
    domain_store.add_user(PHONE)
    generator.fail = True

    _send(event_loop, service, "tips")

    assert transport.last == t("RECOMMENDATIONS_FALLBACK", "en")


def test_language_change_replies_in_new_language(event_loop, service, store, domain_store, transport):
    user = domain_store.add_user(PHONE)

    _send(event_loop, service, "language")
    _send(event_loop, service, "2")

    assert domain_store.language_updates == [(user.id, "hi")]
    assert _session(event_loop, store).language == Language.HI
    assert transport.last == t("LANGUAGE_CHANGED", "hi")


def test_reset_clears_session(event_loop, service, store, domain_store, transport):
    domain_store.add_user(PHONE)
    _send(event_loop, service, "help")

    _send(event_loop, service, "reset")

    assert event_loop.run_until_complete(store.count()) == 0
    assert transport.last == t("SESSION_RESET", "en")


# ── Voice notes ──────────────────────────────────────────


def test_voice_note_is_transcribed_and_dispatched(event_loop, service, domain_store, generator, transport):
    domain_store.add_user(PHONE)
    generator.transcript = "help"

    _send(event_loop, service, "", media=[MediaRef(url="https://api.twilio.com/m/1", content_type="audio/ogg")])

    assert transport.last == t("HELP_MENU", "en")


def test_voice_note_transcription_failure(event_loop, service, store, domain_store, generator, transport):
    domain_store.add_user(PHONE)
    generator.fail = True

    _send(event_loop, service, "", media=[MediaRef(url="https://api.twilio.com/m/1", content_type="audio/ogg")])

    assert transport.last == t("TRANSCRIPTION_FAILED", "en")


# ── Caregiver proxy ──────────────────────────────────────


CAREGIVER = "+919800000001"


def test_proxy_taken_records_for_target_without_touching_sessions(event_loop, service, store, domain_store, transport):
    domain_store.add_user(CAREGIVER, name="Priya")
    mom = domain_store.add_user(PHONE, name="Kamla")
    med = domain_store.add_medication(mom, "Metformin", schedule=["08:00"])
    domain_store.link_caregiver(CAREGIVER, "Mom", mom)

    _send(event_loop, service, "for:Mom taken", sender=f"whatsapp:{CAREGIVER}")

    assert domain_store.adherence == [(mom.id, med.id, "08:00")]
    body = t("ADHERENCE_RECORDED", "en", name="Metformin")
    assert transport.sent[-1] == (CAREGIVER, t("PROXY_RESULT", "en", name="Kamla", body=body))
    assert _session(event_loop, store, CAREGIVER).current_state == S.IDLE
    # Target never got a session of their own
    assert event_loop.run_until_complete(store.count()) == 1


def test_proxy_unknown_target(event_loop, service, domain_store, transport):
    domain_store.add_user(CAREGIVER, name="Priya")

    _send(event_loop, service, "for:Dad schedule", sender=f"whatsapp:{CAREGIVER}")

    assert transport.last == t("PROXY_TARGET_NOT_FOUND", "en", target="Dad")


def test_proxy_flow_command_is_rejected(event_loop, service, domain_store, transport):
    domain_store.add_user(CAREGIVER, name="Priya")
    mom = domain_store.add_user(PHONE, name="Kamla")
    domain_store.link_caregiver(CAREGIVER, "Mom", mom)

    _send(event_loop, service, "for:Mom add medication", sender=f"whatsapp:{CAREGIVER}")

    assert transport.last == t("PROXY_FLOW_UNSUPPORTED", "en", target="Kamla")
    assert domain_store.medications == {}


# ── Ordering and notifications ───────────────────────────


def test_concurrent_events_for_one_number_are_serialized(event_loop, service, store, transport):
    async def burst():
        await asyncio.gather(
            service.handle_inbound(InboundEvent(sender_id=SENDER, text="hi")),
            service.handle_inbound(InboundEvent(sender_id=SENDER, text="start")),
            service.handle_inbound(InboundEvent(sender_id=SENDER, text="1")),
        )

    event_loop.run_until_complete(burst())

    assert _session(event_loop, store).current_state == S.REGISTRATION_AGE
    assert len(transport.sent) == 3


def test_send_template_renders_reminder(event_loop, service, transport):
    delivered = event_loop.run_until_complete(
        service.send_template(SENDER, "MEDICATION_REMINDER", "hi", name="Metformin", dosage="500mg", time="08:00")
    )

    assert delivered is True
    assert transport.sent == [
        (PHONE, t("MEDICATION_REMINDER", "hi", name="Metformin", dosage="500mg", time="08:00"))
    ]


def test_family_flow_links_caregiver_who_can_then_act_by_label(event_loop, service, store, domain_store, transport):
    mom = domain_store.add_user(PHONE, name="Kamla")
    domain_store.add_medication(mom, "Amlodipine", schedule=["21:00"])
    domain_store.add_user(CAREGIVER, name="Priya")

    for text in ("family", "1", CAREGIVER[3:], "Mom"):
        _send(event_loop, service, text)

    assert transport.last == t("FAMILY_LINKED", "en", label="Mom")
    assert _session(event_loop, store).current_state == S.IDLE

    _send(event_loop, service, "for:mom schedule", sender=f"whatsapp:{CAREGIVER}")

    assert transport.sent[-1][0] == CAREGIVER
    assert "Amlodipine" in transport.last


def test_family_link_failure_keeps_label_step(event_loop, service, store, domain_store, transport):
    domain_store.add_user(PHONE)
    domain_store.fail.add("add_caregiver")

    for text in ("family", "1", "+919900011122", "Papa"):
        _send(event_loop, service, text)

    session = _session(event_loop, store)
    assert session.current_state == S.FAMILY_ADD_LABEL
    assert session.draft.caregiver_phone == "+919900011122"
    assert transport.last == t("GENERIC_ERROR", "en")
