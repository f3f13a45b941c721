# app/domain/services/registration_flow.py
"""
Registration dialogue state machine.

    START → REGISTRATION_START → REGISTRATION_LANGUAGE → REGISTRATION_AGE
          → REGISTRATION_NAME → REGISTRATION_CONDITIONS → REGISTRATION_COMPLETE

``advance_registration`` is pure: it reads the session and the inbound text
and returns a ``ReplyDirective``. Invalid input keeps the current state and the
captured draft; only valid input advances. ``REGISTRATION_COMPLETE`` carries a
``CREATE_USER`` effect that the coordinator executes.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Optional

from app.domain.models.conversation import (
    Effect,
    EffectKind,
    ReplyDirective,
    SessionPatch,
    reply,
)
from app.domain.models.session import (
    ConversationState,
    Language,
    RegistrationDraft,
    Session,
)

logger = logging.getLogger("registration_flow")

S = ConversationState

MIN_AGE = 1
MAX_AGE = 120
MAX_NAME_LENGTH = 60

LANGUAGE_CHOICES: Dict[str, Language] = {
    "1": Language.EN,
    "english": Language.EN,
    "2": Language.HI,
    "hindi": Language.HI,
    "हिंदी": Language.HI,
}

NO_CONDITIONS = {"none", "no", "0", "nil", "nahi", "nahin", "नहीं", "कोई नहीं"}


def parse_language(text: str) -> Optional[Language]:
    return LANGUAGE_CHOICES.get(text.strip().lower())


def parse_age(text: str) -> Optional[int]:
    value = text.strip()
    if not re.fullmatch(r"\d{1,3}", value):
        return None
    age = int(value)
    return age if MIN_AGE <= age <= MAX_AGE else None


def parse_conditions(text: str) -> list[str]:
    value = text.strip()
    if value.lower() in NO_CONDITIONS:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _draft(session: Session) -> RegistrationDraft:
    if isinstance(session.draft, RegistrationDraft):
        return session.draft.model_copy(deep=True)
    return RegistrationDraft()


# ---------------------------------------------------------------------------
# Transition steps: (session, text, display_name) -> ReplyDirective
# ---------------------------------------------------------------------------

def _on_start(session: Session, text: str, display_name: Optional[str]) -> ReplyDirective:
    return ReplyDirective(
        template_id="REGISTRATION_WELCOME" if display_name else "REGISTRATION_WELCOME_GUEST",
        next_state=S.REGISTRATION_START,
        params={"name": display_name} if display_name else {},
        session_patch=SessionPatch(registration_in_progress=True, draft=RegistrationDraft()),
    )


def _on_registration_start(session: Session, text: str, display_name: Optional[str]) -> ReplyDirective:
    return reply("LANGUAGE_SELECTION", S.REGISTRATION_LANGUAGE)


def _on_language(session: Session, text: str, display_name: Optional[str]) -> ReplyDirective:
    language = parse_language(text)
    if language is None:
        return reply("LANGUAGE_SELECTION_ERROR", S.REGISTRATION_LANGUAGE)

    return ReplyDirective(
        template_id="AGE_QUESTION",
        next_state=S.REGISTRATION_AGE,
        session_patch=SessionPatch(language=language),
    )


def _on_age(session: Session, text: str, display_name: Optional[str]) -> ReplyDirective:
    age = parse_age(text)
    if age is None:
        return reply("AGE_ERROR", S.REGISTRATION_AGE)

    draft = _draft(session)
    draft.age = age
    return ReplyDirective(
        template_id="NAME_QUESTION_WITH_PROFILE" if display_name else "NAME_QUESTION",
        next_state=S.REGISTRATION_NAME,
        params={"display_name": display_name or ""},
        session_patch=SessionPatch(draft=draft),
    )


def _on_name(session: Session, text: str, display_name: Optional[str]) -> ReplyDirective:
    value = text.strip()
    if value == "1":
        value = (display_name or "").strip()
    if not value or len(value) > MAX_NAME_LENGTH or value.isdigit():
        return reply("NAME_ERROR", S.REGISTRATION_NAME)

    draft = _draft(session)
    draft.name = value
    return ReplyDirective(
        template_id="CONDITIONS_QUESTION",
        next_state=S.REGISTRATION_CONDITIONS,
        session_patch=SessionPatch(draft=draft),
    )


def _on_conditions(session: Session, text: str, display_name: Optional[str]) -> ReplyDirective:
    draft = _draft(session)
    draft.conditions = parse_conditions(text)

    fields = {
        "phone_number": session.phone_number,
        "name": draft.name or display_name,
        "age": draft.age,
        "language": session.lang(),
        "conditions": list(draft.conditions),
    }
    return ReplyDirective(
        template_id="REGISTRATION_COMPLETE",
        next_state=S.REGISTRATION_COMPLETE,
        params={"name": fields["name"] or ""},
        session_patch=SessionPatch(draft=draft),
        effect=Effect(EffectKind.CREATE_USER, fields),
        follow_up=("MAIN_MENU",),
    )


TRANSITIONS: Dict[ConversationState, Callable[[Session, str, Optional[str]], ReplyDirective]] = {
    S.START: _on_start,
    S.REGISTRATION_START: _on_registration_start,
    S.REGISTRATION_LANGUAGE: _on_language,
    S.REGISTRATION_AGE: _on_age,
    S.REGISTRATION_NAME: _on_name,
    S.REGISTRATION_CONDITIONS: _on_conditions,
}


def advance_registration(
    session: Session,
    text: str,
    *,
    display_name: Optional[str] = None,
) -> ReplyDirective:
    """Compute the next registration step for ``session`` given ``text``."""
    step = TRANSITIONS.get(session.current_state)
    if step is None:
        logger.warning("No registration transition from state %s", session.current_state.value)
        return reply("GENERIC_ERROR", session.current_state)

    return step(session, text or "", display_name)
