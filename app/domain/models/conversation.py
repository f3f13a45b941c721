# app/domain/models/conversation.py
"""
Value types exchanged between the dialogue logic and the coordinator.

A ``ReplyDirective`` is pure data: what to say (template + params), where the
session goes next, how the session is patched, and which collaborator effect
(if any) the coordinator must run before replying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from app.domain.models.session import ConversationState, Language, Session


class EffectKind(str, Enum):
    CREATE_USER = "create_user"
    CREATE_MEDICATION = "create_medication"
    LIST_MEDICATIONS = "list_medications"
    RECORD_ADHERENCE = "record_adherence"
    RECORD_HEALTH = "record_health"
    WEEKLY_REPORT = "weekly_report"
    CHECK_INTERACTIONS = "check_interactions"
    RECOMMEND = "recommend"
    UPDATE_LANGUAGE = "update_language"
    ADD_CAREGIVER = "add_caregiver"
    RESET_SESSION = "reset_session"
    PROXY = "proxy"


@dataclass(frozen=True)
class Effect:
    kind: EffectKind
    payload: Dict[str, Any] = field(default_factory=dict)


class _Keep:
    def __repr__(self) -> str:
        return "KEEP"


# Marker for "leave the session draft as it is".
KEEP = _Keep()


@dataclass(frozen=True)
class SessionPatch:
    language: Optional[Language] = None
    registration_in_progress: Optional[bool] = None
    draft: Any = KEEP  # KEEP, None (clear) or a draft model

    def apply(self, session: Session) -> None:
        if self.language is not None:
            session.language = self.language
        if self.registration_in_progress is not None:
            session.registration_in_progress = self.registration_in_progress
        if self.draft is not KEEP:
            session.draft = self.draft


@dataclass(frozen=True)
class ReplyDirective:
    template_id: str
    next_state: ConversationState
    params: Dict[str, Any] = field(default_factory=dict)
    language_override: Optional[str] = None
    session_patch: SessionPatch = field(default_factory=SessionPatch)
    effect: Optional[Effect] = None
    # Extra templates rendered after the main one, in order.
    follow_up: Tuple[str, ...] = ()

    @property
    def completes_registration(self) -> bool:
        return self.effect is not None and self.effect.kind == EffectKind.CREATE_USER

    def apply_to(self, session: Session) -> None:
        session.current_state = self.next_state
        self.session_patch.apply(session)


@dataclass(frozen=True)
class MediaRef:
    url: str
    content_type: str = ""

    @property
    def is_audio(self) -> bool:
        return self.content_type.startswith("audio/")


@dataclass(frozen=True)
class InboundEvent:
    sender_id: str
    text: str = ""
    display_name: Optional[str] = None
    media: List[MediaRef] = field(default_factory=list)


def reply(
    template_id: str,
    next_state: ConversationState,
    **params: Any,
) -> ReplyDirective:
    """Shorthand for a directive that only says something and moves state."""
    return ReplyDirective(template_id=template_id, next_state=next_state, params=params)
