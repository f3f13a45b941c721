# app/domain/services/conversation_service.py
"""
Inbound event coordinator.

Per inbound WhatsApp message:

1. normalize the sender and take the per-number lock
2. load (or create) the session and look up the registered user
3. align the session with the user record and keep a snapshot of it
4. turn a voice note into text when the message has no body
5. route to the registration machine or the command dispatcher
6. run the directive's effect against the domain store / content generator
7. persist the session, render the reply, hand it to the transport

Collaborator calls are bounded by timeouts. A failed or timed-out effect
leaves the session as it was before the event and answers with the effect's
fallback template. A failed delivery restores the snapshot too, unless the
event created a user record.
If the session store itself is unreachable the sender gets the generic error
reply and the event is still acknowledged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Sequence
from zoneinfo import ZoneInfo

from app.core.call_result import CallResult, call_with_timeout
from app.core.config import SUPPORTED_LANGUAGES, settings
from app.core.errors import InvalidSessionError
from app.core.keyed_lock import KeyedLock
from app.core.logging_config import mask_phone
from app.domain.i18n import label, t
from app.domain.models.conversation import (
    Effect,
    EffectKind,
    InboundEvent,
    ReplyDirective,
)
from app.domain.models.health import (
    InteractionReport,
    MedicationInfo,
    UserProfile,
    WeeklySummary,
)
from app.domain.models.session import (
    FLOW_STATES,
    REGISTRATION_STATES,
    ConversationState,
    Language,
    Session,
    utcnow,
)
from app.domain.services.command_dispatcher import dispatch
from app.domain.services.medication_schedule import pick_due_medication
from app.domain.services.registration_flow import advance_registration
from app.infrastructure.cache.session_cache import SessionStore
from app.infrastructure.external.twilio_client import normalize_phone

logger = logging.getLogger("conversation_service")

S = ConversationState

# Commands that only make sense in the caller's own conversation.
_NOT_PROXYABLE = {
    EffectKind.RESET_SESSION,
    EffectKind.UPDATE_LANGUAGE,
    EffectKind.ADD_CAREGIVER,
    EffectKind.PROXY,
}


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------

class DomainStore(Protocol):
    async def find_user_by_phone(self, phone_number: str) -> Optional[UserProfile]: ...
    async def create_user(self, phone_number: str, name: Optional[str], age: Optional[int],
                          language: str, conditions: list[str]) -> UserProfile: ...
    async def update_user_language(self, user_id: str, language: str) -> None: ...
    async def add_caregiver(self, user_id: str, caregiver_phone: str, caregiver_name: Optional[str] = None,
                            relationship_label: Optional[str] = None) -> None: ...
    async def find_cared_for_user(self, caregiver_phone: str, target: str) -> Optional[UserProfile]: ...
    async def list_medications(self, user_id: str) -> list[MedicationInfo]: ...
    async def create_medication(self, user_id: str, name: str, dosage: str,
                                frequency: Optional[str], schedule: list[str]) -> MedicationInfo: ...
    async def record_adherence(self, user_id: str, medication_id: str,
                               scheduled_time: Optional[str], recorded_at: datetime,
                               taken: bool = True) -> None: ...
    async def record_health_reading(self, user_id: str, reading_type: str, value: str,
                                    unit: str, recorded_at: datetime) -> Any: ...
    async def weekly_summary(self, user_id: str, now: datetime) -> WeeklySummary: ...


class ContentGenerator(Protocol):
    async def check_interactions(self, medications: Sequence[MedicationInfo], lang: str = "en") -> InteractionReport: ...
    async def recommend(self, user: UserProfile, medications: Sequence[MedicationInfo], lang: str = "en") -> str: ...
    async def transcribe(self, audio: bytes, content_type: str = "audio/ogg") -> str: ...


class MessageTransport(Protocol):
    async def send_message(self, to: str, body: str) -> str: ...
    async def fetch_media(self, media_url: str) -> bytes: ...


@dataclass
class EffectOutcome:
    ok: bool
    template_id: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    user: Optional[UserProfile] = None


class ConversationService:
    def __init__(
        self,
        sessions: SessionStore,
        domain_store: DomainStore,
        generator: ContentGenerator,
        transport: MessageTransport,
        *,
        clock=utcnow,
        default_lang: Optional[str] = None,
        store_timeout: Optional[float] = None,
        generator_timeout: Optional[float] = None,
        transport_timeout: Optional[float] = None,
        timezone: Optional[str] = None,
    ):
        self.sessions = sessions
        self.domain_store = domain_store
        self.generator = generator
        self.transport = transport
        self._clock = clock
        self.default_lang = default_lang or settings.default_language
        self.store_timeout = store_timeout or settings.DOMAIN_STORE_TIMEOUT_SECONDS
        self.generator_timeout = generator_timeout or settings.GENERATOR_TIMEOUT_SECONDS
        self.transport_timeout = transport_timeout or settings.TRANSPORT_TIMEOUT_SECONDS
        self.tz = ZoneInfo(timezone or settings.TIMEZONE)
        self._locks = KeyedLock()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_inbound(self, event: InboundEvent) -> None:
        phone = normalize_phone(event.sender_id)
        if not phone:
            raise InvalidSessionError("Inbound event without a sender phone number")

        async with self._locks.hold(phone):
            await self._handle(phone, event)

    async def _handle(self, phone: str, event: InboundEvent) -> None:
        loaded = await self._session_call(self.sessions.get_or_create(phone), "get_or_create")
        if not loaded.ok:
            await self._deliver(phone, t("GENERIC_ERROR", self.default_lang))
            return
        session: Session = loaded.value

        found = await self._store_call(self.domain_store.find_user_by_phone(phone), "find_user_by_phone")
        if not found.ok:
            await self._deliver(phone, t("GENERIC_ERROR", session.lang(self.default_lang)))
            return
        user: Optional[UserProfile] = found.value

        if user is None:
            if not session.registration_in_progress and session.current_state not in REGISTRATION_STATES:
                session.current_state = S.START
                session.draft = None
        else:
            self._adopt_user(session, user)
        snapshot = session.model_copy(deep=True)

        text = (event.text or "").strip()
        if not text:
            audio = next((m for m in event.media if m.is_audio), None)
            if audio is not None:
                text = await self._transcribe(audio.url, audio.content_type)
                if text is None:
                    await self._deliver(phone, t("TRANSCRIPTION_FAILED", session.lang(self.default_lang)))
                    return

        if user is None:
            directive = advance_registration(session, text, display_name=event.display_name)
        else:
            directive = dispatch(session, text)

        logger.info(
            "Event from %s: %s -> %s (%s)",
            mask_phone(phone),
            session.current_state.value,
            directive.next_state.value,
            directive.template_id,
        )

        user_created = False
        if directive.effect is not None and directive.effect.kind == EffectKind.PROXY:
            template_id, params = await self._run_proxy(phone, directive.effect, session.lang(self.default_lang))
            body = t(template_id, session.lang(self.default_lang), **params)
            if not await self._persist(session):
                await self._deliver(phone, t("GENERIC_ERROR", session.lang(self.default_lang)))
                return
            await self._deliver_or_restore(phone, body, snapshot, restore=True)
            return

        outcome = EffectOutcome(ok=True)
        if directive.effect is not None:
            outcome = await self._run_effect(directive.effect, session, user, phone)

        if not outcome.ok:
            lang = snapshot.lang(self.default_lang)
            await self._persist(snapshot)
            await self._deliver_or_restore(phone, t(outcome.template_id or "GENERIC_ERROR", lang), snapshot, restore=False)
            return

        directive.apply_to(session)
        if directive.completes_registration:
            session.current_state = S.IDLE
            session.registration_in_progress = False
            session.draft = None
            user_created = True

        if directive.effect is not None and directive.effect.kind == EffectKind.RESET_SESSION:
            saved = (await self._session_call(self.sessions.clear(phone), "clear")).ok
        else:
            saved = await self._persist(session)
        if not saved and not user_created:
            await self._deliver(phone, t("GENERIC_ERROR", snapshot.lang(self.default_lang)))
            return

        body = self._render(directive, outcome, session)
        await self._deliver_or_restore(phone, body, snapshot, restore=not user_created)

    def _adopt_user(self, session: Session, user: UserProfile) -> None:
        """Bring a session in line with an existing user record."""
        if session.language is None and user.language in SUPPORTED_LANGUAGES:
            session.language = Language(user.language)
        if session.registration_in_progress or session.current_state == S.START \
                or session.current_state in REGISTRATION_STATES:
            session.registration_in_progress = False
            session.current_state = S.IDLE
            session.draft = None

    def _render(self, directive: ReplyDirective, outcome: EffectOutcome, session: Session) -> str:
        lang = directive.language_override or session.lang(self.default_lang)
        params = {**directive.params, **outcome.params}
        parts = [t(outcome.template_id or directive.template_id, lang, **params)]
        parts.extend(t(key, lang, **params) for key in directive.follow_up)
        return "\n\n".join(parts)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def _deliver(self, phone: str, body: str) -> bool:
        result = await call_with_timeout(
            self.transport.send_message(phone, body),
            self.transport_timeout,
            label="send_message",
        )
        if not result.ok:
            logger.error("Failed to deliver reply to %s: %s", mask_phone(phone), result.error)
        return result.ok

    async def _deliver_or_restore(self, phone: str, body: str, snapshot: Session, *, restore: bool) -> bool:
        delivered = await self._deliver(phone, body)
        if not delivered and restore:
            # The user never saw this reply; let them answer the previous prompt again.
            await self._persist(snapshot.model_copy(deep=True))
        return delivered

    async def send_template(self, phone: str, key: str, lang: Optional[str] = None, **params) -> bool:
        """Send a templated notification outside any inbound event (reminders, alerts)."""
        return await self._deliver(normalize_phone(phone), t(key, lang or self.default_lang, **params))

    # ------------------------------------------------------------------
    # Collaborator calls
    # ------------------------------------------------------------------

    async def _store_call(self, awaitable, name: str) -> CallResult:
        return await call_with_timeout(awaitable, self.store_timeout, label=name)

    async def _session_call(self, awaitable, name: str) -> CallResult:
        result = await call_with_timeout(awaitable, self.store_timeout, label=f"sessions.{name}")
        if isinstance(result.error, InvalidSessionError):
            raise result.error
        return result

    async def _persist(self, session: Session) -> bool:
        result = await self._session_call(self.sessions.update(session), "update")
        if not result.ok:
            logger.error("Failed to save session for %s: %s", mask_phone(session.phone_number), result.error)
        return result.ok

    async def _generator_call(self, awaitable, name: str) -> CallResult:
        return await call_with_timeout(awaitable, self.generator_timeout, label=name)

    async def _transcribe(self, media_url: str, content_type: str) -> Optional[str]:
        media = await call_with_timeout(self.transport.fetch_media(media_url), self.transport_timeout, label="fetch_media")
        if not media.ok:
            return None
        text = await self._generator_call(self.generator.transcribe(media.value, content_type), "transcribe")
        if not text.ok or not (text.value or "").strip():
            return None
        return text.value.strip()

    def _now(self) -> datetime:
        return self._clock()

    def _local_now(self) -> datetime:
        return self._now().astimezone(self.tz)

    async def _run_effect(
        self,
        effect: Effect,
        session: Session,
        user: Optional[UserProfile],
        phone: str,
        lang: Optional[str] = None,
    ) -> EffectOutcome:
        lang = lang or session.lang(self.default_lang)
        kind = effect.kind
        payload = effect.payload

        if kind == EffectKind.CREATE_USER:
            fields = dict(payload)
            fields["phone_number"] = fields.get("phone_number") or phone
            created = await self._store_call(self.domain_store.create_user(**fields), "create_user")
            if not created.ok:
                return EffectOutcome(ok=False, template_id="GENERIC_ERROR")
            logger.info("Registration completed for %s", mask_phone(phone))
            return EffectOutcome(ok=True, user=created.value)

        if kind == EffectKind.RESET_SESSION:
            return EffectOutcome(ok=True)

        if user is None:
            logger.warning("Effect %s needs a registered user (%s)", kind.value, mask_phone(phone))
            return EffectOutcome(ok=False, template_id="GENERIC_ERROR")

        if kind == EffectKind.CREATE_MEDICATION:
            result = await self._store_call(
                self.domain_store.create_medication(user.id, **payload), "create_medication"
            )
            return EffectOutcome(ok=result.ok, template_id=None if result.ok else "GENERIC_ERROR")

        if kind == EffectKind.LIST_MEDICATIONS:
            result = await self._store_call(self.domain_store.list_medications(user.id), "list_medications")
            if not result.ok:
                return EffectOutcome(ok=False, template_id="GENERIC_ERROR")
            if not result.value:
                return EffectOutcome(ok=True, template_id="MEDICATION_LIST_EMPTY")
            return EffectOutcome(ok=True, params={"items": self._medication_lines(result.value, lang)})

        if kind == EffectKind.RECORD_ADHERENCE:
            return await self._record_adherence(user)

        if kind == EffectKind.RECORD_HEALTH:
            result = await self._store_call(
                self.domain_store.record_health_reading(
                    user.id,
                    payload["reading_type"],
                    payload["value"],
                    payload["unit"],
                    self._now(),
                ),
                "record_health_reading",
            )
            return EffectOutcome(ok=result.ok, template_id=None if result.ok else "GENERIC_ERROR")

        if kind == EffectKind.WEEKLY_REPORT:
            result = await self._store_call(self.domain_store.weekly_summary(user.id, self._now()), "weekly_summary")
            if not result.ok:
                return EffectOutcome(ok=False, template_id="GENERIC_ERROR")
            return EffectOutcome(ok=True, params=self._report_params(result.value, lang))

        if kind == EffectKind.CHECK_INTERACTIONS:
            return await self._check_interactions(user, lang)

        if kind == EffectKind.RECOMMEND:
            return await self._recommend(user, lang)

        if kind == EffectKind.UPDATE_LANGUAGE:
            result = await self._store_call(
                self.domain_store.update_user_language(user.id, payload["language"]), "update_user_language"
            )
            return EffectOutcome(ok=result.ok, template_id=None if result.ok else "GENERIC_ERROR")

        if kind == EffectKind.ADD_CAREGIVER:
            result = await self._store_call(
                self.domain_store.add_caregiver(
                    user.id,
                    payload["caregiver_phone"],
                    relationship_label=payload.get("relationship_label"),
                ),
                "add_caregiver",
            )
            if result.ok:
                logger.info("Linked caregiver %s to %s", mask_phone(payload["caregiver_phone"]), mask_phone(phone))
            return EffectOutcome(ok=result.ok, template_id=None if result.ok else "GENERIC_ERROR")

        logger.warning("Unhandled effect %s", kind.value)
        return EffectOutcome(ok=False, template_id="GENERIC_ERROR")

    async def _record_adherence(self, user: UserProfile) -> EffectOutcome:
        meds = await self._store_call(self.domain_store.list_medications(user.id), "list_medications")
        if not meds.ok:
            return EffectOutcome(ok=False, template_id="GENERIC_ERROR")

        med, slot = pick_due_medication(meds.value, self._local_now())
        if med is None:
            return EffectOutcome(ok=True, template_id="ADHERENCE_NONE")

        recorded = await self._store_call(
            self.domain_store.record_adherence(user.id, med.id, slot, self._now()),
            "record_adherence",
        )
        if not recorded.ok:
            return EffectOutcome(ok=False, template_id="GENERIC_ERROR")
        return EffectOutcome(ok=True, params={"name": med.name})

    async def _check_interactions(self, user: UserProfile, lang: str) -> EffectOutcome:
        meds = await self._store_call(self.domain_store.list_medications(user.id), "list_medications")
        if not meds.ok:
            return EffectOutcome(ok=False, template_id="GENERIC_ERROR")
        if len(meds.value) < 2:
            return EffectOutcome(ok=True, template_id="INTERACTIONS_NOT_NEEDED")

        result = await self._generator_call(self.generator.check_interactions(meds.value, lang), "check_interactions")
        if not result.ok:
            return EffectOutcome(ok=False, template_id="INTERACTIONS_UNAVAILABLE")

        report: InteractionReport = result.value
        details = ""
        if report.interactions:
            details = "\n\n" + "\n".join(
                f"• *{' + '.join(i.medications)}* ({i.severity}): {i.description}"
                for i in report.interactions
            )
        return EffectOutcome(ok=True, params={"summary": report.summary, "details": details})

    async def _recommend(self, user: UserProfile, lang: str) -> EffectOutcome:
        meds = await self._store_call(self.domain_store.list_medications(user.id), "list_medications")
        medications = meds.value if meds.ok else []

        result = await self._generator_call(self.generator.recommend(user, medications, lang), "recommend")
        if not result.ok:
            return EffectOutcome(ok=False, template_id="RECOMMENDATIONS_FALLBACK")
        return EffectOutcome(ok=True, params={"text": result.value})

    @staticmethod
    def _medication_lines(medications: Sequence[MedicationInfo], lang: str) -> str:
        lines = []
        for i, med in enumerate(medications, start=1):
            when = ", ".join(med.schedule) if med.schedule else label(med.frequency or "as_needed", lang)
            lines.append(f"{i}. *{med.name}* - {med.dosage} ({when})")
        return "\n".join(lines)

    @staticmethod
    def _report_params(summary: WeeklySummary, lang: str) -> Dict[str, Any]:
        missing = t("NOT_RECORDED", lang)
        readings = summary.latest_readings
        return {
            "blood_pressure": readings.get("blood_pressure", missing),
            "blood_sugar": readings.get("blood_sugar", missing),
            "weight": readings.get("weight", missing),
            "adherence": summary.adherence_percentage,
        }

    # ------------------------------------------------------------------
    # Caregiver proxy
    # ------------------------------------------------------------------

    async def _run_proxy(self, caller_phone: str, effect: Effect, lang: str) -> tuple[str, Dict[str, Any]]:
        target = effect.payload.get("target", "")
        command = effect.payload.get("command", "")

        found = await self._store_call(
            self.domain_store.find_cared_for_user(caller_phone, target), "find_cared_for_user"
        )
        if not found.ok:
            return "GENERIC_ERROR", {}
        target_user: Optional[UserProfile] = found.value
        if target_user is None:
            logger.info("Proxy target %r not found for %s", target, mask_phone(caller_phone))
            return "PROXY_TARGET_NOT_FOUND", {"target": target}

        # A throwaway view of the target's conversation; never persisted.
        target_session = Session(
            phone_number=target_user.phone_number,
            current_state=S.IDLE,
            language=Language(target_user.language) if target_user.language in SUPPORTED_LANGUAGES else None,
        )
        inner = dispatch(target_session, command, proxied=True)
        if inner.next_state in FLOW_STATES or (inner.effect is not None and inner.effect.kind in _NOT_PROXYABLE):
            return "PROXY_FLOW_UNSUPPORTED", {"target": target_user.name or target}

        outcome = EffectOutcome(ok=True)
        if inner.effect is not None:
            outcome = await self._run_effect(inner.effect, target_session, target_user, target_user.phone_number, lang)

        params = {**inner.params, **outcome.params}
        body = t(outcome.template_id or inner.template_id, lang, **params)
        logger.info("Proxy command %r for %s by %s", command, mask_phone(target_user.phone_number),
                    mask_phone(caller_phone))
        return "PROXY_RESULT", {"name": target_user.name or target, "body": body}
