# app/domain/services/command_dispatcher.py
"""
Command dispatcher for registered users.

Free text is normalized and looked up in ``COMMAND_ALIASES``; the matched
command builds a ``ReplyDirective``. While a sub-flow is active the text goes
to that flow's step handler instead (``cancel`` always leaves the flow).
Unrecognized input falls back to the main menu; this module never raises for
user text.

``for:<target> <command>`` is recognized before anything else and turned into
a ``PROXY`` effect. Resolving and authorizing the target is the coordinator's
job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from app.domain.models.conversation import (
    Effect,
    EffectKind,
    ReplyDirective,
    SessionPatch,
    reply,
)
from app.domain.models.session import FLOW_STATES, ConversationState, Session
from app.domain.services.operational_flows import (
    CANCEL_WORDS,
    FLOW_HANDLERS,
    cancel_flow,
    start_family_flow,
    start_health_flow,
    start_medication_flow,
)

logger = logging.getLogger("command_dispatcher")

S = ConversationState

PROXY_PREFIX = "for:"


@dataclass(frozen=True)
class ProxyCommand:
    target: str
    command: str


def normalize(text: str) -> str:
    return " ".join((text or "").strip().lower().split())


def parse_proxy_command(text: str) -> Optional[ProxyCommand]:
    """
    Parse ``for:<target> <command>``.

    Returns None when the text is not a proxy command at all, and a
    ``ProxyCommand`` with empty fields when the prefix is present but the
    target or command is missing.
    """
    stripped = (text or "").strip()
    if not stripped.lower().startswith(PROXY_PREFIX):
        return None

    rest = stripped[len(PROXY_PREFIX):].strip()
    if not rest:
        return ProxyCommand(target="", command="")
    parts = rest.split(None, 1)
    target = parts[0]
    command = parts[1].strip() if len(parts) > 1 else ""
    return ProxyCommand(target=target, command=command)


# ---------------------------------------------------------------------------
# Command table
# ---------------------------------------------------------------------------

COMMAND_ALIASES: Dict[str, str] = {}

_ALIASES = {
    "add_medication": ("1", "med", "add medication", "medication", "दवा जोड़ें"),
    "track_health": ("2", "health", "track health", "स्वास्थ्य"),
    "report": ("3", "report", "reports", "view reports", "रिपोर्ट"),
    "family": ("4", "family", "family settings", "परिवार"),
    "help": ("5", "help", "support", "मदद", "सहायता"),
    "schedule": ("schedule", "my medications", "meds", "शेड्यूल"),
    "taken": ("taken", "done", "ले लिया"),
    "interactions": ("interactions", "check interactions"),
    "tips": ("tips", "advice", "recommendations"),
    "language": ("language", "भाषा"),
    "reset": ("reset", "logout"),
    "menu": ("menu", "hi", "hello", "मेनू"),
}

for _command, _words in _ALIASES.items():
    for _word in _words:
        COMMAND_ALIASES[_word] = _command


def _idle(template_id: str, effect: Optional[Effect] = None) -> ReplyDirective:
    return ReplyDirective(
        template_id=template_id,
        next_state=S.IDLE,
        session_patch=SessionPatch(draft=None),
        effect=effect,
    )


COMMANDS: Dict[str, Callable[[], ReplyDirective]] = {
    "add_medication": start_medication_flow,
    "track_health": start_health_flow,
    "report": lambda: _idle("WEEKLY_REPORT", Effect(EffectKind.WEEKLY_REPORT)),
    "family": start_family_flow,
    "help": lambda: _idle("HELP_MENU"),
    "schedule": lambda: _idle("MEDICATION_LIST", Effect(EffectKind.LIST_MEDICATIONS)),
    "taken": lambda: _idle("ADHERENCE_RECORDED", Effect(EffectKind.RECORD_ADHERENCE)),
    "interactions": lambda: _idle("INTERACTIONS_RESULT", Effect(EffectKind.CHECK_INTERACTIONS)),
    "tips": lambda: _idle("RECOMMENDATIONS", Effect(EffectKind.RECOMMEND)),
    "language": lambda: ReplyDirective(
        template_id="LANGUAGE_SETTINGS",
        next_state=S.SETTINGS_LANGUAGE,
        session_patch=SessionPatch(draft=None),
    ),
    "reset": lambda: ReplyDirective(
        template_id="SESSION_RESET",
        next_state=S.START,
        session_patch=SessionPatch(draft=None),
        effect=Effect(EffectKind.RESET_SESSION),
    ),
    "menu": lambda: _idle("MAIN_MENU"),
}


def resolve_command(text: str) -> Optional[str]:
    return COMMAND_ALIASES.get(normalize(text))


def dispatch(session: Session, text: str, *, proxied: bool = False) -> ReplyDirective:
    """
    Map ``text`` to a directive for an operational ``session``.

    ``proxied`` marks a command already unwrapped from ``for:``; nested proxy
    syntax is then treated as plain (unrecognized) text.
    """
    if not proxied:
        proxy = parse_proxy_command(text)
        if proxy is not None:
            if not proxy.target or not proxy.command:
                return reply("PROXY_USAGE", session.current_state)
            return ReplyDirective(
                template_id="PROXY_RESULT",
                next_state=session.current_state,
                effect=Effect(
                    EffectKind.PROXY,
                    {"target": proxy.target, "command": proxy.command},
                ),
            )

    if session.current_state in FLOW_STATES:
        if normalize(text) in CANCEL_WORDS:
            return cancel_flow()
        handler = FLOW_HANDLERS.get(session.current_state)
        if handler is not None:
            directive = handler(session, text or "")
            if directive is not None:
                return directive
        else:
            logger.warning("No flow handler for state %s", session.current_state.value)

    command = resolve_command(text)
    if command is None:
        return _idle("MAIN_MENU")

    return COMMANDS[command]()
