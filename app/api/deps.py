# app/api/deps.py
"""
Shared FastAPI dependencies: the wired conversation engine and Twilio webhook
signature validation.
"""

import base64
import hashlib
import hmac
import logging
from typing import Mapping

from fastapi import HTTPException, Request, status

from app.core.config import settings
from app.domain.services.conversation_service import ConversationService
from app.infrastructure.cache.session_cache import SessionStore, build_session_store

logger = logging.getLogger("api.deps")

_session_store: SessionStore | None = None
_conversation_service: ConversationService | None = None


# ---------------------------------------------------------------------------
# Conversation engine (lazy singletons)
# ---------------------------------------------------------------------------

def get_session_store() -> SessionStore:
    global _session_store
    if _session_store is None:
        _session_store = build_session_store()
    return _session_store


def get_conversation_service() -> ConversationService:
    global _conversation_service
    if _conversation_service is None:
        from app.core.db import AsyncSessionLocal
        from app.infrastructure.db.domain_store import SqlDomainStore
        from app.infrastructure.external.openai_client import OpenAIContentGenerator
        from app.infrastructure.external.twilio_client import TwilioWhatsAppClient

        _conversation_service = ConversationService(
            sessions=get_session_store(),
            domain_store=SqlDomainStore(AsyncSessionLocal),
            generator=OpenAIContentGenerator(),
            transport=TwilioWhatsAppClient(),
        )
    return _conversation_service


# ---------------------------------------------------------------------------
# Twilio webhook signature
# ---------------------------------------------------------------------------

def compute_twilio_signature(auth_token: str, url: str, params: Mapping[str, str]) -> str:
    """
    Twilio signs ``url`` followed by every POST parameter as ``name + value``,
    sorted by name, with HMAC-SHA1 keyed by the account auth token.
    """
    payload = url + "".join(f"{k}{params[k]}" for k in sorted(params))
    digest = hmac.new(auth_token.encode(), payload.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


def _public_url(request: Request) -> str:
    proto = request.headers.get("x-forwarded-proto", request.url.scheme)
    host = request.headers.get("host", request.url.netloc)
    query = f"?{request.url.query}" if request.url.query else ""
    return f"{proto}://{host}{request.url.path}{query}"


async def require_twilio_signature(request: Request) -> None:
    if settings.SKIP_WEBHOOK_VALIDATION and settings.ENVIRONMENT != "production":
        logger.warning("Skipping Twilio webhook validation (%s)", settings.ENVIRONMENT)
        return

    signature = request.headers.get("x-twilio-signature")
    if not signature:
        logger.warning("Missing Twilio signature")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    form = await request.form()
    params = {k: str(v) for k, v in form.items()}
    expected = compute_twilio_signature(settings.TWILIO_AUTH_TOKEN, _public_url(request), params)
    if not hmac.compare_digest(expected, signature):
        logger.warning("Invalid Twilio signature")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
