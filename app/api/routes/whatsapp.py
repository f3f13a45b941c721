from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from loguru import logger

from app.api.deps import get_conversation_service, require_twilio_signature
from app.core.errors import InvalidSessionError
from app.core.logging_config import mask_phone
from app.domain.models.conversation import InboundEvent, MediaRef
from app.domain.services.conversation_service import ConversationService

router = APIRouter(prefix="/api/webhook", dependencies=[Depends(require_twilio_signature)])


def parse_twilio_form(form) -> InboundEvent:
    """Build an ``InboundEvent`` from Twilio's form-encoded webhook fields."""
    try:
        num_media = int(form.get("NumMedia") or 0)
    except ValueError:
        num_media = 0

    media = []
    for i in range(num_media):
        url = form.get(f"MediaUrl{i}")
        if url:
            media.append(MediaRef(url=str(url), content_type=str(form.get(f"MediaContentType{i}") or "")))

    return InboundEvent(
        sender_id=str(form.get("From") or ""),
        text=str(form.get("Body") or ""),
        display_name=(str(form.get("ProfileName")) if form.get("ProfileName") else None),
        media=media,
    )


@router.post("/message", response_class=PlainTextResponse)
async def incoming_message(
    request: Request,
    service: ConversationService = Depends(get_conversation_service),
):
    form = await request.form()
    event = parse_twilio_form(form)
    logger.info("Received message from {} ({} media)", mask_phone(event.sender_id), len(event.media))

    try:
        await service.handle_inbound(event)
    except InvalidSessionError as e:
        logger.error("Rejected inbound event: {}", e)
        return PlainTextResponse("Error processing message", status_code=500)

    return PlainTextResponse("OK")


@router.post("/status", response_class=PlainTextResponse)
async def status_update(request: Request):
    form = await request.form()
    logger.info(
        "Message {} to {} status: {}",
        form.get("MessageSid"),
        mask_phone(str(form.get("To") or "")),
        form.get("MessageStatus"),
    )
    return PlainTextResponse("OK")
