# app/infrastructure/external/openai_client.py

import json
import logging
from typing import Sequence

from openai import AsyncOpenAI
from pydantic import ValidationError

from app.core.config import settings
from app.core.errors import GeneratorError
from app.domain.models.health import InteractionReport, MedicationInfo, UserProfile

logger = logging.getLogger("openai_client")

LANGUAGE_NAMES = {"en": "English", "hi": "Hindi"}


def _language_name(lang: str) -> str:
    return LANGUAGE_NAMES.get(lang, "English")


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------
INTERACTIONS_SYSTEM_PROMPT = """\
You are a medication interaction analysis assistant.
You will be given a list of medications, and your job is to:
1. Identify potential interactions between these medications
2. Categorize each interaction as: severe, moderate, or mild
3. Explain the nature of each interaction in simple terms
4. Provide a brief summary of the overall interaction profile

Keep your response factual and avoid unnecessary medical jargon.
Respond with a JSON object with these fields:
- has_interactions: boolean
- interactions: array of {{"medications": [names], "severity": "severe"|"moderate"|"mild", "description": string}}
- summary: string with the overall assessment

Respond in {language}.\
"""

RECOMMENDATIONS_SYSTEM_PROMPT = """\
You are a health companion for elderly users.
You will be given information about a user: age, health conditions and medications.
Provide 3-5 simple, practical health recommendations specific to their situation.

Your recommendations should be easy to follow, take their medications and
conditions into account, stay general wellness advice rather than medical
advice, and suit their age. Keep it short enough for a WhatsApp message.

Respond in {language}.\
"""


class OpenAIContentGenerator:
    """Interaction checks, wellness tips and voice-note transcription via OpenAI."""

    def __init__(self, client: AsyncOpenAI | None = None):
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.OPENAI_API_KEY:
                raise GeneratorError("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.GENERATOR_TIMEOUT_SECONDS,
            )
        return self._client

    async def check_interactions(
        self,
        medications: Sequence[MedicationInfo],
        lang: str = "en",
    ) -> InteractionReport:
        medication_list = ", ".join(f"{m.name} ({m.dosage})" for m in medications)
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=[
                    {
                        "role": "system",
                        "content": INTERACTIONS_SYSTEM_PROMPT.format(language=_language_name(lang)),
                    },
                    {
                        "role": "user",
                        "content": f"Please analyze these medications for potential interactions: {medication_list}",
                    },
                ],
                response_format={"type": "json_object"},
                temperature=0.1,
            )
            content = response.choices[0].message.content or "{}"
            return InteractionReport.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Interaction check returned unusable JSON: %s", e)
            raise GeneratorError("Unreadable interaction report") from e
        except Exception as e:
            logger.exception("Interaction check failed")
            raise GeneratorError(str(e)) from e

    async def recommend(
        self,
        user: UserProfile,
        medications: Sequence[MedicationInfo],
        lang: str = "en",
    ) -> str:
        medication_list = ", ".join(
            f"{m.name} ({m.dosage}, {m.frequency or 'as prescribed'})" for m in medications
        )
        user_prompt = (
            "User information:\n"
            f"Age: {user.age or 'unknown'}\n"
            f"Health conditions: {', '.join(user.conditions) or 'None specified'}\n"
            f"Medications: {medication_list or 'None'}\n\n"
            "Please provide personalized health recommendations for this user."
        )
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=[
                    {
                        "role": "system",
                        "content": RECOMMENDATIONS_SYSTEM_PROMPT.format(language=_language_name(lang)),
                    },
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0.7,
            )
        except Exception as e:
            logger.exception("Recommendation generation failed")
            raise GeneratorError(str(e)) from e

        text = (response.choices[0].message.content or "").strip()
        if not text:
            raise GeneratorError("Empty recommendation")
        return text

    async def transcribe(self, audio: bytes, content_type: str = "audio/ogg") -> str:
        """Transcribe a WhatsApp voice note (usually OGG/Opus)."""
        extension = content_type.split("/")[-1].split(";")[0] or "ogg"
        client = self._get_client()
        try:
            result = await client.audio.transcriptions.create(
                model=settings.OPENAI_TRANSCRIBE_MODEL,
                file=(f"voice.{extension}", audio, content_type),
                response_format="text",
            )
        except Exception as e:
            logger.exception("Transcription failed")
            raise GeneratorError(str(e)) from e

        text = (result if isinstance(result, str) else getattr(result, "text", "")).strip()
        if not text:
            raise GeneratorError("Empty transcription")
        return text
