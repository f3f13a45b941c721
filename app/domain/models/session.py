# app/domain/models/session.py
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Language(str, Enum):
    EN = "en"
    HI = "hi"


class ConversationState(str, Enum):
    START = "START"

    # Registration sub-flow
    REGISTRATION_START = "REGISTRATION_START"
    REGISTRATION_LANGUAGE = "REGISTRATION_LANGUAGE"
    REGISTRATION_AGE = "REGISTRATION_AGE"
    REGISTRATION_NAME = "REGISTRATION_NAME"
    REGISTRATION_CONDITIONS = "REGISTRATION_CONDITIONS"
    REGISTRATION_COMPLETE = "REGISTRATION_COMPLETE"

    # Operational
    IDLE = "IDLE"
    MEDICATION_ADD_START = "MEDICATION_ADD_START"
    MEDICATION_ADD_NAME = "MEDICATION_ADD_NAME"
    MEDICATION_ADD_DOSAGE = "MEDICATION_ADD_DOSAGE"
    MEDICATION_ADD_FREQUENCY = "MEDICATION_ADD_FREQUENCY"
    MEDICATION_ADD_TIMES = "MEDICATION_ADD_TIMES"
    MEDICATION_ADD_CONFIRM = "MEDICATION_ADD_CONFIRM"
    HEALTH_RECORD_TYPE = "HEALTH_RECORD_TYPE"
    HEALTH_RECORD_VALUE = "HEALTH_RECORD_VALUE"
    SETTINGS_LANGUAGE = "SETTINGS_LANGUAGE"
    FAMILY_MENU = "FAMILY_MENU"
    FAMILY_ADD_PHONE = "FAMILY_ADD_PHONE"
    FAMILY_ADD_LABEL = "FAMILY_ADD_LABEL"


REGISTRATION_STATES = frozenset({
    ConversationState.REGISTRATION_START,
    ConversationState.REGISTRATION_LANGUAGE,
    ConversationState.REGISTRATION_AGE,
    ConversationState.REGISTRATION_NAME,
    ConversationState.REGISTRATION_CONDITIONS,
    ConversationState.REGISTRATION_COMPLETE,
})

# States entered by the command dispatcher and left again on completion/cancel.
FLOW_STATES = frozenset({
    ConversationState.MEDICATION_ADD_START,
    ConversationState.MEDICATION_ADD_NAME,
    ConversationState.MEDICATION_ADD_DOSAGE,
    ConversationState.MEDICATION_ADD_FREQUENCY,
    ConversationState.MEDICATION_ADD_TIMES,
    ConversationState.MEDICATION_ADD_CONFIRM,
    ConversationState.HEALTH_RECORD_TYPE,
    ConversationState.HEALTH_RECORD_VALUE,
    ConversationState.SETTINGS_LANGUAGE,
    ConversationState.FAMILY_MENU,
    ConversationState.FAMILY_ADD_PHONE,
    ConversationState.FAMILY_ADD_LABEL,
})


# ---------------------------------------------------------------------------
# Flow drafts: one variant per multi-step flow
# ---------------------------------------------------------------------------

class RegistrationDraft(BaseModel):
    kind: Literal["registration"] = "registration"
    age: Optional[int] = None
    name: Optional[str] = None
    conditions: List[str] = Field(default_factory=list)


class MedicationDraft(BaseModel):
    kind: Literal["medication"] = "medication"
    name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    doses_per_day: Optional[int] = None
    times: List[str] = Field(default_factory=list)


class HealthReadingDraft(BaseModel):
    kind: Literal["health_reading"] = "health_reading"
    reading_type: Optional[str] = None


class CaregiverDraft(BaseModel):
    kind: Literal["caregiver"] = "caregiver"
    caregiver_phone: Optional[str] = None


Draft = Annotated[
    Union[RegistrationDraft, MedicationDraft, HealthReadingDraft, CaregiverDraft],
    Field(discriminator="kind"),
]


class Session(BaseModel):
    """Ephemeral per-phone-number conversation state."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    phone_number: Optional[str] = None
    current_state: ConversationState = ConversationState.START
    registration_in_progress: bool = False
    language: Optional[Language] = None
    draft: Optional[Draft] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def lang(self, default: str = "en") -> str:
        return self.language.value if self.language else default
