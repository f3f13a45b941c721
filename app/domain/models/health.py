# app/domain/models/health.py
"""Read models for records owned by the persistent domain store."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    phone_number: str
    name: Optional[str] = None
    age: Optional[int] = None
    language: str = "en"
    conditions: List[str] = Field(default_factory=list)


class MedicationInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    dosage: str
    frequency: Optional[str] = None
    schedule: List[str] = Field(default_factory=list)
    instructions: str = ""
    active: bool = True


class HealthReadingInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    reading_type: str
    value: str
    unit: str
    recorded_at: datetime


class WeeklySummary(BaseModel):
    adherence_percentage: int = 0
    doses_recorded: int = 0
    # reading_type -> latest display value, e.g. {"blood_pressure": "130/85 mmHg"}
    latest_readings: Dict[str, str] = Field(default_factory=dict)


class Interaction(BaseModel):
    medications: List[str] = Field(default_factory=list)
    severity: str = "mild"
    description: str = ""


class InteractionReport(BaseModel):
    has_interactions: bool = False
    interactions: List[Interaction] = Field(default_factory=list)
    summary: str = ""
