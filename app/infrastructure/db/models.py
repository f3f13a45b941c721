import uuid
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.infrastructure.db.base import Base


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    phone_number = Column(String(20), unique=True, index=True, nullable=False)
    name = Column(String(60))
    age = Column(Integer)
    language = Column(String(5), default="en")
    conditions = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    medications = relationship("Medication", back_populates="user")
    health_records = relationship("HealthRecord", back_populates="user")
    caregivers = relationship("CaregiverLink", back_populates="user")


class CaregiverLink(Base):
    """A family member allowed to act for ``user`` via ``for:<name>`` commands."""
    __tablename__ = "caregiver_links"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    caregiver_phone = Column(String(20), index=True, nullable=False)
    caregiver_name = Column(String(60))
    relationship_label = Column(String(30))
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    user = relationship("User", back_populates="caregivers")


class Medication(Base):
    __tablename__ = "medications"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    name = Column(String(80), nullable=False)
    dosage = Column(String(40), nullable=False)
    frequency = Column(String(20))
    schedule = Column(JSON, default=list)
    instructions = Column(Text, default="")
    active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    user = relationship("User", back_populates="medications")
    adherence = relationship("AdherenceRecord", back_populates="medication")


class AdherenceRecord(Base):
    __tablename__ = "adherence_records"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    medication_id = Column(UUID(as_uuid=True), ForeignKey("medications.id"), index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    scheduled_time = Column(String(5))
    taken = Column(Boolean, default=True)
    recorded_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    medication = relationship("Medication", back_populates="adherence")


class HealthRecord(Base):
    __tablename__ = "health_records"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    reading_type = Column(String(20), nullable=False)
    value = Column(String(20), nullable=False)
    unit = Column(String(10))
    recorded_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    user = relationship("User", back_populates="health_records")
