from .health_repository import HealthRecordRepository
from .medication_repository import MedicationRepository
from .user_repository import UserRepository

__all__ = [
    "UserRepository",
    "MedicationRepository",
    "HealthRecordRepository",
]
