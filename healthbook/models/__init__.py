from .user import User, Gender, UserStatus
from .professional import HealthcareProfessional, Specialty, AvailabilityStatus
from .appointment import Appointment, AppointmentStatus

__all__ = [
    "User",
    "Gender",
    "UserStatus",
    "HealthcareProfessional",
    "Specialty",
    "AvailabilityStatus",
    "Appointment",
    "AppointmentStatus",
]
