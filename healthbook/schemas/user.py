from pydantic import Field
from typing import List, Optional
from datetime import date, datetime

from .auth import CamelModel
from ..core.security import UserRole
from ..models.appointment import AppointmentStatus


class ProfileOut(CamelModel):
    user_id: int
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    role: UserRole


class AppointmentOut(CamelModel):
    appointment_id: int
    appointment_date: datetime
    appointment_status: AppointmentStatus
    appointment_type: Optional[str] = None
    # None when the professional or specialty row is missing
    specialty_name: Optional[str] = None


class ProfileResponse(CamelModel):
    message: str = "User data retrieved successfully"
    user: ProfileOut
    appointments: List[AppointmentOut] = Field(default_factory=list)
