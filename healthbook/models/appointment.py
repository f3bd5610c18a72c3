from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base, enum_values

class AppointmentStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No-Show"

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # The patient is a plain user; legacy rows may have no professional
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    professional_id = Column(Integer, ForeignKey("healthcare_professionals.id"), nullable=True)

    # Appointment details
    appointment_date = Column(DateTime, nullable=False, index=True)
    status = Column(SQLEnum(AppointmentStatus, values_callable=enum_values), nullable=False, default=AppointmentStatus.PENDING)
    appointment_type = Column(String(50), nullable=True)
    reason = Column(Text, nullable=True)

    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("User", back_populates="appointments")
    professional = relationship("HealthcareProfessional", back_populates="appointments")

    def __repr__(self):
        return f"<Appointment(id={self.id}, user_id={self.user_id}, professional_id={self.professional_id}, date='{self.appointment_date}')>"
