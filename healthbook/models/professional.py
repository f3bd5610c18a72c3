from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, Text, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base, enum_values

class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "Available"
    UNAVAILABLE = "Unavailable"

class Specialty(Base):
    __tablename__ = "specialties"
    __table_args__ = (
        UniqueConstraint("name", name="uq_specialties_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    professionals = relationship("HealthcareProfessional", back_populates="specialty")

    def __repr__(self):
        return f"<Specialty(id={self.id}, name='{self.name}')>"

class HealthcareProfessional(Base):
    __tablename__ = "healthcare_professionals"
    __table_args__ = (
        UniqueConstraint("license_number", name="uq_healthcare_professionals_license_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    specialty_id = Column(Integer, ForeignKey("specialties.id"), nullable=False)

    # Professional information
    experience_years = Column(Integer, nullable=True)
    license_number = Column(String(50), nullable=True)
    education = Column(Text, nullable=True)
    consultation_fee = Column(Numeric(10, 2), nullable=True)

    # Availability, independent of the account status
    status = Column(SQLEnum(AvailabilityStatus, values_callable=enum_values), nullable=False, default=AvailabilityStatus.AVAILABLE)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="professional")
    specialty = relationship("Specialty", back_populates="professionals")
    appointments = relationship("Appointment", back_populates="professional")

    def __repr__(self):
        return f"<HealthcareProfessional(id={self.id}, user_id={self.user_id}, specialty_id={self.specialty_id})>"
