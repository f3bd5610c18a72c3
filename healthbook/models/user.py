from sqlalchemy import Column, Integer, String, Date, DateTime, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from ..core.database import Base, enum_values
from ..core.security import UserRole

class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"

class UserStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"

class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Always stored lower-cased
    email = Column(String(255), index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole, values_callable=enum_values), nullable=False)
    status = Column(SQLEnum(UserStatus, values_callable=enum_values), nullable=False, default=UserStatus.ACTIVE)

    # Profile
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone_number = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(SQLEnum(Gender, values_callable=enum_values), nullable=True)
    gender_identity = Column(String(100), nullable=True)  # Only when gender is other

    # Password recovery
    password_reset_token = Column(String(255), nullable=True, index=True)
    password_reset_expires = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    professional = relationship("HealthcareProfessional", back_populates="user", uselist=False)
    appointments = relationship("Appointment", back_populates="patient")

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
