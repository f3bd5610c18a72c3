"""
Pydantic schemas for authentication and registration.

Field names are snake_case in Python and camelCase on the wire.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import date
from decimal import Decimal
import re

from ..core.config import settings
from ..core.security import UserRole
from ..models.user import Gender

PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{1,14}$')

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72
MAX_EMAIL_LENGTH = 255

# Values sent by the Spanish-language client
GENDER_ALIASES = {
    "masculino": "male",
    "femenino": "female",
    "otro": "other",
}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_password(v: str) -> str:
    if len(v) < settings.PASSWORD_MIN_LENGTH:
        raise ValueError(f'Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long')
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f'Password cannot exceed {MAX_PASSWORD_BYTES} bytes')
    return v


class UserLogin(CamelModel):
    """Schema for user login"""
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        if len(v) > MAX_EMAIL_LENGTH:
            raise ValueError(f'Email cannot exceed {MAX_EMAIL_LENGTH} characters')
        return v.lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)


class RegisterBase(CamelModel):
    """Fields shared by patient and professional registration"""
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    email: EmailStr
    password: str
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Gender
    custom_gender: Optional[str] = Field(None, max_length=100)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('This field is required')
        return v

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        if len(v) > MAX_EMAIL_LENGTH:
            raise ValueError(f'Email cannot exceed {MAX_EMAIL_LENGTH} characters')
        return v.lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)

    @field_validator('phone_number', mode='before')
    @classmethod
    def validate_phone_number(cls, v):
        if v is None or v == "":
            return None
        if not isinstance(v, str) or not PHONE_PATTERN.match(v):
            raise ValueError('Invalid phone number')
        return v

    @field_validator('date_of_birth', mode='before')
    @classmethod
    def empty_date_is_missing(cls, v):
        return None if v == "" else v

    @field_validator('gender', mode='before')
    @classmethod
    def map_gender(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return GENDER_ALIASES.get(v, v)
        return v

    @property
    def gender_identity(self) -> Optional[str]:
        """Free-text identity, kept only when gender is other."""
        if self.gender == Gender.OTHER and self.custom_gender:
            return self.custom_gender.strip() or None
        return None


class PatientRegister(RegisterBase):
    """Schema for patient registration"""


class ProfessionalRegister(RegisterBase):
    """Schema for healthcare professional registration"""
    specialty: str = Field(..., max_length=100)
    experience: Optional[int] = Field(None, ge=0)
    license_number: Optional[str] = Field(None, max_length=50)
    education: Optional[str] = None
    consultation_fee: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)

    @field_validator('specialty')
    @classmethod
    def validate_specialty(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Specialty is required')
        return v

    @field_validator('license_number', 'education')
    @classmethod
    def non_blank_if_given(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('Cannot be blank')
        return v

    @field_validator('consultation_fee', mode='before')
    @classmethod
    def empty_fee_is_missing(cls, v):
        return None if v == "" else v


class RegisterResponse(CamelModel):
    message: str
    user_id: int


class UserSummary(CamelModel):
    """Sanitized user returned on login"""
    user_id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole


class TokenResponse(CamelModel):
    message: str = "Login successful"
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserSummary


class PasswordRecover(CamelModel):
    email: Optional[EmailStr] = None

    @field_validator('email', mode='before')
    @classmethod
    def blank_is_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower() if v else v

    @model_validator(mode='after')
    def require_email(self):
        if not self.email:
            raise ValueError('Email is required')
        return self


class PasswordResetConfirm(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)


class TokenClaims(CamelModel):
    valid: bool = True
    user_id: int
    email: str
    role: UserRole
    expires: Optional[int] = None
