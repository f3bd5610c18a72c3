from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import HTTPBearer
from pydantic import BaseModel, ValidationError
import secrets
from enum import Enum

from .config import settings
from .exceptions import ConfigurationError

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# Missing credentials are reported by the verifier itself, not by HTTPBearer
security = HTTPBearer(auto_error=False)

class UserRole(str, Enum):
    PATIENT = "Patient"
    HEALTHCARE_PROFESSIONAL = "Healthcare Professional"

class TokenPayload(BaseModel):
    sub: int
    email: str
    role: UserRole
    exp: Optional[int] = None
    iat: Optional[int] = None

# Password utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)

def dummy_verify() -> None:
    """Burn one hash comparison when there is no stored hash to check."""
    pwd_context.dummy_verify()

def generate_password_reset_token() -> str:
    """Generate a secure random token for password reset."""
    return secrets.token_urlsafe(32)

# JWT utilities
def _signing_key() -> str:
    if not settings.SECRET_KEY:
        raise ConfigurationError("SECRET_KEY is not configured")
    return settings.SECRET_KEY

def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "iat": now})

    return jwt.encode(to_encode, _signing_key(), algorithm=settings.ALGORITHM)

def create_user_token(user_id: int, email: str, role: UserRole) -> str:
    """Create the session token for a user; the role is fixed at issuance."""
    return create_access_token({
        "sub": str(user_id),
        "email": email,
        "role": UserRole(role).value,
    })

def verify_token(token: str) -> Optional[TokenPayload]:
    """Verify and decode JWT token.

    Returns None for any bad signature, expired token or malformed claims
    set, so callers cannot tell those cases apart.
    """
    key = _signing_key()
    try:
        payload = jwt.decode(
            token, key, algorithms=[settings.ALGORITHM], options={"require_exp": True}
        )
        return TokenPayload(**payload)
    except (JWTError, ValidationError):
        return None
