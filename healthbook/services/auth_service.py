from sqlalchemy.orm import Session
from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timedelta
from typing import Optional
import hashlib
import logging

from ..models.user import User
from ..core.config import settings
from ..core.exceptions import AppException, AuthenticationError, ServiceError
from ..core.security import (
    verify_password, get_password_hash, create_user_token,
    dummy_verify, generate_password_reset_token
)
from ..schemas.auth import (
    UserLogin, TokenResponse, UserSummary, PasswordResetConfirm
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def _find_by_email(self, email: str) -> Optional[User]:
        try:
            return self.db.query(User).filter(User.email == email.lower()).first()
        except SQLAlchemyError as exc:
            logger.exception("User lookup by email failed")
            raise ServiceError() from exc

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return a session token.

        Unknown email and wrong password produce the same error.
        """
        user = self._find_by_email(login_data.email)

        if not user:
            # Spend the same time as a real comparison
            dummy_verify()
            logger.warning("Failed login attempt: unknown account")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not verify_password(login_data.password, user.password_hash):
            logger.warning(f"Failed login attempt for user {user.id}")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not user.is_active:
            raise AuthenticationError("Account is inactive")

        token = create_user_token(user.id, user.email, user.role)
        logger.info(f"User {user.id} logged in as {user.role.value}")

        return TokenResponse(
            token=token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserSummary(
                user_id=user.id,
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
                role=user.role,
            ),
        )

    def request_password_reset(self, email: str) -> Optional[str]:
        """Store a reset token for the account, if there is one.

        Returns the raw token, or None when the email is unknown. Callers must
        answer identically in both cases.
        """
        user = self._find_by_email(email)
        if not user:
            return None

        reset_token = generate_password_reset_token()
        user.password_reset_token = _hash_reset_token(reset_token)
        user.password_reset_expires = datetime.utcnow() + timedelta(
            minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
        )

        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to store password reset token")
            raise ServiceError() from exc

        logger.info(f"Password reset token issued for user {user.id}")
        return reset_token

    def reset_password(self, reset_data: PasswordResetConfirm) -> None:
        """Reset password using reset token."""
        try:
            user = self.db.query(User).filter(
                User.password_reset_token == _hash_reset_token(reset_data.token),
                User.password_reset_expires > datetime.utcnow()
            ).first()
        except SQLAlchemyError as exc:
            logger.exception("Reset token lookup failed")
            raise ServiceError() from exc

        if not user:
            raise AppException("Invalid or expired reset token", status.HTTP_400_BAD_REQUEST)

        user.password_hash = get_password_hash(reset_data.new_password)
        user.password_reset_token = None
        user.password_reset_expires = None

        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to store new password")
            raise ServiceError() from exc

        logger.info(f"Password reset for user {user.id}")
