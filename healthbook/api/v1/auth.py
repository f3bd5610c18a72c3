from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.security import TokenPayload
from ...api.deps import get_current_identity, rate_limit_check
from ...services.auth_service import AuthService
from ...services.registration_service import RegistrationService
from ...services.mailer import send_password_reset_email
from ...schemas.auth import (
    UserLogin, PatientRegister, ProfessionalRegister, RegisterResponse,
    TokenResponse, PasswordRecover, PasswordResetConfirm, TokenClaims
)

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/login", response_model=TokenResponse)
def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
):
    """Authenticate user and return a session token."""
    auth_service = AuthService(db)
    return auth_service.authenticate_user(login_data)

@router.post(
    "/register/patient",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED
)
def register_patient(
    user_data: PatientRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new patient."""
    user_id = RegistrationService(db).register_patient(user_data)
    return RegisterResponse(message="Patient registered successfully", user_id=user_id)

@router.post(
    "/register/professional",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED
)
def register_professional(
    user_data: ProfessionalRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new healthcare professional."""
    user_id = RegistrationService(db).register_professional(user_data)
    return RegisterResponse(
        message="Healthcare professional registered successfully",
        user_id=user_id
    )

@router.post("/recover-password")
def recover_password(
    recover_data: PasswordRecover,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Request password recovery.

    The answer is the same whether or not the email is registered. The reset
    link goes out by email after the response.
    """
    reset_token = AuthService(db).request_password_reset(recover_data.email)
    if reset_token:
        background_tasks.add_task(send_password_reset_email, recover_data.email, reset_token)
    return {"message": "If the email is registered, recovery instructions have been issued"}

@router.post("/reset-password")
def reset_password(
    reset_data: PasswordResetConfirm,
    db: Session = Depends(get_db)
):
    """Reset password using reset token."""
    AuthService(db).reset_password(reset_data)
    return {"message": "Password reset successfully"}

@router.post("/verify-token", response_model=TokenClaims)
def verify_token_endpoint(
    token_payload: TokenPayload = Depends(get_current_identity)
):
    """Check whether a cached token is still valid."""
    return TokenClaims(
        user_id=token_payload.sub,
        email=token_payload.email,
        role=token_payload.role,
        expires=token_payload.exp
    )
