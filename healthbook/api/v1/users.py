from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.security import TokenPayload
from ...api.deps import get_current_identity
from ...services.user_service import UserService
from ...schemas.user import ProfileResponse

router = APIRouter(tags=["Users"])

@router.get("/user", response_model=ProfileResponse)
def get_user_profile(
    identity: TokenPayload = Depends(get_current_identity),
    db: Session = Depends(get_db)
):
    """Profile and appointments of the authenticated user."""
    return UserService(db).get_profile(identity)
