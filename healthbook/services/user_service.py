from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging

from ..models.user import User
from ..models.appointment import Appointment
from ..models.professional import HealthcareProfessional, Specialty
from ..core.exceptions import NotFoundError, ServiceError
from ..core.security import TokenPayload
from ..schemas.user import ProfileResponse, ProfileOut, AppointmentOut

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, identity: TokenPayload) -> ProfileResponse:
        """Profile of the token's user plus the appointments they booked.

        Every failure asks the client to drop its token.
        """
        try:
            user = self.db.query(User).filter(User.id == identity.sub).first()
            if not user:
                raise NotFoundError("User not found", remove_token=True)

            rows = (
                self.db.query(
                    Appointment.id,
                    Appointment.appointment_date,
                    Appointment.status,
                    Appointment.appointment_type,
                    Specialty.name,
                )
                .outerjoin(HealthcareProfessional, Appointment.professional_id == HealthcareProfessional.id)
                .outerjoin(Specialty, HealthcareProfessional.specialty_id == Specialty.id)
                .filter(Appointment.user_id == user.id)
                .order_by(Appointment.appointment_date)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.exception(f"Profile query failed for user {identity.sub}")
            raise ServiceError(remove_token=True) from exc

        appointments = [
            AppointmentOut(
                appointment_id=appointment_id,
                appointment_date=appointment_date,
                appointment_status=status,
                appointment_type=appointment_type,
                specialty_name=specialty_name,
            )
            for appointment_id, appointment_date, status, appointment_type, specialty_name in rows
        ]

        return ProfileResponse(
            user=ProfileOut(
                user_id=user.id,
                first_name=user.first_name,
                last_name=user.last_name,
                email=user.email,
                phone_number=user.phone_number,
                date_of_birth=user.date_of_birth,
                role=user.role,
            ),
            appointments=appointments,
        )
