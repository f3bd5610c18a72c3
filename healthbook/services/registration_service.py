from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import logging

from ..models.user import User, UserStatus
from ..models.professional import HealthcareProfessional, Specialty, AvailabilityStatus
from ..core.exceptions import ConflictError, ServiceError
from ..core.security import get_password_hash, UserRole
from ..schemas.auth import RegisterBase, PatientRegister, ProfessionalRegister

logger = logging.getLogger(__name__)


LICENSE_CONSTRAINTS = ("uq_healthcare_professionals_license_number", "healthcare_professionals.license_number")
EMAIL_CONSTRAINTS = ("uq_users_email", "users.email")


def violated_constraint(exc: IntegrityError) -> str:
    """Name of the constraint that fired, without the submitted values.

    psycopg2 reports it in ``diag``; other drivers only have the message,
    where SQLite names ``table.column`` and MySQL puts the key last.
    """
    name = getattr(getattr(exc.orig, "diag", None), "constraint_name", None)
    if name:
        return name.lower()

    lines = str(exc.orig).lower().splitlines()
    message = lines[0] if lines else ""
    if " for key " in message:
        return message.rsplit(" for key ", 1)[1].strip(" '`\"()")
    return message


def conflict_from_integrity_error(exc: IntegrityError):
    """Map a unique-constraint violation to the field that caused it.

    Returns None for integrity errors that are not duplicates (NOT NULL,
    foreign keys); those are server errors.
    """
    message = str(exc.orig).lower()
    if "unique" not in message and "duplicate" not in message:
        return None

    constraint = violated_constraint(exc)
    if any(marker in constraint for marker in LICENSE_CONSTRAINTS):
        return ConflictError("License number already registered", field="licenseNumber")
    if any(marker in constraint for marker in EMAIL_CONSTRAINTS):
        return ConflictError("Email already registered", field="email")
    return ConflictError("Duplicate information detected")


class RegistrationService:
    def __init__(self, db: Session):
        self.db = db

    def _build_user(self, data: RegisterBase, role: UserRole) -> User:
        return User(
            email=data.email,
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone_number=data.phone_number,
            date_of_birth=data.date_of_birth,
            gender=data.gender,
            gender_identity=data.gender_identity,
            role=role,
            status=UserStatus.ACTIVE,
        )

    def _fail(self, exc: Exception, what: str):
        """Roll back and translate a storage error. Always raises."""
        self.db.rollback()
        if isinstance(exc, IntegrityError):
            conflict = conflict_from_integrity_error(exc)
            if conflict is not None:
                logger.info(f"{what} rejected: {conflict.detail}")
                raise conflict from exc
        logger.exception(f"{what} failed")
        raise ServiceError() from exc

    def register_patient(self, data: PatientRegister) -> int:
        """Create a patient account and return its id."""
        user = self._build_user(data, UserRole.PATIENT)

        try:
            self.db.add(user)
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail(exc, "Patient registration")

        logger.info(f"Patient registered with id {user.id}")
        return user.id

    def register_professional(self, data: ProfessionalRegister) -> int:
        """Create the user, specialty and professional rows in one transaction."""
        user = self._build_user(data, UserRole.HEALTHCARE_PROFESSIONAL)

        try:
            self.db.add(user)
            self.db.flush()
            user_id = user.id

            specialty_id = self.resolve_specialty(data.specialty)

            self.db.add(HealthcareProfessional(
                user_id=user_id,
                specialty_id=specialty_id,
                experience_years=data.experience,
                license_number=data.license_number,
                education=data.education,
                consultation_fee=data.consultation_fee,
                status=AvailabilityStatus.AVAILABLE,
            ))
            self.db.flush()
            self.db.commit()
        except Exception as exc:
            self._fail(exc, "Professional registration")

        logger.info(f"Healthcare professional registered with id {user_id}")
        return user_id

    def resolve_specialty(self, name: str) -> int:
        """Return the id of the named specialty, creating it if needed.

        The unique constraint on the name decides concurrent first inserts:
        the loser rolls back its savepoint and reads the winner's row.
        """
        specialty = self.db.query(Specialty).filter(Specialty.name == name).first()
        if specialty:
            return specialty.id

        try:
            with self.db.begin_nested():
                specialty = Specialty(name=name)
                self.db.add(specialty)
        except IntegrityError:
            logger.info(f"Specialty '{name}' was created concurrently, reusing it")
            specialty = self.db.query(Specialty).filter(Specialty.name == name).one()
        else:
            logger.info(f"Created specialty '{name}' with id {specialty.id}")

        return specialty.id
