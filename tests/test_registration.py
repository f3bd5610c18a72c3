from decimal import Decimal

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query

from healthbook.core.security import UserRole
from healthbook.models import (
    User, UserStatus, Gender, HealthcareProfessional, Specialty, AvailabilityStatus
)
from healthbook.services.registration_service import RegistrationService, conflict_from_integrity_error

from .payloads import patient_payload, professional_payload


class TestPatientRegistration:

    def test_register_patient(self, client, db):
        """A valid payload creates one active patient."""
        response = client.post("/auth/register/patient", json=patient_payload())
        assert response.status_code == 201

        data = response.json()
        assert isinstance(data["userId"], int)
        assert "password" not in data
        assert "passwordHash" not in data

        user = db.query(User).filter(User.id == data["userId"]).one()
        assert user.email == "ana@example.com"
        assert user.role == UserRole.PATIENT
        assert user.status == UserStatus.ACTIVE
        assert user.gender == Gender.FEMALE
        assert user.gender_identity is None
        assert user.password_hash != "longenough1"
        assert user.password_hash.startswith("$2")

    def test_register_patient_without_optional_fields(self, client, db):
        payload = patient_payload()
        del payload["phoneNumber"]
        del payload["dateOfBirth"]

        response = client.post("/auth/register/patient", json=payload)
        assert response.status_code == 201

        user = db.query(User).one()
        assert user.phone_number is None
        assert user.date_of_birth is None

    def test_other_gender_keeps_identity(self, client, db):
        payload = patient_payload(gender="other", customGender="Non-binary")
        response = client.post("/auth/register/patient", json=payload)
        assert response.status_code == 201

        user = db.query(User).one()
        assert user.gender == Gender.OTHER
        assert user.gender_identity == "Non-binary"

    def test_identity_dropped_unless_other(self, client, db):
        payload = patient_payload(gender="male", customGender="ignored")
        client.post("/auth/register/patient", json=payload)

        assert db.query(User).one().gender_identity is None

    def test_spanish_gender_values(self, client, db):
        response = client.post("/auth/register/patient", json=patient_payload(gender="femenino"))
        assert response.status_code == 201
        assert db.query(User).one().gender == Gender.FEMALE

    def test_duplicate_email(self, client, db):
        """Second registration with the same email conflicts."""
        first = client.post("/auth/register/patient", json=patient_payload())
        assert first.status_code == 201

        response = client.post("/auth/register/patient", json=patient_payload(firstName="Other"))
        assert response.status_code == 409
        assert response.json()["message"] == "Email already registered"
        assert response.json()["field"] == "email"
        assert db.query(User).count() == 1

    def test_duplicate_email_ignores_case(self, client, db):
        client.post("/auth/register/patient", json=patient_payload())

        response = client.post("/auth/register/patient", json=patient_payload(email="ANA@Example.com"))
        assert response.status_code == 409
        assert db.query(User).count() == 1

    def test_invalid_phone(self, client, db):
        response = client.post("/auth/register/patient", json=patient_payload(phoneNumber="12-ab"))
        assert response.status_code == 400

        fields = [error["field"] for error in response.json()["errors"]]
        assert "phoneNumber" in fields
        assert db.query(User).count() == 0

    def test_invalid_date_of_birth(self, client, db):
        response = client.post("/auth/register/patient", json=patient_payload(dateOfBirth="not-a-date"))
        assert response.status_code == 400
        assert "dateOfBirth" in [error["field"] for error in response.json()["errors"]]

    def test_invalid_gender(self, client, db):
        response = client.post("/auth/register/patient", json=patient_payload(gender="unknown"))
        assert response.status_code == 400
        assert "gender" in [error["field"] for error in response.json()["errors"]]

    def test_blank_name(self, client, db):
        response = client.post("/auth/register/patient", json=patient_payload(firstName="   "))
        assert response.status_code == 400
        assert "firstName" in [error["field"] for error in response.json()["errors"]]

    def test_short_password(self, client, db):
        response = client.post("/auth/register/patient", json=patient_payload(password="short"))
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid input data"

    def test_password_over_72_bytes(self, client, db):
        response = client.post("/auth/register/patient", json=patient_payload(password="a" * 73))
        assert response.status_code == 400

    def test_invalid_email(self, client, db):
        response = client.post("/auth/register/patient", json=patient_payload(email="not-an-email"))
        assert response.status_code == 400
        assert "email" in [error["field"] for error in response.json()["errors"]]


class TestProfessionalRegistration:

    def test_register_professional(self, client, db):
        """User, specialty and professional rows are all written."""
        response = client.post("/auth/register/professional", json=professional_payload())
        assert response.status_code == 201
        user_id = response.json()["userId"]

        user = db.query(User).filter(User.id == user_id).one()
        assert user.role == UserRole.HEALTHCARE_PROFESSIONAL
        assert user.status == UserStatus.ACTIVE

        professional = db.query(HealthcareProfessional).filter(
            HealthcareProfessional.user_id == user_id
        ).one()
        assert professional.status == AvailabilityStatus.AVAILABLE
        assert professional.license_number == "LIC-1001"
        assert professional.experience_years == 12
        assert professional.education == "Universidad de Madrid"
        assert professional.consultation_fee == Decimal("150.50")
        assert professional.specialty.name == "Cardiology"

    def test_optional_fields_absent(self, client, db):
        payload = professional_payload()
        for field in ("experience", "licenseNumber", "education", "consultationFee"):
            del payload[field]

        response = client.post("/auth/register/professional", json=payload)
        assert response.status_code == 201

        professional = db.query(HealthcareProfessional).one()
        assert professional.license_number is None
        assert professional.consultation_fee is None

    def test_numeric_fee(self, client, db):
        response = client.post("/auth/register/professional", json=professional_payload(consultationFee=80))
        assert response.status_code == 201
        assert db.query(HealthcareProfessional).one().consultation_fee == Decimal("80")

    def test_specialty_is_shared(self, client, db):
        """Two professionals with the same specialty reuse one row."""
        first = client.post("/auth/register/professional", json=professional_payload())
        second = client.post(
            "/auth/register/professional",
            json=professional_payload(email="marta@example.com", licenseNumber="LIC-2002")
        )
        assert first.status_code == 201
        assert second.status_code == 201

        assert db.query(Specialty).filter(Specialty.name == "Cardiology").count() == 1
        specialty_ids = {p.specialty_id for p in db.query(HealthcareProfessional).all()}
        assert len(specialty_ids) == 1

    def test_new_specialty_created(self, client, db):
        client.post("/auth/register/professional", json=professional_payload())
        client.post(
            "/auth/register/professional",
            json=professional_payload(
                email="marta@example.com", licenseNumber="LIC-2002", specialty="Dermatology"
            )
        )

        names = sorted(s.name for s in db.query(Specialty).all())
        assert names == ["Cardiology", "Dermatology"]

    def test_specialty_created_concurrently(self, client, db, monkeypatch):
        """The lookup misses a specialty another request just inserted."""
        existing = Specialty(name="Cardiology")
        db.add(existing)
        db.commit()
        existing_id = existing.id

        original_first = Query.first
        missed = []

        def first_missing_specialty(self):
            if not missed and self.column_descriptions[0]["entity"] is Specialty:
                missed.append(True)
                return None
            return original_first(self)

        monkeypatch.setattr(Query, "first", first_missing_specialty)

        response = client.post("/auth/register/professional", json=professional_payload())
        assert response.status_code == 201
        assert missed == [True]

        assert db.query(Specialty).count() == 1
        professional = db.query(HealthcareProfessional).one()
        assert professional.specialty_id == existing_id
        assert db.query(User).filter(User.id == response.json()["userId"]).count() == 1

    def test_email_resembling_license_column(self, client, db):
        """The conflicting field comes from the constraint, not the values."""
        client.post("/auth/register/patient", json=patient_payload(email="license_number@example.com"))

        response = client.post(
            "/auth/register/professional",
            json=professional_payload(email="license_number@example.com")
        )
        assert response.status_code == 409
        assert response.json()["field"] == "email"
        assert db.query(HealthcareProfessional).count() == 0

    def test_duplicate_license_rolls_back(self, client, db):
        """A license conflict leaves no user behind."""
        client.post("/auth/register/professional", json=professional_payload())

        response = client.post(
            "/auth/register/professional",
            json=professional_payload(email="marta@example.com")
        )
        assert response.status_code == 409
        assert response.json()["message"] == "License number already registered"
        assert response.json()["field"] == "licenseNumber"

        assert db.query(User).filter(User.email == "marta@example.com").count() == 0
        assert db.query(HealthcareProfessional).count() == 1

    def test_duplicate_email(self, client, db):
        client.post("/auth/register/patient", json=patient_payload(email="luis@example.com"))

        response = client.post("/auth/register/professional", json=professional_payload())
        assert response.status_code == 409
        assert response.json()["message"] == "Email already registered"
        assert db.query(HealthcareProfessional).count() == 0
        assert db.query(User).count() == 1

    def test_failure_mid_transaction_rolls_back(self, client, db, monkeypatch):
        """Nothing persists when a later step fails."""
        def broken_resolve(self, name):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(RegistrationService, "resolve_specialty", broken_resolve)

        response = client.post("/auth/register/professional", json=professional_payload())
        assert response.status_code == 500
        assert "connection lost" not in response.text
        assert db.query(User).count() == 0
        assert db.query(HealthcareProfessional).count() == 0

    def test_negative_fee(self, client, db):
        response = client.post("/auth/register/professional", json=professional_payload(consultationFee="-5"))
        assert response.status_code == 400
        assert "consultationFee" in [error["field"] for error in response.json()["errors"]]
        assert db.query(User).count() == 0

    def test_non_numeric_fee(self, client, db):
        response = client.post("/auth/register/professional", json=professional_payload(consultationFee="free"))
        assert response.status_code == 400

    def test_negative_experience(self, client, db):
        response = client.post("/auth/register/professional", json=professional_payload(experience=-1))
        assert response.status_code == 400

    def test_missing_specialty(self, client, db):
        payload = professional_payload()
        del payload["specialty"]

        response = client.post("/auth/register/professional", json=payload)
        assert response.status_code == 400
        assert "specialty" in [error["field"] for error in response.json()["errors"]]


class FakeDiag:
    def __init__(self, constraint_name):
        self.constraint_name = constraint_name


class FakeDriverError(Exception):
    def __init__(self, message, constraint_name=None):
        super().__init__(message)
        if constraint_name is not None:
            self.diag = FakeDiag(constraint_name)


class TestConflictMapping:

    def test_constraint_name_wins_over_message(self):
        orig = FakeDriverError(
            'duplicate key value violates unique constraint "uq_users_email"\n'
            "DETAIL:  Key (email)=(license_number@x.com) already exists.",
            constraint_name="uq_users_email"
        )
        conflict = conflict_from_integrity_error(IntegrityError("INSERT INTO users", {}, orig))
        assert conflict.field == "email"

    def test_license_constraint_name(self):
        orig = FakeDriverError(
            'duplicate key value violates unique constraint "uq_healthcare_professionals_license_number"',
            constraint_name="uq_healthcare_professionals_license_number"
        )
        conflict = conflict_from_integrity_error(IntegrityError("INSERT", {}, orig))
        assert conflict.field == "licenseNumber"

    def test_mysql_key_name(self):
        orig = FakeDriverError(
            "(1062, \"Duplicate entry 'license_number@x.com' for key 'users.uq_users_email'\")"
        )
        conflict = conflict_from_integrity_error(IntegrityError("INSERT", {}, orig))
        assert conflict.field == "email"

    def test_not_a_duplicate(self):
        orig = FakeDriverError("NOT NULL constraint failed: users.email")
        assert conflict_from_integrity_error(IntegrityError("INSERT", {}, orig)) is None

    def test_unknown_constraint(self):
        orig = FakeDriverError("UNIQUE constraint failed: users.phone_number")
        conflict = conflict_from_integrity_error(IntegrityError("INSERT", {}, orig))
        assert conflict.field is None
        assert conflict.detail == "Duplicate information detected"


class TestRateLimit:

    def test_too_many_registrations(self, client, db, monkeypatch):
        from healthbook.core.config import settings
        monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 2)

        for i in range(2):
            response = client.post("/auth/register/patient", json=patient_payload(email=f"p{i}@example.com"))
            assert response.status_code == 201

        response = client.post("/auth/register/patient", json=patient_payload(email="p9@example.com"))
        assert response.status_code == 429
        assert db.query(User).count() == 2
