"""
Unit Tests for request schemas and multipart dto parsing
"""
from datetime import date, timedelta

import pytest
from pydantic import ValidationError

from app.core.exceptions import ValidationError as PetConnectValidationError
from app.models.record import RecordType
from app.models.user import RoleEnum
from app.schemas.auth import OwnerRegistration, PasswordReset
from app.schemas.certificate import CertificateGenerationRequest
from app.schemas.pet import PetActivation, PetOwnerUpdate, PetRegistration
from app.schemas.record import RecordCreate, VaccineCreate
from app.schemas.staff import ClinicStaffCreation, ClinicStaffUpdate
from app.utils.multipart import parse_dto


class TestOwnerRegistration:

    def test_valid(self):
        data = OwnerRegistration(username="jdoe", email="jdoe@example.com", password="password123", phone="600000000")

        assert data.username == "jdoe"

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            OwnerRegistration(username="jdoe", email="not-an-email", password="password123", phone="600000000")

    def test_short_password(self):
        with pytest.raises(ValidationError):
            OwnerRegistration(username="jdoe", email="jdoe@example.com", password="short", phone="600000000")

    def test_missing_phone(self):
        with pytest.raises(ValidationError):
            OwnerRegistration(username="jdoe", email="jdoe@example.com", password="password123")


class TestPasswordReset:

    def test_new_password_length(self):
        with pytest.raises(ValidationError):
            PasswordReset(token="t", new_password="short", confirm_password="short")


class TestPetSchemas:

    def test_registration_rejects_future_birth_date(self):
        with pytest.raises(ValidationError):
            PetRegistration(name="Rex", specie="DOG", birth_date=date.today() + timedelta(days=1))

    def test_registration_accepts_today(self):
        data = PetRegistration(name="Rex", specie="DOG", birth_date=date.today())

        assert data.breed_id is None

    def test_owner_update_tracks_sent_fields(self):
        data = PetOwnerUpdate(name="Max")

        assert data.model_fields_set == {"name"}

    def test_activation_requires_everything(self):
        with pytest.raises(ValidationError):
            PetActivation(name="Rex", color="Brown", gender="MALE", birth_date=date(2020, 1, 1), breed_id="b1")


class TestRecordSchemas:

    def test_vaccine_validity_not_negative(self):
        with pytest.raises(ValidationError):
            VaccineCreate(name="Rabisin", validity=-1, batch_number="B1")

    def test_record_with_vaccine(self):
        data = RecordCreate(
            pet_id="p1",
            type="VACCINE",
            vaccine={"name": "Rabisin", "validity": 1, "batch_number": "B1", "is_rabies_vaccine": True},
        )

        assert data.type == RecordType.VACCINE
        assert data.vaccine.is_rabies_vaccine is True


class TestStaffSchemas:

    def test_creation(self):
        data = ClinicStaffCreation(
            username="drvet", email="vet@example.com", password="password123",
            name="Ana", surname="Lopez", role="VET", license_number="LIC-1",
        )

        assert data.role == RoleEnum.VET

    def test_update_roles_are_a_set(self):
        data = ClinicStaffUpdate(roles=["VET", "ADMIN", "VET"])

        assert data.roles == {RoleEnum.VET, RoleEnum.ADMIN}


class TestCertificateRequest:

    def test_passwords_required(self):
        with pytest.raises(ValidationError):
            CertificateGenerationRequest(pet_id="p1", certificate_number="AHC-1",
                                         vet_private_key_password="", clinic_private_key_password="x")


class TestParseDto:

    def test_valid_json(self):
        data = parse_dto(PetOwnerUpdate, '{"name": "Max"}')

        assert data.name == "Max"

    def test_missing_required(self):
        with pytest.raises(PetConnectValidationError):
            parse_dto(PetRegistration, None)

    def test_missing_optional(self):
        assert parse_dto(PetOwnerUpdate, "  ", required=False) is None

    def test_invalid_content(self):
        with pytest.raises(PetConnectValidationError) as exc_info:
            parse_dto(PetRegistration, '{"name": "Rex"}')

        assert exc_info.value.details["field"] in {"specie", "birth_date"}

    def test_malformed_json(self):
        with pytest.raises(PetConnectValidationError):
            parse_dto(PetRegistration, "{oops")
