# Re-export all models for convenient imports
from app.models.user import (
    User, Owner, ClinicStaff, Vet, Role, Permission, RoleEnum, UserType,
)
from app.models.clinic import Clinic, Country
from app.models.pet import Pet, Breed, Specie, Gender, PetStatus, GENERIC_BREED_NAME
from app.models.record import Record, Vaccine, RecordType
from app.models.certificate import Certificate
from app.models.password_reset_token import PasswordResetToken

__all__ = [
    # Users
    "User",
    "Owner",
    "ClinicStaff",
    "Vet",
    "Role",
    "Permission",
    "RoleEnum",
    "UserType",
    # Clinics
    "Clinic",
    "Country",
    # Pets
    "Pet",
    "Breed",
    "Specie",
    "Gender",
    "PetStatus",
    "GENERIC_BREED_NAME",
    # Medical records
    "Record",
    "Vaccine",
    "RecordType",
    # Certificates
    "Certificate",
    # Auth
    "PasswordResetToken",
]
