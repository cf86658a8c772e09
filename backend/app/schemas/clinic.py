from pydantic import BaseModel, Field
from typing import Optional

from app.models.clinic import Clinic, Country
from app.models.user import User


class ClinicDto(BaseModel):
    id: str
    name: str
    address: str
    city: str
    country: Country
    phone: str
    public_key: Optional[str] = None

    @classmethod
    def from_entity(cls, clinic: Clinic) -> "ClinicDto":
        return cls(
            id=clinic.id,
            name=clinic.name,
            address=clinic.address,
            city=clinic.city,
            country=clinic.country,
            phone=clinic.phone,
            public_key=clinic.public_key,
        )


class ClinicUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    country: Country
    phone: str = Field(..., min_length=1, max_length=20)


class VetSummary(BaseModel):
    """Vet card shown to owners choosing a vet and on pet/certificate views"""
    id: str
    name: Optional[str] = None
    surname: Optional[str] = None
    avatar: Optional[str] = None
    email: str
    license_number: Optional[str] = None
    clinic_id: Optional[str] = None
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    clinic_city: Optional[str] = None
    clinic_country: Optional[Country] = None
    clinic_phone: Optional[str] = None

    @classmethod
    def from_entity(cls, vet: User) -> "VetSummary":
        clinic = vet.clinic
        return cls(
            id=vet.id,
            name=vet.name,
            surname=vet.surname,
            avatar=vet.avatar,
            email=vet.email,
            license_number=vet.license_number,
            clinic_id=clinic.id if clinic else None,
            clinic_name=clinic.name if clinic else None,
            clinic_address=clinic.address if clinic else None,
            clinic_city=clinic.city if clinic else None,
            clinic_country=clinic.country if clinic else None,
            clinic_phone=clinic.phone if clinic else None,
        )
