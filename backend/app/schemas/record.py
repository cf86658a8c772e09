from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.models.pet import Specie
from app.models.record import Record, RecordType, Vaccine
from app.schemas.user import UserProfile


class VaccineCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    validity: int = Field(..., ge=0, description="Validity in years; 0 means valid on the day only")
    laboratory: Optional[str] = Field(None, max_length=100)
    batch_number: str = Field(..., min_length=1, max_length=50)
    is_rabies_vaccine: bool = False


class VaccineView(BaseModel):
    name: str
    validity: int
    laboratory: Optional[str] = None
    batch_number: str
    is_rabies_vaccine: bool

    @classmethod
    def from_entity(cls, vaccine: Vaccine) -> "VaccineView":
        return cls(
            name=vaccine.name,
            validity=vaccine.validity,
            laboratory=vaccine.laboratory,
            batch_number=vaccine.batch_number,
            is_rabies_vaccine=vaccine.is_rabies_vaccine,
        )


class RecordCreate(BaseModel):
    pet_id: str
    type: RecordType
    description: Optional[str] = Field(None, max_length=2000)
    vaccine: Optional[VaccineCreate] = None
    vet_private_key_password: Optional[str] = None


class RecordUpdate(BaseModel):
    type: Optional[RecordType] = None
    description: Optional[str] = Field(None, max_length=2000)


class RecordView(BaseModel):
    id: str
    type: RecordType
    description: Optional[str] = None
    vet_signature: Optional[str] = None
    is_immutable: bool
    created_at: datetime
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    creator: UserProfile
    vaccine: Optional[VaccineView] = None
    created_in_clinic_id: Optional[str] = None
    created_in_clinic_name: Optional[str] = None
    pet_id: str
    pet_name: str
    pet_specie: Specie

    @classmethod
    def from_entity(cls, record: Record) -> "RecordView":
        clinic = record.created_in_clinic
        return cls(
            id=record.id,
            type=record.type,
            description=record.description,
            vet_signature=record.vet_signature,
            is_immutable=record.is_immutable,
            created_at=record.created_at,
            created_by=record.created_by,
            updated_at=record.updated_at,
            updated_by=record.updated_by,
            creator=UserProfile.from_entity(record.creator),
            vaccine=VaccineView.from_entity(record.vaccine) if record.vaccine else None,
            created_in_clinic_id=clinic.id if clinic else None,
            created_in_clinic_name=clinic.name if clinic else None,
            pet_id=record.pet_id,
            pet_name=record.pet.name,
            pet_specie=record.pet.breed.specie,
        )


class TemporaryAccessRequest(BaseModel):
    duration_string: str = Field(..., min_length=1, description="ISO-8601 duration, e.g. PT1H or P1D")


class TemporaryAccessResponse(BaseModel):
    token: str
