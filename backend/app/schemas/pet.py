from pydantic import AfterValidator, BaseModel, Field
from typing import Annotated, Optional, List
from datetime import date, datetime

from app.models.pet import Pet, Breed, Specie, Gender, PetStatus
from app.schemas.clinic import VetSummary


def _not_in_future(value: Optional[date]) -> Optional[date]:
    if value is not None and value > date.today():
        raise ValueError("Birth date cannot be in the future")
    return value


PastOrPresentDate = Annotated[date, AfterValidator(_not_in_future)]


class BreedDto(BaseModel):
    id: str
    name: str
    specie: Specie
    image_url: Optional[str] = None

    @classmethod
    def from_entity(cls, breed: Breed) -> "BreedDto":
        return cls(id=breed.id, name=breed.name, specie=breed.specie, image_url=breed.image_url)


class PetRegistration(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    specie: Specie
    birth_date: PastOrPresentDate
    breed_id: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, max_length=30)
    gender: Optional[Gender] = None
    microchip: Optional[str] = Field(None, max_length=50)


class PetOwnerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    image: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, max_length=30)
    gender: Optional[Gender] = None
    birth_date: Optional[PastOrPresentDate] = None
    microchip: Optional[str] = Field(None, max_length=50)
    breed_id: Optional[str] = None


class PetActivation(BaseModel):
    """Data a vet confirms when activating a pending pet; all of it is required"""
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(..., min_length=1, max_length=30)
    gender: Gender
    birth_date: PastOrPresentDate
    microchip: str = Field(..., min_length=1, max_length=50)
    breed_id: str
    image: Optional[str] = Field(None, max_length=500)


class PetClinicUpdate(BaseModel):
    color: Optional[str] = Field(None, max_length=30)
    gender: Optional[Gender] = None
    birth_date: Optional[PastOrPresentDate] = None
    microchip: Optional[str] = Field(None, max_length=50)
    breed_id: Optional[str] = None


class PetProfile(BaseModel):
    id: str
    name: str
    specie: Specie
    color: Optional[str] = None
    gender: Optional[Gender] = None
    birth_date: date
    microchip: Optional[str] = None
    image: Optional[str] = None
    status: PetStatus
    owner_id: str
    owner_username: Optional[str] = None
    breed_id: str
    breed_name: str
    pending_activation_clinic_id: Optional[str] = None
    pending_activation_clinic_name: Optional[str] = None
    pending_certificate_clinic_id: Optional[str] = None
    associated_vets: List[VetSummary] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, pet: Pet) -> "PetProfile":
        pending_clinic = pet.pending_activation_clinic
        return cls(
            id=pet.id,
            name=pet.name,
            specie=pet.breed.specie,
            color=pet.color,
            gender=pet.gender,
            birth_date=pet.birth_date,
            microchip=pet.microchip,
            image=pet.image,
            status=pet.status,
            owner_id=pet.owner_id,
            owner_username=pet.owner.username if pet.owner else None,
            breed_id=pet.breed_id,
            breed_name=pet.breed.name,
            pending_activation_clinic_id=pending_clinic.id if pending_clinic else None,
            pending_activation_clinic_name=pending_clinic.name if pending_clinic else None,
            pending_certificate_clinic_id=pet.pending_certificate_clinic_id,
            associated_vets=[VetSummary.from_entity(vet) for vet in pet.associated_vets],
            created_at=pet.created_at,
            updated_at=pet.updated_at,
        )
