from pydantic import BaseModel, Field
from datetime import datetime

from app.models.certificate import Certificate
from app.schemas.clinic import ClinicDto, VetSummary
from app.schemas.pet import PetProfile
from app.schemas.record import RecordView


class CertificateGenerationRequest(BaseModel):
    pet_id: str
    certificate_number: str = Field(..., min_length=1, max_length=100)
    vet_private_key_password: str = Field(..., min_length=1)
    clinic_private_key_password: str = Field(..., min_length=1)


class CertificateView(BaseModel):
    id: str
    certificate_number: str
    created_at: datetime
    pet: PetProfile
    originating_record: RecordView
    generator_vet: VetSummary
    issuing_clinic: ClinicDto
    payload: str
    hash: str
    vet_signature: str
    clinic_signature: str

    @classmethod
    def from_entity(cls, certificate: Certificate) -> "CertificateView":
        return cls(
            id=certificate.id,
            certificate_number=certificate.certificate_number,
            created_at=certificate.created_at,
            pet=PetProfile.from_entity(certificate.pet),
            originating_record=RecordView.from_entity(certificate.medical_record),
            generator_vet=VetSummary.from_entity(certificate.generator_vet),
            issuing_clinic=ClinicDto.from_entity(certificate.issuing_clinic),
            payload=certificate.payload,
            hash=certificate.hash,
            vet_signature=certificate.vet_signature,
            clinic_signature=certificate.clinic_signature,
        )
