from sqlalchemy import Column, String, Text, Boolean, Integer, Enum as SQLEnum, ForeignKey
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid
from app.models.audit import AuditMixin


class RecordType(str, enum.Enum):
    FIRST_VISIT = "FIRST_VISIT"
    ANNUAL_CHECK = "ANNUAL_CHECK"
    VACCINE = "VACCINE"
    ILLNESS = "ILLNESS"
    URGENCY = "URGENCY"
    OTHER = "OTHER"


class Record(AuditMixin, Base):
    """Medical record entry for a pet. Signed when created by a vet."""
    __tablename__ = "records"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    type = Column(SQLEnum(RecordType, name="record_type"), nullable=False)
    description = Column(Text, nullable=True)
    vet_signature = Column(Text, nullable=True)
    is_immutable = Column(Boolean, default=False, nullable=False)

    pet_id = Column(GUID, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False, index=True)
    creator_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    created_in_clinic_id = Column(GUID, ForeignKey("clinics.id"), nullable=True, index=True)

    pet = relationship("Pet", lazy="selectin")
    creator = relationship("User", lazy="selectin")
    created_in_clinic = relationship("Clinic", lazy="selectin")
    vaccine = relationship(
        "Vaccine", uselist=False, lazy="selectin", cascade="all, delete-orphan"
    )

    @property
    def is_signed(self) -> bool:
        return bool(self.vet_signature)

    def __repr__(self):
        return f"<Record {self.type.value} for pet {self.pet_id}>"


class Vaccine(AuditMixin, Base):
    __tablename__ = "vaccines"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False)
    validity = Column(Integer, nullable=False)  # years
    laboratory = Column(String(100), nullable=True)
    batch_number = Column(String(50), nullable=False)
    is_rabies_vaccine = Column(Boolean, default=False, nullable=False)

    record_id = Column(GUID, ForeignKey("records.id", ondelete="CASCADE"), unique=True, nullable=False)

    def __repr__(self):
        return f"<Vaccine {self.name} batch {self.batch_number}>"
