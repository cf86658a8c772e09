from sqlalchemy import Column, String, Date, Enum as SQLEnum, ForeignKey, Table, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid
from app.models.audit import AuditMixin


GENERIC_BREED_NAME = "Mixed/Other"


class Specie(str, enum.Enum):
    DOG = "DOG"
    CAT = "CAT"
    FERRET = "FERRET"
    RABBIT = "RABBIT"


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class PetStatus(str, enum.Enum):
    """Lifecycle: PENDING until a vet activates, ACTIVE while vets are associated"""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


pet_vets = Table(
    "pet_vets",
    Base.metadata,
    Column("pet_id", GUID, ForeignKey("pets.id", ondelete="CASCADE"), primary_key=True),
    Column("vet_id", GUID, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Breed(AuditMixin, Base):
    __tablename__ = "breeds"
    __table_args__ = (UniqueConstraint("name", "specie", name="uq_breed_name_specie"),)

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False)
    specie = Column(SQLEnum(Specie, name="specie"), nullable=False, index=True)
    image_url = Column(String(500), nullable=True)

    @property
    def is_generic(self) -> bool:
        return self.name == GENERIC_BREED_NAME

    def __repr__(self):
        return f"<Breed {self.specie.value}/{self.name}>"


class Pet(AuditMixin, Base):
    __tablename__ = "pets"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(50), nullable=False)
    color = Column(String(30), nullable=True)
    gender = Column(SQLEnum(Gender, name="gender"), nullable=True)
    birth_date = Column(Date, nullable=False)
    microchip = Column(String(50), unique=True, nullable=True)
    image = Column(String(500), nullable=True)
    status = Column(SQLEnum(PetStatus, name="pet_status"), default=PetStatus.PENDING, nullable=False)

    owner_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)
    breed_id = Column(GUID, ForeignKey("breeds.id"), nullable=False)
    pending_activation_clinic_id = Column(GUID, ForeignKey("clinics.id"), nullable=True, index=True)
    pending_certificate_clinic_id = Column(GUID, ForeignKey("clinics.id"), nullable=True, index=True)

    owner = relationship("User", foreign_keys=[owner_id], lazy="selectin")
    breed = relationship("Breed", lazy="selectin")
    pending_activation_clinic = relationship(
        "Clinic", foreign_keys=[pending_activation_clinic_id], lazy="selectin"
    )
    pending_certificate_clinic = relationship(
        "Clinic", foreign_keys=[pending_certificate_clinic_id], lazy="selectin"
    )
    associated_vets = relationship("User", secondary=pet_vets, lazy="selectin")

    @property
    def specie(self) -> Specie:
        return self.breed.specie

    def __repr__(self):
        return f"<Pet {self.name} ({self.status.value})>"
