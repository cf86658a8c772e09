from sqlalchemy import Column, String, Text, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.types import GUID, generate_uuid
from app.models.audit import AuditMixin


class Certificate(AuditMixin, Base):
    """Animal health certificate issued from a signed rabies vaccination record"""
    __tablename__ = "certificates"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    certificate_number = Column(String(100), unique=True, nullable=False)
    payload = Column(Text, nullable=False)
    hash = Column(String(64), nullable=False)
    vet_signature = Column(Text, nullable=False)
    clinic_signature = Column(Text, nullable=False)

    pet_id = Column(GUID, ForeignKey("pets.id"), nullable=False, index=True)
    medical_record_id = Column(GUID, ForeignKey("records.id"), unique=True, nullable=False)
    generator_vet_id = Column(GUID, ForeignKey("users.id"), nullable=False)
    issuing_clinic_id = Column(GUID, ForeignKey("clinics.id"), nullable=False)

    pet = relationship("Pet", lazy="selectin")
    medical_record = relationship("Record", lazy="selectin")
    generator_vet = relationship("User", lazy="selectin")
    issuing_clinic = relationship("Clinic", lazy="selectin")

    def __repr__(self):
        return f"<Certificate {self.certificate_number}>"
