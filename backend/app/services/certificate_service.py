"""
Certificate Service - issues animal health certificates (AHC).

A certificate needs:
- a signed rabies vaccination record that is still valid today
- a signed annual checkup no older than CHECKUP_VALIDITY_YEARS

The JSON payload is hashed (SHA-256) and the hash is signed by the issuing
vet and by the clinic. The rabies record then becomes immutable.
"""

import json
from datetime import date, datetime, time, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    CertificateAlreadyExistsForRecordError,
    CertificateNumberAlreadyExistsError,
    MissingRabiesVaccineError,
    MissingRecentCheckupError,
    ValidationError,
)
from app.core.logging_config import logger
from app.core.types import utcnow
from app.models.certificate import Certificate
from app.models.clinic import Clinic
from app.models.pet import Pet
from app.models.record import Record, RecordType, Vaccine
from app.models.user import User
from app.schemas.certificate import CertificateGenerationRequest, CertificateView
from app.services.hashing_service import hashing_service
from app.services.notification_service import notification_service
from app.services.qr_code_service import qr_code_service
from app.services.signing_service import signing_service
from app.utils.authorization import authorization_helper
from app.utils.entity_finder import entity_finder
from app.utils.pagination import PaginationParams, paginate, map_page


def add_years(day: date, years: int) -> date:
    """Same calendar day years later; 29 February falls back to 28 February"""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


def is_rabies_record_valid(record: Record, today: Optional[date] = None) -> bool:
    """A validity of 0 years means the vaccine only counts on the day it was given"""
    vaccine = record.vaccine
    if vaccine is None or vaccine.validity is None or record.created_at is None:
        logger.warning(f"Skipping rabies record {record.id}: incomplete vaccine data")
        return False
    if vaccine.validity < 0:
        return False
    today = today or utcnow().date()
    return today <= add_years(record.created_at.date(), vaccine.validity)


def checkup_cutoff(today: Optional[date] = None) -> datetime:
    """Start of the day CHECKUP_VALIDITY_YEARS before today (UTC)"""
    today = today or utcnow().date()
    return datetime.combine(add_years(today, -settings.CHECKUP_VALIDITY_YEARS), time.min, tzinfo=timezone.utc)


def build_payload(pet: Pet, record: Record, vet: User, clinic: Clinic, certificate_number: str) -> dict:
    """Certificate content in a fixed key order"""
    vet_name = " ".join(part for part in (vet.name, vet.surname) if part)
    subject = {
        "petId": pet.id,
        "petName": pet.name,
        "petSpecies": pet.breed.specie.value,
        "petBreed": pet.breed.name,
        "petBirthDate": pet.birth_date.isoformat() if pet.birth_date else None,
        "petGender": pet.gender.value if pet.gender else None,
        "petColor": pet.color,
        "petMicrochip": pet.microchip,
    }
    if pet.owner is not None:
        subject["ownerInfo"] = {"id": pet.owner.id}

    record_date = record.created_at.date() if record.created_at else None
    event = {
        "recordId": record.id,
        "recordType": record.type.value,
        "recordDate": record_date.isoformat() if record_date else None,
    }
    if record.type == RecordType.VACCINE and record.vaccine is not None:
        vaccine = record.vaccine
        details = {
            "name": vaccine.name,
            "batch": vaccine.batch_number,
            "manufacturer": vaccine.laboratory,
            "validityYears": vaccine.validity,
        }
        if vaccine.validity > 0 and record_date:
            details["expiryDate"] = add_years(record_date, vaccine.validity).isoformat()
        event["vaccinationDetails"] = details
    elif record.type != RecordType.VACCINE:
        event["description"] = record.description

    return {
        "certType": settings.CERTIFICATE_TYPE,
        "issuanceTimestamp": int(utcnow().timestamp() * 1000),
        "certificateNumber": certificate_number,
        "issuer": {
            "id": clinic.id,
            "name": clinic.name,
            "country": clinic.country.value,
            "issuingVetId": vet.id,
            "issuingVetName": vet_name,
            "issuingVetLicense": vet.license_number,
        },
        "subject": subject,
        "event": event,
    }


class CertificateService:

    async def _find_valid_rabies_record(self, db: AsyncSession, pet: Pet) -> Record:
        result = await db.execute(
            select(Record)
            .join(Vaccine, Vaccine.record_id == Record.id)
            .where(
                Record.pet_id == pet.id,
                Record.type == RecordType.VACCINE,
                Record.vet_signature.is_not(None),
                Record.vet_signature != "",
                Vaccine.is_rabies_vaccine.is_(True),
            )
            .order_by(Record.created_at.desc())
        )
        today = utcnow().date()
        for record in result.scalars().all():
            if is_rabies_record_valid(record, today):
                return record
        raise MissingRabiesVaccineError(pet.id)

    async def _ensure_recent_checkup(self, db: AsyncSession, pet: Pet) -> Record:
        cutoff = checkup_cutoff()
        result = await db.execute(
            select(Record)
            .where(
                Record.pet_id == pet.id,
                Record.type == RecordType.ANNUAL_CHECK,
                Record.vet_signature.is_not(None),
                Record.vet_signature != "",
                Record.created_at >= cutoff,
            )
            .order_by(Record.created_at.desc())
            .limit(1)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise MissingRecentCheckupError(pet.id, cutoff.date())
        return record

    async def generate_certificate(
        self, db: AsyncSession, data: CertificateGenerationRequest, vet: User
    ) -> CertificateView:
        """
        Raises:
            MissingRabiesVaccineError, MissingRecentCheckupError: pet not eligible
            CertificateAlreadyExistsForRecordError, CertificateNumberAlreadyExistsError
            SigningError: a key could not be unlocked
        """
        logger.info(f"Generating certificate for pet {data.pet_id} by vet {vet.id}")
        vet = await entity_finder.find_vet_or_fail(db, vet.id)
        clinic = vet.clinic
        if clinic is None:
            raise ValidationError("Vet must belong to a clinic to issue certificates")
        pet = await entity_finder.find_pet_or_fail(db, data.pet_id)
        authorization_helper.verify_user_authorization_for_pet(vet, pet, "generate certificate")

        rabies_record = await self._find_valid_rabies_record(db, pet)
        checkup = await self._ensure_recent_checkup(db, pet)
        logger.debug(f"Certificate eligibility: rabies record {rabies_record.id}, checkup {checkup.id}")

        existing = await db.execute(select(Certificate.id).where(Certificate.medical_record_id == rabies_record.id))
        if existing.first() is not None:
            raise CertificateAlreadyExistsForRecordError(rabies_record.id)
        existing = await db.execute(
            select(Certificate.id).where(Certificate.certificate_number == data.certificate_number)
        )
        if existing.first() is not None:
            raise CertificateNumberAlreadyExistsError(data.certificate_number)

        payload = json.dumps(
            build_payload(pet, rabies_record, vet, clinic, data.certificate_number),
            indent=2,
            ensure_ascii=False,
        )
        payload_hash = hashing_service.hash_string(payload)
        vet_signature = await signing_service.generate_vet_signature(vet, payload_hash, data.vet_private_key_password)
        clinic_signature = await signing_service.generate_clinic_signature(
            clinic, payload_hash, data.clinic_private_key_password
        )

        if rabies_record.is_immutable:
            logger.warning(f"Record {rabies_record.id} was already immutable before certificate issuance")
        rabies_record.is_immutable = True
        if pet.pending_certificate_clinic_id == clinic.id:
            pet.pending_certificate_clinic = None

        certificate = Certificate(
            certificate_number=data.certificate_number,
            payload=payload,
            hash=payload_hash,
            vet_signature=vet_signature,
            clinic_signature=clinic_signature,
            pet=pet,
            medical_record=rabies_record,
            generator_vet=vet,
            issuing_clinic=clinic,
        )
        db.add(certificate)
        await db.commit()

        certificate = await entity_finder.reload(db, certificate)
        logger.log_audit_event("record_immutable", "Record", rabies_record.id, certificate_id=certificate.id)
        logger.log_audit_event("certificate_issued", "Certificate", certificate.id,
                               certificate_number=certificate.certificate_number, pet_id=pet.id,
                               vet_id=vet.id, clinic_id=clinic.id)
        notification_service.certificate_generated(certificate)
        return CertificateView.from_entity(certificate)

    async def list_certificates_for_pet(self, db: AsyncSession, pet_id: str, requester: User) -> List[CertificateView]:
        pet = await entity_finder.find_pet_or_fail(db, pet_id)
        authorization_helper.verify_user_authorization_for_pet(requester, pet, "view certificates")
        result = await db.execute(
            select(Certificate).where(Certificate.pet_id == pet.id).order_by(Certificate.created_at.desc())
        )
        return [CertificateView.from_entity(c) for c in result.scalars().all()]

    async def _find_authorized(self, db: AsyncSession, certificate_id: str, requester: User, action: str) -> Certificate:
        certificate = await entity_finder.find_certificate_or_fail(db, certificate_id)
        authorization_helper.verify_user_authorization_for_pet(requester, certificate.pet, action)
        return certificate

    async def get_certificate(self, db: AsyncSession, certificate_id: str, requester: User) -> CertificateView:
        return CertificateView.from_entity(await self._find_authorized(db, certificate_id, requester, "view certificate"))

    async def get_qr_data(self, db: AsyncSession, certificate_id: str, requester: User) -> str:
        certificate = await self._find_authorized(db, certificate_id, requester, "get certificate QR data")
        return qr_code_service.generate_qr_data(certificate)

    async def get_qr_image(self, db: AsyncSession, certificate_id: str, requester: User) -> bytes:
        return qr_code_service.generate_qr_image(await self.get_qr_data(db, certificate_id, requester))

    async def list_certificates_for_clinic(
        self,
        db: AsyncSession,
        clinic_id: str,
        requester: User,
        params: PaginationParams,
        certificate_number: Optional[str] = None,
        pet_name: Optional[str] = None,
    ) -> dict:
        """Certificates issued by a clinic, for its own staff"""
        await authorization_helper.verify_clinic_staff_access(db, requester.id, clinic_id, "list clinic certificates")
        query = select(Certificate).where(Certificate.issuing_clinic_id == clinic_id)
        if certificate_number:
            query = query.where(Certificate.certificate_number.ilike(f"%{certificate_number}%"))
        if pet_name:
            query = query.join(Pet, Pet.id == Certificate.pet_id).where(Pet.name.ilike(f"%{pet_name}%"))
        query = query.order_by(Certificate.created_at.desc(), Certificate.id)
        return map_page(await paginate(db, query, params), CertificateView.from_entity)


# Singleton instance
certificate_service = CertificateService()
