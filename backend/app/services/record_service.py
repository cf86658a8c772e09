"""
Record Service - medical records, vet signatures and temporary read access.

Records created by a vet are signed with the vet's private key over a
canonical ``key=value|`` string. Signed records can no longer be edited;
once a certificate is issued from one it becomes immutable.
"""

import re
from datetime import timedelta
from typing import List, Optional

from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AccessDeniedError,
    InvalidTemporaryTokenError,
    RecordImmutableError,
    RecordSignedError,
    RecordUpdateVaccineError,
    ValidationError,
)
from app.core.logging_config import logger
from app.core.security import (
    TOKEN_TYPE_TEMP_RECORD_ACCESS,
    create_temporary_record_access_token,
    decode_jwt,
)
from app.models.pet import Pet
from app.models.record import Record, RecordType, Vaccine
from app.models.user import User, ClinicStaff, Vet, RoleEnum
from app.schemas.record import RecordCreate, RecordUpdate, RecordView, TemporaryAccessResponse
from app.services.signing_service import signing_service
from app.utils.authorization import authorization_helper
from app.utils.entity_finder import entity_finder, normalize_id
from app.utils.pagination import PaginationParams, paginate, map_page

_DURATION_RE = re.compile(
    r"^(?P<sign>[-+]?)P"
    r"(?:(?P<days>[-+]?\d+)D)?"
    r"(?:T(?:(?P<hours>[-+]?\d+)H)?(?:(?P<minutes>[-+]?\d+)M)?(?:(?P<seconds>[-+]?\d+(?:[.,]\d{0,9})?)S)?)?$",
    re.IGNORECASE,
)


def parse_iso_duration(value: str) -> timedelta:
    """
    Parse an ISO-8601 time-based duration such as ``PT1H``, ``P1D`` or ``P2DT3H30M``.

    Raises:
        ValueError: not a valid duration
    """
    text = (value or "").strip()
    match = _DURATION_RE.match(text)
    if not match or text.upper().endswith("T"):
        raise ValueError(f"Invalid ISO-8601 duration: {value!r}")
    parts = match.groupdict()
    if all(parts[name] is None for name in ("days", "hours", "minutes", "seconds")):
        raise ValueError(f"Invalid ISO-8601 duration: {value!r}")

    duration = timedelta(
        days=int(parts["days"] or 0),
        hours=int(parts["hours"] or 0),
        minutes=int(parts["minutes"] or 0),
        seconds=float((parts["seconds"] or "0").replace(",", ".")),
    )
    return -duration if parts["sign"] == "-" else duration


def build_signable_data(pet: Pet, vet: User, data: RecordCreate) -> str:
    """Canonical string a vet signs for a new record. Field order is fixed."""
    parts = [
        f"petId={pet.id}",
        f"vetId={vet.id}",
        f"vetClinicId={vet.clinic_id if vet.clinic_id else 'null'}",
        f"vetLicense={vet.license_number}",
        f"recordType={data.type.value}",
        f"description={data.description if data.description is not None else ''}",
    ]
    if data.type == RecordType.VACCINE:
        vaccine = data.vaccine
        parts += [
            f"vaccineName={vaccine.name}",
            f"vaccineBatch={vaccine.batch_number}",
            f"vaccineLab={vaccine.laboratory if vaccine.laboratory is not None else ''}",
            f"vaccineValidity={vaccine.validity}",
        ]
    return "".join(f"{part}|" for part in parts)


class RecordService:

    async def create_record(self, db: AsyncSession, data: RecordCreate, creator: User) -> RecordView:
        """
        Raises:
            ValidationError: vaccine details missing/unexpected, or signing password missing
            AccessDeniedError: creator may not act on the pet
        """
        pet = await entity_finder.find_pet_or_fail(db, data.pet_id)
        authorization_helper.verify_user_authorization_for_pet(creator, pet, "create record")

        if data.type == RecordType.VACCINE and data.vaccine is None:
            raise ValidationError("Vaccine details are required for VACCINE records", field="vaccine")
        if data.type != RecordType.VACCINE and data.vaccine is not None:
            raise ValidationError("Vaccine details are only allowed for VACCINE records", field="vaccine")

        signature = None
        if isinstance(creator, Vet):
            if not data.vet_private_key_password:
                raise ValidationError(
                    "Private key password is required for vets to sign records",
                    field="vet_private_key_password",
                )
            signature = await signing_service.generate_vet_signature(
                creator, build_signable_data(pet, creator, data), data.vet_private_key_password
            )

        record = Record(
            type=data.type,
            description=data.description,
            vet_signature=signature,
            is_immutable=False,
            pet=pet,
            creator=creator,
            created_in_clinic=creator.clinic if isinstance(creator, ClinicStaff) else None,
            vaccine=None,
        )
        if data.vaccine is not None:
            record.vaccine = Vaccine(
                name=data.vaccine.name,
                validity=data.vaccine.validity,
                laboratory=data.vaccine.laboratory,
                batch_number=data.vaccine.batch_number,
                is_rabies_vaccine=data.vaccine.is_rabies_vaccine,
            )
        db.add(record)
        await db.commit()

        record = await entity_finder.reload(db, record)
        if signature:
            logger.log_audit_event("record_signed", "Record", record.id, pet_id=pet.id, vet_id=creator.id)
        logger.info(f"User {creator.id} created {record.type.value} record {record.id} for pet {pet.id}")
        return RecordView.from_entity(record)

    async def list_records_for_pet(
        self, db: AsyncSession, pet_id: str, requester: User, params: PaginationParams
    ) -> dict:
        pet = await entity_finder.find_pet_or_fail(db, pet_id)
        authorization_helper.verify_user_authorization_for_pet(requester, pet, "view records")
        query = select(Record).where(Record.pet_id == pet.id).order_by(Record.created_at.desc(), Record.id)
        return map_page(await paginate(db, query, params), RecordView.from_entity)

    async def get_record(self, db: AsyncSession, record_id: str, requester: User) -> RecordView:
        record = await entity_finder.find_record_or_fail(db, record_id)
        authorization_helper.verify_user_authorization_for_pet(requester, record.pet, "view record")
        return RecordView.from_entity(record)

    async def update_unsigned_record(
        self, db: AsyncSession, record_id: str, data: RecordUpdate, requester: User
    ) -> RecordView:
        """
        Raises:
            RecordSignedError: record already signed
            RecordUpdateVaccineError: VACCINE record, or change of type to VACCINE
            AccessDeniedError: not the creator nor staff of the creator's clinic
        """
        record = await entity_finder.find_record_or_fail(db, record_id)
        if record.is_signed:
            raise RecordSignedError(record.id)
        if record.type == RecordType.VACCINE:
            raise RecordUpdateVaccineError("Records of type VACCINE cannot be updated")
        if data.type == RecordType.VACCINE:
            raise RecordUpdateVaccineError("Record type cannot be changed to VACCINE")
        self._verify_can_update(requester, record)

        changed = False
        if data.type is not None and data.type != record.type:
            record.type = data.type
            changed = True
        if data.description is not None:
            description = data.description if data.description.strip() else None
            if description != record.description:
                record.description = description
                changed = True

        if not changed:
            logger.info(f"No changes for record {record.id}, update skipped")
            return RecordView.from_entity(record)

        await db.commit()
        record = await entity_finder.reload(db, record)
        logger.info(f"User {requester.id} updated record {record.id}")
        return RecordView.from_entity(record)

    def _verify_can_update(self, requester: User, record: Record) -> None:
        creator = record.creator
        if requester.id == creator.id:
            return
        if (
            isinstance(requester, ClinicStaff)
            and isinstance(creator, ClinicStaff)
            and requester.clinic_id is not None
            and requester.clinic_id == creator.clinic_id
        ):
            return
        logger.warning(f"User {requester.id} denied update of record {record.id}")
        raise AccessDeniedError(f"User is not authorized to update record {record.id}")

    def _verify_can_delete(self, requester: User, record: Record) -> None:
        creator = record.creator
        if record.is_signed:
            if record.is_immutable:
                raise RecordImmutableError(record.id)
            if not isinstance(requester, Vet) or requester.id != creator.id:
                raise AccessDeniedError("Only the signing veterinarian can delete a signed record")
            return

        if requester.id == creator.id:
            return
        if (
            isinstance(requester, ClinicStaff)
            and isinstance(creator, ClinicStaff)
            and requester.has_role(RoleEnum.ADMIN)
            and requester.clinic_id is not None
            and requester.clinic_id == creator.clinic_id
        ):
            return
        logger.warning(f"User {requester.id} denied deletion of record {record.id}")
        raise AccessDeniedError(f"User is not authorized to delete record {record.id}")

    async def delete_record(self, db: AsyncSession, record_id: str, requester: User) -> None:
        record = await entity_finder.find_record_or_fail(db, record_id)
        self._verify_can_delete(requester, record)
        await db.delete(record)
        await db.commit()
        logger.log_audit_event("record_deleted", "Record", record_id, deleted_by=requester.id)

    # ==========================================
    # Temporary access
    # ==========================================

    async def generate_temporary_access_token(
        self, db: AsyncSession, pet_id: str, duration_string: str, requester: User
    ) -> TemporaryAccessResponse:
        """
        Issue a token letting anyone holding it read the pet's signed records.
        Duration is capped at TEMP_ACCESS_MAX_DAYS.
        """
        pet = await entity_finder.find_pet_or_fail(db, pet_id)
        if pet.owner_id != requester.id:
            logger.warning(f"User {requester.id} is not the owner of pet {pet.id}")
            raise AccessDeniedError("Only the owner can share a pet's records")

        try:
            duration = parse_iso_duration(duration_string)
        except ValueError:
            raise ValidationError(
                "Invalid duration format. Use ISO-8601 duration format (e.g., PT1H, P1D).",
                field="duration_string",
            )
        if duration <= timedelta(0):
            raise ValidationError("Duration must be positive", field="duration_string")
        duration = min(duration, timedelta(days=settings.TEMP_ACCESS_MAX_DAYS))

        token = create_temporary_record_access_token(pet.id, duration)
        logger.log_audit_event("temporary_access_granted", "Pet", pet.id, duration_seconds=int(duration.total_seconds()))
        return TemporaryAccessResponse(token=token)

    async def find_records_by_temporary_token(self, db: AsyncSession, token: Optional[str]) -> List[RecordView]:
        if not token or not token.strip():
            raise InvalidTemporaryTokenError("Temporary access token is missing")
        try:
            claims = decode_jwt(token)
        except JWTError as e:
            raise InvalidTemporaryTokenError(f"Temporary access token is invalid or has expired: {e}")

        if claims.get("type") != TOKEN_TYPE_TEMP_RECORD_ACCESS:
            raise InvalidTemporaryTokenError("Token is not a temporary record access token")
        pet_id = normalize_id(claims.get("petId")) if claims.get("petId") else None
        if pet_id is None:
            raise InvalidTemporaryTokenError("Token is missing the pet claim")

        pet = await entity_finder.find_pet_or_fail(db, pet_id)
        result = await db.execute(
            select(Record)
            .where(Record.pet_id == pet.id, Record.vet_signature.is_not(None), Record.vet_signature != "")
            .order_by(Record.created_at.desc())
        )
        records = result.scalars().all()
        logger.info(f"Temporary token read {len(records)} signed records of pet {pet.id}")
        return [RecordView.from_entity(record) for record in records]

    async def list_records_created_by_clinic(
        self, db: AsyncSession, clinic_id: str, requester: User, params: PaginationParams
    ) -> dict:
        staff = await entity_finder.find_clinic_staff_or_fail(db, requester.id)
        if staff.clinic_id is None or staff.clinic_id != normalize_id(clinic_id):
            raise AccessDeniedError(f"Staff is not authorized to view records of clinic {clinic_id}")
        query = (
            select(Record)
            .where(Record.created_in_clinic_id == staff.clinic_id)
            .order_by(Record.created_at.desc(), Record.id)
        )
        return map_page(await paginate(db, query, params), RecordView.from_entity)


# Singleton instance
record_service = RecordService()
