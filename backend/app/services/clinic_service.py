"""
Clinic Service - clinic directory, clinic updates with signing key rotation,
and staff listings.
"""

from pathlib import PurePosixPath
from typing import List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AccessDeniedError, EntityNotFoundError, StorageError
from app.core.logging_config import logger
from app.models.clinic import Clinic, Country
from app.models.user import ClinicStaff, Vet, User
from app.schemas.clinic import ClinicDto, ClinicUpdate, VetSummary
from app.schemas.user import ClinicStaffProfile
from app.services.key_storage_service import key_storage_service
from app.services.notification_service import notification_service
from app.utils.authorization import authorization_helper
from app.utils.entity_finder import entity_finder
from app.utils.pagination import PaginationParams, paginate, map_page

CLINIC_KEYS_SUB_DIRECTORY = "clinics"


class ClinicService:

    async def list_clinics(
        self,
        db: AsyncSession,
        params: PaginationParams,
        name: Optional[str] = None,
        city: Optional[str] = None,
        country: Optional[str] = None,
    ) -> dict:
        """Paginated clinics, filtered by case-insensitive substrings"""
        query = select(Clinic)
        if name:
            query = query.where(Clinic.name.ilike(f"%{name}%"))
        if city:
            query = query.where(Clinic.city.ilike(f"%{city}%"))
        if country:
            matching = [c for c in Country if country.lower() in c.value.lower()]
            if not matching:
                query = query.where(Clinic.id.is_(None))
            else:
                query = query.where(Clinic.country.in_(matching))
        query = query.order_by(Clinic.name, Clinic.id)

        page = await paginate(db, query, params)
        return map_page(page, ClinicDto.from_entity)

    async def get_clinic(self, db: AsyncSession, clinic_id: str) -> ClinicDto:
        return ClinicDto.from_entity(await entity_finder.find_clinic_or_fail(db, clinic_id))

    async def get_countries(self, db: AsyncSession) -> List[Country]:
        result = await db.execute(select(Clinic.country).distinct())
        return sorted(result.scalars().all(), key=lambda c: c.value)

    async def update_clinic(
        self,
        db: AsyncSession,
        clinic_id: str,
        data: ClinicUpdate,
        admin: ClinicStaff,
        public_key_file: Optional[UploadFile] = None,
        private_key_file: Optional[UploadFile] = None,
    ) -> ClinicDto:
        """
        Update clinic details and optionally rotate its signing keys.

        Raises:
            EntityNotFoundError: clinic does not exist
            AccessDeniedError: admin does not belong to this clinic
        """
        clinic = await entity_finder.find_clinic_or_fail(db, clinic_id)
        if admin.clinic_id != clinic.id:
            logger.warning(f"Admin {admin.id} tried to update clinic {clinic.id}")
            raise AccessDeniedError("Access Denied")

        changed = False
        for field in ("name", "address", "city", "country", "phone"):
            value = getattr(data, field)
            if getattr(clinic, field) != value:
                setattr(clinic, field, value)
                changed = True

        pending_keys = []
        if public_key_file is not None:
            pending_keys.append(await key_storage_service.prepare_public_key(
                public_key_file, CLINIC_KEYS_SUB_DIRECTORY, f"clinic_{clinic.id}_pub"
            ))
        if private_key_file is not None:
            pending_keys.append(await key_storage_service.prepare_private_key(
                private_key_file, CLINIC_KEYS_SUB_DIRECTORY, f"clinic_{clinic.id}_priv"
            ))

        keys_changed = bool(pending_keys)
        stale_paths = []
        for key in pending_keys:
            attribute = "private_key" if key.private else "public_key"
            current = getattr(clinic, attribute)
            if current and current != key.relative_path:
                stale_paths.append(current)
            setattr(clinic, attribute, key.relative_path)
            changed = True

        if not changed:
            return ClinicDto.from_entity(clinic)

        await key_storage_service.commit_with_keys(db, pending_keys)
        for path in stale_paths:
            try:
                await key_storage_service.delete_key(path)
            except StorageError as e:
                logger.warning(f"Could not delete old clinic key {path}: {e.message}")

        clinic = await entity_finder.reload(db, clinic)
        logger.log_audit_event("clinic_updated", "Clinic", clinic.id, keys_changed=keys_changed)
        if keys_changed:
            notification_service.clinic_keys_changed(clinic, admin)
        return ClinicDto.from_entity(clinic)

    # ==========================================
    # Staff
    # ==========================================

    async def list_staff(
        self, db: AsyncSession, clinic_id: str, requester: User, active_only: bool = False
    ) -> List[ClinicStaffProfile]:
        await authorization_helper.verify_clinic_staff_access(db, requester.id, clinic_id, "list clinic staff")
        query = select(ClinicStaff).where(ClinicStaff.clinic_id == clinic_id)
        if active_only:
            query = query.where(ClinicStaff.is_active.is_(True))
        result = await db.execute(query.order_by(ClinicStaff.surname, ClinicStaff.name))
        return [ClinicStaffProfile.from_entity(staff) for staff in result.scalars().all()]

    async def get_public_key_file(self, db: AsyncSession, clinic_id: str, requester: User) -> Tuple[str, bytes]:
        """File name and content of the clinic's public key PEM"""
        await authorization_helper.verify_clinic_staff_access(
            db, requester.id, clinic_id, "download clinic public key"
        )
        clinic = await entity_finder.find_clinic_or_fail(db, clinic_id)
        if not clinic.public_key:
            raise EntityNotFoundError("PublicKey", clinic_id)
        try:
            content = await key_storage_service.get_public_key_content(clinic.public_key)
        except StorageError as e:
            logger.error(f"Public key of clinic {clinic_id} is unavailable: {e.message}")
            raise EntityNotFoundError("PublicKey", clinic_id)
        return PurePosixPath(clinic.public_key).name, content

    async def list_vets_for_selection(self, db: AsyncSession, clinic_id: str) -> List[VetSummary]:
        clinic = await entity_finder.find_clinic_or_fail(db, clinic_id)
        result = await db.execute(
            select(Vet)
            .where(Vet.clinic_id == clinic.id, Vet.is_active.is_(True))
            .order_by(Vet.surname, Vet.name)
        )
        return [VetSummary.from_entity(vet) for vet in result.scalars().all()]

    async def active_staff(self, db: AsyncSession, clinic_id: str) -> List[ClinicStaff]:
        result = await db.execute(
            select(ClinicStaff).where(ClinicStaff.clinic_id == clinic_id, ClinicStaff.is_active.is_(True))
        )
        return list(result.scalars().all())

    async def active_vets(self, db: AsyncSession, clinic_id: str) -> List[Vet]:
        result = await db.execute(
            select(Vet).where(Vet.clinic_id == clinic_id, Vet.is_active.is_(True))
        )
        return list(result.scalars().all())


# Singleton instance
clinic_service = ClinicService()
