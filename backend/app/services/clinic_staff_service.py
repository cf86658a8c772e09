"""
Clinic Staff Service - administrators creating, updating, activating and
deactivating vets and other administrators of their clinic.

Vets carry a signing key pair. Public keys are stored under
``public_keys/vets`` and password protected private keys under
``private_encrypted_keys/vets``.
"""

from typing import Optional, List

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidStateError, StorageError, ValidationError
from app.core.logging_config import logger
from app.core.security import get_password_hash
from app.models.user import ClinicStaff, Vet, RoleEnum
from app.schemas.staff import ClinicStaffCreation, ClinicStaffUpdate
from app.schemas.user import ClinicStaffProfile
from app.services.key_storage_service import key_storage_service
from app.services.notification_service import notification_service
from app.utils.authorization import authorization_helper
from app.utils.entity_finder import entity_finder
from app.utils.validation import validation_helper

VET_PUBLIC_KEYS_SUB_DIRECTORY = "public_keys/vets"
VET_PRIVATE_KEYS_SUB_DIRECTORY = "private_encrypted_keys/vets"
DEFAULT_VET_AVATAR = "images/avatars/users/vet.png"
DEFAULT_ADMIN_AVATAR = "images/avatars/users/admin.png"


class ClinicStaffService:

    async def _delete_keys_quietly(self, paths: List[str]) -> None:
        for path in paths:
            try:
                await key_storage_service.delete_key(path)
            except StorageError as e:
                logger.warning(f"Could not delete old key {path}: {e.message}")

    async def create_staff(
        self,
        db: AsyncSession,
        data: ClinicStaffCreation,
        admin: ClinicStaff,
        public_key_file: Optional[UploadFile] = None,
        private_key_file: Optional[UploadFile] = None,
    ) -> ClinicStaffProfile:
        """
        Create a vet or administrator in the admin's clinic.

        Raises:
            ValidationError: bad role, missing vet license or key files
            EmailAlreadyExistsError, UsernameAlreadyExistsError, LicenseNumberAlreadyExistsError
        """
        admin = await entity_finder.find_admin_staff_or_fail(db, admin.id)
        validation_helper.validate_staff_role(data.role)
        await validation_helper.validate_new_user_uniqueness(db, data.email, data.username)
        role = await entity_finder.find_role_or_fail(db, data.role)

        pending_keys = []
        common = dict(
            username=data.username,
            email=data.email,
            password_hash=get_password_hash(data.password),
            name=data.name,
            surname=data.surname,
            is_active=True,
            is_enabled=True,
            roles=[role],
            clinic=admin.clinic,
        )

        if data.role == RoleEnum.VET:
            license_number = await validation_helper.validate_vet_license(db, data.license_number)
            if public_key_file is None or private_key_file is None:
                raise ValidationError("Public and private key files are required for vets", field="key_file")
            pending_keys = [
                await key_storage_service.prepare_public_key(
                    public_key_file, VET_PUBLIC_KEYS_SUB_DIRECTORY, f"vet_{data.username}_pub"
                ),
                await key_storage_service.prepare_private_key(
                    private_key_file, VET_PRIVATE_KEYS_SUB_DIRECTORY, f"vet_{data.username}_priv"
                ),
            ]
            public_path, private_path = (key.relative_path for key in pending_keys)
            await validation_helper.validate_vet_public_key_unique(db, public_path)
            staff = Vet(
                avatar=DEFAULT_VET_AVATAR,
                license_number=license_number,
                vet_public_key=public_path,
                vet_private_key=private_path,
                **common,
            )
        else:
            staff = ClinicStaff(avatar=DEFAULT_ADMIN_AVATAR, **common)

        db.add(staff)
        await key_storage_service.commit_with_keys(db, pending_keys)

        staff = await entity_finder.reload(db, staff)
        logger.log_audit_event("staff_created", "ClinicStaff", staff.id,
                               role=data.role.value, clinic_id=admin.clinic_id, admin_id=admin.id)
        return ClinicStaffProfile.from_entity(staff)

    async def update_staff(
        self,
        db: AsyncSession,
        staff_id: str,
        data: Optional[ClinicStaffUpdate],
        admin: ClinicStaff,
        public_key_file: Optional[UploadFile] = None,
        private_key_file: Optional[UploadFile] = None,
    ) -> ClinicStaffProfile:
        """
        Raises:
            InvalidStateError: target is inactive
            AccessDeniedError: admin of another clinic
        """
        staff = await entity_finder.find_clinic_staff_or_fail(db, staff_id)
        authorization_helper.verify_admin_action_on_staff(admin, staff, "update staff")
        if not staff.is_active:
            raise InvalidStateError(f"Staff member {staff.id} is inactive and cannot be updated")

        changed = False
        if data is not None:
            for field in ("name", "surname"):
                value = getattr(data, field)
                if value is not None and value != getattr(staff, field):
                    setattr(staff, field, value)
                    changed = True

            if data.roles:
                for role_enum in data.roles:
                    validation_helper.validate_staff_role(role_enum)
                if set(data.roles) != staff.role_names:
                    staff.roles = [await entity_finder.find_role_or_fail(db, r) for r in sorted(data.roles)]
                    changed = True

        pending_keys = []
        stale_paths = []
        keys_changed = False
        if isinstance(staff, Vet):
            if data is not None and data.license_number is not None and data.license_number != staff.license_number:
                staff.license_number = await validation_helper.validate_vet_license(
                    db, data.license_number, exclude_user_id=staff.id
                )
                changed = True

            if public_key_file is not None:
                public_key = await key_storage_service.prepare_public_key(
                    public_key_file, VET_PUBLIC_KEYS_SUB_DIRECTORY, f"vet_{staff.username}_pub"
                )
                await validation_helper.validate_vet_public_key_unique(
                    db, public_key.relative_path, exclude_user_id=staff.id
                )
                pending_keys.append(public_key)
            if private_key_file is not None:
                pending_keys.append(await key_storage_service.prepare_private_key(
                    private_key_file, VET_PRIVATE_KEYS_SUB_DIRECTORY, f"vet_{staff.username}_priv"
                ))

            for key in pending_keys:
                attribute = "vet_private_key" if key.private else "vet_public_key"
                current = getattr(staff, attribute)
                if current and current != key.relative_path:
                    stale_paths.append(current)
                setattr(staff, attribute, key.relative_path)
                changed = keys_changed = True

        if not changed:
            return ClinicStaffProfile.from_entity(staff)

        await key_storage_service.commit_with_keys(db, pending_keys)
        await self._delete_keys_quietly(stale_paths)

        staff = await entity_finder.reload(db, staff)
        logger.log_audit_event("staff_updated", "ClinicStaff", staff.id,
                               admin_id=admin.id, keys_changed=keys_changed)
        if keys_changed:
            notification_service.vet_keys_changed(staff)
        return ClinicStaffProfile.from_entity(staff)

    async def activate_staff(self, db: AsyncSession, staff_id: str, admin: ClinicStaff) -> ClinicStaffProfile:
        staff = await entity_finder.find_clinic_staff_or_fail(db, staff_id)
        authorization_helper.verify_admin_action_on_staff(admin, staff, "activate staff")
        if staff.is_active:
            raise InvalidStateError(f"Staff member {staff.id} is already active")

        staff.is_active = True
        staff.is_enabled = True
        await db.commit()

        staff = await entity_finder.reload(db, staff)
        logger.log_audit_event("staff_activated", "ClinicStaff", staff.id, admin_id=admin.id)
        return ClinicStaffProfile.from_entity(staff)

    async def deactivate_staff(self, db: AsyncSession, staff_id: str, admin: ClinicStaff) -> ClinicStaffProfile:
        """
        Raises:
            ValidationError: an admin deactivating themself
            InvalidStateError: already inactive and disabled
        """
        staff = await entity_finder.find_clinic_staff_or_fail(db, staff_id)
        authorization_helper.verify_admin_action_on_staff(admin, staff, "deactivate staff")
        if staff.id == admin.id:
            raise ValidationError("Administrators cannot deactivate themselves")
        if not staff.is_active and not staff.is_enabled:
            raise InvalidStateError(f"Staff member {staff.id} is already inactive")

        staff.is_active = False
        staff.is_enabled = False
        await db.commit()

        staff = await entity_finder.reload(db, staff)
        logger.log_audit_event("staff_deactivated", "ClinicStaff", staff.id, admin_id=admin.id)
        return ClinicStaffProfile.from_entity(staff)


# Singleton instance
clinic_staff_service = ClinicStaffService()
