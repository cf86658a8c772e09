"""
Uniqueness and business-rule validation used before writes.
"""
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ValidationError,
    EmailAlreadyExistsError,
    UsernameAlreadyExistsError,
    LicenseNumberAlreadyExistsError,
    VetPublicKeyAlreadyExistsError,
    MicrochipAlreadyExistsError,
)
from app.models.user import User, RoleEnum
from app.models.pet import Pet

STAFF_ROLES = {RoleEnum.VET, RoleEnum.ADMIN}


async def _exists(db: AsyncSession, stmt) -> bool:
    return (await db.execute(stmt.limit(1))).first() is not None


class ValidationHelper:

    def validate_staff_role(self, role: RoleEnum) -> None:
        if role not in STAFF_ROLES:
            raise ValidationError("Staff role must be VET or ADMIN", field="role")

    async def validate_new_user_uniqueness(self, db: AsyncSession, email: str, username: str) -> None:
        """Email is checked before username"""
        if await _exists(db, select(User.id).where(User.email == email)):
            raise EmailAlreadyExistsError(email)
        if await _exists(db, select(User.id).where(User.username == username)):
            raise UsernameAlreadyExistsError(username)

    async def validate_vet_license(
        self, db: AsyncSession, license_number: Optional[str], exclude_user_id: Any = None
    ) -> str:
        """License is required for vets and must not belong to another user"""
        if not license_number or not license_number.strip():
            raise ValidationError("License number is required for vets", field="license_number")
        license_number = license_number.strip()
        stmt = select(User.id).where(User.license_number == license_number)
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != str(exclude_user_id))
        if await _exists(db, stmt):
            raise LicenseNumberAlreadyExistsError(license_number)
        return license_number

    async def validate_vet_public_key_unique(
        self, db: AsyncSession, public_key_path: str, exclude_user_id: Any = None
    ) -> None:
        stmt = select(User.id).where(User.vet_public_key == public_key_path)
        if exclude_user_id is not None:
            stmt = stmt.where(User.id != str(exclude_user_id))
        if await _exists(db, stmt):
            raise VetPublicKeyAlreadyExistsError()

    async def validate_microchip_unique(
        self, db: AsyncSession, microchip: Optional[str], exclude_pet_id: Any = None
    ) -> None:
        if not microchip:
            return
        stmt = select(Pet.id).where(Pet.microchip == microchip)
        if exclude_pet_id is not None:
            stmt = stmt.where(Pet.id != str(exclude_pet_id))
        if await _exists(db, stmt):
            raise MicrochipAlreadyExistsError(microchip)


# Singleton instance
validation_helper = ValidationHelper()
