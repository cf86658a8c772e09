"""
Lookup helpers that load an entity by id or raise EntityNotFoundError.
"""
from typing import Any, Optional, Type
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import EntityNotFoundError, AccessDeniedError
from app.models.user import User, Owner, ClinicStaff, Vet, Role, RoleEnum
from app.models.clinic import Clinic
from app.models.pet import Pet, Breed
from app.models.record import Record
from app.models.certificate import Certificate


def normalize_id(entity_id: Any) -> Optional[str]:
    """Canonical string form of an id, or None when it is not a UUID"""
    try:
        return str(uuid.UUID(str(entity_id)))
    except ValueError:
        return None


class EntityFinder:
    """Loads entities by primary key for services"""

    async def _find(self, db: AsyncSession, model: Type[Any], entity_id: Any, entity_name: str):
        key = normalize_id(entity_id) if entity_id is not None else None
        entity = await db.get(model, key) if key else None
        if entity is None:
            raise EntityNotFoundError(entity_name, entity_id)
        return entity

    async def find_user_or_fail(self, db: AsyncSession, user_id: Any) -> User:
        return await self._find(db, User, user_id, "User")

    async def find_owner_or_fail(self, db: AsyncSession, owner_id: Any) -> Owner:
        user = await self._find(db, User, owner_id, "Owner")
        if not isinstance(user, Owner):
            raise EntityNotFoundError("Owner", owner_id)
        return user

    async def find_clinic_staff_or_fail(self, db: AsyncSession, staff_id: Any) -> ClinicStaff:
        """Raises AccessDenied when the user exists but does not work at a clinic"""
        user = await self._find(db, User, staff_id, "ClinicStaff")
        if not isinstance(user, ClinicStaff):
            raise AccessDeniedError(f"User {staff_id} is not clinic staff")
        return user

    async def find_admin_staff_or_fail(self, db: AsyncSession, admin_id: Any) -> ClinicStaff:
        staff = await self.find_clinic_staff_or_fail(db, admin_id)
        if not staff.has_role(RoleEnum.ADMIN):
            raise AccessDeniedError(f"User {admin_id} is not a clinic administrator")
        return staff

    async def find_vet_or_fail(self, db: AsyncSession, vet_id: Any) -> Vet:
        user = await self._find(db, User, vet_id, "Vet")
        if not isinstance(user, Vet):
            raise EntityNotFoundError("Vet", vet_id)
        return user

    async def find_clinic_or_fail(self, db: AsyncSession, clinic_id: Any) -> Clinic:
        return await self._find(db, Clinic, clinic_id, "Clinic")

    async def find_pet_or_fail(self, db: AsyncSession, pet_id: Any) -> Pet:
        return await self._find(db, Pet, pet_id, "Pet")

    async def find_breed_or_fail(self, db: AsyncSession, breed_id: Any) -> Breed:
        return await self._find(db, Breed, breed_id, "Breed")

    async def find_record_or_fail(self, db: AsyncSession, record_id: Any) -> Record:
        return await self._find(db, Record, record_id, "Record")

    async def find_certificate_or_fail(self, db: AsyncSession, certificate_id: Any) -> Certificate:
        return await self._find(db, Certificate, certificate_id, "Certificate")

    async def reload(self, db: AsyncSession, entity):
        """Re-select an entity and its eager relationships after a commit"""
        model = type(entity)
        result = await db.execute(
            select(model).where(model.id == entity.id).execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def find_role_or_fail(self, db: AsyncSession, role: RoleEnum) -> Role:
        result = await db.execute(select(Role).where(Role.role_enum == role))
        entity = result.scalar_one_or_none()
        if entity is None:
            raise EntityNotFoundError("Role", role.value)
        return entity


# Singleton instance
entity_finder = EntityFinder()
