"""
Reference data seeding

Roles with their permissions and the breed catalogue. Every seed function is
idempotent: rows that already exist are left alone, so this runs on each
startup and from the ``petconnect-seed`` command.
"""
import asyncio
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import AsyncSessionLocal, init_db, close_db
from app.core.logging_config import logger
from app.models.pet import Breed, Specie, GENERIC_BREED_NAME
from app.models.user import Permission, Role, RoleEnum


# ==================== Permissions ====================

OWNER_PERMISSIONS = [
    "USER_READ_PROFILE_OWN",
    "USER_UPDATE_PROFILE_OWN",
    "CLINIC_READ_PUBLIC",
    "PET_CREATE_OWN",
    "PET_READ_OWN",
    "PET_UPDATE_BASIC_OWN",
    "PET_DEACTIVATE_OWN",
    "PET_MANAGE_VET_ASSOCIATION_OWN",
    "RECORD_CREATE_OWN_INFORMATIVE",
    "RECORD_READ_OWN",
    "RECORD_UPDATE_OWN_INFORMATIVE",
    "RECORD_DELETE_OWN_INFORMATIVE",
    "CERTIFICATE_REQUEST_OWN",
    "CERTIFICATE_READ_OWN",
    "CERTIFICATE_SHARE_QR_OWN",
]

VET_PERMISSIONS = [
    "USER_READ_PROFILE_OWN",
    "USER_UPDATE_PROFILE_OWN",
    "CLINIC_READ_PUBLIC",
    "CLINIC_STAFF_READ_OWN_CLINIC",
    "PET_READ_ASSOCIATED_CLINIC",
    "PET_UPDATE_CLINICAL_ASSOCIATED_CLINIC",
    "PET_ACTIVATE_ASSOCIATED_CLINIC",
    "RECORD_READ_ASSOCIATED_CLINIC",
    "RECORD_CREATE_ASSOCIATED_CLINIC",
    "RECORD_SIGN_OWN",
    "RECORD_UPDATE_UNSIGNED_OWN_CLINIC",
    "RECORD_DELETE_UNSIGNED_OWN_CLINIC",
    "RECORD_DELETE_SIGNED_OWN",
    "CERTIFICATE_GENERATE_ASSOCIATED_CLINIC",
    "CERTIFICATE_READ_ASSOCIATED_CLINIC",
]

# Admins do not sign records or issue certificates
ADMIN_PERMISSIONS = [
    "USER_READ_PROFILE_OWN",
    "USER_UPDATE_PROFILE_OWN",
    "CLINIC_READ_PUBLIC",
    "CLINIC_UPDATE_OWN",
    "CLINIC_STAFF_CREATE",
    "CLINIC_STAFF_READ_OWN_CLINIC",
    "CLINIC_STAFF_UPDATE_OWN_CLINIC",
    "CLINIC_STAFF_TOGGLE_ACTIVE_OWN_CLINIC",
    "PET_READ_ASSOCIATED_CLINIC",
    "PET_UPDATE_CLINICAL_ASSOCIATED_CLINIC",
    "PET_ACTIVATE_ASSOCIATED_CLINIC",
    "RECORD_READ_ASSOCIATED_CLINIC",
    "RECORD_CREATE_ASSOCIATED_CLINIC",
    "RECORD_UPDATE_UNSIGNED_OWN_CLINIC",
    "RECORD_DELETE_UNSIGNED_OWN_CLINIC",
    "CERTIFICATE_READ_ASSOCIATED_CLINIC",
]

ALL_PERMISSIONS = list(dict.fromkeys(OWNER_PERMISSIONS + VET_PERMISSIONS + ADMIN_PERMISSIONS))

ROLE_PERMISSIONS: Dict[RoleEnum, List[str]] = {
    RoleEnum.OWNER: OWNER_PERMISSIONS,
    RoleEnum.VET: VET_PERMISSIONS,
    RoleEnum.ADMIN: ADMIN_PERMISSIONS,
    RoleEnum.SUPERUSER: ALL_PERMISSIONS,
}


# ==================== Breeds ====================

BREEDS: Dict[Specie, List[str]] = {
    Specie.CAT: [
        "Angora", "Black", "Bombay", "Common European", "Himalayan", "Norwegian Forest",
        "Persian", "Ragdoll", "Russian Blue", "Siamese", "Siberian", "Tabby", "White",
    ],
    Specie.DOG: [
        "Argentine Dogo", "Beagle", "Boxer", "Bulldog", "Chihuahua", "Dachshund",
        "Dalmatian", "Doberman", "French Bulldog", "German Shepherd", "Golden",
        "Golden Retriever", "Great Dane", "Labrador Retriever", "Pekingese", "Pincher",
        "Poodle", "Pug", "Rottweiler", "Saint Bernard", "Shih Tzu", "Siberian Husky",
        "Yorkshire Terrier",
    ],
    Specie.FERRET: ["Cinnamon", "Sable Mask", "Siamese"],
    Specie.RABBIT: ["Brown", "Grey", "Lop", "White", "Black"],
}


def breed_image_url(specie: Specie, name: str) -> str:
    """``images/avatars/pets/dog_golden_retriever.png``; the generic breed uses ``dog.png``"""
    prefix = settings.DEFAULT_PET_IMAGE_PATH
    if name == GENERIC_BREED_NAME:
        return f"{prefix}{specie.value.lower()}.png"
    slug = name.lower().replace(" ", "_")
    return f"{prefix}{specie.value.lower()}_{slug}.png"


# ==================== Seed Functions ====================

async def seed_permissions(db: AsyncSession) -> Dict[str, Permission]:
    result = await db.execute(select(Permission))
    permissions = {p.name: p for p in result.scalars().all()}

    created = 0
    for name in ALL_PERMISSIONS:
        if name not in permissions:
            permission = Permission(name=name)
            db.add(permission)
            permissions[name] = permission
            created += 1

    await db.flush()
    logger.info(f"[Seed] Permissions: {created} created, {len(permissions)} total")
    return permissions


async def seed_roles(db: AsyncSession, permissions: Dict[str, Permission]) -> Dict[RoleEnum, Role]:
    """Create missing roles and grant them any permission they lack"""
    result = await db.execute(select(Role))
    roles = {r.role_enum: r for r in result.scalars().all()}

    for role_enum, names in ROLE_PERMISSIONS.items():
        role = roles.get(role_enum)
        if role is None:
            role = Role(role_enum=role_enum, permissions=[])
            db.add(role)
            roles[role_enum] = role
            logger.info(f"[Seed] Created role {role_enum.value}")

        granted = {p.name for p in role.permissions}
        missing = [permissions[name] for name in names if name not in granted]
        if missing:
            role.permissions = list(role.permissions) + missing

    await db.flush()
    return roles


async def seed_breeds(db: AsyncSession) -> int:
    """Insert the catalogue plus one generic breed per species"""
    result = await db.execute(select(Breed.specie, Breed.name))
    existing = {(specie, name) for specie, name in result.all()}

    created = 0
    for specie in Specie:
        for name in BREEDS.get(specie, []) + [GENERIC_BREED_NAME]:
            if (specie, name) in existing:
                continue
            db.add(Breed(name=name, specie=specie, image_url=breed_image_url(specie, name)))
            created += 1

    await db.flush()
    logger.info(f"[Seed] Breeds: {created} created")
    return created


async def seed_reference_data(db: AsyncSession) -> None:
    """Seed everything the application needs to run, in dependency order"""
    permissions = await seed_permissions(db)
    await seed_roles(db, permissions)
    await seed_breeds(db)


async def seed_all():
    """Create the schema and seed reference data in one transaction"""
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            await seed_reference_data(db)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("[Seed] Error seeding database")
            raise


def main():
    print("=" * 50)
    print("Seeding PetConnect reference data...")
    print("=" * 50)

    async def _run():
        try:
            await seed_all()
        finally:
            await close_db()

    asyncio.run(_run())
    print("Seeding completed successfully!")


if __name__ == "__main__":
    main()
