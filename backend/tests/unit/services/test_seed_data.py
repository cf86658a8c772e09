"""
Unit Tests for reference data seeding
"""
import pytest
from sqlalchemy import select, func

from app.db.seed_data import (
    ADMIN_PERMISSIONS,
    BREEDS,
    breed_image_url,
    seed_reference_data,
)
from app.models.pet import Breed, Specie, GENERIC_BREED_NAME
from app.models.user import Permission, Role, RoleEnum


class TestSeedReferenceData:

    @pytest.mark.asyncio
    async def test_roles_and_permissions(self, db_session):
        roles = {r.role_enum: r for r in (await db_session.execute(select(Role))).scalars().all()}

        assert set(roles) == set(RoleEnum)
        admin_permissions = {p.name for p in roles[RoleEnum.ADMIN].permissions}
        assert admin_permissions == set(ADMIN_PERMISSIONS)
        assert "RECORD_SIGN_OWN" not in admin_permissions
        assert "RECORD_SIGN_OWN" in {p.name for p in roles[RoleEnum.VET].permissions}

    @pytest.mark.asyncio
    async def test_generic_breed_per_species(self, db_session):
        for specie in Specie:
            result = await db_session.execute(
                select(Breed).where(Breed.specie == specie, Breed.name == GENERIC_BREED_NAME)
            )
            breed = result.scalar_one()
            assert breed.image_url == f"images/avatars/pets/{specie.value.lower()}.png"

    @pytest.mark.asyncio
    async def test_idempotent(self, db_session):
        expected_breeds = sum(len(names) + 1 for names in BREEDS.values())

        await seed_reference_data(db_session)
        await db_session.commit()

        assert (await db_session.execute(select(func.count(Breed.id)))).scalar() == expected_breeds
        assert (await db_session.execute(select(func.count(Role.id)))).scalar() == len(RoleEnum)
        names = (await db_session.execute(select(Permission.name))).scalars().all()
        assert len(names) == len(set(names))


class TestBreedImageUrl:

    def test_named_breed(self):
        assert breed_image_url(Specie.DOG, "Golden Retriever") == "images/avatars/pets/dog_golden_retriever.png"

    def test_generic(self):
        assert breed_image_url(Specie.CAT, GENERIC_BREED_NAME) == "images/avatars/pets/cat.png"
