"""
Pet Service - pet registration, lifecycle and clinic/vet associations.

Lifecycle:
    PENDING  -> owner asks a clinic to activate; a vet of that clinic activates
    ACTIVE   -> at least one associated vet
    INACTIVE -> deactivated by the owner or last vet removed; associating a vet reactivates
"""

from typing import List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AccessDeniedError,
    InvalidStateError,
    PetConnectError,
    ValidationError,
)
from app.core.logging_config import logger
from app.models.pet import Pet, Breed, Specie, PetStatus, GENERIC_BREED_NAME
from app.models.user import User, Owner, ClinicStaff, Vet
from app.schemas.pet import (
    BreedDto,
    PetActivation,
    PetClinicUpdate,
    PetOwnerUpdate,
    PetProfile,
    PetRegistration,
)
from app.services.clinic_service import clinic_service
from app.services.image_service import ImageChange, image_service
from app.services.notification_service import notification_service
from app.utils.authorization import authorization_helper
from app.utils.entity_finder import entity_finder
from app.utils.pagination import PaginationParams, paginate, map_page
from app.utils.validation import validation_helper

PET_IMAGES_SUB_DIRECTORY = "pets/images"
DEFAULT_STATUSES = (PetStatus.ACTIVE, PetStatus.PENDING)


class PetService:

    # ==========================================
    # Helpers
    # ==========================================

    async def _find_owned_pet(self, db: AsyncSession, pet_id: str, owner: User) -> Pet:
        pet = await entity_finder.find_pet_or_fail(db, pet_id)
        if pet.owner_id != owner.id:
            logger.warning(f"User {owner.id} is not the owner of pet {pet.id}")
            raise AccessDeniedError("Access Denied")
        return pet

    async def _resolve_breed(self, db: AsyncSession, breed_id: Optional[str], specie: Specie) -> Breed:
        """Given breed must match specie; without one the specie's generic breed is used"""
        if breed_id:
            breed = await entity_finder.find_breed_or_fail(db, breed_id)
            if breed.specie != specie:
                raise ValidationError(
                    f"Breed {breed.name} belongs to {breed.specie.value}, not {specie.value}",
                    field="breed_id",
                )
            return breed

        result = await db.execute(
            select(Breed).where(Breed.name == GENERIC_BREED_NAME, Breed.specie == specie)
        )
        breed = result.scalar_one_or_none()
        if breed is None:
            logger.error(f"Generic breed '{GENERIC_BREED_NAME}' is not configured for {specie.value}")
            raise PetConnectError(
                f"Default breed is not configured for species {specie.value}",
                code="BREED_NOT_CONFIGURED",
            )
        return breed

    def _initial_image(self, provided: Optional[str], breed: Breed) -> str:
        if provided and provided.strip():
            return provided
        if not breed.is_generic and breed.image_url:
            return breed.image_url
        base = settings.DEFAULT_PET_IMAGE_PATH
        if not base.endswith("/"):
            base += "/"
        return f"{base}{breed.specie.value.lower()}.png"

    async def _apply_update(
        self, db: AsyncSession, pet: Pet, data, image_file: Optional[UploadFile] = None
    ) -> Tuple[bool, ImageChange]:
        """Shared owner/clinic update. Species never changes. Returns (changed, image change)."""
        changed = False
        fields = data.model_fields_set if data is not None else set()

        if data is not None and data.breed_id and data.breed_id != pet.breed_id:
            pet.breed = await self._resolve_breed(db, data.breed_id, pet.breed.specie)
            changed = True

        if data is not None and data.microchip and data.microchip != pet.microchip:
            await validation_helper.validate_microchip_unique(db, data.microchip, exclude_pet_id=pet.id)
            pet.microchip = data.microchip
            changed = True

        for field in ("name", "color", "gender", "birth_date"):
            if field in fields:
                value = getattr(data, field)
                if value is not None and value != getattr(pet, field):
                    setattr(pet, field, value)
                    changed = True

        old_image = pet.image
        image_change = ImageChange()
        if image_file is not None:
            pet.image = await image_service.store_image(image_file, PET_IMAGES_SUB_DIRECTORY)
            image_change = ImageChange(stored=pet.image, replaced=old_image)
            changed = True
        elif "image" in fields and data.image and data.image != pet.image:
            pet.image = data.image
            image_change = ImageChange(replaced=old_image)
            changed = True

        return changed, image_change

    # ==========================================
    # Owner operations
    # ==========================================

    async def register_pet(
        self, db: AsyncSession, owner: Owner, data: PetRegistration, image_file: Optional[UploadFile] = None
    ) -> PetProfile:
        breed = await self._resolve_breed(db, data.breed_id, data.specie)
        await validation_helper.validate_microchip_unique(db, data.microchip)

        if image_file is not None:
            image = await image_service.store_image(image_file, PET_IMAGES_SUB_DIRECTORY)
        else:
            image = self._initial_image(data.image, breed)

        pet = Pet(
            name=data.name,
            color=data.color,
            gender=data.gender,
            birth_date=data.birth_date,
            microchip=data.microchip or None,
            image=image,
            status=PetStatus.PENDING,
            owner=owner,
            breed=breed,
            pending_activation_clinic=None,
            pending_certificate_clinic=None,
            associated_vets=[],
        )
        db.add(pet)
        await db.commit()

        pet = await entity_finder.reload(db, pet)
        logger.info(f"Owner {owner.id} registered pet {pet.id} ({breed.specie.value})")
        return PetProfile.from_entity(pet)

    async def list_owner_pets(
        self, db: AsyncSession, owner: Owner, params: PaginationParams,
        statuses: Optional[List[PetStatus]] = None,
    ) -> dict:
        query = (
            select(Pet)
            .where(Pet.owner_id == owner.id, Pet.status.in_(statuses or DEFAULT_STATUSES))
            .order_by(Pet.name, Pet.id)
        )
        return map_page(await paginate(db, query, params), PetProfile.from_entity)

    async def update_pet_by_owner(
        self, db: AsyncSession, pet_id: str, owner: Owner,
        data: Optional[PetOwnerUpdate], image_file: Optional[UploadFile] = None,
    ) -> PetProfile:
        pet = await self._find_owned_pet(db, pet_id, owner)
        changed, image_change = await self._apply_update(db, pet, data, image_file)
        if not changed:
            return PetProfile.from_entity(pet)

        await image_service.commit_image_change(db, image_change)
        pet = await entity_finder.reload(db, pet)
        logger.info(f"Owner {owner.id} updated pet {pet.id}")
        return PetProfile.from_entity(pet)

    async def deactivate_pet(self, db: AsyncSession, pet_id: str, owner: Owner) -> PetProfile:
        pet = await self._find_owned_pet(db, pet_id, owner)
        if pet.status == PetStatus.INACTIVE:
            raise InvalidStateError(f"Pet {pet.id} is already INACTIVE")

        pet.status = PetStatus.INACTIVE
        pet.pending_activation_clinic = None
        pet.pending_certificate_clinic = None
        await db.commit()

        pet = await entity_finder.reload(db, pet)
        logger.info(f"Owner {owner.id} deactivated pet {pet.id}")
        return PetProfile.from_entity(pet)

    async def associate_clinic_for_activation(
        self, db: AsyncSession, pet_id: str, clinic_id: str, owner: Owner
    ) -> None:
        pet = await self._find_owned_pet(db, pet_id, owner)
        if pet.status != PetStatus.PENDING:
            raise InvalidStateError(f"Pet {pet.id} must be PENDING to request activation, but is {pet.status.value}")
        if pet.pending_activation_clinic_id is not None:
            raise InvalidStateError(
                f"Pet {pet.id} is already pending activation at clinic {pet.pending_activation_clinic_id}"
            )

        clinic = await entity_finder.find_clinic_or_fail(db, clinic_id)
        pet.pending_activation_clinic = clinic
        await db.commit()

        logger.info(f"Owner {owner.id} asked clinic {clinic.id} to activate pet {pet.id}")
        notification_service.pet_activation_requested(pet, clinic, await clinic_service.active_staff(db, clinic.id))

    async def associate_vet(self, db: AsyncSession, pet_id: str, vet_id: str, owner: Owner) -> None:
        pet = await self._find_owned_pet(db, pet_id, owner)
        vet = await entity_finder.find_vet_or_fail(db, vet_id)
        if any(v.id == vet.id for v in pet.associated_vets):
            raise InvalidStateError(f"Vet {vet.id} is already associated with pet {pet.id}")
        if not vet.is_active:
            raise InvalidStateError(f"Vet {vet.id} is not active")

        pet.associated_vets.append(vet)
        if pet.status == PetStatus.INACTIVE:
            pet.status = PetStatus.ACTIVE
            logger.info(f"Pet {pet.id} reactivated by associating vet {vet.id}")
        await db.commit()
        logger.info(f"Owner {owner.id} associated vet {vet.id} with pet {pet.id}")

    async def disassociate_vet(self, db: AsyncSession, pet_id: str, vet_id: str, owner: Owner) -> None:
        pet = await self._find_owned_pet(db, pet_id, owner)
        vet = await entity_finder.find_vet_or_fail(db, vet_id)
        associated = [v for v in pet.associated_vets if v.id == vet.id]
        if not associated:
            logger.warning(f"Vet {vet.id} is not associated with pet {pet.id}; nothing to remove")
            return

        pet.associated_vets.remove(associated[0])
        if not pet.associated_vets and pet.status == PetStatus.ACTIVE:
            pet.status = PetStatus.INACTIVE
            logger.warning(f"Pet {pet.id} set to INACTIVE as its last vet was removed")
        await db.commit()
        logger.info(f"Owner {owner.id} removed vet {vet.id} from pet {pet.id}")

    async def request_certificate(self, db: AsyncSession, pet_id: str, clinic_id: str, owner: Owner) -> None:
        """
        Raises:
            InvalidStateError: pet is not ACTIVE
            AccessDeniedError: none of the pet's vets work at the clinic
        """
        pet = await self._find_owned_pet(db, pet_id, owner)
        clinic = await entity_finder.find_clinic_or_fail(db, clinic_id)
        if pet.status != PetStatus.ACTIVE:
            raise InvalidStateError(f"Pet {pet.id} must be ACTIVE to request a certificate")
        if not any(v.clinic_id == clinic.id for v in pet.associated_vets):
            raise AccessDeniedError(f"Pet {pet.id} has no associated vet at clinic {clinic.id}")

        pet.pending_certificate_clinic = clinic
        await db.commit()

        logger.info(f"Owner {owner.id} requested a certificate for pet {pet.id} at clinic {clinic.id}")
        notification_service.certificate_requested(pet, clinic, await clinic_service.active_vets(db, clinic.id))

    # ==========================================
    # Clinic operations
    # ==========================================

    async def activate_pet(self, db: AsyncSession, pet_id: str, data: PetActivation, staff: User) -> PetProfile:
        """
        Raises:
            InvalidStateError: pet is not PENDING
            AccessDeniedError: not pending at the staff member's clinic, or activator is not a vet
        """
        staff = await entity_finder.find_clinic_staff_or_fail(db, staff.id)
        pet = await entity_finder.find_pet_or_fail(db, pet_id)
        if pet.status != PetStatus.PENDING:
            raise InvalidStateError(f"Pet {pet.id} must be PENDING to activate, but is {pet.status.value}")
        if pet.pending_activation_clinic_id is None or pet.pending_activation_clinic_id != staff.clinic_id:
            raise AccessDeniedError(f"Pet {pet.id} is not pending activation at this clinic")
        if not isinstance(staff, Vet):
            logger.error(f"Activation of pet {pet.id} attempted by non-vet staff {staff.id}")
            raise AccessDeniedError("Only veterinarians can activate pets")

        await validation_helper.validate_microchip_unique(db, data.microchip, exclude_pet_id=pet.id)
        pet.breed = await self._resolve_breed(db, data.breed_id, pet.breed.specie)
        pet.name = data.name
        pet.color = data.color
        pet.gender = data.gender
        pet.birth_date = data.birth_date
        pet.microchip = data.microchip
        if data.image:
            pet.image = data.image

        pet.status = PetStatus.ACTIVE
        pet.pending_activation_clinic = None
        if not any(v.id == staff.id for v in pet.associated_vets):
            pet.associated_vets.append(staff)
        await db.commit()

        pet = await entity_finder.reload(db, pet)
        logger.info(f"Vet {staff.id} activated pet {pet.id}")
        notification_service.pet_activated(pet, staff)
        return PetProfile.from_entity(pet)

    async def update_pet_by_clinic(
        self, db: AsyncSession, pet_id: str, data: PetClinicUpdate, staff: User
    ) -> PetProfile:
        pet = await entity_finder.find_pet_or_fail(db, pet_id)
        authorization_helper.verify_user_authorization_for_pet(staff, pet, "update pet")
        changed, image_change = await self._apply_update(db, pet, data)
        if not changed:
            return PetProfile.from_entity(pet)

        await image_service.commit_image_change(db, image_change)
        pet = await entity_finder.reload(db, pet)
        logger.info(f"Staff {staff.id} updated pet {pet.id}")
        return PetProfile.from_entity(pet)

    async def list_clinic_pets(self, db: AsyncSession, staff: User, params: PaginationParams) -> dict:
        """Pets pending activation at the staff member's clinic or treated by one of its vets"""
        staff = await entity_finder.find_clinic_staff_or_fail(db, staff.id)
        clinic_id = staff.clinic_id
        query = (
            select(Pet)
            .where(
                or_(
                    Pet.pending_activation_clinic_id == clinic_id,
                    Pet.associated_vets.any(User.clinic_id == clinic_id),
                )
            )
            .order_by(Pet.name, Pet.id)
        )
        return map_page(await paginate(db, query, params), PetProfile.from_entity)

    async def list_pending_activation(self, db: AsyncSession, staff: User) -> List[PetProfile]:
        staff = await entity_finder.find_clinic_staff_or_fail(db, staff.id)
        result = await db.execute(
            select(Pet)
            .where(Pet.pending_activation_clinic_id == staff.clinic_id, Pet.status == PetStatus.PENDING)
            .order_by(Pet.created_at)
        )
        return [PetProfile.from_entity(pet) for pet in result.scalars().all()]

    async def list_pending_certificate_requests(
        self, db: AsyncSession, clinic_id: str, requester: User
    ) -> List[PetProfile]:
        await authorization_helper.verify_clinic_staff_access(
            db, requester.id, clinic_id, "list pending certificate requests"
        )
        result = await db.execute(
            select(Pet)
            .where(Pet.pending_certificate_clinic_id == clinic_id, Pet.status == PetStatus.ACTIVE)
            .order_by(Pet.name)
        )
        return [PetProfile.from_entity(pet) for pet in result.scalars().all()]

    # ==========================================
    # Lookups
    # ==========================================

    async def get_pet(self, db: AsyncSession, pet_id: str, requester: User) -> PetProfile:
        pet = await entity_finder.find_pet_or_fail(db, pet_id)
        authorization_helper.verify_user_authorization_for_pet(requester, pet, "view pet")
        return PetProfile.from_entity(pet)

    async def list_breeds(self, db: AsyncSession, specie: Specie) -> List[BreedDto]:
        result = await db.execute(select(Breed).where(Breed.specie == specie).order_by(Breed.name))
        return [BreedDto.from_entity(breed) for breed in result.scalars().all()]


# Singleton instance
pet_service = PetService()
