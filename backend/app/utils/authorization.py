"""
Ownership and clinic-membership checks shared by the domain services.
"""
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AccessDeniedError, UsernameAlreadyExistsError
from app.core.logging_config import logger
from app.models.user import User, ClinicStaff, RoleEnum
from app.models.pet import Pet, PetStatus
from app.utils.entity_finder import entity_finder


def is_clinic_staff_member(user: User, clinic_id: Any) -> bool:
    """True for VET or ADMIN staff working at clinic_id"""
    return (
        isinstance(user, ClinicStaff)
        and user.clinic_id is not None
        and str(user.clinic_id) == str(clinic_id)
        and (user.has_role(RoleEnum.VET) or user.has_role(RoleEnum.ADMIN))
    )


class AuthorizationHelper:

    def verify_user_authorization_for_pet(self, user: User, pet: Pet, action: str) -> None:
        """
        Owner of the pet is always allowed. Clinic staff are allowed when the pet
        is pending activation at their clinic, or is active and one of its
        associated vets works at their clinic.

        Raises:
            AccessDeniedError: otherwise
        """
        if str(pet.owner_id) == str(user.id):
            return

        if isinstance(user, ClinicStaff) and user.clinic_id is not None:
            staff_clinic_id = str(user.clinic_id)

            if (
                pet.status == PetStatus.PENDING
                and pet.pending_activation_clinic_id is not None
                and str(pet.pending_activation_clinic_id) == staff_clinic_id
            ):
                return

            if pet.status == PetStatus.ACTIVE and any(
                vet.clinic_id is not None and str(vet.clinic_id) == staff_clinic_id
                for vet in pet.associated_vets
            ):
                return

        logger.warning(f"User {user.id} denied '{action}' on pet {pet.id}")
        raise AccessDeniedError(f"User is not authorized to {action} for pet {pet.id}")

    def verify_admin_action_on_staff(self, admin: User, staff: User, action: str) -> None:
        """Admin must be ADMIN staff of the same clinic as the target staff member"""
        if not (
            isinstance(admin, ClinicStaff)
            and admin.has_role(RoleEnum.ADMIN)
            and admin.clinic_id is not None
            and str(admin.clinic_id) == str(staff.clinic_id)
        ):
            logger.warning(f"Admin {admin.id} denied '{action}' on staff {staff.id}")
            raise AccessDeniedError(
                f"Admin is not authorized to {action} for staff member {staff.id}"
            )

    async def verify_clinic_staff_access(
        self, db: AsyncSession, user_id: Any, clinic_id: Any, action: str
    ) -> None:
        """
        Caller must be VET or ADMIN staff of the clinic.

        Raises:
            EntityNotFoundError: clinic does not exist
            AccessDeniedError: caller does not work there
        """
        await entity_finder.find_clinic_or_fail(db, clinic_id)
        user = await entity_finder.find_user_or_fail(db, user_id)
        if not is_clinic_staff_member(user, clinic_id):
            logger.warning(f"User {user_id} denied '{action}' on clinic {clinic_id}")
            raise AccessDeniedError(f"User is not authorized to {action} for clinic {clinic_id}")

    async def validate_username_update(self, db: AsyncSession, new_username: str, user: User) -> None:
        """Raise UsernameAlreadyExistsError if another user holds new_username"""
        result = await db.execute(
            select(User.id).where(User.username == new_username, User.id != user.id)
        )
        if result.first() is not None:
            raise UsernameAlreadyExistsError(new_username)


# Singleton instance
authorization_helper = AuthorizationHelper()
