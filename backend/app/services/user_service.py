"""
User Service - profile lookup and self-service profile updates.
"""

from typing import Optional, Tuple, Union

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AccessDeniedError, EntityNotFoundError
from app.core.logging_config import logger
from app.models.user import User, Owner, ClinicStaff, RoleEnum
from app.schemas.user import (
    OwnerProfile,
    ClinicStaffProfile,
    UserProfile,
    OwnerProfileUpdate,
    StaffProfileUpdate,
)
from app.services.auth_service import auth_service
from app.services.image_service import ImageChange, image_service
from app.utils.authorization import authorization_helper
from app.utils.entity_finder import entity_finder

AVATAR_SUB_DIRECTORY = "users/avatars"


class UserService:

    def get_current_profile(self, user: User) -> Union[OwnerProfile, ClinicStaffProfile, UserProfile]:
        if isinstance(user, Owner):
            return OwnerProfile.from_entity(user)
        if isinstance(user, ClinicStaff):
            return ClinicStaffProfile.from_entity(user)
        return UserProfile.from_entity(user)

    def _verify_can_view(self, requester: User, target: User) -> None:
        """A user may view themself; a clinic ADMIN may view staff of the same clinic"""
        if requester.id == target.id:
            return
        if (
            isinstance(requester, ClinicStaff)
            and requester.has_role(RoleEnum.ADMIN)
            and isinstance(target, ClinicStaff)
            and requester.clinic_id is not None
            and requester.clinic_id == target.clinic_id
        ):
            return
        logger.warning(f"User {requester.id} denied access to profile of user {target.id}")
        raise AccessDeniedError("Access Denied")

    async def get_user_by_id(self, db: AsyncSession, user_id: str, requester: User) -> UserProfile:
        target = await entity_finder.find_user_or_fail(db, user_id)
        self._verify_can_view(requester, target)
        return UserProfile.from_entity(target)

    async def _find_by(self, db: AsyncSession, column, value: str, label: str) -> User:
        result = await db.execute(select(User).where(column == value))
        user = result.scalar_one_or_none()
        if user is None:
            raise EntityNotFoundError("User", f"{label}={value}")
        return user

    async def get_user_by_email(self, db: AsyncSession, email: str, requester: User) -> UserProfile:
        target = await self._find_by(db, User.email, email, "email")
        self._verify_can_view(requester, target)
        return UserProfile.from_entity(target)

    async def get_user_by_username(self, db: AsyncSession, username: str, requester: User) -> UserProfile:
        target = await self._find_by(db, User.username, username, "username")
        self._verify_can_view(requester, target)
        return UserProfile.from_entity(target)

    # ==========================================
    # Self-service updates
    # ==========================================

    async def _apply_common_update(
        self, db: AsyncSession, user: User, new_username: Optional[str], image: Optional[UploadFile]
    ) -> Tuple[bool, bool, ImageChange]:
        """Username and avatar changes shared by owners and staff. Returns (changed, username_changed, avatar change)."""
        changed = False
        username_changed = False
        avatar_change = ImageChange()

        if new_username and new_username != user.username:
            await authorization_helper.validate_username_update(db, new_username, user)
            user.username = new_username
            changed = username_changed = True

        if image is not None:
            old_avatar = user.avatar
            user.avatar = await image_service.store_image(image, AVATAR_SUB_DIRECTORY)
            avatar_change = ImageChange(stored=user.avatar, replaced=old_avatar)
            changed = True

        return changed, username_changed, avatar_change

    async def update_owner_profile(
        self, db: AsyncSession, owner: Owner, data: Optional[OwnerProfileUpdate],
        image: Optional[UploadFile] = None,
    ) -> Tuple[OwnerProfile, Optional[str]]:
        """
        Returns the updated profile and a new access token when the
        username changed (the old token still names the old username).
        """
        changed, username_changed, avatar_change = await self._apply_common_update(
            db, owner, data.username if data else None, image
        )
        if data and data.phone is not None and data.phone != owner.phone:
            owner.phone = data.phone
            changed = True

        if not changed:
            return OwnerProfile.from_entity(owner), None

        await image_service.commit_image_change(db, avatar_change)
        owner = await entity_finder.reload(db, owner)
        logger.log_audit_event("profile_updated", "Owner", owner.id, username_changed=username_changed)
        token = auth_service.issue_token(owner) if username_changed else None
        return OwnerProfile.from_entity(owner), token

    async def update_staff_profile(
        self, db: AsyncSession, staff: ClinicStaff, data: Optional[StaffProfileUpdate],
        image: Optional[UploadFile] = None,
    ) -> Tuple[ClinicStaffProfile, Optional[str]]:
        changed, username_changed, avatar_change = await self._apply_common_update(
            db, staff, data.username if data else None, image
        )
        if not changed:
            return ClinicStaffProfile.from_entity(staff), None

        await image_service.commit_image_change(db, avatar_change)
        staff = await entity_finder.reload(db, staff)
        logger.log_audit_event("profile_updated", "ClinicStaff", staff.id, username_changed=username_changed)
        token = auth_service.issue_token(staff) if username_changed else None
        return ClinicStaffProfile.from_entity(staff), token


# Singleton instance
user_service = UserService()
