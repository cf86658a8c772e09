"""
Auth Service - owner registration, login, JWT issuing and password reset.
"""

import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidPasswordResetTokenError,
    ValidationError,
)
from app.core.logging_config import logger
from app.core.security import create_access_token, get_password_hash, verify_password
from app.core.types import utcnow
from app.models.user import User, Owner, RoleEnum
from app.models.password_reset_token import PasswordResetToken
from app.schemas.auth import AuthResponse, OwnerRegistration, PasswordReset
from app.services.email_service import email_service
from app.services.notification_service import display_name
from app.utils.entity_finder import entity_finder
from app.utils.validation import validation_helper

DEFAULT_OWNER_AVATAR = "images/avatars/users/owner.png"


class AuthService:

    def issue_token(self, user: User) -> str:
        """Signed access token carrying the user's roles and permissions"""
        return create_access_token(subject=user.id, authorities=user.authorities)

    async def register_owner(self, db: AsyncSession, data: OwnerRegistration, client_ip: str = "") -> Owner:
        """
        Create a new pet owner account.

        Raises:
            EmailAlreadyExistsError, UsernameAlreadyExistsError
        """
        try:
            await validation_helper.validate_new_user_uniqueness(db, data.email, data.username)
        except ConflictError as e:
            logger.log_auth_event("register", success=False, user_email=data.email,
                                  reason=e.code, client_ip=client_ip)
            raise

        owner_role = await entity_finder.find_role_or_fail(db, RoleEnum.OWNER)
        owner = Owner(
            username=data.username,
            email=data.email,
            password_hash=get_password_hash(data.password),
            phone=data.phone,
            avatar=DEFAULT_OWNER_AVATAR,
            is_enabled=True,
            roles=[owner_role],
            clinic=None,
        )
        db.add(owner)
        await db.commit()

        logger.log_auth_event("register", success=True, user_email=owner.email,
                              user_id=owner.id, client_ip=client_ip)
        return await entity_finder.reload(db, owner)

    async def login(self, db: AsyncSession, username_or_email: str, password: str,
                    client_ip: str = "") -> AuthResponse:
        """
        Authenticate with username or email.

        Raises:
            AuthenticationError: unknown user, wrong password or disabled account
        """
        result = await db.execute(
            select(User).where(or_(User.username == username_or_email, User.email == username_or_email))
        )
        user: Optional[User] = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            logger.log_auth_event("login", success=False, user_email=username_or_email,
                                  reason="bad_credentials", client_ip=client_ip)
            raise AuthenticationError("Invalid username or password")

        if not user.is_login_allowed:
            logger.log_auth_event("login", success=False, user_email=user.email,
                                  reason="account_disabled", client_ip=client_ip)
            raise AuthenticationError("User account is disabled")

        token = self.issue_token(user)
        logger.log_auth_event("login", success=True, user_email=user.email,
                              user_id=user.id, client_ip=client_ip)
        return AuthResponse(username=user.username, message="User logged in successfully", jwt=token, status=True)

    async def request_password_reset(self, db: AsyncSession, email: str) -> None:
        """Create and email a reset token. Unknown emails are ignored silently."""
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            logger.log_auth_event("forgot_password", success=False, user_email=email, reason="unknown_email")
            return

        await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id))
        reset_token = PasswordResetToken(
            token=str(uuid.uuid4()),
            user=user,
            expiry_date=utcnow() + timedelta(hours=settings.PASSWORD_RESET_EXPIRE_HOURS),
        )
        db.add(reset_token)
        await db.commit()

        sent = await email_service.send_password_reset_email(user.email, display_name(user), reset_token.token)
        logger.log_auth_event("forgot_password", success=True, user_email=user.email, email_sent=sent)

    async def reset_password(self, db: AsyncSession, data: PasswordReset) -> None:
        """
        Raises:
            ValidationError: passwords differ
            InvalidPasswordResetTokenError: token unknown or expired
        """
        if data.new_password != data.confirm_password:
            raise ValidationError("Passwords do not match", field="confirm_password")

        result = await db.execute(select(PasswordResetToken).where(PasswordResetToken.token == data.token))
        reset_token = result.scalar_one_or_none()
        if reset_token is None:
            raise InvalidPasswordResetTokenError("Invalid password reset token")

        if reset_token.is_expired:
            await db.delete(reset_token)
            await db.commit()
            logger.log_auth_event("reset_password", success=False, user_id=reset_token.user_id, reason="expired")
            raise InvalidPasswordResetTokenError("Password reset token has expired")

        user = reset_token.user
        user.password_hash = get_password_hash(data.new_password)
        await db.delete(reset_token)
        await db.commit()
        logger.log_auth_event("reset_password", success=True, user_email=user.email)


# Singleton instance
auth_service = AuthService()
