from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Callable
import uuid

from app.core.database import get_db
from app.core.logging_config import set_user_id
from app.core.security import decode_token, security, TOKEN_TYPE_ACCESS
from app.models.user import User, Owner, ClinicStaff, Vet, RoleEnum


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""

    payload = decode_token(credentials.credentials)

    if payload.get("type") != TOKEN_TYPE_ACCESS:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    try:
        uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format"
        )

    user = await db.get(User, user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_login_allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled"
        )

    set_user_id(user.id)
    request.state.user_id = user.id
    return user


def require_roles(*roles: RoleEnum) -> Callable:
    """Dependency factory: the current user must hold at least one of roles"""

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not any(current_user.has_role(role) for role in roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access Denied"
            )
        return current_user

    return dependency


async def get_current_owner(
    current_user: User = Depends(require_roles(RoleEnum.OWNER))
) -> Owner:
    """Current user, who must be a pet owner"""
    if not isinstance(current_user, Owner):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access Denied")
    return current_user


async def get_current_staff(
    current_user: User = Depends(require_roles(RoleEnum.VET, RoleEnum.ADMIN))
) -> ClinicStaff:
    """Current user, who must be VET or ADMIN clinic staff"""
    if not isinstance(current_user, ClinicStaff):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access Denied")
    return current_user


async def get_current_vet(
    current_user: User = Depends(require_roles(RoleEnum.VET))
) -> Vet:
    if not isinstance(current_user, Vet):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access Denied")
    return current_user


async def get_current_admin(
    current_user: User = Depends(require_roles(RoleEnum.ADMIN))
) -> ClinicStaff:
    """Current user, who must be a clinic administrator"""
    if not isinstance(current_user, ClinicStaff):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access Denied")
    return current_user
