from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limiter import auth_rate_limit, strict_rate_limit
from app.schemas.auth import (
    OwnerRegistration,
    LoginRequest,
    AuthResponse,
    PasswordResetRequest,
    PasswordReset,
    MessageResponse,
)
from app.schemas.user import OwnerProfile
from app.services.auth_service import auth_service


router = APIRouter(prefix="/auth", tags=["Authentication"])


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=OwnerProfile, status_code=status.HTTP_201_CREATED)
@strict_rate_limit()
async def register(
    request: Request,
    data: OwnerRegistration,
    db: AsyncSession = Depends(get_db)
):
    """Register a new pet owner (rate limited: 3/min)"""
    owner = await auth_service.register_owner(db, data, client_ip=client_ip(request))
    return OwnerProfile.from_entity(owner)


@router.post("/login", response_model=AuthResponse)
@auth_rate_limit()
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Login with username or email (rate limited: 5/min)"""
    return await auth_service.login(db, credentials.username, credentials.password, client_ip=client_ip(request))


@router.post("/forgot-password", response_model=MessageResponse)
@auth_rate_limit()
async def forgot_password(
    request: Request,
    data: PasswordResetRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Email a password reset link.

    The response is identical whether or not the email is registered.
    """
    await auth_service.request_password_reset(db, data.email)
    return MessageResponse(
        message="If an account exists for this email, a password reset link has been sent."
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: PasswordReset,
    db: AsyncSession = Depends(get_db)
):
    await auth_service.reset_password(db, data)
    return MessageResponse(message="Password has been reset successfully.")
