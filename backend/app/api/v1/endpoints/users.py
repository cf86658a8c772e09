"""
User profile endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User, Owner, ClinicStaff
from app.modules.auth.dependencies import get_current_user, get_current_owner, get_current_staff
from app.schemas.user import (
    UserProfile,
    OwnerProfileUpdate,
    StaffProfileUpdate,
    OwnerProfileUpdateResponse,
    StaffProfileUpdateResponse,
)
from app.services.user_service import user_service
from app.utils.multipart import parse_dto, present

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me")
async def get_my_profile(current_user: User = Depends(get_current_user)):
    """Owner or clinic staff profile of the caller"""
    return user_service.get_current_profile(current_user)


@router.put("/me", response_model=OwnerProfileUpdateResponse)
async def update_my_owner_profile(
    dto: Optional[str] = Form(None),
    image_file: Optional[UploadFile] = File(None),
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    """
    Update username/phone and avatar.

    A new JWT is returned when the username changed.
    """
    data = parse_dto(OwnerProfileUpdate, dto, required=False)
    profile, token = await user_service.update_owner_profile(db, current_owner, data, present(image_file))
    return OwnerProfileUpdateResponse(profile=profile, new_jwt_token=token)


@router.put("/me/staff", response_model=StaffProfileUpdateResponse)
async def update_my_staff_profile(
    dto: Optional[str] = Form(None),
    image_file: Optional[UploadFile] = File(None),
    current_staff: ClinicStaff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    data = parse_dto(StaffProfileUpdate, dto, required=False)
    profile, token = await user_service.update_staff_profile(db, current_staff, data, present(image_file))
    return StaffProfileUpdateResponse(profile=profile, new_jwt_token=token)


@router.get("/by-email", response_model=UserProfile)
async def get_user_by_email(
    email: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await user_service.get_user_by_email(db, email, current_user)


@router.get("/by-username", response_model=UserProfile)
async def get_user_by_username(
    username: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await user_service.get_user_by_username(db, username, current_user)


@router.get("/{user_id}", response_model=UserProfile)
async def get_user_by_id(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Self, or a clinic admin looking up staff of the same clinic"""
    return await user_service.get_user_by_id(db, user_id, current_user)
