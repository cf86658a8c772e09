"""
Clinic staff administration (clinic ADMIN only)
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import ClinicStaff
from app.modules.auth.dependencies import get_current_admin
from app.schemas.staff import ClinicStaffCreation, ClinicStaffUpdate
from app.schemas.user import ClinicStaffProfile
from app.services.clinic_staff_service import clinic_staff_service
from app.utils.multipart import parse_dto, present

router = APIRouter(prefix="/staff", tags=["Clinic Staff"])


@router.post("", response_model=ClinicStaffProfile, status_code=status.HTTP_201_CREATED)
async def create_staff(
    dto: str = Form(...),
    public_key_file: Optional[UploadFile] = File(None),
    private_key_file: Optional[UploadFile] = File(None),
    current_admin: ClinicStaff = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a vet (key files required) or an administrator in the caller's clinic"""
    data = parse_dto(ClinicStaffCreation, dto)
    return await clinic_staff_service.create_staff(
        db, data, current_admin, present(public_key_file), present(private_key_file)
    )


@router.put("/{staff_id}", response_model=ClinicStaffProfile)
async def update_staff(
    staff_id: str,
    dto: Optional[str] = Form(None),
    public_key_file: Optional[UploadFile] = File(None),
    private_key_file: Optional[UploadFile] = File(None),
    current_admin: ClinicStaff = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    data = parse_dto(ClinicStaffUpdate, dto, required=False)
    return await clinic_staff_service.update_staff(
        db, staff_id, data, current_admin, present(public_key_file), present(private_key_file)
    )


@router.put("/{staff_id}/activate", response_model=ClinicStaffProfile)
async def activate_staff(
    staff_id: str,
    current_admin: ClinicStaff = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return await clinic_staff_service.activate_staff(db, staff_id, current_admin)


@router.put("/{staff_id}/deactivate", response_model=ClinicStaffProfile)
async def deactivate_staff(
    staff_id: str,
    current_admin: ClinicStaff = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return await clinic_staff_service.deactivate_staff(db, staff_id, current_admin)
