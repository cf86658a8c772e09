"""
Medical record endpoints
"""
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User, Owner, ClinicStaff
from app.modules.auth.dependencies import get_current_user, get_current_owner, get_current_staff
from app.schemas.record import (
    RecordCreate,
    RecordUpdate,
    RecordView,
    TemporaryAccessRequest,
    TemporaryAccessResponse,
)
from app.services.record_service import record_service
from app.utils.pagination import Page, PaginationParams, pagination_params

router = APIRouter(prefix="/records", tags=["Records"])


@router.post("", response_model=RecordView, status_code=status.HTTP_201_CREATED)
async def create_record(
    data: RecordCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a record; records created by a vet are signed with the vet's key"""
    return await record_service.create_record(db, data, current_user)


@router.get("", response_model=Page[RecordView])
async def list_records(
    pet_id: str = Query(...),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Records of a pet, newest first"""
    return await record_service.list_records_for_pet(db, pet_id, current_user, params)


@router.get("/verify-temporary-access", response_model=List[RecordView])
async def verify_temporary_access(
    token: str = Query(""),
    db: AsyncSession = Depends(get_db)
):
    """Public: signed records readable with a temporary access token"""
    return await record_service.find_records_by_temporary_token(db, token)


@router.get("/clinic/{clinic_id}/created-by", response_model=Page[RecordView])
async def list_records_created_by_clinic(
    clinic_id: str,
    params: PaginationParams = Depends(pagination_params),
    current_staff: ClinicStaff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    return await record_service.list_records_created_by_clinic(db, clinic_id, current_staff, params)


@router.post("/{pet_id}/temporary-access", response_model=TemporaryAccessResponse)
async def generate_temporary_access(
    pet_id: str,
    data: TemporaryAccessRequest,
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    """Share a pet's signed records for an ISO-8601 duration (max 7 days)"""
    return await record_service.generate_temporary_access_token(db, pet_id, data.duration_string, current_owner)


@router.get("/{record_id}", response_model=RecordView)
async def get_record(
    record_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await record_service.get_record(db, record_id, current_user)


@router.put("/{record_id}", response_model=RecordView)
async def update_record(
    record_id: str,
    data: RecordUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Only unsigned, non-vaccine records can be edited"""
    return await record_service.update_unsigned_record(db, record_id, data, current_user)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    record_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await record_service.delete_record(db, record_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
