"""
Pet endpoints for owners and clinic staff
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.pet import PetStatus, Specie
from app.models.user import User, Owner, ClinicStaff, Vet
from app.modules.auth.dependencies import (
    get_current_user,
    get_current_owner,
    get_current_staff,
    get_current_vet,
)
from app.schemas.pet import (
    BreedDto,
    PetActivation,
    PetClinicUpdate,
    PetOwnerUpdate,
    PetProfile,
    PetRegistration,
)
from app.services.pet_service import pet_service
from app.utils.multipart import parse_dto, present
from app.utils.pagination import Page, PaginationParams, pagination_params

router = APIRouter(prefix="/pets", tags=["Pets"])


# ==========================================
# Owner
# ==========================================

@router.post("", response_model=PetProfile, status_code=status.HTTP_201_CREATED)
async def register_pet(
    dto: str = Form(...),
    image_file: Optional[UploadFile] = File(None),
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    """Register a pet; it starts PENDING until a vet activates it"""
    data = parse_dto(PetRegistration, dto)
    return await pet_service.register_pet(db, current_owner, data, present(image_file))


@router.get("", response_model=Page[PetProfile])
async def list_my_pets(
    statuses: Optional[List[PetStatus]] = Query(None),
    params: PaginationParams = Depends(pagination_params),
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    """Owner's pets sorted by name (ACTIVE and PENDING unless statuses is given)"""
    return await pet_service.list_owner_pets(db, current_owner, params, statuses)


@router.put("/{pet_id}/owner-update", response_model=PetProfile)
async def update_pet_by_owner(
    pet_id: str,
    dto: Optional[str] = Form(None),
    image_file: Optional[UploadFile] = File(None),
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    data = parse_dto(PetOwnerUpdate, dto, required=False)
    return await pet_service.update_pet_by_owner(db, pet_id, current_owner, data, present(image_file))


@router.put("/{pet_id}/deactivate", response_model=PetProfile)
async def deactivate_pet(
    pet_id: str,
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    return await pet_service.deactivate_pet(db, pet_id, current_owner)


@router.post("/{pet_id}/associate-clinic/{clinic_id}", status_code=status.HTTP_204_NO_CONTENT)
async def associate_clinic_for_activation(
    pet_id: str,
    clinic_id: str,
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    """Ask a clinic to activate a PENDING pet"""
    await pet_service.associate_clinic_for_activation(db, pet_id, clinic_id, current_owner)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{pet_id}/associate-vet/{vet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def associate_vet(
    pet_id: str,
    vet_id: str,
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    await pet_service.associate_vet(db, pet_id, vet_id, current_owner)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{pet_id}/associate-vet/{vet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def disassociate_vet(
    pet_id: str,
    vet_id: str,
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    await pet_service.disassociate_vet(db, pet_id, vet_id, current_owner)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{pet_id}/request-certificate/{clinic_id}", status_code=status.HTTP_204_NO_CONTENT)
async def request_certificate(
    pet_id: str,
    clinic_id: str,
    current_owner: Owner = Depends(get_current_owner),
    db: AsyncSession = Depends(get_db)
):
    """Ask a clinic where one of the pet's vets works to issue a health certificate"""
    await pet_service.request_certificate(db, pet_id, clinic_id, current_owner)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ==========================================
# Clinic staff
# ==========================================

@router.get("/clinic", response_model=Page[PetProfile])
async def list_clinic_pets(
    params: PaginationParams = Depends(pagination_params),
    current_staff: ClinicStaff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    return await pet_service.list_clinic_pets(db, current_staff, params)


@router.get("/clinic/pending", response_model=List[PetProfile])
async def list_pending_activation(
    current_staff: ClinicStaff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    return await pet_service.list_pending_activation(db, current_staff)


@router.put("/{pet_id}/activate", response_model=PetProfile)
async def activate_pet(
    pet_id: str,
    data: PetActivation,
    current_vet: Vet = Depends(get_current_vet),
    db: AsyncSession = Depends(get_db)
):
    """Vet of the pending clinic confirms the pet's data and becomes its vet"""
    return await pet_service.activate_pet(db, pet_id, data, current_vet)


@router.put("/{pet_id}/clinic-update", response_model=PetProfile)
async def update_pet_by_clinic(
    pet_id: str,
    data: PetClinicUpdate,
    current_staff: ClinicStaff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    return await pet_service.update_pet_by_clinic(db, pet_id, data, current_staff)


@router.get("/{clinic_id}/pending-certificate-requests", response_model=List[PetProfile])
async def list_pending_certificate_requests(
    clinic_id: str,
    current_staff: ClinicStaff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    return await pet_service.list_pending_certificate_requests(db, clinic_id, current_staff)


# ==========================================
# Shared
# ==========================================

@router.get("/breeds/{specie}", response_model=List[BreedDto])
async def list_breeds(specie: Specie, db: AsyncSession = Depends(get_db)):
    """Public breed catalogue of a species"""
    return await pet_service.list_breeds(db, specie)


@router.get("/{pet_id}", response_model=PetProfile)
async def get_pet(
    pet_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await pet_service.get_pet(db, pet_id, current_user)
