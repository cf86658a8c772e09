"""
Clinic directory, clinic administration and staff listings
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.clinic import Country
from app.models.user import User, ClinicStaff
from app.modules.auth.dependencies import get_current_user, get_current_admin
from app.schemas.clinic import ClinicDto, ClinicUpdate, VetSummary
from app.schemas.user import ClinicStaffProfile
from app.services.clinic_service import clinic_service
from app.utils.multipart import parse_dto, present
from app.utils.pagination import Page, PaginationParams, pagination_params

router = APIRouter(prefix="/clinics", tags=["Clinics"])


@router.get("", response_model=Page[ClinicDto])
async def list_clinics(
    name: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    params: PaginationParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db)
):
    """Public, paginated clinic search"""
    return await clinic_service.list_clinics(db, params, name=name, city=city, country=country)


@router.get("/countries", response_model=List[Country])
async def list_countries(db: AsyncSession = Depends(get_db)):
    """Countries that have at least one clinic"""
    return await clinic_service.get_countries(db)


@router.get("/{clinic_id}", response_model=ClinicDto)
async def get_clinic(clinic_id: str, db: AsyncSession = Depends(get_db)):
    return await clinic_service.get_clinic(db, clinic_id)


@router.put("/{clinic_id}", response_model=ClinicDto)
async def update_clinic(
    clinic_id: str,
    dto: str = Form(...),
    public_key_file: Optional[UploadFile] = File(None),
    private_key_file: Optional[UploadFile] = File(None),
    current_admin: ClinicStaff = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Update clinic details; key files rotate the clinic signing keys"""
    data = parse_dto(ClinicUpdate, dto)
    return await clinic_service.update_clinic(
        db, clinic_id, data, current_admin, present(public_key_file), present(private_key_file)
    )


@router.get("/{clinic_id}/staff/all", response_model=List[ClinicStaffProfile])
async def list_all_staff(
    clinic_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await clinic_service.list_staff(db, clinic_id, current_user)


@router.get("/{clinic_id}/staff/active", response_model=List[ClinicStaffProfile])
async def list_active_staff(
    clinic_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await clinic_service.list_staff(db, clinic_id, current_user, active_only=True)


@router.get("/{clinic_id}/public-key/download")
async def download_public_key(
    clinic_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Clinic public key as a PEM attachment"""
    filename, content = await clinic_service.get_public_key_file(db, clinic_id, current_user)
    return Response(
        content=content,
        media_type="application/x-pem-file",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{clinic_id}/vets-for-selection", response_model=List[VetSummary])
async def list_vets_for_selection(
    clinic_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Active vets an owner can associate with a pet"""
    return await clinic_service.list_vets_for_selection(db, clinic_id)
