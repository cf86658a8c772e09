"""
Animal health certificate endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.user import User, ClinicStaff, Vet
from app.modules.auth.dependencies import get_current_user, get_current_staff, get_current_vet
from app.schemas.certificate import CertificateGenerationRequest, CertificateView
from app.services.certificate_service import certificate_service
from app.utils.pagination import Page, PaginationParams, pagination_params

router = APIRouter(prefix="/certificates", tags=["Certificates"])


@router.post("", response_model=CertificateView, status_code=status.HTTP_201_CREATED)
async def generate_certificate(
    data: CertificateGenerationRequest,
    current_vet: Vet = Depends(get_current_vet),
    db: AsyncSession = Depends(get_db)
):
    """
    Issue a certificate from the pet's valid rabies vaccination.

    Needs a signed annual checkup within the last year; both the vet and the
    clinic private key passwords are required.
    """
    return await certificate_service.generate_certificate(db, data, current_vet)


@router.get("", response_model=List[CertificateView])
async def list_certificates(
    pet_id: str = Query(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await certificate_service.list_certificates_for_pet(db, pet_id, current_user)


@router.get("/clinic/{clinic_id}", response_model=Page[CertificateView])
async def list_clinic_certificates(
    clinic_id: str,
    certificate_number: Optional[str] = Query(None),
    pet_name: Optional[str] = Query(None),
    params: PaginationParams = Depends(pagination_params),
    current_staff: ClinicStaff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    """Certificates issued by the caller's clinic"""
    return await certificate_service.list_certificates_for_clinic(
        db, clinic_id, current_staff, params, certificate_number=certificate_number, pet_name=pet_name
    )


@router.get("/{certificate_id}", response_model=CertificateView)
async def get_certificate(
    certificate_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await certificate_service.get_certificate(db, certificate_id, current_user)


@router.get("/{certificate_id}/qr-data", response_class=PlainTextResponse)
async def get_qr_data(
    certificate_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """``HC1:`` encoded certificate for QR rendering"""
    return PlainTextResponse(await certificate_service.get_qr_data(db, certificate_id, current_user))


@router.get("/{certificate_id}/qr-image")
async def get_qr_image(
    certificate_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    png = await certificate_service.get_qr_image(db, certificate_id, current_user)
    return Response(content=png, media_type="image/png")
