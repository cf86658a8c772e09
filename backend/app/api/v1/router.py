from fastapi import APIRouter
from app.api.v1.endpoints import auth, users, clinics, staff, pets, records, certificates, health

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(clinics.router)
api_router.include_router(staff.router)
api_router.include_router(pets.router)
api_router.include_router(records.router)
api_router.include_router(certificates.router)
