# API endpoints
from . import auth, users, clinics, staff, pets, records, certificates, health

__all__ = ["auth", "users", "clinics", "staff", "pets", "records", "certificates", "health"]
