# Pydantic schemas
from app.schemas.auth import (
    OwnerRegistration,
    LoginRequest,
    AuthResponse,
    PasswordResetRequest,
    PasswordReset,
    MessageResponse,
)
from app.schemas.user import (
    UserProfile,
    OwnerProfile,
    ClinicStaffProfile,
    OwnerProfileUpdate,
    StaffProfileUpdate,
    OwnerProfileUpdateResponse,
    StaffProfileUpdateResponse,
)
from app.schemas.clinic import ClinicDto, ClinicUpdate, VetSummary
from app.schemas.staff import ClinicStaffCreation, ClinicStaffUpdate
from app.schemas.pet import (
    BreedDto,
    PetRegistration,
    PetOwnerUpdate,
    PetActivation,
    PetClinicUpdate,
    PetProfile,
)
from app.schemas.record import (
    VaccineCreate,
    VaccineView,
    RecordCreate,
    RecordUpdate,
    RecordView,
    TemporaryAccessRequest,
    TemporaryAccessResponse,
)
from app.schemas.certificate import CertificateGenerationRequest, CertificateView
