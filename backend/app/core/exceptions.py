"""
Custom Exceptions for PetConnect
================================

Services raise these instead of HTTPException so business rules stay
independent of the web layer. Each class carries the HTTP status it maps to;
`register_exception_handlers` turns them into the standard error body.

Usage:
    from app.core.exceptions import EntityNotFoundError

    if not pet:
        raise EntityNotFoundError("Pet", pet_id)
"""

from datetime import date
from typing import Optional, Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class PetConnectError(Exception):
    """Base exception for all PetConnect errors"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(PetConnectError):
    """User authentication failed"""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class InvalidTemporaryTokenError(AuthenticationError):
    """Temporary record access token is invalid, expired or of the wrong type"""

    def __init__(self, message: str = "Invalid or expired temporary access token"):
        super().__init__(message)
        self.code = "INVALID_TEMPORARY_TOKEN"


class AccessDeniedError(PetConnectError):
    """Authenticated user is not allowed to perform this action"""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Access Denied"):
        super().__init__(message, code="ACCESS_DENIED")


# ============================================
# Resource Errors (404-type)
# ============================================

class EntityNotFoundError(PetConnectError):
    """Entity with the given id does not exist"""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity_name: str, entity_id: Any):
        super().__init__(
            f"{entity_name} not found with id: {entity_id}",
            code=f"{entity_name.upper().replace(' ', '_')}_NOT_FOUND",
            details={"entity": entity_name, "id": str(entity_id)}
        )


# ============================================
# Conflict Errors (409-type)
# ============================================

class ConflictError(PetConnectError):
    """Request conflicts with existing data or current state"""

    status_code = status.HTTP_409_CONFLICT


class EmailAlreadyExistsError(ConflictError):
    def __init__(self, email: str):
        super().__init__(f"Email already registered: {email}", code="EMAIL_EXISTS",
                         details={"field": "email"})


class UsernameAlreadyExistsError(ConflictError):
    def __init__(self, username: str):
        super().__init__(f"Username already taken: {username}", code="USERNAME_EXISTS",
                         details={"field": "username"})


class LicenseNumberAlreadyExistsError(ConflictError):
    def __init__(self, license_number: str):
        super().__init__(f"License number already registered: {license_number}",
                         code="LICENSE_NUMBER_EXISTS", details={"field": "license_number"})


class VetPublicKeyAlreadyExistsError(ConflictError):
    def __init__(self):
        super().__init__("Vet public key is already in use", code="VET_PUBLIC_KEY_EXISTS")


class MicrochipAlreadyExistsError(ConflictError):
    def __init__(self, microchip: str):
        super().__init__(f"Microchip already registered: {microchip}", code="MICROCHIP_EXISTS",
                         details={"field": "microchip"})


class CertificateNumberAlreadyExistsError(ConflictError):
    def __init__(self, certificate_number: str):
        super().__init__(f"Certificate number already exists: {certificate_number}",
                         code="CERTIFICATE_NUMBER_EXISTS")


class CertificateAlreadyExistsForRecordError(ConflictError):
    def __init__(self, record_id: str):
        super().__init__(f"A certificate already exists for record {record_id}",
                         code="CERTIFICATE_EXISTS_FOR_RECORD", details={"record_id": record_id})


class InvalidStateError(ConflictError):
    """Operation is not valid in the entity's current state"""

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_STATE")


class RecordSignedError(ConflictError):
    def __init__(self, record_id: str, message: Optional[str] = None):
        super().__init__(message or f"Record {record_id} is signed and cannot be modified",
                         code="RECORD_SIGNED", details={"record_id": record_id})


class RecordImmutableError(ConflictError):
    def __init__(self, record_id: str):
        super().__init__(f"Record {record_id} is referenced by a certificate and cannot be modified",
                         code="RECORD_IMMUTABLE", details={"record_id": record_id})


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(PetConnectError):
    """Input validation failed"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class RecordUpdateVaccineError(ValidationError):
    def __init__(self, message: str = "Vaccine records cannot be updated"):
        super().__init__(message)
        self.code = "RECORD_VACCINE_UPDATE"


class MissingRabiesVaccineError(ValidationError):
    def __init__(self, pet_id: str):
        super().__init__(f"Pet {pet_id} has no valid signed rabies vaccination")
        self.code = "MISSING_RABIES_VACCINE"
        self.details = {"pet_id": pet_id}


class MissingRecentCheckupError(ValidationError):
    def __init__(self, pet_id: str, cutoff_date: date):
        super().__init__(
            f"Pet {pet_id} has no signed annual check-up since {cutoff_date.isoformat()}"
        )
        self.code = "MISSING_RECENT_CHECKUP"
        self.details = {"pet_id": pet_id, "cutoff_date": cutoff_date.isoformat()}


class InvalidPasswordResetTokenError(ValidationError):
    def __init__(self, message: str = "Invalid or expired password reset token"):
        super().__init__(message)
        self.code = "INVALID_RESET_TOKEN"


# ============================================
# Processing Errors (500-type)
# ============================================

class StorageError(PetConnectError):
    """File storage operation failed"""

    def __init__(self, message: str, path: Optional[str] = None):
        details = {"path": path} if path else {}
        super().__init__(message, code="STORAGE_ERROR", details=details)


class SigningError(PetConnectError):
    """Digital signature could not be produced"""

    def __init__(self, message: str):
        super().__init__(message, code="SIGNING_ERROR")


class HashingError(PetConnectError):
    def __init__(self, message: str):
        super().__init__(message, code="HASHING_ERROR")


class QrCodeGenerationError(PetConnectError):
    def __init__(self, message: str):
        super().__init__(message, code="QR_GENERATION_ERROR")


# ============================================
# Helper Functions
# ============================================

def error_response(error: PetConnectError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }


async def petconnect_error_handler(request: Request, exc: PetConnectError) -> JSONResponse:
    from app.core.logging_config import logger

    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that map PetConnectError subclasses to HTTP responses"""
    app.add_exception_handler(PetConnectError, petconnect_error_handler)
