from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List
import uuid

from jose import JWTError, jwt
import bcrypt
from fastapi import HTTPException, status
from fastapi.security import HTTPBearer

from app.core.config import settings

# Bearer token security
security = HTTPBearer()

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_TEMP_RECORD_ACCESS = "TEMP_RECORD_ACCESS"
TEMP_ACCESS_SUBJECT_PREFIX = "PetRecordViewer_"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password"""
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = plain_password.encode('utf-8')[:72]
    return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds (BCRYPT_ROUNDS in .env)"""
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def _encode(claims: Dict[str, Any], expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = claims.copy()
    to_encode.update({
        "iss": settings.JWT_ISSUER,
        "iat": now,
        "nbf": now,
        "exp": now + expires_delta,
        "jti": str(uuid.uuid4()),
    })
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(
    subject: str,
    authorities: List[str],
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token for an authenticated user.

    Args:
        subject: User id, stored as ``sub``
        authorities: ``ROLE_*`` names plus permission names
        expires_delta: Override for ACCESS_TOKEN_EXPIRE_MINUTES
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(
        {"sub": str(subject), "authorities": authorities, "type": TOKEN_TYPE_ACCESS},
        expires_delta,
    )


def create_temporary_record_access_token(pet_id: str, expires_delta: timedelta) -> str:
    """Create a short-lived token granting read access to a pet's signed records"""
    return _encode(
        {
            "sub": f"{TEMP_ACCESS_SUBJECT_PREFIX}{pet_id}",
            "petId": str(pet_id),
            "type": TOKEN_TYPE_TEMP_RECORD_ACCESS,
        },
        expires_delta,
    )


def decode_jwt(token: str) -> Dict[str, Any]:
    """Decode and validate a token issued by this service. Raises JWTError."""
    return jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        issuer=settings.JWT_ISSUER,
    )


def decode_token(token: str) -> Dict[str, Any]:
    """Decode JWT token"""
    try:
        return decode_jwt(token)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
