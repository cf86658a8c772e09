from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.models.user import User


def role_names(user: User) -> List[str]:
    return sorted(role.role_enum.value for role in user.roles)


class UserProfile(BaseModel):
    id: str
    username: str
    email: str
    roles: List[str]
    avatar: Optional[str] = None

    @classmethod
    def from_entity(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            roles=role_names(user),
            avatar=user.avatar,
        )


class OwnerProfile(UserProfile):
    phone: Optional[str] = None

    @classmethod
    def from_entity(cls, user: User) -> "OwnerProfile":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            roles=role_names(user),
            avatar=user.avatar,
            phone=user.phone,
        )


class ClinicStaffProfile(UserProfile):
    name: Optional[str] = None
    surname: Optional[str] = None
    is_active: bool = False
    clinic_id: Optional[str] = None
    clinic_name: Optional[str] = None
    license_number: Optional[str] = None
    vet_public_key: Optional[str] = None
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    @classmethod
    def from_entity(cls, user: User) -> "ClinicStaffProfile":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            roles=role_names(user),
            avatar=user.avatar,
            name=user.name,
            surname=user.surname,
            is_active=bool(user.is_active),
            clinic_id=user.clinic_id,
            clinic_name=user.clinic.name if user.clinic else None,
            license_number=user.license_number,
            vet_public_key=user.vet_public_key,
            created_at=user.created_at,
            created_by=user.created_by,
            updated_at=user.updated_at,
            updated_by=user.updated_by,
        )


class OwnerProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)


class StaffProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=50)


class OwnerProfileUpdateResponse(BaseModel):
    profile: OwnerProfile
    new_jwt_token: Optional[str] = None


class StaffProfileUpdateResponse(BaseModel):
    profile: ClinicStaffProfile
    new_jwt_token: Optional[str] = None
