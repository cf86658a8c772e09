from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Set

from app.models.user import RoleEnum


class ClinicStaffCreation(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=100)
    surname: str = Field(..., min_length=1, max_length=100)
    role: RoleEnum
    license_number: Optional[str] = Field(None, max_length=50)


class ClinicStaffUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    surname: Optional[str] = Field(None, min_length=1, max_length=100)
    roles: Optional[Set[RoleEnum]] = None
    license_number: Optional[str] = Field(None, max_length=50)
