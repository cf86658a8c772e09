from pydantic import BaseModel, EmailStr, Field


class OwnerRegistration(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)
    phone: str = Field(..., min_length=1, max_length=20)


class LoginRequest(BaseModel):
    """Username or email plus password"""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    username: str
    message: str
    jwt: str
    status: bool = True


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordReset(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)
    confirm_password: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    message: str
    success: bool = True
