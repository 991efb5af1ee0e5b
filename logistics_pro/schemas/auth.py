from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from logistics_pro.models.user import UserRole


class UserCreate(BaseModel):
    phone: str = Field(..., min_length=5, max_length=20)
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.CLIENT
    email: Optional[EmailStr] = None


class UserLogin(BaseModel):
    phone: str
    password: str


class PushTokenUpdate(BaseModel):
    fcm_token: Optional[str] = Field(None, max_length=255)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    phone: str
    name: str
    role: UserRole
    email: Optional[str] = None
    is_active: bool
    created_at: datetime


class AuthResponse(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
