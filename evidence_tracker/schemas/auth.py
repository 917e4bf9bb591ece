from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from ..models.user import UserRole


class UserLogin(BaseModel):
    username: str
    password: str


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    full_name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=8)
    role: UserRole = UserRole.OFFICER
    email: Optional[EmailStr] = None
    badge_number: Optional[str] = None
    is_active: bool = True

    class Config:
        str_strip_whitespace = True


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    password: Optional[str] = Field(default=None, min_length=8)
    role: Optional[UserRole] = None
    email: Optional[EmailStr] = None
    badge_number: Optional[str] = None
    is_active: Optional[bool] = None

    class Config:
        str_strip_whitespace = True


class UserResponse(BaseModel):
    id: int
    username: str
    full_name: str
    email: Optional[str] = None
    badge_number: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    user: UserResponse
    expires_in: int
