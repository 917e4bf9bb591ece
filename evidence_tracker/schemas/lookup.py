from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class ItemTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: Optional[str] = None
    active: bool = True

    class Config:
        str_strip_whitespace = True


class ItemTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    category: Optional[str] = None
    active: Optional[bool] = None

    class Config:
        str_strip_whitespace = True


class ItemTypeResponse(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    building: Optional[str] = None
    room: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    active: bool = True

    class Config:
        str_strip_whitespace = True


class LocationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    building: Optional[str] = None
    room: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    active: Optional[bool] = None

    class Config:
        str_strip_whitespace = True


class LocationResponse(BaseModel):
    id: int
    name: str
    building: Optional[str] = None
    room: Optional[str] = None
    capacity: Optional[int] = None
    notes: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransferReasonCreate(BaseModel):
    reason: str = Field(min_length=1, max_length=200)
    reason_type: Optional[str] = None
    requires_approval: bool = False
    active: bool = True

    class Config:
        str_strip_whitespace = True


class TransferReasonUpdate(BaseModel):
    reason: Optional[str] = Field(default=None, min_length=1, max_length=200)
    reason_type: Optional[str] = None
    requires_approval: Optional[bool] = None
    active: Optional[bool] = None

    class Config:
        str_strip_whitespace = True


class TransferReasonResponse(BaseModel):
    id: int
    reason: str
    reason_type: Optional[str] = None
    requires_approval: bool
    active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LookupListResponse(BaseModel):
    items: List[dict]
    total: int
