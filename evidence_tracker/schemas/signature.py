from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from ..models.signature import SignatureType


class SignatureCreate(BaseModel):
    signature_type: SignatureType
    signature_data: str = Field(min_length=1)
    image_path: Optional[str] = None
    # Defaults to the caller
    user_id: Optional[int] = None

    class Config:
        str_strip_whitespace = True


class SignatureResponse(BaseModel):
    id: int
    user_id: int
    signature_type: SignatureType
    signature_data: str
    image_path: Optional[str] = None
    created_at: Optional[datetime] = None
    username: Optional[str] = None
    full_name: Optional[str] = None

    class Config:
        from_attributes = True


class SignatureListResponse(BaseModel):
    signatures: List[SignatureResponse]
    total: int
