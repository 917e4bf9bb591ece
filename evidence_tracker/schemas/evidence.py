from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from ..models.evidence import EvidenceStatus
from .transfer import TransferResponse


class EvidenceCreate(BaseModel):
    case_number: str = Field(min_length=1, max_length=50)
    item_number: str = Field(min_length=1, max_length=50)
    description: str = Field(min_length=1)
    collected_date: datetime
    collected_by: str = Field(min_length=1, max_length=200)
    item_type_id: Optional[int] = None
    collection_location: Optional[str] = None
    serial_number: Optional[str] = None
    make_model: Optional[str] = None
    barcode: Optional[str] = None
    condition_notes: Optional[str] = None
    current_status: EvidenceStatus = EvidenceStatus.STORED
    current_location_id: Optional[int] = None
    current_custodian_id: Optional[int] = None

    class Config:
        str_strip_whitespace = True


class EvidenceUpdate(BaseModel):
    case_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    item_number: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, min_length=1)
    collected_date: Optional[datetime] = None
    collected_by: Optional[str] = Field(default=None, min_length=1, max_length=200)
    item_type_id: Optional[int] = None
    collection_location: Optional[str] = None
    serial_number: Optional[str] = None
    make_model: Optional[str] = None
    barcode: Optional[str] = None
    condition_notes: Optional[str] = None
    current_status: Optional[EvidenceStatus] = None
    current_location_id: Optional[int] = None
    current_custodian_id: Optional[int] = None

    class Config:
        str_strip_whitespace = True


class EvidenceCreated(BaseModel):
    id: int
    initial_transfer_id: Optional[int] = None


class EvidenceResponse(BaseModel):
    id: int
    case_number: str
    item_number: str
    item_type_id: Optional[int] = None
    description: str
    collected_date: datetime
    collected_by: str
    collection_location: Optional[str] = None
    serial_number: Optional[str] = None
    make_model: Optional[str] = None
    barcode: Optional[str] = None
    condition_notes: Optional[str] = None
    current_status: EvidenceStatus
    current_location_id: Optional[int] = None
    current_custodian_id: Optional[int] = None
    created_by_user_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    item_type_name: Optional[str] = None
    current_location_name: Optional[str] = None
    current_custodian_name: Optional[str] = None

    class Config:
        from_attributes = True


class EvidenceListResponse(BaseModel):
    items: List[EvidenceResponse]
    total: int


class NoteCreate(BaseModel):
    note: str

    class Config:
        str_strip_whitespace = True


class NoteResponse(BaseModel):
    id: int
    evidence_item_id: int
    note: str
    created_by_user_id: int
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PhotoResponse(BaseModel):
    id: int
    evidence_item_id: int
    orig_filename: str
    mime: str
    size_bytes: int
    sha256_hex: str
    caption: Optional[str] = None
    uploaded_by_user_id: int
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EvidenceDetailResponse(BaseModel):
    item: EvidenceResponse
    transfers: List[TransferResponse] = []
    notes: List[NoteResponse] = []
    photos: List[PhotoResponse] = []
