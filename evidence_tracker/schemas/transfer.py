from pydantic import BaseModel
from typing import List, Literal, Optional
from datetime import datetime
from ..models.transfer import TransferStatus, TransferType


class TransferCreate(BaseModel):
    evidence_item_id: int
    transfer_type: TransferType
    transfer_reason_id: Optional[int] = None
    transfer_reason_text: Optional[str] = None
    to_custodian_id: Optional[int] = None
    to_location_id: Optional[int] = None
    from_signature_id: Optional[int] = None
    to_signature_id: Optional[int] = None
    condition_notes: Optional[str] = None
    transfer_notes: Optional[str] = None


class TransferCreated(BaseModel):
    id: int
    receipt_number: str
    status: TransferStatus
    requires_approval: bool
    message: str


class TransferUpdate(BaseModel):
    """Either an approve/reject action, or a notes patch when action is omitted."""
    action: Optional[Literal["approve", "reject"]] = None
    rejection_reason: Optional[str] = None
    condition_notes: Optional[str] = None
    transfer_notes: Optional[str] = None


class TransferResponse(BaseModel):
    id: int
    evidence_item_id: int
    transfer_type: TransferType
    transfer_reason_id: Optional[int] = None
    transfer_reason_text: Optional[str] = None
    requires_approval: bool
    from_custodian_id: Optional[int] = None
    from_location_id: Optional[int] = None
    to_custodian_id: Optional[int] = None
    to_location_id: Optional[int] = None
    from_signature_id: Optional[int] = None
    to_signature_id: Optional[int] = None
    status: TransferStatus
    receipt_number: str
    condition_notes: Optional[str] = None
    transfer_notes: Optional[str] = None
    initiated_by_user_id: int
    initiated_at: datetime
    approved_by_user_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    transfer_reason_name: Optional[str] = None
    case_number: Optional[str] = None
    item_number: Optional[str] = None
    from_custodian_name: Optional[str] = None
    to_custodian_name: Optional[str] = None
    from_location_name: Optional[str] = None
    to_location_name: Optional[str] = None

    class Config:
        from_attributes = True


class TransferListResponse(BaseModel):
    transfers: List[TransferResponse]
    total: int
    limit: int
    offset: int
