from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session
from ..db import get_db, transaction
from ..models.user import User
from ..models.transfer import TransferRecord, TransferStatus, TransferType
from ..schemas.transfer import (
    TransferCreate,
    TransferCreated,
    TransferUpdate,
    TransferResponse,
    TransferListResponse,
)
from ..api.auth import get_current_user, require_writer
from ..core import custody

router = APIRouter()


def build_transfer_response(record: TransferRecord) -> TransferResponse:
    """Flatten a record and the display names of everything it references"""
    response = TransferResponse.model_validate(record)
    if record.transfer_reason:
        response.transfer_reason_name = record.transfer_reason.reason
    if record.evidence_item:
        response.case_number = record.evidence_item.case_number
        response.item_number = record.evidence_item.item_number
    if record.from_custodian:
        response.from_custodian_name = record.from_custodian.full_name
    if record.to_custodian:
        response.to_custodian_name = record.to_custodian.full_name
    if record.from_location:
        response.from_location_name = record.from_location.name
    if record.to_location:
        response.to_location_name = record.to_location.name
    return response


@router.get("", response_model=TransferListResponse)
def list_transfers(
    evidence_id: Optional[int] = None,
    status_filter: Optional[TransferStatus] = Query(None, alias="status"),
    transfer_type: Optional[TransferType] = None,
    custodian_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List transfers, newest first"""
    query = db.query(TransferRecord)
    if evidence_id is not None:
        query = query.filter(TransferRecord.evidence_item_id == evidence_id)
    if status_filter is not None:
        query = query.filter(TransferRecord.status == status_filter)
    if transfer_type is not None:
        query = query.filter(TransferRecord.transfer_type == transfer_type)
    if custodian_id is not None:
        query = query.filter(or_(
            TransferRecord.from_custodian_id == custodian_id,
            TransferRecord.to_custodian_id == custodian_id,
        ))

    total = query.count()
    records = query.order_by(
        TransferRecord.initiated_at.desc(), TransferRecord.id.desc()
    ).offset(offset).limit(limit).all()

    return TransferListResponse(
        transfers=[build_transfer_response(r) for r in records],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=TransferCreated, status_code=status.HTTP_201_CREATED)
def create_transfer(
    transfer_data: TransferCreate,
    current_user: User = Depends(require_writer),
    db: Session = Depends(get_db)
):
    """Create a custody transfer; it completes at once unless its reason needs approval"""
    with transaction(db):
        record = custody.create_transfer(
            db,
            actor=current_user,
            evidence_item_id=transfer_data.evidence_item_id,
            transfer_type=transfer_data.transfer_type,
            transfer_reason_id=transfer_data.transfer_reason_id,
            to_custodian_id=transfer_data.to_custodian_id,
            to_location_id=transfer_data.to_location_id,
            condition_notes=transfer_data.condition_notes,
            transfer_notes=transfer_data.transfer_notes,
            transfer_reason_text=transfer_data.transfer_reason_text,
            from_signature_id=transfer_data.from_signature_id,
            to_signature_id=transfer_data.to_signature_id,
        )

    return TransferCreated(
        id=record.id,
        receipt_number=record.receipt_number,
        status=record.status,
        requires_approval=record.requires_approval,
        message=(
            "Transfer created and awaiting approval"
            if record.requires_approval
            else "Transfer completed successfully"
        ),
    )


@router.get("/{transfer_id}", response_model=TransferResponse)
def get_transfer(
    transfer_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return build_transfer_response(custody.get_transfer(db, transfer_id))


@router.put("/{transfer_id}", response_model=TransferResponse)
def update_transfer(
    transfer_id: int,
    payload: TransferUpdate,
    current_user: User = Depends(require_writer),
    db: Session = Depends(get_db)
):
    """Approve or reject a pending transfer, or patch its notes when no action is given"""
    with transaction(db):
        if payload.action == "approve":
            record = custody.approve_transfer(db, current_user, transfer_id)
        elif payload.action == "reject":
            record = custody.reject_transfer(db, current_user, transfer_id, payload.rejection_reason)
        else:
            record = custody.get_transfer(db, transfer_id)
            if record.status == TransferStatus.COMPLETED:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Completed transfers cannot be modified"
                )
            changes = payload.model_dump(exclude_unset=True, include={"condition_notes", "transfer_notes"})
            if not changes:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Nothing to update: give an action or notes"
                )
            for name, value in changes.items():
                setattr(record, name, value)

    db.refresh(record)
    return build_transfer_response(record)


@router.delete("/{transfer_id}")
def delete_transfer(
    transfer_id: int,
    current_user: User = Depends(require_writer),
    db: Session = Depends(get_db)
):
    """Delete a pending or rejected transfer"""
    with transaction(db):
        custody.delete_transfer(db, current_user, transfer_id)
    return {"success": True, "message": "Transfer deleted successfully"}
