"""
Custody transfer workflow.

A transfer record moves an evidence item between custodians and/or
locations. Records start ``pending`` when their reason requires approval
and ``completed`` otherwise; a pending record is later approved
(``completed``) or rejected (``rejected``). Only completed records ever
touch the evidence item.

None of these functions commit. Callers wrap them in
``db.transaction(session)`` so the record, the item update and the audit
entry are written together or not at all.
"""
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..models.evidence import EvidenceItem, EvidenceStatus, TERMINAL_STATUSES
from ..models.lookup import ItemType, Location, TransferReason
from ..models.signature import Signature
from ..models.transfer import TransferRecord, TransferStatus, TransferType
from ..models.user import User
from .audit import record_audit
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_REJECTION_REASON = "Rejected by approver"
INITIAL_RECEIPT_REASON = "Initial Receipt"

# Item status implied by completing a transfer of the given type
STATUS_BY_TRANSFER_TYPE = {
    TransferType.RELEASE: EvidenceStatus.RELEASED,
    TransferType.DISPOSAL: EvidenceStatus.DISPOSED,
}


def check_status_change(item: EvidenceItem, new_status: EvidenceStatus) -> None:
    """
    Guard direct status edits. Released and disposed are only reached by
    completing a transfer of that type; destroyed only follows disposal.
    """
    if new_status == item.current_status:
        return
    for transfer_type, implied in STATUS_BY_TRANSFER_TYPE.items():
        if new_status == implied:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Status {implied.value} is set by completing a '{transfer_type.value}' transfer"
            )
    if new_status == EvidenceStatus.DESTROYED:
        if item.current_status != EvidenceStatus.DISPOSED:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only disposed evidence can be marked destroyed"
            )
        return
    if item.current_status in TERMINAL_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot change status of evidence that is {item.current_status.value}"
        )


def get_evidence_item(db: Session, evidence_item_id: int) -> EvidenceItem:
    item = db.query(EvidenceItem).filter(EvidenceItem.id == evidence_item_id).first()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence item not found")
    return item


def get_transfer(db: Session, transfer_id: int) -> TransferRecord:
    record = db.query(TransferRecord).filter(TransferRecord.id == transfer_id).first()
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transfer not found")
    return record


def validate_custodian(db: Session, custodian_id: int, field: str = "to_custodian_id") -> User:
    """Custodians must be existing, active users."""
    custodian = db.query(User).filter(User.id == custodian_id, User.is_active.is_(True)).first()
    if not custodian:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid or inactive {field}"
        )
    return custodian


def validate_location(db: Session, location_id: int, field: str = "to_location_id") -> Location:
    location = db.query(Location).filter(Location.id == location_id, Location.active.is_(True)).first()
    if not location:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid or inactive {field}"
        )
    return location


def validate_item_type(db: Session, item_type_id: int) -> ItemType:
    item_type = db.query(ItemType).filter(ItemType.id == item_type_id).first()
    if not item_type:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid item_type_id")
    return item_type


def validate_transfer_reason(db: Session, reason_id: int) -> TransferReason:
    reason = db.query(TransferReason).filter(TransferReason.id == reason_id).first()
    if not reason or not reason.active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid transfer_reason_id")
    return reason


def validate_signature(db: Session, signature_id: int, field: str) -> Signature:
    signature = db.query(Signature).filter(Signature.id == signature_id).first()
    if not signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {field}")
    return signature


def ensure_transferable(item: EvidenceItem) -> None:
    if item.current_status in TERMINAL_STATUSES:
        logger.warning(
            "Refused transfer of evidence %s in terminal status %s",
            item.id, item.current_status.value
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot transfer evidence with status: {item.current_status.value}"
        )


def generate_receipt_number(db: Session, transfer_type: TransferType, evidence_item_id: int) -> str:
    """``{TYPE}-{item id, 6 digits}-{epoch ms}``, suffixed on the rare collision."""
    base = f"{transfer_type.value.upper()}-{evidence_item_id:06d}-{int(time.time() * 1000)}"
    candidate = base
    suffix = 0
    while db.query(TransferRecord.id).filter(TransferRecord.receipt_number == candidate).first():
        suffix += 1
        candidate = f"{base}-{suffix}"
    return candidate


def apply_transfer_to_item(item: EvidenceItem, record: TransferRecord) -> None:
    """Move the item to the record's target. Missing targets keep the current value."""
    if record.to_custodian_id is not None:
        item.current_custodian_id = record.to_custodian_id
    if record.to_location_id is not None:
        item.current_location_id = record.to_location_id
    new_status = STATUS_BY_TRANSFER_TYPE.get(record.transfer_type)
    if new_status is not None:
        item.current_status = new_status
    item.updated_at = datetime.now(timezone.utc)


def _audit_details(record: TransferRecord, **extra) -> dict:
    details = {
        "transfer_id": record.id,
        "receipt_number": record.receipt_number,
        "transfer_type": record.transfer_type.value,
        "status": record.status.value,
        "from_custodian_id": record.from_custodian_id,
        "from_location_id": record.from_location_id,
        "to_custodian_id": record.to_custodian_id,
        "to_location_id": record.to_location_id,
        "from_signature_id": record.from_signature_id,
        "to_signature_id": record.to_signature_id,
    }
    details.update(extra)
    return details


def create_transfer(
    db: Session,
    actor: User,
    evidence_item_id: int,
    transfer_type: TransferType,
    transfer_reason_id: Optional[int] = None,
    to_custodian_id: Optional[int] = None,
    to_location_id: Optional[int] = None,
    condition_notes: Optional[str] = None,
    transfer_notes: Optional[str] = None,
    transfer_reason_text: Optional[str] = None,
    from_signature_id: Optional[int] = None,
    to_signature_id: Optional[int] = None,
) -> TransferRecord:
    """Create a transfer; complete it immediately unless its reason needs approval."""
    item = get_evidence_item(db, evidence_item_id)
    ensure_transferable(item)

    requires_approval = False
    if transfer_reason_id is not None:
        reason = validate_transfer_reason(db, transfer_reason_id)
        requires_approval = bool(reason.requires_approval)

    if to_custodian_id is not None:
        validate_custodian(db, to_custodian_id)
    if to_location_id is not None:
        validate_location(db, to_location_id)
    if from_signature_id is not None:
        validate_signature(db, from_signature_id, "from_signature_id")
    if to_signature_id is not None:
        validate_signature(db, to_signature_id, "to_signature_id")

    now = datetime.now(timezone.utc)
    record = TransferRecord(
        evidence_item_id=item.id,
        transfer_type=transfer_type,
        transfer_reason_id=transfer_reason_id,
        transfer_reason_text=transfer_reason_text,
        requires_approval=requires_approval,
        from_custodian_id=item.current_custodian_id,
        from_location_id=item.current_location_id,
        to_custodian_id=to_custodian_id,
        to_location_id=to_location_id,
        from_signature_id=from_signature_id,
        to_signature_id=to_signature_id,
        status=TransferStatus.PENDING if requires_approval else TransferStatus.COMPLETED,
        receipt_number=generate_receipt_number(db, transfer_type, item.id),
        condition_notes=condition_notes,
        transfer_notes=transfer_notes,
        initiated_by_user_id=actor.id,
        initiated_at=now,
        completed_at=None if requires_approval else now,
    )
    db.add(record)
    db.flush()

    if record.status == TransferStatus.COMPLETED:
        apply_transfer_to_item(item, record)

    record_audit(
        db,
        evidence_id=item.id,
        actor_user_id=actor.id,
        action="TRANSFER_CREATED",
        details=_audit_details(record, requires_approval=requires_approval),
    )
    db.flush()

    logger.info(
        "Transfer %s (%s) created for evidence %s by user %s: %s",
        record.id, record.receipt_number, item.id, actor.id, record.status.value
    )
    return record


def _ensure_pending(record: TransferRecord, action: str) -> None:
    if record.status != TransferStatus.PENDING:
        logger.warning(
            "Refused to %s transfer %s in status %s", action, record.id, record.status.value
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Can only {action} pending transfers (status: {record.status.value})"
        )


def approve_transfer(db: Session, actor: User, transfer_id: int) -> TransferRecord:
    record = get_transfer(db, transfer_id)
    _ensure_pending(record, "approve")

    item = get_evidence_item(db, record.evidence_item_id)
    # The item may have been disposed by another transfer while this one waited
    ensure_transferable(item)

    now = datetime.now(timezone.utc)
    record.status = TransferStatus.COMPLETED
    record.approved_by_user_id = actor.id
    record.approved_at = now
    record.completed_at = now
    apply_transfer_to_item(item, record)

    record_audit(
        db,
        evidence_id=item.id,
        actor_user_id=actor.id,
        action="TRANSFER_APPROVED",
        details=_audit_details(record),
    )
    db.flush()
    logger.info("Transfer %s approved by user %s", record.id, actor.id)
    return record


def reject_transfer(
    db: Session,
    actor: User,
    transfer_id: int,
    rejection_reason: Optional[str] = None,
) -> TransferRecord:
    record = get_transfer(db, transfer_id)
    _ensure_pending(record, "reject")

    reason_text = (rejection_reason or "").strip() or DEFAULT_REJECTION_REASON
    record.status = TransferStatus.REJECTED
    record.approved_by_user_id = actor.id
    record.approved_at = datetime.now(timezone.utc)
    record.transfer_notes = f"{record.transfer_notes} | {reason_text}" if record.transfer_notes else reason_text

    record_audit(
        db,
        evidence_id=record.evidence_item_id,
        actor_user_id=actor.id,
        action="TRANSFER_REJECTED",
        details=_audit_details(record, rejection_reason=reason_text),
    )
    db.flush()
    logger.info("Transfer %s rejected by user %s", record.id, actor.id)
    return record


def delete_transfer(db: Session, actor: User, transfer_id: int) -> None:
    """Pending and rejected records may be deleted; completed ones are permanent."""
    record = get_transfer(db, transfer_id)
    if record.status == TransferStatus.COMPLETED:
        logger.warning("Refused to delete completed transfer %s", record.id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete completed transfers (chain of custody integrity)"
        )

    record_audit(
        db,
        evidence_id=record.evidence_item_id,
        actor_user_id=actor.id,
        action="TRANSFER_DELETED",
        details=_audit_details(record),
    )
    db.delete(record)
    db.flush()
    logger.info("Transfer %s deleted by user %s", transfer_id, actor.id)


def initial_receipt_reason(db: Session) -> Optional[TransferReason]:
    return db.query(TransferReason).filter(TransferReason.reason == INITIAL_RECEIPT_REASON).first()


def record_initial_receipt(
    db: Session,
    actor: User,
    item: EvidenceItem,
    to_custodian_id: Optional[int],
    to_location_id: Optional[int],
) -> TransferRecord:
    """
    Book the intake custody of a newly created item as a completed receipt.

    The item is created with no custodian/location so the record's from_*
    snapshot is empty and the targets are applied the same way as any
    completed transfer.
    """
    reason = initial_receipt_reason(db)
    now = datetime.now(timezone.utc)
    record = TransferRecord(
        evidence_item_id=item.id,
        transfer_type=TransferType.RECEIPT,
        transfer_reason_id=reason.id if reason else None,
        requires_approval=False,
        from_custodian_id=None,
        from_location_id=None,
        to_custodian_id=to_custodian_id,
        to_location_id=to_location_id,
        status=TransferStatus.COMPLETED,
        receipt_number=generate_receipt_number(db, TransferType.RECEIPT, item.id),
        condition_notes=item.condition_notes or "Initial receipt",
        initiated_by_user_id=actor.id,
        initiated_at=now,
        completed_at=now,
    )
    db.add(record)
    db.flush()
    apply_transfer_to_item(item, record)

    record_audit(
        db,
        evidence_id=item.id,
        actor_user_id=actor.id,
        action="TRANSFER_CREATED",
        details=_audit_details(record, requires_approval=False),
    )
    db.flush()
    return record
