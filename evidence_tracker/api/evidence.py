from fastapi import APIRouter, Depends, HTTPException, Query, status, UploadFile, File, Form
from fastapi.responses import StreamingResponse
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from typing import List, Optional
import io
from urllib.parse import quote
from ..db import get_db, transaction
from ..models.user import User
from ..models.evidence import EvidenceItem, EvidenceNote, EvidencePhoto, EvidenceStatus, TERMINAL_STATUSES
from ..models.transfer import TransferRecord, TransferType
from ..schemas.evidence import (
    EvidenceCreate,
    EvidenceCreated,
    EvidenceUpdate,
    EvidenceResponse,
    EvidenceListResponse,
    EvidenceDetailResponse,
    NoteCreate,
    NoteResponse,
    PhotoResponse,
)
from ..schemas.transfer import TransferResponse
from ..api.auth import get_current_user, require_writer
from ..api.transfer import build_transfer_response
from ..core import custody
from ..core.audit import record_audit
from ..core.config import settings
from ..core.crypto import encrypt_file_data, decrypt_file_data, compute_sha256, remove_file
from ..core.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

# Columns that may never be patched to null
REQUIRED_FIELDS = ("case_number", "item_number", "description", "collected_date", "collected_by", "current_status")

# Only reachable through the transfer workflow
INTAKE_EXCLUDED_STATUSES = (EvidenceStatus.RELEASED,) + TERMINAL_STATUSES

LIKE_ESCAPE = "\\"


def like_pattern(text: str) -> str:
    """Case-folded substring pattern with LIKE wildcards in ``text`` taken literally"""
    for char in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(char, LIKE_ESCAPE + char)
    return f"%{text.lower()}%"


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name and the RFC 5987 UTF-8 form"""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "").replace("\\", "")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def build_evidence_response(item: EvidenceItem) -> EvidenceResponse:
    response = EvidenceResponse.model_validate(item)
    if item.item_type:
        response.item_type_name = item.item_type.name
    if item.current_location:
        response.current_location_name = item.current_location.name
    if item.current_custodian:
        response.current_custodian_name = item.current_custodian.full_name
    return response


def build_note_response(note: EvidenceNote) -> NoteResponse:
    response = NoteResponse.model_validate(note)
    if note.created_by:
        response.created_by_name = note.created_by.full_name
    return response


def ensure_unique_item(
    db: Session,
    case_number: str,
    item_number: str,
    barcode: Optional[str] = None,
    exclude_id: Optional[int] = None
) -> None:
    query = db.query(EvidenceItem.id).filter(
        EvidenceItem.case_number == case_number,
        EvidenceItem.item_number == item_number
    )
    if exclude_id is not None:
        query = query.filter(EvidenceItem.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Evidence item {case_number}/{item_number} already exists"
        )

    if barcode:
        query = db.query(EvidenceItem.id).filter(EvidenceItem.barcode == barcode)
        if exclude_id is not None:
            query = query.filter(EvidenceItem.id != exclude_id)
        if query.first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Barcode {barcode} is already assigned"
            )


def validate_photo(file: UploadFile, size: int) -> None:
    if file.content_type not in settings.allowed_photo_mime_types:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File type {file.content_type} not allowed"
        )
    if size == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    if size > settings.max_photo_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size exceeds maximum of {settings.max_photo_size} bytes"
        )


@router.post("", response_model=EvidenceCreated, status_code=status.HTTP_201_CREATED)
def create_evidence(
    data: EvidenceCreate,
    current_user: User = Depends(require_writer),
    db: Session = Depends(get_db)
):
    """Intake a new evidence item. An initial custodian/location is booked as a receipt transfer."""
    if data.current_status in INTAKE_EXCLUDED_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"New evidence cannot start as {data.current_status.value}"
        )
    if data.item_type_id is not None:
        custody.validate_item_type(db, data.item_type_id)
    if data.current_location_id is not None:
        custody.validate_location(db, data.current_location_id, "current_location_id")
    if data.current_custodian_id is not None:
        custody.validate_custodian(db, data.current_custodian_id, "current_custodian_id")
    ensure_unique_item(db, data.case_number, data.item_number, data.barcode)

    initial_transfer = None
    with transaction(db):
        item = EvidenceItem(
            **data.model_dump(exclude={"current_location_id", "current_custodian_id"}),
            created_by_user_id=current_user.id,
        )
        db.add(item)
        db.flush()

        record_audit(
            db,
            evidence_id=item.id,
            actor_user_id=current_user.id,
            action="EVIDENCE_CREATED",
            details={
                "case_number": item.case_number,
                "item_number": item.item_number,
                "created_by": current_user.full_name,
            },
        )

        if data.current_custodian_id is not None or data.current_location_id is not None:
            initial_transfer = custody.record_initial_receipt(
                db,
                current_user,
                item,
                to_custodian_id=data.current_custodian_id,
                to_location_id=data.current_location_id,
            )

    logger.info("Evidence %s (%s/%s) created by user %s", item.id, item.case_number, item.item_number, current_user.id)
    return EvidenceCreated(id=item.id, initial_transfer_id=initial_transfer.id if initial_transfer else None)


@router.get("", response_model=EvidenceListResponse)
def list_evidence(
    search: Optional[str] = None,
    case: Optional[str] = None,
    status_filter: Optional[EvidenceStatus] = Query(None, alias="status"),
    location: Optional[int] = None,
    item_type: Optional[int] = Query(None, alias="type"),
    custodian: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List evidence items, newest first"""
    query = db.query(EvidenceItem)

    if search:
        pattern = like_pattern(search)
        query = query.filter(or_(
            func.lower(EvidenceItem.case_number).like(pattern, escape=LIKE_ESCAPE),
            func.lower(EvidenceItem.item_number).like(pattern, escape=LIKE_ESCAPE),
            func.lower(EvidenceItem.description).like(pattern, escape=LIKE_ESCAPE),
            func.lower(EvidenceItem.serial_number).like(pattern, escape=LIKE_ESCAPE),
            func.lower(EvidenceItem.make_model).like(pattern, escape=LIKE_ESCAPE),
        ))
    if case:
        query = query.filter(EvidenceItem.case_number == case)
    if status_filter is not None:
        query = query.filter(EvidenceItem.current_status == status_filter)
    if location is not None:
        query = query.filter(EvidenceItem.current_location_id == location)
    if item_type is not None:
        query = query.filter(EvidenceItem.item_type_id == item_type)
    if custodian is not None:
        query = query.filter(EvidenceItem.current_custodian_id == custodian)

    items = query.order_by(EvidenceItem.created_at.desc(), EvidenceItem.id.desc()).all()
    return EvidenceListResponse(items=[build_evidence_response(i) for i in items], total=len(items))


@router.get("/{evidence_id}", response_model=EvidenceDetailResponse)
def get_evidence(
    evidence_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Item with its transfer history, notes and photos"""
    item = custody.get_evidence_item(db, evidence_id)
    transfers = db.query(TransferRecord).filter(
        TransferRecord.evidence_item_id == evidence_id
    ).order_by(TransferRecord.initiated_at.desc(), TransferRecord.id.desc()).all()

    return EvidenceDetailResponse(
        item=build_evidence_response(item),
        transfers=[build_transfer_response(t) for t in transfers],
        notes=[build_note_response(n) for n in item.notes],
        photos=[PhotoResponse.model_validate(p) for p in item.photos],
    )


@router.put("/{evidence_id}", response_model=EvidenceResponse)
def update_evidence(
    evidence_id: int,
    payload: EvidenceUpdate,
    current_user: User = Depends(require_writer),
    db: Session = Depends(get_db)
):
    """
    Patch an item. Custodian/location changes are booked as an internal
    transfer so the item keeps matching its latest completed transfer.
    """
    item = custody.get_evidence_item(db, evidence_id)
    changes = payload.model_dump(exclude_unset=True)

    for name in REQUIRED_FIELDS:
        if name in changes and changes[name] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} cannot be null")

    new_custodian = changes.pop("current_custodian_id", item.current_custodian_id)
    new_location = changes.pop("current_location_id", item.current_location_id)
    if (new_custodian is None and item.current_custodian_id is not None) or \
            (new_location is None and item.current_location_id is not None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Custodian and location can be changed but not cleared"
        )
    custody_changed = new_custodian != item.current_custodian_id or new_location != item.current_location_id

    previous_status = item.current_status
    new_status = changes.get("current_status")
    if new_status is not None:
        custody.check_status_change(item, new_status)

    if "case_number" in changes or "item_number" in changes or changes.get("barcode"):
        ensure_unique_item(
            db,
            changes.get("case_number", item.case_number),
            changes.get("item_number", item.item_number),
            changes.get("barcode"),
            exclude_id=item.id,
        )
    if changes.get("item_type_id") is not None:
        custody.validate_item_type(db, changes["item_type_id"])

    with transaction(db):
        if custody_changed:
            custody.create_transfer(
                db,
                actor=current_user,
                evidence_item_id=item.id,
                transfer_type=TransferType.INTERNAL,
                to_custodian_id=new_custodian if new_custodian != item.current_custodian_id else None,
                to_location_id=new_location if new_location != item.current_location_id else None,
                transfer_notes="Custody updated from evidence record",
            )
        for name, value in changes.items():
            setattr(item, name, value)
        if changes:
            details = {"fields": sorted(changes)}
            if new_status is not None and new_status != previous_status:
                details["status"] = {"from": previous_status.value, "to": new_status.value}
            record_audit(
                db,
                evidence_id=item.id,
                actor_user_id=current_user.id,
                action="EVIDENCE_UPDATED",
                details=details,
            )

    db.refresh(item)
    return build_evidence_response(item)


@router.delete("/{evidence_id}")
def delete_evidence(
    evidence_id: int,
    current_user: User = Depends(require_writer),
    db: Session = Depends(get_db)
):
    """Delete an item that has no transfer history, with its notes and photos"""
    item = custody.get_evidence_item(db, evidence_id)
    has_transfers = db.query(TransferRecord.id).filter(TransferRecord.evidence_item_id == evidence_id).first()
    if has_transfers:
        logger.warning("Refused to delete evidence %s with transfer history", evidence_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete evidence with custody transfer history"
        )

    stored_files = [p.cipher_path for p in item.photos]
    with transaction(db):
        record_audit(
            db,
            evidence_id=item.id,
            actor_user_id=current_user.id,
            action="EVIDENCE_DELETED",
            details={
                "case_number": item.case_number,
                "item_number": item.item_number,
                "notes": len(item.notes),
                "photos": len(stored_files),
            },
        )
        db.delete(item)

    for cipher_path in stored_files:
        remove_file(cipher_path)
    logger.info("Evidence %s deleted by user %s", evidence_id, current_user.id)
    return {"success": True, "message": "Evidence item deleted"}


@router.get("/{evidence_id}/history", response_model=List[TransferResponse])
def get_custody_history(
    evidence_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Chain of custody in the order it happened"""
    custody.get_evidence_item(db, evidence_id)
    transfers = db.query(TransferRecord).filter(
        TransferRecord.evidence_item_id == evidence_id
    ).order_by(TransferRecord.initiated_at.asc(), TransferRecord.id.asc()).all()
    return [build_transfer_response(t) for t in transfers]


@router.get("/{evidence_id}/notes", response_model=List[NoteResponse])
def list_notes(
    evidence_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    item = custody.get_evidence_item(db, evidence_id)
    return [build_note_response(n) for n in item.notes]


@router.post("/{evidence_id}/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def add_note(
    evidence_id: int,
    payload: NoteCreate,
    current_user: User = Depends(require_writer),
    db: Session = Depends(get_db)
):
    if not payload.note:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Note text is required")
    item = custody.get_evidence_item(db, evidence_id)

    with transaction(db):
        note = EvidenceNote(
            evidence_item_id=item.id,
            note=payload.note,
            created_by_user_id=current_user.id,
        )
        db.add(note)
        db.flush()
        record_audit(
            db,
            evidence_id=item.id,
            actor_user_id=current_user.id,
            action="NOTE_ADDED",
            details={"note_id": note.id},
        )

    db.refresh(note)
    return build_note_response(note)


@router.get("/{evidence_id}/photos", response_model=List[PhotoResponse])
def list_photos(
    evidence_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    item = custody.get_evidence_item(db, evidence_id)
    return [PhotoResponse.model_validate(p) for p in item.photos]


@router.post("/{evidence_id}/photos", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    evidence_id: int,
    file: UploadFile = File(...),
    caption: Optional[str] = Form(None),
    current_user: User = Depends(require_writer),
    db: Session = Depends(get_db)
):
    """Store a photo encrypted at rest, keyed by the SHA-256 of its content"""
    item = custody.get_evidence_item(db, evidence_id)
    content = await file.read()
    validate_photo(file, len(content))

    cipher_path, sha256_hex = encrypt_file_data(content)
    try:
        with transaction(db):
            photo = EvidencePhoto(
                evidence_item_id=item.id,
                orig_filename=file.filename or "photo",
                mime=file.content_type,
                size_bytes=len(content),
                sha256_hex=sha256_hex,
                cipher_path=cipher_path,
                caption=caption,
                uploaded_by_user_id=current_user.id,
            )
            db.add(photo)
            db.flush()
            record_audit(
                db,
                evidence_id=item.id,
                actor_user_id=current_user.id,
                action="PHOTO_ADDED",
                details={
                    "photo_id": photo.id,
                    "filename": photo.orig_filename,
                    "size_bytes": photo.size_bytes,
                    "sha256": sha256_hex,
                },
            )
    except Exception:
        remove_file(cipher_path)
        raise

    db.refresh(photo)
    return PhotoResponse.model_validate(photo)


@router.get("/{evidence_id}/photos/{photo_id}/download")
def download_photo(
    evidence_id: int,
    photo_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    photo = db.query(EvidencePhoto).filter(
        EvidencePhoto.id == photo_id,
        EvidencePhoto.evidence_item_id == evidence_id
    ).first()
    if not photo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")

    try:
        data = decrypt_file_data(photo.cipher_path)
    except FileNotFoundError:
        logger.error("Stored file for photo %s is missing", photo.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Encrypted file not found on disk"
        )

    if compute_sha256(data) != photo.sha256_hex:
        logger.error("Integrity check failed for photo %s", photo.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="File integrity check failed"
        )

    return StreamingResponse(
        io.BytesIO(data),
        media_type=photo.mime,
        headers={"Content-Disposition": content_disposition(photo.orig_filename)}
    )
