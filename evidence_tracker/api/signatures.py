from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional
from ..db import get_db, transaction
from ..models.user import User
from ..models.signature import Signature, SignatureType
from ..schemas.signature import SignatureCreate, SignatureResponse, SignatureListResponse
from ..api.auth import get_current_user, require_writer
from ..core.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def build_signature_response(signature: Signature) -> SignatureResponse:
    response = SignatureResponse.model_validate(signature)
    if signature.user:
        response.username = signature.user.username
        response.full_name = signature.user.full_name
    return response


@router.get("", response_model=SignatureListResponse)
def list_signatures(
    user_id: Optional[int] = None,
    signature_type: Optional[SignatureType] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List signatures, newest first"""
    query = db.query(Signature)
    if user_id is not None:
        query = query.filter(Signature.user_id == user_id)
    if signature_type is not None:
        query = query.filter(Signature.signature_type == signature_type)
    signatures = query.order_by(Signature.created_at.desc(), Signature.id.desc()).all()
    return SignatureListResponse(
        signatures=[build_signature_response(s) for s in signatures],
        total=len(signatures),
    )


@router.post("", response_model=SignatureResponse, status_code=status.HTTP_201_CREATED)
def create_signature(
    payload: SignatureCreate,
    current_user: User = Depends(require_writer),
    db: Session = Depends(get_db)
):
    """Capture a signature for the caller, or for another user when user_id is given"""
    signer_id = payload.user_id if payload.user_id is not None else current_user.id
    if not db.query(User.id).filter(User.id == signer_id).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user_id")

    with transaction(db):
        signature = Signature(
            user_id=signer_id,
            signature_type=payload.signature_type,
            signature_data=payload.signature_data,
            image_path=payload.image_path,
        )
        db.add(signature)
    db.refresh(signature)
    logger.info("Signature %s captured for user %s by %s", signature.id, signer_id, current_user.id)
    return build_signature_response(signature)


@router.get("/{signature_id}", response_model=SignatureResponse)
def get_signature(
    signature_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    signature = db.query(Signature).filter(Signature.id == signature_id).first()
    if not signature:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Signature not found")
    return build_signature_response(signature)
