from typing import Any, Dict
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session
from ..db import get_db, transaction
from ..models.user import User
from ..schemas.lookup import LookupListResponse
from ..api.auth import get_current_user, require_admin
from ..core import lookups
from ..core.lookups import LookupType

router = APIRouter()


@router.get("/{lookup_type}", response_model=LookupListResponse)
def list_lookup(
    lookup_type: LookupType,
    active_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List item types, locations or transfer reasons"""
    kind = lookups.get_kind(lookup_type)
    rows = lookups.list_rows(db, kind, active_only)
    return LookupListResponse(items=[lookups.serialize(kind, r) for r in rows], total=len(rows))


@router.post("/{lookup_type}", status_code=201)
def create_lookup(
    lookup_type: LookupType,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    kind = lookups.get_kind(lookup_type)
    with transaction(db):
        row = lookups.create_row(db, kind, payload)
    db.refresh(row)
    return lookups.serialize(kind, row)


@router.get("/{lookup_type}/{row_id}")
def get_lookup(
    lookup_type: LookupType,
    row_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    kind = lookups.get_kind(lookup_type)
    return lookups.serialize(kind, lookups.get_row(db, kind, row_id))


@router.patch("/{lookup_type}/{row_id}")
def update_lookup(
    lookup_type: LookupType,
    row_id: int,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Partial update; deactivating hides the row from new transfers but keeps history intact"""
    kind = lookups.get_kind(lookup_type)
    with transaction(db):
        row = lookups.update_row(db, kind, row_id, payload)
    db.refresh(row)
    return lookups.serialize(kind, row)


@router.delete("/{lookup_type}/{row_id}")
def delete_lookup(
    lookup_type: LookupType,
    row_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    kind = lookups.get_kind(lookup_type)
    with transaction(db):
        lookups.delete_row(db, kind, row_id)
    return {"success": True, "message": f"{kind.label} deleted"}
