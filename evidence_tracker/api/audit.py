from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import json
from ..db import get_db
from ..models.user import User
from ..models.audit import AuditLog
from ..api.auth import get_current_user
from ..core.audit import normalize_ts, verify_chain

router = APIRouter()


def _chain(db: Session, evidence_id: int):
    return db.query(AuditLog).filter(
        AuditLog.evidence_id == evidence_id
    ).order_by(AuditLog.id.asc()).all()


def _entry_view(log: AuditLog) -> dict:
    ts = normalize_ts(log.ts_utc)
    return {
        "id": log.id,
        "evidence_id": log.evidence_id,
        "actor_user_id": log.actor_user_id,
        "actor_name": log.actor.full_name if log.actor else "Unknown",
        "action": log.action,
        "details": json.loads(log.details_json),
        "ts_utc": ts.isoformat() if ts else None,
        "prev_hash_hex": log.prev_hash_hex,
        "entry_hash_hex": log.entry_hash_hex,
    }


@router.get("/{evidence_id}")
def get_audit_log(
    evidence_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Audit trail of an evidence item in the order it was written.

    Entries outlive the item, so a deleted item's trail is still readable.
    """
    entries = [_entry_view(log) for log in _chain(db, evidence_id)]
    return {"evidence_id": evidence_id, "entries": entries, "total": len(entries)}


@router.get("/{evidence_id}/verify")
def verify_audit_chain(
    evidence_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Recompute every hash of the chain and report where it breaks"""
    details = verify_chain(_chain(db, evidence_id))
    return {
        "evidence_id": evidence_id,
        "chain_valid": all(d["entry_valid"] for d in details),
        "total": len(details),
        "details": details,
    }
