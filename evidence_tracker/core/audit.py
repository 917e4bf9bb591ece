"""
Hash-chained audit trail, one chain per evidence item.

Every entry stores ``SHA256(prev_hash || canonical_json(payload))`` where the
payload is the entry without its hashes and the first entry of a chain uses
an empty previous hash. Editing or removing any entry breaks every hash after
it, which ``verify_chain`` reports.
"""
import json
import hashlib
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

GENESIS_HASH = ""


def normalize_ts(ts: Optional[datetime]) -> Optional[datetime]:
    """UTC-aware, second precision. Both hashing and verification go through this."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).replace(microsecond=0)


def entry_payload(
    evidence_id: int,
    actor_user_id: int,
    action: str,
    details: Dict[str, Any],
    ts: Optional[datetime],
) -> Dict[str, Any]:
    ts = normalize_ts(ts)
    return {
        "evidence_id": evidence_id,
        "actor_user_id": actor_user_id,
        "action": action,
        "details": details,
        "ts_utc": ts.isoformat() if ts is not None else None,
    }


def compute_entry_hash(prev_hash: str, payload: Dict[str, Any]) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256((prev_hash + canonical).encode("utf-8")).hexdigest()


def record_audit(
    db: Session,
    evidence_id: int,
    actor_user_id: int,
    action: str,
    details: Dict[str, Any],
):
    """
    Append an entry to the evidence item's audit chain.

    The row is added to the session only; it commits with the caller's
    transaction so the entry and the change it describes land together.
    """
    from ..models.audit import AuditLog

    last = db.query(AuditLog).filter(
        AuditLog.evidence_id == evidence_id
    ).order_by(AuditLog.id.desc()).first()
    prev_hash = last.entry_hash_hex if last else GENESIS_HASH

    ts = normalize_ts(datetime.now(timezone.utc))
    payload = entry_payload(evidence_id, actor_user_id, action, details, ts)
    entry = AuditLog(
        evidence_id=evidence_id,
        actor_user_id=actor_user_id,
        action=action,
        details_json=json.dumps(details),
        ts_utc=ts,
        prev_hash_hex=prev_hash,
        entry_hash_hex=compute_entry_hash(prev_hash, payload),
    )
    db.add(entry)
    db.flush()
    return entry


def verify_chain(entries: List[Any]) -> List[Dict[str, Any]]:
    """
    Recompute the chain over ``entries`` (oldest first).

    Returns one result per entry; an entry is valid when it points at the
    previous entry's hash and its own hash matches its content.
    """
    results = []
    expected_prev = GENESIS_HASH
    for sequence, log in enumerate(entries, start=1):
        payload = entry_payload(
            log.evidence_id, log.actor_user_id, log.action, json.loads(log.details_json), log.ts_utc
        )
        prev_hash_valid = log.prev_hash_hex == expected_prev
        entry_hash_valid = log.entry_hash_hex == compute_entry_hash(log.prev_hash_hex, payload)
        results.append({
            "entry_id": log.id,
            "sequence": sequence,
            "action": log.action,
            "prev_hash_valid": prev_hash_valid,
            "entry_hash_valid": entry_hash_valid,
            "entry_valid": prev_hash_valid and entry_hash_valid,
        })
        expected_prev = log.entry_hash_hex
    return results
