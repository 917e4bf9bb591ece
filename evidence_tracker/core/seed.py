"""
Default lookup rows for a fresh installation.

Seeding is idempotent: rows whose name already exists (ignoring case) are
left alone, so the seed can run on every deploy.
"""
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.lookup import ItemType, Location, TransferReason
from .custody import INITIAL_RECEIPT_REASON
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_ITEM_TYPES = [
    ("Mobile Phone", "Electronics"),
    ("Hard Drive", "Electronics"),
    ("USB Drive", "Electronics"),
    ("Laptop", "Electronics"),
    ("Document", "Paper"),
    ("Firearm", "Weapon"),
    ("Currency", "Financial"),
    ("Drug Evidence", "Controlled Substance"),
    ("SIM Card", "Electronics"),
    ("Other", "Miscellaneous"),
]

# (name, building, room)
DEFAULT_LOCATIONS = [
    ("Evidence Room A", "Main Building", "Ground Floor"),
    ("Evidence Room B", "Main Building", "Ground Floor"),
    ("Digital Forensics Lab", "Tech Building", "2nd Floor"),
    ("Firearms Lab", "Tech Building", "1st Floor"),
    ("Court Evidence Locker", "Courthouse", "Basement"),
    ("Temporary Holding", "Main Building", "Room 101"),
    ("Secure Vault", "Main Building", "Sub-Basement"),
    ("External - Crime Scene", None, None),
]

# (reason, reason_type, requires_approval)
DEFAULT_TRANSFER_REASONS = [
    (INITIAL_RECEIPT_REASON, "Receipt", False),
    ("Forensic Analysis", "Transfer", False),
    ("Court Presentation", "Transfer", True),
    ("Lab Testing", "Transfer", False),
    ("Return to Owner", "Return", True),
    ("Destruction Approved", "Disposal", True),
    ("Transfer to Archive", "Transfer", False),
    ("Secure Storage", "Transfer", False),
    ("Case Closure", "Return", True),
    ("External Agency Request", "Transfer", True),
]


def _exists(db: Session, column, value: str) -> bool:
    return db.query(column).filter(func.lower(column) == value.lower()).first() is not None


def seed_lookups(db: Session) -> int:
    """Add the default item types, locations and transfer reasons. Returns the number of rows added."""
    added = 0
    for name, category in DEFAULT_ITEM_TYPES:
        if not _exists(db, ItemType.name, name):
            db.add(ItemType(name=name, category=category))
            added += 1
    for name, building, room in DEFAULT_LOCATIONS:
        if not _exists(db, Location.name, name):
            db.add(Location(name=name, building=building, room=room))
            added += 1
    for reason, reason_type, requires_approval in DEFAULT_TRANSFER_REASONS:
        if not _exists(db, TransferReason.reason, reason):
            db.add(TransferReason(reason=reason, reason_type=reason_type, requires_approval=requires_approval))
            added += 1
    db.flush()
    logger.info("Seeded %d lookup rows", added)
    return added
