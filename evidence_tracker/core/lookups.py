"""
Lookup tables administered by admins: item types, locations and transfer
reasons.

Each table is described once by a ``LookupKind`` (model, schemas, unique
column and the columns elsewhere that reference it). The CRUD functions
below work on any kind, so the router never branches on the table name.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from fastapi import HTTPException, status
from pydantic import BaseModel, ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import Base
from ..models.evidence import EvidenceItem
from ..models.lookup import ItemType, Location, TransferReason
from ..models.transfer import TransferRecord
from ..schemas.lookup import (
    ItemTypeCreate,
    ItemTypeUpdate,
    ItemTypeResponse,
    LocationCreate,
    LocationUpdate,
    LocationResponse,
    TransferReasonCreate,
    TransferReasonUpdate,
    TransferReasonResponse,
)
from .logger import get_logger

logger = get_logger(__name__)


class LookupType(str, Enum):
    ITEM_TYPES = "item-types"
    LOCATIONS = "locations"
    TRANSFER_REASONS = "transfer-reasons"


@dataclass(frozen=True)
class LookupKind:
    label: str
    model: Type[Base]
    unique_field: str
    create_schema: Type[BaseModel]
    update_schema: Type[BaseModel]
    response_schema: Type[BaseModel]
    # Columns holding a reference to a row of this table
    referenced_by: List[Any] = field(default_factory=list)

    @property
    def unique_column(self):
        return getattr(self.model, self.unique_field)


LOOKUP_KINDS: Dict[LookupType, LookupKind] = {
    LookupType.ITEM_TYPES: LookupKind(
        label="Item type",
        model=ItemType,
        unique_field="name",
        create_schema=ItemTypeCreate,
        update_schema=ItemTypeUpdate,
        response_schema=ItemTypeResponse,
        referenced_by=[EvidenceItem.item_type_id],
    ),
    LookupType.LOCATIONS: LookupKind(
        label="Location",
        model=Location,
        unique_field="name",
        create_schema=LocationCreate,
        update_schema=LocationUpdate,
        response_schema=LocationResponse,
        referenced_by=[
            EvidenceItem.current_location_id,
            TransferRecord.from_location_id,
            TransferRecord.to_location_id,
        ],
    ),
    LookupType.TRANSFER_REASONS: LookupKind(
        label="Transfer reason",
        model=TransferReason,
        unique_field="reason",
        create_schema=TransferReasonCreate,
        update_schema=TransferReasonUpdate,
        response_schema=TransferReasonResponse,
        referenced_by=[TransferRecord.transfer_reason_id],
    ),
}


def get_kind(lookup_type: LookupType) -> LookupKind:
    return LOOKUP_KINDS[lookup_type]


def parse_payload(schema: Type[BaseModel], payload: Dict[str, Any]) -> BaseModel:
    """Validate a raw JSON body against a kind's schema; failures are 400s."""
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        errors = e.errors()
        first = errors[0] if errors else {}
        loc = ".".join(str(p) for p in first.get("loc", ())) or "body"
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{loc}: {first.get('msg', 'invalid value')}"
        )


def serialize(kind: LookupKind, row) -> dict:
    return kind.response_schema.model_validate(row).model_dump(mode="json")


def list_rows(db: Session, kind: LookupKind, active_only: bool = False) -> list:
    query = db.query(kind.model)
    if active_only:
        query = query.filter(kind.model.active.is_(True))
    return query.order_by(kind.unique_column.asc()).all()


def get_row(db: Session, kind: LookupKind, row_id: int):
    row = db.query(kind.model).filter(kind.model.id == row_id).first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind.label} not found")
    return row


def ensure_unique(db: Session, kind: LookupKind, value: str, exclude_id: Optional[int] = None) -> None:
    """Names are unique per table regardless of case."""
    query = db.query(kind.model.id).filter(func.lower(kind.unique_column) == value.lower())
    if exclude_id is not None:
        query = query.filter(kind.model.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{kind.label} '{value}' already exists"
        )


def create_row(db: Session, kind: LookupKind, payload: Dict[str, Any]):
    data = parse_payload(kind.create_schema, payload)
    ensure_unique(db, kind, getattr(data, kind.unique_field))
    row = kind.model(**data.model_dump())
    db.add(row)
    db.flush()
    logger.info("%s %s created", kind.label, row.id)
    return row


def update_row(db: Session, kind: LookupKind, row_id: int, payload: Dict[str, Any]):
    row = get_row(db, kind, row_id)
    data = parse_payload(kind.update_schema, payload)
    changes = data.model_dump(exclude_unset=True)

    # Non-nullable columns cannot be patched to null
    for name in [kind.unique_field, "active", "requires_approval"]:
        if name in changes and changes[name] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} cannot be null")

    if kind.unique_field in changes:
        ensure_unique(db, kind, changes[kind.unique_field], exclude_id=row.id)

    for name, value in changes.items():
        setattr(row, name, value)
    db.flush()
    logger.info("%s %s updated: %s", kind.label, row.id, sorted(changes))
    return row


def reference_count(db: Session, kind: LookupKind, row_id: int) -> int:
    total = 0
    for column in kind.referenced_by:
        total += db.query(func.count()).select_from(column.class_).filter(column == row_id).scalar()
    return total


def delete_row(db: Session, kind: LookupKind, row_id: int) -> None:
    row = get_row(db, kind, row_id)
    if reference_count(db, kind, row_id):
        logger.warning("Refused to delete referenced %s %s", kind.label.lower(), row_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{kind.label} is in use by evidence or transfer records. Consider marking it inactive instead."
        )
    db.delete(row)
    db.flush()
    logger.info("%s %s deleted", kind.label, row_id)


