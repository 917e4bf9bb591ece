from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from ..db import Base


class EvidenceStatus(PyEnum):
    STORED = "stored"
    IN_ANALYSIS = "in_analysis"
    IN_COURT = "in_court"
    RELEASED = "released"
    DISPOSED = "disposed"
    DESTROYED = "destroyed"


TERMINAL_STATUSES = (EvidenceStatus.DISPOSED, EvidenceStatus.DESTROYED)


class EvidenceItem(Base):
    __tablename__ = "evidence_items"
    __table_args__ = (
        UniqueConstraint("case_number", "item_number", name="uq_evidence_case_item"),
    )

    id = Column(Integer, primary_key=True, index=True)
    case_number = Column(String(50), nullable=False, index=True)
    item_number = Column(String(50), nullable=False, index=True)
    item_type_id = Column(Integer, ForeignKey("item_types.id"), nullable=True, index=True)
    description = Column(Text, nullable=False)
    collected_date = Column(DateTime(timezone=True), nullable=False)
    collected_by = Column(String(200), nullable=False)
    collection_location = Column(String(200), nullable=True)
    serial_number = Column(String(100), nullable=True)
    make_model = Column(String(200), nullable=True)
    barcode = Column(String(100), unique=True, nullable=True)
    condition_notes = Column(Text, nullable=True)
    current_status = Column(Enum(EvidenceStatus), nullable=False, default=EvidenceStatus.STORED)
    current_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True, index=True)
    current_custodian_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    item_type = relationship("ItemType")
    current_location = relationship("Location")
    current_custodian = relationship("User", foreign_keys=[current_custodian_id])
    created_by = relationship("User", foreign_keys=[created_by_user_id])
    transfers = relationship("TransferRecord", back_populates="evidence_item")
    notes = relationship(
        "EvidenceNote",
        back_populates="evidence_item",
        cascade="all, delete-orphan",
        order_by="EvidenceNote.id.desc()",
    )
    photos = relationship(
        "EvidencePhoto",
        back_populates="evidence_item",
        cascade="all, delete-orphan",
        order_by="EvidencePhoto.id.desc()",
    )


class EvidenceNote(Base):
    __tablename__ = "evidence_notes"

    id = Column(Integer, primary_key=True, index=True)
    evidence_item_id = Column(Integer, ForeignKey("evidence_items.id", ondelete="CASCADE"), nullable=False, index=True)
    note = Column(Text, nullable=False)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    evidence_item = relationship("EvidenceItem", back_populates="notes")
    created_by = relationship("User")


class EvidencePhoto(Base):
    __tablename__ = "evidence_photos"

    id = Column(Integer, primary_key=True, index=True)
    evidence_item_id = Column(Integer, ForeignKey("evidence_items.id", ondelete="CASCADE"), nullable=False, index=True)
    orig_filename = Column(String(255), nullable=False)
    mime = Column(String(100), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    sha256_hex = Column(String(64), nullable=False)
    cipher_path = Column(String(255), nullable=False)
    caption = Column(String(500), nullable=True)
    uploaded_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    evidence_item = relationship("EvidenceItem", back_populates="photos")
    uploaded_by = relationship("User")
