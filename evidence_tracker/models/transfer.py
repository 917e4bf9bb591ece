from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, Text, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from ..db import Base


class TransferType(PyEnum):
    RECEIPT = "receipt"
    INTERNAL = "internal"
    RELEASE = "release"
    DISPOSAL = "disposal"


class TransferStatus(PyEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"


class TransferRecord(Base):
    """One custody hand-off. from_* columns are snapshots taken at creation."""
    __tablename__ = "custody_transfers"

    id = Column(Integer, primary_key=True, index=True)
    evidence_item_id = Column(Integer, ForeignKey("evidence_items.id"), nullable=False, index=True)
    transfer_type = Column(Enum(TransferType), nullable=False)
    transfer_reason_id = Column(Integer, ForeignKey("transfer_reasons.id"), nullable=True)
    requires_approval = Column(Boolean, nullable=False, default=False)
    # Free-text reason, alongside or instead of a reason lookup
    transfer_reason_text = Column(Text, nullable=True)
    from_custodian_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    from_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    to_custodian_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    to_location_id = Column(Integer, ForeignKey("locations.id"), nullable=True)
    from_signature_id = Column(Integer, ForeignKey("signatures.id"), nullable=True)
    to_signature_id = Column(Integer, ForeignKey("signatures.id"), nullable=True)
    status = Column(Enum(TransferStatus), nullable=False, default=TransferStatus.PENDING)
    receipt_number = Column(String(64), unique=True, nullable=False)
    condition_notes = Column(Text, nullable=True)
    transfer_notes = Column(Text, nullable=True)
    initiated_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    initiated_at = Column(DateTime(timezone=True), nullable=False)
    approved_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    evidence_item = relationship("EvidenceItem", back_populates="transfers")
    transfer_reason = relationship("TransferReason")
    from_custodian = relationship("User", foreign_keys=[from_custodian_id])
    to_custodian = relationship("User", foreign_keys=[to_custodian_id])
    from_location = relationship("Location", foreign_keys=[from_location_id])
    to_location = relationship("Location", foreign_keys=[to_location_id])
    from_signature = relationship("Signature", foreign_keys=[from_signature_id])
    to_signature = relationship("Signature", foreign_keys=[to_signature_id])
    initiated_by = relationship("User", foreign_keys=[initiated_by_user_id])
    approved_by = relationship("User", foreign_keys=[approved_by_user_id])
