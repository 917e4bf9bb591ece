from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from ..db import Base


class SignatureType(PyEnum):
    HAND_DRAWN = "hand-drawn"
    TYPED = "typed"
    UPLOADED = "uploaded"


class Signature(Base):
    """A custodian's signature, referenced by the transfers it signs off."""
    __tablename__ = "signatures"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    signature_type = Column(Enum(SignatureType), nullable=False)
    # Typed name, data URL of a drawn canvas, or reference to an uploaded image
    signature_data = Column(Text, nullable=False)
    image_path = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User")
