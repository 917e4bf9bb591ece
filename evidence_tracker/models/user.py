from sqlalchemy import Boolean, Column, Integer, String, DateTime, Enum
from sqlalchemy.sql import func
from enum import Enum as PyEnum
from ..db import Base


class UserRole(PyEnum):
    ADMIN = "ADMIN"
    OFFICER = "OFFICER"
    ANALYST = "ANALYST"
    AUDITOR = "AUDITOR"


class User(Base):
    """An account holder. Users double as custodians of evidence."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    badge_number = Column(String(50), unique=True, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.OFFICER)
    is_active = Column(Boolean, nullable=False, default=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
