from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from ..db import get_db, transaction
from ..models.audit import AuditLog
from ..models.evidence import EvidenceItem, EvidenceNote, EvidencePhoto
from ..models.signature import Signature
from ..models.transfer import TransferRecord
from ..models.user import User, UserRole
from ..schemas.auth import UserLogin, LoginResponse, UserCreate, UserUpdate, UserResponse
from ..core.config import settings
from ..core.logger import get_logger
from ..core.security import verify_password, get_password_hash, create_session_token, verify_token

router = APIRouter()
security = HTTPBearer(auto_error=False)
logger = get_logger(__name__)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the session cookie (or a Bearer token) to an active user"""
    token = request.cookies.get(settings.session_cookie_name)
    if not token and credentials:
        token = credentials.credentials
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )

    payload = verify_token(token, "access")
    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials"
        )

    user = db.query(User).filter(User.id == int(user_id)).first()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Require ADMIN role"""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation requires ADMIN role"
        )
    return current_user


def require_writer(current_user: User = Depends(get_current_user)) -> User:
    """Auditors have read-only access"""
    if current_user.role == UserRole.AUDITOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="AUDITOR role has read-only access"
        )
    return current_user


@router.post("/login", response_model=LoginResponse)
def login(user_data: UserLogin, response: Response, db: Session = Depends(get_db)):
    """Check credentials and set the HTTP-only session cookie"""
    user = db.query(User).filter(User.username == user_data.username).first()

    if not user or not user.is_active or not verify_password(user_data.password, user.password_hash):
        logger.warning("Failed login for username %r", user_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    token = create_session_token(
        data={"sub": str(user.id), "username": user.username, "role": user.role.value}
    )
    max_age = settings.session_expire_minutes * 60
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=max_age,
    )
    logger.info("User %s logged in", user.id)
    return {"user": user, "expires_in": max_age}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(key=settings.session_cookie_name)
    return {"success": True}


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return current_user


@router.get("/users", response_model=list[UserResponse])
def list_users(
    active_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List users. These double as the custodian lookup, so any session may read them."""
    query = db.query(User)
    if active_only:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.full_name.asc()).all()


def _ensure_unique_user(db: Session, username: Optional[str], badge_number: Optional[str], exclude_id: Optional[int] = None):
    if username:
        query = db.query(User.id).filter(func.lower(User.username) == username.lower())
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    if badge_number:
        query = db.query(User.id).filter(func.lower(User.badge_number) == badge_number.lower())
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Badge number already exists")


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a user (ADMIN only)"""
    _ensure_unique_user(db, user_data.username, user_data.badge_number)

    with transaction(db):
        db_user = User(
            username=user_data.username,
            full_name=user_data.full_name,
            email=user_data.email,
            badge_number=user_data.badge_number or None,
            role=user_data.role,
            is_active=user_data.is_active,
            password_hash=get_password_hash(user_data.password)
        )
        db.add(db_user)
    db.refresh(db_user)
    logger.info("User %s created by %s", db_user.id, current_user.id)
    return db_user


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Update a user (ADMIN only). Deactivated users can no longer log in or receive custody."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    changes = payload.model_dump(exclude_unset=True)
    for name in ["full_name", "role", "is_active", "password"]:
        if name in changes and changes[name] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} cannot be null")
    if user.id == current_user.id and (
        changes.get("is_active") is False
        or ("role" in changes and changes["role"] != UserRole.ADMIN)
    ):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot deactivate or demote your own account"
        )
    _ensure_unique_user(db, None, changes.get("badge_number"), exclude_id=user.id)

    with transaction(db):
        password = changes.pop("password", None)
        if password:
            user.password_hash = get_password_hash(password)
        for name, value in changes.items():
            setattr(user, name, value)
    db.refresh(user)
    return user


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Delete a user that has never touched any evidence (ADMIN only)"""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Cannot delete your own account")

    referenced = (
        db.query(EvidenceItem.id).filter(or_(
            EvidenceItem.current_custodian_id == user_id,
            EvidenceItem.created_by_user_id == user_id,
        )).first()
        or db.query(TransferRecord.id).filter(or_(
            TransferRecord.from_custodian_id == user_id,
            TransferRecord.to_custodian_id == user_id,
            TransferRecord.initiated_by_user_id == user_id,
            TransferRecord.approved_by_user_id == user_id,
        )).first()
        or db.query(EvidenceNote.id).filter(EvidenceNote.created_by_user_id == user_id).first()
        or db.query(EvidencePhoto.id).filter(EvidencePhoto.uploaded_by_user_id == user_id).first()
        or db.query(Signature.id).filter(Signature.user_id == user_id).first()
        or db.query(AuditLog.id).filter(AuditLog.actor_user_id == user_id).first()
    )
    if referenced:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is referenced by evidence records. Deactivate the user instead."
        )

    with transaction(db):
        db.delete(user)
    logger.info("User %s deleted by %s", user_id, current_user.id)
    return {"success": True}
