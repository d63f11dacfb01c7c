import logging
import uuid
from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.orm import Session

from rewear.database import get_db
from rewear.models import User, utcnow
from rewear.security import decode_token, get_token_from_request, TokenExpired

logger = logging.getLogger(__name__)


def _load_user(db: Session, payload: dict) -> User | None:
    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        return None
    return db.query(User).filter(User.id == user_id).first()


def _touch(db: Session, user: User) -> None:
    user.last_active = utcnow()
    db.commit()


# =========================
# CURRENT USER (BEARER TOKEN)
# =========================
def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
):
    token = get_token_from_request(request)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied. No token provided.",
        )

    try:
        payload = decode_token(token)
    except TokenExpired:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired. Please login again.",
        )

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token.",
        )

    user = _load_user(db, payload)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token. User not found.",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated.",
        )

    _touch(db, user)
    return user


# =========================
# OPTIONAL USER (PUBLIC ROUTES)
# =========================
def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
):
    """Public routes use the caller, when there is one, for like/edit flags."""
    token = get_token_from_request(request)
    if not token:
        return None

    try:
        payload = decode_token(token)
    except TokenExpired:
        return None

    if not payload:
        return None

    user = _load_user(db, payload)
    if not user or not user.is_active:
        return None

    _touch(db, user)
    return user


# =========================
# ADMIN
# =========================
def require_admin(
    user: User = Depends(get_current_user),
):
    if not user.is_admin:
        logger.warning("Admin route refused | user_id=%s", user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
