import uuid
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from pydantic import Field

from rewear.database import get_db
from rewear.dependencies import require_admin
from rewear.models import (
    Item,
    ItemStatus,
    PointTransactionType,
    QualityBadge,
    Review,
    ReviewStatus,
    User,
    UserRole,
    utcnow,
)
from rewear.schemas import CamelModel
from rewear.serializers import private_user, serialize_item, serialize_review, paginate
from rewear.services import items as item_service
from rewear.services import points as points_service
from rewear.services.reviews import refresh_user_rating

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =====================================================
# SCHEMAS
# =====================================================

class ApprovePayload(CamelModel):
    item_id: uuid.UUID
    quality_badge: Optional[QualityBadge] = None


class RejectPayload(CamelModel):
    item_id: uuid.UUID
    reason: str = Field(..., min_length=5, max_length=500)


class QualityPayload(CamelModel):
    item_id: uuid.UUID
    quality_badge: QualityBadge


class GrantPointsPayload(CamelModel):
    user_id: uuid.UUID
    points: int = Field(..., ge=1, le=10000)
    reason: str = Field(..., min_length=5, max_length=200)


class ModeratePayload(CamelModel):
    item_id: uuid.UUID
    action: str = Field(..., pattern="^(remove|restore)$")
    reason: Optional[str] = Field(None, max_length=500)


class UserStatusPayload(CamelModel):
    is_active: bool


class ReviewStatusPayload(CamelModel):
    status: ReviewStatus
    reason: Optional[str] = Field(None, max_length=500)


def _get_item(db: Session, item_id) -> Item:
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


def _get_user(db: Session, user_id) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# =====================================================
# DASHBOARD
# =====================================================
@router.get("/stats")
def admin_stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    counts = dict(
        db.query(Item.status, func.count(Item.id)).group_by(Item.status).all()
    )
    revenue = (
        db.query(func.coalesce(func.sum(Item.price), 0))
        .filter(Item.status == ItemStatus.sold)
        .scalar()
    )

    return {
        "success": True,
        "data": {
            "items": {
                "pending": counts.get(ItemStatus.pending, 0),
                "flagged": counts.get(ItemStatus.flagged, 0),
                "active": counts.get(ItemStatus.active, 0),
                "approved": counts.get(ItemStatus.approved, 0),
                "rejected": counts.get(ItemStatus.rejected, 0),
                "sold": counts.get(ItemStatus.sold, 0),
                "total": sum(counts.values()),
            },
            "users": {
                "total": db.query(func.count(User.id)).scalar(),
                "active": db.query(func.count(User.id)).filter(User.is_active == True).scalar(),
            },
            "revenue": float(revenue or 0),
        },
    }


# =====================================================
# MODERATION QUEUES
# =====================================================
@router.get("/items/pending")
def pending_items(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(Item).filter(Item.status == ItemStatus.pending)
    total = query.count()
    items = (
        query.order_by(Item.created_at.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "data": {
            "items": [serialize_item(i, detail=True) for i in items],
            "pagination": paginate(page, limit, total),
        },
    }


@router.get("/items/flagged")
def flagged_items(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(Item).filter(Item.status == ItemStatus.flagged)
    total = query.count()
    items = (
        query.order_by(Item.updated_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    data = []
    for item in items:
        entry = serialize_item(item, detail=True)
        entry["flags"] = [
            {"user": str(f.user_id), "reason": f.reason, "flaggedAt": f.flagged_at}
            for f in item.flagged_by
        ]
        data.append(entry)

    return {
        "success": True,
        "data": {"items": data, "pagination": paginate(page, limit, total)},
    }


@router.post("/items/approve")
def approve_item(
    payload: ApprovePayload,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    item = _get_item(db, payload.item_id)
    item_service.approve_item(db, item, admin, payload.quality_badge)
    db.commit()
    db.refresh(item)

    return {
        "success": True,
        "message": "Item approved successfully",
        "data": {"item": serialize_item(item, detail=True)},
    }


@router.post("/items/reject")
def reject_item(
    payload: RejectPayload,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    item = _get_item(db, payload.item_id)
    item_service.reject_item(item, admin, payload.reason.strip())
    db.commit()
    db.refresh(item)

    return {
        "success": True,
        "message": "Item rejected",
        "data": {"item": serialize_item(item, detail=True)},
    }


@router.post("/items/quality")
def set_quality_badge(
    payload: QualityPayload,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    item = _get_item(db, payload.item_id)
    item.quality_badge = payload.quality_badge
    db.commit()

    logger.info(
        "Quality badge set | item_id=%s | badge=%s | admin_id=%s",
        item.id, payload.quality_badge.value, admin.id,
    )
    return {
        "success": True,
        "message": "Quality badge updated",
        "data": {"qualityBadge": payload.quality_badge.value},
    }


@router.post("/content/moderate")
def moderate_content(
    payload: ModeratePayload,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    item = _get_item(db, payload.item_id)

    if payload.action == "remove":
        item_service.remove_item(item)
    else:
        item_service.restore_item(item)
    db.commit()

    logger.info(
        "Content moderated | item_id=%s | action=%s | reason=%s | admin_id=%s",
        item.id, payload.action, payload.reason, admin.id,
    )
    return {
        "success": True,
        "message": "Item removed" if payload.action == "remove" else "Item restored",
        "data": {"status": item.status.value},
    }


# =====================================================
# USERS
# =====================================================
@router.get("/users")
def list_users(
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(User)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(User.name.ilike(term), User.email.ilike(term)))
    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)

    total = query.count()
    users = (
        query.order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "data": {
            "users": [private_user(u) for u in users],
            "pagination": paginate(page, limit, total),
        },
    }


@router.post("/users/grant-points")
def grant_points(
    payload: GrantPointsPayload,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user(db, payload.user_id)

    points_service.add_points(
        db,
        user,
        payload.points,
        f"Admin grant: {payload.reason.strip()}",
        type_=PointTransactionType.bonus,
        metadata={"grantedBy": str(admin.id)},
    )
    db.commit()
    db.refresh(user)

    return {
        "success": True,
        "message": f"Granted {payload.points} points",
        "data": {"userId": str(user.id), "points": user.points, "level": user.level.value},
    }


@router.put("/users/{user_id}/status")
def set_user_status(
    user_id: uuid.UUID,
    payload: UserStatusPayload,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user(db, user_id)
    if user.id == admin.id and not payload.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    user.is_active = payload.is_active
    db.commit()

    logger.info("User status changed | user_id=%s | active=%s | admin_id=%s", user.id, user.is_active, admin.id)
    return {
        "success": True,
        "message": "User activated" if user.is_active else "User deactivated",
        "data": {"id": str(user.id), "isActive": user.is_active},
    }


# =====================================================
# REVIEWS
# =====================================================
@router.put("/reviews/{review_id}/status")
def set_review_status(
    review_id: uuid.UUID,
    payload: ReviewStatusPayload,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    review = db.query(Review).filter(Review.id == review_id).first()
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")

    review.status = payload.status
    review.flagged_reason = payload.reason
    review.moderated_by = admin.id
    review.moderated_at = utcnow()
    db.flush()

    refresh_user_rating(db, review.reviewee_id)
    db.commit()
    db.refresh(review)

    return {
        "success": True,
        "message": "Review status updated",
        "data": {"review": serialize_review(review)},
    }
