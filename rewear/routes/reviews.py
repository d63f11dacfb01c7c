import uuid
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from pydantic import Field

from rewear.database import get_db
from rewear.dependencies import get_current_user
from rewear.models import (
    Order,
    OrderStatus,
    Review,
    ReviewStatus,
    ReviewType,
    ReviewVote,
    User,
    utcnow,
)
from rewear.schemas import CamelModel
from rewear.serializers import serialize_review, paginate
from rewear.services.reviews import refresh_user_rating, rating_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])


# =====================================================
# Pydantic Schemas
# =====================================================

class ReviewAspects(CamelModel):
    communication: Optional[int] = Field(None, ge=1, le=5)
    item_condition: Optional[int] = Field(None, ge=1, le=5)
    packaging: Optional[int] = Field(None, ge=1, le=5)
    delivery: Optional[int] = Field(None, ge=1, le=5)
    overall: Optional[int] = Field(None, ge=1, le=5)


class ReviewCreate(CamelModel):
    order_id: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1, max_length=100)
    comment: str = Field(..., min_length=1, max_length=1000)
    aspects: Optional[ReviewAspects] = None


class ReviewResponsePayload(CamelModel):
    comment: str = Field(..., min_length=1, max_length=500)


class ReviewVotePayload(CamelModel):
    helpful: bool


def _get_review(db: Session, review_id: uuid.UUID) -> Review:
    review = db.query(Review).filter(Review.id == review_id).first()
    if not review:
        raise HTTPException(status_code=404, detail="Review not found")
    return review


# =====================================================
# USER: CREATE REVIEW
# =====================================================
@router.post("", status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Buyer reviews the seller, or seller reviews the buyer, once per order."""
    order = db.query(Order).filter(Order.id == payload.order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    if user.id == order.buyer_id:
        review_type, reviewee_id = ReviewType.buyer_to_seller, order.seller_id
    elif user.id == order.seller_id:
        review_type, reviewee_id = ReviewType.seller_to_buyer, order.buyer_id
    else:
        raise HTTPException(status_code=403, detail="You were not part of this order")

    if order.status != OrderStatus.delivered:
        raise HTTPException(status_code=400, detail="Only delivered orders can be reviewed")

    if order.item_id is None:
        raise HTTPException(status_code=400, detail="The item for this order no longer exists")

    existing = (
        db.query(Review)
        .filter(Review.order_id == order.id, Review.reviewer_id == user.id)
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="You already reviewed this order")

    aspects = payload.aspects.model_dump(exclude_none=True, by_alias=True) if payload.aspects else {}

    review = Review(
        reviewer_id=user.id,
        reviewee_id=reviewee_id,
        item_id=order.item_id,
        order_id=order.id,
        type=review_type,
        rating=payload.rating,
        title=payload.title.strip(),
        comment=payload.comment.strip(),
        aspects=aspects,
        is_verified_purchase=True,
    )
    db.add(review)
    db.flush()

    refresh_user_rating(db, reviewee_id)
    db.commit()
    db.refresh(review)

    logger.info("Review created | review_id=%s | order_id=%s", review.id, order.id)

    return {
        "success": True,
        "message": "Review submitted",
        "data": {"review": serialize_review(review)},
    }


# =====================================================
# REVIEWEE: RESPOND
# =====================================================
@router.post("/{review_id}/response", status_code=status.HTTP_200_OK)
def respond_to_review(
    review_id: uuid.UUID,
    payload: ReviewResponsePayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    review = _get_review(db, review_id)

    if review.reviewee_id != user.id:
        raise HTTPException(status_code=403, detail="Only the reviewed user can respond")

    if review.response_comment:
        raise HTTPException(status_code=400, detail="You already responded to this review")

    review.response_comment = payload.comment.strip()
    review.responded_at = utcnow()
    review.responded_by = user.id
    db.commit()
    db.refresh(review)

    return {
        "success": True,
        "message": "Response added",
        "data": {"review": serialize_review(review)},
    }


# =====================================================
# USER: VOTE HELPFUL
# =====================================================
@router.post("/{review_id}/vote", status_code=status.HTTP_200_OK)
def vote_review(
    review_id: uuid.UUID,
    payload: ReviewVotePayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    review = _get_review(db, review_id)

    if review.reviewer_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot vote on your own review")

    vote = next((v for v in review.votes if v.user_id == user.id), None)
    if vote:
        vote.is_helpful = payload.helpful
    else:
        review.votes.append(ReviewVote(user_id=user.id, is_helpful=payload.helpful))

    review.helpful_count = sum(1 for v in review.votes if v.is_helpful)
    db.commit()

    return {
        "success": True,
        "message": "Vote recorded",
        "data": {"helpfulCount": review.helpful_count},
    }


# =====================================================
# PUBLIC: LISTINGS
# =====================================================
@router.get("/user/{user_id}", status_code=status.HTTP_200_OK)
def get_user_reviews(
    user_id: uuid.UUID,
    review_type: Optional[ReviewType] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    query = db.query(Review).filter(
        Review.reviewee_id == user_id,
        Review.status == ReviewStatus.active,
    )
    if review_type:
        query = query.filter(Review.type == review_type)

    total = query.count()
    reviews = (
        query.order_by(Review.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "success": True,
        "data": {
            "reviews": [serialize_review(r) for r in reviews],
            "stats": rating_summary(db, user_id),
            "pagination": paginate(page, limit, total),
        },
    }


@router.get("/item/{item_id}", status_code=status.HTTP_200_OK)
def get_item_reviews(item_id: uuid.UUID, db: Session = Depends(get_db)):
    reviews = (
        db.query(Review)
        .filter(Review.item_id == item_id, Review.status == ReviewStatus.active)
        .order_by(Review.created_at.desc())
        .all()
    )
    return {
        "success": True,
        "data": {"reviews": [serialize_review(r) for r in reviews]},
    }
