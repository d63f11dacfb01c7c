from sqlalchemy import func
from sqlalchemy.orm import Session

from rewear.models import Review, ReviewStatus, User


def refresh_user_rating(db: Session, user_id) -> None:
    """Only active reviews count towards a user's rating."""
    avg_rating, count = (
        db.query(func.avg(Review.rating), func.count(Review.id))
        .filter(Review.reviewee_id == user_id, Review.status == ReviewStatus.active)
        .one()
    )

    user = db.query(User).filter(User.id == user_id).first()
    if user:
        user.rating_average = round(float(avg_rating), 2) if avg_rating else 0
        user.rating_count = count or 0


def rating_summary(db: Session, user_id) -> dict:
    rows = (
        db.query(Review.rating, func.count(Review.id))
        .filter(Review.reviewee_id == user_id, Review.status == ReviewStatus.active)
        .group_by(Review.rating)
        .all()
    )
    distribution = {str(star): 0 for star in range(1, 6)}
    total = 0
    weighted = 0
    for rating, count in rows:
        distribution[str(rating)] = count
        total += count
        weighted += rating * count

    return {
        "averageRating": round(weighted / total, 2) if total else 0,
        "totalReviews": total,
        "ratingDistribution": distribution,
    }
