"""
Points ledger.

``User.points`` is the running balance and ``PointTransaction`` the history
behind it. Both are written inside the caller's transaction, so a commit
lands them together and a rollback discards both. Balance changes go through
a single UPDATE statement; a debit only matches rows that can afford it.
"""
import math
import logging
from sqlalchemy import func
from sqlalchemy.orm import Session

from rewear.errors import InsufficientPointsError
from rewear.models import (
    User,
    PointTransaction,
    PointTransactionType,
    level_for,
)

logger = logging.getLogger(__name__)

# 1 rupee = 10 points when paying with points
POINTS_PER_RUPEE = 10
SELLER_POINTS_PER_RUPEE = 5
BUYER_POINTS_PER_RUPEE = 1
APPROVAL_BONUS = 10


def _apply(db: Session, user: User, delta: int, *conditions) -> bool:
    db.flush()
    updated = (
        db.query(User)
        .filter(User.id == user.id, *conditions)
        .update({User.points: User.points + delta}, synchronize_session=False)
    )
    if not updated:
        return False
    db.refresh(user, attribute_names=["points"])
    user.level = level_for(user.points)
    return True


def _record(
    db: Session,
    user: User,
    points: int,
    type_: PointTransactionType,
    reason: str,
    related_item=None,
    related_order=None,
    metadata: dict | None = None,
) -> PointTransaction:
    txn = PointTransaction(
        user_id=user.id,
        points=points,
        type=type_,
        reason=reason[:200],
        related_item_id=related_item.id if related_item is not None else None,
        related_order_id=related_order.id if related_order is not None else None,
        meta=metadata or {},
        balance_after=user.points,
    )
    db.add(txn)
    return txn


def add_points(
    db: Session,
    user: User,
    points: int,
    reason: str = "Activity",
    type_: PointTransactionType = PointTransactionType.earned,
    related_item=None,
    related_order=None,
    metadata: dict | None = None,
) -> PointTransaction:
    if points <= 0:
        raise ValueError("points must be positive")

    _apply(db, user, points)
    txn = _record(db, user, points, type_, reason, related_item, related_order, metadata)

    logger.info(
        "Points credited | user_id=%s | points=%s | balance=%s | reason=%s",
        user.id, points, user.points, reason,
    )
    return txn


def deduct_points(
    db: Session,
    user: User,
    points: int,
    reason: str = "Purchase",
    type_: PointTransactionType = PointTransactionType.spent,
    related_item=None,
    related_order=None,
    metadata: dict | None = None,
) -> PointTransaction:
    """
    Raises InsufficientPointsError, leaving the balance untouched, when the
    user cannot cover ``points``.
    """
    if points <= 0:
        raise ValueError("points must be positive")

    if (user.points or 0) < points:
        raise InsufficientPointsError()

    # a concurrent debit may have drained the balance since it was loaded
    if not _apply(db, user, -points, User.points >= points):
        db.refresh(user, attribute_names=["points"])
        raise InsufficientPointsError()

    txn = _record(db, user, -points, type_, reason, related_item, related_order, metadata)

    logger.info(
        "Points debited | user_id=%s | points=%s | balance=%s | reason=%s",
        user.id, points, user.points, reason,
    )
    return txn


def history(db: Session, user: User, limit: int = 50, offset: int = 0) -> list[PointTransaction]:
    return (
        db.query(PointTransaction)
        .filter(PointTransaction.user_id == user.id, PointTransaction.is_visible == True)
        .order_by(PointTransaction.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def stats(db: Session, user: User) -> dict:
    rows = (
        db.query(
            PointTransaction.type,
            func.sum(PointTransaction.points),
            func.count(PointTransaction.id),
        )
        .filter(PointTransaction.user_id == user.id)
        .group_by(PointTransaction.type)
        .all()
    )
    return {
        t.value: {"totalPoints": int(total or 0), "count": count}
        for t, total, count in rows
    }


def ledger_balance(db: Session, user: User) -> int:
    """Balance as derived from the ledger alone."""
    total = (
        db.query(func.sum(PointTransaction.points))
        .filter(PointTransaction.user_id == user.id)
        .scalar()
    )
    return int(total or 0)


def points_for_purchase(total_amount: float) -> int:
    return math.floor(total_amount * POINTS_PER_RUPEE)


def seller_reward(item_price: float) -> int:
    return math.floor(item_price * SELLER_POINTS_PER_RUPEE)


def buyer_reward(item_price: float) -> int:
    return math.floor(item_price * BUYER_POINTS_PER_RUPEE)
