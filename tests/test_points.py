import pytest

from rewear.errors import InsufficientPointsError
from rewear.models import PointTransaction, PointTransactionType, User, UserLevel, level_info
from rewear.services import points as points_service


@pytest.mark.parametrize(
    "points,level,next_level,needed",
    [
        (0, "Beginner", "Explorer", 100),
        (99, "Beginner", "Explorer", 1),
        (100, "Explorer", "Enthusiast", 400),
        (1499, "Enthusiast", "Expert", 1),
        (4999, "Expert", "Master", 1),
        (5000, "Master", None, 0),
    ],
)
def test_level_info_tiers(points, level, next_level, needed):
    info = level_info(points)
    assert info == {"level": level, "nextLevel": next_level, "pointsNeeded": needed}


def test_add_points_updates_balance_level_and_ledger(db, make_user):
    user = make_user(points=90)

    txn = points_service.add_points(db, user, 20, "Item approved")
    db.commit()

    db.refresh(user)
    assert user.points == 110
    assert user.level == UserLevel.explorer
    assert txn.balance_after == 110
    assert txn.type == PointTransactionType.earned


def test_deduct_points_below_balance_raises_and_changes_nothing(db, make_user):
    user = make_user(points=50)

    with pytest.raises(InsufficientPointsError):
        points_service.deduct_points(db, user, 51, "Purchase: jacket")
    db.commit()

    db.refresh(user)
    assert user.points == 50
    assert db.query(PointTransaction).filter_by(user_id=user.id).count() == 0


def test_deduct_points_writes_negative_row(db, make_user):
    user = make_user(points=300)

    txn = points_service.deduct_points(db, user, 120, "Purchase: jacket")
    db.commit()

    db.refresh(user)
    assert user.points == 180
    assert txn.points == -120
    assert txn.balance_after == 180
    assert txn.type == PointTransactionType.spent


def test_deduct_points_stale_balance_is_refused(db, make_user):
    user = make_user(points=100)

    # another request drains the balance behind this session's back
    db.query(User).filter_by(id=user.id).update({"points": 10}, synchronize_session=False)

    with pytest.raises(InsufficientPointsError):
        points_service.deduct_points(db, user, 60, "Purchase: jacket")

    assert user.points == 10


def test_ledger_rows_add_up_to_balance(db, make_user):
    user = make_user()

    points_service.add_points(db, user, 500, "Sale: coat")
    points_service.add_points(db, user, 25, "Admin grant: thanks", type_=PointTransactionType.bonus)
    points_service.deduct_points(db, user, 200, "Purchase: scarf")
    db.commit()

    db.refresh(user)
    assert user.points == 325
    assert points_service.ledger_balance(db, user) == 325

    stats = points_service.stats(db, user)
    assert stats["earned"] == {"totalPoints": 500, "count": 1}
    assert stats["bonus"] == {"totalPoints": 25, "count": 1}
    assert stats["spent"] == {"totalPoints": -200, "count": 1}

    history = points_service.history(db, user)
    assert sorted(t.points for t in history) == [-200, 25, 500]


def test_non_positive_amounts_are_rejected(db, make_user):
    user = make_user(points=10)
    with pytest.raises(ValueError):
        points_service.add_points(db, user, 0, "nothing")
    with pytest.raises(ValueError):
        points_service.deduct_points(db, user, -5, "nothing")


@pytest.mark.parametrize(
    "total,expected",
    [(1000, 10000), (99.99, 999), (50.05, 500)],
)
def test_points_for_purchase(total, expected):
    assert points_service.points_for_purchase(total) == expected


def test_rewards():
    assert points_service.seller_reward(1000) == 5000
    assert points_service.buyer_reward(1499.5) == 1499
