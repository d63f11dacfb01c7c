import math
import uuid
import enum
from datetime import datetime, timedelta, timezone
from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Float,
    Boolean,
    DateTime,
    JSON,
    Enum,
    ForeignKey,
    Index,
    Uuid,
)
from sqlalchemy.orm import relationship, validates

from rewear.database import Base


def utcnow() -> datetime:
    """All timestamps are stored as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _values(enum_cls):
    return [member.value for member in enum_cls]


# =========================
# ENUMS
# =========================

class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"


class UserLevel(str, enum.Enum):
    beginner = "Beginner"
    explorer = "Explorer"
    enthusiast = "Enthusiast"
    expert = "Expert"
    master = "Master"


class ItemStatus(str, enum.Enum):
    draft = "draft"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    active = "active"
    reserved = "reserved"
    sold = "sold"
    flagged = "flagged"
    inactive = "inactive"


class ItemCategory(str, enum.Enum):
    tops = "Tops"
    bottoms = "Bottoms"
    dresses = "Dresses"
    shoes = "Shoes"
    accessories = "Accessories"
    outerwear = "Outerwear"
    activewear = "Activewear"
    formal = "Formal"
    casual = "Casual"
    vintage = "Vintage"


class ItemSize(str, enum.Enum):
    xs = "XS"
    s = "S"
    m = "M"
    l = "L"  # noqa: E741
    xl = "XL"
    xxl = "XXL"
    xxxl = "XXXL"
    one_size = "One Size"
    eu_6 = "6"
    eu_7 = "7"
    eu_8 = "8"
    eu_9 = "9"
    eu_10 = "10"
    eu_11 = "11"
    eu_12 = "12"


class ItemCondition(str, enum.Enum):
    like_new = "Like New"
    excellent = "Excellent"
    good = "Good"
    fair = "Fair"


class QualityBadge(str, enum.Enum):
    basic = "basic"
    medium = "medium"
    high = "high"
    premium = "premium"


CONDITION_BADGES = {
    ItemCondition.like_new: QualityBadge.premium,
    ItemCondition.excellent: QualityBadge.high,
    ItemCondition.good: QualityBadge.medium,
    ItemCondition.fair: QualityBadge.basic,
}


class OrderStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    paid = "paid"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"
    refunded = "refunded"
    disputed = "disputed"


class PaymentMethod(str, enum.Enum):
    razorpay = "razorpay"
    points = "points"


class PointTransactionType(str, enum.Enum):
    earned = "earned"
    spent = "spent"
    bonus = "bonus"
    refund = "refund"
    penalty = "penalty"


class ReviewType(str, enum.Enum):
    buyer_to_seller = "buyer_to_seller"
    seller_to_buyer = "seller_to_buyer"


class ReviewStatus(str, enum.Enum):
    active = "active"
    hidden = "hidden"
    flagged = "flagged"
    deleted = "deleted"


# =========================
# LEVELS
# =========================

# (upper bound, level, next level)
LEVEL_TIERS = [
    (100, UserLevel.beginner, UserLevel.explorer),
    (500, UserLevel.explorer, UserLevel.enthusiast),
    (1500, UserLevel.enthusiast, UserLevel.expert),
    (5000, UserLevel.expert, UserLevel.master),
]


def level_info(points: int) -> dict:
    for bound, level, next_level in LEVEL_TIERS:
        if points < bound:
            return {
                "level": level.value,
                "nextLevel": next_level.value,
                "pointsNeeded": bound - points,
            }
    return {"level": UserLevel.master.value, "nextLevel": None, "pointsNeeded": 0}


def level_for(points: int) -> UserLevel:
    return UserLevel(level_info(points)["level"])


# =========================
# USER
# =========================

def _default_address():
    return {
        "street": "",
        "city": "",
        "state": "",
        "country": "India",
        "postalCode": "",
    }


def _default_preferences():
    return {
        "notifications": {"email": True, "push": True, "sms": False},
        "privacy": {"showEmail": False, "showPhone": False},
    }


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    name = Column(String(50), nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    phone = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)

    avatar = Column(String, default="")
    bio = Column(String(500), default="")
    address = Column(JSON, default=_default_address)
    preferences = Column(JSON, default=_default_preferences)

    role = Column(
        Enum(UserRole, name="user_role"),
        default=UserRole.user,
        nullable=False,
    )

    points = Column(Integer, default=0, nullable=False)
    level = Column(
        Enum(UserLevel, name="user_level", values_callable=_values),
        default=UserLevel.beginner,
        nullable=False,
    )

    total_items_sold = Column(Integer, default=0, nullable=False)
    total_items_bought = Column(Integer, default=0, nullable=False)

    rating_average = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)

    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_active = Column(DateTime, default=utcnow)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    items = relationship(
        "Item",
        back_populates="seller",
        foreign_keys="Item.seller_id",
        cascade="all, delete-orphan",
    )
    point_transactions = relationship(
        "PointTransaction",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="PointTransaction.created_at.desc()",
    )
    wishlist = relationship(
        "Wishlist",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin

    @property
    def level_info(self) -> dict:
        return level_info(self.points or 0)


Index("idx_users_points", User.points.desc())
Index("idx_users_created_at", User.created_at)


# =========================
# ITEM
# =========================

class Item(Base):
    __tablename__ = "items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)

    category = Column(
        Enum(ItemCategory, name="item_category", values_callable=_values),
        nullable=False,
    )
    sub_category = Column(String, default="")
    brand = Column(String, nullable=False, index=True)
    size = Column(
        Enum(ItemSize, name="item_size", values_callable=_values),
        nullable=False,
    )
    color = Column(String, nullable=False)

    condition = Column(
        Enum(ItemCondition, name="item_condition", values_callable=_values),
        nullable=False,
    )
    condition_description = Column(String(500))

    original_price = Column(Float)
    price = Column(Float, nullable=False)
    points_value = Column(Integer, default=0, nullable=False)

    seller_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status = Column(
        Enum(ItemStatus, name="item_status"),
        default=ItemStatus.pending,
        nullable=False,
    )

    approved_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    approved_at = Column(DateTime)
    rejected_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    rejected_at = Column(DateTime)
    rejection_reason = Column(Text)

    is_promoted = Column(Boolean, default=False, nullable=False)
    tags = Column(JSON, default=list)
    materials = Column(JSON, default=list)
    measurements = Column(JSON, default=dict)

    weight = Column(Float)
    shipping_cost = Column(Float, default=50, nullable=False)
    free_shipping_threshold = Column(Float, default=500, nullable=False)

    location_city = Column(String)
    location_state = Column(String)
    location_country = Column(String, default="India")

    views = Column(Integer, default=0, nullable=False)
    likes = Column(Integer, default=0, nullable=False)

    rating_average = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)

    quality_badge = Column(
        Enum(QualityBadge, name="quality_badge"),
        default=QualityBadge.medium,
        nullable=False,
    )

    featured = Column(Boolean, default=False, nullable=False)
    featured_until = Column(DateTime)

    sold_to_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    sold_at = Column(DateTime)

    reserved_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    reserved_until = Column(DateTime)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    seller = relationship("User", back_populates="items", foreign_keys=[seller_id])
    sold_to = relationship("User", foreign_keys=[sold_to_id])

    images = relationship(
        "ItemImage",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemImage.position",
    )
    liked_by = relationship(
        "ItemLike",
        back_populates="item",
        cascade="all, delete-orphan",
    )
    flagged_by = relationship(
        "ItemFlag",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemFlag.flagged_at",
    )

    @validates("condition")
    def _derive_quality_badge(self, key, value):
        # an admin override survives until the condition itself changes
        value = ItemCondition(value)
        if value != self.condition:
            self.quality_badge = CONDITION_BADGES.get(value, QualityBadge.medium)
        return value

    @validates("price")
    def _derive_points_value(self, key, value):
        self.points_value = math.floor(value * 0.1)
        return value

    @property
    def discount_percentage(self) -> int:
        if self.original_price and self.original_price > self.price:
            return round((self.original_price - self.price) / self.original_price * 100)
        return 0

    @property
    def final_shipping_cost(self) -> float:
        threshold = self.free_shipping_threshold
        if threshold is None:
            threshold = 500
        if self.price >= threshold:
            return 0
        return self.shipping_cost if self.shipping_cost is not None else 50

    def is_liked_by(self, user_id) -> bool:
        return any(like.user_id == user_id for like in self.liked_by)


Index("idx_items_category_status", Item.category, Item.status)
Index("idx_items_seller_status", Item.seller_id, Item.status)
Index("idx_items_price", Item.price)
Index("idx_items_created_at", Item.created_at)
Index("idx_items_views", Item.views)
Index("idx_items_likes", Item.likes)


class ItemImage(Base):
    __tablename__ = "item_images"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    item_id = Column(
        Uuid,
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    url = Column(String, nullable=False)
    public_id = Column(String, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, default=0)

    item = relationship("Item", back_populates="images")


class ItemLike(Base):
    __tablename__ = "item_likes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    item_id = Column(Uuid, ForeignKey("items.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    item = relationship("Item", back_populates="liked_by")


Index("idx_item_likes_item_user", ItemLike.item_id, ItemLike.user_id, unique=True)


class ItemFlag(Base):
    __tablename__ = "item_flags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    item_id = Column(Uuid, ForeignKey("items.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reason = Column(String(200))
    flagged_at = Column(DateTime, default=utcnow)

    item = relationship("Item", back_populates="flagged_by")
    user = relationship("User")


Index("idx_item_flags_item_user", ItemFlag.item_id, ItemFlag.user_id, unique=True)


# =========================
# ORDER
# =========================

class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    buyer_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    seller_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    item_id = Column(
        Uuid,
        ForeignKey("items.id", ondelete="SET NULL"),
        index=True,
    )

    amount = Column(Float, nullable=False)
    item_price = Column(Float, nullable=False)
    shipping_cost = Column(Float, default=0, nullable=False)
    discount = Column(Float, default=0, nullable=False)

    payment_method = Column(
        Enum(PaymentMethod, name="order_payment_method"),
        default=PaymentMethod.razorpay,
        nullable=False,
    )

    status = Column(
        Enum(OrderStatus, name="order_status"),
        default=OrderStatus.pending,
        nullable=False,
    )

    shipping_address = Column(JSON, nullable=False)

    razorpay_order_id = Column(String, index=True)
    razorpay_payment_id = Column(String, index=True)
    razorpay_signature = Column(String)
    paid_at = Column(DateTime)

    tracking_number = Column(String)
    shipped_at = Column(DateTime)
    estimated_delivery = Column(DateTime)
    delivered_at = Column(DateTime)

    cancelled_at = Column(DateTime)
    cancellation_reason = Column(Text)

    points_used = Column(Integer, default=0, nullable=False)
    points_earned_buyer = Column(Integer, default=0, nullable=False)
    points_earned_seller = Column(Integer, default=0, nullable=False)

    admin_notes = Column(Text)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    buyer = relationship("User", foreign_keys=[buyer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    item = relationship("Item")

    timeline = relationship(
        "OrderEvent",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderEvent.created_at",
    )

    @property
    def final_amount(self) -> float:
        return self.amount - (self.discount or 0)


Index("idx_orders_buyer_created", Order.buyer_id, Order.created_at)
Index("idx_orders_seller_created", Order.seller_id, Order.created_at)
Index("idx_orders_status", Order.status)


class OrderEvent(Base):
    """One row per order status change."""
    __tablename__ = "order_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(
        Uuid,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(String, nullable=False)
    note = Column(Text)
    changed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime, default=utcnow, nullable=False)

    order = relationship("Order", back_populates="timeline")


# =========================
# POINT LEDGER
# =========================

POINTS_EXPIRE_DAYS = 2 * 365


def _points_expiry():
    return utcnow() + timedelta(days=POINTS_EXPIRE_DAYS)


class PointTransaction(Base):
    """
    Append-only ledger. Rows are never updated once written; the running
    balance on ``User.points`` always equals the latest ``balance_after``.
    """
    __tablename__ = "point_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    points = Column(Integer, nullable=False)
    type = Column(Enum(PointTransactionType, name="point_transaction_type"), nullable=False)
    reason = Column(String(200), nullable=False)

    related_item_id = Column(Uuid, ForeignKey("items.id", ondelete="SET NULL"))
    related_order_id = Column(Uuid, ForeignKey("orders.id", ondelete="SET NULL"))
    meta = Column("metadata", JSON, default=dict)

    balance_after = Column(Integer, nullable=False)
    is_visible = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime, default=_points_expiry)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="point_transactions")
    related_item = relationship("Item")


Index("idx_point_transactions_user_created", PointTransaction.user_id, PointTransaction.created_at)
Index("idx_point_transactions_type", PointTransaction.type)
Index("idx_point_transactions_expires", PointTransaction.expires_at)


# =========================
# REVIEWS
# =========================

class Review(Base):
    __tablename__ = "reviews"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    reviewer_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewee_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(Enum(ReviewType, name="review_type"), nullable=False)
    rating = Column(Integer, nullable=False)  # 1-5
    title = Column(String(100), nullable=False)
    comment = Column(String(1000), nullable=False)
    aspects = Column(JSON, default=dict)

    is_verified_purchase = Column(Boolean, default=True, nullable=False)
    helpful_count = Column(Integer, default=0, nullable=False)

    response_comment = Column(Text)
    responded_at = Column(DateTime)
    responded_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))

    status = Column(
        Enum(ReviewStatus, name="review_status"),
        default=ReviewStatus.active,
        nullable=False,
    )
    flagged_reason = Column(Text)
    moderated_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    moderated_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    reviewer = relationship("User", foreign_keys=[reviewer_id])
    reviewee = relationship("User", foreign_keys=[reviewee_id])
    item = relationship("Item")
    votes = relationship("ReviewVote", back_populates="review", cascade="all, delete-orphan")


Index("idx_reviews_reviewer_order", Review.reviewer_id, Review.order_id, unique=True)
Index("idx_reviews_rating", Review.rating)


class ReviewVote(Base):
    __tablename__ = "review_votes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    review_id = Column(Uuid, ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_helpful = Column(Boolean, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    review = relationship("Review", back_populates="votes")


Index("idx_review_votes_review_user", ReviewVote.review_id, ReviewVote.user_id, unique=True)


# =========================
# WISHLIST
# =========================

class Wishlist(Base):
    __tablename__ = "wishlists"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="wishlist")
    entries = relationship(
        "WishlistEntry",
        back_populates="wishlist",
        cascade="all, delete-orphan",
        order_by="WishlistEntry.added_at.desc()",
    )

    def has_item(self, item_id) -> bool:
        return any(entry.item_id == item_id for entry in self.entries)


class WishlistEntry(Base):
    __tablename__ = "wishlist_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    wishlist_id = Column(Uuid, ForeignKey("wishlists.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    notes = Column(String(200), default="")
    added_at = Column(DateTime, default=utcnow)

    wishlist = relationship("Wishlist", back_populates="entries")
    item = relationship("Item")


Index("idx_wishlist_entries_wishlist_item", WishlistEntry.wishlist_id, WishlistEntry.item_id, unique=True)
