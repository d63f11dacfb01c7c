"""
Item lifecycle.

    submit         -> pending
    approve        pending -> approved -> active   (seller +10 points)
    reject         pending -> rejected
    owner edit     rejected -> pending
    reserve        active -> reserved              (15 minute hold)
    expire/release reserved -> active              (lazy, on read)
    sell           reserved | active -> sold       (terminal)
    3 flags        -> flagged
    moderate       flagged | inactive -> active, live -> inactive

Functions mutate inside the caller's session and never commit.
"""
import logging
from datetime import timedelta
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from rewear.errors import InvalidTransitionError, ItemUnavailableError
from rewear.models import (
    Item,
    ItemFlag,
    ItemImage,
    ItemLike,
    ItemStatus,
    QualityBadge,
    User,
    utcnow,
)
from rewear.services import points as points_service

logger = logging.getLogger(__name__)

RESERVATION_MINUTES = 15
FLAGS_BEFORE_HIDDEN = 3

EDITABLE_FIELDS = (
    "title",
    "description",
    "price",
    "original_price",
    "condition",
    "condition_description",
    "tags",
    "materials",
)


# =====================================================
# HELPERS
# =====================================================

def _conditional_update(db: Session, item: Item, values: dict, *conditions) -> bool:
    """
    Single UPDATE guarded by ``conditions``, so two requests racing on the
    same row cannot both win.
    """
    db.flush()
    updated = (
        db.query(Item)
        .filter(Item.id == item.id, *conditions)
        .update(values, synchronize_session=False)
    )
    db.refresh(item)
    return bool(updated)


# =====================================================
# SUBMISSION / EDITS
# =====================================================

def submit_item(db: Session, seller: User, data: dict, images: list[dict]) -> Item:
    """New listings always start out pending review."""
    item = Item(seller_id=seller.id, **data)
    item.status = ItemStatus.pending
    for position, image in enumerate(images):
        item.images.append(
            ItemImage(
                url=image["url"],
                public_id=image["public_id"],
                position=position,
                is_primary=position == 0,
            )
        )
    db.add(item)
    return item


def update_item(item: Item, changes: dict) -> Item:
    if item.status == ItemStatus.sold:
        raise InvalidTransitionError("Cannot update sold items")

    for field in EDITABLE_FIELDS:
        if field in changes and changes[field] is not None:
            setattr(item, field, changes[field])

    if item.status == ItemStatus.rejected:
        item.status = ItemStatus.pending
        item.rejection_reason = None
        item.rejected_at = None
        item.rejected_by = None

    return item


def ensure_deletable(item: Item) -> None:
    if item.status == ItemStatus.sold:
        raise InvalidTransitionError("Cannot delete sold items")
    if item.status == ItemStatus.reserved:
        raise InvalidTransitionError("Cannot delete an item with a checkout in progress")


# =====================================================
# MODERATION
# =====================================================

def approve_item(db: Session, item: Item, admin: User, quality_badge: QualityBadge | None = None) -> Item:
    if item.status != ItemStatus.pending:
        raise InvalidTransitionError("Item is not pending approval")

    item.status = ItemStatus.approved
    item.approved_by = admin.id
    item.approved_at = utcnow()
    if quality_badge:
        item.quality_badge = quality_badge

    activate_item(item)

    seller = db.query(User).filter(User.id == item.seller_id).first()
    if seller:
        points_service.add_points(
            db,
            seller,
            points_service.APPROVAL_BONUS,
            "Item approved",
            related_item=item,
        )

    logger.info("Item approved | item_id=%s | admin_id=%s", item.id, admin.id)
    return item


def activate_item(item: Item) -> Item:
    if item.status != ItemStatus.approved:
        raise InvalidTransitionError("Item must be approved before activation")
    item.status = ItemStatus.active
    return item


def reject_item(item: Item, admin: User, reason: str) -> Item:
    if item.status != ItemStatus.pending:
        raise InvalidTransitionError("Item is not pending approval")

    item.status = ItemStatus.rejected
    item.rejected_by = admin.id
    item.rejected_at = utcnow()
    item.rejection_reason = reason

    logger.info("Item rejected | item_id=%s | admin_id=%s", item.id, admin.id)
    return item


def remove_item(item: Item) -> Item:
    if item.status in (ItemStatus.sold, ItemStatus.reserved):
        raise InvalidTransitionError(f"Cannot remove a {item.status.value} item")
    item.status = ItemStatus.inactive
    return item


def restore_item(item: Item) -> Item:
    """Only hidden listings come back; pending ones still need approval."""
    if item.status not in (ItemStatus.flagged, ItemStatus.inactive):
        raise InvalidTransitionError(f"Cannot restore a {item.status.value} item")
    item.status = ItemStatus.active
    item.flagged_by.clear()
    return item


# =====================================================
# COMMUNITY ACTIONS
# =====================================================

def toggle_like(item: Item, user: User) -> bool:
    """Returns True when the item is liked after the call."""
    existing = next((like for like in item.liked_by if like.user_id == user.id), None)

    if existing:
        item.liked_by.remove(existing)
        item.likes = max(0, (item.likes or 0) - 1)
        return False

    item.liked_by.append(ItemLike(user_id=user.id))
    item.likes = (item.likes or 0) + 1
    return True


def flag_item(item: Item, user: User, reason: str) -> bool:
    """
    One flag per user. Returns False for a repeated flag.
    """
    if item.seller_id == user.id:
        raise InvalidTransitionError("Cannot flag your own item")

    if any(flag.user_id == user.id for flag in item.flagged_by):
        return False

    item.flagged_by.append(ItemFlag(user_id=user.id, reason=reason, flagged_at=utcnow()))

    if len(item.flagged_by) >= FLAGS_BEFORE_HIDDEN and item.status not in (
        ItemStatus.sold,
        ItemStatus.inactive,
    ):
        item.status = ItemStatus.flagged
        logger.warning("Item hidden after flags | item_id=%s | flags=%s", item.id, len(item.flagged_by))

    return True


def increment_views(item: Item) -> None:
    item.views = (item.views or 0) + 1


# =====================================================
# RESERVATION / SALE
# =====================================================

def check_reservation(db: Session, item: Item) -> Item:
    """Lazily releases a hold whose time has run out."""
    if (
        item.status == ItemStatus.reserved
        and item.reserved_until is not None
        and item.reserved_until < utcnow()
    ):
        item.status = ItemStatus.active
        item.reserved_by_id = None
        item.reserved_until = None
        db.flush()
        logger.info("Reservation expired | item_id=%s", item.id)
    return item


def reserve_item(db: Session, item: Item, buyer: User, minutes: int = RESERVATION_MINUTES) -> Item:
    check_reservation(db, item)

    won = _conditional_update(
        db,
        item,
        {
            Item.status: ItemStatus.reserved,
            Item.reserved_by_id: buyer.id,
            Item.reserved_until: utcnow() + timedelta(minutes=minutes),
        },
        Item.status == ItemStatus.active,
    )
    if not won:
        raise ItemUnavailableError()
    return item


def release_reservation(db: Session, item: Item, buyer_id) -> Item:
    """Give the item back to the market if this buyer still holds it."""
    if item.status == ItemStatus.reserved and item.reserved_by_id == buyer_id:
        item.status = ItemStatus.active
        item.reserved_by_id = None
        item.reserved_until = None
        db.flush()
    return item


def mark_as_sold(db: Session, item: Item, buyer: User) -> Item:
    """
    Completes the sale for the buyer holding the reservation, or for any
    buyer once a lapsed hold has put the item back on the market. Refused
    when the item is sold or held by someone else.
    """
    won = _conditional_update(
        db,
        item,
        {
            Item.status: ItemStatus.sold,
            Item.sold_to_id: buyer.id,
            Item.sold_at: utcnow(),
            Item.reserved_by_id: None,
            Item.reserved_until: None,
        },
        or_(
            and_(Item.status == ItemStatus.reserved, Item.reserved_by_id == buyer.id),
            Item.status == ItemStatus.active,
        ),
    )
    if not won:
        raise ItemUnavailableError("Item has already been sold")
    return item
