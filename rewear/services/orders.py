"""
Checkout and order status changes.

Two ways to pay:

* card: the item is reserved and a pending order committed before the
  Razorpay order is opened; ``verify_payment`` later settles it.
* points: debit, sale and seller credit happen in the request's single
  transaction, so any failure leaves nothing behind.
"""
import uuid
import logging
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from rewear import razorpay_client
from rewear.errors import (
    InvalidTransitionError,
    NotFoundError,
    PaymentGatewayError,
    PermissionDeniedError,
    ReWearError,
)
from rewear.models import (
    Item,
    ItemStatus,
    Order,
    OrderEvent,
    OrderStatus,
    PaymentMethod,
    PointTransactionType,
    User,
    utcnow,
)
from rewear.services import items as item_service
from rewear.services import points as points_service

logger = logging.getLogger(__name__)

# no status writes once an order reaches one of these
FINAL_STATUSES = (OrderStatus.delivered, OrderStatus.cancelled, OrderStatus.refunded)


# =====================================================
# HELPERS
# =====================================================

def add_event(order: Order, status: OrderStatus, note: str | None = None, changed_by=None) -> None:
    order.timeline.append(
        OrderEvent(
            status=status.value,
            note=note,
            changed_by=changed_by,
            created_at=utcnow(),
        )
    )


def set_status(order: Order, status: OrderStatus, note: str | None = None, changed_by=None) -> Order:
    if order.status in FINAL_STATUSES:
        raise InvalidTransitionError(f"Order is already {order.status.value}")
    order.status = status
    add_event(order, status, note, changed_by)
    return order


def get_order(db: Session, order_id) -> Order:
    if not isinstance(order_id, uuid.UUID):
        try:
            order_id = uuid.UUID(str(order_id))
        except ValueError:
            raise NotFoundError("Order not found")

    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def _bump_counters(buyer: User, seller: User) -> None:
    buyer.total_items_bought = (buyer.total_items_bought or 0) + 1
    seller.total_items_sold = (seller.total_items_sold or 0) + 1


# =====================================================
# CHECKOUT
# =====================================================

def create_order(
    db: Session,
    buyer: User,
    item_id,
    shipping_address: dict,
    payment_method: PaymentMethod = PaymentMethod.razorpay,
) -> tuple[Order, dict | None]:
    """
    Returns the order plus, on the card path, the Razorpay order the client
    checks out against.
    """
    try:
        item_uuid = uuid.UUID(str(item_id))
    except ValueError:
        raise NotFoundError("Item not found")

    item = db.query(Item).filter(Item.id == item_uuid).first()
    if not item:
        raise NotFoundError("Item not found")

    item_service.check_reservation(db, item)

    if item.status != ItemStatus.active:
        raise InvalidTransitionError("Item is not available for purchase")

    if item.seller_id == buyer.id:
        raise InvalidTransitionError("Cannot buy your own item")

    shipping_cost = item.final_shipping_cost
    total = item.price + shipping_cost

    if payment_method == PaymentMethod.points:
        return _checkout_with_points(db, buyer, item, shipping_address, shipping_cost, total), None

    return _checkout_with_card(db, buyer, item, shipping_address, shipping_cost, total)


def _new_order(buyer: User, item: Item, shipping_address: dict, shipping_cost: float, total: float, method: PaymentMethod) -> Order:
    order = Order(
        buyer_id=buyer.id,
        seller_id=item.seller_id,
        item_id=item.id,
        item_price=item.price,
        shipping_cost=shipping_cost,
        amount=total,
        payment_method=method,
        status=OrderStatus.pending,
        shipping_address=shipping_address,
    )
    add_event(order, OrderStatus.pending, "Order placed", buyer.id)
    return order


def _checkout_with_card(db, buyer, item, shipping_address, shipping_cost, total):
    item_service.reserve_item(db, item, buyer)

    order = _new_order(buyer, item, shipping_address, shipping_cost, total, PaymentMethod.razorpay)
    db.add(order)
    db.commit()
    db.refresh(order)

    try:
        gateway_order = razorpay_client.create_order(
            amount_paise=round(total * 100),
            receipt=f"order_{order.id}",
            notes={
                "orderId": str(order.id),
                "itemId": str(item.id),
                "buyerId": str(buyer.id),
            },
        )
    except PaymentGatewayError:
        db.delete(order)
        item_service.release_reservation(db, item, buyer.id)
        db.commit()
        raise

    order.razorpay_order_id = gateway_order["id"]
    db.commit()
    db.refresh(order)

    logger.info(
        "Card order created | order_id=%s | razorpay_order_id=%s | amount=%s",
        order.id, order.razorpay_order_id, total,
    )
    return order, gateway_order


def _checkout_with_points(db, buyer, item, shipping_address, shipping_cost, total) -> Order:
    required = points_service.points_for_purchase(total)

    if (buyer.points or 0) < required:
        raise InvalidTransitionError("Insufficient points for this purchase")

    try:
        item_service.reserve_item(db, item, buyer)

        order = _new_order(buyer, item, shipping_address, shipping_cost, total, PaymentMethod.points)
        db.add(order)
        db.flush()

        points_service.deduct_points(
            db,
            buyer,
            required,
            f"Purchase: {item.title}",
            type_=PointTransactionType.spent,
            related_item=item,
            related_order=order,
        )

        order.points_used = required
        order.paid_at = utcnow()
        set_status(order, OrderStatus.paid, "Paid with points", buyer.id)

        item_service.mark_as_sold(db, item, buyer)

        seller = db.query(User).filter(User.id == item.seller_id).first()
        reward = points_service.seller_reward(order.item_price)
        if reward > 0:
            points_service.add_points(
                db,
                seller,
                reward,
                f"Sale: {item.title}",
                related_item=item,
                related_order=order,
            )
        order.points_earned_seller = reward

        _bump_counters(buyer, seller)
        db.commit()
    except ReWearError as e:
        db.rollback()
        logger.warning(
            "Points checkout failed | buyer_id=%s | item_id=%s | error=%s",
            buyer.id, item.id, e.message,
        )
        raise ReWearError(e.message) from e

    db.refresh(order)
    logger.info(
        "Points order completed | order_id=%s | points=%s | seller_reward=%s",
        order.id, required, order.points_earned_seller,
    )
    return order


# =====================================================
# PAYMENT VERIFICATION
# =====================================================

def verify_payment(
    db: Session,
    user: User,
    razorpay_order_id: str,
    razorpay_payment_id: str,
    razorpay_signature: str,
) -> Order:
    if not razorpay_client.verify_payment_signature(
        razorpay_order_id, razorpay_payment_id, razorpay_signature
    ):
        logger.warning("Payment signature mismatch | razorpay_order_id=%s", razorpay_order_id)
        raise ReWearError("Invalid payment signature")

    order = db.query(Order).filter(Order.razorpay_order_id == razorpay_order_id).first()
    if not order:
        raise NotFoundError("Order not found")

    if order.buyer_id != user.id:
        raise PermissionDeniedError("Not authorized")

    if order.status == OrderStatus.paid or order.paid_at is not None:
        raise ReWearError("Payment already verified")

    if order.status != OrderStatus.pending:
        raise InvalidTransitionError(f"Order is {order.status.value}")

    item = order.item
    seller = order.seller

    try:
        order.razorpay_payment_id = razorpay_payment_id
        order.razorpay_signature = razorpay_signature
        order.paid_at = utcnow()
        set_status(order, OrderStatus.paid, "Payment verified", user.id)

        item_service.mark_as_sold(db, item, user)

        seller_points = points_service.seller_reward(order.item_price)
        buyer_points = points_service.buyer_reward(order.item_price)

        if seller_points > 0:
            points_service.add_points(
                db, seller, seller_points, f"Sale: {item.title}",
                related_item=item, related_order=order,
            )
        if buyer_points > 0:
            points_service.add_points(
                db, user, buyer_points, f"Purchase: {item.title}",
                related_item=item, related_order=order,
            )

        order.points_earned_seller = seller_points
        order.points_earned_buyer = buyer_points

        _bump_counters(user, seller)
        db.commit()
    except ReWearError:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(
        "Payment verified | order_id=%s | payment_id=%s",
        order.id, razorpay_payment_id,
    )
    return order


# =====================================================
# STATUS CHANGES
# =====================================================

def cancel_order(db: Session, user: User, order: Order, reason: str | None = None) -> Order:
    if order.buyer_id != user.id:
        raise PermissionDeniedError("Not authorized")

    if order.status != OrderStatus.pending:
        raise InvalidTransitionError("Only pending orders can be cancelled")

    order.cancelled_at = utcnow()
    order.cancellation_reason = reason or "Cancelled by buyer"
    set_status(order, OrderStatus.cancelled, order.cancellation_reason, user.id)

    if order.item is not None:
        item_service.release_reservation(db, order.item, order.buyer_id)

    db.commit()
    db.refresh(order)

    logger.info("Order cancelled | order_id=%s | buyer_id=%s", order.id, user.id)
    return order


def ship_order(
    db: Session,
    user: User,
    order: Order,
    tracking_number: str,
    estimated_delivery: datetime | None = None,
) -> Order:
    if order.seller_id != user.id:
        raise PermissionDeniedError("Only the seller can ship this order")

    if order.status not in (OrderStatus.paid, OrderStatus.processing):
        raise InvalidTransitionError("Only paid orders can be shipped")

    order.tracking_number = tracking_number
    order.shipped_at = utcnow()
    if estimated_delivery:
        if estimated_delivery.tzinfo is not None:
            estimated_delivery = estimated_delivery.astimezone(timezone.utc).replace(tzinfo=None)
        order.estimated_delivery = estimated_delivery
    set_status(order, OrderStatus.shipped, f"Tracking number {tracking_number}", user.id)

    db.commit()
    db.refresh(order)

    logger.info("Order shipped | order_id=%s | tracking=%s", order.id, tracking_number)
    return order


def deliver_order(db: Session, user: User, order: Order) -> Order:
    if order.buyer_id != user.id:
        raise PermissionDeniedError("Only the buyer can confirm delivery")

    if order.status != OrderStatus.shipped:
        raise InvalidTransitionError("Only shipped orders can be marked delivered")

    order.delivered_at = utcnow()
    set_status(order, OrderStatus.delivered, "Delivery confirmed", user.id)

    db.commit()
    db.refresh(order)

    logger.info("Order delivered | order_id=%s", order.id)
    return order


def list_orders(db: Session, user: User, kind: str = "all", page: int = 1, limit: int = 10):
    query = db.query(Order)
    if kind == "bought":
        query = query.filter(Order.buyer_id == user.id)
    elif kind == "sold":
        query = query.filter(Order.seller_id == user.id)
    else:
        query = query.filter((Order.buyer_id == user.id) | (Order.seller_id == user.id))

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return orders, total
