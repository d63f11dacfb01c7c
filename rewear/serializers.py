"""
Response shapes shared by the route modules.

Keys are camelCased for the web client; ids are strings.
"""
import math

from rewear.models import Item, Order, PointTransaction, Review, User


def _id(value):
    return str(value) if value is not None else None


def _enum(value):
    return value.value if value is not None and hasattr(value, "value") else value


def paginate(page: int, limit: int, total: int) -> dict:
    return {
        "current": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "total": total,
        "limit": limit,
    }


# =====================================================
# USERS
# =====================================================

def user_summary(user: User | None) -> dict | None:
    """Embedded seller / buyer card."""
    if user is None:
        return None
    return {
        "id": str(user.id),
        "name": user.name,
        "avatar": user.avatar,
        "level": _enum(user.level),
        "rating": {
            "average": user.rating_average,
            "count": user.rating_count,
        },
    }


def public_user(user: User) -> dict:
    data = user_summary(user)
    data.update({
        "bio": user.bio,
        "points": user.points,
        "totalItemsSold": user.total_items_sold,
        "totalItemsBought": user.total_items_bought,
        "isVerified": user.is_verified,
        "lastActive": user.last_active,
        "createdAt": user.created_at,
    })
    return data


def private_user(user: User) -> dict:
    data = public_user(user)
    data.update({
        "email": user.email,
        "phone": user.phone,
        "role": _enum(user.role),
        "address": user.address,
        "preferences": user.preferences,
        "isActive": user.is_active,
        "levelInfo": user.level_info,
    })
    return data


# =====================================================
# ITEMS
# =====================================================

def serialize_item(item: Item, viewer: User | None = None, detail: bool = False) -> dict:
    data = {
        "id": str(item.id),
        "title": item.title,
        "description": item.description,
        "category": _enum(item.category),
        "subCategory": item.sub_category,
        "brand": item.brand,
        "size": _enum(item.size),
        "color": item.color,
        "condition": _enum(item.condition),
        "price": item.price,
        "originalPrice": item.original_price,
        "pointsValue": item.points_value,
        "discountPercentage": item.discount_percentage,
        "images": [
            {"url": img.url, "publicId": img.public_id, "isPrimary": img.is_primary}
            for img in item.images
        ],
        "status": _enum(item.status),
        "qualityBadge": _enum(item.quality_badge),
        "featured": item.featured,
        "views": item.views,
        "likes": item.likes,
        "tags": item.tags or [],
        "seller": user_summary(item.seller),
        "createdAt": item.created_at,
    }

    if viewer is not None:
        data["isLiked"] = item.is_liked_by(viewer.id)

    if detail:
        data.update({
            "conditionDescription": item.condition_description,
            "materials": item.materials or [],
            "measurements": item.measurements or {},
            "shipping": {
                "cost": item.shipping_cost,
                "freeShippingThreshold": item.free_shipping_threshold,
                "finalCost": item.final_shipping_cost,
                "weight": item.weight,
            },
            "location": {
                "city": item.location_city,
                "state": item.location_state,
                "country": item.location_country,
            },
            "rating": {
                "average": item.rating_average,
                "count": item.rating_count,
            },
            "rejectionReason": item.rejection_reason,
            "reservedUntil": item.reserved_until,
            "soldAt": item.sold_at,
            "updatedAt": item.updated_at,
            "canEdit": viewer is not None and viewer.id == item.seller_id,
        })

    return data


# =====================================================
# ORDERS
# =====================================================

def serialize_order(order: Order) -> dict:
    return {
        "id": str(order.id),
        "buyer": user_summary(order.buyer),
        "seller": user_summary(order.seller),
        "item": {
            "id": str(order.item.id),
            "title": order.item.title,
            "price": order.item.price,
            "image": order.item.images[0].url if order.item.images else None,
            "status": _enum(order.item.status),
        } if order.item else None,
        "paymentMethod": _enum(order.payment_method),
        "status": _enum(order.status),
        "pricing": {
            "itemPrice": order.item_price,
            "shippingCost": order.shipping_cost,
            "discount": order.discount,
            "total": order.amount,
            "finalAmount": order.final_amount,
        },
        "shippingAddress": order.shipping_address,
        "payment": {
            "razorpayOrderId": order.razorpay_order_id,
            "razorpayPaymentId": order.razorpay_payment_id,
            "paidAt": order.paid_at,
        },
        "shipping": {
            "trackingNumber": order.tracking_number,
            "shippedAt": order.shipped_at,
            "estimatedDelivery": order.estimated_delivery,
            "deliveredAt": order.delivered_at,
        },
        "cancellation": {
            "cancelledAt": order.cancelled_at,
            "reason": order.cancellation_reason,
        } if order.cancelled_at else None,
        "pointsUsed": order.points_used,
        "pointsEarned": {
            "buyer": order.points_earned_buyer,
            "seller": order.points_earned_seller,
        },
        "timeline": [
            {"status": e.status, "note": e.note, "timestamp": e.created_at}
            for e in order.timeline
        ],
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
    }


# =====================================================
# POINTS / REVIEWS
# =====================================================

def serialize_transaction(txn: PointTransaction) -> dict:
    return {
        "id": str(txn.id),
        "points": txn.points,
        "type": _enum(txn.type),
        "reason": txn.reason,
        "balanceAfter": txn.balance_after,
        "relatedItem": _id(txn.related_item_id),
        "relatedOrder": _id(txn.related_order_id),
        "metadata": txn.meta or {},
        "expiresAt": txn.expires_at,
        "createdAt": txn.created_at,
    }


def serialize_review(review: Review) -> dict:
    return {
        "id": str(review.id),
        "reviewer": user_summary(review.reviewer),
        "reviewee": _id(review.reviewee_id),
        "item": {
            "id": str(review.item.id),
            "title": review.item.title,
        } if review.item else None,
        "order": _id(review.order_id),
        "type": _enum(review.type),
        "rating": review.rating,
        "title": review.title,
        "comment": review.comment,
        "aspects": review.aspects or {},
        "isVerifiedPurchase": review.is_verified_purchase,
        "helpfulCount": review.helpful_count,
        "response": {
            "comment": review.response_comment,
            "respondedAt": review.responded_at,
        } if review.response_comment else None,
        "status": _enum(review.status),
        "createdAt": review.created_at,
    }
