import uuid
import logging
from typing import Optional
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from pydantic import Field

from rewear.database import get_db
from rewear.dependencies import get_current_user
from rewear.models import PaymentMethod, User
from rewear.razorpay_client import RAZORPAY_KEY_ID
from rewear.schemas import CamelModel, ShippingAddress
from rewear.serializers import serialize_order, paginate
from rewear.services import orders as order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


# =====================================================
# PYDANTIC SCHEMAS
# =====================================================

class CreateOrderPayload(CamelModel):
    item_id: uuid.UUID
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = PaymentMethod.razorpay


class VerifyPaymentPayload(CamelModel):
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class CancelPayload(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)


class ShipPayload(CamelModel):
    tracking_number: str = Field(..., min_length=3, max_length=100)
    estimated_delivery: Optional[datetime] = None


# =====================================================
# HELPERS
# =====================================================

def _get_participant_order(db: Session, order_id: uuid.UUID, user: User):
    order = order_service.get_order(db, order_id)
    if user.id not in (order.buyer_id, order.seller_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view this order",
        )
    return order


# =====================================================
# USER: CREATE ORDER
# =====================================================

@router.post("", status_code=201)
def create_order(
    payload: CreateOrderPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order, gateway_order = order_service.create_order(
        db,
        user,
        payload.item_id,
        payload.shipping_address.model_dump(by_alias=True),
        payload.payment_method,
    )

    if gateway_order is None:
        return {
            "success": True,
            "message": "Order placed successfully using points",
            "data": {"order": serialize_order(order)},
        }

    return {
        "success": True,
        "message": "Order created successfully",
        "data": {
            "order": serialize_order(order),
            "razorpayOrder": {
                "id": gateway_order["id"],
                "amount": gateway_order["amount"],
                "currency": gateway_order["currency"],
            },
            "razorpayKeyId": RAZORPAY_KEY_ID,
        },
    }


@router.post("/verify-payment")
def verify_payment(
    payload: VerifyPaymentPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = order_service.verify_payment(
        db,
        user,
        payload.razorpay_order_id,
        payload.razorpay_payment_id,
        payload.razorpay_signature,
    )
    return {
        "success": True,
        "message": "Payment verified successfully",
        "data": {"order": serialize_order(order)},
    }


# =====================================================
# USER: LIST / DETAIL
# =====================================================

@router.get("/my-orders")
def my_orders(
    kind: str = Query("all", alias="type", pattern="^(all|bought|sold)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    orders, total = order_service.list_orders(db, user, kind, page, limit)
    return {
        "success": True,
        "data": {
            "orders": [serialize_order(o) for o in orders],
            "pagination": paginate(page, limit, total),
        },
    }


@router.get("/{order_id}")
def get_order(
    order_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = _get_participant_order(db, order_id, user)
    return {"success": True, "data": {"order": serialize_order(order)}}


# =====================================================
# STATUS CHANGES
# =====================================================

@router.put("/{order_id}/cancel")
def cancel_order(
    order_id: uuid.UUID,
    payload: Optional[CancelPayload] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = order_service.get_order(db, order_id)
    reason = payload.reason if payload else None
    order = order_service.cancel_order(db, user, order, reason)
    return {
        "success": True,
        "message": "Order cancelled successfully",
        "data": {"order": serialize_order(order)},
    }


@router.put("/{order_id}/ship")
def ship_order(
    order_id: uuid.UUID,
    payload: ShipPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = order_service.get_order(db, order_id)
    order = order_service.ship_order(
        db, user, order, payload.tracking_number, payload.estimated_delivery
    )
    return {
        "success": True,
        "message": "Order marked as shipped",
        "data": {"order": serialize_order(order)},
    }


@router.put("/{order_id}/deliver")
def deliver_order(
    order_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = order_service.get_order(db, order_id)
    order = order_service.deliver_order(db, user, order)
    return {
        "success": True,
        "message": "Order marked as delivered",
        "data": {"order": serialize_order(order)},
    }
