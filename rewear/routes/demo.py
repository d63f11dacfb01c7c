import os
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from rewear.database import get_db
from rewear.dependencies import require_admin
from rewear.models import Item, Order, User
from rewear.seed import DEMO_DOMAIN, create_demo_data, clear_demo_data, demo_accounts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/demo", tags=["demo"])


def seeding_allowed() -> bool:
    return os.getenv("ENVIRONMENT", "development") != "production" or bool(os.getenv("ALLOW_DEMO_SEED"))


@router.post("/seed")
def seed_demo_data(db: Session = Depends(get_db)):
    if not seeding_allowed():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Demo data seeding not allowed in production",
        )
    return create_demo_data(db)


@router.delete("/clear")
def clear_demo(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    logger.warning("Demo data clear requested | admin_id=%s", admin.id)
    return clear_demo_data(db)


@router.get("/status")
def demo_status(db: Session = Depends(get_db)):
    demo_users = db.query(func.count(User.id)).filter(User.email.like(f"%{DEMO_DOMAIN}")).scalar()
    present = demo_users > 0

    return {
        "success": True,
        "data": {
            "isDemoDataPresent": present,
            "stats": {
                "demoUsers": demo_users,
                "totalItems": db.query(func.count(Item.id)).scalar(),
                "totalOrders": db.query(func.count(Order.id)).scalar(),
            },
            "demoAccounts": [
                {"email": a["email"], "role": a["role"], "password": a["password"]}
                for a in demo_accounts()
            ] if present else None,
        },
    }


@router.get("/info")
def demo_info():
    return {
        "success": True,
        "message": "ReWear Demo Environment",
        "data": {
            "description": "A demonstration version of the ReWear sustainable fashion marketplace.",
            "features": [
                "User registration and authentication",
                "Browse and search sustainable fashion items",
                "Buy and sell pre-owned clothing",
                "User reviews and ratings",
                "Points reward system",
                "Wishlist functionality",
                "Order management",
                "Admin panel for moderation",
            ],
            "demoAccounts": demo_accounts(),
            "endpoints": {
                "seed": "POST /api/demo/seed",
                "clear": "DELETE /api/demo/clear",
                "status": "GET /api/demo/status",
                "info": "GET /api/demo/info",
            },
        },
    }
