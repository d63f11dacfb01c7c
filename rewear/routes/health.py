import os
from datetime import datetime, timezone
from fastapi import APIRouter

router = APIRouter(tags=["health"])

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


@router.get("/health")
def health_check():
    """
    Keep-alive endpoint for the hosting platform.
    """
    return {
        "success": True,
        "status": "healthy",
        "message": "ReWear API is running",
        "environment": ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ping")
def ping():
    """
    Simple ping endpoint
    """
    return {"ping": "pong"}


@router.get("")
def api_index():
    return {
        "success": True,
        "message": "ReWear API",
        "endpoints": {
            "auth": "/api/auth",
            "items": "/api/items",
            "orders": "/api/orders",
            "points": "/api/points",
            "reviews": "/api/reviews",
            "wishlist": "/api/wishlist",
            "admin": "/api/admin",
            "demo": "/api/demo",
            "health": "/api/health",
        },
    }
