from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from rewear.database import get_db
from rewear.dependencies import get_current_user
from rewear.models import User, PointTransaction
from rewear.serializers import serialize_transaction, paginate
from rewear.services import points as points_service

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/history", status_code=status.HTTP_200_OK)
def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    total = (
        db.query(PointTransaction)
        .filter(PointTransaction.user_id == user.id, PointTransaction.is_visible == True)
        .count()
    )
    txns = points_service.history(db, user, limit=limit, offset=(page - 1) * limit)
    return {
        "success": True,
        "data": {
            "transactions": [serialize_transaction(t) for t in txns],
            "pagination": paginate(page, limit, total),
        },
    }


@router.get("/stats", status_code=status.HTTP_200_OK)
def get_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {
        "success": True,
        "data": {
            "balance": user.points,
            "levelInfo": user.level_info,
            "ledgerBalance": points_service.ledger_balance(db, user),
            "byType": points_service.stats(db, user),
        },
    }
