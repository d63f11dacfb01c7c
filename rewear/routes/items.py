import json
import uuid
import logging
from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Query, status, UploadFile, File, Form
from sqlalchemy import or_
from sqlalchemy.orm import Session
from pydantic import Field

from rewear.database import get_db
from rewear.dependencies import get_current_user, get_optional_user
from rewear.models import (
    Item,
    ItemCategory,
    ItemCondition,
    ItemSize,
    ItemStatus,
    User,
)
from rewear.schemas import CamelModel
from rewear.serializers import serialize_item, paginate
from rewear.services import items as item_service
from rewear.uploads.service import handle_item_images
from rewear.cloudinary_client import delete_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/items", tags=["items"])

SORT_FIELDS = {
    "createdAt": Item.created_at,
    "price": Item.price,
    "views": Item.views,
    "likes": Item.likes,
}

# statuses only the seller (or an admin) may look at
PRIVATE_STATUSES = (
    ItemStatus.draft,
    ItemStatus.pending,
    ItemStatus.rejected,
    ItemStatus.flagged,
    ItemStatus.inactive,
)


# =====================================================
# SCHEMAS
# =====================================================

class ItemUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=5, max_length=100)
    description: Optional[str] = Field(None, min_length=20, max_length=2000)
    price: Optional[float] = Field(None, gt=0)
    original_price: Optional[float] = Field(None, gt=0)
    condition: Optional[ItemCondition] = None
    condition_description: Optional[str] = Field(None, max_length=500)
    tags: Optional[List[str]] = None
    materials: Optional[List[str]] = None


class FlagPayload(CamelModel):
    reason: str = Field(..., min_length=5, max_length=200)


# =====================================================
# HELPERS
# =====================================================

def _split_list(raw: Optional[str]) -> list[str]:
    """Form fields carry lists either as a JSON array or comma separated."""
    if not raw:
        return []
    raw = raw.strip()
    if raw.startswith("["):
        try:
            values = json.loads(raw)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid list value")
        return [str(v).strip() for v in values if str(v).strip()]
    return [v.strip() for v in raw.split(",") if v.strip()]


def _get_item(db: Session, item_id: uuid.UUID) -> Item:
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


def _require_owner(item: Item, user: User, action: str) -> None:
    if item.seller_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized to {action} this item",
        )


# =====================================================
# PUBLIC: LIST ITEMS
# =====================================================

@router.get("")
def list_items(
    category: Optional[ItemCategory] = None,
    condition: Optional[ItemCondition] = None,
    size: Optional[ItemSize] = None,
    brand: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    sort_by: str = Query("createdAt", alias="sortBy", pattern="^(createdAt|price|views|likes)$"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    db: Session = Depends(get_db),
    viewer: Optional[User] = Depends(get_optional_user),
):
    query = db.query(Item).filter(Item.status == ItemStatus.active)

    if category:
        query = query.filter(Item.category == category)
    if condition:
        query = query.filter(Item.condition == condition)
    if size:
        query = query.filter(Item.size == size)
    if brand:
        query = query.filter(Item.brand.ilike(f"%{brand}%"))
    if min_price is not None:
        query = query.filter(Item.price >= min_price)
    if max_price is not None:
        query = query.filter(Item.price <= max_price)
    if featured is not None:
        query = query.filter(Item.featured == featured)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Item.title.ilike(term),
                Item.description.ilike(term),
                Item.brand.ilike(term),
            )
        )

    column = SORT_FIELDS[sort_by]
    order = column.asc() if sort_order == "asc" else column.desc()

    total = query.count()
    items = (
        query.order_by(order, Item.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "success": True,
        "data": {
            "items": [serialize_item(i, viewer) for i in items],
            "pagination": paginate(page, limit, total),
        },
    }


# =====================================================
# USER: MY ITEMS
# =====================================================

@router.get("/user/my-items")
def my_items(
    item_status: Optional[ItemStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    query = db.query(Item).filter(Item.seller_id == user.id)
    if item_status:
        query = query.filter(Item.status == item_status)

    total = query.count()
    items = (
        query.order_by(Item.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    for item in items:
        item_service.check_reservation(db, item)
    db.commit()

    return {
        "success": True,
        "data": {
            "items": [serialize_item(i, user, detail=True) for i in items],
            "pagination": paginate(page, limit, total),
        },
    }


# =====================================================
# PUBLIC: ITEM DETAIL
# =====================================================

@router.get("/{item_id}")
def get_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    viewer: Optional[User] = Depends(get_optional_user),
):
    item = _get_item(db, item_id)

    is_owner = viewer is not None and viewer.id == item.seller_id
    if item.status in PRIVATE_STATUSES and not is_owner and not (viewer and viewer.is_admin):
        raise HTTPException(status_code=404, detail="Item not found")

    item_service.check_reservation(db, item)

    if viewer is not None and not is_owner:
        item_service.increment_views(item)

    db.commit()
    db.refresh(item)

    return {"success": True, "data": {"item": serialize_item(item, viewer, detail=True)}}


# =====================================================
# USER: CREATE ITEM
# =====================================================

@router.post("", status_code=201)
def create_item(
    title: str = Form(..., min_length=5, max_length=100),
    description: str = Form(..., min_length=20, max_length=2000),
    category: ItemCategory = Form(...),
    brand: str = Form(..., min_length=1, max_length=100),
    size: ItemSize = Form(...),
    color: str = Form(..., min_length=1, max_length=50),
    condition: ItemCondition = Form(...),
    price: float = Form(..., gt=0),
    original_price: Optional[float] = Form(None, alias="originalPrice", gt=0),
    sub_category: Optional[str] = Form(None, alias="subCategory"),
    condition_description: Optional[str] = Form(None, alias="conditionDescription", max_length=500),
    tags: Optional[str] = Form(None),
    materials: Optional[str] = Form(None),
    location_city: Optional[str] = Form(None, alias="city"),
    location_state: Optional[str] = Form(None, alias="state"),
    images: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    uploaded = handle_item_images(images, owner_id=str(user.id))

    data = {
        "title": title.strip(),
        "description": description.strip(),
        "category": category,
        "sub_category": sub_category or "",
        "brand": brand.strip(),
        "size": size,
        "color": color.strip(),
        "condition": condition,
        "condition_description": condition_description,
        "price": price,
        "original_price": original_price,
        "tags": _split_list(tags),
        "materials": _split_list(materials),
        "location_city": location_city,
        "location_state": location_state,
    }

    item = item_service.submit_item(db, user, data, uploaded)
    db.commit()
    db.refresh(item)

    logger.info("Item submitted | item_id=%s | seller_id=%s", item.id, user.id)

    return {
        "success": True,
        "message": "Item submitted for review",
        "data": {"item": serialize_item(item, user, detail=True)},
    }


# =====================================================
# OWNER: UPDATE / DELETE
# =====================================================

@router.put("/{item_id}")
def update_item(
    item_id: uuid.UUID,
    payload: ItemUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    item = _get_item(db, item_id)
    _require_owner(item, user, "update")

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    item_service.update_item(item, changes)
    db.commit()
    db.refresh(item)

    return {
        "success": True,
        "message": "Item updated successfully",
        "data": {"item": serialize_item(item, user, detail=True)},
    }


@router.delete("/{item_id}")
def delete_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    item = _get_item(db, item_id)
    _require_owner(item, user, "delete")

    item_service.check_reservation(db, item)
    item_service.ensure_deletable(item)

    public_ids = [img.public_id for img in item.images]

    db.delete(item)
    db.commit()

    for public_id in public_ids:
        delete_image(public_id)

    logger.info("Item deleted | item_id=%s | seller_id=%s", item_id, user.id)
    return {"success": True, "message": "Item deleted successfully"}


# =====================================================
# USER: LIKE / FLAG
# =====================================================

@router.post("/{item_id}/like")
def like_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    item = _get_item(db, item_id)

    liked = item_service.toggle_like(item, user)
    db.commit()
    db.refresh(item)

    return {
        "success": True,
        "message": "Item liked" if liked else "Item unliked",
        "data": {"isLiked": liked, "likes": item.likes},
    }


@router.post("/{item_id}/flag")
def flag_item(
    item_id: uuid.UUID,
    payload: FlagPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    item = _get_item(db, item_id)

    if not item_service.flag_item(item, user, payload.reason):
        raise HTTPException(status_code=400, detail="You have already flagged this item")

    db.commit()
    return {"success": True, "message": "Item flagged for review"}
