import uuid
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pydantic import Field

from rewear.database import get_db
from rewear.dependencies import get_current_user
from rewear.models import Item, User, Wishlist, WishlistEntry
from rewear.schemas import CamelModel
from rewear.serializers import serialize_item

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


class WishlistAdd(CamelModel):
    notes: Optional[str] = Field(None, max_length=200)


def get_or_create_wishlist(db: Session, user: User) -> Wishlist:
    wishlist = db.query(Wishlist).filter(Wishlist.user_id == user.id).first()
    if not wishlist:
        wishlist = Wishlist(user_id=user.id)
        db.add(wishlist)
        db.commit()
        db.refresh(wishlist)
    return wishlist


# =====================================================
# USER: GET WISHLIST
# =====================================================
@router.get("", status_code=status.HTTP_200_OK)
def get_wishlist(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Entries whose item has since been removed are skipped."""
    wishlist = get_or_create_wishlist(db, user)

    entries = [
        {
            "item": serialize_item(entry.item, user),
            "notes": entry.notes,
            "addedAt": entry.added_at,
        }
        for entry in wishlist.entries
        if entry.item is not None
    ]

    return {
        "success": True,
        "data": {"items": entries, "total": len(entries)},
    }


# =====================================================
# USER: ADD TO WISHLIST
# =====================================================
@router.post("/{item_id}", status_code=status.HTTP_201_CREATED)
def add_to_wishlist(
    item_id: uuid.UUID,
    payload: Optional[WishlistAdd] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")

    wishlist = get_or_create_wishlist(db, user)
    if wishlist.has_item(item.id):
        raise HTTPException(status_code=400, detail="Item already in wishlist")

    wishlist.entries.append(
        WishlistEntry(item_id=item.id, notes=(payload.notes if payload else None) or "")
    )
    db.commit()

    return {"success": True, "message": "Item added to wishlist"}


# =====================================================
# USER: REMOVE FROM WISHLIST
# =====================================================
@router.delete("/{item_id}", status_code=status.HTTP_200_OK)
def remove_from_wishlist(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    wishlist = get_or_create_wishlist(db, user)

    (
        db.query(WishlistEntry)
        .filter(WishlistEntry.wishlist_id == wishlist.id, WishlistEntry.item_id == item_id)
        .delete(synchronize_session=False)
    )
    db.commit()

    return {"success": True, "message": "Item removed from wishlist"}


# =====================================================
# USER: CHECK IF IN WISHLIST
# =====================================================
@router.get("/{item_id}/check", status_code=status.HTTP_200_OK)
def check_in_wishlist(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    wishlist = get_or_create_wishlist(db, user)
    return {"success": True, "data": {"inWishlist": wishlist.has_item(item_id)}}
