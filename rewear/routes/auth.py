import uuid
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from pydantic import EmailStr, Field

from rewear.database import get_db
from rewear.dependencies import get_current_user
from rewear.models import User, UserRole, Wishlist
from rewear.schemas import CamelModel, Address
from rewear.security import hash_password, verify_password, create_token, COOKIE_NAME
from rewear.serializers import private_user, public_user
from rewear.uploads.service import handle_upload
from rewear.cloudinary_client import delete_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================
# SCHEMAS
# =============================

class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    phone: str = Field(..., min_length=7, max_length=20)
    password: str = Field(..., min_length=6)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    address: Optional[Address] = None
    preferences: Optional[dict] = None


class PasswordChange(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


def _merge(current: dict | None, changes: dict) -> dict:
    merged = dict(current or {})
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# =============================
# REGISTER
# =============================

@router.post("/register", status_code=201)
def register_user(payload: RegisterRequest, db: Session = Depends(get_db)):
    email = payload.email.lower()

    existing = (
        db.query(User)
        .filter((User.email == email) | (User.phone == payload.phone))
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email or phone",
        )

    user = User(
        name=payload.name.strip(),
        email=email,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
        role=UserRole.admin if "admin" in email else UserRole.user,
        is_active=True,
    )
    user.wishlist = Wishlist()

    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User registered | user_id=%s | role=%s", user.id, user.role.value)

    return {
        "success": True,
        "message": "User registered successfully",
        "data": {
            "token": create_token(user.id, user.role.value),
            "user": private_user(user),
        },
    }


# =============================
# LOGIN
# =============================

@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).first()

    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated",
        )

    token = create_token(user.id, user.role.value)
    logger.info("User logged in | user_id=%s", user.id)

    return {
        "success": True,
        "message": "Login successful",
        "data": {
            "token": token,
            "user": private_user(user),
        },
    }


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    response = JSONResponse({"success": True, "message": "Logged out successfully"})
    response.delete_cookie(COOKIE_NAME, path="/")
    return response


# =============================
# CURRENT USER / PROFILE
# =============================

@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "data": {"user": private_user(user)}}


@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return {"success": True, "data": {"user": private_user(user)}}


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True, by_alias=True)

    if "phone" in changes and changes["phone"] != user.phone:
        taken = (
            db.query(User)
            .filter(User.phone == changes["phone"], User.id != user.id)
            .first()
        )
        if taken:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Phone number already in use",
            )
        user.phone = changes["phone"]

    if changes.get("name") is not None:
        user.name = changes["name"].strip()
    if "bio" in changes:
        user.bio = changes["bio"] or ""
    if changes.get("address"):
        address = {k: v for k, v in changes["address"].items() if v is not None}
        user.address = _merge(user.address, address)
    if changes.get("preferences"):
        user.preferences = _merge(user.preferences, changes["preferences"])

    db.commit()
    db.refresh(user)

    return {
        "success": True,
        "message": "Profile updated successfully",
        "data": {"user": private_user(user)},
    }


@router.post("/avatar")
def upload_avatar(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = handle_upload(file, folder="avatars", owner_id=str(user.id))

    previous = (user.preferences or {}).get("avatarPublicId")
    if previous:
        delete_image(previous)

    user.avatar = result["url"]
    user.preferences = {**(user.preferences or {}), "avatarPublicId": result["public_id"]}
    db.commit()
    db.refresh(user)

    return {
        "success": True,
        "message": "Avatar updated",
        "data": {"avatar": user.avatar},
    }


@router.put("/password")
def change_password(
    payload: PasswordChange,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    user.password_hash = hash_password(payload.new_password)
    db.commit()

    logger.info("Password changed | user_id=%s", user.id)
    return {"success": True, "message": "Password updated successfully"}


# =============================
# PUBLIC PROFILE
# =============================

@router.get("/users/{user_id}")
def get_public_profile(user_id: uuid.UUID, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id, User.is_active == True).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "data": {"user": public_user(user)}}
