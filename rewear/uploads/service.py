import uuid
from fastapi import UploadFile, HTTPException, status

from rewear.cloudinary_client import upload_image, delete_image

# ======================================================
# GLOBAL UPLOAD RULES (SINGLE SOURCE OF TRUTH)
# ======================================================

IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
}

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB, per image
MAX_IMAGES_PER_ITEM = 5

ALLOWED_FOLDERS = {
    "avatars",
    "items",
}

# ======================================================
# VALIDATION
# ======================================================

def validate_upload(file: UploadFile, folder: str) -> None:
    """
    Checks destination, type and size without touching Cloudinary.
    """

    if folder not in ALLOWED_FOLDERS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid upload destination: '{folder}'",
        )

    if not file:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded",
        )

    content_type = (file.content_type or "").lower().strip()

    if content_type not in IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type: '{content_type}'. Allowed: JPEG, PNG, WebP.",
        )

    # Stream-safe size check
    try:
        file.file.seek(0, 2)
        size = file.file.tell()
        file.file.seek(0)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to read uploaded file",
        )

    if size == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty",
        )

    if size > MAX_FILE_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size {round(size / 1024 / 1024, 1)}MB exceeds 5MB limit",
        )


# ======================================================
# CENTRAL UPLOAD HANDLER
# ======================================================

def _store(file: UploadFile, folder: str, owner_id: str) -> dict:
    # Unique public_id per upload, prevents Cloudinary cache collisions
    public_id = f"{folder}_{owner_id}_{uuid.uuid4().hex}"

    result = upload_image(
        file=file.file,
        folder=folder,
        public_id=public_id,
        allowed_formats=["jpg", "jpeg", "png", "webp"],
    )

    if not result.get("url"):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Upload succeeded but returned no URL",
        )

    return result


def handle_upload(
    file: UploadFile,
    folder: str,
    owner_id: str,
) -> dict:
    """
    Centralized upload handler.
    - Validates file type & size
    - Enforces allowed folders
    - Uploads to Cloudinary
    - Returns {"url", "public_id"}
    """
    validate_upload(file, folder)
    return _store(file, folder, owner_id)


def handle_item_images(files: list[UploadFile], owner_id: str) -> list[dict]:
    """
    All-or-nothing: every file is validated before the first upload, and
    images already stored are deleted again if a later upload fails.
    """
    if not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one image is required",
        )
    if len(files) > MAX_IMAGES_PER_ITEM:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A listing can have at most {MAX_IMAGES_PER_ITEM} images",
        )

    for f in files:
        validate_upload(f, "items")

    uploaded = []
    try:
        for f in files:
            uploaded.append(_store(f, "items", owner_id))
    except HTTPException:
        for result in uploaded:
            delete_image(result["public_id"])
        raise

    return uploaded
