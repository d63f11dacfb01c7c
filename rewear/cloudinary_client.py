import os
import logging
import cloudinary
import cloudinary.uploader
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

# =====================================================
# CLOUDINARY CONFIGURATION (ENV-BASED ONLY)
# =====================================================

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

if not all(
    [CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET]
):
    raise RuntimeError(
        "Cloudinary environment variables are not set. "
        "Please configure CLOUDINARY_CLOUD_NAME, "
        "CLOUDINARY_API_KEY, and CLOUDINARY_API_SECRET."
    )

cloudinary.config(
    cloud_name=CLOUDINARY_CLOUD_NAME,
    api_key=CLOUDINARY_API_KEY,
    api_secret=CLOUDINARY_API_SECRET,
    secure=True,
)

ROOT_FOLDER = "rewear"

# =====================================================
# UPLOAD HELPERS
# =====================================================

def upload_image(
    file,
    folder: str,
    public_id: str | None = None,
    allowed_formats: list[str] | None = None,
) -> dict:
    """
    Upload an image file to Cloudinary.
    Returns the secure URL plus the public id needed to delete it later.
    """

    try:
        result = cloudinary.uploader.upload(
            file,
            folder=f"{ROOT_FOLDER}/{folder}",
            public_id=public_id,
            resource_type="image",
            allowed_formats=allowed_formats,
            quality="auto",
            fetch_format="auto",
        )
    except Exception as e:
        logger.error("Cloudinary upload failed | folder=%s | error=%s", folder, str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image upload failed",
        )

    return {
        "url": result["secure_url"],
        "public_id": result["public_id"],
    }


def delete_image(public_id: str) -> bool:
    """
    Best-effort removal. A failed delete only leaves an orphaned asset,
    so it is logged and reported, never raised.
    """
    try:
        result = cloudinary.uploader.destroy(public_id)
    except Exception as e:
        logger.warning("Cloudinary delete failed | public_id=%s | error=%s", public_id, str(e))
        return False
    return result.get("result") == "ok"
