# newsdesk/services/image_host.py

import logging
import re
from typing import Any, Dict, Optional

import cloudinary
import cloudinary.api
import cloudinary.uploader

from newsdesk.config import (
    CLOUDINARY_CLOUD_NAME,
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
    IMAGE_FOLDER,
)

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {"jpeg", "jpg", "png", "gif", "webp"}
MAX_IMAGE_BYTES = 10 * 1024 * 1024  # 10MB

# Featured images are capped at 1200x630 and auto-optimised by the host
UPLOAD_TRANSFORMATION = [
    {"width": 1200, "height": 630, "crop": "limit"},
    {"quality": "auto", "fetch_format": "auto"},
]

_VERSIONED_PATH = re.compile(
    r"/upload/(?:[^/]+/)*?v\d+/(.+)\.(?:jpg|jpeg|png|gif|webp|svg)$",
    re.IGNORECASE,
)
_FOLDER_AND_NAME = re.compile(
    r"/(?:v\d+/)?([^/]+/[^/]+)\.(?:jpg|jpeg|png|gif|webp|svg)$",
    re.IGNORECASE,
)


def configure() -> bool:
    """
    Push credentials into the SDK. Returns False when any are missing.
    """
    missing = [
        name
        for name, value in (
            ("CLOUDINARY_CLOUD_NAME", CLOUDINARY_CLOUD_NAME),
            ("CLOUDINARY_API_KEY", CLOUDINARY_API_KEY),
            ("CLOUDINARY_API_SECRET", CLOUDINARY_API_SECRET),
        )
        if not value
    ]
    if missing:
        logger.warning("Missing Cloudinary settings: %s", ", ".join(missing))
        return False

    cloudinary.config(
        cloud_name=CLOUDINARY_CLOUD_NAME,
        api_key=CLOUDINARY_API_KEY,
        api_secret=CLOUDINARY_API_SECRET,
        secure=True,
    )
    return True


def validate_connection() -> bool:
    """Configure and ping the media host; used once at startup."""
    if not configure():
        return False
    try:
        result = cloudinary.api.ping()
    except Exception as e:
        logger.error("Cloudinary connection test failed: %s", e)
        return False
    if result.get("status") != "ok":
        logger.error("Cloudinary connection failed: %s", result)
        return False
    logger.info("Cloudinary connection successful (cloud=%s)", CLOUDINARY_CLOUD_NAME)
    return True


def is_allowed_image(filename: Optional[str], content_type: Optional[str]) -> bool:
    """Both the extension and the mimetype must name an allowed image type."""
    if not filename or "." not in filename:
        return False
    ext = filename.rsplit(".", 1)[1].lower()
    subtype = (content_type or "").split("/")[-1].lower()
    return ext in ALLOWED_IMAGE_EXTENSIONS and subtype in ALLOWED_IMAGE_EXTENSIONS


def upload_image(source: Any, folder: Optional[str] = None) -> Dict[str, Any]:
    """
    Upload a file object or a remote URL. Returns the fields the API exposes:
    imageUrl, publicId, width, height, format.
    """
    result = cloudinary.uploader.upload(
        source,
        folder=folder or IMAGE_FOLDER,
        transformation=UPLOAD_TRANSFORMATION,
        resource_type="auto",
    )
    return {
        "imageUrl": result.get("secure_url"),
        "publicId": result.get("public_id"),
        "width": result.get("width"),
        "height": result.get("height"),
        "format": result.get("format"),
    }


def destroy_image(public_id: str) -> str:
    """
    Returns the host's result string: "ok", "not found", or something else.
    """
    result = cloudinary.uploader.destroy(public_id)
    return result.get("result", "")


def public_id_from_url(url: Optional[str]) -> Optional[str]:
    """
    https://res.cloudinary.com/demo/image/upload/v1712/news-site/articles/abc.jpg
      -> "news-site/articles/abc"
    """
    if not url or "cloudinary.com/" not in url:
        return None
    match = _VERSIONED_PATH.search(url) or _FOLDER_AND_NAME.search(url)
    return match.group(1) if match else None


def delete_image_quietly(url: Optional[str]) -> None:
    """
    Best-effort removal of a hosted image that is no longer referenced.
    Failures are logged and swallowed.
    """
    public_id = public_id_from_url(url)
    if not public_id:
        return
    try:
        destroy_image(public_id)
        logger.info("Deleted hosted image %s", public_id)
    except Exception as e:
        logger.warning("Failed to delete hosted image %s: %s", public_id, e)
