"""Image normalisation and forwarding to the Cloudinary unsigned upload API."""
from __future__ import annotations

import io
import logging
import os
import uuid

import requests
from flask import current_app
from PIL import Image, ImageOps, UnidentifiedImageError

from storefront.errors import ProviderError, ServiceError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".avif"}
ALLOWED_MIMETYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/avif"}

# upload "type" -> folder under CLOUDINARY_FOLDER_PREFIX
FOLDERS = {
    "product": "products",
    "products": "products",
    "gallery": "products/gallery",
    "variation": "products/variations",
    "category": "categories",
    "slider": "sliders",
    "banner": "banners",
    "content": "content",
}

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud}/image/upload"


def is_allowed(filename: str | None, mimetype: str | None) -> bool:
    ext = os.path.splitext(filename or "")[1].lower()
    return (mimetype or "").lower() in ALLOWED_MIMETYPES or ext in ALLOWED_EXTENSIONS


def resolve_folder(upload_type: str | None, folder: str | None) -> str:
    prefix = (current_app.config.get("CLOUDINARY_FOLDER_PREFIX") or "").strip("/")
    if folder:
        sub = folder.strip().strip("/")
    else:
        sub = FOLDERS.get((upload_type or "").strip().lower(), "misc")
    return f"{prefix}/{sub}" if prefix else sub


def normalize_image(data: bytes, max_side: int = 1600):
    """
    EXIF orientation, RGB, longest side <= max_side, WebP q85.
    Returns (bytes, "webp") or None when Pillow cannot decode the data.
    """
    try:
        img = Image.open(io.BytesIO(data))
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError):
        return None

    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
    img.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)

    # flatten transparency onto white
    if img.mode == "RGBA":
        bg = Image.new("RGB", img.size, (255, 255, 255))
        bg.paste(img, mask=img.split()[-1])
        img = bg

    out = io.BytesIO()
    img.save(out, format="WEBP", quality=85, method=6)
    return out.getvalue(), "webp"


def upload_image(data: bytes, filename: str, mimetype: str | None, folder: str, tags: list[str] | None = None) -> dict:
    """Push bytes to the image host; returns the host's JSON response."""
    cloud = current_app.config.get("CLOUDINARY_CLOUD_NAME")
    preset = current_app.config.get("CLOUDINARY_UPLOAD_PRESET")
    if not cloud or not preset:
        raise ServiceError("Image upload is not configured", status=503)

    url = CLOUDINARY_UPLOAD_URL.format(cloud=cloud)
    fields = {"upload_preset": preset, "folder": folder}
    if tags:
        fields["tags"] = ",".join(tags)
    name = f"{uuid.uuid4().hex}{os.path.splitext(filename or '')[1].lower() or '.bin'}"
    try:
        response = requests.post(
            url,
            data=fields,
            files={"file": (name, data, mimetype or "application/octet-stream")},
            timeout=int(current_app.config.get("PROVIDER_TIMEOUT") or 15),
        )
    except requests.RequestException as e:
        logger.error("Image host unreachable: %s", e)
        raise ProviderError(f"Upload failed: {e}")

    if response.status_code >= 400:
        try:
            err = response.json().get("error")
            message = err.get("message") if isinstance(err, dict) else (err or response.text)
        except ValueError:
            message = response.text or f"HTTP {response.status_code}"
        logger.error("Image host rejected upload (%s): %s", response.status_code, message)
        raise ProviderError(f"Upload failed: {message}")

    return response.json()
