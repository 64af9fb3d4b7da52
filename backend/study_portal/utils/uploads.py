"""Disk storage helpers for uploaded study files.

Binaries are written under `settings.UPLOAD_DIR` with a generated name
(`file-<epoch ms>-<random><ext>`); the store only keeps that name and the
download URL derived from it.
"""

from __future__ import annotations

import io
import logging
import re
import secrets
import time
from pathlib import Path
from typing import Optional

from PIL import Image

from ..config import settings

logger = logging.getLogger("study_portal.uploads")

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "image/png",
    "image/jpeg",
    "image/jpg",
    "text/plain",
}

PREVIEW_CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".txt": "text/plain",
}

_EXT_RE = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


def upload_root() -> Path:
    root = Path(settings.UPLOAD_DIR)
    root.mkdir(parents=True, exist_ok=True)
    return root


def download_url(stored_name: str) -> str:
    return f"/api/files/download/{stored_name}"


def is_safe_name(name: str) -> bool:
    """Reject empty, overlong or path-like names."""
    if not name or len(name) > 200:
        return False
    return "/" not in name and "\\" not in name and name not in (".", "..")


def generate_stored_name(original_name: str) -> str:
    ext = Path(original_name).suffix.lower()
    if not _EXT_RE.match(ext):
        ext = ""
    return f"file-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"


def is_valid_image(payload: bytes) -> bool:
    try:
        Image.open(io.BytesIO(payload)).verify()
        return True
    except Exception:
        return False


def save_upload(payload: bytes, original_name: str) -> str:
    """Write `payload` to the upload folder and return its stored name."""
    stored_name = generate_stored_name(original_name)
    target = upload_root() / stored_name
    target.write_bytes(payload)
    logger.info("upload_saved name=%s bytes=%d", stored_name, len(payload))
    return stored_name


def stored_path(stored_name: str) -> Optional[Path]:
    """Return the path of an existing stored binary, or None."""
    if not is_safe_name(stored_name):
        return None
    path = upload_root() / stored_name
    return path if path.is_file() else None


def remove_upload(stored_name: str) -> bool:
    path = stored_path(stored_name)
    if path is None:
        return False
    path.unlink()
    logger.info("upload_removed name=%s", stored_name)
    return True


def preview_content_type(stored_name: str) -> str:
    return PREVIEW_CONTENT_TYPES.get(Path(stored_name).suffix.lower(), "application/octet-stream")
