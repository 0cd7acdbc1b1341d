import logging
import os
import secrets
import time
from typing import Optional

from fastapi import Depends, UploadFile

from errors import ValidationError
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")
IMAGE_FIELDS = ("logo", "template_image")

SUBDIRS = {
    "logo": "logos",
    "business_logo": "logos",
    "portfolio_images": "portfolios",
    "price_packages": "packages",
    "commercial_record": "documents",
    "cv": "documents",
    "profile_file": "documents",
    "template_image": "templates",
}


class UploadStore:
    """Writes multipart uploads under ``upload_dir`` and hands back public paths."""

    def __init__(self, settings: Settings):
        self.root = settings.upload_dir

    def save(self, upload: UploadFile, field: str) -> str:
        if field in IMAGE_FIELDS and upload.content_type not in IMAGE_TYPES:
            raise ValidationError("Only image files are allowed (jpeg, jpg, png, gif, webp)")
        subdir = SUBDIRS.get(field, "general")
        directory = os.path.join(self.root, subdir)
        os.makedirs(directory, exist_ok=True)

        base, ext = os.path.splitext(os.path.basename(upload.filename or "upload"))
        filename = f"{base}-{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}{ext}"
        with open(os.path.join(directory, filename), "wb") as fh:
            upload.file.seek(0)
            fh.write(upload.file.read())
        return f"/uploads/{subdir}/{filename}"

    def save_optional(self, upload: Optional[UploadFile], field: str) -> Optional[str]:
        if upload is None or not upload.filename:
            return None
        return self.save(upload, field)

    def delete(self, public_path: str) -> bool:
        root = os.path.realpath(self.root)
        relative = public_path.replace("/uploads/", "", 1).lstrip("/")
        full_path = os.path.realpath(os.path.join(root, relative))
        if os.path.commonpath([root, full_path]) != root or full_path == root:
            logger.warning("Refusing to delete %s outside %s", public_path, root)
            return False
        try:
            if os.path.isfile(full_path):
                os.remove(full_path)
                return True
        except OSError as exc:
            logger.error("Error deleting file %s: %s", full_path, exc)
        return False


def get_upload_store(settings: Settings = Depends(get_settings)) -> UploadStore:
    return UploadStore(settings)
