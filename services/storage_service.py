"""
Image storage for report photos and disposal proof.

Images are written to the local upload directory and addressed by the URL
they are served from; nothing else in the system looks inside them.
"""
import uuid
from pathlib import Path

from fastapi import UploadFile

from core.config import get_max_image_bytes, get_upload_dir
from core.errors import ValidationFailed

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}


def build_image_url(file_path: Path, root: Path) -> str:
    relative = file_path.relative_to(root).as_posix()
    return f"/uploads/{relative}"


class ImageStorage:
    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root or get_upload_dir())

    def validate(self, upload: UploadFile, field: str = "image") -> bytes:
        if upload.content_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationFailed(errors=[{"field": field, "message": "Invalid file type. Only JPEG, PNG or WEBP images allowed."}])

        contents = upload.file.read()
        if not contents:
            raise ValidationFailed(errors=[{"field": field, "message": "Image file is empty"}])
        max_bytes = get_max_image_bytes()
        if len(contents) > max_bytes:
            raise ValidationFailed(errors=[{"field": field, "message": f"File too large. Maximum {max_bytes // (1024 * 1024)}MB."}])
        return contents

    def save(self, folder: str, upload: UploadFile, field: str = "image") -> str:
        """Store an uploaded image and return its URL."""
        contents = self.validate(upload, field)

        upload_dir = self.root / folder
        upload_dir.mkdir(parents=True, exist_ok=True)
        filename = Path(upload.filename or "photo.jpg").name
        file_path = upload_dir / f"{uuid.uuid4().hex}_{filename}"
        file_path.write_bytes(contents)
        return build_image_url(file_path, self.root)

    def discard(self, url: str) -> None:
        """Remove a stored image whose database record was never written."""
        if not url.startswith("/uploads/"):
            return
        file_path = (self.root / url[len("/uploads/"):]).resolve()
        if self.root.resolve() not in file_path.parents:
            return
        file_path.unlink(missing_ok=True)


def get_image_storage() -> ImageStorage:
    """FastAPI dependency; override in tests to redirect uploads."""
    return ImageStorage()
