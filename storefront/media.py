import os
from typing import Dict, Optional

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from werkzeug.utils import secure_filename

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}


class MediaError(Exception):
    pass


def allowed_image_extension(filename: str) -> bool:
    extension = os.path.splitext(filename)[1].lower().lstrip(".")
    if not extension:
        return False
    return extension in ALLOWED_IMAGE_EXTENSIONS


class MediaUploader:
    """Image hosting client bound to one set of Cloudinary credentials."""

    def __init__(
        self,
        cloud_name: Optional[str],
        api_key: Optional[str],
        api_secret: Optional[str],
    ):
        self.cloud_name = (cloud_name or "").strip()
        self.api_key = (api_key or "").strip()
        self.api_secret = (api_secret or "").strip()

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def _credentials(self) -> Dict[str, object]:
        if not self.configured:
            raise MediaError("Image hosting is not configured.")
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self.api_secret,
            "secure": True,
        }

    def upload(self, image_file, folder: str, **options) -> Dict[str, str]:
        if not image_file or not getattr(image_file, "filename", ""):
            raise MediaError("An image file is required.")

        filename = secure_filename(image_file.filename)
        if not filename:
            raise MediaError("Please choose a valid file name.")
        if not allowed_image_extension(filename):
            raise MediaError("Unsupported image format. Upload JPG, JPEG, PNG, or WEBP files.")

        try:
            result = cloudinary.uploader.upload(
                image_file.stream,
                folder=folder,
                resource_type="image",
                **options,
                **self._credentials(),
            )
        except CloudinaryError as exc:
            raise MediaError(str(exc)) from exc

        if not isinstance(result, dict) or not result.get("secure_url"):
            raise MediaError(f"Unexpected upload response: {result}")

        return {"url": result["secure_url"], "public_id": result.get("public_id", "")}

    def destroy(self, public_id: Optional[str]) -> bool:
        if not public_id:
            return False
        try:
            result = cloudinary.uploader.destroy(public_id, **self._credentials())
        except CloudinaryError as exc:
            raise MediaError(str(exc)) from exc
        return isinstance(result, dict) and result.get("result") == "ok"
