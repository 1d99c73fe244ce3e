"""Image uploads stored in the content repository under images/."""

import logging
import re
import secrets
import string
import time

from gitfolio.core.errors import ValidationError
from gitfolio.core.models import RepoConfig, UploadedImage
from gitfolio.core.paths import IMAGES_ROOT
from gitfolio.core.storage import Repository

logger = logging.getLogger(__name__)

IMAGE_TYPES = ("projects", "blogs")

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/svg+xml": "svg",
}

RAW_URL_PATTERN = re.compile(r"raw\.githubusercontent\.com/[^/]+/[^/]+/[^/]+/(.+)")
JSDELIVR_URL_PATTERN = re.compile(r"cdn\.jsdelivr\.net/gh/[^/]+/[^/]+@[^/]+/(.+)")

RAW_URL_ROOT = "https://raw.githubusercontent.com"
_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


def image_extension(mime_type: str) -> str:
    return MIME_EXTENSIONS.get(mime_type, "jpg")


def image_filename(original_name: str, mime_type: str, now_ms: int | None = None) -> str:
    """``{epoch_ms}-{random}-{slug}.{ext}``; the slug keeps at most 50 chars."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(6))
    slug = re.sub(r"[^a-z0-9]", "-", original_name, flags=re.IGNORECASE).lower()[:50]
    return f"{now_ms}-{suffix}-{slug}.{image_extension(mime_type)}"


def raw_url(target: RepoConfig, path: str) -> str:
    return f"{RAW_URL_ROOT}/{target.owner}/{target.name}/{target.branch}/{path}"


def path_from_url(url: str) -> str | None:
    """Repository path of an image served from GitHub raw or jsDelivr."""
    for pattern in (RAW_URL_PATTERN, JSDELIVR_URL_PATTERN):
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


class ImageStore:
    """Uploads and deletes images in the target repository."""

    def __init__(self, repository: Repository, target: RepoConfig, max_bytes: int):
        self.repository = repository
        self.target = target
        self.max_bytes = max_bytes

    async def upload(
        self,
        image_type: str,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> UploadedImage:
        image_type = image_type or "projects"
        if image_type not in IMAGE_TYPES:
            raise ValidationError(f"Invalid image type: {image_type!r}")
        if not (content_type or "").startswith("image/"):
            raise ValidationError("File must be an image")
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"File size must be less than {self.max_bytes // (1024 * 1024)}MB"
            )

        name = image_filename(filename or "image", content_type)
        path = f"{IMAGES_ROOT}/{image_type}/{name}"
        await self.repository.write_file(path, data, f"Upload image: {name}")
        logger.info("Uploaded image %s (%d bytes)", path, len(data))
        return UploadedImage(url=raw_url(self.target, path), path=path)

    async def delete(self, url: str) -> str:
        """Delete the image behind ``url``; an already-absent file is fine."""
        if not url:
            raise ValidationError("Image URL is required")
        path = path_from_url(url)
        if path is None:
            raise ValidationError("Invalid image URL format")
        if not path.startswith(f"{IMAGES_ROOT}/") or ".." in path.split("/"):
            raise ValidationError("Can only delete files from images/ directory")

        sha = await self.repository.get_revision(path)
        if sha is None:
            logger.info("Image %s already gone", path)
            return path
        await self.repository.delete_file(path, sha, f"Delete image: {path}")
        logger.info("Deleted image %s", path)
        return path
