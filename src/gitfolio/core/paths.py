"""Repository paths for content files."""

import re
from enum import Enum

from gitfolio.core.errors import InvalidType, ValidationError

PROFILE_PATH = "data/profile.md"
MARKER_FILENAME = ".collection.md"
IMAGES_ROOT = "images"

# Item and collection ids become file and directory names
SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class ContentType(str, Enum):
    PROFILE = "profile"
    PROJECT = "project"
    BLOG = "blog"

    @classmethod
    def parse(cls, value: "str | ContentType") -> "ContentType":
        """Accept singular or plural spellings ("blog", "blogs")."""
        if isinstance(value, ContentType):
            return value
        name = (value or "").strip().lower()
        if name in ("projects", "blogs"):
            name = name[:-1]
        try:
            return cls(name)
        except ValueError:
            raise InvalidType(f"Invalid type: {value!r}") from None

    @property
    def directory(self) -> str:
        """Root directory for items of this type."""
        if self is ContentType.PROFILE:
            raise InvalidType("Profile has no content directory")
        return f"data/{self.value}s"


def validate_id(value: str | None, label: str = "id") -> str:
    """Return ``value`` if it is usable as a file or directory name."""
    if not value:
        raise ValidationError(f"Missing {label}")
    if not SAFE_ID_PATTERN.match(value):
        raise ValidationError(f"Invalid {label}: {value!r}")
    return value


def resolve_path(
    content_type: "str | ContentType",
    item_id: str | None,
    collection: str | None = None,
) -> str:
    """Canonical repository path of a content item.

    The profile always lives at ``data/profile.md``; projects and blogs live
    in their type directory, inside the collection sub-directory if any.
    """
    kind = ContentType.parse(content_type)
    if kind is ContentType.PROFILE:
        return PROFILE_PATH
    if collection:
        return f"{kind.directory}/{collection}/{item_id}.md"
    return f"{kind.directory}/{item_id}.md"


def collection_dir(content_type: "str | ContentType", collection_id: str) -> str:
    return f"{ContentType.parse(content_type).directory}/{collection_id}"


def marker_path(content_type: "str | ContentType", collection_id: str) -> str:
    return f"{collection_dir(content_type, collection_id)}/{MARKER_FILENAME}"
