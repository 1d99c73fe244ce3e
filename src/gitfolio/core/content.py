"""Typed content read from the repository.

Maps frontmatter records to Project, BlogPost and UserProfile models and
back, and lists every item of a type across its collections.
"""

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as ModelValidationError

from gitfolio.core.errors import GitfolioError, InvalidType, NotFound
from gitfolio.core.frontmatter import compose_document, split_document
from gitfolio.core.models import (
    BlogPost,
    Collection,
    Project,
    Resume,
    ResumeItem,
    Skill,
    Socials,
    UserProfile,
)
from gitfolio.core.paths import (
    MARKER_FILENAME,
    PROFILE_PATH,
    ContentType,
    collection_dir,
)
from gitfolio.core.storage import Repository

logger = logging.getLogger(__name__)

ContentItem = Project | BlogPost


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _text(record: Mapping[str, Any], key: str, default: str = "") -> str:
    value = record.get(key)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    return default


def _optional_text(record: Mapping[str, Any], key: str) -> str | None:
    return _text(record, key) or None


def _string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(v) for v in value if not isinstance(v, (Mapping, list))]
    if isinstance(value, str) and value:
        return [value]
    return []


def _model_list(value: Any, model: type) -> list:
    if not isinstance(value, list):
        return []
    items = []
    for entry in value:
        if isinstance(entry, str) and model is Skill:
            entry = {"category": entry}
        if not isinstance(entry, Mapping):
            continue
        try:
            items.append(model.model_validate(entry))
        except ModelValidationError:
            logger.warning("Skipping malformed %s entry: %r", model.__name__, entry)
    return items


def item_id_from_filename(filename: str) -> str:
    return filename.removesuffix(".md")


def is_item_file(filename: str) -> bool:
    return filename.endswith(".md") and filename != MARKER_FILENAME


# ============================================================
# Record mapping
# ============================================================


def item_from_document(
    content_type: "str | ContentType",
    item_id: str,
    text: str,
    collection: str | None = None,
) -> ContentItem:
    """Build a Project or BlogPost from a stored Markdown file."""
    kind = ContentType.parse(content_type)
    record, body = split_document(text)

    if kind is ContentType.PROJECT:
        return Project(
            id=item_id,
            collection=collection,
            title=_text(record, "title") or item_id,
            description=_text(record, "description"),
            content=body,
            image_url=_text(record, "imageUrl"),
            tags=_string_list(record.get("tags")),
            link=_optional_text(record, "link"),
            github=_optional_text(record, "github"),
            created_at=_text(record, "createdAt") or _now_iso(),
        )
    if kind is ContentType.BLOG:
        status = "draft" if _text(record, "status") == "draft" else "published"
        return BlogPost(
            id=item_id,
            collection=collection,
            title=_text(record, "title") or item_id,
            excerpt=_text(record, "excerpt"),
            content=body,
            cover_image=_optional_text(record, "coverImage"),
            tags=_string_list(record.get("tags")),
            published_at=_text(record, "publishedAt") or _now_iso(),
            status=status,
        )
    raise InvalidType("Profile is not a collection item")


def item_to_document(content_type: "str | ContentType", item: ContentItem) -> str:
    """Serialize a Project or BlogPost; the body follows the header."""
    kind = ContentType.parse(content_type)
    if kind is ContentType.PROJECT and isinstance(item, Project):
        record = {
            "title": item.title,
            "description": item.description,
            "imageUrl": item.image_url,
            "tags": item.tags,
            "link": item.link,
            "github": item.github,
            "createdAt": item.created_at,
        }
    elif kind is ContentType.BLOG and isinstance(item, BlogPost):
        record = {
            "title": item.title,
            "excerpt": item.excerpt,
            "coverImage": item.cover_image,
            "tags": item.tags,
            "publishedAt": item.published_at,
            "status": item.status,
        }
    else:
        raise InvalidType(f"Cannot store {type(item).__name__} as {kind.value}")
    return compose_document(record, item.content)


def profile_from_document(text: str) -> UserProfile:
    record, _ = split_document(text)
    return UserProfile(
        name=_text(record, "name") or "User",
        title=_text(record, "title"),
        bio=_text(record, "bio"),
        email=_text(record, "email"),
        avatar_url=_text(record, "avatarUrl"),
        socials=Socials(
            github=_text(record, "github"),
            twitter=_text(record, "twitter"),
            linkedin=_text(record, "linkedin"),
        ),
        resume=Resume(
            experience=_model_list(record.get("experience"), ResumeItem),
            education=_model_list(record.get("education"), ResumeItem),
            skills=_model_list(record.get("skills"), Skill),
        ),
    )


def profile_to_document(profile: UserProfile) -> str:
    """Serialize the profile. It has no body section."""
    record = {
        "name": profile.name,
        "title": profile.title,
        "bio": profile.bio,
        "email": profile.email,
        "avatarUrl": profile.avatar_url,
        "github": profile.socials.github,
        "twitter": profile.socials.twitter,
        "linkedin": profile.socials.linkedin,
        "experience": [item.to_json_dict() for item in profile.resume.experience],
        "education": [item.to_json_dict() for item in profile.resume.education],
        "skills": [skill.to_json_dict() for skill in profile.resume.skills],
    }
    return compose_document(record)


def _sort_key(value: str) -> float:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def group_by_collection(
    items: list[ContentItem],
    collections: list[Collection],
) -> dict[str | None, list[ContentItem]]:
    """Group items under their collection id.

    Items whose collection is unset or not in ``collections`` land under
    ``None`` (uncategorized). Every known collection gets a key, even if empty.
    """
    known = {c.id for c in collections}
    groups: dict[str | None, list[ContentItem]] = {c.id: [] for c in collections}
    groups[None] = []
    for item in items:
        key = item.collection if item.collection in known else None
        groups[key].append(item)
    return groups


# ============================================================
# Reader
# ============================================================


class ContentReader:
    """Reads profile and items from a repository."""

    def __init__(self, repository: Repository):
        self.repository = repository

    async def get_profile(self) -> UserProfile | None:
        try:
            file = await self.repository.read_file(PROFILE_PATH)
        except NotFound:
            return None
        return profile_from_document(file.content)

    async def _read_item(
        self,
        kind: ContentType,
        path: str,
        item_id: str,
        collection: str | None,
    ) -> ContentItem | None:
        try:
            file = await self.repository.read_file(path)
        except GitfolioError as e:
            logger.warning("Skipping %s: %s", path, e.message)
            return None
        return item_from_document(kind, item_id, file.content, collection)

    async def _list_collection_items(
        self, kind: ContentType, collection: str
    ) -> list[ContentItem]:
        try:
            entries = await self.repository.list_directory(collection_dir(kind, collection))
        except GitfolioError as e:
            logger.warning("Could not list collection %s: %s", collection, e.message)
            return []
        results = await asyncio.gather(
            *(
                self._read_item(kind, e.path, item_id_from_filename(e.name), collection)
                for e in entries
                if e.kind == "file" and is_item_file(e.name)
            )
        )
        return [item for item in results if item is not None]

    async def list_items(self, content_type: "str | ContentType") -> list[ContentItem]:
        """All items of a type: every collection first, then the root directory.

        A root file whose id also appears inside a collection is skipped.
        Blog posts are returned newest first.
        """
        kind = ContentType.parse(content_type)
        entries = await self.repository.list_directory(kind.directory)

        directories = [e for e in entries if e.kind == "dir"]
        grouped = await asyncio.gather(
            *(self._list_collection_items(kind, d.name) for d in directories)
        )
        from_collections = [item for group in grouped for item in group]

        seen = {item.id for item in from_collections}
        root = await asyncio.gather(
            *(
                self._read_item(kind, e.path, item_id_from_filename(e.name), None)
                for e in entries
                if e.kind == "file"
                and is_item_file(e.name)
                and item_id_from_filename(e.name) not in seen
            )
        )
        items = from_collections + [item for item in root if item is not None]

        if kind is ContentType.BLOG:
            items.sort(key=lambda b: _sort_key(b.published_at), reverse=True)
        return items
