"""Multi-step content writes.

Saving an item may move it between collections. The store has no rename,
so a move deletes the old file and then writes the new one; the two steps
are not atomic and each reports its own outcome.
"""

import logging

from gitfolio.core.content import ContentItem, item_to_document, profile_to_document
from gitfolio.core.errors import (
    GitfolioError,
    InvalidType,
    NotFound,
    SaveFailed,
    ValidationError,
)
from gitfolio.core.models import BlogPost, MoveOutcome, Project, SaveResult, UserProfile
from gitfolio.core.paths import ContentType, resolve_path, validate_id
from gitfolio.core.storage import Repository

logger = logging.getLogger(__name__)


class ContentMutator:
    """Creates, updates, moves and deletes content files."""

    def __init__(self, repository: Repository):
        self.repository = repository

    async def _remove_old(
        self, kind: ContentType, item_id: str, old_collection: str | None
    ) -> MoveOutcome:
        """Delete the item's previous file if it is still there."""
        old_path = resolve_path(kind, item_id, old_collection)
        outcome = MoveOutcome(from_path=old_path)
        try:
            sha = await self.repository.get_revision(old_path)
            if sha is None:
                return outcome
            await self.repository.delete_file(
                old_path, sha, f"Delete {kind.value}: {item_id}"
            )
            outcome.removed = True
        except GitfolioError as e:
            logger.warning(
                "Could not remove %s while moving %s: %s", old_path, item_id, e.message
            )
            outcome.error = e.message
        return outcome

    def _validate(
        self, kind: ContentType, item_id: str, content: ContentItem | UserProfile
    ) -> None:
        if kind is ContentType.PROFILE:
            if not isinstance(content, UserProfile):
                raise ValidationError("Profile content expected")
            return
        validate_id(item_id)
        expected = Project if kind is ContentType.PROJECT else BlogPost
        if not isinstance(content, expected):
            raise ValidationError(f"{expected.__name__} content expected")
        if not content.title:
            raise ValidationError("Missing title")
        if content.collection:
            validate_id(content.collection, "collection id")

    async def save(
        self,
        content_type: "str | ContentType",
        item_id: str,
        content: ContentItem | UserProfile,
        old_collection: str | None = None,
    ) -> SaveResult:
        """Create or update an item, moving it if its collection changed.

        ``old_collection`` is the collection the item was saved under before
        (empty string for the root directory); None means the caller does not
        know and no move is attempted.

        Failing to remove the old file does not stop the save; it is logged
        and reported in ``SaveResult.move``. Errors from the final write
        propagate; if the old file was already removed they are wrapped in
        SaveFailed, which carries the move outcome.
        """
        kind = ContentType.parse(content_type)
        self._validate(kind, item_id, content)

        move = None
        if kind is ContentType.PROFILE:
            path = resolve_path(kind, item_id)
            document = profile_to_document(content)
            label = content.name or item_id
        else:
            new_collection = content.collection or None
            path = resolve_path(kind, item_id, new_collection)
            if old_collection:
                validate_id(old_collection, "collection id")
            if old_collection is not None and (old_collection or None) != new_collection:
                move = await self._remove_old(kind, item_id, old_collection or None)
            document = item_to_document(kind, content)
            label = content.title or item_id

        try:
            sha = await self.repository.get_revision(path)
            verb = "Update" if sha else "Create"
            new_sha = await self.repository.write_file(
                path, document, f"{verb} {kind.value}: {label}", sha=sha
            )
        except GitfolioError as e:
            if move is None or not move.removed:
                raise
            logger.error(
                "Removed %s but could not write %s: %s", move.from_path, path, e.message
            )
            raise SaveFailed(e, move) from e
        logger.info("%sd %s at %s", verb, kind.value, path)
        return SaveResult(path=path, created=sha is None, sha=new_sha, move=move)

    async def delete(
        self,
        content_type: "str | ContentType",
        item_id: str,
        collection: str | None = None,
    ) -> str:
        """Delete an item's file and return its path. Raises NotFound if absent."""
        kind = ContentType.parse(content_type)
        if kind is ContentType.PROFILE:
            raise InvalidType("The profile cannot be deleted")
        validate_id(item_id)

        path = resolve_path(kind, item_id, collection or None)
        sha = await self.repository.get_revision(path)
        if sha is None:
            raise NotFound(f"File not found: {path}")
        await self.repository.delete_file(path, sha, f"Delete {kind.value}: {item_id}")
        logger.info("Deleted %s at %s", kind.value, path)
        return path
