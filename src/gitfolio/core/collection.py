"""Collections: sub-directories of a content type's root.

A collection exists while its directory does, and the directory exists
because of the hidden ``.collection.md`` marker file written on creation.
"""

import asyncio
import logging

from gitfolio.core.errors import GitfolioError, NotFound, ValidationError
from gitfolio.core.frontmatter import compose_document, split_document
from gitfolio.core.models import Collection, DeleteReport, FailedDelete
from gitfolio.core.paths import ContentType, collection_dir, marker_path, validate_id
from gitfolio.core.storage import Repository

logger = logging.getLogger(__name__)


class CollectionManager:
    """Lists, creates and deletes collections for projects or blogs."""

    def __init__(self, repository: Repository):
        self.repository = repository

    async def _describe(self, kind: ContentType, directory: str) -> Collection:
        """Collection metadata from its marker, or the directory name alone."""
        try:
            file = await self.repository.read_file(marker_path(kind, directory))
        except GitfolioError as e:
            logger.debug("No marker for %s/%s: %s", kind.value, directory, e.message)
            return Collection(id=directory, name=directory)

        record, _ = split_document(file.content)
        name = record.get("name")
        description = record.get("description")
        return Collection(
            id=directory,
            name=name if isinstance(name, str) and name else directory,
            description=description or None if isinstance(description, str) else None,
        )

    async def list_collections(self, content_type: "str | ContentType") -> list[Collection]:
        kind = ContentType.parse(content_type)
        entries = await self.repository.list_directory(kind.directory)
        return list(
            await asyncio.gather(
                *(self._describe(kind, e.name) for e in entries if e.kind == "dir")
            )
        )

    async def create_collection(
        self,
        content_type: "str | ContentType",
        collection_id: str,
        name: str,
        description: str | None = None,
    ) -> Collection:
        """Write the marker file. Re-creating an existing id overwrites it."""
        kind = ContentType.parse(content_type)
        validate_id(collection_id, "collection id")
        if not name:
            raise ValidationError("Missing collection name")

        path = marker_path(kind, collection_id)
        content = compose_document({"name": name, "description": description or ""})
        sha = await self.repository.get_revision(path)
        await self.repository.write_file(
            path, content, f"Create collection: {name}", sha=sha
        )
        logger.info("Created collection %s/%s", kind.value, collection_id)
        return Collection(id=collection_id, name=name, description=description or None)

    async def _delete_one(self, path: str, sha: str, message: str) -> str | None:
        """Delete one file; return the error text on failure."""
        try:
            if not sha:
                sha = await self.repository.get_revision(path) or ""
            await self.repository.delete_file(path, sha, message)
        except GitfolioError as e:
            logger.error("Failed to delete %s: %s", path, e.message)
            return e.message
        return None

    async def delete_collection(
        self, content_type: "str | ContentType", collection_id: str
    ) -> DeleteReport:
        """Delete every file in the collection directory concurrently.

        Raises NotFound if the directory is empty or missing. Individual
        failures do not stop the other deletes; they are listed in the report.
        """
        kind = ContentType.parse(content_type)
        validate_id(collection_id, "collection id")
        entries = await self.repository.list_directory(collection_dir(kind, collection_id))
        files = [e for e in entries if e.kind == "file"]
        if not files:
            raise NotFound(f"Collection not found: {collection_id}")

        message = f"Delete collection: {collection_id}"
        errors = await asyncio.gather(
            *(self._delete_one(e.path, e.sha, message) for e in files)
        )

        report = DeleteReport()
        for entry, error in zip(files, errors):
            if error is None:
                report.succeeded.append(entry.path)
            else:
                report.failed.append(FailedDelete(path=entry.path, error=error))
        if report.failed:
            logger.warning(
                "Collection %s/%s partially deleted: %d of %d files failed",
                kind.value,
                collection_id,
                len(report.failed),
                len(files),
            )
        return report
