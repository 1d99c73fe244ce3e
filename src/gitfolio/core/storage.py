"""Storage abstraction over a remote content repository."""

import hashlib
from abc import ABC, abstractmethod

from gitfolio.core.errors import NotFound, UpstreamError
from gitfolio.core.models import DirEntry, RepoFile


class Repository(ABC):
    """Abstract base class for repository file access.

    Paths are repository-relative and use forward slashes. Directories are
    not first-class: a directory exists while at least one file lives
    under it.
    """

    @abstractmethod
    async def list_directory(self, path: str) -> list[DirEntry]:
        """List a directory. A missing directory is empty, not an error."""
        ...

    @abstractmethod
    async def read_file(self, path: str) -> RepoFile:
        """Read a text file. Raises NotFound if absent."""
        ...

    @abstractmethod
    async def read_bytes(self, path: str) -> bytes:
        """Read a file's raw bytes. Raises NotFound if absent."""
        ...

    @abstractmethod
    async def get_revision(self, path: str) -> str | None:
        """Return the file's revision marker (sha), or None if absent."""
        ...

    @abstractmethod
    async def write_file(
        self,
        path: str,
        content: str | bytes,
        message: str,
        sha: str | None = None,
    ) -> str:
        """Create a file, or update it when ``sha`` is given.

        Returns the new revision marker.
        """
        ...

    @abstractmethod
    async def delete_file(self, path: str, sha: str, message: str) -> None:
        """Delete a file at a known revision. Raises NotFound if absent."""
        ...


def blob_sha(data: bytes) -> str:
    """Git blob hash of ``data``, the revision marker GitHub reports."""
    header = f"blob {len(data)}\0".encode()
    return hashlib.sha1(header + data).hexdigest()


def _to_bytes(content: str | bytes) -> bytes:
    return content.encode("utf-8") if isinstance(content, str) else content


class MemoryRepository(Repository):
    """In-memory repository with the GitHub contents API's semantics.

    Used by tests and for running without network access. Mirrors GitHub's
    conflict behaviour: a stale sha is rejected with 409 and creating over an
    existing file without a sha with 422.
    """

    def __init__(self, files: dict[str, str | bytes] | None = None):
        self.files: dict[str, bytes] = {}
        self.commits: list[str] = []
        for path, content in (files or {}).items():
            self.files[path.strip("/")] = _to_bytes(content)

    def _sha(self, path: str) -> str:
        return blob_sha(self.files[path])

    async def list_directory(self, path: str) -> list[DirEntry]:
        prefix = path.strip("/") + "/" if path.strip("/") else ""
        entries: dict[str, DirEntry] = {}
        for file_path in sorted(self.files):
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix) :]
            name, sep, _ = rest.partition("/")
            if name in entries:
                continue
            child = prefix + name
            if sep:
                entries[name] = DirEntry(name=name, path=child, kind="dir", url=child)
            else:
                entries[name] = DirEntry(
                    name=name, path=child, kind="file", sha=self._sha(child), url=child
                )
        return list(entries.values())

    async def read_bytes(self, path: str) -> bytes:
        path = path.strip("/")
        if path not in self.files:
            raise NotFound(f"Not Found: {path}")
        return self.files[path]

    async def read_file(self, path: str) -> RepoFile:
        data = await self.read_bytes(path)
        path = path.strip("/")
        return RepoFile(path=path, content=data.decode("utf-8"), sha=self._sha(path))

    async def get_revision(self, path: str) -> str | None:
        path = path.strip("/")
        if path not in self.files:
            return None
        return self._sha(path)

    async def write_file(
        self,
        path: str,
        content: str | bytes,
        message: str,
        sha: str | None = None,
    ) -> str:
        path = path.strip("/")
        if path in self.files:
            if sha is None:
                raise UpstreamError(422, "Invalid request.\n\n\"sha\" wasn't supplied.")
            if sha != self._sha(path):
                raise UpstreamError(409, f"{path} does not match {sha}")
        elif sha is not None:
            raise UpstreamError(409, f"{path} does not match {sha}")
        self.files[path] = _to_bytes(content)
        self.commits.append(message)
        return self._sha(path)

    async def delete_file(self, path: str, sha: str, message: str) -> None:
        path = path.strip("/")
        if path not in self.files:
            raise NotFound(f"Not Found: {path}")
        if sha != self._sha(path):
            raise UpstreamError(409, f"{path} does not match {sha}")
        del self.files[path]
        self.commits.append(message)

    def text(self, path: str) -> str:
        """Decoded content of ``path`` (test helper)."""
        return self.files[path].decode("utf-8")
