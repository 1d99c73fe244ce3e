"""Error types raised by the content layer.

The HTTP layer maps each class to a status code; see ``gitfolio.main``.
"""


class GitfolioError(Exception):
    """Base class for all content-layer errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFound(GitfolioError):
    """The resource does not exist upstream (HTTP 404)."""

    status_code = 404


class Unauthorized(GitfolioError):
    """Missing or expired session, or no GitHub credential configured."""

    status_code = 401


class UpstreamError(GitfolioError):
    """Any other non-2xx response from the GitHub API."""

    def __init__(self, status: int, message: str = ""):
        super().__init__(message or f"GitHub API error ({status})")
        self.status = status

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return self.status if 400 <= self.status < 600 else 502


class MalformedConfig(GitfolioError):
    """Stored configuration or session data could not be parsed."""

    status_code = 400


class ValidationError(GitfolioError):
    """A mutation request is missing required fields or has invalid ones."""

    status_code = 400


class InvalidType(ValidationError):
    """The content type is not one of profile, project or blog."""


class RepositoryNotConfigured(GitfolioError):
    """A write was attempted with no target repository configured."""

    status_code = 400

    def __init__(self, message: str = "Repository not configured"):
        super().__init__(message)


class SaveFailed(GitfolioError):
    """The final write of a move failed after the old file was removed.

    ``move`` is the outcome of the removal step, so the caller can tell the
    item no longer exists at ``move.from_path``.
    """

    def __init__(self, cause: GitfolioError, move):
        super().__init__(
            f"Save failed after removing {move.from_path}: {cause.message}"
        )
        self.cause = cause
        self.move = move

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return self.cause.status_code
