"""Data models for Gitfolio.

JSON payloads and frontmatter keys use camelCase; the Python side uses
snake_case attributes through pydantic aliases.
"""

import time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing to camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ============================================================
# Content
# ============================================================


class Project(CamelModel):
    """A portfolio project stored at data/projects/[collection/]{id}.md."""

    id: str
    collection: str | None = None
    title: str = ""
    description: str = ""
    content: str = ""
    image_url: str = ""
    tags: list[str] = Field(default_factory=list)
    link: str | None = None
    github: str | None = None
    created_at: str = ""


class BlogPost(CamelModel):
    """A blog post stored at data/blogs/[collection/]{id}.md."""

    id: str
    collection: str | None = None
    title: str = ""
    excerpt: str = ""
    content: str = ""
    cover_image: str | None = None
    tags: list[str] = Field(default_factory=list)
    published_at: str = ""
    status: Literal["draft", "published"] = "published"


class ResumeItem(CamelModel):
    id: str = ""
    title: str = ""
    subtitle: str = ""
    period: str = ""
    description: str = ""


class Skill(CamelModel):
    id: str = ""
    category: str = ""
    items: list[str] = Field(default_factory=list)


class Socials(CamelModel):
    github: str = ""
    twitter: str = ""
    linkedin: str = ""


class Resume(CamelModel):
    experience: list[ResumeItem] = Field(default_factory=list)
    education: list[ResumeItem] = Field(default_factory=list)
    skills: list[Skill] = Field(default_factory=list)


class UserProfile(CamelModel):
    """The site owner's profile, stored header-only at data/profile.md."""

    name: str = ""
    title: str = ""
    bio: str = ""
    email: str = ""
    avatar_url: str = ""
    socials: Socials = Field(default_factory=Socials)
    resume: Resume = Field(default_factory=Resume)


class Collection(CamelModel):
    """A named sub-directory grouping items of one content type."""

    id: str
    name: str
    description: str | None = None


# ============================================================
# Repository
# ============================================================


class DirEntry(CamelModel):
    """One entry of a remote directory listing."""

    name: str
    path: str
    kind: Literal["file", "dir"]
    sha: str = ""
    url: str = ""


class RepoFile(CamelModel):
    """A file read from the remote repository with its revision marker."""

    path: str
    content: str
    sha: str


class RepoConfig(CamelModel):
    """Target repository (owner/name) and branch for content operations."""

    repo: str
    branch: str = "main"

    @field_validator("repo")
    @classmethod
    def _check_repo(cls, value: str) -> str:
        value = value.strip()
        owner, sep, name = value.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError("repo must look like 'owner/name'")
        return value

    @field_validator("branch", mode="before")
    @classmethod
    def _default_branch(cls, value: str | None) -> str:
        return value or "main"

    @property
    def owner(self) -> str:
        return self.repo.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.repo.split("/", 1)[1]


# ============================================================
# Sessions
# ============================================================


class GitHubUser(CamelModel):
    login: str
    name: str | None = None
    avatar: str = ""


class Session(CamelModel):
    """Authenticated identity plus an expiry in epoch milliseconds."""

    user: GitHubUser
    expires_at: int

    @classmethod
    def start(cls, user: GitHubUser, max_age: int) -> "Session":
        """Create a session lasting ``max_age`` seconds from now."""
        return cls(user=user, expires_at=int(time.time() * 1000) + max_age * 1000)

    def is_expired(self, now_ms: int | None = None) -> bool:
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return self.expires_at < now_ms


# ============================================================
# Operation outcomes
# ============================================================


class MoveOutcome(CamelModel):
    """Result of removing an item's previous file during a collection move."""

    from_path: str
    removed: bool = False
    error: str | None = None


class SaveResult(CamelModel):
    path: str
    created: bool
    sha: str
    move: MoveOutcome | None = None


class FailedDelete(CamelModel):
    path: str
    error: str


class DeleteReport(CamelModel):
    """Per-file outcome of a cascading delete."""

    succeeded: list[str] = Field(default_factory=list)
    failed: list[FailedDelete] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class UploadedImage(CamelModel):
    url: str
    path: str
