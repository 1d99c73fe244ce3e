"""Tests for saving, moving and deleting content."""

import pytest

from gitfolio.core.content import item_from_document, profile_from_document
from gitfolio.core.errors import (
    InvalidType,
    NotFound,
    SaveFailed,
    UpstreamError,
    ValidationError,
)
from gitfolio.core.frontmatter import split_document
from gitfolio.core.models import BlogPost, Project, UserProfile
from gitfolio.core.mutations import ContentMutator
from gitfolio.core.storage import MemoryRepository


@pytest.fixture
def repo():
    return MemoryRepository()


@pytest.fixture
def mutator(repo):
    return ContentMutator(repo)


# ============================================================
# Save
# ============================================================


class TestSave:
    @pytest.mark.asyncio
    async def test_create(self, repo, mutator):
        post = BlogPost(id="b1", title="Hello", content="World", tags=["x"], status="draft")
        result = await mutator.save("blog", "b1", post)

        assert result.path == "data/blogs/b1.md"
        assert result.created is True
        assert result.move is None
        assert repo.commits == ["Create blog: Hello"]
        record, body = split_document(repo.text("data/blogs/b1.md"))
        assert record == {"title": "Hello", "tags": ["x"], "status": "draft"}
        assert body == "World"

    @pytest.mark.asyncio
    async def test_create_then_edit(self, repo, mutator):
        await mutator.save("blog", "b1", BlogPost(id="b1", title="Hello", content="World"))
        result = await mutator.save(
            "blog", "b1", BlogPost(id="b1", title="Hello v2", content="World")
        )

        assert result.created is False
        assert [p for p in repo.files if p.startswith("data/blogs/")] == ["data/blogs/b1.md"]
        record, _ = split_document(repo.text("data/blogs/b1.md"))
        assert record["title"] == "Hello v2"
        assert repo.commits[-1] == "Update blog: Hello v2"

    @pytest.mark.asyncio
    async def test_save_into_collection(self, repo, mutator):
        result = await mutator.save(
            "project", "p1", Project(id="p1", title="P", collection="web")
        )
        assert result.path == "data/projects/web/p1.md"

    @pytest.mark.asyncio
    async def test_move_between_collections(self, repo, mutator):
        await mutator.save("project", "p1", Project(id="p1", title="P", collection="a"))
        result = await mutator.save(
            "project",
            "p1",
            Project(id="p1", title="P", collection="b", tags=["t"]),
            old_collection="a",
        )

        assert "data/projects/a/p1.md" not in repo.files
        assert result.path == "data/projects/b/p1.md"
        assert result.move.from_path == "data/projects/a/p1.md"
        assert result.move.removed is True
        project = item_from_document(
            "project", "p1", repo.text("data/projects/b/p1.md"), "b"
        )
        assert project.title == "P"
        assert project.tags == ["t"]

    @pytest.mark.asyncio
    async def test_move_from_root(self, repo, mutator):
        await mutator.save("project", "p1", Project(id="p1", title="P"))
        await mutator.save(
            "project", "p1", Project(id="p1", title="P", collection="web"), old_collection=""
        )
        assert list(repo.files) == ["data/projects/web/p1.md"]

    @pytest.mark.asyncio
    async def test_move_to_root(self, repo, mutator):
        await mutator.save("project", "p1", Project(id="p1", title="P", collection="web"))
        await mutator.save("project", "p1", Project(id="p1", title="P"), old_collection="web")
        assert list(repo.files) == ["data/projects/p1.md"]

    @pytest.mark.asyncio
    async def test_move_when_old_file_is_gone(self, repo, mutator):
        result = await mutator.save(
            "project", "p1", Project(id="p1", title="P", collection="b"), old_collection="a"
        )
        assert result.move.removed is False
        assert result.move.error is None
        assert "data/projects/b/p1.md" in repo.files

    @pytest.mark.asyncio
    async def test_failed_removal_does_not_stop_save(self, repo, mutator):
        await mutator.save("project", "p1", Project(id="p1", title="P", collection="a"))

        async def refuse(path, sha, message):
            raise UpstreamError(403, "Resource not accessible")

        repo.delete_file = refuse
        result = await mutator.save(
            "project", "p1", Project(id="p1", title="P", collection="b"), old_collection="a"
        )

        assert result.move.removed is False
        assert result.move.error == "Resource not accessible"
        assert "data/projects/a/p1.md" in repo.files
        assert "data/projects/b/p1.md" in repo.files

    @pytest.mark.asyncio
    async def test_same_collection_is_not_a_move(self, repo, mutator):
        await mutator.save("project", "p1", Project(id="p1", title="P", collection="a"))
        result = await mutator.save(
            "project", "p1", Project(id="p1", title="Q", collection="a"), old_collection="a"
        )
        assert result.move is None
        assert list(repo.files) == ["data/projects/a/p1.md"]

    @pytest.mark.asyncio
    async def test_profile(self, repo, mutator):
        result = await mutator.save("profile", "profile", UserProfile(name="Ada"))
        assert result.path == "data/profile.md"
        assert repo.commits == ["Create profile: Ada"]
        assert profile_from_document(repo.text("data/profile.md")).name == "Ada"

    @pytest.mark.asyncio
    async def test_write_failure_propagates(self, repo, mutator):
        async def reject(path, content, message, sha=None):
            raise UpstreamError(409, "conflict")

        repo.write_file = reject
        with pytest.raises(UpstreamError):
            await mutator.save("blog", "b1", BlogPost(id="b1", title="T"))

    @pytest.mark.asyncio
    async def test_write_failure_after_move_reports_removal(self, repo, mutator):
        await mutator.save("project", "p1", Project(id="p1", title="P", collection="a"))

        async def reject(path, content, message, sha=None):
            raise UpstreamError(500, "boom")

        repo.write_file = reject
        with pytest.raises(SaveFailed) as exc_info:
            await mutator.save(
                "project", "p1", Project(id="p1", title="P", collection="b"), old_collection="a"
            )

        error = exc_info.value
        assert error.move.from_path == "data/projects/a/p1.md"
        assert error.move.removed is True
        assert error.status_code == 500
        assert "boom" in error.message
        assert isinstance(error.cause, UpstreamError)
        assert repo.files == {}

    @pytest.mark.asyncio
    async def test_write_failure_without_removal_is_not_wrapped(self, repo, mutator):
        async def reject(path, content, message, sha=None):
            raise UpstreamError(409, "conflict")

        repo.write_file = reject
        with pytest.raises(UpstreamError) as exc_info:
            await mutator.save(
                "project", "p1", Project(id="p1", title="P", collection="b"), old_collection="a"
            )
        assert not isinstance(exc_info.value, SaveFailed)


class TestSaveValidation:
    @pytest.mark.asyncio
    async def test_missing_title(self, mutator):
        with pytest.raises(ValidationError):
            await mutator.save("blog", "b1", BlogPost(id="b1"))

    @pytest.mark.asyncio
    async def test_unsafe_id(self, mutator):
        with pytest.raises(ValidationError):
            await mutator.save("blog", "../b1", BlogPost(id="../b1", title="T"))

    @pytest.mark.asyncio
    async def test_unsafe_collection(self, mutator):
        with pytest.raises(ValidationError):
            await mutator.save("blog", "b1", BlogPost(id="b1", title="T", collection="a/b"))

    @pytest.mark.asyncio
    async def test_wrong_model(self, mutator):
        with pytest.raises(ValidationError):
            await mutator.save("blog", "p1", Project(id="p1", title="T"))

    @pytest.mark.asyncio
    async def test_invalid_type(self, mutator):
        with pytest.raises(InvalidType):
            await mutator.save("page", "x", BlogPost(id="x", title="T"))


# ============================================================
# Delete
# ============================================================


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete(self, repo, mutator):
        await mutator.save("blog", "b1", BlogPost(id="b1", title="T", collection="tech"))
        path = await mutator.delete("blog", "b1", "tech")
        assert path == "data/blogs/tech/b1.md"
        assert repo.files == {}
        assert repo.commits[-1] == "Delete blog: b1"

    @pytest.mark.asyncio
    async def test_delete_missing(self, mutator):
        with pytest.raises(NotFound):
            await mutator.delete("project", "nope")

    @pytest.mark.asyncio
    async def test_profile_cannot_be_deleted(self, mutator):
        with pytest.raises(InvalidType):
            await mutator.delete("profile", "profile")
