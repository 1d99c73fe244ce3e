"""Unit tests for content path resolution."""

import pytest

from gitfolio.core.errors import InvalidType, ValidationError
from gitfolio.core.paths import (
    ContentType,
    collection_dir,
    marker_path,
    resolve_path,
    validate_id,
)


class TestResolvePath:
    def test_root_item(self):
        assert resolve_path("project", "p1", None) == "data/projects/p1.md"

    def test_item_in_collection(self):
        assert resolve_path("project", "p1", "web") == "data/projects/web/p1.md"

    def test_blog(self):
        assert resolve_path("blog", "b1") == "data/blogs/b1.md"

    @pytest.mark.parametrize("item_id, collection", [("x", None), ("y", "web"), (None, "z")])
    def test_profile_ignores_id_and_collection(self, item_id, collection):
        assert resolve_path("profile", item_id, collection) == "data/profile.md"

    def test_empty_collection_is_root(self):
        assert resolve_path("blog", "b1", "") == "data/blogs/b1.md"

    def test_collection_helpers(self):
        assert collection_dir("blogs", "tech") == "data/blogs/tech"
        assert marker_path("project", "web") == "data/projects/web/.collection.md"


class TestContentType:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("project", ContentType.PROJECT),
            ("projects", ContentType.PROJECT),
            ("Blogs", ContentType.BLOG),
            ("profile", ContentType.PROFILE),
        ],
    )
    def test_parse(self, value, expected):
        assert ContentType.parse(value) is expected

    def test_invalid(self):
        with pytest.raises(InvalidType):
            ContentType.parse("page")

    def test_invalid_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            ContentType.parse("")

    def test_profile_has_no_directory(self):
        with pytest.raises(InvalidType):
            ContentType.PROFILE.directory


class TestValidateId:
    def test_valid(self):
        assert validate_id("my-post_2.v1") == "my-post_2.v1"

    @pytest.mark.parametrize("value", ["", None, "../etc", "a/b", ".hidden", "with space"])
    def test_invalid(self, value):
        with pytest.raises(ValidationError):
            validate_id(value)
