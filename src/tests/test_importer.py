"""Tests for building draft projects from GitHub repositories."""

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from litellm.exceptions import AuthenticationError, RateLimitError

from gitfolio.core.errors import NotFound
from gitfolio.core.github import GitHubClient
from gitfolio.core.importer import DescriptionGenerator, RepositoryImporter

API = "https://api.test"
AI = "https://ai.test/v4"

REPO_INFO = {
    "name": "tool",
    "description": "",
    "topics": ["Python", "cli"],
    "homepage": "",
    "html_url": "https://github.com/ada/tool",
    "created_at": "2023-03-04T05:06:07Z",
}


def github_handler(info=None):
    info = info or REPO_INFO

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/repos/ada/tool":
            return httpx.Response(200, json=info)
        if path == "/repos/ada/tool/readme":
            content = base64.b64encode(b"# tool\n\nDoes things.").decode()
            return httpx.Response(200, json={"content": content})
        if path == "/repos/ada/tool/languages":
            return httpx.Response(200, json={"Python": 1000, "Shell": 20})
        return httpx.Response(404, json={"message": "Not Found"})

    return handler


def completion(text):
    return MagicMock(choices=[MagicMock(message=MagicMock(content=text))])


@pytest.fixture
def mock_completion():
    """Mock litellm completion response."""
    with patch("gitfolio.core.importer.acompletion", new_callable=AsyncMock) as mock:
        mock.return_value = completion("  A small CLI tool.\n")
        yield mock


def make_importer(client, with_ai=True):
    describer = DescriptionGenerator("key", "openai/glm-4-flash", AI) if with_ai else None
    return RepositoryImporter(GitHubClient(client, "tok", API), describer)


# ============================================================
# Importer
# ============================================================


class TestRepositoryImporter:
    @pytest.mark.asyncio
    async def test_import(self):
        transport = httpx.MockTransport(github_handler())
        async with httpx.AsyncClient(transport=transport) as client:
            importer = make_importer(client, with_ai=False)
            project = await importer.import_repository("ada", "tool")

        assert project.id.startswith("project-")
        assert project.title == "tool"
        assert project.content == "# tool\n\nDoes things."
        assert project.tags == ["Python", "Shell", "cli"]
        assert project.link is None
        assert project.github == "https://github.com/ada/tool"
        assert project.created_at == "2023-03-04T05:06:07Z"
        assert project.description == ""

    @pytest.mark.asyncio
    async def test_generated_description(self, mock_completion):
        transport = httpx.MockTransport(github_handler())
        async with httpx.AsyncClient(transport=transport) as client:
            project = await make_importer(client).import_repository("ada", "tool")

        assert project.description == "A small CLI tool."
        mock_completion.assert_called_once()
        kwargs = mock_completion.call_args.kwargs
        assert kwargs["model"] == "openai/glm-4-flash"
        assert kwargs["api_key"] == "key"
        assert kwargs["api_base"] == AI
        assert kwargs["max_tokens"] == 100
        assert "tool" in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_existing_description_is_kept(self, mock_completion):
        transport = httpx.MockTransport(
            github_handler({**REPO_INFO, "description": "Mine."})
        )
        async with httpx.AsyncClient(transport=transport) as client:
            project = await make_importer(client).import_repository("ada", "tool")

        assert project.description == "Mine."
        mock_completion.assert_not_called()

    @pytest.mark.asyncio
    async def test_ai_failure_falls_back(self, mock_completion):
        mock_completion.side_effect = RateLimitError(
            message="Rate limit exceeded",
            llm_provider="openai",
            model="glm-4-flash",
        )
        transport = httpx.MockTransport(github_handler())
        async with httpx.AsyncClient(transport=transport) as client:
            project = await make_importer(client).import_repository("ada", "tool")
        assert project.description == ""

    @pytest.mark.asyncio
    async def test_missing_repository(self):
        transport = httpx.MockTransport(github_handler())
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(NotFound):
                await make_importer(client).import_repository("ada", "missing")


# ============================================================
# Description generator
# ============================================================


class TestDescriptionGenerator:
    @pytest.mark.asyncio
    async def test_without_endpoint(self, mock_completion):
        generator = DescriptionGenerator("key", "gpt-4o-mini")
        text = await generator.generate("tool", "", ["Python"], [], "")

        assert text == "A small CLI tool."
        kwargs = mock_completion.call_args.kwargs
        assert "api_base" not in kwargs
        assert "README" not in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_empty_reply(self, mock_completion):
        mock_completion.return_value = completion(None)
        generator = DescriptionGenerator("key", "gpt-4o-mini")
        assert await generator.generate("tool", "", [], [], "") is None

    @pytest.mark.asyncio
    async def test_authentication_error(self, mock_completion):
        mock_completion.side_effect = AuthenticationError(
            message="Invalid API key",
            llm_provider="openai",
            model="gpt-4o-mini",
        )
        generator = DescriptionGenerator("bad", "gpt-4o-mini")
        assert await generator.generate("tool", "", [], [], "# tool") is None
