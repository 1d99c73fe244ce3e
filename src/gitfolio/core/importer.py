"""Draft projects built from existing GitHub repositories."""

import asyncio
import logging
import time

from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    RateLimitError,
    Timeout,
)

from gitfolio.core.github import GitHubClient
from gitfolio.core.models import Project

logger = logging.getLogger(__name__)

DESCRIPTION_PROMPT = """Summarize this GitHub repository in 1-2 sentences (under 50 words).

Name: {name}
Description: {description}
Languages: {languages}
Topics: {topics}
{readme}
Reply with the summary text only."""


class DescriptionGenerator:
    """Asks a chat-completion model, through LiteLLM, for a short summary."""

    def __init__(self, api_key: str, model: str, api_base: str | None = None):
        """
        Args:
            api_key: Key for the completion service.
            model: LiteLLM model string, e.g. ``openai/glm-4-flash`` for an
                OpenAI-compatible endpoint.
            api_base: Optional endpoint URL.
        """
        self.api_key = api_key
        self.model = model
        self.api_base = api_base or None

    async def generate(
        self,
        name: str,
        description: str,
        languages: list[str],
        topics: list[str],
        readme: str,
    ) -> str | None:
        """Return a generated description, or None if the service fails."""
        prompt = DESCRIPTION_PROMPT.format(
            name=name,
            description=description or "none",
            languages=", ".join(languages) or "unknown",
            topics=", ".join(topics) or "none",
            readme=f"README (first 200 chars):\n{readme[:200]}\n" if readme else "",
        )
        kwargs = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": 100,
            "api_key": self.api_key,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            response = await acompletion(**kwargs)
        except (
            AuthenticationError,
            RateLimitError,
            APIConnectionError,
            BadRequestError,
            Timeout,
            APIError,
        ) as e:
            logger.warning("Description generation failed for %s: %s", name, e)
            return None
        text = str(response.choices[0].message.content or "").strip()
        if text:
            logger.info("Generated description for %s", name)
        return text or None


class RepositoryImporter:
    """Turns a GitHub repository into a draft Project."""

    def __init__(self, github: GitHubClient, describer: DescriptionGenerator | None = None):
        self.github = github
        self.describer = describer

    async def import_repository(self, owner: str, repo: str) -> Project:
        """Raises NotFound if the repository does not exist."""
        info, readme, languages = await asyncio.gather(
            self.github.get_repo(owner, repo),
            self.github.get_readme(owner, repo),
            self.github.get_languages(owner, repo),
        )
        topics = list(info.get("topics") or [])

        description = info.get("description") or ""
        if not description.strip() and self.describer is not None:
            description = (
                await self.describer.generate(
                    info["name"], description, languages, topics, readme
                )
                or description
            )

        # Languages first, then topics, without duplicates
        tags = list(dict.fromkeys(languages + topics))
        return Project(
            id=f"project-{int(time.time() * 1000)}",
            title=info["name"],
            description=description,
            content=readme,
            tags=tags,
            link=info.get("homepage") or None,
            github=info.get("html_url"),
            created_at=info.get("created_at") or "",
            collection=None,
        )
