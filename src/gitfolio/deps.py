"""FastAPI dependency injection functions."""

import logging
from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, Request
from pydantic import ValidationError as ModelValidationError

from gitfolio.config import Settings, settings
from gitfolio.core.auth import GitHubOAuth
from gitfolio.core.errors import RepositoryNotConfigured, Unauthorized
from gitfolio.core.github import GitHubClient, GitHubRepository
from gitfolio.core.importer import DescriptionGenerator
from gitfolio.core.models import RepoConfig, Session
from gitfolio.core.sessions import (
    ConfigStore,
    CookieConfigStore,
    CookieSessionStore,
    FileConfigStore,
    FileSessionStore,
    SessionStore,
)
from gitfolio.core.storage import Repository

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 30.0


def get_settings() -> Settings:
    return settings


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """Outbound HTTP client, closed when the request finishes."""
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
        yield client


# =============================================================================
# Session and config stores
# =============================================================================


def get_session_store(config: Settings = Depends(get_settings)) -> SessionStore:
    if config.store_backend == "file":
        return FileSessionStore(
            config.state_dir / "sessions.yaml",
            secure=config.cookie_secure,
            max_age=config.session_max_age,
        )
    return CookieSessionStore(secure=config.cookie_secure, max_age=config.session_max_age)


def get_config_store(config: Settings = Depends(get_settings)) -> ConfigStore:
    if config.store_backend == "file":
        return FileConfigStore(config.state_dir / "config.yaml")
    return CookieConfigStore(secure=config.cookie_secure, max_age=config.session_max_age)


def get_session(
    request: Request, store: SessionStore = Depends(get_session_store)
) -> Session | None:
    return store.load(request)


def require_session(session: Session | None = Depends(get_session)) -> Session:
    """Raise Unauthorized unless a live session is present."""
    if session is None:
        raise Unauthorized("Unauthorized")
    return session


def get_repo_config(
    request: Request,
    store: ConfigStore = Depends(get_config_store),
    config: Settings = Depends(get_settings),
) -> RepoConfig | None:
    """Stored repository config, else the public repository from settings."""
    stored = store.load(request)
    if stored is not None:
        return stored
    if not config.public_repo:
        return None
    try:
        return RepoConfig(repo=config.public_repo, branch=config.public_branch)
    except ModelValidationError:
        logger.warning("Ignoring invalid public repository %r", config.public_repo)
        return None


# =============================================================================
# GitHub access
# =============================================================================


def get_repository(
    target: RepoConfig | None = Depends(get_repo_config),
    config: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> Repository | None:
    """Content repository, or None when no target or token is configured."""
    if target is None or not config.github_token:
        return None
    return GitHubRepository(client, config.github_token, target, config.github_api_url)


def get_writer_repository(
    session: Session = Depends(require_session),
    target: RepoConfig | None = Depends(get_repo_config),
    repository: Repository | None = Depends(get_repository),
) -> Repository:
    """Content repository for mutations; requires a session and a target."""
    if target is None:
        raise RepositoryNotConfigured()
    if repository is None:
        raise Unauthorized("GitHub token not configured")
    return repository


def get_github_client(
    session: Session = Depends(require_session),
    config: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> GitHubClient:
    return GitHubClient(client, config.github_token, config.github_api_url)


def get_oauth(
    config: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> GitHubOAuth:
    return GitHubOAuth(
        client,
        config.github_client_id,
        config.github_client_secret,
        api_url=config.github_api_url,
    )


def get_describer(
    config: Settings = Depends(get_settings),
) -> DescriptionGenerator | None:
    if not config.ai_api_key:
        return None
    return DescriptionGenerator(config.ai_api_key, config.ai_model, config.ai_base_url)
