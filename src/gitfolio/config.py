"""Application configuration."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Gitfolio"
    app_url: str = "http://localhost:8000"
    debug: bool = False

    # GitHub API credential used for every content call; never taken from requests
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    github_client_id: str = ""
    github_client_secret: str = ""

    # Repository served when no config has been stored yet
    public_repo: str = ""
    public_branch: str = "main"

    # Session and config persistence
    store_backend: Literal["cookie", "file"] = "cookie"
    state_dir: Path = Path("data/state")
    cookie_secure: bool = False
    session_max_age: int = 7 * 24 * 60 * 60

    # Optional text-completion service for repository descriptions; the model
    # is a LiteLLM model string
    ai_api_key: str = ""
    ai_model: str = "openai/glm-4-flash"
    ai_base_url: str = "https://open.bigmodel.cn/api/paas/v4"

    max_image_bytes: int = 5 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_prefix="GITFOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
