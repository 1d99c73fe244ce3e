"""GitHub OAuth login for the site owner."""

import logging
import secrets
from urllib.parse import urlencode

import httpx

from gitfolio.core.errors import Unauthorized, UpstreamError
from gitfolio.core.github import DEFAULT_API_URL, GitHubClient
from gitfolio.core.models import GitHubUser, Session

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
OAUTH_SCOPE = "user:email"


def new_state() -> str:
    return secrets.token_urlsafe(16)


def authorize_url(client_id: str, redirect_uri: str, state: str) -> str:
    """URL of GitHub's consent page for this app."""
    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": OAUTH_SCOPE,
            "state": state,
        }
    )
    return f"{AUTHORIZE_URL}?{query}"


class GitHubOAuth:
    """Completes the OAuth code exchange and builds a session."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        api_url: str = DEFAULT_API_URL,
        token_url: str = TOKEN_URL,
    ):
        self.client = client
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_url = api_url
        self.token_url = token_url

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        """Trade the callback ``code`` for an access token."""
        try:
            response = await self.client.post(
                self.token_url,
                json={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise UpstreamError(502, f"OAuth token request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            logger.error("Failed to get access token: %s", data)
            raise Unauthorized("Failed to get access token")
        return token

    async def fetch_user(self, token: str) -> GitHubUser:
        data = await GitHubClient(self.client, token, self.api_url).get_user()
        return GitHubUser(
            login=data["login"],
            name=data.get("name"),
            avatar=data.get("avatar_url") or "",
        )

    async def authenticate(self, code: str, redirect_uri: str, max_age: int) -> Session:
        token = await self.exchange_code(code, redirect_uri)
        user = await self.fetch_user(token)
        logger.info("Signed in as %s", user.login)
        return Session.start(user, max_age)
