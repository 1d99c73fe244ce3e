"""Tests for the GitHub OAuth helpers."""

import json
import time
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from gitfolio.core.auth import TOKEN_URL, GitHubOAuth, authorize_url, new_state
from gitfolio.core.errors import Unauthorized, UpstreamError

API = "https://api.test"


def oauth_handler(token_body, user=None):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if str(request.url) == TOKEN_URL:
            return httpx.Response(200, json=token_body)
        if request.url.path == "/user" and user is not None:
            return httpx.Response(200, json=user)
        return httpx.Response(401, json={"message": "Bad credentials"})

    return handler, requests


class TestAuthorizeUrl:
    def test_query(self):
        url = authorize_url("cid", "http://localhost:8000/api/auth/callback", "xyz")
        parsed = urlparse(url)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
            "https://github.com/login/oauth/authorize"
        )
        assert parse_qs(parsed.query) == {
            "client_id": ["cid"],
            "redirect_uri": ["http://localhost:8000/api/auth/callback"],
            "scope": ["user:email"],
            "state": ["xyz"],
        }

    def test_states_differ(self):
        assert new_state() != new_state()


class TestGitHubOAuth:
    @pytest.mark.asyncio
    async def test_exchange_code(self):
        handler, requests = oauth_handler({"access_token": "gho_abc"})
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            oauth = GitHubOAuth(client, "cid", "secret", api_url=API)
            assert await oauth.exchange_code("code1", "http://app/cb") == "gho_abc"

        request = requests[0]
        assert request.headers["Accept"] == "application/json"
        assert json.loads(request.content) == {
            "client_id": "cid",
            "client_secret": "secret",
            "code": "code1",
            "redirect_uri": "http://app/cb",
        }

    @pytest.mark.asyncio
    async def test_missing_token(self):
        handler, _ = oauth_handler({"error": "bad_verification_code"})
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            oauth = GitHubOAuth(client, "cid", "secret", api_url=API)
            with pytest.raises(Unauthorized):
                await oauth.exchange_code("stale", "http://app/cb")

    @pytest.mark.asyncio
    async def test_authenticate(self):
        user = {"login": "ada", "name": "Ada", "avatar_url": "https://example.com/a.png"}
        handler, requests = oauth_handler({"access_token": "gho_abc"}, user)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            oauth = GitHubOAuth(client, "cid", "secret", api_url=API)
            session = await oauth.authenticate("code1", "http://app/cb", max_age=3600)

        assert session.user.login == "ada"
        assert session.user.avatar == "https://example.com/a.png"
        assert not session.is_expired()
        assert session.expires_at <= int(time.time() * 1000) + 3600 * 1000
        assert requests[1].headers["Authorization"] == "Bearer gho_abc"

    @pytest.mark.asyncio
    async def test_user_lookup_failure(self):
        handler, _ = oauth_handler({"access_token": "gho_abc"})
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            oauth = GitHubOAuth(client, "cid", "secret", api_url=API)
            with pytest.raises(UpstreamError):
                await oauth.authenticate("code1", "http://app/cb", max_age=3600)
