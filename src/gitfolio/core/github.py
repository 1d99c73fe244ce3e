"""GitHub REST API clients.

``GitHubRepository`` implements :class:`~gitfolio.core.storage.Repository`
over the contents endpoints of one repository and branch. ``GitHubClient``
covers the account-level calls used by the admin area: the authenticated
user's repositories, repository metadata and repository creation.
"""

import base64
import logging
from typing import Any
from urllib.parse import quote

import httpx

from gitfolio.core.errors import NotFound, Unauthorized, UpstreamError
from gitfolio.core.models import DirEntry, RepoConfig, RepoFile
from gitfolio.core.storage import Repository

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "Gitfolio"
JSON_MEDIA_TYPE = "application/vnd.github.v3+json"
RAW_MEDIA_TYPE = "application/vnd.github.raw"
DEFAULT_REPO_DESCRIPTION = "Personal website content - Managed by Gitfolio"


def error_message(response: httpx.Response) -> str:
    """Best-effort error text from a GitHub error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"GitHub API error ({response.status_code})"
    if not isinstance(data, dict):
        return f"GitHub API error ({response.status_code})"
    errors = data.get("errors")
    if isinstance(errors, list) and errors:
        details = [e.get("message", "") for e in errors if isinstance(e, dict)]
        details = [d for d in details if d]
        if details:
            return ", ".join(details)
    return data.get("message") or f"GitHub API error ({response.status_code})"


def raise_for_status(response: httpx.Response) -> None:
    """Map a non-2xx response to NotFound or UpstreamError."""
    if response.is_success:
        return
    message = error_message(response)
    if response.status_code == 404:
        raise NotFound(message)
    raise UpstreamError(response.status_code, message)


class GitHubAPI:
    """Shared request plumbing: auth headers and error mapping."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        api_url: str = DEFAULT_API_URL,
    ):
        if not token:
            raise Unauthorized("GitHub token not configured")
        self.client = client
        self.token = token
        self.api_url = api_url.rstrip("/")

    def _headers(self, accept: str = JSON_MEDIA_TYPE) -> dict[str, str]:
        return {
            "Accept": accept,
            "User-Agent": USER_AGENT,
            "Authorization": f"Bearer {self.token}",
        }

    async def _request(
        self,
        method: str,
        url: str,
        *,
        accept: str = JSON_MEDIA_TYPE,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await self.client.request(
                method, url, headers=self._headers(accept), **kwargs
            )
        except httpx.HTTPError as e:
            logger.warning("GitHub request %s %s failed: %s", method, url, e)
            raise UpstreamError(502, f"GitHub request failed: {e}") from e


class GitHubRepository(GitHubAPI, Repository):
    """Contents API access to a single repository branch."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        target: RepoConfig,
        api_url: str = DEFAULT_API_URL,
    ):
        super().__init__(client, token, api_url)
        self.target = target

    def _contents_url(self, path: str) -> str:
        encoded = quote(path.strip("/"), safe="/")
        target = self.target
        return f"{self.api_url}/repos/{target.owner}/{target.name}/contents/{encoded}"

    async def _get(self, path: str) -> httpx.Response:
        return await self._request(
            "GET", self._contents_url(path), params={"ref": self.target.branch}
        )

    async def list_directory(self, path: str) -> list[DirEntry]:
        response = await self._get(path)
        if response.status_code == 404:
            return []
        raise_for_status(response)

        data = response.json()
        if not isinstance(data, list):
            # The path names a file, not a directory
            return []
        entries = []
        for item in data:
            kind = item.get("type")
            if kind not in ("file", "dir"):
                continue
            entries.append(
                DirEntry(
                    name=item["name"],
                    path=item["path"],
                    kind=kind,
                    sha=item.get("sha", ""),
                    url=item.get("url", ""),
                )
            )
        return entries

    async def _fetch(self, path: str) -> tuple[bytes, str]:
        response = await self._get(path)
        raise_for_status(response)
        data = response.json()
        if not isinstance(data, dict) or data.get("type") != "file":
            raise NotFound(f"Not a file: {path}")

        if data.get("encoding") == "base64":
            return base64.b64decode(data.get("content", "")), data["sha"]

        # Files over 1 MB come back without inline content
        raw = await self._request(
            "GET",
            self._contents_url(path),
            accept=RAW_MEDIA_TYPE,
            params={"ref": self.target.branch},
        )
        raise_for_status(raw)
        return raw.content, data["sha"]

    async def read_bytes(self, path: str) -> bytes:
        data, _ = await self._fetch(path)
        return data

    async def read_file(self, path: str) -> RepoFile:
        data, sha = await self._fetch(path)
        return RepoFile(
            path=path.strip("/"),
            content=data.decode("utf-8", errors="replace"),
            sha=sha,
        )

    async def get_revision(self, path: str) -> str | None:
        response = await self._get(path)
        if response.status_code == 404:
            return None
        raise_for_status(response)
        data = response.json()
        if not isinstance(data, dict):
            return None
        return data.get("sha")

    async def write_file(
        self,
        path: str,
        content: str | bytes,
        message: str,
        sha: str | None = None,
    ) -> str:
        raw = content.encode("utf-8") if isinstance(content, str) else content
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(raw).decode("ascii"),
            "branch": self.target.branch,
        }
        # Create and update share the verb; only the sha tells them apart
        if sha:
            body["sha"] = sha
        response = await self._request("PUT", self._contents_url(path), json=body)
        if not response.is_success:
            logger.warning(
                "GitHub write of %s failed: %d %s",
                path,
                response.status_code,
                response.text,
            )
        raise_for_status(response)
        return response.json()["content"]["sha"]

    async def delete_file(self, path: str, sha: str, message: str) -> None:
        body = {"message": message, "sha": sha, "branch": self.target.branch}
        response = await self._request("DELETE", self._contents_url(path), json=body)
        if not response.is_success:
            logger.warning(
                "GitHub delete of %s failed: %d %s",
                path,
                response.status_code,
                response.text,
            )
        raise_for_status(response)


class GitHubClient(GitHubAPI):
    """Account-level GitHub calls made with the configured token."""

    async def get_user(self) -> dict[str, Any]:
        response = await self._request("GET", f"{self.api_url}/user")
        raise_for_status(response)
        return response.json()

    async def list_repos(self) -> list[dict[str, Any]]:
        """Repositories owned by the user, most recently updated first, forks excluded."""
        response = await self._request(
            "GET",
            f"{self.api_url}/user/repos",
            params={"per_page": 100, "type": "owner", "sort": "updated"},
        )
        raise_for_status(response)
        return [repo for repo in response.json() if not repo.get("fork")]

    async def get_repo(self, owner: str, repo: str) -> dict[str, Any]:
        response = await self._request("GET", f"{self.api_url}/repos/{owner}/{repo}")
        raise_for_status(response)
        return response.json()

    async def get_readme(self, owner: str, repo: str) -> str:
        """Decoded README text, or an empty string if there is none."""
        response = await self._request(
            "GET", f"{self.api_url}/repos/{owner}/{repo}/readme"
        )
        if response.status_code == 404:
            return ""
        raise_for_status(response)
        content = response.json().get("content", "")
        return base64.b64decode(content).decode("utf-8", errors="replace")

    async def get_languages(self, owner: str, repo: str) -> list[str]:
        response = await self._request(
            "GET", f"{self.api_url}/repos/{owner}/{repo}/languages"
        )
        if response.status_code == 404:
            return []
        raise_for_status(response)
        return list(response.json().keys())

    async def create_repo(
        self,
        name: str,
        description: str = "",
        private: bool = False,
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"{self.api_url}/user/repos",
            json={
                "name": name,
                "description": description or DEFAULT_REPO_DESCRIPTION,
                "private": private,
                "auto_init": True,
            },
        )
        raise_for_status(response)
        return response.json()
