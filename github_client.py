"""
Thin GitHub REST client used as the remote store.

Only the endpoints the tools need are wrapped. HTTP 404 raises NotFoundError
so callers can tell absence apart from other failures.
"""

import base64
import binascii
import logging
from typing import Any
from urllib.parse import quote

import requests

from path_util import CONFIG_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub request fails."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class NotFoundError(GitHubAPIError):
    """Raised for HTTP 404 responses."""


class GitHubClient:
    def __init__(
        self,
        token: str | None = None,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "github-docs-mcp",
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token.strip()}"

    def request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Send a request to endpoint (path relative to the API root) and return decoded JSON."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        logger.debug("GitHub %s %s", method, endpoint)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise GitHubAPIError(f"GitHub request failed: {e}") from e
        if response.status_code == 404:
            raise NotFoundError(f"404 Not Found: {endpoint}", status=404)
        if response.status_code >= 400:
            raise GitHubAPIError(
                f"{response.status_code} {_error_message(response)}: {endpoint}",
                status=response.status_code,
            )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise GitHubAPIError(
                f"Invalid JSON from GitHub: {endpoint}", status=response.status_code
            ) from e

    # ---- Core: config and tree ----

    def fetch_config(self, owner: str, repo: str) -> bytes:
        """Return the raw .mcp-config.json bytes. Raises NotFoundError if absent."""
        data = self.get_contents(owner, repo, CONFIG_FILENAME)
        if not isinstance(data, dict) or "content" not in data:
            raise GitHubAPIError(f"{CONFIG_FILENAME} is not a file")
        try:
            return base64.b64decode(data["content"])
        except binascii.Error as e:
            raise GitHubAPIError(f"{CONFIG_FILENAME} content is not valid base64") from e

    def fetch_tree(self, owner: str, repo: str, branch: str) -> dict:
        """Return the full recursive tree listing of branch."""
        return self.request(
            "GET",
            f"repos/{_seg(owner)}/{_seg(repo)}/git/trees/{quote(branch, safe='/')}",
            params={"recursive": "1"},
        )

    # ---- Contents ----

    def get_contents(self, owner: str, repo: str, path: str = "", ref: str | None = None) -> Any:
        params = {"ref": ref} if ref else None
        return self.request("GET", _contents_endpoint(owner, repo, path), params=params)

    def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
        branch: str | None = None,
    ) -> dict:
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if sha:
            body["sha"] = sha
        if branch:
            body["branch"] = branch
        return self.request("PUT", _contents_endpoint(owner, repo, path), json=body)

    def delete_file(
        self,
        owner: str,
        repo: str,
        path: str,
        message: str,
        sha: str,
        branch: str | None = None,
    ) -> dict:
        body: dict[str, Any] = {"message": message, "sha": sha}
        if branch:
            body["branch"] = branch
        return self.request("DELETE", _contents_endpoint(owner, repo, path), json=body)

    # ---- History and search ----

    def list_commits(
        self,
        owner: str,
        repo: str,
        path: str | None = None,
        sha: str | None = None,
        per_page: int = 10,
    ) -> list:
        params: dict[str, Any] = {"per_page": per_page}
        if path:
            params["path"] = path
        if sha:
            params["sha"] = sha
        return self.request("GET", f"repos/{_seg(owner)}/{_seg(repo)}/commits", params=params)

    def search_code(self, query: str, per_page: int = 10) -> dict:
        return self.request("GET", "search/code", params={"q": query, "per_page": per_page})


def decode_content(data: dict) -> str:
    """Decode the base64 'content' field of a contents API file response."""
    return base64.b64decode(data.get("content", "")).decode("utf-8", errors="replace")


def _seg(value: str) -> str:
    return quote(value, safe="")


def _contents_endpoint(owner: str, repo: str, path: str) -> str:
    endpoint = f"repos/{_seg(owner)}/{_seg(repo)}/contents"
    path = path.strip("/")
    if path:
        endpoint += "/" + quote(path, safe="/")
    return endpoint


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason or "error"
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.reason or "error"
