"""Pytest fixtures: an in-memory GitHub stand-in and a controllable clock."""

import base64
import json

import pytest

from github_client import GitHubAPIError, NotFoundError


class FakeClock:
    """Callable clock; advance() moves time forward in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGitHubClient:
    """
    Implements the GitHubClient methods the services and tools call.
    trees maps branch -> list of tree entries; files maps path -> text.
    Every call is recorded in .calls as (method, args).
    """

    def __init__(self, trees=None, config=None, files=None):
        self.trees = trees or {}
        self.config = config
        self.files = dict(files or {})
        self.calls = []
        self.tree_error = None
        self.config_error = None
        self.search_result = {"total_count": 0, "items": []}
        self.commits = []

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def fetch_config(self, owner, repo):
        self.calls.append(("fetch_config", (owner, repo)))
        if self.config_error is not None:
            raise self.config_error
        if self.config is None:
            raise NotFoundError("404 Not Found: .mcp-config.json", status=404)
        if isinstance(self.config, (bytes, str)):
            return self.config if isinstance(self.config, bytes) else self.config.encode()
        return json.dumps(self.config).encode()

    def fetch_tree(self, owner, repo, branch):
        self.calls.append(("fetch_tree", (owner, repo, branch)))
        if self.tree_error is not None:
            raise self.tree_error
        if branch not in self.trees:
            raise NotFoundError(f"404 Not Found: git/trees/{branch}", status=404)
        return {"sha": "root", "tree": list(self.trees[branch]), "truncated": False}

    def get_contents(self, owner, repo, path="", ref=None):
        self.calls.append(("get_contents", (owner, repo, path, ref)))
        if path in self.files:
            return _file_payload(path, self.files[path])
        prefix = path + "/" if path else ""
        children = {}
        for name in self.files:
            if name.startswith(prefix):
                head = name[len(prefix):].split("/", 1)
                child = prefix + head[0]
                children[child] = "dir" if len(head) > 1 else "file"
        if not children:
            raise NotFoundError(f"404 Not Found: contents/{path}", status=404)
        return [
            {"name": child.rsplit("/", 1)[-1], "path": child, "type": kind, "size": 0}
            for child, kind in sorted(children.items())
        ]

    def create_or_update_file(self, owner, repo, path, content, message, sha=None, branch=None):
        self.calls.append(("create_or_update_file", (owner, repo, path, content, message, sha, branch)))
        self.files[path] = content
        return {"content": {"path": path}, "commit": {"sha": "c0ffee"}}

    def delete_file(self, owner, repo, path, message, sha, branch=None):
        self.calls.append(("delete_file", (owner, repo, path, message, sha, branch)))
        if path not in self.files:
            raise GitHubAPIError("422 sha wasn't supplied", status=422)
        del self.files[path]
        return {"commit": {"sha": "dead"}}

    def list_commits(self, owner, repo, path=None, sha=None, per_page=10):
        self.calls.append(("list_commits", (owner, repo, path, sha, per_page)))
        return self.commits

    def search_code(self, query, per_page=10):
        self.calls.append(("search_code", (query, per_page)))
        return self.search_result


class FakeResponse:
    """Minimal requests.Response: payload is served as JSON, body as raw bytes."""

    def __init__(self, status_code=200, payload=None, reason="OK", body=None):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        if body is not None:
            self.content = body
        else:
            self.content = b"" if payload is None else json.dumps(payload).encode()

    def json(self):
        if self._payload is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    """Replays canned responses and records every request."""

    def __init__(self, responses=None, error=None):
        self.headers = {}
        self.responses = list(responses or [])
        self.error = error
        self.requests = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


def _file_payload(path: str, text: str) -> dict:
    return {
        "type": "file",
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "sha": f"sha-{path}",
        "size": len(text),
        "content": base64.b64encode(text.encode()).decode(),
    }


def blob(path: str, size: int = 100) -> dict:
    return {"type": "blob", "path": path, "size": size, "sha": f"sha-{path}"}


def tree(path: str) -> dict:
    return {"type": "tree", "path": path, "sha": f"sha-{path}"}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep server settings independent of the developer's environment."""
    for name in ("GH_TOKEN", "GH_DEFAULT_OWNER", "GH_DEFAULT_REPO", "GH_DEFAULT_DOCROOT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeGitHubClient()
