"""
Server settings, read from environment variables.

GH_TOKEN            GitHub token forwarded to the API (optional)
GH_DEFAULT_OWNER    repository used when a tool call names none
GH_DEFAULT_REPO
GH_DEFAULT_DOCROOT  server-wide default docroot (optional)
GITHUB_API_URL      API root (default https://api.github.com)
GITHUB_TIMEOUT      request timeout in seconds (default 30)
LOG_LEVEL           default INFO
MCP_TRANSPORT       http (default) or stdio
MCP_HOST, MCP_PORT  HTTP bind address (default 0.0.0.0:8000)
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from github_client import DEFAULT_API_URL


@dataclass(frozen=True)
class Settings:
    token: str | None = None
    default_owner: str | None = None
    default_repo: str | None = None
    default_docroot: str | None = None
    api_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    log_level: str = "INFO"
    transport: str = "http"
    host: str = "0.0.0.0"
    port: int = 8000


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environ (os.environ by default)."""
    env = os.environ if environ is None else environ
    return Settings(
        token=_optional(env, "GH_TOKEN"),
        default_owner=_optional(env, "GH_DEFAULT_OWNER"),
        default_repo=_optional(env, "GH_DEFAULT_REPO"),
        default_docroot=_optional(env, "GH_DEFAULT_DOCROOT"),
        api_url=env.get("GITHUB_API_URL") or DEFAULT_API_URL,
        timeout=_number(env, "GITHUB_TIMEOUT", 30.0, float),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        transport=(env.get("MCP_TRANSPORT") or "http").lower(),
        host=env.get("MCP_HOST") or "0.0.0.0",
        port=_number(env, "MCP_PORT", 8000, int),
    )


def _optional(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name, "").strip()
    return value or None


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
