"""
Docroot resolution for a repository.

The effective docroot comes from, in order: ignore_docroot, the tool's own
path parameter, the repository's .mcp-config.json, the server default, and
finally the repository root.
"""

import logging

from github_client import GitHubAPIError, NotFoundError
from models import (
    REASON_DOTFILE_BLOCKED,
    ConfigStatus,
    DocrootResolution,
    DocrootSource,
    PathOptions,
    RepoConfig,
    ScopedPath,
    ValidationResult,
)
from path_util import (
    construct_full_path,
    generate_dotfile_error,
    has_dot_components,
    normalize_docroot,
    validate_path,
)
from ttl_cache import CacheKey, TTLCache

logger = logging.getLogger(__name__)

_CONFIG_SCOPE = "config"


class DocrootResolver:
    def __init__(self, client, default_docroot: str | None = None, cache: TTLCache | None = None) -> None:
        self.client = client
        self.default_docroot = default_docroot
        self.cache = cache if cache is not None else TTLCache()

    def load_repo_config(self, owner: str, repo: str) -> RepoConfig:
        """
        Return the repository's policy, fetching .mcp-config.json on a cache miss.
        A missing, malformed or unreachable config yields an empty policy, which
        is cached like any other result.
        """
        return self.cache.get_or_load(
            CacheKey(owner, repo, _CONFIG_SCOPE),
            lambda: self._fetch_repo_config(owner, repo),
        )

    def _fetch_repo_config(self, owner: str, repo: str) -> RepoConfig:
        try:
            raw = self.client.fetch_config(owner, repo)
        except NotFoundError:
            logger.debug("No .mcp-config.json in %s/%s", owner, repo)
            return RepoConfig.empty(ConfigStatus.MISSING)
        except GitHubAPIError as e:
            logger.warning("Could not fetch .mcp-config.json for %s/%s: %s", owner, repo, e)
            return RepoConfig.empty(ConfigStatus.UNAVAILABLE)
        try:
            config = RepoConfig.from_json(raw)
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            logger.warning("Ignoring malformed .mcp-config.json in %s/%s: %s", owner, repo, e)
            return RepoConfig.empty(ConfigStatus.MALFORMED)
        return RepoConfig(
            docroot=normalize_docroot(config.docroot),
            include_extensions=config.include_extensions,
            status=config.status,
        )

    def resolve_docroot(
        self,
        owner: str,
        repo: str,
        tool_param: str | None = None,
        ignore_docroot: bool = False,
    ) -> DocrootResolution:
        if ignore_docroot is True:
            return DocrootResolution("", DocrootSource.IGNORED)

        if tool_param:
            return DocrootResolution(normalize_docroot(tool_param), DocrootSource.TOOL_PARAMETER)

        repo_config = self.load_repo_config(owner, repo)
        if repo_config.docroot is not None:
            return DocrootResolution(repo_config.docroot, DocrootSource.REPO_CONFIG)

        if self.default_docroot:
            normalized = normalize_docroot(self.default_docroot)
            if normalized is not None:
                return DocrootResolution(normalized, DocrootSource.SERVER_DEFAULT)

        return DocrootResolution("", DocrootSource.REPOSITORY_ROOT)

    def validate_path(
        self,
        owner: str,
        repo: str,
        path: str,
        options: PathOptions | None = None,
    ) -> ValidationResult:
        """Resolve the docroot and validate path against it."""
        options = options or PathOptions()
        resolution = self.resolve_docroot(owner, repo, ignore_docroot=options.ignore_docroot)
        result = validate_path(path, resolution.docroot, options)
        return _with_resolution(result, resolution)

    def scope_path(
        self,
        owner: str,
        repo: str,
        path: str | None,
        options: PathOptions | None = None,
    ) -> ScopedPath:
        """
        Map a path given by a tool caller onto the repository and validate it.
        Paths relative to the docroot get the docroot prepended; full
        repository paths under the docroot are kept as they are.
        """
        options = options or PathOptions()
        resolution = self.resolve_docroot(owner, repo, ignore_docroot=options.ignore_docroot)
        full_path = construct_full_path(path, resolution.docroot, options.ignore_docroot)
        if not options.allow_dotfiles and has_dot_components(path):
            # '..' collapses away in full_path, so the caller's own path is checked too
            result = ValidationResult(
                valid=False,
                error=generate_dotfile_error(path or "", options.operation),
                reason=REASON_DOTFILE_BLOCKED,
            )
        else:
            result = validate_path(full_path, resolution.docroot, options)
        return ScopedPath(full_path, _with_resolution(result, resolution))

    def invalidate(self, owner: str | None = None, repo: str | None = None) -> int:
        return self.cache.invalidate(owner, repo)

    def clear_cache(self) -> None:
        self.cache.clear()


def _with_resolution(result: ValidationResult, resolution: DocrootResolution) -> ValidationResult:
    return ValidationResult(
        valid=result.valid,
        error=result.error,
        reason=result.reason,
        docroot=resolution.docroot,
        source=resolution.source.value,
    )
