"""
Document catalog for a repository.

One recursive tree listing per (repository, docroot, extensions, branch) is
fetched from the remote store, reduced to the matching documents, made
relative to the docroot and cached for five minutes.
"""

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone

from docroot_resolver import DocrootResolver
from github_client import GitHubAPIError, NotFoundError
from models import Catalog, CatalogFile, CatalogStatistics
from path_util import has_dot_components, normalize_path, relative_to_docroot
from ttl_cache import DEFAULT_TTL_SECONDS, CacheKey, TTLCache

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".md", ".txt")
DEFAULT_BRANCH = "main"
FALLBACK_BRANCH = "master"
ROOT_FOLDER = "(root)"

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


class CatalogError(RuntimeError):
    """Raised when the repository tree cannot be fetched."""


class DocumentCatalogService:
    def __init__(
        self,
        client,
        default_docroot: str | None = None,
        cache: TTLCache | None = None,
        resolver: DocrootResolver | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.cache = cache if cache is not None else TTLCache(DEFAULT_TTL_SECONDS, clock=clock)
        # A private resolver keeps this service usable on its own; its config
        # cache is separate from any resolver the tools use.
        self.resolver = resolver or DocrootResolver(
            client, default_docroot, cache=TTLCache(DEFAULT_TTL_SECONDS, clock=clock)
        )

    def build_catalog(
        self,
        owner: str,
        repo: str,
        path: str | None = None,
        include_extensions: Sequence[str] | None = None,
        branch: str | None = None,
        ignore_docroot: bool = False,
        allow_dotfiles: bool = False,
    ) -> Catalog:
        """
        Return the catalog of documents under the effective docroot.

        A cached catalog younger than the TTL is returned as is, without any
        network call. Raises CatalogError if the tree cannot be fetched.
        """
        resolution = self.resolver.resolve_docroot(
            owner, repo, tool_param=path, ignore_docroot=ignore_docroot
        )
        docroot = normalize_path(resolution.docroot)
        extensions = self._effective_extensions(owner, repo, include_extensions)
        requested_branch = branch or DEFAULT_BRANCH
        extension_set = frozenset(ext.lower() for ext in extensions)
        key = CacheKey(owner, repo, (docroot, extension_set, requested_branch, allow_dotfiles))

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Catalog cache hit for %s/%s docroot=%r", owner, repo, docroot)
            return cached

        def build() -> Catalog:
            tree, fetched_branch = self._fetch_tree(owner, repo, requested_branch)
            files = filter_document_files(tree, docroot, extensions, allow_dotfiles=allow_dotfiles)
            statistics = calculate_statistics(files, extensions)
            now = self.cache.now()
            logger.info(
                "Cataloged %d documents in %s/%s@%s under %r",
                statistics.total_files,
                owner,
                repo,
                fetched_branch,
                docroot or ROOT_FOLDER,
            )
            return Catalog(
                repository=f"{owner}/{repo}",
                branch=fetched_branch,
                docroot=docroot,
                docroot_source=resolution.source.value,
                indexed_at=_isoformat(now),
                cache_expires_at=_isoformat(now + self.cache.ttl_seconds),
                statistics=statistics,
                files=tuple(files),
            )

        return self.cache.get_or_load(key, build)

    def clear_cache(self, owner: str | None = None, repo: str | None = None) -> int:
        """Drop cached catalogs and repo configs for everything, an owner, or one repository."""
        self.resolver.invalidate(owner, repo)
        return self.cache.invalidate(owner, repo)

    def _effective_extensions(
        self, owner: str, repo: str, include_extensions: Sequence[str] | None
    ) -> tuple[str, ...]:
        if include_extensions:
            return tuple(include_extensions)
        repo_config = self.resolver.load_repo_config(owner, repo)
        if repo_config.include_extensions:
            return repo_config.include_extensions
        return DEFAULT_EXTENSIONS

    def _fetch_tree(self, owner: str, repo: str, branch: str) -> tuple[list[dict], str]:
        """Fetch the recursive tree, retrying once on master when main does not exist."""
        try:
            return self._tree_entries(owner, repo, branch), branch
        except NotFoundError as e:
            if branch != DEFAULT_BRANCH:
                raise CatalogError(f"Failed to build catalog: {e}") from e
            logger.warning(
                "Branch %s not found in %s/%s, retrying with %s",
                DEFAULT_BRANCH,
                owner,
                repo,
                FALLBACK_BRANCH,
            )
        except GitHubAPIError as e:
            raise CatalogError(f"Failed to build catalog: {e}") from e

        try:
            return self._tree_entries(owner, repo, FALLBACK_BRANCH), FALLBACK_BRANCH
        except GitHubAPIError as e:
            raise CatalogError(f"Failed to build catalog: {e}") from e

    def _tree_entries(self, owner: str, repo: str, branch: str) -> list[dict]:
        data = self.client.fetch_tree(owner, repo, branch)
        if data.get("truncated"):
            logger.warning("Tree listing for %s/%s@%s was truncated", owner, repo, branch)
        return list(data.get("tree") or [])


def filter_document_files(
    tree: Iterable[dict],
    docroot: str,
    extensions: Sequence[str],
    allow_dotfiles: bool = False,
) -> list[CatalogFile]:
    """
    Keep blobs under docroot that end with one of extensions (case-insensitive),
    strip the docroot prefix and sort by the resulting path.
    """
    root = normalize_path(docroot)
    prefix = root + "/" if root else ""
    suffixes = tuple(ext.lower() for ext in extensions)
    files = []
    for item in tree:
        if item.get("type") != "blob":
            continue
        path = item.get("path") or ""
        if prefix and not path.startswith(prefix):
            continue
        if not path.lower().endswith(suffixes):
            continue
        relative = relative_to_docroot(path, root)
        if not allow_dotfiles and has_dot_components(relative):
            continue
        files.append(CatalogFile(path=relative, size=item.get("size") or 0))
    files.sort(key=lambda f: f.path)
    return files


def calculate_statistics(files: Sequence[CatalogFile], extensions: Sequence[str]) -> CatalogStatistics:
    total_size = sum(f.size for f in files)
    file_types = {}
    for ext in extensions:
        count = sum(1 for f in files if f.path.lower().endswith(ext.lower()))
        if count:
            file_types[ext] = count
    return CatalogStatistics(
        total_files=len(files),
        total_folders=len({_folder_of(f.path) for f in files}),
        total_size_bytes=total_size,
        total_size_human=format_bytes(total_size),
        file_types=file_types,
    )


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    value = round(value, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {_SIZE_UNITS[unit]}"


def _folder_of(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ROOT_FOLDER


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")
