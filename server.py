"""
GitHub Docs MCP Server.

Exposes a GitHub repository to MCP clients as a small set of docs-as-code
tools (read, write, delete, list, history, search, catalog). Every path is
scoped to a docroot resolved per repository; see docroot_resolver.
"""

import json
import logging

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from config import Settings, load_settings
from docroot_resolver import DocrootResolver
from document_catalog import CatalogError, DocumentCatalogService
from github_client import GitHubAPIError, GitHubClient, NotFoundError, decode_content
from models import OperationKind, PathOptions, ScopedPath
from path_util import CONFIG_FILENAME, docroot_source_label, has_dot_components, is_path_in_docroot

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "Use this server to read and maintain documentation in a GitHub repository. "
    "Paths are relative to the repository's docroot (set in .mcp-config.json under "
    "mcp.docroot, or by the server). Start with get_repository_catalog to see every "
    "document, then pass its paths to get_file or create_or_update_file. "
    'Add "ignore_docroot": true to reach files outside the docroot and '
    '"allow_dotfiles": true for files or folders starting with ".".'
)


class DocsTools:
    """Tool handlers. Each returns text: JSON on success, 'Error: ...' on failure."""

    def __init__(
        self,
        client: GitHubClient,
        resolver: DocrootResolver,
        catalog: DocumentCatalogService,
        default_owner: str | None = None,
        default_repo: str | None = None,
    ) -> None:
        self.client = client
        self.resolver = resolver
        self.catalog = catalog
        self.default_owner = default_owner
        self.default_repo = default_repo

    def get_file(
        self,
        path: str,
        owner: str | None = None,
        repo: str | None = None,
        ref: str | None = None,
        ignore_docroot: bool = False,
        allow_dotfiles: bool = False,
    ) -> str:
        """Get file contents. path is relative to the docroot."""
        logger.info("get_file path=%s owner=%s repo=%s", path, owner, repo)
        try:
            owner, repo = self._repository(owner, repo)
            _require(path, "path")
            scoped = self._scope(owner, repo, path, ignore_docroot, allow_dotfiles, OperationKind.READ)
            if not scoped.valid:
                return self._rejected(scoped)
            data = self.client.get_contents(owner, repo, scoped.path, ref)
        except (ValueError, GitHubAPIError) as e:
            logger.warning("get_file error: %s", e)
            return f"Error: {e}"
        if not isinstance(data, dict) or data.get("type") != "file":
            return f"Error: '{scoped.path}' is not a file; use list_contents for directories"
        return _dumps(
            {
                "path": scoped.path,
                "sha": data.get("sha"),
                "size": data.get("size"),
                "content": decode_content(data),
            }
        )

    def create_or_update_file(
        self,
        path: str,
        content: str,
        message: str,
        owner: str | None = None,
        repo: str | None = None,
        branch: str | None = None,
        ignore_docroot: bool = False,
        allow_dotfiles: bool = False,
    ) -> str:
        """Create or update a file in the repository with a commit message."""
        logger.info("create_or_update_file path=%s owner=%s repo=%s", path, owner, repo)
        try:
            owner, repo = self._repository(owner, repo)
            _require(path, "path")
            _require(message, "message")
            scoped = self._scope(owner, repo, path, ignore_docroot, allow_dotfiles, OperationKind.WRITE)
            if not scoped.valid:
                return self._rejected(scoped)
            sha = self._existing_sha(owner, repo, scoped.path, branch)
            result = self.client.create_or_update_file(
                owner, repo, scoped.path, content, message, sha=sha, branch=branch
            )
        except (ValueError, GitHubAPIError) as e:
            logger.warning("create_or_update_file error: %s", e)
            return f"Error: {e}"
        self._invalidate(owner, repo, scoped.path)
        action = "updated" if sha else "created"
        return _dumps(
            {
                "success": True,
                "message": f"File '{scoped.path}' {action}",
                "path": scoped.path,
                "commit": (result.get("commit") or {}).get("sha"),
            }
        )

    def delete_file(
        self,
        path: str,
        message: str,
        owner: str | None = None,
        repo: str | None = None,
        branch: str | None = None,
        ignore_docroot: bool = False,
        allow_dotfiles: bool = False,
    ) -> str:
        """Delete a file from the repository with a commit message."""
        logger.info("delete_file path=%s owner=%s repo=%s", path, owner, repo)
        try:
            owner, repo = self._repository(owner, repo)
            _require(path, "path")
            _require(message, "message")
            scoped = self._scope(owner, repo, path, ignore_docroot, allow_dotfiles, OperationKind.DELETE)
            if not scoped.valid:
                return self._rejected(scoped)
            sha = self._existing_sha(owner, repo, scoped.path, branch)
            if not sha:
                return f"Error: File not found: {scoped.path}"
            result = self.client.delete_file(owner, repo, scoped.path, message, sha, branch=branch)
        except (ValueError, GitHubAPIError) as e:
            logger.warning("delete_file error: %s", e)
            return f"Error: {e}"
        self._invalidate(owner, repo, scoped.path)
        return _dumps(
            {
                "success": True,
                "message": f"File '{scoped.path}' deleted",
                "path": scoped.path,
                "commit": (result.get("commit") or {}).get("sha"),
            }
        )

    def list_contents(
        self,
        path: str = "",
        owner: str | None = None,
        repo: str | None = None,
        ref: str | None = None,
        ignore_docroot: bool = False,
        allow_dotfiles: bool = False,
    ) -> str:
        """List a directory. An empty path lists the docroot."""
        logger.info("list_contents path=%s owner=%s repo=%s", path, owner, repo)
        try:
            owner, repo = self._repository(owner, repo)
            scoped = self._scope(owner, repo, path, ignore_docroot, allow_dotfiles, OperationKind.LIST)
            if not scoped.valid:
                return self._rejected(scoped)
            data = self.client.get_contents(owner, repo, scoped.path, ref)
        except (ValueError, GitHubAPIError) as e:
            logger.warning("list_contents error: %s", e)
            return f"Error: {e}"
        items = data if isinstance(data, list) else [data]
        entries = [
            {
                "name": item.get("name"),
                "path": item.get("path"),
                "type": item.get("type"),
                "size": item.get("size"),
            }
            for item in items
            if allow_dotfiles or not (item.get("name") or "").startswith(".")
        ]
        return _dumps({"path": scoped.path, "entries": entries})

    def list_commits(
        self,
        path: str | None = None,
        owner: str | None = None,
        repo: str | None = None,
        sha: str | None = None,
        per_page: int = 10,
        ignore_docroot: bool = False,
        allow_dotfiles: bool = False,
    ) -> str:
        """List commit history for a path (the docroot when no path is given)."""
        logger.info("list_commits path=%s owner=%s repo=%s", path, owner, repo)
        try:
            owner, repo = self._repository(owner, repo)
            scoped = self._scope(owner, repo, path, ignore_docroot, allow_dotfiles, OperationKind.LIST)
            if not scoped.valid:
                return self._rejected(scoped)
            commits = self.client.list_commits(
                owner, repo, path=scoped.path or None, sha=sha, per_page=_page_size(per_page)
            )
        except (ValueError, GitHubAPIError) as e:
            logger.warning("list_commits error: %s", e)
            return f"Error: {e}"
        summary = [
            {
                "sha": c.get("sha"),
                "message": (c.get("commit") or {}).get("message"),
                "author": ((c.get("commit") or {}).get("author") or {}).get("name"),
                "date": ((c.get("commit") or {}).get("author") or {}).get("date"),
            }
            for c in commits
        ]
        return _dumps({"path": scoped.path, "commits": summary})

    def search_code(
        self,
        query: str,
        path: str | None = None,
        owner: str | None = None,
        repo: str | None = None,
        per_page: int = 10,
        ignore_docroot: bool = False,
        allow_dotfiles: bool = False,
    ) -> str:
        """Search repository files. Results are limited to the docroot unless ignore_docroot."""
        logger.info("search_code query=%s path=%s owner=%s repo=%s", query, path, owner, repo)
        try:
            owner, repo = self._repository(owner, repo)
            _require(query, "query")
            scoped = self._scope(owner, repo, path, ignore_docroot, allow_dotfiles, OperationKind.SEARCH)
            if not scoped.valid:
                return self._rejected(scoped)
            search_query = f"{query} repo:{owner}/{repo}"
            if scoped.path:
                search_query += f" path:{scoped.path}"
            result = self.client.search_code(search_query, per_page=_page_size(per_page))
        except (ValueError, GitHubAPIError) as e:
            logger.warning("search_code error: %s", e)
            return f"Error: {e}"
        docroot = "" if ignore_docroot else scoped.validation.docroot
        items = [
            {"name": item.get("name"), "path": item.get("path"), "url": item.get("html_url")}
            for item in result.get("items", [])
            if is_path_in_docroot(item.get("path"), docroot)
            and (allow_dotfiles or not has_dot_components(item.get("path")))
        ]
        return _dumps({"query": search_query, "total_count": result.get("total_count", 0), "items": items})

    def get_repository_catalog(
        self,
        owner: str | None = None,
        repo: str | None = None,
        path: str | None = None,
        include_extensions: list[str] | None = None,
        branch: str | None = None,
        ignore_docroot: bool = False,
        allow_dotfiles: bool = False,
    ) -> str:
        """
        List every document under the docroot in one call (default extensions .md, .txt).
        Returned paths are relative to the docroot. Results are cached for 5 minutes.
        """
        logger.info("get_repository_catalog owner=%s repo=%s path=%s", owner, repo, path)
        try:
            owner, repo = self._repository(owner, repo)
            catalog = self.catalog.build_catalog(
                owner,
                repo,
                path=path,
                include_extensions=include_extensions,
                branch=branch,
                ignore_docroot=ignore_docroot,
                allow_dotfiles=allow_dotfiles,
            )
        except (ValueError, CatalogError) as e:
            logger.warning("get_repository_catalog error: %s", e)
            return f"Error: {e}"
        stats = catalog.statistics
        return _dumps(
            {
                "success": True,
                "message": f"Found {stats.total_files} documents across {stats.total_folders} folders",
                "docroot_source": docroot_source_label(catalog.docroot_source),
                "data": catalog.to_dict(),
            }
        )

    # ---- helpers ----

    def _repository(self, owner: str | None, repo: str | None) -> tuple[str, str]:
        owner = owner or self.default_owner
        repo = repo or self.default_repo
        if not owner or not repo:
            raise ValueError(
                "Repository owner and name are required. "
                "Pass owner and repo, or set GH_DEFAULT_OWNER and GH_DEFAULT_REPO."
            )
        return owner, repo

    def _scope(
        self,
        owner: str,
        repo: str,
        path: str | None,
        ignore_docroot: bool,
        allow_dotfiles: bool,
        operation: OperationKind,
    ) -> ScopedPath:
        options = PathOptions(
            ignore_docroot=bool(ignore_docroot),
            allow_dotfiles=bool(allow_dotfiles),
            operation=operation,
        )
        scoped = self.resolver.scope_path(owner, repo, path, options)
        if not scoped.valid:
            logger.warning(
                "%s blocked for %s/%s path=%s: %s (docroot=%r from %s)",
                operation.value,
                owner,
                repo,
                path,
                scoped.validation.reason,
                scoped.validation.docroot,
                scoped.validation.source,
            )
        return scoped

    def _existing_sha(self, owner: str, repo: str, path: str, branch: str | None) -> str | None:
        try:
            existing = self.client.get_contents(owner, repo, path, branch)
        except NotFoundError:
            return None
        if isinstance(existing, dict):
            return existing.get("sha")
        raise ValueError(f"'{path}' is a directory")

    def _invalidate(self, owner: str, repo: str, path: str) -> None:
        self.catalog.clear_cache(owner, repo)
        if path == CONFIG_FILENAME:
            self.resolver.invalidate(owner, repo)

    @staticmethod
    def _rejected(scoped: ScopedPath) -> str:
        return _dumps({"success": False, **scoped.validation.to_dict()})


def _require(value: str | None, name: str) -> None:
    if not value:
        raise ValueError(f"{name} is required")


def _page_size(per_page: int | None) -> int:
    return max(1, min(per_page or 10, 100))


def _dumps(payload: dict) -> str:
    return json.dumps(payload, indent=2)


def create_server(settings: Settings, client: GitHubClient | None = None) -> FastMCP:
    """Build the MCP server and its services from settings."""
    client = client or GitHubClient(settings.token, base_url=settings.api_url, timeout=settings.timeout)
    tools = DocsTools(
        client,
        DocrootResolver(client, settings.default_docroot),
        DocumentCatalogService(client, settings.default_docroot),
        default_owner=settings.default_owner,
        default_repo=settings.default_repo,
    )
    mcp = FastMCP("GitHubDocs", instructions=INSTRUCTIONS)

    mcp.tool(tools.get_file, tags={"files"}, annotations={"readOnlyHint": True})
    mcp.tool(tools.create_or_update_file, tags={"files"}, annotations={"destructiveHint": True})
    mcp.tool(tools.delete_file, tags={"files"}, annotations={"destructiveHint": True})
    mcp.tool(tools.list_contents, tags={"repository"}, annotations={"readOnlyHint": True})
    mcp.tool(tools.list_commits, tags={"repository"}, annotations={"readOnlyHint": True})
    mcp.tool(tools.search_code, tags={"search"}, annotations={"readOnlyHint": True})
    mcp.tool(tools.get_repository_catalog, tags={"discovery"}, annotations={"readOnlyHint": True})

    @mcp.custom_route("/health", methods=["GET"])
    async def health(_request: Request) -> Response:
        """Health check for load balancers and k8s probes."""
        return JSONResponse({"status": "ok"})

    return mcp


_settings = load_settings()

# Logging: level from env (default INFO); stderr keeps stdio transport clean
logging.basicConfig(level=getattr(logging, _settings.log_level, logging.INFO))

mcp = create_server(_settings)


def main() -> None:
    """Entry point for the github-docs-mcp CLI."""
    if _settings.default_owner and _settings.default_repo:
        logger.info("Default repository: %s/%s", _settings.default_owner, _settings.default_repo)
    if _settings.transport == "http":
        mcp.run(transport="http", host=_settings.host, port=_settings.port)
    else:
        mcp.run()


if __name__ == "__main__":
    main()
