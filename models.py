"""
Value objects shared by the docroot resolver, the catalog service and the tools.

All of them are immutable; components hand them out and cache them without
copying.
"""

import json
from dataclasses import asdict, dataclass, field
from enum import Enum


class OperationKind(str, Enum):
    """Caller-facing operation; the value is the verb used in error messages."""

    ACCESS = "access"
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    LIST = "list"
    SEARCH = "search"
    CATALOG = "catalog"


class ConfigStatus(str, Enum):
    """How a repository's .mcp-config.json lookup ended."""

    LOADED = "loaded"
    MISSING = "missing"
    MALFORMED = "malformed"
    UNAVAILABLE = "unavailable"


class DocrootSource(str, Enum):
    """Which priority level produced the effective docroot."""

    IGNORED = "ignored"
    TOOL_PARAMETER = "tool_parameter"
    REPO_CONFIG = "repo_config"
    SERVER_DEFAULT = "server_default"
    REPOSITORY_ROOT = "repository_root"


REASON_OUTSIDE_DOCROOT = "outside_docroot"
REASON_DOTFILE_BLOCKED = "dotfile_blocked"


@dataclass(frozen=True)
class RepoConfig:
    """Per-repository policy. None means unset: defer to the next level."""

    docroot: str | None = None
    include_extensions: tuple[str, ...] | None = None
    status: ConfigStatus = ConfigStatus.MISSING

    @classmethod
    def empty(cls, status: ConfigStatus = ConfigStatus.MISSING) -> "RepoConfig":
        return cls(docroot=None, include_extensions=None, status=status)

    @property
    def is_empty(self) -> bool:
        return self.docroot is None and self.include_extensions is None

    @classmethod
    def from_json(cls, raw: bytes | str) -> "RepoConfig":
        """
        Parse a .mcp-config.json payload: {"mcp": {"docroot", "include_extensions"}}.
        Raises ValueError if the payload is not a JSON object. Fields of the
        wrong type are treated as unset. The docroot is returned as written;
        normalization is up to the caller.
        """
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("config root must be a JSON object")
        section = data.get("mcp")
        if not isinstance(section, dict):
            return cls.empty(ConfigStatus.LOADED)
        docroot = section.get("docroot")
        if not isinstance(docroot, str):
            docroot = None
        extensions = section.get("include_extensions")
        if isinstance(extensions, list) and all(isinstance(e, str) for e in extensions):
            extensions = tuple(extensions)
        else:
            extensions = None
        return cls(docroot=docroot, include_extensions=extensions, status=ConfigStatus.LOADED)


@dataclass(frozen=True)
class PathOptions:
    """Per-call path policy options."""

    ignore_docroot: bool = False
    allow_dotfiles: bool = False
    operation: OperationKind = OperationKind.ACCESS


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None
    reason: str | None = None
    docroot: str | None = None
    source: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DocrootResolution:
    docroot: str
    source: DocrootSource


@dataclass(frozen=True)
class ScopedPath:
    """A caller path mapped onto the repository, with its policy verdict."""

    path: str
    validation: ValidationResult

    @property
    def valid(self) -> bool:
        return self.validation.valid


@dataclass(frozen=True)
class CatalogFile:
    path: str
    size: int


@dataclass(frozen=True)
class CatalogStatistics:
    total_files: int
    total_folders: int
    total_size_bytes: int
    total_size_human: str
    file_types: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Catalog:
    """Flattened, docroot-relative listing of the documents in a repository."""

    repository: str
    branch: str
    docroot: str
    docroot_source: str
    indexed_at: str
    cache_expires_at: str
    statistics: CatalogStatistics
    files: tuple[CatalogFile, ...]

    def to_dict(self) -> dict:
        return asdict(self)
