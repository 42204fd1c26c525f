"""
Path policy for repository tools.

Paths are repository-relative POSIX strings. A docroot scopes every tool to a
subtree of the repository; an empty docroot means the repository root (no
restriction). Nothing here performs I/O.
"""

import posixpath

from models import (
    REASON_DOTFILE_BLOCKED,
    REASON_OUTSIDE_DOCROOT,
    DocrootSource,
    OperationKind,
    PathOptions,
    ValidationResult,
)

CONFIG_FILENAME = ".mcp-config.json"

_ROOT_ALIASES = (".", "/", "./")

_SOURCE_LABELS = {
    DocrootSource.TOOL_PARAMETER: "tool parameter",
    DocrootSource.REPO_CONFIG: f"repository {CONFIG_FILENAME}",
    DocrootSource.SERVER_DEFAULT: "server default",
    DocrootSource.REPOSITORY_ROOT: "repository root (default)",
    DocrootSource.IGNORED: "ignored (ignore_docroot)",
}


def normalize_docroot(value: str | None) -> str | None:
    """
    Normalize a configured docroot.
    None stays None (unset); ".", "/" and "./" become "" (repository root);
    trailing slashes are removed. Normalizing twice gives the same result.
    """
    if value is None:
        return None
    if value in _ROOT_ALIASES:
        return ""
    stripped = value.rstrip("/")
    if stripped in ("", "."):
        return ""
    return stripped


def normalize_path(path: str | None) -> str:
    """Strip one leading './' or '/' and one trailing '/'."""
    if not path:
        return ""
    if path.startswith("./"):
        path = path[2:]
    if path.startswith("/"):
        path = path[1:]
    if path.endswith("/"):
        path = path[:-1]
    return path


def has_dot_components(path: str | None) -> bool:
    """
    True if any path segment starts with '.', e.g. '.gitignore' or
    '.github/workflows/ci.yml'. Interior dots ('version-2.0.md') are fine.
    """
    normalized = normalize_path(path)
    if not normalized:
        return False
    return any(segment.startswith(".") for segment in normalized.split("/"))


def is_path_in_docroot(path: str | None, docroot: str | None) -> bool:
    """True if path equals docroot or lies below it. Empty docroot allows all."""
    if not docroot:
        return True
    normalized_path = normalize_path(path)
    normalized_docroot = normalize_path(docroot)
    if not normalized_path:
        return not normalized_docroot
    if normalized_path == normalized_docroot:
        return True
    return normalized_path.startswith(normalized_docroot + "/")


def should_enforce_docroot(docroot: str | None, ignore_flag: bool = False) -> bool:
    if ignore_flag is True:
        return False
    return bool(docroot)


def generate_docroot_error(path: str, docroot: str, operation: OperationKind | str) -> str:
    """Build the remediation message for a path outside the docroot."""
    verb = _verb(operation)
    return (
        f"Cannot {verb} '{path}': Path is outside configured docroot '{docroot}'.\n"
        f"\n"
        f"To {verb} this file, you have two options:\n"
        f"\n"
        f'1. Quick override (one-time): Add "ignore_docroot": true to your tool call\n'
        f"2. Permanent change: Update {CONFIG_FILENAME} to change your workspace:\n"
        f"   {{\n"
        f'     "mcp": {{\n'
        f'       "docroot": "."\n'
        f"     }}\n"
        f"   }}\n"
        f"\n"
        f"Current workspace: '{docroot}'"
    )


def generate_dotfile_error(path: str, operation: OperationKind | str) -> str:
    verb = _verb(operation)
    return (
        f"Cannot {verb} '{path}': Files and folders starting with '.' are hidden by default.\n"
        f"\n"
        f'To {verb} this file, add "allow_dotfiles": true to your tool call. '
        f'If it is also outside the docroot, add "ignore_docroot": true as well.'
    )


def validate_path(
    path: str | None,
    docroot: str | None,
    options: PathOptions | None = None,
) -> ValidationResult:
    """
    Check path against the dot-file policy, then against the docroot.
    The dot-file check does not depend on ignore_docroot: hidden files need
    allow_dotfiles even when the docroot is bypassed.
    """
    options = options or PathOptions()
    if not options.allow_dotfiles and has_dot_components(path):
        return ValidationResult(
            valid=False,
            error=generate_dotfile_error(path or "", options.operation),
            reason=REASON_DOTFILE_BLOCKED,
        )
    if not should_enforce_docroot(docroot, options.ignore_docroot):
        return ValidationResult(valid=True)
    if is_path_in_docroot(path, docroot):
        return ValidationResult(valid=True)
    return ValidationResult(
        valid=False,
        error=generate_docroot_error(path or "", docroot or "", options.operation),
        reason=REASON_OUTSIDE_DOCROOT,
    )


def construct_full_path(path: str | None, docroot: str | None, ignore_docroot: bool = False) -> str:
    """
    Map a docroot-relative path onto the repository.
    Paths already under the docroot are kept, so catalog paths and full
    repository paths are both accepted. '..' segments are collapsed after
    joining, so an escape shows up as a path outside the docroot.
    """
    normalized = normalize_path(path)
    root = normalize_path(docroot)
    if ignore_docroot or not root:
        full = normalized
    elif normalized == root or normalized.startswith(root + "/"):
        full = normalized
    elif not normalized:
        full = root
    else:
        full = f"{root}/{normalized}"
    if not full:
        return ""
    collapsed = posixpath.normpath(full)
    return "" if collapsed == "." else collapsed


def relative_to_docroot(path: str, docroot: str | None) -> str:
    """Strip the docroot prefix from a repository path under it."""
    root = normalize_path(docroot)
    if not root:
        return path
    if path == root:
        return ""
    if path.startswith(root + "/"):
        return path[len(root) + 1:]
    return path


def docroot_source_label(source: DocrootSource | str) -> str:
    try:
        return _SOURCE_LABELS[DocrootSource(source)]
    except ValueError:
        return str(source)


def _verb(operation: OperationKind | str) -> str:
    return operation.value if isinstance(operation, OperationKind) else str(operation)
