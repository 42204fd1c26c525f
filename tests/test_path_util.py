"""Unit tests for path_util."""

import pytest

from models import OperationKind, PathOptions
from path_util import (
    construct_full_path,
    docroot_source_label,
    generate_docroot_error,
    has_dot_components,
    is_path_in_docroot,
    normalize_docroot,
    normalize_path,
    relative_to_docroot,
    should_enforce_docroot,
    validate_path,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, None),
        (".", ""),
        ("/", ""),
        ("./", ""),
        ("", ""),
        ("docs", "docs"),
        ("docs/", "docs"),
        ("path/to/docs/", "path/to/docs"),
    ],
)
def test_normalize_docroot(value, expected):
    assert normalize_docroot(value) == expected


@pytest.mark.parametrize("value", [None, "", ".", "/", "./", "docs", "docs/", "docs//", ".//", "a/b/"])
def test_normalize_docroot_is_idempotent(value):
    once = normalize_docroot(value)
    assert normalize_docroot(once) == once


@pytest.mark.parametrize(
    "value,expected",
    [
        ("./file.md", "file.md"),
        ("/file.md", "file.md"),
        ("dir/", "dir"),
        ("dir/file.md", "dir/file.md"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_path(value, expected):
    assert normalize_path(value) == expected


def test_has_dot_components_detects_dotfiles_and_dot_directories():
    assert has_dot_components(".gitignore")
    assert has_dot_components(".github/workflows/ci.yml")
    assert has_dot_components("docs/.vscode/settings.json")
    assert has_dot_components("docs/../secrets.md")


def test_has_dot_components_allows_interior_dots():
    assert not has_dot_components("version-2.0-guide.md")
    assert not has_dot_components("file.name.with.dots.md")
    assert not has_dot_components("policies/vacation.md")
    assert not has_dot_components("./README.md")


def test_has_dot_components_root_edge_cases():
    assert has_dot_components(".")
    assert not has_dot_components("")
    assert not has_dot_components("/")
    assert not has_dot_components("//")


def test_is_path_in_docroot():
    assert is_path_in_docroot("docs/file.md", "docs")
    assert is_path_in_docroot("docs/sub/file.md", "docs")
    assert is_path_in_docroot("docs", "docs")
    assert is_path_in_docroot("./docs/file.md", "docs/")
    assert not is_path_in_docroot("README.md", "docs")
    assert not is_path_in_docroot("docs2/file.md", "docs")


def test_is_path_in_docroot_unrestricted_and_root_paths():
    assert is_path_in_docroot("any/path.md", "")
    assert is_path_in_docroot("any/path.md", None)
    assert is_path_in_docroot("", "")
    assert not is_path_in_docroot("", "docs")
    assert not is_path_in_docroot("/", "docs")


@pytest.mark.parametrize("docroot", ["docs", "docs/", "a/b", "./guides"])
@pytest.mark.parametrize("path", ["docs/x.md", "a/b", "a/b/c.md", "guides/g.md", "a/bc.md", "README.md"])
def test_is_path_in_docroot_matches_prefix_rule(path, docroot):
    root = normalize_path(docroot)
    expected = path == root or path.startswith(root + "/")
    assert is_path_in_docroot(path, docroot) is expected


def test_should_enforce_docroot():
    assert should_enforce_docroot("docs", False)
    assert not should_enforce_docroot("docs", True)
    assert not should_enforce_docroot("", False)
    assert not should_enforce_docroot(None, False)


def test_validate_path_inside_and_outside():
    inside = validate_path("docs/file.md", "docs", PathOptions(operation=OperationKind.READ))
    assert inside.valid
    assert inside.error is None and inside.reason is None

    outside = validate_path("README.md", "docs", PathOptions(operation=OperationKind.READ))
    assert not outside.valid
    assert outside.reason == "outside_docroot"
    assert "ignore_docroot" in outside.error


def test_validate_path_overrides():
    assert validate_path("README.md", "docs", PathOptions(ignore_docroot=True)).valid
    assert validate_path("any/file.md", "").valid
    assert validate_path(".gitignore", "", PathOptions(allow_dotfiles=True)).valid


def test_validate_path_blocks_dotfiles_by_default():
    result = validate_path("docs/.vscode/settings.json", "")
    assert not result.valid
    assert result.reason == "dotfile_blocked"
    assert "allow_dotfiles" in result.error


@pytest.mark.parametrize("docroot", ["", "docs", ".github", None])
@pytest.mark.parametrize("path", [".gitignore", ".github/ci.yml", "docs/.hidden/a.md", "."])
def test_dotfile_check_precedes_docroot_override(path, docroot):
    result = validate_path(path, docroot, PathOptions(ignore_docroot=True, allow_dotfiles=False))
    assert not result.valid
    assert result.reason == "dotfile_blocked"


def test_both_overrides_together_allow_hidden_file_outside_docroot():
    result = validate_path(".github/ci.yml", "docs", PathOptions(ignore_docroot=True, allow_dotfiles=True))
    assert result.valid


def test_generate_docroot_error_names_path_docroot_and_remedies():
    message = generate_docroot_error("README.md", "docs", OperationKind.READ)
    assert "Cannot read 'README.md'" in message
    assert "'docs'" in message
    assert '"ignore_docroot": true' in message
    assert ".mcp-config.json" in message


@pytest.mark.parametrize(
    "path,docroot,ignore,expected",
    [
        ("policies/vacation.md", "newdocs", False, "newdocs/policies/vacation.md"),
        ("newdocs/policies/vacation.md", "newdocs", False, "newdocs/policies/vacation.md"),
        ("src/code.py", "newdocs", True, "src/code.py"),
        ("README.md", "", False, "README.md"),
        ("guide.md", "docs", False, "docs/guide.md"),
        ("docs", "docs", False, "docs"),
        ("documentation/guide.md", "docs", False, "docs/documentation/guide.md"),
        ("", "docs", False, "docs"),
        ("", "", False, ""),
        ("/guide.md", "docs/", False, "docs/guide.md"),
        ("../README.md", "docs", False, "README.md"),
    ],
)
def test_construct_full_path(path, docroot, ignore, expected):
    assert construct_full_path(path, docroot, ignore) == expected


def test_escape_through_parent_segment_is_outside_docroot():
    full = construct_full_path("sub/../../README.md", "docs")
    result = validate_path(full, "docs", PathOptions(allow_dotfiles=True))
    assert result.reason == "outside_docroot"


def test_relative_to_docroot():
    assert relative_to_docroot("newdocs/guides/b.md", "newdocs") == "guides/b.md"
    assert relative_to_docroot("README.md", "") == "README.md"
    assert relative_to_docroot("newdocs", "newdocs") == ""


def test_docroot_source_label():
    assert docroot_source_label("repo_config") == "repository .mcp-config.json"
    assert docroot_source_label("repository_root") == "repository root (default)"
    assert docroot_source_label("something_else") == "something_else"
