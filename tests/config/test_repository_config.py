# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for loading and writing the repository configuration and related files."""

from pathlib import Path

import pytest

from ortolan.config.repository_config import (
    find_repository_configuration,
    get_repository_path_excludes,
    load_package_curations,
    load_path_excludes,
    load_repository_configuration,
    load_resolutions,
    merge_path_excludes,
    write_path_excludes,
    write_repository_configuration,
)
from ortolan.errors import ConfigurationError
from ortolan.model.identifier import Identifier
from ortolan.model.ort_result import OrtResult, Repository
from ortolan.model.repository_configuration import (
    Excludes,
    IssueResolution,
    PathExclude,
    RepositoryConfiguration,
    ScopeExclude,
)
from ortolan.model.vcs_info import VcsInfo

REPO_URL = "https://github.com/owner/project.git"

ORT_YML = """
excludes:
  paths:
  - pattern: "test/**"
    reason: TEST_OF
    comment: Only used for testing.
  scopes:
  - pattern: devDependencies
    reason: DEV_DEPENDENCY_OF
resolutions:
  issues:
  - message: "Package '.*' was not installed"
    reason: CANT_FIX_ISSUE
curations:
  packages:
  - id: "NPM::left-pad:"
    curations:
      comment: Wrong license.
      declared_licenses: [MIT]
      vcs:
        revision: v1.3.0
"""


def write(path: Path, content: str) -> str:
    """Write ``content`` to ``path`` and return the path as a string."""
    path.write_text(content, encoding="utf-8")
    return str(path)


def test_load_repository_configuration(tmp_path: Path) -> None:
    """Test loading a complete repository configuration."""
    config = load_repository_configuration(write(tmp_path / ".ort.yml", ORT_YML))
    assert config.excludes.paths == [PathExclude("test/**", "TEST_OF", "Only used for testing.")]
    assert config.excludes.scopes == [ScopeExclude("devDependencies", "DEV_DEPENDENCY_OF")]
    assert config.resolutions.issues == [IssueResolution("Package '.*' was not installed", "CANT_FIX_ISSUE")]
    assert len(config.curations) == 1
    assert config.curations[0].id == Identifier("NPM", "", "left-pad", "")
    assert config.curations[0].data.declared_licenses == frozenset({"MIT"})
    assert config.curations[0].data.vcs == VcsInfo("", "", "v1.3.0")


def test_load_empty_repository_configuration(tmp_path: Path) -> None:
    """Test that an empty file is an empty configuration."""
    assert load_repository_configuration(write(tmp_path / ".ort.yml", "")) == RepositoryConfiguration()


@pytest.mark.parametrize(
    "content",
    [
        "excludes:\n  paths:\n  - pattern: docs/**\n    reason: NOT_A_REASON\n",
        "excludes:\n  paths:\n  - reason: OTHER\n",
        "unknown_key: 1\n",
        "excludes: [",
        "excludes:\n  scopes:\n  - pattern: 'dev['\n    reason: DEV_DEPENDENCY_OF\n",
    ],
)
def test_invalid_repository_configuration(tmp_path: Path, content: str) -> None:
    """Test that files violating the schema are rejected."""
    with pytest.raises(ConfigurationError):
        load_repository_configuration(write(tmp_path / ".ort.yml", content))


def test_missing_repository_configuration(tmp_path: Path) -> None:
    """Test that an explicitly given file must exist."""
    with pytest.raises(ConfigurationError):
        load_repository_configuration(str(tmp_path / "missing.yml"))


def test_find_repository_configuration(tmp_path: Path) -> None:
    """Test that the configuration in the root directory is used if no file is given."""
    assert find_repository_configuration(str(tmp_path)) == RepositoryConfiguration()
    write(tmp_path / ".ort.yml", ORT_YML)
    assert find_repository_configuration(str(tmp_path)).excludes.scopes[0].pattern == "devDependencies"

    other = write(tmp_path / "other.yml", "excludes:\n  paths:\n  - pattern: docs/**\n    reason: DOCUMENTATION_OF\n")
    assert find_repository_configuration(str(tmp_path), other).excludes.paths[0].pattern == "docs/**"


def test_load_package_curations(tmp_path: Path) -> None:
    """Test loading a standalone package curations file."""
    content = "packages:\n- id: 'PyPI::requests:2.31.0'\n  curations:\n    homepage_url: https://example.org\n"
    curations = load_package_curations(write(tmp_path / "curations.yml", content))
    assert [curation.id.name for curation in curations] == ["requests"]
    assert curations[0].data.homepage_url == "https://example.org"


def test_load_resolutions(tmp_path: Path) -> None:
    """Test loading a standalone resolutions file."""
    content = (
        "issues:\n- message: timeout\n  reason: SCANNER_ISSUE\n"
        "rule_violations:\n- message: GPL\n  reason: CANT_FIX_EXCEPTION\n  comment: Accepted.\n"
    )
    resolutions = load_resolutions(write(tmp_path / "resolutions.yml", content))
    assert [resolution.message for resolution in resolutions.issues] == ["timeout"]
    assert resolutions.rule_violations[0].comment == "Accepted."


def test_write_repository_configuration(tmp_path: Path) -> None:
    """Test that a written configuration can be loaded again."""
    config = load_repository_configuration(write(tmp_path / ".ort.yml", ORT_YML))
    target = tmp_path / "out" / "sorted.yml"
    write_repository_configuration(str(target), config.sort_entries())
    assert load_repository_configuration(str(target)) == config.sort_entries()


def test_get_repository_path_excludes() -> None:
    """Test that the path excludes of a result are keyed by the processed repository URL."""
    excludes = [PathExclude("docs/**", "DOCUMENTATION_OF")]
    result = OrtResult(
        repository=Repository(
            vcs=VcsInfo("Git", "git@github.com:owner/project.git", "main"),
            vcs_processed=VcsInfo("Git", REPO_URL, "main"),
            config=RepositoryConfiguration(excludes=Excludes(paths=excludes)),
        )
    )
    assert get_repository_path_excludes(result) == {REPO_URL: excludes}
    assert get_repository_path_excludes(OrtResult(repository=Repository())) == {}


def test_merge_path_excludes() -> None:
    """Test that merged entries replace entries with the same pattern and new repositories are added."""
    existing = {
        REPO_URL: [PathExclude("test/**", "TEST_OF"), PathExclude("docs/**", "DOCUMENTATION_OF")],
    }
    other = {
        REPO_URL: [PathExclude("docs/**", "OTHER", "Changed.")],
        "https://example.org/a.git": [PathExclude("build/**", "BUILD_TOOL_OF")],
    }

    merged = merge_path_excludes(existing, other)
    assert list(merged) == ["https://example.org/a.git", REPO_URL]
    assert merged[REPO_URL] == [PathExclude("docs/**", "OTHER", "Changed."), PathExclude("test/**", "TEST_OF")]

    only_existing = merge_path_excludes(existing, other, update_only_existing=True)
    assert list(only_existing) == [REPO_URL]
    assert only_existing[REPO_URL][0].reason == "OTHER"


def test_path_excludes_file_round_trip(tmp_path: Path) -> None:
    """Test writing and reading a path excludes file."""
    path = str(tmp_path / "path-excludes.yml")
    assert load_path_excludes(path) == {}

    data = {REPO_URL: [PathExclude("docs/**", "DOCUMENTATION_OF", "Docs.")]}
    write_path_excludes(path, data)
    assert load_path_excludes(path) == data


def test_malformed_path_excludes_file(tmp_path: Path) -> None:
    """Test that a path excludes file with missing fields is rejected."""
    with pytest.raises(ConfigurationError):
        load_path_excludes(write(tmp_path / "path-excludes.yml", f"{REPO_URL}:\n- reason: OTHER\n"))
