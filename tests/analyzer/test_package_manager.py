# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the discovery of definition files and the package manager base class."""

import os
from pathlib import Path

import pytest

from ortolan.analyzer.managers import PACKAGE_MANAGERS, managers_by_name
from ortolan.analyzer.managers.bower import Bower
from ortolan.analyzer.managers.bundler import Bundler
from ortolan.analyzer.managers.npm import Npm
from ortolan.analyzer.managers.pip import Pip
from ortolan.analyzer.managers.yarn import Yarn
from ortolan.analyzer.package_manager import AnalyzerConfiguration, find_managed_files
from ortolan.config.defaults import defaults
from ortolan.errors import ConfigurationError, LockfileMissingError

TREE = [
    "package.json",
    "bower.json",
    "Gemfile",
    "requirements.txt",
    "requirements-dev.txt",
    "web/package.json",
    "web/yarn.lock",
    "web/node_modules/left-pad/package.json",
    "tools/setup.py",
    ".git/package.json",
    "docs/README.md",
]


@pytest.fixture(name="analysis_root")
def analysis_root_(tmp_path: Path) -> Path:
    """Create a directory tree with definition files of all package managers."""
    for relative_path in TREE:
        path = tmp_path / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{}", encoding="utf-8")
    return tmp_path


def relative(root: Path, result: dict) -> dict:
    """Return the result of ``find_managed_files`` with paths relative to ``root``, keyed by manager name."""
    return {
        manager.name: [os.path.relpath(path, root).replace(os.sep, "/") for path in paths]
        for manager, paths in result.items()
    }


def test_find_managed_files(analysis_root: Path) -> None:
    """Test that every definition file is claimed by exactly one package manager."""
    result = find_managed_files(str(analysis_root), PACKAGE_MANAGERS)
    assert list(result) == PACKAGE_MANAGERS
    assert relative(analysis_root, result) == {
        "Bower": ["bower.json"],
        "Bundler": ["Gemfile"],
        "NPM": ["package.json"],
        "Yarn": ["web/package.json"],
        "PIP": ["requirements-dev.txt", "requirements.txt", "tools/setup.py"],
    }


def test_find_managed_files_for_some_managers(analysis_root: Path) -> None:
    """Test that only the given package managers claim files."""
    result = find_managed_files(str(analysis_root), [Npm, Bundler])
    assert relative(analysis_root, result) == {"NPM": ["package.json"], "Bundler": ["Gemfile"]}


def test_find_managed_files_without_managers(analysis_root: Path) -> None:
    """Test that no package managers find no files."""
    assert not find_managed_files(str(analysis_root), [])


def test_find_managed_files_in_file(analysis_root: Path) -> None:
    """Test that the analysis root must be a directory."""
    with pytest.raises(ValueError, match="is not a directory"):
        find_managed_files(str(analysis_root / "Gemfile"), PACKAGE_MANAGERS)


def test_managers_by_name() -> None:
    """Test selecting package managers by name."""
    assert managers_by_name(["yarn", "BOWER"]) == [Bower, Yarn]
    with pytest.raises(ValueError, match="gradle"):
        managers_by_name(["Gradle", "PIP"])


def test_analyzer_configuration_load() -> None:
    """Test reading the options from the .ini configuration."""
    defaults.set("analyzer", "max_workers", "0")
    defaults.set("analyzer", "allow_dynamic_versions", "False")
    config = AnalyzerConfiguration.load()
    assert config.max_workers == 1
    assert not config.allow_dynamic_versions
    assert not config.ignore_tool_versions

    defaults.set("analyzer", "ignore_tool_versions", "maybe")
    with pytest.raises(ConfigurationError):
        AnalyzerConfiguration.load()


def test_require_lockfile(tmp_path: Path) -> None:
    """Test that a missing lockfile fails only if dynamic versions are not allowed."""
    definition_file = str(tmp_path / "sub" / "package.json")
    Pip(str(tmp_path), AnalyzerConfiguration()).require_lockfile(definition_file, has_lockfile=False)

    manager = Pip(str(tmp_path), AnalyzerConfiguration(allow_dynamic_versions=False))
    manager.require_lockfile(definition_file, has_lockfile=True)
    with pytest.raises(LockfileMissingError, match="sub/package.json"):
        manager.require_lockfile(definition_file, has_lockfile=False)


def test_relative_path(tmp_path: Path) -> None:
    """Test that paths are made relative to the analysis root."""
    manager = Pip(str(tmp_path), AnalyzerConfiguration())
    assert manager.relative_path(str(tmp_path / "a" / "setup.py")) == "a/setup.py"
    assert manager.relative_path(str(tmp_path)) == ""
