# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the pip package manager."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from ortolan.analyzer.command_line_tool import ProcessResult
from ortolan.analyzer.managers.pip import (
    Pip,
    find_release_files,
    get_declared_licenses,
    get_source_artifact,
    is_phony_dependency,
    parse_dependency_tree,
    strip_leading_zeros_from_version,
)
from ortolan.analyzer.package_manager import AnalyzerConfiguration
from ortolan.errors import DefinitionFileError, InvalidHTTPResponseError
from ortolan.model.identifier import Identifier
from ortolan.model.package import Package
from ortolan.model.remote_artifact import Hash, RemoteArtifact

# We need to pass fixture names as arguments to maintain an order.
# pylint: disable=redefined-outer-name

PIPDEPTREE_OUTPUT = [
    {
        "key": "requests",
        "package_name": "requests",
        "installed_version": "2.31.0",
        "required_version": ">=2",
        "dependencies": [
            {"key": "idna", "package_name": "idna", "installed_version": "3.4", "dependencies": []},
            {"key": "urllib3", "package_name": "urllib3", "installed_version": "2.0.4", "dependencies": []},
        ],
    },
    {"key": "pipdeptree", "package_name": "pipdeptree", "installed_version": "2.9.6", "dependencies": []},
    {"key": "setuptools", "package_name": "setuptools", "installed_version": "68.0.0", "dependencies": []},
    {"key": "pkg-resources", "package_name": "pkg-resources", "installed_version": "0.0.0", "dependencies": []},
    {
        "key": "example",
        "package_name": "example",
        "installed_version": "1.0.0",
        "dependencies": [{"key": "idna", "package_name": "idna", "installed_version": "3.4", "dependencies": []}],
    },
]

IDNA_RELEASE = {
    "info": {
        "summary": "Internationalized Domain Names in Applications (IDNA)",
        "home_page": "https://github.com/kjd/idna",
        "license": "UNKNOWN",
        "classifiers": ["License :: OSI Approved :: BSD License", "Programming Language :: Python :: 3"],
    },
    "releases": {
        "3.4": [
            {
                "packagetype": "bdist_wheel",
                "filename": "idna-3.4-py3-none-any.whl",
                "url": "https://files.pythonhosted.org/idna-3.4-py3-none-any.whl",
                "md5_digest": "7cd8c2f8bfc3b6d0b9e5a4c0d1e2f3a4",
            },
            {
                "packagetype": "sdist",
                "filename": "idna-3.4.tar.gz",
                "url": "https://files.pythonhosted.org/idna-3.4.tar.gz",
                "md5_digest": "13ea24e076212b6baae1135a116d1e0e",
            },
        ],
    },
}


@pytest.fixture()
def pip(tmp_path: Path) -> Pip:
    """Return the pip package manager for ``tmp_path``."""
    return Pip(str(tmp_path), AnalyzerConfiguration(registry_concurrency=2))


@pytest.mark.parametrize(
    ("name", "version", "expected"),
    [
        ("pipdeptree", "2.9.6", True),
        ("setuptools", "1.0", True),
        ("pkg-resources", "0.0.0", True),
        ("pkg-resources", "0.1.0", False),
        ("requests", "2.31.0", False),
    ],
)
def test_is_phony_dependency(name: str, version: str, expected: bool) -> None:
    """Test the packages that are dropped from requirements files."""
    assert is_phony_dependency(name, version) == expected


@pytest.mark.parametrize(
    ("version", "expected"),
    [("2018.01.02", "2018.1.2"), ("1.0.0", "1.0.0"), ("0.10", "0.10"), ("1.0rc1", "1.0rc1")],
)
def test_strip_leading_zeros_from_version(version: str, expected: str) -> None:
    """Test the normalization of release names."""
    assert strip_leading_zeros_from_version(version) == expected


def test_get_declared_licenses() -> None:
    """Test that licenses are taken from the license field and the classifiers."""
    info = {"license": "Apache 2.0", "classifiers": ["License :: OSI Approved :: Apache Software License", 3]}
    assert get_declared_licenses(info) == frozenset({"Apache 2.0", "Apache Software License"})
    assert get_declared_licenses({"license": "UNKNOWN"}) == frozenset()


def test_find_release_files() -> None:
    """Test finding the files of a release by its normalized name."""
    release_json = {"releases": {"2018.01.02": [{"url": "a"}, "junk"], "2019.1.1": []}}
    assert find_release_files(release_json, "2018.1.2") == [{"url": "a"}]
    assert find_release_files(release_json, "2020.1.1") is None
    assert find_release_files({"urls": [{"url": "b"}]}, "1.0") == [{"url": "b"}]
    assert find_release_files({}, "1.0") is None


def test_get_source_artifact_prefers_bzip2() -> None:
    """Test that ``.tar.bz2`` source distributions are preferred."""
    files = [
        {"packagetype": "sdist", "filename": "a-1.0.zip", "url": "https://example.com/a-1.0.zip", "md5_digest": "1"},
        {
            "packagetype": "sdist",
            "filename": "a-1.0.tar.bz2",
            "url": "https://example.com/a-1.0.tar.bz2",
            "md5_digest": "13ea24e076212b6baae1135a116d1e0e",
        },
    ]
    assert get_source_artifact(files) == RemoteArtifact(
        "https://example.com/a-1.0.tar.bz2", Hash("13ea24e076212b6baae1135a116d1e0e", "MD5")
    )
    assert get_source_artifact([{"packagetype": "bdist_wheel"}]) == RemoteArtifact.EMPTY


def test_parse_dependency_tree() -> None:
    """Test the references and packages built from the pipdeptree output."""
    packages: dict[Identifier, Package] = {}
    references = parse_dependency_tree(PIPDEPTREE_OUTPUT[:1], packages)

    assert [reference.id.to_coordinates() for reference in references] == ["PyPI::requests:2.31.0"]
    assert [child.id.name for child in references[0].dependencies] == ["idna", "urllib3"]
    assert sorted(pkg_id.name for pkg_id in packages) == ["idna", "requests", "urllib3"]


@pytest.mark.parametrize(
    ("project_name", "is_setup_py", "expected"),
    [
        ("", False, ["requests", "example"]),
        ("example", True, ["idna"]),
        ("unknown", True, []),
    ],
)
def test_get_project_dependency_nodes(project_name: str, is_setup_py: bool, expected: list[str]) -> None:
    """Test selecting the nodes that are dependencies of the project."""
    nodes = Pip.get_project_dependency_nodes(json.dumps(PIPDEPTREE_OUTPUT), project_name, is_setup_py)
    assert [node["package_name"] for node in nodes] == expected


@pytest.mark.parametrize("output", ["Traceback", "{}"])
def test_get_project_dependency_nodes_invalid(output: str) -> None:
    """Test that unusable pipdeptree output fails the definition file."""
    with pytest.raises(DefinitionFileError):
        Pip.get_project_dependency_nodes(output, "", False)


def test_enrich_package(pip: Pip) -> None:
    """Test completing a package with the metadata from PyPI."""
    package = Package.empty(Identifier("PyPI", "", "idna", "3.4"))
    with patch.object(pip.registry, "get_release_json", return_value=IDNA_RELEASE) as get_release_json:
        enriched = pip.enrich_package(package)

    get_release_json.assert_called_once_with("idna", "3.4")
    assert enriched.description == "Internationalized Domain Names in Applications (IDNA)"
    assert enriched.homepage_url == "https://github.com/kjd/idna"
    assert enriched.declared_licenses == frozenset({"BSD License"})
    assert enriched.binary_artifact.url == "https://files.pythonhosted.org/idna-3.4-py3-none-any.whl"
    assert enriched.source_artifact.url == "https://files.pythonhosted.org/idna-3.4.tar.gz"
    assert enriched.vcs_processed.url == "https://github.com/kjd/idna.git"


@pytest.mark.parametrize(
    "answer",
    [{"return_value": None}, {"return_value": {"releases": {}}}, {"side_effect": InvalidHTTPResponseError("503")}],
)
def test_enrich_package_without_metadata(pip: Pip, answer: dict) -> None:
    """Test that a package stays unchanged if PyPI has no usable metadata."""
    package = Package.empty(Identifier("PyPI", "", "private", "1.0"))
    with patch.object(pip.registry, "get_release_json", **answer):
        assert pip.enrich_package(package) is package


def test_project_name_of_requirements_file(pip: Pip, tmp_path: Path) -> None:
    """Test the names of projects defined by requirements files."""
    definition_file = tmp_path / "sub" / "requirements-dev.txt"
    definition_file.parent.mkdir()
    definition_file.write_text("requests>=2\ncolorama; python_version < '3.8'\n", encoding="utf-8")

    assert pip.get_project_name_and_version(str(definition_file), "", "") == ("sub/requirements-dev.txt", "")
    assert pip.get_project_name_and_version(str(definition_file), "example", "1.0.0") == (
        "example-requirements-dev",
        "1.0.0",
    )


def test_project_name_of_setup_py(pip: Pip, tmp_path: Path) -> None:
    """Test that a setup.py needs to name its project."""
    definition_file = str(tmp_path / "setup.py")
    assert pip.get_project_name_and_version(definition_file, "example", "1.0.0") == ("example", "1.0.0")
    with pytest.raises(DefinitionFileError):
        pip.get_project_name_and_version(definition_file, "", "")


def test_resolve_dependencies(pip: Pip, tmp_path: Path) -> None:
    """Test resolving a requirements file with the virtual environment mocked."""
    definition_file = tmp_path / "requirements.txt"
    definition_file.write_text("requests>=2\n", encoding="utf-8")
    tree = ProcessResult(json.dumps(PIPDEPTREE_OUTPUT), "", 0)

    def release_json(name: str, version: str) -> dict | None:
        return IDNA_RELEASE if name == "idna" else None

    with (
        patch.object(pip, "setup_virtualenv") as setup_virtualenv,
        patch.object(pip, "run_in_virtualenv", return_value=tree),
        patch.object(pip.registry, "get_release_json", side_effect=release_json),
    ):
        result = pip.resolve_dependencies(str(definition_file))

    setup_virtualenv.assert_called_once()
    assert result is not None
    assert result.project.id == Identifier("PIP", "", "requirements.txt", "")
    (scope,) = result.project.scopes
    assert scope.name == "install"
    assert [node.id.name for node, depth in scope.walk() if depth == 0] == ["requests", "example"]

    packages = {curated.pkg.id.name: curated.pkg for curated in result.packages}
    assert sorted(packages) == ["example", "idna", "requests", "urllib3"]
    assert packages["idna"].declared_licenses == frozenset({"BSD License"})
    assert packages["requests"].description == ""


def test_resolve_dependencies_failed_tree(pip: Pip, tmp_path: Path) -> None:
    """Test that a failing pipdeptree leaves the project without dependencies."""
    definition_file = tmp_path / "requirements.txt"
    definition_file.write_text("", encoding="utf-8")
    with (
        patch.object(pip, "setup_virtualenv"),
        patch.object(pip, "run_in_virtualenv", return_value=ProcessResult("", "boom", 1)),
    ):
        result = pip.resolve_dependencies(str(definition_file))

    assert result is not None
    assert not result.project.scopes[0].dependencies
    assert not result.packages
