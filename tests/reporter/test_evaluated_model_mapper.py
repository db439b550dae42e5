# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for building the evaluated model."""

import pytest

from ortolan.model.dependency import PackageReference, Scope
from ortolan.model.identifier import Identifier
from ortolan.model.ort_result import OrtResult
from ortolan.model.project import Project
from ortolan.reporter.evaluated_model import EvaluatedFindingType, EvaluatedModel, EvaluatedPackage
from ortolan.reporter.evaluated_model_mapper import EvaluatedModelMapper, ReporterInput
from ortolan.reporter.resolution_provider import DefaultResolutionProvider

TOOL_ONLY = Identifier("NPM", "", "tool-only", "1.0.0")


@pytest.fixture(name="model")
def build_model(ort_result: OrtResult) -> EvaluatedModel:
    """Build the evaluated model of the reporter test result."""
    return EvaluatedModelMapper(ReporterInput(ort_result, DefaultResolutionProvider.create(ort_result))).build()


def package(model: EvaluatedModel, name: str, version: str = "1.0.0") -> EvaluatedPackage:
    """Return the evaluated NPM package ``name``."""
    pkg = model.get_package(Identifier("NPM", "", name, version))
    assert pkg is not None
    return pkg


def test_packages(model: EvaluatedModel) -> None:
    """Test that projects come first, followed by packages and the owners of unassigned issues."""
    assert [pkg.id.name for pkg in model.packages] == [
        "app",
        "tool",
        "shared",
        "leaf",
        "dev",
        "tool-only",
        "broken/package.json",
        "ghost",
    ]
    assert [pkg.is_project for pkg in model.packages[:3]] == [True, True, False]
    assert package(model, "app").levels == {0}
    assert package(model, "shared").description == "Shared code"


def test_licenses_are_interned(model: EvaluatedModel) -> None:
    """Test that every license exists once and all references share it."""
    assert [license_id.id for license_id in model.licenses] == ["MIT", "Apache-2.0", "BSD-3-Clause"]
    mit = model.licenses[0]
    assert package(model, "app").declared_licenses[0] is mit
    assert package(model, "leaf").declared_licenses[0] is mit
    assert [license_id.id for license_id in package(model, "shared").declared_licenses] == ["Apache-2.0", "MIT"]
    assert package(model, "shared").detected_licenses == [mit]
    assert model.rule_violations[0].license is model.licenses[1]


def test_scan_results(model: EvaluatedModel) -> None:
    """Test that equal scan results are stored once and the findings stay with the packages."""
    assert len(model.scan_results) == 1
    assert package(model, "shared").scan_results[0] is package(model, "leaf").scan_results[0]

    assert [copyright_statement.statement for copyright_statement in model.copyrights] == [
        "Copyright 2020 Shared Authors"
    ]
    findings = package(model, "shared").findings
    assert [(finding.type, finding.path, finding.start_line) for finding in findings] == [
        (EvaluatedFindingType.COPYRIGHT, "LICENSE", 3),
        (EvaluatedFindingType.LICENSE, "LICENSE", 1),
    ]
    assert findings[0].copyright is package(model, "leaf").findings[0].copyright


def test_issues_and_resolutions(model: EvaluatedModel) -> None:
    """Test that issues refer to their package and their resolutions."""
    messages = {issue.message: issue for issue in model.issues}
    assert len(messages) == 4

    scanner_issue = messages["Timeout while scanning src/big.js."]
    assert scanner_issue.pkg is package(model, "shared")
    assert scanner_issue.scan_result is model.scan_results[0]
    assert scanner_issue.resolutions == model.issue_resolutions
    assert model.scan_results[0].issues == [scanner_issue]

    tree_issue = messages["The package leaf was not installed."]
    assert tree_issue.path is not None
    assert [pkg.id.name for pkg in tree_issue.path.path] == ["shared"]
    assert tree_issue in package(model, "leaf").issues


def test_unowned_issue(model: EvaluatedModel) -> None:
    """Test that issues of failed definition files get a package named after the file."""
    broken = package(model, "broken/package.json", "")
    assert broken.definition_file_path == "broken/package.json"
    assert not broken.is_excluded
    assert [issue.message for issue in broken.issues] == [
        "Resolving dependencies for 'broken/package.json' failed with: boom"
    ]


def test_excludes(model: EvaluatedModel) -> None:
    """Test the propagation of path and scope excludes to the packages."""
    assert [exclude.pattern for exclude in model.path_excludes] == ["tools/**"]
    assert [exclude.pattern for exclude in model.scope_excludes] == ["devDependencies"]

    assert not package(model, "app").is_excluded
    assert package(model, "tool").is_excluded
    assert package(model, "tool-only").path_excludes == model.path_excludes
    assert package(model, "tool-only").is_excluded
    assert package(model, "dev").is_excluded
    assert package(model, "dev").scope_excludes == model.scope_excludes

    # Shared and leaf are also reachable from an excluded scope, but the included scope wins.
    for name in ("shared", "leaf"):
        pkg = package(model, name)
        assert not pkg.is_excluded
        assert not pkg.path_excludes
        assert not pkg.scope_excludes


@pytest.mark.parametrize("position", [0, 2], ids=["included-project-first", "included-project-last"])
def test_included_project_clears_exclusion(ort_result: OrtResult, position: int) -> None:
    """Test that a dependency of an excluded project is included if an included project also depends on it."""
    web = Project(
        id=Identifier("NPM", "", "web", "1.0.0"),
        definition_file_path="web/package.json",
        scopes=[Scope("dependencies", [PackageReference(TOOL_ONLY)])],
    )
    ort_result.analyzer.result.projects.insert(position, web)
    model = EvaluatedModelMapper(ReporterInput(ort_result, DefaultResolutionProvider.create(ort_result))).build()

    assert package(model, "tool").is_excluded
    assert not package(model, "web").is_excluded
    tool_only = package(model, "tool-only")
    assert not tool_only.is_excluded
    assert not tool_only.path_excludes


def test_rule_violations(model: EvaluatedModel) -> None:
    """Test that violations of unknown packages create an empty package."""
    first, second = model.rule_violations
    assert first.pkg is package(model, "shared")
    assert not first.resolutions
    assert second.pkg is package(model, "ghost")
    assert second.license is None
    assert second.resolutions == model.rule_violation_resolutions
    assert not package(model, "ghost").is_excluded


def test_dependency_trees(model: EvaluatedModel) -> None:
    """Test the trees, levels and scopes of the packages."""
    app_tree, tool_tree = model.dependency_trees
    assert app_tree.pkg is package(model, "app")
    assert [node.title for node in app_tree.children] == ["dependencies", "devDependencies"]
    assert app_tree.children[1].scope_excludes == model.scope_excludes
    assert [child.title for child in app_tree.children[0].children] == ["NPM::shared:1.0.0"]
    assert tool_tree.path_excludes == model.path_excludes

    assert package(model, "shared").levels == {0, 1}
    assert package(model, "leaf").levels == {1, 2}
    assert [scope.name for scope in package(model, "shared").scopes] == ["dependencies", "devDependencies"]
    assert [scope.name for scope in model.scopes] == ["dependencies", "devDependencies"]


def test_shortest_paths(model: EvaluatedModel) -> None:
    """Test the shortest path of each package in each scope."""
    leaf_paths = [[pkg.id.name for pkg in path.path] for path in package(model, "leaf").paths]
    assert leaf_paths == [["shared"], ["dev", "shared"]]
    assert all(path.project is package(model, "app") for path in package(model, "leaf").paths)
    # One path per package and scope, plus the path of the issue in the tree.
    assert len(model.paths) == 7


def test_statistics_and_metadata(model: EvaluatedModel) -> None:
    """Test the data that is copied into the model."""
    assert model.statistics["open_issues"] == {"errors": 1, "warnings": 2, "hints": 0}
    assert "tools/**" in model.repository_configuration
    assert model.custom_data == {"job": "nightly"}


def test_round_trip(model: EvaluatedModel) -> None:
    """Test that the flat form resolves into an equal model."""
    data = model.to_dict()
    assert data["packages"][0]["_id"] == 0
    assert data["packages"][2]["declared_licenses"] == [1, 0]

    assert EvaluatedModel.from_dict(data).to_dict() == data
    assert EvaluatedModel.from_json(model.to_json()).to_dict() == data


def test_round_trip_of_reordered_lists(model: EvaluatedModel) -> None:
    """Test that references still resolve when the entries of a list are reordered."""
    data = model.to_dict()
    data["licenses"].reverse()
    restored = EvaluatedModel.from_dict(data)
    assert [license_id.id for license_id in restored.licenses] == ["MIT", "Apache-2.0", "BSD-3-Clause"]
