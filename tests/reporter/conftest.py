# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Fixtures for the reporter tests."""

from datetime import datetime, timezone

import pytest

from ortolan.model.analyzer_result import AnalyzerResult, AnalyzerRun
from ortolan.model.dependency import PackageReference, Scope
from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue, Severity
from ortolan.model.ort_result import OrtResult, Repository
from ortolan.model.package import Package
from ortolan.model.project import Project
from ortolan.model.remote_artifact import Hash, RemoteArtifact
from ortolan.model.repository_configuration import (
    Excludes,
    IssueResolution,
    PathExclude,
    RepositoryConfiguration,
    Resolutions,
    RuleViolationResolution,
    ScopeExclude,
)
from ortolan.model.rule_violation import EvaluatorRun, LicenseSource, RuleViolation
from ortolan.model.scan_result import (
    CopyrightFinding,
    LicenseFinding,
    Provenance,
    ScannerDetails,
    ScannerRun,
    ScanResult,
    ScanSummary,
    TextLocation,
)

TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

APP = Identifier("NPM", "", "app", "1.0.0")
TOOL = Identifier("NPM", "", "tool", "1.0.0")
SHARED = Identifier("NPM", "", "shared", "1.0.0")
LEAF = Identifier("NPM", "", "leaf", "1.0.0")
DEV = Identifier("NPM", "", "dev", "1.0.0")
TOOL_ONLY = Identifier("NPM", "", "tool-only", "1.0.0")
GHOST = Identifier("NPM", "", "ghost", "1.0.0")
BROKEN = Identifier("NPM", "", "broken/package.json", "")
BROKEN_MESSAGE = "Resolving dependencies for 'broken/package.json' failed with: boom"


def scan_result(summary: ScanSummary) -> ScanResult:
    """Return a scan result of the shared source artifact with ``summary``."""
    return ScanResult(
        provenance=Provenance(source_artifact=RemoteArtifact("https://example.com/src.tgz", Hash.NONE)),
        scanner=ScannerDetails("ScanCode", "32.0.0"),
        summary=summary,
    )


def create_ort_result() -> OrtResult:
    """Create a result with an included and an excluded project.

    The ``app`` project has the included scope ``dependencies`` with ``shared -> leaf`` and the excluded scope
    ``devDependencies`` with ``dev -> shared -> leaf``. The ``tool`` project is excluded by its path.
    """
    leaf_with_issue = PackageReference(
        LEAF, issues=[OrtIssue("NPM", "The package leaf was not installed.", Severity.WARNING, TIME)]
    )
    app = Project(
        id=APP,
        definition_file_path="package.json",
        declared_licenses=frozenset({"MIT"}),
        scopes=[
            Scope("dependencies", [PackageReference(SHARED, dependencies=[leaf_with_issue])]),
            Scope(
                "devDependencies",
                [PackageReference(DEV, dependencies=[PackageReference(SHARED, dependencies=[PackageReference(LEAF)])])],
            ),
        ],
    )
    tool = Project(
        id=TOOL,
        definition_file_path="tools/package.json",
        scopes=[Scope("dependencies", [PackageReference(TOOL_ONLY)])],
    )

    packages = [
        Package(id=SHARED, declared_licenses=frozenset({"MIT", "Apache-2.0"}), description="Shared code"),
        Package(id=LEAF, declared_licenses=frozenset({"MIT"})),
        Package(id=DEV, declared_licenses=frozenset({"BSD-3-Clause"})),
        Package(id=TOOL_ONLY),
    ]
    analyzer_result = AnalyzerResult(
        projects=[app, tool],
        packages=[package.to_curated_package() for package in packages],
        issues={
            APP: [OrtIssue("NPM", "The project has no lockfile.", Severity.WARNING, TIME)],
            BROKEN: [OrtIssue("NPM", BROKEN_MESSAGE, timestamp=TIME)],
        },
    )

    shared_summary = ScanSummary(
        start_time=TIME,
        end_time=TIME,
        file_count=2,
        license_findings=[LicenseFinding("MIT", TextLocation("LICENSE", 1, 20))],
        copyright_findings=[CopyrightFinding("Copyright 2020 Shared Authors", TextLocation("LICENSE", 3, 3))],
        issues=[OrtIssue("ScanCode", "Timeout while scanning src/big.js.", timestamp=TIME)],
    )
    leaf_summary = ScanSummary(
        start_time=TIME,
        end_time=TIME,
        file_count=2,
        license_findings=[LicenseFinding("MIT", TextLocation("index.js", 1, 1))],
        copyright_findings=[CopyrightFinding("Copyright 2020 Shared Authors", TextLocation("index.js", 2, 2))],
    )

    return OrtResult(
        repository=Repository(
            config=RepositoryConfiguration(
                excludes=Excludes(
                    paths=[PathExclude("tools/**", "BUILD_TOOL_OF", "Only used to build.")],
                    scopes=[ScopeExclude("devDependencies", "DEV_DEPENDENCY_OF")],
                ),
                resolutions=Resolutions(
                    issues=[IssueResolution("Timeout while scanning", "SCANNER_ISSUE")],
                    rule_violations=[RuleViolationResolution("ghost", "CANT_FIX_EXCEPTION")],
                ),
            )
        ),
        analyzer=AnalyzerRun(result=analyzer_result, start_time=TIME, end_time=TIME),
        scanner=ScannerRun(results={SHARED: [scan_result(shared_summary)], LEAF: [scan_result(leaf_summary)]}),
        evaluator=EvaluatorRun(
            violations=[
                RuleViolation("NO_APACHE", SHARED, "Apache-2.0", LicenseSource.DECLARED, Severity.ERROR, "Apache-2.0."),
                RuleViolation("UNKNOWN_PACKAGE", GHOST, None, None, Severity.WARNING, "The package ghost is unknown."),
            ]
        ),
        data={"job": "nightly"},
    )


@pytest.fixture(name="ort_result")
def ort_result_fixture() -> OrtResult:
    """Return the result described in ``create_ort_result``."""
    return create_ort_result()
