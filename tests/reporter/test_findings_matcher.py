# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the association of copyright findings with license findings."""

from ortolan.model.scan_result import CopyrightFinding, LicenseFinding, TextLocation
from ortolan.reporter.findings_matcher import FindingsMatcher


def license_finding(license_id: str, path: str, line: int) -> LicenseFinding:
    """Return a license finding on a single line."""
    return LicenseFinding(license_id, TextLocation(path, line, line))


def copyright_finding(statement: str, path: str, line: int) -> CopyrightFinding:
    """Return a copyright finding on a single line."""
    return CopyrightFinding(statement, TextLocation(path, line, line))


def test_default_tolerance() -> None:
    """Test that the tolerance is read from the configuration."""
    assert FindingsMatcher().tolerance_lines == 5


def test_single_license_takes_all_copyrights() -> None:
    """Test that all copyrights of a file with one license finding belong to it, however far away they are."""
    result = FindingsMatcher().match(
        [license_finding("MIT", "LICENSE", 1)],
        [copyright_finding("Copyright A", "LICENSE", 200), copyright_finding("Copyright B", "other.c", 1)],
    )
    assert len(result) == 1
    assert [findings.statement for findings in result[0].copyrights] == ["Copyright A"]


def test_copyrights_near_licenses() -> None:
    """Test that copyrights go to the license findings within the tolerance in files with several licenses."""
    result = FindingsMatcher(tolerance_lines=5).match(
        [license_finding("MIT", "a.c", 1), license_finding("Apache-2.0", "a.c", 100)],
        [
            copyright_finding("Copyright Top", "a.c", 6),
            copyright_finding("Copyright Bottom", "a.c", 97),
            copyright_finding("Copyright Middle", "a.c", 50),
        ],
    )
    assert {findings.license: [item.statement for item in findings.copyrights] for findings in result} == {
        "MIT": ["Copyright Top"],
        "Apache-2.0": ["Copyright Bottom"],
    }


def test_findings_are_merged_by_license() -> None:
    """Test that findings of the same license and statement are merged across files."""
    result = FindingsMatcher().match(
        [license_finding("MIT", "a.c", 1), license_finding("MIT", "b.c", 1), license_finding("MIT", "a.c", 1)],
        [copyright_finding("Copyright A", "a.c", 2), copyright_finding("Copyright A", "b.c", 2)],
    )
    assert len(result) == 1
    assert [location.path for location in result[0].locations] == ["a.c", "b.c"]
    (copyrights,) = result[0].copyrights
    assert [location.path for location in copyrights.locations] == ["a.c", "b.c"]


def test_no_license_findings() -> None:
    """Test that copyrights without license findings are not matched."""
    assert not FindingsMatcher().match([], [copyright_finding("Copyright A", "a.c", 1)])
