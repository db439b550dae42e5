# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module associates the copyright findings of a scan with its license findings."""

import logging
from dataclasses import dataclass, field

from ortolan.config.defaults import defaults
from ortolan.model.scan_result import CopyrightFinding, LicenseFinding, TextLocation

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class CopyrightFindings:
    """A copyright statement with all locations it was found at."""

    statement: str
    locations: list[TextLocation] = field(default_factory=list)


@dataclass
class LicenseFindings:
    """A license with all locations it was found at and the copyrights associated with it."""

    license: str
    locations: list[TextLocation] = field(default_factory=list)
    copyrights: list[CopyrightFindings] = field(default_factory=list)

    def add_copyright(self, finding: CopyrightFinding) -> None:
        """Associate ``finding`` with this license."""
        for copyright_findings in self.copyrights:
            if copyright_findings.statement == finding.statement:
                if finding.location not in copyright_findings.locations:
                    copyright_findings.locations.append(finding.location)
                return
        self.copyrights.append(CopyrightFindings(finding.statement, [finding.location]))


class FindingsMatcher:
    """Matches copyright findings to the license findings in the same file.

    If a file has a single license finding, all copyrights of the file belong to it. Otherwise a copyright
    belongs to each license finding whose start line is at most ``tolerance_lines`` away from its own.
    Copyrights in files without license findings are not matched.
    """

    def __init__(self, tolerance_lines: int | None = None) -> None:
        if tolerance_lines is None:
            tolerance_lines = defaults.getint("report", "copyright_tolerance_lines", fallback=5)
        self.tolerance_lines = tolerance_lines

    def match(
        self, license_findings: list[LicenseFinding], copyright_findings: list[CopyrightFinding]
    ) -> list[LicenseFindings]:
        """Return the license findings merged by license, with their associated copyrights.

        Parameters
        ----------
        license_findings : list[LicenseFinding]
            The license findings of a scan.
        copyright_findings : list[CopyrightFinding]
            The copyright findings of the same scan.

        Returns
        -------
        list[LicenseFindings]
            One entry per license in the order the licenses were first found.
        """
        copyrights_by_path: dict[str, list[CopyrightFinding]] = {}
        for copyright_finding in copyright_findings:
            copyrights_by_path.setdefault(copyright_finding.location.path, []).append(copyright_finding)

        licenses_by_path: dict[str, list[LicenseFinding]] = {}
        for license_finding in license_findings:
            licenses_by_path.setdefault(license_finding.location.path, []).append(license_finding)

        result: dict[str, LicenseFindings] = {}
        for path, file_licenses in licenses_by_path.items():
            file_copyrights = copyrights_by_path.get(path, [])
            for license_finding in file_licenses:
                merged = result.setdefault(license_finding.license, LicenseFindings(license_finding.license))
                if license_finding.location not in merged.locations:
                    merged.locations.append(license_finding.location)
                for copyright_finding in file_copyrights:
                    if len(file_licenses) == 1 or self.is_nearby(license_finding.location, copyright_finding.location):
                        merged.add_copyright(copyright_finding)

        unmatched = set(copyrights_by_path) - set(licenses_by_path)
        if unmatched:
            logger.debug("Copyrights in %s file(s) without license findings are not matched.", len(unmatched))
        return list(result.values())

    def is_nearby(self, license_location: TextLocation, copyright_location: TextLocation) -> bool:
        """Return True if the start lines of both locations are within the tolerance."""
        return abs(license_location.start_line - copyright_location.start_line) <= self.tolerance_lines
