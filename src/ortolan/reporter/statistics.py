# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module calculates the statistics that are attached to the evaluated model."""

import logging
from collections import Counter
from collections.abc import Iterable

from ortolan.model.dependency import Scope
from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue, Severity
from ortolan.model.ort_result import OrtResult
from ortolan.model.rule_violation import RuleViolation
from ortolan.reporter.resolution_provider import DefaultResolutionProvider

logger: logging.Logger = logging.getLogger(__name__)


def count_by_severity(severities: Iterable[Severity]) -> dict[str, int]:
    """Count the severities as errors, warnings and hints.

    Examples
    --------
    >>> count_by_severity([Severity.ERROR, Severity.HINT, Severity.ERROR])
    {'errors': 2, 'warnings': 0, 'hints': 1}
    """
    counts = Counter(severities)
    return {
        "errors": counts[Severity.ERROR],
        "warnings": counts[Severity.WARNING],
        "hints": counts[Severity.HINT],
    }


def get_tree_depth(scope: Scope) -> int:
    """Return the number of levels of the dependency tree of ``scope``. An empty scope has depth 0."""
    return max((depth + 1 for _, depth in scope.walk()), default=0)


class StatisticsCalculator:
    """Calculates the statistics of an ``OrtResult``."""

    def __init__(self, ort_result: OrtResult, resolution_provider: DefaultResolutionProvider) -> None:
        self.ort_result = ort_result
        self.resolution_provider = resolution_provider

    def get_statistics(self) -> dict:
        """Return the statistics as a serializable dictionary.

        Returns
        -------
        dict
            The open issues and rule violations, the repository configuration counts, the dependency tree
            statistics and the license counts.
        """
        return {
            "open_issues": count_by_severity(issue.severity for issue in self.get_open_issues()),
            "open_rule_violations": count_by_severity(
                violation.severity for violation in self.get_open_rule_violations()
            ),
            "repository_configuration": self.get_repository_configuration_statistics(),
            "dependency_tree": self.get_dependency_tree_statistics(),
            "licenses": {
                "declared": self.get_declared_license_counts(),
                "detected": self.get_detected_license_counts(),
            },
        }

    def collect_issues(self) -> dict[Identifier, list[OrtIssue]]:
        """Return the analyzer and scanner issues grouped by the project or package they belong to."""
        result = self.ort_result.get_analyzer_result().collect_issues()
        if self.ort_result.scanner:
            for owner, scan_results in self.ort_result.scanner.results.items():
                for scan_result in scan_results:
                    if scan_result.summary.issues:
                        result.setdefault(owner, []).extend(scan_result.summary.issues)
        return result

    def get_open_issues(self) -> list[OrtIssue]:
        """Return the issues that are neither resolved nor belong to an excluded project or package."""
        excludes = self.ort_result.get_excludes()
        result = []
        for owner, issues in self.collect_issues().items():
            if self.ort_result.is_excluded(owner) or any(exclude.matches(owner.name) for exclude in excludes.paths):
                continue
            result.extend(issue for issue in issues if not self.resolution_provider.get_issue_resolutions_for(issue))
        return result

    def get_open_rule_violations(self) -> list[RuleViolation]:
        """Return the rule violations without a resolution."""
        return [
            violation
            for violation in self.ort_result.get_rule_violations()
            if not self.resolution_provider.get_rule_violation_resolutions_for(violation)
        ]

    def get_repository_configuration_statistics(self) -> dict[str, int]:
        """Return the number of entries of each kind in the repository configuration."""
        config = self.ort_result.repository.config
        return {
            "path_excludes": len(config.excludes.paths),
            "scope_excludes": len(config.excludes.scopes),
            "issue_resolutions": len(config.resolutions.issues),
            "rule_violation_resolutions": len(config.resolutions.rule_violations),
            "package_curations": len(config.curations),
        }

    def get_dependency_tree_statistics(self) -> dict:
        """Return the counts of included and excluded projects, packages and scopes and the tree depths."""
        excludes = self.ort_result.get_excludes()
        projects = self.ort_result.get_projects()

        excluded_projects = 0
        total_depth = 0
        included_depth = 0
        included_scopes: set[str] = set()
        excluded_scopes: set[str] = set()
        for project in projects:
            project_excluded = excludes.is_project_excluded(project)
            excluded_projects += project_excluded
            for scope in project.scopes:
                depth = get_tree_depth(scope)
                total_depth = max(total_depth, depth)
                if project_excluded or excludes.is_scope_excluded(scope):
                    excluded_scopes.add(scope.name)
                else:
                    included_scopes.add(scope.name)
                    included_depth = max(included_depth, depth)

        packages = self.ort_result.get_packages()
        excluded_packages = sum(1 for curated in packages if self.ort_result.is_excluded(curated.pkg.id))
        return {
            "included_projects": len(projects) - excluded_projects,
            "excluded_projects": excluded_projects,
            "included_packages": len(packages) - excluded_packages,
            "excluded_packages": excluded_packages,
            "total_tree_depth": total_depth,
            "included_tree_depth": included_depth,
            "included_scopes": sorted(included_scopes),
            # A scope name counts as excluded only if no project includes it.
            "excluded_scopes": sorted(excluded_scopes - included_scopes),
        }

    def get_declared_license_counts(self) -> dict[str, int]:
        """Return how many projects and packages declare each license."""
        counts: Counter[str] = Counter()
        for project in self.ort_result.get_projects():
            counts.update(project.declared_licenses)
        for curated in self.ort_result.get_packages():
            counts.update(curated.pkg.declared_licenses)
        return dict(sorted(counts.items()))

    def get_detected_license_counts(self) -> dict[str, int]:
        """Return how many projects and packages have findings of each license."""
        counts: Counter[str] = Counter()
        if self.ort_result.scanner:
            for scan_results in self.ort_result.scanner.results.values():
                counts.update(
                    {
                        finding.license
                        for scan_result in scan_results
                        for finding in scan_result.summary.license_findings
                    }
                )
        return dict(sorted(counts.items()))
