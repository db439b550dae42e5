# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module maps an OrtResult to the EvaluatedModel."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TypeVar

import yaml

from ortolan.model.dependency import PackageReference
from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue
from ortolan.model.ort_result import OrtResult
from ortolan.model.package import CuratedPackage
from ortolan.model.project import Project
from ortolan.model.repository_configuration import IssueResolution, PathExclude, RuleViolationResolution, ScopeExclude
from ortolan.model.rule_violation import RuleViolation
from ortolan.model.scan_result import ScanResult, ScanSummary
from ortolan.reporter.evaluated_model import (
    CopyrightStatement,
    DependencyTreeNode,
    EvaluatedFinding,
    EvaluatedFindingType,
    EvaluatedModel,
    EvaluatedOrtIssue,
    EvaluatedOrtIssueType,
    EvaluatedPackage,
    EvaluatedPackagePath,
    EvaluatedRuleViolation,
    EvaluatedScanResult,
    EvaluatedScope,
    LicenseId,
)
from ortolan.reporter.findings_matcher import FindingsMatcher
from ortolan.reporter.resolution_provider import DefaultResolutionProvider
from ortolan.reporter.statistics import StatisticsCalculator

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ReporterInput:
    """The data a report is generated from."""

    ort_result: OrtResult
    resolution_provider: DefaultResolutionProvider = field(default_factory=DefaultResolutionProvider)


@dataclass
class _PackageExcludeInfo:
    is_excluded: bool
    path_excludes: list[PathExclude] = field(default_factory=list)
    scope_excludes: list[ScopeExclude] = field(default_factory=list)

    def clear(self) -> None:
        self.is_excluded = False
        self.path_excludes.clear()
        self.scope_excludes.clear()


def add_if_required(items: list[T], value: T) -> T:
    """Return the item of ``items`` that equals ``value``, appending ``value`` first if there is none.

    Examples
    --------
    >>> licenses = [LicenseId("MIT")]
    >>> add_if_required(licenses, LicenseId("MIT")) is licenses[0]
    True
    >>> add_if_required(licenses, LicenseId("Apache-2.0"))
    LicenseId(id='Apache-2.0')
    >>> len(licenses)
    2
    """
    for item in items:
        if item == value:
            return item
    items.append(value)
    return value


def add_all_if_required(items: list[T], values: Iterable[T]) -> list[T]:
    """Intern every value of ``values`` into ``items`` and return the interned values without duplicates."""
    result: list[T] = []
    for value in values:
        actual = add_if_required(items, value)
        if not any(existing is actual for existing in result):
            result.append(actual)
    return result


class EvaluatedModelMapper:  # pylint: disable=too-many-instance-attributes
    """Builds the EvaluatedModel for a ``ReporterInput``.

    Every value that can be referenced from several places is interned: the mapper keeps one list per type and
    reuses the contained instance when an equal value is added again. The position in these lists becomes the
    identity of the value in the serialized model.
    """

    def __init__(self, reporter_input: ReporterInput, findings_matcher: FindingsMatcher | None = None) -> None:
        self.input = reporter_input
        self.findings_matcher = findings_matcher or FindingsMatcher()

        self.packages: dict[Identifier, EvaluatedPackage] = {}
        self.paths: list[EvaluatedPackagePath] = []
        self.dependency_trees: list[DependencyTreeNode] = []
        self.scan_results: list[EvaluatedScanResult] = []
        self.copyrights: list[CopyrightStatement] = []
        self.licenses: list[LicenseId] = []
        self.scopes: list[EvaluatedScope] = []
        self.issues: list[EvaluatedOrtIssue] = []
        self.issue_resolutions: list[IssueResolution] = []
        self.path_excludes: list[PathExclude] = []
        self.scope_excludes: list[ScopeExclude] = []
        self.rule_violations: list[EvaluatedRuleViolation] = []
        self.rule_violation_resolutions: list[RuleViolationResolution] = []

        self._exclude_info: dict[Identifier, _PackageExcludeInfo] = {}

    @property
    def ort_result(self) -> OrtResult:
        """Return the result the model is built from."""
        return self.input.ort_result

    def build(self) -> EvaluatedModel:
        """Build the model. The mapper must not be reused afterwards."""
        projects = self.ort_result.get_projects()
        logger.debug("Building the evaluated model for %d projects.", len(projects))

        self._create_exclude_info()
        for project in projects:
            self._add_project(project)
        for curated in self.ort_result.get_packages():
            self._add_package(curated)
        self._add_unowned_issues()
        for violation in self.ort_result.get_rule_violations():
            self._add_rule_violation(violation)
        for project in projects:
            self._add_dependency_tree(project, self.packages[project.id])
        for project in projects:
            self._add_shortest_paths(project)

        return EvaluatedModel(
            path_excludes=self.path_excludes,
            scope_excludes=self.scope_excludes,
            copyrights=self.copyrights,
            licenses=self.licenses,
            scopes=self.scopes,
            issue_resolutions=self.issue_resolutions,
            issues=self.issues,
            scan_results=self.scan_results,
            packages=list(self.packages.values()),
            paths=self.paths,
            dependency_trees=self.dependency_trees,
            rule_violation_resolutions=self.rule_violation_resolutions,
            rule_violations=self.rule_violations,
            statistics=StatisticsCalculator(self.ort_result, self.input.resolution_provider).get_statistics(),
            repository_configuration=yaml.safe_dump(
                self.ort_result.repository.config.to_dict(), sort_keys=False, allow_unicode=True
            ),
            custom_data=self.ort_result.data,
        )

    def _exclude_info_for(self, pkg_id: Identifier) -> _PackageExcludeInfo:
        return self._exclude_info.setdefault(pkg_id, _PackageExcludeInfo(is_excluded=True))

    def _create_exclude_info(self) -> None:
        """Find out which packages are excluded and by which excludes.

        A package is excluded until a project or scope that is not excluded proves that it is needed. From then
        on it stays included, no matter which other excluded projects or scopes also contain it.
        """
        for project in self.ort_result.get_projects():
            self._exclude_info[project.id] = _PackageExcludeInfo(is_excluded=True)
        for curated in self.ort_result.get_packages():
            self._exclude_info[curated.pkg.id] = _PackageExcludeInfo(is_excluded=True)

        excludes = self.ort_result.get_excludes()
        for project in self.ort_result.get_projects():
            path_excludes = excludes.find_path_excludes(project)
            if not path_excludes:
                info = self._exclude_info[project.id]
                if info.is_excluded:
                    info.clear()
            else:
                for dependency_id in project.collect_dependencies():
                    info = self._exclude_info_for(dependency_id)
                    if info.is_excluded:
                        info.path_excludes.extend(path_excludes)

            for scope in project.scopes:
                scope_excludes = excludes.find_scope_excludes(scope)
                dependencies = scope.collect_dependencies()
                if scope_excludes:
                    for dependency_id in dependencies:
                        info = self._exclude_info_for(dependency_id)
                        if info.is_excluded:
                            info.scope_excludes.extend(scope_excludes)
                elif not path_excludes:
                    for dependency_id in dependencies:
                        self._exclude_info_for(dependency_id).clear()

    def _add_project(self, project: Project) -> None:
        applicable_path_excludes = self.ort_result.get_excludes().find_path_excludes(project)
        evaluated = EvaluatedPackage(
            id=project.id,
            is_project=True,
            definition_file_path=project.definition_file_path,
            declared_licenses=self._add_licenses(project.declared_licenses),
            homepage_url=project.homepage_url,
            vcs=project.vcs,
            vcs_processed=project.vcs_processed,
            levels={0},
            is_excluded=bool(applicable_path_excludes),
            path_excludes=add_all_if_required(self.path_excludes, applicable_path_excludes),
        )
        self.packages[project.id] = evaluated
        self._add_analyzer_issues(project.id, evaluated)
        self._add_scan_results(evaluated)

    def _add_package(self, curated: CuratedPackage) -> None:
        pkg = curated.pkg
        if pkg.id in self.packages:
            logger.debug("The package %s is also a project, keeping the project.", pkg.id.to_coordinates())
            return

        info = self._exclude_info_for(pkg.id)
        evaluated = EvaluatedPackage(
            id=pkg.id,
            is_project=False,
            declared_licenses=self._add_licenses(pkg.declared_licenses),
            concluded_license=pkg.concluded_license,
            description=pkg.description,
            homepage_url=pkg.homepage_url,
            binary_artifact=pkg.binary_artifact,
            source_artifact=pkg.source_artifact,
            vcs=pkg.vcs,
            vcs_processed=pkg.vcs_processed,
            curations=list(curated.curations),
            is_excluded=info.is_excluded,
            path_excludes=add_all_if_required(self.path_excludes, info.path_excludes),
            scope_excludes=add_all_if_required(self.scope_excludes, info.scope_excludes),
        )
        self.packages[pkg.id] = evaluated
        self._add_analyzer_issues(pkg.id, evaluated)
        self._add_scan_results(evaluated)

    def _create_empty_package(self, pkg_id: Identifier) -> EvaluatedPackage:
        info = self._exclude_info.get(pkg_id) or _PackageExcludeInfo(is_excluded=False)
        evaluated = EvaluatedPackage(
            id=pkg_id,
            is_project=False,
            is_excluded=info.is_excluded,
            path_excludes=add_all_if_required(self.path_excludes, info.path_excludes),
            scope_excludes=add_all_if_required(self.scope_excludes, info.scope_excludes),
        )
        self.packages[pkg_id] = evaluated
        return evaluated

    def _get_or_create_package(self, pkg_id: Identifier) -> EvaluatedPackage:
        pkg = self.packages.get(pkg_id)
        if pkg is None:
            pkg = self._create_empty_package(pkg_id)
        return pkg

    def _add_unowned_issues(self) -> None:
        """Keep the issues whose owner is neither a project nor a package, e.g. of definition files that failed.

        The owner of such an issue is named after the definition file, so the path excludes of the repository
        decide whether it is excluded.
        """
        analyzer_issues = self.ort_result.get_analyzer_result().issues
        for owner in analyzer_issues:
            if owner in self.packages:
                continue
            applicable_path_excludes = [
                exclude for exclude in self.ort_result.get_excludes().paths if exclude.matches(owner.name)
            ]
            evaluated = EvaluatedPackage(
                id=owner,
                is_project=False,
                definition_file_path=owner.name,
                is_excluded=bool(applicable_path_excludes),
                path_excludes=add_all_if_required(self.path_excludes, applicable_path_excludes),
            )
            self.packages[owner] = evaluated
            self._add_analyzer_issues(owner, evaluated)

    def _add_licenses(self, names: Iterable[str]) -> list[LicenseId]:
        return add_all_if_required(self.licenses, (LicenseId(name) for name in sorted(names)))

    def _add_analyzer_issues(self, owner: Identifier, pkg: EvaluatedPackage) -> None:
        issues = self.ort_result.get_analyzer_result().issues.get(owner, [])
        pkg.issues.extend(self._add_issues(issues, EvaluatedOrtIssueType.ANALYZER, pkg))

    def _add_issues(
        self,
        issues: Iterable[OrtIssue],
        issue_type: EvaluatedOrtIssueType,
        pkg: EvaluatedPackage,
        scan_result: EvaluatedScanResult | None = None,
        path: EvaluatedPackagePath | None = None,
    ) -> list[EvaluatedOrtIssue]:
        result = []
        for issue in issues:
            resolutions = self.input.resolution_provider.get_issue_resolutions_for(issue)
            result.append(
                EvaluatedOrtIssue(
                    timestamp=issue.timestamp,
                    type=issue_type,
                    source=issue.source,
                    message=issue.message,
                    severity=issue.severity,
                    resolutions=add_all_if_required(self.issue_resolutions, resolutions),
                    pkg=pkg,
                    scan_result=scan_result,
                    path=path,
                )
            )
        self.issues.extend(result)
        return result

    def _add_scan_results(self, pkg: EvaluatedPackage) -> None:
        for result in self.ort_result.get_scan_results_for_id(pkg.id):
            pkg.scan_results.append(self._convert_scan_result(result, pkg))
        for finding in pkg.findings:
            if finding.type == EvaluatedFindingType.LICENSE and finding.license is not None:
                if not any(license_id is finding.license for license_id in pkg.detected_licenses):
                    pkg.detected_licenses.append(finding.license)

    def _convert_scan_result(self, result: ScanResult, pkg: EvaluatedPackage) -> EvaluatedScanResult:
        candidate = EvaluatedScanResult(
            provenance=result.provenance,
            scanner=result.scanner,
            start_time=result.summary.start_time,
            end_time=result.summary.end_time,
            file_count=result.summary.file_count,
            package_verification_code=result.summary.package_verification_code,
        )
        key = candidate.intern_key()
        scan_result = next((existing for existing in self.scan_results if existing.intern_key() == key), None)
        if scan_result is None:
            scan_result = candidate
            self.scan_results.append(scan_result)

        scanner_issues = self._add_issues(result.summary.issues, EvaluatedOrtIssueType.SCANNER, pkg, scan_result)
        scan_result.issues.extend(scanner_issues)
        pkg.issues.extend(scanner_issues)
        self._add_licenses_and_copyrights(result.summary, scan_result, pkg.findings)
        return scan_result

    def _add_licenses_and_copyrights(
        self, summary: ScanSummary, scan_result: EvaluatedScanResult, findings: list[EvaluatedFinding]
    ) -> None:
        for license_findings in self.findings_matcher.match(summary.license_findings, summary.copyright_findings):
            for copyright_findings in license_findings.copyrights:
                statement = add_if_required(self.copyrights, CopyrightStatement(copyright_findings.statement))
                for location in copyright_findings.locations:
                    findings.append(
                        EvaluatedFinding(
                            type=EvaluatedFindingType.COPYRIGHT,
                            license=None,
                            copyright=statement,
                            path=location.path,
                            start_line=location.start_line,
                            end_line=location.end_line,
                            scan_result=scan_result,
                        )
                    )

            license_id = add_if_required(self.licenses, LicenseId(license_findings.license))
            for location in license_findings.locations:
                findings.append(
                    EvaluatedFinding(
                        type=EvaluatedFindingType.LICENSE,
                        license=license_id,
                        copyright=None,
                        path=location.path,
                        start_line=location.start_line,
                        end_line=location.end_line,
                        scan_result=scan_result,
                    )
                )

    def _add_rule_violation(self, violation: RuleViolation) -> None:
        resolutions = self.input.resolution_provider.get_rule_violation_resolutions_for(violation)
        self.rule_violations.append(
            EvaluatedRuleViolation(
                rule=violation.rule,
                pkg=self._get_or_create_package(violation.pkg),
                license=add_if_required(self.licenses, LicenseId(violation.license)) if violation.license else None,
                license_source=violation.license_source,
                severity=violation.severity,
                message=violation.message,
                how_to_fix=violation.how_to_fix,
                resolutions=add_all_if_required(self.rule_violation_resolutions, resolutions),
            )
        )

    def _add_dependency_tree(self, project: Project, project_pkg: EvaluatedPackage) -> None:
        def to_node(
            reference: PackageReference, scope: EvaluatedScope, path: list[EvaluatedPackage]
        ) -> DependencyTreeNode:
            dependency = self._get_or_create_package(reference.id)
            dependency.levels.add(len(path))
            if not any(existing is scope for existing in dependency.scopes):
                dependency.scopes.append(scope)

            issues: list[EvaluatedOrtIssue] = []
            if reference.issues:
                package_path = EvaluatedPackagePath(pkg=dependency, project=project_pkg, scope=scope, path=list(path))
                self.paths.append(package_path)
                issues = self._add_issues(
                    reference.issues, EvaluatedOrtIssueType.ANALYZER, dependency, path=package_path
                )
                dependency.issues.extend(issues)

            child_path = [*path, dependency]
            return DependencyTreeNode(
                title=reference.id.to_coordinates(),
                linkage=reference.linkage,
                pkg=dependency,
                children=[to_node(child, scope, child_path) for child in reference.dependencies],
                issues=issues,
            )

        scope_nodes = []
        for scope in project.scopes:
            evaluated_scope = add_if_required(self.scopes, EvaluatedScope(scope.name))
            scope_nodes.append(
                DependencyTreeNode(
                    title=scope.name,
                    children=[to_node(reference, evaluated_scope, []) for reference in scope.dependencies],
                    scope_excludes=add_all_if_required(
                        self.scope_excludes, self.ort_result.get_excludes().find_scope_excludes(scope)
                    ),
                )
            )

        self.dependency_trees.append(
            DependencyTreeNode(
                title=project.id.to_coordinates(),
                pkg=project_pkg,
                children=scope_nodes,
                path_excludes=list(project_pkg.path_excludes),
            )
        )

    def _add_shortest_paths(self, project: Project) -> None:
        project_pkg = self.packages[project.id]
        for scope in project.scopes:
            evaluated_scope = add_if_required(self.scopes, EvaluatedScope(scope.name))
            for pkg_id, parents in scope.get_shortest_paths().items():
                pkg = self.packages[pkg_id]
                package_path = EvaluatedPackagePath(
                    pkg=pkg,
                    project=project_pkg,
                    scope=evaluated_scope,
                    path=[self.packages[parent_id] for parent_id in parents],
                )
                self.paths.append(package_path)
                pkg.paths.append(package_path)
