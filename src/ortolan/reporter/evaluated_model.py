# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the EvaluatedModel and the entities it consists of.

The evaluated model is the outcome of applying the excludes, resolutions and curations of a repository to an
``OrtResult``. Its entities reference each other in cycles, e.g. a package references the paths to it and each
path references the package. The model is therefore serialized as a flat structure: every entity with an
identity is written once into its top-level list with an ``_id`` equal to its index in that list, and all other
occurrences are written as that integer. ``EvaluatedModel.from_dict`` resolves the integers back into objects.
"""

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

import yaml

from ortolan.errors import ModelSerializationError
from ortolan.model.dependency import PackageLinkage
from ortolan.model.identifier import Identifier
from ortolan.model.issue import Severity, parse_timestamp
from ortolan.model.package import PackageCurationResult
from ortolan.model.remote_artifact import RemoteArtifact
from ortolan.model.repository_configuration import IssueResolution, PathExclude, RuleViolationResolution, ScopeExclude
from ortolan.model.rule_violation import LicenseSource
from ortolan.model.scan_result import Provenance, ScannerDetails
from ortolan.model.vcs_info import VcsInfo

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LicenseId:
    """A license identifier."""

    id: str


@dataclass(frozen=True)
class CopyrightStatement:
    """A copyright statement."""

    statement: str


@dataclass(frozen=True)
class EvaluatedScope:
    """The name of a scope."""

    name: str


class EvaluatedOrtIssueType(str, Enum):
    """The step of the run an issue comes from."""

    ANALYZER = "ANALYZER"
    SCANNER = "SCANNER"


class EvaluatedFindingType(str, Enum):
    """The kind of a finding."""

    LICENSE = "LICENSE"
    COPYRIGHT = "COPYRIGHT"


@dataclass(eq=False)
class EvaluatedScanResult:
    """A scan result without its findings, which are stored with the scanned package."""

    provenance: Provenance
    scanner: ScannerDetails
    start_time: datetime
    end_time: datetime
    file_count: int
    package_verification_code: str
    issues: list["EvaluatedOrtIssue"] = field(default_factory=list, repr=False)

    def intern_key(self) -> tuple:
        """Return the values that make two scan results equal. The issues refer back to the result."""
        return (
            self.provenance,
            self.scanner,
            self.start_time,
            self.end_time,
            self.file_count,
            self.package_verification_code,
        )


@dataclass(eq=False)
class EvaluatedFinding:
    """A license or copyright finding of a scan result."""

    type: EvaluatedFindingType
    license: LicenseId | None
    copyright: CopyrightStatement | None
    path: str
    start_line: int
    end_line: int
    scan_result: EvaluatedScanResult


@dataclass(eq=False)
class EvaluatedPackage:  # pylint: disable=too-many-instance-attributes
    """A project or package with everything the evaluation found out about it."""

    id: Identifier
    is_project: bool
    definition_file_path: str = ""
    declared_licenses: list[LicenseId] = field(default_factory=list)
    detected_licenses: list[LicenseId] = field(default_factory=list)
    concluded_license: str | None = None
    description: str = ""
    homepage_url: str = ""
    binary_artifact: RemoteArtifact = RemoteArtifact.EMPTY
    source_artifact: RemoteArtifact = RemoteArtifact.EMPTY
    vcs: VcsInfo = VcsInfo.EMPTY
    vcs_processed: VcsInfo = VcsInfo.EMPTY
    curations: list[PackageCurationResult] = field(default_factory=list)
    paths: list["EvaluatedPackagePath"] = field(default_factory=list)
    levels: set[int] = field(default_factory=set)
    scopes: list[EvaluatedScope] = field(default_factory=list)
    scan_results: list[EvaluatedScanResult] = field(default_factory=list)
    findings: list[EvaluatedFinding] = field(default_factory=list)
    is_excluded: bool = False
    path_excludes: list[PathExclude] = field(default_factory=list)
    scope_excludes: list[ScopeExclude] = field(default_factory=list)
    issues: list["EvaluatedOrtIssue"] = field(default_factory=list)

    @property
    def purl(self) -> str:
        """Return the package URL of the package."""
        return self.id.to_purl()

    def __repr__(self) -> str:
        return f"EvaluatedPackage({self.id.to_coordinates()})"


@dataclass(eq=False)
class EvaluatedPackagePath:
    """A path from a project through one of its scopes to a package."""

    pkg: EvaluatedPackage
    project: EvaluatedPackage
    scope: EvaluatedScope

    #: The packages between the scope and ``pkg``, starting with a direct dependency.
    path: list[EvaluatedPackage] = field(default_factory=list)


@dataclass(eq=False)
class EvaluatedOrtIssue:
    """An issue with references to the package, scan result and path it belongs to."""

    timestamp: datetime
    type: EvaluatedOrtIssueType
    source: str
    message: str
    severity: Severity
    resolutions: list[IssueResolution] = field(default_factory=list)
    pkg: EvaluatedPackage | None = None
    scan_result: EvaluatedScanResult | None = None
    path: EvaluatedPackagePath | None = None


@dataclass(eq=False)
class EvaluatedRuleViolation:
    """A rule violation with a reference to the violating package."""

    rule: str
    pkg: EvaluatedPackage
    license: LicenseId | None
    license_source: LicenseSource | None
    severity: Severity
    message: str
    how_to_fix: str
    resolutions: list[RuleViolationResolution] = field(default_factory=list)


@dataclass(eq=False)
class DependencyTreeNode:
    """A node of a dependency tree. The roots are projects, their children scopes, and below are packages."""

    title: str
    linkage: PackageLinkage | None = None
    pkg: EvaluatedPackage | None = None
    children: list["DependencyTreeNode"] = field(default_factory=list)
    path_excludes: list[PathExclude] = field(default_factory=list)
    scope_excludes: list[ScopeExclude] = field(default_factory=list)
    issues: list[EvaluatedOrtIssue] = field(default_factory=list)


class _Refs:
    """Maps the entities with an identity to their index in the containing list."""

    def __init__(self) -> None:
        self._indexes: dict[int, int] = {}

    def register(self, items: Sequence[Any]) -> None:
        for index, item in enumerate(items):
            self._indexes[id(item)] = index

    def __call__(self, item: Any) -> int:
        try:
            return self._indexes[id(item)]
        except KeyError as error:
            raise ModelSerializationError(f"{item!r} is not contained in the evaluated model.") from error

    def all(self, items: Sequence[Any]) -> list[int]:
        return [self(item) for item in items]

    def optional(self, item: Any) -> int | None:
        return None if item is None else self(item)


def _resolve(items: Sequence[T], index: int | None) -> T | None:
    if index is None:
        return None
    if not 0 <= index < len(items):
        raise ModelSerializationError(f"The reference {index} is out of range.")
    return items[index]


def _resolve_all(items: Sequence[T], indexes: Sequence[int] | None) -> list[T]:
    return [item for item in (_resolve(items, index) for index in indexes or []) if item is not None]


def _with_ids(items: Sequence[T], to_dict: Callable[[T], dict]) -> list[dict]:
    return [{"_id": index, **to_dict(item)} for index, item in enumerate(items)]


@dataclass(eq=False)
class EvaluatedModel:  # pylint: disable=too-many-instance-attributes
    """The evaluated form of an ``OrtResult``, built by ``EvaluatedModelMapper``."""

    path_excludes: list[PathExclude] = field(default_factory=list)
    scope_excludes: list[ScopeExclude] = field(default_factory=list)
    copyrights: list[CopyrightStatement] = field(default_factory=list)
    licenses: list[LicenseId] = field(default_factory=list)
    scopes: list[EvaluatedScope] = field(default_factory=list)
    issue_resolutions: list[IssueResolution] = field(default_factory=list)
    issues: list[EvaluatedOrtIssue] = field(default_factory=list)
    scan_results: list[EvaluatedScanResult] = field(default_factory=list)
    packages: list[EvaluatedPackage] = field(default_factory=list)
    paths: list[EvaluatedPackagePath] = field(default_factory=list)
    dependency_trees: list[DependencyTreeNode] = field(default_factory=list)
    rule_violation_resolutions: list[RuleViolationResolution] = field(default_factory=list)
    rule_violations: list[EvaluatedRuleViolation] = field(default_factory=list)
    statistics: dict = field(default_factory=dict)

    #: The repository configuration as YAML text.
    repository_configuration: str = ""

    custom_data: dict = field(default_factory=dict)

    def get_package(self, pkg_id: Identifier) -> EvaluatedPackage | None:
        """Return the package or project with the given identifier, if any."""
        return next((pkg for pkg in self.packages if pkg.id == pkg_id), None)

    def to_dict(self) -> dict:
        """Return the flat serializable form of this model.

        Raises
        ------
        ModelSerializationError
            If an entity references an entity that is not contained in the top-level lists.
        """
        refs = _Refs()
        for items in (
            self.path_excludes,
            self.scope_excludes,
            self.copyrights,
            self.licenses,
            self.scopes,
            self.issue_resolutions,
            self.issues,
            self.scan_results,
            self.packages,
            self.paths,
            self.rule_violation_resolutions,
            self.rule_violations,
        ):
            refs.register(items)

        def issue_to_dict(issue: EvaluatedOrtIssue) -> dict:
            return {
                "timestamp": issue.timestamp.isoformat(),
                "type": issue.type.value,
                "source": issue.source,
                "message": issue.message,
                "severity": issue.severity.value,
                "resolutions": refs.all(issue.resolutions),
                "pkg": refs.optional(issue.pkg),
                "scan_result": refs.optional(issue.scan_result),
                "path": refs.optional(issue.path),
            }

        def scan_result_to_dict(result: EvaluatedScanResult) -> dict:
            return {
                "provenance": result.provenance.to_dict(),
                "scanner": result.scanner.to_dict(),
                "start_time": result.start_time.isoformat(),
                "end_time": result.end_time.isoformat(),
                "file_count": result.file_count,
                "package_verification_code": result.package_verification_code,
                "issues": refs.all(result.issues),
            }

        def finding_to_dict(finding: EvaluatedFinding) -> dict:
            return {
                "type": finding.type.value,
                "license": refs.optional(finding.license),
                "copyright": refs.optional(finding.copyright),
                "path": finding.path,
                "start_line": finding.start_line,
                "end_line": finding.end_line,
                "scan_result": refs(finding.scan_result),
            }

        def package_to_dict(pkg: EvaluatedPackage) -> dict:
            result: dict[str, Any] = {
                "id": pkg.id.to_coordinates(),
                "is_project": pkg.is_project,
                "definition_file_path": pkg.definition_file_path,
                "purl": pkg.purl,
                "declared_licenses": refs.all(pkg.declared_licenses),
                "detected_licenses": refs.all(pkg.detected_licenses),
                "description": pkg.description,
                "homepage_url": pkg.homepage_url,
                "binary_artifact": pkg.binary_artifact.to_dict(),
                "source_artifact": pkg.source_artifact.to_dict(),
                "vcs": pkg.vcs.to_dict(),
                "vcs_processed": pkg.vcs_processed.to_dict(),
                "curations": [curation.to_dict() for curation in pkg.curations],
                "paths": refs.all(pkg.paths),
                "levels": sorted(pkg.levels),
                "scopes": refs.all(pkg.scopes),
                "scan_results": refs.all(pkg.scan_results),
                "findings": [finding_to_dict(finding) for finding in pkg.findings],
                "is_excluded": pkg.is_excluded,
                "path_excludes": refs.all(pkg.path_excludes),
                "scope_excludes": refs.all(pkg.scope_excludes),
                "issues": refs.all(pkg.issues),
            }
            if pkg.concluded_license is not None:
                result["concluded_license"] = pkg.concluded_license
            return result

        def path_to_dict(path: EvaluatedPackagePath) -> dict:
            return {
                "pkg": refs(path.pkg),
                "project": refs(path.project),
                "scope": refs(path.scope),
                "path": refs.all(path.path),
            }

        def violation_to_dict(violation: EvaluatedRuleViolation) -> dict:
            return {
                "rule": violation.rule,
                "pkg": refs(violation.pkg),
                "license": refs.optional(violation.license),
                "license_source": violation.license_source.value if violation.license_source else None,
                "severity": violation.severity.value,
                "message": violation.message,
                "how_to_fix": violation.how_to_fix,
                "resolutions": refs.all(violation.resolutions),
            }

        def node_to_dict(node: DependencyTreeNode) -> dict:
            result: dict[str, Any] = {"title": node.title}
            if node.linkage is not None:
                result["linkage"] = node.linkage.value
            if node.pkg is not None:
                result["pkg"] = refs(node.pkg)
            result["children"] = [node_to_dict(child) for child in node.children]
            result["path_excludes"] = refs.all(node.path_excludes)
            result["scope_excludes"] = refs.all(node.scope_excludes)
            result["issues"] = refs.all(node.issues)
            return result

        return {
            "path_excludes": _with_ids(self.path_excludes, PathExclude.to_dict),
            "scope_excludes": _with_ids(self.scope_excludes, ScopeExclude.to_dict),
            "copyrights": _with_ids(self.copyrights, lambda item: {"statement": item.statement}),
            "licenses": _with_ids(self.licenses, lambda item: {"id": item.id}),
            "scopes": _with_ids(self.scopes, lambda item: {"name": item.name}),
            "issue_resolutions": _with_ids(self.issue_resolutions, IssueResolution.to_dict),
            "issues": _with_ids(self.issues, issue_to_dict),
            "scan_results": _with_ids(self.scan_results, scan_result_to_dict),
            "packages": _with_ids(self.packages, package_to_dict),
            "paths": _with_ids(self.paths, path_to_dict),
            "dependency_trees": [node_to_dict(node) for node in self.dependency_trees],
            "rule_violation_resolutions": _with_ids(self.rule_violation_resolutions, RuleViolationResolution.to_dict),
            "rule_violations": _with_ids(self.rule_violations, violation_to_dict),
            "statistics": self.statistics,
            "repository_configuration": self.repository_configuration,
            "custom_data": self.custom_data,
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Return the flat form of this model as JSON."""
        return json.dumps(self.to_dict(), indent=indent)

    def to_yaml(self) -> str:
        """Return the flat form of this model as YAML."""
        return str(yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True))

    @classmethod
    def from_dict(cls, data: dict) -> "EvaluatedModel":
        """Create a model from its flat form, resolving the integer references into objects.

        The entries of each top-level list are ordered by their ``_id`` first, so lists that were reordered
        after serialization are still resolved correctly.

        Raises
        ------
        ModelSerializationError
            If the data is malformed or a reference cannot be resolved.
        """
        try:
            return cls._from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as error:
            raise ModelSerializationError(f"The evaluated model is malformed: {error}") from error

    @classmethod
    def _from_dict(cls, data: dict) -> "EvaluatedModel":  # pylint: disable=too-many-locals
        def entries(name: str) -> list[dict]:
            return sorted(data.get(name) or [], key=lambda entry: int(entry["_id"]))

        model = cls(
            path_excludes=[PathExclude.from_dict(entry) for entry in entries("path_excludes")],
            scope_excludes=[ScopeExclude.from_dict(entry) for entry in entries("scope_excludes")],
            copyrights=[CopyrightStatement(entry["statement"]) for entry in entries("copyrights")],
            licenses=[LicenseId(entry["id"]) for entry in entries("licenses")],
            scopes=[EvaluatedScope(entry["name"]) for entry in entries("scopes")],
            issue_resolutions=[IssueResolution.from_dict(entry) for entry in entries("issue_resolutions")],
            rule_violation_resolutions=[
                RuleViolationResolution.from_dict(entry) for entry in entries("rule_violation_resolutions")
            ],
            statistics=data.get("statistics") or {},
            repository_configuration=data.get("repository_configuration") or "",
            custom_data=data.get("custom_data") or {},
        )

        # Scan results and packages are created first. The references back to them are set afterwards.
        scan_result_entries = entries("scan_results")
        model.scan_results = [
            EvaluatedScanResult(
                provenance=Provenance.from_dict(entry.get("provenance")),
                scanner=ScannerDetails.from_dict(entry.get("scanner") or {}),
                start_time=parse_timestamp(entry.get("start_time")),
                end_time=parse_timestamp(entry.get("end_time")),
                file_count=int(entry.get("file_count") or 0),
                package_verification_code=entry.get("package_verification_code") or "",
            )
            for entry in scan_result_entries
        ]

        package_entries = entries("packages")
        for entry in package_entries:
            model.packages.append(
                EvaluatedPackage(
                    id=Identifier.from_coordinates(entry["id"]),
                    is_project=bool(entry.get("is_project")),
                    definition_file_path=entry.get("definition_file_path") or "",
                    declared_licenses=_resolve_all(model.licenses, entry.get("declared_licenses")),
                    detected_licenses=_resolve_all(model.licenses, entry.get("detected_licenses")),
                    concluded_license=entry.get("concluded_license"),
                    description=entry.get("description") or "",
                    homepage_url=entry.get("homepage_url") or "",
                    binary_artifact=RemoteArtifact.from_dict(entry.get("binary_artifact")),
                    source_artifact=RemoteArtifact.from_dict(entry.get("source_artifact")),
                    vcs=VcsInfo.from_dict(entry.get("vcs")),
                    vcs_processed=VcsInfo.from_dict(entry.get("vcs_processed")),
                    curations=[PackageCurationResult.from_dict(item) for item in entry.get("curations") or []],
                    levels=set(entry.get("levels") or []),
                    scopes=_resolve_all(model.scopes, entry.get("scopes")),
                    scan_results=_resolve_all(model.scan_results, entry.get("scan_results")),
                    findings=[
                        EvaluatedFinding(
                            type=EvaluatedFindingType(finding["type"]),
                            license=_resolve(model.licenses, finding.get("license")),
                            copyright=_resolve(model.copyrights, finding.get("copyright")),
                            path=finding.get("path") or "",
                            start_line=int(finding.get("start_line") or 0),
                            end_line=int(finding.get("end_line") or 0),
                            scan_result=model.scan_results[int(finding["scan_result"])],
                        )
                        for finding in entry.get("findings") or []
                    ],
                    is_excluded=bool(entry.get("is_excluded")),
                    path_excludes=_resolve_all(model.path_excludes, entry.get("path_excludes")),
                    scope_excludes=_resolve_all(model.scope_excludes, entry.get("scope_excludes")),
                )
            )

        model.paths = [
            EvaluatedPackagePath(
                pkg=model.packages[int(entry["pkg"])],
                project=model.packages[int(entry["project"])],
                scope=model.scopes[int(entry["scope"])],
                path=_resolve_all(model.packages, entry.get("path")),
            )
            for entry in entries("paths")
        ]

        model.issues = [
            EvaluatedOrtIssue(
                timestamp=parse_timestamp(entry.get("timestamp")),
                type=EvaluatedOrtIssueType(entry["type"]),
                source=entry.get("source") or "",
                message=entry.get("message") or "",
                severity=Severity(entry["severity"]),
                resolutions=_resolve_all(model.issue_resolutions, entry.get("resolutions")),
                pkg=_resolve(model.packages, entry.get("pkg")),
                scan_result=_resolve(model.scan_results, entry.get("scan_result")),
                path=_resolve(model.paths, entry.get("path")),
            )
            for entry in entries("issues")
        ]

        for scan_result, entry in zip(model.scan_results, scan_result_entries):
            scan_result.issues = _resolve_all(model.issues, entry.get("issues"))
        for pkg, entry in zip(model.packages, package_entries):
            pkg.paths = _resolve_all(model.paths, entry.get("paths"))
            pkg.issues = _resolve_all(model.issues, entry.get("issues"))

        model.rule_violations = [
            EvaluatedRuleViolation(
                rule=entry["rule"],
                pkg=model.packages[int(entry["pkg"])],
                license=_resolve(model.licenses, entry.get("license")),
                license_source=LicenseSource(entry["license_source"]) if entry.get("license_source") else None,
                severity=Severity(entry["severity"]),
                message=entry.get("message") or "",
                how_to_fix=entry.get("how_to_fix") or "",
                resolutions=_resolve_all(model.rule_violation_resolutions, entry.get("resolutions")),
            )
            for entry in entries("rule_violations")
        ]

        def node_from_dict(entry: dict) -> DependencyTreeNode:
            return DependencyTreeNode(
                title=entry["title"],
                linkage=PackageLinkage(entry["linkage"]) if entry.get("linkage") else None,
                pkg=_resolve(model.packages, entry.get("pkg")),
                children=[node_from_dict(child) for child in entry.get("children") or []],
                path_excludes=_resolve_all(model.path_excludes, entry.get("path_excludes")),
                scope_excludes=_resolve_all(model.scope_excludes, entry.get("scope_excludes")),
                issues=_resolve_all(model.issues, entry.get("issues")),
            )

        model.dependency_trees = [node_from_dict(entry) for entry in data.get("dependency_trees") or []]
        return model

    @classmethod
    def from_json(cls, text: str) -> "EvaluatedModel":
        """Create a model from its JSON form.

        Raises
        ------
        ModelSerializationError
            If the text is not a valid model.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as error:
            raise ModelSerializationError(f"The evaluated model is not valid JSON: {error}") from error
        if not isinstance(data, dict):
            raise ModelSerializationError("The evaluated model is not a JSON object.")
        return cls.from_dict(data)
