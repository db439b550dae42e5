# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the Project class and the results of analyzing a definition file."""

from dataclasses import dataclass, field

from ortolan.model.dependency import Scope
from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue
from ortolan.model.package import CuratedPackage
from ortolan.model.vcs_info import VcsInfo


@dataclass
class Project:
    """A project defined by a single definition file."""

    id: Identifier

    #: The path of the definition file relative to the analysis root, using "/" as separator.
    definition_file_path: str
    declared_licenses: frozenset[str] = frozenset()
    vcs: VcsInfo = VcsInfo.EMPTY
    vcs_processed: VcsInfo = VcsInfo.EMPTY
    homepage_url: str = ""
    scopes: list[Scope] = field(default_factory=list)

    def collect_dependencies(self, max_depth: int = -1) -> dict[Identifier, None]:
        """Return the identifiers of the dependencies of all scopes as an insertion-ordered set."""
        result: dict[Identifier, None] = {}
        for scope in self.scopes:
            result.update(scope.collect_dependencies(max_depth))
        return result

    def collect_issues(self) -> dict[Identifier, list[OrtIssue]]:
        """Return the issues attached to any dependency of this project, grouped by identifier."""
        result: dict[Identifier, list[OrtIssue]] = {}
        for scope in self.scopes:
            for root in scope.dependencies:
                for pkg_id, issues in root.collect_issues().items():
                    result.setdefault(pkg_id, []).extend(issues)
        return result

    def get_scope(self, name: str) -> Scope | None:
        """Return the scope with the given name, if any."""
        return next((scope for scope in self.scopes if scope.name == name), None)

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "id": self.id.to_coordinates(),
            "purl": self.id.to_purl(),
            "definition_file_path": self.definition_file_path,
            "declared_licenses": sorted(self.declared_licenses),
            "vcs": self.vcs.to_dict(),
            "vcs_processed": self.vcs_processed.to_dict(),
            "homepage_url": self.homepage_url,
            "scopes": [scope.to_dict() for scope in self.scopes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        """Create an object from its serialized form."""
        return cls(
            id=Identifier.from_coordinates(data["id"]),
            definition_file_path=data.get("definition_file_path") or "",
            declared_licenses=frozenset(data.get("declared_licenses") or []),
            vcs=VcsInfo.from_dict(data.get("vcs")),
            vcs_processed=VcsInfo.from_dict(data.get("vcs_processed")),
            homepage_url=data.get("homepage_url") or "",
            scopes=[Scope.from_dict(scope) for scope in data.get("scopes") or []],
        )


@dataclass
class ProjectAnalyzerResult:
    """The result of resolving a single definition file."""

    project: Project
    packages: list[CuratedPackage] = field(default_factory=list)
    issues: list[OrtIssue] = field(default_factory=list)
