# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the aggregated result of an analyzer run."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue, parse_timestamp
from ortolan.model.package import CuratedPackage
from ortolan.model.project import Project


@dataclass
class AnalyzerResult:
    """The projects and packages found in an analysis root.

    Projects keep the order in which their definition files were discovered. Packages are unique by
    identifier.
    """

    projects: list[Project] = field(default_factory=list)
    packages: list[CuratedPackage] = field(default_factory=list)

    #: Issues that could not be attached to a dependency, keyed by the project or package they belong to.
    issues: dict[Identifier, list[OrtIssue]] = field(default_factory=dict)

    def add_issue(self, owner: Identifier, issue: OrtIssue) -> None:
        """Record an issue for ``owner``."""
        self.issues.setdefault(owner, []).append(issue)

    def collect_issues(self) -> dict[Identifier, list[OrtIssue]]:
        """Return the result-level issues together with the issues attached to dependency tree nodes."""
        result = {owner: list(issues) for owner, issues in self.issues.items()}
        for project in self.projects:
            for owner, issues in project.collect_issues().items():
                result.setdefault(owner, []).extend(issues)
        return result

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "projects": [project.to_dict() for project in self.projects],
            "packages": [package.to_dict() for package in self.packages],
            "issues": {
                owner.to_coordinates(): [issue.to_dict() for issue in issues] for owner, issues in self.issues.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnalyzerResult":
        """Create an object from its serialized form."""
        return cls(
            projects=[Project.from_dict(item) for item in data.get("projects") or []],
            packages=[CuratedPackage.from_dict(item) for item in data.get("packages") or []],
            issues={
                Identifier.from_coordinates(owner): [OrtIssue.from_dict(issue) for issue in issues]
                for owner, issues in (data.get("issues") or {}).items()
            },
        )


@dataclass
class AnalyzerRun:
    """The analyzer result together with the configuration and time of the run."""

    result: AnalyzerResult
    start_time: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    end_time: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    #: The analyzer settings the run used.
    config: dict = field(default_factory=dict)

    #: The versions of the external tools the run used.
    environment: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "environment": self.environment,
            "config": self.config,
            "result": self.result.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnalyzerRun":
        """Create an object from its serialized form."""
        return cls(
            result=AnalyzerResult.from_dict(data.get("result") or {}),
            start_time=parse_timestamp(data.get("start_time")),
            end_time=parse_timestamp(data.get("end_time")),
            config=data.get("config") or {},
            environment=data.get("environment") or {},
        )
