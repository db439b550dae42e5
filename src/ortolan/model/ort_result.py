# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the OrtResult class which collects the outcome of all steps of a run."""

import json
import logging
import os
from dataclasses import dataclass, field

import yaml

from ortolan.errors import ModelSerializationError
from ortolan.model.analyzer_result import AnalyzerResult, AnalyzerRun
from ortolan.model.identifier import Identifier
from ortolan.model.package import CuratedPackage
from ortolan.model.project import Project
from ortolan.model.repository_configuration import Excludes, RepositoryConfiguration
from ortolan.model.rule_violation import EvaluatorRun, RuleViolation
from ortolan.model.scan_result import ScannerRun, ScanResult
from ortolan.model.vcs_info import VcsInfo

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class Repository:
    """The analyzed repository and its configuration."""

    vcs: VcsInfo = VcsInfo.EMPTY
    vcs_processed: VcsInfo = VcsInfo.EMPTY
    config: RepositoryConfiguration = field(default_factory=RepositoryConfiguration)

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "vcs": self.vcs.to_dict(),
            "vcs_processed": self.vcs_processed.to_dict(),
            "config": self.config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Repository":
        """Create an object from its serialized form."""
        data = data or {}
        return cls(
            vcs=VcsInfo.from_dict(data.get("vcs")),
            vcs_processed=VcsInfo.from_dict(data.get("vcs_processed")),
            config=RepositoryConfiguration.from_dict(data.get("config")),
        )


@dataclass
class OrtResult:
    """The results of the analyzer, scanner and evaluator steps for one repository."""

    repository: Repository = field(default_factory=Repository)
    analyzer: AnalyzerRun | None = None
    scanner: ScannerRun | None = None
    evaluator: EvaluatorRun | None = None

    #: Free-form data that is passed through to the reports.
    data: dict = field(default_factory=dict)

    def get_excludes(self) -> Excludes:
        """Return the excludes from the repository configuration."""
        return self.repository.config.excludes

    def get_analyzer_result(self) -> AnalyzerResult:
        """Return the analyzer result, which is empty if the analyzer did not run."""
        return self.analyzer.result if self.analyzer else AnalyzerResult()

    def get_projects(self) -> list[Project]:
        """Return the projects in discovery order."""
        return self.get_analyzer_result().projects

    def get_packages(self) -> list[CuratedPackage]:
        """Return the curated packages."""
        return self.get_analyzer_result().packages

    def get_project(self, project_id: Identifier) -> Project | None:
        """Return the project with the given identifier, if any."""
        return next((project for project in self.get_projects() if project.id == project_id), None)

    def get_package(self, pkg_id: Identifier) -> CuratedPackage | None:
        """Return the curated package with the given identifier, if any."""
        return next((curated for curated in self.get_packages() if curated.pkg.id == pkg_id), None)

    def get_scan_results_for_id(self, owner: Identifier) -> list[ScanResult]:
        """Return the scan results for a project or package."""
        if not self.scanner:
            return []
        return self.scanner.results.get(owner, [])

    def get_rule_violations(self) -> list[RuleViolation]:
        """Return the rule violations found by the evaluator."""
        return self.evaluator.violations if self.evaluator else []

    def is_excluded(self, owner: Identifier) -> bool:
        """Return True if the project or package is excluded.

        A project is excluded if a path exclude matches its definition file. A package is excluded if
        every scope that contains it is excluded, either by a scope exclude or because its project is
        excluded. A package that is not part of any scope is not excluded.
        """
        excludes = self.get_excludes()
        project = self.get_project(owner)
        if project is not None:
            return excludes.is_project_excluded(project)

        found = False
        for project in self.get_projects():
            project_excluded = excludes.is_project_excluded(project)
            for scope in project.scopes:
                if owner not in scope.collect_dependencies():
                    continue
                found = True
                if not project_excluded and not excludes.is_scope_excluded(scope):
                    return False
        return found

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "repository": self.repository.to_dict(),
            "analyzer": self.analyzer.to_dict() if self.analyzer else None,
            "scanner": self.scanner.to_dict() if self.scanner else None,
            "evaluator": self.evaluator.to_dict() if self.evaluator else None,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrtResult":
        """Create an object from its serialized form."""
        return cls(
            repository=Repository.from_dict(data.get("repository")),
            analyzer=AnalyzerRun.from_dict(data["analyzer"]) if data.get("analyzer") else None,
            scanner=ScannerRun.from_dict(data["scanner"]) if data.get("scanner") else None,
            evaluator=EvaluatorRun.from_dict(data["evaluator"]) if data.get("evaluator") else None,
            data=data.get("data") or {},
        )

    @classmethod
    def load(cls, path: str) -> "OrtResult":
        """Read a result from a JSON or YAML file, chosen by the file extension.

        Parameters
        ----------
        path : str
            The path to the result file.

        Returns
        -------
        OrtResult
            The loaded result.

        Raises
        ------
        ModelSerializationError
            If the file cannot be read or does not contain a result.
        """
        try:
            with open(path, encoding="utf-8") as file:
                if path.endswith(".json"):
                    content = json.load(file)
                else:
                    content = yaml.safe_load(file)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as error:
            raise ModelSerializationError(f"Cannot read the result file {path}: {error}") from error

        if not isinstance(content, dict):
            raise ModelSerializationError(f"The file {path} does not contain a result.")

        try:
            return cls.from_dict(content)
        except (KeyError, TypeError, ValueError) as error:
            raise ModelSerializationError(f"The result in {path} is malformed: {error}") from error

    def save(self, path: str) -> None:
        """Write this result to a JSON or YAML file, chosen by the file extension.

        Raises
        ------
        ModelSerializationError
            If the file cannot be written.
        """
        try:
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
            with open(path, "w", encoding="utf-8") as file:
                if path.endswith(".json"):
                    json.dump(self.to_dict(), file, indent=2)
                else:
                    yaml.safe_dump(self.to_dict(), file, sort_keys=False, allow_unicode=True)
        except OSError as error:
            raise ModelSerializationError(f"Cannot write the result file {path}: {error}") from error
        logger.info("Wrote the result to %s.", path)
