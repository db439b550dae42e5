# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the Analyzer which resolves the dependencies of all projects below a directory."""

import logging
import os
import platform
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import NamedTuple

from ortolan import __version__
from ortolan.analyzer.curation_provider import PackageCurationProvider
from ortolan.analyzer.managers import PACKAGE_MANAGERS
from ortolan.analyzer.package_manager import AnalyzerConfiguration, PackageManager, find_managed_files
from ortolan.database.disk_cache import DiskCaches
from ortolan.model.analyzer_result import AnalyzerResult, AnalyzerRun
from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue, create_and_log_issue
from ortolan.model.ort_result import OrtResult, Repository
from ortolan.model.package import CuratedPackage
from ortolan.model.project import ProjectAnalyzerResult
from ortolan.model.repository_configuration import RepositoryConfiguration
from ortolan.vcs.normalizer import normalize_vcs_info
from ortolan.vcs.version_control_system import get_path_info

logger: logging.Logger = logging.getLogger(__name__)


class ResolutionFailure(NamedTuple):
    """The issue of a definition file that could not be resolved."""

    #: The placeholder identifier of the project of the definition file.
    owner: Identifier

    issue: OrtIssue


def walk_order_key(relative_path: str) -> tuple:
    """Return a key that sorts "/"-separated paths in the order of a top-down walk with sorted entries.

    Examples
    --------
    >>> sorted(["b/package.json", "setup.py", "a/Gemfile"], key=walk_order_key)
    ['setup.py', 'a/Gemfile', 'b/package.json']
    """
    parts = relative_path.split("/")
    # Files of a directory are visited before its subdirectories.
    return tuple((1, part) for part in parts[:-1]) + ((0, parts[-1]),)


class Analyzer:
    """Resolves the definition files of all enabled package managers below an analysis root."""

    def __init__(
        self,
        analyzer_config: AnalyzerConfiguration,
        repo_config: RepositoryConfiguration | None = None,
        curation_provider: PackageCurationProvider | None = None,
        caches: DiskCaches | None = None,
    ) -> None:
        """Initialize instance.

        Parameters
        ----------
        analyzer_config : AnalyzerConfiguration
            The options of the run.
        repo_config : RepositoryConfiguration | None
            The configuration of the analyzed repository. Its curations are applied before those of
            ``curation_provider``.
        curation_provider : PackageCurationProvider | None
            Additional package curations.
        caches : DiskCaches | None
            The on-disk caches for registry responses and package metadata.
        """
        self.analyzer_config = analyzer_config
        self.repo_config = repo_config or RepositoryConfiguration()
        self.curation_provider = PackageCurationProvider(
            [*self.repo_config.curations, *(curation_provider.curations if curation_provider else [])]
        )
        self.caches = caches

    def analyze(self, root_dir: str, managers: Sequence[type[PackageManager]] = tuple(PACKAGE_MANAGERS)) -> OrtResult:
        """Resolve the dependencies of all projects below ``root_dir``.

        Parameters
        ----------
        root_dir : str
            The analysis root.
        managers : Sequence[type[PackageManager]]
            The enabled package managers in registration order.

        Returns
        -------
        OrtResult
            The result with the projects in discovery order and the curated packages. Definition files that
            could not be resolved are reported as issues.

        Raises
        ------
        ValueError
            If ``root_dir`` is not a directory.
        ToolVersionError
            If a required tool is missing or unsupported and tool versions are not ignored.
        """
        start_time = datetime.now(tz=timezone.utc)
        root_dir = os.path.abspath(root_dir)
        managed_files = find_managed_files(root_dir, managers)
        if not managed_files:
            logger.info("No definition files found below %s.", root_dir)

        tasks: list[tuple[PackageManager, str]] = []
        for manager_class, definition_files in managed_files.items():
            manager = manager_class(root_dir, self.analyzer_config, self.repo_config, self.caches)
            manager.before_resolution(definition_files)
            tasks.extend((manager, definition_file) for definition_file in definition_files)
        tasks.sort(key=lambda task: walk_order_key(task[0].relative_path(task[1])))

        with ThreadPoolExecutor(max_workers=self.analyzer_config.max_workers) as executor:
            futures = [executor.submit(self.resolve, manager, definition_file) for manager, definition_file in tasks]
            results = [future.result() for future in futures]

        analyzer_result = AnalyzerResult()
        packages: dict[Identifier, CuratedPackage] = {}
        for result in results:
            if isinstance(result, ProjectAnalyzerResult):
                analyzer_result.projects.append(result.project)
                for issue in result.issues:
                    analyzer_result.add_issue(result.project.id, issue)
                for package in result.packages:
                    packages.setdefault(package.pkg.id, package)
            elif isinstance(result, ResolutionFailure):
                analyzer_result.add_issue(result.owner, result.issue)

        analyzer_result.packages = [self.curation_provider.apply(package) for package in packages.values()]

        repository_vcs = get_path_info(root_dir)
        return OrtResult(
            repository=Repository(
                vcs=repository_vcs, vcs_processed=normalize_vcs_info(repository_vcs), config=self.repo_config
            ),
            analyzer=AnalyzerRun(
                result=analyzer_result,
                start_time=start_time,
                end_time=datetime.now(tz=timezone.utc),
                config=self.analyzer_config.to_dict(),
                environment={
                    "ortolan_version": __version__,
                    "python_version": platform.python_version(),
                    "os": platform.system(),
                },
            ),
        )

    @staticmethod
    def resolve(manager: PackageManager, definition_file: str) -> ProjectAnalyzerResult | ResolutionFailure | None:
        """Resolve one definition file.

        Returns
        -------
        ProjectAnalyzerResult | ResolutionFailure | None
            The result, None if the file does not describe a project, or the failure.
        """
        relative_path = manager.relative_path(definition_file)
        logger.info("Resolving %s with %s.", relative_path, manager.name)
        try:
            return manager.resolve_dependencies(definition_file)
        except Exception as error:  # pylint: disable=broad-exception-caught
            # The failure of one definition file must not stop the resolution of the others.
            owner = Identifier(manager.name, "", relative_path, "")
            issue = create_and_log_issue(
                manager.name, f"Resolving dependencies for '{relative_path}' failed with: {error}", log=logger
            )
            return ResolutionFailure(owner, issue)
