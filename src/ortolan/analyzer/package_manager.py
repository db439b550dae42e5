# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the PackageManager interface implemented by every supported ecosystem."""

import fnmatch
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from ortolan.analyzer.command_line_tool import CommandLineTool
from ortolan.config.defaults import defaults
from ortolan.database.disk_cache import DiskCaches
from ortolan.errors import ConfigurationError, LockfileMissingError
from ortolan.model.project import ProjectAnalyzerResult
from ortolan.model.repository_configuration import RepositoryConfiguration

logger: logging.Logger = logging.getLogger(__name__)

#: Directories holding VCS metadata, which never contain definition files of the analyzed code.
VCS_METADATA_DIRECTORIES = frozenset({".git", ".hg", ".repo", ".svn", "CVS"})


@dataclass(frozen=True)
class AnalyzerConfiguration:
    """The options of an analyzer run."""

    #: If True, a missing tool or a tool with an unsupported version only produces a warning.
    ignore_tool_versions: bool = False

    #: If False, only definition files with a lockfile are resolved.
    allow_dynamic_versions: bool = True

    #: The maximum number of definition files resolved in parallel.
    max_workers: int = 4

    #: The maximum number of concurrent registry requests of one definition file.
    registry_concurrency: int = 8

    @classmethod
    def load(cls) -> "AnalyzerConfiguration":
        """Create the configuration from the ``[analyzer]`` section of the .ini configuration.

        Raises
        ------
        ConfigurationError
            If a value in the section is invalid.
        """
        try:
            return cls(
                ignore_tool_versions=defaults.getboolean("analyzer", "ignore_tool_versions", fallback=False),
                allow_dynamic_versions=defaults.getboolean("analyzer", "allow_dynamic_versions", fallback=True),
                max_workers=max(1, defaults.getint("analyzer", "max_workers", fallback=4)),
                registry_concurrency=max(1, defaults.getint("analyzer", "registry_concurrency", fallback=8)),
            )
        except ValueError as error:
            raise ConfigurationError(f"The [analyzer] section of the .ini configuration is invalid: {error}") from error

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "ignore_tool_versions": self.ignore_tool_versions,
            "allow_dynamic_versions": self.allow_dynamic_versions,
        }


class PackageManager(ABC):
    """The base class of all package managers.

    A package manager claims definition files by their file name and resolves each of them into a project
    with its dependency tree and the metadata of all packages in that tree.
    """

    #: The name of the package manager, also used as the identifier type of its projects.
    name: str = ""

    #: The glob patterns of the file names this package manager claims.
    definition_file_globs: tuple[str, ...] = ()

    def __init__(
        self,
        analysis_root: str,
        analyzer_config: AnalyzerConfiguration,
        repo_config: RepositoryConfiguration | None = None,
        caches: DiskCaches | None = None,
    ) -> None:
        """Initialize instance.

        Parameters
        ----------
        analysis_root : str
            The root directory of the analysis. Definition file paths of projects are relative to it.
        analyzer_config : AnalyzerConfiguration
            The options of the run.
        repo_config : RepositoryConfiguration | None
            The configuration of the analyzed repository.
        caches : DiskCaches | None
            The on-disk caches shared by all package managers, if caching is enabled.
        """
        self.analysis_root = os.path.abspath(analysis_root)
        self.analyzer_config = analyzer_config
        self.repo_config = repo_config or RepositoryConfiguration()
        self.caches = caches

    @classmethod
    def claims(cls, path: str) -> bool:
        """Return True if the file at ``path`` is a definition file of this package manager.

        By default only the file name is matched against ``definition_file_globs``. Package managers sharing a
        file name with others also look at the surrounding files.
        """
        filename = os.path.basename(path)
        return any(fnmatch.fnmatchcase(filename, pattern) for pattern in cls.definition_file_globs)

    @classmethod
    def map_definition_files(cls, definition_files: list[str]) -> list[str]:
        """Select the definition files this package manager resolves from the files it claimed.

        Package managers which share definition files with others override this to keep only their own.
        """
        return definition_files

    def required_tools(self) -> list[CommandLineTool]:
        """Return the external tools the package manager runs."""
        return []

    def before_resolution(self, definition_files: list[str]) -> None:
        """Prepare the resolution of ``definition_files``, e.g. by checking the version of the external tool.

        Raises
        ------
        ToolVersionError
            If a required tool is missing or unsupported and tool versions are not ignored.
        """

    @abstractmethod
    def resolve_dependencies(self, definition_file: str) -> ProjectAnalyzerResult | None:
        """Resolve the dependencies of ``definition_file``.

        Parameters
        ----------
        definition_file : str
            The absolute path to the definition file.

        Returns
        -------
        ProjectAnalyzerResult | None
            The project with its packages, or None if the file does not describe a project. Problems with
            single dependencies are recorded as issues in the result.

        Raises
        ------
        OrtolanError
            If the file cannot be resolved at all, e.g. because the external tool failed.
        """

    def require_lockfile(self, definition_file: str, has_lockfile: bool) -> None:
        """Fail if only lockfiles may be resolved and ``definition_file`` has none.

        Raises
        ------
        LockfileMissingError
            If dynamic versions are not allowed and there is no lockfile.
        """
        if not self.analyzer_config.allow_dynamic_versions and not has_lockfile:
            raise LockfileMissingError(
                f"No lockfile found for {self.relative_path(definition_file)}. Dependency versions are unstable."
            )

    def relative_path(self, path: str) -> str:
        """Return ``path`` relative to the analysis root, with "/" as separator."""
        relative = os.path.relpath(os.path.abspath(path), self.analysis_root)
        return "" if relative == "." else relative.replace(os.sep, "/")


def find_managed_files(
    root_dir: str,
    managers: Sequence[type[PackageManager]],
) -> dict[type[PackageManager], list[str]]:
    """Find the definition files below ``root_dir`` claimed by the given package managers.

    The tree is walked once. Each file is claimed by the first package manager in ``managers`` whose
    patterns match its name. Afterwards each package manager selects its files with ``map_definition_files``.

    Parameters
    ----------
    root_dir : str
        The directory to search.
    managers : Sequence[type[PackageManager]]
        The active package managers in registration order.

    Returns
    -------
    dict[type[PackageManager], list[str]]
        The absolute paths of the definition files per package manager in discovery order. Package managers
        without definition files are not contained.

    Raises
    ------
    ValueError
        If ``root_dir`` is not a directory.
    """
    if not os.path.isdir(root_dir):
        raise ValueError(f"The provided path '{root_dir}' is not a directory.")

    claimed: dict[type[PackageManager], list[str]] = {}
    if not managers:
        return claimed

    for dirpath, dirnames, filenames in os.walk(os.path.abspath(root_dir)):
        # The walk order decides the discovery order, so it must not depend on the file system.
        dirnames[:] = sorted(name for name in dirnames if name not in VCS_METADATA_DIRECTORIES)
        for filename in sorted(filenames):
            path = os.path.join(dirpath, filename)
            manager = next((manager for manager in managers if manager.claims(path)), None)
            if manager:
                claimed.setdefault(manager, []).append(path)

    result: dict[type[PackageManager], list[str]] = {}
    for manager in managers:
        if manager not in claimed:
            continue
        mapped = manager.map_definition_files(claimed[manager])
        if mapped:
            logger.info("%s found %s definition file(s).", manager.name, len(mapped))
            result[manager] = mapped
    return result
