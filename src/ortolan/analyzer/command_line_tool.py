# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the helper to run external command line tools like package managers."""

import logging
import shutil
import subprocess  # nosec B404
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from ortolan.config.defaults import defaults
from ortolan.errors import CommandLineToolError, ConfigurationError, ToolVersionError
from ortolan.util import get_patched_env

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """The outcome of a finished process."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def is_success(self) -> bool:
        """Return True if the process exited with code 0."""
        return self.exit_code == 0


def _identity(version: str) -> str:
    return version


class CommandLineTool:
    """An external command line tool with an optional version requirement.

    The requirement is read from the ``version_requirement`` option in the ``[tools.<name>]`` section of the
    .ini configuration unless it is passed explicitly.
    """

    def __init__(
        self,
        name: str,
        command: str | None = None,
        version_requirement: str | None = None,
        version_arguments: Sequence[str] = ("--version",),
        transform_version: Callable[[str], str] = _identity,
    ) -> None:
        """Initialize instance.

        Parameters
        ----------
        name : str
            The name of the tool, which also names its section in the .ini configuration.
        command : str | None
            The executable. Defaults to ``name``.
        version_requirement : str | None
            A PEP 440 version specifier like ``>=5.7,<7``.
        version_arguments : Sequence[str]
            The arguments that make the tool print its version.
        transform_version : Callable[[str], str]
            Extracts the version from the output of the version command.
        """
        self.name = name
        self._command = command or name
        self._version_requirement = version_requirement
        self.version_arguments = tuple(version_arguments)
        self.transform_version = transform_version

    def command(self) -> str:
        """Return the executable of the tool."""
        return self._command

    def get_version_requirement(self) -> SpecifierSet:
        """Return the version requirement of the tool. An empty set accepts every version.

        Raises
        ------
        ConfigurationError
            If the configured requirement is not a valid version specifier.
        """
        requirement = self._version_requirement
        if requirement is None:
            requirement = defaults.get(f"tools.{self.name}", "version_requirement", fallback="")
        try:
            return SpecifierSet(requirement)
        except InvalidSpecifier as error:
            raise ConfigurationError(f"The version requirement '{requirement}' of {self.name} is invalid.") from error

    def run(
        self,
        working_dir: str | None,
        *args: str,
        check: bool = True,
        env: Mapping[str, str | None] | None = None,
    ) -> ProcessResult:
        """Run the tool with ``args`` in ``working_dir``.

        Parameters
        ----------
        working_dir : str | None
            The working directory of the process. None uses the current directory.
        args : str
            The arguments.
        check : bool
            If True, a non-zero exit code raises an error.
        env : Mapping[str, str | None] | None
            Changes to the environment of the process, see ``get_patched_env``.

        Returns
        -------
        ProcessResult
            The captured output and the exit code.

        Raises
        ------
        CommandLineToolError
            If the tool cannot be started, times out, or exits with a non-zero code while ``check`` is True.
        """
        cmd = [self.command(), *args]
        logger.debug("Running '%s' in %s.", " ".join(cmd), working_dir or ".")
        try:
            completed = subprocess.run(  # nosec B603
                args=cmd,
                capture_output=True,
                cwd=working_dir,
                check=False,
                text=True,
                timeout=defaults.getint("analyzer", "timeout", fallback=1200),
                env=get_patched_env(env or {}),
            )
        except subprocess.TimeoutExpired as error:
            raise CommandLineToolError(f"'{' '.join(cmd)}' timed out after {error.timeout} seconds.") from error
        except OSError as error:
            raise CommandLineToolError(f"Unable to run '{' '.join(cmd)}': {error}") from error

        result = ProcessResult(
            stdout=completed.stdout or "", stderr=completed.stderr or "", exit_code=completed.returncode
        )
        if check and not result.is_success:
            details = result.stderr.strip() or result.stdout.strip()
            raise CommandLineToolError(
                f"'{' '.join(cmd)}' failed with exit code {result.exit_code}: {details}",
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    def get_version(self, working_dir: str | None = None) -> str:
        """Return the version of the tool.

        Raises
        ------
        CommandLineToolError
            If the version cannot be queried.
        """
        result = self.run(working_dir, *self.version_arguments)
        # Some tools print their version to stderr.
        output = result.stdout.strip() or result.stderr.strip()
        return self.transform_version(output).strip()

    def is_in_path(self) -> bool:
        """Return True if the executable of the tool can be found in the ``PATH``."""
        return shutil.which(self.command()) is not None

    def check_version(self, ignore_tool_versions: bool = False, working_dir: str | None = None) -> None:
        """Check that the tool is installed in a version satisfying its requirement.

        Parameters
        ----------
        ignore_tool_versions : bool
            If True, a missing tool or an unsupported version is only logged.
        working_dir : str | None
            The directory to query the version in.

        Raises
        ------
        ToolVersionError
            If the requirement is not satisfied and ``ignore_tool_versions`` is False.
        """
        requirement = self.get_version_requirement()
        if not self.is_in_path():
            message = f"The command '{self.command()}' of {self.name} was not found in the PATH."
        else:
            try:
                actual = self.get_version(working_dir)
            except CommandLineToolError as error:
                message = f"Unable to determine the version of {self.name}: {error}"
            else:
                if self.is_satisfied(requirement, actual):
                    logger.debug("Found %s version %s.", self.name, actual)
                    return
                message = f"{self.name} is required in version {requirement}, but version {actual} was found."

        if ignore_tool_versions:
            logger.warning("%s Still continuing because tool versions are ignored.", message)
            return
        logger.error(message)
        raise ToolVersionError(message)

    @staticmethod
    def is_satisfied(requirement: SpecifierSet, actual: str) -> bool:
        """Return True if the version ``actual`` satisfies ``requirement``.

        Examples
        --------
        >>> CommandLineTool.is_satisfied(SpecifierSet(">=5.7,<7"), "6.14.18")
        True
        >>> CommandLineTool.is_satisfied(SpecifierSet(">=5.7,<7"), "not-a-version")
        False
        """
        if not str(requirement):
            return True
        try:
            return Version(actual) in requirement
        except InvalidVersion:
            return False
