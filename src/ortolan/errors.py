# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains error classes for ortolan."""


class OrtolanError(Exception):
    """The base class for ortolan errors."""


class ConfigurationError(OrtolanError):
    """Happens when there is an error in the configuration (.ini or .yml) files."""


class ToolVersionError(OrtolanError):
    """Happens when a required external tool is missing or its version does not satisfy the requirement."""


class CommandLineToolError(OrtolanError):
    """Happens when an external tool exits with a non-zero code."""

    def __init__(self, message: str, exit_code: int = -1, stdout: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class LockfileMissingError(OrtolanError):
    """Happens when a lockfile is required but absent."""


class DefinitionFileError(OrtolanError):
    """Happens when a definition file cannot be parsed at all."""


class InvalidHTTPResponseError(OrtolanError):
    """Happens when the HTTP response is invalid or unexpected."""


class RateLimitError(InvalidHTTPResponseError):
    """Happens when a package registry rejects a request because of its rate limit."""


class VcsError(OrtolanError):
    """Happens when the version control information of a directory cannot be obtained."""


class ModelSerializationError(OrtolanError):
    """Happens when a serialized model cannot be read back."""
