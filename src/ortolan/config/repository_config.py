# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module loads the repository configuration and the standalone curation and resolution files."""

import logging
import os
import re

import yaml

from ortolan.errors import ConfigurationError
from ortolan.model.ort_result import OrtResult
from ortolan.model.package import PackageCuration
from ortolan.model.repository_configuration import PathExclude, RepositoryConfiguration, Resolutions
from ortolan.parsers.yaml.loader import YamlLoader

logger: logging.Logger = logging.getLogger(__name__)

#: The name of the repository configuration file in the root of an analyzed repository.
REPOSITORY_CONFIGURATION_FILENAME = ".ort.yml"


def _load_validated(path: str, schema_name: str) -> dict:
    content = YamlLoader.load(path, YamlLoader.load_schema(schema_name))
    if content is None:
        raise ConfigurationError(f"The file {path} is not a valid {schema_name.replace('_', ' ')} file.")
    return content


def load_repository_configuration(path: str) -> RepositoryConfiguration:
    """Load a repository configuration file.

    Parameters
    ----------
    path : str
        The path to the YAML file.

    Returns
    -------
    RepositoryConfiguration
        The loaded configuration.

    Raises
    ------
    ConfigurationError
        If the file cannot be read or violates the schema.
    """
    try:
        config = RepositoryConfiguration.from_dict(_load_validated(path, "repository_configuration"))
    except (KeyError, TypeError, ValueError) as error:
        raise ConfigurationError(f"The repository configuration in {path} is malformed: {error}") from error

    for exclude in config.excludes.scopes:
        try:
            re.compile(exclude.pattern)
        except re.error as error:
            raise ConfigurationError(
                f"The scope exclude '{exclude.pattern}' in {path} is not a valid regular expression: {error}"
            ) from error
    return config


def find_repository_configuration(root_dir: str, path: str | None = None) -> RepositoryConfiguration:
    """Return the configuration at ``path``, else the one in ``root_dir``, else an empty configuration.

    Raises
    ------
    ConfigurationError
        If a configuration file exists but cannot be loaded.
    """
    if path:
        return load_repository_configuration(path)
    default_path = os.path.join(root_dir, REPOSITORY_CONFIGURATION_FILENAME)
    if os.path.isfile(default_path):
        logger.info("Using the repository configuration %s.", default_path)
        return load_repository_configuration(default_path)
    return RepositoryConfiguration()


def load_package_curations(path: str) -> list[PackageCuration]:
    """Load a standalone package curations file with a ``packages`` list.

    Raises
    ------
    ConfigurationError
        If the file cannot be read or violates the schema.
    """
    try:
        return [PackageCuration.from_dict(item) for item in _load_validated(path, "package_curations")["packages"]]
    except (KeyError, TypeError, ValueError) as error:
        raise ConfigurationError(f"The package curations in {path} are malformed: {error}") from error


def load_resolutions(path: str) -> Resolutions:
    """Load a standalone resolutions file with ``issues`` and ``rule_violations`` lists.

    Raises
    ------
    ConfigurationError
        If the file cannot be read or violates the schema.
    """
    try:
        return Resolutions.from_dict(_load_validated(path, "resolutions"))
    except (KeyError, TypeError, ValueError) as error:
        raise ConfigurationError(f"The resolutions in {path} are malformed: {error}") from error


def write_yaml(path: str, content: dict) -> None:
    """Write ``content`` as YAML to ``path``, creating the parent directories.

    Raises
    ------
    ConfigurationError
        If the file cannot be written.
    """
    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "w", encoding="utf-8") as file:
            yaml.safe_dump(content, file, sort_keys=False, allow_unicode=True)
    except OSError as error:
        raise ConfigurationError(f"Cannot write {path}: {error}") from error


def write_repository_configuration(path: str, config: RepositoryConfiguration) -> None:
    """Write a repository configuration file.

    Raises
    ------
    ConfigurationError
        If the file cannot be written.
    """
    write_yaml(path, config.to_dict())


#: Path excludes keyed by the URL of the repository they apply to.
RepositoryPathExcludes = dict[str, list[PathExclude]]


def get_repository_path_excludes(ort_result: OrtResult) -> RepositoryPathExcludes:
    """Return the path excludes of ``ort_result`` keyed by the normalized URL of its repository."""
    url = ort_result.repository.vcs_processed.url or ort_result.repository.vcs.url
    if not url:
        logger.warning("The result has no repository URL, so its path excludes cannot be exported.")
        return {}
    return {url: list(ort_result.get_excludes().paths)}


def merge_path_excludes(
    existing: RepositoryPathExcludes, other: RepositoryPathExcludes, update_only_existing: bool = False
) -> RepositoryPathExcludes:
    """Merge ``other`` into ``existing``. Entries of ``other`` replace the entries with the same pattern.

    Parameters
    ----------
    existing : RepositoryPathExcludes
        The path excludes to update.
    other : RepositoryPathExcludes
        The path excludes to merge in.
    update_only_existing : bool
        If True, only entries whose pattern already exists for the same repository are merged.

    Returns
    -------
    RepositoryPathExcludes
        The merged path excludes, sorted by repository URL and pattern.

    Examples
    --------
    >>> old = {"https://example.com/repo.git": [PathExclude("docs/**", "DOCUMENTATION_OF")]}
    >>> new = {"https://example.com/repo.git": [PathExclude("docs/**", "OTHER"), PathExclude("test/**", "TEST_OF")]}
    >>> [e.reason for e in merge_path_excludes(old, new, update_only_existing=True)["https://example.com/repo.git"]]
    ['OTHER']
    """
    result: dict[str, dict[str, PathExclude]] = {
        url: {exclude.pattern: exclude for exclude in excludes} for url, excludes in existing.items()
    }
    for url, excludes in other.items():
        by_pattern = result.setdefault(url, {})
        for exclude in excludes:
            if update_only_existing and exclude.pattern not in by_pattern:
                continue
            by_pattern[exclude.pattern] = exclude
    return {
        url: sorted(by_pattern.values(), key=lambda exclude: exclude.pattern)
        for url, by_pattern in sorted(result.items())
        if by_pattern
    }


def load_path_excludes(path: str) -> RepositoryPathExcludes:
    """Load a path excludes file. A missing file gives no path excludes.

    Raises
    ------
    ConfigurationError
        If the file cannot be read or is malformed.
    """
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, encoding="utf-8") as file:
            content = yaml.safe_load(file) or {}
        return {
            str(url): [PathExclude.from_dict(item) for item in excludes or []] for url, excludes in content.items()
        }
    except (OSError, yaml.YAMLError, AttributeError, KeyError, TypeError) as error:
        raise ConfigurationError(f"The path excludes file {path} is malformed: {error}") from error


def write_path_excludes(path: str, path_excludes: RepositoryPathExcludes) -> None:
    """Write a path excludes file.

    Raises
    ------
    ConfigurationError
        If the file cannot be written.
    """
    write_yaml(path, {url: [exclude.to_dict() for exclude in excludes] for url, excludes in path_excludes.items()})
