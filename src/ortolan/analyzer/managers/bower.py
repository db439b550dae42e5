# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the package manager for Bower projects."""

import json
import logging
import os

from ortolan.analyzer.command_line_tool import CommandLineTool
from ortolan.analyzer.package_manager import AnalyzerConfiguration, PackageManager
from ortolan.database.disk_cache import DiskCaches
from ortolan.errors import DefinitionFileError
from ortolan.json_tools import json_extract, json_text
from ortolan.model.dependency import PackageReference, Scope
from ortolan.model.identifier import Identifier
from ortolan.model.package import Package
from ortolan.model.project import Project, ProjectAnalyzerResult
from ortolan.model.repository_configuration import RepositoryConfiguration
from ortolan.model.vcs_info import VcsInfo
from ortolan.util import stash_directories
from ortolan.vcs.normalizer import process_package_vcs, process_project_vcs

logger: logging.Logger = logging.getLogger(__name__)

SCOPE_NAME_DEPENDENCIES = "dependencies"
SCOPE_NAME_DEV_DEPENDENCIES = "devDependencies"


def extract_package_id(node: dict) -> Identifier:
    """Return the identifier of a node of the ``bower list --json`` output."""
    return Identifier("Bower", "", json_text(node, "pkgMeta", "name"), json_text(node, "pkgMeta", "version"))


def extract_vcs_info(node: dict) -> VcsInfo:
    """Return the version control information of a node of the ``bower list --json`` output."""
    url = json_extract(node, ["pkgMeta", "repository", "url"], str)
    revision = json_extract(node, ["pkgMeta", "_resolution", "commit"], str)
    return VcsInfo(
        type=json_text(node, "pkgMeta", "repository", "type"),
        url=(url if url is not None else json_text(node, "pkgMeta", "_source")).strip(),
        revision=(revision if revision is not None else json_text(node, "pkgMeta", "_resolution", "tag")).strip(),
    )


def extract_package(node: dict) -> Package:
    """Create the package of a node of the ``bower list --json`` output."""
    license_name = json_text(node, "pkgMeta", "license")
    homepage_url = json_text(node, "pkgMeta", "homepage")
    vcs = extract_vcs_info(node)
    return Package(
        id=extract_package_id(node),
        declared_licenses=frozenset({license_name} if license_name else set()),
        description=json_text(node, "pkgMeta", "description"),
        homepage_url=homepage_url,
        vcs=vcs,
        vcs_processed=process_package_vcs(vcs, homepage_url),
    )


def get_dependency_nodes(node: dict) -> list[dict]:
    """Return the child nodes of ``node``."""
    dependencies = node.get("dependencies")
    if not isinstance(dependencies, dict):
        return []
    return [child for child in dependencies.values() if isinstance(child, dict)]


def extract_packages(root: dict) -> dict[str, Package]:
    """Return the packages of all nodes below ``root`` keyed by ``name:version``."""
    result: dict[str, Package] = {}
    stack = get_dependency_nodes(root)
    while stack:
        node = stack.pop()
        package = extract_package(node)
        result[f"{package.id.name}:{package.id.version}"] = package
        stack.extend(get_dependency_nodes(node))
    return result


def has_complete_dependencies(node: dict, scope_name: str) -> bool:
    """Return True if ``node`` contains a child node for every dependency it declares in ``scope_name``."""
    children = node.get("dependencies")
    declared = json_extract(node, ["pkgMeta", scope_name], dict) or {}
    return all(name in (children if isinstance(children, dict) else {}) for name in declared)


def dependency_key_of(node: dict) -> str | None:
    """Return the ``name:version`` key of ``node``, or None if one of them is unknown."""
    name = json_text(node, "pkgMeta", "name")
    version = json_text(node, "pkgMeta", "version")
    return f"{name}:{version}" if name and version else None


def get_nodes_with_complete_dependencies(root: dict) -> dict[str, dict]:
    """Return the nodes below ``root`` that list all their children, keyed by ``name:version``."""
    result: dict[str, dict] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        key = dependency_key_of(node)
        if (
            key
            and has_complete_dependencies(node, SCOPE_NAME_DEPENDENCIES)
            and has_complete_dependencies(node, SCOPE_NAME_DEV_DEPENDENCIES)
        ):
            result[key] = node
        stack.extend(get_dependency_nodes(node))
    return result


def extract_dependency_tree(
    node: dict,
    scope_name: str,
    alternative_nodes: dict[str, dict] | None = None,
) -> list[PackageReference]:
    """Return the dependency trees of ``node`` for the dependencies declared in ``scope_name``.

    Bower omits the children of a node if another node with the same name and resolution exists in the output.
    The children are then taken from that other node.

    Parameters
    ----------
    node : dict
        A node of the ``bower list --json`` output.
    scope_name : str
        The manifest key of the dependencies to follow.
    alternative_nodes : dict[str, dict] | None
        The nodes with complete children keyed by ``name:version``. Computed from ``node`` if not given.

    Returns
    -------
    list[PackageReference]
        The dependency trees in declaration order.
    """
    if alternative_nodes is None:
        alternative_nodes = get_nodes_with_complete_dependencies(node)

    if not has_complete_dependencies(node, scope_name):
        key = dependency_key_of(node)
        alternative = alternative_nodes.get(key) if key else None
        if alternative is None or alternative is node:
            logger.warning("The dependencies of %s are incomplete in the output of Bower.", key or "the project")
        else:
            return extract_dependency_tree(alternative, scope_name, alternative_nodes)

    children = node.get("dependencies") if isinstance(node.get("dependencies"), dict) else {}
    result = []
    for name in json_extract(node, ["pkgMeta", scope_name], dict) or {}:
        child = children.get(name)
        if not isinstance(child, dict):
            continue
        result.append(
            PackageReference(
                id=extract_package_id(child),
                dependencies=extract_dependency_tree(child, SCOPE_NAME_DEPENDENCIES, alternative_nodes),
            )
        )
    return result


class Bower(PackageManager):
    """The Bower package manager for JavaScript, see https://bower.io/."""

    name = "Bower"
    definition_file_globs = ("bower.json",)

    def __init__(
        self,
        analysis_root: str,
        analyzer_config: AnalyzerConfiguration,
        repo_config: RepositoryConfiguration | None = None,
        caches: DiskCaches | None = None,
    ) -> None:
        super().__init__(analysis_root, analyzer_config, repo_config, caches)
        self.tool = CommandLineTool("bower")

    def required_tools(self) -> list[CommandLineTool]:
        return [self.tool]

    def before_resolution(self, definition_files: list[str]) -> None:
        self.tool.check_version(self.analyzer_config.ignore_tool_versions)

    def resolve_dependencies(self, definition_file: str) -> ProjectAnalyzerResult | None:
        logger.info("Resolving dependencies for %s.", self.relative_path(definition_file))
        working_dir = os.path.dirname(definition_file)

        with stash_directories(os.path.join(working_dir, "bower_components")):
            self.tool.run(working_dir, "install")
            output = self.tool.run(working_dir, "list", "--json").stdout

        try:
            root = json.loads(output)
        except json.JSONDecodeError as error:
            raise DefinitionFileError(f"Unable to parse the output of 'bower list': {error}") from error
        if not isinstance(root, dict):
            raise DefinitionFileError("The output of 'bower list' is not a JSON object.")

        return self.create_result(definition_file, root)

    def create_result(self, definition_file: str, root: dict) -> ProjectAnalyzerResult:
        """Create the result from the output of ``bower list --json`` for ``definition_file``."""
        packages = extract_packages(root)
        alternative_nodes = get_nodes_with_complete_dependencies(root)
        scopes = [
            Scope(SCOPE_NAME_DEPENDENCIES, extract_dependency_tree(root, SCOPE_NAME_DEPENDENCIES, alternative_nodes)),
            Scope(
                SCOPE_NAME_DEV_DEPENDENCIES,
                extract_dependency_tree(root, SCOPE_NAME_DEV_DEPENDENCIES, alternative_nodes),
            ),
        ]

        project_package = extract_package(root)
        project = Project(
            id=project_package.id,
            definition_file_path=self.relative_path(definition_file),
            declared_licenses=project_package.declared_licenses,
            vcs=project_package.vcs,
            vcs_processed=process_project_vcs(
                os.path.dirname(definition_file), project_package.vcs, project_package.homepage_url
            ),
            homepage_url=project_package.homepage_url,
            scopes=scopes,
        )
        return ProjectAnalyzerResult(
            project=project, packages=[package.to_curated_package() for package in packages.values()]
        )
