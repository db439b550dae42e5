# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the resolution of installed ``node_modules`` trees shared by NPM and Yarn."""

import json
import logging
import os
import urllib.parse
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from ortolan.database.disk_cache import DiskCache
from ortolan.errors import DefinitionFileError, InvalidHTTPResponseError
from ortolan.json_tools import json_text, read_json_file
from ortolan.model.dependency import PackageReference, Scope, add_unique_reference
from ortolan.model.identifier import Identifier
from ortolan.model.issue import Severity, create_and_log_issue
from ortolan.model.package import Package
from ortolan.model.project import Project, ProjectAnalyzerResult
from ortolan.model.remote_artifact import Hash, RemoteArtifact
from ortolan.model.vcs_info import VcsInfo
from ortolan.package_registry.npm_registry import NPMRegistry
from ortolan.vcs.normalizer import process_package_vcs, process_project_vcs
from ortolan.vcs.vcs_host import to_vcs_info
from ortolan.vcs.version_control_system import get_path_info

logger: logging.Logger = logging.getLogger(__name__)

#: The identifier type of all packages installed into ``node_modules``.
NPM_PACKAGE_TYPE = "NPM"

#: The declared license of packages that must not be used under any terms.
NONE_LICENSE = "NONE"

#: The declared license of packages that refer to a license file instead of naming a license.
UNKNOWN_LICENSE_REFERENCE = "LicenseRef-ort-unknown-license-reference"

#: The scopes whose dependencies are installed for production. Optional dependencies only differ in how
#: installation failures are treated.
PRODUCTION_SCOPES = ("dependencies", "optionalDependencies")
DEV_SCOPES = ("devDependencies",)

_SHORTCUT_HOSTS = {
    "": "https://github.com/{path}.git",
    "github": "https://github.com/{path}.git",
    "gist": "https://gist.github.com/{path}",
    "bitbucket": "https://bitbucket.org/{path}.git",
    "gitlab": "https://gitlab.com/{path}.git",
}


def split_namespace_and_name(raw_name: str) -> tuple[str, str]:
    """Split a package name like ``@babel/core`` into its namespace and its name.

    Examples
    --------
    >>> split_namespace_and_name("@babel/core")
    ('@babel', 'core')
    >>> split_namespace_and_name("lodash")
    ('', 'lodash')
    """
    namespace, _, name = raw_name.rpartition("/")
    return namespace, name


def expand_npm_shortcut_url(url: str) -> str:
    """Expand the shortcut forms of repository URLs that npm accepts into full URLs.

    Parameters
    ----------
    url : str
        A URL like ``github:owner/project``, ``gitlab:owner/project#v1`` or ``owner/project``.

    Returns
    -------
    str
        The full URL, or ``url`` unchanged if it is not a shortcut.

    Examples
    --------
    >>> expand_npm_shortcut_url("npm/npm")
    'https://github.com/npm/npm.git'
    >>> expand_npm_shortcut_url("bitbucket:owner/project#v1.0")
    'https://bitbucket.org/owner/project.git#v1.0'
    >>> expand_npm_shortcut_url("https://registry.npmjs.org/a/-/a-1.0.0.tgz")
    'https://registry.npmjs.org/a/-/a-1.0.0.tgz'
    """
    try:
        parsed = urllib.parse.urlparse(url)
    except ValueError:
        return url

    path = parsed.path
    if not path or path.startswith(("git@", "github.com", "gitlab.com")):
        return url
    if parsed.netloc or parsed.query or parsed.scheme not in _SHORTCUT_HOSTS:
        return url

    revision = f"#{parsed.fragment}" if parsed.fragment else ""
    return _SHORTCUT_HOSTS[parsed.scheme].format(path=path) + revision


def parse_npm_licenses(manifest: dict) -> frozenset[str]:
    """Return the declared licenses of a ``package.json`` manifest.

    The ``license`` field can be a string, an array of strings or an object with a ``type``. Old manifests
    use a ``licenses`` array of objects instead.
    """
    declared: set[str] = set()

    license_node = manifest.get("license")
    if isinstance(license_node, str):
        declared.add(license_node)
    elif isinstance(license_node, list):
        declared.update(item for item in license_node if isinstance(item, str))
    elif isinstance(license_node, dict) and isinstance(license_node.get("type"), str):
        declared.add(license_node["type"])

    licenses_node = manifest.get("licenses")
    if isinstance(licenses_node, list):
        declared.update(
            item["type"] for item in licenses_node if isinstance(item, dict) and isinstance(item.get("type"), str)
        )

    result = set()
    for declared_license in declared:
        declared_license = declared_license.strip()
        if not declared_license:
            continue
        if declared_license == "UNLICENSED":
            result.add(NONE_LICENSE)
        elif declared_license.startswith("SEE LICENSE IN "):
            result.add(UNKNOWN_LICENSE_REFERENCE)
        else:
            result.add(declared_license)
    return frozenset(result)


def parse_npm_vcs_info(manifest: dict) -> VcsInfo:
    """Return the version control information declared in a ``package.json`` manifest."""
    head = json_text(manifest, "gitHead")
    repository = manifest.get("repository")
    if isinstance(repository, str):
        return VcsInfo(type="", url=expand_npm_shortcut_url(repository.strip()), revision=head)
    if isinstance(repository, dict):
        return VcsInfo(
            type=json_text(repository, "type"),
            url=expand_npm_shortcut_url(json_text(repository, "url")),
            revision=head,
            path=json_text(repository, "directory"),
        )
    return VcsInfo(type="", url="", revision=head)


def fix_npm_tarball_url(url: str) -> str:
    """Switch tarball URLs of the public registry that use plain HTTP to HTTPS."""
    if url.startswith("http://registry.npmjs.org/"):
        return "https://" + url.removeprefix("http://")
    return url


def has_npm_lockfile(directory: str) -> bool:
    """Return True if ``directory`` contains a lockfile of npm."""
    return any(os.path.isfile(os.path.join(directory, name)) for name in ("package-lock.json", "npm-shrinkwrap.json"))


def has_yarn_lockfile(directory: str) -> bool:
    """Return True if ``directory`` contains a lockfile of Yarn."""
    return os.path.isfile(os.path.join(directory, "yarn.lock"))


def is_inside_node_modules(path: str) -> bool:
    """Return True if ``path`` belongs to an installed module."""
    return "node_modules" in os.path.normpath(path).split(os.sep)


def read_manifest(path: str) -> dict:
    """Read a ``package.json`` file.

    Raises
    ------
    DefinitionFileError
        If the file cannot be read or does not contain a JSON object.
    """
    try:
        return read_json_file(path)
    except (OSError, ValueError) as error:
        raise DefinitionFileError(f"Unable to read {path}: {error}") from error


class NodeModulesResolver:
    """Builds projects from ``package.json`` files and the modules installed next to them.

    The dependency trees follow the lookup rules of Node.js: a dependency is searched for in the
    ``node_modules`` directory of the depending module first and then in those of its ancestors.
    """

    def __init__(
        self,
        manager_name: str,
        registry: NPMRegistry,
        metadata_cache: DiskCache | None = None,
        registry_concurrency: int = 8,
    ) -> None:
        self.manager_name = manager_name
        self.registry = registry
        self.metadata_cache = metadata_cache
        self.registry_concurrency = max(1, registry_concurrency)

    def find_installed_manifests(self, root_dir: str) -> list[tuple[str, bool]]:
        """Return the ``package.json`` files of all installed modules below ``root_dir``.

        Returns
        -------
        list[tuple[str, bool]]
            The manifest paths in walk order, each with a flag telling if its module directory is a symbolic link.
        """
        node_modules_dir = os.path.join(root_dir, "node_modules")
        logger.info("Searching for 'package.json' files in %s.", node_modules_dir)

        real_root = os.path.realpath(node_modules_dir)
        result = []
        visited: set[str] = set()
        for dirpath, dirnames, filenames in os.walk(node_modules_dir, followlinks=True):
            real_dir = os.path.realpath(dirpath)
            if real_dir in visited:
                dirnames[:] = []
                continue
            visited.add(real_dir)
            dirnames.sort()

            if "package.json" not in filenames:
                continue
            if not self.is_valid_node_modules_dir(node_modules_dir, self.node_modules_dir_of(dirpath)):
                continue
            expected_dir = os.path.normpath(os.path.join(real_root, os.path.relpath(dirpath, node_modules_dir)))
            is_symlinked = real_dir != expected_dir
            result.append((os.path.join(dirpath, "package.json"), is_symlinked))
        return result

    @staticmethod
    def node_modules_dir_of(module_dir: str) -> str | None:
        """Return the ``node_modules`` directory ``module_dir`` is installed in, if it is installed at all."""
        modules_dir = os.path.dirname(module_dir)
        if os.path.basename(modules_dir).startswith("@"):
            modules_dir = os.path.dirname(modules_dir)
        return modules_dir if os.path.basename(modules_dir) == "node_modules" else None

    @staticmethod
    def is_valid_node_modules_dir(root_modules_dir: str, modules_dir: str | None) -> bool:
        """Return True if ``modules_dir`` is reached from ``root_modules_dir`` by nested installations only.

        This excludes ``node_modules`` directories that are part of the files of an installed module.
        """
        if modules_dir is None:
            return False

        current = modules_dir
        while current != root_modules_dir:
            if os.path.basename(current) != "node_modules":
                return False
            parent = os.path.dirname(os.path.dirname(current))
            if os.path.basename(parent).startswith("@"):
                parent = os.path.dirname(parent)
            if parent == current:
                return False
            current = parent
        return True

    def parse_installed_modules(self, root_dir: str) -> dict[Identifier, Package]:
        """Return the packages of all modules installed below ``root_dir``.

        The metadata of each module is completed from the registry, with at most ``registry_concurrency``
        requests at a time.
        """
        manifests = self.find_installed_manifests(root_dir)
        with ThreadPoolExecutor(max_workers=self.registry_concurrency) as executor:
            parsed = list(executor.map(lambda item: self.parse_package(*item), manifests))

        packages: dict[Identifier, Package] = {}
        for package in parsed:
            if package is not None:
                packages.setdefault(package.id, package)
        return packages

    def parse_package(self, package_json: str, is_symlinked: bool = False) -> Package | None:
        """Create the package for an installed module.

        Parameters
        ----------
        package_json : str
            The manifest of the module.
        is_symlinked : bool
            True for workspace modules, which are linked into ``node_modules``. Their version control
            information is read from their directory instead of the registry.

        Returns
        -------
        Package | None
            The package, or None if the manifest does not name the module.
        """
        try:
            manifest = read_manifest(package_json)
        except DefinitionFileError as error:
            logger.warning(error)
            return None

        raw_name = json_text(manifest, "name")
        version = json_text(manifest, "version")
        if not raw_name or not version:
            logger.warning("%s does not define a name and a version, ignoring it.", package_json)
            return None
        namespace, name = split_namespace_and_name(raw_name)
        pkg_id = Identifier(NPM_PACKAGE_TYPE, namespace, name, version)

        if not is_symlinked and self.metadata_cache:
            cached = self.metadata_cache.get(pkg_id.to_coordinates())
            if cached is not None:
                try:
                    return Package.from_dict(json.loads(cached))
                except (ValueError, KeyError) as error:
                    logger.debug("Ignoring the invalid cached metadata of %s: %s", pkg_id, error)

        description = json_text(manifest, "description")
        homepage_url = json_text(manifest, "homepage")
        download_url = json_text(manifest, "_resolved")
        hash_value = Hash.create(json_text(manifest, "_integrity"))
        vcs = parse_npm_vcs_info(manifest)

        registry_failed = False
        if is_symlinked:
            logger.debug("Resolving the package info for %s locally.", pkg_id)
            vcs = vcs.merge(get_path_info(os.path.realpath(os.path.dirname(package_json))))
        else:
            logger.debug("Resolving the package info for %s via the npm registry.", pkg_id)
            try:
                details = self.registry.get_version_details(raw_name, version)
            except InvalidHTTPResponseError as error:
                logger.warning(
                    "Could not retrieve the package information for %s@%s: %s", raw_name, version, error
                )
                details = None
                registry_failed = True

            # Local manifest values are kept where the registry is silent.
            if details is not None:
                description = json_text(details, "description") or description
                homepage_url = json_text(details, "homepage") or homepage_url
                dist = details.get("dist")
                if isinstance(dist, dict):
                    download_url = fix_npm_tarball_url(json_text(dist, "tarball")) or download_url
                    shasum = json_text(dist, "shasum")
                    if shasum:
                        hash_value = Hash.create(shasum)
                vcs = parse_npm_vcs_info(details).merge(vcs)

        vcs_from_download_url = to_vcs_info(expand_npm_shortcut_url(download_url))
        if vcs_from_download_url.url != download_url:
            vcs = vcs.merge(vcs_from_download_url)

        package = Package(
            id=pkg_id,
            declared_licenses=parse_npm_licenses(manifest),
            description=description,
            homepage_url=homepage_url,
            source_artifact=RemoteArtifact(url=download_url, hash=hash_value),
            vcs=vcs,
            vcs_processed=process_package_vcs(vcs, homepage_url),
        )
        if not is_symlinked and not registry_failed and self.metadata_cache:
            self.metadata_cache.put(pkg_id.to_coordinates(), json.dumps(package.to_dict()))
        return package

    def get_module_dependencies(self, module_dir: str, scopes: Iterable[str]) -> list[PackageReference]:
        """Return the dependency trees of the module in ``module_dir`` for the dependency types in ``scopes``.

        The dependencies of workspace modules linked into ``node_modules`` are included.
        """
        scopes = tuple(scopes)
        root = self.get_package_reference(module_dir, scopes, package_type=self.manager_name)
        result = list(root.dependencies) if root else []

        for workspace_dir in self.find_workspace_modules(module_dir):
            workspace = self.get_package_reference(
                workspace_dir, scopes, ancestor_dirs=[module_dir], package_type=self.manager_name
            )
            if workspace:
                for reference in workspace.dependencies:
                    add_unique_reference(result, reference)
        return result

    @staticmethod
    def find_workspace_modules(module_dir: str) -> list[str]:
        """Return the symbolically linked module directories in the ``node_modules`` of ``module_dir``."""
        node_modules_dir = os.path.join(module_dir, "node_modules")
        if not os.path.isdir(node_modules_dir):
            return []

        search_dirs = [
            os.path.join(node_modules_dir, name)
            for name in sorted(os.listdir(node_modules_dir))
            if name.startswith("@") and os.path.isdir(os.path.join(node_modules_dir, name))
        ]
        search_dirs.append(node_modules_dir)

        result = []
        for search_dir in search_dirs:
            for name in sorted(os.listdir(search_dir)):
                path = os.path.join(search_dir, name)
                if os.path.islink(path) and os.path.isdir(path):
                    result.append(path)
        return result

    def get_package_reference(
        self,
        module_dir: str,
        scopes: tuple[str, ...],
        ancestor_dirs: list[str] | None = None,
        ancestor_ids: list[Identifier] | None = None,
        package_type: str = NPM_PACKAGE_TYPE,
    ) -> PackageReference | None:
        """Build the dependency tree of the module in ``module_dir``.

        Parameters
        ----------
        module_dir : str
            The directory of the module.
        scopes : tuple[str, ...]
            The dependency types of the module to follow. Transitive dependencies always follow the
            production dependencies.
        ancestor_dirs : list[str] | None
            The directories whose ``node_modules`` are searched after the one of ``module_dir``, nearest first.
        ancestor_ids : list[Identifier] | None
            The identifiers of the modules on the path from the project to this module.
        package_type : str
            The identifier type of the module.

        Returns
        -------
        PackageReference | None
            The tree, or None if the module already occurs on the path to it.
        """
        ancestor_dirs = ancestor_dirs or []
        ancestor_ids = ancestor_ids or []

        manifest = read_manifest(os.path.join(module_dir, "package.json"))
        namespace, name = split_namespace_and_name(json_text(manifest, "name"))
        module_id = Identifier(package_type, namespace, name, json_text(manifest, "version"))

        if module_id in ancestor_ids:
            cycle = [*ancestor_ids[ancestor_ids.index(module_id) :], module_id]
            logger.debug(
                "Not adding dependency %s to avoid cycle: %s.", module_id, " -> ".join(str(item) for item in cycle)
            )
            return None

        logger.debug("Building the dependency tree for %s from directory %s.", module_id, module_dir)
        reference = PackageReference(id=module_id)
        path_to_root = [module_dir, *ancestor_dirs]
        for dependency_name in self.get_dependency_names(manifest, scopes):
            dependency_path = self.find_dependency_module_dir(dependency_name, path_to_root)
            if not dependency_path:
                logger.debug("Could not find the module directory of %s within %s.", dependency_name, path_to_root)
                reference.add_dependency(self.get_reference_for_missing_module(dependency_name, module_dir))
                continue

            child = self.get_package_reference(
                dependency_path[0],
                PRODUCTION_SCOPES,
                ancestor_dirs=dependency_path[1:],
                ancestor_ids=[*ancestor_ids, module_id],
            )
            if child:
                reference.add_dependency(child)
        return reference

    @staticmethod
    def get_dependency_names(manifest: dict, scopes: Iterable[str]) -> list[str]:
        """Return the names of the dependencies of ``manifest`` in ``scopes`` in declaration order."""
        names: dict[str, None] = {}
        for scope in scopes:
            dependencies = manifest.get(scope)
            if isinstance(dependencies, dict):
                names.update(dict.fromkeys(dependencies))
        return list(names)

    @staticmethod
    def find_dependency_module_dir(dependency_name: str, search_dirs: list[str]) -> list[str]:
        """Find the directory a dependency is installed in.

        Parameters
        ----------
        dependency_name : str
            The name of the dependency, possibly scoped.
        search_dirs : list[str]
            The module directories whose ``node_modules`` are searched, nearest first.

        Returns
        -------
        list[str]
            The directory of the dependency followed by the directories to search for its own dependencies,
            or an empty list if the dependency is not installed.
        """
        for index, module_dir in enumerate(search_dirs):
            candidate = os.path.join(module_dir, "node_modules", *dependency_name.split("/"))
            if os.path.isdir(candidate):
                return [candidate, *search_dirs[index:]]
        return []

    def get_reference_for_missing_module(self, module_name: str, module_dir: str) -> PackageReference:
        """Return a reference without version and with an issue for a dependency that is not installed."""
        issue = create_and_log_issue(
            source=self.manager_name,
            message=(
                f"Package '{module_name}' was not installed, because the package file could not be found anywhere "
                f"in '{module_dir}'. This might be fine if the module was not installed because it is specific "
                "to a different platform."
            ),
            severity=Severity.WARNING,
            log=logger,
        )
        namespace, name = split_namespace_and_name(module_name)
        return PackageReference(id=Identifier(self.manager_name, namespace, name, ""), issues=[issue])

    def build_scopes(self, working_dir: str) -> list[Scope]:
        """Return the production and the development scope of the project in ``working_dir``."""
        return [
            Scope("dependencies", self.get_module_dependencies(working_dir, PRODUCTION_SCOPES)),
            Scope("devDependencies", self.get_module_dependencies(working_dir, DEV_SCOPES)),
        ]

    def parse_project(
        self,
        package_json: str,
        definition_file_path: str,
        scopes: list[Scope],
        packages: Iterable[Package],
    ) -> ProjectAnalyzerResult:
        """Create the result for the project defined by ``package_json``.

        Parameters
        ----------
        package_json : str
            The definition file.
        definition_file_path : str
            The path of the definition file relative to the analysis root.
        scopes : list[Scope]
            The dependency trees of the project.
        packages : Iterable[Package]
            The packages of all installed modules.

        Returns
        -------
        ProjectAnalyzerResult
            The project with its packages.
        """
        logger.debug("Parsing the project info from %s.", package_json)
        manifest = read_manifest(package_json)

        namespace, name = split_namespace_and_name(json_text(manifest, "name"))
        if not name:
            logger.warning("%s does not define a name.", package_json)
        version = json_text(manifest, "version")
        if not version:
            logger.warning("%s does not define a version.", package_json)

        homepage_url = json_text(manifest, "homepage")
        vcs = parse_npm_vcs_info(manifest)
        project = Project(
            id=Identifier(self.manager_name, namespace, name, version),
            definition_file_path=definition_file_path,
            declared_licenses=parse_npm_licenses(manifest),
            vcs=vcs,
            vcs_processed=process_project_vcs(os.path.dirname(package_json), vcs, homepage_url),
            homepage_url=homepage_url,
            scopes=scopes,
        )
        return ProjectAnalyzerResult(project=project, packages=[package.to_curated_package() for package in packages])


def map_definition_files_for_npm(definition_files: list[str]) -> list[str]:
    """Drop the ``package.json`` files of installed modules."""
    return [path for path in definition_files if not is_inside_node_modules(os.path.dirname(path))]
