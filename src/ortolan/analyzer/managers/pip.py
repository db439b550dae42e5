# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the package manager for Python projects installed with pip.

The dependencies are installed into a temporary virtual environment and their tree is read with ``pipdeptree``.
The metadata of the installed packages is then completed from PyPI.
"""

import json
import logging
import os
import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor

from ortolan.analyzer.command_line_tool import CommandLineTool, ProcessResult
from ortolan.analyzer.package_manager import AnalyzerConfiguration, PackageManager
from ortolan.config.defaults import defaults
from ortolan.database.disk_cache import DiskCaches
from ortolan.errors import CommandLineToolError, DefinitionFileError, InvalidHTTPResponseError, VcsError
from ortolan.json_tools import json_extract, json_text
from ortolan.model.dependency import PackageReference, Scope
from ortolan.model.identifier import Identifier
from ortolan.model.package import Package
from ortolan.model.project import Project, ProjectAnalyzerResult
from ortolan.model.remote_artifact import Hash, RemoteArtifact
from ortolan.model.repository_configuration import RepositoryConfiguration
from ortolan.model.vcs_info import VcsInfo
from ortolan.package_registry.pypi_registry import PyPIRegistry
from ortolan.vcs.normalizer import process_package_vcs, process_project_vcs
from ortolan.vcs.version_control_system import for_directory

logger: logging.Logger = logging.getLogger(__name__)

#: Packages that show up next to the real dependencies of a requirements file, mapped to the only version to
#: ignore. An empty version ignores every version.
PHONY_DEPENDENCIES = {
    # Dependencies of pipdeptree itself.
    "pipdeptree": "",
    "setuptools": "",
    "wheel": "",
    # Added by a bug of some Ubuntu distributions.
    "pkg-resources": "0.0.0",
}

INSTALL_OPTIONS = ("--no-warn-conflicts", "--prefer-binary")

SCOPE_NAME_INSTALL = "install"


def is_phony_dependency(name: str, version: str) -> bool:
    """Return True if the package is not a real dependency of the analyzed project.

    Examples
    --------
    >>> is_phony_dependency("pkg-resources", "0.0.0")
    True
    >>> is_phony_dependency("pkg-resources", "1.0.0")
    False
    >>> is_phony_dependency("requests", "2.31.0")
    False
    """
    if name not in PHONY_DEPENDENCIES:
        return False
    ignored_version = PHONY_DEPENDENCIES[name]
    return not ignored_version or version == ignored_version


def strip_leading_zeros_from_version(version: str) -> str:
    """Return ``version`` with the leading zeros of its numeric components removed.

    Examples
    --------
    >>> strip_leading_zeros_from_version("2018.01.02")
    '2018.1.2'
    >>> strip_leading_zeros_from_version("1.0rc1")
    '1.0rc1'
    """
    return ".".join(str(int(part)) if part.isdigit() else part for part in version.split("."))


def get_declared_licenses(info: dict) -> frozenset[str]:
    """Return the licenses declared in the ``license`` field and the ``License ::`` classifiers of ``info``.

    Examples
    --------
    >>> sorted(get_declared_licenses({
    ...     "license": "UNKNOWN",
    ...     "classifiers": ["License :: OSI Approved :: MIT License", "Programming Language :: Python"],
    ... }))
    ['MIT License']
    """
    licenses = set()
    license_name = json_text(info, "license")
    if license_name and license_name != "UNKNOWN":
        licenses.add(license_name)

    for classifier in json_extract(info, ["classifiers"], list) or []:
        if not isinstance(classifier, str):
            continue
        parts = classifier.split(" :: ")
        if parts[0] == "License" and len(parts) > 1:
            licenses.add(parts[-1])
    return frozenset(licenses)


def get_binary_artifact(package: Package, release_files: list[dict]) -> RemoteArtifact:
    """Return the artifact to use as binary, preferring wheels over the first file of the release."""
    if not release_files:
        return package.binary_artifact
    binary = next((item for item in release_files if item.get("packagetype") == "bdist_wheel"), release_files[0])
    url = json_text(binary, "url") or package.binary_artifact.url
    digest = json_text(binary, "md5_digest")
    return RemoteArtifact(url, Hash.create(digest) if digest else package.binary_artifact.hash)


def get_source_artifact(release_files: list[dict]) -> RemoteArtifact:
    """Return the source distribution of a release, preferring ``.tar.bz2`` archives."""
    sources = [item for item in release_files if item.get("packagetype") == "sdist"]
    if not sources:
        return RemoteArtifact.EMPTY
    source = next((item for item in sources if json_text(item, "filename").endswith(".tar.bz2")), sources[0])
    url = json_text(source, "url")
    digest = json_text(source, "md5_digest")
    if not url or not digest:
        return RemoteArtifact.EMPTY
    return RemoteArtifact(url, Hash.create(digest))


def find_release_files(release_json: dict, version: str) -> list[dict] | None:
    """Return the files of ``version`` from the release metadata of PyPI.

    Release names are compared with leading zeros stripped, because pip normalizes versions like ``2018.01.02``.
    The files of the requested release in ``urls`` are used if the metadata does not list all releases.
    """
    releases = json_extract(release_json, ["releases"], dict)
    if releases:
        for release_name, files in releases.items():
            if strip_leading_zeros_from_version(release_name) == version and isinstance(files, list):
                return [item for item in files if isinstance(item, dict)]
        return None
    files = json_extract(release_json, ["urls"], list)
    return [item for item in files if isinstance(item, dict)] if files is not None else None


def parse_dependency_tree(
    nodes: list, packages: dict[Identifier, Package], ancestors: tuple[Identifier, ...] = ()
) -> list[PackageReference]:
    """Return the references of the ``pipdeptree --json-tree`` nodes and record their packages in ``packages``."""
    references = []
    for node in nodes:
        if not isinstance(node, dict):
            continue
        pkg_id = Identifier("PyPI", "", json_text(node, "package_name"), json_text(node, "installed_version"))
        if pkg_id in ancestors:
            logger.debug("Not adding dependency %s to avoid a cycle.", pkg_id)
            continue
        packages.setdefault(pkg_id, Package.empty(pkg_id))
        children = json_extract(node, ["dependencies"], list) or []
        references.append(
            PackageReference(id=pkg_id, dependencies=parse_dependency_tree(children, packages, ancestors + (pkg_id,)))
        )
    return references


class Pip(PackageManager):
    """The pip package manager for Python, see https://pip.pypa.io/."""

    name = "PIP"
    definition_file_globs = ("requirements*.txt", "setup.py")

    def __init__(
        self,
        analysis_root: str,
        analyzer_config: AnalyzerConfiguration,
        repo_config: RepositoryConfiguration | None = None,
        caches: DiskCaches | None = None,
    ) -> None:
        super().__init__(analysis_root, analyzer_config, repo_config, caches)
        self.virtualenv = CommandLineTool(
            "virtualenv",
            transform_version=lambda output: output.removeprefix("virtualenv ").split(" ", 1)[0],
        )
        self.registry = PyPIRegistry(cache=caches.http if caches else None)
        self.registry.load_defaults()

    def required_tools(self) -> list[CommandLineTool]:
        return [self.virtualenv]

    def before_resolution(self, definition_files: list[str]) -> None:
        self.virtualenv.check_version(self.analyzer_config.ignore_tool_versions)

    def resolve_dependencies(self, definition_file: str) -> ProjectAnalyzerResult | None:
        working_dir = os.path.dirname(definition_file)
        virtualenv_dir = tempfile.mkdtemp(prefix="ortolan-", suffix=f"-{os.path.basename(working_dir)}-virtualenv")
        try:
            self.setup_virtualenv(virtualenv_dir, definition_file)
            tree_result = self.run_in_virtualenv(
                virtualenv_dir, working_dir, "pipdeptree", "-l", "--json-tree", check=False
            )
            setup_name, setup_version, setup_homepage, declared_licenses = self.get_setup_metadata(
                virtualenv_dir, working_dir
            )
        finally:
            shutil.rmtree(virtualenv_dir, ignore_errors=True)

        is_setup_py = os.path.basename(definition_file) == "setup.py"
        project_name, project_version = self.get_project_name_and_version(
            definition_file, setup_name, setup_version
        )

        packages: dict[Identifier, Package] = {}
        install_dependencies: list[PackageReference] = []
        if tree_result.is_success:
            install_dependencies = parse_dependency_tree(
                self.get_project_dependency_nodes(tree_result.stdout, project_name, is_setup_py), packages
            )
        else:
            logger.error(
                "Unable to determine the dependencies of the project in %s: %s",
                self.relative_path(working_dir) or ".",
                tree_result.stderr.strip(),
            )

        with ThreadPoolExecutor(max_workers=self.analyzer_config.registry_concurrency) as executor:
            enriched = list(executor.map(self.enrich_package, packages.values()))

        project = Project(
            id=Identifier(self.name, "", project_name, project_version),
            definition_file_path=self.relative_path(definition_file),
            declared_licenses=declared_licenses,
            vcs=VcsInfo.EMPTY,
            vcs_processed=process_project_vcs(working_dir, VcsInfo.EMPTY, setup_homepage),
            homepage_url=setup_homepage,
            scopes=[Scope(SCOPE_NAME_INSTALL, install_dependencies)],
        )
        return ProjectAnalyzerResult(project=project, packages=[package.to_curated_package() for package in enriched])

    def run_in_virtualenv(
        self, virtualenv_dir: str, working_dir: str, command: str, *args: str, check: bool = True
    ) -> ProcessResult:
        """Run ``command`` from the ``bin`` directory of the virtual environment."""
        bin_dir = "Scripts" if os.name == "nt" else "bin"
        tool = CommandLineTool(command, command=os.path.join(virtualenv_dir, bin_dir, command))
        result = tool.run(working_dir, *args, check=check)
        logger.debug(result.stdout)
        return result

    def run_pip_in_virtualenv(
        self, virtualenv_dir: str, working_dir: str, *args: str, check: bool = True
    ) -> ProcessResult:
        """Run pip of the virtual environment, trusting the configured hosts."""
        trusted_hosts = []
        for host in defaults.get_list("tools.pip", "trusted_hosts", fallback=[]):
            trusted_hosts.extend(["--trusted-host", host])
        return self.run_in_virtualenv(virtualenv_dir, working_dir, "pip", *trusted_hosts, *args, check=check)

    def setup_virtualenv(self, virtualenv_dir: str, definition_file: str) -> None:
        """Create a virtual environment in ``virtualenv_dir`` and install the dependencies of ``definition_file``.

        Raises
        ------
        CommandLineToolError
            If the virtual environment cannot be created or the dependencies cannot be installed.
        """
        working_dir = os.path.dirname(definition_file)
        section = defaults["tools.pip"]
        logger.info("Creating a virtualenv for the %s project directory.", os.path.basename(working_dir))
        self.virtualenv.run(
            working_dir, virtualenv_dir, "-p", defaults.get("tools.virtualenv", "python", fallback="python3")
        )

        self.run_pip_in_virtualenv(virtualenv_dir, working_dir, "install", f"pip=={section.get('pinned_version')}")
        # pipdeptree only reports the packages of the virtual environment it is installed in.
        self.run_pip_in_virtualenv(
            virtualenv_dir, working_dir, "install", f"pipdeptree=={section.get('pipdeptree_version')}"
        )

        if os.path.basename(definition_file) == "setup.py":
            install_args = (*INSTALL_OPTIONS, ".")
        else:
            install_args = (*INSTALL_OPTIONS, "-r", os.path.basename(definition_file))
        result = self.run_pip_in_virtualenv(virtualenv_dir, working_dir, "install", *install_args, check=False)
        if not result.is_success:
            # pip writes the actual error message to stdout.
            raise CommandLineToolError(
                f"Unable to install the dependencies of {self.relative_path(definition_file)}: {result.stdout.strip()}",
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        logger.info("Installed the dependencies of %s.", self.relative_path(definition_file))

    def get_setup_metadata(self, virtualenv_dir: str, working_dir: str) -> tuple[str, str, str, frozenset[str]]:
        """Return the name, version, homepage and declared licenses from the ``setup.py`` in ``working_dir``.

        Empty values are returned if there is no ``setup.py``.

        Raises
        ------
        DefinitionFileError
            If the metadata cannot be read from ``setup.py``.
        """
        if not os.path.isfile(os.path.join(working_dir, "setup.py")):
            return "", "", "", frozenset()

        try:
            result = self.run_in_virtualenv(
                virtualenv_dir,
                working_dir,
                "python",
                "setup.py",
                "-q",
                "--name",
                "--version",
                "--url",
                "--license",
                "--classifiers",
            )
        except CommandLineToolError as error:
            raise DefinitionFileError(f"Unable to read the metadata of setup.py: {error}") from error

        lines = [line.strip() for line in result.stdout.splitlines()]
        if len(lines) < 4 or not lines[0]:
            raise DefinitionFileError("The metadata of setup.py does not contain a project name.")

        name, version, url, license_name = lines[:4]
        declared_licenses = get_declared_licenses(
            {"license": license_name, "classifiers": [line for line in lines[4:] if line]}
        )
        return name, version if version != "UNKNOWN" else "", url if url != "UNKNOWN" else "", declared_licenses

    def get_project_name_and_version(
        self, definition_file: str, setup_name: str, setup_version: str
    ) -> tuple[str, str]:
        """Return the name and version of the project of ``definition_file``.

        A requirements file next to a ``setup.py`` is named after the ``setup.py`` project with the suffix of the
        requirements file. A requirements file on its own is named by its path relative to the analysis root and
        has the revision of its working tree as version.

        Raises
        ------
        DefinitionFileError
            If no name can be determined.
        """
        filename = os.path.basename(definition_file)
        if filename == "setup.py":
            if not setup_name:
                raise DefinitionFileError(f"Unable to determine a project name for {definition_file}.")
            return setup_name, setup_version

        with open(definition_file, encoding="utf-8") as file:
            python_version_lines = [line.strip() for line in file if "python_version" in line]
        if python_version_lines:
            logger.debug("Some dependencies have Python version requirements: %s", python_version_lines)

        suffix = filename.removeprefix("requirements").removesuffix(".txt")
        revision = self.get_working_tree_revision(os.path.dirname(definition_file))
        if setup_name:
            return f"{setup_name}-requirements{suffix}", setup_version or revision
        return self.relative_path(definition_file), revision

    @staticmethod
    def get_working_tree_revision(working_dir: str) -> str:
        """Return the revision of the working tree containing ``working_dir``, or an empty string."""
        vcs = for_directory(working_dir)
        if vcs is None:
            return ""
        try:
            return vcs.get_working_tree_info(working_dir).revision
        except VcsError as error:
            logger.debug("Unable to determine the revision of %s: %s", working_dir, error)
            return ""

    @staticmethod
    def get_project_dependency_nodes(output: str, project_name: str, is_setup_py: bool) -> list:
        """Return the top-level nodes of the ``pipdeptree`` output that are dependencies of the project.

        For ``setup.py`` the project is a node of its own. For requirements files the dependencies are top-level
        nodes next to the phony dependencies, which are dropped.

        Raises
        ------
        DefinitionFileError
            If the output is not a JSON array.
        """
        try:
            tree = json.loads(output)
        except json.JSONDecodeError as error:
            raise DefinitionFileError(f"Unable to parse the output of pipdeptree: {error}") from error
        if not isinstance(tree, list):
            raise DefinitionFileError("The output of pipdeptree is not a JSON array.")

        nodes = [node for node in tree if isinstance(node, dict)]
        if is_setup_py:
            for node in nodes:
                if json_text(node, "package_name") == project_name:
                    return json_extract(node, ["dependencies"], list) or []
            logger.info("The %s project does not declare any dependencies.", project_name)
            return []

        return [
            node
            for node in nodes
            if not is_phony_dependency(json_text(node, "package_name"), json_text(node, "installed_version"))
        ]

    def enrich_package(self, package: Package) -> Package:
        """Return ``package`` with the metadata PyPI has about it, or unchanged if PyPI has none."""
        coordinates = package.id.to_coordinates()
        try:
            release_json = self.registry.get_release_json(package.id.name, package.id.version)
        except InvalidHTTPResponseError as error:
            logger.warning("Unable to retrieve the PyPI metadata of %s: %s", coordinates, error)
            return package
        if release_json is None:
            logger.warning("Unable to retrieve the PyPI metadata of %s.", coordinates)
            return package

        info = json_extract(release_json, ["info"], dict)
        if info is None:
            logger.warning("The PyPI metadata of %s does not provide any information.", coordinates)
            return package

        description = json_extract(info, ["summary"], str)
        homepage_url = json_extract(info, ["home_page"], str)
        homepage_url = package.homepage_url if homepage_url is None else homepage_url
        release_files = find_release_files(release_json, package.id.version)
        return Package(
            id=package.id,
            declared_licenses=get_declared_licenses(info),
            description=package.description if description is None else description,
            homepage_url=homepage_url,
            binary_artifact=(
                get_binary_artifact(package, release_files) if release_files is not None else package.binary_artifact
            ),
            source_artifact=(
                get_source_artifact(release_files) if release_files is not None else package.source_artifact
            ),
            vcs=package.vcs,
            vcs_processed=process_package_vcs(package.vcs, homepage_url),
        )
