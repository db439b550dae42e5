# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the package manager for Ruby projects managed with Bundler."""

import glob
import json
import logging
import os
from dataclasses import dataclass, field, replace

import yaml

from ortolan import ORTOLAN_PATH
from ortolan.analyzer.command_line_tool import CommandLineTool
from ortolan.analyzer.package_manager import AnalyzerConfiguration, PackageManager
from ortolan.config.global_config import global_config
from ortolan.database.disk_cache import DiskCaches
from ortolan.errors import CommandLineToolError, DefinitionFileError, InvalidHTTPResponseError
from ortolan.json_tools import json_extract, json_text
from ortolan.model.dependency import PackageReference, Scope
from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue, Severity, create_and_log_issue
from ortolan.model.package import Package
from ortolan.model.project import Project, ProjectAnalyzerResult
from ortolan.model.remote_artifact import Hash, RemoteArtifact
from ortolan.model.repository_configuration import RepositoryConfiguration
from ortolan.model.vcs_info import VcsInfo
from ortolan.package_registry.rubygems_registry import RubyGemsRegistry
from ortolan.util import stash_directories
from ortolan.vcs.normalizer import process_package_vcs, process_project_vcs
from ortolan.vcs.vcs_host import to_vcs_info

logger: logging.Logger = logging.getLogger(__name__)


class RubyObjectLoader(yaml.SafeLoader):  # pylint: disable=too-many-ancestors
    """A safe YAML loader that reads the ``!ruby/...`` tagged nodes written by RubyGems as plain values."""


def _construct_ruby_object(loader: RubyObjectLoader, _tag_suffix: str, node: yaml.Node) -> object:
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node, deep=True)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_scalar(node)


yaml.add_multi_constructor("!ruby/", _construct_ruby_object, Loader=RubyObjectLoader)


@dataclass(frozen=True)
class GemSpec:
    """The metadata of a gem as far as it is relevant for the analysis."""

    name: str
    version: str
    homepage_url: str = ""
    declared_licenses: frozenset[str] = frozenset()
    description: str = ""
    runtime_dependencies: tuple[str, ...] = ()
    vcs: VcsInfo = VcsInfo.EMPTY
    artifact: RemoteArtifact = RemoteArtifact.EMPTY

    @classmethod
    def from_yaml(cls, spec: str) -> "GemSpec":
        """Create a spec from the output of ``gem specification``.

        Raises
        ------
        DefinitionFileError
            If the output is not a valid gem specification.
        """
        try:
            data = yaml.load(spec, Loader=RubyObjectLoader)  # nosec B506
        except yaml.YAMLError as error:
            raise DefinitionFileError(f"Unable to parse the gem specification: {error}") from error
        if not isinstance(data, dict):
            raise DefinitionFileError("The gem specification is not a YAML mapping.")

        name = json_text(data, "name")
        version = str(json_extract(data, ["version", "version"], object) or "").strip()
        if not name or not version:
            raise DefinitionFileError("The gem specification lacks the name or the version of the gem.")

        runtime_dependencies = []
        for dependency in json_extract(data, ["dependencies"], list) or []:
            if isinstance(dependency, dict) and dependency.get("type") == ":runtime" and dependency.get("name"):
                runtime_dependencies.append(str(dependency["name"]))

        homepage_url = json_text(data, "homepage")
        return cls(
            name=name,
            version=version,
            homepage_url=homepage_url,
            declared_licenses=frozenset(str(item) for item in json_extract(data, ["licenses"], list) or [] if item),
            description=json_text(data, "description"),
            runtime_dependencies=tuple(runtime_dependencies),
            vcs=to_vcs_info(homepage_url) if homepage_url else VcsInfo.EMPTY,
        )

    @classmethod
    def from_json(cls, data: dict) -> "GemSpec":
        """Create a spec from the answer of the RubyGems v2 API.

        Examples
        --------
        >>> spec = GemSpec.from_json({"name": "rake", "version": "13.0.6", "licenses": ["MIT"]})
        >>> spec.declared_licenses
        frozenset({'MIT'})
        """
        runtime_dependencies = [
            json_text(dependency, "name")
            for dependency in json_extract(data, ["dependencies", "runtime"], list) or []
            if isinstance(dependency, dict) and json_text(dependency, "name")
        ]

        source_code_uri = json_text(data, "source_code_uri")
        gem_uri = json_text(data, "gem_uri")
        sha = json_text(data, "sha")
        return cls(
            name=json_text(data, "name"),
            version=json_text(data, "version"),
            homepage_url=json_text(data, "homepage_uri"),
            declared_licenses=frozenset(str(item) for item in json_extract(data, ["licenses"], list) or [] if item),
            description=json_text(data, "description"),
            runtime_dependencies=tuple(runtime_dependencies),
            vcs=to_vcs_info(source_code_uri) if source_code_uri else VcsInfo.EMPTY,
            artifact=RemoteArtifact(gem_uri, Hash.create(sha)) if gem_uri and sha else RemoteArtifact.EMPTY,
        )

    def merge(self, other: "GemSpec") -> "GemSpec":
        """Return this spec with its empty fields filled from ``other``.

        Raises
        ------
        ValueError
            If ``other`` describes a different gem.
        """
        if (self.name, self.version) != (other.name, other.version):
            raise ValueError("Cannot merge specs for different gems.")

        return replace(
            self,
            homepage_url=self.homepage_url or other.homepage_url,
            declared_licenses=self.declared_licenses or other.declared_licenses,
            description=self.description or other.description,
            runtime_dependencies=self.runtime_dependencies or other.runtime_dependencies,
            vcs=self.vcs if self.vcs != VcsInfo.EMPTY else other.vcs,
            artifact=self.artifact if self.artifact != RemoteArtifact.EMPTY else other.artifact,
        )


@dataclass
class _ResolutionState:
    """The results collected while resolving one Gemfile."""

    packages: dict[Identifier, Package] = field(default_factory=dict)
    issues: list[OrtIssue] = field(default_factory=list)
    specs: dict[str, GemSpec] = field(default_factory=dict)


class Bundler(PackageManager):
    """The Bundler package manager for Ruby, see https://bundler.io/."""

    name = "Bundler"
    definition_file_globs = ("Gemfile",)

    def __init__(
        self,
        analysis_root: str,
        analyzer_config: AnalyzerConfiguration,
        repo_config: RepositoryConfiguration | None = None,
        caches: DiskCaches | None = None,
    ) -> None:
        super().__init__(analysis_root, analyzer_config, repo_config, caches)
        self.tool = CommandLineTool(
            "bundler",
            command="bundle.bat" if os.name == "nt" else "bundle",
            transform_version=lambda output: output.removeprefix("Bundler version "),
        )
        self.registry = RubyGemsRegistry(cache=caches.http if caches else None)
        self.registry.load_defaults()

    def required_tools(self) -> list[CommandLineTool]:
        return [self.tool]

    def before_resolution(self, definition_files: list[str]) -> None:
        self.tool.check_version(self.analyzer_config.ignore_tool_versions)

    def resolve_dependencies(self, definition_file: str) -> ProjectAnalyzerResult | None:
        working_dir = os.path.dirname(definition_file)

        with stash_directories(os.path.join(working_dir, "vendor")):
            self.install_dependencies(definition_file)

            project_spec = self.parse_project(working_dir)
            project_id = Identifier(self.name, "", project_spec.name, project_spec.version)
            state = _ResolutionState()

            scopes = []
            for group_name, gem_names in self.get_dependency_groups(working_dir).items():
                logger.debug("Parsing the scope %s with the direct dependencies %s.", group_name, gem_names)
                references: list[PackageReference] = []
                for gem_name in gem_names:
                    self.parse_dependency(working_dir, project_id, gem_name, references, state, ())
                scopes.append(Scope(group_name, references))

        project = Project(
            id=project_id,
            definition_file_path=self.relative_path(definition_file),
            declared_licenses=project_spec.declared_licenses,
            vcs=VcsInfo.EMPTY,
            vcs_processed=process_project_vcs(working_dir, VcsInfo.EMPTY, project_spec.homepage_url),
            homepage_url=project_spec.homepage_url,
            scopes=scopes,
        )
        return ProjectAnalyzerResult(
            project=project,
            packages=[package.to_curated_package() for package in state.packages.values()],
            issues=state.issues,
        )

    def install_dependencies(self, definition_file: str) -> None:
        """Install the gems of ``definition_file`` into the ``vendor/bundle`` directory next to it.

        Raises
        ------
        LockfileMissingError
            If only lockfiles may be resolved and there is no ``Gemfile.lock``.
        CommandLineToolError
            If the installation fails.
        """
        working_dir = os.path.dirname(definition_file)
        self.require_lockfile(definition_file, os.path.isfile(os.path.join(working_dir, "Gemfile.lock")))
        self.tool.run(working_dir, "install", "--path", "vendor/bundle")

    def get_dependency_groups(self, working_dir: str) -> dict[str, list[str]]:
        """Return the direct dependencies of the Gemfile in ``working_dir`` by their group.

        Raises
        ------
        DefinitionFileError
            If the output of the helper script cannot be read.
        """
        resources_path = global_config.resources_path or os.path.join(ORTOLAN_PATH, "resources")
        script = os.path.join(resources_path, "scripts", "bundler_dependencies.rb")
        output = self.tool.run(working_dir, "exec", "ruby", script).stdout

        try:
            groups = json.loads(output)
        except json.JSONDecodeError as error:
            raise DefinitionFileError(f"Unable to read the dependency groups of the Gemfile: {error}") from error
        if not isinstance(groups, dict):
            raise DefinitionFileError("The dependency groups of the Gemfile are not a JSON object.")

        return {str(name): [str(gem) for gem in gems] for name, gems in groups.items() if isinstance(gems, list)}

    def parse_project(self, working_dir: str) -> GemSpec:
        """Return the spec of the project in ``working_dir``.

        Projects without a ``.gemspec`` file are named after their directory and have no version.
        """
        gemspec_files = sorted(glob.glob(os.path.join(glob.escape(working_dir), "*.gemspec")))
        if gemspec_files:
            return self.get_gemspec(working_dir, os.path.basename(gemspec_files[0]).split(".", 1)[0])
        return GemSpec(name=os.path.basename(os.path.abspath(working_dir)), version="")

    def get_gemspec(self, working_dir: str, gem_name: str) -> GemSpec:
        """Return the spec of the installed gem ``gem_name``.

        Raises
        ------
        CommandLineToolError
            If ``gem specification`` fails.
        DefinitionFileError
            If its output cannot be parsed.
        """
        return GemSpec.from_yaml(self.tool.run(working_dir, "exec", "gem", "specification", gem_name).stdout)

    def query_rubygems(self, name: str, version: str) -> GemSpec | None:
        """Return the spec of a gem version from RubyGems, or None if RubyGems does not know it.

        Raises
        ------
        InvalidHTTPResponseError
            If RubyGems cannot be queried, including when its rate limit is hit.
        """
        details = self.registry.get_gem_details(name, version)
        if details is None:
            logger.info("The gem %s was not found on RubyGems.", name)
            return None
        return GemSpec.from_json(details)

    def parse_dependency(
        self,
        working_dir: str,
        project_id: Identifier,
        gem_name: str,
        references: list[PackageReference],
        state: _ResolutionState,
        ancestors: tuple[str, ...],
    ) -> None:
        """Add the reference to the gem ``gem_name`` with its runtime dependencies to ``references``.

        Problems with a single gem are recorded as an issue and do not stop the resolution of its siblings.

        Parameters
        ----------
        working_dir : str
            The directory of the Gemfile.
        project_id : Identifier
            The identifier of the project. A gem equal to the project is replaced by its dependencies.
        gem_name : str
            The name of the gem.
        references : list[PackageReference]
            The list to add the reference to.
        state : _ResolutionState
            The packages and issues collected so far.
        ancestors : tuple[str, ...]
            The names of the gems on the path to this gem.
        """
        if gem_name in ancestors:
            logger.debug("Not adding the gem %s again to avoid a cycle.", gem_name)
            return

        registry_issues: list[OrtIssue] = []
        try:
            spec = state.specs.get(gem_name)
            if spec is None:
                spec = self.get_gemspec(working_dir, gem_name)
                gem_id = Identifier(self.name, "", spec.name, spec.version)
                if gem_id != project_id:
                    try:
                        remote_spec = self.query_rubygems(spec.name, spec.version)
                    except InvalidHTTPResponseError as error:
                        registry_issues.append(
                            create_and_log_issue(
                                self.name,
                                f"Failed to query RubyGems for gem '{gem_name}', using the local spec only: {error}",
                                severity=Severity.WARNING,
                                log=logger,
                            )
                        )
                        remote_spec = None
                    if remote_spec is not None:
                        spec = remote_spec.merge(spec)
                state.specs[gem_name] = spec
        except (CommandLineToolError, DefinitionFileError, ValueError) as error:
            state.issues.append(
                create_and_log_issue(self.name, f"Failed to parse the spec of gem '{gem_name}': {error}", log=logger)
            )
            return

        gem_id = Identifier(self.name, "", spec.name, spec.version)

        # A gem project can list itself in its Gemfile. Its dependencies then count as direct dependencies.
        if gem_id == project_id:
            for dependency in spec.runtime_dependencies:
                self.parse_dependency(working_dir, project_id, dependency, references, state, ancestors + (gem_name,))
            return

        state.packages.setdefault(
            gem_id,
            Package(
                id=gem_id,
                declared_licenses=spec.declared_licenses,
                description=spec.description,
                homepage_url=spec.homepage_url,
                source_artifact=spec.artifact,
                vcs=spec.vcs,
                vcs_processed=process_package_vcs(spec.vcs, spec.homepage_url),
            ),
        )

        transitive: list[PackageReference] = []
        for dependency in spec.runtime_dependencies:
            self.parse_dependency(working_dir, project_id, dependency, transitive, state, ancestors + (gem_name,))
        references.append(PackageReference(id=gem_id, dependencies=transitive, issues=registry_issues))
