# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the package manager for Yarn projects."""

import logging
import os

from ortolan.analyzer.command_line_tool import CommandLineTool
from ortolan.analyzer.managers.npm_support import (
    NodeModulesResolver,
    has_yarn_lockfile,
    map_definition_files_for_npm,
)
from ortolan.analyzer.package_manager import AnalyzerConfiguration, PackageManager
from ortolan.database.disk_cache import DiskCaches
from ortolan.model.project import ProjectAnalyzerResult
from ortolan.model.repository_configuration import RepositoryConfiguration
from ortolan.package_registry.npm_registry import NPMRegistry
from ortolan.util import stash_directories

logger: logging.Logger = logging.getLogger(__name__)


class Yarn(PackageManager):
    """The Yarn package manager for JavaScript, see https://classic.yarnpkg.com/.

    Yarn installs into the same ``node_modules`` layout as npm, so the trees are built the same way.
    """

    name = "Yarn"
    definition_file_globs = ("package.json",)

    def __init__(
        self,
        analysis_root: str,
        analyzer_config: AnalyzerConfiguration,
        repo_config: RepositoryConfiguration | None = None,
        caches: DiskCaches | None = None,
    ) -> None:
        super().__init__(analysis_root, analyzer_config, repo_config, caches)
        self.tool = CommandLineTool("yarn")
        registry = NPMRegistry(cache=caches.http if caches else None)
        registry.load_defaults()
        self.resolver = NodeModulesResolver(
            self.name,
            registry,
            metadata_cache=caches.metadata if caches else None,
            registry_concurrency=analyzer_config.registry_concurrency,
        )

    @classmethod
    def claims(cls, path: str) -> bool:
        return super().claims(path) and has_yarn_lockfile(os.path.dirname(path))

    @classmethod
    def map_definition_files(cls, definition_files: list[str]) -> list[str]:
        return map_definition_files_for_npm(definition_files)

    def required_tools(self) -> list[CommandLineTool]:
        return [self.tool]

    def before_resolution(self, definition_files: list[str]) -> None:
        self.tool.check_version(self.analyzer_config.ignore_tool_versions)

    def resolve_dependencies(self, definition_file: str) -> ProjectAnalyzerResult | None:
        working_dir = os.path.dirname(definition_file)
        with stash_directories(os.path.join(working_dir, "node_modules")):
            self.require_lockfile(definition_file, has_yarn_lockfile(working_dir))
            self.tool.run(working_dir, "install", "--ignore-scripts", "--frozen-lockfile")
            packages = self.resolver.parse_installed_modules(working_dir)
            scopes = self.resolver.build_scopes(working_dir)
            return self.resolver.parse_project(
                definition_file, self.relative_path(definition_file), scopes, packages.values()
            )
