# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This is the main entrypoint to run ortolan."""

import argparse
import logging
import os
import sys
from importlib import metadata as importlib_metadata

from rich.console import Console
from rich.table import Table

import ortolan
from ortolan.analyzer.analyzer import Analyzer
from ortolan.analyzer.curation_provider import PackageCurationProvider
from ortolan.analyzer.managers import PACKAGE_MANAGERS, managers_by_name
from ortolan.analyzer.package_manager import AnalyzerConfiguration
from ortolan.config.defaults import create_defaults, defaults, load_defaults
from ortolan.config.global_config import global_config
from ortolan.config.repository_config import (
    find_repository_configuration,
    get_repository_path_excludes,
    load_package_curations,
    load_path_excludes,
    load_repository_configuration,
    load_resolutions,
    merge_path_excludes,
    write_path_excludes,
    write_repository_configuration,
)
from ortolan.database.disk_cache import DiskCaches
from ortolan.errors import CommandLineToolError, ConfigurationError, ModelSerializationError, ToolVersionError
from ortolan.model.issue import Severity
from ortolan.model.ort_result import OrtResult
from ortolan.reporter.evaluated_model_mapper import ReporterInput
from ortolan.reporter.reporter import REPORTERS
from ortolan.reporter.resolution_provider import DefaultResolutionProvider

logger: logging.Logger = logging.getLogger(__name__)

#: Set in the exit status of ``requirements`` if a tool has an unsupported or unknown version.
EXIT_UNSUPPORTED_VERSION = 2

#: Set in the exit status of ``requirements`` if a tool is not in the PATH.
EXIT_TOOL_MISSING = 4


def analyze(analyze_args: argparse.Namespace) -> int:
    """Resolve the dependencies of all projects below the input directory and write the result file.

    Returns
    -------
    int
        os.EX_OK on success, 1 if error issues were recorded, or the corresponding error code on failure.
    """
    if not os.path.isdir(analyze_args.input_dir):
        logger.error("The input directory %s does not exist.", analyze_args.input_dir)
        return os.EX_USAGE

    names = analyze_args.package_managers or defaults.get_list("analyzer", "package_managers", fallback=[])
    try:
        managers = managers_by_name([name for value in names for name in value.split(",") if name])
    except ValueError as error:
        logger.error(error)
        return os.EX_USAGE

    try:
        analyzer_config = AnalyzerConfiguration.load()
        repo_config = find_repository_configuration(
            analyze_args.input_dir, analyze_args.repository_configuration_file
        )
        curations = (
            load_package_curations(analyze_args.package_curations_file)
            if analyze_args.package_curations_file
            else []
        )
    except ConfigurationError as error:
        logger.error(error)
        return os.EX_CONFIG

    analyzer = Analyzer(
        analyzer_config,
        repo_config=repo_config,
        curation_provider=PackageCurationProvider(curations),
        caches=DiskCaches.create(global_config.output_path),
    )
    try:
        ort_result = analyzer.analyze(analyze_args.input_dir, managers)
    except ToolVersionError as error:
        logger.error(error)
        return os.EX_UNAVAILABLE
    except ConfigurationError as error:
        logger.error(error)
        return os.EX_CONFIG

    extension = "json" if analyze_args.output_format == "json" else "yml"
    result_path = os.path.join(global_config.output_path, f"analyzer-result.{extension}")
    try:
        ort_result.save(result_path)
    except ModelSerializationError as error:
        logger.error(error)
        return os.EX_CANTCREAT

    analyzer_result = ort_result.get_analyzer_result()
    errors = [
        issue
        for issues in analyzer_result.collect_issues().values()
        for issue in issues
        if issue.severity == Severity.ERROR
    ]
    logger.info(
        "Found %d projects and %d packages. %d errors were recorded.",
        len(analyzer_result.projects),
        len(analyzer_result.packages),
        len(errors),
    )
    return 1 if errors else os.EX_OK


def report(report_args: argparse.Namespace) -> int:
    """Write the evaluated model of a result file.

    Returns
    -------
    int
        os.EX_OK if successful or the corresponding error code on failure.
    """
    try:
        ort_result = OrtResult.load(report_args.ort_file)
    except ModelSerializationError as error:
        logger.error(error)
        return os.EX_NOINPUT

    try:
        if report_args.repository_configuration_file:
            ort_result.repository.config = load_repository_configuration(report_args.repository_configuration_file)
        extra_resolutions = load_resolutions(report_args.resolutions_file) if report_args.resolutions_file else None
        if report_args.package_curations_file:
            provider = PackageCurationProvider(load_package_curations(report_args.package_curations_file))
            analyzer_result = ort_result.get_analyzer_result()
            analyzer_result.packages = [provider.apply(curated) for curated in analyzer_result.packages]
    except ConfigurationError as error:
        logger.error(error)
        return os.EX_CONFIG

    reporter_input = ReporterInput(ort_result, DefaultResolutionProvider.create(ort_result, extra_resolutions))
    reporter = REPORTERS[report_args.report_format]()
    if reporter.generate(global_config.output_path, reporter_input) is None:
        return os.EX_CANTCREAT
    return os.EX_OK


def requirements(_: argparse.Namespace) -> int:
    """Print the external tools of all package managers and whether they are available in a supported version.

    Returns
    -------
    int
        os.EX_OK if all tools are available, else the bits ``EXIT_UNSUPPORTED_VERSION`` and ``EXIT_TOOL_MISSING``.
    """
    analyzer_config = AnalyzerConfiguration(ignore_tool_versions=False, allow_dynamic_versions=False)
    status = os.EX_OK

    table = Table(title="Required command line tools")
    table.add_column("Package manager", justify="left")
    table.add_column("Command", justify="left")
    table.add_column("Required version", justify="left")
    table.add_column("Found version", justify="left")
    table.add_column("Status", justify="left")

    try:
        managers = [manager_class(os.getcwd(), analyzer_config) for manager_class in PACKAGE_MANAGERS]
        for manager in managers:
            for tool in manager.required_tools():
                requirement = tool.get_version_requirement()
                required = str(requirement) or "any"
                if not tool.is_in_path():
                    status |= EXIT_TOOL_MISSING
                    table.add_row(manager.name, tool.command(), required, "", "[bold red]NOT FOUND[/]")
                    continue
                try:
                    actual = tool.get_version()
                except CommandLineToolError as error:
                    logger.debug("Cannot get the version of %s: %s", tool.name, error)
                    status |= EXIT_UNSUPPORTED_VERSION
                    table.add_row(manager.name, tool.command(), required, "unknown", "[bold yellow]UNKNOWN[/]")
                    continue
                if tool.is_satisfied(requirement, actual):
                    table.add_row(manager.name, tool.command(), required, actual, "[bold green]OK[/]")
                else:
                    status |= EXIT_UNSUPPORTED_VERSION
                    table.add_row(manager.name, tool.command(), required, actual, "[bold yellow]UNSUPPORTED[/]")
    except ConfigurationError as error:
        logger.error(error)
        return os.EX_CONFIG

    Console().print(table)
    if status != os.EX_OK:
        logger.error("Not all tools were found in their required versions.")
    return status


def export_path_excludes(export_args: argparse.Namespace) -> int:
    """Merge the path excludes of a result into a path excludes file keyed by repository URL.

    Returns
    -------
    int
        os.EX_OK if successful or the corresponding error code on failure.
    """
    try:
        ort_result = OrtResult.load(export_args.ort_file)
    except ModelSerializationError as error:
        logger.error(error)
        return os.EX_NOINPUT

    try:
        if export_args.repository_configuration_file:
            ort_result.repository.config = load_repository_configuration(export_args.repository_configuration_file)
        merged = merge_path_excludes(
            load_path_excludes(export_args.path_excludes_file),
            get_repository_path_excludes(ort_result),
            update_only_existing=export_args.update_only_existing,
        )
        write_path_excludes(export_args.path_excludes_file, merged)
    except ConfigurationError as error:
        logger.error(error)
        return os.EX_CONFIG
    logger.info("Wrote the path excludes to %s.", export_args.path_excludes_file)
    return os.EX_OK


def sort_repository_configuration(sort_args: argparse.Namespace) -> int:
    """Sort the entries of a repository configuration file in place.

    Returns
    -------
    int
        os.EX_OK if successful or the corresponding error code on failure.
    """
    try:
        config = load_repository_configuration(sort_args.repository_configuration_file)
        write_repository_configuration(sort_args.repository_configuration_file, config.sort_entries())
    except ConfigurationError as error:
        logger.error(error)
        return os.EX_CONFIG
    return os.EX_OK


def perform_action(action_args: argparse.Namespace) -> None:
    """Perform the indicated action of ortolan."""
    match action_args.action:
        case "dump-defaults":
            # Create the defaults.ini file in the output dir and exit.
            if not create_defaults(action_args.output_dir, os.getcwd()):
                sys.exit(os.EX_CANTCREAT)
            sys.exit(os.EX_OK)

        case "analyze":
            sys.exit(analyze(action_args))

        case "report":
            sys.exit(report(action_args))

        case "requirements":
            sys.exit(requirements(action_args))

        case "export-path-excludes":
            sys.exit(export_path_excludes(action_args))

        case "sort-repository-configuration":
            sys.exit(sort_repository_configuration(action_args))

        case _:
            logger.error("ortolan does not support command option %s.", action_args.action)
            sys.exit(os.EX_USAGE)


def main(argv: list[str] | None = None) -> None:
    """Execute ortolan as a standalone command-line tool.

    Parameters
    ----------
    argv: list[str] | None
        Command-line arguments.
        If ``argv`` is ``None``, argparse automatically looks at ``sys.argv``.
        Hence, we set ``argv = None`` by default.
    """
    main_parser = argparse.ArgumentParser(prog="ortolan")

    main_parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {importlib_metadata.version('ortolan')}",
        help="Show ortolan's version number and exit",
    )

    main_parser.add_argument(
        "-v",
        "--verbose",
        help="Run ortolan with more debug logs",
        action="store_true",
    )

    main_parser.add_argument(
        "-o",
        "--output-dir",
        default=os.path.join(os.getcwd(), "output"),
        help="The output destination path for ortolan",
    )

    main_parser.add_argument(
        "-dp",
        "--defaults-path",
        default="",
        help="The path to the defaults configuration file.",
    )

    # Add sub parsers for each action.
    sub_parser = main_parser.add_subparsers(dest="action", help="Run ortolan <action> --help for help")

    # Resolve the dependencies of a directory.
    analyze_parser = sub_parser.add_parser(name="analyze")

    analyze_parser.add_argument(
        "-i",
        "--input-dir",
        required=True,
        type=str,
        help="The directory to analyze.",
    )

    analyze_parser.add_argument(
        "-m",
        "--package-managers",
        action="append",
        type=str,
        help=(
            "The comma-separated names of the package managers to enable, e.g. 'NPM,PIP'. "
            "By default the package managers of the [analyzer] section of the defaults configuration are enabled."
        ),
    )

    analyze_parser.add_argument(
        "--repository-configuration-file",
        required=False,
        type=str,
        help="The repository configuration to use instead of the .ort.yml file in the input directory.",
    )

    analyze_parser.add_argument(
        "--package-curations-file",
        required=False,
        type=str,
        help="A file with package curations applied after those of the repository configuration.",
    )

    analyze_parser.add_argument(
        "-f",
        "--output-format",
        choices=["yaml", "json"],
        default="yaml",
        help="The format of the analyzer result file.",
    )

    # Create the evaluated model from a result file.
    report_parser = sub_parser.add_parser(name="report")

    report_parser.add_argument("--ort-file", required=True, type=str, help="The analyzer result file.")

    report_parser.add_argument(
        "-f",
        "--report-format",
        choices=sorted(REPORTERS),
        default="json",
        help="The format of the evaluated model.",
    )

    report_parser.add_argument(
        "--repository-configuration-file",
        required=False,
        type=str,
        help="The repository configuration to use instead of the one stored in the result file.",
    )

    report_parser.add_argument(
        "--resolutions-file",
        required=False,
        type=str,
        help="A file with issue and rule violation resolutions in addition to those of the repository configuration.",
    )

    report_parser.add_argument(
        "--package-curations-file",
        required=False,
        type=str,
        help="A file with package curations applied to the packages of the result file.",
    )

    # Check the external tools.
    sub_parser.add_parser(name="requirements", description="Lists the required command line tools.")

    # Export the path excludes.
    export_parser = sub_parser.add_parser(
        name="export-path-excludes",
        description="Exports the path excludes of a result to a file which maps repository URLs to path excludes.",
    )
    export_parser.add_argument("--ort-file", required=True, type=str, help="The analyzer result file.")
    export_parser.add_argument(
        "--path-excludes-file", required=True, type=str, help="The path excludes file to update."
    )
    export_parser.add_argument(
        "--repository-configuration-file",
        required=False,
        type=str,
        help="The repository configuration to use instead of the one stored in the result file.",
    )
    export_parser.add_argument(
        "--update-only-existing",
        action="store_true",
        help="Only update the entries whose pattern already exists in the path excludes file.",
    )

    # Sort a repository configuration.
    sort_parser = sub_parser.add_parser(
        name="sort-repository-configuration",
        description="Sorts the excludes, resolutions and curations of a repository configuration file in place.",
    )
    sort_parser.add_argument("repository_configuration_file", type=str, help="The file to sort.")

    # Dump the default values.
    sub_parser.add_parser(name="dump-defaults", description="Dumps the defaults.ini file to the output directory.")

    args = main_parser.parse_args(argv)

    if not args.action:
        main_parser.print_help()
        sys.exit(os.EX_USAGE)

    if args.verbose:
        log_level = logging.DEBUG
        log_format = "%(asctime)s [%(name)s:%(funcName)s:%(lineno)d] [%(levelname)s] %(message)s"
    else:
        log_level = logging.INFO
        log_format = "%(asctime)s [%(levelname)s] %(message)s"

    # Set global logging config. We need the stream handler for the initial
    # output directory checking log messages.
    st_handler = logging.StreamHandler(sys.stdout)
    logging.basicConfig(format=log_format, handlers=[st_handler], force=True, level=log_level)

    # Set the output directory.
    if not args.output_dir:
        logger.error("The output path cannot be empty. Exiting ...")
        sys.exit(os.EX_USAGE)

    if os.path.isfile(args.output_dir):
        logger.error("The output directory already exists. Exiting ...")
        sys.exit(os.EX_USAGE)

    if os.path.isdir(args.output_dir):
        logger.info("Setting the output directory to %s", os.path.relpath(args.output_dir, os.getcwd()))
    else:
        logger.info("No directory at %s. Creating one ...", os.path.relpath(args.output_dir, os.getcwd()))
        os.makedirs(args.output_dir)

    # Add file handler to the root logger. Remove stream handler from the
    # root logger to prevent dependencies printing logs to stdout.
    debug_log_path = os.path.join(args.output_dir, "debug.log")
    log_file_handler = logging.FileHandler(debug_log_path, "w")
    log_file_handler.setFormatter(logging.Formatter(log_format))
    logging.getLogger().removeHandler(st_handler)
    logging.getLogger().addHandler(log_file_handler)

    # Add StreamHandler to the ortolan logger only.
    ortolan_logger = logging.getLogger("ortolan")
    ortolan_logger.addHandler(st_handler)

    logger.info("The logs will be stored in debug.log")

    global_config.load(
        ortolan_path=ortolan.ORTOLAN_PATH,
        output_path=args.output_dir,
        debug_level=log_level,
        resources_path=os.path.join(ortolan.ORTOLAN_PATH, "resources"),
    )

    # Load the default values from defaults.ini files.
    if not load_defaults(args.defaults_path):
        logger.error("Exiting because the defaults configuration could not be loaded.")
        sys.exit(os.EX_NOINPUT)

    perform_action(args)


if __name__ == "__main__":
    main()
