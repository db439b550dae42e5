# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the loader for YAML configuration files."""

import logging
import os
from typing import Any

import yamale
from yamale.schema import Schema
from yaml import YAMLError

from ortolan import ORTOLAN_PATH
from ortolan.config.global_config import global_config

logger: logging.Logger = logging.getLogger(__name__)


class YamlLoader:
    """The loader for the repository configuration, curation and resolution files."""

    @staticmethod
    def _load_yaml_content(path: os.PathLike | str) -> list:
        """Load the documents of a file with yamale, which uses PyYAML to parse them.

        Errors are logged with the position in the file where the parser stopped.

        Parameters
        ----------
        path : os.PathLike | str
            The path to the YAML file.

        Returns
        -------
        list
            The ``(data, path)`` tuples returned by yamale, or an empty list if the file cannot be read.
        """
        try:
            logger.debug("Loading yaml from file %s", path)
            return list(yamale.make_data(path))
        except YAMLError as error:
            abs_path = os.path.abspath(path)
            mark = getattr(error, "problem_mark", None)
            if mark is not None:
                logger.error("Cannot read the YAML file %s:%s:%s", abs_path, mark.line + 1, mark.column + 1)
            else:
                logger.error("Cannot read the YAML file %s", abs_path)
            return []
        except FileNotFoundError:
            logger.error("Cannot find file %s.", path)
            return []

    @classmethod
    def validate_yaml_data(cls, schema: Schema, data: list) -> bool:
        """Validate the data loaded by ``yamale.make_data`` against ``schema``.

        Returns
        -------
        bool
            True if the data is valid else False. The violations are logged.
        """
        try:
            yamale.validate(schema, data)
            return True
        except yamale.YamaleError as error:
            logger.error("YAML data validation failed.")
            for result in error.results:
                for err_str in result.errors:
                    logger.error("\t%s", err_str)
            return False

    @staticmethod
    def load_schema(name: str) -> Schema:
        """Return the yamale schema stored as ``resources/schemas/<name>.yaml``."""
        resources_path = global_config.resources_path or os.path.join(ORTOLAN_PATH, "resources")
        return yamale.make_schema(os.path.join(resources_path, "schemas", f"{name}.yaml"))

    @classmethod
    def load(cls, path: os.PathLike | str, schema: Schema | None = None) -> Any:
        """Load and return a Python object from a YAML file.

        If ``schema`` is provided, the loaded content is validated against it.

        Parameters
        ----------
        path : os.PathLike | str
            The path to the YAML file.
        schema : Schema | None
            The schema to validate the content against.

        Returns
        -------
        Any
            The Python object from the YAML file, an empty dict for an empty file, or None if errors.
        """
        logger.info("Loading yaml content for %s", path)
        loaded_data = cls._load_yaml_content(path=path)
        if not loaded_data:
            return None

        # An empty document is valid and means that nothing is configured.
        loaded_data = [(data if data is not None else {}, data_path) for data, data_path in loaded_data]

        if schema and not cls.validate_yaml_data(schema, loaded_data):
            logger.error("The YAML content in %s is invalid according to the schema.", path)
            return None

        # yamale.make_data returns a list of (data, path) tuples.
        for data, data_path in loaded_data:
            if data_path == path:
                return data
        return loaded_data[0][0]
