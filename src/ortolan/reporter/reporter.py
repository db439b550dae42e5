# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the reporters that write the evaluated model to disk files."""

import abc
import logging
import os

from ortolan.errors import ModelSerializationError
from ortolan.reporter.evaluated_model import EvaluatedModel
from ortolan.reporter.evaluated_model_mapper import EvaluatedModelMapper, ReporterInput

logger: logging.Logger = logging.getLogger(__name__)


class FileReporter(abc.ABC):
    """The reporter that handles writing data to disk files."""

    #: The name of the file the reporter writes.
    file_name: str = ""

    def __init__(self, mode: str = "w", encoding: str = "utf-8"):
        """Initialize instance.

        Parameters
        ----------
        mode : str, optional
            The mode to open the target files, by default "w".
        encoding : str, optional
            The encoding used to handle disk files, by default "utf-8".
        """
        self.mode = mode
        self.encoding = encoding

    def write_file(self, file_path: str, data: str) -> bool:
        """Write the data into a file.

        Parameters
        ----------
        file_path : str
            The path to the target file.
        data : str
            The data to write into the file.

        Returns
        -------
        bool
            True if succeeded else False.
        """
        try:
            with open(file_path, mode=self.mode, encoding=self.encoding) as file:
                logger.info("Writing to file %s", file_path)
                file.write(data)
                return True
        except OSError as error:
            logger.error("Cannot write to %s. Error: %s", file_path, error)
            return False

    @abc.abstractmethod
    def serialize(self, model: EvaluatedModel) -> str:
        """Return the text of the report for ``model``."""

    def generate(self, target_dir: str, reporter_input: ReporterInput) -> str | None:
        """Build the evaluated model for ``reporter_input`` and write it into ``target_dir``.

        Parameters
        ----------
        target_dir : str
            The directory to store the output file in.
        reporter_input : ReporterInput
            The result and resolutions to report.

        Returns
        -------
        str | None
            The path of the written file, or None if it could not be written.
        """
        model = EvaluatedModelMapper(reporter_input).build()
        try:
            data = self.serialize(model)
        except ModelSerializationError as error:
            logger.critical("Cannot serialize the evaluated model: %s", error)
            return None

        os.makedirs(target_dir, exist_ok=True)
        file_path = os.path.join(target_dir, self.file_name)
        return file_path if self.write_file(file_path, data) else None


class EvaluatedModelJsonReporter(FileReporter):
    """Writes the evaluated model as JSON."""

    file_name = "evaluated-model.json"

    def __init__(self, mode: str = "w", encoding: str = "utf-8", indent: int = 2):
        super().__init__(mode, encoding)
        self.indent = indent

    def serialize(self, model: EvaluatedModel) -> str:
        return model.to_json(indent=self.indent)


class EvaluatedModelYamlReporter(FileReporter):
    """Writes the evaluated model as YAML."""

    file_name = "evaluated-model.yml"

    def serialize(self, model: EvaluatedModel) -> str:
        return model.to_yaml()


REPORTERS: dict[str, type[FileReporter]] = {
    "json": EvaluatedModelJsonReporter,
    "yaml": EvaluatedModelYamlReporter,
}
