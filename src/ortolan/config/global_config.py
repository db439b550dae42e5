# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the GlobalConfig class to be used globally."""

import logging
from dataclasses import dataclass

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class GlobalConfig:
    """Class for keeping track of global configurations."""

    #: The path to the ortolan Python package.
    ortolan_path: str = ""

    #: The path to the output files.
    output_path: str = ""

    #: The debug level.
    debug_level: int = logging.DEBUG

    #: The path to the resources directory.
    resources_path: str = ""

    def load(
        self,
        ortolan_path: str,
        output_path: str,
        debug_level: int,
        resources_path: str,
    ) -> None:
        """Initiate the GlobalConfig object.

        Parameters
        ----------
        ortolan_path : str
            The root path of the ortolan package.
        output_path : str
            Output path.
        debug_level : int
            The global debug level.
        resources_path : str
            The path to the resource files needed for the analysis, such as helper scripts and schemas.
        """
        self.ortolan_path = ortolan_path
        self.output_path = output_path
        self.debug_level = debug_level
        self.resources_path = resources_path


global_config = GlobalConfig()
