# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the Identifier class which names projects and packages."""

import logging
from dataclasses import dataclass
from typing import ClassVar

from packageurl import PackageURL

logger: logging.Logger = logging.getLogger(__name__)

#: Maps identifier types to the corresponding package URL types.
PURL_TYPES: dict[str, str] = {
    "bower": "bower",
    "bundler": "gem",
    "gem": "gem",
    "npm": "npm",
    "yarn": "npm",
    "pip": "pypi",
    "pypi": "pypi",
}


@dataclass(frozen=True, order=True)
class Identifier:
    """The unique identifier of a project or package.

    Two identifiers are equal only if all four fields are equal. The comparison is case-sensitive.
    """

    #: The type of the package manager or ecosystem, e.g. "NPM" or "PyPI".
    type: str

    #: The namespace, e.g. the npm scope without the "@" or an empty string.
    namespace: str

    #: The name of the project or package.
    name: str

    #: The version, empty if unknown.
    version: str

    EMPTY: ClassVar["Identifier"]

    @classmethod
    def from_coordinates(cls, coordinates: str) -> "Identifier":
        """Create an identifier from a string of the form ``type:namespace:name:version``.

        Missing trailing components are treated as empty strings.

        Parameters
        ----------
        coordinates : str
            The colon-separated coordinates.

        Returns
        -------
        Identifier
            The parsed identifier.
        """
        parts = coordinates.split(":", 3)
        parts += [""] * (4 - len(parts))
        return cls(*parts)

    def to_coordinates(self) -> str:
        """Return the colon-separated coordinates of this identifier."""
        return f"{self.type}:{self.namespace}:{self.name}:{self.version}"

    def to_purl(self) -> str:
        """Return the package URL of this identifier, or an empty string if the identifier has no name.

        Returns
        -------
        str
            The package URL string.
        """
        if not self.name or not self.type:
            return ""

        purl_type = PURL_TYPES.get(self.type.lower(), self.type.lower())
        namespace = self.namespace or None

        try:
            return str(PackageURL(type=purl_type, namespace=namespace, name=self.name, version=self.version or None))
        except ValueError as error:
            logger.debug("Cannot create a package URL for %s: %s", self.to_coordinates(), error)
            return ""

    def __str__(self) -> str:
        return self.to_coordinates()


Identifier.EMPTY = Identifier("", "", "", "")
