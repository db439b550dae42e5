# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""The module provides abstractions for the npm package registry."""

import logging
import urllib.parse

from ortolan.database.disk_cache import DiskCache
from ortolan.json_tools import json_extract
from ortolan.package_registry.package_registry import PackageRegistry

logger: logging.Logger = logging.getLogger(__name__)


class NPMRegistry(PackageRegistry):
    """This class implements the npm package registry.

    The packument of a package, i.e. the document listing the metadata of all its versions, is available at
    ``<registry>/<name>`` where the ``/`` of a scoped name is percent-encoded.
    """

    section_name = "package_registry.npm"

    def __init__(
        self,
        url: str | None = None,
        request_timeout: int | None = None,
        enabled: bool = True,
        cache: DiskCache | None = None,
    ) -> None:
        super().__init__("npm Registry", url or "https://registry.npmjs.org", request_timeout, enabled, cache)

    def get_version_details(self, name: str, version: str) -> dict | None:
        """Return the metadata of one version of a package.

        Parameters
        ----------
        name: str
            The name of the package including its scope, e.g. ``@babel/core``.
        version: str
            The version of the package.

        Returns
        -------
        dict | None
            The metadata, or None if the registry is disabled or does not know the version.

        Raises
        ------
        InvalidHTTPResponseError
            If the HTTP request to the registry fails or an unexpected response is returned.
        """
        if not self.enabled:
            return None
        packument = self.download_json(f"{self.url}/{urllib.parse.quote(name, safe='@')}")
        if packument is None:
            return None
        details = json_extract(packument, ["versions", version], dict)
        if details is None:
            logger.debug("The npm registry has no metadata for version %s of %s.", version, name)
        return details
