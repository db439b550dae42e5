# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""The module provides abstractions for the pypi package registry."""

import logging

from ortolan.database.disk_cache import DiskCache
from ortolan.package_registry.package_registry import PackageRegistry

logger: logging.Logger = logging.getLogger(__name__)


class PyPIRegistry(PackageRegistry):
    """This class implements the pypi package registry through its JSON API."""

    section_name = "package_registry.pypi"

    def __init__(
        self,
        url: str | None = None,
        request_timeout: int | None = None,
        enabled: bool = True,
        cache: DiskCache | None = None,
    ) -> None:
        super().__init__("PyPI", url or "https://pypi.org/pypi", request_timeout, enabled, cache)

    def get_release_json(self, name: str, version: str) -> dict | None:
        """Return the JSON metadata of a release.

        Parameters
        ----------
        name: str
            The name of the project.
        version: str
            The version of the release.

        Returns
        -------
        dict | None
            The metadata with the ``info`` and ``urls`` objects, or None if the registry is disabled or does not
            know the release.

        Raises
        ------
        InvalidHTTPResponseError
            If the HTTP request to the registry fails or an unexpected response is returned.
        """
        if not self.enabled:
            return None
        return self.download_json(f"{self.url}/{name}/{version}/json")
