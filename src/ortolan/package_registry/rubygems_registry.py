# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""The module provides abstractions for the RubyGems package registry."""

import logging

from requests.models import Response

from ortolan.config.defaults import defaults
from ortolan.database.disk_cache import DiskCache
from ortolan.errors import ConfigurationError
from ortolan.package_registry.package_registry import PackageRegistry
from ortolan.util import send_get_http_raw

logger: logging.Logger = logging.getLogger(__name__)


class RubyGemsRegistry(PackageRegistry):
    """This class implements the RubyGems package registry through its v2 API.

    The API answers with "502 Bad Gateway" from time to time, so these responses are retried. A "429 Too Many
    Requests" response is not retried.
    """

    section_name = "package_registry.rubygems"

    def __init__(
        self,
        url: str | None = None,
        request_timeout: int | None = None,
        enabled: bool = True,
        cache: DiskCache | None = None,
        bad_gateway_retries: int = 3,
        bad_gateway_backoff: float = 0.1,
    ) -> None:
        super().__init__("RubyGems", url or "https://rubygems.org/api/v2/rubygems", request_timeout, enabled, cache)
        self.bad_gateway_retries = bad_gateway_retries
        self.bad_gateway_backoff = bad_gateway_backoff

    def load_defaults(self) -> None:
        """Load the .ini configuration for the RubyGems registry.

        Raises
        ------
        ConfigurationError
            If there is a schema violation in the ``package_registry.rubygems`` section.
        """
        super().load_defaults()
        if not self.enabled:
            return
        section = defaults[self.section_name]
        try:
            self.bad_gateway_retries = section.getint("bad_gateway_retries", fallback=self.bad_gateway_retries)
            self.bad_gateway_backoff = section.getfloat("bad_gateway_backoff", fallback=self.bad_gateway_backoff)
        except ValueError as error:
            raise ConfigurationError(
                f"The retry configuration in section [{self.section_name}] "
                f"of the .ini configuration file is invalid: {error}"
            ) from error

    def send_request(self, url: str) -> Response | None:
        return send_get_http_raw(
            url,
            headers=None,
            timeout=self.request_timeout,
            error_retries=self.bad_gateway_retries,
            retry_backoff=self.bad_gateway_backoff,
            retry_status_codes=(502,),
        )

    def get_gem_details(self, name: str, version: str) -> dict | None:
        """Return the metadata of one version of a gem.

        Parameters
        ----------
        name: str
            The name of the gem.
        version: str
            The version of the gem.

        Returns
        -------
        dict | None
            The metadata, or None if the registry is disabled or does not know the gem version.

        Raises
        ------
        RateLimitError
            If the registry rejects the request because of its rate limit.
        InvalidHTTPResponseError
            If the HTTP request to the registry fails or an unexpected response is returned.
        """
        if not self.enabled:
            return None
        return self.download_json(f"{self.url}/{name}/versions/{version}.json")
