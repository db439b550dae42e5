# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module defines package registries."""

import json
import logging
from abc import ABC

import requests
from requests.models import Response

from ortolan.config.defaults import defaults
from ortolan.database.disk_cache import DiskCache
from ortolan.errors import ConfigurationError, InvalidHTTPResponseError
from ortolan.util import send_get_http_raw

logger: logging.Logger = logging.getLogger(__name__)


class PackageRegistry(ABC):
    """Base package registry class.

    The JSON documents of a registry are read through the HTTP cache when one is given.
    """

    #: The section of the .ini configuration of this registry.
    section_name: str = ""

    def __init__(
        self,
        name: str,
        url: str | None = None,
        request_timeout: int | None = None,
        enabled: bool = True,
        cache: DiskCache | None = None,
    ) -> None:
        self.name = name
        self.url = (url or "").rstrip("/")
        self.request_timeout = request_timeout or 10
        self.enabled = enabled
        self.cache = cache

    def load_defaults(self) -> None:
        """Load the .ini configuration for the current package registry.

        Raises
        ------
        ConfigurationError
            If there is a schema violation in the section of the registry.
        """
        if not defaults.has_section(self.section_name):
            self.enabled = False
            return
        section = defaults[self.section_name]

        if not section.getboolean("enabled", fallback=True):
            self.enabled = False
            logger.debug("%s is disabled in section [%s] of the .ini configuration file.", self.name, self.section_name)
            return

        url = section.get("url")
        if not url:
            raise ConfigurationError(
                f'The "url" key is missing in section [{self.section_name}] of the .ini configuration file.'
            )
        self.url = url.rstrip("/")

        try:
            self.request_timeout = section.getint("request_timeout", fallback=10)
        except ValueError as error:
            raise ConfigurationError(
                f'The "request_timeout" value in section [{self.section_name}] '
                f"of the .ini configuration file is invalid: {error}",
            ) from error

    def send_request(self, url: str) -> Response | None:
        """Send the GET request for ``url``."""
        return send_get_http_raw(url, headers=None, timeout=self.request_timeout)

    def download_json(self, url: str) -> dict | None:
        """Download the JSON object at ``url``.

        Parameters
        ----------
        url: str
            The URL of the JSON document.

        Returns
        -------
        dict | None
            The JSON object, or None if the registry does not know the requested document.

        Raises
        ------
        InvalidHTTPResponseError
            If the HTTP request to the registry fails or an unexpected response is returned.
        """
        if self.cache:
            cached = self.cache.get(url)
            if cached is not None:
                try:
                    content = json.loads(cached)
                except json.JSONDecodeError:
                    logger.debug("Ignoring the invalid cache entry for %s.", url)
                else:
                    if isinstance(content, dict):
                        return content

        response = self.send_request(url)
        if response is None:
            raise InvalidHTTPResponseError(f"Unable to send the request to {url}.")
        if response.status_code == 404:
            logger.debug("%s does not exist.", url)
            return None
        if response.status_code != 200:
            raise InvalidHTTPResponseError(f"{self.name} returned the status code {response.status_code} for {url}.")

        try:
            res_obj = response.json()
        except requests.exceptions.JSONDecodeError as error:
            raise InvalidHTTPResponseError(f"Failed to process the response from {self.name} for {url}.") from error
        if not isinstance(res_obj, dict):
            raise InvalidHTTPResponseError(f"Unexpected response returned by {url}.")

        if self.cache:
            self.cache.put(url, response.text)
        return res_obj
