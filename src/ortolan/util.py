# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module includes utility functions for ortolan."""

import logging
import os
import shutil
import tempfile
import time
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager

import requests
from requests.models import Response

from ortolan.config.defaults import defaults
from ortolan.errors import RateLimitError

logger: logging.Logger = logging.getLogger(__name__)

#: Status codes of transient server errors for which a request is repeated.
TRANSIENT_STATUS_CODES = (502, 503, 504)


def send_get_http_raw(
    url: str,
    headers: dict | None = None,
    timeout: int | None = None,
    error_retries: int | None = None,
    retry_backoff: float | None = None,
    retry_status_codes: Iterable[int] = TRANSIENT_STATUS_CODES,
) -> Response | None:
    """Send the GET HTTP request with the given url and headers.

    Transient server errors are retried a bounded number of times with a fixed backoff. A rate limit response
    is never retried.

    Parameters
    ----------
    url : str
        The url of the request.
    headers : dict | None
        The dict that describes the headers of the request.
    timeout: int | None
        The request timeout (optional).
    error_retries: int | None
        The number of retries for transient errors. Taken from the ``[requests]`` section if not set.
    retry_backoff: float | None
        The time in seconds to sleep before a retry. Taken from the ``[requests]`` section if not set.
    retry_status_codes: Iterable[int]
        The status codes that are considered transient.

    Returns
    -------
    Response | None
        The last response received, whatever its status code, or ``None`` if the request could not be sent.

    Raises
    ------
    RateLimitError
        If the server responds with "429 Too Many Requests".
    """
    logger.debug("GET - %s", url)
    if not timeout:
        timeout = defaults.getint("requests", "timeout", fallback=10)
    if error_retries is None:
        error_retries = defaults.getint("requests", "error_retries", fallback=3)
    if retry_backoff is None:
        retry_backoff = defaults.getfloat("requests", "retry_backoff", fallback=0.1)
    retry_status_codes = set(retry_status_codes)

    retry_counter = error_retries
    while True:
        try:
            response = requests.get(url=url, headers=headers, timeout=timeout)
        except requests.exceptions.RequestException as error:
            logger.debug(error)
            return None

        if response.status_code == 429:
            raise RateLimitError(f"The rate limit is exceeded for {url}.")

        if response.status_code not in retry_status_codes:
            return response

        logger.debug("Receiving error code %s from server.", response.status_code)
        if retry_counter <= 0:
            logger.debug("Maximum retries reached: %s", error_retries)
            return response
        retry_counter = retry_counter - 1
        time.sleep(retry_backoff)


def send_get_http(url: str, headers: dict | None = None, timeout: int | None = None) -> dict:
    """Send the GET HTTP request and return the JSON object of the response.

    Parameters
    ----------
    url : str
        The url of the request.
    headers : dict | None
        The dictionary to be included as the header of the request.
    timeout: int | None
        The request timeout (optional).

    Returns
    -------
    dict
        The response's json data or an empty dict if there is an error.
    """
    response = send_get_http_raw(url, headers=headers, timeout=timeout)
    if response is None or response.status_code != 200:
        return {}
    try:
        data = response.json()
    except requests.exceptions.JSONDecodeError as error:
        logger.debug("The response from %s is not valid JSON: %s", url, error)
        return {}
    return data if isinstance(data, dict) else {}


def get_patched_env(patch: Mapping[str, str | None]) -> dict[str, str]:
    """Return a copy of ``os.environ`` updated according to ``patch``.

    A ``None`` value removes the variable from the copy. ``os.environ`` itself is not modified.
    """
    env = dict(os.environ)
    for var, value in patch.items():
        if value is None:
            env.pop(var, None)
        else:
            env[var] = value
    return env


@contextmanager
def stash_directories(*directories: str) -> Iterator[None]:
    """Move the existing ``directories`` out of the way and restore them when the context is left.

    Package managers install into directories like ``node_modules`` that may already be present in the
    analyzed tree. Whatever is created in their place during the context is deleted afterwards.

    Parameters
    ----------
    directories : str
        The directories to stash. Directories that do not exist are ignored.

    Yields
    ------
    None
    """
    stashed: dict[str, str] = {}
    try:
        for directory in directories:
            if not os.path.isdir(directory):
                continue
            stash_dir = tempfile.mkdtemp(prefix="ortolan-stash-", dir=os.path.dirname(os.path.abspath(directory)))
            target = os.path.join(stash_dir, os.path.basename(directory))
            logger.debug("Temporarily moving directory %s to %s.", directory, target)
            os.rename(directory, target)
            stashed[directory] = target
        yield
    finally:
        for directory, target in stashed.items():
            if os.path.isdir(directory):
                shutil.rmtree(directory)
            logger.debug("Moving directory %s back to %s.", target, directory)
            os.rename(target, directory)
            os.rmdir(os.path.dirname(target))
