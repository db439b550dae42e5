# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module provides utility functions for JSON data read from manifests and registries."""

import json
import logging
from collections.abc import Sequence
from typing import TypeVar

JsonType = int | float | str | None | bool | list["JsonType"] | dict[str, "JsonType"]
T = TypeVar("T", bound=JsonType)

logger: logging.Logger = logging.getLogger(__name__)


def json_extract(entry: dict | list, keys: Sequence[str | int], type_: type[T]) -> T | None:
    """Return the value found by following the depth-sequential ``keys`` inside the JSON ``entry``.

    Parameters
    ----------
    entry: dict | list
        An entry point into a JSON structure.
    keys: Sequence[str | int]
        The sequence of depth-sequential keys within the JSON. Can be dict keys or list indices.
    type_: type[T]
        The type to check the value against and return it as.

    Returns
    -------
    T | None:
        The found value, or None if a key is missing or the value has another type.

    Examples
    --------
    >>> json_extract({"dist": {"shasum": "abc"}}, ["dist", "shasum"], str)
    'abc'
    >>> json_extract({"dist": ["abc"]}, ["dist", 1], str) is None
    True
    """
    value: JsonType = entry
    for key in keys:
        if isinstance(value, dict) and isinstance(key, str):
            if key not in value:
                return None
            value = value[key]
        elif isinstance(value, list) and isinstance(key, int):
            if not 0 <= key < len(value):
                return None
            value = value[key]
        else:
            logger.debug("Cannot index '%s' (type: %s) in entry (type: %s).", key, type(key), type(value))
            return None

    if isinstance(value, type_):
        return value
    return None


def json_text(entry: dict | list, *keys: str | int) -> str:
    """Return the stripped text at ``keys``, or an empty string if there is no text there."""
    return (json_extract(entry, keys, str) or "").strip()


def read_json_file(path: str) -> dict:
    """Read the JSON object stored in ``path``.

    Raises
    ------
    ValueError
        If the file does not contain a JSON object.
    OSError
        If the file cannot be read.
    """
    with open(path, encoding="utf-8") as file:
        content = json.load(file)
    if not isinstance(content, dict):
        raise ValueError(f"{path} does not contain a JSON object.")
    return content
