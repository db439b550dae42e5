# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the PyPI registry."""

import pytest
from pytest_httpserver import HTTPServer

from ortolan.package_registry.pypi_registry import PyPIRegistry


@pytest.fixture(name="pypi_registry")
def create_pypi_registry(httpserver: HTTPServer) -> PyPIRegistry:
    """Create a PyPI registry instance that talks to the test server."""
    return PyPIRegistry(url=httpserver.url_for("/pypi"))


def test_get_release_json(pypi_registry: PyPIRegistry, httpserver: HTTPServer) -> None:
    """Test reading the metadata of a release."""
    release = {"info": {"name": "idna", "version": "3.4"}, "urls": []}
    httpserver.expect_request("/pypi/idna/3.4/json").respond_with_json(release)
    assert pypi_registry.get_release_json("idna", "3.4") == release


def test_unknown_release(pypi_registry: PyPIRegistry, httpserver: HTTPServer) -> None:
    """Test that an unknown release gives no metadata."""
    httpserver.expect_request("/pypi/idna/0.0.1/json").respond_with_data("Not Found", status=404)
    assert pypi_registry.get_release_json("idna", "0.0.1") is None


def test_disabled_registry(httpserver: HTTPServer) -> None:
    """Test that a disabled registry is not queried."""
    registry = PyPIRegistry(url=httpserver.url_for("/pypi"), enabled=False)
    assert registry.get_release_json("idna", "3.4") is None
    assert not httpserver.log
