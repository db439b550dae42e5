# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the RubyGems registry."""

import os
from pathlib import Path

import pytest
from pytest_httpserver import HTTPServer

from ortolan.config.defaults import load_defaults
from ortolan.errors import ConfigurationError, InvalidHTTPResponseError, RateLimitError
from ortolan.package_registry.rubygems_registry import RubyGemsRegistry

RAKE = {"name": "rake", "version": "13.0.6", "licenses": ["MIT"]}


@pytest.fixture(name="rubygems_registry")
def create_rubygems_registry(httpserver: HTTPServer) -> RubyGemsRegistry:
    """Create a RubyGems registry instance that talks to the test server without waiting between retries."""
    return RubyGemsRegistry(url=httpserver.url_for("/api/v2/rubygems"), bad_gateway_retries=2, bad_gateway_backoff=0)


def test_load_defaults(tmp_path: Path) -> None:
    """Test reading the retry configuration."""
    config_path = os.path.join(tmp_path, "config.ini")
    with open(config_path, mode="w", encoding="utf-8") as config_file:
        config_file.write("[package_registry.rubygems]\nbad_gateway_retries = 5\nbad_gateway_backoff = 0.5\n")
    load_defaults(config_path)

    registry = RubyGemsRegistry()
    registry.load_defaults()
    assert registry.url == "https://rubygems.org/api/v2/rubygems"
    assert registry.bad_gateway_retries == 5
    assert registry.bad_gateway_backoff == 0.5


def test_invalid_retry_configuration(tmp_path: Path) -> None:
    """Test that an invalid retry count is rejected."""
    config_path = os.path.join(tmp_path, "config.ini")
    with open(config_path, mode="w", encoding="utf-8") as config_file:
        config_file.write("[package_registry.rubygems]\nbad_gateway_retries = many\n")
    load_defaults(config_path)

    with pytest.raises(ConfigurationError):
        RubyGemsRegistry().load_defaults()


def test_get_gem_details(rubygems_registry: RubyGemsRegistry, httpserver: HTTPServer) -> None:
    """Test reading the metadata of a gem version."""
    httpserver.expect_request("/api/v2/rubygems/rake/versions/13.0.6.json").respond_with_json(RAKE)
    assert rubygems_registry.get_gem_details("rake", "13.0.6") == RAKE


def test_bad_gateway_is_retried(rubygems_registry: RubyGemsRegistry, httpserver: HTTPServer) -> None:
    """Test that a "502 Bad Gateway" answer is retried."""
    path = "/api/v2/rubygems/rake/versions/13.0.6.json"
    httpserver.expect_ordered_request(path).respond_with_data("Bad Gateway", status=502)
    httpserver.expect_ordered_request(path).respond_with_json(RAKE)

    assert rubygems_registry.get_gem_details("rake", "13.0.6") == RAKE
    assert len(httpserver.log) == 2


def test_bad_gateway_retries_exhausted(rubygems_registry: RubyGemsRegistry, httpserver: HTTPServer) -> None:
    """Test that the registry gives up after the configured number of retries."""
    httpserver.expect_request("/api/v2/rubygems/rake/versions/13.0.6.json").respond_with_data("", status=502)

    with pytest.raises(InvalidHTTPResponseError):
        rubygems_registry.get_gem_details("rake", "13.0.6")
    assert len(httpserver.log) == 3


def test_rate_limit(rubygems_registry: RubyGemsRegistry, httpserver: HTTPServer) -> None:
    """Test that a rate limit answer is reported and not retried."""
    httpserver.expect_request("/api/v2/rubygems/rake/versions/13.0.6.json").respond_with_data("", status=429)

    with pytest.raises(RateLimitError):
        rubygems_registry.get_gem_details("rake", "13.0.6")
    assert len(httpserver.log) == 1


def test_unknown_gem(rubygems_registry: RubyGemsRegistry, httpserver: HTTPServer) -> None:
    """Test that an unknown gem version gives no metadata."""
    httpserver.expect_request("/api/v2/rubygems/nope/versions/1.0.json").respond_with_data("", status=404)
    assert rubygems_registry.get_gem_details("nope", "1.0") is None
