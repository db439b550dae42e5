# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Fixtures for tests."""

from collections.abc import Iterator
from pathlib import Path

import pytest

import ortolan
from ortolan.config.defaults import defaults, load_defaults
from ortolan.config.global_config import global_config

# We need to pass fixture names as arguments to maintain an order.
# pylint: disable=redefined-outer-name


@pytest.fixture()
def test_dir() -> Path:
    """Set the root test_dir path.

    Returns
    -------
    Path
        The root path to the test directory.
    """
    return Path(__file__).parent


@pytest.fixture(autouse=True)
def setup_test(tmp_path: Path) -> Iterator[None]:
    """Load the packaged defaults for every test and clear them afterwards.

    Remote VCS URLs are not checked, so no test depends on the network.
    """
    load_defaults("")
    defaults.set("vcs", "check_remote_urls", "False")
    global_config.load(
        ortolan_path=ortolan.ORTOLAN_PATH,
        output_path=str(tmp_path),
        debug_level=10,
        resources_path="",
    )
    yield
    defaults.clear()
