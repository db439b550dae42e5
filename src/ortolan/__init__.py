# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module initializes the necessary components for the ortolan package."""

import os

# The version of this package.
__version__ = "0.1.0"

# The path to the ortolan package.
ORTOLAN_PATH = os.path.dirname(os.path.abspath(__file__))
