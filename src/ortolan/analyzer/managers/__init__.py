# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""The managers package contains the supported package managers."""

from ortolan.analyzer.package_manager import PackageManager

from .bower import Bower
from .bundler import Bundler
from .npm import Npm
from .pip import Pip
from .yarn import Yarn

# The list of supported package managers. The order of the list determines which package manager claims a
# definition file that several of them could handle.
PACKAGE_MANAGERS: list[type[PackageManager]] = [
    Bower,
    Bundler,
    Npm,
    Yarn,
    Pip,
]


def managers_by_name(names: list[str]) -> list[type[PackageManager]]:
    """Return the package managers with the given names in registration order. Names are case-insensitive.

    Raises
    ------
    ValueError
        If a name does not belong to a supported package manager.

    Examples
    --------
    >>> [manager.name for manager in managers_by_name(["pip", "NPM"])]
    ['NPM', 'PIP']
    """
    wanted = {name.lower() for name in names}
    known = {manager.name.lower() for manager in PACKAGE_MANAGERS}
    unknown = sorted(wanted - known)
    if unknown:
        raise ValueError(f"Unknown package managers: {', '.join(unknown)}.")
    return [manager for manager in PACKAGE_MANAGERS if manager.name.lower() in wanted]
