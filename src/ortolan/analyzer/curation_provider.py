# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the provider of package curations."""

import logging
from collections.abc import Iterable

from ortolan.model.identifier import Identifier
from ortolan.model.package import CuratedPackage, PackageCuration

logger: logging.Logger = logging.getLogger(__name__)


class PackageCurationProvider:
    """Provides the curations that apply to a package, in the order they were given."""

    def __init__(self, curations: Iterable[PackageCuration] = ()) -> None:
        self.curations = list(curations)

    def get_curations_for(self, pkg_id: Identifier) -> list[PackageCuration]:
        """Return the curations applicable to the package ``pkg_id``."""
        return [curation for curation in self.curations if curation.is_applicable(pkg_id)]

    def apply(self, package: CuratedPackage) -> CuratedPackage:
        """Apply all curations for ``package`` one after another."""
        result = package
        for curation in self.get_curations_for(package.pkg.id):
            logger.debug("Applying a curation to %s.", package.pkg.id.to_coordinates())
            result = curation.apply(result)
        return result
