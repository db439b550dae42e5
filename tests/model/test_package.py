# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for packages and package curations."""

import pytest

from ortolan.model.identifier import Identifier
from ortolan.model.package import CuratedPackage, Package, PackageCuration, PackageCurationData
from ortolan.model.vcs_info import VcsInfo

PKG = Package(
    id=Identifier("NPM", "", "left-pad", "1.3.0"),
    declared_licenses=frozenset({"WTFPL"}),
    description="String left pad",
    vcs=VcsInfo("Git", "https://github.com/stevemao/left-pad.git", "v1.3.0"),
)


@pytest.mark.parametrize(
    ("curation_id", "expected"),
    [
        ("NPM::left-pad:1.3.0", True),
        ("NPM::left-pad:", True),
        ("npm::left-pad:1.3.0", True),
        ("NPM::left-pad:1.2.0", False),
        ("NPM:ns:left-pad:1.3.0", False),
    ],
)
def test_curation_is_applicable(curation_id: str, expected: bool) -> None:
    """Test that an empty version matches every version."""
    curation = PackageCuration(Identifier.from_coordinates(curation_id), PackageCurationData())
    assert curation.is_applicable(PKG.id) is expected


def test_apply_curation_records_the_replaced_values() -> None:
    """Test that a curation overrides fields and records the original values."""
    curation = PackageCuration(
        Identifier.from_coordinates("NPM::left-pad:"),
        PackageCurationData(
            comment="The license was relicensed.",
            declared_licenses=frozenset({"MIT"}),
            vcs=VcsInfo("", "", "1234abcd"),
        ),
    )
    curated = curation.apply(PKG.to_curated_package())

    assert curated.pkg.declared_licenses == frozenset({"MIT"})
    assert curated.pkg.description == PKG.description
    assert curated.pkg.vcs == VcsInfo("Git", "https://github.com/stevemao/left-pad.git", "1234abcd")
    assert len(curated.curations) == 1
    assert curated.curations[0].base.declared_licenses == frozenset({"WTFPL"})
    assert curated.curations[0].base.vcs == PKG.vcs
    assert curated.curations[0].curation is curation.data


def test_apply_curation_to_other_package_fails() -> None:
    """Test that applying a curation to a package it does not match raises an error."""
    curation = PackageCuration(Identifier.from_coordinates("NPM::right-pad:"), PackageCurationData())
    with pytest.raises(ValueError, match="does not match"):
        curation.apply(PKG.to_curated_package())


def test_curated_package_round_trip() -> None:
    """Test that a curated package survives serialization."""
    curation = PackageCuration(PKG.id, PackageCurationData(homepage_url="https://example.com"))
    curated = curation.apply(CuratedPackage(PKG))
    assert CuratedPackage.from_dict(curated.to_dict()) == curated
