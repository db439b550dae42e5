# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the Identifier class."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ortolan.model.identifier import Identifier

# Coordinates are colon-separated, so only the version may contain colons.
components = st.text(alphabet=st.characters(blacklist_characters=":", blacklist_categories=("Cs",)))


@given(type_=components, namespace=components, name=components, version=st.text())
def test_coordinates_round_trip(type_: str, namespace: str, name: str, version: str) -> None:
    """Test that an identifier survives the conversion to coordinates and back."""
    identifier = Identifier(type_, namespace, name, version)
    assert Identifier.from_coordinates(identifier.to_coordinates()) == identifier


@given(fields=st.tuples(components, components, components, components), index=st.integers(0, 3), extra=components)
def test_equality_needs_all_fields(fields: tuple[str, str, str, str], index: int, extra: str) -> None:
    """Test that identifiers are equal only if every field is equal."""
    changed = list(fields)
    changed[index] = changed[index] + "x" + extra
    assert Identifier(*fields) == Identifier(*fields)
    assert Identifier(*fields) != Identifier(*changed)
    assert hash(Identifier(*fields)) == hash(Identifier(*fields))


def test_equality_is_case_sensitive() -> None:
    """Test that the comparison of identifiers is case-sensitive."""
    assert Identifier("NPM", "", "Lodash", "4.17.21") != Identifier("NPM", "", "lodash", "4.17.21")


def test_from_short_coordinates() -> None:
    """Test that missing trailing components become empty strings."""
    assert Identifier.from_coordinates("NPM::lodash") == Identifier("NPM", "", "lodash", "")


@pytest.mark.parametrize(
    ("identifier", "expected"),
    [
        (Identifier("NPM", "babel", "core", "7.0.0"), "pkg:npm/babel/core@7.0.0"),
        (Identifier("PyPI", "", "requests", "2.31.0"), "pkg:pypi/requests@2.31.0"),
        (Identifier("Bundler", "", "rails", ""), "pkg:gem/rails"),
        (Identifier("Bower", "", "jquery", "3.1.0"), "pkg:bower/jquery@3.1.0"),
        (Identifier("NPM", "", "", "1.0.0"), ""),
    ],
)
def test_to_purl(identifier: Identifier, expected: str) -> None:
    """Test the conversion of identifiers to package URLs."""
    assert identifier.to_purl() == expected


def test_sorting() -> None:
    """Test that identifiers sort by their fields in order."""
    ids = [Identifier("NPM", "", "b", "1"), Identifier("NPM", "", "a", "2"), Identifier("Bower", "", "z", "1")]
    assert [identifier.name for identifier in sorted(ids)] == ["z", "a", "b"]
