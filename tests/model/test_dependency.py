# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""Tests for the dependency tree types."""

from ortolan.model.dependency import PackageLinkage, PackageReference, Scope
from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue


def npm(name: str) -> Identifier:
    """Return the identifier of an npm package in version 1.0.0."""
    return Identifier("NPM", "", name, "1.0.0")


def ref(name: str, *children: PackageReference, issues: list[OrtIssue] | None = None) -> PackageReference:
    """Return a reference to ``name`` with the given children."""
    return PackageReference(npm(name), dependencies=list(children), issues=issues or [])


def test_add_dependency_keeps_children_unique() -> None:
    """Test that a child identifier is added only once per node."""
    root = ref("root")
    assert root.add_dependency(ref("a"))
    assert not root.add_dependency(ref("a"))
    assert root.add_dependency(ref("b"))
    assert [child.id.name for child in root.dependencies] == ["a", "b"]


def test_scope_walk_and_collect() -> None:
    """Test the depth-first walk of a scope."""
    scope = Scope("dependencies", [ref("a", ref("b", ref("c"))), ref("d")])
    assert [(node.id.name, depth) for node, depth in scope.walk()] == [("a", 0), ("b", 1), ("c", 2), ("d", 0)]
    assert list(scope.collect_dependencies(max_depth=0)) == [npm("a"), npm("d")]
    assert list(scope.collect_dependencies()) == [npm("a"), npm("b"), npm("c"), npm("d")]


def test_shortest_paths() -> None:
    """Test that the shortest path to a dependency lists its parents and prefers the first path found."""
    scope = Scope(
        "dependencies",
        [
            ref("a", ref("b", ref("c"))),
            ref("d", ref("c"), ref("e")),
            ref("f", ref("e")),
        ],
    )
    paths = scope.get_shortest_paths()
    assert paths[npm("a")] == []
    assert paths[npm("b")] == [npm("a")]
    assert paths[npm("c")] == [npm("d")]
    assert paths[npm("e")] == [npm("d")]


def test_collect_issues() -> None:
    """Test that issues of all nodes are grouped by identifier."""
    issue = OrtIssue(source="NPM", message="Package 'b' was not installed.")
    root = ref("a", ref("b", issues=[issue]))
    assert root.collect_issues() == {npm("b"): [issue]}


def test_serialization_round_trip() -> None:
    """Test that a reference with linkage, children and issues survives serialization."""
    reference = PackageReference(
        npm("a"),
        linkage=PackageLinkage.PROJECT_DYNAMIC,
        dependencies=[ref("b")],
        issues=[OrtIssue(source="NPM", message="broken")],
    )
    assert PackageReference.from_dict(reference.to_dict()) == reference
    assert "linkage" not in ref("b").to_dict()
