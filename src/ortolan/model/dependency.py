# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the dependency tree types: PackageReference and Scope."""

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue


class PackageLinkage(str, Enum):
    """How a dependency is linked to the package or project that depends on it."""

    DYNAMIC = "DYNAMIC"
    STATIC = "STATIC"
    PROJECT_DYNAMIC = "PROJECT_DYNAMIC"
    PROJECT_STATIC = "PROJECT_STATIC"


@dataclass
class PackageReference:
    """A node in a dependency tree.

    The children form an ordered set: a child identifier occurs at most once per node and the order
    of insertion is kept. The same identifier can still occur in other branches as a different node.
    """

    id: Identifier
    linkage: PackageLinkage = PackageLinkage.DYNAMIC
    dependencies: list["PackageReference"] = field(default_factory=list)
    issues: list[OrtIssue] = field(default_factory=list)

    def add_dependency(self, reference: "PackageReference") -> bool:
        """Add ``reference`` as a child unless a child with the same identifier exists.

        Returns
        -------
        bool
            True if the child was added.
        """
        return add_unique_reference(self.dependencies, reference)

    def walk(self) -> Iterator[tuple["PackageReference", int]]:
        """Yield all descendants of this node together with their depth, where direct children have depth 0."""
        stack = [(child, 0) for child in reversed(self.dependencies)]
        while stack:
            node, depth = stack.pop()
            yield node, depth
            stack.extend((child, depth + 1) for child in reversed(node.dependencies))

    def collect_dependencies(self, max_depth: int = -1) -> dict[Identifier, None]:
        """Return the identifiers of all descendants, in depth-first order.

        Parameters
        ----------
        max_depth : int
            The maximum depth to descend to, where 0 means only the direct children. -1 means no limit.

        Returns
        -------
        dict[Identifier, None]
            The identifiers as an insertion-ordered set.
        """
        return {node.id: None for node, depth in self.walk() if max_depth < 0 or depth <= max_depth}

    def collect_issues(self) -> dict[Identifier, list[OrtIssue]]:
        """Return the issues of this node and all descendants, grouped by identifier."""
        result: dict[Identifier, list[OrtIssue]] = {}
        if self.issues:
            result.setdefault(self.id, []).extend(self.issues)
        for node, _ in self.walk():
            if node.issues:
                result.setdefault(node.id, []).extend(node.issues)
        return result

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        result: dict = {"id": self.id.to_coordinates()}
        if self.linkage != PackageLinkage.DYNAMIC:
            result["linkage"] = self.linkage.value
        if self.dependencies:
            result["dependencies"] = [child.to_dict() for child in self.dependencies]
        if self.issues:
            result["issues"] = [issue.to_dict() for issue in self.issues]
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "PackageReference":
        """Create an object from its serialized form."""
        return cls(
            id=Identifier.from_coordinates(data["id"]),
            linkage=PackageLinkage(data.get("linkage", PackageLinkage.DYNAMIC.value)),
            dependencies=[cls.from_dict(child) for child in data.get("dependencies") or []],
            issues=[OrtIssue.from_dict(issue) for issue in data.get("issues") or []],
        )


def add_unique_reference(references: list[PackageReference], reference: PackageReference) -> bool:
    """Append ``reference`` to ``references`` unless an entry with the same identifier exists."""
    if any(existing.id == reference.id for existing in references):
        return False
    references.append(reference)
    return True


@dataclass
class Scope:
    """A named group of dependencies, e.g. "dependencies" or "devDependencies"."""

    name: str
    dependencies: list[PackageReference] = field(default_factory=list)

    def walk(self) -> Iterator[tuple[PackageReference, int]]:
        """Yield all nodes of the scope with their depth, where the direct dependencies have depth 0."""
        for root in self.dependencies:
            yield root, 0
            for node, depth in root.walk():
                yield node, depth + 1

    def collect_dependencies(self, max_depth: int = -1) -> dict[Identifier, None]:
        """Return the identifiers of all dependencies of this scope as an insertion-ordered set."""
        return {node.id: None for node, depth in self.walk() if max_depth < 0 or depth <= max_depth}

    def get_shortest_paths(self) -> dict[Identifier, list[Identifier]]:
        """Return the shortest path from the scope root to every dependency.

        A path lists the identifiers of the parents, starting with a direct dependency. Direct dependencies
        have an empty path. If several paths have the same length, the one found first in declaration order
        is used.

        Returns
        -------
        dict[Identifier, list[Identifier]]
            The mapping from each dependency to its shortest path.
        """
        result: dict[Identifier, list[Identifier]] = {}
        queue: deque[tuple[PackageReference, list[Identifier]]] = deque((root, []) for root in self.dependencies)
        while queue:
            node, parents = queue.popleft()
            if node.id in result:
                continue
            result[node.id] = parents
            child_parents = [*parents, node.id]
            queue.extend((child, child_parents) for child in node.dependencies)
        return result

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"name": self.name, "dependencies": [reference.to_dict() for reference in self.dependencies]}

    @classmethod
    def from_dict(cls, data: dict) -> "Scope":
        """Create an object from its serialized form."""
        return cls(
            name=data["name"],
            dependencies=[PackageReference.from_dict(item) for item in data.get("dependencies") or []],
        )
