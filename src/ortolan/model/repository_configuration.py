# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the repository configuration: excludes, resolutions and curations."""

import functools
import logging
import re
from dataclasses import dataclass, field

from ortolan.model.dependency import Scope
from ortolan.model.issue import OrtIssue
from ortolan.model.package import PackageCuration
from ortolan.model.project import Project
from ortolan.model.rule_violation import RuleViolation

logger: logging.Logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a glob pattern for "/"-separated paths into a compiled regular expression.

    ``**`` matches any number of directories, ``*`` matches within a single path segment and ``?``
    matches a single character other than "/".

    Parameters
    ----------
    pattern : str
        The glob pattern.

    Returns
    -------
    re.Pattern
        The regular expression that must match the whole path.

    Examples
    --------
    >>> bool(glob_to_regex("test/**").fullmatch("test/resources/package.json"))
    True
    >>> bool(glob_to_regex("*.json").fullmatch("sub/package.json"))
    False
    """
    result = []
    index = 0
    while index < len(pattern):
        if pattern.startswith("**/", index):
            result.append("(?:.*/)?")
            index += 3
        elif pattern.startswith("/**", index) and index + 3 == len(pattern):
            result.append("(?:/.*)?")
            index += 3
        elif pattern.startswith("**", index):
            result.append(".*")
            index += 2
        elif pattern[index] == "*":
            result.append("[^/]*")
            index += 1
        elif pattern[index] == "?":
            result.append("[^/]")
            index += 1
        else:
            result.append(re.escape(pattern[index]))
            index += 1
    return re.compile("".join(result))


@dataclass(frozen=True)
class PathExclude:
    """Excludes the files whose paths match a glob pattern."""

    pattern: str
    reason: str
    comment: str = ""

    def matches(self, path: str) -> bool:
        """Return True if the "/"-separated relative ``path`` matches the pattern."""
        return glob_to_regex(self.pattern).fullmatch(path.replace("\\", "/").lstrip("/")) is not None

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"pattern": self.pattern, "reason": self.reason, "comment": self.comment}

    @classmethod
    def from_dict(cls, data: dict) -> "PathExclude":
        """Create an object from its serialized form."""
        return cls(pattern=data["pattern"], reason=data["reason"], comment=data.get("comment") or "")


@dataclass(frozen=True)
class ScopeExclude:
    """Excludes the scopes whose names match a regular expression."""

    pattern: str
    reason: str
    comment: str = ""

    def matches(self, scope_name: str) -> bool:
        """Return True if the regular expression matches the whole ``scope_name``.

        A pattern that is not a valid regular expression only matches the identical name.
        """
        try:
            return re.fullmatch(self.pattern, scope_name) is not None
        except re.error:
            logger.debug("The scope exclude '%s' is not a valid regular expression, comparing literally.", self.pattern)
            return self.pattern == scope_name

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"pattern": self.pattern, "reason": self.reason, "comment": self.comment}

    @classmethod
    def from_dict(cls, data: dict) -> "ScopeExclude":
        """Create an object from its serialized form."""
        return cls(pattern=data["pattern"], reason=data["reason"], comment=data.get("comment") or "")


@dataclass
class Excludes:
    """The path and scope excludes of a repository."""

    paths: list[PathExclude] = field(default_factory=list)
    scopes: list[ScopeExclude] = field(default_factory=list)

    def find_path_excludes(self, project: Project) -> list[PathExclude]:
        """Return the path excludes that match the definition file of ``project``."""
        return [exclude for exclude in self.paths if exclude.matches(project.definition_file_path)]

    def find_scope_excludes(self, scope: Scope) -> list[ScopeExclude]:
        """Return the scope excludes that match the name of ``scope``."""
        return [exclude for exclude in self.scopes if exclude.matches(scope.name)]

    def is_project_excluded(self, project: Project) -> bool:
        """Return True if any path exclude matches the definition file of ``project``."""
        return bool(self.find_path_excludes(project))

    def is_scope_excluded(self, scope: Scope) -> bool:
        """Return True if any scope exclude matches ``scope``."""
        return bool(self.find_scope_excludes(scope))

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "paths": [exclude.to_dict() for exclude in self.paths],
            "scopes": [exclude.to_dict() for exclude in self.scopes],
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Excludes":
        """Create an object from its serialized form."""
        data = data or {}
        return cls(
            paths=[PathExclude.from_dict(item) for item in data.get("paths") or []],
            scopes=[ScopeExclude.from_dict(item) for item in data.get("scopes") or []],
        )


def _message_matches(pattern: str, message: str) -> bool:
    try:
        return re.search(pattern, message) is not None
    except re.error:
        logger.debug("The resolution message '%s' is not a valid regular expression, comparing literally.", pattern)
        return pattern in message


@dataclass(frozen=True)
class IssueResolution:
    """Resolves the issues whose message contains a match of a regular expression."""

    message: str
    reason: str
    comment: str = ""

    def matches(self, issue: OrtIssue) -> bool:
        """Return True if this resolution applies to ``issue``."""
        return _message_matches(self.message, issue.message)

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"message": self.message, "reason": self.reason, "comment": self.comment}

    @classmethod
    def from_dict(cls, data: dict) -> "IssueResolution":
        """Create an object from its serialized form."""
        return cls(message=data["message"], reason=data["reason"], comment=data.get("comment") or "")


@dataclass(frozen=True)
class RuleViolationResolution:
    """Resolves the rule violations whose message contains a match of a regular expression."""

    message: str
    reason: str
    comment: str = ""

    def matches(self, violation: RuleViolation) -> bool:
        """Return True if this resolution applies to ``violation``."""
        return _message_matches(self.message, violation.message)

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"message": self.message, "reason": self.reason, "comment": self.comment}

    @classmethod
    def from_dict(cls, data: dict) -> "RuleViolationResolution":
        """Create an object from its serialized form."""
        return cls(message=data["message"], reason=data["reason"], comment=data.get("comment") or "")


@dataclass
class Resolutions:
    """The issue and rule violation resolutions of a repository."""

    issues: list[IssueResolution] = field(default_factory=list)
    rule_violations: list[RuleViolationResolution] = field(default_factory=list)

    def merge(self, other: "Resolutions") -> "Resolutions":
        """Return the resolutions of both objects without duplicates, keeping the order."""
        return Resolutions(
            issues=list(dict.fromkeys([*self.issues, *other.issues])),
            rule_violations=list(dict.fromkeys([*self.rule_violations, *other.rule_violations])),
        )

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "issues": [resolution.to_dict() for resolution in self.issues],
            "rule_violations": [resolution.to_dict() for resolution in self.rule_violations],
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Resolutions":
        """Create an object from its serialized form."""
        data = data or {}
        return cls(
            issues=[IssueResolution.from_dict(item) for item in data.get("issues") or []],
            rule_violations=[RuleViolationResolution.from_dict(item) for item in data.get("rule_violations") or []],
        )


@dataclass
class RepositoryConfiguration:
    """The configuration stored in a repository, usually in a ``.ort.yml`` file."""

    excludes: Excludes = field(default_factory=Excludes)
    resolutions: Resolutions = field(default_factory=Resolutions)
    curations: list[PackageCuration] = field(default_factory=list)

    def sort_entries(self) -> "RepositoryConfiguration":
        """Return a copy with all excludes, resolutions and curations sorted alphabetically."""
        return RepositoryConfiguration(
            excludes=Excludes(
                paths=sorted(self.excludes.paths, key=lambda item: (item.pattern, item.reason)),
                scopes=sorted(self.excludes.scopes, key=lambda item: (item.pattern, item.reason)),
            ),
            resolutions=Resolutions(
                issues=sorted(self.resolutions.issues, key=lambda item: (item.message, item.reason)),
                rule_violations=sorted(self.resolutions.rule_violations, key=lambda item: (item.message, item.reason)),
            ),
            curations=sorted(self.curations, key=lambda item: item.id),
        )

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "excludes": self.excludes.to_dict(),
            "resolutions": self.resolutions.to_dict(),
            "curations": {"packages": [curation.to_dict() for curation in self.curations]},
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "RepositoryConfiguration":
        """Create an object from its serialized form."""
        data = data or {}
        return cls(
            excludes=Excludes.from_dict(data.get("excludes")),
            resolutions=Resolutions.from_dict(data.get("resolutions")),
            curations=[PackageCuration.from_dict(item) for item in (data.get("curations") or {}).get("packages") or []],
        )
