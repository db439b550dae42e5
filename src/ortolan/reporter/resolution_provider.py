# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the provider of issue and rule violation resolutions."""

from ortolan.model.issue import OrtIssue
from ortolan.model.ort_result import OrtResult
from ortolan.model.repository_configuration import IssueResolution, Resolutions, RuleViolationResolution
from ortolan.model.rule_violation import RuleViolation


class DefaultResolutionProvider:
    """Provides the resolutions of the repository configuration merged with those of a resolutions file."""

    def __init__(self, resolutions: Resolutions | None = None) -> None:
        self.resolutions = resolutions or Resolutions()

    @classmethod
    def create(cls, ort_result: OrtResult, extra: Resolutions | None = None) -> "DefaultResolutionProvider":
        """Create a provider for the resolutions of ``ort_result`` and the optional ``extra`` resolutions."""
        resolutions = ort_result.repository.config.resolutions
        return cls(resolutions.merge(extra) if extra else resolutions)

    def get_issue_resolutions_for(self, issue: OrtIssue) -> list[IssueResolution]:
        """Return every resolution that matches ``issue``."""
        return [resolution for resolution in self.resolutions.issues if resolution.matches(issue)]

    def get_rule_violation_resolutions_for(self, violation: RuleViolation) -> list[RuleViolationResolution]:
        """Return every resolution that matches ``violation``."""
        return [resolution for resolution in self.resolutions.rule_violations if resolution.matches(violation)]
