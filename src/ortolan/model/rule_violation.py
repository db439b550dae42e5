# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the rule violations reported by an external evaluator."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from ortolan.model.identifier import Identifier
from ortolan.model.issue import Severity, parse_timestamp


class LicenseSource(str, Enum):
    """Where a license that violates a rule was found."""

    DECLARED = "DECLARED"
    DETECTED = "DETECTED"
    CONCLUDED = "CONCLUDED"


@dataclass(frozen=True)
class RuleViolation:
    """A violation of a policy rule by a package or project."""

    rule: str
    pkg: Identifier
    license: str | None
    license_source: LicenseSource | None
    severity: Severity
    message: str
    how_to_fix: str = ""

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "rule": self.rule,
            "pkg": self.pkg.to_coordinates(),
            "license": self.license,
            "license_source": self.license_source.value if self.license_source else None,
            "severity": self.severity.value,
            "message": self.message,
            "how_to_fix": self.how_to_fix,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RuleViolation":
        """Create an object from its serialized form."""
        source = data.get("license_source")
        return cls(
            rule=data["rule"],
            pkg=Identifier.from_coordinates(data["pkg"]),
            license=data.get("license"),
            license_source=LicenseSource(source) if source else None,
            severity=Severity(data.get("severity", Severity.ERROR.value)),
            message=data.get("message") or "",
            how_to_fix=data.get("how_to_fix") or "",
        )


@dataclass
class EvaluatorRun:
    """The rule violations found by an evaluator run."""

    violations: list[RuleViolation] = field(default_factory=list)
    start_time: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    end_time: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "violations": [violation.to_dict() for violation in self.violations],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EvaluatorRun":
        """Create an object from its serialized form."""
        return cls(
            violations=[RuleViolation.from_dict(item) for item in data.get("violations") or []],
            start_time=parse_timestamp(data.get("start_time")),
            end_time=parse_timestamp(data.get("end_time")),
        )
