# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the OrtIssue class for non-fatal problems found during a run."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

logger: logging.Logger = logging.getLogger(__name__)


class Severity(str, Enum):
    """The severity of an issue or a rule violation."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    HINT = "HINT"


@dataclass(frozen=True)
class OrtIssue:
    """A problem that was recorded instead of aborting the run."""

    #: The component that created the issue, e.g. the name of a package manager.
    source: str

    #: The description of the problem.
    message: str

    #: The severity of the problem.
    severity: Severity = Severity.ERROR

    #: The time the issue was created.
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "message": self.message,
            "severity": self.severity.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OrtIssue":
        """Create an object from its serialized form."""
        return cls(
            source=data.get("source", ""),
            message=data.get("message", ""),
            severity=Severity(data.get("severity", Severity.ERROR.value)),
            timestamp=parse_timestamp(data.get("timestamp")),
        )


def create_and_log_issue(
    source: str, message: str, severity: Severity = Severity.ERROR, log: logging.Logger = logger
) -> OrtIssue:
    """Create an issue and log its message with the matching log level.

    Parameters
    ----------
    source : str
        The component that creates the issue.
    message : str
        The description of the problem.
    severity : Severity
        The severity of the problem.
    log : logging.Logger
        The logger of the calling module.

    Returns
    -------
    OrtIssue
        The created issue.
    """
    level = {Severity.ERROR: logging.ERROR, Severity.WARNING: logging.WARNING, Severity.HINT: logging.INFO}[severity]
    log.log(level, "%s: %s", source, message)
    return OrtIssue(source=source, message=message, severity=severity)


def parse_timestamp(value: str | datetime | None) -> datetime:
    """Return the timestamp for a serialized value, which YAML loaders may already have converted.

    A missing value gives the current time.
    """
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now(tz=timezone.utc)
    return datetime.fromisoformat(value)
