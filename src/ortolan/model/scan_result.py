# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the data types produced by external scanners.

Scanners are not invoked by ortolan. Their results are read from an ``OrtResult`` file.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from ortolan.model.identifier import Identifier
from ortolan.model.issue import OrtIssue, parse_timestamp
from ortolan.model.remote_artifact import RemoteArtifact
from ortolan.model.vcs_info import VcsInfo


@dataclass(frozen=True)
class TextLocation:
    """A line range in a file."""

    path: str
    start_line: int
    end_line: int

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"path": self.path, "start_line": self.start_line, "end_line": self.end_line}

    @classmethod
    def from_dict(cls, data: dict) -> "TextLocation":
        """Create an object from its serialized form."""
        return cls(path=data["path"], start_line=int(data.get("start_line", 0)), end_line=int(data.get("end_line", 0)))


@dataclass(frozen=True)
class LicenseFinding:
    """A license detected at a location."""

    license: str
    location: TextLocation

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"license": self.license, "location": self.location.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "LicenseFinding":
        """Create an object from its serialized form."""
        return cls(license=data["license"], location=TextLocation.from_dict(data["location"]))


@dataclass(frozen=True)
class CopyrightFinding:
    """A copyright statement detected at a location."""

    statement: str
    location: TextLocation

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"statement": self.statement, "location": self.location.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "CopyrightFinding":
        """Create an object from its serialized form."""
        return cls(statement=data["statement"], location=TextLocation.from_dict(data["location"]))


@dataclass(frozen=True)
class Provenance:
    """The origin of the scanned source code, either an artifact or a VCS checkout."""

    source_artifact: RemoteArtifact | None = None
    vcs_info: VcsInfo | None = None

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        result = {}
        if self.source_artifact is not None:
            result["source_artifact"] = self.source_artifact.to_dict()
        if self.vcs_info is not None:
            result["vcs_info"] = self.vcs_info.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict | None) -> "Provenance":
        """Create an object from its serialized form."""
        data = data or {}
        return cls(
            source_artifact=RemoteArtifact.from_dict(data["source_artifact"]) if "source_artifact" in data else None,
            vcs_info=VcsInfo.from_dict(data["vcs_info"]) if "vcs_info" in data else None,
        )


@dataclass(frozen=True)
class ScannerDetails:
    """The name, version and configuration of a scanner."""

    name: str
    version: str
    configuration: str = ""

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"name": self.name, "version": self.version, "configuration": self.configuration}

    @classmethod
    def from_dict(cls, data: dict) -> "ScannerDetails":
        """Create an object from its serialized form."""
        return cls(
            name=data.get("name") or "",
            version=str(data.get("version") or ""),
            configuration=data.get("configuration") or "",
        )


@dataclass
class ScanSummary:
    """The findings of a scan."""

    start_time: datetime
    end_time: datetime
    file_count: int = 0
    package_verification_code: str = ""
    license_findings: list[LicenseFinding] = field(default_factory=list)
    copyright_findings: list[CopyrightFinding] = field(default_factory=list)
    issues: list[OrtIssue] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "file_count": self.file_count,
            "package_verification_code": self.package_verification_code,
            "licenses": [finding.to_dict() for finding in self.license_findings],
            "copyrights": [finding.to_dict() for finding in self.copyright_findings],
            "issues": [issue.to_dict() for issue in self.issues],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScanSummary":
        """Create an object from its serialized form."""
        return cls(
            start_time=parse_timestamp(data.get("start_time")),
            end_time=parse_timestamp(data.get("end_time")),
            file_count=int(data.get("file_count") or 0),
            package_verification_code=data.get("package_verification_code") or "",
            license_findings=[LicenseFinding.from_dict(item) for item in data.get("licenses") or []],
            copyright_findings=[CopyrightFinding.from_dict(item) for item in data.get("copyrights") or []],
            issues=[OrtIssue.from_dict(item) for item in data.get("issues") or []],
        )


@dataclass
class ScanResult:
    """The result of scanning one provenance with one scanner."""

    provenance: Provenance
    scanner: ScannerDetails
    summary: ScanSummary

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "provenance": self.provenance.to_dict(),
            "scanner": self.scanner.to_dict(),
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScanResult":
        """Create an object from its serialized form."""
        return cls(
            provenance=Provenance.from_dict(data.get("provenance")),
            scanner=ScannerDetails.from_dict(data.get("scanner") or {}),
            summary=ScanSummary.from_dict(data.get("summary") or {}),
        )


@dataclass
class ScannerRun:
    """The scan results of all scanned projects and packages."""

    results: dict[Identifier, list[ScanResult]] = field(default_factory=dict)
    start_time: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    end_time: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "results": {
                owner.to_coordinates(): [result.to_dict() for result in results]
                for owner, results in self.results.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScannerRun":
        """Create an object from its serialized form."""
        return cls(
            results={
                Identifier.from_coordinates(owner): [ScanResult.from_dict(item) for item in results]
                for owner, results in (data.get("results") or {}).items()
            },
            start_time=parse_timestamp(data.get("start_time")),
            end_time=parse_timestamp(data.get("end_time")),
        )
