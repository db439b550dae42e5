# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the Package class and the package curation types."""

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from ortolan.model.identifier import Identifier
from ortolan.model.remote_artifact import RemoteArtifact
from ortolan.model.vcs_info import VcsInfo

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Package:
    """The metadata of a resolved dependency.

    A package is created once per identifier during resolution and is not modified afterwards.
    Curations produce a new package wrapped in a ``CuratedPackage``.
    """

    id: Identifier
    declared_licenses: frozenset[str] = frozenset()
    description: str = ""
    homepage_url: str = ""
    binary_artifact: RemoteArtifact = RemoteArtifact.EMPTY
    source_artifact: RemoteArtifact = RemoteArtifact.EMPTY
    vcs: VcsInfo = VcsInfo.EMPTY
    vcs_processed: VcsInfo = VcsInfo.EMPTY
    concluded_license: str | None = None

    @property
    def purl(self) -> str:
        """Return the package URL of this package."""
        return self.id.to_purl()

    @classmethod
    def empty(cls, pkg_id: Identifier) -> "Package":
        """Return a package without any metadata."""
        return cls(id=pkg_id)

    def to_curated_package(self) -> "CuratedPackage":
        """Wrap this package without applying any curation."""
        return CuratedPackage(pkg=self)

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        result: dict[str, Any] = {
            "id": self.id.to_coordinates(),
            "purl": self.purl,
            "declared_licenses": sorted(self.declared_licenses),
            "description": self.description,
            "homepage_url": self.homepage_url,
            "binary_artifact": self.binary_artifact.to_dict(),
            "source_artifact": self.source_artifact.to_dict(),
            "vcs": self.vcs.to_dict(),
            "vcs_processed": self.vcs_processed.to_dict(),
        }
        if self.concluded_license is not None:
            result["concluded_license"] = self.concluded_license
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Package":
        """Create an object from its serialized form."""
        return cls(
            id=Identifier.from_coordinates(data["id"]),
            declared_licenses=frozenset(data.get("declared_licenses") or []),
            description=data.get("description") or "",
            homepage_url=data.get("homepage_url") or "",
            binary_artifact=RemoteArtifact.from_dict(data.get("binary_artifact")),
            source_artifact=RemoteArtifact.from_dict(data.get("source_artifact")),
            vcs=VcsInfo.from_dict(data.get("vcs")),
            vcs_processed=VcsInfo.from_dict(data.get("vcs_processed")),
            concluded_license=data.get("concluded_license"),
        )


@dataclass(frozen=True)
class PackageCurationData:
    """The field values a curation overrides. ``None`` means the field is not touched."""

    comment: str | None = None
    concluded_license: str | None = None
    declared_licenses: frozenset[str] | None = None
    description: str | None = None
    homepage_url: str | None = None
    binary_artifact: RemoteArtifact | None = None
    source_artifact: RemoteArtifact | None = None
    vcs: VcsInfo | None = None

    def to_dict(self) -> dict:
        """Return the serializable form of this object, omitting untouched fields."""
        result: dict[str, Any] = {}
        for name in ("comment", "concluded_license", "description", "homepage_url"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.declared_licenses is not None:
            result["declared_licenses"] = sorted(self.declared_licenses)
        for name in ("binary_artifact", "source_artifact", "vcs"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "PackageCurationData":
        """Create an object from its serialized form."""
        declared = data.get("declared_licenses")
        return cls(
            comment=data.get("comment"),
            concluded_license=data.get("concluded_license"),
            declared_licenses=frozenset(declared) if declared is not None else None,
            description=data.get("description"),
            homepage_url=data.get("homepage_url"),
            binary_artifact=RemoteArtifact.from_dict(data["binary_artifact"]) if "binary_artifact" in data else None,
            source_artifact=RemoteArtifact.from_dict(data["source_artifact"]) if "source_artifact" in data else None,
            vcs=_partial_vcs(data["vcs"]) if "vcs" in data else None,
        )


def _partial_vcs(data: dict | None) -> VcsInfo:
    return VcsInfo(
        type=(data or {}).get("type") or "",
        url=(data or {}).get("url") or "",
        revision=(data or {}).get("revision") or "",
        path=(data or {}).get("path") or "",
    )


@dataclass(frozen=True)
class PackageCurationResult:
    """Records the values a curation replaced (``base``) and the curation that replaced them."""

    base: PackageCurationData
    curation: PackageCurationData

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"base": self.base.to_dict(), "curation": self.curation.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "PackageCurationResult":
        """Create an object from its serialized form."""
        return cls(
            base=PackageCurationData.from_dict(data.get("base") or {}),
            curation=PackageCurationData.from_dict(data.get("curation") or {}),
        )


@dataclass(frozen=True)
class PackageCuration:
    """A provenance-tracked override of package metadata fields.

    An identifier with an empty version applies to all versions of the package.
    """

    id: Identifier
    data: PackageCurationData

    def is_applicable(self, pkg_id: Identifier) -> bool:
        """Return True if this curation applies to the package with the given identifier."""
        return (
            self.id.type.lower() == pkg_id.type.lower()
            and self.id.namespace == pkg_id.namespace
            and self.id.name == pkg_id.name
            and (not self.id.version or self.id.version == pkg_id.version)
        )

    def apply(self, target: "CuratedPackage") -> "CuratedPackage":
        """Apply this curation to ``target`` and record the replaced values.

        Parameters
        ----------
        target : CuratedPackage
            The package to curate.

        Returns
        -------
        CuratedPackage
            A new curated package with the overridden fields and the additional curation result.

        Raises
        ------
        ValueError
            If the curation does not apply to the package.
        """
        pkg = target.pkg
        if not self.is_applicable(pkg.id):
            raise ValueError(
                f"Package curation identifier '{self.id.to_coordinates()}' does not match package identifier "
                f"'{pkg.id.to_coordinates()}'."
            )

        changes: dict[str, Any] = {}
        base: dict[str, Any] = {}
        for name in (
            "concluded_license",
            "declared_licenses",
            "description",
            "homepage_url",
            "binary_artifact",
            "source_artifact",
        ):
            value = getattr(self.data, name)
            if value is not None and value != getattr(pkg, name):
                changes[name] = value
                base[name] = getattr(pkg, name)

        if self.data.vcs is not None:
            # Fields of a VCS curation that are blank keep the original values.
            curated_vcs = self.data.vcs.merge(pkg.vcs)
            if curated_vcs != pkg.vcs:
                changes["vcs"] = curated_vcs
                changes["vcs_processed"] = curated_vcs
                base["vcs"] = pkg.vcs

        result = PackageCurationResult(base=PackageCurationData(**base), curation=self.data)
        return CuratedPackage(pkg=replace(pkg, **changes), curations=[*target.curations, result])

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"id": self.id.to_coordinates(), "curations": self.data.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "PackageCuration":
        """Create an object from its serialized form."""
        return cls(
            id=Identifier.from_coordinates(data["id"]), data=PackageCurationData.from_dict(data.get("curations") or {})
        )


@dataclass
class CuratedPackage:
    """A package together with the curations that were applied to it."""

    pkg: Package
    curations: list[PackageCurationResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"package": self.pkg.to_dict(), "curations": [curation.to_dict() for curation in self.curations]}

    @classmethod
    def from_dict(cls, data: dict) -> "CuratedPackage":
        """Create an object from its serialized form."""
        return cls(
            pkg=Package.from_dict(data["package"]),
            curations=[PackageCurationResult.from_dict(item) for item in data.get("curations") or []],
        )
