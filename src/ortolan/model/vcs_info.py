# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the data types describing version control information."""

from dataclasses import dataclass
from typing import ClassVar


class VcsType:
    """The names of the version control systems known to ortolan.

    A type that is not known is kept verbatim, so the information is never lost.
    """

    NONE = ""
    GIT = "Git"
    GIT_REPO = "GitRepo"
    MERCURIAL = "Mercurial"
    SUBVERSION = "Subversion"
    CVS = "CVS"

    KNOWN_TYPES: ClassVar[dict[str, str]] = {
        "git": GIT,
        "gitrepo": GIT_REPO,
        "git-repo": GIT_REPO,
        "repo": GIT_REPO,
        "hg": MERCURIAL,
        "mercurial": MERCURIAL,
        "svn": SUBVERSION,
        "subversion": SUBVERSION,
        "cvs": CVS,
    }

    @classmethod
    def for_name(cls, name: str) -> str:
        """Return the canonical name of the VCS type, or ``name`` unchanged if it is not known."""
        return cls.KNOWN_TYPES.get(name.strip().lower(), name.strip())

    @classmethod
    def is_known(cls, name: str) -> bool:
        """Return True if ``name`` denotes a known VCS type."""
        return name.strip().lower() in cls.KNOWN_TYPES


@dataclass(frozen=True)
class VcsInfo:
    """The version control information of a project or package.

    ``VcsInfo.EMPTY`` means the information is unknown. It does not mean that the code is verified to
    not be under version control.
    """

    #: The VCS type, see ``VcsType``.
    type: str

    #: The URL to clone the repository from.
    url: str

    #: The revision, which can be a branch, a tag or a commit.
    revision: str

    #: The path inside the repository the information refers to.
    path: str = ""

    EMPTY: ClassVar["VcsInfo"]

    def merge(self, other: "VcsInfo") -> "VcsInfo":
        """Fill the blank fields of this object with the values from ``other``.

        Parameters
        ----------
        other : VcsInfo
            The information to take missing values from.

        Returns
        -------
        VcsInfo
            The merged information.
        """
        if self == VcsInfo.EMPTY:
            return other

        return VcsInfo(
            type=self.type or other.type,
            url=self.url or other.url,
            revision=self.revision or other.revision,
            path=self.path or other.path,
        )

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"type": self.type, "url": self.url, "revision": self.revision, "path": self.path}

    @classmethod
    def from_dict(cls, data: dict | None) -> "VcsInfo":
        """Create an object from its serialized form."""
        if not data:
            return cls.EMPTY
        return cls(
            type=data.get("type") or "",
            url=data.get("url") or "",
            revision=data.get("revision") or "",
            path=data.get("path") or "",
        )


VcsInfo.EMPTY = VcsInfo("", "", "", "")
