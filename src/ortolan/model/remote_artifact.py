# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the data types describing remote artifacts and their checksums."""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import ClassVar

logger: logging.Logger = logging.getLogger(__name__)

#: Maps the length of a hex digest to the name of the algorithm that produces it.
HEX_LENGTH_ALGORITHMS: dict[int, str] = {
    32: "MD5",
    40: "SHA-1",
    64: "SHA-256",
    96: "SHA-384",
    128: "SHA-512",
}

#: Maps the prefixes of Subresource Integrity strings to algorithm names.
SRI_ALGORITHMS: dict[str, str] = {
    "sha1": "SHA-1",
    "sha256": "SHA-256",
    "sha384": "SHA-384",
    "sha512": "SHA-512",
}


@dataclass(frozen=True)
class Hash:
    """A checksum together with the name of the algorithm that created it."""

    value: str
    algorithm: str

    NONE: ClassVar["Hash"]

    @classmethod
    def create(cls, value: str) -> "Hash":
        """Create a hash from a hex digest or a Subresource Integrity string like ``sha512-<base64>``.

        The algorithm is guessed from the length of a hex digest. An empty value gives ``Hash.NONE``.

        Parameters
        ----------
        value : str
            The hash value.

        Returns
        -------
        Hash
            The hash with the detected algorithm, which is "UNKNOWN" if it cannot be detected.
        """
        value = value.strip()
        if not value:
            return cls.NONE

        prefix, _, encoded = value.partition("-")
        if encoded and prefix.lower() in SRI_ALGORITHMS:
            try:
                digest = base64.b64decode(encoded, validate=True).hex()
                return cls(digest, SRI_ALGORITHMS[prefix.lower()])
            except (binascii.Error, ValueError):
                logger.debug("Cannot decode the integrity string %s.", value)

        return cls(value.lower(), HEX_LENGTH_ALGORITHMS.get(len(value), "UNKNOWN"))

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"value": self.value, "algorithm": self.algorithm}

    @classmethod
    def from_dict(cls, data: dict | None) -> "Hash":
        """Create an object from its serialized form."""
        if not data or not data.get("value"):
            return cls.NONE
        return cls(data["value"], data.get("algorithm") or "UNKNOWN")


Hash.NONE = Hash("", "")


@dataclass(frozen=True)
class RemoteArtifact:
    """A remote artifact such as a source archive or a binary package.

    ``RemoteArtifact.EMPTY`` means that the artifact is unknown, which is different from an artifact
    that is known not to exist.
    """

    url: str
    hash: Hash

    EMPTY: ClassVar["RemoteArtifact"]

    def to_dict(self) -> dict:
        """Return the serializable form of this object."""
        return {"url": self.url, "hash": self.hash.to_dict()}

    @classmethod
    def from_dict(cls, data: dict | None) -> "RemoteArtifact":
        """Create an object from its serialized form."""
        if not data:
            return cls.EMPTY
        return cls(url=data.get("url") or "", hash=Hash.from_dict(data.get("hash")))


RemoteArtifact.EMPTY = RemoteArtifact("", Hash.NONE)
