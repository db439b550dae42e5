# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module recognizes code hosting services and turns their URLs into version control information."""

import logging
import re
import urllib.parse
from dataclasses import dataclass

from ortolan.model.vcs_info import VcsInfo, VcsType

logger: logging.Logger = logging.getLogger(__name__)

# Matches SCP-like Git URLs, e.g. "git@github.com:owner/project.git".
SCP_LIKE_URL = re.compile(r"^(?P<user>[\w.-]+)@(?P<host>[\w.-]+):(?P<path>[^/].*)$")

# Matches prefixes like "scm:git:" used in some manifests in front of the actual URL.
SCM_PREFIX = re.compile(r"^(?:scm:)?(?:git|svn|hg):(?=[a-z+]+://|[\w.-]+@)")

ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".tar.bz2", ".zip")


@dataclass(frozen=True)
class VcsHost:
    """A code hosting service whose browsing URLs can be mapped to clone URLs."""

    name: str
    hostname: str
    vcs_type: str

    #: The path segment after which the revision and the path inside the repository follow.
    browse_markers: tuple[str, ...]

    def is_applicable(self, url: str) -> bool:
        """Return True if ``url`` points to this host."""
        try:
            hostname = urllib.parse.urlparse(normalize_vcs_url(url)).hostname or ""
        except ValueError:
            return False
        return hostname == self.hostname or hostname.endswith(f".{self.hostname}")

    def to_vcs_info(self, url: str) -> VcsInfo:
        """Split a URL of this host into the clone URL, the revision and the path inside the repository.

        Parameters
        ----------
        url : str
            A clone, browsing or archive URL.

        Returns
        -------
        VcsInfo
            The version control information. The URL is returned unchanged if it does not name a repository.

        Examples
        --------
        >>> GITHUB.to_vcs_info("https://github.com/hamcrest/JavaHamcrest/hamcrest-core")
        VcsInfo(type='Git', url='https://github.com/hamcrest/JavaHamcrest.git', revision='', path='hamcrest-core')
        """
        normalized = normalize_vcs_url(url)
        parsed = urllib.parse.urlparse(normalized)
        segments = [segment for segment in parsed.path.split("/") if segment]
        if len(segments) < 2:
            return VcsInfo(type=self.vcs_type, url=normalized, revision="")

        owner = segments[0]
        project = segments[1].removesuffix(".git")
        rest = segments[2:]
        if rest and rest[0] == "-":
            rest = rest[1:]

        revision = urllib.parse.unquote(parsed.fragment)
        path = ""
        if rest and rest[0] in self.browse_markers:
            if len(rest) > 1:
                revision = rest[1]
            path = "/".join(rest[2:])
        elif rest and rest[0] == "archive" and len(rest) > 1:
            revision = rest[1]
            for suffix in ARCHIVE_SUFFIXES:
                revision = revision.removesuffix(suffix)
        else:
            path = "/".join(rest)

        return VcsInfo(
            type=self.vcs_type,
            url=f"https://{self.hostname}/{owner}/{project}.git",
            revision=revision,
            path=path,
        )


GITHUB = VcsHost("GitHub", "github.com", VcsType.GIT, ("tree", "blob"))
GITLAB = VcsHost("GitLab", "gitlab.com", VcsType.GIT, ("tree", "blob"))
BITBUCKET = VcsHost("Bitbucket", "bitbucket.org", VcsType.GIT, ("src",))

VCS_HOSTS: list[VcsHost] = [GITHUB, GITLAB, BITBUCKET]


def find_vcs_host(url: str) -> VcsHost | None:
    """Return the code hosting service ``url`` points to, if it is known."""
    return next((host for host in VCS_HOSTS if host.is_applicable(url)), None)


def normalize_vcs_url(url: str) -> str:
    """Normalize a VCS URL so that equal repositories have equal URLs.

    Prefixes like ``git+`` or ``scm:git:`` are removed and SCP-like URLs are turned into ``ssh://`` URLs.
    URLs of known code hosts always use ``https://`` without credentials or ports.

    Parameters
    ----------
    url : str
        The URL to normalize.

    Returns
    -------
    str
        The normalized URL.

    Examples
    --------
    >>> normalize_vcs_url("git+ssh://git@github.com/owner/project.git")
    'https://github.com/owner/project.git'
    >>> normalize_vcs_url("git@gitlab.com:owner/project")
    'https://gitlab.com/owner/project.git'
    """
    url = url.strip()
    if not url:
        return ""

    url = SCM_PREFIX.sub("", url)
    url = url.removeprefix("git+")

    if "://" not in url:
        match = SCP_LIKE_URL.match(url)
        if match:
            url = f"ssh://{match.group('user')}@{match.group('host')}/{match.group('path')}"

    try:
        parsed = urllib.parse.urlparse(url)
    except ValueError as error:
        logger.debug("Cannot parse the VCS URL %s: %s", url, error)
        return url

    hostname = parsed.hostname or ""
    if any(hostname == host.hostname or hostname.endswith(f".{host.hostname}") for host in VCS_HOSTS):
        path = parsed.path.rstrip("/")
        segments = [segment for segment in path.split("/") if segment]
        if len(segments) == 2 and not path.endswith(".git"):
            path = f"{path}.git"
        fragment = f"#{parsed.fragment}" if parsed.fragment else ""
        return f"https://{hostname.removeprefix('www.')}{path}{fragment}"

    return url.rstrip("/")


def guess_vcs_type(url: str) -> str:
    """Guess the VCS type from the shape of ``url``, or return ``VcsType.NONE``.

    Parameters
    ----------
    url : str
        A normalized VCS URL.

    Returns
    -------
    str
        The guessed VCS type.
    """
    host = find_vcs_host(url)
    if host:
        return host.vcs_type

    lowered = url.lower()
    if lowered.startswith(("svn://", "svn+ssh://")) or "/svn/" in lowered or "//svn." in lowered:
        return VcsType.SUBVERSION
    if lowered.startswith("git://") or lowered.endswith(".git") or "//git." in lowered:
        return VcsType.GIT
    if "//hg." in lowered or "/hg/" in lowered:
        return VcsType.MERCURIAL
    return VcsType.NONE


def to_vcs_info(url: str) -> VcsInfo:
    """Derive version control information from an arbitrary URL, e.g. a homepage or a download URL.

    Parameters
    ----------
    url : str
        The URL.

    Returns
    -------
    VcsInfo
        The information from the matching code host, or the normalized URL with a guessed type.
    """
    host = find_vcs_host(url)
    if host:
        return host.to_vcs_info(url)
    normalized = normalize_vcs_url(url)
    return VcsInfo(type=guess_vcs_type(normalized), url=normalized, revision="")
