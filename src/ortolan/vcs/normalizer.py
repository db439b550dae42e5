# Copyright (c) 2024 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module turns declared version control information into canonical, clonable version control information."""

import logging
import re
from collections.abc import Callable
from dataclasses import replace
from functools import lru_cache

from ortolan.config.defaults import defaults
from ortolan.model.vcs_info import VcsInfo, VcsType
from ortolan.vcs.vcs_host import find_vcs_host, guess_vcs_type, normalize_vcs_url, to_vcs_info
from ortolan.vcs.version_control_system import for_type, get_path_info

logger: logging.Logger = logging.getLogger(__name__)

# Splits a Subversion URL into the repository URL, the branch or tag context and the path below it.
SVN_LAYOUT_PATTERN = re.compile(r"^(?P<url>.+?)/(?P<revision>trunk|branches/[^/]+|tags/[^/]+)(?:/(?P<path>.*))?$")


def normalize_vcs_info(vcs: VcsInfo) -> VcsInfo:
    """Normalize the URL of ``vcs`` and move browsing or layout parts of it to the revision and the path.

    A VCS type that is not known is kept together with all other fields as is.

    Parameters
    ----------
    vcs : VcsInfo
        The declared version control information.

    Returns
    -------
    VcsInfo
        The normalized version control information.
    """
    if vcs == VcsInfo.EMPTY:
        return vcs
    if vcs.type and not VcsType.is_known(vcs.type):
        logger.debug("Keeping the unknown VCS type %s of %s.", vcs.type, vcs.url)
        return vcs

    declared_type = VcsType.for_name(vcs.type)
    host = find_vcs_host(vcs.url)
    if host:
        info = host.to_vcs_info(vcs.url)
        return VcsInfo(
            type=declared_type or info.type,
            url=info.url,
            revision=vcs.revision or info.revision,
            path=vcs.path or info.path,
        )

    url = normalize_vcs_url(vcs.url)
    vcs_type = declared_type or guess_vcs_type(url)
    revision = vcs.revision
    path = vcs.path

    if vcs_type == VcsType.SUBVERSION and not revision:
        match = SVN_LAYOUT_PATTERN.match(url)
        if match:
            url = match.group("url")
            revision = match.group("revision")
            path = path or (match.group("path") or "").strip("/")

    return VcsInfo(type=vcs_type, url=url, revision=revision, path=path)


@lru_cache(maxsize=512)
def _is_applicable_url(vcs_type: str, url: str) -> bool:
    vcs = for_type(vcs_type)
    if vcs is None:
        return True
    return vcs.is_applicable_url(url)


def default_is_clonable(vcs: VcsInfo) -> bool:
    """Return True if the repository of ``vcs`` can be cloned from.

    The check queries the remote repository unless ``check_remote_urls`` is disabled in the ``[vcs]`` section.
    Types without a client implementation are assumed to be clonable.
    """
    if not defaults.getboolean("vcs", "check_remote_urls", fallback=True):
        return True
    return _is_applicable_url(vcs.type, vcs.url)


def process_package_vcs(
    vcs: VcsInfo,
    *fallback_urls: str,
    is_clonable: Callable[[VcsInfo], bool] | None = None,
) -> VcsInfo:
    """Produce the canonical version control information of a package.

    Parameters
    ----------
    vcs : VcsInfo
        The version control information as declared by the package.
    fallback_urls : str
        URLs to derive the information from if the declared one is not usable, e.g. the homepage.
        The first usable URL wins.
    is_clonable : Callable[[VcsInfo], bool] | None
        The predicate that decides whether a repository can be cloned from. Defaults to ``default_is_clonable``.

    Returns
    -------
    VcsInfo
        The processed version control information.
    """
    is_clonable = is_clonable or default_is_clonable
    normalized = normalize_vcs_info(vcs)

    if normalized.type and not VcsType.is_known(normalized.type):
        return normalized

    if normalized.type and normalized.url and is_clonable(normalized):
        return normalized

    for url in fallback_urls:
        if not url:
            continue
        candidate = to_vcs_info(url)
        if not candidate.type:
            continue
        if normalized.type and candidate.type != normalized.type:
            continue
        if not is_clonable(candidate):
            continue
        logger.debug("Using %s derived from %s instead of the declared %s.", candidate.url, url, vcs.url)
        return replace(candidate, revision=candidate.revision or normalized.revision)

    return normalized


def process_project_vcs(project_dir: str, vcs: VcsInfo = VcsInfo.EMPTY, *fallback_urls: str) -> VcsInfo:
    """Produce the canonical version control information of a project located in ``project_dir``.

    The state of the working tree containing ``project_dir`` takes precedence over the declared information.

    Parameters
    ----------
    project_dir : str
        The directory of the definition file.
    vcs : VcsInfo
        The version control information as declared by the project.
    fallback_urls : str
        URLs to derive the information from if there is no working tree.

    Returns
    -------
    VcsInfo
        The processed version control information.
    """
    working_tree = get_path_info(project_dir)
    if working_tree == VcsInfo.EMPTY:
        return process_package_vcs(vcs, *fallback_urls)
    return normalize_vcs_info(working_tree).merge(normalize_vcs_info(vcs))
