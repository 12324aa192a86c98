"""Install decision engine.

Classifies how an installed package relates to a candidate package. Version
codes are trusted first since they are expected to grow monotonically;
version names are only a tie-break or fallback.
"""

import logging
import re
from typing import Optional

from packaging.version import Version

from apkdeploy.deploy.base import InstallState, PackageVersion

logger = logging.getLogger(__name__)

_VERSION_PREFIX_RE = re.compile(r'(\d+)(?:\.(\d+))?(?:\.(\d+))?')


def coerce_version(version_name: Optional[str]) -> Optional[Version]:
    """
    Coerce a free-form version name into a comparable version.

    Takes the first "major[.minor[.patch]]" run of digits, with missing
    components treated as 0, so "v2.1-beta (build 7)" becomes 2.1.0.

    Returns:
        Version, or None if the name contains no digits at all
    """
    if not isinstance(version_name, str):
        return None
    match = _VERSION_PREFIX_RE.search(version_name)
    if not match:
        return None
    major, minor, patch = (int(part or 0) for part in match.groups())
    return Version(f"{major}.{minor}.{patch}")


def _compare_names(candidate: Version, installed: Version) -> InstallState:
    if installed > candidate:
        return InstallState.NEWER_VERSION_INSTALLED
    if installed == candidate:
        return InstallState.SAME_VERSION_INSTALLED
    return InstallState.OLDER_VERSION_INSTALLED


def classify(candidate: PackageVersion, installed: Optional[PackageVersion],
             is_installed: bool = True) -> InstallState:
    """
    Classify the installed package against the candidate.

    Args:
        candidate: Version of the local package
        installed: Version of the package on the device (None if absent)
        is_installed: Presence flag reported by the device

    Returns:
        InstallState for the pair
    """
    if installed is None or not is_installed:
        return InstallState.NOT_INSTALLED

    candidate_code = candidate.version_code
    installed_code = installed.version_code
    candidate_name = coerce_version(candidate.version_name)
    installed_name = coerce_version(installed.version_name)
    names_available = candidate_name is not None and installed_name is not None

    if isinstance(candidate_code, int) and isinstance(installed_code, int):
        if installed_code > candidate_code:
            logger.debug("Installed version code is greater (%s > %s)",
                         installed_code, candidate_code)
            return InstallState.NEWER_VERSION_INSTALLED
        if installed_code < candidate_code:
            return InstallState.OLDER_VERSION_INSTALLED
        # Codes tie; names may still tell them apart
        if not names_available:
            return InstallState.SAME_VERSION_INSTALLED
        return _compare_names(candidate_name, installed_name)

    logger.debug("Cannot read version codes (%s, %s), comparing version names",
                 candidate_code, installed_code)
    if not names_available:
        logger.debug("Cannot read version names (%r, %r)",
                     candidate.version_name, installed.version_name)
        return InstallState.UNKNOWN
    return _compare_names(candidate_name, installed_name)
