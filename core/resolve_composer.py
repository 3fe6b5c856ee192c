"""Composer package update resolution."""

import logging
from collections.abc import Iterable

from packaging.version import InvalidVersion, Version

from .constraints import InvalidConstraint, parse_constraint
from .models import Release
from .parse_lock import normalize_version

logger = logging.getLogger(__name__)


def parse_release_version(version: str) -> Version | None:
    """Parse a registry or lock version, or None for branches like dev-master."""
    try:
        return Version(normalize_version(version))
    except InvalidVersion:
        return None


def matching_releases(releases: Iterable[Release], constraint: str) -> list[tuple[Version, Release]]:
    """Releases satisfying a constraint, highest precedence first.

    Args:
        releases: Releases in registry order
        constraint: Constraint string from composer.json

    Returns:
        (parsed version, release) pairs sorted newest first; empty if the
        constraint can't be parsed
    """
    try:
        parsed = parse_constraint(constraint)
    except InvalidConstraint as e:
        logger.debug(f"Ignoring constraint {constraint!r}: {e}")
        return []

    matching = []
    for release in releases:
        version = parse_release_version(release.version)
        if version is None:
            continue  # Skip invalid versions
        if parsed.allows(version):
            matching.append((version, release))

    matching.sort(key=lambda item: item[0], reverse=True)
    return matching


def check_for_update(
    releases: Iterable[Release],
    constraint: str,
    installed: str | None = None,
) -> str | None:
    """Find the update a dependency can take without leaving its constraint.

    Args:
        releases: Releases of the package, in any order
        constraint: Constraint string from composer.json
        installed: Version from composer.lock, if there is one

    Returns:
        Version string of the newest satisfying release when nothing is
        installed, or of the newest one above the installed version;
        None when there is nothing to offer
    """
    matching = matching_releases(releases, constraint)
    if not matching:
        return None

    best_version, best_release = matching[0]
    if not installed:
        return best_release.version

    installed_version = parse_release_version(installed)
    if installed_version is None:
        logger.debug(f"Can't compare against installed version {installed!r}")
        return None

    if best_version > installed_version:
        return best_release.version
    return None
