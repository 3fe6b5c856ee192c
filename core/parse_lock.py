"""composer.lock parsing."""

import json
import logging
from pathlib import Path

from .detect import lock_path_for
from .models import InstalledPackage

logger = logging.getLogger(__name__)

LOCK_SECTIONS = ("packages", "packages-dev")


def normalize_version(version: str) -> str:
    """Strip quotes and a leading 'v' so lock and registry versions compare equal.

    Args:
        version: Version as found in composer.lock or on the registry

    Returns:
        Normalized version string, e.g. "v2.3.1" -> "2.3.1"
    """
    normalized = version.strip().replace('"', "").replace("'", "")
    if normalized[:1] in ("v", "V"):
        normalized = normalized[1:]
    return normalized


def parse_lock_content(content: str, source: str = "composer.lock") -> dict[str, InstalledPackage] | None:
    """Decode composer.lock text into a name -> InstalledPackage map."""
    try:
        data = json.loads(content)
    except ValueError as e:
        logger.warning(f"Error while parsing lock file {source}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Error while parsing lock file {source}: top level is not an object")
        return None

    versions: dict[str, InstalledPackage] = {}
    for section in LOCK_SECTIONS:
        packages = data.get(section)
        if packages is None:
            continue
        if not isinstance(packages, list):
            logger.warning(f"Error while parsing lock file {source}: \"{section}\" is not an array")
            return None

        for item in packages:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            version = item.get("version")
            if not isinstance(name, str) or not isinstance(version, str):
                logger.debug(f"Skipping lock entry without name or version in {source}")
                continue

            name = name.replace('"', "").replace("'", "")
            # Duplicates overwrite earlier entries.
            versions[name] = InstalledPackage(name=name, version=normalize_version(version))

    return versions


def parse_lock_file(manifest_path: str | Path) -> dict[str, InstalledPackage] | None:
    """Read the composer.lock next to a composer.json.

    Args:
        manifest_path: Path of the composer.json

    Returns:
        Installed packages by name, or None when there is no usable lock file
    """
    lock_path = lock_path_for(manifest_path)
    try:
        content = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info(f"No lock file at {lock_path}")
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Can't read the lock file {lock_path}: {e}")
        return None

    return parse_lock_content(content, str(lock_path))
