"""Composer document detection."""

from pathlib import Path
from urllib.parse import unquote, urlparse

MANIFEST_FILENAME = "composer.json"
LOCK_FILENAME = "composer.lock"


def identify(filename: str | None) -> str:
    """Detect the kind of Composer document from its file name.

    Args:
        filename: File name, path or file URI

    Returns:
        Detected kind: 'manifest', 'lock', or 'unknown'
    """
    if not filename:
        return "unknown"

    if filename.endswith(MANIFEST_FILENAME):
        return "manifest"
    if filename.endswith(LOCK_FILENAME):
        return "lock"

    return "unknown"


def lock_path_for(manifest_path: str | Path) -> Path:
    """Return the composer.lock path next to a composer.json."""
    return Path(manifest_path).with_name(LOCK_FILENAME)


def uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def is_platform_package(name: str) -> bool:
    """php, ext-*, lib-* and composer-*-api aren't on the registry."""
    return "/" not in name
