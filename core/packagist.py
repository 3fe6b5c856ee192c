"""Packagist registry client."""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

import httpx

from .models import Author, RegistryPackage, Release

logger = logging.getLogger(__name__)

PACKAGIST_API_URL = "https://repo.packagist.org/p2"
PACKAGIST_REPO_URL = "https://packagist.org/packages"
MINIFIED_FORMAT = "composer/2.0"
UNSET = "__unset"


class RegistryError(Exception):
    """Base exception for registry errors."""
    pass


class RegistryConnectionError(RegistryError):
    """Connection to the registry failed."""
    pass


class RegistryResponseError(RegistryError):
    """The registry answered with an error status or an unreadable body."""
    pass


def expand_minified(versions: list[Any]) -> list[dict[str, Any]]:
    """Expand composer/2.0 minified metadata.

    Every entry only lists the fields that differ from the entry before it;
    a field set to "__unset" was dropped.
    """
    expanded: list[dict[str, Any]] = []
    current: dict[str, Any] | None = None
    for item in versions:
        if not isinstance(item, dict):
            continue
        if current is None:
            current = dict(item)
        else:
            current = dict(current)
            for key, value in item.items():
                if value == UNSET:
                    current.pop(key, None)
                else:
                    current[key] = value
        expanded.append(current)
    return expanded


def _strings(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list):
        return tuple(item for item in value if isinstance(item, str))
    return ()


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _authors(value: Any) -> tuple[Author, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(
        Author(
            name=_text(item.get("name")),
            email=_text(item.get("email")),
            homepage=_text(item.get("homepage")),
            role=_text(item.get("role")),
        )
        for item in value
        if isinstance(item, dict)
    )


def parse_release(data: dict[str, Any], registry_url: str) -> Release | None:
    """Build a Release from one registry version entry."""
    version = data.get("version")
    if not isinstance(version, str) or not version:
        return None

    return Release(
        version=version,
        registry_url=registry_url,
        version_normalized=_text(data.get("version_normalized")),
        description=_text(data.get("description")),
        homepage=_text(data.get("homepage")),
        authors=_authors(data.get("authors")),
        license=_strings(data.get("license")),
        keywords=_strings(data.get("keywords")),
    )


class PackagistClient:
    """Client for Packagist package metadata."""

    def __init__(
        self,
        api_url: str = PACKAGIST_API_URL,
        repo_url: str = PACKAGIST_REPO_URL,
        timeout: float = 30.0,
        max_concurrency: int = 6,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Packagist client.

        Args:
            api_url: Base URL of the metadata API
            repo_url: Base URL of the browsable package pages
            timeout: Request timeout in seconds
            max_concurrency: Maximum concurrent requests
            transport: Optional httpx transport, used by tests
        """
        self.api_url = api_url.rstrip("/")
        self.repo_url = repo_url.rstrip("/")
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.transport = transport
        self._semaphore = asyncio.Semaphore(max_concurrency)

    def package_url(self, name: str) -> str:
        """Browsable registry page of a package."""
        return f"{self.repo_url}/{name.lower()}"

    async def get_package(self, name: str) -> RegistryPackage | None:
        """Fetch a package and all of its releases.

        Args:
            name: Package name, e.g. "vendor/package"

        Returns:
            RegistryPackage, or None if the registry has no data for it

        Raises:
            RegistryError: If the request fails or the response is unusable
        """
        payload = await self._fetch_package_metadata(name)
        if payload is None:
            return None
        return self._parse_package(name, payload)

    async def get_packages(self, names: Iterable[str]) -> dict[str, RegistryPackage]:
        """Fetch many packages concurrently.

        A failed lookup is logged and left out; it never fails the batch.

        Args:
            names: Package names; duplicates are fetched once

        Returns:
            Packages keyed by the requested name
        """
        unique = list(dict.fromkeys(name for name in names if name))
        results = await asyncio.gather(
            *(self.get_package(name) for name in unique),
            return_exceptions=True,
        )

        packages: dict[str, RegistryPackage] = {}
        for name, result in zip(unique, results):
            if isinstance(result, Exception):
                logger.warning(f"Can't get packagist data for {name}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            if result is None:
                logger.info(f"No packagist data for {name}")
                continue
            packages[name] = result

        return packages

    async def _fetch_package_metadata(self, name: str) -> dict[str, Any] | None:
        """Fetch the raw p2 document of a package.

        Args:
            name: Package name

        Returns:
            Decoded JSON payload, or None on 404
        """
        url = f"{self.api_url}/{name.lower()}.json"

        async with self._semaphore:
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.get(url)
            except httpx.TimeoutException as e:
                raise RegistryConnectionError(f"Timeout fetching metadata for {name}") from e
            except httpx.RequestError as e:
                raise RegistryConnectionError(f"Network error fetching {name}: {e}") from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise RegistryResponseError(f"HTTP error {response.status_code} fetching {name}")

        try:
            payload = response.json()
        except ValueError as e:
            raise RegistryResponseError(f"Invalid JSON for {name}: {e}") from e

        if not isinstance(payload, dict):
            raise RegistryResponseError(f"Unexpected payload for {name}")
        return payload

    def _parse_package(self, name: str, payload: dict[str, Any]) -> RegistryPackage | None:
        packages = payload.get("packages")
        if not isinstance(packages, dict):
            return None

        versions = packages.get(name.lower(), packages.get(name))
        if not isinstance(versions, list):
            return None

        if payload.get("minified") == MINIFIED_FORMAT:
            versions = expand_minified(versions)

        registry_url = self.package_url(name)
        releases = []
        for item in versions:
            if not isinstance(item, dict):
                continue
            release = parse_release(item, registry_url)
            if release is not None:
                releases.append(release)

        return RegistryPackage(name=name, releases=tuple(releases))
