"""Analysis of open composer.json documents.

Each open document has one DocumentState: the parsed manifest with its line
index, the lock data and the registry data fetched on the last save. A
refresh builds a complete new state and swaps it in with a single
assignment, so hover and definition requests always see a manifest and
registry data from the same save.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .detect import is_platform_package, uri_to_path
from .models import CommandSpec, Diagnostic, InstalledPackage, Manifest, RegistryPackage, Release
from .packagist import PackagistClient, RegistryError
from .parse_composer import parse_manifest
from .parse_lock import normalize_version, parse_lock_file
from .resolve_composer import check_for_update

logger = logging.getLogger(__name__)

UPDATE_COMMAND = "composer.update"
INSTALL_COMMAND = "composer.install"


@dataclass(frozen=True)
class DocumentState:
    """Everything known about one document as of its last save."""

    manifest: Manifest
    lock: Mapping[str, InstalledPackage] | None
    packages: Mapping[str, RegistryPackage]
    diagnostics: tuple[Diagnostic, ...] = ()

    def installed_version(self, name: str) -> str | None:
        if self.lock is None:
            return None
        installed = self.lock.get(name)
        return installed.version if installed else None


def build_diagnostics(
    manifest: Manifest,
    lock: Mapping[str, InstalledPackage] | None,
    packages: Mapping[str, RegistryPackage],
) -> list[Diagnostic]:
    """One update notice per dependency that can move within its constraint."""
    diagnostics = []
    for dependency in manifest.dependencies:
        if not dependency.name:
            continue

        package = packages.get(dependency.name)
        if package is None:
            continue

        installed = lock.get(dependency.name) if lock else None
        version = check_for_update(
            package.releases,
            dependency.constraint,
            installed.version if installed else None,
        )
        if version is None:
            continue

        diagnostics.append(
            Diagnostic(
                line=dependency.line,
                start_character=dependency.start_character,
                end_character=dependency.end_character,
                message=f"Update available: {version}",
                name=dependency.name,
                version=version,
            )
        )

    return diagnostics


def select_release(package: RegistryPackage, installed: str | None) -> Release | None:
    """The installed release if the registry knows it, else the first one."""
    if not package.releases:
        return None

    if installed:
        target = normalize_version(installed)
        for release in package.releases:
            if normalize_version(release.version) == target:
                return release

    return package.releases[0]


def render_hover(package: RegistryPackage, release: Release, installed: str | None) -> str:
    """Markdown hover text for a package."""
    latest = package.releases[0]
    description = release.description or latest.description
    homepage = release.homepage or latest.homepage
    license = release.license or latest.license

    sections = [f"**{package.name}**"]
    if description:
        sections.append(description)
    if homepage:
        sections.append(f"Homepage: {homepage}")

    details = []
    if installed:
        details.append(f"Installed: {installed}")
    if license:
        details.append(f"License: {', '.join(license)}")
    if details:
        sections.append(" | ".join(details))

    return "\n\n".join(sections)


class Analyzer:
    """Drives diagnostics, hover and go-to-definition for composer.json."""

    def __init__(
        self,
        client: PackagistClient,
        on_miss: Callable[[str], None] | None = None,
    ):
        """Initialize analyzer.

        Args:
            client: Registry client used for batch and single lookups
            on_miss: Called with a message when an interactive query finds nothing
        """
        self.client = client
        self.on_miss = on_miss
        self._states: dict[str, DocumentState] = {}
        self._generations: dict[str, int] = {}

    def state(self, uri: str) -> DocumentState | None:
        return self._states.get(uri)

    async def refresh(self, uri: str, content: str | None = None) -> list[Diagnostic] | None:
        """Re-analyze a saved document and swap in its new state.

        Args:
            uri: Document URI
            content: Document text; read from disk when omitted

        Returns:
            Diagnostics for the whole document, or None when a newer
            refresh of the same document started while this one ran
        """
        generation = self._generations.get(uri, 0) + 1
        self._generations[uri] = generation

        path = uri_to_path(uri)
        manifest = parse_manifest(path, content)
        if manifest is None:
            # Nothing has been awaited yet, so this refresh is still the newest.
            self._states.pop(uri, None)
            return []

        lock = parse_lock_file(path)
        names = [name for name in manifest.names() if not is_platform_package(name)]
        packages = await self.client.get_packages(names)

        if self._generations.get(uri) != generation:
            logger.info(f"Discarding stale analysis of {uri}")
            return None

        diagnostics = build_diagnostics(manifest, lock, packages)
        self._states[uri] = DocumentState(
            manifest=manifest,
            lock=lock,
            packages=packages,
            diagnostics=tuple(diagnostics),
        )
        logger.info(f"{uri}: {len(diagnostics)} update(s) for {len(manifest.dependencies)} dependencies")
        return diagnostics

    def forget(self, uri: str) -> None:
        """Drop a closed document; in-flight refreshes for it are discarded."""
        self._states.pop(uri, None)
        self._generations[uri] = self._generations.get(uri, 0) + 1

    async def hover(self, uri: str, line: int) -> str | None:
        """Markdown description of the dependency declared on a line."""
        found = await self._lookup(uri, line, "Hover")
        if found is None:
            return None

        state, name, package = found
        installed = state.installed_version(name)
        release = select_release(package, installed)
        if release is None:
            self._miss(f"No hover data found for: {name}")
            return None
        return render_hover(package, release, installed)

    async def definition(self, uri: str, line: int) -> str | None:
        """Registry page of the dependency declared on a line."""
        found = await self._lookup(uri, line, "Go to definition")
        if found is None:
            return None

        state, name, package = found
        release = select_release(package, state.installed_version(name))
        url = release.registry_url if release else None
        if not url and package.releases:
            url = package.releases[0].registry_url
        if not url:
            self._miss(f"No definition data found for: {name}")
            return None
        return url

    def code_actions(self, uri: str, line: int) -> list[CommandSpec]:
        """Commands offered on a dependency line."""
        state = self._states.get(uri)
        if state is None:
            return []

        name = state.manifest.line_index.get(line)
        if name is None:
            return []

        if state.lock is None:
            return [CommandSpec(title="Install all packages", command=INSTALL_COMMAND, arguments=(uri,))]
        return [CommandSpec(title=f"Update {name}", command=UPDATE_COMMAND, arguments=(name, uri))]

    async def _lookup(self, uri: str, line: int, action: str) -> tuple[DocumentState, str, RegistryPackage] | None:
        state = self._states.get(uri)
        if state is None:
            self._miss(f"{action} failed, because {uri} hasn't been analyzed yet")
            return None

        name = state.manifest.line_index.get(line)
        if name is None:
            self._miss(f"{action} failed, because we can't find this line number: {line}")
            return None

        try:
            package = await self.client.get_package(name)
        except RegistryError as e:
            logger.warning(f"Can't fetch {name} ({e}), falling back to data from the last save")
            package = state.packages.get(name)

        if package is None or not package.releases:
            self._miss(f"No packagist data found for: {name}")
            return None

        return state, name, package

    def _miss(self, message: str) -> None:
        logger.error(message)
        if self.on_miss is not None:
            self.on_miss(message)
