"""Core data models for composer-lsp."""

from collections.abc import Mapping
from dataclasses import dataclass, field

REQUIRE = "require"
REQUIRE_DEV = "require-dev"
BLOCKS = (REQUIRE, REQUIRE_DEV)


@dataclass(frozen=True)
class Dependency:
    """A single dependency declared in composer.json."""

    name: str
    constraint: str
    block: str  # require, require-dev
    line: int
    start_character: int = 0
    end_character: int = 0


@dataclass(frozen=True)
class Manifest:
    """A parsed composer.json with recovered source lines."""

    path: str
    dependencies: tuple[Dependency, ...]
    line_index: Mapping[int, str]

    def by_block(self, block: str) -> list[Dependency]:
        return [dep for dep in self.dependencies if dep.block == block]

    def names(self) -> list[str]:
        """Unique dependency names, in declaration order."""
        return list(dict.fromkeys(dep.name for dep in self.dependencies if dep.name))


@dataclass(frozen=True)
class InstalledPackage:
    """A package version recorded in composer.lock."""

    name: str
    version: str


@dataclass(frozen=True)
class Author:
    name: str | None = None
    email: str | None = None
    homepage: str | None = None
    role: str | None = None


@dataclass(frozen=True)
class Release:
    """One published version of a package on the registry."""

    version: str
    registry_url: str | None = None
    version_normalized: str | None = None
    description: str | None = None
    homepage: str | None = None
    authors: tuple[Author, ...] = ()
    license: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class RegistryPackage:
    """A package name and its releases, in registry order."""

    name: str
    releases: tuple[Release, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Diagnostic:
    """An update notice anchored at a dependency declaration."""

    line: int
    start_character: int
    end_character: int
    message: str
    name: str
    version: str
    severity: str = "warning"
    source: str = "composer"


@dataclass(frozen=True)
class CommandSpec:
    """An editor command offered for a dependency line."""

    title: str
    command: str
    arguments: tuple[str, ...] = ()
