"""Pytest configuration and fixtures."""

import json

import pytest

from core.models import RegistryPackage, Release

COMPOSER_JSON = """{
    "name": "acme/site",
    "description": "Braces {like} these [don't] count",
    "require": {
        "php": ">=8.1",
        "composer/installers": "^2.0",
        "vendor/pkg": "^2.0",
        "fake/dependency": "^8.0"
    },
    "require-dev": {
        "fake/dependency": "^8.0",
        "phpunit/phpunit": "^10.5"
    },
    "extra": {
        "installer-paths": {
            "web/core": ["type:drupal-core"]
        }
    }
}
"""

COMPOSER_LOCK = {
    "packages": [
        {"name": "composer/installers", "version": "v2.1.0"},
        {"name": "vendor/pkg", "version": "2.2.1"},
        {"name": "fake/dependency", "version": "8.0.0"},
    ],
    "packages-dev": [
        {"name": "phpunit/phpunit", "version": "10.5.2"},
    ],
}

RELEASE_VERSIONS = ["2.2.1", "2.1.1", "2.1.0", "2.0.0", "1.9.0", "1.8.1", "1.8.0"]


def make_package(name: str, versions: list[str], description: str | None = None) -> RegistryPackage:
    releases = tuple(
        Release(
            version=version,
            registry_url=f"https://packagist.org/packages/{name}",
            description=description,
            homepage=f"https://example.com/{name}",
        )
        for version in versions
    )
    return RegistryPackage(name=name, releases=releases)


@pytest.fixture
def composer_json():
    """Sample composer.json content for testing."""
    return COMPOSER_JSON


@pytest.fixture
def releases():
    """Releases in registry order, newest first."""
    return list(make_package("test/package", RELEASE_VERSIONS).releases)


@pytest.fixture
def project(tmp_path):
    """A project directory with composer.json and composer.lock."""
    manifest = tmp_path / "composer.json"
    manifest.write_text(COMPOSER_JSON)
    (tmp_path / "composer.lock").write_text(json.dumps(COMPOSER_LOCK))
    return manifest


@pytest.fixture
def project_without_lock(tmp_path):
    """A project directory with only composer.json."""
    manifest = tmp_path / "composer.json"
    manifest.write_text(COMPOSER_JSON)
    return manifest
