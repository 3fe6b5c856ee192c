"""Tests for composer.json parsing."""

import json

from core.models import REQUIRE, REQUIRE_DEV
from core.parse_composer import DependencyLocator, parse_manifest


class TestComposerParser:
    """Test composer.json parsing and line recovery."""

    def test_parse_dependencies_from_both_blocks(self, composer_json):
        """Should decode require and require-dev in document order."""
        manifest = parse_manifest("/app/composer.json", composer_json)

        assert manifest is not None
        assert manifest.path == "/app/composer.json"
        assert [dep.name for dep in manifest.by_block(REQUIRE)] == [
            "php",
            "composer/installers",
            "vendor/pkg",
            "fake/dependency",
        ]
        assert [dep.name for dep in manifest.by_block(REQUIRE_DEV)] == [
            "fake/dependency",
            "phpunit/phpunit",
        ]

        vendor = manifest.by_block(REQUIRE)[2]
        assert vendor.constraint == "^2.0"
        assert vendor.block == REQUIRE

    def test_recovers_zero_based_lines(self, composer_json):
        """Should anchor each dependency at the line it is declared on."""
        manifest = parse_manifest("/app/composer.json", composer_json)
        lines = {(dep.block, dep.name): dep.line for dep in manifest.dependencies}

        # "require" opens on line 4 (1-based); vendor/pkg sits three lines below it.
        assert lines[(REQUIRE, "vendor/pkg")] == 4 + 3 - 1
        assert manifest.line_index[6] == "vendor/pkg"
        assert lines[(REQUIRE, "php")] == 4
        assert lines[(REQUIRE_DEV, "phpunit/phpunit")] == 11

    def test_records_key_columns(self, composer_json):
        """Should keep the span of the quoted key for diagnostics."""
        manifest = parse_manifest("/app/composer.json", composer_json)
        php = manifest.by_block(REQUIRE)[0]

        assert php.start_character == 8
        assert php.end_character == 8 + len('"php"')

    def test_same_name_in_both_blocks(self, composer_json):
        """Should keep one record per block, each on its own line."""
        manifest = parse_manifest("/app/composer.json", composer_json)
        fakes = [dep for dep in manifest.dependencies if dep.name == "fake/dependency"]

        assert [(dep.block, dep.line) for dep in fakes] == [(REQUIRE, 7), (REQUIRE_DEV, 10)]
        assert manifest.line_index[7] == "fake/dependency"
        assert manifest.line_index[10] == "fake/dependency"

    def test_require_wins_line_collisions(self):
        """Should give a shared line to the require entry."""
        content = '{"require-dev": {"dev/tool": "^1.0"}, "require": {"app/lib": "^2.0"}}'
        manifest = parse_manifest("composer.json", content)

        assert len(manifest.dependencies) == 2
        assert all(dep.line == 0 for dep in manifest.dependencies)
        assert manifest.line_index == {0: "app/lib"}

    def test_first_entry_wins_on_single_line(self):
        """Should keep the first declared name when a block sits on one line."""
        manifest = parse_manifest("composer.json", '{"require": {"a/one": "^1.0", "b/two": "^2.0"}}')

        assert [dep.name for dep in manifest.dependencies] == ["a/one", "b/two"]
        assert manifest.line_index == {0: "a/one"}

    def test_nested_values_do_not_close_the_block(self):
        """Should only end a block when its own brace closes."""
        content = """{
    "require": {
        "a/one": "^1.0",
        "weird/entry": {
            "nested": ["x", {"y": "}"}]
        },
        "b/two": "^2.0"
    }
}
"""
        manifest = parse_manifest("composer.json", content)

        assert [(dep.name, dep.line) for dep in manifest.dependencies] == [("a/one", 2), ("b/two", 6)]
        assert manifest.line_index == {2: "a/one", 6: "b/two"}

    def test_nested_require_keys_are_ignored(self):
        """Should only track top-level require blocks."""
        content = """{
    "extra": {
        "require": {
            "vendor/pkg": "^9.0"
        }
    },
    "require": {
        "vendor/pkg": "^2.0"
    }
}
"""
        manifest = parse_manifest("composer.json", content)

        assert len(manifest.dependencies) == 1
        assert manifest.dependencies[0].line == 7
        assert manifest.dependencies[0].constraint == "^2.0"

    def test_escaped_names_are_located(self):
        """Should match keys written with JSON escapes."""
        content = '{\n  "require": {\n    "vendor\\/pkg": "^2.0"\n  }\n}\n'
        manifest = parse_manifest("composer.json", content)

        assert manifest.dependencies[0].name == "vendor/pkg"
        assert manifest.line_index == {2: "vendor/pkg"}

    def test_missing_blocks_yield_empty_manifest(self):
        """Should treat absent require blocks as no dependencies."""
        manifest = parse_manifest("composer.json", '{"name": "acme/empty"}')

        assert manifest is not None
        assert manifest.dependencies == ()
        assert manifest.line_index == {}

    def test_non_string_constraints_are_dropped(self):
        """Should skip entries whose constraint is not a string."""
        manifest = parse_manifest("composer.json", '{"require": {"a/one": 1, "b/two": "^2.0"}}')

        assert [dep.name for dep in manifest.dependencies] == ["b/two"]

    def test_invalid_json_is_not_a_manifest(self):
        """Should return None for unparseable documents."""
        assert parse_manifest("composer.json", '{"require": {') is None
        assert parse_manifest("composer.json", "[1, 2, 3]") is None

    def test_wrong_filename_is_not_a_manifest(self, composer_json):
        """Should refuse documents that aren't composer.json."""
        assert parse_manifest("package.json", composer_json) is None

    def test_reads_from_disk(self, project):
        """Should read the file when no content is given."""
        manifest = parse_manifest(project)

        assert manifest is not None
        assert len(manifest.dependencies) == 6

    def test_missing_file(self, tmp_path):
        """Should return None when the file can't be read."""
        assert parse_manifest(tmp_path / "composer.json") is None

    def test_invalid_utf8_file(self, tmp_path):
        """Should return None when the file isn't valid UTF-8."""
        manifest = tmp_path / "composer.json"
        manifest.write_bytes(b'{"description": "\xff", "require": {"a/b": "^1.0"}}')

        assert parse_manifest(manifest) is None

    def test_parsing_is_idempotent(self, composer_json):
        """Should produce identical results for identical text."""
        first = parse_manifest("composer.json", composer_json)
        second = parse_manifest("composer.json", composer_json)

        assert first.dependencies == second.dependencies
        assert dict(first.line_index) == dict(second.line_index)


class TestDependencyLocator:
    """Test the raw text scanner."""

    def test_braces_in_strings_do_not_count(self):
        """Should ignore brackets inside string values."""
        content = '{\n"description": "{[",\n"require": {\n"a/b": "^1"\n}\n}'
        positions = DependencyLocator().locate(content)

        assert positions["require"]["a/b"].line == 3

    def test_block_without_object_value(self):
        """Should not open a block for a scalar value."""
        content = json.dumps({"require": None, "other": {"a/b": "^1"}}, indent=2)
        positions = DependencyLocator().locate(content)

        assert positions["require"] == {}
