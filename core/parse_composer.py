"""composer.json parsing with source line recovery."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from .detect import identify
from .models import BLOCKS, Dependency, Manifest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyPosition:
    """Where an object key sits in the raw text (0-based)."""

    line: int
    start: int
    end: int


class DependencyLocator:
    """Recover the source position of every key inside the dependency blocks.

    json.loads throws positions away, so the raw text is walked once with a
    bracket depth counter. Strings are consumed as whole tokens, which keeps
    braces inside descriptions or scripts from moving the depth. A block
    starts at the ``{`` following a top-level ``"require":`` key and ends only
    when the depth drops back to where it opened, so nested arrays or objects
    inside the block never close it early.
    """

    def __init__(self, blocks: tuple[str, ...] = BLOCKS):
        self.blocks = blocks

    def locate(self, content: str) -> dict[str, dict[str, KeyPosition]]:
        positions: dict[str, dict[str, KeyPosition]] = {block: {} for block in self.blocks}

        depth = 0
        line = 0
        column = 0
        armed: str | None = None  # block key seen, its value not opened yet
        current: str | None = None
        opening_depth = 0
        last_string: tuple[str, KeyPosition] | None = None

        i = 0
        size = len(content)
        while i < size:
            char = content[i]

            if char == '"':
                end = self._string_end(content, i)
                token = content[i:end]
                last_string = (_decode_key(token), KeyPosition(line, column, column + len(token)))
                armed = None
                newlines = token.count("\n")
                if newlines:
                    line += newlines
                    column = len(token) - token.rfind("\n") - 1
                else:
                    column += len(token)
                i = end
                continue

            if char == "\n":
                line += 1
                column = 0
                i += 1
                continue

            if char == ":":
                if last_string is not None:
                    key, position = last_string
                    if current is not None and depth == opening_depth + 1:
                        positions[current][key] = position
                    elif current is None and depth == 1 and key in positions:
                        armed = key
                last_string = None
            elif char in "{[":
                if armed is not None and char == "{":
                    current = armed
                    opening_depth = depth
                armed = None
                last_string = None
                depth += 1
            elif char in "}]":
                armed = None
                last_string = None
                depth -= 1
                if current is not None and depth == opening_depth:
                    current = None
            elif not char.isspace():
                armed = None
                last_string = None

            column += 1
            i += 1

        return positions

    @staticmethod
    def _string_end(content: str, start: int) -> int:
        """Index just past the closing quote of the string opened at start."""
        j = start + 1
        size = len(content)
        while j < size and content[j] != '"':
            j += 2 if content[j] == "\\" else 1
        return min(j + 1, size)


def _decode_key(token: str) -> str:
    try:
        return json.loads(token)
    except ValueError:
        return token.strip('"')


class ComposerParser:
    """Parser for composer.json files."""

    def __init__(self, locator: DependencyLocator | None = None):
        self.locator = locator or DependencyLocator()

    def parse(self, path: str, content: str | None = None) -> Manifest | None:
        """Parse a composer.json into a Manifest.

        Args:
            path: Path of the manifest; also used to detect it
            content: Editor buffer to parse instead of the file on disk

        Returns:
            Parsed Manifest, or None if this is not a parseable manifest
        """
        if identify(path) != "manifest":
            logger.debug(f"{path} is not a composer.json, skipping")
            return None

        if content is None:
            try:
                content = Path(path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Can't read {path}: {e}")
                return None

        try:
            data = json.loads(content)
        except ValueError as e:
            logger.warning(f"Can't decode {path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Can't use {path}: top level is not a JSON object")
            return None

        positions = self.locator.locate(content)
        dependencies: list[Dependency] = []
        line_index: dict[int, str] = {}

        for block in BLOCKS:
            declared = data.get(block)
            if declared is None:
                continue
            if not isinstance(declared, dict):
                logger.info(f"Ignoring \"{block}\" in {path}: expected an object")
                continue

            for name, constraint in declared.items():
                if not isinstance(constraint, str):
                    logger.info(f"Ignoring {block} dependency {name}: constraint is not a string")
                    continue

                position = positions[block].get(name)
                if position is None:
                    logger.info(f"Can't get a line number for {block} dependency {name}")
                    continue

                dependencies.append(
                    Dependency(
                        name=name,
                        constraint=constraint,
                        block=block,
                        line=position.line,
                        start_character=position.start,
                        end_character=position.end,
                    )
                )
                # First registration keeps the line; require is walked first.
                line_index.setdefault(position.line, name)

        return Manifest(path=path, dependencies=tuple(dependencies), line_index=line_index)


def parse_manifest(path: str | Path, content: str | None = None) -> Manifest | None:
    """Parse composer.json content into Manifest.

    Args:
        path: Path of the composer.json file
        content: Optional document text; read from disk when omitted

    Returns:
        Parsed Manifest object, or None
    """
    parser = ComposerParser()
    return parser.parse(str(path), content)
