"""Running composer install/update for a manifest."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

INSTALL = "install"
UPDATE = "update"
UNRESOLVABLE = "could not be resolved to an installable set of packages"


@dataclass(frozen=True)
class CommandOutcome:
    """Result of a composer run, ready to show to the user."""

    success: bool
    message: str


def composer_argv(
    action: str,
    working_dir: str | Path,
    package: str | None = None,
    binary: str = "composer",
) -> list[str]:
    """Build the composer command line for an action.

    Args:
        action: 'install' or 'update'
        working_dir: Directory holding composer.json
        package: Package to update; required for 'update'
        binary: Composer executable

    Returns:
        Argument vector for the subprocess
    """
    if action == INSTALL:
        return [binary, f"--working-dir={working_dir}", INSTALL]
    if action == UPDATE:
        if not package:
            raise ValueError("update needs a package name")
        return [binary, f"--working-dir={working_dir}", UPDATE, package]
    raise ValueError(f"Unknown composer action: {action}")


async def run_composer(
    action: str,
    working_dir: str | Path,
    package: str | None = None,
    binary: str = "composer",
) -> CommandOutcome:
    """Run composer and summarize what happened."""
    argv = composer_argv(action, working_dir, package, binary)
    logger.info(f"Running {' '.join(argv)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error(f"Can't start {binary}: {e}")
        return CommandOutcome(False, "Composer command failed.")

    _, stderr = await process.communicate()
    output = stderr.decode("utf-8", errors="replace")

    if process.returncode != 0:
        logger.warning(f"{' '.join(argv)} exited with {process.returncode}: {output.strip()}")
        if UNRESOLVABLE in output:
            return CommandOutcome(False, "Composer dependencies could not be resolved.")
        return CommandOutcome(False, "Composer command failed.")

    if UNRESOLVABLE in output:
        return CommandOutcome(False, "Composer dependencies could not be resolved.")

    if action == UPDATE:
        return CommandOutcome(True, f"Composer package {package} was updated.")
    return CommandOutcome(True, "Composer packages were installed.")
