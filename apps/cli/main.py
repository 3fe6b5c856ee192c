"""CLI application for composer-lsp."""

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from core.analysis import Analyzer, DocumentState
from core.config import Settings
from core.detect import identify
from core.packagist import PACKAGIST_API_URL, PACKAGIST_REPO_URL, PackagistClient

console = Console()


def configure_logging(level: str, log_file: str | None = None) -> None:
    """Send logs to a file, or to stderr; stdout belongs to the protocol."""
    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)

    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)


def collect_updates(state: DocumentState) -> list[dict]:
    """Pair each update notice with the dependency it belongs to."""
    dependencies = {(dep.name, dep.line): dep for dep in state.manifest.dependencies}
    updates = []
    for diagnostic in state.diagnostics:
        dependency = dependencies.get((diagnostic.name, diagnostic.line))
        updates.append({
            "name": diagnostic.name,
            "block": dependency.block if dependency else None,
            "constraint": dependency.constraint if dependency else None,
            "installed": state.installed_version(diagnostic.name),
            "update": diagnostic.version,
            "line": diagnostic.line + 1,
        })
    return updates


def format_json_output(updates: list[dict]) -> str:
    """Format JSON output."""
    return json.dumps({"updates": updates}, indent=2)


def format_table_output(updates: list[dict], file_path: str) -> Table:
    """Format a rich table of available updates."""
    table = Table(title=f"Updates for {file_path}")
    table.add_column("Line", justify="right")
    table.add_column("Package")
    table.add_column("Block")
    table.add_column("Constraint")
    table.add_column("Installed")
    table.add_column("Update", style="green")

    for update in updates:
        table.add_row(
            str(update["line"]),
            update["name"],
            update["block"] or "",
            update["constraint"] or "",
            update["installed"] or "-",
            update["update"],
        )
    return table


app = typer.Typer(
    name="composer-lsp",
    help="composer-lsp - Update hints, hover and package links for composer.json",
    add_completion=False,
)


@app.callback()
def main(
    ctx: typer.Context,
    api_url: str = typer.Option(PACKAGIST_API_URL, "--api-url", envvar="COMPOSER_LSP_API_URL", help="Packagist metadata API"),
    repo_url: str = typer.Option(PACKAGIST_REPO_URL, "--repo-url", envvar="COMPOSER_LSP_REPO_URL", help="Packagist package pages"),
    timeout: float = typer.Option(30.0, "--timeout", envvar="COMPOSER_LSP_TIMEOUT", help="Request timeout in seconds"),
    max_concurrency: int = typer.Option(6, "--max-concurrency", envvar="COMPOSER_LSP_MAX_CONCURRENCY", help="Maximum concurrent registry requests"),
    composer_binary: str = typer.Option("composer", "--composer", envvar="COMPOSER_LSP_COMPOSER", help="Composer executable"),
    open_browser: bool = typer.Option(False, "--open-browser", envvar="COMPOSER_LSP_OPEN_BROWSER", help="Open package pages on go to definition"),
    log_file: str | None = typer.Option(None, "--log-file", envvar="COMPOSER_LSP_LOG", help="Write logs to this file"),
    log_level: str = typer.Option("WARNING", "--log-level", envvar="COMPOSER_LSP_LOG_LEVEL", help="Log level"),
) -> None:
    """composer-lsp - Composer companion for your editor."""
    settings = Settings(
        api_url=api_url,
        repo_url=repo_url,
        timeout=timeout,
        max_concurrency=max_concurrency,
        composer_binary=composer_binary,
        open_browser=open_browser,
        log_file=log_file,
        log_level=log_level,
    )
    configure_logging(settings.log_level, settings.log_file)
    ctx.obj = settings


@app.command()
def serve(ctx: typer.Context) -> None:
    """Run the language server on stdio."""
    from apps.lsp.server import start

    start(ctx.obj)


@app.command()
def check(
    ctx: typer.Context,
    file_path: str = typer.Argument(help="Path to composer.json"),
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """Report dependencies that can be updated within their constraints."""
    settings: Settings = ctx.obj or Settings()

    path = Path(file_path)
    if not path.exists():
        console.print(f"Error: File {file_path} not found", style="red")
        raise typer.Exit(1)

    if identify(path.name) != "manifest":
        console.print(f"Error: {file_path} is not a composer.json", style="red")
        raise typer.Exit(1)

    client = PackagistClient(
        api_url=settings.api_url,
        repo_url=settings.repo_url,
        timeout=settings.timeout,
        max_concurrency=settings.max_concurrency,
    )
    analyzer = Analyzer(client)
    uri = str(path.resolve())
    asyncio.run(analyzer.refresh(uri))

    state = analyzer.state(uri)
    if state is None:
        console.print(f"Error: Can't parse {file_path}", style="red")
        raise typer.Exit(1)

    updates = collect_updates(state)
    if format_type == "json":
        console.print(format_json_output(updates), soft_wrap=True)
    elif updates:
        console.print(format_table_output(updates, file_path))
    else:
        console.print("No updates available")

    if not updates:
        raise typer.Exit(2)  # No updates exit code


if __name__ == "__main__":
    app()
