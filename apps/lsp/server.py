"""Language server for composer.json."""

import logging
import webbrowser
from typing import Any

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from core.analysis import INSTALL_COMMAND, UPDATE_COMMAND, Analyzer
from core.commands import INSTALL, UPDATE, run_composer
from core.config import Settings
from core.detect import identify, uri_to_path
from core.models import CommandSpec, Diagnostic
from core.packagist import PackagistClient

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

SEVERITIES = {
    "error": types.DiagnosticSeverity.Error,
    "warning": types.DiagnosticSeverity.Warning,
    "information": types.DiagnosticSeverity.Information,
    "hint": types.DiagnosticSeverity.Hint,
}


class ComposerLanguageServer(LanguageServer):
    """pygls server holding the settings and the document analyzer."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.settings = Settings()
        self.analyzer = self._build_analyzer()

    def configure(self, settings: Settings) -> None:
        self.settings = settings
        self.analyzer = self._build_analyzer()

    def _build_analyzer(self) -> Analyzer:
        client = PackagistClient(
            api_url=self.settings.api_url,
            repo_url=self.settings.repo_url,
            timeout=self.settings.timeout,
            max_concurrency=self.settings.max_concurrency,
        )
        return Analyzer(client, on_miss=self.log_error)

    def log_error(self, message: str) -> None:
        self.window_log_message(types.LogMessageParams(type=types.MessageType.Error, message=message))

    def show_info(self, message: str) -> None:
        self.window_show_message(types.ShowMessageParams(type=types.MessageType.Info, message=message))


server = ComposerLanguageServer("composer-lsp", __version__)


def to_lsp_diagnostic(diagnostic: Diagnostic) -> types.Diagnostic:
    return types.Diagnostic(
        range=types.Range(
            start=types.Position(line=diagnostic.line, character=diagnostic.start_character),
            end=types.Position(line=diagnostic.line, character=diagnostic.end_character),
        ),
        message=diagnostic.message,
        severity=SEVERITIES.get(diagnostic.severity, types.DiagnosticSeverity.Warning),
        source=diagnostic.source,
        data={"name": diagnostic.name, "version": diagnostic.version},
    )


def to_lsp_command(spec: CommandSpec) -> types.Command:
    return types.Command(title=spec.title, command=spec.command, arguments=list(spec.arguments))


def command_arguments(args: tuple[Any, ...]) -> list[Any]:
    """Command arguments, whether they arrive spread out or as one list."""
    if len(args) == 1 and isinstance(args[0], list):
        return list(args[0])
    return list(args)


async def publish(ls: ComposerLanguageServer, uri: str, content: str | None = None) -> None:
    diagnostics = await ls.analyzer.refresh(uri, content)
    if diagnostics is None:
        return
    ls.text_document_publish_diagnostics(
        types.PublishDiagnosticsParams(
            uri=uri,
            diagnostics=[to_lsp_diagnostic(diagnostic) for diagnostic in diagnostics],
        )
    )


@server.feature(types.TEXT_DOCUMENT_DID_OPEN)
async def did_open(ls: ComposerLanguageServer, params: types.DidOpenTextDocumentParams) -> None:
    uri = params.text_document.uri
    if identify(uri) == "manifest":
        await publish(ls, uri, params.text_document.text)


@server.feature(types.TEXT_DOCUMENT_DID_SAVE)
async def did_save(ls: ComposerLanguageServer, params: types.DidSaveTextDocumentParams) -> None:
    uri = params.text_document.uri
    if identify(uri) == "manifest":
        await publish(ls, uri, params.text)


@server.feature(types.TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: ComposerLanguageServer, params: types.DidCloseTextDocumentParams) -> None:
    uri = params.text_document.uri
    ls.analyzer.forget(uri)
    ls.text_document_publish_diagnostics(types.PublishDiagnosticsParams(uri=uri, diagnostics=[]))


@server.feature(types.TEXT_DOCUMENT_HOVER)
async def hover(ls: ComposerLanguageServer, params: types.HoverParams) -> types.Hover | None:
    text = await ls.analyzer.hover(params.text_document.uri, params.position.line)
    if text is None:
        return None
    return types.Hover(
        contents=types.MarkupContent(kind=types.MarkupKind.Markdown, value=text),
        range=types.Range(
            start=types.Position(line=params.position.line, character=0),
            end=types.Position(line=params.position.line + 1, character=0),
        ),
    )


@server.feature(types.TEXT_DOCUMENT_DEFINITION)
async def definition(ls: ComposerLanguageServer, params: types.DefinitionParams) -> types.Location | None:
    url = await ls.analyzer.definition(params.text_document.uri, params.position.line)
    if url is None:
        return None

    if ls.settings.open_browser and not webbrowser.open(url):
        ls.log_error(f"Can't open the definition url: {url}")

    origin = types.Position(line=0, character=0)
    return types.Location(uri=url, range=types.Range(start=origin, end=origin))


@server.feature(types.TEXT_DOCUMENT_CODE_ACTION)
def code_action(ls: ComposerLanguageServer, params: types.CodeActionParams) -> list[types.Command] | None:
    if params.range.start.line != params.range.end.line:
        return None
    specs = ls.analyzer.code_actions(params.text_document.uri, params.range.start.line)
    return [to_lsp_command(spec) for spec in specs] or None


@server.command(UPDATE_COMMAND)
async def update_package(ls: ComposerLanguageServer, *args: Any) -> None:
    arguments = command_arguments(args)
    if len(arguments) < 2:
        ls.log_error(f"{UPDATE_COMMAND} needs a package name and a document")
        return None

    name, uri = str(arguments[0]), str(arguments[1])
    outcome = await run_composer(UPDATE, uri_to_path(uri).parent, name, ls.settings.composer_binary)
    ls.show_info(outcome.message)
    if outcome.success:
        await publish(ls, uri)
    return None


@server.command(INSTALL_COMMAND)
async def install_packages(ls: ComposerLanguageServer, *args: Any) -> None:
    arguments = command_arguments(args)
    if not arguments:
        ls.log_error(f"{INSTALL_COMMAND} needs a document")
        return None

    uri = str(arguments[0])
    outcome = await run_composer(INSTALL, uri_to_path(uri).parent, binary=ls.settings.composer_binary)
    ls.show_info(outcome.message)
    if outcome.success:
        await publish(ls, uri)
    return None


def start(settings: Settings | None = None) -> None:
    """Serve over stdio until the client disconnects."""
    if settings is not None:
        server.configure(settings)
    logger.info(f"composer-lsp {__version__} starting")
    server.start_io()
