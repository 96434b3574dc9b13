"""Minimal LSP server for Pleat: diagnostics only."""

from __future__ import annotations

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from pleat import __version__
from pleat.compiler import Compiler
from pleat.errors import PleatError
from pleat.parser import parse
from pleat.tokens import SourcePosition

server = LanguageServer("pleat-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Full)


def _diagnostic(position: SourcePosition, message: str, severity: DiagnosticSeverity) -> Diagnostic:
    line = max(0, position.line - 1)
    col = max(0, position.column - 1)
    return Diagnostic(
        range=Range(
            start=Position(line=line, character=col),
            end=Position(line=line, character=col + max(1, position.length)),
        ),
        message=message,
        severity=severity,
        source="pleat",
    )


def _validate(ls: LanguageServer, uri: str) -> None:
    """Run the Pleat pipeline and publish diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    source = doc.source
    filename = uri.rsplit("/", 1)[-1] if "/" in uri else uri
    diagnostics: list[Diagnostic] = []

    try:
        compiler = Compiler(parse(source, filename), source)
        code = compiler.compile()
    except PleatError as exc:
        diagnostics.append(_diagnostic(exc.position, exc.message, DiagnosticSeverity.Error))
    else:
        try:
            compile(code, f"<pleat {filename}>", "exec")
        except SyntaxError as exc:
            lines = [n for n in compiler.line_map if n <= (exc.lineno or 0)]
            position = compiler.line_map[max(lines)] if lines else SourcePosition(1, 1)
            diagnostics.append(
                _diagnostic(position, f"generated code: {exc.msg}", DiagnosticSeverity.Warning)
            )

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


def main() -> None:
    server.start_io()
