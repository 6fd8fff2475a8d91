from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from pygls.lsp.server import LanguageServer
from pygls.workspace import TextDocument
from pydantic import ValidationError
from lsprotocol.types import (
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    CompletionItem,
    CompletionItemKind,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    Diagnostic,
    DiagnosticSeverity,
    Position,
    PublishDiagnosticsParams,
    Range,
)

from routeweave import __version__
from routeweave.analysis import (
    CompletionContextKind,
    complete,
    find_discarded_returns,
)
from routeweave.config import (
    completion_defaults,
    completion_describe_items,
    completion_enabled,
    diagnostic_defaults,
    diagnostic_severity,
    diagnostics_enabled,
    merge_payload,
)
from routeweave.invariants import never, require_not_none
from routeweave.schema import (
    CheckRequest,
    CheckResponse,
    CompletionRequest,
    CompletionResponse,
    DiagnosticDTO,
)
from routeweave.syntax import SourceDocument

logger = logging.getLogger(__name__)

server = LanguageServer("routeweave", __version__)
COMPLETE_COMMAND = "routeweave.complete"
CHECK_COMMAND = "routeweave.check"
TRIGGER_CHARACTERS = ["{", " ", "(", ","]
DIAGNOSTIC_SOURCE = "routeweave"
UNTITLED_URI = "untitled:routeweave"

_SEVERITIES = {
    "error": DiagnosticSeverity.Error,
    "warning": DiagnosticSeverity.Warning,
    "information": DiagnosticSeverity.Information,
    "hint": DiagnosticSeverity.Hint,
}


def _require_payload(payload: object, *, command: str) -> dict[str, object]:
    if payload is None:
        never("missing command payload", command=command)
    if not isinstance(payload, dict):
        never(
            "invalid command payload type",
            command=command,
            payload_type=type(payload).__name__,
        )
    return payload


def _workspace_root(ls: LanguageServer) -> Path | None:
    root = getattr(ls.workspace, "root_path", None)
    return Path(root) if root else None


def _config_path(raw: str | None) -> Path | None:
    return Path(raw) if raw else None


def _resolve_path(raw: str, root: Path | None) -> Path:
    path = Path(raw)
    if not path.is_absolute() and root is not None:
        path = root / path
    return path


def source_offset(document: TextDocument, position: Position) -> int:
    """Code-point offset of the client ``position`` (UTF-16 by default)."""
    lines = document.lines
    if not lines:
        return 0
    server_position = document.position_codec.position_from_client_units(lines, position)
    offset = sum(len(line) for line in lines[: server_position.line]) + server_position.character
    return min(offset, len(document.source))


def client_position(document: TextDocument, offset: int) -> Position:
    """Client position of the code-point ``offset``."""
    lines = document.lines
    remaining = max(0, min(offset, len(document.source)))
    for number, line in enumerate(lines):
        if remaining < len(line) or (remaining == len(line) and not line.endswith(("\n", "\r"))):
            return document.position_codec.position_to_client_units(
                lines, Position(line=number, character=remaining)
            )
        remaining -= len(line)
    return Position(line=len(lines), character=0)


def completion_response(
    text: str, offset: int, *, describe: bool = True
) -> CompletionResponse:
    result = complete(text, offset, describe=describe)
    return CompletionResponse(
        kind=result.kind.value if result.kind is not None else "none",
        items=[
            {"label": item.name, "detail": item.description or None}
            for item in result.items
        ],
    )


def check_text(
    text: str, *, path: str | None = None, severity: str = "warning"
) -> list[DiagnosticDTO]:
    document = TextDocument(UNTITLED_URI, source=text)
    findings: list[DiagnosticDTO] = []
    for finding in find_discarded_returns(text):
        start = client_position(document, finding.span[0])
        end = client_position(document, finding.span[1])
        findings.append(
            DiagnosticDTO(
                path=path,
                code=finding.code,
                message=finding.message,
                severity=severity,
                start={"line": start.line, "character": start.character},
                end={"line": end.line, "character": end.character},
            )
        )
    return findings


def _lsp_diagnostic(dto: DiagnosticDTO) -> Diagnostic:
    return Diagnostic(
        range=Range(
            start=Position(line=dto.start.line, character=dto.start.character),
            end=Position(line=dto.end.line, character=dto.end.character),
        ),
        message=dto.message,
        severity=_SEVERITIES.get(dto.severity, DiagnosticSeverity.Warning),
        code=dto.code,
        source=DIAGNOSTIC_SOURCE,
    )


def diagnostics_for_text(
    text: str, project_root: Path | None, config_path: Path | None = None
) -> list[Diagnostic]:
    section = diagnostic_defaults(root=project_root, config_path=config_path)
    if not diagnostics_enabled(section):
        return []
    severity = diagnostic_severity(section)
    return [_lsp_diagnostic(dto) for dto in check_text(text, severity=severity)]


@server.command(COMPLETE_COMMAND)
def execute_complete(ls: LanguageServer, payload: dict | None = None) -> dict:
    payload = _require_payload(payload, command=COMPLETE_COMMAND)
    root = _workspace_root(ls)
    try:
        request = CompletionRequest.model_validate(payload)
    except ValidationError as exc:
        return CompletionResponse(errors=[str(exc)]).model_dump()
    defaults = completion_defaults(root=root, config_path=_config_path(request.config_path))
    options = merge_payload({"describe_items": request.describe_items}, defaults)
    if not completion_enabled(options):
        return CompletionResponse().model_dump()
    if request.text is not None:
        text = request.text
    else:
        source = require_not_none(request.path, reason="completion payload has no source")
        path = _resolve_path(source, root)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            return CompletionResponse(errors=[f"{path}: {exc}"]).model_dump()
    if request.offset > len(text):
        return CompletionResponse(
            errors=[f"offset {request.offset} is past the end of the source ({len(text)})"]
        ).model_dump()
    response = completion_response(
        text, request.offset, describe=completion_describe_items(options)
    )
    return response.model_dump()


@server.command(CHECK_COMMAND)
def execute_check(ls: LanguageServer, payload: dict | None = None) -> dict:
    payload = _require_payload(payload, command=CHECK_COMMAND)
    root = _workspace_root(ls)
    try:
        request = CheckRequest.model_validate(payload)
    except ValidationError as exc:
        return CheckResponse(exit_code=2, errors=[str(exc)]).model_dump()
    section = diagnostic_defaults(root=root, config_path=_config_path(request.config_path))
    if not diagnostics_enabled(section):
        return CheckResponse().model_dump()
    severity = diagnostic_severity(section)
    diagnostics: list[DiagnosticDTO] = []
    errors: list[str] = []
    if request.text is not None:
        diagnostics.extend(check_text(request.text, severity=severity))
    for raw in request.paths:
        path = _resolve_path(raw, root)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            errors.append(f"{path}: {exc}")
            continue
        diagnostics.extend(check_text(text, path=raw, severity=severity))
    exit_code = 2 if errors else 0
    return CheckResponse(
        exit_code=exit_code, diagnostics=diagnostics, errors=errors
    ).model_dump()


@server.feature(
    TEXT_DOCUMENT_COMPLETION,
    CompletionOptions(trigger_characters=TRIGGER_CHARACTERS),
)
def completion(ls: LanguageServer, params: CompletionParams) -> CompletionList | None:
    root = _workspace_root(ls)
    section = completion_defaults(root=root)
    if not completion_enabled(section):
        return None
    document = ls.workspace.get_text_document(params.text_document.uri)
    text = document.source
    offset = source_offset(document, params.position)
    result = complete(
        SourceDocument(text), offset, describe=completion_describe_items(section)
    )
    if not result.items:
        logger.debug("no completions at %s:%d", params.text_document.uri, offset)
        return None
    kind = (
        CompletionItemKind.Variable
        if result.kind is CompletionContextKind.INSIDE_HANDLER_PARAMETER_NAME
        else CompletionItemKind.Field
    )
    return CompletionList(
        is_incomplete=False,
        items=[
            CompletionItem(
                label=item.name,
                kind=kind,
                detail=item.description or None,
                sort_text=f"{index:04d}",
            )
            for index, item in enumerate(result.items)
        ],
    )


def _publish(ls: LanguageServer, uri: str) -> None:
    document = ls.workspace.get_text_document(uri)
    diagnostics = diagnostics_for_text(document.source, _workspace_root(ls))
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_SAVE)
def did_save(ls: LanguageServer, params) -> None:
    _publish(ls, params.text_document.uri)


def start(start_fn: Callable[[], None] | None = None) -> None:
    """Start the language server over stdio."""
    (start_fn or server.start_io)()


if __name__ == "__main__":  # pragma: no cover
    start()  # pragma: no cover
