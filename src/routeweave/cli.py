from __future__ import annotations

import json
import logging
from pathlib import Path
from types import SimpleNamespace
from typing import List, Optional

import typer

from routeweave.config import log_level, logging_defaults
from routeweave.logging_config import setup_logging

COMPLETE_COMMAND = "routeweave.complete"
CHECK_COMMAND = "routeweave.check"

app = typer.Typer(add_completion=False)
logger = logging.getLogger(__name__)


def _configure_logging(
    level: Optional[str], config: Optional[Path], root: Path = Path(".")
) -> None:
    if level is None:
        level = log_level(logging_defaults(root=root, config_path=config))
    setup_logging(level)


def _direct_server(root: Path) -> SimpleNamespace:
    return SimpleNamespace(workspace=SimpleNamespace(root_path=str(root.resolve())))


def dispatch_command(*, command: str, payload: dict, root: Path) -> dict:
    """Run a server command in-process, without the LSP transport."""
    from routeweave import server

    handlers = {
        COMPLETE_COMMAND: server.execute_complete,
        CHECK_COMMAND: server.execute_check,
    }
    handler = handlers.get(command)
    if handler is None:
        raise typer.BadParameter(f"Unknown command: {command}")
    logger.debug("dispatching %s", command)
    return handler(_direct_server(root), payload)


def _emit(result: dict) -> None:
    typer.echo(json.dumps(result, indent=2, sort_keys=True))


def _read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise typer.BadParameter(f"Cannot read {path}: {exc}") from exc


def resolve_cursor(text: str, *, offset: Optional[int], marker: Optional[str]) -> tuple[str, int]:
    if (offset is None) == (marker is None):
        raise typer.BadParameter("Pass exactly one of --offset or --marker.")
    if marker is not None:
        if not marker:
            raise typer.BadParameter("--marker must not be empty.")
        index = text.find(marker)
        if index < 0:
            raise typer.BadParameter(f"Marker {marker!r} not found in source.")
        return text[:index] + text[index + len(marker) :], index
    assert offset is not None
    if offset < 0 or offset > len(text):
        raise typer.BadParameter(
            f"Offset {offset} is outside the source (0..{len(text)})."
        )
    return text, offset


@app.command("complete")
def complete_command(
    path: Path = typer.Argument(..., help="Source file to complete in."),
    offset: Optional[int] = typer.Option(None, "--offset", help="Cursor offset in characters."),
    marker: Optional[str] = typer.Option(
        None, "--marker", help="Cursor marker text; removed from the source before completing."
    ),
    describe: Optional[bool] = typer.Option(None, "--describe/--no-describe"),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    log_level_name: Optional[str] = typer.Option(None, "--log-level"),
) -> None:
    """Print completion items at a cursor position as JSON."""
    _configure_logging(log_level_name, config, root)
    text, cursor = resolve_cursor(_read_source(path), offset=offset, marker=marker)
    payload = {
        "text": text,
        "offset": cursor,
        "describe_items": describe,
        "config_path": str(config) if config is not None else None,
    }
    result = dispatch_command(command=COMPLETE_COMMAND, payload=payload, root=root)
    _emit(result)
    if result.get("errors"):
        raise typer.Exit(code=2)


@app.command("check")
def check_command(
    paths: List[Path] = typer.Argument(..., help="Source files to check."),
    fail_on_diagnostics: bool = typer.Option(
        False, "--fail-on-diagnostics/--no-fail-on-diagnostics"
    ),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    log_level_name: Optional[str] = typer.Option(None, "--log-level"),
) -> None:
    """Report handlers whose return value is discarded."""
    _configure_logging(log_level_name, config, root)
    payload = {
        "paths": [str(path.resolve()) for path in paths],
        "config_path": str(config) if config is not None else None,
    }
    result = dispatch_command(command=CHECK_COMMAND, payload=payload, root=root)
    _emit(result)
    exit_code = int(result.get("exit_code", 0))
    if exit_code == 0 and fail_on_diagnostics and result.get("diagnostics"):
        exit_code = 1
    if exit_code:
        raise typer.Exit(code=exit_code)


@app.command("lsp")
def lsp(
    config: Optional[Path] = typer.Option(None, "--config"),
    log_level_name: Optional[str] = typer.Option(None, "--log-level"),
) -> None:
    """Run the language server over stdio."""
    _configure_logging(log_level_name, config)
    from routeweave import server

    server.start()


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()  # pragma: no cover
