"""CLI for notes-export (export, listings, and note and folder edits)."""

import dataclasses
import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from notes_export.backends import make_backend
from notes_export.config import (
    DEFAULT_ACCOUNT,
    DEFAULT_JOBS,
    BackendMode,
    ExportConfig,
    UnresolvedFolderPolicy,
)
from notes_export.core.render import (
    html_to_markdown,
    markdown_to_html,
    note_to_markdown,
    text_to_html,
)
from notes_export.errors import NotesExportError, format_error_chain
from notes_export.exporter import make_coordinator
from notes_export.logging_config import configure_logging
from notes_export.models.note import NoteSummary
from notes_export.protocols import NotesBackend

app = typer.Typer(help="Export Apple Notes to a folder structure on disk.", no_args_is_help=True)
accounts_app = typer.Typer(help="Notes accounts.", no_args_is_help=True)
folders_app = typer.Typer(help="Folders of an account.", no_args_is_help=True)
notes_app = typer.Typer(help="Notes of an account.", no_args_is_help=True)
app.add_typer(accounts_app, name="accounts")
app.add_typer(folders_app, name="folders")
app.add_typer(notes_app, name="notes")


@dataclasses.dataclass
class _State:
    config: ExportConfig
    account: str
    output_json: bool


@contextmanager
def _reporting_errors() -> Iterator[None]:
    """Print the full error chain and exit 1 on any export failure."""
    try:
        yield
    except (NotesExportError, OSError, ValueError) as e:
        logger.error(format_error_chain(e))
        raise typer.Exit(1) from e


def _state(ctx: typer.Context) -> _State:
    state: _State = ctx.obj
    return state


def _backend(state: _State) -> NotesBackend:
    return make_backend(state.config)


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _log_progress(done: int, total: int, title: str) -> None:
    if title:
        logger.info("[{}/{}] {}", done, total, title)
    else:
        logger.info("[{}/{}]", done, total)


def _split_folder_path(path: str) -> list[str]:
    """Parse 'Personal > Archive' into ['Personal', 'Archive']."""
    parts = [p.strip() for p in path.split(">") if p.strip()]
    if not parts:
        msg = f"folder path {path!r} is empty"
        raise typer.BadParameter(msg)
    return parts


def _read_body(body: str | None, body_file: Path | None, stdin: bool) -> str:
    if sum([body is not None, body_file is not None, stdin]) > 1:
        msg = "use only one of --body, --body-file and --stdin"
        raise typer.BadParameter(msg)
    if body is not None:
        return body
    if body_file is not None:
        return body_file.read_text(encoding="utf-8")
    if stdin:
        return typer.get_text_stream("stdin").read()
    return ""


def _body_html(text: str, *, as_markdown: bool, as_html: bool) -> str:
    """Plain text by default; --markdown renders it, --html stores it as given."""
    if as_markdown and as_html:
        msg = "--markdown and --html are mutually exclusive"
        raise typer.BadParameter(msg)
    if as_html:
        return text
    if as_markdown:
        return markdown_to_html(text)
    return text_to_html(text)


def _require_yes(yes: bool) -> None:
    if not yes:
        msg = "refusing to delete without --yes"
        raise typer.BadParameter(msg)


BodyOpt = Annotated[str | None, typer.Option("--body", help="Plain text body")]
BodyFileOpt = Annotated[Path | None, typer.Option("--body-file", help="Read body from a file")]
StdinOpt = Annotated[bool, typer.Option("--stdin", help="Read body from stdin")]
MarkdownOpt = Annotated[bool, typer.Option("--markdown", help="Treat body as Markdown")]
RawHtmlOpt = Annotated[bool, typer.Option("--html", help="Treat body as raw HTML")]


@app.callback()
def main(
    ctx: typer.Context,
    account: str = typer.Option(DEFAULT_ACCOUNT, "--account", "-a", help="Notes account"),
    backend: BackendMode = typer.Option(BackendMode.AUTO, "--backend", help="Backend for reads"),
    db_path: Annotated[
        Path | None,
        typer.Option("--db-path", help="NoteStore.sqlite to read (default: auto-detect)"),
    ] = None,
    fixture: Annotated[
        Path | None,
        typer.Option("--fixture", hidden=True, help="Serve notes from a JSON fixture"),
    ] = None,
    osascript_bin: str = typer.Option("osascript", "--osascript-bin", hidden=True),
    debug_scripts: bool = typer.Option(False, "--debug-scripts", hidden=True),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)
    config = ExportConfig(
        backend=backend,
        db_path=db_path,
        fixture=fixture,
        osascript_bin=osascript_bin,
        debug_scripts=debug_scripts,
    )
    ctx.obj = _State(config=config, account=account, output_json=output_json)


@app.command()
def export(
    ctx: typer.Context,
    out: Path = typer.Option(..., "--out", "-o", help="Output directory (created if missing)"),
    jobs: int = typer.Option(DEFAULT_JOBS, "--jobs", "-J", help="Export worker threads"),
    html: bool = typer.Option(False, "--html", help="Also write contents.html"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write anything"),
    progress: bool = typer.Option(False, "--progress", help="Log a line per exported note"),
    unknown_folder: Annotated[
        UnresolvedFolderPolicy | None,
        typer.Option(
            "--unknown-folder",
            help="Notes with an unresolvable folder: fail, or file them under 'Unknown' "
            "(default depends on the backend)",
        ),
    ] = None,
) -> None:
    """Export all notes of the account to a folder structure on disk."""
    state = _state(ctx)
    overrides: dict[str, Any] = {
        "jobs": jobs,
        "include_html": html,
        "dry_run": dry_run,
        "progress": progress,
    }
    if unknown_folder is not None:
        overrides["bridge_unresolved_folder"] = unknown_folder
        overrides["store_unresolved_folder"] = unknown_folder
    config = dataclasses.replace(state.config, **overrides)

    with _reporting_errors():
        config.effective_jobs()
        coordinator = make_coordinator(
            make_backend(config),
            config,
            on_progress=_log_progress if config.progress else None,
        )
        stats = coordinator.export(state.account, out)

    if state.output_json:
        _echo_json(dataclasses.asdict(stats))
    else:
        typer.echo(f"Exported {stats.exported}/{stats.total} notes to {out}")


@accounts_app.command("list")
def accounts_list(ctx: typer.Context) -> None:
    """List accounts."""
    state = _state(ctx)
    with _reporting_errors():
        accounts = _backend(state).list_accounts()
    if state.output_json:
        _echo_json([dataclasses.asdict(a) for a in accounts])
        return
    for a in accounts:
        typer.echo(a.name)


@folders_app.command("list")
def folders_list(
    ctx: typer.Context,
    tree: bool = typer.Option(False, "--tree", help="Print as an indented tree"),
) -> None:
    """List folders with their full paths."""
    state = _state(ctx)
    with _reporting_errors():
        folders = _backend(state).list_folders(state.account)
    if state.output_json:
        _echo_json([{**dataclasses.asdict(f), "path": list(f.path)} for f in folders])
        return
    for f in sorted(folders, key=lambda f: f.path):
        if tree:
            typer.echo("  " * (len(f.path) - 1) + f.name)
        else:
            typer.echo(f.path_string())


@folders_app.command("create")
def folders_create(
    ctx: typer.Context,
    parent: str = typer.Option(..., "--parent", help='Parent folder path, e.g. "Personal"'),
    name: str = typer.Option(..., "--name", help="New folder name"),
) -> None:
    """Create a folder and print its id."""
    state = _state(ctx)
    parent_path = _split_folder_path(parent)
    with _reporting_errors():
        folder_id = _backend(state).create_folder(state.account, parent_path, name)
    if state.output_json:
        _echo_json({"id": folder_id})
    else:
        typer.echo(folder_id)


@folders_app.command("rename")
def folders_rename(
    ctx: typer.Context,
    folder: str = typer.Option(..., "--folder", help="Folder path to rename"),
    name: str = typer.Option(..., "--name", help="New folder name"),
) -> None:
    state = _state(ctx)
    folder_path = _split_folder_path(folder)
    with _reporting_errors():
        _backend(state).rename_folder(state.account, folder_path, name)


@folders_app.command("delete")
def folders_delete(
    ctx: typer.Context,
    folder: str = typer.Option(..., "--folder", help="Folder path to delete"),
    yes: bool = typer.Option(False, "--yes", help="Required to actually delete"),
) -> None:
    state = _state(ctx)
    _require_yes(yes)
    folder_path = _split_folder_path(folder)
    with _reporting_errors():
        _backend(state).delete_folder(state.account, folder_path)


@notes_app.command("list")
def notes_list(
    ctx: typer.Context,
    folder: Annotated[
        str | None,
        typer.Option("--folder", "-f", help='Folder path, e.g. "Personal > Archive"'),
    ] = None,
    query: Annotated[
        str | None,
        typer.Option("--query", "-q", help="Title substring (case-insensitive)"),
    ] = None,
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Max rows")] = None,
) -> None:
    """List notes, optionally restricted to one folder."""
    state = _state(ctx)
    folder_path = _split_folder_path(folder) if folder else None
    with _reporting_errors():
        backend = _backend(state)
        summaries: list[NoteSummary] = []
        backend.stream_note_summaries(state.account, folder_path, summaries.append)

    if query:
        summaries = [n for n in summaries if query.lower() in n.title.lower()]
    if limit is not None:
        summaries = summaries[:limit]

    if state.output_json:
        _echo_json([dataclasses.asdict(n) for n in summaries])
        return
    for n in summaries:
        typer.echo(f"{n.title}\t{n.id}")


@notes_app.command("show")
def notes_show(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id (x-coredata://...)"),
    raw_html: bool = typer.Option(False, "--html", help="Print the raw HTML body"),
) -> None:
    """Print one note as markdown."""
    state = _state(ctx)
    with _reporting_errors():
        note = _backend(state).get_note(note_id)

    if state.output_json:
        _echo_json(
            {
                "id": note.id,
                "title": note.title,
                "folder_id": note.folder_id,
                "created_at": note.created_at.isoformat(),
                "modified_at": note.modified_at.isoformat(),
                "body_html": note.body_html,
            }
        )
    elif raw_html:
        typer.echo(note.body_html)
    else:
        typer.echo(note_to_markdown(note.title, html_to_markdown(note.body_html)))


@notes_app.command("create")
def notes_create(
    ctx: typer.Context,
    folder: str = typer.Option(..., "--folder", help='Folder path, e.g. "Personal > Archive"'),
    title: str = typer.Option(..., "--title", help="Note title"),
    body: BodyOpt = None,
    body_file: BodyFileOpt = None,
    stdin: StdinOpt = False,
    as_markdown: MarkdownOpt = False,
    as_html: RawHtmlOpt = False,
) -> None:
    """Create a note and print its id."""
    state = _state(ctx)
    folder_path = _split_folder_path(folder)
    with _reporting_errors():
        text = _read_body(body, body_file, stdin)
        body_html = _body_html(text, as_markdown=as_markdown, as_html=as_html)
        note_id = _backend(state).create_note_html(state.account, folder_path, title, body_html)
    if state.output_json:
        _echo_json({"id": note_id})
    else:
        typer.echo(note_id)


@notes_app.command("rename")
def notes_rename(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id (x-coredata://...)"),
    title: str = typer.Option(..., "--title", help="New title"),
) -> None:
    state = _state(ctx)
    with _reporting_errors():
        _backend(state).set_note_title(note_id, title)


@notes_app.command("set-body")
def notes_set_body(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id (x-coredata://...)"),
    body: BodyOpt = None,
    body_file: BodyFileOpt = None,
    stdin: StdinOpt = False,
    as_markdown: MarkdownOpt = False,
    as_html: RawHtmlOpt = False,
) -> None:
    """Replace the body of a note."""
    state = _state(ctx)
    with _reporting_errors():
        text = _read_body(body, body_file, stdin)
        body_html = _body_html(text, as_markdown=as_markdown, as_html=as_html)
        _backend(state).set_note_body_html(note_id, body_html)


@notes_app.command("append")
def notes_append(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id (x-coredata://...)"),
    body: BodyOpt = None,
    body_file: BodyFileOpt = None,
    stdin: StdinOpt = False,
    as_markdown: MarkdownOpt = False,
    as_html: RawHtmlOpt = False,
) -> None:
    """Append to the body of a note."""
    state = _state(ctx)
    with _reporting_errors():
        text = _read_body(body, body_file, stdin)
        body_html = _body_html(text, as_markdown=as_markdown, as_html=as_html)
        _backend(state).append_note_body_html(note_id, body_html)


@notes_app.command("move")
def notes_move(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id (x-coredata://...)"),
    folder: str = typer.Option(..., "--folder", help="Destination folder path"),
) -> None:
    state = _state(ctx)
    folder_path = _split_folder_path(folder)
    with _reporting_errors():
        _backend(state).move_note(note_id, state.account, folder_path)


@notes_app.command("delete")
def notes_delete(
    ctx: typer.Context,
    note_id: str = typer.Argument(..., help="Note id (x-coredata://...)"),
    yes: bool = typer.Option(False, "--yes", help="Required to actually delete"),
) -> None:
    state = _state(ctx)
    _require_yes(yes)
    with _reporting_errors():
        _backend(state).delete_note(note_id)
