"""CLI command implementations"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from sqlmodel import Session, SQLModel

from mdillustrate.api.client import create_api_client
from mdillustrate.config import Settings, load_config
from mdillustrate.core.blocks import find_all_blocks
from mdillustrate.core.models import PollProgress
from mdillustrate.core.pipeline import GenerationProgress, run_generate, run_plan, run_regenerate, run_undo
from mdillustrate.crud.backups import diff_backup, get_latest_backup
from mdillustrate.crud.database import init_db, make_engine
from mdillustrate.errors import ConflictError, IllustrateError


NoteArg = Annotated[Path, typer.Argument(help="Markdown note to work on", exists=True, dir_okay=False)]
LogLevelOpt = Annotated[Optional[str], typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR")]


def _fail(msg: str, cause: Exception = None, code: int = 1) -> None:
    """Print a user-friendly error to stderr and exit with code."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(code)


def _conflict(e: ConflictError) -> None:
    typer.echo("Re-run the command to retry against the current note.", err=True)
    _fail(str(e), code=2)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling and configure logging."""
    try:
        settings = load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    return settings


def _client(settings: Settings):
    try:
        return create_api_client(settings)
    except ValueError as e:
        _fail(str(e))


def _echo_progress(p: GenerationProgress) -> None:
    typer.echo(f"  [{p.phase}] {p.message}")


def _echo_poll(p: PollProgress) -> None:
    typer.echo(f"  {p.message} ({p.percent:.0f}%)")


def generate_cmd(
    note: NoteArg,
    count: Annotated[Optional[int], typer.Option("--count", help="Max images to generate")] = None,
    style: Annotated[Optional[str], typer.Option("--style", help="Image style")] = None,
    mode: Annotated[Optional[str], typer.Option("--mode", help="Connection mode: direct or proxy")] = None,
    send: Annotated[Optional[str], typer.Option("--send-mode", help="full, headings or summary")] = None,
    no_backup: Annotated[bool, typer.Option("--no-backup", help="Skip the note backup")] = False,
    log_level: LogLevelOpt = None,
    ):
    """Plan summary images for a note, generate them, and insert them under their sections."""
    settings = _settings(overrides={
        "image_count": count, "image_style": style, "connection_mode": mode,
        "send_mode": send, "create_backup": False if no_backup else None, "log_level": log_level,
    })
    engine = None
    if settings.create_backup:
        engine = make_engine(settings.db_url)
        init_db(engine)

    async def _run():
        async with _client(settings) as client:
            return await run_generate(note, settings, client, engine, on_progress=_echo_progress)

    try:
        report = asyncio.run(_run())
    except ConflictError as e:
        _conflict(e)
    except IllustrateError as e:
        _fail("Generation failed", e)

    for item_id, msg in report.failures:
        typer.echo(f"  failed: {item_id} ({msg})", err=True)
    if not report.artifacts:
        _fail(f"No images were generated for {note}")
    typer.echo(f"Inserted {len(report.artifacts)} of {report.planned} planned image(s) into {note}")


def plan_cmd(
    note: NoteArg,
    count: Annotated[Optional[int], typer.Option("--count", help="Max images to plan")] = None,
    mode: Annotated[Optional[str], typer.Option("--mode", help="Connection mode: direct or proxy")] = None,
    log_level: LogLevelOpt = None,
    ):
    """Show the image plan and the line each image would go after. Nothing is written."""
    settings = _settings(overrides={"image_count": count, "connection_mode": mode, "log_level": log_level})

    async def _run():
        async with _client(settings) as client:
            return await run_plan(note, settings, client)

    try:
        planned = asyncio.run(_run())
    except IllustrateError as e:
        _fail("Planning failed", e)
    if not planned:
        typer.echo("Planner returned no images.")
        raise typer.Exit(1)
    for item, line in planned:
        typer.echo(f"  line {line + 1}: {item.id} - {item.title} (after '{item.after_heading}')")


def _undo(note: Path, clear: bool, log_level: Optional[str]) -> None:
    settings = _settings(overrides={"log_level": log_level})
    try:
        result = run_undo(note, settings, clear=clear)
    except ConflictError as e:
        _conflict(e)
    if not result.removed_count:
        typer.echo("No AI image blocks found.")
        raise typer.Exit(1)
    typer.echo(f"Removed {result.removed_count} image block(s) from {note}")


def undo_cmd(note: NoteArg, log_level: LogLevelOpt = None):
    """Remove the most recently inserted batch of image blocks."""
    _undo(note, clear=False, log_level=log_level)


def clear_cmd(note: NoteArg, log_level: LogLevelOpt = None):
    """Remove every inserted image block."""
    _undo(note, clear=True, log_level=log_level)


def regenerate_cmd(
    note: NoteArg,
    block_id: Annotated[Optional[str], typer.Option("--id", help="Block id to regenerate")] = None,
    line: Annotated[Optional[int], typer.Option("--line", help="1-based line inside the block")] = None,
    log_level: LogLevelOpt = None,
    ):
    """Generate a new image for one block from its stored prompt."""
    if (block_id is None) == (line is None):
        _fail("Pass exactly one of --id or --line")
    settings = _settings(overrides={"log_level": log_level})

    async def _run():
        async with _client(settings) as client:
            return await run_regenerate(
                note, settings, client,
                block_id=block_id, line=None if line is None else line - 1, on_progress=_echo_poll,
            )

    try:
        block = asyncio.run(_run())
    except ConflictError as e:
        _conflict(e)
    except (IllustrateError, ValueError) as e:
        _fail("Regeneration failed", e)
    typer.echo(f"Regenerated {block.id}: {block.artifact_ref}")


def blocks_cmd(note: NoteArg):
    """List the inserted image blocks in a note."""
    found = find_all_blocks(note.read_text(encoding="utf-8"))
    if not found:
        typer.echo("No AI image blocks found.")
        raise typer.Exit(1)
    for b in found:
        typer.echo(f"  lines {b.line_start + 1}-{b.line_end + 1}: {b.id} {b.generated_at} {b.artifact_ref or ''}")


def backup_cmd(
    note: NoteArg,
    diff: Annotated[bool, typer.Option("--diff", help="Show a unified diff against the current note")] = False,
    ):
    """Show the stored backup of a note."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    init_db(engine)
    with Session(engine) as session:
        backup = get_latest_backup(session, str(note))
        if backup is None:
            typer.echo(f"No backup stored for {note}")
            raise typer.Exit(1)
        typer.echo(f"Backup of {note} from {backup.created_at.isoformat(timespec='seconds')} ({backup.hash[:12]})")
        for image in backup.injected_images or []:
            typer.echo(f"  injected: {image}")
        if diff:
            lines = diff_backup(backup, note.read_text(encoding="utf-8"))
            typer.echo("".join(lines) if lines else "No changes since backup.")


def init_cmd(
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate all tables")] = False,
    ):
    """Initialize the backup database. Use --reset to clear existing backups."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    if reset:
        SQLModel.metadata.drop_all(engine)
        typer.echo("Existing backups cleared.")
    init_db(engine)
    typer.echo(f"Database initialized at: {settings.db_url}")
