"""Pipeline step functions: plan, generate, undo, and regenerate orchestration

These are the only functions that touch the note file. Each one reads the
note, keeps its fingerprint, and hands it to the pure mutators so an edit made
while images were being generated surfaces as a ConflictError.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Awaitable, Callable, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from mdillustrate.api.client import ImageApiClient, generate_image
from mdillustrate.config import Settings
from mdillustrate.core.artifacts import attachment_dir, delete_artifacts, save_image
from mdillustrate.core.blocks import find_all_blocks, find_block, find_block_at_line, timestamp_now
from mdillustrate.core.excerpt import build_excerpt
from mdillustrate.core.models import ContentBlock, GeneratedArtifact, PlanItem, PollProgress, RemovalResult
from mdillustrate.core.mutate import check_conflict, inject, replace_block
from mdillustrate.core.parse import parse
from mdillustrate.core.resolve import resolve, resolve_targets
from mdillustrate.core.undo import clear_all, undo_last
from mdillustrate.core.utils.hashing import fingerprint
from mdillustrate.core.utils.slug import image_filename
from mdillustrate.crud.backups import record_injected_image, save_backup
from mdillustrate.errors import ConflictError, IllustrateError


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class GenerationProgress:
    phase:        str       # planning | generating | saving | injecting | done | error
    current_item: int
    total_items:  int
    message:      str


@dataclass
class GenerationReport:
    note_path: Path
    planned:   int = 0
    artifacts: list[GeneratedArtifact] = field(default_factory=list)
    failures:  list[tuple[str, str]] = field(default_factory=list)     # (item id, error message)
    backed_up: bool = False


def _emit(on_progress, phase: str, current: int, total: int, message: str) -> None:
    logger.info("[%s %d/%d] %s", phase, current, total, message)
    if on_progress is not None:
        on_progress(GenerationProgress(phase, current, total, message))


def _read(note_path: Path) -> str:
    return note_path.read_text(encoding='utf-8')


def _unique_ids(items: list[PlanItem], taken: set[str]) -> list[str]:
    """Block ids for a batch: the plan's ids made safe and distinct from ids already in the note."""
    ids = []
    for n, item in enumerate(items, 1):
        base = '-'.join(item.id.replace('"', '').split()) or f"img{n}"
        candidate, suffix = base, 2
        while candidate in taken:
            candidate, suffix = f"{base}-{suffix}", suffix + 1
        taken.add(candidate)
        ids.append(candidate)
    return ids


async def run_plan(note_path: Path, settings: Settings, client: ImageApiClient) -> list[tuple[PlanItem, int]]:
    """Ask the planner for a plan and resolve each item's insertion line without writing anything."""
    doc = parse(_read(note_path))
    plan = await client.generate_plan(build_excerpt(doc, settings.send_mode, settings.max_characters), settings)
    return [(item, resolve(doc, item.after_heading)) for item in plan.items[:settings.image_count]]


async def run_generate(
    note_path: Path,
    settings: Settings,
    client: ImageApiClient,
    engine: Optional[Engine] = None,
    on_progress: Optional[Callable[[GenerationProgress], None]] = None,
    sleep: Sleep = asyncio.sleep,
    ) -> GenerationReport:
    """Plan, generate each image in turn, and inject the successful ones as one batch.

    A failed image is logged and skipped. ConflictError propagates after the
    images saved by this run are deleted again; the note is left untouched.
    """
    report = GenerationReport(note_path=note_path)

    _emit(on_progress, 'planning', 0, 0, 'Reading note...')
    text = _read(note_path)
    expected = fingerprint(text)
    doc = parse(text)

    if settings.create_backup and engine is not None:
        with Session(engine) as session:
            save_backup(session, str(note_path), text, settings.max_backups)
            session.commit()
        report.backed_up = True

    _emit(on_progress, 'planning', 0, 0, 'Generating plan...')
    plan = await client.generate_plan(build_excerpt(doc, settings.send_mode, settings.max_characters), settings)
    items = plan.items[:settings.image_count]
    report.planned = len(items)

    ids = _unique_ids(items, {b.id for b in find_all_blocks(text)})
    folder = attachment_dir(note_path, settings.attachment_folder)
    placements: list[tuple[str, GeneratedArtifact]] = []
    used_names: set[str] = set()
    total = len(items)

    for i, (item, block_id) in enumerate(zip(items, ids), 1):
        _emit(on_progress, 'generating', i, total, f"Generating image {i}/{total}: {item.title}")

        def _poll_progress(p: PollProgress, i=i) -> None:
            _emit(on_progress, 'generating', i, total, f"Image {i}/{total}: {p.message}")

        try:
            data = await generate_image(client, item.prompt, settings, _poll_progress, sleep=sleep)
            _emit(on_progress, 'saving', i, total, f"Saving image {i}/{total}...")
            name = item.title or block_id
            if name in used_names or (folder / image_filename(name, date.today())).exists():
                name = f"{name}_{block_id}"
            used_names.add(name)
            path = save_image(folder, name, data)
        except (IllustrateError, OSError) as e:
            logger.error("Failed to generate image %s: %s", item.id, e)
            report.failures.append((item.id, str(e)))
            continue

        artifact = GeneratedArtifact(
            id=block_id,
            storage_path=str(path),
            title=item.title,
            description=item.description,
            source_prompt=item.prompt,
        )
        report.artifacts.append(artifact)
        placements.append((item.after_heading, artifact))

    if not report.artifacts:
        _emit(on_progress, 'error', 0, 0, 'No images were generated')
        return report

    n = len(report.artifacts)
    _emit(on_progress, 'injecting', n, n, 'Injecting images into note...')
    targets = resolve_targets(doc, placements)
    try:
        new_text = inject(_read(note_path), expected, targets)
    except ConflictError:
        delete_artifacts([a.storage_path for a in report.artifacts], [folder])
        _emit(on_progress, 'error', 0, 0, 'Note was modified during generation')
        raise
    note_path.write_text(new_text, encoding='utf-8')

    if report.backed_up:
        with Session(engine) as session:
            for a in report.artifacts:
                record_injected_image(session, str(note_path), a.storage_path)
            session.commit()

    _emit(on_progress, 'done', n, n, f"Successfully generated {n} images!")
    return report


def run_undo(note_path: Path, settings: Settings, clear: bool = False) -> RemovalResult:
    """Remove the latest batch (or every block when clear) and delete the referenced images."""
    text = _read(note_path)
    expected = fingerprint(text)
    result = clear_all(text) if clear else undo_last(text)
    if not result.removed_count:
        return result

    check_conflict(_read(note_path), expected)
    note_path.write_text(result.new_text, encoding='utf-8')
    delete_artifacts(result.artifact_refs, [attachment_dir(note_path, settings.attachment_folder), note_path.parent])
    logger.info("Removed %d image block(s) from %s", result.removed_count, note_path)
    return result


async def run_regenerate(
    note_path: Path,
    settings: Settings,
    client: ImageApiClient,
    block_id: Optional[str] = None,
    line: Optional[int] = None,
    on_progress: Optional[Callable[[PollProgress], None]] = None,
    sleep: Sleep = asyncio.sleep,
    ) -> ContentBlock:
    """Re-render one block's image from its stored prompt and swap the block in place.

    The block keeps its id and caption and gets a fresh timestamp.
    """
    text = _read(note_path)
    expected = fingerprint(text)
    if line is not None:
        old = find_block_at_line(text, line)
    elif block_id is not None:
        old = find_block(text, block_id)
    else:
        raise ValueError("Pass a block id or a line number")
    if old is None:
        raise ValueError("No AI image block found at that position")
    if not old.source_prompt:
        raise ValueError("No prompt found in this image block. Cannot regenerate.")

    data = await generate_image(client, old.source_prompt, settings, on_progress, sleep=sleep)
    folder = attachment_dir(note_path, settings.attachment_folder)
    path = save_image(folder, _regenerated_name(folder, note_path, old.id), data)

    captions = [ln for ln in old.body_lines if not ln.lstrip().startswith('![')]
    new = ContentBlock(
        id=old.id,
        generated_at=timestamp_now(),
        body_lines=(f"{old.indent}![[{path.name}]]", *captions),
        encoded_prompt=old.encoded_prompt,
        indent=old.indent,
    )
    try:
        new_text = replace_block(_read(note_path), expected, old, new)
    except ConflictError:
        delete_artifacts([str(path)], [folder])
        raise
    note_path.write_text(new_text, encoding='utf-8')

    if old.artifact_ref:
        delete_artifacts([old.artifact_ref], [folder, note_path.parent])
    return new


def _regenerated_name(folder: Path, note_path: Path, block_id: str) -> str:
    """Image name for a regenerated block that is not taken in folder yet.

    Block ids repeat across notes sharing an attachment folder, so a taken
    '<date>_<id>.png' falls back to '<note>_<id>', then to numbered variants.
    """
    today = date.today()
    name, n = block_id, 2
    if (folder / image_filename(name, today)).exists():
        name = f"{note_path.stem}_{block_id}"
    while (folder / image_filename(name, today)).exists():
        name, n = f"{note_path.stem}_{block_id}_{n}", n + 1
    return name
