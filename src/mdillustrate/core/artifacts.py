"""Filesystem side of artifacts: saving generated images and deleting them on undo"""

import logging
from datetime import date
from pathlib import Path
from typing import Iterable, Optional

from mdillustrate.core.utils.slug import image_filename


logger = logging.getLogger(__name__)


def attachment_dir(note_path: Path, attachment_folder: str) -> Path:
    """Resolve the attachment folder; relative folders hang off the note's directory."""
    folder = Path(attachment_folder)
    return folder if folder.is_absolute() else note_path.parent / folder


def save_image(folder: Path, summary: str, data: bytes, day: Optional[date] = None) -> Path:
    """Write data to folder/YYYYMMDD_<summary>.png, replacing any existing file."""
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / image_filename(summary, day or date.today())
    if path.exists():
        path.unlink()
    path.write_bytes(data)
    logger.info("Saved image %s (%d bytes)", path, len(data))
    return path


def _locate(ref: str, search_dirs: list[Path]) -> Optional[Path]:
    ref_path = Path(ref)
    candidates = [ref_path] if ref_path.is_absolute() else []
    for d in search_dirs:
        candidates += [d / ref_path, d / ref_path.name]
    return next((c for c in candidates if c.is_file()), None)


def delete_artifacts(refs: Iterable[str], search_dirs: list[Path]) -> list[Path]:
    """Best-effort delete of referenced files; failures are logged, never raised."""
    deleted = []
    for ref in refs:
        path = _locate(ref, search_dirs)
        if path is None:
            logger.debug("Artifact %s not found; nothing to delete", ref)
            continue
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Failed to delete image file %s (ARTIFACT_DELETE_FAILED): %s", path, e)
            continue
        deleted.append(path)
    return deleted
