"""Note backup persistence: save, prune, list, lookup, and diff against current text"""

from datetime import datetime
from typing import Optional

from sqlmodel import Session, select

from mdillustrate.core.utils.diff import unified_diff
from mdillustrate.core.utils.hashing import sha256
from mdillustrate.crud.models import NoteBackup


def get_latest_backup(session: Session, note_path: str) -> Optional[NoteBackup]:
    """Return the newest backup for note_path, or None."""
    return session.exec(
        select(NoteBackup)
        .where(NoteBackup.note_path == note_path)
        .order_by(NoteBackup.created_at.desc())
    ).first()


def list_backups(session: Session, note_path: Optional[str] = None) -> list[NoteBackup]:
    """Return backups newest first, optionally restricted to one note."""
    query = select(NoteBackup).order_by(NoteBackup.created_at.desc())
    if note_path is not None:
        query = query.where(NoteBackup.note_path == note_path)
    return list(session.exec(query).all())


def prune_backups(session: Session, max_backups: int) -> int:
    """Delete the oldest backups beyond max_backups. Returns count deleted. No-op if max_backups=0."""
    if max_backups == 0:
        return 0

    backups = list_backups(session)
    excess = backups[max_backups:]
    for b in excess:
        session.delete(b)
    session.flush()
    return len(excess)


def remove_backup(session: Session, note_path: str) -> int:
    """Delete every backup of note_path. Returns count deleted."""
    backups = list_backups(session, note_path)
    for b in backups:
        session.delete(b)
    session.flush()
    return len(backups)


def save_backup(
    session: Session,
    note_path: str,
    content: str,
    max_backups: int = 5,
    saved_at: datetime | None = None,
    ) -> NoteBackup:
    """Store content as the note's only backup, then prune the oldest overall.

    Flushes but does not commit; caller controls the transaction.
    """
    remove_backup(session, note_path)
    backup = NoteBackup(
        note_path=note_path,
        original_content=content,
        hash=sha256(content),
        injected_images=[],
        created_at=saved_at or datetime.now(),
    )
    session.add(backup)
    session.flush()

    if max_backups > 0:
        prune_backups(session, max_backups)
    return backup


def record_injected_image(session: Session, note_path: str, image_path: str) -> bool:
    """Append image_path to the latest backup of the note. False when there is no backup."""
    backup = get_latest_backup(session, note_path)
    if backup is None:
        return False
    backup.injected_images = [*(backup.injected_images or []), image_path]
    session.add(backup)
    session.flush()
    return True


def diff_backup(backup: NoteBackup, current_text: str, context: int = 3) -> list[str]:
    """Unified diff lines from the backed-up content to current_text."""
    stamp = backup.created_at.isoformat(timespec="seconds")
    return unified_diff(backup.original_content, current_text, f"backup@{stamp}", "current", context)
