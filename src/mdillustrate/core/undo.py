"""Undo of injected image blocks: latest batch only, or everything"""

from mdillustrate.core.blocks import find_all_blocks
from mdillustrate.core.models import RemovalResult
from mdillustrate.core.mutate import remove, remove_blocks


def undo_last(text: str) -> RemovalResult:
    """Remove every block sharing the newest generated_at timestamp (one injection batch).

    Blocks are matched by position, so ids reused by an older batch survive.
    """
    blocks = find_all_blocks(text)
    if not blocks:
        return RemovalResult(new_text=text)
    latest = max(b.timestamp for b in blocks)
    return remove_blocks(text, [b for b in blocks if b.timestamp == latest])


def clear_all(text: str) -> RemovalResult:
    """Remove every block regardless of timestamp."""
    return remove(text, 'all')
