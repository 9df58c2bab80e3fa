"""Pure text mutations: block injection, removal, and in-place replacement

Nothing here touches the filesystem. Callers read the note, keep its fingerprint,
and pass it back as `expected_fingerprint` so a third-party edit made in between
is reported as a ConflictError instead of being overwritten.
"""

from collections import Counter
from typing import Iterable, Literal, Optional, Union

from mdillustrate.core.blocks import encode_block, find_all_blocks, find_block, new_block, timestamp_now
from mdillustrate.core.models import ContentBlock, InsertionTarget, RemovalResult
from mdillustrate.core.parse import split_frontmatter
from mdillustrate.core.utils.hashing import fingerprint
from mdillustrate.errors import ConflictError


def check_conflict(current_text: str, expected_fingerprint: Optional[str]) -> None:
    """Raise ConflictError when the note no longer matches the fingerprint taken at read time."""
    if expected_fingerprint is not None and expected_fingerprint != fingerprint(current_text):
        raise ConflictError("Note was modified externally since it was read. Please try again.")


def inject(
    current_text: str,
    expected_fingerprint: Optional[str],
    targets: list[InsertionTarget],
    generated_at: Optional[str] = None,
    ) -> str:
    """Insert one block per target right after its body line and return the new text.

    All blocks of the call share one generated_at timestamp so they can be undone
    as a batch. Insertions run bottom-up so pending line numbers stay valid.
    """
    check_conflict(current_text, expected_fingerprint)
    if not targets:
        return current_text

    dupes = [k for k, n in Counter(t.artifact.id for t in targets).items() if n > 1]
    if dupes:
        raise ValueError(f"Duplicate block ids in batch: {', '.join(dupes)}")

    generated_at = generated_at or timestamp_now()
    _, body = split_frontmatter(current_text)
    prefix = current_text[:len(current_text) - len(body)]
    lines = body.split('\n')

    # ties: later plan items first, so earlier ones end up above them
    ordered = sorted(enumerate(targets), key=lambda p: (p[1].line_number, p[0]), reverse=True)
    for _, target in ordered:
        at = min(max(target.line_number, -1), len(lines) - 1) + 1
        block = new_block(target.artifact, generated_at)
        lines[at:at] = ['', *encode_block(block), '']

    return prefix + '\n'.join(lines)


def remove(
    current_text: str,
    block_ids: Union[Iterable[str], Literal['all']],
    ) -> RemovalResult:
    """Delete whole blocks (by id, or 'all') plus the blank padding inject added around them."""
    blocks = find_all_blocks(current_text)
    if block_ids != 'all':
        wanted = set(block_ids)
        blocks = [b for b in blocks if b.id in wanted]
    return remove_blocks(current_text, blocks)


def remove_blocks(current_text: str, blocks: list[ContentBlock]) -> RemovalResult:
    """Delete the given blocks, located by their line spans in current_text.

    A run of blank lines that meets a removed span is collapsed to a single
    blank line. The rest of the note is left byte for byte, so removing one
    batch never reflows the blocks of another. With nothing to remove the text
    is returned unchanged.
    """
    if not blocks:
        return RemovalResult(new_text=current_text)

    lines = current_text.split('\n')
    drop: set[int] = set()
    for b in blocks:
        drop.update(range(b.line_start, b.line_end + 1))
        before, after = b.line_start - 1, b.line_end + 1
        if (before >= 0 and after < len(lines)
                and before not in drop and after not in drop
                and not lines[before].strip() and not lines[after].strip()):
            drop.update((before, after))

    kept: list[str] = []
    seams: list[int] = []
    for i, line in enumerate(lines):
        if i not in drop:
            kept.append(line)
        elif not seams or seams[-1] != len(kept):
            seams.append(len(kept))

    return RemovalResult(
        new_text='\n'.join(_collapse_at(kept, seams)),
        removed_blocks=tuple(blocks),
    )


def _collapse_at(lines: list[str], seams: list[int]) -> list[str]:
    """Squash each blank run touching a seam index into one empty line."""
    runs = set()
    for at in seams:
        start = end = at
        while start > 0 and not lines[start - 1].strip():
            start -= 1
        while end < len(lines) and not lines[end].strip():
            end += 1
        if end - start > 1:
            runs.add((start, end))
    for start, end in sorted(runs, reverse=True):
        lines[start:end] = ['']
    return lines


def replace_block(
    current_text: str,
    expected_fingerprint: Optional[str],
    old: ContentBlock,
    new: ContentBlock,
    ) -> str:
    """Swap block old for new in place.

    old is located by its line span when it has one, otherwise by id.
    """
    check_conflict(current_text, expected_fingerprint)
    blocks = find_all_blocks(current_text)
    existing = next((b for b in blocks if b.line_start == old.line_start and b.id == old.id), None)
    if existing is None:
        existing = find_block(current_text, old.id)
    if existing is None:
        raise ValueError(f"No image block with id {old.id!r} in note")
    lines = current_text.split('\n')
    lines[existing.line_start:existing.line_end + 1] = encode_block(new)
    return '\n'.join(lines)
