"""Marker-delimited image blocks: encoding, scanning, and lookup

A block as written into a note:

    <!-- ai-summary:start id="img1" generated="2026-01-02T03:04:05.678Z" prompt="..." -->
    ![[20260102_Overview.png]]
    *Caption*
    <!-- ai-summary:end id="img1" -->

The prompt attribute is optional and percent-encoded like encodeURIComponent.
"""

import re
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Iterator, Optional
from urllib.parse import quote

from mdillustrate.core.models import ContentBlock, GeneratedArtifact


START_RE = re.compile(r'^<!-- ai-summary:start id="([^"]+)" generated="([^"]+)"(?: prompt="([^"]*)")? -->$')
END_RE = re.compile(r'^<!-- ai-summary:end id="([^"]+)" -->$')
_UNSAFE_ID_RE = re.compile(r'["\s]')


def timestamp_now() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a 'Z' suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def encode_prompt(prompt: str) -> str:
    return quote(prompt, safe="!*'()")


def start_marker(block_id: str, generated_at: str, encoded_prompt: Optional[str] = None) -> str:
    attrs = f'id="{block_id}" generated="{generated_at}"'
    if encoded_prompt is not None:
        attrs += f' prompt="{encoded_prompt}"'
    return f'<!-- ai-summary:start {attrs} -->'


def end_marker(block_id: str) -> str:
    return f'<!-- ai-summary:end id="{block_id}" -->'


def new_block(artifact: GeneratedArtifact, generated_at: str) -> ContentBlock:
    """Build the block for a saved artifact: image embed line plus a one-line caption."""
    if not artifact.id or _UNSAFE_ID_RE.search(artifact.id):
        raise ValueError(f"Invalid block id: {artifact.id!r}")
    filename = PurePosixPath(artifact.storage_path.replace('\\', '/')).name
    caption = ' '.join((artifact.description or artifact.title).split())
    body = [f'![[{filename}]]']
    if caption:
        body.append(f'*{caption}*')
    return ContentBlock(
        id=artifact.id,
        generated_at=generated_at,
        body_lines=tuple(body),
        encoded_prompt=encode_prompt(artifact.source_prompt) if artifact.source_prompt else None,
    )


def encode_block(block: ContentBlock) -> list[str]:
    """Return the block's lines: start marker, payload, end marker.

    Both markers get the block's indent; payload lines are written as stored.
    """
    return [
        block.indent + start_marker(block.id, block.generated_at, block.encoded_prompt),
        *block.body_lines,
        block.indent + end_marker(block.id),
    ]


def _scan(lines: list[str]) -> Iterator[ContentBlock]:
    """Two-state scan. A start marker while inside restarts the block; an end marker
    with another id is payload; an unterminated block is dropped. Markers may be
    indented; the start marker's indent is kept on the block."""
    open_at: Optional[int] = None
    open_match = None
    indent = ''

    for i, line in enumerate(lines):
        stripped = line.strip()
        if m := START_RE.match(stripped):
            open_at, open_match = i, m
            indent = line[:len(line) - len(line.lstrip())]
            continue
        if open_at is None:
            continue
        if (m := END_RE.match(stripped)) and m.group(1) == open_match.group(1):
            yield ContentBlock(
                id=open_match.group(1),
                generated_at=open_match.group(2),
                encoded_prompt=open_match.group(3),
                body_lines=tuple(lines[open_at + 1:i]),
                line_start=open_at,
                line_end=i,
                indent=indent,
            )
            open_at, open_match = None, None


def find_all_blocks(text: str) -> list[ContentBlock]:
    """Return every well-formed block in document order."""
    return list(_scan(text.split('\n')))


def find_block_at_line(text: str, line: int) -> Optional[ContentBlock]:
    """Return the block whose marker span contains line, else None."""
    for block in _scan(text.split('\n')):
        if block.line_start <= line <= block.line_end:
            return block
    return None


def find_block(text: str, block_id: str) -> Optional[ContentBlock]:
    """Return the first block with the given id, else None."""
    return next((b for b in _scan(text.split('\n')) if b.id == block_id), None)
