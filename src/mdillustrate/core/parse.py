"""Front-matter stripping and heading-delimited section parsing"""

import logging
import re
from typing import Any, Optional

import yaml

from mdillustrate.core.models import ParsedDocument, Section


logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r'\A---[ \t]*\n(?:(.*?)\n)?---[ \t]*(?:\n|\Z)', re.DOTALL)
HEADING_RE = re.compile(r'^(#{1,6})\s+.+$')


def split_frontmatter(text: str) -> tuple[Optional[str], str]:
    """Return (raw_frontmatter, body); raw_frontmatter is None when there is no header."""
    m = FRONTMATTER_RE.match(text)
    if m:
        return m.group(1) or '', text[m.end():]
    return None, text


def load_frontmatter(raw: Optional[str]) -> dict[str, Any]:
    """Parse raw front matter as a YAML mapping; {} when absent."""
    if not raw:
        return {}
    try:
        fm = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML frontmatter: {e}") from e
    if not isinstance(fm, dict):
        raise ValueError(f"Invalid YAML frontmatter: expected a mapping, got {type(fm).__name__}")
    return fm


def heading_level(line: str) -> int | None:
    """Return heading level (1-6) if line starts a section, else None."""
    m = HEADING_RE.match(line)
    return len(m.group(1)) if m else None


def _extract_sections(body: str) -> list[Section]:
    """Split body lines into contiguous sections covering [0, last line]."""
    if not body.strip():
        return []

    lines = body.split('\n')
    sections: list[Section] = []
    heading, level, start, buf = None, 0, 0, []

    def _close(end: int) -> None:
        sections.append(Section(
            heading=heading or '',
            level=level,
            body_text='\n'.join(buf),
            line_start=start,
            line_end=end,
        ))

    for i, line in enumerate(lines):
        found = heading_level(line)
        if found is not None:
            if i > 0:
                _close(i - 1)
            heading, level, start, buf = line, found, i, []
        else:
            buf.append(line)

    _close(len(lines) - 1)
    return sections


def parse(text: str) -> ParsedDocument:
    """Parse a note into ordered, non-overlapping sections (front matter excluded)."""
    frontmatter, body = split_frontmatter(text)
    sections = _extract_sections(body)
    if not sections:
        logger.debug("No sections found (PARSE_EMPTY)")
    return ParsedDocument(
        sections=tuple(sections),
        raw_text=text,
        body=body,
        frontmatter=frontmatter,
    )
