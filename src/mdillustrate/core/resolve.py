"""Mapping planned heading names to the body line after which an image is inserted"""

import logging
import re
from typing import Iterable, Optional

from mdillustrate.core.models import GeneratedArtifact, InsertionTarget, ParsedDocument, Section


logger = logging.getLogger(__name__)

_MARKER_RE = re.compile(r'^#+\s*')
_NUMBER_PREFIX_RE = re.compile(r'^\d+[.\-、）)]\s*')
HORIZONTAL_RULE = '---'


def normalize_heading(raw: str) -> str:
    """Strip '#' markers and a leading '2. ' / '3) ' / '4、' prefix, trim, lowercase."""
    text = _MARKER_RE.sub('', raw.strip())
    text = _NUMBER_PREFIX_RE.sub('', text)
    return text.strip().lower()


def _match_index(sections: tuple[Section, ...], target: str) -> Optional[int]:
    """Exact normalized match first, then prefix match; preamble never matches."""
    if not target:
        return None
    headed = [(i, normalize_heading(s.heading)) for i, s in enumerate(sections) if s.level > 0]
    for i, name in headed:
        if name == target:
            return i
    for i, name in headed:
        if name.startswith(target):
            return i
    return None


def _section_end(doc: ParsedDocument, index: int) -> int:
    """Last body line of a section, or the line before its first horizontal rule."""
    lines = doc.lines
    section = doc.sections[index]
    following = doc.sections[index + 1] if index + 1 < len(doc.sections) else None

    search_start = min(len(lines) - 1, max(0, section.line_start + 1))
    search_end = following.line_start - 1 if following else len(lines) - 1
    for i in range(search_start, search_end + 1):
        if lines[i].strip() == HORIZONTAL_RULE:
            return max(section.line_start, i - 1)
    return section.line_end


def resolve(doc: ParsedDocument, target_heading: str) -> int:
    """Return the body line after which content for target_heading belongs.

    Falls back to the end of the last section when nothing matches, and to the
    last body line when the document has no sections at all.
    """
    if not doc.sections:
        return len(doc.lines) - 1

    index = _match_index(doc.sections, normalize_heading(target_heading))
    if index is None:
        last = doc.sections[-1]
        logger.warning("Heading %r not found; inserting at end of last section (RESOLUTION_FALLBACK)",
                       target_heading)
        return last.line_end
    return _section_end(doc, index)


def resolve_targets(
    doc: ParsedDocument,
    placements: Iterable[tuple[str, GeneratedArtifact]],
    ) -> list[InsertionTarget]:
    """Resolve (heading, artifact) pairs independently against the same unmutated parse."""
    return [
        InsertionTarget(line_number=resolve(doc, heading), artifact=artifact)
        for heading, artifact in placements
    ]
