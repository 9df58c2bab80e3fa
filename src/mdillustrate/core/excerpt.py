"""Planner input: a compact excerpt of the note within a character budget"""

from markdown_it import MarkdownIt

from mdillustrate.core.models import ParsedDocument
from mdillustrate.core.parse import parse


SEND_MODES = ("full", "headings", "summary")
TRUNCATED_MARK = "\n\n[truncated]"


def _make_parser(preset: str = "gfm-like") -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset name."""
    return MarkdownIt(preset, options_update={"linkify": False})


def collapse_code_blocks(body: str) -> str:
    """Replace each fenced or indented code block with '[code block: <lang>]'."""
    lines = body.split('\n')
    spans = []
    for tok in _make_parser().parse(body):
        if tok.type in ('fence', 'code_block') and tok.map:
            lang = tok.info.split()[0] if tok.info.strip() else 'code'
            spans.append((tok.map[0], tok.map[1], f"[code block: {lang}]"))
    for start, end, placeholder in reversed(spans):
        lines[start:end] = [placeholder]
    return '\n'.join(lines)


def _first_paragraph(body_text: str) -> str:
    para = []
    for line in body_text.split('\n'):
        if line.strip():
            para.append(line.strip())
        elif para:
            break
    return ' '.join(para)


def _outline(doc: ParsedDocument, with_paragraph: bool) -> str:
    parts = []
    for s in doc.sections:
        lead = _first_paragraph(s.body_text) if with_paragraph else ''
        parts.append('\n'.join(p for p in (s.heading, lead) if p))
    return '\n\n'.join(p for p in parts if p)


def _shrink_sections(doc: ParsedDocument, max_characters: int) -> str:
    """Give every section an equal share of the budget, marking cuts with '...'."""
    share = max_characters // len(doc.sections)
    parts = []
    for s in doc.sections:
        body = s.body_text[:share] + ('...' if len(s.body_text) > share else '')
        parts.append(f"{s.heading}\n{body}")
    return '\n\n'.join(parts)


def build_excerpt(doc: ParsedDocument, send_mode: str = "full", max_characters: int = 30000) -> str:
    """Return the text sent to the planner for doc.

    full: body with code collapsed; headings: each heading plus its first
    paragraph; summary: heading lines only.
    """
    if send_mode not in SEND_MODES:
        raise ValueError(f"Unknown send mode: {send_mode!r} (expected one of {', '.join(SEND_MODES)})")

    compact = parse(collapse_code_blocks(doc.body))
    if send_mode == "full":
        content = compact.body
    else:
        content = _outline(compact, with_paragraph=send_mode == "headings")

    if send_mode == "full" and len(content) > max_characters and compact.sections:
        content = _shrink_sections(compact, max_characters)
    if len(content) > max_characters:
        content = content[:max_characters] + TRUNCATED_MARK
    return content
