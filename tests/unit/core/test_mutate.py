"""Unit tests for core/mutate.py"""

import pytest

from mdillustrate.core.blocks import find_all_blocks, new_block
from mdillustrate.core.models import ContentBlock, InsertionTarget
from mdillustrate.core.mutate import check_conflict, inject, remove, replace_block
from mdillustrate.core.parse import parse
from mdillustrate.core.resolve import resolve_targets
from mdillustrate.core.utils.hashing import fingerprint
from mdillustrate.errors import ConflictError


STAMP = "2026-01-01T00:00:00.000Z"
NOTE = "# A\nbody\n# B\nbody2"


def _inject(text, targets, stamp=STAMP):
    return inject(text, fingerprint(text), targets, generated_at=stamp)


# --- check_conflict ---

def test_check_conflict_matching_fingerprint():
    check_conflict(NOTE, fingerprint(NOTE))


def test_check_conflict_none_skips_check():
    check_conflict(NOTE, None)


def test_check_conflict_stale_fingerprint():
    with pytest.raises(ConflictError) as exc:
        check_conflict(NOTE + "\nedited", fingerprint(NOTE))
    assert exc.value.code == "CONFLICT"
    assert "modified externally" in str(exc.value)


# --- inject ---

def test_inject_after_line(artifact):
    """The block lands right after the target line with one blank line on each side."""
    result = _inject(NOTE, [InsertionTarget(1, artifact("img1"))])
    assert result.split("\n") == [
        "# A",
        "body",
        "",
        f'<!-- ai-summary:start id="img1" generated="{STAMP}" -->',
        "![[20260101_img1.png]]",
        '<!-- ai-summary:end id="img1" -->',
        "",
        "# B",
        "body2",
    ]


def test_inject_rejects_stale_fingerprint(artifact):
    """A third-party edit between read and write aborts the injection."""
    with pytest.raises(ConflictError):
        inject(NOTE + " changed", fingerprint(NOTE), [InsertionTarget(1, artifact("img1"))])


def test_inject_no_targets_returns_text():
    assert inject(NOTE, fingerprint(NOTE), []) == NOTE


def test_inject_duplicate_ids(artifact):
    with pytest.raises(ValueError, match="Duplicate block ids"):
        _inject(NOTE, [InsertionTarget(1, artifact("x")), InsertionTarget(3, artifact("x"))])


def test_inject_multiple_targets_keep_line_numbers(artifact):
    """Line numbers refer to the original text even after earlier insertions."""
    result = _inject(NOTE, [InsertionTarget(1, artifact("a")), InsertionTarget(3, artifact("b"))])
    lines = result.split("\n")
    assert lines[:2] == ["# A", "body"]
    assert lines[3].startswith('<!-- ai-summary:start id="a"')
    assert lines.index("body2") + 2 == next(i for i, l in enumerate(lines) if 'start id="b"' in l)


def test_inject_same_line_keeps_plan_order(artifact):
    result = _inject(NOTE, [InsertionTarget(1, artifact("first")), InsertionTarget(1, artifact("second"))])
    assert [b.id for b in find_all_blocks(result)] == ["first", "second"]


def test_inject_shares_one_timestamp(artifact):
    result = inject(NOTE, fingerprint(NOTE), [InsertionTarget(1, artifact("a")), InsertionTarget(3, artifact("b"))])
    stamps = {b.generated_at for b in find_all_blocks(result)}
    assert len(stamps) == 1


def test_inject_clamps_line_numbers(artifact):
    result = _inject(NOTE, [InsertionTarget(-1, artifact("top")), InsertionTarget(99, artifact("end"))])
    lines = result.split("\n")
    assert lines[1].startswith('<!-- ai-summary:start id="top"')
    assert lines[-2] == '<!-- ai-summary:end id="end" -->'


def test_inject_keeps_frontmatter(artifact):
    """Line numbers are body-relative; the header is re-attached unchanged."""
    text = "---\ntitle: x\n---\n# A\nbody"
    targets = resolve_targets(parse(text), [("A", artifact("img1"))])
    result = _inject(text, targets)
    assert result.startswith("---\ntitle: x\n---\n# A\nbody\n\n<!-- ai-summary:start")


def test_inject_then_remove_restores_text(artifact, sample_text):
    """Removing every injected block gives back the original note."""
    targets = resolve_targets(parse(sample_text), [
        ("Overview", artifact("a", title="Intro")),
        ("Setup", artifact("b", source_prompt="draw setup")),
        ("Usage", artifact("c")),
        ("Missing", artifact("d")),
    ])
    injected = _inject(sample_text, targets)
    assert len(find_all_blocks(injected)) == 4
    assert remove(injected, "all").new_text == sample_text


def test_inject_at_end_then_remove(artifact):
    text = "# A\nbody"
    injected = _inject(text, [InsertionTarget(1, artifact("img1"))])
    assert injected.endswith('<!-- ai-summary:end id="img1" -->\n')
    assert remove(injected, ["img1"]).new_text == text


# --- remove ---

def test_remove_by_id(artifact):
    injected = _inject(NOTE, [InsertionTarget(1, artifact("a")), InsertionTarget(3, artifact("b"))])
    result = remove(injected, ["a"])
    assert result.removed_count == 1
    assert [b.id for b in find_all_blocks(result.new_text)] == ["b"]
    assert result.artifact_refs == ["20260101_a.png"]


def test_remove_nothing_returns_text_unchanged():
    text = "a\n\n\n\nb"
    result = remove(text, "all")
    assert result.removed_count == 0
    assert result.new_text == text


def test_remove_unknown_id(artifact):
    injected = _inject(NOTE, [InsertionTarget(1, artifact("a"))])
    assert remove(injected, ["zzz"]).new_text == injected


def test_remove_without_padding():
    """Blocks written by hand without blank lines around them are still removed cleanly."""
    block = [
        f'<!-- ai-summary:start id="x" generated="{STAMP}" -->',
        "![[x.png]]",
        '<!-- ai-summary:end id="x" -->',
    ]
    text = "\n".join(["para", *block, "next"])
    assert remove(text, ["x"]).new_text == "para\nnext"


def test_remove_later_batch_after_blank_line(artifact):
    """The first batch lands after a blank line; removing the second batch leaves it byte for byte."""
    text = "# A\n\nbody\n\n# B\nbody2"
    first = _inject(text, [InsertionTarget(3, artifact("a"))])
    assert "body\n\n\n<!-- ai-summary:start" in first

    second = _inject(first, [InsertionTarget(8, artifact("b")), InsertionTarget(10, artifact("c"))],
                     stamp="2026-01-02T00:00:00.000Z")
    assert remove(second, ["b", "c"]).new_text == first
    assert remove(first, ["a"]).new_text == text


def test_remove_collapses_blank_runs_only_at_the_block():
    """Extra blank lines around a removed block shrink to one; runs elsewhere are kept."""
    block = [
        f'<!-- ai-summary:start id="x" generated="{STAMP}" -->',
        "![[x.png]]",
        '<!-- ai-summary:end id="x" -->',
    ]
    text = "\n".join(["para", "", "", *block, "", "", "next", "", "", "", "end"])
    assert remove(text, ["x"]).new_text == "para\n\nnext\n\n\n\nend"


# --- replace_block ---

def test_replace_block(artifact):
    injected = _inject(NOTE, [InsertionTarget(1, artifact("a", "old", title="Cap"))])
    [old] = find_all_blocks(injected)
    new = ContentBlock(
        id="a",
        generated_at="2026-02-01T00:00:00.000Z",
        body_lines=("![[20260201_a.png]]", *old.body_lines[1:]),
    )
    result = replace_block(injected, fingerprint(injected), old, new)
    [found] = find_all_blocks(result)
    assert found.body_lines == ("![[20260201_a.png]]", "*Cap*")
    assert found.generated_at == "2026-02-01T00:00:00.000Z"
    assert len(result.split("\n")) == len(injected.split("\n"))


def test_replace_block_conflict(artifact):
    injected = _inject(NOTE, [InsertionTarget(1, artifact("a"))])
    [old] = find_all_blocks(injected)
    with pytest.raises(ConflictError):
        replace_block(injected + "x", fingerprint(injected), old, old)


def test_replace_block_missing(artifact):
    block = new_block(artifact("ghost"), STAMP)
    with pytest.raises(ValueError, match="No image block"):
        replace_block(NOTE, fingerprint(NOTE), block, block)
