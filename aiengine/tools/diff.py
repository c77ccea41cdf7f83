"""Line-level diff between two texts, as ordered added/removed/unchanged spans."""

from __future__ import annotations

from difflib import SequenceMatcher

from aiengine.schemas import DiffSpan


def _span(kind: str, lines: list[str]) -> DiffSpan:
    return DiffSpan(kind=kind, value="".join(lines), count=len(lines))


def diff_lines(old: str, new: str) -> list[DiffSpan]:
    """Diff ``old`` against ``new`` line by line.

    Identical texts produce an empty list. Otherwise spans cover both texts
    in order; a replaced block is reported as its removed lines followed by
    the added lines.
    """
    if old == new:
        return []

    a = old.splitlines(keepends=True)
    b = new.splitlines(keepends=True)
    spans: list[DiffSpan] = []
    for tag, i1, i2, j1, j2 in SequenceMatcher(None, a, b, autojunk=False).get_opcodes():
        if tag == "equal":
            spans.append(_span("unchanged", a[i1:i2]))
            continue
        if i2 > i1:
            spans.append(_span("removed", a[i1:i2]))
        if j2 > j1:
            spans.append(_span("added", b[j1:j2]))
    return spans
