"""Edit engine: apply many edits computed against one original buffer."""

import re
from typing import Iterable, Sequence

from .model import DeletionMarker, Edit, NoteId, SyncPlan

FRONTMATTER_RE = re.compile(r"\A---\r?\n(?:([\s\S]*?)\r?\n)??---(?=\r?\n|\Z)")
NID_LINE_RE = re.compile(r"^nid:[^\r\n]*", re.MULTILINE)

PLACEHOLDER_ID = 1


class OverlapInvariantViolation(ValueError):
    """Two edits touch the same text; the producer is broken."""


def check_non_overlapping(edits: Iterable[Edit], length: int | None = None) -> None:
    """
    Raise OverlapInvariantViolation if any two edits overlap.

    Two insertions at the same offset count as overlapping, since the result
    would depend on application order. An insertion may share its offset with
    the start of a replacement; it lands in front of the replacement text.
    """
    ordered = sorted(edits, key=lambda e: (e.start, e.end))
    for e in ordered:
        if e.start < 0 or e.end < e.start or (length is not None and e.end > length):
            raise OverlapInvariantViolation(f"edit out of range: {e}")
    for a, b in zip(ordered, ordered[1:]):
        if b.start < a.end or (b.start == a.start and a.is_insertion and b.is_insertion):
            raise OverlapInvariantViolation(f"overlapping edits: {a} and {b}")


def apply_edits(text: str, edits: Iterable[Edit]) -> str:
    """Apply edits back to front so pending offsets never shift."""
    edits = list(edits)
    check_non_overlapping(edits, len(text))
    for e in sorted(edits, key=lambda e: (e.start, e.end), reverse=True):
        text = text[:e.start] + e.text + text[e.end:]
    return text


def through_newline(text: str, end: int) -> int:
    if text.startswith("\r\n", end):
        return end + 2
    if text.startswith("\n", end):
        return end + 1
    return end


def marker_edit(text: str, position: int, marker: str, normalize: bool = True) -> Edit:
    """
    Insert an identifier marker at position.

    With normalize, a marker landing after a blank line absorbs one newline so
    the insertion never leaves a doubled blank line behind.
    """
    if normalize:
        before = text[max(0, position - 2):position]
        if marker.startswith("\n") and before.endswith("\n"):
            return Edit(position, position, marker[1:])
        if not marker.startswith("\n") and before == "\n\n":
            return Edit(position - 1, position, marker)
    return Edit(position, position, marker)


def set_frontmatter_id(text: str, identifier: NoteId) -> Edit | None:
    """Edit storing identifier as the front-matter "nid"; None if already there."""
    line = f"nid: {identifier}"
    m = FRONTMATTER_RE.match(text)
    if m is None:
        return Edit(0, 0, f"---\n{line}\n---\n")
    if m.group(1) is None:
        closing = m.end() - 3
        return Edit(closing, closing, f"{line}\n")
    base = m.start(1)
    nid = NID_LINE_RE.search(m.group(1))
    if nid is None:
        return Edit(m.end(1), m.end(1), f"\n{line}")
    if nid.group(0).rstrip() == line:
        return None
    return Edit(base + nid.start(), base + nid.end(), line)


def remove_frontmatter_id(text: str) -> Edit | None:
    """
    Edit dropping the front-matter "nid".

    The last property loses its whole line; otherwise only the value goes so
    the remaining keys keep their order.
    """
    m = FRONTMATTER_RE.match(text)
    if m is None or m.group(1) is None:
        return None
    body = m.group(1)
    base = m.start(1)
    nid = NID_LINE_RE.search(body)
    if nid is None:
        return None
    if body[nid.end():].strip():
        if nid.group(0).rstrip() == "nid:":
            return None
        return Edit(base + nid.start(), base + nid.end(), "nid:")
    if nid.start() == 0:
        # Sole property: leave an empty "---\n---" block
        return Edit(base, through_newline(text, m.end(1)), "")
    start = nid.start()
    while start > 0 and body[start - 1] in "\r\n":
        start -= 1
    return Edit(base + start, m.end(1), "")


def deletion_edit(text: str, marker: DeletionMarker) -> Edit:
    """Erase a confirmed deletion marker together with its trailing newline."""
    return Edit(marker.span.start, through_newline(text, marker.span.end), "")


def build_edits(
    plan: SyncPlan,
    new_ids: Sequence[NoteId | None],
    comment: bool = True,
    deletions_confirmed: bool = True,
) -> list[Edit]:
    """
    Every edit the plan implies for its document.

    new_ids lines up with plan.to_add; a None entry (the store refused the
    note) writes nothing for that note.
    """
    text = plan.document.text
    state = plan.state
    edits: list[Edit] = []

    if state.use_frontmatter_id:
        for item in plan.to_edit:
            span = item.note.id_span
            if span is not None:
                edits.append(Edit(span.start, span.end, ""))
        target = state.target_identifier or next((i for i in new_ids if i), None)
        if target:
            fm_edit = set_frontmatter_id(text, target)
            if fm_edit is not None:
                edits.append(fm_edit)
    else:
        if state.strip_frontmatter_id:
            fm_edit = remove_frontmatter_id(text)
            if fm_edit is not None:
                edits.append(fm_edit)
        for write in state.inline_writes:
            marker = write.dialect.marker(write.identifier, comment)
            edits.append(marker_edit(text, write.position, marker))
        for note, identifier in zip(plan.to_add, new_ids):
            if identifier:
                marker = note.dialect.marker(identifier, comment)
                edits.append(marker_edit(text, note.insert_at, marker))

    if deletions_confirmed:
        edits.extend(deletion_edit(text, marker) for marker in plan.deletions)
    return edits


def validate_plan(plan: SyncPlan, comment: bool = True) -> None:
    """Build the edit set with placeholder ids; raises before anything is committed."""
    edits = build_edits(plan, [PLACEHOLDER_ID] * len(plan.to_add), comment)
    check_non_overlapping(edits, len(plan.document.text))


def finalize_plan(
    plan: SyncPlan,
    new_ids: Sequence[NoteId | None],
    comment: bool = True,
    deletions_confirmed: bool = True,
) -> str:
    """Apply the plan's edits once ids are known and store the result on plan.buffer."""
    edits = build_edits(plan, new_ids, comment, deletions_confirmed)
    plan.buffer = apply_edits(plan.document.text, edits)
    return plan.buffer
