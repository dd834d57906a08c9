"""Deletion markers and bulk identifier removal."""

import re

from .edits import FRONTMATTER_RE, remove_frontmatter_id, through_newline
from .model import DeletionMarker, Edit, NoteId, Span
from .settings import ScanSettings

ID_MARKER_RE = re.compile(r"(?:<!--)?ID: (\d+)(?:-->)?")
NID_VALUE_RE = re.compile(r"^nid:\s*(\d+)", re.MULTILINE)


def scan_deletions(text: str, settings: ScanSettings) -> list[DeletionMarker]:
    """Every "DELETE" line followed by an ID line, in document order."""
    return [
        DeletionMarker(int(m.group(1)), Span(m.start(), m.end()))
        for m in settings.delete_re.finditer(text)
    ]


def frontmatter_nid(text: str) -> NoteId | None:
    m = FRONTMATTER_RE.match(text)
    if not m or m.group(1) is None:
        return None
    nid = NID_VALUE_RE.search(m.group(1))
    return int(nid.group(1)) if nid else None


def _marker_edits(text: str, settings: ScanSettings) -> list[tuple[NoteId, Edit]]:
    skip = [Span(m.start(), m.end()) for m in settings.delete_re.finditer(text)]
    out = []
    for m in ID_MARKER_RE.finditer(text):
        span = Span(m.start(), m.end())
        if any(s.contains(span, 0) for s in skip):
            continue
        line_start = m.start() == 0 or text[m.start() - 1] == "\n"
        eol = text.find("\n", m.end())
        rest = text[m.end():eol if eol != -1 else len(text)]
        if line_start and not rest.strip():
            end = through_newline(text, m.end() + len(rest))
            start = m.start()
            if end == m.end() + len(rest) and start > 0:
                # Last line without a newline: take the one before it
                start -= 1
            edit = Edit(start, end, "")
        else:
            end = m.end() + (1 if text.startswith(" ", m.end()) else 0)
            edit = Edit(m.start(), end, "")
        out.append((int(m.group(1)), edit))
    return out


def collect_identifiers(text: str, settings: ScanSettings) -> list[NoteId]:
    """Inline identifier markers plus the front-matter nid."""
    ids = [identifier for identifier, _ in _marker_edits(text, settings)]
    nid = frontmatter_nid(text)
    if nid is not None:
        ids.append(nid)
    return ids


def bulk_delete_edits(text: str, settings: ScanSettings) -> list[Edit]:
    """Edits erasing every identifier marker and the front-matter nid."""
    edits = [edit for _, edit in _marker_edits(text, settings)]
    if frontmatter_nid(text) is not None:
        fm_edit = remove_frontmatter_id(text)
        if fm_edit:
            edits.append(fm_edit)
    return edits
