"""Identifier reconciler: decide where a document's identifiers live."""

from dataclasses import dataclass, field
from typing import Collection, Iterable, Sequence

from .model import InlineWrite, NoteId, NoteToEdit, ReconciliationState, Report, ScannedNote


@dataclass
class Reconciliation:
    adds: list[ScannedNote] = field(default_factory=list)
    edits: list[NoteToEdit] = field(default_factory=list)
    state: ReconciliationState = field(default_factory=ReconciliationState)
    reports: list[Report] = field(default_factory=list)


def classify(
    notes: Iterable[ScannedNote], known_ids: Collection[NoteId]
) -> tuple[list[ScannedNote], list[NoteToEdit], list[ScannedNote]]:
    """Split scanned notes into adds, edits and notes carrying an unknown id."""
    adds: list[ScannedNote] = []
    edits: list[NoteToEdit] = []
    unknown: list[ScannedNote] = []
    for note in notes:
        identifier = note.record.identifier
        if identifier is None:
            adds.append(note)
        elif identifier in known_ids:
            edits.append(NoteToEdit(identifier, note))
        else:
            unknown.append(note)
    return adds, edits, unknown


def _unknown_report(note: ScannedNote, path: str) -> Report:
    identifier = note.record.identifier
    return Report(
        "unknown_identifier",
        f"Note with id {identifier} does not exist in the store",
        path=path,
        span=note.span,
        identifier=identifier,
    )


def reconcile(
    notes: Sequence[ScannedNote],
    frontmatter_id: NoteId | None,
    known_ids: Collection[NoteId],
    enabled: bool,
    path: str = "",
) -> Reconciliation:
    """
    Resolve the front-matter identifier against every note of a document.

    With the mode enabled and exactly one note, that note owns the front-matter
    "nid"; a known "nid" beats whatever inline id the note carries. Otherwise
    identifiers are inline, and a known "nid" left over from a single-note
    state moves onto the first new note.

    A note whose id is still unknown afterwards is reported and left out of
    both lists; guessing would either duplicate or overwrite a remote note.
    """
    adds, edits, unknown = classify(notes, known_ids)
    out = Reconciliation(state=ReconciliationState(frontmatter_id=frontmatter_id))
    state = out.state
    fm_known = frontmatter_id is not None and frontmatter_id in known_ids

    if frontmatter_id is not None and not fm_known:
        out.reports.append(
            Report(
                "unknown_identifier",
                f"Front-matter nid {frontmatter_id} does not exist in the store",
                path=path,
                identifier=frontmatter_id,
            )
        )

    if enabled and len(notes) == 1:
        state.use_frontmatter_id = True
        if fm_known:
            if adds:
                edits.append(NoteToEdit(frontmatter_id, adds.pop()))
            elif unknown:
                # Stale inline marker; its span is removed when edits are built
                edits.append(NoteToEdit(frontmatter_id, unknown.pop()))
            elif edits[0].identifier != frontmatter_id:
                edits[0] = NoteToEdit(frontmatter_id, edits[0].note)
        state.target_identifier = edits[0].identifier if edits else None
    elif fm_known:
        if any(e.identifier == frontmatter_id for e in edits):
            state.strip_frontmatter_id = True
        elif adds:
            owner = adds.pop(0)
            if adds:
                out.reports.append(
                    Report(
                        "ambiguous_owner",
                        f"Front-matter nid {frontmatter_id} could belong to "
                        f"{len(adds) + 1} new notes; assigned to the first",
                        path=path,
                        span=owner.span,
                        identifier=frontmatter_id,
                    )
                )
            edits.append(NoteToEdit(frontmatter_id, owner))
            state.inline_writes.append(
                InlineWrite(owner.insert_at, frontmatter_id, owner.dialect)
            )
            state.strip_frontmatter_id = True

    out.reports.extend(_unknown_report(note, path) for note in unknown)
    out.adds, out.edits = adds, edits
    return out
