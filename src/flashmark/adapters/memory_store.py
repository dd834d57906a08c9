from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ..core.model import NoteId, NoteRecord, NoteToEdit
from ..core.ports import RemoteStore


@dataclass
class StoredNote:
    note_type: str
    deck: str
    fields: dict[str, str] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)


class InMemoryStore(RemoteStore):
    """RemoteStore kept in a dict; used for dry runs and tests."""

    def __init__(
        self,
        note_types: dict[str, list[str]] | None = None,
        next_id: NoteId = 1000,
    ):
        self._note_types = dict(note_types or {})
        self.notes: dict[NoteId, StoredNote] = {}
        self.decks: set[str] = set()
        self.next_id = next_id

    def known_identifiers(self) -> set[NoteId]:
        return set(self.notes)

    def note_types(self) -> dict[str, list[str]]:
        return {name: list(fields) for name, fields in self._note_types.items()}

    def ensure_decks(self, decks: Iterable[str]) -> None:
        self.decks.update(decks)

    def add_notes(
        self, records: Sequence[NoteRecord], default_deck: str
    ) -> list[NoteId | None]:
        ids: list[NoteId | None] = []
        for record in records:
            if record.note_type not in self._note_types:
                ids.append(None)
                continue
            nid = self.next_id
            self.next_id += 1
            self.notes[nid] = StoredNote(
                record.note_type,
                record.deck or default_deck,
                dict(record.fields),
                list(record.tags),
            )
            ids.append(nid)
        return ids

    def update_notes(self, edits: Sequence[NoteToEdit], default_deck: str) -> None:
        for item in edits:
            stored = self.notes[item.identifier]
            stored.fields = dict(item.record.fields)
            stored.tags = list(item.record.tags)
            stored.deck = item.record.deck or default_deck

    def delete_notes(self, ids: Sequence[NoteId]) -> None:
        for nid in ids:
            self.notes.pop(nid, None)
