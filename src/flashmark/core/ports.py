from dataclasses import dataclass
from typing import Protocol, Iterable, Sequence
from .meta import DocumentMeta
from .model import NoteId, NoteRecord, NoteToEdit


@dataclass(frozen=True)
class FormatContext:
    cloze: bool = False  # note type is a cloze type and curly clozes are on
    highlights_to_cloze: bool = False


class FieldFormatter(Protocol):
    """
    Pure text-to-text transform applied to every field value.
    """

    def format(self, text: str, context: FormatContext) -> str:
        pass


class MetadataReader(Protocol):
    """
    Build the read-only metadata snapshot (front matter, headings, tags).
    """

    def read(self, text: str) -> DocumentMeta:
        pass


class RemoteStore(Protocol):
    """
    The flashcard store that owns note identifiers.
    """

    def known_identifiers(self) -> set[NoteId]:
        pass

    def note_types(self) -> dict[str, list[str]]:
        pass

    def ensure_decks(self, decks: Iterable[str]) -> None:
        pass

    def add_notes(
        self, records: Sequence[NoteRecord], default_deck: str
    ) -> list[NoteId | None]:
        pass

    def update_notes(self, edits: Sequence[NoteToEdit], default_deck: str) -> None:
        pass

    def delete_notes(self, ids: Sequence[NoteId]) -> None:
        pass


class StorageStrategy(Protocol):
    """
    Markdown documents addressed by vault-relative POSIX path.
    """

    def read_raw(self, path: str) -> str | None:
        pass

    def write_raw(self, path: str, contents: str) -> None:
        pass

    def list_all_paths(self) -> Iterable[str]:
        pass
