from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from .meta import DocumentMeta

NoteId = int


class ParseFailure(Enum):
    """Sentinel identifier states for matches that are not really notes."""

    CLOZE = "cloze"  # cloze type without a single {{cN::...}}
    NOTE_TYPE = "note_type"  # unknown note type name


CLOZE_ERROR = ParseFailure.CLOZE
NOTE_TYPE_ERROR = ParseFailure.NOTE_TYPE


@dataclass(frozen=True)
class Span:
    start: int  # half-open offsets into the original buffer
    end: int

    def contains(self, other: Span, leeway: int = 1) -> bool:
        return other.start >= self.start - leeway and other.end <= self.end + leeway

    def overlaps(self, other: Span, leeway: int = 0) -> bool:
        return min(self.end, other.end) - max(self.start, other.start) > leeway

    def shift(self, offset: int) -> Span:
        return Span(self.start + offset, self.end + offset)


@dataclass(frozen=True)
class Edit:
    start: int
    end: int
    text: str

    @property
    def is_insertion(self) -> bool:
        return self.start == self.end


class NoteKind(Enum):
    BLOCK = "block"
    INLINE = "inline"
    REGEX = "regex"


@dataclass(frozen=True)
class Dialect:
    kind: NoteKind
    note_type: str | None = None  # only bound for regex notes

    def marker(self, identifier: NoteId, comment: bool = True) -> str:
        """Identifier marker text in the shape this dialect writes it."""
        token = f"ID: {identifier}"
        if comment:
            token = f"<!--{token}-->"
        if self.kind is NoteKind.BLOCK:
            return token + "\n"
        if self.kind is NoteKind.INLINE:
            return token + " "
        return "\n" + token


BLOCK = Dialect(NoteKind.BLOCK)
INLINE = Dialect(NoteKind.INLINE)


def regex_dialect(note_type: str) -> Dialect:
    return Dialect(NoteKind.REGEX, note_type)


@dataclass
class NoteRecord:
    note_type: str
    fields: dict[str, str] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    deck: str | None = None
    identifier: NoteId | ParseFailure | None = None

    @property
    def failed(self) -> bool:
        return isinstance(self.identifier, ParseFailure)


@dataclass
class ScannedNote:
    record: NoteRecord
    dialect: Dialect
    span: Span  # whole match
    insert_at: int  # where a fresh identifier marker goes
    id_span: Span | None = None  # existing marker, removable without residue


@dataclass
class NoteToEdit:
    identifier: NoteId
    note: ScannedNote

    @property
    def record(self) -> NoteRecord:
        return self.note.record


@dataclass(frozen=True)
class DeletionMarker:
    identifier: NoteId
    span: Span


@dataclass
class InlineWrite:
    position: int
    identifier: NoteId
    dialect: Dialect


@dataclass
class ReconciliationState:
    use_frontmatter_id: bool = False
    frontmatter_id: NoteId | None = None
    target_identifier: NoteId | None = None  # filled from new ids if still None
    strip_frontmatter_id: bool = False
    inline_writes: list[InlineWrite] = field(default_factory=list)


ReportKind = Literal[
    "note_type_error", "cloze_error", "unknown_identifier", "ambiguous_owner"
]


@dataclass
class Report:
    kind: ReportKind
    message: str
    path: str = ""
    span: Span | None = None
    identifier: NoteId | None = None


@dataclass(frozen=True)
class SourceDocument:
    path: str
    text: str
    meta: DocumentMeta = field(default_factory=DocumentMeta)

    @property
    def stem(self) -> str:
        name = self.path.replace("\\", "/").rsplit("/", 1)[-1]
        return name[:-3] if name.endswith(".md") else name


@dataclass
class SyncPlan:
    document: SourceDocument
    to_add: list[ScannedNote] = field(default_factory=list)
    to_edit: list[NoteToEdit] = field(default_factory=list)
    to_delete: list[NoteId] = field(default_factory=list)
    deletions: list[DeletionMarker] = field(default_factory=list)
    state: ReconciliationState = field(default_factory=ReconciliationState)
    reports: list[Report] = field(default_factory=list)
    buffer: str | None = None  # set by finalize_plan once ids are assigned

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_edit or self.to_delete)
