"""Span scanner: locate every candidate note in a document without double-counting text."""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, Iterator

from .meta import DocumentMeta, heading_context
from .model import (
    BLOCK,
    CLOZE_ERROR,
    INLINE,
    NOTE_TYPE_ERROR,
    Dialect,
    NoteKind,
    Report,
    ScannedNote,
    Span,
    regex_dialect,
)
from .record import ParseContext, ParsedNote, parse_block, parse_inline, parse_regex
from .settings import (
    CODE_RE,
    DISPLAY_CODE_RE,
    DISPLAY_MATH_RE,
    ID_SUFFIX,
    INLINE_MATH_RE,
    TAG_SUFFIX,
    ScanSettings,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpanSet:
    """Immutable collection of spans; add/remove return a new set."""

    spans: tuple[Span, ...] = ()

    def add(self, *spans: Span) -> "SpanSet":
        return SpanSet(self.spans + tuple(spans))

    def remove(self, span: Span) -> "SpanSet":
        spans = list(self.spans)
        if span in spans:
            spans.remove(span)
        return SpanSet(tuple(spans))

    def covers(self, span: Span, leeway: int = 1) -> bool:
        """True if some member contains span (within leeway)."""
        return any(s.contains(span, leeway) for s in self.spans)

    def collides(self, span: Span, leeway: int = 1) -> bool:
        """True if some member overlaps span by more than leeway characters."""
        return any(s.overlaps(span, leeway) for s in self.spans)

    def __iter__(self) -> Iterator[Span]:
        return iter(self.spans)

    def __len__(self) -> int:
        return len(self.spans)

    def __contains__(self, span: object) -> bool:
        return span in self.spans


@dataclass(frozen=True)
class _Fold:
    ignored: SpanSet = SpanSet()
    accepted: SpanSet = SpanSet()

    def admits(self, span: Span) -> bool:
        return not self.ignored.covers(span) and not self.accepted.collides(span)

    def claim(self, span: Span) -> "_Fold":
        return _Fold(self.ignored.add(span), self.accepted.add(span))

    def release(self, span: Span) -> "_Fold":
        return _Fold(self.ignored.remove(span), self.accepted.remove(span))

    def ignore(self, spans: Iterable[Span]) -> "_Fold":
        return _Fold(self.ignored.add(*spans), self.accepted)


@dataclass
class ScanResult:
    block: list[ScannedNote] = field(default_factory=list)
    inline: list[ScannedNote] = field(default_factory=list)
    regex: list[ScannedNote] = field(default_factory=list)
    reports: list[Report] = field(default_factory=list)
    ignored: SpanSet = SpanSet()

    @property
    def notes(self) -> list[ScannedNote]:
        """All accepted notes in document order."""
        return sorted(self.block + self.inline + self.regex, key=lambda n: n.span.start)


def pattern_spans(pattern: re.Pattern[str], text: str) -> list[Span]:
    return [Span(m.start(), m.end()) for m in pattern.finditer(text)]


def directive_spans(text: str, settings: ScanSettings) -> list[Span]:
    """Deck, file tags, frozen fields and deletion lines."""
    out = pattern_spans(settings.frozen_re, text)
    for pattern in (settings.deck_re, settings.tag_re):
        m = pattern.search(text)
        if m:
            out.append(Span(m.start(), m.end()))
    out.extend(pattern_spans(settings.delete_re, text))
    return out


def markup_spans(text: str) -> list[Span]:
    """Math and code spans; regex note types never match inside them."""
    out: list[Span] = []
    for pattern in (INLINE_MATH_RE, DISPLAY_MATH_RE, CODE_RE, DISPLAY_CODE_RE):
        out.extend(pattern_spans(pattern, text))
    return out


@lru_cache(maxsize=256)
def regex_variant(regex: str, has_tags: bool, has_id: bool) -> re.Pattern[str]:
    suffix = (TAG_SUFFIX if has_tags else "") + (ID_SUFFIX if has_id else "")
    return re.compile(regex + suffix, re.MULTILINE)


# Most specific first so a trailing tag/ID block is not mis-split into fields
VARIANTS = ((True, True), (False, True), (True, False), (False, False))


def regex_type_order(settings: ScanSettings, document_tags: set[str]) -> list[str]:
    """Custom regex note types in the order they are tried."""
    types = [name for name, spec in settings.note_types.items() if spec.regex]
    if not settings.regex_required_tags:
        return types
    types.sort(key=lambda name: 0 if settings.note_types[name].required_tags else 1)
    return [
        name
        for name in types
        if not settings.note_types[name].required_tags
        or document_tags.intersection(settings.note_types[name].required_tags)
    ]


class _Scan:
    """One document's scan; passes thread a _Fold through and return it."""

    def __init__(
        self,
        text: str,
        ctx: ParseContext,
        meta: DocumentMeta | None = None,
        path: str = "",
    ):
        self.text = text
        self.ctx = ctx
        self.settings = ctx.settings
        self.meta = meta or DocumentMeta()
        self.path = path
        self.result = ScanResult()
        self.cloze_failures: dict[Span, Report] = {}

    def context_at(self, position: int) -> str:
        if not self.settings.add_context:
            return ""
        return heading_context(self.meta, self.path, position)

    def settle(
        self,
        fold: _Fold,
        parsed: ParsedNote,
        dialect: Dialect,
        span: Span,
        insert_at: int,
        offset: int,
    ) -> _Fold:
        record = parsed.record
        if record.identifier is CLOZE_ERROR:
            # Not really a note: give the text back to later patterns
            self.cloze_failures.setdefault(
                span,
                Report(
                    "cloze_error",
                    f"{record.note_type} note has no cloze deletions",
                    path=self.path,
                    span=span,
                ),
            )
            return fold.release(span)
        if record.identifier is NOTE_TYPE_ERROR:
            self.result.reports.append(
                Report(
                    "note_type_error",
                    f"Did not recognise note type {record.note_type!r}",
                    path=self.path,
                    span=span,
                )
            )
            return fold
        id_span = parsed.id_span.shift(offset) if parsed.id_span else None
        note = ScannedNote(record, dialect, span, insert_at, id_span)
        if dialect.kind is NoteKind.BLOCK:
            self.result.block.append(note)
        elif dialect.kind is NoteKind.INLINE:
            self.result.inline.append(note)
        else:
            self.result.regex.append(note)
        return fold

    def block_pass(self, fold: _Fold) -> _Fold:
        for m in self.settings.note_re.finditer(self.text):
            span = Span(m.start(), m.end())
            if not fold.admits(span):
                continue
            fold = fold.claim(span)
            parsed = parse_block(m.group(1), self.ctx, self.context_at(m.start()))
            fold = self.settle(fold, parsed, BLOCK, span, m.end(1), m.start(1))
        return fold

    def inline_pass(self, fold: _Fold) -> _Fold:
        for m in self.settings.inline_re.finditer(self.text):
            span = Span(m.start(), m.end())
            if not fold.admits(span):
                continue
            fold = fold.claim(span)
            parsed = parse_inline(m.group(1), self.ctx, self.context_at(m.start()))
            fold = self.settle(fold, parsed, INLINE, span, m.end(1), m.start(1))
        return fold

    def regex_pass(self, fold: _Fold, note_type: str) -> _Fold:
        regex = self.settings.note_types[note_type].regex
        dialect = regex_dialect(note_type)
        for has_tags, has_id in VARIANTS:
            pattern = regex_variant(regex, has_tags, has_id)
            for m in pattern.finditer(self.text):
                span = Span(m.start(), m.end())
                if m.end() == m.start() or not fold.admits(span):
                    continue
                fold = fold.claim(span)
                parsed = parse_regex(
                    m, note_type, self.ctx, has_tags, has_id, self.context_at(m.start())
                )
                fold = self.settle(fold, parsed, dialect, span, m.end(), m.start())
        return fold

    def run(self) -> ScanResult:
        fold = _Fold()
        fold = self.block_pass(fold)
        fold = self.inline_pass(fold)
        fold = fold.ignore(directive_spans(self.text, self.settings))
        fold = fold.ignore(markup_spans(self.text))
        for note_type in regex_type_order(self.settings, self.meta.document_tags()):
            fold = self.regex_pass(fold, note_type)

        for span, report in self.cloze_failures.items():
            if not fold.accepted.collides(span):
                self.result.reports.append(report)
        self.result.ignored = fold.ignored
        logger.debug(
            "%s: %d block, %d inline, %d regex notes",
            self.path or "<text>",
            len(self.result.block),
            len(self.result.inline),
            len(self.result.regex),
        )
        return self.result


def scan_document(
    text: str,
    ctx: ParseContext,
    meta: DocumentMeta | None = None,
    path: str = "",
) -> ScanResult:
    """
    Run every configured pattern over text and return the accepted notes.

    Pass order: block notes, inline notes, directive lines, math/code spans,
    then each custom regex type. A match contained in an ignored span or
    overlapping an accepted note is skipped.
    """
    return _Scan(text, ctx, meta, path).run()
