"""Tests for the span scanner."""

from flashmark.core.model import NoteKind, Span
from flashmark.core.record import ParseContext
from flashmark.core.scanner import SpanSet, regex_type_order, scan_document
from flashmark.core.settings import NoteTypeSpec, ScanSettings
from flashmark.format.cloze import ClozeFormatter


def make_settings(**kwargs):
    return ScanSettings(
        note_types={
            "Basic": NoteTypeSpec(["Front", "Back"]),
            "Cloze": NoteTypeSpec(["Text", "Back Extra"]),
        },
        tag="",
        **kwargs,
    )


def scan(text, settings=None):
    ctx = ParseContext(settings or make_settings(), ClozeFormatter())
    return scan_document(text, ctx)


def test_spanset_is_immutable():
    """Test add/remove return new sets and leave the original alone."""
    empty = SpanSet()
    one = empty.add(Span(0, 5))
    assert len(empty) == 0
    assert Span(0, 5) in one
    assert len(one.remove(Span(0, 5))) == 0
    assert len(one) == 1


def test_spanset_leeway():
    """Test containment and collision allow one character of slack."""
    spans = SpanSet((Span(10, 20),))
    assert spans.covers(Span(9, 21))
    assert not spans.covers(Span(8, 21))
    # Overlap of exactly one character is tolerated
    assert not spans.collides(Span(19, 30))
    assert spans.collides(Span(18, 30))


def test_block_note_found():
    """Test a block note is found with its insertion point before END."""
    text = "intro\nSTART\nBasic\nQ::A\nEND\n"
    result = scan(text)

    assert len(result.block) == 1
    note = result.block[0]
    assert note.dialect.kind is NoteKind.BLOCK
    assert text[note.span.start:note.span.end] == "START\nBasic\nQ::A\nEND"
    assert text[note.insert_at:].startswith("END")


def test_block_id_span_in_document_offsets():
    """Test the id span is expressed in document offsets."""
    text = "START\nBasic\nQ::A\nID: 3\nEND\n"
    note = scan(text).block[0]
    assert text[note.id_span.start:note.id_span.end] == "ID: 3\n"


def test_inline_note_found():
    """Test an inline note in running text."""
    text = "Some text STARTI [Basic] Q::A ENDI more text"
    result = scan(text)

    assert len(result.inline) == 1
    note = result.inline[0]
    assert note.record.fields == {"Front": "Q", "Back": "A"}
    assert text[note.insert_at:].startswith("ENDI")


def test_inline_inside_block_rejected():
    """Test an inline note contained in a block note is not scanned twice."""
    text = "START\nBasic\nSTARTI [Basic] x::y ENDI\nEND\n"
    result = scan(text)
    assert len(result.block) == 1
    assert result.inline == []


def test_regex_note_found():
    """Test a custom regex note type."""
    settings = make_settings()
    settings.note_types["Basic"].regex = r"^Q: (.+)\nA: (.+)"
    text = "Q: one\nA: two\n"
    result = scan(text, settings)

    assert len(result.regex) == 1
    note = result.regex[0]
    assert note.record.fields == {"Front": "one", "Back": "two"}
    assert note.insert_at == note.span.end


def test_regex_prefers_id_variant():
    """Test the variant with an ID suffix wins over the bare pattern."""
    settings = make_settings()
    settings.note_types["Basic"].regex = r"^Q: (.+)\nA: (.+)"
    text = "Q: one\nA: two\nID: 42\n"
    result = scan(text, settings)

    assert len(result.regex) == 1
    assert result.regex[0].record.identifier == 42


def test_regex_ignores_block_notes():
    """Test regex matches inside an accepted block note are skipped."""
    settings = make_settings()
    settings.note_types["Basic"].regex = r"^Q: (.+)\nA: (.+)"
    text = "START\nBasic\nQ: one\nA: two\nEND\n"
    result = scan(text, settings)
    assert len(result.block) == 1
    assert result.regex == []


def test_regex_ignores_code_and_math():
    """Test regex types never match inside code spans or math."""
    settings = make_settings()
    settings.note_types["Basic"].regex = r"(\w+)::(\w+)"
    text = "`code::inside` and $a::b$ but real::match"
    result = scan(text, settings)

    assert [n.record.fields["Front"] for n in result.regex] == ["real"]


def test_regex_ignores_directive_lines():
    """Test the TARGET DECK line is not taken as a note."""
    settings = make_settings()
    settings.note_types["Basic"].regex = r"^(.+): (.+)$"
    text = "TARGET DECK: Bio\n"
    assert scan(text, settings).regex == []


def test_regex_one_past_ignored_span_rejected():
    """Test a match running one character past an ignored line is still inside it."""
    settings = make_settings()
    settings.note_types["Basic"].regex = r"^(.+): (.+)\n"
    assert scan("TARGET DECK: Bio\n", settings).regex == []

    # Two characters past is outside the tolerance
    settings.note_types["Basic"].regex = r"^(.+): (.+)\n\n"
    result = scan("TARGET DECK: Bio\n\n", settings)
    assert [n.record.fields["Back"] for n in result.regex] == ["Bio"]


def test_regex_tags_and_id_suffix():
    """Test a trailing Tags line and ID line are read as tags and id, not fields."""
    settings = make_settings()
    settings.note_types["Basic"].regex = r"^Q: (.+)\nA: (.+)\n"
    text = "Q: one\nA: two\nTags: t1 t2\nID: 42\n"
    result = scan(text, settings)

    assert len(result.regex) == 1
    note = result.regex[0]
    assert note.record.fields == {"Front": "one", "Back": "two"}
    assert note.record.tags == ["t1", "t2"]
    assert note.record.identifier == 42
    assert text[note.id_span.start:note.id_span.end] == "\nID: 42"


def test_unknown_note_type_reported():
    """Test an unknown type is reported and its text stays claimed."""
    settings = make_settings()
    settings.note_types["Basic"].regex = r"^(Nope)\n(.+)"
    text = "START\nNope\nx\nEND\n"
    result = scan(text, settings)

    assert result.block == []
    assert [r.kind for r in result.reports] == ["note_type_error"]
    assert result.regex == []


def test_cloze_failure_releases_span():
    """Test a failed cloze match frees its text for a later pattern."""
    # Cloze is tried first and fails: the sentence has no deletion
    settings = ScanSettings(
        note_types={
            "Cloze": NoteTypeSpec(["Text", "Back Extra"], regex=r"^(.+) is (.+)$"),
            "Basic": NoteTypeSpec(["Front", "Back"], regex=r"^(.+) is (.+)$"),
        },
        tag="",
    )
    text = "The sky is blue\n"
    result = scan(text, settings)

    assert [n.record.note_type for n in result.regex] == ["Basic"]
    # Covered by an accepted note, so not reported
    assert result.reports == []


def test_cloze_failure_reported_once():
    """Test an unclaimed cloze failure yields exactly one report."""
    text = "START\nCloze\nno deletion\nEND\n"
    result = scan(text)
    assert [r.kind for r in result.reports] == ["cloze_error"]


def test_notes_in_document_order():
    """Test the combined note list is sorted by position."""
    text = "STARTI [Basic] a::b ENDI\nSTART\nBasic\nc::d\nEND\n"
    notes = scan(text).notes
    assert [n.dialect.kind for n in notes] == [NoteKind.INLINE, NoteKind.BLOCK]


def test_regex_type_order_required_tags():
    """Test required-tag gating filters and orders regex types."""
    settings = make_settings(regex_required_tags=True)
    settings.note_types["Basic"].regex = "a"
    settings.note_types["Cloze"].regex = "b"
    settings.note_types["Cloze"].required_tags = ["cloze"]

    assert regex_type_order(settings, set()) == ["Basic"]
    assert regex_type_order(settings, {"cloze"}) == ["Cloze", "Basic"]


def test_regex_type_order_without_gating():
    """Test required tags are ignored when gating is off."""
    settings = make_settings()
    settings.note_types["Cloze"].regex = "b"
    settings.note_types["Cloze"].required_tags = ["cloze"]
    assert regex_type_order(settings, set()) == ["Cloze"]
