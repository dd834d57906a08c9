"""Record parser: one matched span of raw text to one NoteRecord."""

import re
from dataclasses import dataclass, field

from .model import NOTE_TYPE_ERROR, CLOZE_ERROR, NoteRecord, ParseFailure, Span
from .ports import FieldFormatter, FormatContext
from .settings import TAG_PREFIX, ScanSettings
from .utils import ordered_unique, split_tags

BLOCK_ID_RE = re.compile(r"^\s*(?:<!--)?ID: (\d+)")
INLINE_ID_RE = re.compile(r"(?:<!--)?ID: (\d+)(?:-->)?(?=\s*\Z)")
INLINE_TAG_RE = re.compile(r"Tags: (.*)")
INLINE_TYPE_RE = re.compile(r"\[(.*?)\]")
CLOZE_RE = re.compile(r"{{c\d+::[\s\S]+?}}")
OBS_TAG_RE = re.compile(r"(?<![\w&/#])#(\w[\w/-]*)")


@dataclass
class ParseContext:
    """Everything a parse needs beyond the raw text; built once per document."""
    settings: ScanSettings
    formatter: FieldFormatter
    deck: str | None = None
    global_tags: list[str] = field(default_factory=list)
    frozen_fields: dict[str, dict[str, str]] = field(default_factory=dict)
    url: str = ""
    aliases: list[str] = field(default_factory=list)


@dataclass
class ParsedNote:
    record: NoteRecord
    id_span: Span | None = None  # relative to the raw text handed to the parser


@dataclass
class _Line:
    start: int
    end: int  # without the newline
    stop: int  # including the newline
    content: str


def _lines(raw: str) -> list[_Line]:
    out = []
    offset = 0
    for ln in raw.splitlines(keepends=True):
        content = ln.rstrip("\r\n")
        out.append(_Line(offset, offset + len(content), offset + len(ln), content))
        offset += len(ln)
    while out and not out[0].content.strip():
        out.pop(0)
    while out and not out[-1].content.strip():
        out.pop()
    return out


def segment_bounds(text: str, split_newlines: bool = True) -> list[tuple[int, int]]:
    """
    Offsets of positional field segments.

    Segments are separated by "::" (and newlines when split_newlines), except
    inside {{...}} so cloze markers stay whole. Blank lines yield no segment.
    """
    bounds: list[tuple[int, int]] = []
    start = 0
    depth = 0
    i = 0

    def close(end: int) -> None:
        blank_line = (
            not text[start:end].strip()
            and (start == 0 or text[start - 1] == "\n")
            and (end == len(text) or text[end] == "\n")
        )
        if not (split_newlines and blank_line):
            bounds.append((start, end))

    while i < len(text):
        pair = text[i:i + 2]
        if pair == "{{":
            depth += 1
            i += 2
            continue
        if pair == "}}" and depth:
            depth -= 1
            i += 2
            continue
        if depth == 0:
            if pair == "::":
                close(i)
                i += 2
                start = i
                continue
            if split_newlines and text[i] == "\n":
                close(i)
                i += 1
                start = i
                continue
        i += 1
    close(len(text))
    return bounds or [(0, 0)]


def _label_re(names: list[str], block: bool) -> re.Pattern[str]:
    alternation = "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True))
    if block:
        return re.compile(rf"^({alternation}):(?!:)", re.MULTILINE)
    return re.compile(rf"(?<!\S)({alternation}):(?=\s|$)")


def split_fields(body: str, names: list[str], block: bool = True) -> dict[str, str]:
    """Distribute a note body over the schema's fields."""
    fields = {name: "" for name in names}
    if not names:
        return fields

    label_re = _label_re(names, block)
    if label_re.search(body):
        # Labelled: "Back:" switches the current field
        pieces: dict[str, list[str]] = {name: [] for name in names}
        current = names[0]
        pos = 0
        for m in label_re.finditer(body):
            pieces[current].append(body[pos:m.start()])
            current = m.group(1)
            pos = m.end()
        pieces[current].append(body[pos:])
        sep = "\n" if block else " "
        return {
            name: sep.join(p.strip() for p in parts if p.strip())
            for name, parts in pieces.items()
        }

    bounds = segment_bounds(body, split_newlines=block)
    for i, name in enumerate(names):
        if i >= len(bounds):
            break
        start, end = bounds[i]
        if i == len(names) - 1:
            end = bounds[-1][1]
        fields[name] = body[start:end].strip()
    return fields


def _append(value: str, extra: str) -> str:
    return f"{value}<br>{extra}" if value else extra


def finish_record(
    note_type: str,
    raw_fields: dict[str, str],
    tags: list[str],
    identifier: int | ParseFailure | None,
    ctx: ParseContext,
    context: str = "",
) -> NoteRecord:
    """Format fields and inject tags, links, context and aliases."""
    settings = ctx.settings
    spec = settings.note_types[note_type]
    is_cloze = settings.is_cloze_type(note_type)
    fmt = FormatContext(
        cloze=is_cloze and settings.curly_cloze,
        highlights_to_cloze=settings.highlights_to_cloze,
    )
    fields = {
        name: ctx.formatter.format(value.strip(), fmt).strip()
        for name, value in raw_fields.items()
    }

    for name, frozen in ctx.frozen_fields.get(note_type, {}).items():
        if name in fields and frozen:
            fields[name] += frozen

    if settings.add_file_link and ctx.url and spec.file_link_field in fields:
        link = f'<a href="{ctx.url}" class="obsidian-link">{settings.file_link_label}</a>'
        fields[spec.file_link_field] = _append(fields[spec.file_link_field], link)

    if settings.add_context and context and spec.context_field in fields:
        fields[spec.context_field] = _append(fields[spec.context_field], context)

    if settings.add_aliases and ctx.aliases and spec.alias_field in fields:
        fields[spec.alias_field] = _append(
            fields[spec.alias_field], ", ".join(ctx.aliases)
        )

    local_tags = list(tags)
    if settings.add_obsidian_tags:
        for name, value in fields.items():
            local_tags.extend(OBS_TAG_RE.findall(value))
            fields[name] = OBS_TAG_RE.sub("", value).strip()

    if is_cloze and not any(CLOZE_RE.search(v) for v in fields.values()):
        identifier = CLOZE_ERROR

    return NoteRecord(
        note_type=note_type,
        fields=fields,
        tags=ordered_unique(local_tags + ctx.global_tags),
        deck=ctx.deck,
        identifier=identifier,
    )


def parse_block(raw: str, ctx: ParseContext, context: str = "") -> ParsedNote:
    """
    Parse a block note: type on the first line, then fields, then optional
    "Tags: ..." and "ID: n" lines.
    """
    lines = _lines(raw)
    if not lines:
        return ParsedNote(NoteRecord("", identifier=NOTE_TYPE_ERROR))

    note_type = lines[0].content.strip()
    rest = lines[1:]

    identifier = None
    id_span = None
    if rest:
        m = BLOCK_ID_RE.match(rest[-1].content)
        if m:
            identifier = int(m.group(1))
            id_span = Span(rest[-1].start, rest[-1].stop)
            rest.pop()

    tags: list[str] = []
    if rest and rest[-1].content.startswith(TAG_PREFIX):
        tags = split_tags(rest.pop().content[len(TAG_PREFIX):])

    if note_type not in ctx.settings.note_types:
        return ParsedNote(NoteRecord(note_type, identifier=NOTE_TYPE_ERROR), id_span)

    body = raw[rest[0].start:rest[-1].end] if rest else ""
    names = ctx.settings.note_types[note_type].fields
    fields = split_fields(body, names, block=True)
    record = finish_record(note_type, fields, tags, identifier, ctx, context)
    return ParsedNote(record, id_span)


def parse_inline(raw: str, ctx: ParseContext, context: str = "") -> ParsedNote:
    """Parse the text between the inline begin/end markers: "[Type] fields ..."."""
    work = raw
    identifier = None
    id_span = None
    m = INLINE_ID_RE.search(work)
    if m:
        identifier = int(m.group(1))
        end = m.end() + (1 if raw[m.end():m.end() + 1] == " " else 0)
        id_span = Span(m.start(), end)
        work = work[:m.start()]

    tags: list[str] = []
    m = INLINE_TAG_RE.search(work)
    if m:
        tags = split_tags(m.group(1))
        work = work[:m.start()]

    m = INLINE_TYPE_RE.search(work)
    if m is None:
        return ParsedNote(NoteRecord("", identifier=NOTE_TYPE_ERROR), id_span)
    note_type = m.group(1)
    if note_type not in ctx.settings.note_types:
        return ParsedNote(NoteRecord(note_type, identifier=NOTE_TYPE_ERROR), id_span)

    names = ctx.settings.note_types[note_type].fields
    fields = split_fields(work[m.end():].strip(), names, block=False)
    record = finish_record(note_type, fields, tags, identifier, ctx, context)
    return ParsedNote(record, id_span)


def parse_regex(
    match: re.Match[str],
    note_type: str,
    ctx: ParseContext,
    has_tags: bool = False,
    has_id: bool = False,
    context: str = "",
) -> ParsedNote:
    """
    Parse a custom-regex match. Capture groups map onto fields in order; the
    tag and ID suffix groups, when present, are the trailing groups.
    """
    user_groups = match.re.groups - (1 if has_tags else 0) - (2 if has_id else 0)
    base = match.start()

    tags: list[str] = []
    if has_tags:
        tag_text = match.group(user_groups + 1) or ""
        tags = split_tags(tag_text[len(TAG_PREFIX):])

    identifier = None
    id_span = None
    if has_id:
        idx = user_groups + (2 if has_tags else 1)
        identifier = int(match.group(idx + 1))
        id_span = Span(match.start(idx) - base, match.end(idx) - base)

    if note_type not in ctx.settings.note_types:
        return ParsedNote(NoteRecord(note_type, identifier=NOTE_TYPE_ERROR), id_span)

    names = ctx.settings.note_types[note_type].fields
    fields = {name: "" for name in names}
    for i, value in enumerate(match.group(g) or "" for g in range(1, user_groups + 1)):
        if not names:
            break
        if i < len(names):
            fields[names[i]] = value
        elif value:
            fields[names[-1]] = f"{fields[names[-1]]}\n{value}"
    record = finish_record(note_type, fields, tags, identifier, ctx, context)
    return ParsedNote(record, id_span)


def parse_frozen_fields(
    text: str, settings: ScanSettings, formatter: FieldFormatter
) -> dict[str, dict[str, str]]:
    """
    Read "FROZEN - Type:" blocks; their field text is appended to every note of
    that type in the document.
    """
    frozen: dict[str, dict[str, str]] = {}
    for m in settings.frozen_re.finditer(text):
        note_type = m.group(1)
        if note_type not in settings.note_types:
            continue
        fmt = FormatContext(
            cloze=settings.is_cloze_type(note_type) and settings.curly_cloze,
            highlights_to_cloze=settings.highlights_to_cloze,
        )
        fields = split_fields(m.group(2), settings.note_types[note_type].fields)
        frozen[note_type] = {
            name: formatter.format(value, fmt).strip() for name, value in fields.items()
        }
    return frozen
