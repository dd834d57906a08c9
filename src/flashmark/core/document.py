"""Per-document pipeline: scan, reconcile, collect deletions."""

from typing import Collection, Iterable, Sequence

from .deletions import scan_deletions
from .edits import finalize_plan, validate_plan
from .meta import FrontMatter
from .model import NoteId, SourceDocument, SyncPlan
from .ports import FieldFormatter
from .reconcile import reconcile
from .record import ParseContext, parse_frozen_fields
from .scanner import scan_document
from .settings import ScanSettings
from .utils import obsidian_url, ordered_unique, split_tags

__all__ = ["document_context", "plan_document", "finalize_plan", "validate_plan"]


def _aliases(frontmatter: FrontMatter) -> list[str]:
    value = frontmatter.get("aliases")
    if value is None:
        return []
    if isinstance(value, str):
        return [a.strip() for a in value.split(",") if a.strip()]
    if isinstance(value, (list, tuple)):
        return [str(a) for a in value if a is not None and str(a)]
    return [str(value)]


def document_context(
    doc: SourceDocument,
    settings: ScanSettings,
    formatter: FieldFormatter,
    folder_deck: str | None = None,
    folder_tags: Sequence[str] = (),
) -> ParseContext:
    """Document-wide parse inputs: deck, global tags, link, aliases, frozen fields."""
    text = doc.text
    frontmatter = doc.meta.frontmatter

    deck_match = settings.deck_re.search(text)
    deck = deck_match.group(1).strip() if deck_match else None
    deck = deck or folder_deck or None

    tags: list[str] = []
    tag_match = settings.tag_re.search(text)
    if tag_match:
        tags.extend(split_tags(tag_match.group(1)))
    if settings.add_yaml_tags:
        tags.extend(t.lstrip("#") for t in frontmatter.get_list("tags"))
    tags.extend(folder_tags)
    tags.append(settings.tag)

    url = ""
    if settings.add_file_link and settings.vault_name:
        url = obsidian_url(settings.vault_name, doc.path)

    aliases: list[str] = []
    if settings.add_aliases:
        aliases = ordered_unique([doc.stem] + _aliases(frontmatter))

    return ParseContext(
        settings=settings,
        formatter=formatter,
        deck=deck,
        global_tags=ordered_unique(tags),
        frozen_fields=parse_frozen_fields(text, settings, formatter),
        url=url,
        aliases=aliases,
    )


def plan_document(
    doc: SourceDocument,
    settings: ScanSettings,
    known_ids: Collection[NoteId],
    formatter: FieldFormatter,
    folder_deck: str | None = None,
    folder_tags: Sequence[str] = (),
) -> SyncPlan:
    """
    Build the SyncPlan for one document.

    The result is a pure function of the document, settings and known ids;
    nothing is written until finalize_plan runs after the remote commit.
    """
    ctx = document_context(doc, settings, formatter, folder_deck, folder_tags)
    scan = scan_document(doc.text, ctx, doc.meta, doc.path)
    rec = reconcile(
        scan.notes,
        doc.meta.frontmatter.get_int("nid"),
        known_ids,
        settings.save_id_to_frontmatter,
        doc.path,
    )
    deletions = scan_deletions(doc.text, settings)
    return SyncPlan(
        document=doc,
        to_add=rec.adds,
        to_edit=rec.edits,
        to_delete=_unique_ids(d.identifier for d in deletions),
        deletions=deletions,
        state=rec.state,
        reports=scan.reports + rec.reports,
    )


def _unique_ids(ids: Iterable[NoteId]) -> list[NoteId]:
    seen: set[NoteId] = set()
    out = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            out.append(i)
    return out
