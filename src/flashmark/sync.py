"""File manager: plan each document, commit to the store, then write the file."""

import logging
from dataclasses import asdict, dataclass, field
from typing import Iterable

from .adapters.fs_storage import FsStorage
from .adapters.markdown_parser import MarkdownMetadataReader
from .adapters.sqlite_index import SQLiteHashIndex, content_hash
from .config import FlashmarkConfig, merge_schemas
from .core.deletions import bulk_delete_edits, collect_identifiers
from .core.document import finalize_plan, plan_document, validate_plan
from .core.edits import OverlapInvariantViolation, apply_edits
from .core.model import NoteId, Report, SourceDocument, SyncPlan
from .core.ports import FieldFormatter, MetadataReader, RemoteStore
from .format.cloze import ClozeFormatter

logger = logging.getLogger(__name__)


@dataclass
class DocumentOutcome:
    path: str
    added: int = 0
    updated: int = 0
    deleted: int = 0
    written: bool = False
    reports: list[Report] = field(default_factory=list)
    error: str | None = None


@dataclass
class SyncSummary:
    scanned: int = 0
    unchanged: int = 0
    documents: list[DocumentOutcome] = field(default_factory=list)

    def totals(self) -> dict[str, int]:
        return {
            "scanned": self.scanned,
            "unchanged": self.unchanged,
            "added": sum(d.added for d in self.documents),
            "updated": sum(d.updated for d in self.documents),
            "deleted": sum(d.deleted for d in self.documents),
            "written": sum(1 for d in self.documents if d.written),
            "reports": sum(len(d.reports) for d in self.documents),
            "failed": sum(1 for d in self.documents if d.error),
        }


def settings_fingerprint(config: FlashmarkConfig) -> str:
    """Hash of everything that changes how a document is parsed."""
    folders = {k: asdict(v) for k, v in sorted(config.folders.items())}
    return content_hash(repr((asdict(config.scan), folders)))


class VaultSync:
    """
    Drives every document of a vault through plan, commit and write.

    Remote operations for a document run before its file is written, so a
    failed store call never leaves a document claiming an unknown id.
    """

    def __init__(
        self,
        storage: FsStorage,
        store: RemoteStore,
        config: FlashmarkConfig,
        formatter: FieldFormatter | None = None,
        reader: MetadataReader | None = None,
        index: SQLiteHashIndex | None = None,
    ):
        self.storage = storage
        self.store = store
        self.config = config
        self.formatter = formatter or ClozeFormatter()
        self.reader = reader or MarkdownMetadataReader()
        self.index = index

    def prepare(self) -> set[NoteId]:
        """Fetch field schemas and known ids; fails fast if the store is unreachable."""
        merge_schemas(self.config.scan, self.store.note_types())
        return set(self.store.known_identifiers())

    def load(self, path: str) -> SourceDocument | None:
        text = self.storage.read_raw(path)
        if text is None:
            return None
        return SourceDocument(path=path, text=text, meta=self.reader.read(text))

    def plan(self, doc: SourceDocument, known_ids: set[NoteId]) -> SyncPlan:
        rule = self.config.folder_rule(doc.path)
        return plan_document(
            doc, self.config.scan, known_ids, self.formatter, rule.deck, rule.tags
        )

    def commit(self, plan: SyncPlan, known_ids: set[NoteId], dry_run: bool = False) -> DocumentOutcome:
        """Validate, then ensure decks, add, update, delete, finalize and write."""
        path = plan.document.path
        outcome = DocumentOutcome(path=path, reports=list(plan.reports))
        comment = self.config.scan.id_comments
        try:
            validate_plan(plan, comment)
        except OverlapInvariantViolation as e:
            logger.error("%s: skipped, edit set is corrupt: %s", path, e)
            outcome.error = str(e)
            return outcome

        if dry_run:
            outcome.added = len(plan.to_add)
            outcome.updated = len(plan.to_edit)
            outcome.deleted = len(plan.to_delete)
            return outcome

        default_deck = self.config.scan.deck
        records = [n.record for n in plan.to_add] + [e.record for e in plan.to_edit]
        if records:
            self.store.ensure_decks({r.deck or default_deck for r in records})

        new_ids = self.store.add_notes([n.record for n in plan.to_add], default_deck)
        for note, nid in zip(plan.to_add, new_ids):
            if nid is None:
                logger.warning("%s: store refused %s note", path, note.record.note_type)
        self.store.update_notes(plan.to_edit, default_deck)
        self.store.delete_notes(plan.to_delete)

        known_ids.update(nid for nid in new_ids if nid)
        known_ids.difference_update(plan.to_delete)

        buffer = finalize_plan(plan, new_ids, comment)
        if buffer != plan.document.text:
            self.storage.write_raw(path, buffer)
            outcome.written = True
        if self.index is not None:
            self.index.record(path, buffer)

        outcome.added = sum(1 for nid in new_ids if nid)
        outcome.updated = len(plan.to_edit)
        outcome.deleted = len(plan.to_delete)
        return outcome

    def _wanted(self, doc: SourceDocument) -> bool:
        scan_tags = self.config.vault.scan_tags
        return not scan_tags or bool(doc.meta.document_tags() & set(scan_tags))

    def sync(
        self,
        paths: Iterable[str] | None = None,
        dry_run: bool = False,
        force: bool = False,
    ) -> SyncSummary:
        """
        Sync paths (default: the whole vault).

        Raises:
            AnkiConnectError: If the store reports an error
            requests.RequestException: If the store cannot be reached
        """
        known_ids = self.prepare()
        summary = SyncSummary()

        smart = self.config.smart_scan and self.index is not None and not force
        if self.index is not None and not dry_run:
            self.index.ensure_schema()
            if not self.index.check_fingerprint(settings_fingerprint(self.config)):
                logger.info("Settings changed, rescanning every document")

        for path in paths if paths is not None else self.storage.list_all_paths():
            doc = self.load(path)
            if doc is None:
                logger.warning("%s: not found", path)
                continue
            summary.scanned += 1
            if smart and not dry_run and not self.index.is_dirty(path, doc.text):
                summary.unchanged += 1
                continue
            if not self._wanted(doc):
                continue

            plan = self.plan(doc, known_ids)
            for report in plan.reports:
                logger.warning("%s: %s", path, report.message)
            if plan.is_empty:
                if self.index is not None and not dry_run and not plan.reports:
                    self.index.record(path, doc.text)
                if plan.reports:
                    summary.documents.append(DocumentOutcome(path=path, reports=list(plan.reports)))
                continue
            summary.documents.append(self.commit(plan, known_ids, dry_run))

        logger.info("Sync finished: %s", summary.totals())
        return summary

    def bulk_delete(self, path: str, dry_run: bool = False) -> list[NoteId]:
        """Delete every note a document references and strip its identifiers."""
        text = self.storage.read_raw(path)
        if text is None:
            raise FileNotFoundError(path)
        ids = collect_identifiers(text, self.config.scan)
        if not ids or dry_run:
            return ids
        new_text = apply_edits(text, bulk_delete_edits(text, self.config.scan))
        self.store.delete_notes(ids)
        self.storage.write_raw(path, new_text)
        if self.index is not None:
            self.index.forget({path})
        return ids
