"""Runtime wiring helper for CLI applications."""

from dataclasses import dataclass
from pathlib import Path

from .adapters.anki_connect import AnkiConnect
from .adapters.fs_storage import FsStorage
from .adapters.markdown_parser import MarkdownMetadataReader
from .adapters.memory_store import InMemoryStore
from .adapters.sqlite_index import SQLiteHashIndex
from .adapters.yaml_codec import YamlFrontmatter
from .config import FlashmarkConfig, load_config
from .core.ports import RemoteStore
from .format.cloze import ClozeFormatter
from .sync import VaultSync


@dataclass
class Runtime:
    """Container for all wired components."""
    config: FlashmarkConfig
    storage: FsStorage
    store: RemoteStore
    index: SQLiteHashIndex
    sync: VaultSync


# Note types every Anki collection starts with
STOCK_NOTE_TYPES = {
    "Basic": ["Front", "Back"],
    "Basic (and reversed card)": ["Front", "Back"],
    "Basic (optional reversed card)": ["Front", "Back", "Add Reverse"],
    "Basic (type in the answer)": ["Front", "Back"],
    "Cloze": ["Text", "Back Extra"],
}


def offline_store(config: FlashmarkConfig) -> InMemoryStore:
    """Store that knows the stock and configured note types, and no notes."""
    note_types = dict(STOCK_NOTE_TYPES)
    note_types.update(
        (name, spec.fields) for name, spec in config.scan.note_types.items() if spec.fields
    )
    return InMemoryStore(note_types)


def build_runtime(
    vault_path: Path | None = None,
    config_path: Path | None = None,
    offline: bool = False,
) -> Runtime:
    """Build and wire all components for a vault."""
    config = load_config(config_path=config_path, vault_path=vault_path)

    if vault_path is None:
        vault_path = config.vault.root

    storage = FsStorage(vault_path, config.vault.scan_dir, config.vault.ignore)
    if offline:
        store: RemoteStore = offline_store(config)
    else:
        store = AnkiConnect(config.anki.url, config.anki.timeout)
    index = SQLiteHashIndex(config.vault.db)
    sync = VaultSync(
        storage,
        store,
        config,
        formatter=ClozeFormatter(),
        reader=MarkdownMetadataReader(YamlFrontmatter()),
        index=index,
    )

    return Runtime(
        config=config,
        storage=storage,
        store=store,
        index=index,
        sync=sync,
    )
