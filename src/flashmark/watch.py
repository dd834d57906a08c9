"""Watch mode for flashmark - sync documents as they are saved."""

import json
import signal
import sys
import time
from pathlib import Path
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer


class DebounceHandler(FileSystemEventHandler):
    """Collects vault-relative .md paths and hands them over in quiet batches."""

    def __init__(
        self,
        vault_path: Path,
        on_batch: Callable[[set[str], set[str]], None],
        debounce_ms: int = 500,
    ):
        super().__init__()
        self.vault_path = vault_path.resolve()
        self.on_batch = on_batch
        self.debounce_ms = debounce_ms

        self.changed: set[str] = set()
        self.deleted: set[str] = set()
        self.last_event_time = 0.0

    def _relative(self, raw: str) -> str | None:
        path = Path(raw)
        name = path.name

        # Editor swap files and our own atomic-write temp files
        if name.startswith(".") or name.endswith("~") or name.endswith(".swp"):
            return None
        if not name.endswith(".md"):
            return None
        try:
            rel = path.resolve().relative_to(self.vault_path).as_posix()
        except ValueError:
            return None
        if any(part.startswith(".") for part in rel.split("/")):
            return None
        return rel

    def _touch(self, raw: str) -> None:
        rel = self._relative(raw)
        if rel:
            self.deleted.discard(rel)
            self.changed.add(rel)
            self.last_event_time = time.time()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._touch(str(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._touch(str(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        rel = self._relative(str(event.src_path))
        if rel:
            self.changed.discard(rel)
            self.deleted.add(rel)
        self._touch(str(event.dest_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        rel = self._relative(str(event.src_path))
        if rel:
            self.changed.discard(rel)
            self.deleted.add(rel)
            self.last_event_time = time.time()

    def check_and_flush(self) -> None:
        """Flush once no event has arrived for the debounce window."""
        if not (self.changed or self.deleted):
            return
        elapsed = (time.time() - self.last_event_time) * 1000
        if elapsed >= self.debounce_ms:
            self.flush()

    def flush(self) -> None:
        if not (self.changed or self.deleted):
            return
        changed, deleted = set(self.changed), set(self.deleted)
        self.changed.clear()
        self.deleted.clear()
        self.on_batch(changed, deleted)


def watch_vault(
    rt: Any,
    debounce_ms: int = 500,
    quiet: bool = False,
    json_output: bool = False,
) -> int:
    """
    Watch the vault and sync every batch of saved documents.

    Files written by the sync itself come back as events; the hash cache
    marks them unchanged, so they do not loop.

    Returns:
        Exit code
    """
    vault_path = rt.storage.root
    if not vault_path.exists():
        print(f"Error: Vault not found: {vault_path}", file=sys.stderr)
        return 1

    running = True

    def handle_batch(changed: set[str], deleted: set[str]) -> None:
        start_time = time.time()
        try:
            if deleted:
                rt.index.ensure_schema()
                rt.index.forget(deleted)
            totals = rt.sync.sync(paths=sorted(changed)).totals() if changed else {}
            duration_ms = int((time.time() - start_time) * 1000)

            if json_output:
                event = {
                    "type": "batch",
                    "changed": sorted(changed),
                    "deleted": sorted(deleted),
                    "totals": totals,
                    "duration_ms": duration_ms,
                }
                print(json.dumps(event), flush=True)
            elif not quiet and totals:
                print(
                    f"Synced: +{totals['added']} ~{totals['updated']} "
                    f"-{totals['deleted']} ({duration_ms}ms)",
                    flush=True,
                )
        except Exception as e:
            # Keep watching; the next save retries
            if json_output:
                print(json.dumps({"type": "error", "message": str(e)}), flush=True)
            else:
                print(f"Error: {e}", file=sys.stderr, flush=True)

    def signal_handler(signum: int, frame: Any) -> None:
        nonlocal running
        running = False
        if not quiet and not json_output:
            print("\nShutting down...", flush=True)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    handler = DebounceHandler(vault_path, handle_batch, debounce_ms)
    observer = Observer()
    observer.schedule(handler, str(vault_path), recursive=True)

    if not quiet and not json_output:
        print(f"Watching {vault_path} (debounce: {debounce_ms}ms)", flush=True)
        print("Press Ctrl+C to stop", flush=True)

    observer.start()
    try:
        while running:
            time.sleep(0.1)
            handler.check_and_flush()
    finally:
        handler.flush()
        observer.stop()
        observer.join()

    if not quiet and not json_output:
        print("Watch stopped", flush=True)
    return 0
