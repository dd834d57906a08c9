import fnmatch
import os
import tempfile
from pathlib import Path
from typing import Iterable, Sequence

from ..core.ports import StorageStrategy


class FsStorage(StorageStrategy):
    """Markdown files under a vault root, addressed by POSIX relative path."""

    def __init__(self, root: Path, scan_dir: str = "", ignore: Sequence[str] = ()):
        self.root = root
        self.scan_dir = scan_dir
        self.ignore = list(ignore)

    def _path(self, path: str) -> Path:
        return self.root / path

    def read_raw(self, path: str) -> str | None:
        p = self._path(path)
        if not p.exists():
            return None
        with open(p, encoding="utf-8", newline="") as f:
            return f.read()

    def write_raw(self, path: str, contents: str) -> None:
        """Write through a temp file in the same directory, then replace."""
        p = self._path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=p.parent, prefix=f".{p.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(contents)
            os.replace(tmp, p)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def is_ignored(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.ignore)

    def list_all_paths(self) -> Iterable[str]:
        base = self.root / self.scan_dir if self.scan_dir else self.root
        if not base.exists():
            return []
        return sorted(
            rel
            for rel in (p.relative_to(self.root).as_posix() for p in base.rglob("*.md"))
            if not rel.startswith(".") and "/." not in rel and not self.is_ignored(rel)
        )
