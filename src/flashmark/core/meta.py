from dataclasses import dataclass, field
from typing import MutableMapping, Iterator, Any


class FrontMatter(MutableMapping[str, Any]):
    """
    Decoded front-matter properties of a document, e.g.
    - "tags": ["biology", "exam"]  (or "biology, exam")
    - "aliases": ["Mitosis"]
    - "nid": 1712345678901
    The core only reads from it; rewrites go through edits on the raw text.
    """

    def __init__(self, initial: dict | None = None):
        self._d = dict(initial or {})

    # MutableMapping interface
    def __getitem__(self, k: str) -> Any:
        return self._d[k]

    def __setitem__(self, k: str, v: Any) -> None:
        self._d[k] = v

    def __delitem__(self, k: str) -> None:
        del self._d[k]

    def __iter__(self) -> Iterator[str]:
        return iter(self._d)

    def __len__(self) -> int:
        return len(self._d)

    # Convenience
    def get_list(self, key: str) -> list[str]:
        """Read a list-valued property; strings are split on commas and spaces."""
        v = self._d.get(key)
        if v is None:
            return []
        if isinstance(v, str):
            return [part for part in v.replace(",", " ").split() if part]
        if isinstance(v, (list, tuple)):
            return [str(item) for item in v if item is not None and str(item)]
        return [str(v)]

    def get_int(self, key: str) -> int | None:
        v = self._d.get(key)
        if isinstance(v, bool):
            return None
        if isinstance(v, int):
            return v if v > 0 else None
        if isinstance(v, str) and v.strip().isdigit():
            return int(v.strip()) or None
        return None


@dataclass(frozen=True)
class Heading:
    text: str
    level: int
    offset: int


@dataclass(frozen=True)
class TagRef:
    tag: str  # without the leading "#"
    offset: int


@dataclass
class DocumentMeta:
    frontmatter: FrontMatter = field(default_factory=FrontMatter)
    headings: list[Heading] = field(default_factory=list)
    tags: list[TagRef] = field(default_factory=list)

    def document_tags(self) -> set[str]:
        """Front-matter tags plus inline #tags."""
        tags = {t.lstrip("#") for t in self.frontmatter.get_list("tags")}
        tags.update(ref.tag for ref in self.tags)
        return tags


def heading_context(meta: DocumentMeta, path: str, position: int) -> str:
    """Return "path > H1 > H2" for the headings enclosing position."""
    stack: list[Heading] = []
    for heading in meta.headings:
        if position < heading.offset:
            break
        while stack and stack[-1].level >= heading.level:
            stack.pop()
        stack.append(heading)
    return " > ".join([path] + [h.text for h in stack])
