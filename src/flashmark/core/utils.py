"""Utility functions for flashmark."""

from collections.abc import Iterable
from urllib.parse import quote

from .settings import TAG_SEP


def ordered_unique(items: Iterable[str]) -> list[str]:
    """
    De-duplicate while keeping first-seen order, dropping empty strings.

    Examples:
        >>> ordered_unique(["b", "a", "", "b"])
        ['b', 'a']
    """
    seen: set[str] = set()
    out = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def split_tags(text: str) -> list[str]:
    """Split a "Tags:" payload or a FILE TAGS line into tags."""
    return [t for t in text.strip().split(TAG_SEP) if t]


def obsidian_url(vault_name: str, path: str) -> str:
    """
    Build the obsidian:// link that opens a document.

    Examples:
        >>> obsidian_url("My Vault", "Bio/Cells.md")
        'obsidian://open?vault=My%20Vault&file=Bio%2FCells.md'
    """
    return f"obsidian://open?vault={quote(vault_name, safe='')}&file={quote(path, safe='')}"
