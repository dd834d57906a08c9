"""Field formatting for flashmark notes."""

from .cloze import ClozeFormatter, apply_cloze, curly_to_cloze, remove_clozes, render_clozes

__all__ = [
    "ClozeFormatter",
    "apply_cloze",
    "curly_to_cloze",
    "remove_clozes",
    "render_clozes",
]
