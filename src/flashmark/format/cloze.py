"""Field formatting and cloze helpers."""

import re

from ..core.ports import FormatContext
from ..core.settings import CODE_RE, DISPLAY_CODE_RE, DISPLAY_MATH_RE, INLINE_MATH_RE

CLOZE_RE = re.compile(r"{{c(\d+)::((?:(?!}}).)*?)(?:::((?:(?!}}).)*?))?}}", re.DOTALL)
CLOZE_NUMBER_RE = re.compile(r"{{c(\d+)::")
HIGHLIGHT_RE = re.compile(r"==(.+?)==")
CURLY_RE = re.compile(r"(?<!{){(?:c?(\d+)[:|])?(?!{)((?:[^\n][\n]?)+?)(?<!})}(?!})")

_STASH = "\x00{}\x00"
_STASH_RE = re.compile(r"\x00(\d+)\x00")


class ClozeFormatter:
    """
    Text-to-text transform applied to every field value.

    Code spans, math and existing {{cN::...}} markers are set aside before the
    curly-cloze rewrite so their braces are never touched.
    """

    def format(self, text: str, context: FormatContext) -> str:
        stash: list[str] = []

        def hide(m: re.Match[str]) -> str:
            stash.append(m.group(0))
            return _STASH.format(len(stash) - 1)

        def hide_math(m: re.Match[str], left: str, right: str) -> str:
            stash.append(f"{left}{m.group(1)}{right}")
            return _STASH.format(len(stash) - 1)

        text = DISPLAY_CODE_RE.sub(hide, text)
        text = CODE_RE.sub(hide, text)
        text = DISPLAY_MATH_RE.sub(lambda m: hide_math(m, "\\[", "\\]"), text)
        text = INLINE_MATH_RE.sub(lambda m: hide_math(m, "\\(", "\\)"), text)
        text = CLOZE_RE.sub(hide, text)

        if context.cloze:
            if context.highlights_to_cloze:
                text = HIGHLIGHT_RE.sub(r"{\1}", text)
            text = curly_to_cloze(text)

        text = text.replace("\r\n", "\n").replace("\n", "<br>")
        # Stashed clozes may themselves hold stashed math
        while _STASH_RE.search(text):
            text = _STASH_RE.sub(lambda m: stash[int(m.group(1))], text)
        return text


def curly_to_cloze(text: str) -> str:
    """
    Rewrite {x}, {2:x} and {c2:x} as Anki clozes.

    Examples:
        >>> curly_to_cloze("{a} and {b}")
        '{{c1::a}} and {{c2::b}}'
        >>> curly_to_cloze("{2:a} and {c1|b}")
        '{{c2::a}} and {{c1::b}}'
    """
    counter = 0

    def repl(m: re.Match[str]) -> str:
        nonlocal counter
        if m.group(1):
            return f"{{{{c{m.group(1)}::{m.group(2)}}}}}"
        counter += 1
        return f"{{{{c{counter}::{m.group(2)}}}}}"

    return CURLY_RE.sub(repl, text)


def next_cloze_number(text: str) -> int:
    """
    Smallest cloze number not yet used in text.

    Examples:
        >>> next_cloze_number("{{c1::a}} {{c3::b}}")
        2
    """
    used = {int(n) for n in CLOZE_NUMBER_RE.findall(text)}
    n = 1
    while n in used:
        n += 1
    return n


def apply_cloze(text: str, start: int, end: int) -> str:
    """Wrap text[start:end] as a new cloze numbered after the existing ones."""
    if not 0 <= start < end <= len(text):
        raise ValueError(f"invalid selection {start}:{end}")
    number = next_cloze_number(text)
    return f"{text[:start]}{{{{c{number}::{text[start:end]}}}}}{text[end:]}"


def remove_clozes(text: str, start: int, end: int) -> str:
    """
    Unwrap every cloze overlapping the selection, keeping the answer and
    dropping any hint. A collapsed selection (start == end) touches a cloze
    when it sits inside or on its edge.
    """
    hits = []
    for m in CLOZE_RE.finditer(text):
        if start == end:
            touched = m.start() <= start <= m.end()
        else:
            touched = start < m.end() and end > m.start()
        if touched:
            hits.append(m)
    for m in reversed(hits):
        text = text[:m.start()] + m.group(2) + text[m.end():]
    return text


def render_clozes(text: str, highlight: bool = False) -> str:
    """
    Show clozes for reading.

    Examples:
        >>> render_clozes("A {{c1::cell::hint}} wall")
        'A cell wall'
        >>> render_clozes("A {{c1::cell}} wall", highlight=True)
        'A <mark>cell</mark> wall'
    """
    if highlight:
        return CLOZE_RE.sub(lambda m: f"<mark>{m.group(2)}</mark>", text)
    return CLOZE_RE.sub(lambda m: m.group(2), text)
