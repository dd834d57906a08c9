"""Tests for field formatting and cloze helpers."""

import pytest

from flashmark.core.ports import FormatContext
from flashmark.format.cloze import (
    ClozeFormatter,
    apply_cloze,
    curly_to_cloze,
    next_cloze_number,
    remove_clozes,
    render_clozes,
)


def test_existing_cloze_unmodified():
    """Test an explicit cloze passes through a cloze-enabled format."""
    fmt = ClozeFormatter()
    text = "The {{c1::clozed}} word"
    assert fmt.format(text, FormatContext(cloze=True)) == text


def test_newlines_become_breaks():
    """Test line breaks are rendered as <br>."""
    assert ClozeFormatter().format("a\nb", FormatContext()) == "a<br>b"


def test_curly_braces_untouched_without_cloze():
    """Test curly braces stay literal on non-cloze notes."""
    assert ClozeFormatter().format("{x}", FormatContext()) == "{x}"


def test_curly_cloze_numbering():
    """Test unnumbered and numbered curly clozes."""
    assert curly_to_cloze("{a} and {b}") == "{{c1::a}} and {{c2::b}}"
    assert curly_to_cloze("{2:a} and {c1:b}") == "{{c2::a}} and {{c1::b}}"


def test_highlights_to_cloze():
    """Test ==highlights== become clozes when enabled."""
    ctx = FormatContext(cloze=True, highlights_to_cloze=True)
    assert ClozeFormatter().format("The ==cell== wall", ctx) == "The {{c1::cell}} wall"


def test_math_and_code_protected():
    """Test braces inside math and code are never turned into clozes."""
    ctx = FormatContext(cloze=True)
    out = ClozeFormatter().format("$\\frac{a}{b}$ and `{x}` and {y}", ctx)
    assert "\\(\\frac{a}{b}\\)" in out
    assert "`{x}`" in out
    assert "{{c1::y}}" in out


def test_display_math_converted():
    """Test $$...$$ is rewritten as \\[...\\]."""
    out = ClozeFormatter().format("$$x^2$$", FormatContext())
    assert out == "\\[x^2\\]"


def test_next_cloze_number():
    """Test the smallest unused cloze number is chosen."""
    assert next_cloze_number("") == 1
    assert next_cloze_number("{{c1::a}} {{c3::b}}") == 2


def test_apply_cloze():
    """Test wrapping a selection in a new cloze."""
    text = "The cell wall"
    assert apply_cloze(text, 4, 8) == "The {{c1::cell}} wall"


def test_apply_cloze_invalid_selection():
    """Test an empty or out-of-range selection is refused."""
    with pytest.raises(ValueError):
        apply_cloze("abc", 2, 2)
    with pytest.raises(ValueError):
        apply_cloze("abc", 1, 10)


def test_remove_clozes_range():
    """Test clozes overlapping a range are unwrapped, hints dropped."""
    text = "{{c1::a::hint}} and {{c2::b}}"
    assert remove_clozes(text, 0, 3) == "a and {{c2::b}}"
    assert remove_clozes(text, 0, len(text)) == "a and b"


def test_remove_clozes_collapsed_selection():
    """Test a cursor inside a cloze unwraps only that cloze."""
    text = "{{c1::a}} and {{c2::b}}"
    pos = text.index("b")
    assert remove_clozes(text, pos, pos) == "{{c1::a}} and b"


def test_render_clozes():
    """Test clozes are revealed for reading."""
    assert render_clozes("A {{c1::cell::hint}} wall") == "A cell wall"
    assert render_clozes("A {{c1::cell}} wall", highlight=True) == "A <mark>cell</mark> wall"
