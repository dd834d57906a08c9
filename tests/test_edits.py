"""Tests for the edit engine."""

import pytest

from flashmark.core.edits import (
    OverlapInvariantViolation,
    apply_edits,
    check_non_overlapping,
    marker_edit,
    remove_frontmatter_id,
    set_frontmatter_id,
)
from flashmark.core.model import BLOCK, INLINE, Edit, regex_dialect


def test_apply_edits_against_original_offsets():
    """Test every edit is placed by original offsets regardless of order."""
    text = "abcdef"
    edits = [Edit(1, 1, "X"), Edit(4, 5, ""), Edit(2, 3, "YY")]
    assert apply_edits(text, edits) == "aXbYYdf"


def test_adjacent_edits_allowed():
    """Test edits that touch but do not overlap are fine."""
    text = "abcd"
    assert apply_edits(text, [Edit(0, 2, "X"), Edit(2, 4, "Y")]) == "XY"


def test_overlapping_edits_rejected():
    """Test overlapping edits raise before anything is applied."""
    with pytest.raises(OverlapInvariantViolation):
        apply_edits("abcdef", [Edit(0, 3, ""), Edit(2, 4, "")])


def test_same_start_insertions_rejected():
    """Test two insertions at one offset count as overlapping."""
    with pytest.raises(OverlapInvariantViolation):
        check_non_overlapping([Edit(3, 3, "a"), Edit(3, 3, "b")])


def test_same_start_replacements_rejected():
    """Test two replacements starting at one offset overlap."""
    with pytest.raises(OverlapInvariantViolation):
        check_non_overlapping([Edit(0, 3, ""), Edit(0, 5, "x")])


def test_insertion_at_start_of_deletion():
    """Test an insertion sharing its offset with a deletion lands in front."""
    edits = [Edit(0, 13, ""), Edit(0, 0, "---\n---\n")]
    check_non_overlapping(edits)
    assert apply_edits("DELETE\nID: 7\nbody", edits) == "---\n---\nbody"
    assert apply_edits("abcdef", [Edit(2, 4, "X"), Edit(2, 2, "I")]) == "abIXef"


def test_out_of_range_edit_rejected():
    """Test an edit past the end of the buffer is refused."""
    with pytest.raises(OverlapInvariantViolation):
        check_non_overlapping([Edit(2, 9, "")], length=5)


def test_violation_is_value_error():
    """Test callers catching ValueError also catch the violation."""
    assert issubclass(OverlapInvariantViolation, ValueError)


def test_dialect_markers():
    """Test each dialect writes its marker shape."""
    assert BLOCK.marker(5) == "<!--ID: 5-->\n"
    assert BLOCK.marker(5, comment=False) == "ID: 5\n"
    assert INLINE.marker(5) == "<!--ID: 5--> "
    assert regex_dialect("Basic").marker(5, comment=False) == "\nID: 5"


def test_marker_edit_plain_insert():
    """Test a marker lands at the insertion point unchanged."""
    text = "START\nBasic\nQ::A\nEND"
    pos = text.index("END")
    edit = marker_edit(text, pos, BLOCK.marker(7))
    assert apply_edits(text, [edit]) == "START\nBasic\nQ::A\n<!--ID: 7-->\nEND"


def test_marker_edit_absorbs_blank_line():
    """Test a block marker after a blank line does not double it."""
    text = "START\nBasic\nQ::A\n\nEND"
    pos = text.index("END")
    edit = marker_edit(text, pos, BLOCK.marker(7))
    assert apply_edits(text, [edit]) == "START\nBasic\nQ::A\n<!--ID: 7-->\nEND"


def test_marker_edit_regex_after_newline():
    """Test a regex marker drops its leading newline after a line break."""
    text = "Q: a\nA: b\n"
    edit = marker_edit(text, len(text), regex_dialect("Basic").marker(3))
    assert apply_edits(text, [edit]) == "Q: a\nA: b\n<!--ID: 3-->"


def test_set_frontmatter_id_creates_block():
    """Test a document without front matter gains one."""
    edit = set_frontmatter_id("body\n", 500)
    assert apply_edits("body\n", [edit]) == "---\nnid: 500\n---\nbody\n"


def test_set_frontmatter_id_appends_property():
    """Test nid is appended after existing properties."""
    text = "---\ntitle: x\n---\nbody"
    assert apply_edits(text, [set_frontmatter_id(text, 500)]) == (
        "---\ntitle: x\nnid: 500\n---\nbody"
    )


def test_set_frontmatter_id_empty_block():
    """Test an empty front-matter block receives the nid."""
    text = "---\n---\nbody"
    assert apply_edits(text, [set_frontmatter_id(text, 500)]) == "---\nnid: 500\n---\nbody"


def test_set_frontmatter_id_replaces_value():
    """Test an existing nid is replaced in place."""
    text = "---\nnid: 1\ntitle: x\n---\n"
    assert apply_edits(text, [set_frontmatter_id(text, 500)]) == (
        "---\nnid: 500\ntitle: x\n---\n"
    )


def test_set_frontmatter_id_noop():
    """Test nothing is edited when the value is already there."""
    assert set_frontmatter_id("---\nnid: 500\n---\n", 500) is None


def test_remove_frontmatter_id_sole_property():
    """Test removing the only property leaves an empty block."""
    text = "---\nnid: 500\n---\nbody"
    assert apply_edits(text, [remove_frontmatter_id(text)]) == "---\n---\nbody"


def test_remove_frontmatter_id_last_property():
    """Test removing the last property drops its line."""
    text = "---\ntitle: x\nnid: 500\n---\nbody"
    assert apply_edits(text, [remove_frontmatter_id(text)]) == "---\ntitle: x\n---\nbody"


def test_remove_frontmatter_id_middle_property():
    """Test removing a property followed by others only clears its value."""
    text = "---\nnid: 500\ntitle: x\n---\n"
    assert apply_edits(text, [remove_frontmatter_id(text)]) == "---\nnid:\ntitle: x\n---\n"


def test_remove_frontmatter_id_absent():
    """Test no edit is produced without a nid."""
    assert remove_frontmatter_id("---\ntitle: x\n---\n") is None
    assert remove_frontmatter_id("no front matter") is None
