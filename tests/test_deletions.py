"""Tests for deletion markers and bulk identifier removal."""

from flashmark.core.deletions import (
    bulk_delete_edits,
    collect_identifiers,
    frontmatter_nid,
    scan_deletions,
)
from flashmark.core.edits import apply_edits
from flashmark.core.settings import ScanSettings


def test_scan_deletions():
    """Test every DELETE line followed by an ID is collected in order."""
    text = "a\nDELETE\nID: 5\nb\nDELETE\n<!--ID: 6-->\n"
    markers = scan_deletions(text, ScanSettings())

    assert [m.identifier for m in markers] == [5, 6]
    first = markers[0]
    assert text[first.span.start:first.span.end] == "DELETE\nID: 5"


def test_delete_without_id_ignored():
    """Test a lone DELETE line is not a deletion marker."""
    assert scan_deletions("DELETE\nnothing\n", ScanSettings()) == []


def test_frontmatter_nid():
    """Test reading the nid property straight from the raw text."""
    assert frontmatter_nid("---\nnid: 42\n---\n") == 42
    assert frontmatter_nid("---\ntitle: x\n---\n") is None
    assert frontmatter_nid("nid: 42\n") is None


def test_collect_identifiers():
    """Test inline markers and the front-matter nid are all collected."""
    text = (
        "---\nnid: 1\n---\n"
        "START\nBasic\nQ::A\n<!--ID: 2-->\nEND\n"
        "STARTI [Basic] x::y ID: 3 ENDI\n"
    )
    assert collect_identifiers(text, ScanSettings()) == [2, 3, 1]


def test_collect_identifiers_skips_delete_lines():
    """Test ids under a DELETE line are not collected twice."""
    text = "DELETE\nID: 9\n"
    assert collect_identifiers(text, ScanSettings()) == []


def test_bulk_delete_edits_strips_markers():
    """Test bulk deletion removes whole ID lines and inline markers."""
    text = (
        "START\nBasic\nQ::A\n<!--ID: 2-->\nEND\n"
        "STARTI [Basic] x::y ID: 3 ENDI\n"
    )
    result = apply_edits(text, bulk_delete_edits(text, ScanSettings()))
    assert result == "START\nBasic\nQ::A\nEND\nSTARTI [Basic] x::y ENDI\n"


def test_bulk_delete_edits_last_line_without_newline():
    """Test an ID on the final line takes the preceding newline with it."""
    text = "Q: a\nA: b\nID: 4"
    result = apply_edits(text, bulk_delete_edits(text, ScanSettings()))
    assert result == "Q: a\nA: b"


def test_bulk_delete_edits_frontmatter():
    """Test the front-matter nid is removed too."""
    text = "---\nnid: 1\n---\nbody\n"
    result = apply_edits(text, bulk_delete_edits(text, ScanSettings()))
    assert result == "---\n---\nbody\n"
