"""Tests for configuration loading."""

import re
from pathlib import Path

import pytest

from flashmark.config import ConfigError, FolderRule, load_config, merge_schemas, parse_config
from flashmark.core.settings import NoteTypeSpec, ScanSettings


def test_load_config_defaults(tmp_path, monkeypatch):
    """Test loading config with defaults when no file exists."""
    monkeypatch.chdir(tmp_path)
    config = load_config(vault_path=tmp_path)

    assert config.source is None
    assert config.vault.root == tmp_path
    assert config.vault.db == tmp_path / ".flashmark" / "index.sqlite"
    assert config.vault.name == tmp_path.name
    assert config.anki.url == "http://127.0.0.1:8765"
    assert config.scan.deck == "Default"
    assert config.scan.syntax.begin_note == "START"
    assert config.smart_scan is True


def test_load_config_from_file(tmp_path):
    """Test loading config from a file."""
    config_path = tmp_path / "flashmark.toml"
    config_path.write_text("""
[vault]
root = "my-vault"
db = "custom.db"
name = "Notes"
ignore = ["templates/*"]

[anki]
url = "http://localhost:9999"
timeout = 5

[syntax]
begin_note = "CARD"

[defaults]
deck = "Inbox"
curly_cloze = true
smart_scan = false

[note_types.Basic]
fields = ["Front", "Back"]
regex = '^Q: (.+)\\nA: (.+)'
file_link_field = "Back"

[folders."bio/"]
deck = "Biology"
tags = "cells, exam"
""")

    config = load_config(config_path=config_path)

    assert config.source == config_path
    assert config.vault.root == Path("my-vault")
    assert config.vault.db == Path("custom.db")
    assert config.vault.name == "Notes"
    assert config.vault.ignore == ["templates/*"]
    assert config.anki.url == "http://localhost:9999"
    assert config.anki.timeout == 5.0
    assert config.scan.syntax.begin_note == "CARD"
    assert config.scan.syntax.end_note == "END"
    assert config.scan.deck == "Inbox"
    assert config.scan.curly_cloze is True
    assert config.scan.vault_name == "Notes"
    assert config.smart_scan is False
    assert config.scan.note_types["Basic"].regex == "^Q: (.+)\\nA: (.+)"
    assert config.scan.note_types["Basic"].file_link_field == "Back"
    assert config.folders == {"bio": FolderRule("Biology", ["cells", "exam"])}


def test_load_config_search_vault(tmp_path, monkeypatch):
    """Test config search in vault directory."""
    monkeypatch.chdir(tmp_path)
    vault_path = tmp_path / "vault"
    vault_path.mkdir()
    (vault_path / "flashmark.toml").write_text('[defaults]\ndeck = "FromVault"\n')

    config = load_config(vault_path=vault_path)
    assert config.scan.deck == "FromVault"
    assert config.vault.root == vault_path


def test_load_config_search_cwd(tmp_path, monkeypatch):
    """Test config search in current working directory."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "flashmark.toml").write_text('[defaults]\ndeck = "FromCwd"\n')

    assert load_config().scan.deck == "FromCwd"


def test_missing_explicit_config(tmp_path):
    """Test an explicit config path must exist."""
    with pytest.raises(ConfigError):
        load_config(config_path=tmp_path / "nope.toml")


def test_invalid_toml(tmp_path):
    """Test TOML syntax errors surface as ConfigError."""
    path = tmp_path / "flashmark.toml"
    path.write_text("[defaults\n")
    with pytest.raises(ConfigError):
        load_config(config_path=path)


def test_bad_regex_rejected():
    """Test a note type regex that does not compile is rejected."""
    with pytest.raises(ConfigError, match="does not compile"):
        parse_config({"note_types": {"Basic": {"regex": "(unclosed"}}}, Path("."))


def test_wrong_type_rejected():
    """Test type checking of config values."""
    with pytest.raises(ConfigError):
        parse_config({"defaults": {"curly_cloze": "yes"}}, Path("."))
    with pytest.raises(ConfigError):
        parse_config({"syntax": {"unknown_key": "x"}}, Path("."))
    with pytest.raises(ConfigError):
        parse_config({"syntax": {"begin_note": ""}}, Path("."))


def test_folder_rule_longest_prefix():
    """Test the deepest matching folder wins."""
    config = parse_config(
        {
            "folders": {
                "bio": {"deck": "Biology"},
                "bio/cells": {"deck": "Cells", "tags": ["cell"]},
            }
        },
        Path("."),
    )
    assert config.folder_rule("bio/cells/a.md").deck == "Cells"
    assert config.folder_rule("bio/a.md").deck == "Biology"
    assert config.folder_rule("biology/a.md") == FolderRule()


def test_merge_schemas():
    """Test store schemas fill missing field lists and add new types."""
    settings = ScanSettings(
        note_types={
            "Basic": NoteTypeSpec([], regex="x"),
            "Custom": NoteTypeSpec(["A"]),
        }
    )
    merge_schemas(settings, {"Basic": ["Front", "Back"], "Custom": ["Z"], "Cloze": ["Text"]})

    assert settings.note_types["Basic"].fields == ["Front", "Back"]
    assert settings.note_types["Basic"].regex == "x"
    assert settings.note_types["Custom"].fields == ["A"]
    assert settings.note_types["Cloze"].fields == ["Text"]


def test_compiled_patterns_follow_syntax():
    """Test the note pattern is built from the configured markers."""
    config = parse_config({"syntax": {"begin_note": "Q+", "end_note": "Q-"}}, Path("."))
    m = config.scan.note_re.search("Q+\nBasic\nx::y\nQ-\n")
    assert m is not None
    assert isinstance(config.scan.note_re, re.Pattern)
