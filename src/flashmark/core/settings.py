"""Scan settings shared by the parser, scanner and edit engine."""

import re
from dataclasses import dataclass, field
from functools import cached_property

ID_SUFFIX = r"(\n?(?:<!--)?(?:ID: (\d+).*))"
TAG_SUFFIX = r"(Tags: .*)"
TAG_PREFIX = "Tags: "
TAG_SEP = " "

INLINE_MATH_RE = re.compile(r"(?<!\$)\$((?=[\S])(?=[^$])[\s\S]*?\S)\$")
DISPLAY_MATH_RE = re.compile(r"\$\$([\s\S]*?)\$\$")
CODE_RE = re.compile(r"(?<!`)`(?=[^`])[\s\S]*?`")
DISPLAY_CODE_RE = re.compile(r"```[\s\S]*?```")


@dataclass
class Syntax:
    begin_note: str = "START"
    end_note: str = "END"
    begin_inline_note: str = "STARTI"
    end_inline_note: str = "ENDI"
    target_deck_line: str = "TARGET DECK"
    file_tags_line: str = "FILE TAGS"
    delete_note_line: str = "DELETE"
    frozen_fields_line: str = "FROZEN"


@dataclass
class NoteTypeSpec:
    """Per note type options; fields are the remote schema in order."""
    fields: list[str]
    regex: str = ""
    required_tags: list[str] = field(default_factory=list)
    file_link_field: str = ""
    context_field: str = ""
    alias_field: str = ""


@dataclass
class ScanSettings:
    syntax: Syntax = field(default_factory=Syntax)
    note_types: dict[str, NoteTypeSpec] = field(default_factory=dict)
    deck: str = "Default"
    tag: str = "Obsidian_to_Anki"
    vault_name: str = ""
    add_file_link: bool = False
    file_link_label: str = "Obsidian"
    add_context: bool = False
    add_aliases: bool = False
    curly_cloze: bool = False
    highlights_to_cloze: bool = False
    cloze_keyword: str = "Cloze"
    id_comments: bool = True
    add_obsidian_tags: bool = False
    add_yaml_tags: bool = False
    regex_required_tags: bool = False
    save_id_to_frontmatter: bool = False

    @property
    def fields_dict(self) -> dict[str, list[str]]:
        return {name: spec.fields for name, spec in self.note_types.items()}

    def is_cloze_type(self, note_type: str) -> bool:
        return bool(self.cloze_keyword) and self.cloze_keyword in note_type

    # Compiled patterns
    @cached_property
    def note_re(self) -> re.Pattern[str]:
        s = self.syntax
        return re.compile(
            rf"^{re.escape(s.begin_note)}\n([\s\S]*?\n){re.escape(s.end_note)}",
            re.MULTILINE,
        )

    @cached_property
    def inline_re(self) -> re.Pattern[str]:
        s = self.syntax
        return re.compile(
            rf"{re.escape(s.begin_inline_note)}(.*?){re.escape(s.end_inline_note)}"
        )

    @cached_property
    def deck_re(self) -> re.Pattern[str]:
        return re.compile(
            rf"^{re.escape(self.syntax.target_deck_line)}(?:\n|: )(.*)", re.MULTILINE
        )

    @cached_property
    def tag_re(self) -> re.Pattern[str]:
        return re.compile(
            rf"^{re.escape(self.syntax.file_tags_line)}(?:\n|: )(.*)", re.MULTILINE
        )

    @cached_property
    def delete_re(self) -> re.Pattern[str]:
        return re.compile(
            rf"^{re.escape(self.syntax.delete_note_line)}\n(?:<!--)?ID: (\d+).*",
            re.MULTILINE,
        )

    @cached_property
    def frozen_re(self) -> re.Pattern[str]:
        return re.compile(
            rf"{re.escape(self.syntax.frozen_fields_line)} - (.*?):\n((?:[^\n][\n]?)+)"
        )
