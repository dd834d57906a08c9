"""Configuration loader for flashmark.toml."""

import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from .core.settings import NoteTypeSpec, ScanSettings, Syntax

CONFIG_NAME = "flashmark.toml"


class ConfigError(ValueError):
    """Malformed flashmark.toml value."""


@dataclass
class VaultConfig:
    """Vault-specific configuration."""
    root: Path
    db: Path
    name: str = ""
    scan_dir: str = ""
    ignore: list[str] = field(default_factory=list)
    scan_tags: list[str] = field(default_factory=list)


@dataclass
class AnkiConfig:
    """AnkiConnect endpoint."""
    url: str = "http://127.0.0.1:8765"
    timeout: float = 30.0


@dataclass
class FolderRule:
    """Deck and tags applied to every document under a folder."""
    deck: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass
class FlashmarkConfig:
    """Complete flashmark configuration."""
    vault: VaultConfig
    anki: AnkiConfig
    scan: ScanSettings
    folders: dict[str, FolderRule] = field(default_factory=dict)
    smart_scan: bool = True
    source: Path | None = None

    def folder_rule(self, path: str) -> FolderRule:
        """Rule of the deepest configured folder containing path."""
        best = ""
        for prefix in self.folders:
            if prefix and (path == prefix or path.startswith(prefix + "/")):
                if len(prefix) > len(best):
                    best = prefix
        return self.folders.get(best, FolderRule())


_BOOL_DEFAULTS = (
    "add_file_link",
    "add_context",
    "add_aliases",
    "curly_cloze",
    "highlights_to_cloze",
    "id_comments",
    "add_obsidian_tags",
    "add_yaml_tags",
    "regex_required_tags",
    "save_id_to_frontmatter",
)
_STR_DEFAULTS = ("deck", "tag", "file_link_label", "cloze_keyword")


def _expect(value: Any, kind: type | tuple[type, ...], where: str) -> Any:
    if not isinstance(value, kind):
        raise ConfigError(f"{where}: expected {getattr(kind, '__name__', kind)}, got {value!r}")
    return value


def _str_list(value: Any, where: str) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    _expect(value, list, where)
    return [str(v) for v in value]


def _parse_syntax(data: dict[str, Any]) -> Syntax:
    syntax = Syntax()
    known = {f.name for f in fields(Syntax)}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"[syntax]: unknown key {key!r}")
        value = _expect(value, str, f"[syntax].{key}")
        if not value:
            raise ConfigError(f"[syntax].{key}: must not be empty")
        setattr(syntax, key, value)
    return syntax


def _parse_note_type(name: str, data: dict[str, Any]) -> NoteTypeSpec:
    where = f"[note_types.{name}]"
    _expect(data, dict, where)
    regex = _expect(data.get("regex", ""), str, f"{where}.regex")
    if regex:
        try:
            re.compile(regex, re.MULTILINE)
        except re.error as e:
            raise ConfigError(f"{where}.regex does not compile: {e}") from e
    return NoteTypeSpec(
        fields=_str_list(data.get("fields", []), f"{where}.fields"),
        regex=regex,
        required_tags=_str_list(data.get("required_tags", []), f"{where}.required_tags"),
        file_link_field=_expect(data.get("file_link_field", ""), str, where),
        context_field=_expect(data.get("context_field", ""), str, where),
        alias_field=_expect(data.get("alias_field", ""), str, where),
    )


def parse_config(toml_data: dict[str, Any], vault_path: Path | None = None) -> FlashmarkConfig:
    """Build a FlashmarkConfig from decoded TOML."""
    vault_data = _expect(toml_data.get("vault", {}), dict, "[vault]")
    vault_root = Path(vault_path or vault_data.get("root", "."))
    vault = VaultConfig(
        root=vault_root,
        db=Path(vault_data.get("db", vault_root / ".flashmark" / "index.sqlite")),
        name=_expect(vault_data.get("name", vault_root.resolve().name), str, "[vault].name"),
        scan_dir=_expect(vault_data.get("scan_dir", ""), str, "[vault].scan_dir"),
        ignore=_str_list(vault_data.get("ignore", []), "[vault].ignore"),
        scan_tags=_str_list(vault_data.get("scan_tags", []), "[vault].scan_tags"),
    )

    anki_data = _expect(toml_data.get("anki", {}), dict, "[anki]")
    anki = AnkiConfig(
        url=_expect(anki_data.get("url", AnkiConfig.url), str, "[anki].url"),
        timeout=float(_expect(anki_data.get("timeout", AnkiConfig.timeout), (int, float), "[anki].timeout")),
    )

    scan = ScanSettings(
        syntax=_parse_syntax(_expect(toml_data.get("syntax", {}), dict, "[syntax]")),
        vault_name=vault.name,
    )
    defaults = _expect(toml_data.get("defaults", {}), dict, "[defaults]")
    for key in _BOOL_DEFAULTS:
        if key in defaults:
            setattr(scan, key, _expect(defaults[key], bool, f"[defaults].{key}"))
    for key in _STR_DEFAULTS:
        if key in defaults:
            setattr(scan, key, _expect(defaults[key], str, f"[defaults].{key}"))
    smart_scan = _expect(defaults.get("smart_scan", True), bool, "[defaults].smart_scan")

    note_types = _expect(toml_data.get("note_types", {}), dict, "[note_types]")
    scan.note_types = {name: _parse_note_type(name, data) for name, data in note_types.items()}

    folders: dict[str, FolderRule] = {}
    for folder, data in _expect(toml_data.get("folders", {}), dict, "[folders]").items():
        where = f'[folders."{folder}"]'
        _expect(data, dict, where)
        folders[folder.strip("/")] = FolderRule(
            deck=_expect(data.get("deck"), (str, type(None)), f"{where}.deck"),
            tags=_str_list(data.get("tags", []), f"{where}.tags"),
        )

    return FlashmarkConfig(
        vault=vault, anki=anki, scan=scan, folders=folders, smart_scan=smart_scan
    )


def load_config(config_path: Path | None = None, vault_path: Path | None = None) -> FlashmarkConfig:
    """
    Load configuration from flashmark.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/flashmark.toml
    3. vault_path/flashmark.toml

    Args:
        config_path: Explicit path to config file
        vault_path: Vault root path for fallback search

    Returns:
        FlashmarkConfig with resolved settings

    Raises:
        ConfigError: If the file is not valid TOML or a value is malformed
    """
    toml_data: dict[str, Any] = {}
    source = None

    search_paths = []
    if config_path:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if vault_path:
        search_paths.append(vault_path / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            try:
                with open(path, "rb") as f:
                    toml_data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"{path}: {e}") from e
            source = path
            break

    config = parse_config(toml_data, vault_path)
    config.source = source
    return config


def merge_schemas(settings: ScanSettings, schemas: dict[str, list[str]]) -> None:
    """
    Fill field lists from the store: configured types without fields get the
    store's, and store types missing from the config are added.
    """
    for name, remote_fields in schemas.items():
        spec = settings.note_types.get(name)
        if spec is None:
            settings.note_types[name] = NoteTypeSpec(fields=list(remote_fields))
        elif not spec.fields:
            spec.fields = list(remote_fields)
