import io
import re
from typing import Any

import yaml

_FM = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


class YamlFrontmatter:
    def decode(self, text: str) -> tuple[dict[str, Any], int]:
        """Return (properties, body offset). Broken YAML reads as no properties."""
        m = _FM.match(text)
        if not m:
            return {}, 0
        try:
            fm = yaml.safe_load(io.StringIO(m.group(1))) or {}
        except yaml.YAMLError:
            fm = {}
        if not isinstance(fm, dict):
            fm = {}
        return fm, m.end()

