import re

from ..core.meta import DocumentMeta, FrontMatter, Heading, TagRef
from ..core.ports import MetadataReader
from .yaml_codec import YamlFrontmatter

HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
INLINE_CODE_RE = re.compile(r"`[^`\n]*`")
TAG_RE = re.compile(r"(?<![\w&/#])#([A-Za-z_][\w/-]*)")


class MarkdownMetadataReader(MetadataReader):
    """Front matter, ATX headings and inline #tags with their offsets."""

    def __init__(self, fm: YamlFrontmatter | None = None):
        self.fm = fm or YamlFrontmatter()

    def read(self, text: str) -> DocumentMeta:
        props, body_start = self.fm.decode(text)
        meta = DocumentMeta(frontmatter=FrontMatter(props))

        lines = text[body_start:].splitlines(keepends=True)
        offset = body_start
        in_fence = False

        for ln in lines:
            line_stripped = ln.rstrip("\n\r")

            if line_stripped.lstrip().startswith("```"):
                in_fence = not in_fence

            elif not in_fence:
                heading_match = HEADING_RE.match(line_stripped)
                if heading_match:
                    meta.headings.append(
                        Heading(
                            text=heading_match.group(2).strip(),
                            level=len(heading_match.group(1)),
                            offset=offset,
                        )
                    )
                else:
                    # Blank out inline code so `#include` is not a tag
                    visible = INLINE_CODE_RE.sub(lambda m: " " * len(m.group(0)), line_stripped)
                    for m in TAG_RE.finditer(visible):
                        meta.tags.append(TagRef(tag=m.group(1), offset=offset + m.start()))

            offset += len(ln)

        return meta
