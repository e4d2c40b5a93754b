"""Front matter and heading parsing for markdown-based resources."""

import hashlib
import json
import re
import textwrap
from dataclasses import dataclass, field
from pathlib import Path

_HEADING = re.compile(r"^#\s+(.+?)\s*#*\s*$")
_KEY_VALUE = re.compile(r"^([A-Za-z_][\w-]*):\s*(.*)$")


@dataclass
class ParsedDocument:
    """A markdown document split into front matter and body."""

    fields: dict[str, str | list[str]] = field(default_factory=dict)
    body: str = ""
    has_front_matter: bool = False

    def get(self, key: str) -> str | None:
        """A scalar field, or None when absent or empty."""
        value = self.fields.get(key)
        if isinstance(value, list):
            return ", ".join(value) if value else None
        return value or None

    def get_list(self, key: str) -> list[str]:
        value = self.fields.get(key)
        if value is None or value == "":
            return []
        if isinstance(value, list):
            return value
        return [part.strip() for part in value.split(",") if part.strip()]


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
        return value[1:-1]
    return value


def _parse_inline_list(value: str) -> list[str]:
    inner = value.strip()[1:-1]
    return [_unquote(part) for part in inner.split(",") if part.strip()]


def parse_simple_yaml(text: str) -> dict[str, str | list[str]]:
    """Parse flat `key: value` YAML.

    Handles quoted scalars, inline lists (`[a, b]`), block lists of `- item`
    lines, and `|`/`>` block scalars. Nested mappings are not supported.
    """
    result: dict[str, str | list[str]] = {}
    lines = text.splitlines()
    i = 0
    while i < len(lines):
        line = lines[i]
        match = _KEY_VALUE.match(line)
        i += 1
        if not match:
            continue
        key, value = match.group(1), match.group(2).strip()

        if value in ("|", "|-", ">", ">-"):
            block = []
            while i < len(lines) and (lines[i].startswith((" ", "\t")) or not lines[i].strip()):
                block.append(lines[i])
                i += 1
            text_block = textwrap.dedent("\n".join(block)).strip()
            if value.startswith(">"):
                text_block = " ".join(text_block.split())
            result[key] = text_block
        elif value.startswith("[") and value.endswith("]"):
            result[key] = _parse_inline_list(value)
        elif value == "":
            items = []
            while i < len(lines) and lines[i].strip().startswith("- "):
                items.append(_unquote(lines[i].strip()[2:]))
                i += 1
            result[key] = items if items else ""
        else:
            result[key] = _unquote(value)
    return result


def split_front_matter(content: str) -> ParsedDocument:
    """Split `---` delimited front matter from the document body."""
    if not content.startswith("---"):
        return ParsedDocument(body=content)
    lines = content.splitlines()
    for index in range(1, len(lines)):
        if lines[index].strip() == "---":
            front = "\n".join(lines[1:index])
            body = "\n".join(lines[index + 1:])
            return ParsedDocument(
                fields=parse_simple_yaml(front), body=body, has_front_matter=True
            )
    # Unterminated front matter is treated as plain text
    return ParsedDocument(body=content)


def first_heading(body: str) -> str | None:
    """Text of the first level-one heading."""
    for line in body.splitlines():
        match = _HEADING.match(line.strip())
        if match:
            return match.group(1).strip()
    return None


def first_paragraph(body: str) -> str:
    """First paragraph of prose, skipping headings and code fences."""
    paragraph: list[str] = []
    in_fence = False
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith("```"):
            in_fence = not in_fence
            if paragraph:
                break
            continue
        if in_fence:
            continue
        if not stripped:
            if paragraph:
                break
            continue
        if stripped.startswith("#"):
            if paragraph:
                break
            continue
        paragraph.append(stripped)
    return " ".join(paragraph)


@dataclass
class MarkdownMetadata:
    """Name, description and version read from a markdown resource."""

    name: str | None
    description: str
    version: str | None
    document: ParsedDocument


def read_markdown_metadata(content: str) -> MarkdownMetadata:
    """Read metadata from front matter, falling back to heading and first paragraph."""
    document = split_front_matter(content)
    name = document.get("name") or first_heading(document.body)
    description = document.get("description") or first_paragraph(document.body)
    return MarkdownMetadata(
        name=name,
        description=description,
        version=document.get("version"),
        document=document,
    )


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


def content_hash(*chunks: bytes) -> str:
    """Short SHA-256 digest used to detect changed content."""
    digest = hashlib.sha256()
    for chunk in chunks:
        digest.update(chunk)
    return digest.hexdigest()[:16]


def config_hash(config: dict) -> str:
    """Digest of a config mapping, independent of key order."""
    return content_hash(json.dumps(config, sort_keys=True, default=str).encode("utf-8"))
