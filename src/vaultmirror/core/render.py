"""Note parsing and rendering: frontmatter, Obsidian syntax, markdown to HTML."""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import quote

import frontmatter
import yaml
from markdown_it import MarkdownIt

from vaultmirror.core.config import SEARCH_TEXT_MAX_CHARS
from vaultmirror.core.sanitize import escape_html, sanitize_html

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp"}

_EMBED_PATTERN = re.compile(r"!\[\[([^\]]+)\]\]")
_WIKILINK_PATTERN = re.compile(r"\[\[([^\]|]+)(?:\|([^\]]+))?\]\]")
_TAG_PATTERN = re.compile(r"(?<!\S)#([A-Za-z0-9_\-/]+)")
_CALLOUT_PATTERN = re.compile(r"^>\s*\[!(\w+)\]\s*(.*)$")
_SEARCH_STRIP_PATTERN = re.compile(r"[#*`\[\]]")


class DocumentParseError(ValueError):
    """Raised when a note's frontmatter or encoding cannot be parsed."""


@dataclass(frozen=True)
class ParsedDocument:
    """Frontmatter and markdown body of a note."""

    frontmatter: dict[str, Any] = field(default_factory=dict)
    body: str = ""


def _json_safe(value: Any) -> Any:
    """Convert YAML scalars (dates, sets, ...) into JSON-compatible values."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def parse_document(raw: bytes | str) -> ParsedDocument:
    """
    Split a note into frontmatter and body.

    Args:
        raw: File content as downloaded from the remote store

    Returns:
        ParsedDocument with JSON-compatible frontmatter

    Raises:
        DocumentParseError: If the content is not UTF-8 or the YAML is malformed
    """
    try:
        text = raw.decode("utf-8-sig") if isinstance(raw, bytes) else raw
    except UnicodeDecodeError as exc:
        raise DocumentParseError(f"Note is not valid UTF-8: {exc}") from exc

    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as exc:
        raise DocumentParseError(f"Invalid frontmatter: {exc}") from exc

    if not isinstance(post.metadata, Mapping):
        raise DocumentParseError("Frontmatter must be a mapping")

    return ParsedDocument(frontmatter=_json_safe(post.metadata), body=post.content)


def note_title(parsed_frontmatter: Mapping[str, Any], base_name: str) -> str:
    """Frontmatter title, falling back to the file name."""
    title = parsed_frontmatter.get("title")
    if title is None or str(title).strip() == "":
        return base_name
    return str(title)


def attachment_url(vault_ref: str, file_name: str) -> str:
    """API path serving an attachment of the given vault."""
    return (
        f"/api/v1/vaults/{quote(vault_ref, safe='')}"
        f"/attachments/{quote(file_name, safe='')}"
    )


def _rewrite_embed(
    match: re.Match[str], link_map: Mapping[str, str], vault_ref: str
) -> str:
    file_name = match.group(1).strip()
    suffix = PurePosixPath(file_name).suffix.lower()

    if suffix in IMAGE_EXTENSIONS:
        return (
            f'<img src="{attachment_url(vault_ref, file_name)}" '
            f'alt="{escape_html(file_name)}" class="embedded-image" loading="lazy" />'
        )

    key = file_name.lower()
    if key.endswith(".md"):
        key = key[:-3]
    note_id = link_map.get(key)
    if note_id:
        return f'<div class="embedded-note" data-embed="{escape_html(note_id)}"></div>'

    return f'<span class="broken-embed">[Embedded: {escape_html(file_name)}]</span>'


def _rewrite_wikilink(match: re.Match[str], link_map: Mapping[str, str]) -> str:
    note_name = match.group(1)
    display = escape_html(match.group(2) or note_name)
    note_id = link_map.get(note_name.strip().lower())
    if note_id:
        return (
            f'<a href="#" class="internal-link" '
            f'data-note="{escape_html(note_id)}">{display}</a>'
        )
    return f'<span class="broken-link">{display}</span>'


def _rewrite_tag(match: re.Match[str]) -> str:
    tag = match.group(1)
    return f'<span class="tag" data-tag="{escape_html(tag)}">#{tag}</span>'


class _CalloutState(Enum):
    OUTSIDE = "outside"
    INSIDE = "inside"


def render_callouts(text: str) -> str:
    """
    Turn Obsidian callout blocks into HTML containers.

    A "> [!type] title" line opens a callout; following "> " lines are its
    content, a bare ">" is an empty content line, and any other line closes
    it. A callout still open at end of input is closed there.
    """
    state = _CalloutState.OUTSIDE
    result: list[str] = []

    for line in text.split("\n"):
        opener = _CALLOUT_PATTERN.match(line)
        if opener:
            if state is _CalloutState.INSIDE:
                result.append("</div></div>")
            kind, title = opener.group(1), opener.group(2)
            heading = f"{kind}: {title}" if title else kind
            result.append(
                f'<div class="callout callout-{kind.lower()}" '
                f'data-callout-type="{kind.lower()}">'
                f'<div class="callout-title">{heading}</div>'
                f'<div class="callout-content">'
            )
            state = _CalloutState.INSIDE
        elif state is _CalloutState.INSIDE:
            if line.startswith("> "):
                result.append(line[2:])
            elif line.strip() == ">":
                result.append("")
            else:
                result.append("</div></div>")
                result.append(line)
                state = _CalloutState.OUTSIDE
        else:
            result.append(line)

    if state is _CalloutState.INSIDE:
        result.append("</div></div>")

    return "\n".join(result)


def preprocess_obsidian(
    content: str, link_map: Mapping[str, str], vault_ref: str
) -> str:
    """Rewrite embeds, wikilinks, inline tags and callouts before markdown."""
    processed = _EMBED_PATTERN.sub(
        lambda m: _rewrite_embed(m, link_map, vault_ref), content
    )
    processed = _WIKILINK_PATTERN.sub(
        lambda m: _rewrite_wikilink(m, link_map), processed
    )
    processed = _TAG_PATTERN.sub(_rewrite_tag, processed)
    return render_callouts(processed)


def extract_tags(body: str, parsed_frontmatter: Mapping[str, Any]) -> list[str]:
    """Sorted unique tags from frontmatter `tags` and inline #tags."""
    tags: set[str] = set()

    declared = parsed_frontmatter.get("tags")
    if isinstance(declared, str):
        declared = [part for part in re.split(r"[,\s]+", declared) if part]
    if isinstance(declared, list):
        for tag in declared:
            if tag is not None and str(tag).strip():
                tags.add(str(tag).strip().lstrip("#"))

    tags.update(match.group(1) for match in _TAG_PATTERN.finditer(body))
    return sorted(tags)


def build_search_text(body: str, max_chars: int = SEARCH_TEXT_MAX_CHARS) -> str:
    """Lower-cased body with markdown punctuation blanked, bounded in length."""
    return _SEARCH_STRIP_PATTERN.sub(" ", body.lower())[:max_chars]


class MarkdownRenderer:
    """Markdown renderer with Obsidian link rewriting and sanitization."""

    def __init__(self) -> None:
        self._md = MarkdownIt("commonmark", {"breaks": True, "html": True}).enable(
            ["table", "strikethrough"]
        )

    def render(self, body: str, link_map: Mapping[str, str], vault_ref: str) -> str:
        """
        Render a note body to sanitized HTML.

        Args:
            body: Markdown without frontmatter
            link_map: Lower-cased note name -> stable note id
            vault_ref: Vault id used in attachment URLs

        Returns:
            Sanitized HTML
        """
        processed = preprocess_obsidian(body, link_map, vault_ref)
        return sanitize_html(self._md.render(processed))
