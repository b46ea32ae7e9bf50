"""Conservative sanitization for markdown-derived HTML."""

import html
import re

DISALLOWED_TAGS = (
    "script",
    "style",
    "iframe",
    "object",
    "embed",
    "link",
    "meta",
    "form",
    "input",
    "button",
    "textarea",
    "select",
    "option",
)

_TAG_GROUP = "|".join(DISALLOWED_TAGS)

_DISALLOWED_BLOCKS = re.compile(
    rf"<(?:{_TAG_GROUP})(?:\s[^>]*)?>[\s\S]*?</(?:{_TAG_GROUP})\s*>",
    re.IGNORECASE,
)
_DISALLOWED_SINGLE = re.compile(
    rf"<(?:{_TAG_GROUP})(?:\s[^>]*)?/?\s*>",
    re.IGNORECASE,
)
_EVENT_HANDLERS = re.compile(
    r"""\son[a-z]+\s*=\s*("[^"]*"|'[^']*'|[^\s>]+)""",
    re.IGNORECASE,
)
_URL_ATTRIBUTES = re.compile(
    r"""\s(href|src)\s*=\s*("([^"]*)"|'([^']*)'|([^\s>]+))""",
    re.IGNORECASE,
)

_UNSAFE_SCHEMES = ("javascript:", "vbscript:", "data:text/html")


def sanitize_url(value: str | None) -> str:
    """Replace script-capable URLs with '#'."""
    normalized = (value or "").strip()
    if normalized.lower().startswith(_UNSAFE_SCHEMES):
        return "#"
    return normalized


def _rewrite_url_attribute(match: re.Match[str]) -> str:
    name = match.group(1)
    raw = next(
        (g for g in (match.group(3), match.group(4), match.group(5)) if g is not None),
        "",
    )
    return f' {name}="{sanitize_url(raw)}"'


def sanitize_html(markup: str | None) -> str:
    """
    Strip high-risk elements, inline event handlers and unsafe URLs.

    Args:
        markup: Rendered HTML

    Returns:
        Sanitized HTML (empty string for empty input)
    """
    if not markup:
        return ""

    output = _DISALLOWED_BLOCKS.sub("", markup)
    output = _DISALLOWED_SINGLE.sub("", output)
    output = _EVENT_HANDLERS.sub("", output)
    return _URL_ATTRIBUTES.sub(_rewrite_url_attribute, output)


def escape_html(text: str | None) -> str:
    """Escape text for inclusion in HTML, quotes included."""
    return html.escape(text or "", quote=True)
