"""Plain-text rendering of email bodies and timestamp resolution."""

import re
import textwrap
from collections.abc import Iterator, Mapping
from datetime import datetime, timezone

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PageElement, PreformattedString

WORDWRAP_WIDTH = 120

SKIPPED_TAGS = frozenset({"img", "script", "style", "head", "title", "meta", "link", "noscript"})
BLOCK_TAGS = frozenset(
    {"address", "article", "aside", "div", "dl", "dt", "dd", "fieldset", "figure", "footer", "form", "header"}
    | {"h1", "h2", "h3", "h4", "h5", "h6", "hr", "main", "nav", "ol", "ul", "p", "section"}
    | {"table", "tbody", "thead", "tfoot", "tr"}
)

_WHITESPACE = re.compile(r"\s+")
_QUOTE_PREFIX = re.compile(r"^((?:> ?)+)")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def _render_leaf(node: PageElement) -> str | None:
    """Render a node that has no rendered children, or return None for containers."""
    # comments, doctypes, CDATA, processing instructions and declarations
    if isinstance(node, PreformattedString):
        return ""
    if isinstance(node, NavigableString):
        return _WHITESPACE.sub(" ", str(node))
    if not isinstance(node, Tag) or node.name in SKIPPED_TAGS:
        return ""
    if node.name == "br":
        return "\n"
    if node.name == "pre":
        return "\n" + node.get_text() + "\n"
    return None


def _render(root: Tag) -> str:
    """Render a parsed tree to text, block elements on their own lines.

    Walks with an explicit stack; nesting depth is not bounded by the
    interpreter recursion limit.
    """
    stack: list[tuple[Tag, Iterator[PageElement], list[str]]] = [(root, iter(root.children), [])]
    while True:
        tag, children, parts = stack[-1]
        child = next(children, None)
        if child is not None:
            leaf = _render_leaf(child)
            if leaf is None:
                stack.append((child, iter(child.children), []))  # type: ignore[attr-defined]
            else:
                parts.append(leaf)
            continue

        stack.pop()
        rendered = _close_tag(tag.name, "".join(parts))
        if not stack:
            return rendered
        stack[-1][2].append(rendered)


def _close_tag(name: str, inner: str) -> str:
    """Wrap the rendered children of a tag according to its kind."""
    # anchors fall through: visible text only, href dropped
    if name == "blockquote":
        quoted = [line.strip() for line in inner.strip("\n").split("\n")]
        return "\n" + "\n".join(f"> {line}" for line in quoted) + "\n"
    if name == "li":
        return f"\n* {inner.strip()}\n"
    if name in ("td", "th"):
        return inner.strip() + " "
    if name in BLOCK_TAGS:
        return f"\n{inner}\n"
    return inner


def _wrap_line(line: str, width: int) -> list[str]:
    """Wrap one line, repeating its quote prefix on continuation lines."""
    if len(line) <= width:
        return [line]
    match = _QUOTE_PREFIX.match(line)
    prefix = match.group(1) if match else ""
    return textwrap.wrap(
        line,
        width=width,
        subsequent_indent=prefix,
        break_long_words=False,
        break_on_hyphens=False,
    ) or [line]


def html_to_text(markup: str, wordwrap: int = WORDWRAP_WIDTH) -> str:
    """Convert an HTML email body to wrapped plain text.

    Links keep their visible text and lose the target, images are dropped,
    and blockquotes are rendered with ``> `` markers.
    """
    soup = BeautifulSoup(markup, "html.parser")
    rendered = _render(soup)

    lines: list[str] = []
    for raw in rendered.split("\n"):
        lines.extend(_wrap_line(raw.strip(), wordwrap))
    return "\n".join(lines)


def clean_text(text: str) -> str:
    """Drop empty and quote-only lines and collapse blank runs."""
    kept = [line for line in text.split("\n") if line.replace(">", "").strip()]
    return _EXCESS_NEWLINES.sub("\n\n", "\n".join(kept)).strip()


def normalize_body(html: str | None, text: str | None) -> str:
    """Return the plain-text body of an email.

    The HTML body wins when present since it is usually the more complete
    one; otherwise the plain-text body is returned trimmed.
    """
    if html:
        return clean_text(html_to_text(html))
    return (text or "").strip()


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_epoch_millis(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        millis = int(float(value.strip()))
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return _ensure_utc(datetime.fromisoformat(candidate))
    except ValueError:
        # some portals store hs_createdate as epoch millis
        return _parse_epoch_millis(value)


def resolve_timestamp(
    properties: Mapping[str, str | None],
    record_created_at: str | None = None,
    now: datetime | None = None,
) -> tuple[datetime, bool]:
    """Pick the creation time of an email record.

    Sources in order: ``hs_email_date`` (epoch ms), ``hs_timestamp`` (epoch ms),
    ``hs_createdate`` (date string), the record-level creation time, and
    finally the current time.

    Returns:
        Tuple of (UTC timestamp, estimated) where estimated is True only when
        the current time was substituted.
    """
    for resolved in (
        _parse_epoch_millis(properties.get("hs_email_date")),
        _parse_epoch_millis(properties.get("hs_timestamp")),
        _parse_iso(properties.get("hs_createdate")),
        _parse_iso(record_created_at),
    ):
        if resolved is not None:
            return resolved, False
    return _ensure_utc(now or datetime.now(timezone.utc)), True
