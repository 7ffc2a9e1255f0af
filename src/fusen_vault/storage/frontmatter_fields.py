"""Targeted read/write of individual header fields.

The header is the block between the first line equal to ``---`` and the next
line equal to ``---``. Fields are located one at a time with line-anchored
patterns, so a lookup for ``h``/``height`` can never land inside ``width``,
and rewriting a field leaves every other byte of the file untouched. This is
not a YAML parser: unknown keys, comments and odd values pass
through as text.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from fusen_vault.config import DEFAULT_BACKGROUND_COLOR
from fusen_vault.models.schema import NoteFields

logger = logging.getLogger(__name__)

FENCE = "---"

DEFAULT_X = 100
DEFAULT_Y = 100
DEFAULT_WIDTH = 400
DEFAULT_HEIGHT = 300
DEFAULT_FONT_FAMILY = "BIZ UDGothic"
DEFAULT_FONT_SIZE = 8
DEFAULT_LINE_HEIGHT = "1.0"

_NUMBER = r"(-?[\d.]+)"

_X_RE = re.compile(rf"^x:[ \t]*{_NUMBER}", re.MULTILINE)
_Y_RE = re.compile(rf"^y:[ \t]*{_NUMBER}", re.MULTILINE)
_WIDTH_RE = re.compile(rf"^(?:width|w):[ \t]*{_NUMBER}", re.MULTILINE)
_HEIGHT_RE = re.compile(rf"^(?:height|h):[ \t]*{_NUMBER}", re.MULTILINE)
_COLOR_RE = re.compile(r"""^backgroundColor:[ \t]*["']?([^"'\s]+)["']?""", re.MULTILINE)
_ALWAYS_ON_TOP_RE = re.compile(r"^alwaysOnTop:[ \t]*(true|false)\b", re.MULTILINE)
_TAGS_RE = re.compile(r"^tags:[ \t]*(.*)$", re.MULTILINE)
_UPDATED_RE = re.compile(r"^updated:[ \t]*\d{4}-\d{2}-\d{2}", re.MULTILINE)


@dataclass(frozen=True)
class _HeaderSpan:
    open_start: int  # first char of the opening fence line
    inner_start: int  # first char after the opening fence line
    close_start: int  # first char of the closing fence line
    close_end: int  # just past the closing fence text, before its newline


def _iter_lines(content: str, pos: int) -> Iterator[Tuple[int, str]]:
    while pos < len(content):
        nl = content.find("\n", pos)
        end = len(content) if nl == -1 else nl + 1
        yield pos, content[pos:end]
        pos = end


def _find_header(content: str) -> Optional[_HeaderSpan]:
    """Locate the header block, or None when the file has none.

    The opening fence must be the first non-blank line (a BOM is skipped).
    A fence without a closing partner does not count as a header.
    """
    start = 1 if content.startswith("\ufeff") else 0
    open_start = inner_start = -1
    for line_start, line in _iter_lines(content, start):
        text = line.rstrip("\r\n")
        if open_start < 0:
            if not text.strip():
                continue
            if text.rstrip() != FENCE:
                return None
            open_start = line_start
            inner_start = line_start + len(line)
            continue
        if text.rstrip() == FENCE:
            return _HeaderSpan(open_start, inner_start, line_start, line_start + len(text))
    return None


def _header_scope(content: str) -> str:
    span = _find_header(content)
    if span is None:
        return content
    return content[span.inner_start : span.close_start]


def _eol(content: str, span: _HeaderSpan) -> str:
    return "\r\n" if content[span.open_start : span.inner_start].endswith("\r\n") else "\n"


def _float(match: Optional[re.Match]) -> Optional[float]:
    if match is None:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def parse_tags(raw: str) -> List[str]:
    """Parse ``[a, b, c]`` or ``a, b, c`` into a deduplicated tag list."""
    value = raw.strip()
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    if not value:
        return []
    tags = []
    for item in value.split(","):
        tag = item.strip().strip('"').strip("'")
        if tag:
            tags.append(tag)
    return list(dict.fromkeys(tags))


def format_tags(tags: Iterable[str]) -> str:
    return "[" + ", ".join(tags) + "]"


def extract_meta(content: str) -> NoteFields:
    """Read position, size, color, flag and tags from a note.

    When the content has a header, only the header is searched; bare
    ``key: value`` text without fences is searched as a whole.
    """
    scope = _header_scope(content)

    aot_match = _ALWAYS_ON_TOP_RE.search(scope)
    color_match = _COLOR_RE.search(scope)
    tags_match = _TAGS_RE.search(scope)

    return NoteFields(
        x=_float(_X_RE.search(scope)),
        y=_float(_Y_RE.search(scope)),
        width=_float(_WIDTH_RE.search(scope)),
        height=_float(_HEIGHT_RE.search(scope)),
        color=color_match.group(1) if color_match else None,
        always_on_top=(aot_match.group(1) == "true") if aot_match else None,
        tags=parse_tags(tags_match.group(1)) if tags_match else [],
    )


def read_field(content: str, key: str) -> Optional[str]:
    """Return the raw value of ``key`` inside the header, or None."""
    pattern = re.compile(rf"^{re.escape(key)}:[ \t]*([^\r\n]*)", re.MULTILINE)
    match = pattern.search(_header_scope(content))
    return match.group(1).strip() if match else None


def has_field(content: str, key: str) -> bool:
    span = _find_header(content)
    if span is None:
        return False
    pattern = re.compile(rf"^{re.escape(key)}:", re.MULTILINE)
    return pattern.search(content, span.inner_start, span.close_start) is not None


def update_field(content: str, key: str, value: object) -> str:
    """Set ``key: value`` in the header and return the new content.

    An existing line starting with ``key:`` is rewritten in place; otherwise
    the line is inserted right before the closing fence. Content without a
    header gets a new one prefixed. Everything else is preserved byte for
    byte, so applying the same update twice is a no-op the second time.
    """
    line = f"{key}: {value}"
    span = _find_header(content)
    if span is None:
        return f"{FENCE}\n{line}\n{FENCE}\n\n{content}"

    inner = content[span.inner_start : span.close_start]
    pattern = re.compile(rf"^{re.escape(key)}:[^\r\n]*", re.MULTILINE)
    new_inner, count = pattern.subn(lambda _m: line, inner, count=1)
    if count == 0:
        eol = _eol(content, span)
        if inner and not inner.endswith("\n"):
            inner += eol
        new_inner = inner + line + eol

    return content[: span.inner_start] + new_inner + content[span.close_start :]


def update_updated_field(frontmatter: str, new_date: str) -> str:
    """Replace the first ``updated: YYYY-MM-DD`` line; no-op when absent."""
    return _UPDATED_RE.sub(lambda _m: f"updated: {new_date}", frontmatter, count=1)


def split_frontmatter(content: str) -> Tuple[str, str]:
    """Split content into ``(header, body)``.

    The header includes both fences. The body has its leading whitespace
    removed. Without a header the result is ``("", content)``.
    """
    span = _find_header(content)
    if span is None:
        return "", content
    front = content[span.open_start : span.close_end]
    body = content[span.close_end :].lstrip()
    return front, body


def compose(frontmatter: str, body: str) -> str:
    """Join a header and a body with exactly one blank line between them."""
    if not frontmatter:
        return body
    return f"{frontmatter.rstrip(chr(13) + chr(10))}\n\n{body}"


def generate_frontmatter(
    seq: int,
    context: str,
    created: str,
    updated: str,
    background_color: Optional[str] = None,
    tags: Iterable[str] = (),
) -> str:
    """Build the complete default header for a new note."""
    color = background_color or DEFAULT_BACKGROUND_COLOR
    tag_list = list(tags)
    tags_line = f"\ntags: {format_tags(tag_list)}" if tag_list else ""
    return (
        f"{FENCE}\n"
        "type: sticky\n"
        f"seq: {seq}\n"
        f"context: {context}\n"
        f"created: {created}\n"
        f"updated: {updated}\n"
        f"backgroundColor: {color}{tags_line}\n"
        f"x: {DEFAULT_X}\n"
        f"y: {DEFAULT_Y}\n"
        f"width: {DEFAULT_WIDTH}\n"
        f"height: {DEFAULT_HEIGHT}\n"
        f"fontFamily: {DEFAULT_FONT_FAMILY}\n"
        f"fontSize: {DEFAULT_FONT_SIZE}\n"
        f"lineHeight: {DEFAULT_LINE_HEIGHT}\n"
        f"{FENCE}\n"
    )
