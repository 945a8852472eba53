from dataclasses import dataclass
from enum import Enum
from operator import attrgetter
import re

from docpublisher.converter.nodes import link_mark, mark, text_node


class SpanKind(Enum):
    CODE = 'code'
    LINK = 'link'
    STRONG = 'strong'
    EM = 'em'


@dataclass(frozen=True)
class Span:
    """A formatted region of a line: `start` and `end` delimit the markers, `text` is the content between them."""

    kind: SpanKind
    start: int
    end: int
    text: str
    href: str | None = None


INLINE_PATTERNS: tuple[tuple[SpanKind, re.Pattern[str]], ...] = (
    (SpanKind.CODE, re.compile(r'`([^`]+)`')),
    (SpanKind.LINK, re.compile(r'\[([^\]]+)\]\(([^)]+)\)')),
    (SpanKind.STRONG, re.compile(r'\*\*([^*]+)\*\*')),
    (SpanKind.STRONG, re.compile(r'__([^_]+)__')),
    (SpanKind.EM, re.compile(r'\*([^*]+)\*')),
    (SpanKind.EM, re.compile(r'_([^_]+)_')),
)
"""Inline syntaxes in decreasing priority. A span claimed by an earlier pattern is never re-matched by a later one."""

# Stands for a whole claimed span while scanning; accepted by every content class above. Claimed positions are
# tracked by index, so the value never needs to be unique.
_CLAIMED_STAND_IN = ' '


def _unclaimed_view(text: str, spans: list[Span]) -> tuple[str, list[int | None]]:
    """Collapses each claimed span into a single stand-in character.

    Returns:
        The collapsed text and, for every character of it, its index in `text` or `None` for a stand-in.
    """

    chars: list[str] = []
    positions: list[int | None] = []
    cursor = 0
    for span in sorted(spans, key=attrgetter('start')):
        chars.append(text[cursor : span.start])
        positions.extend(range(cursor, span.start))
        chars.append(_CLAIMED_STAND_IN)
        positions.append(None)
        cursor = span.end
    chars.append(text[cursor:])
    positions.extend(range(cursor, len(text)))
    return ''.join(chars), positions


def find_spans(text: str) -> list[Span]:
    """Finds the formatted spans of a line of Markdown.

    Each pattern scans the line with the spans of higher-priority patterns collapsed; a match that would include one
    of them is discarded, so spans never overlap.

    Args:
        text: a single line of Markdown.

    Returns:
        The spans sorted by their position in the line.
    """

    spans: list[Span] = []
    for kind, pattern in INLINE_PATTERNS:
        view, positions = _unclaimed_view(text, spans)
        for match in pattern.finditer(view):
            covered = positions[match.start() : match.end()]
            if None in covered:
                continue
            start = covered[0]
            end = covered[-1]
            if start is None or end is None:
                continue
            href = match.group(2) if kind == SpanKind.LINK else None
            spans.append(Span(kind=kind, start=start, end=end + 1, text=match.group(1), href=href))
    return sorted(spans, key=attrgetter('start'))


def _span_to_node(span: Span) -> dict:
    if span.kind == SpanKind.LINK and span.href is not None:
        return text_node(span.text, [link_mark(span.href)])
    return text_node(span.text, [mark(span.kind.value)])


def parse_inline_formatting(text: str) -> list[dict]:
    """Converts a line of Markdown into ADF text nodes.

    Supports inline code, links, bold and italic. Unbalanced markers are kept as literal text.

    Args:
        text: a single line of Markdown.

    Returns:
        A non-empty list of text nodes; a single unmarked node when the line has no formatting.
    """

    nodes: list[dict] = []
    cursor = 0
    for span in find_spans(text):
        if span.start > cursor:
            nodes.append(text_node(text[cursor : span.start]))
        nodes.append(_span_to_node(span))
        cursor = span.end
    if cursor < len(text):
        nodes.append(text_node(text[cursor:]))
    return nodes or [text_node(text)]
