from dataclasses import dataclass
from enum import Enum
import re

CODE_FENCE = '```'

FORMAT_MARKER_LINE_PATTERN = re.compile(
    r'^<!--\s*(GITHUB_ONLY|PPT_ONLY|CONFLUENCE_ONLY|/\s*(GITHUB_ONLY|PPT_ONLY|CONFLUENCE_ONLY))\s*-->$',
    re.IGNORECASE,
)
TABLE_SEPARATOR_PATTERN = re.compile(r'^\|?[\s\-:|]+\|?$')
LIST_ITEM_PATTERN = re.compile(r'^(\s*)([-*+]|\d+\.)\s+(.+)$')
HEADING_PATTERN = re.compile(r'^(#{1,6})\s+(.+)$')
RULE_PATTERN = re.compile(r'^[-*_]{3,}$')
IMAGE_PATTERN = re.compile(r'^!\[([^\]]*)\]\(([^)]+)\)$')
IMAGE_PLACEHOLDER_PATTERN = re.compile(r'<ac:image-placeholder-viewid="([^"]+)"\s*/?>')
IMAGE_PLACEHOLDER_PREFIX = '<ac:image-placeholder-viewid='


class LineKind(Enum):
    FORMAT_MARKER = 'format_marker'
    CODE_FENCE = 'code_fence'
    TABLE_START = 'table_start'
    LIST_ITEM = 'list_item'
    HEADING = 'heading'
    RULE = 'rule'
    BLANK = 'blank'
    IMAGE = 'image'
    IMAGE_PLACEHOLDER = 'image_placeholder'
    TEXT = 'text'


@dataclass(frozen=True)
class Line:
    kind: LineKind
    raw: str
    text: str = ''
    indent: int = 0
    ordered: bool = False
    level: int = 0
    language: str | None = None
    url: str | None = None


def classify_line(line: str, next_line: str | None = None) -> Line:
    """Classifies a line of Markdown by the block it starts.

    Args:
        line: the line to classify, without its line terminator.
        next_line: the following line. A table is only recognised when it is given and is a separator row.

    Returns:
        A `Line` tagged with its kind and carrying the parts of the line relevant to that kind.
    """

    stripped = line.strip()
    if FORMAT_MARKER_LINE_PATTERN.match(stripped):
        return Line(kind=LineKind.FORMAT_MARKER, raw=line)
    if stripped.startswith(CODE_FENCE):
        return Line(kind=LineKind.CODE_FENCE, raw=line, language=stripped[len(CODE_FENCE) :].strip() or None)
    if next_line is not None and '|' in line and TABLE_SEPARATOR_PATTERN.match(next_line):
        return Line(kind=LineKind.TABLE_START, raw=line)
    if match := LIST_ITEM_PATTERN.match(line):
        indentation, marker, content = match.groups()
        return Line(
            kind=LineKind.LIST_ITEM,
            raw=line,
            text=content,
            indent=len(indentation),
            ordered=marker[0].isdigit(),
        )
    if match := HEADING_PATTERN.match(line):
        return Line(kind=LineKind.HEADING, raw=line, level=len(match.group(1)), text=match.group(2))
    if RULE_PATTERN.match(stripped):
        return Line(kind=LineKind.RULE, raw=line)
    if not stripped:
        return Line(kind=LineKind.BLANK, raw=line)
    if match := IMAGE_PATTERN.match(line):
        return Line(kind=LineKind.IMAGE, raw=line, text=match.group(1), url=match.group(2))
    if IMAGE_PLACEHOLDER_PREFIX in line:
        return Line(kind=LineKind.IMAGE_PLACEHOLDER, raw=line, text=line)
    return Line(kind=LineKind.TEXT, raw=line, text=line)


def is_table_separator(line: str) -> bool:
    return bool(TABLE_SEPARATOR_PATTERN.match(line))


def split_table_row(line: str) -> list[str]:
    """Splits a table row into trimmed cell values, ignoring the empty cells left by leading and trailing pipes."""
    cells = [cell.strip() for cell in line.split('|')]
    start = 1 if cells[0] == '' else 0
    end = len(cells) - 1 if len(cells) > 1 and cells[-1] == '' else len(cells)
    return cells[start:end]
