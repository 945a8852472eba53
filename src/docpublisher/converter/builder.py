from dataclasses import dataclass
from enum import Enum
import logging

from docpublisher.constants import LOGGER_NAME
from docpublisher.converter.inline import parse_inline_formatting
from docpublisher.converter.lines import (
    IMAGE_PLACEHOLDER_PATTERN,
    Line,
    LineKind,
    classify_line,
    is_table_separator,
    split_table_row,
)
from docpublisher.converter.nodes import (
    code_block,
    heading,
    image_media,
    list_item,
    list_node,
    paragraph,
    placeholder_media,
    rule,
    table,
    table_cell,
    table_row,
    text_node,
)

logger = logging.getLogger(LOGGER_NAME)


class ListTarget(Enum):
    DOCUMENT = 'document'
    PARENT_ITEM = 'parent_item'


@dataclass
class ListFrame:
    """An open list at one indentation depth."""

    list_type: str
    indent: int
    node: int
    """Index of the list node in the builder's arena."""
    target: ListTarget


def parse_table(lines: list[str], start: int) -> tuple[dict | None, int]:
    """Parses the table whose header row is `lines[start]`.

    Rows are consumed until a line without a pipe. Separator rows are skipped and the first parsed row becomes the
    header.

    Args:
        lines: all the lines of the document.
        start: the index of the header row.

    Returns:
        A tuple with the table node and the index of its last row, or `(None, start)` when fewer than two rows were
        parsed.
    """

    rows: list[dict] = []
    index = start
    while index < len(lines):
        line = lines[index]
        if '|' not in line:
            break
        if is_table_separator(line):
            index += 1
            continue
        if cells := split_table_row(line):
            is_header = not rows
            rows.append(table_row([table_cell(is_header, parse_inline_formatting(cell)) for cell in cells]))
        index += 1

    if len(rows) < 2:
        return None, start
    return table(rows), index - 1


class BlockBuilder:
    """Scans Markdown line by line and emits ADF block nodes.

    Lists are tracked with a stack of `ListFrame`s that refer to their list nodes by index into an arena owned by the
    builder. A builder is meant to be used for a single document.
    """

    def __init__(self):
        self.blocks: list[dict] = []
        self._arena: list[dict] = []
        self._frames: list[ListFrame] = []
        self._code_lines: list[str] | None = None
        self._code_language: str | None = None

    @property
    def in_code_block(self) -> bool:
        return self._code_lines is not None

    def build(self, lines: list[str]) -> list[dict]:
        index = 0
        while index < len(lines):
            index = self._consume(lines, index)
        self._close_lists()
        if self._code_lines is not None:
            logger.warning('Code block is not terminated', extra={'language': self._code_language})
            self._end_code_block()
        return self.blocks

    def _consume(self, lines: list[str], index: int) -> int:
        line = lines[index]
        next_line = lines[index + 1] if index + 1 < len(lines) else None
        classified = classify_line(line, next_line)

        if classified.kind == LineKind.FORMAT_MARKER:
            return index + 1
        # NOTE: fences and tables leave open lists alone, so they are emitted ahead of the list that surrounds them.
        # The list is appended to the document only when it is closed.
        if classified.kind == LineKind.CODE_FENCE:
            if self.in_code_block:
                self._end_code_block()
            else:
                self._code_lines = []
                self._code_language = classified.language
            return index + 1
        if self._code_lines is not None:
            self._code_lines.append(line)
            return index + 1

        if classified.kind == LineKind.TABLE_START:
            parsed_table, last_row = parse_table(lines, index)
            if parsed_table is not None:
                self.blocks.append(parsed_table)
                return last_row + 1
            classified = classify_line(line)

        if classified.kind == LineKind.LIST_ITEM:
            self._add_list_item(classified)
            return index + 1

        self._close_lists()
        self._add_block(classified)
        return index + 1

    def _end_code_block(self) -> None:
        self.blocks.append(code_block(self._code_language, self._code_lines or []))
        self._code_lines = None
        self._code_language = None

    def _add_block(self, line: Line) -> None:
        if line.kind == LineKind.HEADING:
            self.blocks.append(heading(line.level, parse_inline_formatting(line.text)))
        elif line.kind == LineKind.RULE:
            self.blocks.append(rule())
        elif line.kind == LineKind.BLANK:
            return
        elif line.kind == LineKind.IMAGE:
            self.blocks.append(paragraph([image_media(line.url or '', line.text)]))
        elif line.kind == LineKind.IMAGE_PLACEHOLDER:
            if content := self._placeholder_content(line.raw):
                self.blocks.append(paragraph(content))
        else:
            self.blocks.append(paragraph(parse_inline_formatting(line.raw) or [text_node('')]))

    @staticmethod
    def _placeholder_content(line: str) -> list[dict]:
        content: list[dict] = []
        cursor = 0
        for match in IMAGE_PLACEHOLDER_PATTERN.finditer(line):
            before = line[cursor : match.start()]
            if before.strip():
                content.extend(parse_inline_formatting(before))
            content.append(placeholder_media(match.group(1)))
            cursor = match.end()
        after = line[cursor:]
        if after.strip():
            content.extend(parse_inline_formatting(after))
        return content

    def _add_list_item(self, line: Line) -> None:
        list_type = 'orderedList' if line.ordered else 'bulletList'

        while self._frames and self._frames[-1].indent > line.indent:
            self._close_frame()

        # NOTE: a different marker type at the same depth starts a new list.
        if self._frames and self._frames[-1].indent == line.indent and self._frames[-1].list_type != list_type:
            self._close_frame()

        if not self._frames or self._frames[-1].indent != line.indent:
            self._open_frame(list_type, line.indent)

        self._arena[self._frames[-1].node]['content'].append(list_item(parse_inline_formatting(line.text)))

    def _open_frame(self, list_type: str, indent: int) -> None:
        node_index = len(self._arena)
        self._arena.append(list_node(list_type))

        if self._frames:
            parent_items: list[dict] = self._arena[self._frames[-1].node]['content']
            parent_items[-1]['content'].append(self._arena[node_index])
            target = ListTarget.PARENT_ITEM
        else:
            target = ListTarget.DOCUMENT
        self._frames.append(ListFrame(list_type=list_type, indent=indent, node=node_index, target=target))

    def _close_frame(self) -> None:
        frame = self._frames.pop()
        if frame.target == ListTarget.DOCUMENT:
            self.blocks.append(self._arena[frame.node])

    def _close_lists(self) -> None:
        while self._frames:
            self._close_frame()
