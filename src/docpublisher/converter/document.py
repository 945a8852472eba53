import re
from typing import Any

from docpublisher.constants import ContentFormat
from docpublisher.converter.builder import BlockBuilder
from docpublisher.converter.nodes import document, is_empty_paragraph, table_of_contents
from docpublisher.models import ConversionOptions
from docpublisher.utils.content import filter_content_for_format

HEADING_COUNT_PATTERN = re.compile(r'^#{1,6}\s+.+$', re.MULTILINE)


def count_headings(markdown: str) -> int:
    return len(HEADING_COUNT_PATTERN.findall(markdown))


def _resolve_options(options: ConversionOptions | dict[str, Any] | None) -> ConversionOptions:
    if options is None:
        return ConversionOptions()
    if isinstance(options, ConversionOptions):
        return options
    return ConversionOptions.from_mapping(options)


def markdown_to_adf(markdown: str, options: ConversionOptions | dict[str, Any] | None = None) -> dict:
    """Converts a Markdown document into an ADF (Atlassian Document Format) document.

    Content meant for other output formats is filtered out first. When the document has at least
    `options.toc_threshold` headings a table of contents macro is inserted as its first block; a warning panel added
    later by the publisher goes in front of it.

    Args:
        markdown: the Markdown text of a whole document.
        options: conversion options; a dictionary may use snake_case or camelCase keys.

    Returns:
        The ADF document.

    Raises:
        TypeError: if `markdown` is not a string.
    """

    if not isinstance(markdown, str):
        raise TypeError(f'Markdown content must be a string, got {type(markdown).__name__}')

    conversion_options = _resolve_options(options)
    markdown = filter_content_for_format(markdown, ContentFormat.CONFLUENCE)

    blocks = BlockBuilder().build(markdown.replace('\r\n', '\n').split('\n'))
    while blocks and is_empty_paragraph(blocks[-1]):
        blocks.pop()

    if (
        blocks
        and conversion_options.add_table_of_contents
        and count_headings(markdown) >= conversion_options.toc_threshold
    ):
        blocks.insert(0, table_of_contents())

    return document(blocks)
