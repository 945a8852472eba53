"""Constructors for the ADF nodes emitted by the Markdown converter."""

from typing import Any

from docpublisher.constants import (
    CONFLUENCE_MACRO_EXTENSION_TYPE,
    DEFAULT_CODE_BLOCK_LANGUAGE,
    IMAGE_PLACEHOLDER_ATTRIBUTE,
    TOC_MAX_LEVEL,
    TOC_MIN_LEVEL,
    TOC_STYLE,
)

ADF_VERSION = 1


def text_node(text: str, marks: list[dict] | None = None) -> dict:
    node: dict[str, Any] = {'type': 'text', 'text': text}
    if marks:
        node['marks'] = marks
    return node


def mark(mark_type: str) -> dict:
    return {'type': mark_type}


def link_mark(href: str) -> dict:
    return {'type': 'link', 'attrs': {'href': href}}


def paragraph(content: list[dict]) -> dict:
    return {'type': 'paragraph', 'content': content}


def heading(level: int, content: list[dict]) -> dict:
    return {'type': 'heading', 'attrs': {'level': level}, 'content': content}


def rule() -> dict:
    return {'type': 'rule'}


def code_block(language: str | None, lines: list[str]) -> dict:
    text = '\n'.join(lines)
    return {
        'type': 'codeBlock',
        'attrs': {'language': language or DEFAULT_CODE_BLOCK_LANGUAGE},
        'content': [text_node(text)] if text else [],
    }


def list_node(list_type: str) -> dict:
    return {'type': list_type, 'content': []}


def list_item(content: list[dict]) -> dict:
    return {'type': 'listItem', 'content': [paragraph(content or [text_node('')])]}


def table_cell(is_header: bool, content: list[dict]) -> dict:
    return {
        'type': 'tableHeader' if is_header else 'tableCell',
        'attrs': {},
        'content': [paragraph(content)],
    }


def table_row(cells: list[dict]) -> dict:
    return {'type': 'tableRow', 'content': cells}


def table(rows: list[dict]) -> dict:
    return {
        'type': 'table',
        'attrs': {'isNumberColumnEnabled': False, 'layout': 'default'},
        'content': rows,
    }


def image_media(url: str, alt: str) -> dict:
    return {'type': 'media', 'attrs': {'type': 'file', 'url': url, 'alt': alt}}


def placeholder_media(view_id: str) -> dict:
    """A media node that still has to be bound to an uploaded attachment."""
    return {'type': 'media', 'attrs': {'type': 'file', IMAGE_PLACEHOLDER_ATTRIBUTE: view_id}}


def table_of_contents() -> dict:
    return {
        'type': 'extension',
        'attrs': {
            'extensionType': CONFLUENCE_MACRO_EXTENSION_TYPE,
            'extensionKey': 'toc',
            'parameters': {
                'macroParams': {
                    'minLevel': {'value': TOC_MIN_LEVEL},
                    'maxLevel': {'value': TOC_MAX_LEVEL},
                    'style': {'value': TOC_STYLE},
                }
            },
        },
    }


def document(content: list[dict]) -> dict:
    return {'type': 'doc', 'version': ADF_VERSION, 'content': content}


def is_empty_paragraph(node: dict) -> bool:
    """Whether a block is a paragraph without content or holding a single blank text run."""
    if node.get('type') != 'paragraph':
        return False
    content = node.get('content') or []
    if not content:
        return True
    if len(content) == 1:
        child = content[0]
        return child.get('type') == 'text' and not child.get('text', '').strip()
    return False
