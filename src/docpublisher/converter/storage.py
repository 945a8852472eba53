"""Rendering of Markdown into the Confluence storage format, used when a page can not be sent as ADF."""

from html import escape
import re

from markdown_it import MarkdownIt
from markdown_it.rules_inline import StateInline
from mdit_py_plugins.tasklists import tasklists_plugin

from docpublisher.constants import DEFAULT_STORAGE_CODE_LANGUAGE, WARNING_PANEL_LINK_TEXT, WARNING_PANEL_PREFIX
from docpublisher.converter.lines import IMAGE_PLACEHOLDER_PATTERN
from docpublisher.models import DiagramPlaceholder
from docpublisher.utils.diagrams import image_placeholder_markup


def _render_code_macro(self, tokens, idx, options, env) -> str:
    token = tokens[idx]
    info = token.info.strip()
    language = info.split()[0] if info else DEFAULT_STORAGE_CODE_LANGUAGE
    # A literal `]]>` would end the CDATA section early.
    body = token.content.rstrip('\n').replace(']]>', ']]]]><![CDATA[>')
    return (
        '<ac:structured-macro ac:name="code">'
        f'<ac:parameter ac:name="language">{escape(language)}</ac:parameter>'
        f'<ac:plain-text-body><![CDATA[{body}]]></ac:plain-text-body>'
        '</ac:structured-macro>\n'
    )


def _render_hr(self, tokens, idx, options, env) -> str:
    return '<hr />\n'


def image_placeholder_plugin(md: MarkdownIt) -> None:
    """Keeps image placeholder markup as text.

    Left alone, `<ac:image-placeholder-viewid="X"/>` is parsed as an autolink. The placeholder is rendered escaped
    instead, which is the form `replace_storage_image_placeholders()` swaps for the uploaded image.
    """

    def image_placeholder(state: StateInline, silent: bool) -> bool:
        if not state.src.startswith('<', state.pos):
            return False
        match = IMAGE_PLACEHOLDER_PATTERN.match(state.src, state.pos, state.posMax)
        if match is None:
            return False
        if not silent:
            token = state.push('text', '', 0)
            token.content = image_placeholder_markup(match.group(1))
        state.pos = match.end()
        return True

    md.inline.ruler.before('autolink', 'image_placeholder', image_placeholder)


def _create_parser() -> MarkdownIt:
    md = MarkdownIt('commonmark', {'html': True, 'xhtmlOut': True})
    md.enable(['table', 'strikethrough'])
    md.use(tasklists_plugin)
    md.use(image_placeholder_plugin)
    md.add_render_rule('fence', _render_code_macro)
    md.add_render_rule('code_block', _render_code_macro)
    md.add_render_rule('hr', _render_hr)
    return md


def markdown_to_storage(markdown: str) -> str:
    """Renders Markdown into Confluence storage format (XHTML).

    Fenced and indented code becomes a Confluence `code` macro.

    Args:
        markdown: the Markdown text.

    Returns:
        The storage format markup.
    """

    if not isinstance(markdown, str):
        raise TypeError(f'Markdown content must be a string, got {type(markdown).__name__}')
    return _create_parser().render(markdown)


def storage_warning_panel(source_url: str) -> str:
    """A storage format warning macro pointing readers to the source of a generated page."""
    return (
        '<ac:structured-macro ac:name="warning" ac:schema-version="1">'
        '<ac:rich-text-body>'
        f'<p>{escape(WARNING_PANEL_PREFIX)}<a href="{escape(source_url)}">{escape(WARNING_PANEL_LINK_TEXT)}</a>. '
        'Do not directly edit as your edits may be overwritten from source.</p>'
        '</ac:rich-text-body>'
        '</ac:structured-macro>\n'
    )


def add_warning_panel_to_storage(storage: str, source_url: str | None) -> str:
    """Prepends the warning panel to storage format content; a no-op without a source URL."""
    if not source_url:
        return storage
    return storage_warning_panel(source_url) + storage


def storage_image_width(view_id: str) -> str:
    """Width of an embedded diagram, chosen from the kind of view its id names."""
    view_lower = view_id.lower()
    if any(word in view_lower for word in ('network', 'architecture', 'infrastructure', 'deployment')):
        return '1600'
    if any(word in view_lower for word in ('flow', 'endtoend', 'submission', 'processing')):
        return '900'
    return '1200'


def replace_storage_image_placeholders(storage: str, placeholders: list[DiagramPlaceholder]) -> str:
    """Replaces image placeholders in storage format content with images referencing the uploaded attachments.

    The placeholder markup is matched both raw and HTML-escaped, alone in a paragraph or inline.

    Args:
        storage: the storage format markup.
        placeholders: the uploaded images. Items without a view id or an attachment are ignored.

    Returns:
        The updated markup.
    """

    for placeholder in placeholders:
        view_id = placeholder.view_id
        if not view_id or placeholder.attachment is None:
            continue
        embed = (
            f'<ac:image ac:width="{storage_image_width(view_id)}">'
            f'<ri:attachment ri:filename="{escape(placeholder.attachment.title)}"/></ac:image>'
        )
        for markup in (image_placeholder_markup(view_id), escape(image_placeholder_markup(view_id))):
            storage = re.sub(rf'<p>\s*{re.escape(markup)}\s*</p>', lambda _: embed, storage)
            storage = storage.replace(markup, embed)
    return storage
