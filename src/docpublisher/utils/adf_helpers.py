import copy
import json
import logging
from pathlib import Path
import re
import xml.etree.ElementTree as ET

from PIL import Image

from docpublisher.constants import (
    IMAGE_MEDIA_DEFAULT_HEIGHT,
    IMAGE_MEDIA_WIDTH,
    IMAGE_PLACEHOLDER_ATTRIBUTE,
    LOGGER_NAME,
    WARNING_PANEL_LINK_TEXT,
    WARNING_PANEL_PREFIX,
    WARNING_PANEL_SUFFIX,
)
from docpublisher.converter.nodes import document, link_mark, mark, paragraph, text_node
from docpublisher.exceptions import ValidationError
from docpublisher.models import DiagramPlaceholder

logger = logging.getLogger(LOGGER_NAME)

REMOTE_URL_PATTERN = re.compile(r'^(?:[a-z][a-z0-9+.-]*:|//)', re.IGNORECASE)


def load_adf(adf: dict | str) -> dict:
    """Returns an ADF document, decoding it first when given as a JSON string.

    Raises:
        ValidationError: if the string is not valid JSON.
    """

    if isinstance(adf, dict):
        return adf
    try:
        return json.loads(adf)
    except json.JSONDecodeError as e:
        raise ValidationError(f'Invalid JSON in ADF document: {e}') from e


def warning_panel(source_url: str) -> dict:
    return {
        'type': 'panel',
        'attrs': {'panelType': 'warning'},
        'content': [
            paragraph(
                [
                    text_node(WARNING_PANEL_PREFIX),
                    text_node(WARNING_PANEL_LINK_TEXT, [link_mark(source_url)]),
                    text_node(WARNING_PANEL_SUFFIX),
                ]
            )
        ],
    }


def add_warning_panel(adf: dict | str, source_url: str | None) -> dict | str:
    """Prepends a warning panel linking to the source of a generated page.

    Args:
        adf: ADF document structure, or its JSON encoding.
        source_url: the URL of the source file. Nothing is added when it is empty.

    Returns:
        The ADF document with the panel as its first block; the input unchanged when there is no URL.
    """

    if not source_url:
        return adf
    doc = dict(load_adf(adf))
    doc['content'] = [warning_panel(source_url), *(doc.get('content') or [])]
    return doc


def folder_document(folder_name: str, source_url: str | None = None) -> dict:
    """The ADF body of a page that groups the pages of a directory."""
    content: list[dict] = []
    if source_url:
        content.append(warning_panel(source_url))
    content.append(
        paragraph(
            [
                text_node('This page organizes content from the '),
                text_node(folder_name, [mark('code')]),
                text_node(' directory.'),
            ]
        )
    )
    return document(content)


def has_warning_panel(adf: dict | str) -> bool:
    """Whether a page body, as returned by Confluence, carries a current warning panel and no error panel."""
    serialized = adf if isinstance(adf, str) else json.dumps(adf)
    normalized = serialized.replace('": "', '":"')
    if '"panelType":"error"' in normalized:
        return False
    return '"panelType":"warning"' in normalized and (
        WARNING_PANEL_PREFIX.strip() in serialized or WARNING_PANEL_LINK_TEXT in serialized
    )


def find_media_placeholders(adf: dict) -> list[str]:
    """Collects the view ids of media nodes that have not been bound to an attachment.

    Args:
        adf: ADF document structure

    Returns:
        The view ids in document order, without duplicates.
    """

    view_ids: list[str] = []

    def _walk(node):
        if not isinstance(node, dict):
            return
        if node.get('type') == 'media':
            view_id = (node.get('attrs') or {}).get(IMAGE_PLACEHOLDER_ATTRIBUTE)
            if view_id and view_id not in view_ids:
                view_ids.append(view_id)
        for child in node.get('content') or []:
            _walk(child)

    _walk(adf)
    return view_ids


def find_local_images(adf: dict) -> list[str]:
    """Collects the URLs of media nodes that reference files in the repository rather than on the web."""
    urls: list[str] = []

    def _walk(node):
        if not isinstance(node, dict):
            return
        if node.get('type') == 'media':
            url = (node.get('attrs') or {}).get('url')
            if url and not REMOTE_URL_PATTERN.match(url) and url not in urls:
                urls.append(url)
        for child in node.get('content') or []:
            _walk(child)

    _walk(adf)
    return urls


def _svg_length(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value.strip().removesuffix('px'))
    except ValueError:
        # relative lengths such as `100%`
        return None


def _svg_dimensions(image_path: Path) -> tuple[int, int] | None:
    try:
        root = ET.parse(image_path).getroot()
    except (ET.ParseError, OSError) as e:
        logger.debug('Unable to read SVG image', extra={'path': str(image_path), 'error': str(e)})
        return None
    if root.tag.split('}')[-1] != 'svg':
        return None

    width = _svg_length(root.get('width'))
    height = _svg_length(root.get('height'))
    if width is not None and height is not None:
        return round(width), round(height)

    viewbox = (root.get('viewBox') or '').replace(',', ' ').split()
    if len(viewbox) == 4:
        try:
            return round(float(viewbox[2])), round(float(viewbox[3]))
        except ValueError:
            return None
    return None


def image_dimensions(image_path: str | Path) -> tuple[int, int] | None:
    """Reads the width and height of an image.

    SVG sizes come from the `width` and `height` attributes of the root element, or from its `viewBox`.

    Returns:
        A `(width, height)` tuple or `None` when the file is missing or its size can not be determined.
    """

    if Path(image_path).suffix.lower() == '.svg':
        return _svg_dimensions(Path(image_path))
    try:
        with Image.open(image_path) as image:
            return image.size
    except OSError as e:
        logger.debug('Unable to read image dimensions', extra={'path': str(image_path), 'error': str(e)})
        return None


def scaled_image_height(image_path: str | Path | None, width: int = IMAGE_MEDIA_WIDTH) -> int:
    if image_path and (dimensions := image_dimensions(image_path)):
        image_width, image_height = dimensions
        if image_width > 0:
            return round(width * image_height / image_width)
    return IMAGE_MEDIA_DEFAULT_HEIGHT


def media_single(media_id: str, collection: str, width: int, height: int) -> dict:
    return {
        'type': 'mediaSingle',
        'attrs': {'layout': 'center'},
        'content': [
            {
                'type': 'media',
                'attrs': {
                    'type': 'file',
                    'collection': collection,
                    'id': media_id,
                    'width': width,
                    'height': height,
                },
            }
        ],
    }


def _media_matches(node: dict, key: str, original_path: str | None) -> bool:
    if node.get('type') != 'media':
        return False
    attrs = node.get('attrs') or {}
    if attrs.get(IMAGE_PLACEHOLDER_ATTRIBUTE) == key:
        return True
    url = attrs.get('url')
    return bool(original_path and url and (url == original_path or url.endswith(original_path)))


def _replace_media(node, key: str, original_path: str | None, replacement: dict):
    if not isinstance(node, dict):
        return node
    if _media_matches(node, key, original_path):
        return copy.deepcopy(replacement)
    content = node.get('content')
    if node.get('type') == 'paragraph' and isinstance(content, list) and len(content) == 1:
        if isinstance(content[0], dict) and _media_matches(content[0], key, original_path):
            return copy.deepcopy(replacement)
    if isinstance(content, list):
        node = node.copy()
        node['content'] = [_replace_media(child, key, original_path, replacement) for child in content]
    return node


def replace_image_placeholders(
    adf: dict | str, placeholders: list[DiagramPlaceholder], page_id: str | None
) -> dict | str:
    """Binds media placeholders to the attachments uploaded to a page.

    A media node is matched by its placeholder view id or, for images referenced by path, by a URL ending with the
    original path. The node, or the paragraph holding only that node, is replaced by a centered `mediaSingle` node that
    references the attachment in the page's media collection.

    Args:
        adf: ADF document structure, or its JSON encoding.
        placeholders: the uploaded images. Items without an attachment are ignored.
        page_id: the id of the page owning the attachments.

    Returns:
        The updated ADF document; the input unchanged when there are no placeholders.
    """

    if not placeholders:
        return adf
    if not page_id:
        logger.warning('Page ID not provided for the media collection')

    doc = load_adf(adf)
    collection = f'contentId-{page_id}' if page_id else ''
    for placeholder in placeholders:
        key = placeholder.key
        if placeholder.attachment is None or not key:
            continue
        height = scaled_image_height(placeholder.image_path)
        replacement = media_single(placeholder.attachment.media_id, collection, IMAGE_MEDIA_WIDTH, height)
        logger.info(
            'Replacing image placeholder',
            extra={'key': key, 'attachment_id': placeholder.attachment.id, 'height': height},
        )
        doc = _replace_media(doc, key, placeholder.original_path, replacement)
    return doc
