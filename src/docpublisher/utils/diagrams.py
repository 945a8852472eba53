import logging
from pathlib import Path
import re

from docpublisher.constants import LOGGER_NAME
from docpublisher.models import DiagramPlaceholder

logger = logging.getLogger(LOGGER_NAME)

DIAGRAM_IMAGE_EXTENSIONS = ('.png', '.svg')
INDEX_VIEW_ID = 'index'
INDEX_IMAGE_NAMES = ['index.png', 'Index.png', 'INDEX.png', 'index.svg', 'Index.svg']

LIKEC4_VIEW_PATTERN = re.compile(r'<LikeC4View[^>]*viewId="([^"]*)"[^>]*/?>')
ANY_SELF_CLOSING_LIKEC4_VIEW_PATTERN = re.compile(r'<LikeC4View[^>]*/>')
ANY_PAIRED_LIKEC4_VIEW_PATTERN = re.compile(r'<LikeC4View[^>]*>.*?</LikeC4View>', re.DOTALL)


def image_placeholder_markup(view_id: str) -> str:
    return f'<ac:image-placeholder-viewid="{view_id}"/>'


def _candidate_names(view_id: str) -> list[str]:
    lower_first = view_id[:1].lower() + view_id[1:]
    upper_first = view_id[:1].upper() + view_id[1:]
    names: list[str] = []
    for stem in (view_id, lower_first, upper_first):
        for extension in DIAGRAM_IMAGE_EXTENSIONS:
            if (name := f'{stem}{extension}') not in names:
                names.append(name)
    return names


def _find_file_recursive(directory: Path, filename: str) -> Path | None:
    for candidate in sorted(directory.rglob(filename)):
        if candidate.is_file():
            return candidate
    return None


def find_diagram_image(view_id: str, exports_dir: str | Path) -> Path | None:
    """Looks up the exported image of a diagram view.

    The `index` view is looked up under its usual spellings first. Then the view id, with its first letter in lower
    and upper case, is tried with a `.png` and `.svg` extension directly in `exports_dir` and then in its
    subdirectories. As a last resort any image whose name contains the view id (case-insensitive) is used.

    Args:
        view_id: the identifier of the view.
        exports_dir: the directory holding the exported images.

    Returns:
        The path of the image or `None` if it could not be found.
    """

    exports_path = Path(exports_dir)
    if not exports_path.is_dir():
        logger.warning('Diagram exports directory does not exist', extra={'exports_dir': str(exports_path)})
        return None

    if view_id == INDEX_VIEW_ID:
        for name in INDEX_IMAGE_NAMES:
            if (candidate := exports_path / name).is_file():
                return candidate

    names = _candidate_names(view_id)
    for name in names:
        if (candidate := exports_path / name).is_file():
            return candidate

    for name in names:
        if found := _find_file_recursive(exports_path, name):
            return found

    view_lower = view_id.lower()
    for candidate in sorted(exports_path.rglob('*')):
        file_name = candidate.name.lower()
        if candidate.is_file() and view_lower in file_name and file_name.endswith(DIAGRAM_IMAGE_EXTENSIONS):
            return candidate
    return None


def remove_import_statements(content: str) -> str:
    return '\n'.join(line for line in content.split('\n') if not line.strip().startswith('import '))


def has_diagram_components(content: str) -> bool:
    return bool(LIKEC4_VIEW_PATTERN.search(content))


def convert_diagram_components(content: str, exports_dir: str | Path) -> tuple[str, list[DiagramPlaceholder]]:
    """Replaces `<LikeC4View viewId="..."/>` components by image placeholders.

    Each view with an exported image becomes an image placeholder that the converter turns into a media node. Views
    without an image are replaced by a short notice in italics. MDX `import` lines are removed.

    Args:
        content: the MDX/Markdown text.
        exports_dir: the directory holding the exported images.

    Returns:
        A tuple with the converted text and one `DiagramPlaceholder` per view that has an image.
    """

    content = remove_import_statements(content)

    view_ids: list[str] = []
    for match in LIKEC4_VIEW_PATTERN.finditer(content):
        if match.group(1) not in view_ids:
            view_ids.append(match.group(1))

    placeholders: list[DiagramPlaceholder] = []
    for view_id in view_ids:
        escaped = re.escape(view_id)
        self_closing = re.compile(rf'<LikeC4View[^>]*viewId="{escaped}"[^>]*/>')
        paired = re.compile(rf'<LikeC4View[^>]*viewId="{escaped}"[^>]*>.*?</LikeC4View>', re.DOTALL)

        if image_path := find_diagram_image(view_id, exports_dir):
            placeholders.append(DiagramPlaceholder(view_id=view_id, image_path=image_path))
            markup = image_placeholder_markup(view_id)
            content = self_closing.sub(markup, content)
            content = paired.sub(markup, content)
            logger.info('Found diagram image', extra={'view_id': view_id, 'image_path': str(image_path)})
        else:
            logger.warning('No exported image found for diagram view', extra={'view_id': view_id})
            content = self_closing.sub(f"*Diagram for view '{view_id}' not available*", content)

    content = ANY_SELF_CLOSING_LIKEC4_VIEW_PATTERN.sub('', content)
    content = ANY_PAIRED_LIKEC4_VIEW_PATTERN.sub('', content)
    return content, placeholders
