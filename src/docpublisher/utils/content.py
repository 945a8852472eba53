from dataclasses import dataclass, field
import logging
from pathlib import Path
import re

import yaml

from docpublisher.constants import LOGGER_NAME, ContentFormat
from docpublisher.exceptions import ContentReadError

logger = logging.getLogger(LOGGER_NAME)

FRONTMATTER_DELIMITER = '---'

PPT_ONLY_BLOCK_PATTERN = re.compile(r'<!--\s*PPT_ONLY\s*-->.*?<!--\s*/\s*PPT_ONLY\s*-->', re.IGNORECASE | re.DOTALL)
GITHUB_ONLY_BLOCK_PATTERN = re.compile(
    r'<!--\s*GITHUB_ONLY\s*-->.*?<!--\s*/\s*GITHUB_ONLY\s*-->', re.IGNORECASE | re.DOTALL
)
CONFLUENCE_ONLY_MARKER_PATTERN = re.compile(r'<!--\s*/?\s*CONFLUENCE_ONLY\s*-->', re.IGNORECASE)
ADMONITION_BLOCK_PATTERN = re.compile(r'^:::[a-zA-Z]+(\[[^\]]*\])?.*?^:::$', re.MULTILINE | re.DOTALL)
FIRST_H1_PATTERN = re.compile(r'^#\s+(.+?)$', re.MULTILINE)
ADR_PATTERN = re.compile('adr', re.IGNORECASE)


@dataclass(frozen=True)
class ParsedMarkdown:
    frontmatter: dict = field(default_factory=dict)
    body: str = ''


def parse_frontmatter(markdown_text: str) -> ParsedMarkdown:
    """Splits a YAML frontmatter block from the body of a Markdown document.

    Args:
        markdown_text: the full text of the document.

    Returns:
        The frontmatter as a dictionary (empty when missing or not a mapping) and the body of the document.
    """

    lines = markdown_text.splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return ParsedMarkdown(frontmatter={}, body=markdown_text)

    end_idx = None
    for i in range(1, len(lines)):
        if lines[i].strip() == FRONTMATTER_DELIMITER:
            end_idx = i
            break
    if end_idx is None:
        return ParsedMarkdown(frontmatter={}, body=markdown_text)

    fm_text = '\n'.join(lines[1:end_idx]).strip()
    body = '\n'.join(lines[end_idx + 1 :]).strip()

    try:
        fm = yaml.safe_load(fm_text) if fm_text else {}
    except yaml.YAMLError as e:
        logger.warning('Unable to parse the frontmatter', extra={'error': str(e)})
        fm = {}
    if fm is None or not isinstance(fm, dict):
        fm = {}
    return ParsedMarkdown(frontmatter=fm, body=body)


def read_file_content(path: str | Path) -> str:
    """Reads a Markdown file and drops its frontmatter.

    Args:
        path: the path of the file.

    Returns:
        The body of the document.

    Raises:
        ContentReadError: if the file can not be read.
    """

    try:
        content = Path(path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ContentReadError(f'Failed to read file {path}: {e}') from e
    return parse_frontmatter(content).body


def filter_content_for_format(content: str, content_format: ContentFormat | str) -> str:
    """Removes the parts of a document that are not meant for the given output format.

    For Confluence, `PPT_ONLY` and `GITHUB_ONLY` comment blocks and `:::note` style admonitions are removed, while the
    `CONFLUENCE_ONLY` markers are dropped and their content is kept. Other formats are returned unchanged.

    Args:
        content: the Markdown text.
        content_format: the target output format.

    Returns:
        The filtered Markdown text.
    """

    if ContentFormat(content_format) != ContentFormat.CONFLUENCE:
        return content
    content = PPT_ONLY_BLOCK_PATTERN.sub('', content)
    content = GITHUB_ONLY_BLOCK_PATTERN.sub('', content)
    content = CONFLUENCE_ONLY_MARKER_PATTERN.sub('', content)
    return ADMONITION_BLOCK_PATTERN.sub('', content)


def title_from_filename(path: str | Path) -> str:
    return ADR_PATTERN.sub('ADR-', Path(path).stem.replace('-', ' '))


def extract_title(path: str | Path) -> str:
    """Determines the page title of a Markdown file.

    The title is taken from the `title` key of the frontmatter, then from the first level-one heading and finally
    from the file name, with dashes replaced by spaces.

    Args:
        path: the path of the file.

    Returns:
        The title of the page.
    """

    try:
        content = Path(path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        logger.warning('Unable to read file to extract the title', extra={'path': str(path), 'error': str(e)})
        return Path(path).stem.replace('-', ' ')

    parsed = parse_frontmatter(content)
    if title := str(parsed.frontmatter.get('title') or '').strip().strip('"\''):
        return title
    if match := FIRST_H1_PATTERN.search(parsed.body):
        return match.group(1).strip()
    return title_from_filename(path)
