from enum import Enum

LOGGER_NAME = 'docpublisher'
"""Application logger name identifier."""

LOG_FILE_FILE_NAME = 'docpublisher.log'
"""Default log file name."""

CONFIG_FILE_FILE_NAME = 'config.yaml'
"""Default configuration file name."""

API_PATH_PREFIX = '/wiki/rest/api/'
"""Confluence Cloud REST API path prefix."""

PAGE_EXPAND_FIELDS = 'version,body.storage,ancestors'
"""Fields expanded when looking up a page by title."""

PAGE_SEARCH_EXPAND_FIELDS = 'version,body.storage,ancestors,metadata.labels'
"""Fields expanded when searching pages with CQL."""

RECORDS_PER_PAGE_SPACE_CONTENT = 500
"""Number of pages requested per call when listing the content of a space."""

MAXIMUM_OFFSET_SPACE_CONTENT = 10000
"""Offset at which listing the content of a space stops, regardless of remaining results."""

RECORDS_PER_PAGE_LABELS = 100
"""Maximum number of labels retrieved when checking the labels of a page."""

DEFAULT_GENERATED_LABEL = 'generated'
"""Label that marks a page as owned by this tool and therefore safe to overwrite."""

DEFAULT_PROTECTED_LABELS = ['manual', 'protected']
"""Labels that mark a page as hand-maintained."""

NEW_PAGE_TITLE_SUFFIX = ' [NEW]'
"""Suffix added to a title when the existing page can not be reused."""

DEFAULT_TOC_THRESHOLD = 4
"""Minimum number of headings a document needs before a table of contents is added."""

TOC_MIN_LEVEL = '1'
"""Smallest heading level listed by the table of contents macro."""

TOC_MAX_LEVEL = '3'
"""Largest heading level listed by the table of contents macro."""

TOC_STYLE = 'default'
"""Bullet style of the table of contents macro."""

CONFLUENCE_MACRO_EXTENSION_TYPE = 'com.atlassian.confluence.macro.core'
"""Extension type of the built-in Confluence macros."""

DEFAULT_CODE_BLOCK_LANGUAGE = 'plain'
"""Language assigned to fenced code blocks that do not declare one."""

DEFAULT_STORAGE_CODE_LANGUAGE = 'text'
"""Language assigned to code macros in storage format when the fence does not declare one."""

IMAGE_MEDIA_WIDTH = 1600
"""Width used for embedded diagram images."""

IMAGE_MEDIA_DEFAULT_HEIGHT = 928
"""Height used for embedded diagram images when the real dimensions are unknown."""

IMAGE_PLACEHOLDER_ATTRIBUTE = '__placeholder_viewid'
"""Media attribute holding the view identifier of an image that has not been uploaded yet."""

WARNING_PANEL_PREFIX = 'This page was automatically generated from '
"""Text preceding the source link in the warning panel."""

WARNING_PANEL_LINK_TEXT = 'source on GitHub'
"""Text of the source link in the warning panel."""

WARNING_PANEL_SUFFIX = '. Do not edit directly as your edits may be overwritten.'
"""Text following the source link in the warning panel."""

FOLDER_NAMES_KEPT_VERBATIM = [
    'Technology View',
    'Current State Views',
    'Delivery Information Architecture',
]
"""Folder names whose spelling is used as-is for folder page titles."""

CONTENT_PATH_PREFIXES = ['docs/', 'astro/src/content/docs/']
"""Prefixes stripped from a file path before mapping it to a space."""

INFORMATION_ARCHITECTURE_PREFIX = 'delivery-information-architecture/'
"""Optional top-level documentation folder stripped before mapping a path to a space."""

DEFAULT_EXPORTS_DIRECTORY = 'generated/diagrams'
"""Directory where exported diagram images are looked up."""

ATTACHMENT_COMMENT = 'Diagram exported from LikeC4'
"""Comment attached to newly uploaded diagram images."""

ATTACHMENT_COMMENT_UPDATED = 'Diagram exported from LikeC4 (updated)'
"""Comment attached to a new version of an existing diagram image."""


class ContentFormat(Enum):
    """Output formats that Markdown sources can be filtered for."""

    CONFLUENCE = 'confluence'
    GITHUB = 'github'
    PPT = 'ppt'


class PageStatus(Enum):
    """Statuses reported by Confluence for a piece of content."""

    CURRENT = 'current'
    ARCHIVED = 'archived'
    TRASHED = 'trashed'
    DRAFT = 'draft'


class BodyRepresentation(Enum):
    """Representations accepted for the body of a page."""

    ATLAS_DOC_FORMAT = 'atlas_doc_format'
    STORAGE = 'storage'
