import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from docpublisher.constants import DEFAULT_TOC_THRESHOLD, PageStatus


def custom_as_dict_factory(data) -> dict:
    def convert_value(obj):
        if isinstance(obj, Enum):
            return obj.value
        return obj

    return {k: convert_value(v) for k, v in data}


@dataclass
class BaseModel:
    def as_dict(self) -> dict:
        """Dumps dataclass into dictionary.

        Enum members are dumped as their values.
        """

        return dataclasses.asdict(self, dict_factory=custom_as_dict_factory)


@dataclass
class ConversionOptions(BaseModel):
    """Options that control how Markdown is converted into an ADF document."""

    add_table_of_contents: bool = True
    """If True (default) a table of contents macro is added to documents with enough headings."""
    toc_threshold: int = DEFAULT_TOC_THRESHOLD
    """Minimum number of headings required before the table of contents is added."""

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> 'ConversionOptions':
        """Builds the options from a dictionary using either snake_case or camelCase keys."""
        add_toc = data.get('add_table_of_contents', data.get('addTableOfContents', True))
        threshold = data.get('toc_threshold', data.get('tocThreshold', DEFAULT_TOC_THRESHOLD))
        return cls(add_table_of_contents=bool(add_toc), toc_threshold=int(threshold))


@dataclass
class PublishPath(BaseModel):
    """A path, or glob pattern, of documents to publish."""

    path: str
    type: str = 'markdown'
    description: str | None = None
    exclude: list[str] = field(default_factory=list)


@dataclass
class ConfluenceLabel(BaseModel):
    name: str
    id: str | None = None
    prefix: str | None = None


@dataclass
class ConfluencePage(BaseModel):
    id: str
    title: str
    status: PageStatus = PageStatus.CURRENT
    version: int = 1
    space_key: str | None = None
    ancestor_ids: list[str] = field(default_factory=list)
    labels: list[ConfluenceLabel] = field(default_factory=list)
    updated: datetime | None = None
    body: dict[str, str] = field(default_factory=dict)
    """The values of the body representations returned by the API, keyed by representation."""

    @property
    def parent_id(self) -> str | None:
        return self.ancestor_ids[-1] if self.ancestor_ids else None


@dataclass
class PageLookupResult(BaseModel):
    """The outcome of searching a page by its title."""

    pages: list[ConfluencePage] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.pages)

    def select(self, parent_id: str | None = None) -> ConfluencePage | None:
        """Selects the page that best matches the requested parent.

        Args:
            parent_id: the id of the expected parent page.

        Returns:
            The single result; the result whose direct ancestor is `parent_id` when there are several; otherwise
            the first result or `None` when nothing was found.
        """

        if not self.pages:
            return None
        if len(self.pages) > 1 and parent_id:
            for page in self.pages:
                if page.parent_id == parent_id:
                    return page
        return self.pages[0]

    def page_id(self, parent_id: str | None = None) -> str | None:
        page = self.select(parent_id)
        return page.id if page and page.id else None


@dataclass
class ConfluenceAttachment(BaseModel):
    id: str
    title: str
    file_id: str | None = None
    media_type: str | None = None
    version: int | None = None

    @property
    def media_id(self) -> str:
        """The identifier to reference the attachment from a media node."""
        if self.file_id:
            return self.file_id
        return self.id.removeprefix('att')


@dataclass
class DiagramPlaceholder(BaseModel):
    """An image referenced from a document that has to be uploaded and embedded after publishing."""

    view_id: str | None = None
    image_path: Path | None = None
    original_path: str | None = None
    attachment: ConfluenceAttachment | None = None

    @property
    def key(self) -> str | None:
        return self.view_id or self.original_path


@dataclass
class PageStatusResult(BaseModel):
    """Whether an existing page can be reused after checking its status."""

    usable: bool
    title: str
    page_id: str | None = None


@dataclass
class PermissionErrorResult(BaseModel):
    can_continue: bool
    page_id: str | None = None


@dataclass
class PublishResult(BaseModel):
    title: str
    space_key: str | None = None
    page_id: str | None = None
    created: bool = False
    skipped: bool = False
    reason: str | None = None


@dataclass
class PublishStats(BaseModel):
    success: int = 0
    failed: int = 0
    skipped: int = 0
