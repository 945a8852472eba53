"""Publishing of Markdown documents as Confluence pages."""

from fnmatch import fnmatch
import glob
import logging
import os
from pathlib import Path

from docpublisher.api_controller.controller import APIController
from docpublisher.config import CONFIGURATION, ApplicationConfiguration
from docpublisher.constants import LOGGER_NAME, ContentFormat, PageStatus
from docpublisher.converter.document import markdown_to_adf
from docpublisher.converter.storage import (
    add_warning_panel_to_storage,
    markdown_to_storage,
    replace_storage_image_placeholders,
)
from docpublisher.exceptions import ContentReadError, PublishException
from docpublisher.hierarchy import HierarchyManager
from docpublisher.models import (
    ConfluencePage,
    DiagramPlaceholder,
    PermissionErrorResult,
    PublishPath,
    PublishResult,
    PublishStats,
)
from docpublisher.utils.adf_helpers import add_warning_panel, find_local_images, replace_image_placeholders
from docpublisher.utils.content import extract_title, filter_content_for_format, read_file_content
from docpublisher.utils.diagrams import convert_diagram_components, has_diagram_components
from docpublisher.utils.github import get_github_source_url

DIAGRAM_PATH_TYPE = 'diagram'


def repository_path(file_path: str | Path) -> str:
    """The path of a file relative to the working directory, with forward slashes."""
    path = Path(file_path)
    if path.is_absolute():
        try:
            path = path.relative_to(Path.cwd())
        except ValueError:
            pass
    return path.as_posix()


class Publisher:
    """Publishes the documents listed in the configuration to Confluence."""

    def __init__(
        self,
        configuration: ApplicationConfiguration | None = None,
        controller: APIController | None = None,
        hierarchy: HierarchyManager | None = None,
    ):
        self.config = configuration or CONFIGURATION.get()
        self.controller = controller or APIController(configuration=self.config)
        self.hierarchy = hierarchy or HierarchyManager(self.controller, configuration=self.config)
        self.logger = logging.getLogger(LOGGER_NAME)

    def should_exclude_file(self, file_path: str | Path, exclude_patterns: list[str]) -> bool:
        """Whether a file matches one of the exclusion patterns.

        A pattern is matched against the file name and against the path relative to the content root. `*` matches
        any sequence of characters, including `/`.
        """

        if not exclude_patterns:
            return False
        path = Path(file_path)
        relative_path = Path(os.path.relpath(path, self.config.content_root or '.')).as_posix()
        return any(fnmatch(path.name, pattern) or fnmatch(relative_path, pattern) for pattern in exclude_patterns)

    def _convert(self, content: str, source_url: str | None) -> tuple[dict | str, bool]:
        try:
            adf = markdown_to_adf(content, self.config.conversion)
        except Exception as e:
            self.logger.warning('Falling back to storage format', extra={'error': str(e)})
            return add_warning_panel_to_storage(markdown_to_storage(content), source_url), False
        return add_warning_panel(adf, source_url), True

    async def _find_existing_page(self, title: str, space_key: str, parent_id: str | None) -> ConfluencePage | None:
        response = await self.controller.find_page_by_title(title, space_key)
        return response.result.select(parent_id)

    async def _upload_images(
        self,
        page_id: str,
        file_path: Path,
        body: dict | str,
        use_atlas_format: bool,
        diagrams: list[DiagramPlaceholder],
    ) -> list[DiagramPlaceholder]:
        candidates = list(diagrams)
        if use_atlas_format and isinstance(body, dict):
            for url in find_local_images(body):
                image_path = (file_path.parent / url).resolve()
                if image_path.is_file():
                    candidates.append(DiagramPlaceholder(image_path=image_path, original_path=url))
                else:
                    self.logger.warning('Referenced image not found', extra={'url': url, 'file': str(file_path)})

        uploaded: list[DiagramPlaceholder] = []
        for placeholder in candidates:
            if placeholder.image_path is None:
                continue
            response = await self.controller.upload_image_attachment(page_id, placeholder.image_path)
            if response.success:
                placeholder.attachment = response.result
                uploaded.append(placeholder)
        return uploaded

    async def publish_markdown_file(
        self,
        file_path: str | Path,
        space_filter: str | None = None,
        parent_page_id: str | None = None,
    ) -> PublishResult:
        """Publishes a Markdown document, creating or updating its page.

        The page title comes from the document. Diagram components are replaced by exported images, the document is
        converted to ADF (or to storage format if the conversion fails) and a warning panel linking to the source is
        added. An existing page is only overwritten when it carries the generated label. Once the page is published
        it is labelled as generated, the images are uploaded as attachments and the page is updated again to embed
        them.

        Args:
            file_path: the path of the document.
            space_filter: when given, documents targeting another space are skipped.
            parent_page_id: the page under which the first folder page is created; defaults to the configured one.

        Returns:
            An instance of `PublishResult`; `skipped=True` when the document was not published on purpose.

        Raises:
            PublishException: if the document can not be read or the page can not be created or updated.
        """

        path = Path(file_path)
        relative_path = repository_path(path)
        file_space = self.hierarchy.get_space_for_path(relative_path)

        if space_filter and file_space != space_filter:
            self.logger.info(
                'Skipping file targeting another space',
                extra={'file': relative_path, 'space_key': file_space, 'space_filter': space_filter},
            )
            return PublishResult(
                title=path.stem, space_key=file_space, skipped=True, reason=f"targets space '{file_space}'"
            )

        title = extract_title(path)
        try:
            content = read_file_content(path)
        except ContentReadError as e:
            raise PublishException(str(e)) from e
        content = filter_content_for_format(content, ContentFormat.CONFLUENCE)
        source_url = get_github_source_url(relative_path, self.config.github_repository)

        diagrams: list[DiagramPlaceholder] = []
        if has_diagram_components(content):
            content, diagrams = convert_diagram_components(content, self.config.exports_dir)
        body, use_atlas_format = self._convert(content, source_url)

        space_key = file_space or self.config.default_space
        if not space_key:
            raise PublishException(f'No space configured for {relative_path}')
        parent_id = await self.hierarchy.get_parent_for_path(
            relative_path, space_key, parent_page_id or self.config.parent_page_id
        )
        self.logger.info('Publishing page', extra={'title': title, 'space_key': space_key, 'parent_id': parent_id})

        existing_id: str | None = None
        existing_version: int | None = None
        if existing := await self._find_existing_page(title, space_key, parent_id):
            if not await self.controller.is_page_safe_to_update(existing.id):
                self.logger.info(
                    'Skipping page that is not generated', extra={'title': title, 'page_id': existing.id}
                )
                return PublishResult(
                    title=title, space_key=space_key, page_id=existing.id, skipped=True, reason='not generated'
                )
            existing_id = existing.id
            existing_version = existing.version
            if existing.status != PageStatus.CURRENT:
                status_result = await self.controller.handle_page_status(existing.id, existing.status, title)
                existing_id = status_result.page_id if status_result.usable else None
                title = status_result.title

        page_id: str | None = None
        updated = False
        if existing_id and existing_version is not None:
            response = await self.controller.update_page(
                existing_id, title, body, existing_version + 1, use_atlas_format=use_atlas_format
            )
            if response.success:
                page_id = existing_id
                updated = True
                self.logger.info('Page updated', extra={'title': title, 'page_id': page_id})
            elif isinstance(response.result, PermissionErrorResult) and response.result.can_continue:
                self.logger.info('Recreating page after permission error', extra={'title': title})
            else:
                raise PublishException(f'Unable to update page {title}: {response.error}')

        if page_id is None:
            response = await self.controller.create_page(
                title, body, space_key, parent_id=parent_id, use_atlas_format=use_atlas_format
            )
            if not response.success or not response.result.id:
                raise PublishException(f'Unable to create page {title}: {response.error}')
            page_id = response.result.id
            self.logger.info('Page created', extra={'title': title, 'page_id': page_id})

        await self.controller.add_label_to_page(page_id, self.config.generated_label)

        if uploaded := await self._upload_images(page_id, path, body, use_atlas_format, diagrams):
            if use_atlas_format:
                body = replace_image_placeholders(body, uploaded, page_id)
            else:
                body = replace_storage_image_placeholders(str(body), uploaded)
            next_version = existing_version + 2 if updated and existing_version is not None else 2
            response = await self.controller.update_page(
                page_id, title, body, next_version, use_atlas_format=use_atlas_format
            )
            if not response.success:
                self.logger.warning(
                    'Unable to embed the uploaded images', extra={'title': title, 'page_id': page_id}
                )

        return PublishResult(title=title, space_key=space_key, page_id=page_id, created=not updated)

    async def publish_diagram_file(self, file_path: str | Path) -> PublishResult:
        """Diagram sources are not published as pages; their exported images are embedded in the documents."""
        title = extract_title(file_path)
        self.logger.info('Skipping diagram file', extra={'title': title, 'file': str(file_path)})
        return PublishResult(title=title, skipped=True, reason='diagram')

    def _expand_publish_path(self, publish_path: PublishPath) -> list[Path]:
        full_path = Path(publish_path.path)
        if not full_path.is_absolute():
            full_path = Path(self.config.content_root) / publish_path.path
        if '*' in publish_path.path:
            return [Path(match) for match in sorted(glob.glob(str(full_path), recursive=True))]
        return [full_path]

    async def _publish_file(
        self,
        file_path: Path,
        publish_path: PublishPath,
        space_filter: str | None,
        parent_page_id: str | None,
        stats: PublishStats,
    ) -> None:
        try:
            if publish_path.type == DIAGRAM_PATH_TYPE:
                result = await self.publish_diagram_file(file_path)
            else:
                result = await self.publish_markdown_file(file_path, space_filter, parent_page_id)
        except Exception as e:
            self.logger.error('Failed to publish file', extra={'file': str(file_path), 'error': str(e)})
            stats.failed += 1
            return
        if result.skipped:
            stats.skipped += 1
        else:
            stats.success += 1

    async def publish(self, space_filter: str | None = None, parent_page_id: str | None = None) -> PublishStats:
        """Publishes every document of the configured publish paths.

        Glob patterns are expanded relative to the content root. Files matching the exclusion patterns of their
        publish path, or the global ones, are skipped.

        Args:
            space_filter: when given, only documents targeting this space are published.
            parent_page_id: the page under which the first folder pages are created.

        Returns:
            An instance of `PublishStats` with the number of published, failed and skipped documents.
        """

        stats = PublishStats()
        for publish_path in self.config.publish_paths:
            if not publish_path.path:
                continue
            exclude_patterns = [*publish_path.exclude, *self.config.exclude_patterns]
            is_pattern = '*' in publish_path.path
            for file_path in self._expand_publish_path(publish_path):
                if is_pattern:
                    if not file_path.is_file():
                        continue
                    if self.should_exclude_file(file_path, exclude_patterns):
                        stats.skipped += 1
                        continue
                elif not file_path.is_file():
                    self.logger.error('File not found', extra={'file': str(file_path)})
                    stats.failed += 1
                    continue
                await self._publish_file(file_path, publish_path, space_filter, parent_page_id, stats)

        self.logger.info('Publishing finished', extra=stats.as_dict())
        return stats
