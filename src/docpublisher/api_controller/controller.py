import dataclasses
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any

from docpublisher.api.api import ConfluenceAPI
from docpublisher.api.utils import build_page_payload, build_title_cql, get_json_result_count
from docpublisher.api_controller.factories import AttachmentFactory, PageFactory
from docpublisher.config import CONFIGURATION, ApplicationConfiguration
from docpublisher.constants import (
    ATTACHMENT_COMMENT,
    ATTACHMENT_COMMENT_UPDATED,
    LOGGER_NAME,
    MAXIMUM_OFFSET_SPACE_CONTENT,
    NEW_PAGE_TITLE_SUFFIX,
    RECORDS_PER_PAGE_SPACE_CONTENT,
    PageStatus,
)
from docpublisher.exceptions import PermissionException
from docpublisher.models import (
    BaseModel,
    ConfluenceAttachment,
    ConfluencePage,
    PageLookupResult,
    PageStatusResult,
    PermissionErrorResult,
)


@dataclass
class APIControllerResponse(BaseModel):
    success: bool = True
    result: Any | None = None
    error: str | None = None

    def as_dict(self):
        return dataclasses.asdict(self)


class APIController:
    """A controller for the ConfluenceAPI that combines endpoints into the operations needed to publish pages."""

    def __init__(self, configuration: ApplicationConfiguration | None = None):
        self.config = CONFIGURATION.get() if not configuration else configuration
        self.api: ConfluenceAPI

        self.api = ConfluenceAPI(
            base_url=self.config.confluence.api_base_url,
            api_username=self.config.confluence.api_username,
            api_token=self.config.confluence.api_token.get_secret_value(),
            configuration=self.config,
        )
        self.logger = logging.getLogger(LOGGER_NAME)

    @staticmethod
    def _extract_exception_details(exception: Exception) -> dict:
        extra: dict = getattr(exception, 'extra', {}) or {}
        response = extra.get('response')
        message = None
        if isinstance(response, dict):
            message = response.get('message') or response.get('error')
        return {'message': message or str(exception), 'extra': extra}

    @staticmethod
    def _pages_from_response(response: dict | None) -> list[ConfluencePage]:
        if not get_json_result_count(response):
            return []
        return [PageFactory.new_page(item) for item in response.get('results', [])]  # type: ignore[union-attr]

    async def search_pages_by_title(self, title: str, space_key: str) -> APIControllerResponse:
        """Searches a page by its exact title using CQL.

        Current and archived pages are searched first; if nothing is found the search is repeated without
        filtering by status.

        Args:
            title: the title of the page.
            space_key: the key of the space.

        Returns:
            An instance of `APIControllerResponse` with a `PageLookupResult`. A failed search yields an empty result.
        """

        for include_statuses in (True, False):
            cql = build_title_cql(space_key, title, include_statuses=include_statuses)
            try:
                response: dict = await self.api.search_content(cql)
            except Exception as e:
                exception_details: dict = self._extract_exception_details(e)
                self.logger.warning(
                    'CQL search failed',
                    extra={'cql': cql, **exception_details.get('extra', {})},
                )
                continue
            if pages := self._pages_from_response(response):
                return APIControllerResponse(result=PageLookupResult(pages=pages))
        return APIControllerResponse(result=PageLookupResult())

    async def get_page_by_title(self, title: str, space_key: str) -> APIControllerResponse:
        """Retrieves the pages with the given title using a direct lookup and then CQL.

        Args:
            title: the title of the page.
            space_key: the key of the space.

        Returns:
            An instance of `APIControllerResponse` with a `PageLookupResult`.
        """

        try:
            response: dict = await self.api.get_content_by_title(space_key, title)
        except Exception as e:
            exception_details: dict = self._extract_exception_details(e)
            self.logger.warning(
                'Direct page lookup failed',
                extra={'title': title, 'space_key': space_key, **exception_details.get('extra', {})},
            )
        else:
            if pages := self._pages_from_response(response):
                return APIControllerResponse(result=PageLookupResult(pages=pages))
        return await self.search_pages_by_title(title, space_key)

    async def _find_page_in_space_listing(self, title: str, space_key: str) -> ConfluencePage | None:
        offset = 0
        while True:
            try:
                response: dict = await self.api.list_space_content(
                    space_key, offset=offset, limit=RECORDS_PER_PAGE_SPACE_CONTENT
                )
            except Exception as e:
                exception_details: dict = self._extract_exception_details(e)
                self.logger.warning(
                    'Unable to list the pages of the space',
                    extra={'space_key': space_key, 'offset': offset, **exception_details.get('extra', {})},
                )
                return None

            results: list[dict] = (response.get('results') or []) if isinstance(response, dict) else []
            for item in results:
                if item.get('title') == title:
                    return PageFactory.new_page(item)
            if len(results) < RECORDS_PER_PAGE_SPACE_CONTENT or offset >= MAXIMUM_OFFSET_SPACE_CONTENT:
                return None
            offset += RECORDS_PER_PAGE_SPACE_CONTENT

    async def find_page_by_title(self, title: str, space_key: str) -> APIControllerResponse:
        """Finds a page by its title using every lookup strategy available.

        The strategies are tried in order until one finds the page: a direct lookup, a CQL search including
        archived pages, a CQL search without status filter and finally listing every page of the space and comparing
        titles. The listing stops once the offset reaches 10000.

        Args:
            title: the title of the page.
            space_key: the key of the space.

        Returns:
            An instance of `APIControllerResponse` with a `PageLookupResult`; its `count` is 0 when no page exists.
        """

        response = await self.get_page_by_title(title, space_key)
        lookup: PageLookupResult = response.result
        if lookup.count:
            self.logger.debug('Page found by title', extra={'title': title, 'count': lookup.count})
            return response

        self.logger.debug('Listing the pages of the space to find the page', extra={'title': title})
        if page := await self._find_page_in_space_listing(title, space_key):
            return APIControllerResponse(result=PageLookupResult(pages=[page]))
        return APIControllerResponse(result=PageLookupResult())

    async def get_page(self, page_id: str, expand: str | None = 'version,ancestors') -> APIControllerResponse:
        try:
            response: dict = await self.api.get_page(page_id, expand=expand)
        except Exception as e:
            exception_details: dict = self._extract_exception_details(e)
            self.logger.error(
                'Unable to retrieve page',
                extra={'page_id': page_id, **exception_details.get('extra', {})},
            )
            return APIControllerResponse(success=False, error=exception_details.get('message'))
        return APIControllerResponse(result=PageFactory.new_page(response))

    async def get_page_labels(self, page_id: str) -> APIControllerResponse:
        try:
            response: dict = await self.api.get_labels(page_id)
        except Exception as e:
            exception_details: dict = self._extract_exception_details(e)
            self.logger.warning(
                'Unable to retrieve the labels of the page',
                extra={'page_id': page_id, **exception_details.get('extra', {})},
            )
            return APIControllerResponse(success=False, error=exception_details.get('message'))
        return APIControllerResponse(
            result=[PageFactory.new_label(item) for item in response.get('results') or []]
        )

    async def has_label(self, page_id: str, label_name: str) -> bool:
        """Whether a page carries a label. A page whose labels can not be retrieved has no label."""
        response = await self.get_page_labels(page_id)
        if not response.success:
            return False
        return any(label.name == label_name for label in response.result)

    async def is_page_safe_to_update(self, page_id: str) -> bool:
        """Whether an existing page may be overwritten.

        Only pages carrying the generated label are overwritten. Pages with a protected label, and pages with neither
        label, are considered manually maintained.

        Args:
            page_id: the id of the page.

        Returns:
            True if the page carries the generated label; False otherwise.
        """

        response = await self.get_page_labels(page_id)
        names = {label.name for label in response.result} if response.success else set()
        if self.config.generated_label in names:
            return True
        if protected := names.intersection(self.config.protected_labels):
            self.logger.info('Page is protected', extra={'page_id': page_id, 'labels': sorted(protected)})
        return False

    async def add_label_to_page(self, page_id: str, label_name: str) -> APIControllerResponse:
        """Adds a label to a page unless the page already carries it.

        Args:
            page_id: the id of the page.
            label_name: the name of the label.

        Returns:
            An instance of `APIControllerResponse`; `result` is False when the label was already present.
        """

        if await self.has_label(page_id, label_name):
            return APIControllerResponse(result=False)
        try:
            await self.api.add_labels(page_id, [label_name])
        except Exception as e:
            exception_details: dict = self._extract_exception_details(e)
            self.logger.warning(
                'Unable to add label to page',
                extra={'page_id': page_id, 'label': label_name, **exception_details.get('extra', {})},
            )
            return APIControllerResponse(success=False, error=exception_details.get('message'))
        self.logger.info('Added label to page', extra={'page_id': page_id, 'label': label_name})
        return APIControllerResponse(result=True)

    async def handle_page_status(self, page_id: str, status: PageStatus, title: str) -> PageStatusResult:
        """Makes an archived or trashed page reusable, or suggests a new title.

        Archived pages are restored. Trashed pages are purged so that a new page with the same title can be created.

        Args:
            page_id: the id of the page.
            status: the status of the page.
            title: the title of the page.

        Returns:
            An instance of `PageStatusResult`. When the page can neither be restored nor purged the suggested title
            carries the ` [NEW]` suffix.
        """

        if status not in (PageStatus.ARCHIVED, PageStatus.TRASHED):
            return PageStatusResult(usable=True, title=title, page_id=page_id)

        if status == PageStatus.ARCHIVED:
            try:
                await self.api.restore_page(page_id)
            except Exception as e:
                exception_details: dict = self._extract_exception_details(e)
                self.logger.warning(
                    'Unable to restore archived page',
                    extra={'page_id': page_id, 'title': title, **exception_details.get('extra', {})},
                )
            else:
                self.logger.info('Restored archived page', extra={'page_id': page_id, 'title': title})
                return PageStatusResult(usable=True, title=title, page_id=page_id)
        else:
            try:
                await self.api.delete_page(page_id, permanent=True)
            except Exception as e:
                exception_details = self._extract_exception_details(e)
                self.logger.warning(
                    'Unable to delete trashed page',
                    extra={'page_id': page_id, 'title': title, **exception_details.get('extra', {})},
                )
            else:
                self.logger.info('Deleted trashed page', extra={'page_id': page_id, 'title': title})
                return PageStatusResult(usable=False, title=title)

        return PageStatusResult(usable=False, title=f'{title}{NEW_PAGE_TITLE_SUFFIX}')

    async def handle_permission_error(self, page_id: str, title: str) -> PermissionErrorResult:
        """Deletes a page that can not be updated so that it can be created again.

        A permanent delete is tried first, then a regular one.

        Args:
            page_id: the id of the page.
            title: the title of the page.

        Returns:
            An instance of `PermissionErrorResult`; `can_continue` is True if the page was deleted.
        """

        for permanent in (True, False):
            try:
                await self.api.delete_page(page_id, permanent=permanent)
            except Exception as e:
                exception_details: dict = self._extract_exception_details(e)
                self.logger.warning(
                    'Unable to delete page',
                    extra={
                        'page_id': page_id,
                        'title': title,
                        'permanent': permanent,
                        **exception_details.get('extra', {}),
                    },
                )
                continue
            self.logger.info('Deleted page to allow recreation', extra={'page_id': page_id, 'title': title})
            return PermissionErrorResult(can_continue=True)

        self.logger.error(
            'Cannot update or delete existing page; the account lacks edit and delete permissions',
            extra={'page_id': page_id, 'title': title},
        )
        return PermissionErrorResult(can_continue=False, page_id=page_id)

    async def create_page(
        self,
        title: str,
        content: dict | str,
        space_key: str,
        parent_id: str | None = None,
        use_atlas_format: bool = True,
    ) -> APIControllerResponse:
        """Creates a page.

        Args:
            title: the title of the page.
            content: the ADF document or the storage format markup.
            space_key: the key of the space.
            parent_id: the id of the parent page.
            use_atlas_format: if True (default) the content is ADF; otherwise storage format.

        Returns:
            An instance of `APIControllerResponse` with the new `ConfluencePage`.
        """

        payload = build_page_payload(
            title, content, parent_id=parent_id, space_key=space_key, use_atlas_format=use_atlas_format
        )
        try:
            response: dict = await self.api.create_page(payload)
        except Exception as e:
            exception_details: dict = self._extract_exception_details(e)
            self.logger.error(
                'Unable to create page',
                extra={'title': title, 'space_key': space_key, **exception_details.get('extra', {})},
            )
            return APIControllerResponse(success=False, error=exception_details.get('message'))
        return APIControllerResponse(result=PageFactory.new_page(response))

    async def update_page(
        self,
        page_id: str,
        title: str,
        content: dict | str,
        version: int,
        use_atlas_format: bool = True,
    ) -> APIControllerResponse:
        """Updates a page.

        Args:
            page_id: the id of the page.
            title: the title of the page.
            content: the ADF document or the storage format markup.
            version: the new version number.
            use_atlas_format: if True (default) the content is ADF; otherwise storage format.

        Returns:
            An instance of `APIControllerResponse` with the updated `ConfluencePage`. If the update is forbidden the
            page is deleted when possible and the failed response carries a `PermissionErrorResult`.
        """

        payload = build_page_payload(title, content, version=version, use_atlas_format=use_atlas_format)
        try:
            response: dict = await self.api.update_page(page_id, payload)
        except PermissionException as e:
            exception_details: dict = self._extract_exception_details(e)
            self.logger.error(
                'Not allowed to update page',
                extra={'page_id': page_id, 'title': title, **exception_details.get('extra', {})},
            )
            permission_result = await self.handle_permission_error(page_id, title)
            return APIControllerResponse(
                success=False, result=permission_result, error=exception_details.get('message')
            )
        except Exception as e:
            exception_details = self._extract_exception_details(e)
            self.logger.error(
                'Unable to update page',
                extra={'page_id': page_id, 'title': title, **exception_details.get('extra', {})},
            )
            return APIControllerResponse(success=False, error=exception_details.get('message'))
        return APIControllerResponse(result=PageFactory.new_page(response))

    async def _find_attachment(self, page_id: str, filename: str) -> ConfluenceAttachment | None:
        try:
            response: dict = await self.api.get_attachments(page_id, filename=filename)
        except Exception as e:
            exception_details: dict = self._extract_exception_details(e)
            self.logger.debug(
                'Unable to retrieve attachments',
                extra={'page_id': page_id, 'filename': filename, **exception_details.get('extra', {})},
            )
            return None
        if results := (response or {}).get('results'):
            return AttachmentFactory.new_attachment(results[0])
        return None

    async def _resolve_uploaded_attachment(
        self, page_id: str, response: dict | None, existing: ConfluenceAttachment | None, filename: str
    ) -> ConfluenceAttachment | None:
        uploaded: ConfluenceAttachment | None = None
        if isinstance(response, dict):
            if results := response.get('results'):
                uploaded = AttachmentFactory.new_attachment(results[0])
            elif response.get('id'):
                uploaded = AttachmentFactory.new_attachment(response)

        attachment_id = (existing.id if existing else None) or (uploaded.id if uploaded else None)
        file_id = (existing.file_id if existing else None) or (uploaded.file_id if uploaded else None)
        title = (existing.title if existing else None) or (uploaded.title if uploaded else None) or filename

        if not attachment_id or not file_id:
            try:
                listing: dict = await self.api.get_attachments(page_id)
            except Exception as e:
                exception_details: dict = self._extract_exception_details(e)
                self.logger.debug(
                    'Unable to list attachments', extra={'page_id': page_id, **exception_details.get('extra', {})}
                )
            else:
                for item in (listing or {}).get('results') or []:
                    if (item.get('title') or '').lower() == title.lower():
                        matching = AttachmentFactory.new_attachment(item)
                        attachment_id = attachment_id or matching.id
                        file_id = file_id or matching.file_id
                        break

        if not attachment_id:
            return None
        if not file_id:
            self.logger.warning(
                'No file id found for attachment; using the attachment id',
                extra={'page_id': page_id, 'attachment_id': attachment_id},
            )
        return ConfluenceAttachment(id=attachment_id, title=title, file_id=file_id)

    async def upload_image_attachment(self, page_id: str, image_path: str | Path) -> APIControllerResponse:
        """Uploads an image to a page, replacing the attachment with the same file name if there is one.

        Args:
            page_id: the id of the page.
            image_path: the path of the image.

        Returns:
            An instance of `APIControllerResponse` with the `ConfluenceAttachment`, including the file id used to
            reference it from media nodes when Confluence reports it.
        """

        path = Path(image_path)
        if not path.is_file():
            self.logger.warning('Image not found', extra={'image_path': str(path)})
            return APIControllerResponse(success=False, error='The image does not exist.')

        existing = await self._find_attachment(page_id, path.name)
        if existing:
            self.logger.info(
                'Updating existing attachment', extra={'page_id': page_id, 'attachment_id': existing.id}
            )
        try:
            response: dict = await self.api.upload_attachment(
                page_id,
                path,
                attachment_id=existing.id if existing else None,
                comment=ATTACHMENT_COMMENT_UPDATED if existing else ATTACHMENT_COMMENT,
            )
        except Exception as e:
            exception_details: dict = self._extract_exception_details(e)
            self.logger.error(
                'Unable to upload image',
                extra={'page_id': page_id, 'image_path': str(path), **exception_details.get('extra', {})},
            )
            return APIControllerResponse(success=False, error=exception_details.get('message'))

        attachment = await self._resolve_uploaded_attachment(page_id, response, existing, path.name)
        if attachment is None:
            return APIControllerResponse(success=False, error='The uploaded attachment could not be found.')
        self.logger.info(
            'Image uploaded',
            extra={'page_id': page_id, 'attachment_id': attachment.id, 'file_id': attachment.file_id},
        )
        return APIControllerResponse(result=attachment)
