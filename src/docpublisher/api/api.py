import logging
import mimetypes
from pathlib import Path
from typing import Any, cast

import httpx

from docpublisher.api.client import AsyncConfluenceClient
from docpublisher.config import ApplicationConfiguration
from docpublisher.constants import (
    API_PATH_PREFIX,
    LOGGER_NAME,
    PAGE_EXPAND_FIELDS,
    PAGE_SEARCH_EXPAND_FIELDS,
    RECORDS_PER_PAGE_LABELS,
)
from docpublisher.exceptions import FileUploadException, ServiceInvalidResponseException


class ConfluenceAPI:
    """Implements methods to connect to the REST API provided by Confluence Cloud."""

    def __init__(
        self,
        base_url: str,
        api_username: str,
        api_token: str,
        configuration: ApplicationConfiguration,
    ):
        self._client = AsyncConfluenceClient(
            base_url=f'{base_url.rstrip("/")}{API_PATH_PREFIX}',
            api_username=api_username,
            api_token=api_token.strip(),
            configuration=configuration,
        )
        self._base_url = base_url
        self.logger = logging.getLogger(LOGGER_NAME)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def client(self) -> AsyncConfluenceClient:
        return self._client

    async def get_content_by_title(
        self, space_key: str, title: str, expand: str = PAGE_EXPAND_FIELDS
    ) -> dict:
        """Retrieves the pages of a space that have exactly the given title.

        Args:
            space_key: the key of the space.
            title: the title of the page.
            expand: the comma-separated list of properties to expand.

        Returns:
            A dictionary with the matching pages in `results`.
        """
        return cast(
            dict,
            await self._client.make_request(
                method=httpx.AsyncClient.get,
                url='content',
                params={'spaceKey': space_key, 'title': title, 'expand': expand},
            ),
        )

    async def search_content(self, cql: str, expand: str = PAGE_SEARCH_EXPAND_FIELDS) -> dict:
        """Searches content using a CQL query.

        Args:
            cql: the CQL query.
            expand: the comma-separated list of properties to expand.

        Returns:
            A dictionary with the matching content in `results`.
        """
        return cast(
            dict,
            await self._client.make_request(
                method=httpx.AsyncClient.get,
                url='content/search',
                params={'cql': cql, 'expand': expand},
            ),
        )

    async def list_space_content(
        self,
        space_key: str,
        offset: int = 0,
        limit: int | None = None,
        expand: str = 'version,ancestors',
    ) -> dict:
        """Retrieves a page of the content of a space.

        Args:
            space_key: the key of the space.
            offset: the index of the first item to return.
            limit: the maximum number of items to return.
            expand: the comma-separated list of properties to expand.

        Returns:
            A dictionary with the content in `results`.
        """
        params: dict[str, Any] = {'spaceKey': space_key, 'start': offset, 'expand': expand}
        if limit is not None:
            params['limit'] = limit
        return cast(
            dict,
            await self._client.make_request(method=httpx.AsyncClient.get, url='content', params=params),
        )

    @staticmethod
    def _page_body(body: Any, url: str) -> dict:
        if not isinstance(body, dict):
            raise ServiceInvalidResponseException(
                'Confluence returned a page that is not a JSON object.', extra={'url': url, 'response': body}
            )
        return body

    async def get_page(self, page_id: str, expand: str | None = None) -> dict:
        params = {'expand': expand} if expand else None
        url = f'content/{page_id}'
        return self._page_body(
            await self._client.make_request(method=httpx.AsyncClient.get, url=url, params=params), url
        )

    async def create_page(self, payload: dict) -> dict:
        """Creates a page.

        Args:
            payload: the page, see `build_page_payload()`.

        Returns:
            A dictionary with the details of the new page.

        Raises:
            ServiceInvalidResponseException: if the response is not a JSON object.
        """
        return self._page_body(
            await self._client.make_request(method=httpx.AsyncClient.post, url='content', json=payload), 'content'
        )

    async def update_page(self, page_id: str, payload: dict) -> dict:
        """Updates a page.

        Args:
            page_id: the id of the page.
            payload: the page with its new version number, see `build_page_payload()`.

        Returns:
            A dictionary with the details of the updated page.
        """
        url = f'content/{page_id}'
        return self._page_body(
            await self._client.make_request(method=httpx.AsyncClient.put, url=url, json=payload), url
        )

    async def get_labels(self, page_id: str, limit: int = RECORDS_PER_PAGE_LABELS) -> dict:
        return cast(
            dict,
            await self._client.make_request(
                method=httpx.AsyncClient.get, url=f'content/{page_id}/label', params={'limit': limit}
            ),
        )

    async def add_labels(self, page_id: str, names: list[str]) -> dict:
        """Adds global labels to a page.

        Args:
            page_id: the id of the page.
            names: the names of the labels.

        Returns:
            A dictionary with the labels of the page.
        """
        return cast(
            dict,
            await self._client.make_request(
                method=httpx.AsyncClient.post,
                url=f'content/{page_id}/label',
                json=[{'prefix': 'global', 'name': name} for name in names],
            ),
        )

    async def restore_page(self, page_id: str) -> Any:
        return await self._client.make_request(method=httpx.AsyncClient.post, url=f'content/{page_id}/restore')

    async def delete_page(self, page_id: str, permanent: bool = False) -> None:
        """Deletes a page.

        Args:
            page_id: the id of the page.
            permanent: if True the page is purged from the trash instead of being moved to it.

        Returns:
            Nothing.
        """
        params = {'permanent': 'true'} if permanent else None
        await self._client.make_request(
            method=httpx.AsyncClient.delete, url=f'content/{page_id}', params=params
        )

    async def get_attachments(self, page_id: str, filename: str | None = None) -> dict:
        params = {'filename': filename} if filename else None
        return cast(
            dict,
            await self._client.make_request(
                method=httpx.AsyncClient.get, url=f'content/{page_id}/child/attachment', params=params
            ),
        )

    async def upload_attachment(
        self,
        page_id: str,
        file_path: str | Path,
        attachment_id: str | None = None,
        comment: str | None = None,
    ) -> dict:
        """Uploads a file as an attachment of a page.

        Attachments are posted as multipart/form-data (RFC 1867). When `attachment_id` is given the file is uploaded
        as a new version of that attachment.

        Args:
            page_id: the id of the page.
            file_path: the path of the file to upload.
            attachment_id: the id of an existing attachment with the same file name.
            comment: the comment of the attachment version.

        Returns:
            A dictionary with the details of the attachment.

        Raises:
            FileUploadException: if the file can not be read.
        """

        path = Path(file_path)
        try:
            file_content = path.read_bytes()
        except OSError as e:
            self.logger.warning('Unable to read the file to upload', extra={'file_path': str(path)})
            raise FileUploadException(
                f'The file {path} can not be read. Unable to upload it as attachment.'
            ) from e

        mime_type, _ = mimetypes.guess_type(path.name)
        url = f'content/{page_id}/child/attachment'
        if attachment_id:
            url = f'{url}/{attachment_id}/data'

        data: dict[str, str] = {'minorEdit': 'true'}
        if comment:
            data['comment'] = comment

        return cast(
            dict,
            await self._client.make_request(
                method=httpx.AsyncClient.post,
                url=url,
                headers={'X-Atlassian-Token': 'no-check'},
                files={'file': (path.name, file_content, mime_type or 'application/octet-stream')},
                data=data,
            ),
        )
