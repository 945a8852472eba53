import logging
import ssl
from typing import Any, Callable

import httpx

from docpublisher.api.utils import extract_error
from docpublisher.config import ApplicationConfiguration
from docpublisher.constants import LOGGER_NAME
from docpublisher.exceptions import (
    APIException,
    AuthorizationException,
    PermissionException,
    ResourceNotFoundException,
    ServiceInvalidRequestException,
    ServiceUnavailableException,
)

DEFAULT_TIMEOUT_SECONDS = 30.0


class AsyncConfluenceClient:
    """An asynchronous HTTP client for the Confluence REST API using basic authentication."""

    def __init__(
        self,
        base_url: str,
        api_username: str,
        api_token: str,
        configuration: ApplicationConfiguration,
    ):
        self.base_url = base_url
        self.authentication = httpx.BasicAuth(api_username, api_token)
        self.configuration = configuration
        self.logger = logging.getLogger(LOGGER_NAME)

    def _verify(self) -> ssl.SSLContext | bool:
        ssl_config = self.configuration.ssl
        if ssl_config is None:
            return True
        if not ssl_config.verify_ssl:
            return False
        context = ssl.create_default_context(cafile=ssl_config.ca_bundle)
        if ssl_config.certificate_file:
            context.load_cert_chain(
                certfile=ssl_config.certificate_file,
                keyfile=ssl_config.key_file,
                password=ssl_config.password.get_secret_value() if ssl_config.password else None,
            )
        return context

    def _build_client(self, headers: dict[str, str]) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=self.authentication,
            headers=headers,
            verify=self._verify(),
            timeout=DEFAULT_TIMEOUT_SECONDS,
        )

    async def make_request(self, method: Callable, url: str, **kwargs) -> Any:
        """Sends a request to the API and decodes the response.

        Args:
            method: the unbound `httpx.AsyncClient` method to call, e.g. `httpx.AsyncClient.get`.
            url: the endpoint path, relative to the API base URL.
            **kwargs: keyword arguments for the `httpx` method; `headers` are merged with the default ones.

        Returns:
            The decoded JSON body, the text body when it is not JSON, or `None` when the response has no content.

        Raises:
            ServiceUnavailableException: if the server can not be reached or answers with a 5xx status.
            ServiceInvalidRequestException: if the server rejects the request as invalid.
            AuthorizationException: if the credentials are rejected.
            PermissionException: if the user is not allowed to perform the operation.
            ResourceNotFoundException: if the resource does not exist.
        """

        headers: dict[str, str] = {'Accept': 'application/json'}
        headers.update(kwargs.pop('headers', None) or {})

        async with self._build_client(headers) as client:
            try:
                response: httpx.Response = await method(client, url, **kwargs)
            except httpx.HTTPError as e:
                self.logger.error('Unable to connect to the Confluence API', extra={'url': url, 'error': str(e)})
                raise ServiceUnavailableException(f'HTTP request failed: {e}', extra={'url': url}) from e

        return self._handle_response(response)

    @staticmethod
    def _decode_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _handle_response(self, response: httpx.Response) -> Any:
        body = self._decode_body(response)
        if response.is_success:
            return body

        extra: dict[str, Any] = {'status_code': response.status_code, 'response': body}
        message = f'HTTP {response.status_code}: {extract_error(body)}'
        self.logger.debug(
            'Confluence API request failed',
            extra={'url': str(response.request.url), 'status_code': response.status_code},
        )

        status = response.status_code
        exception_class: type[APIException]
        if status == httpx.codes.UNAUTHORIZED:
            exception_class = AuthorizationException
        elif status == httpx.codes.FORBIDDEN:
            exception_class = PermissionException
        elif status == httpx.codes.NOT_FOUND:
            exception_class = ResourceNotFoundException
        elif status >= httpx.codes.INTERNAL_SERVER_ERROR:
            exception_class = ServiceUnavailableException
        elif status >= httpx.codes.BAD_REQUEST:
            exception_class = ServiceInvalidRequestException
        else:
            exception_class = APIException
        raise exception_class(message, extra=extra)
