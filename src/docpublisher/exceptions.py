from typing import Any


class APIException(Exception):
    """General API Exception, whenever a specific reason can't be determined."""

    extra: dict[str, Any] = {}

    def __init__(self, *args, **kwargs):
        self.extra = kwargs.pop('extra', self.extra)
        super().__init__(*args)


class ServiceUnavailableException(APIException):
    pass


class ServiceInvalidRequestException(APIException):
    pass


class ServiceInvalidResponseException(APIException):
    pass


class ValidationError(APIException):
    pass


class ResourceNotFoundException(APIException):
    pass


class AuthorizationException(APIException):
    pass


class PermissionException(APIException):
    pass


class FileUploadException(APIException):
    pass


class PublishException(APIException):
    """Raised when a single document can not be published."""


class ContentReadError(Exception):
    """Raised when a Markdown source can not be read from disk."""
