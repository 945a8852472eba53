import logging

from dateutil.parser import isoparse

from docpublisher.constants import LOGGER_NAME, PageStatus
from docpublisher.models import ConfluenceAttachment, ConfluenceLabel, ConfluencePage

logger = logging.getLogger(LOGGER_NAME)


class PageFactory:
    @staticmethod
    def _status(value: str | None) -> PageStatus:
        try:
            return PageStatus(value or PageStatus.CURRENT.value)
        except ValueError:
            logger.debug('Unknown page status', extra={'status': value})
            return PageStatus.CURRENT

    @staticmethod
    def new_label(data: dict) -> ConfluenceLabel:
        return ConfluenceLabel(
            name=data.get('name', ''),
            id=str(data['id']) if data.get('id') is not None else None,
            prefix=data.get('prefix'),
        )

    @staticmethod
    def new_page(data: dict) -> ConfluencePage:
        """Creates an instance of `ConfluencePage` for a page as returned by the API.

        Args:
            data: the page as returned by the API.

        Returns:
            An instance of `ConfluencePage`. Labels are only set when the response expands `metadata.labels`.
        """

        version: dict = data.get('version') or {}
        labels: dict = (data.get('metadata') or {}).get('labels') or {}
        return ConfluencePage(
            id=str(data.get('id', '')),
            title=data.get('title', ''),
            status=PageFactory._status(data.get('status')),
            version=int(version.get('number') or 1),
            space_key=(data.get('space') or {}).get('key'),
            ancestor_ids=[str(ancestor.get('id')) for ancestor in data.get('ancestors') or []],
            labels=[PageFactory.new_label(item) for item in labels.get('results') or []],
            updated=isoparse(version['when']) if version.get('when') else None,
            body={
                representation: value.get('value') or ''
                for representation, value in (data.get('body') or {}).items()
                if isinstance(value, dict)
            },
        )


class AttachmentFactory:
    @staticmethod
    def new_attachment(data: dict) -> ConfluenceAttachment:
        extensions: dict = data.get('extensions') or {}
        version: dict = data.get('version') or {}
        return ConfluenceAttachment(
            id=str(data.get('id', '')),
            title=data.get('title', ''),
            file_id=extensions.get('fileId') or None,
            media_type=extensions.get('mediaType'),
            version=version.get('number'),
        )
