import json
from typing import Any

from docpublisher.constants import BodyRepresentation, PageStatus


def escape_cql_value(value: str) -> str:
    return value.replace('\\', '\\\\').replace('"', '\\"')


def build_title_cql(space_key: str, title: str, include_statuses: bool = True) -> str:
    """Builds the CQL query that looks up a page by its title in a space.

    Args:
        space_key: the key of the space.
        title: the exact title of the page.
        include_statuses: if True (default) only current and archived pages are matched.

    Returns:
        The CQL query.
    """

    cql = f'space={space_key} AND title="{escape_cql_value(title)}"'
    if include_statuses:
        cql = f'{cql} AND (status={PageStatus.CURRENT.value} OR status={PageStatus.ARCHIVED.value})'
    return cql


def get_json_result_count(body: Any) -> int:
    """The number of items in the `results` of a search response; 0 for anything that is not a search response."""
    if not isinstance(body, dict):
        return 0
    results = body.get('results')
    if not isinstance(results, list):
        return 0
    return len(results)


def extract_error(body: Any) -> str:
    if body is None:
        return 'no response body'
    if isinstance(body, dict):
        if message := body.get('message') or body.get('error'):
            return str(message)
        return json.dumps(body)
    return str(body)


def build_page_payload(
    title: str,
    content: dict | str,
    parent_id: str | None = None,
    version: int | None = None,
    space_key: str | None = None,
    use_atlas_format: bool = True,
) -> dict:
    """Builds the body of a request that creates or updates a page.

    Pages are always published with the full-width appearance.

    Args:
        title: the title of the page.
        content: the ADF document (structure or JSON encoding) or the storage format markup.
        parent_id: the id of the parent page, used when creating a page.
        version: the new version number; when given the payload updates an existing page.
        space_key: the key of the space, used when creating a page.
        use_atlas_format: if True (default) the body is sent as ADF; otherwise as storage format.

    Returns:
        The payload.
    """

    payload: dict[str, Any] = {
        'type': 'page',
        'title': title,
        'metadata': {
            'properties': {
                'content-appearance-draft': {'value': 'full-width'},
                'content-appearance-published': {'value': 'full-width'},
            }
        },
    }

    if version is not None:
        payload['version'] = {'number': version}
    else:
        if space_key:
            payload['space'] = {'key': space_key}
        if parent_id:
            payload['ancestors'] = [{'id': parent_id}]

    representation = (
        BodyRepresentation.ATLAS_DOC_FORMAT.value if use_atlas_format else BodyRepresentation.STORAGE.value
    )
    value = content if isinstance(content, str) else json.dumps(content)
    payload['body'] = {representation: {'value': value, 'representation': representation}}
    return payload
