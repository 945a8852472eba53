import json
from pathlib import Path

from httpx import Response
import respx

API_URL = 'https://example.atlassian.net/wiki/rest/api'


def load_fixture(filename: str):
    fixture_path = Path(__file__).parent / 'fixtures' / filename
    with fixture_path.open() as f:
        return json.load(f)


def page_data(
    page_id: str,
    title: str,
    version: int = 1,
    status: str = 'current',
    ancestors: list[str] | None = None,
    labels: list[str] | None = None,
) -> dict:
    data: dict = {
        'id': page_id,
        'type': 'page',
        'status': status,
        'title': title,
        'space': {'key': 'BTMS'},
        'version': {'number': version, 'when': '2025-03-14T10:15:00.000Z'},
        'ancestors': [{'id': ancestor, 'type': 'page'} for ancestor in ancestors or []],
    }
    if labels is not None:
        data['metadata'] = {'labels': {'results': [{'prefix': 'global', 'name': name} for name in labels]}}
    return data


def search_results(*pages: dict) -> dict:
    return {'results': list(pages), 'start': 0, 'limit': 25, 'size': len(pages)}


def labels_response(*names: str) -> dict:
    return {
        'results': [{'prefix': 'global', 'name': name, 'id': str(index)} for index, name in enumerate(names)],
        'size': len(names),
    }


# Helper functions for common mock patterns
def mock_title_lookup(title: str, *pages: dict):
    return respx.get(f'{API_URL}/content', params={'title': title}).mock(
        return_value=Response(200, json=search_results(*pages))
    )


def mock_cql_search(*pages: dict):
    respx.get(f'{API_URL}/content/search').mock(return_value=Response(200, json=search_results(*pages)))


def mock_space_listing(*pages: dict):
    respx.get(f'{API_URL}/content', params={'start': '0'}).mock(
        return_value=Response(200, json=search_results(*pages))
    )


def mock_labels(page_id: str, *names: str):
    return respx.get(f'{API_URL}/content/{page_id}/label').mock(
        return_value=Response(200, json=labels_response(*names))
    )


def mock_add_label(page_id: str):
    return respx.post(f'{API_URL}/content/{page_id}/label').mock(
        return_value=Response(200, json=labels_response('generated'))
    )
