import json

from httpx import Response
import pytest
import respx

from docpublisher.api_controller.controller import APIController
from docpublisher.cache import FOLDER_PAGE_CACHE_KEY, SPACE_MAPPING_CACHE_KEY, get_cache
from docpublisher.exceptions import ValidationError
from docpublisher.hierarchy import HierarchyManager, folder_title, split_content_path
from docpublisher.utils.adf_helpers import folder_document
from helpers import API_URL, mock_add_label, mock_cql_search, mock_labels, mock_title_lookup, page_data

FOLDER_SOURCE_URL = 'https://github.com/DEFRA/example-docs/docs/systems/BTMS/data-flows'


@pytest.fixture
def hierarchy() -> HierarchyManager:
    return HierarchyManager(APIController())


def folder_page(page_id: str, title: str, version: int, atlas_body: dict | None, storage: str = '') -> dict:
    data = page_data(page_id, title, version=version, ancestors=['1000'])
    data['body'] = {
        'storage': {'value': storage, 'representation': 'storage'},
        'atlas_doc_format': {
            'value': json.dumps(atlas_body) if atlas_body else '',
            'representation': 'atlas_doc_format',
        },
    }
    return data


class TestContentPaths:
    @pytest.mark.parametrize(
        'file_path, expected',
        [
            ('docs/systems/BTMS/overview.md', ('docs/', 'systems/BTMS/overview.md')),
            (
                'docs/delivery-information-architecture/systems/BTMS/overview.md',
                ('docs/delivery-information-architecture/', 'systems/BTMS/overview.md'),
            ),
            ('astro/src/content/docs/trade/index.md', ('astro/src/content/docs/', 'trade/index.md')),
            ('systems/BTMS/overview.md', ('', 'systems/BTMS/overview.md')),
        ],
    )
    def test_split_content_path(self, file_path, expected):
        assert split_content_path(file_path) == expected

    def test_folder_title(self):
        assert folder_title('data-flows') == 'data flows'
        assert folder_title('Technology View') == 'Technology View'


class TestSpaceMapping:
    @pytest.mark.parametrize(
        'file_path, space_key',
        [
            ('docs/systems/BTMS/overview.md', 'BTMS'),
            ('docs/delivery-information-architecture/Systems/BTMS/data-flows/imports.md', 'BTMS'),
            ('docs/trade/guides/customs.md', 'TIDIA'),
            ('docs/systems/Unknown/overview.md', None),
            ('docs/systems', None),
            ('docs/other/overview.md', None),
        ],
    )
    def test_get_space_for_path(self, hierarchy, file_path, space_key):
        assert hierarchy.get_space_for_path(file_path) == space_key

    def test_configured_mapping_is_cached(self, hierarchy):
        assert hierarchy.load_space_mapping() == {'BTMS': 'BTMS', 'Trade': 'TIDIA'}
        assert get_cache().get(SPACE_MAPPING_CACHE_KEY) == {'BTMS': 'BTMS', 'Trade': 'TIDIA'}

    def test_no_mapping_configured(self, mock_configuration):
        mock_configuration.space_mapping = {}

        manager = HierarchyManager(APIController(), mock_configuration)

        assert manager.load_space_mapping() is None
        assert manager.get_space_for_path('docs/systems/BTMS/overview.md') is None

    def test_mapping_from_file(self, hierarchy, tmp_path):
        config_path = tmp_path / 'publish.yaml'
        config_path.write_text('spaceMapping:\n  IPAFFS: IPAFFS\n  trade: TRADE\n', encoding='utf-8')

        assert hierarchy.get_space_for_path('docs/systems/IPAFFS/overview.md', config_path) == 'IPAFFS'
        assert hierarchy.get_space_for_path('docs/trade/index.md', config_path) == 'TRADE'
        assert get_cache().get(SPACE_MAPPING_CACHE_KEY) is None

    def test_missing_mapping_file(self, hierarchy, tmp_path):
        assert hierarchy.load_space_mapping(tmp_path / 'missing.yaml') is None

    def test_invalid_mapping_file(self, hierarchy, tmp_path):
        config_path = tmp_path / 'publish.yaml'
        config_path.write_text('spaceMapping: [unclosed\n', encoding='utf-8')

        with pytest.raises(ValidationError):
            hierarchy.load_space_mapping(config_path)


class TestParentForPath:
    async def test_document_at_system_root(self, hierarchy):
        assert await hierarchy.get_parent_for_path('docs/systems/BTMS/overview.md', 'BTMS', '1000') == '1000'

    async def test_document_outside_known_roots(self, hierarchy):
        assert await hierarchy.get_parent_for_path('docs/overview.md', 'DOCS', '1000') == '1000'

    @respx.mock
    async def test_folder_is_created(self, hierarchy):
        mock_title_lookup('data flows')
        mock_cql_search()
        create_route = respx.post(f'{API_URL}/content').mock(
            return_value=Response(200, json=page_data('500', 'data flows', ancestors=['1000']))
        )
        mock_labels('500')
        label_route = mock_add_label('500')

        parent_id = await hierarchy.get_parent_for_path('docs/systems/BTMS/data-flows/imports.md', 'BTMS', '1000')

        assert parent_id == '500'
        assert label_route.called
        payload = json.loads(create_route.calls.last.request.content)
        assert payload['title'] == 'data flows'
        assert payload['ancestors'] == [{'id': '1000'}]
        body = json.loads(payload['body']['atlas_doc_format']['value'])
        assert body == folder_document('data flows', FOLDER_SOURCE_URL)

    @respx.mock
    async def test_nested_folders(self, hierarchy):
        respx.get(f'{API_URL}/content').mock(return_value=Response(200, json={'results': []}))
        mock_cql_search()
        create_route = respx.post(f'{API_URL}/content').mock(
            side_effect=[
                Response(200, json=page_data('500', 'trade guides')),
                Response(200, json=page_data('501', 'customs')),
            ]
        )
        for page_id in ('500', '501'):
            mock_labels(page_id)
            mock_add_label(page_id)

        parent_id = await hierarchy.get_parent_for_path('docs/trade/trade-guides/customs/forms.md', 'TIDIA', '1000')

        assert parent_id == '501'
        first, second = [json.loads(call.request.content) for call in create_route.calls]
        assert first['title'] == 'trade guides'
        assert first['ancestors'] == [{'id': '1000'}]
        assert second['title'] == 'customs'
        assert second['ancestors'] == [{'id': '500'}]

    @respx.mock
    async def test_existing_folder_is_reused(self, hierarchy):
        mock_title_lookup(
            'data flows',
            page_data('300', 'data flows', ancestors=['9999']),
            page_data('301', 'data flows', ancestors=['1000']),
        )
        warning_body = folder_document('data flows', FOLDER_SOURCE_URL)
        respx.get(f'{API_URL}/content/301').mock(
            return_value=Response(200, json=folder_page('301', 'data flows', 4, warning_body))
        )
        update_route = respx.put(f'{API_URL}/content/301')

        parent_id = await hierarchy.get_parent_for_path('docs/systems/BTMS/data-flows/imports.md', 'BTMS', '1000')

        assert parent_id == '301'
        assert not update_route.called

    @respx.mock
    async def test_folder_is_resolved_once_per_run(self, hierarchy):
        lookup_route = mock_title_lookup('data flows')
        mock_cql_search()
        create_route = respx.post(f'{API_URL}/content').mock(
            return_value=Response(200, json=page_data('500', 'data flows', ancestors=['1000']))
        )
        mock_labels('500')
        mock_add_label('500')

        first = await hierarchy.get_parent_for_path('docs/systems/BTMS/data-flows/imports.md', 'BTMS', '1000')
        second = await hierarchy.get_parent_for_path('docs/systems/BTMS/data-flows/exports.md', 'BTMS', '1000')

        assert first == second == '500'
        assert lookup_route.call_count == 1
        assert create_route.call_count == 1
        assert hierarchy.folders.get(FOLDER_PAGE_CACHE_KEY, ('BTMS', '1000', 'data flows')) == '500'
        assert get_cache().get(FOLDER_PAGE_CACHE_KEY, ('BTMS', '1000', 'data flows')) is None

    @respx.mock
    async def test_existing_folder_without_warning_is_updated(self, hierarchy):
        mock_title_lookup('data flows', page_data('301', 'data flows', ancestors=['1000']))
        respx.get(f'{API_URL}/content/301').mock(
            return_value=Response(200, json=folder_page('301', 'data flows', 4, folder_document('data flows')))
        )
        update_route = respx.put(f'{API_URL}/content/301').mock(
            return_value=Response(200, json=page_data('301', 'data flows', version=5))
        )

        parent_id = await hierarchy.get_parent_for_path('docs/systems/BTMS/data-flows/imports.md', 'BTMS', '1000')

        assert parent_id == '301'
        payload = json.loads(update_route.calls.last.request.content)
        assert payload['version'] == {'number': 5}
        assert json.loads(payload['body']['atlas_doc_format']['value']) == folder_document(
            'data flows', FOLDER_SOURCE_URL
        )

    @respx.mock
    async def test_folder_with_error_panel_is_updated(self, hierarchy):
        mock_title_lookup('data flows', page_data('301', 'data flows', ancestors=['1000']))
        respx.get(f'{API_URL}/content/301').mock(
            return_value=Response(
                200,
                json=folder_page(
                    '301',
                    'data flows',
                    4,
                    folder_document('data flows', FOLDER_SOURCE_URL),
                    storage='<ac:structured-macro ac:name="error"><ac:rich-text-body/></ac:structured-macro>',
                ),
            )
        )
        update_route = respx.put(f'{API_URL}/content/301').mock(
            return_value=Response(200, json=page_data('301', 'data flows', version=5))
        )

        assert await hierarchy.update_folder_with_warning(
            'data flows', '301', 'docs/systems/BTMS/data-flows', 'BTMS'
        )
        assert update_route.called

    @respx.mock
    async def test_duplicate_folder_is_found_by_search(self, hierarchy):
        mock_title_lookup('data flows')
        respx.get(f'{API_URL}/content/search').mock(
            side_effect=[
                Response(200, json={'results': []}),
                Response(200, json={'results': []}),
                Response(200, json={'results': [page_data('302', 'data flows', ancestors=['1000'])]}),
            ]
        )
        respx.post(f'{API_URL}/content').mock(
            return_value=Response(400, json={'message': 'A page with this title already exists'})
        )

        parent_id = await hierarchy.get_parent_for_path('docs/systems/BTMS/data-flows/imports.md', 'BTMS', '1000')

        assert parent_id == '302'

    @respx.mock
    async def test_folder_creation_failure_uses_the_parent(self, hierarchy):
        mock_title_lookup('data flows')
        mock_cql_search()
        respx.post(f'{API_URL}/content').mock(return_value=Response(500, json={'message': 'boom'}))

        parent_id = await hierarchy.get_parent_for_path('docs/systems/BTMS/data-flows/imports.md', 'BTMS', '1000')

        assert parent_id == '1000'
