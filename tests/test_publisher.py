import json

from httpx import Response
from PIL import Image
import pytest
import respx

from docpublisher.exceptions import PublishException
from docpublisher.models import PublishPath, PublishStats
from docpublisher.publisher import Publisher, repository_path
from helpers import (
    API_URL,
    mock_add_label,
    mock_cql_search,
    mock_labels,
    mock_space_listing,
    mock_title_lookup,
    page_data,
)


@pytest.fixture
def publisher() -> Publisher:
    return Publisher()


def mock_new_page(title: str, page_id: str):
    """Routes for a page that does not exist yet and is created under the configured parent."""

    mock_title_lookup(title)
    mock_cql_search()
    mock_space_listing()
    create_route = respx.post(f'{API_URL}/content').mock(
        return_value=Response(200, json=page_data(page_id, title, ancestors=['1000']))
    )
    mock_labels(page_id)
    mock_add_label(page_id)
    return create_route


class TestExcludeFiles:
    def test_file_name_pattern(self, publisher):
        assert publisher.should_exclude_file('docs/systems/BTMS/README.md', ['README.md'])
        assert not publisher.should_exclude_file('docs/systems/BTMS/overview.md', ['README.md'])

    def test_relative_path_pattern(self, publisher):
        assert publisher.should_exclude_file('docs/systems/BTMS/drafts/ideas.md', ['systems/*/drafts/*'])
        assert publisher.should_exclude_file('docs/systems/BTMS/drafts/ideas.md', ['*/drafts/*'])

    def test_no_patterns(self, publisher):
        assert not publisher.should_exclude_file('docs/systems/BTMS/README.md', [])

    def test_repository_path(self, docs_tree):
        assert repository_path(docs_tree / 'docs' / 'a.md') == 'docs/a.md'
        assert repository_path('docs/a.md') == 'docs/a.md'


class TestPublishMarkdownFile:
    @respx.mock
    async def test_existing_generated_page_is_updated(self, publisher, docs_tree, confluence_page):
        mock_title_lookup('BTMS Overview', confluence_page)
        mock_labels('123456', 'generated')
        update_route = respx.put(f'{API_URL}/content/123456').mock(
            return_value=Response(200, json=page_data('123456', 'BTMS Overview', version=8))
        )

        result = await publisher.publish_markdown_file('docs/systems/BTMS/overview.md')

        assert result.page_id == '123456'
        assert result.space_key == 'BTMS'
        assert not result.created
        assert not result.skipped
        payload = json.loads(update_route.calls.last.request.content)
        assert payload['title'] == 'BTMS Overview'
        assert payload['version'] == {'number': 8}
        body = json.loads(payload['body']['atlas_doc_format']['value'])
        assert body['content'][0]['type'] == 'panel'
        assert body['content'][0]['content'][0]['content'][1]['marks'][0]['attrs']['href'] == (
            'https://github.com/DEFRA/example-docs/docs/systems/BTMS/overview.md'
        )
        assert body['content'][1] == {
            'type': 'heading',
            'attrs': {'level': 1},
            'content': [{'type': 'text', 'text': 'BTMS Overview'}],
        }

    @respx.mock
    async def test_manual_page_is_skipped(self, publisher, docs_tree, confluence_page):
        mock_title_lookup('BTMS Overview', confluence_page)
        mock_labels('123456', 'manual')
        update_route = respx.put(f'{API_URL}/content/123456')

        result = await publisher.publish_markdown_file('docs/systems/BTMS/overview.md')

        assert result.skipped
        assert result.reason == 'not generated'
        assert not update_route.called

    @respx.mock
    async def test_new_page_is_created(self, publisher, docs_tree):
        create_route = mock_new_page('BTMS Overview', '700')

        result = await publisher.publish_markdown_file(docs_tree / 'docs' / 'systems' / 'BTMS' / 'overview.md')

        assert result.created
        assert result.page_id == '700'
        payload = json.loads(create_route.calls.last.request.content)
        assert payload['space'] == {'key': 'BTMS'}
        assert payload['ancestors'] == [{'id': '1000'}]

    @respx.mock
    async def test_parent_page_id_argument(self, publisher, docs_tree):
        create_route = mock_new_page('BTMS Overview', '700')

        await publisher.publish_markdown_file('docs/systems/BTMS/overview.md', parent_page_id='4242')

        assert json.loads(create_route.calls.last.request.content)['ancestors'] == [{'id': '4242'}]

    @respx.mock
    async def test_page_is_recreated_after_permission_error(self, publisher, docs_tree, confluence_page):
        mock_title_lookup('BTMS Overview', confluence_page)
        mock_labels('123456', 'generated')
        respx.put(f'{API_URL}/content/123456').mock(return_value=Response(403, json={'message': 'Not permitted'}))
        respx.delete(f'{API_URL}/content/123456').mock(return_value=Response(204))
        create_route = respx.post(f'{API_URL}/content').mock(
            return_value=Response(200, json=page_data('701', 'BTMS Overview', ancestors=['1000']))
        )
        mock_labels('701')
        mock_add_label('701')

        result = await publisher.publish_markdown_file('docs/systems/BTMS/overview.md')

        assert create_route.called
        assert result.page_id == '701'
        assert result.created

    @respx.mock
    async def test_update_failure_raises(self, publisher, docs_tree, confluence_page):
        mock_title_lookup('BTMS Overview', confluence_page)
        mock_labels('123456', 'generated')
        respx.put(f'{API_URL}/content/123456').mock(return_value=Response(409, json={'message': 'Conflict'}))

        with pytest.raises(PublishException, match='Conflict'):
            await publisher.publish_markdown_file('docs/systems/BTMS/overview.md')

    @respx.mock
    async def test_trashed_page_is_replaced(self, publisher, docs_tree, confluence_page):
        trashed = dict(confluence_page, status='trashed')
        mock_title_lookup('BTMS Overview', trashed)
        mock_labels('123456', 'generated')
        delete_route = respx.delete(f'{API_URL}/content/123456').mock(return_value=Response(204))
        create_route = respx.post(f'{API_URL}/content').mock(
            return_value=Response(200, json=page_data('702', 'BTMS Overview', ancestors=['1000']))
        )
        mock_labels('702')
        mock_add_label('702')

        result = await publisher.publish_markdown_file('docs/systems/BTMS/overview.md')

        assert delete_route.calls.last.request.url.params['permanent'] == 'true'
        assert json.loads(create_route.calls.last.request.content)['title'] == 'BTMS Overview'
        assert result.page_id == '702'

    async def test_other_space_is_skipped(self, publisher, docs_tree):
        result = await publisher.publish_markdown_file('docs/systems/BTMS/overview.md', space_filter='TIDIA')

        assert result.skipped
        assert result.space_key == 'BTMS'

    async def test_missing_file_raises(self, publisher, docs_tree):
        with pytest.raises(PublishException):
            await publisher.publish_markdown_file('docs/systems/BTMS/missing.md')

    async def test_unmapped_file_without_default_space_raises(self, mock_configuration, docs_tree):
        mock_configuration.default_space = None
        (docs_tree / 'docs' / 'notes.md').write_text('# Notes\n', encoding='utf-8')

        with pytest.raises(PublishException, match='No space configured'):
            await Publisher(mock_configuration).publish_markdown_file('docs/notes.md')

    @respx.mock
    async def test_diagrams_are_uploaded_and_embedded(self, publisher, docs_tree, mock_configuration):
        exports_dir = docs_tree / 'diagrams'
        exports_dir.mkdir()
        Image.new('RGB', (800, 400)).save(exports_dir / 'context.png')
        (docs_tree / 'docs' / 'systems' / 'BTMS' / 'context.md').write_text(
            "import { LikeC4View } from 'likec4:react'\n\n# Context\n\n<LikeC4View viewId=\"context\" />\n",
            encoding='utf-8',
        )
        mock_new_page('Context', '703')
        respx.get(f'{API_URL}/content/703/child/attachment').mock(return_value=Response(200, json={'results': []}))
        respx.post(f'{API_URL}/content/703/child/attachment').mock(
            return_value=Response(
                200,
                json={
                    'results': [
                        {'id': 'att5', 'title': 'context.png', 'extensions': {'fileId': 'file-5'}}
                    ]
                },
            )
        )
        update_route = respx.put(f'{API_URL}/content/703').mock(
            return_value=Response(200, json=page_data('703', 'Context', version=2))
        )

        result = await publisher.publish_markdown_file('docs/systems/BTMS/context.md')

        assert result.page_id == '703'
        payload = json.loads(update_route.calls.last.request.content)
        assert payload['version'] == {'number': 2}
        body = json.loads(payload['body']['atlas_doc_format']['value'])
        assert body['content'][2] == {
            'type': 'mediaSingle',
            'attrs': {'layout': 'center'},
            'content': [
                {
                    'type': 'media',
                    'attrs': {
                        'type': 'file',
                        'collection': 'contentId-703',
                        'id': 'file-5',
                        'width': 1600,
                        'height': 800,
                    },
                }
            ],
        }


class TestPublish:
    @respx.mock
    async def test_publish_paths(self, publisher, docs_tree, confluence_page):
        mock_title_lookup('BTMS Overview', confluence_page)
        mock_labels('123456', 'generated')
        respx.put(f'{API_URL}/content/123456').mock(
            return_value=Response(200, json=page_data('123456', 'BTMS Overview', version=8))
        )
        mock_title_lookup('data flows', page_data('500', 'data flows', ancestors=['1000']))
        folder = page_data('500', 'data flows', ancestors=['1000'])
        folder['body'] = {'atlas_doc_format': {'value': '', 'representation': 'atlas_doc_format'}}
        respx.get(f'{API_URL}/content/500').mock(return_value=Response(200, json=folder))
        respx.put(f'{API_URL}/content/500').mock(return_value=Response(200, json=page_data('500', 'data flows', 2)))
        mock_title_lookup('Import Flows')
        mock_cql_search()
        mock_space_listing()
        create_route = respx.post(f'{API_URL}/content').mock(
            return_value=Response(200, json=page_data('600', 'Import Flows', ancestors=['1000', '500']))
        )
        mock_labels('600')
        mock_add_label('600')

        stats = await publisher.publish()

        assert stats == PublishStats(success=2, failed=0, skipped=1)
        payload = json.loads(create_route.calls.last.request.content)
        assert payload['title'] == 'Import Flows'
        assert payload['ancestors'] == [{'id': '500'}]

    async def test_space_filter_skips_everything_else(self, publisher, docs_tree):
        stats = await publisher.publish(space_filter='TIDIA')

        assert stats == PublishStats(success=0, failed=0, skipped=3)

    async def test_missing_single_file(self, mock_configuration, docs_tree):
        mock_configuration.publish_paths = [PublishPath(path='systems/BTMS/missing.md')]

        stats = await Publisher(mock_configuration).publish()

        assert stats == PublishStats(success=0, failed=1, skipped=0)

    async def test_diagram_paths_are_skipped(self, mock_configuration, docs_tree):
        (docs_tree / 'docs' / 'systems' / 'BTMS' / 'model.c4').write_text('model {}', encoding='utf-8')
        mock_configuration.publish_paths = [PublishPath(path='systems/BTMS/*.c4', type='diagram')]

        stats = await Publisher(mock_configuration).publish()

        assert stats == PublishStats(success=0, failed=0, skipped=1)

    async def test_path_excludes(self, mock_configuration, docs_tree):
        mock_configuration.publish_paths = [
            PublishPath(path='systems/BTMS/**/*.md', exclude=['overview.md', '*/data-flows/*'])
        ]

        stats = await Publisher(mock_configuration).publish()

        assert stats == PublishStats(success=0, failed=0, skipped=3)

    @respx.mock
    async def test_failures_are_counted(self, mock_configuration, docs_tree):
        mock_configuration.publish_paths = [PublishPath(path='systems/BTMS/overview.md')]
        respx.get(f'{API_URL}/content').mock(return_value=Response(200, json={'results': []}))
        mock_cql_search()
        respx.post(f'{API_URL}/content').mock(return_value=Response(500, json={'message': 'boom'}))

        stats = await Publisher(mock_configuration).publish()

        assert stats == PublishStats(success=0, failed=1, skipped=0)

