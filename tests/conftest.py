from pydantic import SecretStr
import pytest

from docpublisher.cache import reset_cache
from docpublisher.config import CONFIGURATION, ApplicationConfiguration, ConfluenceConfig
from docpublisher.models import PublishPath
from helpers import load_fixture


# NOTE: Clear the global application cache after each test
#       to prevent cross-test contamination of the space mapping.
@pytest.fixture(autouse=True)
def clear_global_cache():
    yield
    reset_cache()


@pytest.fixture(autouse=True)
def mock_configuration(monkeypatch, tmp_path):
    monkeypatch.delenv('GITHUB_REPOSITORY', raising=False)
    monkeypatch.setenv('DOCPUBLISHER_CONFIG_FILE', str(tmp_path / 'missing-config.yaml'))

    confluence_config = ConfluenceConfig(
        api_username='testuser@example.com',
        api_token=SecretStr('test-token'),
        api_base_url='https://example.atlassian.net',
    )

    config = ApplicationConfiguration(
        confluence=confluence_config,
        default_space='DOCS',
        parent_page_id='1000',
        content_root='docs',
        space_mapping={'BTMS': 'BTMS', 'Trade': 'TIDIA'},
        publish_paths=[PublishPath(path='systems/BTMS/**/*.md')],
        exclude_patterns=['README.md'],
        exports_dir=str(tmp_path / 'diagrams'),
        github_repository='DEFRA/example-docs',
        log_file='',
        log_level='WARNING',
    )

    token = CONFIGURATION.set(config)

    yield config

    CONFIGURATION.reset(token)


@pytest.fixture
def confluence_page():
    return load_fixture('page.json')


@pytest.fixture
def confluence_attachments():
    return load_fixture('attachments.json')


@pytest.fixture
def docs_tree(tmp_path, monkeypatch):
    """A small documentation tree in a temporary working directory."""

    monkeypatch.chdir(tmp_path)
    system_dir = tmp_path / 'docs' / 'systems' / 'BTMS'
    (system_dir / 'data-flows').mkdir(parents=True)
    (system_dir / 'overview.md').write_text(
        '---\ntitle: BTMS Overview\n---\n# BTMS Overview\n\nThe **BTMS** system.\n', encoding='utf-8'
    )
    (system_dir / 'data-flows' / 'imports.md').write_text(
        '# Import Flows\n\nSee `imports`.\n', encoding='utf-8'
    )
    (system_dir / 'README.md').write_text('# Readme\n', encoding='utf-8')
    return tmp_path
