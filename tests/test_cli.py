import json

from click.testing import CliRunner
import yaml

from docpublisher.cli import cli


class TestCli:
    def test_convert(self, tmp_path):
        markdown_file = tmp_path / 'page.md'
        markdown_file.write_text('# One\n## Two\n## Three\n### Four\n', encoding='utf-8')

        result = CliRunner().invoke(cli, ['convert', str(markdown_file)])

        assert result.exit_code == 0
        adf = json.loads(result.output)
        assert adf['type'] == 'doc'
        assert adf['content'][0]['type'] == 'extension'

    def test_convert_without_table_of_contents(self, tmp_path):
        markdown_file = tmp_path / 'page.md'
        markdown_file.write_text('# One\n## Two\n## Three\n### Four\n', encoding='utf-8')

        result = CliRunner().invoke(cli, ['convert', str(markdown_file), '--no-toc'])

        assert [node['type'] for node in json.loads(result.output)['content']] == ['heading'] * 4

    def test_init_and_validate_config(self, tmp_path):
        config_path = tmp_path / 'publish.yaml'
        runner = CliRunner()

        init_result = runner.invoke(cli, ['init-config', str(config_path)])
        validate_result = runner.invoke(cli, ['validate-config', str(config_path)])

        assert init_result.exit_code == 0
        assert 'publish_paths' in yaml.safe_load(config_path.read_text(encoding='utf-8'))
        assert validate_result.exit_code == 0
        assert 'Configuration is valid.' in validate_result.output

    def test_init_config_does_not_overwrite(self, tmp_path):
        config_path = tmp_path / 'publish.yaml'
        config_path.write_text('keep: me\n', encoding='utf-8')

        result = CliRunner().invoke(cli, ['init-config', str(config_path)])

        assert result.exit_code == 1
        assert config_path.read_text(encoding='utf-8') == 'keep: me\n'

    def test_validate_invalid_config(self, tmp_path):
        config_path = tmp_path / 'publish.yaml'
        config_path.write_text('space_mapping: {}\n', encoding='utf-8')

        result = CliRunner().invoke(cli, ['validate-config', str(config_path)])

        assert result.exit_code == 1
