import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console

from docpublisher.config import (
    CONFIGURATION,
    ApplicationConfiguration,
    create_config_template,
    load_publish_config,
)
from docpublisher.constants import LOGGER_NAME
from docpublisher.converter.document import markdown_to_adf
from docpublisher.exceptions import ValidationError as ConfigValidationError
from docpublisher.logs import setup_logging
from docpublisher.publisher import Publisher

console = Console()
logger = logging.getLogger(LOGGER_NAME)


def _load_settings(config_path: str | None) -> ApplicationConfiguration:
    overrides: dict = {}
    if config_path:
        try:
            overrides = load_publish_config(config_path)
        except ConfigValidationError as e:
            console.print(str(e), style='bold red', markup=False)
            sys.exit(1)
    try:
        return ApplicationConfiguration(**overrides)
    except ValidationError as e:
        console.print('Configuration validation error. Make sure your config file is correct.')
        for _e in e.errors():
            if location := _e.get('loc'):
                console.print(f'Configuration error at {location[0]}: {_e.get("msg")}')
            else:
                console.print(f'Configuration error: {_e.get("msg")}')
        sys.exit(1)


@click.group()
def cli():
    """Publishes Markdown documentation to Confluence."""


@cli.command()
@click.option('--config', '-c', 'config_path', default=None, help='A publishing configuration file.')
@click.option('--space', '-s', 'space_filter', default=None, help='Only publish documents targeting this space.')
@click.option('--parent-page-id', '-p', default=None, help='The page under which top-level folders are created.')
def publish(config_path: str | None, space_filter: str | None, parent_page_id: str | None):
    """Publishes the documents listed in the configuration."""

    settings = _load_settings(config_path)
    CONFIGURATION.set(settings)
    setup_logging(settings)

    stats = asyncio.run(Publisher(settings).publish(space_filter=space_filter, parent_page_id=parent_page_id))
    console.print(
        f'Published: [green]{stats.success}[/green] '
        f'Failed: [red]{stats.failed}[/red] '
        f'Skipped: [yellow]{stats.skipped}[/yellow]'
    )
    if stats.failed:
        sys.exit(1)


@cli.command('validate-config')
@click.argument('config_path', type=click.Path(exists=True, dir_okay=False))
def validate_config(config_path: str):
    """Checks a publishing configuration file."""

    try:
        load_publish_config(config_path)
    except ConfigValidationError as e:
        console.print(str(e), style='bold red', markup=False)
        sys.exit(1)
    console.print('[green]Configuration is valid.[/green]')


@cli.command('init-config')
@click.argument('output_path', type=click.Path(dir_okay=False))
def init_config(output_path: str):
    """Writes an example publishing configuration."""

    if Path(output_path).exists():
        console.print(f'The file {output_path} already exists.')
        sys.exit(1)
    create_config_template(output_path)
    console.print(f'Configuration template written to {output_path}')


@cli.command()
@click.argument('markdown_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--no-toc', is_flag=True, default=False, help='Never add a table of contents.')
def convert(markdown_file: str, no_toc: bool):
    """Prints the ADF document of a Markdown file."""

    content = Path(markdown_file).read_text(encoding='utf-8')
    adf = markdown_to_adf(content, {'add_table_of_contents': not no_toc})
    click.echo(json.dumps(adf, indent=2))


def docpublisherCLI():
    cli()


if __name__ == '__main__':
    docpublisherCLI()
