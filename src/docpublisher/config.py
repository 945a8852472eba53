from contextvars import ContextVar
from dataclasses import dataclass
import os
import re
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)
import yaml

from docpublisher.constants import (
    DEFAULT_EXPORTS_DIRECTORY,
    DEFAULT_GENERATED_LABEL,
    DEFAULT_PROTECTED_LABELS,
)
from docpublisher.exceptions import ValidationError
from docpublisher.files import get_config_file
from docpublisher.models import BaseModel, ConversionOptions, PublishPath

CAMEL_CASE_PATTERN = re.compile(r'(?<=[a-z0-9])([A-Z])')


@dataclass
class SSLConfiguration(BaseModel):
    """Configuration for SSL CA bundles and client-side certificates."""

    verify_ssl: bool = True
    """Indicates whether HTTP requests should use SSL validation."""
    ca_bundle: str | None = None
    """Path to the CA bundle file."""
    certificate_file: str | None = None
    """Path to the a client-side certificate file, e.g. cert.pem"""
    key_file: str | None = None
    """Path to the key file."""
    password: SecretStr | None = None
    """The password for the key file."""


class ConfluenceConfig(BaseSettings):
    """Configuration for Confluence API connection."""

    api_username: str
    """The username (email address) to use for connecting to the Confluence API."""
    api_token: SecretStr
    """The API token to use for connecting to the Confluence API."""
    api_base_url: str
    """The base URL of the Atlassian site, e.g. https://example.atlassian.net"""

    model_config = SettingsConfigDict(
        env_prefix='DOCPUBLISHER_CONFLUENCE__',
        validate_assignment=True,
        extra='ignore',
    )


class ApplicationConfiguration(BaseSettings):
    """The configuration for publishing documentation to Confluence."""

    confluence: ConfluenceConfig = Field(default_factory=ConfluenceConfig)
    """Confluence API connection configuration."""

    @field_validator('confluence', mode='before')
    @classmethod
    def validate_confluence_config(cls, v):
        """Ensure confluence config has properly validated nested fields."""
        if isinstance(v, dict):
            if 'api_token' in v and isinstance(v['api_token'], str):
                v = v.copy()
                v['api_token'] = SecretStr(v['api_token'])
        return v

    default_space: str | None = None
    """The space key used for documents whose path does not map to a space."""
    parent_page_id: str | None = None
    """The id of the page under which top-level documents and folders are created."""
    content_root: str = 'docs'
    """The directory that relative publish paths are resolved against."""
    generated_label: str = DEFAULT_GENERATED_LABEL
    """The label added to every page created or updated by this tool. Only pages carrying it are overwritten."""
    protected_labels: list[str] = Field(default_factory=lambda: list(DEFAULT_PROTECTED_LABELS))
    """Labels that mark a page as manually maintained."""
    space_mapping: dict[str, str] = Field(default_factory=dict)
    """Maps a system directory name (or `trade`) to the key of the Confluence space it is published to. Example:

    {
        'BTMS': 'BTMS',
        'Trade': 'TIDIA'
    }
    """
    publish_paths: list[PublishPath] = Field(default_factory=list)
    """The paths, or glob patterns, relative to `content_root` of the documents to publish."""
    exclude_patterns: list[str] = Field(default_factory=list)
    """File name patterns excluded from every publish path, e.g. `README.md` or `_*.md`."""
    exports_dir: str = DEFAULT_EXPORTS_DIRECTORY
    """The directory where exported diagram images are looked up."""
    conversion: ConversionOptions = Field(default_factory=ConversionOptions)
    """Options for converting Markdown into Atlassian Document Format."""
    github_repository: str | None = None
    """The `owner/name` of the GitHub repository hosting the sources. Detected from git when missing."""
    ssl: SSLConfiguration | None = Field(default_factory=SSLConfiguration)  # type: ignore[assignment]
    """SSL configuration for client-side certificates and CA bundle."""
    log_file: str | None = None
    """The filename of the log file to use. If you set an empty string logging to a file is disabled."""
    log_level: str = 'WARNING'
    """The log level to use. Use Python's `logging` names: `CRITICAL`, `FATAL`, `ERROR`, `WARN`, `WARNING`, `INFO`,
    `DEBUG` and `NOTSET`."""

    model_config = SettingsConfigDict(
        extra='allow',
        validate_assignment=True,
        env_prefix='DOCPUBLISHER_',
        env_nested_delimiter='__',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        if config_file := os.getenv('DOCPUBLISHER_CONFIG_FILE'):
            conf_file = Path(config_file).resolve()
        else:
            conf_file = get_config_file()

        if conf_file.exists():
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                YamlConfigSettingsSource(settings_cls, yaml_file=conf_file),
            )
        else:
            return (
                init_settings,
                env_settings,
                dotenv_settings,
            )


def validate_publish_config(data: dict) -> list[str]:
    """Checks the shape of a raw publishing configuration before it is loaded.

    Args:
        data: the configuration as read from a YAML or JSON file.

    Returns:
        A list with a description of each problem found; empty when the configuration is valid.
    """

    errors: list[str] = []
    space_mapping = data.get('space_mapping', data.get('spaceMapping'))
    if not isinstance(space_mapping, dict):
        errors.append('Missing or invalid space_mapping object')

    publish_paths = data.get('publish_paths', data.get('publishPaths'))
    if not isinstance(publish_paths, list):
        errors.append('Missing or invalid publish_paths array')
    else:
        for index, item in enumerate(publish_paths):
            if not isinstance(item, dict) or not item.get('path'):
                errors.append(f"publish_paths[{index}]: missing 'path' property")
    return errors


CONFIGURATION: ContextVar[ApplicationConfiguration] = ContextVar('configuration')


def load_publish_config(config_path: str | Path) -> dict:
    """Reads and validates a publishing configuration file.

    Args:
        config_path: a YAML (or JSON) file.

    Returns:
        The configuration as a dictionary; camelCase keys are converted to snake_case.

    Raises:
        ValidationError: if the file can not be read or parsed, or if it is invalid.
    """

    try:
        data = yaml.safe_load(Path(config_path).read_text(encoding='utf-8'))
    except (OSError, yaml.YAMLError) as e:
        raise ValidationError(f'Failed to read/parse config: {e}') from e
    if not isinstance(data, dict):
        raise ValidationError('Failed to read/parse config: the file does not contain a mapping')
    if errors := validate_publish_config(data):
        raise ValidationError(f'Invalid config: {", ".join(errors)}', extra={'errors': errors})
    return {CAMEL_CASE_PATTERN.sub(r'_\1', key).lower(): value for key, value in data.items()}


def create_config_template(output_path: str | Path) -> None:
    """Writes an example publishing configuration to `output_path`."""
    template = {
        'space_mapping': {'SYSTEM_NAME': 'SPACE_KEY', 'Trade': 'TIDIA', 'BTMS': 'BTMS'},
        'publish_paths': [
            {'path': 'systems/BTMS/**/*.md', 'type': 'markdown', 'description': 'BTMS documentation'},
        ],
        'parent_page_id': '',
        'exclude_patterns': ['README.md', '_*.md'],
    }
    Path(output_path).write_text(yaml.safe_dump(template, sort_keys=False), encoding='utf-8')
