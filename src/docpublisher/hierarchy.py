"""Mapping of documentation paths to Confluence spaces and folder pages."""

import logging
from pathlib import Path, PurePosixPath
import re

import yaml

from docpublisher.api_controller.controller import APIController
from docpublisher.cache import FOLDER_PAGE_CACHE_KEY, SPACE_MAPPING_CACHE_KEY, ApplicationCache, get_cache
from docpublisher.config import CONFIGURATION, ApplicationConfiguration
from docpublisher.constants import (
    CONTENT_PATH_PREFIXES,
    FOLDER_NAMES_KEPT_VERBATIM,
    INFORMATION_ARCHITECTURE_PREFIX,
    LOGGER_NAME,
    BodyRepresentation,
)
from docpublisher.exceptions import ValidationError
from docpublisher.models import PageLookupResult
from docpublisher.utils.adf_helpers import folder_document, has_warning_panel
from docpublisher.utils.github import get_github_source_url

SYSTEMS_PATTERN = re.compile(r'^[Ss]ystems/')
SYSTEM_ROOT_PATTERN = re.compile(r'^[Ss]ystems/[^/]+/')
TRADE_PATTERN = re.compile(r'^[Tt]rade/')
STORAGE_ERROR_MACROS = ('ac:name="error"', "ac:name='error'")


def split_content_path(file_path: str) -> tuple[str, str]:
    """Splits a path into the documentation prefix and the path relative to the documentation root.

    Args:
        file_path: a path such as `docs/delivery-information-architecture/systems/BTMS/overview.md`.

    Returns:
        The stripped prefix, e.g. `docs/delivery-information-architecture/`, and the remaining path.
    """

    prefix = ''
    relative_path = file_path
    for content_prefix in CONTENT_PATH_PREFIXES:
        if relative_path.startswith(content_prefix):
            prefix = content_prefix
            relative_path = relative_path[len(content_prefix) :]
            break
    if relative_path.startswith(INFORMATION_ARCHITECTURE_PREFIX):
        prefix = f'{prefix}{INFORMATION_ARCHITECTURE_PREFIX}'
        relative_path = relative_path[len(INFORMATION_ARCHITECTURE_PREFIX) :]
    return prefix, relative_path


def folder_title(directory_name: str) -> str:
    if directory_name in FOLDER_NAMES_KEPT_VERBATIM:
        return directory_name
    return directory_name.replace('-', ' ')


class HierarchyManager:
    """Resolves the space and the parent page of a document from its path.

    Every directory below the system (or trade) root becomes a folder page, so that the page tree in Confluence
    mirrors the directory tree of the sources.
    """

    def __init__(self, controller: APIController, configuration: ApplicationConfiguration | None = None):
        self.controller = controller
        self.config = configuration or CONFIGURATION.get()
        self.cache = get_cache()
        self.folders = ApplicationCache()
        self.logger = logging.getLogger(LOGGER_NAME)

    def load_space_mapping(self, config_path: str | Path | None = None) -> dict[str, str] | None:
        """Loads the mapping of system names to space keys.

        The mapping of the configuration is cached for the rest of the run. A mapping read from `config_path` is not
        cached.

        Args:
            config_path: a YAML or JSON file with a `space_mapping` (or `spaceMapping`) object.

        Returns:
            The mapping; `None` if the file does not exist or does not define one.

        Raises:
            ValidationError: if the file can not be parsed.
        """

        if config_path is None:
            if (cached := self.cache.get(SPACE_MAPPING_CACHE_KEY)) is not None:
                return cached
            mapping = dict(self.config.space_mapping) or None
            if mapping is not None:
                self.cache.set(SPACE_MAPPING_CACHE_KEY, mapping)
            return mapping

        path = Path(config_path)
        if not path.is_file():
            self.logger.warning('Space mapping file not found', extra={'config_path': str(path)})
            return None
        try:
            data = yaml.safe_load(path.read_text(encoding='utf-8')) or {}
        except yaml.YAMLError as e:
            raise ValidationError(f'Unable to parse the space mapping file {path}: {e}') from e
        if not isinstance(data, dict):
            return None
        return data.get('space_mapping', data.get('spaceMapping')) or None

    def get_space_for_path(self, file_path: str, config_path: str | Path | None = None) -> str | None:
        """Determines the space a document is published to.

        Args:
            file_path: the path of the document, relative to the repository root.
            config_path: an optional file to read the space mapping from.

        Returns:
            The key of the space mapped to the system (`systems/<name>/...`) or to the trade documentation
            (`trade/...`); `None` when the path is not mapped.
        """

        mapping = self.load_space_mapping(config_path)
        _, relative_path = split_content_path(file_path)

        if SYSTEMS_PATTERN.match(relative_path):
            parts = relative_path.split('/')
            if len(parts) >= 2 and mapping:
                return mapping.get(parts[1])
            return None

        if TRADE_PATTERN.match(relative_path):
            if mapping:
                return mapping.get('trade') or mapping.get('Trade')
            return None
        return None

    async def update_folder_with_warning(
        self, folder_name: str, page_id: str, folder_path: str, space_key: str | None = None
    ) -> bool:
        """Rewrites a folder page whose warning panel is missing, outdated or replaced by an error panel.

        Args:
            folder_name: the title of the folder page.
            page_id: the id of the folder page.
            folder_path: the path of the directory, used to link to its sources.
            space_key: the key of the space.

        Returns:
            True if the page was updated.
        """

        if not (source_url := get_github_source_url(folder_path, self.config.github_repository)):
            self.logger.warning('No GitHub URL for folder', extra={'folder_path': folder_path})
            return False

        response = await self.controller.get_page(
            page_id, expand='body.atlas_doc_format,body.storage,version'
        )
        if not response.success:
            return False

        page = response.result
        storage_body = page.body.get(BodyRepresentation.STORAGE.value, '')
        atlas_body = page.body.get(BodyRepresentation.ATLAS_DOC_FORMAT.value, '')
        has_error_panel = any(macro in storage_body for macro in STORAGE_ERROR_MACROS)
        if not has_error_panel and has_warning_panel(atlas_body):
            self.logger.debug('Folder page already has the warning panel', extra={'page_id': page_id})
            return False

        update = await self.controller.update_page(
            page_id, folder_name, folder_document(folder_name, source_url), page.version + 1
        )
        if update.success:
            self.logger.info(
                'Updated folder page with the warning panel', extra={'page_id': page_id, 'space_key': space_key}
            )
        return update.success

    async def get_or_create_folder(
        self,
        folder_name: str,
        parent_id: str | None,
        space_key: str,
        folder_path: str | None = None,
    ) -> str | None:
        """Returns the id of the folder page with the given title, creating it if needed.

        An existing folder page is reused wherever it sits in the space; its warning panel is refreshed when
        `folder_path` is given. New folder pages are labelled as generated. The id of a folder page is remembered for
        the lifetime of the manager, so the documents of one directory resolve it once per run.

        Args:
            folder_name: the title of the folder page.
            parent_id: the id of the page to create the folder under.
            space_key: the key of the space.
            folder_path: the path of the directory, used to link to its sources.

        Returns:
            The id of the folder page; `parent_id` if the folder can not be created.
        """

        cache_identifier = (space_key, parent_id, folder_name)
        if (cached_id := self.folders.get(FOLDER_PAGE_CACHE_KEY, cache_identifier)) is not None:
            return cached_id

        page_id = await self._find_or_create_folder(folder_name, parent_id, space_key, folder_path)
        if page_id and page_id != parent_id:
            self.folders.set(FOLDER_PAGE_CACHE_KEY, page_id, cache_identifier)
        return page_id

    async def _find_or_create_folder(
        self, folder_name: str, parent_id: str | None, space_key: str, folder_path: str | None
    ) -> str | None:
        response = await self.controller.get_page_by_title(folder_name, space_key)
        lookup: PageLookupResult = response.result
        if page_id := lookup.page_id(parent_id):
            self.logger.debug('Using existing folder', extra={'folder': folder_name, 'page_id': page_id})
            if folder_path:
                await self.update_folder_with_warning(folder_name, page_id, folder_path, space_key)
            return page_id

        source_url = get_github_source_url(folder_path, self.config.github_repository) if folder_path else None
        created = await self.controller.create_page(
            folder_name, folder_document(folder_name, source_url), space_key, parent_id=parent_id
        )
        if created.success and created.result.id:
            new_page_id = created.result.id
            self.logger.info('Folder created', extra={'folder': folder_name, 'page_id': new_page_id})
            await self.controller.add_label_to_page(new_page_id, self.config.generated_label)
            return new_page_id

        if created.error and ('already exists' in created.error or 'duplicate' in created.error):
            search = await self.controller.search_pages_by_title(folder_name, space_key)
            if existing_id := search.result.page_id(parent_id):
                self.logger.info('Using existing folder', extra={'folder': folder_name, 'page_id': existing_id})
                return existing_id

        self.logger.warning('Failed to create folder, using the parent page', extra={'folder': folder_name})
        return parent_id

    async def get_parent_for_path(
        self, file_path: str, space_key: str, base_parent_id: str | None = None
    ) -> str | None:
        """Determines the parent page of a document, creating the folder pages of its directories.

        Args:
            file_path: the path of the document, relative to the repository root.
            space_key: the key of the space.
            base_parent_id: the page under which the first folder is created.

        Returns:
            The id of the innermost folder page; `base_parent_id` for documents at the root of a system.
        """

        prefix, original_relative_path = split_content_path(file_path)
        relative_path = original_relative_path
        if SYSTEMS_PATTERN.match(relative_path):
            relative_path = SYSTEM_ROOT_PATTERN.sub('', relative_path, count=1)
            root_depth = 2
        elif TRADE_PATTERN.match(relative_path):
            relative_path = TRADE_PATTERN.sub('', relative_path, count=1)
            root_depth = 1
        else:
            root_depth = 0

        parts = [part for part in PurePosixPath(relative_path).parent.parts if part not in ('', '.')]
        if not parts:
            return base_parent_id

        original_parts = list(PurePosixPath(original_relative_path).parent.parts)
        current_parent = base_parent_id
        for index, part in enumerate(parts):
            depth = root_depth + index
            folder_path = f'{prefix}{"/".join(original_parts[: depth + 1])}'
            name = folder_title(part)
            self.logger.debug(
                'Processing folder',
                extra={'folder': name, 'parent_id': current_parent, 'space_key': space_key, 'path': folder_path},
            )
            new_parent = await self.get_or_create_folder(name, current_parent, space_key, folder_path)
            if not new_parent:
                self.logger.warning('Failed to get or create folder, using the base parent', extra={'folder': name})
                current_parent = base_parent_id
            else:
                current_parent = new_parent
        return current_parent
