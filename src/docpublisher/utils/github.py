import logging
import os
from pathlib import Path
import re
import subprocess

from docpublisher.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

GITHUB_REMOTE_PATTERN = re.compile(r'github\.com[:/]([^/]+/[^/]+?)(?:\.git)?/?$')


def _git(*args: str) -> str | None:
    try:
        result = subprocess.run(['git', *args], capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug('git command failed', extra={'args': list(args), 'error': str(e)})
        return None
    return result.stdout.strip() or None


def repository_from_remote(remote_url: str) -> str | None:
    """Extracts `owner/name` from an SSH or HTTPS GitHub remote URL."""
    if match := GITHUB_REMOTE_PATTERN.search(remote_url.strip()):
        return match.group(1)
    return None


def detect_github_repository() -> str | None:
    """The `owner/name` of the repository, from `GITHUB_REPOSITORY` or else from the `origin` remote."""
    if repository := os.getenv('GITHUB_REPOSITORY'):
        return repository
    if remote_url := _git('config', '--get', 'remote.origin.url'):
        return repository_from_remote(remote_url)
    return None


def get_github_source_url(file_path: str | Path, repository: str | None = None) -> str | None:
    """Builds the GitHub URL of a file in the default branch of its repository.

    Args:
        file_path: the path of the file; absolute paths inside the working tree are made relative to its root.
        repository: the `owner/name` of the repository. Detected when not given.

    Returns:
        The URL or `None` when the repository can not be determined.
    """

    repository = repository or detect_github_repository()
    if not repository:
        return None

    relative_path = Path(file_path)
    if relative_path.is_absolute() and (repo_root := _git('rev-parse', '--show-toplevel')):
        if relative_path.is_relative_to(repo_root):
            relative_path = relative_path.relative_to(repo_root)
    return f'https://github.com/{repository}/{relative_path.as_posix()}'
