"""Run settings, environment names and logging setup."""
import logging
import os
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError
from rich.logging import RichHandler

from .exceptions import GitPublishError

ENV_ENDPOINT = "GITHUB_ENDPOINT"
ENV_LOG_LEVEL = "GITPUBLISH_LOG_LEVEL"

DEFAULT_LOG_LEVEL = "INFO"

# What components accept as their log sink; the workflow hands them a LoggerAdapter.
LogPort = Union[logging.Logger, logging.LoggerAdapter]


class RunSettings(BaseModel):
    """One unit of work, as read from a YAML run file. Every field is optional."""

    organization: Optional[str] = None
    repository: Optional[str] = None
    branch: Optional[str] = None
    base: Optional[str] = None
    workdir: Optional[str] = None
    command: Optional[str] = Field(None, description="Shell command run inside the working copy.")
    commit_message: Optional[str] = None
    pull_request_message: Optional[str] = None
    repository_description: Optional[str] = None
    new_repository_description: Optional[str] = None
    changed_files: Optional[List[str]] = None
    create_missing: bool = True


def load_run_settings(path: Union[str, Path]) -> RunSettings:
    """
    Reads a YAML mapping of `RunSettings` fields.

    Raises:
        GitPublishError: The file is unreadable, not YAML, not a mapping, or
            has invalid fields.
    """
    settings_path = Path(path)
    try:
        data = yaml.safe_load(settings_path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise GitPublishError(f"Could not read run settings from '{settings_path}': {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise GitPublishError(f"Run settings in '{settings_path}' must be a mapping.")
    try:
        return RunSettings.model_validate(data)
    except ValidationError as e:
        raise GitPublishError(f"Invalid run settings in '{settings_path}': {e}") from e


def github_endpoint() -> Optional[str]:
    return os.environ.get(ENV_ENDPOINT) or None


def log_level(verbose: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    name = os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, name, logging.INFO)


def configure_logging(verbose: bool = False) -> None:
    """Routes gitpublish log records to stderr through rich."""
    logging.basicConfig(
        level=log_level(verbose),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=False)],
        force=True,
    )
