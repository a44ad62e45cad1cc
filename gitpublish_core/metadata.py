import logging
from typing import Optional

from .config import LogPort
from .hosting import HostingClient, RemoteRepository

log = logging.getLogger(__name__)


def effective_description(
    repo_was_created: bool,
    new_repository_description: Optional[str],
    repository_description: Optional[str],
) -> Optional[str]:
    if repo_was_created and new_repository_description is not None:
        return new_repository_description
    return repository_description


class MetadataUpdater:
    """Applies the session's repository description after publication."""

    def __init__(self, hosting: HostingClient, logger: Optional[LogPort] = None):
        self.hosting = hosting
        self.logger = logger or log

    def update(
        self,
        repository: RemoteRepository,
        repo_was_created: bool,
        new_repository_description: Optional[str] = None,
        repository_description: Optional[str] = None,
    ) -> Optional[str]:
        description = effective_description(repo_was_created, new_repository_description, repository_description)
        if description is None:
            return None
        self.logger.info("Changing repository description to '%s'", description)
        self.hosting.set_description(repository, description)
        return description
