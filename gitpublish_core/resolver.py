import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .config import LogPort
from .exceptions import RepositoryNotFoundError
from .hosting import HostingClient, Identity, RemoteRepository

log = logging.getLogger(__name__)

# Branch used for repositories this tool creates when none is requested.
NEW_REPOSITORY_BRANCH = "master"


@dataclass(frozen=True)
class Resolution:
    remote_repository: RemoteRepository
    branch_name: str
    base_name: str
    working_directory: Path
    repo_was_created: bool
    identity: Identity


def default_working_directory(organization: str, repository: str, branch_name: str) -> Path:
    return Path(organization) / repository / branch_name


class RepoResolver:
    """Finds or creates the remote repository and settles branch, base and working directory."""

    def __init__(self, hosting: HostingClient, logger: Optional[LogPort] = None):
        self.hosting = hosting
        self.logger = logger or log

    def resolve(
        self,
        organization: str,
        repository: str,
        branch: Optional[str] = None,
        base: Optional[str] = None,
        working_directory: Optional[Union[str, Path]] = None,
        create_missing: bool = True,
    ) -> Resolution:
        """
        Args:
            organization: Owner of the repository (organization or user login).
            repository: Repository name.
            branch: Branch to work on. Defaults to the remote default branch,
                or "master" for a repository created here.
            base: Branch to compare and merge into. Defaults to the remote
                default branch.
            working_directory: Local checkout path. Defaults to
                "{organization}/{repository}/{branch}".
            create_missing: Create the remote repository when it does not exist.

        Raises:
            RepositoryNotFoundError: The repository does not exist and
                create_missing is False.
            HostingError: Any other hosting failure.
        """
        full_name = f"{organization}/{repository}"
        self.logger.info("Fetching info about repo %s", full_name)
        identity = self.hosting.get_identity()
        remote = self.hosting.get_repository(full_name)

        if remote is not None:
            branch_name = branch or remote.default_branch
            base_name = base or remote.default_branch
            created = False
        else:
            if not create_missing:
                raise RepositoryNotFoundError(f"Repository '{full_name}' not found.")
            self.logger.info("Creating repository %s", full_name)
            owner = None if identity.login == organization else organization
            remote = self.hosting.create_repository(repository, organization=owner)
            branch_name = branch or NEW_REPOSITORY_BRANCH
            base_name = base or remote.default_branch
            created = True

        if working_directory is None:
            workdir = default_working_directory(organization, repository, branch_name)
        else:
            workdir = Path(working_directory)

        return Resolution(
            remote_repository=remote,
            branch_name=branch_name,
            base_name=base_name,
            working_directory=workdir,
            repo_was_created=created,
            identity=identity,
        )
