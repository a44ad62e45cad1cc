"""Hosting platform port.

Implemented by: `gitpublish_core.github_hosting.GitHubHosting` (PyGithub), or
any platform that can serve repositories, branches and pull requests.

Lookups that may legitimately find nothing (repositories, branches) return
`None` instead of raising, so callers branch on ordinary values.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

import pygit2


@dataclass(frozen=True)
class RemoteRepository:
    owner: str
    name: str
    default_branch: str
    clone_url: str
    html_url: Optional[str] = None
    description: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class RemoteBranch:
    name: str
    sha: str


@dataclass(frozen=True)
class Identity:
    """The account the invocation acts as; also the commit author."""

    login: str
    email: str

    def signature(self) -> pygit2.Signature:
        return pygit2.Signature(self.login, self.email)


@dataclass(frozen=True)
class PullRequest:
    number: int
    title: str
    html_url: str
    head: str
    base: str


@runtime_checkable
class HostingClient(Protocol):
    """Repository, branch and pull-request operations on the hosting platform."""

    def get_repository(self, full_name: str) -> Optional[RemoteRepository]:
        """Returns the repository `owner/name`, or None if it does not exist."""
        ...

    def create_repository(self, name: str, organization: Optional[str] = None) -> RemoteRepository:
        """Creates a repository with default visibility.

        Args:
            name: Repository name.
            organization: Owning organization. None creates it under the
                authenticated account.
        """
        ...

    def get_identity(self) -> Identity:
        """Returns the authenticated account."""
        ...

    def get_branch(self, repository: RemoteRepository, name: str) -> Optional[RemoteBranch]:
        """Returns the branch tip, or None if the branch does not exist."""
        ...

    def find_open_pull_requests(self, repository: RemoteRepository, head: str, base: str) -> List[PullRequest]:
        """Lists open pull requests from `head` (``owner:branch``) into `base`."""
        ...

    def create_pull_request(
        self,
        repository: RemoteRepository,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> PullRequest:
        ...

    def set_description(self, repository: RemoteRepository, description: str) -> None:
        ...
