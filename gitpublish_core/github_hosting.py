"""GitHub implementation of the hosting port, built on PyGithub."""
import logging
from typing import Dict, List, Optional

from github import Auth, Github, GithubException, UnknownObjectException

from .credentials import CredentialConfig
from .exceptions import HostingError
from .hosting import Identity, PullRequest, RemoteBranch, RemoteRepository

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    return data.get("message", str(e))


def _hosting_error(action: str, e: GithubException) -> HostingError:
    return HostingError(f"Failed to {action}: {_error_message(e)}", status=e.status)


def _to_pull_request(pr) -> PullRequest:
    return PullRequest(
        number=pr.number,
        title=pr.title,
        html_url=pr.html_url,
        head=pr.head.label,
        base=pr.base.ref,
    )


class GitHubHosting:
    """`HostingClient` backed by a `github.Github` client."""

    def __init__(self, client: Github):
        self._github = client
        self._repos: Dict[str, object] = {}
        self._identity: Optional[Identity] = None

    @classmethod
    def from_credentials(cls, config: CredentialConfig, base_url: Optional[str] = None) -> "GitHubHosting":
        """
        Builds a client authenticated with a token or a username and password.

        Raises:
            MissingUsernameError, AmbiguousCredentialsError: `config` does not
                hold exactly one usable combination.
        """
        username, password = config.resolve()
        if config.token is not None:
            auth = Auth.Token(config.token.get_secret_value())
        else:
            auth = Auth.Login(username, password)
        return cls(Github(auth=auth, base_url=base_url or DEFAULT_BASE_URL))

    def _remember(self, gh_repo) -> RemoteRepository:
        repository = RemoteRepository(
            owner=gh_repo.owner.login,
            name=gh_repo.name,
            default_branch=gh_repo.default_branch,
            clone_url=gh_repo.clone_url,
            html_url=gh_repo.html_url,
            description=gh_repo.description,
        )
        self._repos[repository.full_name] = gh_repo
        return repository

    def _gh_repo(self, repository: RemoteRepository):
        gh_repo = self._repos.get(repository.full_name)
        if gh_repo is None:
            try:
                gh_repo = self._github.get_repo(repository.full_name)
            except GithubException as e:
                raise _hosting_error(f"load repository '{repository.full_name}'", e) from e
            self._repos[repository.full_name] = gh_repo
        return gh_repo

    def get_repository(self, full_name: str) -> Optional[RemoteRepository]:
        try:
            gh_repo = self._github.get_repo(full_name)
        except UnknownObjectException:
            return None
        except GithubException as e:
            raise _hosting_error(f"fetch repository '{full_name}'", e) from e
        return self._remember(gh_repo)

    def create_repository(self, name: str, organization: Optional[str] = None) -> RemoteRepository:
        try:
            if organization:
                owner = self._github.get_organization(organization)
            else:
                owner = self._github.get_user()
            gh_repo = owner.create_repo(name)
        except GithubException as e:
            raise _hosting_error(f"create repository '{name}'", e) from e
        return self._remember(gh_repo)

    def get_identity(self) -> Identity:
        if self._identity is None:
            try:
                user = self._github.get_user()
                login = user.login
                email = user.email
            except GithubException as e:
                raise _hosting_error("fetch the authenticated user", e) from e
            # Accounts with a private email still need a committer address.
            self._identity = Identity(login=login, email=email or f"{login}@users.noreply.github.com")
        return self._identity

    def get_branch(self, repository: RemoteRepository, name: str) -> Optional[RemoteBranch]:
        gh_repo = self._gh_repo(repository)
        try:
            branch = gh_repo.get_branch(name)
        except UnknownObjectException:
            return None
        except GithubException as e:
            raise _hosting_error(f"fetch branch '{name}' of '{repository.full_name}'", e) from e
        return RemoteBranch(name=branch.name, sha=branch.commit.sha)

    def find_open_pull_requests(self, repository: RemoteRepository, head: str, base: str) -> List[PullRequest]:
        gh_repo = self._gh_repo(repository)
        try:
            return [_to_pull_request(pr) for pr in gh_repo.get_pulls(state="open", head=head, base=base)]
        except GithubException as e:
            raise _hosting_error(f"list pull requests of '{repository.full_name}'", e) from e

    def create_pull_request(
        self,
        repository: RemoteRepository,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> PullRequest:
        gh_repo = self._gh_repo(repository)
        try:
            pr = gh_repo.create_pull(title=title, body=body, head=head, base=base)
        except GithubException as e:
            raise _hosting_error(f"create pull request '{title}'", e) from e
        return _to_pull_request(pr)

    def set_description(self, repository: RemoteRepository, description: str) -> None:
        gh_repo = self._gh_repo(repository)
        try:
            gh_repo.edit(description=description)
        except GithubException as e:
            raise _hosting_error(f"update description of '{repository.full_name}'", e) from e
