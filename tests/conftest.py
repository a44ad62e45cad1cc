import pytest
import pygit2
from pathlib import Path
from typing import Dict, List, Optional
from click.testing import CliRunner
from pygit2.enums import FileMode

from gitpublish_core.credentials import CredentialConfig
from gitpublish_core.hosting import Identity, PullRequest, RemoteBranch, RemoteRepository

TEST_LOGIN = "octocat"
TEST_EMAIL = "octocat@example.com"


class FakeHosting:
    """
    In-process hosting platform. Every repository is a bare pygit2 repository
    under `root`, so clones, fetches and pushes go through real git transport
    while repository, branch and pull-request lookups read that same state.
    """

    def __init__(self, root: Path, login: str = TEST_LOGIN, email: str = TEST_EMAIL):
        self.root = root
        self.identity = Identity(login=login, email=email)
        self.repositories: Dict[str, RemoteRepository] = {}
        self.pull_requests: Dict[str, List[PullRequest]] = {}
        self.pull_request_bodies: Dict[int, str] = {}
        self.descriptions: Dict[str, str] = {}
        self.created: List[tuple] = []
        self.calls: List[str] = []

    def add_repository(self, owner: str, name: str, default_branch: str = "main") -> RemoteRepository:
        path = self.root / owner / f"{name}.git"
        path.parent.mkdir(parents=True, exist_ok=True)
        pygit2.init_repository(str(path), bare=True, initial_head=default_branch)
        repository = RemoteRepository(
            owner=owner,
            name=name,
            default_branch=default_branch,
            clone_url=str(path),
            html_url=f"https://github.test/{owner}/{name}",
        )
        self.repositories[repository.full_name] = repository
        return repository

    def bare(self, repository: RemoteRepository) -> pygit2.Repository:
        return pygit2.Repository(repository.clone_url)

    def tip(self, repository: RemoteRepository, branch: str) -> Optional[str]:
        ref = self.bare(repository).references.get(f"refs/heads/{branch}")
        return str(ref.target) if ref is not None else None

    def commit_files(self, repository: RemoteRepository, branch: str, files: Dict[str, str], message: str) -> str:
        """Commits top-level `files` straight onto `branch` of the bare repository."""
        bare = self.bare(repository)
        refname = f"refs/heads/{branch}"
        existing = bare.references.get(refname)
        if existing is None:
            builder = bare.TreeBuilder()
            parents = []
        else:
            parent = existing.peel(pygit2.Commit)
            builder = bare.TreeBuilder(parent.tree)
            parents = [parent.id]
        for filename, content in files.items():
            builder.insert(filename, bare.create_blob(content.encode()), FileMode.BLOB)
        signature = pygit2.Signature("Seeder", "seeder@example.com", 946684800, 0)
        return str(bare.create_commit(refname, signature, signature, message, builder.write(), parents))

    def file_at(self, repository: RemoteRepository, branch: str, filename: str) -> Optional[str]:
        ref = self.bare(repository).references.get(f"refs/heads/{branch}")
        if ref is None:
            return None
        tree = ref.peel(pygit2.Commit).tree
        if filename not in tree:
            return None
        return tree[filename].data.decode()

    # HostingClient

    def get_repository(self, full_name: str) -> Optional[RemoteRepository]:
        self.calls.append("get_repository")
        return self.repositories.get(full_name)

    def create_repository(self, name: str, organization: Optional[str] = None) -> RemoteRepository:
        self.calls.append("create_repository")
        self.created.append((name, organization))
        return self.add_repository(organization or self.identity.login, name)

    def get_identity(self) -> Identity:
        self.calls.append("get_identity")
        return self.identity

    def get_branch(self, repository: RemoteRepository, name: str) -> Optional[RemoteBranch]:
        self.calls.append("get_branch")
        sha = self.tip(repository, name)
        return RemoteBranch(name=name, sha=sha) if sha is not None else None

    def find_open_pull_requests(self, repository: RemoteRepository, head: str, base: str) -> List[PullRequest]:
        self.calls.append("find_open_pull_requests")
        return [
            pr for pr in self.pull_requests.get(repository.full_name, [])
            if pr.head == head and pr.base == base
        ]

    def create_pull_request(self, repository: RemoteRepository, title: str, body: str, head: str, base: str) -> PullRequest:
        self.calls.append("create_pull_request")
        existing = self.pull_requests.setdefault(repository.full_name, [])
        number = len(existing) + 1
        pull_request = PullRequest(
            number=number,
            title=title,
            html_url=f"{repository.html_url}/pull/{number}",
            head=head,
            base=base,
        )
        existing.append(pull_request)
        self.pull_request_bodies[number] = body
        return pull_request

    def set_description(self, repository: RemoteRepository, description: str) -> None:
        self.calls.append("set_description")
        self.descriptions[repository.full_name] = description


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def hosting(tmp_path: Path) -> FakeHosting:
    return FakeHosting(tmp_path / "remotes")


@pytest.fixture
def credentials() -> CredentialConfig:
    return CredentialConfig(token="test-token")


@pytest.fixture
def seeded_remote(hosting: FakeHosting) -> RemoteRepository:
    """acme/widgets with README.md and config.txt on main."""
    repository = hosting.add_repository("acme", "widgets")
    hosting.commit_files(
        repository,
        "main",
        {"README.md": "# Widgets\n", "config.txt": "size = 1\n"},
        "Initial import",
    )
    return repository


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    return tmp_path / "work" / "acme" / "widgets"


@pytest.fixture
def make_commit():
    """Returns a helper that writes `filename` in a working copy and commits it on HEAD."""
    def _make_commit(repo: pygit2.Repository, filename: str, content: str, message: str) -> pygit2.Oid:
        (Path(repo.workdir) / filename).write_text(content)
        repo.index.add(filename)
        repo.index.write()
        signature = pygit2.Signature("Test Author", "test@example.com", 946684800, 0)
        parents = [] if repo.head_is_unborn else [repo.head.target]
        return repo.create_commit("HEAD", signature, signature, message, repo.index.write_tree(), parents)
    return _make_commit
