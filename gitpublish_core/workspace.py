"""Bring a local working copy into agreement with the remote branch.

Local state never wins: leftovers from earlier runs are hard-reset and
cleaned away, and a working directory that cannot be opened is wiped and
cloned again.
"""
import logging
import shutil
from pathlib import Path
from typing import Optional

import pygit2
from pygit2.enums import CheckoutStrategy, FileStatus, RepositoryOpenFlag, ResetMode

from .config import LogPort
from .credentials import CredentialAdapter, CredentialConfig
from .exceptions import BranchNotFoundError, CloneError, FetchError, GitPublishError, WorkspaceUnusableError
from .hosting import HostingClient, Identity, RemoteRepository
from .resolver import Resolution

log = logging.getLogger(__name__)

ORIGIN = "origin"
INITIAL_COMMIT_MESSAGE = "Initial commit"

# What pygit2 raises for missing paths, refs and malformed repositories.
GIT_FAILURES = (pygit2.GitError, KeyError, ValueError, OSError)


def ensure_origin(repo: pygit2.Repository, url: str) -> None:
    """Points the `origin` remote at `url`, creating it if needed."""
    if ORIGIN in [remote.name for remote in repo.remotes]:
        repo.remotes.set_url(ORIGIN, url)
    else:
        repo.remotes.create(ORIGIN, url)


def remove_untracked_files(repo: pygit2.Repository) -> int:
    """Deletes untracked, non-ignored files from the working tree. Returns how many."""
    workdir = Path(repo.workdir)
    removed = 0
    for path, flags in repo.status().items():
        if flags & FileStatus.WT_NEW:
            _remove_path(workdir / path)
            removed += 1
    return removed


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _is_stale_workspace(path: Path) -> bool:
    """True for an empty directory or one holding a repository from an earlier run."""
    if not path.is_dir() or path.is_symlink():
        return False
    return (path / ".git").exists() or not any(path.iterdir())


class WorkspaceReconciler:
    """Produces a working copy whose HEAD is the remote tip of the session branch."""

    def __init__(
        self,
        hosting: HostingClient,
        credentials: CredentialConfig,
        logger: Optional[LogPort] = None,
    ):
        self.hosting = hosting
        self.credentials = credentials
        self.logger = logger or log

    def _callbacks(self) -> CredentialAdapter:
        return CredentialAdapter(self.credentials)

    def reconcile(self, resolution: Resolution) -> pygit2.Repository:
        workdir = resolution.working_directory
        remote = resolution.remote_repository

        if resolution.repo_was_created:
            return self.initialize(workdir, remote, resolution.branch_name, resolution.identity)

        if self.hosting.get_branch(remote, resolution.branch_name) is not None:
            source = resolution.branch_name
        elif self.hosting.get_branch(remote, resolution.base_name) is not None:
            source = resolution.base_name
        elif self.hosting.get_branch(remote, remote.default_branch) is not None:
            raise BranchNotFoundError(
                f"Neither branch '{resolution.branch_name}' nor base '{resolution.base_name}' "
                f"exists on '{remote.full_name}'."
            )
        else:
            # Even the default branch is missing: an earlier run created the
            # repository but never pushed to it.
            self.logger.warning(
                "%s has no history yet, starting %s from an empty initial commit",
                remote.full_name, resolution.branch_name,
            )
            return self.initialize(workdir, remote, resolution.branch_name, resolution.identity)

        repo = self.open_or_clone(workdir, remote, resolution.branch_name)
        self.track(repo, resolution.branch_name, source)
        return repo

    def open_existing(self, workdir: Path, url: str, branch_name: str) -> pygit2.Repository:
        """
        Opens the repository at exactly `workdir`, repoints `origin`, hard-resets
        to `branch_name` and deletes untracked files.

        Raises:
            WorkspaceUnusableError: There is no usable repository at `workdir`
                or it cannot be reset to `branch_name`.
        """
        try:
            repo = pygit2.Repository(str(workdir), flags=RepositoryOpenFlag.NO_SEARCH)
        except GIT_FAILURES as e:
            raise WorkspaceUnusableError(f"No repository at '{workdir}': {e}") from e

        if repo.is_bare or repo.workdir is None:
            raise WorkspaceUnusableError(f"Repository at '{workdir}' has no working tree.")

        self.logger.info("Opened existing repository at %s", workdir)
        try:
            ensure_origin(repo, url)
            self.logger.info("Resetting it")
            target = repo.revparse_single(branch_name).peel(pygit2.Commit)
            repo.reset(target.id, ResetMode.HARD)
            self.logger.info("Cleaning it")
            remove_untracked_files(repo)
        except GIT_FAILURES as e:
            raise WorkspaceUnusableError(f"Cannot reset '{workdir}' to '{branch_name}': {e}") from e
        return repo

    def clone(self, url: str, workdir: Path) -> pygit2.Repository:
        """
        Clones `url` into `workdir`. A failed clone wipes `workdir` and is
        retried once.

        Raises:
            CloneError: The second attempt failed too.
        """
        workdir.parent.mkdir(parents=True, exist_ok=True)

        self.logger.info("Cloning %s to %s", url, workdir)
        try:
            return pygit2.clone_repository(url, str(workdir), callbacks=self._callbacks())
        except GIT_FAILURES as e:
            self.logger.warning("Deleting working directory because of error: %s", e)
            _remove_path(workdir)

        self.logger.info("Cloning %s to %s", url, workdir)
        try:
            return pygit2.clone_repository(url, str(workdir), callbacks=self._callbacks())
        except GIT_FAILURES as e:
            raise CloneError(f"Failed to clone '{url}' into '{workdir}': {e}") from e

    def open_or_clone(self, workdir: Path, remote: RemoteRepository, branch_name: str) -> pygit2.Repository:
        try:
            return self.open_existing(workdir, remote.clone_url, branch_name)
        except WorkspaceUnusableError as e:
            self.logger.debug("Existing working copy unusable: %s", e)
            return self.clone(remote.clone_url, workdir)

    def fetch(self, repo: pygit2.Repository, branch_name: str) -> str:
        """Force-fetches `branch_name` into its remote-tracking ref and returns that ref's name."""
        tracking_ref = f"refs/remotes/{ORIGIN}/{branch_name}"
        refspec = f"+refs/heads/{branch_name}:{tracking_ref}"
        self.logger.info("Fetching %s", branch_name)
        try:
            repo.remotes[ORIGIN].fetch([refspec], callbacks=self._callbacks())
        except GIT_FAILURES as e:
            raise FetchError(f"Failed to fetch '{branch_name}' from '{ORIGIN}': {e}") from e
        return tracking_ref

    def track(self, repo: pygit2.Repository, branch_name: str, source_name: str) -> pygit2.Commit:
        """
        Points local `branch_name` at the fetched tip of `source_name`, checks it
        out and hard-resets the working tree to it.
        """
        tracking_ref = self.fetch(repo, source_name)

        if source_name == branch_name:
            self.logger.info("Checking out %s", branch_name)
        else:
            self.logger.info("Checking out %s from %s", branch_name, source_name)
        try:
            target = repo.lookup_reference(tracking_ref).peel(pygit2.Commit)
            # libgit2 refuses to force-move the branch HEAD is on; detach first.
            repo.set_head(target.id)
            repo.branches.local.create(branch_name, target, force=True)
            repo.checkout(f"refs/heads/{branch_name}", strategy=CheckoutStrategy.FORCE)
            repo.reset(target.id, ResetMode.HARD)
        except GIT_FAILURES as e:
            raise GitPublishError(f"Failed to check out '{branch_name}' from '{source_name}': {e}") from e
        return target

    def initialize(
        self,
        workdir: Path,
        remote: RemoteRepository,
        branch_name: str,
        identity: Identity,
    ) -> pygit2.Repository:
        """
        Creates a local repository for a remote with no history yet.

        Raises:
            WorkspaceUnusableError: `workdir` holds files but no repository, so
                it is not a leftover of an earlier run.
        """
        if workdir.exists():
            if not _is_stale_workspace(workdir):
                raise WorkspaceUnusableError(
                    f"Refusing to replace '{workdir}': it is not empty and holds no repository."
                )
            self.logger.warning("Removing stale working directory %s", workdir)
            _remove_path(workdir)
        workdir.parent.mkdir(parents=True, exist_ok=True)

        self.logger.info("Initializing %s on branch %s", workdir, branch_name)
        repo = pygit2.init_repository(str(workdir), initial_head=branch_name)
        ensure_origin(repo, remote.clone_url)

        signature = identity.signature()
        empty_tree = repo.TreeBuilder().write()
        repo.create_commit("HEAD", signature, signature, INITIAL_COMMIT_MESSAGE, empty_tree, [])
        return repo
