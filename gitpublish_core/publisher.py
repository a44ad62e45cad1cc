import fnmatch
import logging
from typing import Iterable, List, Optional, Sequence

import pygit2
from pygit2.enums import FileStatus

from .config import LogPort
from .credentials import CredentialAdapter, CredentialConfig
from .exceptions import PushError
from .hosting import Identity
from .workspace import GIT_FAILURES, ORIGIN

log = logging.getLogger(__name__)

COMMIT_SUMMARY_LIMIT = 5

STAGED_FLAGS = (
    FileStatus.INDEX_NEW
    | FileStatus.INDEX_MODIFIED
    | FileStatus.INDEX_DELETED
    | FileStatus.INDEX_RENAMED
    | FileStatus.INDEX_TYPECHANGE
)


def build_commit_message(changes: Sequence[str], n: int = COMMIT_SUMMARY_LIMIT) -> str:
    """Summarizes changed paths, listing at most `n` of them."""
    if not changes:
        return "No changes"
    if len(changes) == 1:
        return f"Changed {changes[0]}"
    if len(changes) <= n:
        return "Changed:\n" + "\n".join(changes)
    return "Changed:\n" + "\n".join(changes[:n]) + f"\n...and {len(changes) - n} files..."


def matches_patterns(path: str, patterns: Optional[Iterable[str]]) -> bool:
    """True if `path` is selected by any pattern: exact path, directory prefix or glob."""
    if patterns is None:
        return True
    for pattern in patterns:
        pattern = pattern.strip().rstrip("/")
        if pattern in ("", "."):
            return True
        if path == pattern or path.startswith(pattern + "/") or fnmatch.fnmatch(path, pattern):
            return True
    return False


def stage_changes(repo: pygit2.Repository, changed_files: Optional[List[str]] = None) -> None:
    """
    Stages new, modified and deleted files, optionally limited to `changed_files`.

    The first pass adds everything present in the working tree; the second,
    update-only pass removes tracked files that no longer exist on disk.
    """
    index = repo.index
    index.read()
    if changed_files is None:
        index.add_all()
    else:
        index.add_all(list(changed_files))
    index.write()

    for path, flags in repo.status().items():
        if flags & FileStatus.WT_DELETED and matches_patterns(path, changed_files):
            index.remove(path)
    index.write()


def staged_changes(repo: pygit2.Repository) -> List[str]:
    """Paths whose staged content differs from HEAD, sorted."""
    return sorted(path for path, flags in repo.status().items() if flags & STAGED_FLAGS)


class ChangePublisher:
    """Commits the staged working tree as the invoking identity and pushes the branch."""

    def __init__(self, credentials: CredentialConfig, logger: Optional[LogPort] = None):
        self.credentials = credentials
        self.logger = logger or log

    def commit(
        self,
        repo: pygit2.Repository,
        identity: Identity,
        changed_files: Optional[List[str]] = None,
        message: Optional[str] = None,
    ) -> Optional[pygit2.Oid]:
        """Stages and commits. Returns the new commit id, or None when nothing changed."""
        if changed_files is None:
            self.logger.info("Adding all changed files")
        else:
            self.logger.info("Adding %s", ", ".join(changed_files))
        stage_changes(repo, changed_files)

        changes = staged_changes(repo)
        if not changes:
            return None

        if len(changes) == 1:
            self.logger.info("Committing %s", changes[0])
        else:
            self.logger.info("Committing %d files", len(changes))

        signature = identity.signature()
        tree = repo.index.write_tree()
        parents = [] if repo.head_is_unborn else [repo.head.target]
        return repo.create_commit(
            "HEAD",
            signature,
            signature,
            message or build_commit_message(changes),
            tree,
            parents,
        )

    def push(self, repo: pygit2.Repository, branch_name: str) -> None:
        """
        Pushes `branch_name` to `origin`.

        Raises:
            PushError: The transport failed or the remote rejected the update.
        """
        self.logger.info("Pushing changes")
        callbacks = CredentialAdapter(self.credentials)
        refspec = f"refs/heads/{branch_name}:refs/heads/{branch_name}"
        try:
            repo.remotes[ORIGIN].push([refspec], callbacks=callbacks)
        except GIT_FAILURES as e:
            raise PushError(f"Failed to push branch '{branch_name}' to '{ORIGIN}': {e}") from e
        if callbacks.rejected_refs:
            raise PushError(
                f"Remote rejected push of branch '{branch_name}'.",
                rejected_refs=dict(callbacks.rejected_refs),
            )

    def publish(
        self,
        repo: pygit2.Repository,
        branch_name: str,
        identity: Identity,
        changed_files: Optional[List[str]] = None,
        message: Optional[str] = None,
    ) -> Optional[pygit2.Oid]:
        """Commits if anything changed, then always pushes.

        Pushing without a new commit delivers commits left behind by a run
        that was interrupted before its push.
        """
        oid = self.commit(repo, identity, changed_files=changed_files, message=message)
        self.push(repo, branch_name)
        return oid
