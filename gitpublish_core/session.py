from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import pygit2

from .hosting import Identity, PullRequest, RemoteRepository


@dataclass
class Session:
    """
    State threaded through one invocation.

    The operation handed a session may edit files under `working_directory`
    and set the optional fields below; everything above them is fixed once the
    workspace has been reconciled.

    Attributes:
        commit_message: Overrides the synthesized "Changed ..." message.
        pull_request_message: Title, optionally followed by a newline and a
            body. No pull request is opened unless this is set.
        new_repository_description: Applied only when the remote repository
            was created by this invocation.
        repository_description: Applied on every run.
        changed_files: Paths or patterns to stage. None stages everything.
    """
    organization: str
    remote_repository: RemoteRepository
    local_repository: pygit2.Repository
    branch_name: str
    base_name: str
    working_directory: Path
    repo_was_created: bool
    identity: Identity

    commit_message: Optional[str] = None
    pull_request_message: Optional[str] = None
    new_repository_description: Optional[str] = None
    repository_description: Optional[str] = None
    changed_files: Optional[List[str]] = None

    # Filled in by publish_session.
    committed: Optional[str] = field(default=None, init=False)
    pull_request: Optional[PullRequest] = field(default=None, init=False)
    description_applied: Optional[str] = field(default=None, init=False)
