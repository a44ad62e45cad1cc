import logging
from typing import Optional, Tuple

from .config import LogPort
from .exceptions import BranchNotFoundError
from .hosting import HostingClient, PullRequest, RemoteRepository

log = logging.getLogger(__name__)


def split_pull_request_message(message: str) -> Tuple[str, str]:
    """Splits on the first newline into (title, body)."""
    title, _, body = message.partition("\n")
    return title, body


class PullRequestReconciler:
    """Opens a pull request from branch into base unless one is already open."""

    def __init__(self, hosting: HostingClient, logger: Optional[LogPort] = None):
        self.hosting = hosting
        self.logger = logger or log

    def reconcile(
        self,
        repository: RemoteRepository,
        organization: str,
        branch_name: str,
        base_name: str,
        message: Optional[str],
    ) -> Optional[PullRequest]:
        """
        Returns the open pull request (found or created), or None when the
        branch matches its base, no message was given, or the base branch
        does not exist on the remote.

        Raises:
            BranchNotFoundError: `branch_name` is not on the remote after the push.
        """
        branch = self.hosting.get_branch(repository, branch_name)
        if branch is None:
            raise BranchNotFoundError(f"Branch '{branch_name}' not found on '{repository.full_name}'.")

        base = self.hosting.get_branch(repository, base_name)
        if base is None:
            self.logger.warning(
                "Base branch %s not found on %s, not proposing %s",
                base_name, repository.full_name, branch_name,
            )
            return None

        if branch.sha == base.sha:
            if branch_name != base_name:
                self.logger.info("No changes in branch %s relatively to %s as a result", branch_name, base_name)
            return None

        if message is None:
            return None

        head = f"{organization}:{branch_name}"
        self.logger.info("Checking if opened pull request from %s to %s exists", branch_name, base_name)
        existing = self.hosting.find_open_pull_requests(repository, head=head, base=base_name)
        if existing:
            self.logger.info("Pull request: %s", existing[0].html_url)
            return existing[0]

        title, body = split_pull_request_message(message)
        self.logger.info("Creating pull request: %s", title)
        pull_request = self.hosting.create_pull_request(repository, title=title, body=body, head=head, base=base_name)
        self.logger.info("Pull request: %s", pull_request.html_url)
        return pull_request
