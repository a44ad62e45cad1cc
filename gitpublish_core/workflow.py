"""Invocation entry point.

    run_session("acme", "infra", bump_versions, branch="bump", base="main")

resolves (or creates) acme/infra, reconciles ./acme/infra/bump with the
remote, calls ``bump_versions(session)``, then commits, pushes and opens or
reuses a pull request. The operation's return value is returned.
"""
import logging
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from .config import LogPort, github_endpoint
from .credentials import CredentialConfig
from .github_hosting import GitHubHosting
from .hosting import HostingClient
from .metadata import MetadataUpdater
from .publisher import ChangePublisher
from .pull_requests import PullRequestReconciler
from .resolver import RepoResolver
from .session import Session
from .workspace import WorkspaceReconciler

log = logging.getLogger(__name__)

T = TypeVar("T")


def session_logger(organization: str, repository: str, logger: Optional[LogPort] = None) -> logging.LoggerAdapter:
    """Log port for one invocation; records carry the repository full name."""
    return logging.LoggerAdapter(logger or log, {"repository": f"{organization}/{repository}"})


def _hosting(hosting: Optional[HostingClient], credentials: CredentialConfig) -> HostingClient:
    if hosting is not None:
        return hosting
    return GitHubHosting.from_credentials(credentials, base_url=github_endpoint())


def open_session(
    organization: str,
    repository: str,
    *,
    branch: Optional[str] = None,
    base: Optional[str] = None,
    workdir: Optional[Union[str, Path]] = None,
    hosting: Optional[HostingClient] = None,
    credentials: Optional[CredentialConfig] = None,
    create_missing: bool = True,
    logger: Optional[LogPort] = None,
) -> Session:
    """Resolves the remote repository and reconciles the local working copy."""
    credentials = credentials or CredentialConfig.from_env()
    hosting = _hosting(hosting, credentials)
    logger = logger or session_logger(organization, repository)

    resolution = RepoResolver(hosting, logger=logger).resolve(
        organization,
        repository,
        branch=branch,
        base=base,
        working_directory=workdir,
        create_missing=create_missing,
    )
    local = WorkspaceReconciler(hosting, credentials, logger=logger).reconcile(resolution)

    return Session(
        organization=organization,
        remote_repository=resolution.remote_repository,
        local_repository=local,
        branch_name=resolution.branch_name,
        base_name=resolution.base_name,
        working_directory=resolution.working_directory,
        repo_was_created=resolution.repo_was_created,
        identity=resolution.identity,
    )


def publish_session(
    session: Session,
    *,
    hosting: Optional[HostingClient] = None,
    credentials: Optional[CredentialConfig] = None,
    logger: Optional[LogPort] = None,
) -> Session:
    """Commits and pushes the session's changes, then settles the pull request and description."""
    credentials = credentials or CredentialConfig.from_env()
    hosting = _hosting(hosting, credentials)
    logger = logger or session_logger(session.organization, session.remote_repository.name)

    oid = ChangePublisher(credentials, logger=logger).publish(
        session.local_repository,
        session.branch_name,
        session.identity,
        changed_files=session.changed_files,
        message=session.commit_message,
    )
    session.committed = str(oid) if oid is not None else None

    session.pull_request = PullRequestReconciler(hosting, logger=logger).reconcile(
        session.remote_repository,
        session.organization,
        session.branch_name,
        session.base_name,
        session.pull_request_message,
    )

    session.description_applied = MetadataUpdater(hosting, logger=logger).update(
        session.remote_repository,
        session.repo_was_created,
        new_repository_description=session.new_repository_description,
        repository_description=session.repository_description,
    )
    return session


def run_session(
    organization: str,
    repository: str,
    operation: Callable[[Session], T],
    *,
    branch: Optional[str] = None,
    base: Optional[str] = None,
    workdir: Optional[Union[str, Path]] = None,
    hosting: Optional[HostingClient] = None,
    credentials: Optional[CredentialConfig] = None,
    create_missing: bool = True,
    logger: Optional[LogPort] = None,
) -> T:
    """
    Reconciles the working copy, applies `operation` and publishes the result.

    Args:
        organization: Repository owner (organization or user login).
        repository: Repository name.
        operation: Called once with the `Session`; may edit the working tree
            and set the session's message, description and file fields.
        branch: Branch to work on. Defaults to the remote default branch.
        base: Branch to propose the change against. Defaults to the remote
            default branch.
        workdir: Local checkout path. Defaults to "{organization}/{repository}/{branch}".
        hosting: Hosting client. Defaults to GitHub, authenticated with `credentials`.
        credentials: Defaults to `CredentialConfig.from_env()`.
        create_missing: Create the remote repository if it does not exist.
        logger: Log port; defaults to a per-invocation adapter over this module's logger.

    Returns:
        Whatever `operation` returned.
    """
    credentials = credentials or CredentialConfig.from_env()
    hosting = _hosting(hosting, credentials)
    logger = logger or session_logger(organization, repository)

    session = open_session(
        organization,
        repository,
        branch=branch,
        base=base,
        workdir=workdir,
        hosting=hosting,
        credentials=credentials,
        create_missing=create_missing,
        logger=logger,
    )

    logger.info("Applying operation")
    result = operation(session)

    publish_session(session, hosting=hosting, credentials=credentials, logger=logger)
    return result
