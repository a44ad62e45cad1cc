import subprocess
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from gitpublish_core.config import RunSettings, configure_logging, github_endpoint, load_run_settings
from gitpublish_core.credentials import CredentialConfig
from gitpublish_core.exceptions import (
    CommandFailedError,
    CredentialError,
    GitPublishError,
    PushError,
)
from gitpublish_core.github_hosting import GitHubHosting
from gitpublish_core.workflow import open_session, run_session


def create_hosting(credentials: CredentialConfig):
    return GitHubHosting.from_credentials(credentials, base_url=github_endpoint())


def run_command(command: str, cwd: Path) -> None:
    """Runs `command` through the shell inside `cwd`."""
    completed = subprocess.run(command, shell=True, cwd=str(cwd))
    if completed.returncode != 0:
        raise CommandFailedError(
            f"Command '{command}' exited with status {completed.returncode}.",
            returncode=completed.returncode,
        )


def _pick(cli_value, settings_value):
    return cli_value if cli_value is not None else settings_value


def _settings(config_path) -> RunSettings:
    if config_path is None:
        return RunSettings()
    return load_run_settings(config_path)


def _report_error(e: Exception) -> None:
    if isinstance(e, CredentialError):
        click.echo(f"Credential error: {e}", err=True)
        click.echo("Hint: set GITHUB_OAUTH, or GITHUB_LOGIN and GITHUB_PASSWORD.", err=True)
    elif isinstance(e, PushError):
        click.echo(f"Error during push: {e}", err=True)
        for refname, message in sorted(e.rejected_refs.items()):
            click.echo(f"  {refname}: {message}", err=True)
    else:
        click.echo(f"Error: {e}", err=True)


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log git and API steps in detail.")
def cli(verbose):
    """gitpublish: reconcile a GitHub repository checkout, apply a change and propose it."""
    configure_logging(verbose)


@cli.command()
@click.argument("organization", required=False)
@click.argument("repository", required=False)
@click.option("--branch", default=None, help="Branch to work on. Defaults to the repository default branch.")
@click.option("--base", default=None, help="Branch to propose the change against.")
@click.option("--workdir", default=None, type=click.Path(file_okay=False), help="Working copy location.")
@click.option("--exec", "command", default=None, help="Shell command that edits the working copy.")
@click.option("-m", "--message", "commit_message", default=None, help="Commit message. Synthesized from the changed files if omitted.")
@click.option("--pr-message", default=None, help="Pull request title; text after the first newline becomes the body.")
@click.option("--description", default=None, help="Repository description to set.")
@click.option("--new-description", default=None, help="Repository description to set only if the repository is created.")
@click.option(
    "-i",
    "--include",
    "include_paths",
    multiple=True,
    help="File, directory or glob to stage. Can be used multiple times. If not provided, all changes are staged.",
)
@click.option("--no-create", is_flag=True, default=False, help="Fail instead of creating a missing repository.")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="YAML run settings.")
@click.pass_context
def run(ctx, organization, repository, branch, base, workdir, command, commit_message, pr_message,
        description, new_description, include_paths, no_create, config_path):
    """Reconciles the working copy, runs --exec in it, then commits, pushes and opens a pull request."""
    try:
        settings = _settings(config_path)
        organization = _pick(organization, settings.organization)
        repository = _pick(repository, settings.repository)
        if not organization or not repository:
            raise click.UsageError("ORGANIZATION and REPOSITORY are required (as arguments or in --config).")

        command = _pick(command, settings.command)
        changed_files = list(include_paths) if include_paths else settings.changed_files
        credentials = CredentialConfig.from_env()

        def operation(session):
            if command:
                click.echo(f"Running '{command}' in {session.working_directory}")
                run_command(command, session.working_directory)
            session.commit_message = _pick(commit_message, settings.commit_message)
            session.pull_request_message = _pick(pr_message, settings.pull_request_message)
            session.repository_description = _pick(description, settings.repository_description)
            session.new_repository_description = _pick(new_description, settings.new_repository_description)
            session.changed_files = changed_files
            return session

        session = run_session(
            organization,
            repository,
            operation,
            branch=_pick(branch, settings.branch),
            base=_pick(base, settings.base),
            workdir=_pick(workdir, settings.workdir),
            hosting=create_hosting(credentials),
            credentials=credentials,
            create_missing=settings.create_missing and not no_create,
        )
    except GitPublishError as e:
        _report_error(e)
        ctx.exit(1)

    table = Table(title=f"{organization}/{repository}")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Branch", session.branch_name)
    table.add_row("Base", session.base_name)
    table.add_row("Working copy", str(session.working_directory))
    table.add_row("Created", "yes" if session.repo_was_created else "no")
    table.add_row("Commit", session.committed[:7] if session.committed else "No changes")
    table.add_row("Pull request", session.pull_request.html_url if session.pull_request else "-")
    if session.description_applied is not None:
        table.add_row("Description", session.description_applied)
    Console().print(table)


@cli.command()
@click.argument("organization")
@click.argument("repository")
@click.option("--branch", default=None, help="Branch to check out. Defaults to the repository default branch.")
@click.option("--base", default=None, help="Branch to start from if the branch does not exist yet.")
@click.option("--workdir", default=None, type=click.Path(file_okay=False), help="Working copy location.")
@click.option("--no-create", is_flag=True, default=False, help="Fail instead of creating a missing repository.")
@click.pass_context
def prepare(ctx, organization, repository, branch, base, workdir, no_create):
    """Reconciles the working copy with the remote without publishing anything."""
    try:
        credentials = CredentialConfig.from_env()
        session = open_session(
            organization,
            repository,
            branch=branch,
            base=base,
            workdir=workdir,
            hosting=create_hosting(credentials),
            credentials=credentials,
            create_missing=not no_create,
        )
    except GitPublishError as e:
        _report_error(e)
        ctx.exit(1)

    click.echo(f"{session.working_directory} is on {session.branch_name} (base {session.base_name})")


if __name__ == "__main__":
    cli()
