"""CLI entrypoints for scratch-git."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from scratch_git.app import AppConfigError, initialize_config, open_manager, transport_options
from scratch_git.config import ClientConfig, load_config
from scratch_git.manager import ProjectManager
from scratch_git.models import GitDetails, RepoStatusCode
from scratch_git.operations import check_remote, clone_repo, diff, uninstall
from scratch_git.project import Project
from scratch_git.transport.base import ScratchGitError, ServerFault
from scratch_git.util.logging import configure_logging
from scratch_git.util.observability import ObservabilityManager, create_observability_manager

app = typer.Typer(help="Version control for block-based projects, via the scratch-git server.")

T = TypeVar("T")

PROJECT_ARGUMENT = typer.Argument(
    None,
    help="Project name. Defaults to $SCRATCH_GIT_PROJECT.",
    show_default=False,
)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING). Overrides the config file.",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file or directory containing one.",
    ),
) -> None:
    """Configure CLI-level options."""

    try:
        config = load_config(config_path)
    except (ValueError, RuntimeError) as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    configure_logging(log_level or config.log_level)
    ctx.obj = config


@app.command()
def init(directory: Path = typer.Argument(Path("."))) -> None:
    """Write a default configuration file."""

    try:
        config_path = initialize_config(directory)
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(f"Created configuration at {config_path}")


@app.command()
def exists(ctx: typer.Context, project: Optional[str] = PROJECT_ARGUMENT) -> None:
    """Report whether a project is linked to version control."""

    linked = _with_project(ctx, project, lambda p: p.exists())
    typer.echo("linked" if linked else "not linked")
    if not linked:
        raise typer.Exit(code=1)


@app.command("log")
def log_command(ctx: typer.Context, project: Optional[str] = PROJECT_ARGUMENT) -> None:
    """List the project's commits."""

    commits = _with_project(ctx, project, lambda p: p.get_commits())
    if not commits:
        typer.echo("No commits yet.")
    for commit in commits:
        typer.echo(f"{commit.commit[:7]}  {' '.join(commit.short_date)}  {commit.subject}")


@app.command()
def sprites(ctx: typer.Context, project: Optional[str] = PROJECT_ARGUMENT) -> None:
    """List sprites changed since the last commit."""

    changed = _with_project(ctx, project, lambda p: p.get_changed_sprites())
    if not changed:
        typer.echo("No changed sprites.")
    for sprite in changed:
        typer.echo(sprite.format())


@app.command()
def status(ctx: typer.Context, project: Optional[str] = PROJECT_ARGUMENT) -> None:
    """Show commit readiness and how many commits are unpushed."""

    repo_status = _with_project(ctx, project, lambda p: p.repo_status())
    if isinstance(repo_status.status, RepoStatusCode):
        label = repo_status.status.name.lower().replace("_", " ")
    else:
        label = f"unknown (code {repo_status.status})"
    typer.echo(f"Status: {label}")
    typer.echo(f"Commits ahead: {repo_status.commits_ahead}")


@app.command()
def commit(ctx: typer.Context, project: Optional[str] = PROJECT_ARGUMENT) -> None:
    """Commit the project's latest save."""

    result = _with_project(ctx, project, lambda p: p.commit())
    if not result.success:
        typer.echo(f"Nothing committed (code {result.code}).")
        raise typer.Exit(code=1)
    typer.echo(result.message or "Committed.")


@app.command()
def push(ctx: typer.Context, project: Optional[str] = PROJECT_ARGUMENT) -> None:
    """Push commits to the configured remote."""

    typer.echo(_with_project(ctx, project, lambda p: p.push()).value)


@app.command()
def pull(ctx: typer.Context, project: Optional[str] = PROJECT_ARGUMENT) -> None:
    """Pull commits from the configured remote."""

    typer.echo(_with_project(ctx, project, lambda p: p.pull()).value)


@app.command()
def details(ctx: typer.Context, project: Optional[str] = PROJECT_ARGUMENT) -> None:
    """Show the remote repository and author identity."""

    git_details = _with_project(ctx, project, lambda p: p.get_details())
    typer.echo(f"Repository: {git_details.repository}")
    typer.echo(f"Name: {git_details.username}")
    typer.echo(f"Email: {git_details.email}")


@app.command("set-details")
def set_details_command(
    ctx: typer.Context,
    repository: str = typer.Option(..., "--repository", "-r", help="Remote repository URL."),
    username: str = typer.Option(..., "--username", "-u", help="Author name."),
    email: str = typer.Option("", "--email", "-e", help="Author email."),
    project: Optional[str] = PROJECT_ARGUMENT,
) -> None:
    """Set the remote repository and author identity."""

    if not repository.strip() or not username.strip():
        typer.echo("Error: repository and username must not be blank.")
        raise typer.Exit(code=1)
    config: ClientConfig = ctx.obj
    if not _run_operation(config, lambda options: check_remote(repository, **options)):
        typer.echo(f"Error: {repository} is not a reachable repository.")
        raise typer.Exit(code=1)
    new_details = GitDetails(username=username, email=email, repository=repository)
    if not _with_project(ctx, project, lambda p: p.set_details(new_details)):
        typer.echo("Error: the server did not store the details.")
        raise typer.Exit(code=1)
    typer.echo("Details saved.")


@app.command()
def create(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to the project file (.sb3)."),
    username: str = typer.Option(..., "--username", "-u", help="Author name."),
    email: str = typer.Option("", "--email", "-e", help="Author email."),
) -> None:
    """Link a project file to version control."""

    created = _run(ctx.obj, lambda manager: manager.create_project(path, username, email))
    typer.echo(f"Created project {created.name}")


@app.command("diff")
def diff_command(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project name."),
    new_file: Path = typer.Argument(..., help="Script file after the change."),
    old_file: Optional[Path] = typer.Argument(None, help="Script file before the change."),
) -> None:
    """Diff two script files."""

    config: ClientConfig = ctx.obj
    new_script = new_file.read_text(encoding="utf-8")
    old_script = old_file.read_text(encoding="utf-8") if old_file else ""
    result = _run_operation(
        config, lambda options: diff(project, new_script, old_script, **options)
    )
    typer.echo(f"+{result.added} -{result.removed}")
    typer.echo(result.diffed)


@app.command()
def clone(
    ctx: typer.Context,
    repository: str = typer.Argument(..., help="Repository URL."),
) -> None:
    """Clone a remote repository into a new project."""

    config: ClientConfig = ctx.obj
    result = _run_operation(config, lambda options: clone_repo(repository, **options))
    if not result.success:
        typer.echo(f"Error: clone failed: {result.detail}")
        raise typer.Exit(code=1)
    typer.echo(f"Cloned {repository}")


@app.command("remote-exists")
def remote_exists_command(
    ctx: typer.Context,
    repository: str = typer.Argument(..., help="Repository URL or scp-style remote."),
) -> None:
    """Check whether a repository location is usable."""

    config: ClientConfig = ctx.obj
    reachable = _run_operation(config, lambda options: check_remote(repository, **options))
    typer.echo("reachable" if reachable else "unreachable")
    if not reachable:
        raise typer.Exit(code=1)


@app.command("uninstall")
def uninstall_command(ctx: typer.Context) -> None:
    """Ask the server to uninstall itself."""

    config: ClientConfig = ctx.obj
    result = _run_operation(config, lambda options: uninstall(**options))
    if not result.success:
        typer.echo(f"Error: uninstall failed: {result.detail}")
        raise typer.Exit(code=1)
    typer.echo("Uninstalled.")


def _notify(fault: ServerFault) -> None:
    typer.secho(
        "An unhandled error occurred on the server. Rerun with --log-level DEBUG and check "
        "the server's logs for details.",
        err=True,
        fg=typer.colors.RED,
    )


def _observability(config: ClientConfig) -> ObservabilityManager:
    return create_observability_manager({"server": config.server.url, "client": "cli"})


def _with_project(
    ctx: typer.Context,
    name: str | None,
    action: Callable[[Project], Awaitable[T]],
) -> T:
    def resolve(manager: ProjectManager) -> Awaitable[T]:
        project = manager.get_project(name) if name else manager.get_current_project()
        if project is None:
            raise typer.BadParameter("No project given and SCRATCH_GIT_PROJECT is not set.")
        return action(project)

    return _run(ctx.obj, resolve)


def _run(config: ClientConfig, action: Callable[[ProjectManager], Awaitable[T]]) -> T:
    observability = _observability(config)

    async def runner() -> T:
        async with open_manager(config, notifier=_notify, observability=observability) as manager:
            return await action(manager)

    return _execute(runner)


def _run_operation(
    config: ClientConfig, action: Callable[[dict[str, Any]], Awaitable[T]]
) -> T:
    """Run an ad hoc operation with options built from configuration."""

    observability = _observability(config)
    options = {
        "url": config.server.url,
        **transport_options(config, _notify, observability),
    }

    async def runner() -> T:
        try:
            return await action(options)
        finally:
            observability.emit_summary()

    return _execute(runner)


def _execute(runner: Callable[[], Awaitable[T]]) -> T:
    async def entry() -> T:
        return await runner()

    try:
        return asyncio.run(entry())
    except ScratchGitError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
