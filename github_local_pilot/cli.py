"""Typer CLI entrypoint for github-local-pilot."""

from __future__ import annotations

import logging
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Optional, Sequence

import typer
from rich.console import Console

from . import __version__, render
from .cleanup import CleanupEngine
from .config import (
    global_config_path,
    load_global_config,
    load_workspace_config_or_default,
    save_global_config,
    validate_workspace,
    workspace_config_path,
)
from .dependencies import check_all, gh_authenticated
from .exceptions import GhlpError, UserAbort
from .git import GitBackend
from .interactive import confirm, text_input
from .launcher import open_in_ide
from .models import CleanOptions, GlobalConfig
from .orchestrator import open_url
from .register import register as register_handler
from .url_parser import is_reference_url

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Open GitHub issues, PRs, branches and tags in dedicated local worktrees.",
)


@dataclass(slots=True)
class AppState:
    console: Console
    verbose: bool = False


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"ghlp {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the ghlp version and exit.",
    ),
) -> None:
    _ = version  # handled via callback
    configure_logging(verbose)
    ctx.obj = AppState(console=render.console, verbose=verbose)


def _require_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):  # pragma: no cover
        raise typer.Exit(1)
    return state


def _fail(message: str, code: int = 1) -> NoReturn:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code)


def _resolve_workspace(workspace: Path | None) -> Path:
    if workspace is not None:
        return workspace.expanduser()
    return load_global_config().workspace


WorkspaceOption = typer.Option(
    None,
    "--workspace",
    "-w",
    help="Workspace directory (defaults to the one saved by `ghlp init`).",
    file_okay=False,
    dir_okay=True,
)


@app.command("open")
def open_command(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="ghlp://github.com/... or https://github.com/... URL."),
    workspace: Optional[Path] = WorkspaceOption,
    no_bootstrap: bool = typer.Option(False, "--no-bootstrap", help="Skip dependency installation."),
    no_ide: bool = typer.Option(False, "--no-ide", help="Do not launch the configured IDE."),
) -> None:
    """Open a GitHub URL in the local workspace and print the directory."""

    state = _require_state(ctx)
    try:
        resolved_workspace = _resolve_workspace(workspace)
        config = load_workspace_config_or_default(resolved_workspace)
        result = open_url(
            url,
            workspace=resolved_workspace,
            backend=GitBackend(),
            config=config,
            console=state.console,
            bootstrap=not no_bootstrap,
        )
    except GhlpError as exc:
        _fail(str(exc))
    typer.echo(str(result.path))
    if config.auto_open_ide and not no_ide:
        open_in_ide(config.auto_open_ide, result.path)


@app.command()
def clean(
    ctx: typer.Context,
    repo: Optional[str] = typer.Argument(None, help="Repository path or org/repo."),
    all_repos: bool = typer.Option(False, "--all", "-a", help="Clean every repository in the workspace."),
    force: bool = typer.Option(False, "--force", help="Delete whole repository directories."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be cleaned without changing anything."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt for --force."),
    workspace: Optional[Path] = WorkspaceOption,
) -> None:
    """Remove worktrees whose branches no longer exist on the remote."""

    state = _require_state(ctx)
    if not repo and not all_repos:
        _fail("Please specify a repo or use --all")
    try:
        resolved_workspace = _resolve_workspace(workspace)
        if force and not dry_run and not yes:
            scope = "every repository in the workspace" if all_repos else repo
            if not confirm(f"Delete {scope} entirely, including the main clone?"):
                raise UserAbort("Cancelled.")
        engine = CleanupEngine(GitBackend(), resolved_workspace)
        report = engine.clean(None if all_repos else repo, CleanOptions(dry_run=dry_run, force_delete_all=force))
    except UserAbort as exc:
        state.console.print(str(exc))
        raise typer.Exit(1) from exc
    except GhlpError as exc:
        _fail(str(exc))
    render.render_clean_report(report, state.console)


@app.command()
def init(ctx: typer.Context) -> None:
    """Check requirements and choose the workspace directory."""

    state = _require_state(ctx)
    out = state.console
    out.print("\n[cyan]🔧 GitHub Local Pilot - Setup[/cyan]\n")
    out.print("Checking requirements...")
    missing = []
    for dep in check_all():
        if dep.installed:
            render.success(f"{dep.name} [dim]{dep.version or ''}[/dim]", out)
        else:
            render.error(f"{dep.name} - not installed ({dep.url})", out)
            missing.append(dep)
    if missing:
        _fail("Please install missing dependencies first.")

    if gh_authenticated():
        render.success("GitHub CLI authenticated", out)
    else:
        render.warning("GitHub CLI not authenticated, running: gh auth login", out)
        if subprocess.run(["gh", "auth", "login"]).returncode != 0:
            _fail("GitHub authentication failed.")

    try:
        workspace = _prompt_workspace(out)
    except GhlpError as exc:
        _fail(str(exc))
    path = save_global_config(GlobalConfig(workspace=workspace))
    render.success("Setup complete!", out)
    out.print(f"Configuration saved to: {path}\n")
    out.print("Next steps:")
    out.print("[cyan]  ghlp register    # Enable browser integration[/cyan]")
    out.print(f"[dim]  Create {workspace_config_path(workspace)} for workspace settings[/dim]\n")


def _prompt_workspace(out: Console) -> Path:
    while True:
        candidate = Path(text_input("Workspace directory")).expanduser()
        errors = validate_workspace(candidate)
        if not errors:
            return candidate.resolve()
        for message in errors:
            out.print(f"[red]{message}[/red]")


@app.command()
def register(ctx: typer.Context) -> None:
    """Register the ghlp:// protocol handler."""

    state = _require_state(ctx)
    state.console.print("\n[cyan]🔗 Registering ghlp:// protocol handler[/cyan]\n")
    try:
        result = register_handler()
    except GhlpError as exc:
        _fail(str(exc))
    if result.registered:
        render.success("Protocol registered successfully!", state.console)
        render.info(f"Handler installed at: {result.location}", state.console)
        state.console.print("You can now click ghlp:// links in your browser.")
        return
    render.warning(f"Handler written to {result.location}; finish registration manually:", state.console)
    for step in result.manual_steps:
        state.console.print(f"[cyan]    {step}[/cyan]")


@app.command("workspace")
def workspace_command() -> None:
    """Print the configured workspace directory."""

    try:
        workspace = load_global_config().workspace
    except GhlpError as exc:
        _fail(f"{exc}\nConfig file: {global_config_path()}")
    typer.echo(str(workspace))


def normalize_argv(args: Sequence[str]) -> list[str]:
    """Rewrite shorthand invocations.

    ``ghlp <url>`` becomes ``ghlp open <url>`` (protocol handlers pass the URL
    alone) and a lone ``-w``/``--workspace`` becomes ``ghlp workspace``.
    """

    args = list(args)
    if len(args) == 1 and args[0] in {"-w", "--workspace"}:
        return ["workspace"]
    if len(args) == 1 and is_reference_url(args[0]):
        return ["open", args[0]]
    return args


def run(argv: Sequence[str] | None = None) -> None:
    app(args=normalize_argv(sys.argv[1:] if argv is None else argv), prog_name="ghlp")


__all__ = ["app", "run", "normalize_argv"]
