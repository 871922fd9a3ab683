"""Rich UI helpers for terminal output.

Everything goes to stderr; stdout is reserved for the resolved directory so
wrapper scripts can ``cd "$(ghlp open ...)"``.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from .models import CleanReport, Classification

console = Console(stderr=True)

_CLASSIFICATION_STYLES = {
    Classification.MAIN: "dim",
    Classification.REMOTE: "dim",
    Classification.LOCAL: "yellow",
    Classification.DETACHED: "yellow",
    Classification.ORPHAN: "magenta",
}


def info(message: str, out: Console | None = None) -> None:
    (out or console).print(f"[blue]ℹ[/blue] {message}")


def success(message: str, out: Console | None = None) -> None:
    (out or console).print(f"[green]✓[/green] {message}")


def warning(message: str, out: Console | None = None) -> None:
    (out or console).print(f"[yellow]⚠[/yellow] {message}")


def error(message: str, out: Console | None = None) -> None:
    (out or console).print(f"[red]✗[/red] {message}", style="red")


def render_clean_report(report: CleanReport, out: Console | None = None) -> None:
    out = out or console
    for repo in report.repos:
        out.print(f"\n[cyan]📂 {repo.repo_root}[/cyan]")
        if repo.skipped_reason:
            out.print(f"  [dim]skipped: {repo.skipped_reason}[/dim]")
            continue
        if repo.error:
            error(repo.error, out)
            continue
        if repo.force_deleted:
            verb = "Would delete" if report.dry_run else "Deleted"
            out.print(f"  [yellow]{verb} entire repository directory[/yellow]")
            continue
        table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
        table.add_column("Kind", no_wrap=True)
        table.add_column("Branch", no_wrap=True)
        table.add_column("Directory")
        table.add_column("Action", no_wrap=True)
        for entry in repo.entries:
            style = _CLASSIFICATION_STYLES[entry.classification]
            if entry.error:
                action = f"[red]failed: {entry.error}[/red]"
            elif entry.cleaned:
                action = "[dim]would remove[/dim]" if report.dry_run else "[green]removed[/green]"
            else:
                action = "keep"
            branch = "-" if entry.classification is Classification.ORPHAN else entry.branch or "(detached)"
            table.add_row(
                f"[{style}]{entry.classification.value}[/{style}]",
                branch,
                entry.path.name,
                action,
            )
        out.print(table)
    out.print("")
    if report.dry_run:
        out.print(f"[cyan]Would clean {report.total} worktree(s)[/cyan]")
    else:
        out.print(f"[green]Cleaned {report.total} worktree(s)[/green]")


__all__ = ["console", "info", "success", "warning", "error", "render_clean_report"]
