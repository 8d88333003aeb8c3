from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from collabsync.engine import Action, SyncReport

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


# =============================================================================
# Message Helpers
# =============================================================================


def info(message: str) -> None:
    console.print(f"  [dim]{escape(message)}[/dim]")


def warning(message: str) -> None:
    console.print(f"[yellow]warning:[/yellow] {escape(message)}")


def error(message: str) -> None:
    err_console.print(f"[red]error:[/red] {escape(message)}")
    if os.getenv("GITHUB_ACTIONS") == "true":
        # Workflow command so the failure shows up as a run annotation
        flat = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
        print(f"::error::{flat}", file=sys.stdout, flush=True)


def set_quiet(quiet: bool) -> None:
    console.quiet = quiet


# =============================================================================
# Report Rendering
# =============================================================================


_ACTION_TEXT = {
    "add": ("invited [{permission}]", "would invite [{permission}]"),
    "update": ("updated {previous} → {permission}", "would update {previous} → {permission}"),
    "reinvite": ("re-invited {previous} → {permission}", "would re-invite {previous} → {permission}"),
    "remove": ("removed", "would remove"),
    "uninvite": ("invitation revoked", "would revoke invitation"),
    "keep": ("{detail}", "{detail}"),
}


def action_line(action: Action, *, dry_run: bool = False) -> None:
    done, would = _ACTION_TEXT[action.kind]
    template = would if dry_run else done
    detail = template.format(
        permission=action.permission or "",
        previous=action.previous or "",
        detail=action.detail,
    )
    user = escape(action.identity)
    if action.kind == "keep":
        console.print(f"  [dim]·[/dim] {user:<20} [dim]{escape(detail)}[/dim]")
    elif dry_run:
        console.print(f"  [blue]○[/blue] {user:<20} [dim]{escape(detail)}[/dim]")
    else:
        console.print(f"  [green]✓[/green] {user:<20} [dim]{escape(detail)}[/dim]")


def print_separator() -> None:
    console.print("  " + "─" * 50, style="dim")
    console.print()


_SUMMARY_LABELS = (
    ("added", "add", "green"),
    ("updated", "update", "yellow"),
    ("reinvited", "re-invite", "yellow"),
    ("removed", "remove", "red"),
    ("uninvited", "uninvite", "red"),
)


def print_summary(report: SyncReport) -> None:
    parts = []
    for attr, verb, style in _SUMMARY_LABELS:
        count = getattr(report, attr)
        if count:
            label = f"would {verb}" if report.dry_run else attr.replace("reinvited", "re-invited")
            parts.append(f"[{style}]{count} {label}[/{style}]")
    if report.unchanged:
        parts.append(f"[dim]{report.unchanged} unchanged[/dim]")

    summary = " · ".join(parts) if report.changed else "[dim]nothing to do[/dim]"
    console.print(f"  [bold]done[/bold]  {summary}")
    console.print()
