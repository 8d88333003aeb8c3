from __future__ import annotations

import argparse
import shutil
import sys
from contextlib import ExitStack
from pathlib import Path

from rich.markup import escape
from rich.text import Text

from collabsync import output
from collabsync.engine import CollaboratorManager, SyncReport
from collabsync.errors import CollabSyncError
from collabsync.output import console
from collabsync.parser import load_collaborators_file
from collabsync.remote import (
    GhCliRepository,
    GitHubRepository,
    RepositoryAccess,
    gh_current_repo,
    gh_hostname,
)
from collabsync.settings import BACKENDS, DEFAULT_FILE, Settings

__version__ = "0.1.0"

INIT_TEMPLATE = """\
# Repository collaborators, kept in sync by collabsync.
#
# Roles: admin, maintain, push (or member), triage, pull.
# Anyone not listed here is removed from the repository on the next sync.

- team: Maintainers
  role: admin
  members:
    - username: your-username
      name: Your Name

- team: Developers
  role: member
  members: []
"""


# =============================================================================
# Output Helpers
# =============================================================================


def _print_header(owner: str, name: str, settings: Settings, count: int) -> None:
    title = Text()
    title.append("collabsync", style="bold magenta")
    title.append(f" v{__version__}", style="dim")
    if settings.dry_run:
        title.append("  [dry-run]", style="bold yellow")

    console.print()
    console.print(title)
    console.print()
    console.print(f"  [bold]{escape(name)}[/bold] [dim]({escape(owner)})[/dim]")
    console.print(f"  [dim]source[/dim]      {escape(settings.file)}")
    console.print(f"  [dim]backend[/dim]     {settings.resolved_backend}")
    console.print(f"  [dim]users[/dim]       {count}")
    console.print()


def _print_report(report: SyncReport) -> None:
    console.print()
    output.print_separator()
    output.print_summary(report)


# =============================================================================
# Handlers
# =============================================================================


def _handle_init(path: str) -> int:
    target = Path(path)
    if target.exists():
        console.print(f"  [dim]·[/dim] {escape(str(target))} already exists, leaving it alone")
        return 0
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(INIT_TEMPLATE)
    console.print(f"  [green]✓[/green] created {escape(str(target))}")
    return 0


def _resolve_repo(settings: Settings) -> tuple[str, str]:
    if settings.repo is not None:
        return settings.repo
    if settings.resolved_backend != "gh":
        raise ValueError("No repository given (use --repo OWNER/NAME or set GITHUB_REPOSITORY)")
    return gh_current_repo()


def _build_repository(settings: Settings, owner: str, name: str) -> RepositoryAccess:
    if settings.resolved_backend == "api":
        return GitHubRepository(
            owner,
            name,
            settings.token or "",
            api_url=settings.api_url,
            timeout_s=settings.timeout_s,
        )
    return GhCliRepository(owner, name, hostname=gh_hostname(settings.api_url))


def _sync(settings: Settings) -> int:
    desired = load_collaborators_file(settings.file)
    owner, name = _resolve_repo(settings)
    _print_header(owner, name, settings, len(desired))

    with ExitStack() as stack:
        repository = _build_repository(settings, owner, name)
        if isinstance(repository, GitHubRepository):
            stack.enter_context(repository)
        manager = CollaboratorManager(repository, dry_run=settings.dry_run)
        report = manager.synchronize(desired)

    _print_report(report)
    return 0


# =============================================================================
# Main Entry Point
# =============================================================================


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="collabsync",
        description="Sync GitHub repository collaborators with a YAML file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  collabsync                               # sync current repo from .github/collaborators.yml
  collabsync -r owner/repo -t $TOKEN       # target a repo through the REST API
  collabsync -n                            # dry-run (preview)
  collabsync -f team.yml                   # use a custom file
  collabsync --init                        # write a starter collaborators file
""",
    )
    parser.add_argument("-f", "--file", metavar="FILE",
                        help=f"Collaborators file (default: {DEFAULT_FILE})")
    parser.add_argument("-t", "--token", metavar="TOKEN",
                        help="GitHub token (default: $INPUT_TOKEN, $GITHUB_TOKEN or $GH_TOKEN)")
    parser.add_argument("-r", "--repo", metavar="OWNER/REPO",
                        help="Target repo (default: $GITHUB_REPOSITORY, then the current directory)")
    parser.add_argument("--api-url", metavar="URL", help="GitHub API URL (default: $GITHUB_API_URL)")
    parser.add_argument("--backend", choices=list(BACKENDS),
                        help="api (token), gh (GitHub CLI) or auto (default)")
    parser.add_argument("--timeout", type=float, metavar="SECONDS", help="HTTP timeout (default: 30)")
    parser.add_argument("-n", "--dry-run", action="store_true", help="Preview without making changes")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("--init", action="store_true", help="Create a starter collaborators file")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _build_parser().parse_args(argv)

    if args.init:
        return _handle_init(args.file or DEFAULT_FILE)

    try:
        settings = Settings.from_args(args)
    except ValueError as exc:
        output.error(str(exc))
        return 2

    output.set_quiet(settings.quiet)

    if settings.resolved_backend == "gh" and not shutil.which("gh"):
        output.error("GitHub CLI (gh) not found and no token given")
        console.print("  install: https://cli.github.com/ or pass --token")
        return 1

    try:
        return _sync(settings)
    except (CollabSyncError, FileNotFoundError, ValueError) as exc:
        output.error(str(exc))
        return 1


def main() -> None:
    try:
        raise SystemExit(run())
    except KeyboardInterrupt:
        raise SystemExit(130) from None


if __name__ == "__main__":
    main()
