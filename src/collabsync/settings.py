from __future__ import annotations

import argparse
import os
from collections.abc import Mapping
from dataclasses import dataclass

from collabsync.remote import DEFAULT_API_URL, parse_repo_spec

DEFAULT_FILE = ".github/collaborators.yml"
DEFAULT_TIMEOUT_S = 30.0
BACKENDS = ("auto", "api", "gh")


def _first_env(environ: Mapping[str, str], *names: str) -> str | None:
    for name in names:
        value = environ.get(name, "").strip()
        if value:
            return value
    return None


@dataclass
class Settings:
    """Run configuration. CLI flags win over environment, environment over defaults."""
    file: str = DEFAULT_FILE
    token: str | None = None
    repo: tuple[str, str] | None = None  # None: ask gh for the current repo
    api_url: str = DEFAULT_API_URL
    backend: str = "auto"
    dry_run: bool = False
    quiet: bool = False
    timeout_s: float = DEFAULT_TIMEOUT_S

    @property
    def resolved_backend(self) -> str:
        if self.backend != "auto":
            return self.backend
        return "api" if self.token else "gh"

    @classmethod
    def from_args(cls, args: argparse.Namespace, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from parsed arguments and the environment.

        Environment variables follow GitHub Actions naming where one exists
        (``INPUT_*`` for action inputs, ``GITHUB_REPOSITORY``, ``GITHUB_API_URL``).
        Raises ValueError for invalid values.
        """
        if environ is None:
            environ = os.environ

        file = args.file or _first_env(environ, "INPUT_FILENAME", "COLLABSYNC_FILE") or DEFAULT_FILE
        token = args.token or _first_env(environ, "INPUT_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")

        repo_spec = args.repo or _first_env(environ, "GITHUB_REPOSITORY")
        repo = parse_repo_spec(repo_spec) if repo_spec else None

        backend = args.backend or _first_env(environ, "COLLABSYNC_BACKEND") or "auto"
        if backend not in BACKENDS:
            raise ValueError(f"Invalid backend: {backend!r} (expected one of {', '.join(BACKENDS)})")
        if backend == "api" and not token:
            raise ValueError("The api backend needs a token (--token, INPUT_TOKEN or GITHUB_TOKEN)")

        timeout_raw = args.timeout if args.timeout is not None else _first_env(environ, "COLLABSYNC_TIMEOUT")
        try:
            timeout_s = float(timeout_raw) if timeout_raw is not None else DEFAULT_TIMEOUT_S
        except ValueError:
            raise ValueError(f"Invalid timeout: {timeout_raw!r}") from None
        if timeout_s <= 0:
            raise ValueError(f"Invalid timeout: {timeout_raw!r}")

        return cls(
            file=file,
            token=token,
            repo=repo,
            api_url=args.api_url or _first_env(environ, "GITHUB_API_URL") or DEFAULT_API_URL,
            backend=backend,
            dry_run=args.dry_run,
            quiet=args.quiet,
            timeout_s=timeout_s,
        )
