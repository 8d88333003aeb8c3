from __future__ import annotations

import json
import subprocess
from typing import Any, Protocol
from urllib.parse import urlsplit

import httpx

from collabsync.errors import RemoteAccessError
from collabsync.models import (
    PERMISSION_ORDER,
    VALID_PERMISSIONS,
    PendingInvitation,
    RemoteCollaborator,
    canonical_permission,
)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
PAGE_SIZE = 100


class RepositoryAccess(Protocol):
    """Collaborator operations on a single repository."""

    def list_collaborators(self) -> list[RemoteCollaborator]: ...

    def list_invitations(self) -> list[PendingInvitation]: ...

    def upsert_collaborator(self, identity: str, permission: str) -> None: ...

    def revoke_collaborator(self, identity: str) -> None: ...

    def delete_invitation(self, invitation_id: int | str) -> None: ...


# =============================================================================
# Helpers
# =============================================================================


def parse_repo_spec(value: str) -> tuple[str, str]:
    """Split ``owner/name`` into its parts."""
    value = value.strip()
    parts = value.split("/")
    if len(parts) != 2 or not all(part.strip() for part in parts):
        raise ValueError(f"Invalid repo: {value!r} (expected OWNER/NAME)")
    owner, name = parts
    return owner.strip(), name.strip()


def gh_hostname(api_url: str) -> str | None:
    """Return the ``gh --hostname`` for an API URL, or None for github.com.

    ``https://ghe.example.com/api/v3`` gives ``ghe.example.com`` and
    ``https://api.acme.ghe.com`` gives ``acme.ghe.com``.
    """
    host = (urlsplit(api_url.strip()).hostname or "").lower()
    if not host or host in ("api.github.com", "github.com"):
        return None
    if host.startswith("api."):
        host = host[len("api."):]
    return host


def _collaborator_permission(item: dict[str, Any]) -> str:
    # role_name is read/triage/write/maintain/admin or a custom role name
    role = canonical_permission(str(item.get("role_name") or ""))
    if role in VALID_PERMISSIONS:
        return role
    flags = item.get("permissions") or {}
    for level in reversed(PERMISSION_ORDER):
        if flags.get(level):
            return level
    return role or "pull"


def _to_collaborator(item: dict[str, Any]) -> RemoteCollaborator | None:
    login = item.get("login")
    if not login:
        return None
    return RemoteCollaborator(identity=login, permission=_collaborator_permission(item))


def _to_invitation(item: dict[str, Any]) -> PendingInvitation:
    invitee = item.get("invitee") or {}
    return PendingInvitation(
        invitation_id=item["id"],
        invitee=invitee.get("login") or None,
        permission=canonical_permission(str(item.get("permissions") or "")),
    )


# =============================================================================
# REST API (httpx)
# =============================================================================


class GitHubRepository:
    """Repository access over the GitHub REST API using a token."""

    def __init__(
        self,
        owner: str,
        name: str,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout_s: float = 30,
        client: httpx.Client | None = None,
    ) -> None:
        self.owner = owner
        self.name = name
        self._client = client or httpx.Client(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": "collabsync",
            },
            timeout=timeout_s,
        )

    def __enter__(self) -> GitHubRepository:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    @property
    def _base(self) -> str:
        return f"/repos/{self.owner}/{self.name}"

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = self._client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError as exc:
            raise RemoteAccessError(
                f"HTTP {exc.response.status_code} from {method} {url}: {exc.response.text}"
            ) from exc
        except httpx.RequestError as exc:
            raise RemoteAccessError(f"Network error calling {method} {url}: {exc}") from exc

    def _get_paginated(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Follow ``Link: rel="next"`` until every page has been read."""
        items: list[dict[str, Any]] = []
        url: str | None = path
        query: dict[str, Any] | None = {"per_page": PAGE_SIZE, **(params or {})}
        while url:
            resp = self._request("GET", url, params=query)
            try:
                page = resp.json()
            except json.JSONDecodeError as exc:
                raise RemoteAccessError(f"Non-JSON response from GET {url}: {resp.text[:200]}") from exc
            if not isinstance(page, list):
                raise RemoteAccessError(f"Unexpected response from GET {url}: {page!r}")
            items.extend(page)
            url = resp.links.get("next", {}).get("url")
            # the next link already carries the query string
            query = None
        return items

    def list_collaborators(self) -> list[RemoteCollaborator]:
        items = self._get_paginated(f"{self._base}/collaborators", {"affiliation": "direct"})
        return [c for c in map(_to_collaborator, items) if c is not None]

    def list_invitations(self) -> list[PendingInvitation]:
        return [_to_invitation(item) for item in self._get_paginated(f"{self._base}/invitations")]

    def upsert_collaborator(self, identity: str, permission: str) -> None:
        self._request("PUT", f"{self._base}/collaborators/{identity}", json={"permission": permission})

    def revoke_collaborator(self, identity: str) -> None:
        self._request("DELETE", f"{self._base}/collaborators/{identity}")

    def delete_invitation(self, invitation_id: int | str) -> None:
        self._request("DELETE", f"{self._base}/invitations/{invitation_id}")


# =============================================================================
# GitHub CLI (gh)
# =============================================================================


def _run(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(cmd, capture_output=True, text=True)


def _run_checked(cmd: list[str], *, what: str) -> subprocess.CompletedProcess[str]:
    try:
        result = _run(cmd)
    except FileNotFoundError as exc:
        raise RemoteAccessError(f"Missing dependency for {what}: {cmd[0]!r} not found") from exc

    if result.returncode != 0:
        details = result.stderr.strip() or result.stdout.strip() or "unknown error"
        raise RemoteAccessError(f"Failed to {what}: {details}")
    return result


def _load_json_stream(text: str, *, what: str) -> list[Any]:
    """Decode ``gh api --paginate`` output, which is one JSON array per page."""
    decoder = json.JSONDecoder()
    items: list[Any] = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        try:
            page, end = decoder.raw_decode(text, pos)
        except json.JSONDecodeError as exc:
            raise RemoteAccessError(f"Unexpected non-JSON output while trying to {what}") from exc
        if isinstance(page, list):
            items.extend(page)
        else:
            items.append(page)
        pos = end
        while pos < len(text) and text[pos].isspace():
            pos += 1
    return items


def gh_current_repo() -> tuple[str, str]:
    """Resolve the repository of the current directory via ``gh repo view``."""
    result = _run_checked(["gh", "repo", "view", "--json", "name,owner"], what="resolve repo")
    try:
        repo = json.loads(result.stdout)
        return repo["owner"]["login"], repo["name"]
    except (json.JSONDecodeError, KeyError, TypeError) as exc:
        raise RemoteAccessError("Unexpected output while trying to resolve repo") from exc


class GhCliRepository:
    """Repository access through ``gh api``; authentication is left to gh."""

    def __init__(self, owner: str, name: str, *, hostname: str | None = None) -> None:
        self.owner = owner
        self.name = name
        self.hostname = hostname

    def _gh_cmd(self, method: str, path: str, *fields: str, paginate: bool = False) -> list[str]:
        cmd = ["gh", "api", "-X", method, f"repos/{self.owner}/{self.name}/{path}"]
        if self.hostname:
            cmd[2:2] = ["--hostname", self.hostname]
        if paginate:
            cmd.append("--paginate")
        for item in fields:
            cmd.extend(["-f", item])
        return cmd

    def list_collaborators(self) -> list[RemoteCollaborator]:
        cmd = self._gh_cmd("GET", "collaborators", "affiliation=direct", f"per_page={PAGE_SIZE}", paginate=True)
        result = _run_checked(cmd, what="fetch collaborators")
        items = _load_json_stream(result.stdout, what="fetch collaborators")
        return [c for c in map(_to_collaborator, items) if c is not None]

    def list_invitations(self) -> list[PendingInvitation]:
        cmd = self._gh_cmd("GET", "invitations", f"per_page={PAGE_SIZE}", paginate=True)
        result = _run_checked(cmd, what="fetch pending invitations")
        return [_to_invitation(item) for item in _load_json_stream(result.stdout, what="fetch pending invitations")]

    def upsert_collaborator(self, identity: str, permission: str) -> None:
        cmd = self._gh_cmd("PUT", f"collaborators/{identity}", f"permission={permission}")
        _run_checked(cmd, what=f"add {identity} with {permission}")

    def revoke_collaborator(self, identity: str) -> None:
        _run_checked(self._gh_cmd("DELETE", f"collaborators/{identity}"), what=f"remove {identity}")

    def delete_invitation(self, invitation_id: int | str) -> None:
        _run_checked(
            self._gh_cmd("DELETE", f"invitations/{invitation_id}"),
            what=f"delete invitation {invitation_id}",
        )
