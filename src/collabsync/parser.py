"""Parse a collaborator document into a normalized list of desired collaborators.

Supported shapes, tried in this order:

# Teams (every member inherits the team's role)
- team: Maintainers
  role: admin
  members:
    - username: alice
      name: Alice Example
      email: alice@example.com

# Plain list (everyone gets push)
- alice
- bob

# List with explicit permissions (missing permission means push)
- username: alice
  permission: admin
- username: bob

# Mapping of username to permission (null means push)
alice: admin
bob: null
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import yaml

from collabsync import output
from collabsync.errors import FormatError
from collabsync.models import DEFAULT_PERMISSION, VALID_PERMISSIONS, DesiredCollaborator, canonical_permission

# Team role names that don't match a permission level directly
ROLE_PERMISSIONS = {
    "admin": "admin",
    "member": "push",
}


def map_role(role: Any) -> str:
    """Map a team or entry role onto a permission level.

    Unknown roles become push with a warning; they never abort parsing.
    """
    if role is None:
        return DEFAULT_PERMISSION
    name = canonical_permission(str(role))
    if name in ROLE_PERMISSIONS:
        return ROLE_PERMISSIONS[name]
    if name in VALID_PERMISSIONS:
        return name
    output.warning(f"unknown role: {role}, defaulting to '{DEFAULT_PERMISSION}'")
    return DEFAULT_PERMISSION


# =============================================================================
# Shape Predicates
# =============================================================================


def _is_login(value: Any) -> bool:
    # YAML loads all-digit logins as ints; bools are an int subclass
    return isinstance(value, str) or (isinstance(value, int) and not isinstance(value, bool))


def _login(value: Any) -> Any:
    return str(value) if _is_login(value) else value


def _is_team(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and "team" in item
        and "members" in item
        and (item["members"] is None or isinstance(item["members"], list))
    )


def _is_team_list(data: Any) -> bool:
    return isinstance(data, list) and len(data) > 0 and all(_is_team(item) for item in data)


def _is_name_list(data: Any) -> bool:
    return isinstance(data, list) and all(_is_login(item) for item in data)


def _is_entry_list(data: Any) -> bool:
    # Team objects never count as entries, so a malformed team fails the parse
    return isinstance(data, list) and all(
        _is_login(item) or (isinstance(item, dict) and "team" not in item) for item in data
    )


def _is_permission_map(data: Any) -> bool:
    return isinstance(data, dict) and all(
        _is_login(key) and (value is None or isinstance(value, str))
        for key, value in data.items()
    )


# =============================================================================
# Shape Parsers
# =============================================================================


def _member_username(member: Any) -> Any:
    if isinstance(member, dict):
        return _login(member.get("username"))
    return _login(member)


def _parse_teams(data: list[dict[str, Any]]) -> list[DesiredCollaborator]:
    collaborators = []
    for team in data:
        permission = map_role(team.get("role"))
        for member in team.get("members") or []:
            collaborators.append(DesiredCollaborator(_member_username(member), permission))
    return collaborators


def _parse_names(data: list[str | int]) -> list[DesiredCollaborator]:
    return [DesiredCollaborator(str(name), DEFAULT_PERMISSION) for name in data]


def _parse_entries(data: list[str | int | dict[str, Any]]) -> list[DesiredCollaborator]:
    collaborators = []
    for item in data:
        if not isinstance(item, dict):
            collaborators.append(DesiredCollaborator(str(item), DEFAULT_PERMISSION))
            continue
        role = item.get("permission", item.get("role"))
        collaborators.append(DesiredCollaborator(_login(item.get("username")), map_role(role)))
    return collaborators


def _parse_permission_map(data: dict[str | int, str | None]) -> list[DesiredCollaborator]:
    return [DesiredCollaborator(str(username), map_role(role)) for username, role in data.items()]


_SHAPES = (
    (_is_team_list, _parse_teams),
    (_is_name_list, _parse_names),
    (_is_entry_list, _parse_entries),
    (_is_permission_map, _parse_permission_map),
)


def parse(text: str) -> list[DesiredCollaborator]:
    """Parse YAML collaborator document text."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise FormatError(f"Invalid YAML: {exc}") from exc

    if data is None:
        return []

    for matches, parse_shape in _SHAPES:
        if matches(data):
            return parse_shape(data)

    raise FormatError("Unable to parse collaborators file format")


# =============================================================================
# File Loading
# =============================================================================


def _git_root() -> Path | None:
    try:
        result = subprocess.run(["git", "rev-parse", "--show-toplevel"], capture_output=True, text=True)
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    root = result.stdout.strip()
    return Path(root) if root else None


def resolve_path(path: str | Path) -> Path | None:
    """Find ``path`` as given, or relative to the git repository root."""
    candidate = Path(path).expanduser()
    if candidate.exists():
        return candidate
    if candidate.is_absolute():
        return None

    repo_root = _git_root()
    if repo_root:
        candidate = repo_root / path
        if candidate.exists():
            return candidate
    return None


def load_collaborators_file(path: str | Path) -> list[DesiredCollaborator]:
    resolved = resolve_path(path)
    if resolved is None:
        raise FileNotFoundError(f"Collaborator file not found: {path}")
    try:
        return parse(resolved.read_text())
    except FormatError as exc:
        raise FormatError(f"Failed to parse collaborator file {resolved}: {exc}") from exc
