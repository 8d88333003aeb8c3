from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DEFAULT_PERMISSION = "push"
VALID_PERMISSIONS = {"pull", "triage", "push", "maintain", "admin"}
PERMISSION_ORDER = ("pull", "triage", "push", "maintain", "admin")

# GitHub reports UI names for some levels
_PERMISSION_ALIASES = {
    "read": "pull",
    "write": "push",
}


def canonical_permission(value: str) -> str:
    """Lower-case a permission name and map GitHub UI names onto API names."""
    perm = value.strip().lower()
    return _PERMISSION_ALIASES.get(perm, perm)


def normalize_permission(value: Any) -> str:
    """Normalize a permission string, falling back to push."""
    if not isinstance(value, str):
        return DEFAULT_PERMISSION
    perm = canonical_permission(value)
    if perm not in VALID_PERMISSIONS:
        return DEFAULT_PERMISSION
    return perm


def canonical_identity(identity: str) -> str:
    return identity.strip().casefold()


# =============================================================================
# Data Models
# =============================================================================


@dataclass(frozen=True)
class DesiredCollaborator:
    """One entry from the declared collaborator list."""
    identity: str
    permission: str = DEFAULT_PERMISSION

    def __post_init__(self) -> None:
        object.__setattr__(self, "permission", normalize_permission(self.permission))

    @property
    def canonical(self) -> str:
        return canonical_identity(self.identity)


@dataclass(frozen=True)
class RemoteCollaborator:
    """A collaborator as observed on the repository."""
    identity: str
    permission: str

    @property
    def canonical(self) -> str:
        return canonical_identity(self.identity)


@dataclass(frozen=True)
class PendingInvitation:
    """An outstanding invitation. Its permission can't be changed in place."""
    invitation_id: int | str
    invitee: str | None  # None when GitHub can't resolve the invitee
    permission: str

    @property
    def canonical(self) -> str | None:
        if self.invitee is None:
            return None
        return canonical_identity(self.invitee)
