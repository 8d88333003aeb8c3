"""Reconcile a repository's collaborators and invitations with a desired list.

A run observes the remote once, computes a plan against that snapshot and
then applies it in order:

1. add or update every desired collaborator (in input order)
2. remove collaborators that aren't desired
3. revoke invitations for invitees that aren't desired

Invitations can't be edited, so a permission change on a pending invite is a
delete followed by a fresh invite. Identities compare case-insensitively.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, is_dataclass

from collabsync import output
from collabsync.errors import CollabSyncError, RemoteAccessError, ValidationError
from collabsync.models import (
    DesiredCollaborator,
    PendingInvitation,
    RemoteCollaborator,
    canonical_identity,
)
from collabsync.remote import RepositoryAccess

MUTATING_KINDS = ("add", "update", "reinvite", "remove", "uninvite")


# =============================================================================
# Plan / Report
# =============================================================================


@dataclass(frozen=True)
class Action:
    """One step of a reconciliation plan."""
    kind: str  # add, update, reinvite, remove, uninvite or keep
    identity: str
    permission: str | None = None
    previous: str | None = None
    invitation_id: int | str | None = None
    detail: str = ""

    @property
    def mutating(self) -> bool:
        return self.kind in MUTATING_KINDS


@dataclass
class SyncReport:
    """What a run did (or, in dry-run mode, would have done)."""
    actions: list[Action] = field(default_factory=list)
    dry_run: bool = False

    def _count(self, kind: str) -> int:
        return sum(1 for a in self.actions if a.kind == kind)

    @property
    def added(self) -> int:
        return self._count("add")

    @property
    def updated(self) -> int:
        return self._count("update")

    @property
    def reinvited(self) -> int:
        return self._count("reinvite")

    @property
    def removed(self) -> int:
        return self._count("remove")

    @property
    def uninvited(self) -> int:
        return self._count("uninvite")

    @property
    def unchanged(self) -> int:
        return self._count("keep")

    @property
    def changed(self) -> bool:
        return any(a.mutating for a in self.actions)


# =============================================================================
# Validation
# =============================================================================


def _serialize(entry: object) -> str:
    if is_dataclass(entry) and not isinstance(entry, type):
        entry = asdict(entry)
    try:
        return json.dumps(entry, default=str, sort_keys=True)
    except (TypeError, ValueError):
        return repr(entry)


def validate_desired(desired: Iterable[DesiredCollaborator]) -> list[DesiredCollaborator]:
    """Check every entry and collapse case-insensitive duplicates.

    A repeated identity keeps the slot of its first appearance and the
    permission of its last one.
    """
    merged: dict[str, DesiredCollaborator] = {}
    for entry in desired:
        identity = getattr(entry, "identity", None)
        if not isinstance(entry, DesiredCollaborator) or not isinstance(identity, str) or not identity.strip():
            raise ValidationError(f"Invalid collaborator entry: {_serialize(entry)}")
        if identity != identity.strip():
            entry = DesiredCollaborator(identity.strip(), entry.permission)
        key = entry.canonical
        if key in merged:
            first = merged[key]
            merged[key] = DesiredCollaborator(first.identity, entry.permission)
        else:
            merged[key] = entry
    return list(merged.values())


# =============================================================================
# Diff
# =============================================================================


def plan(
    desired: Sequence[DesiredCollaborator],
    collaborators: Sequence[RemoteCollaborator],
    invitations: Sequence[PendingInvitation],
) -> list[Action]:
    """Compute the actions that converge the observed state to ``desired``.

    Pure function: ``desired`` is expected to be validated already.
    """
    current: dict[str, RemoteCollaborator] = {}
    for collab in collaborators:
        current.setdefault(collab.canonical, collab)

    pending: dict[str, PendingInvitation] = {}
    for invite in invitations:
        if invite.canonical is not None:
            pending.setdefault(invite.canonical, invite)

    wanted = {canonical_identity(c.identity) for c in desired}
    actions: list[Action] = []

    # Add or update
    for collab in desired:
        key = canonical_identity(collab.identity)

        existing = current.get(key)
        if existing is not None:
            if existing.permission == collab.permission:
                actions.append(Action(
                    "keep", collab.identity, collab.permission,
                    detail=f"already {collab.permission}",
                ))
            else:
                actions.append(Action(
                    "update", collab.identity, collab.permission, previous=existing.permission,
                ))
            continue

        invite = pending.get(key)
        if invite is not None:
            if invite.permission == collab.permission:
                actions.append(Action(
                    "keep", collab.identity, collab.permission,
                    invitation_id=invite.invitation_id,
                    detail=f"invitation pending [{collab.permission}]",
                ))
            else:
                actions.append(Action(
                    "reinvite", collab.identity, collab.permission,
                    previous=invite.permission, invitation_id=invite.invitation_id,
                ))
            continue

        actions.append(Action("add", collab.identity, collab.permission))

    # Remove collaborators
    for collab in collaborators:
        if collab.canonical not in wanted:
            actions.append(Action("remove", collab.identity, previous=collab.permission))

    # Revoke invitations
    for invite in invitations:
        if invite.invitee is None:
            continue
        if invite.canonical not in wanted:
            actions.append(Action(
                "uninvite", invite.invitee,
                previous=invite.permission, invitation_id=invite.invitation_id,
            ))

    return actions


# =============================================================================
# Engine
# =============================================================================


@contextmanager
def _remote_call(what: str) -> Iterator[None]:
    try:
        yield
    except CollabSyncError:
        raise
    except Exception as exc:
        raise RemoteAccessError(f"Failed to {what}: {exc}") from exc


class CollaboratorManager:
    """Synchronize one repository's collaborators with a desired list."""

    def __init__(self, repository: RepositoryAccess, *, dry_run: bool = False) -> None:
        self.repository = repository
        self.dry_run = dry_run

    def observe(self) -> tuple[list[RemoteCollaborator], list[PendingInvitation]]:
        with _remote_call("list collaborators"):
            collaborators = list(self.repository.list_collaborators())
        output.info(f"found {len(collaborators)} current collaborator(s)")

        with _remote_call("list invitations"):
            invitations = list(self.repository.list_invitations())
        output.info(f"found {len(invitations)} pending invitation(s)")

        return collaborators, invitations

    def synchronize(self, desired: Iterable[DesiredCollaborator]) -> SyncReport:
        wanted = validate_desired(desired)
        collaborators, invitations = self.observe()

        report = SyncReport(dry_run=self.dry_run)
        for action in plan(wanted, collaborators, invitations):
            if action.mutating and not self.dry_run:
                self._apply(action)
            report.actions.append(action)
            output.action_line(action, dry_run=self.dry_run)
        return report

    def _apply(self, action: Action) -> None:
        repo = self.repository

        if action.kind in ("add", "update"):
            with _remote_call(f"set {action.identity} to {action.permission}"):
                repo.upsert_collaborator(action.identity, action.permission)

        elif action.kind == "reinvite":
            with _remote_call(f"delete invitation {action.invitation_id} for {action.identity}"):
                repo.delete_invitation(action.invitation_id)
            try:
                with _remote_call(f"re-invite {action.identity} with {action.permission}"):
                    repo.upsert_collaborator(action.identity, action.permission)
            except RemoteAccessError as exc:
                raise RemoteAccessError(
                    f"{exc} (the previous invitation was already deleted; "
                    f"{action.identity} has no pending invitation until this is re-run)"
                ) from exc

        elif action.kind == "remove":
            with _remote_call(f"remove collaborator {action.identity}"):
                repo.revoke_collaborator(action.identity)

        elif action.kind == "uninvite":
            with _remote_call(f"delete invitation {action.invitation_id} for {action.identity}"):
                repo.delete_invitation(action.invitation_id)

        else:
            raise ValueError(f"Unknown action: {action.kind!r}")
