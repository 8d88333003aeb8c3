"""Tests for collabsync value types."""

import dataclasses

import pytest

from collabsync.models import (
    DesiredCollaborator,
    PendingInvitation,
    RemoteCollaborator,
    canonical_identity,
    canonical_permission,
    normalize_permission,
)


class TestNormalizePermission:
    """Tests for normalize_permission."""

    @pytest.mark.parametrize("value", ["pull", "triage", "push", "maintain", "admin"])
    def test_valid_levels_pass_through(self, value):
        assert normalize_permission(value) == value

    def test_lowercases(self):
        assert normalize_permission("  ADMIN ") == "admin"

    def test_github_ui_names(self):
        assert normalize_permission("read") == "pull"
        assert normalize_permission("Write") == "push"

    @pytest.mark.parametrize("value", [None, "", "owner", 3])
    def test_falls_back_to_push(self, value):
        assert normalize_permission(value) == "push"

    def test_canonical_permission_keeps_unknown_names(self):
        assert canonical_permission("Custom-Role") == "custom-role"


class TestDesiredCollaborator:
    """Tests for DesiredCollaborator."""

    def test_default_permission(self):
        assert DesiredCollaborator("alice").permission == "push"

    def test_permission_normalized(self):
        assert DesiredCollaborator("alice", "MAINTAIN").permission == "maintain"

    def test_invalid_permission_defaults(self):
        assert DesiredCollaborator("alice", "superuser").permission == "push"

    def test_canonical(self):
        assert DesiredCollaborator("Alice").canonical == "alice"

    def test_frozen(self):
        c = DesiredCollaborator("alice")
        with pytest.raises(dataclasses.FrozenInstanceError):
            c.identity = "bob"


class TestRemoteTypes:
    """Tests for RemoteCollaborator and PendingInvitation."""

    def test_collaborator_canonical(self):
        assert RemoteCollaborator("OctoCat", "admin").canonical == "octocat"

    def test_invitation_canonical(self):
        assert PendingInvitation(1, "OctoCat", "push").canonical == "octocat"

    def test_invitation_without_invitee(self):
        assert PendingInvitation(1, None, "push").canonical is None

    def test_canonical_identity_strips(self):
        assert canonical_identity(" Bob ") == "bob"
