"""Tests for the collaborator document parser."""

from unittest.mock import patch

import pytest

from collabsync.errors import FormatError
from collabsync.models import DesiredCollaborator
from collabsync.parser import load_collaborators_file, map_role, parse


# =============================================================================
# Role Mapping
# =============================================================================


class TestMapRole:
    """Tests for map_role."""

    def test_admin(self):
        assert map_role("admin") == "admin"

    def test_member_is_push(self):
        assert map_role("member") == "push"

    @pytest.mark.parametrize("role", ["pull", "push", "maintain", "triage"])
    def test_permission_levels_pass_through(self, role):
        assert map_role(role) == role

    def test_case_insensitive(self):
        assert map_role("Maintain") == "maintain"

    @pytest.mark.parametrize(("role", "expected"), [("read", "pull"), ("Write", "push")])
    def test_ui_names_are_aliases(self, role, expected, capsys):
        assert map_role(role) == expected
        assert "warning" not in capsys.readouterr().out.lower()

    def test_missing_role_is_push(self, capsys):
        assert map_role(None) == "push"
        assert "warning" not in capsys.readouterr().out.lower()

    def test_unknown_role_warns(self, capsys):
        assert map_role("overlord") == "push"
        out = capsys.readouterr().out
        assert "warning" in out.lower()
        assert "overlord" in out


# =============================================================================
# Shapes
# =============================================================================


class TestParseTeams:
    """Team-grouped documents."""

    def test_members_inherit_role(self):
        text = """
- team: Maintainers
  role: admin
  members:
    - username: alice
      name: Alice
      email: alice@example.com
      timezone: UTC
- team: Developers
  role: member
  members:
    - username: bob
    - username: carol
"""
        assert parse(text) == [
            DesiredCollaborator("alice", "admin"),
            DesiredCollaborator("bob", "push"),
            DesiredCollaborator("carol", "push"),
        ]

    def test_unknown_team_role_defaults_to_push(self, capsys):
        text = """
- team: Guests
  role: visitor
  members:
    - username: dave
"""
        assert parse(text) == [DesiredCollaborator("dave", "push")]
        assert "visitor" in capsys.readouterr().out

    def test_empty_members(self):
        assert parse("- team: Nobody\n  role: admin\n  members: []\n") == []

    def test_null_members(self):
        assert parse("- team: Nobody\n  role: admin\n  members:\n") == []

    def test_numeric_member_logins(self):
        text = "- team: T\n  role: pull\n  members:\n    - 12345\n    - username: 678\n"
        assert parse(text) == [DesiredCollaborator("12345", "pull"), DesiredCollaborator("678", "pull")]

    def test_member_without_username_is_kept_for_validation(self):
        result = parse("- team: T\n  role: pull\n  members:\n    - name: Anonymous\n")
        assert result == [DesiredCollaborator(None, "pull")]


class TestParseFlatList:
    """Bare username lists."""

    def test_defaults_to_push(self):
        assert parse("- alice\n- bob\n") == [
            DesiredCollaborator("alice", "push"),
            DesiredCollaborator("bob", "push"),
        ]

    def test_empty_list(self):
        assert parse("[]") == []

    def test_numeric_logins_become_strings(self):
        assert parse("- 12345\n- bob\n") == [
            DesiredCollaborator("12345", "push"),
            DesiredCollaborator("bob", "push"),
        ]


class TestParseEntryList:
    """Lists of objects with explicit permissions."""

    def test_explicit_and_default_permissions(self):
        text = """
- username: alice
  permission: admin
- username: bob
- carol
"""
        assert parse(text) == [
            DesiredCollaborator("alice", "admin"),
            DesiredCollaborator("bob", "push"),
            DesiredCollaborator("carol", "push"),
        ]

    def test_role_field_is_accepted(self):
        assert parse("- username: alice\n  role: triage\n") == [DesiredCollaborator("alice", "triage")]

    def test_permission_lowercased(self):
        assert parse("- username: alice\n  permission: ADMIN\n") == [DesiredCollaborator("alice", "admin")]

    def test_numeric_username(self):
        assert parse("- username: 12345\n  permission: admin\n- 678\n") == [
            DesiredCollaborator("12345", "admin"),
            DesiredCollaborator("678", "push"),
        ]


class TestParsePermissionMap:
    """Mappings of username to permission."""

    def test_mapping(self):
        text = """
alice: admin
bob: pull
carol: null
dave:
"""
        assert parse(text) == [
            DesiredCollaborator("alice", "admin"),
            DesiredCollaborator("bob", "pull"),
            DesiredCollaborator("carol", "push"),
            DesiredCollaborator("dave", "push"),
        ]

    def test_numeric_keys(self):
        assert parse("12345: admin\nbob: push\n") == [
            DesiredCollaborator("12345", "admin"),
            DesiredCollaborator("bob", "push"),
        ]

    def test_unknown_value_warns_and_defaults(self, capsys):
        assert parse("alice: owner\n") == [DesiredCollaborator("alice", "push")]
        assert "warning" in capsys.readouterr().out.lower()


class TestParseErrors:
    """Documents that match no shape."""

    def test_empty_document(self):
        assert parse("") == []

    def test_scalar(self):
        with pytest.raises(FormatError, match="Unable to parse"):
            parse("just a string")

    def test_nested_mapping_values(self):
        with pytest.raises(FormatError):
            parse("alice:\n  permission: admin\n")

    def test_list_of_floats_and_booleans(self):
        with pytest.raises(FormatError):
            parse("- 1.5\n- true\n")

    def test_team_members_as_string(self):
        with pytest.raises(FormatError):
            parse("- team: devs\n  role: admin\n  members: alice\n")

    def test_team_members_as_mapping(self):
        with pytest.raises(FormatError):
            parse("- team: devs\n  role: admin\n  members:\n    alice: admin\n")

    def test_team_without_members(self):
        with pytest.raises(FormatError):
            parse("- team: devs\n  role: admin\n")

    def test_team_mixed_with_plain_names(self):
        with pytest.raises(FormatError):
            parse("- team: devs\n  role: admin\n  members: [alice]\n- bob\n")

    def test_invalid_yaml(self):
        with pytest.raises(FormatError, match="Invalid YAML"):
            parse("alice: [admin\n")


# =============================================================================
# File Loading
# =============================================================================


class TestLoadCollaboratorsFile:
    """Tests for load_collaborators_file."""

    def test_reads_file(self, tmp_path):
        path = tmp_path / "collaborators.yml"
        path.write_text("- alice\n")
        assert load_collaborators_file(path) == [DesiredCollaborator("alice")]

    @patch("collabsync.parser._git_root", return_value=None)
    def test_missing_file(self, mock_root, tmp_path):
        with pytest.raises(FileNotFoundError, match="not found"):
            load_collaborators_file(tmp_path / "missing.yml")

    @patch("collabsync.parser._git_root")
    def test_relative_path_falls_back_to_repo_root(self, mock_root, tmp_path, monkeypatch):
        (tmp_path / ".github").mkdir()
        (tmp_path / ".github" / "collaborators.yml").write_text("alice: admin\n")
        elsewhere = tmp_path / "sub"
        elsewhere.mkdir()
        monkeypatch.chdir(elsewhere)
        mock_root.return_value = tmp_path

        assert load_collaborators_file(".github/collaborators.yml") == [DesiredCollaborator("alice", "admin")]

    def test_format_error_names_file(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("42\n")
        with pytest.raises(FormatError, match="bad.yml"):
            load_collaborators_file(path)
