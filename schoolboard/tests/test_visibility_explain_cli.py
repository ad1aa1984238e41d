"""Support CLI printing the visibility SQL for a principal."""
from __future__ import annotations

from click.testing import CliRunner

from schoolboard.tools.visibility_explain import cli


def test_teacher_announcement_sql():
    result = CliRunner().invoke(cli, ["--role", "teacher", "--principal", "t-1", "--kind", "announcement"])
    assert result.exit_code == 0, result.output
    assert "list: allowed (role_permitted)" in result.output
    assert "FROM announcements t0 WHERE (t0.class_id IS NULL OR EXISTS (SELECT 1 FROM classes t1" in result.output
    assert "params: ['t-1']" in result.output


def test_admin_with_search_and_filter():
    result = CliRunner().invoke(
        cli, ["--role", "admin", "--principal", "a-1", "--kind", "student", "--search", "ann", "--filter", "classId=3"]
    )
    assert result.exit_code == 0, result.output
    assert "params: [3, '%ann%', '%ann%']" in result.output


def test_denied_role_is_reported():
    result = CliRunner().invoke(cli, ["--role", "student", "--principal", "s-1", "--kind", "subject"])
    assert result.exit_code == 0
    assert "list: denied (list_not_permitted_for_student)" in result.output


def test_bad_filter_value_fails():
    result = CliRunner().invoke(
        cli, ["--role", "admin", "--principal", "a-1", "--kind", "student", "--filter", "classId=abc"]
    )
    assert result.exit_code != 0
    assert "invalid filters" in result.output


def test_malformed_filter_option_fails():
    result = CliRunner().invoke(cli, ["--role", "admin", "--principal", "a-1", "--kind", "student", "--filter", "classId"])
    assert result.exit_code == 2
