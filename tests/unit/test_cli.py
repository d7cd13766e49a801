"""Unit tests — hrmsctl commands against the test database."""

import pytest
from typer.testing import CliRunner

from hrms.cli import app
from hrms.models.user import User
from hrms.services.role_store import RoleStore

pytestmark = pytest.mark.unit

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_sessions(monkeypatch, session_factory):
    """Commands open their own sessions; point them at the test database."""
    monkeypatch.setattr("hrms.db.session.SessionLocal", session_factory)


def test_roles_assign_allowed(make_user, db_session):
    hr_admin = make_user(role="hr-admin")
    user = make_user(role="employee")

    result = runner.invoke(app, ["roles", "assign", user.id, "manager", "--by", hr_admin.id])
    assert result.exit_code == 0
    assert "Role manager assigned successfully" in result.output

    db_session.expire_all()
    assert RoleStore(db_session).get_active_role(user.id).role_name == "manager"


def test_roles_assign_denied(make_user, db_session):
    manager = make_user(role="manager")
    user = make_user(role="employee")

    result = runner.invoke(app, ["roles", "assign", user.id, "hr-admin", "--by", manager.id])
    assert result.exit_code == 1
    assert "Insufficient permissions to assign this role" in result.output

    db_session.expire_all()
    assert RoleStore(db_session).get_active_role(user.id).role_name == "employee"


def test_roles_list_marks_active(make_user):
    user = make_user(role="employee")
    result = runner.invoke(app, ["roles", "list", user.id])
    assert result.exit_code == 0
    assert result.output.startswith("* employee")


def test_system_init_runs_once(db_session):
    result = runner.invoke(app, ["system", "init", "--email", "root@example.com"])
    assert result.exit_code == 0
    assert "System initialized" in result.output
    assert "root@example.com" in result.output

    db_session.expire_all()
    admin = db_session.query(User).filter(User.email == "root@example.com").one()
    assert RoleStore(db_session).get_active_role(admin.id).role_name == "super-admin"

    again = runner.invoke(app, ["system", "init", "--email", "other@example.com"])
    assert again.exit_code == 1
    assert "already initialized" in again.output


def test_system_status_after_init():
    runner.invoke(app, ["system", "init", "--email", "root@example.com"])
    result = runner.invoke(app, ["system", "status"])
    assert result.exit_code == 0
    assert "super-admin: 1" in result.output
