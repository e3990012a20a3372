"""
CLI command tests.

Verifies:
- system init creates an admin once and is safe to re-run
- users create/set-role go through the same validation as the API
- branches list hides archived branches unless --all
"""

from branchfin.models import ManagerBranchAssignment, Profile
from branchfin.permissions import ADMIN, MANAGER, USER

from conftest import DEFAULT_PASSWORD


class TestSystemInit:

    def test_creates_admin_once(self, app, db_session):
        runner = app.test_cli_runner()
        args = ["system", "init", "--admin-email", "Root@Example.com", "--admin-password", DEFAULT_PASSWORD]

        result = runner.invoke(args=args)
        assert result.exit_code == 0
        assert "PASS Created admin: root@example.com" in result.output

        result = runner.invoke(args=args)
        assert "Using existing profile" in result.output
        assert db_session.query(Profile).filter_by(role=ADMIN).count() == 1

    def test_weak_password_reported(self, app, db_session):
        result = app.test_cli_runner().invoke(
            args=["system", "init", "--admin-email", "root@example.com", "--admin-password", "weak"]
        )
        assert "FAIL Password validation failed" in result.output
        assert db_session.query(Profile).count() == 0


class TestUsersCommands:

    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create", "--email", "boss@example.com", "--password", DEFAULT_PASSWORD, "--role", MANAGER,
        ])
        assert "PASS Created profile: boss@example.com with role 'manager'" in result.output

        result = runner.invoke(args=["users", "list", "--role", MANAGER])
        assert "boss@example.com" in result.output

    def test_set_role_clears_assignments(self, app, db_session, manager):
        result = app.test_cli_runner().invoke(args=["users", "set-role", manager.email, USER])
        assert "is now 'user'" in result.output
        assert db_session.query(ManagerBranchAssignment).count() == 0

    def test_set_role_unknown_profile(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["users", "set-role", "ghost@example.com", USER])
        assert "FAIL Profile 'ghost@example.com' not found" in result.output


class TestBranchesCommands:

    def test_list_hides_archived(self, app, branch_a, make_branch):
        make_branch("Closed", archived=True)
        runner = app.test_cli_runner()

        result = runner.invoke(args=["branches", "list"])
        assert "Downtown" in result.output
        assert "Closed" not in result.output

        result = runner.invoke(args=["branches", "list", "--all"])
        assert "Closed" in result.output


class TestMaintenanceCommands:

    def test_cleanup_sessions(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-sessions", "--retention-days", "1"])
        assert result.exit_code == 0
        assert "Deleted 0 sessions" in result.output
