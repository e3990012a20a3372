"""
Role policy tests.

Verifies:
- Capability table per role
- Page gateway decisions
- Accessible branch sets (archived branches excluded)
- Staff write window
- Approver scope evaluated live
"""

from datetime import date, timedelta

import pytest

from branchfin.models import SecurityEvent
from branchfin.permissions import ADMIN, MANAGER, BRANCH_STAFF, USER, capabilities_for_role, get_all_capability_codes
from branchfin.services import policy_service
from branchfin.validation import AccessDeniedError, NotFoundError


TODAY = date(2024, 5, 10)


class TestCapabilityTable:

    def test_admin_has_everything_but_submitting(self):
        caps = capabilities_for_role(ADMIN)
        assert caps == set(get_all_capability_codes()) - {"SUBMIT_CHANGE_REQUESTS"}

    def test_manager_cannot_manage_branches_or_roles(self):
        caps = capabilities_for_role(MANAGER)
        assert "APPROVE_CHANGE_REQUESTS" in caps
        assert "ASSIGN_STAFF" in caps
        assert "MANAGE_BRANCHES" not in caps
        assert "ASSIGN_MANAGERS" not in caps
        assert "MANAGE_ROLES" not in caps

    def test_staff_submits_but_never_approves(self):
        caps = capabilities_for_role(BRANCH_STAFF)
        assert "SUBMIT_CHANGE_REQUESTS" in caps
        assert "APPROVE_CHANGE_REQUESTS" not in caps

    def test_user_and_unknown_roles_have_nothing(self):
        assert capabilities_for_role(USER) == frozenset()
        assert capabilities_for_role("superuser") == frozenset()
        assert capabilities_for_role(None) == frozenset()


class TestPageAccess:

    @pytest.mark.parametrize(
        "role,path,allowed",
        [
            (ADMIN, "/admin/roles", True),
            (ADMIN, "/dashboard", True),
            (MANAGER, "/dashboard", True),
            (MANAGER, "/admin/financial-approvals", True),
            (MANAGER, "/admin/roles", False),
            (MANAGER, "/admin/roles/edit", False),
            (BRANCH_STAFF, "/branch", True),
            (BRANCH_STAFF, "/branch/3", True),
            (BRANCH_STAFF, "/branches-report", False),
            (BRANCH_STAFF, "/dashboard", False),
            (USER, "/", True),
            (USER, "/login", True),
            (USER, "/authorization-pending", True),
            (USER, "/dashboard", False),
            (None, "/branch", False),
        ],
    )
    def test_gateway_table(self, role, path, allowed):
        result, redirect = policy_service.page_access(role, path)
        assert result is allowed
        if allowed:
            assert redirect is None
        else:
            assert redirect == "/authorization-pending"

    def test_decision_is_deterministic(self):
        first = policy_service.page_access(MANAGER, "/admin/roles")
        assert all(policy_service.page_access(MANAGER, "/admin/roles") == first for _ in range(5))


class TestAccessibleBranches:

    def test_admin_sees_all_active(self, admin, branch_a, branch_b, make_branch):
        make_branch("Closed", archived=True)
        assert policy_service.get_accessible_branch_ids(admin) == {branch_a.id, branch_b.id}

    def test_manager_sees_assigned_only(self, manager, branch_a, branch_b):
        assert policy_service.get_accessible_branch_ids(manager) == {branch_a.id}

    def test_manager_loses_archived_branch(self, db_session, manager, branch_a):
        branch_a.archived = True
        db_session.commit()
        assert policy_service.get_accessible_branch_ids(manager) == set()

    def test_staff_sees_own_branch(self, staff, branch_a):
        assert policy_service.get_accessible_branch_ids(staff) == {branch_a.id}

    def test_unassigned_staff_and_user_see_nothing(self, make_profile, pending_user):
        loose = make_profile("loose@example.com", role=BRANCH_STAFF)
        assert policy_service.get_accessible_branch_ids(loose) == set()
        assert policy_service.get_accessible_branch_ids(pending_user) == set()

    def test_out_of_scope_branch_is_denied_and_logged(self, db_session, manager, branch_b):
        with pytest.raises(AccessDeniedError):
            policy_service.require_branch_access(manager, branch_b.id, resource="/test")

        event = db_session.query(SecurityEvent).filter_by(event_type="BRANCH_ACCESS_DENIED").one()
        assert event.profile_id == manager.id
        assert event.branch_id == branch_b.id
        assert event.success is False

    def test_admin_gets_not_found_for_missing_branch(self, admin):
        with pytest.raises(NotFoundError):
            policy_service.require_branch_access(admin, 99999)

    def test_non_admin_gets_forbidden_for_missing_branch(self, manager):
        with pytest.raises(AccessDeniedError):
            policy_service.require_branch_access(manager, 99999)


class TestWriteWindow:

    def _mode(self, profile, branch, record_date, exists):
        return policy_service.financial_write_mode(
            profile, branch.id, record_date, record_exists=exists, today=TODAY
        )

    def test_staff_today_is_direct(self, staff, branch_a):
        assert self._mode(staff, branch_a, TODAY, False) == policy_service.WRITE_DIRECT
        assert self._mode(staff, branch_a, TODAY, True) == policy_service.WRITE_DIRECT

    def test_staff_yesterday_direct_only_while_empty(self, staff, branch_a):
        yesterday = TODAY - timedelta(days=1)
        assert self._mode(staff, branch_a, yesterday, False) == policy_service.WRITE_DIRECT
        assert self._mode(staff, branch_a, yesterday, True) == policy_service.WRITE_CHANGE_REQUEST

    def test_staff_older_dates_need_change_request(self, staff, branch_a):
        older = TODAY - timedelta(days=2)
        assert self._mode(staff, branch_a, older, False) == policy_service.WRITE_CHANGE_REQUEST

    def test_staff_other_branch_denied(self, staff, branch_b):
        with pytest.raises(AccessDeniedError):
            self._mode(staff, branch_b, TODAY, False)

    def test_manager_direct_within_assignment(self, manager, branch_a, branch_b):
        old = TODAY - timedelta(days=30)
        assert self._mode(manager, branch_a, old, True) == policy_service.WRITE_DIRECT
        with pytest.raises(AccessDeniedError):
            self._mode(manager, branch_b, TODAY, False)

    def test_admin_direct_anywhere(self, admin, branch_b):
        assert self._mode(admin, branch_b, TODAY - timedelta(days=365), True) == policy_service.WRITE_DIRECT

    def test_user_cannot_write(self, pending_user, branch_a):
        with pytest.raises(AccessDeniedError):
            self._mode(pending_user, branch_a, TODAY, False)


class TestApproverScope:

    def test_admin_decides_any_branch(self, admin, branch_b):
        assert policy_service.can_decide_change_request(admin, branch_b.id)

    def test_manager_decides_assigned_only(self, manager, branch_a, branch_b):
        assert policy_service.can_decide_change_request(manager, branch_a.id)
        assert not policy_service.can_decide_change_request(manager, branch_b.id)

    def test_manager_scope_is_read_live(self, db_session, manager, branch_a):
        from branchfin.models import ManagerBranchAssignment

        db_session.query(ManagerBranchAssignment).filter_by(manager_id=manager.id).delete()
        db_session.commit()
        assert not policy_service.can_decide_change_request(manager, branch_a.id)

    def test_staff_never_decides(self, staff, branch_a):
        assert not policy_service.can_decide_change_request(staff, branch_a.id)
