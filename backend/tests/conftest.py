"""
Pytest fixtures for branchfin backend tests.

Provides test database setup, profile/branch factories and bearer headers.
"""

from datetime import date
from decimal import Decimal

import pytest
from branchfin import create_app
from branchfin.extensions import db
from branchfin.models import Branch, FinancialRecord, ManagerBranchAssignment
from branchfin.permissions import ADMIN, MANAGER, BRANCH_STAFF, USER
from branchfin.services import auth_service, session_service
from branchfin.time_utils import utcnow


DEFAULT_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SECRET_KEY': 'test-secret-key',
        'BCRYPT_ROUNDS': 4,
        'BUSINESS_TIMEZONE': 'UTC',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_profile(db_session):
    """Factory: make_profile("x@example.com", role=MANAGER, staff_branch=branch)."""
    def _make(email, role=USER, staff_branch=None, password=DEFAULT_PASSWORD):
        profile = auth_service.create_profile(email=email, password=password)
        profile.role = role
        if staff_branch is not None:
            profile.staff_branch_id = staff_branch.id
        db_session.commit()
        return profile
    return _make


@pytest.fixture(scope='function')
def make_branch(db_session):
    def _make(name, archived=False):
        branch = Branch(name=name, archived=archived, archived_at=utcnow() if archived else None)
        db_session.add(branch)
        db_session.commit()
        return branch
    return _make


@pytest.fixture(scope='function')
def make_record(db_session):
    def _make(branch, record_date: date, earnings=Decimal("100.00"), expenses=Decimal("40.00"), summary="ok"):
        record = FinancialRecord(
            branch_id=branch.id,
            date=record_date,
            earnings=earnings,
            expenses=expenses,
            summary=summary,
        )
        db_session.add(record)
        db_session.commit()
        return record
    return _make


@pytest.fixture(scope='function')
def branch_a(make_branch):
    return make_branch("Downtown")


@pytest.fixture(scope='function')
def branch_b(make_branch):
    return make_branch("Harbor")


@pytest.fixture(scope='function')
def admin(make_profile):
    return make_profile("admin@example.com", role=ADMIN)


@pytest.fixture(scope='function')
def manager(db_session, make_profile, branch_a, admin):
    """Manager assigned to branch_a only."""
    profile = make_profile("manager@example.com", role=MANAGER)
    db_session.add(ManagerBranchAssignment(manager_id=profile.id, branch_id=branch_a.id, assigned_by_id=admin.id))
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def staff(make_profile, branch_a):
    """Branch staff at branch_a."""
    return make_profile("staff@example.com", role=BRANCH_STAFF, staff_branch=branch_a)


@pytest.fixture(scope='function')
def pending_user(make_profile):
    return make_profile("pending@example.com", role=USER)


def auth_headers(profile) -> dict:
    """Bearer headers from a real session token."""
    _, token = session_service.create_session(profile.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture(scope='function')
def manager_headers(manager):
    return auth_headers(manager)


@pytest.fixture(scope='function')
def staff_headers(staff):
    return auth_headers(staff)


@pytest.fixture(scope='function')
def pending_headers(pending_user):
    return auth_headers(pending_user)
