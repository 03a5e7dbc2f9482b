"""
Pytest configuration and shared fixtures.
"""

import os

# Keep test runs from writing log files; must be set before workengine
# modules create their module-level loggers.
os.environ.setdefault("WORKENGINE_LOG_TO_FILE", "0")

import pytest
from typing import Any, Dict

from workengine.database import get_session, import_snapshot, init_database
from workengine.lookup import LookupFailedError, RelationshipLookup
from workengine.models import ApprovalRequest


class StubLookup(RelationshipLookup):
    """
    Hand-configured relationship lookup.

    ``failing`` names operations that raise LookupFailedError; every call is
    recorded in ``calls`` as (operation, company_id, *args).
    """

    def __init__(
        self,
        employees_by_user=None,
        employees=None,
        roles=None,
        contracts=None,
        admins=None,
        failing=(),
    ):
        self.employees_by_user = employees_by_user or {}
        self.employees = employees or {}
        self.roles = roles or []
        self.contracts = contracts or {}
        self.admins = admins or []
        self.failing = set(failing)
        self.calls = []

    def _call(self, op, scope, *args):
        self.calls.append((op, scope.company_id) + args)
        if op in self.failing or "*" in self.failing:
            raise LookupFailedError(f"{op}: simulated network failure")

    def operations(self):
        return [c[0] for c in self.calls]

    def get_employee_by_user_id(self, scope, user_id):
        self._call("get_employee_by_user_id", scope, user_id)
        return self.employees_by_user.get(user_id)

    def get_employee_by_id(self, scope, employee_id):
        self._call("get_employee_by_id", scope, employee_id)
        return self.employees.get(employee_id)

    def get_employee_user_id(self, scope, employee_id):
        self._call("get_employee_user_id", scope, employee_id)
        employee = self.employees.get(employee_id)
        return employee.user_id if employee else None

    def list_users_by_roles(self, scope, roles, order_admin_first=True):
        self._call("list_users_by_roles", scope, tuple(roles), order_admin_first)
        return [r for r in self.roles if r.role in roles]

    def get_contract_ownership(self, scope, contract_id):
        self._call("get_contract_ownership", scope, contract_id)
        return self.contracts.get(contract_id)

    def list_active_admins(self, scope):
        self._call("list_active_admins", scope)
        return list(self.admins)


@pytest.fixture
def stub_lookup():
    """Factory for StubLookup instances."""
    return StubLookup


@pytest.fixture
def leave_request() -> ApprovalRequest:
    return ApprovalRequest(
        company_id="acme",
        entity_type="leave_request",
        entity_id="LR-1",
        current_state="submitted",
        requested_by="u-alice",
    )


@pytest.fixture
def org_snapshot() -> Dict[str, Any]:
    """Two companies: acme with a full org chart, globex with one admin."""
    return {
        "employees": [
            {"id": "e-alice", "company_id": "acme", "user_id": "u-alice", "manager_employee_id": "e-bob"},
            {"id": "e-bob", "company_id": "acme", "user_id": "u-bob", "manager_user_id": "u-carol"},
            {"id": "e-carol", "company_id": "acme", "user_id": "u-carol"},
            {"id": "e-dave", "company_id": "acme", "user_id": "u-dave", "manager_user_id": "u-bob",
             "manager_employee_id": "e-carol"},
            {"id": "e-erin", "company_id": "acme", "user_id": "u-erin"},
            {"id": "e-gus", "company_id": "globex", "user_id": "u-gus", "manager_user_id": "u-hank"},
        ],
        "user_roles": [
            {"user_id": "u-hr-staff", "company_id": "acme", "role": "hr_staff", "is_active": True},
            {"user_id": "u-hr-admin", "company_id": "acme", "role": "hr_admin", "is_active": True},
            {"user_id": "u-admin-z", "company_id": "acme", "role": "admin", "is_active": True},
            {"user_id": "u-admin-b", "company_id": "acme", "role": "admin", "is_active": True},
            {"user_id": "u-admin-a", "company_id": "acme", "role": "admin", "is_active": False},
            {"user_id": "u-globex-admin", "company_id": "globex", "role": "admin", "is_active": True},
            {"user_id": "u-globex-hr", "company_id": "globex", "role": "hr_admin", "is_active": True},
        ],
        "contracts": [
            {"id": "c-1", "company_id": "acme", "owner_user_id": "u-owner", "legal_reviewer_user_id": "u-legal"},
            {"id": "c-2", "company_id": "acme", "owner_user_id": "u-owner"},
            {"id": "c-9", "company_id": "globex", "owner_user_id": "u-globex-owner"},
        ],
    }


@pytest.fixture
def db_session(tmp_path, org_snapshot):
    """Temporary SQLite relationship store loaded with ``org_snapshot``."""
    db_path = tmp_path / "relationships.db"
    init_database(db_path)
    session = get_session(db_path)
    import_snapshot(session, org_snapshot)
    yield session
    session.close()
