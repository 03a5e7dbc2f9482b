"""
End-to-end resolution against the snapshot and SQLite backends.

Both backends load the same org chart (see conftest.org_snapshot) and must
give the same answers.
"""

import pytest

from workengine.database import get_session, import_snapshot, init_database
from workengine.models import ApprovalRequest, RuleOutcome, TenantScope
from workengine.repository import SqlRelationshipLookup
from workengine.resolver import explain_approval_assignee, resolve_approval_assignee
from workengine.storage import SnapshotRelationshipLookup


@pytest.fixture(params=["snapshot", "sqlite"])
def lookup(request, org_snapshot):
    if request.param == "snapshot":
        return SnapshotRelationshipLookup(org_snapshot)
    return SqlRelationshipLookup(request.getfixturevalue("db_session"))


def _request(entity_type, state="submitted", requested_by=None, entity_id="X-1", company_id="acme"):
    return ApprovalRequest(company_id, entity_type, entity_id, state, requested_by)


@pytest.mark.parametrize("request_args,expected", [
    # line manager via manager_employee_id
    (dict(entity_type="leave_request", requested_by="u-alice"), "u-bob"),
    # line manager via manager_user_id
    (dict(entity_type="leave_request", requested_by="u-bob"), "u-carol"),
    # direct manager wins when both are set
    (dict(entity_type="leave_request", requested_by="u-dave"), "u-bob"),
    # no manager: HR admin before HR staff
    (dict(entity_type="leave_request", requested_by="u-erin"), "u-hr-admin"),
    (dict(entity_type="attendance_request", requested_by="u-alice"), "u-hr-admin"),
    (dict(entity_type="hr_promotion"), "u-hr-admin"),
    # contracts
    (dict(entity_type="contract", state="legal_review", entity_id="c-1"), "u-legal"),
    (dict(entity_type="contract", state="final_approval", entity_id="c-1"), "u-owner"),
    (dict(entity_type="contract", state="legal_review", entity_id="c-2"), "u-owner"),
    # globex contract is invisible from acme; falls back to the lowest active admin
    (dict(entity_type="contract", entity_id="c-9"), "u-admin-b"),
    (dict(entity_type="task"), "u-admin-b"),
    # globex requester is unknown inside acme
    (dict(entity_type="leave_request", requested_by="u-gus"), "u-hr-admin"),
    # globex
    (dict(entity_type="leave_request", requested_by="u-gus", company_id="globex"), "u-hank"),
    (dict(entity_type="task", company_id="globex"), "u-globex-admin"),
    (dict(entity_type="contract", entity_id="c-1", company_id="globex"), "u-globex-admin"),
    (dict(entity_type="hr_bonus", company_id="globex"), "u-globex-hr"),
    # unknown company
    (dict(entity_type="task", company_id="initech"), None),
])
def test_resolution(lookup, request_args, expected):
    assert resolve_approval_assignee(lookup, _request(**request_args)) == expected


def test_idempotent(lookup):
    request = _request("leave_request", requested_by="u-alice")

    first = explain_approval_assignee(lookup, request)
    second = explain_approval_assignee(lookup, request)

    assert first == second


def test_hr_pool_admin_first(lookup):
    entries = lookup.list_users_by_roles(TenantScope("acme"), ["hr_admin", "hr_staff"], order_admin_first=True)

    assert [e.user_id for e in entries] == ["u-hr-admin", "u-hr-staff"]


def test_hr_pool_plain_order(lookup):
    entries = lookup.list_users_by_roles(TenantScope("acme"), ["hr_admin", "hr_staff"], order_admin_first=False)

    assert [e.user_id for e in entries] == ["u-hr-admin", "u-hr-staff"]
    assert all(e.company_id == "acme" for e in entries)


def test_active_admins(lookup):
    admins = lookup.list_active_admins(TenantScope("acme"))

    assert [a.user_id for a in admins] == ["u-admin-b", "u-admin-z"]


def test_employee_reads_are_scoped(lookup):
    acme = TenantScope("acme")
    globex = TenantScope("globex")

    assert lookup.get_employee_by_user_id(acme, "u-alice").employee_id == "e-alice"
    assert lookup.get_employee_by_user_id(globex, "u-alice") is None
    assert lookup.get_employee_by_id(acme, "e-gus") is None
    assert lookup.get_employee_user_id(acme, "e-bob") == "u-bob"
    assert lookup.get_employee_user_id(acme, "e-missing") is None


def test_contract_reads_are_scoped(lookup):
    ownership = lookup.get_contract_ownership(TenantScope("acme"), "c-1")

    assert ownership.owner_user_id == "u-owner"
    assert ownership.legal_reviewer_user_id == "u-legal"
    assert lookup.get_contract_ownership(TenantScope("globex"), "c-1") is None


SHARED_IDS = {
    "employees": [
        {"id": "e-1", "company_id": "acme", "user_id": "u-acme-1", "manager_user_id": "u-acme-boss"},
        {"id": "e-1", "company_id": "globex", "user_id": "u-globex-1", "manager_user_id": "u-globex-boss"},
    ],
    "user_roles": [],
    "contracts": [
        {"id": "c-1", "company_id": "acme", "owner_user_id": "u-acme-owner"},
        {"id": "c-1", "company_id": "globex", "owner_user_id": "u-globex-owner"},
    ],
}


@pytest.fixture(params=["snapshot", "sqlite"])
def shared_ids_lookup(request, tmp_path):
    if request.param == "snapshot":
        return SnapshotRelationshipLookup(SHARED_IDS)
    db_path = tmp_path / "shared.db"
    init_database(db_path)
    session = get_session(db_path)
    import_snapshot(session, SHARED_IDS)
    request.addfinalizer(session.close)
    return SqlRelationshipLookup(session)


@pytest.mark.parametrize("request_args,expected", [
    (dict(entity_type="contract", entity_id="c-1"), "u-acme-owner"),
    (dict(entity_type="contract", entity_id="c-1", company_id="globex"), "u-globex-owner"),
    (dict(entity_type="leave_request", requested_by="u-acme-1"), "u-acme-boss"),
    (dict(entity_type="leave_request", requested_by="u-globex-1", company_id="globex"), "u-globex-boss"),
])
def test_same_ids_across_companies(shared_ids_lookup, request_args, expected):
    assert resolve_approval_assignee(shared_ids_lookup, _request(**request_args)) == expected


def test_string_active_flag_never_counts_as_active():
    """A deactivated admin stored as the string "false" is not picked."""
    lookup = SnapshotRelationshipLookup({
        "user_roles": [
            {"user_id": "u-a", "company_id": "acme", "role": "admin", "is_active": "false"},
            {"user_id": "u-b", "company_id": "acme", "role": "admin", "is_active": True},
        ],
    })

    resolution = explain_approval_assignee(lookup, _request("task"))

    assert resolution.assignee != "u-a"
    assert resolution.outcomes[-1].status == RuleOutcome.LOOKUP_FAILED
    assert "is_active" in resolution.outcomes[-1].reason
