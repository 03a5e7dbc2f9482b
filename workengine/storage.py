"""
JSON snapshot of the relationship store.

A snapshot is a plain export of the three tables the resolver reads:

    {"employees": [...], "user_roles": [...], "contracts": [...]}

It backs the CLI for local runs and is the input format for loading a
SQLite database.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .lookup import RelationshipLookup
from .models import ContractOwnership, EmployeeRecord, RoleAssignment, ScopedQuery, TenantScope
from .normalize import ADMIN_ROLE, is_admin_role

TABLES = ("employees", "user_roles", "contracts")


def empty_snapshot() -> Dict[str, List[Dict[str, Any]]]:
    return {table: [] for table in TABLES}


def load_snapshot(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return empty_snapshot()
    try:
        with path.open("r", encoding="utf-8") as f:
            content = f.read().strip()
            if not content:
                return empty_snapshot()
            data = json.loads(content)
    except (json.JSONDecodeError, IOError):
        return empty_snapshot()
    if not isinstance(data, dict):
        return empty_snapshot()
    for table in TABLES:
        data.setdefault(table, [])
    return data


def save_snapshot(path: Path, snapshot: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2, ensure_ascii=False)


class SnapshotRelationshipLookup(RelationshipLookup):
    """Answers relationship reads from an in-memory snapshot."""

    def __init__(self, snapshot: Dict[str, Any]):
        self.snapshot = snapshot

    @classmethod
    def from_path(cls, path: Path) -> "SnapshotRelationshipLookup":
        return cls(load_snapshot(path))

    def _select(self, query: ScopedQuery) -> List[Dict[str, Any]]:
        rows = [r for r in self.snapshot.get(query.table, []) if query.matches(r)]
        for col in reversed(query.order):
            rows.sort(key=lambda r: str(r.get(col) or ""))
        if query.limit is not None:
            rows = rows[:query.limit]
        return rows

    def _first(self, query: ScopedQuery) -> Optional[Dict[str, Any]]:
        rows = self._select(query)
        return rows[0] if rows else None

    def get_employee_by_user_id(self, scope: TenantScope, user_id: str) -> Optional[EmployeeRecord]:
        row = self._first(ScopedQuery.build("employees", scope, order=("id",), user_id=user_id))
        return EmployeeRecord.from_row(row) if row else None

    def get_employee_by_id(self, scope: TenantScope, employee_id: str) -> Optional[EmployeeRecord]:
        row = self._first(ScopedQuery.build("employees", scope, id=employee_id))
        return EmployeeRecord.from_row(row) if row else None

    def get_employee_user_id(self, scope: TenantScope, employee_id: str) -> Optional[str]:
        employee = self.get_employee_by_id(scope, employee_id)
        return employee.user_id if employee else None

    def list_users_by_roles(
        self,
        scope: TenantScope,
        roles: Sequence[str],
        order_admin_first: bool = True,
    ) -> List[RoleAssignment]:
        rows = self._select(ScopedQuery.build("user_roles", scope, order=("user_id",), role=tuple(roles)))
        assignments = [RoleAssignment.from_row(r) for r in rows]
        if order_admin_first:
            assignments.sort(key=lambda a: 0 if is_admin_role(a.role) else 1)
        return assignments

    def get_contract_ownership(self, scope: TenantScope, contract_id: str) -> Optional[ContractOwnership]:
        row = self._first(ScopedQuery.build("contracts", scope, id=contract_id))
        return ContractOwnership.from_row(row) if row else None

    def list_active_admins(self, scope: TenantScope) -> List[RoleAssignment]:
        rows = self._select(
            ScopedQuery.build("user_roles", scope, order=("user_id",), role=ADMIN_ROLE, is_active=True)
        )
        return [RoleAssignment.from_row(r) for r in rows]
