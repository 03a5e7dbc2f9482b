"""
Value objects shared by the resolver and the relationship backends.

Everything here is immutable. Records returned by a backend carry the
company they belong to so the resolver can refuse cross-tenant data.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

# Accepted spellings for request keys (snake_case and the camelCase used by
# the web layer).
REQUEST_KEYS = {
    "company_id": ("company_id", "companyId"),
    "entity_type": ("entity_type", "entityType"),
    "entity_id": ("entity_id", "entityId"),
    "current_state": ("current_state", "currentState"),
    "requested_by": ("requested_by", "requestedBy"),
}


def pick_key(data: Mapping[str, Any], names: Tuple[str, ...]) -> Any:
    for name in names:
        if name in data:
            return data[name]
    return None


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def parse_active(value: Any) -> bool:
    """
    Read an is_active flag. Missing means active; anything but a real
    boolean is rejected so strings like "false" cannot pass as truthy.
    """
    if value is None:
        return True
    if not isinstance(value, bool):
        raise ValueError(f"is_active must be a boolean, got {value!r}")
    return value


@dataclass(frozen=True)
class TenantScope:
    """The company boundary every relationship read is confined to."""

    company_id: str

    def __post_init__(self):
        if not isinstance(self.company_id, str) or not self.company_id.strip():
            raise ValueError("TenantScope requires a non-empty company_id")


@dataclass(frozen=True)
class ScopedQuery:
    """
    A read against one table of the relationship store.

    The company filter is not a regular filter: it is always rendered from
    ``scope`` and cannot be supplied or overridden through ``filters``.
    """

    table: str
    scope: TenantScope
    filters: Tuple[Tuple[str, Any], ...] = ()
    order: Tuple[str, ...] = ()
    limit: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.scope, TenantScope):
            raise ValueError("ScopedQuery requires a TenantScope")
        if any(col == "company_id" for col, _ in self.filters):
            raise ValueError("company_id comes from the scope, not from filters")

    @classmethod
    def build(
        cls,
        table: str,
        scope: TenantScope,
        order: Tuple[str, ...] = (),
        limit: Optional[int] = None,
        **filters: Any,
    ) -> "ScopedQuery":
        return cls(table=table, scope=scope, filters=tuple(filters.items()), order=order, limit=limit)

    def to_params(self) -> Dict[str, str]:
        """Render PostgREST-style query parameters."""
        params = {"company_id": f"eq.{self.scope.company_id}"}
        for col, value in self.filters:
            if isinstance(value, (list, tuple, set, frozenset)):
                params[col] = "in.(" + ",".join(str(v) for v in value) + ")"
            elif isinstance(value, bool):
                params[col] = f"is.{str(value).lower()}"
            else:
                params[col] = f"eq.{value}"
        if self.order:
            params["order"] = ",".join(f"{col}.asc" for col in self.order)
        if self.limit is not None:
            params["limit"] = str(self.limit)
        return params

    def matches(self, row: Mapping[str, Any]) -> bool:
        """In-memory evaluation of the same predicate ``to_params`` renders."""
        if row.get("company_id") != self.scope.company_id:
            return False
        for col, value in self.filters:
            actual = row.get(col)
            if isinstance(value, (list, tuple, set, frozenset)):
                if actual not in value:
                    return False
            elif isinstance(value, bool):
                if parse_active(actual) is not value:
                    return False
            elif actual != value:
                return False
        return True


@dataclass(frozen=True)
class ApprovalRequest:
    """A pending approval item, as handed over by the workflow orchestrator."""

    company_id: str
    entity_type: str
    entity_id: str
    current_state: str
    requested_by: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ApprovalRequest":
        values = {key: pick_key(data, names) for key, names in REQUEST_KEYS.items()}
        values["requested_by"] = _opt_str(values["requested_by"])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company_id": self.company_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "current_state": self.current_state,
            "requested_by": self.requested_by,
        }

    @property
    def scope(self) -> TenantScope:
        return TenantScope(self.company_id)


@dataclass(frozen=True)
class EmployeeRecord:
    employee_id: str
    company_id: Optional[str] = None
    user_id: Optional[str] = None
    manager_user_id: Optional[str] = None
    manager_employee_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "EmployeeRecord":
        employee_id = _opt_str(row.get("id", row.get("employee_id")))
        if employee_id is None:
            raise ValueError("employee row without an id")
        return cls(
            employee_id=employee_id,
            company_id=_opt_str(row.get("company_id")),
            user_id=_opt_str(row.get("user_id")),
            manager_user_id=_opt_str(row.get("manager_user_id")),
            manager_employee_id=_opt_str(row.get("manager_employee_id")),
        )


@dataclass(frozen=True)
class RoleAssignment:
    user_id: str
    role: str
    company_id: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RoleAssignment":
        user_id = _opt_str(row.get("user_id"))
        role = _opt_str(row.get("role"))
        if user_id is None or role is None:
            raise ValueError("user_roles row without user_id or role")
        return cls(
            user_id=user_id,
            role=role,
            company_id=_opt_str(row.get("company_id")),
            is_active=parse_active(row.get("is_active")),
        )


@dataclass(frozen=True)
class ContractOwnership:
    contract_id: str
    company_id: Optional[str] = None
    owner_user_id: Optional[str] = None
    legal_reviewer_user_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ContractOwnership":
        contract_id = _opt_str(row.get("id", row.get("contract_id")))
        if contract_id is None:
            raise ValueError("contracts row without an id")
        return cls(
            contract_id=contract_id,
            company_id=_opt_str(row.get("company_id")),
            owner_user_id=_opt_str(row.get("owner_user_id")),
            legal_reviewer_user_id=_opt_str(row.get("legal_reviewer_user_id")),
        )


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating one rule of the cascade."""

    FOUND = "found"
    NOT_APPLICABLE = "not_applicable"
    NO_CANDIDATE = "no_candidate"
    LOOKUP_FAILED = "lookup_failed"

    rule: str
    status: str
    user_id: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def found(cls, rule: str, user_id: str) -> "RuleOutcome":
        return cls(rule, cls.FOUND, user_id=user_id)

    @classmethod
    def not_applicable(cls, rule: str) -> "RuleOutcome":
        return cls(rule, cls.NOT_APPLICABLE)

    @classmethod
    def no_candidate(cls, rule: str) -> "RuleOutcome":
        return cls(rule, cls.NO_CANDIDATE)

    @classmethod
    def lookup_failed(cls, rule: str, reason: str) -> "RuleOutcome":
        return cls(rule, cls.LOOKUP_FAILED, reason=reason)

    @property
    def is_found(self) -> bool:
        return self.status == self.FOUND


@dataclass(frozen=True)
class Resolution:
    assignee: Optional[str]
    outcomes: List[RuleOutcome] = field(default_factory=list)

    @property
    def decided_by(self) -> Optional[str]:
        for outcome in self.outcomes:
            if outcome.is_found:
                return outcome.rule
        return None
