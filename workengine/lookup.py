"""
Relationship lookup collaborator.

The resolver reads organisational facts through this interface only. Every
operation takes the TenantScope of the request as its first argument, so a
backend cannot be asked an unscoped question.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, TypeVar

from .models import ContractOwnership, EmployeeRecord, RoleAssignment, TenantScope


class LookupFailedError(Exception):
    """Raised by a backend when a relationship read cannot be completed."""
    pass


class TenantScopeError(LookupFailedError):
    """Raised when a backend hands back a record from another company."""
    pass


class RelationshipLookup(ABC):

    @abstractmethod
    def get_employee_by_user_id(self, scope: TenantScope, user_id: str) -> Optional[EmployeeRecord]:
        """Employee record linked to a user identity."""

    @abstractmethod
    def get_employee_by_id(self, scope: TenantScope, employee_id: str) -> Optional[EmployeeRecord]:
        """Employee record, including manager fields."""

    @abstractmethod
    def get_employee_user_id(self, scope: TenantScope, employee_id: str) -> Optional[str]:
        """User identity of an employee, if the employee has one."""

    @abstractmethod
    def list_users_by_roles(
        self,
        scope: TenantScope,
        roles: Sequence[str],
        order_admin_first: bool = True,
    ) -> List[RoleAssignment]:
        """Role assignments for any of ``roles``."""

    @abstractmethod
    def get_contract_ownership(self, scope: TenantScope, contract_id: str) -> Optional[ContractOwnership]:
        """Owner and legal reviewer of a contract."""

    @abstractmethod
    def list_active_admins(self, scope: TenantScope) -> List[RoleAssignment]:
        """Active ``admin`` assignments, ascending by user id."""


R = TypeVar("R")


def ensure_in_scope(scope: TenantScope, records: Iterable[R]) -> List[R]:
    """
    Return ``records`` as a list, refusing any that belongs to another company.

    Records without a company id are accepted: the backend already filtered
    them by scope.

    Raises:
        TenantScopeError: If a record carries a different company_id
    """
    result = []
    for record in records:
        if record is None:
            continue
        company_id = getattr(record, "company_id", None)
        if company_id is not None and company_id != scope.company_id:
            raise TenantScopeError(
                f"{type(record).__name__} from company {company_id!r} "
                f"returned for scope {scope.company_id!r}"
            )
        result.append(record)
    return result
