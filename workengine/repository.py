"""
SQL relationship lookup.

Every query starts from ``_scoped``, which applies the company filter of the
request's TenantScope before any other criterion is added.
"""

import functools
from typing import List, Optional, Sequence

from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError

from .database import Contract, Employee, UserRole
from .logger import get_logger
from .lookup import LookupFailedError, RelationshipLookup
from .models import ContractOwnership, EmployeeRecord, RoleAssignment, TenantScope
from .normalize import ADMIN_ROLE, is_admin_role

logger = get_logger()


def _translate_errors(func):
    """Surface database errors as LookupFailedError."""
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        logger.record_lookup_call()
        try:
            return func(self, *args, **kwargs)
        except SQLAlchemyError as e:
            # Leave the session usable for the next rule.
            self.session.rollback()
            raise LookupFailedError(f"{func.__name__} failed: {e}") from e
    return wrapper


def _employee(row: Employee) -> EmployeeRecord:
    return EmployeeRecord(
        employee_id=row.id,
        company_id=row.company_id,
        user_id=row.user_id,
        manager_user_id=row.manager_user_id,
        manager_employee_id=row.manager_employee_id,
    )


def _assignment(row: UserRole) -> RoleAssignment:
    return RoleAssignment(
        user_id=row.user_id,
        role=row.role,
        company_id=row.company_id,
        is_active=bool(row.is_active),
    )


class SqlRelationshipLookup(RelationshipLookup):

    def __init__(self, session):
        self.session = session

    def _scoped(self, model, scope: TenantScope):
        return self.session.query(model).filter(model.company_id == scope.company_id)

    @_translate_errors
    def get_employee_by_user_id(self, scope: TenantScope, user_id: str) -> Optional[EmployeeRecord]:
        row = self._scoped(Employee, scope).filter(Employee.user_id == user_id).order_by(Employee.id).first()
        return _employee(row) if row else None

    @_translate_errors
    def get_employee_by_id(self, scope: TenantScope, employee_id: str) -> Optional[EmployeeRecord]:
        row = self._scoped(Employee, scope).filter(Employee.id == employee_id).first()
        return _employee(row) if row else None

    @_translate_errors
    def get_employee_user_id(self, scope: TenantScope, employee_id: str) -> Optional[str]:
        row = self._scoped(Employee, scope).filter(Employee.id == employee_id).first()
        return row.user_id if row else None

    @_translate_errors
    def list_users_by_roles(
        self,
        scope: TenantScope,
        roles: Sequence[str],
        order_admin_first: bool = True,
    ) -> List[RoleAssignment]:
        query = self._scoped(UserRole, scope).filter(UserRole.role.in_(list(roles)))
        admin_roles = [r for r in roles if is_admin_role(r)]
        if order_admin_first and admin_roles:
            query = query.order_by(case((UserRole.role.in_(admin_roles), 0), else_=1))
        rows = query.order_by(UserRole.user_id).all()
        return [_assignment(r) for r in rows]

    @_translate_errors
    def get_contract_ownership(self, scope: TenantScope, contract_id: str) -> Optional[ContractOwnership]:
        row = self._scoped(Contract, scope).filter(Contract.id == contract_id).first()
        if row is None:
            return None
        return ContractOwnership(
            contract_id=row.id,
            company_id=row.company_id,
            owner_user_id=row.owner_user_id,
            legal_reviewer_user_id=row.legal_reviewer_user_id,
        )

    @_translate_errors
    def list_active_admins(self, scope: TenantScope) -> List[RoleAssignment]:
        rows = (
            self._scoped(UserRole, scope)
            .filter(UserRole.role == ADMIN_ROLE, UserRole.is_active.is_(True))
            .order_by(UserRole.user_id.asc())
            .all()
        )
        return [_assignment(r) for r in rows]
