"""
HTTP relationship lookup against a PostgREST-style API.

Reads look like:

    GET {base_url}/rest/v1/employees?select=...&company_id=eq.<id>&user_id=eq.<id>

Query parameters are always rendered from a ScopedQuery, so the company
filter is present on every request.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from .logger import get_logger
from .lookup import LookupFailedError, RelationshipLookup
from .models import ContractOwnership, EmployeeRecord, RoleAssignment, ScopedQuery, TenantScope
from .normalize import ADMIN_ROLE, is_admin_role
from .retry import CircuitBreaker, CircuitOpenError, RetryError, exponential_backoff, should_retry_http_status

logger = get_logger()

EMPLOYEE_COLUMNS = "id,company_id,user_id,manager_user_id,manager_employee_id"
ROLE_COLUMNS = "user_id,company_id,role,is_active"
CONTRACT_COLUMNS = "id,company_id,owner_user_id,legal_reviewer_user_id"


class _RetryableStatus(Exception):
    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class RestRelationshipLookup(RelationshipLookup):
    """
    Relationship reads over HTTP.

    Timeouts, dropped connections and retryable statuses are retried with
    exponential backoff. Consecutive failed reads open a circuit breaker so
    later rules in a cascade fail fast instead of waiting on a dead store.
    Every failure reaches the caller as LookupFailedError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        session=None,
        max_retries: int = 2,
        base_delay: float = 0.25,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=5, recovery_timeout=30.0, expected_exception=LookupFailedError
        )
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers["apikey"] = api_key
            self.headers["Authorization"] = f"Bearer {api_key}"

        self._get_with_retry = exponential_backoff(
            max_retries=max_retries,
            base_delay=base_delay,
            exceptions=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, _RetryableStatus),
            on_retry=self._log_retry,
            sleep=sleep,
        )(self._get)

    def _log_retry(self, attempt: int, error: Exception, delay: float):
        logger.debug("Retrying relationship read", attempt=attempt, error=str(error), delay=delay)

    def _get(self, url: str, params: Dict[str, str]):
        resp = self.session.get(url, params=params, headers=self.headers, timeout=self.timeout)
        if should_retry_http_status(resp.status_code):
            raise _RetryableStatus(resp.status_code)
        return resp

    def _read(self, query: ScopedQuery, select: str) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/rest/v1/{query.table}"
        params = {"select": select, **query.to_params()}
        try:
            resp = self._get_with_retry(url, params)
        except RetryError as e:
            raise LookupFailedError(f"{query.table} read failed: {e.__cause__ or e}") from e
        except requests.exceptions.RequestException as e:
            raise LookupFailedError(f"{query.table} request error: {e}") from e

        if resp.status_code >= 400:
            raise LookupFailedError(f"{query.table} read failed ({resp.status_code})")
        try:
            data = resp.json()
        except ValueError as e:
            raise LookupFailedError(f"{query.table} returned malformed JSON") from e
        if not isinstance(data, list):
            raise LookupFailedError(f"{query.table} returned {type(data).__name__}, expected a list")
        return data

    def _fetch(self, query: ScopedQuery, select: str) -> List[Dict[str, Any]]:
        logger.record_lookup_call()
        try:
            return self.breaker.call(self._read, query, select)
        except CircuitOpenError as e:
            raise LookupFailedError(str(e)) from e

    def _fetch_one(self, query: ScopedQuery, select: str) -> Optional[Dict[str, Any]]:
        rows = self._fetch(query, select)
        return rows[0] if rows else None

    def get_employee_by_user_id(self, scope: TenantScope, user_id: str) -> Optional[EmployeeRecord]:
        row = self._fetch_one(
            ScopedQuery.build("employees", scope, order=("id",), limit=1, user_id=user_id), EMPLOYEE_COLUMNS
        )
        return EmployeeRecord.from_row(row) if row else None

    def get_employee_by_id(self, scope: TenantScope, employee_id: str) -> Optional[EmployeeRecord]:
        row = self._fetch_one(ScopedQuery.build("employees", scope, limit=1, id=employee_id), EMPLOYEE_COLUMNS)
        return EmployeeRecord.from_row(row) if row else None

    def get_employee_user_id(self, scope: TenantScope, employee_id: str) -> Optional[str]:
        row = self._fetch_one(ScopedQuery.build("employees", scope, limit=1, id=employee_id), "id,company_id,user_id")
        return EmployeeRecord.from_row(row).user_id if row else None

    def list_users_by_roles(
        self,
        scope: TenantScope,
        roles: Sequence[str],
        order_admin_first: bool = True,
    ) -> List[RoleAssignment]:
        rows = self._fetch(
            ScopedQuery.build("user_roles", scope, order=("user_id",), role=tuple(roles)), ROLE_COLUMNS
        )
        assignments = [RoleAssignment.from_row(r) for r in rows]
        if order_admin_first:
            assignments.sort(key=lambda a: 0 if is_admin_role(a.role) else 1)
        return assignments

    def get_contract_ownership(self, scope: TenantScope, contract_id: str) -> Optional[ContractOwnership]:
        row = self._fetch_one(ScopedQuery.build("contracts", scope, limit=1, id=contract_id), CONTRACT_COLUMNS)
        return ContractOwnership.from_row(row) if row else None

    def list_active_admins(self, scope: TenantScope) -> List[RoleAssignment]:
        rows = self._fetch(
            ScopedQuery.build("user_roles", scope, order=("user_id",), role=ADMIN_ROLE, is_active=True),
            ROLE_COLUMNS,
        )
        return [RoleAssignment.from_row(r) for r in rows]
