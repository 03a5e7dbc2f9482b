"""
Approval assignee resolution.

Picks the single user who should approve a pending item by walking an
ordered list of rules. The first rule that names somebody wins; a rule
whose lookups fail is logged and skipped, and the cascade moves on.

Rules, in order:
    line_manager    leave requests: the requester's line manager
    hr_pool         leave/attendance requests and hr_* actions: HR admins
                    first, then HR staff
    contract_owner  contracts: the legal reviewer during legal stages,
                    otherwise the owner
    company_admin   anything: the first active company admin by user id

Invariants:
    - Never raises. ``None`` means nobody could be determined.
    - Every lookup is confined to the request's company.
    - Manager chains are followed at most one hop.
    - Stateless: identical inputs against an unchanged store give the
      same answer.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Union

from .logger import get_logger
from .lookup import RelationshipLookup, ensure_in_scope
from .models import ApprovalRequest, Resolution, RoleAssignment, RuleOutcome
from .normalize import (
    HR_POOL_ROLES,
    is_contract,
    is_hr_entity,
    is_leave_request,
    is_legal_stage,
    role_rank,
)
from .retry import is_transient_error
from .schema import validate_request

logger = get_logger()

LINE_MANAGER = "line_manager"
HR_POOL = "hr_pool"
CONTRACT_OWNER = "contract_owner"
COMPANY_ADMIN = "company_admin"

RequestLike = Union[ApprovalRequest, Mapping[str, Any]]


@dataclass(frozen=True)
class Rule:
    name: str
    applies: Callable[[ApprovalRequest], bool]
    resolve: Callable[[RelationshipLookup, ApprovalRequest], Optional[str]]


def _active(assignments: Iterable[RoleAssignment]) -> List[RoleAssignment]:
    return [a for a in assignments if a.is_active and a.user_id]


def _line_manager(lookup: RelationshipLookup, request: ApprovalRequest) -> Optional[str]:
    scope = request.scope
    requester = lookup.get_employee_by_user_id(scope, request.requested_by)
    if requester is None:
        return None
    ensure_in_scope(scope, [requester])

    employee = lookup.get_employee_by_id(scope, requester.employee_id)
    if employee is None:
        return None
    ensure_in_scope(scope, [employee])

    if employee.manager_user_id:
        return employee.manager_user_id
    if employee.manager_employee_id:
        # One hop only; the manager's own manager is never consulted.
        return lookup.get_employee_user_id(scope, employee.manager_employee_id) or None
    return None


def _hr_pool(lookup: RelationshipLookup, request: ApprovalRequest) -> Optional[str]:
    scope = request.scope
    entries = ensure_in_scope(scope, lookup.list_users_by_roles(scope, HR_POOL_ROLES, order_admin_first=True))
    candidates = sorted(_active(entries), key=lambda a: role_rank(a.role))
    return candidates[0].user_id if candidates else None


def _contract_owner(lookup: RelationshipLookup, request: ApprovalRequest) -> Optional[str]:
    scope = request.scope
    ownership = lookup.get_contract_ownership(scope, request.entity_id)
    if ownership is None:
        return None
    ensure_in_scope(scope, [ownership])

    if is_legal_stage(request.current_state) and ownership.legal_reviewer_user_id:
        return ownership.legal_reviewer_user_id
    return ownership.owner_user_id or None


def _company_admin(lookup: RelationshipLookup, request: ApprovalRequest) -> Optional[str]:
    scope = request.scope
    admins = ensure_in_scope(scope, lookup.list_active_admins(scope))
    candidates = sorted(_active(admins), key=lambda a: a.user_id)
    return candidates[0].user_id if candidates else None


RULES = (
    Rule(LINE_MANAGER, lambda r: is_leave_request(r.entity_type) and bool(r.requested_by), _line_manager),
    Rule(HR_POOL, lambda r: is_hr_entity(r.entity_type), _hr_pool),
    Rule(CONTRACT_OWNER, lambda r: is_contract(r.entity_type), _contract_owner),
    Rule(COMPANY_ADMIN, lambda r: True, _company_admin),
)


def _evaluate(rule: Rule, lookup: RelationshipLookup, request: ApprovalRequest) -> RuleOutcome:
    if not rule.applies(request):
        return RuleOutcome.not_applicable(rule.name)
    try:
        user_id = rule.resolve(lookup, request)
    except Exception as e:
        logger.warning(
            "Assignee rule lookup failed",
            rule=rule.name,
            company_id=request.company_id,
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            requested_by=request.requested_by,
            error_type=type(e).__name__,
            error=str(e),
            transient=is_transient_error(e.__cause__ or e),
        )
        logger.record_lookup_failure(rule.name, type(e).__name__)
        return RuleOutcome.lookup_failed(rule.name, f"{type(e).__name__}: {e}")
    if user_id:
        return RuleOutcome.found(rule.name, str(user_id))
    return RuleOutcome.no_candidate(rule.name)


def _coerce(request: RequestLike) -> Optional[ApprovalRequest]:
    data = request.to_dict() if isinstance(request, ApprovalRequest) else dict(request)
    errors = validate_request(data)
    if errors:
        logger.warning("Invalid approval request; leaving unassigned", errors=errors)
        return None
    if isinstance(request, ApprovalRequest):
        return request
    return ApprovalRequest.from_dict(data)


def explain_approval_assignee(
    lookup: RelationshipLookup,
    request: RequestLike,
    rules: Sequence[Rule] = RULES,
) -> Resolution:
    """
    Run the cascade and return the assignee with the outcome of every rule
    that was evaluated. Rules after the winning one are not evaluated.
    """
    logger.record_resolution_attempt()
    outcomes: List[RuleOutcome] = []
    try:
        approval = _coerce(request)
        if approval is None:
            logger.record_unassigned()
            return Resolution(None, outcomes)

        for rule in rules:
            outcome = _evaluate(rule, lookup, approval)
            outcomes.append(outcome)
            if outcome.is_found:
                logger.record_rule_hit(rule.name)
                logger.debug(
                    "Approval assignee resolved",
                    rule=rule.name,
                    company_id=approval.company_id,
                    entity_type=approval.entity_type,
                    entity_id=approval.entity_id,
                    assignee=outcome.user_id,
                )
                return Resolution(outcome.user_id, outcomes)
    except Exception as e:
        logger.error("Assignee resolution aborted", error_type=type(e).__name__, error=str(e))
        logger.record_unassigned()
        return Resolution(None, outcomes)

    logger.info(
        "No approval assignee found",
        company_id=approval.company_id,
        entity_type=approval.entity_type,
        entity_id=approval.entity_id,
        requested_by=approval.requested_by,
    )
    logger.record_unassigned()
    return Resolution(None, outcomes)


def resolve_approval_assignee(lookup: RelationshipLookup, request: RequestLike) -> Optional[str]:
    """
    Return the user id that should approve ``request``, or None.

    None is a normal outcome (the item needs manual assignment), not a
    failure signal. This function does not raise.
    """
    try:
        return explain_approval_assignee(lookup, request).assignee
    except Exception as e:
        logger.error("Assignee resolution failed", error_type=type(e).__name__, error=str(e))
        return None
