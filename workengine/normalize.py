from typing import Optional

LEAVE_REQUEST = "leave_request"
ATTENDANCE_REQUEST = "attendance_request"
CONTRACT = "contract"
HR_PREFIX = "hr_"
LEGAL_MARKER = "legal"

HR_POOL_ROLES = ["hr_admin", "hr_staff"]
ADMIN_ROLE = "admin"


def normalize_text(s: Optional[str]) -> str:
    if not s:
        return ""
    return " ".join(s.strip().lower().split())


def normalize_entity_type(entity_type: Optional[str]) -> str:
    return normalize_text(entity_type)


def normalize_state(state: Optional[str]) -> str:
    return normalize_text(state)


def is_leave_request(entity_type: Optional[str]) -> bool:
    return normalize_entity_type(entity_type) == LEAVE_REQUEST


def is_hr_entity(entity_type: Optional[str]) -> bool:
    """Leave and attendance requests plus any hr_* action go to the HR pool."""
    et = normalize_entity_type(entity_type)
    return et in (LEAVE_REQUEST, ATTENDANCE_REQUEST) or et.startswith(HR_PREFIX)


def is_contract(entity_type: Optional[str]) -> bool:
    return normalize_entity_type(entity_type) == CONTRACT


def is_legal_stage(state: Optional[str]) -> bool:
    return LEGAL_MARKER in normalize_state(state)


def is_admin_role(role: Optional[str]) -> bool:
    r = normalize_text(role)
    return r == ADMIN_ROLE or r.endswith("_" + ADMIN_ROLE)


def role_rank(role: Optional[str]) -> int:
    # Admin roles sort ahead of everything else; ties keep their input order.
    return 0 if is_admin_role(role) else 1
