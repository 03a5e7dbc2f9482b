from typing import Any, Dict, List, Tuple

from .models import REQUEST_KEYS, pick_key
from .normalize import HR_PREFIX, normalize_entity_type

REQUIRED_STR_FIELDS = ["company_id", "entity_type", "entity_id", "current_state"]
OPTIONAL_STR_FIELDS = ["requested_by"]

KNOWN_ENTITY_TYPES = {
    "contract",
    "contract_approval",
    "attendance_request",
    "leave_request",
    "task",
}

SNAPSHOT_TABLES = {
    "employees": ["id", "company_id"],
    "user_roles": ["user_id", "company_id", "role"],
    "contracts": ["id", "company_id"],
}


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_request(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    Accepts both snake_case and camelCase keys.
    """
    errors: List[str] = []
    if not isinstance(data, dict):
        return ["Request must be a JSON object"]

    for f in REQUIRED_STR_FIELDS:
        value = pick_key(data, REQUEST_KEYS[f])
        if value is None:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(value):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_STR_FIELDS:
        value = pick_key(data, REQUEST_KEYS[f])
        if value is not None and not isinstance(value, str):
            errors.append(f"Field '{f}' must be a string or null if provided")

    return errors


def validate_request_strict(data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Like validate_request, but also rejects entity types nobody routes."""
    errors = validate_request(data)
    if not errors:
        entity_type = normalize_entity_type(pick_key(data, REQUEST_KEYS["entity_type"]))
        if entity_type not in KNOWN_ENTITY_TYPES and not entity_type.startswith(HR_PREFIX):
            errors.append(
                f"Unknown entity_type '{entity_type}' "
                f"(expected one of {', '.join(sorted(KNOWN_ENTITY_TYPES))} or hr_*)"
            )
    return (not errors, errors)


def validate_snapshot(data: Any) -> List[str]:
    """Structural checks for a relationship snapshot document."""
    if not isinstance(data, dict):
        return ["Snapshot must be a JSON object"]

    errors: List[str] = []
    for table, required in SNAPSHOT_TABLES.items():
        rows = data.get(table, [])
        if not isinstance(rows, list):
            errors.append(f"'{table}' must be a list")
            continue
        for i, row in enumerate(rows):
            if not isinstance(row, dict):
                errors.append(f"{table}[{i}] must be an object")
                continue
            for f in required:
                if not _is_non_empty_str(row.get(f)):
                    errors.append(f"{table}[{i}] missing required field: {f}")
            active = row.get("is_active")
            if table == "user_roles" and active is not None and not isinstance(active, bool):
                errors.append(f"{table}[{i}] field 'is_active' must be true, false or null")
    return errors
