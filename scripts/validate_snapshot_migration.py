#!/usr/bin/env python3
"""
Check that the relationship database holds the same facts as a snapshot.

Usage:
    python scripts/validate_snapshot_migration.py --snapshot data/relationships.json --db data/relationships.db
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from workengine.database import Contract, Employee, UserRole, get_session
from workengine.models import parse_active
from workengine.storage import load_snapshot

EMPLOYEE_FIELDS = ["user_id", "manager_user_id", "manager_employee_id"]
CONTRACT_FIELDS = ["owner_user_id", "legal_reviewer_user_id"]


def _compare(label, expected, actual, fields, mismatches, missing):
    for key, row in expected.items():
        if key not in actual:
            missing.append(f"{label} {key}")
            continue
        for field in fields:
            want = row.get(field) or None
            got = getattr(actual[key], field)
            if want != got:
                mismatches.append(f"{label} {key}: {field} snapshot={want!r} db={got!r}")


def validate(snapshot_path: Path, db_path: Path) -> bool:
    """
    Compare snapshot and database contents.

    Returns True if they match, False otherwise.
    """
    snapshot = load_snapshot(snapshot_path)
    session = get_session(db_path)
    try:
        employees = {(e.company_id, e.id): e for e in session.query(Employee).all()}
        contracts = {(c.company_id, c.id): c for c in session.query(Contract).all()}
        roles = {(r.user_id, r.company_id, r.role): r for r in session.query(UserRole).all()}
    finally:
        session.close()

    print(f"Employees: snapshot={len(snapshot['employees'])} db={len(employees)}")
    print(f"User roles: snapshot={len(snapshot['user_roles'])} db={len(roles)}")
    print(f"Contracts: snapshot={len(snapshot['contracts'])} db={len(contracts)}")

    mismatches, missing = [], []
    _compare("employee", {(str(r["company_id"]), str(r["id"])): r for r in snapshot["employees"]},
             employees, EMPLOYEE_FIELDS, mismatches, missing)
    _compare("contract", {(str(r["company_id"]), str(r["id"])): r for r in snapshot["contracts"]},
             contracts, CONTRACT_FIELDS, mismatches, missing)
    for r in snapshot["user_roles"]:
        key = (str(r["user_id"]), str(r["company_id"]), str(r["role"]))
        if key not in roles:
            missing.append(f"user_role {key}")
        elif parse_active(r.get("is_active")) != bool(roles[key].is_active):
            mismatches.append(f"user_role {key}: is_active differs")

    if missing:
        print(f"\n❌ MISSING from DB: {len(missing)}")
        for m in missing[:5]:
            print(f"   - {m}")
    if mismatches:
        print(f"\n❌ DATA MISMATCHES: {len(mismatches)}")
        for m in mismatches[:5]:
            print(f"   - {m}")

    if not missing and not mismatches:
        print("\n✅ Database matches snapshot")
        return True
    return False


def main():
    parser = argparse.ArgumentParser(description="Validate snapshot import into SQLite")
    parser.add_argument("--snapshot", type=Path, default=Path("data/relationships.json"),
                        help="Path to snapshot JSON")
    parser.add_argument("--db", type=Path, default=Path("data/relationships.db"),
                        help="Path to SQLite database file")

    args = parser.parse_args()

    if not args.snapshot.exists():
        print(f"❌ Snapshot not found: {args.snapshot}")
        sys.exit(1)
    if not args.db.exists():
        print(f"❌ Database file not found: {args.db}")
        sys.exit(1)

    sys.exit(0 if validate(args.snapshot, args.db) else 1)


if __name__ == "__main__":
    main()
