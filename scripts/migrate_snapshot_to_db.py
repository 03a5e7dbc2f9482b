#!/usr/bin/env python3
"""
Load a relationship snapshot (JSON) into the SQLite relationship store.

Usage:
    python scripts/migrate_snapshot_to_db.py --snapshot data/relationships.json --db data/relationships.db
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from workengine.database import get_session, import_snapshot, init_database
from workengine.schema import validate_snapshot
from workengine.storage import TABLES, load_snapshot


def migrate(snapshot_path: Path, db_path: Path, dry_run: bool = False) -> bool:
    """
    Import a snapshot into the database.

    Args:
        snapshot_path: Path to snapshot JSON
        db_path: Path to SQLite database file
        dry_run: If True, don't write to database
    """
    print(f"Loading snapshot from {snapshot_path}...")
    snapshot = load_snapshot(snapshot_path)
    for table in TABLES:
        print(f"  {table}: {len(snapshot[table])} rows")

    errors = validate_snapshot(snapshot)
    if errors:
        print(f"\n❌ Snapshot has {len(errors)} problems:")
        for e in errors[:10]:
            print(f"   - {e}")
        if len(errors) > 10:
            print(f"   ... and {len(errors) - 10} more")
        return False

    if dry_run:
        companies = sorted({r["company_id"] for t in TABLES for r in snapshot[t]})
        print(f"\n[DRY RUN] Would import rows for {len(companies)} companies:")
        for company_id in companies[:5]:
            print(f"  - {company_id}")
        if len(companies) > 5:
            print(f"  ... and {len(companies) - 5} more")
        return True

    print(f"\nInitializing database at {db_path}...")
    init_database(db_path)
    session = get_session(db_path)
    try:
        counts = import_snapshot(session, snapshot)
    except Exception as e:
        session.rollback()
        print(f"❌ Failed to import: {e}")
        return False
    finally:
        session.close()

    print("\n✅ Import complete!")
    for table in TABLES:
        print(f"   {table}: {counts[table]}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Load a relationship snapshot into SQLite")
    parser.add_argument("--snapshot", type=Path, default=Path("data/relationships.json"),
                        help="Path to snapshot JSON")
    parser.add_argument("--db", type=Path, default=Path("data/relationships.db"),
                        help="Path to SQLite database file")
    parser.add_argument("--dry-run", action="store_true",
                        help="Validate and summarize without writing")

    args = parser.parse_args()

    if not args.snapshot.exists():
        print(f"❌ Snapshot not found: {args.snapshot}")
        sys.exit(1)

    sys.exit(0 if migrate(args.snapshot, args.db, dry_run=args.dry_run) else 1)


if __name__ == "__main__":
    main()
