import argparse
import json
from pathlib import Path

from . import __version__
from .config import BACKENDS, Settings
from .database import get_session, import_snapshot, init_database
from .env import load_env
from .logger import get_logger
from .models import ApprovalRequest, RuleOutcome
from .repository import SqlRelationshipLookup
from .resolver import explain_approval_assignee
from .rest import RestRelationshipLookup
from .schema import validate_request, validate_request_strict, validate_snapshot
from .storage import SnapshotRelationshipLookup, load_snapshot


def build_lookup(args: argparse.Namespace, settings: Settings):
    """Pick the relationship backend from CLI flags, falling back to settings."""
    backend = args.backend or settings.backend
    if args.rest_url:
        backend = "rest"
    elif args.snapshot:
        backend = "snapshot"
    elif args.db:
        backend = "sqlite"

    if backend == "rest":
        url = args.rest_url or settings.rest_url
        if not url:
            raise SystemExit("WORKENGINE_REST_URL not set. Set env var or pass --rest-url.")
        return RestRelationshipLookup(url, api_key=args.rest_key or settings.rest_key, timeout=settings.rest_timeout)

    if backend == "snapshot":
        path = Path(args.snapshot) if args.snapshot else settings.snapshot_path
        if not path.exists():
            raise SystemExit(f"Snapshot not found: {path}")
        return SnapshotRelationshipLookup.from_path(path)

    db_path = Path(args.db) if args.db else settings.database_path
    if not db_path.exists():
        raise SystemExit(f"Database not found: {db_path}. Run 'workengine init-db' first.")
    return SqlRelationshipLookup(get_session(db_path))


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ValueError as e:
        raise SystemExit(f"Invalid configuration: {e}")


def _describe(outcome: RuleOutcome) -> str:
    if outcome.status == RuleOutcome.FOUND:
        return f"{outcome.rule}: found {outcome.user_id}"
    if outcome.status == RuleOutcome.LOOKUP_FAILED:
        return f"{outcome.rule}: lookup failed ({outcome.reason})"
    return f"{outcome.rule}: {outcome.status.replace('_', ' ')}"


def cmd_resolve(args: argparse.Namespace) -> None:
    settings = _load_settings()
    request = ApprovalRequest(
        company_id=args.company,
        entity_type=args.entity_type,
        entity_id=args.entity_id,
        current_state=args.state,
        requested_by=args.requested_by or None,
    )
    errors = validate_request(request.to_dict())
    if errors:
        raise SystemExit("Invalid request: " + "; ".join(errors))

    lookup = build_lookup(args, settings)
    resolution = explain_approval_assignee(lookup, request)
    print(f"Assignee: {resolution.assignee or '(none)'}")
    if args.explain:
        for outcome in resolution.outcomes:
            print(f"  {_describe(outcome)}")
    if args.metrics:
        get_logger().log_metrics_summary()


def cmd_validate(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise SystemExit(f"Invalid JSON in {input_path}: {e}")
    if args.strict:
        _, errors = validate_request_strict(data)
    else:
        errors = validate_request(data)
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def cmd_init_db(args: argparse.Namespace) -> None:
    db_path = Path(args.db) if args.db else _load_settings().database_path
    init_database(db_path)
    print(f"Initialized {db_path}")


def cmd_import_snapshot(args: argparse.Namespace) -> None:
    snapshot_path = Path(args.snapshot)
    if not snapshot_path.exists():
        raise SystemExit(f"Snapshot not found: {snapshot_path}")
    snapshot = load_snapshot(snapshot_path)
    errors = validate_snapshot(snapshot)
    if errors:
        print("Invalid snapshot:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)

    db_path = Path(args.db) if args.db else _load_settings().database_path
    init_database(db_path)
    session = get_session(db_path)
    try:
        counts = import_snapshot(session, snapshot)
    finally:
        session.close()
    print(
        f"Done. employees={counts['employees']} "
        f"user_roles={counts['user_roles']} contracts={counts['contracts']}"
    )


def _add_backend_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--backend", choices=BACKENDS, help="Relationship backend (default: WORKENGINE_BACKEND or sqlite)")
    p.add_argument("--db", help="SQLite database path (or set WORKENGINE_DB)")
    p.add_argument("--snapshot", help="JSON snapshot path (or set WORKENGINE_SNAPSHOT)")
    p.add_argument("--rest-url", help="Relationship API base URL (or set WORKENGINE_REST_URL)")
    p.add_argument("--rest-key", help="Relationship API key (or set WORKENGINE_REST_KEY)")


def main(argv=None):
    # Load .env if present (WORKENGINE_REST_URL, WORKENGINE_REST_KEY, etc.)
    load_env()
    parser = argparse.ArgumentParser(prog="workengine", description="Approval assignee resolution")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    res = subparsers.add_parser("resolve", help="Resolve the approver for a pending item")
    res.add_argument("--company", required=True, help="Company (tenant) id")
    res.add_argument("--entity-type", required=True, help="e.g. leave_request, contract, hr_promotion")
    res.add_argument("--entity-id", required=True, help="Id of the item under approval")
    res.add_argument("--state", required=True, help="Current workflow state, e.g. legal_review")
    res.add_argument("--requested-by", help="User id of the requester")
    res.add_argument("--explain", action="store_true", help="Print the outcome of each rule")
    res.add_argument("--metrics", action="store_true", help="Log assignment metrics afterwards")
    _add_backend_options(res)
    res.set_defaults(func=cmd_resolve)

    val = subparsers.add_parser("validate", help="Validate an approval request JSON")
    val.add_argument("--input", required=True, help="Path to request JSON")
    val.add_argument("--strict", action="store_true", help="Reject unknown entity types")
    val.set_defaults(func=cmd_validate)

    ini = subparsers.add_parser("init-db", help="Create the relationship database schema")
    ini.add_argument("--db", help="SQLite database path (or set WORKENGINE_DB)")
    ini.set_defaults(func=cmd_init_db)

    imp = subparsers.add_parser("import-snapshot", help="Load a JSON snapshot into the database")
    imp.add_argument("--snapshot", required=True, help="Path to snapshot JSON")
    imp.add_argument("--db", help="SQLite database path (or set WORKENGINE_DB)")
    imp.set_defaults(func=cmd_import_snapshot)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
