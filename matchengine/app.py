import argparse
import json
from pathlib import Path

from . import __version__
from .database import init_database
from .engine import MatchEngine
from .env import get_db_path, load_env
from .errors import MatchEngineError, ValidationError
from .sources import InMemorySource, load_snapshot


def _engine(args: argparse.Namespace) -> MatchEngine:
    db_path = Path(args.db) if args.db else get_db_path()
    if getattr(args, "snapshot", None):
        source = load_snapshot(Path(args.snapshot))
    else:
        source = InMemorySource()
    return MatchEngine(source, db_path)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_init_db(args: argparse.Namespace) -> None:
    db_path = Path(args.db) if args.db else get_db_path()
    init_database(db_path)
    print(f"Initialized {db_path}")


def cmd_match(args: argparse.Namespace) -> None:
    engine = _engine(args)
    result = engine.compute_match(args.student, args.listing, tenant_id=args.tenant,
                                  force_recompute=args.force)
    if args.json:
        _print_json(result.to_dict())
        return
    source = "cache" if result.from_cache else "computed"
    print(f"Score: {result.score} ({source}, config v{result.config_version})")
    for name, signal in result.signals.items():
        flag = " (default)" if signal.defaulted else ""
        print(f"  {name:<15} {signal.value:>6.2f}{flag}")
    if result.below_floor:
        print("Below score floor: excluded from default rankings")


def cmd_matches(args: argparse.Namespace) -> None:
    if bool(args.student) == bool(args.listing):
        raise SystemExit("Pass exactly one of --student or --listing")
    engine = _engine(args)
    if args.student:
        results = engine.get_student_matches(args.student, limit=args.limit,
                                             min_score=args.min_score, tenant_id=args.tenant)
    else:
        results = engine.get_listing_matches(args.listing, limit=args.limit,
                                             min_score=args.min_score, tenant_id=args.tenant)
    if args.json:
        _print_json([r.to_dict() for r in results])
        return
    if not results:
        print("No cached matches.")
        return
    for r in results:
        stale = " [stale]" if r.is_stale else ""
        print(f"{r.score:>6.2f}  student={r.student_id} listing={r.listing_id}{stale}")


def cmd_invalidate(args: argparse.Namespace) -> None:
    if bool(args.student) == bool(args.listing):
        raise SystemExit("Pass exactly one of --student or --listing")
    engine = _engine(args)
    if args.student:
        report = engine.invalidate_student_scores(args.student, args.reason)
    else:
        report = engine.invalidate_listing_scores(args.listing, args.reason)
    print(f"Stale: {report.rows_staled} queued={report.items_enqueued} merged={report.items_merged}")


def cmd_recompute_all(args: argparse.Namespace) -> None:
    engine = _engine(args)
    report = engine.recompute_all(args.reason)
    print(f"Stale: {report.rows_staled} queued={report.items_enqueued} merged={report.items_merged}")


def cmd_drain(args: argparse.Namespace) -> None:
    engine = _engine(args)
    report = engine.drain_queue(batch_size=args.batch_size, max_batches=args.max_batches, tenant_id=args.tenant)
    for err in report.errors:
        print(f"[error] item {err['item_id']} ({err['student_id']}, {err['listing_id']}) -> {err['error']}")
    print(f"Done. processed={report.processed} failed={report.failed} remaining={report.remaining}")
    if report.unrecorded:
        print(f"Warning: {report.unrecorded} failed attempts could not be recorded")
    if args.metrics:
        _print_json(engine.metrics())


def cmd_attractiveness(args: argparse.Namespace) -> None:
    if bool(args.listing) == bool(args.company):
        raise SystemExit("Pass exactly one of --listing or --company")
    engine = _engine(args)
    if args.listing:
        _print_json(engine.compute_attractiveness_score(args.listing).to_dict())
    else:
        _print_json(engine.get_company_attractiveness(args.company).to_dict())


def cmd_config_show(args: argparse.Namespace) -> None:
    engine = _engine(args)
    _print_json(engine.get_config(args.tenant).to_dict())


def cmd_config_set(args: argparse.Namespace) -> None:
    changes = {}
    if args.weights:
        try:
            changes["weights"] = json.loads(args.weights)
        except json.JSONDecodeError as e:
            raise SystemExit(f"--weights must be a JSON object: {e}")
    if args.floor is not None:
        changes["score_floor"] = args.floor
    if args.max_results is not None:
        changes["max_results"] = args.max_results
    if args.precision is not None:
        changes["precision"] = args.precision
    for toggle in args.enable or []:
        changes.setdefault("features", {})[toggle] = True
    for toggle in args.disable or []:
        changes.setdefault("features", {})[toggle] = False
    if not changes:
        raise SystemExit("Nothing to change")

    engine = _engine(args)
    try:
        config = engine.update_config(args.tenant, **changes)
    except ValidationError as e:
        print("Invalid:")
        for err in e.errors:
            print(f" - {err}")
        raise SystemExit(2)
    print(f"Config for {args.tenant} is now version {config.version}")


def _common(p: argparse.ArgumentParser, snapshot: bool = True) -> None:
    p.add_argument("--db", help="Path to SQLite database (default: MATCHENGINE_DB_PATH or data/matchengine.db)")
    if snapshot:
        p.add_argument("--snapshot", help="JSON snapshot of students, listings, companies, calendars and seasons")


def main():
    load_env()
    parser = argparse.ArgumentParser(prog="matchengine", description="Student/listing match engine")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    ini = subparsers.add_parser("init-db", help="Create the score database tables")
    _common(ini, snapshot=False)
    ini.set_defaults(func=cmd_init_db)

    mat = subparsers.add_parser("match", help="Score one student against one listing")
    _common(mat)
    mat.add_argument("--student", required=True, help="Student id")
    mat.add_argument("--listing", required=True, help="Listing id")
    mat.add_argument("--tenant", help="Tenant whose config applies (default: the student's)")
    mat.add_argument("--force", action="store_true", help="Ignore the cached score")
    mat.add_argument("--json", action="store_true", help="Print the full result as JSON")
    mat.set_defaults(func=cmd_match)

    rnk = subparsers.add_parser("matches", help="List cached matches for a student or a listing")
    _common(rnk)
    rnk.add_argument("--student", help="Student id")
    rnk.add_argument("--listing", help="Listing id")
    rnk.add_argument("--limit", type=int, help="Maximum results (capped by tenant max_results)")
    rnk.add_argument("--min-score", type=float, help="Minimum score (never below the tenant floor)")
    rnk.add_argument("--tenant", help="Only rows computed under this tenant")
    rnk.add_argument("--json", action="store_true", help="Print results as JSON")
    rnk.set_defaults(func=cmd_matches)

    inv = subparsers.add_parser("invalidate", help="Mark a student's or listing's scores stale and queue them")
    _common(inv)
    inv.add_argument("--student", help="Student id")
    inv.add_argument("--listing", help="Listing id")
    inv.add_argument("--reason", default="manual", help="Trigger reason (sets queue priority)")
    inv.set_defaults(func=cmd_invalidate)

    rca = subparsers.add_parser("recompute-all", help="Mark every cached score stale and queue it")
    _common(rca)
    rca.add_argument("--reason", default="admin_global_recompute", help="Trigger reason")
    rca.set_defaults(func=cmd_recompute_all)

    drn = subparsers.add_parser("drain", help="Process the recomputation queue")
    _common(drn)
    drn.add_argument("--batch-size", type=int, help="Items per batch (default: MATCHENGINE_BATCH_SIZE or the tenant's batch_size)")
    drn.add_argument("--max-batches", type=int, help="Stop after this many batches")
    drn.add_argument("--tenant", help="Only drain this tenant's items (batch size defaults to its config)")
    drn.add_argument("--metrics", action="store_true", help="Print engine metrics afterwards")
    drn.set_defaults(func=cmd_drain)

    att = subparsers.add_parser("attractiveness", help="Attractiveness of a listing or a company")
    _common(att)
    att.add_argument("--listing", help="Listing id")
    att.add_argument("--company", help="Company id")
    att.set_defaults(func=cmd_attractiveness)

    cfs = subparsers.add_parser("config-show", help="Show the effective config for a tenant")
    _common(cfs, snapshot=False)
    cfs.add_argument("--tenant", help="Tenant id (default: system defaults)")
    cfs.set_defaults(func=cmd_config_show)

    cfu = subparsers.add_parser("config-set", help="Update a tenant's config (stales the tenant's scores)")
    _common(cfu, snapshot=False)
    cfu.add_argument("--tenant", required=True, help="Tenant id")
    cfu.add_argument("--weights", help="JSON object of signal weights, e.g. '{\"skills\": 0.35, \"network\": 0.05}'")
    cfu.add_argument("--floor", type=float, help="Score floor (0-100)")
    cfu.add_argument("--max-results", type=int, help="Result cap (1-200)")
    cfu.add_argument("--precision", type=int, help="Decimal places for composites (0-4)")
    cfu.add_argument("--enable", action="append", help="Feature toggle to enable (repeatable)")
    cfu.add_argument("--disable", action="append", help="Feature toggle to disable (repeatable)")
    cfu.set_defaults(func=cmd_config_set)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        try:
            args.func(args)
        except MatchEngineError as e:
            raise SystemExit(f"Error: {e}")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
