#!/usr/bin/env python3
"""
Verify that every fresh cached score is reproducible from current data.

A non-stale row must come out identical when the scorer is re-run under the
same config version. Rows whose config version no longer matches are
reported separately; they should already be stale.

Usage:
    python scripts/verify_scores.py --snapshot data/snapshot.json --db data/matchengine.db
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from matchengine.config import resolve_config
from matchengine.database import MatchScore, get_session
from matchengine.errors import NotFoundError
from matchengine.scorer import build_context, evaluate, load_pair
from matchengine.sources import load_snapshot


def verify(snapshot_path: Path, db_path: Path, tolerance: float = 0.0) -> bool:
    """
    Re-score every fresh cached row and compare.

    Returns True if all rows reproduce, False otherwise.
    """
    print(f"Loading snapshot from {snapshot_path}...")
    source = load_snapshot(snapshot_path)

    print(f"\nQuerying database at {db_path}...")
    session = get_session(db_path)
    try:
        rows = session.query(MatchScore).filter(MatchScore.is_stale.is_(False)).all()
        print(f"  Fresh rows: {len(rows)}")

        mismatches = []
        missing = []
        outdated = []

        for row in rows:
            try:
                student, listing = load_pair(source, row.student_id, row.listing_id)
            except NotFoundError as e:
                missing.append((row.student_id, row.listing_id, str(e)))
                continue

            config = resolve_config(session, row.config_tenant_id)
            if config.version != row.config_version:
                outdated.append((row.student_id, row.listing_id, row.config_version, config.version))
                continue

            result = evaluate(student, listing, build_context(source, student, listing, config), config)
            if abs(result.score - row.composite_score) > tolerance:
                mismatches.append((row.student_id, row.listing_id, "composite", row.composite_score, result.score))
                continue
            for name, signal in result.signals.items():
                cached = (row.signal_breakdown or {}).get(name, {})
                if abs(signal.value - float(cached.get("value", -1))) > tolerance:
                    mismatches.append((row.student_id, row.listing_id, name, cached.get("value"), signal.value))
    finally:
        session.close()

    if missing:
        print(f"\n❌ MISSING from snapshot: {len(missing)} rows")
        for student_id, listing_id, err in missing[:5]:
            print(f"   - ({student_id}, {listing_id}): {err}")
        if len(missing) > 5:
            print(f"   ... and {len(missing) - 5} more")

    if outdated:
        print(f"\n❌ CONFIG VERSION DRIFT: {len(outdated)} fresh rows")
        for student_id, listing_id, cached_v, current_v in outdated[:5]:
            print(f"   - ({student_id}, {listing_id}): cached v{cached_v}, current v{current_v}")
        if len(outdated) > 5:
            print(f"   ... and {len(outdated) - 5} more")

    if mismatches:
        print(f"\n❌ SCORE MISMATCHES: {len(mismatches)} differences")
        for student_id, listing_id, field, cached, fresh in mismatches[:5]:
            print(f"   - ({student_id}, {listing_id}) {field}: cached={cached} vs recomputed={fresh}")
        if len(mismatches) > 5:
            print(f"   ... and {len(mismatches) - 5} more")

    if not missing and not outdated and not mismatches:
        print("✅ All fresh scores reproduce exactly")
        return True
    return False


def main():
    parser = argparse.ArgumentParser(description="Verify cached match scores are reproducible")
    parser.add_argument("--snapshot", type=Path, required=True,
                        help="JSON snapshot the scores were computed from")
    parser.add_argument("--db", type=Path, default=Path("data/matchengine.db"),
                        help="Path to SQLite database file")
    parser.add_argument("--tolerance", type=float, default=0.0,
                        help="Allowed absolute difference per value")

    args = parser.parse_args()

    if not args.snapshot.exists():
        print(f"❌ Snapshot file not found: {args.snapshot}")
        sys.exit(1)

    if not args.db.exists():
        print(f"❌ Database file not found: {args.db}")
        sys.exit(1)

    success = verify(args.snapshot, args.db, args.tolerance)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
