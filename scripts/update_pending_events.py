"""
Run tracking reconciliation from the command line.

Without arguments, runs one full pass over the pending records. With
tracking codes, refreshes just those records (terminal ones included).
Exits with status 1 when the pass was aborted or a code failed.

Usage:
    python scripts/update_pending_events.py
    python scripts/update_pending_events.py AA123456789BR QB987654321BR
"""

import argparse
import sys

from dotenv import load_dotenv

from tracksync.db import DatabaseConnection
from tracksync.models.task import RunWindow
from tracksync.utils.logging import setup_logging

load_dotenv()
setup_logging("tracksync-cli")


def refresh_codes(job, tracking_codes: list[str]) -> int:
    failed = 0
    for code in tracking_codes:
        try:
            outcome = job.refresh_record(code)
        except Exception as e:
            print(f"❌ {code}: {e}")
            failed += 1
            continue

        state = "updated" if outcome.updated else "unchanged"
        if outcome.notified:
            state += ", customer notified"
        print(f"✅ {code}: {state}")

    return 1 if failed else 0


def main() -> int:
    from tracksync.worker.main import build_reconciliation_job

    parser = argparse.ArgumentParser(description="Refresh Correios tracking records")
    parser.add_argument("tracking_codes", nargs="*", help="Refresh only these codes")
    args = parser.parse_args()

    DatabaseConnection.initialize()
    try:
        job = build_reconciliation_job()
        if args.tracking_codes:
            return refresh_codes(job, args.tracking_codes)
        report = job.run(RunWindow.MANUAL)
    finally:
        DatabaseConnection.close()

    print(report.model_dump_json(indent=2))
    return 1 if report.aborted else 0


if __name__ == "__main__":
    sys.exit(main())
