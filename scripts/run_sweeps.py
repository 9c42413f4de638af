"""
Run the daily sweeps. Meant to be invoked by cron or another scheduler.

Usage:
  python scripts/run_sweeps.py                 # both jobs
  python scripts/run_sweeps.py --job due
  python scripts/run_sweeps.py --job digest --dry-run
"""
import argparse
import sys
from pathlib import Path

# Add project root so orgtask is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from orgtask.core.logging import setup_logging
from orgtask.db import session as db_session
from orgtask.services.push_service import ExpoPushSender
from orgtask.services.sweep_service import run_due_scan, run_unread_digest


def main():
    parser = argparse.ArgumentParser(description="Run scheduled task sweeps")
    parser.add_argument("--job", choices=["due", "digest", "all"], default="all", help="Which sweep to run")
    parser.add_argument("--dry-run", action="store_true", help="Persist notifications but do not push")
    args = parser.parse_args()

    setup_logging()
    db = db_session.SessionLocal()
    sender = None if args.dry_run else ExpoPushSender()
    try:
        if args.job in ("due", "all"):
            print(f"Due scan: {run_due_scan(db, sender=sender)}")
        if args.job in ("digest", "all"):
            print(f"Unread digest: {run_unread_digest(db, sender=sender)}")
    finally:
        if sender is not None:
            sender.close()
        db.close()


if __name__ == "__main__":
    main()
