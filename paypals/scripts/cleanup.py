"""
Invitation cleanup. Run:
  $ python -m paypals.scripts.cleanup          # purge expired invitations older than 30 days
  $ python -m paypals.scripts.cleanup 7        # ... older than 7 days

Marks overdue pending invitations as expired first, then deletes the old
expired ones. Exit code 0 on success, 1 on failure.
"""
from __future__ import annotations

import logging
import sys
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from paypals.db import SessionLocal
from paypals.services.invitation_cleanup import DEFAULT_DAYS_OLD, run_cleanup

log = logging.getLogger(__name__)

USAGE = "usage: python -m paypals.scripts.cleanup [days_old]"


def parse_days(argv: List[str]) -> int:
    if not argv:
        return DEFAULT_DAYS_OLD
    raw = argv[0].strip()
    if not raw.isdigit():
        raise ValueError(f"days_old must be a non-negative integer, got {argv[0]!r}")
    return int(raw)


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        days_old = parse_days(argv)
    except ValueError as e:
        print(f"[ERROR] {e}")
        print(USAGE)
        return 1

    print(f"Starting invitation cleanup (older than {days_old} days)...")
    try:
        with SessionLocal() as db:
            summary = run_cleanup(db, days_old)
    except SQLAlchemyError as e:
        log.exception("invitation cleanup failed")
        print(f"[ERROR] Cleanup failed: {e}")
        return 1

    print(f"Marked as expired: {summary['markedExpired']}")
    print(f"Removed:           {summary['removed']}")
    print("Cleanup completed ✔")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
