#!/usr/bin/env python3
# scripts/sweep_overdue.py
"""Mark BORROWED loans past their target return date as OVERDUE.

Nothing in the API schedules this; run it from cron or a timer if wanted.
"""
import argparse
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import loans
import timeutil
from access import UNRESTRICTED
from config import load_settings
from db import Database
from errors import ConflictError

logger = logging.getLogger("sweep_overdue")


def sweep(db: Session, *, now: Optional[datetime] = None, dry_run: bool = False) -> list[int]:
    """Returns the ids that were (or, with ``dry_run``, would be) marked."""
    now = now or timeutil.now()
    candidates = loans.find_overdue_candidates(db, now=now)
    if dry_run:
        return candidates

    marked = []
    for loan_id in candidates:
        try:
            loans.mark_overdue(db, loan_id, scope=UNRESTRICTED, now=now)
        except ConflictError:
            # returned between the candidate query and the update
            logger.info("skipped loan_id=%s; no longer borrowed", loan_id)
            continue
        marked.append(loan_id)
    return marked


def main() -> None:
    ap = argparse.ArgumentParser(description="Mark loans past their target return date as OVERDUE.")
    ap.add_argument("--database-url", default=None, help="SQLAlchemy URL (default: from APP_DB_PATH / DATABASE_URL)")
    ap.add_argument("--dry-run", action="store_true", help="List candidates only, do not write")
    args = ap.parse_args()

    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    timeutil.configure(settings.timezone)

    database = Database(args.database_url or settings.database_url).open()
    db = database.session()
    try:
        ids = sweep(db, dry_run=args.dry_run)
        verb = "would mark" if args.dry_run else "marked"
        logger.info("%s %d loan(s) overdue %s", verb, len(ids), ids)
    finally:
        db.close()
        database.close()


if __name__ == "__main__":
    main()
