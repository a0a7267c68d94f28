"""Batch sync runner.

This script can be scheduled (e.g., cron or CI) or run ad-hoc to sync a list
of LeetCode usernames and write the results to ``sync_report.json`` for the
application's user-record updater to pick up.

    python main.py alice bob
    CB_USERNAMES="alice,bob" python main.py
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from aggregator import Aggregator

# Load environment variables from .env if present (safe-no-op if file missing)
load_dotenv()

# ---------------------------------------------------------------------------
# Logging setup (controlled by CB_LOGLEVEL, default INFO)
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=os.getenv("CB_LOGLEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger(__name__)

REPORT_FILE = Path(os.getenv("CB_REPORT_FILE", "sync_report.json"))


def _usernames(argv: list[str]) -> list[str]:
    names = argv or os.getenv("CB_USERNAMES", "").split(",")
    return [n.strip() for n in names if n.strip()]


def orchestrate(argv: list[str]) -> int:
    """Sync every username and write the report. Returns the number of failures."""

    usernames = _usernames(argv)
    if not usernames:
        logger.warning("No usernames given (pass them as arguments or set CB_USERNAMES)")
        return 0

    logger.info("Starting sync for %d users", len(usernames))
    outcomes = asyncio.run(Aggregator.default().sync_all(usernames))

    report = {
        o.username: o.result.to_dict() if o.ok else {"error": o.error_kind}
        for o in outcomes
    }
    try:
        REPORT_FILE.write_text(json.dumps(report, indent=2))
    except OSError as exc:
        logger.warning("Could not write %s: %s", REPORT_FILE, exc)

    failed = sum(1 for o in outcomes if not o.ok)
    logger.info("Sync complete → %s (%d failed)", REPORT_FILE, failed)
    return failed


if __name__ == "__main__":
    sys.exit(1 if orchestrate(sys.argv[1:]) else 0)
