"""Restore a JSON snapshot produced by export_db_snapshot, replacing all data.

Usage:
    python -m scripts.restore_db_snapshot --in snapshot.json [--db sqlite:///restopos.db] --yes
"""

import argparse
import json
import logging
import sys

from restopos import config
from restopos.db.database import Database
from restopos.services.backup import restore_snapshot

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_snapshot(db_url: str, input_path: str) -> dict:
    with open(input_path, "r", encoding="utf-8") as handle:
        snapshot = json.load(handle)

    database = Database(db_url)
    try:
        with database.unit_of_work() as session:
            return restore_snapshot(session, snapshot)
    finally:
        database.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Restore DB snapshot from JSON")
    parser.add_argument("--db", default=config.DATABASE_URL, help="Database URL")
    parser.add_argument("--in", dest="input_path", required=True, help="Snapshot JSON file path")
    parser.add_argument("--yes", action="store_true", help="Confirm that existing data will be replaced")
    args = parser.parse_args()

    if not args.yes:
        logger.error("Restoring replaces every row in %s; re-run with --yes to confirm", args.db)
        sys.exit(2)

    counts = load_snapshot(args.db, args.input_path)
    logger.info("Restored %d rows from %s", sum(counts.values()), args.input_path)


if __name__ == "__main__":
    main()
