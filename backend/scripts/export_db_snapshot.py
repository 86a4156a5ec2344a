"""Export database snapshot as JSON.

Usage:
    python -m scripts.export_db_snapshot --out snapshot.json [--db sqlite:///restopos.db]
"""

import argparse
import json
import logging

from restopos import config
from restopos.db.database import Database
from restopos.services.backup import export_snapshot

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def write_snapshot(db_url: str, output_path: str) -> int:
    """Write a snapshot of ``db_url`` to ``output_path``; returns the row count."""
    database = Database(db_url, use_alembic=False)
    try:
        with database.unit_of_work() as session:
            snapshot = export_snapshot(session)
    finally:
        database.close()

    with open(output_path, "w", encoding="utf-8") as handle:
        json.dump(snapshot, handle, ensure_ascii=False, indent=2)
    return sum(len(rows) for rows in snapshot["tables"].values())


def main() -> None:
    parser = argparse.ArgumentParser(description="Export DB snapshot as JSON")
    parser.add_argument("--db", default=config.DATABASE_URL, help="Database URL")
    parser.add_argument("--out", required=True, help="Output JSON file path")
    args = parser.parse_args()

    rows = write_snapshot(args.db, args.out)
    logger.info("Snapshot with %d rows written to %s", rows, args.out)


if __name__ == "__main__":
    main()
