"""
School CSV import
Reads a UDISE school export, normalises it and loads it into MongoDB

    udise-import data/schools.csv --limit 800000
    python -m etl.import_schools data/schools.csv --output transformed.csv --dry-run
"""
import argparse
import asyncio
import logging
import sys

from data_import.school_csv import read_school_csv, write_transformed_csv, import_records
from utils import config
from utils.database import connect, ensure_indexes

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Import UDISE school records from CSV")
    parser.add_argument("input", help="path to the school CSV export")
    parser.add_argument("--limit", type=int, default=None, help="read at most this many rows")
    parser.add_argument("--output", default=None, help="also write the transformed rows to this CSV")
    parser.add_argument("--dry-run", action="store_true", help="transform only, do not touch MongoDB")
    return parser.parse_args(argv)


async def run(args) -> int:
    records, skipped = read_school_csv(args.input, limit=args.limit)
    logger.info(f"Records transformed: {len(records)}, skipped: {skipped}")

    if not records:
        logger.warning("No valid records found")
        return 1

    if args.output:
        write_transformed_csv(records, args.output)

    if args.dry_run:
        return 0

    client, db = connect(config.MONGO_URL, config.DB_NAME)
    try:
        await ensure_indexes(db)
        result = await import_records(db.schools, records)
    finally:
        client.close()

    return 1 if result["failed"] else 0


def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
