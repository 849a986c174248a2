"""Command-line interface for seeding a development catalog.

Example:
    Write CSV files for inspection:
        $ python scripts/seed_catalog.py --num-items 200 --csv-dir data

    Insert into the configured MongoDB database:
        $ python scripts/seed_catalog.py --num-items 200 --mongo
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from pymongo import AsyncMongoClient

from medfeed.config import settings
from medfeed.seed import DEFAULT_NUM_ITEMS, generate_catalog, to_documents

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the script.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise, use INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic pharmacy catalog.",
    )
    parser.add_argument(
        "--num-items",
        type=int,
        default=DEFAULT_NUM_ITEMS,
        help=f"Number of items to generate (default: {DEFAULT_NUM_ITEMS})",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--csv-dir", type=str, default=None, help="Write categories.csv and items.csv here")
    parser.add_argument("--mongo", action="store_true", help="Insert into MONGO_URI / MONGO_DB_NAME")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args()


async def insert_into_mongo(categories, items) -> None:
    client = AsyncMongoClient(settings.MONGO_URI)
    try:
        db = client[settings.MONGO_DB_NAME]
        await db["categories"].insert_many(to_documents(categories))
        await db["items"].insert_many(to_documents(items, ("_id", "itemCategory")))
        logger.info(
            f"Inserted {len(categories)} categories and {len(items)} items "
            f"into {settings.MONGO_DB_NAME}"
        )
    finally:
        await client.close()


def main() -> int:
    args = parse_arguments()
    setup_logging(args.verbose)

    if not args.csv_dir and not args.mongo:
        logger.error("Nothing to do: pass --csv-dir and/or --mongo")
        return 1

    try:
        categories, items = generate_catalog(num_items=args.num_items, seed=args.seed)
    except ValueError as e:
        logger.error(f"Error generating catalog: {e}")
        return 1

    if args.csv_dir:
        out_dir = Path(args.csv_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        categories.to_csv(out_dir / "categories.csv", index=False)
        items.to_csv(out_dir / "items.csv", index=False)
        logger.info(f"Saved catalog CSVs to {out_dir}")

    if args.mongo:
        asyncio.run(insert_into_mongo(categories, items))

    return 0


if __name__ == "__main__":
    sys.exit(main())
