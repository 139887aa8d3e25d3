#!/usr/bin/env python3
"""
Create the ballot schema and optionally seed a demo election.

Usage:
    python scripts/init_db.py                 # apply schema
    python scripts/init_db.py --seed 50       # apply schema, add 50 voters + demo candidates
    python scripts/init_db.py --reset --seed 10
"""
import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from ballot_api.catalog import resolve_catalog
from ballot_api.config import settings
from ballot_api.database import Database
from ballot_api.seed import reset_schema, seed_demo_election

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


async def main(args) -> int:
    database = Database(settings)
    await database.initialize()
    try:
        if args.reset:
            await reset_schema(database)
        else:
            await database.create_schema()

        if args.seed:
            ids = await seed_demo_election(database, voter_count=args.seed)
            print(f"Voters:     {ids['voters'][0]}..{ids['voters'][-1]}")
            print(f"Admin:      {ids['admins'][0]}")
            print(f"Candidates: {ids['candidates']}")

        if args.snapshot:
            catalog = await resolve_catalog(
                database, settings.CATALOG_SOURCE, settings.POSITION_CATALOG
            )
            print(f"Positions:  {list(catalog)}")
    finally:
        await database.close()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the ballot database")
    parser.add_argument("--reset", action="store_true",
                        help="drop every ballot table before applying the schema")
    parser.add_argument("--seed", type=int, default=0, metavar="N",
                        help="add N demo voters, one admin and the demo candidates")
    parser.add_argument("--snapshot", action="store_true",
                        help="freeze the position catalog now instead of at first startup")
    sys.exit(asyncio.run(main(parser.parse_args())))
