"""Create the workflow schema directly from the table metadata.

Meant for local development and throwaway databases; deployed databases are
managed with ``scripts/migrate.py`` so alembic's version table stays accurate.
"""

import argparse
import asyncio

from sqlalchemy import text

from clinicflow.database import engine
from clinicflow.models import metadata


async def init_db(reset: bool = False) -> None:
    """Create every workflow table, including the active-session guard index."""
    async with engine.begin() as conn:
        # Staff invite ids default to gen_random_uuid()
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        if reset:
            await conn.run_sync(metadata.drop_all)
            print("✓ Dropped existing workflow tables")
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print(f"✓ Created {len(metadata.sorted_tables)} tables: {', '.join(metadata.tables)}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--reset", action="store_true", help="Drop the workflow tables first")
    asyncio.run(init_db(reset=parser.parse_args().reset))
