#!/usr/bin/env python3
"""
Check that TEST_DATABASE_URL is safe to use and reachable.

The repository tests drop and recreate every workflow table in that database,
so it must never point at the application database.
"""

import asyncio
import os
import sys

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.pool import NullPool

from clinicflow.database import build_engine


async def probe(url: str) -> str:
    """Return the server version reported by the test database."""
    test_engine = build_engine(url, poolclass=NullPool)
    try:
        async with test_engine.connect() as conn:
            return (await conn.execute(text("SHOW server_version"))).scalar_one()
    finally:
        await test_engine.dispose()


def main() -> int:
    load_dotenv()
    app_db = os.getenv("DATABASE_URL")
    test_db = os.getenv("TEST_DATABASE_URL")

    if not test_db:
        print("ℹ️  TEST_DATABASE_URL is not set: repository tests will be skipped.")
        print("   Service and API tests use in-memory repositories and still run.")
        return 0

    if test_db == app_db:
        print("❌ TEST_DATABASE_URL is the application database.")
        print("   Repository tests drop workflow tables; point it at a separate database.")
        return 1

    if "test" not in test_db.lower():
        print("⚠️  TEST_DATABASE_URL does not look like a test database (no 'test' in the URL)")

    try:
        version = asyncio.run(probe(test_db))
    except Exception as e:
        print(f"❌ Could not connect to the test database: {e}")
        return 1

    print(f"✅ Test database reachable (PostgreSQL {version}). Run: pytest")
    return 0


if __name__ == "__main__":
    sys.exit(main())
