#!/usr/bin/env python3
"""
Database Migration — Create the messages table and optionally seed it.

Usage:
    # Local (DB_DSN or database.url in settings.yaml):
    python scripts/migrate_db.py

    # Check status only (no changes):
    python scripts/migrate_db.py --check

    # Create tables and insert the three development messages:
    python scripts/migrate_db.py --seed
"""
import asyncio
import os
import sys
import argparse

# Ensure app root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


async def _existing_tables(conn, dialect: str) -> list[str]:
    from sqlalchemy import text

    if dialect == "postgresql":
        result = await conn.execute(text(
            "SELECT tablename FROM pg_tables WHERE schemaname = 'public'"
        ))
    elif dialect == "mysql":
        result = await conn.execute(text("SHOW TABLES"))
    else:  # sqlite
        result = await conn.execute(text(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        ))
    return [row[0] for row in result.fetchall()]


async def run_migration(check_only: bool = False, seed: bool = False):
    from config.settings import load_settings
    settings = load_settings()
    if not settings.database.url:
        print("No database configured (set DB_DSN or database.url).")
        return

    from database.session import get_engine, close_db
    from database.models import Base

    engine = get_engine()
    dialect = engine.dialect.name

    if check_only:
        print(f"Database: {dialect}")
        print(f"URL: {engine.url.render_as_string(hide_password=True)}")
        print(f"Tables defined: {', '.join(Base.metadata.tables.keys())}")

        async with engine.connect() as conn:
            existing = await _existing_tables(conn, dialect)
        print(f"Tables existing: {', '.join(existing) or '(none)'}")

        missing = set(Base.metadata.tables.keys()) - set(existing)
        if missing:
            print(f"Tables MISSING: {', '.join(missing)}")
            print("Run without --check to create them.")
        else:
            print("All tables exist. ✓")
        await close_db()
        return

    print("Running database migration...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with engine.connect() as conn:
        tables = await _existing_tables(conn, dialect)
    print(f"Tables created/verified: {', '.join(tables)}")

    if seed:
        from database.store import SqlMessageStore
        from database.store_memory import DUMMY_MESSAGES
        store = SqlMessageStore()
        for recipient, content in DUMMY_MESSAGES:
            msg = await store.add_message(recipient, content)
            print(f"Seeded pending message {msg.id} → {recipient}")

    await close_db()
    print("Migration complete. ✓")


def main():
    parser = argparse.ArgumentParser(description="Database migration")
    parser.add_argument("--check", action="store_true", help="Check status only")
    parser.add_argument("--seed", action="store_true", help="Insert development messages")
    args = parser.parse_args()

    asyncio.run(run_migration(check_only=args.check, seed=args.seed))


if __name__ == "__main__":
    main()
