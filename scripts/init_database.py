"""
TRIALBYTE - Database Initialization Script
==========================================
Creates all database tables and the system admin account.

Usage:
    python -m scripts.init_database [--drop] [--yes] [--no-admin]

Options:
    --drop      Drop existing tables before creating (DESTRUCTIVE!)
    --yes       Skip the confirmation prompt for --drop
    --no-admin  Do not create the system admin account
"""

import argparse
import logging
from typing import List, Optional

from sqlalchemy import inspect

from trialbyte.auth.audit import ActivityLogger
from trialbyte.database.config import DatabaseConfig
from trialbyte.database.connection import DatabaseManager
from trialbyte.database.repositories import ActivityLogRepository, UserRepository

logger = logging.getLogger(__name__)


def run_init(db: DatabaseManager, drop_existing: bool = False, create_admin: bool = True) -> List[str]:
    """
    Create tables (optionally dropping first) and ensure the admin user.

    Returns:
        Names of the tables present afterwards
    """
    db.create_tables(drop_existing=drop_existing)
    tables = sorted(inspect(db.engine).get_table_names())
    print(f"\nCreated {len(tables)} tables:")
    for table in tables:
        print(f"   - {table}")

    if create_admin:
        activity = ActivityLogger(ActivityLogRepository(db), UserRepository(db))
        admin_id = activity.ensure_system_admin()
        print(f"\nSystem admin ready: {activity.admin.username} ({admin_id})")

    return tables


def main(argv: Optional[List[str]] = None, db: Optional[DatabaseManager] = None) -> int:
    parser = argparse.ArgumentParser(description="Initialize the TrialByte database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DESTRUCTIVE)")
    parser.add_argument("--yes", action="store_true", help="Do not ask before dropping")
    parser.add_argument("--no-admin", action="store_true", help="Skip creating the system admin user")
    args = parser.parse_args(argv)

    if args.drop and not args.yes:
        confirm = input("\nThis will DELETE all existing data. Type 'yes' to confirm: ")
        if confirm.lower() != "yes":
            print("Aborted.")
            return 1

    db = db or DatabaseManager(DatabaseConfig())
    try:
        run_init(db, drop_existing=args.drop, create_admin=not args.no_admin)
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        print(f"\nDatabase initialization failed: {e}")
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    raise SystemExit(main())
