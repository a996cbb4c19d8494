"""
Run database migrations for Tracksync.

Applies SQL migration files to the tracking database. Connects through
DatabaseConnection, so either DATABASE_URL (local PostgreSQL) or
INSTANCE_CONNECTION_NAME + DB_USER (Cloud SQL with IAM auth) must be set.
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine import Engine

from tracksync.db import DatabaseConnection

# Load environment variables
load_dotenv()

# Migration directory
MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"


def list_migrations() -> list[Path]:
    """List migration files in apply order, excluding rollbacks."""
    migrations = sorted(MIGRATIONS_DIR.glob("*.sql"))
    return [m for m in migrations if "rollback" not in m.name.lower()]


def resolve_migration(name: str) -> Path:
    """Find a migration by path or by file name inside the migrations directory."""
    migration_file = Path(name)
    if not migration_file.exists():
        migration_file = MIGRATIONS_DIR / name
    if not migration_file.exists():
        print(f"❌ Migration file not found: {name}")
        sys.exit(1)
    return migration_file


def run_migration(migration_file: Path, engine: Engine):
    """Run a single migration file inside one transaction."""
    print(f"📝 Running migration: {migration_file.name}")

    sql = migration_file.read_text(encoding="utf-8")

    try:
        with engine.begin() as conn:
            conn.execute(text(sql))
        print(f"✅ Migration {migration_file.name} completed successfully")
    except Exception as e:
        print(f"❌ Migration {migration_file.name} failed: {e}")
        sys.exit(1)


def grant_postgres_access(engine: Engine):
    """Grant the postgres user access to the tables created by the IAM user.

    Only needed on Cloud SQL, where tables are owned by the service account.
    """
    print("\n🔐 Granting postgres user access to tables...")

    try:
        with engine.begin() as conn:
            conn.execute(text("GRANT USAGE ON SCHEMA public TO postgres"))
            conn.execute(
                text(
                    "GRANT SELECT, INSERT, UPDATE, DELETE ON ALL TABLES IN SCHEMA public TO postgres"
                )
            )
        print("✅ Postgres user access granted")
    except Exception as e:
        print(f"⚠️  Failed to grant postgres access (non-fatal): {e}")


def main():
    parser = argparse.ArgumentParser(description="Apply Tracksync SQL migrations")
    parser.add_argument(
        "migration", nargs="?", help="Single migration file to apply (default: all)"
    )
    parser.add_argument(
        "-y", "--yes", action="store_true", help="Skip the confirmation prompt"
    )
    args = parser.parse_args()

    print("🚀 Tracksync Database Migration Tool")
    print("=" * 50)

    if not MIGRATIONS_DIR.exists():
        print(f"❌ Migrations directory not found: {MIGRATIONS_DIR}")
        sys.exit(1)

    migrations = [resolve_migration(args.migration)] if args.migration else list_migrations()
    if not migrations:
        print("⚠️  No migrations found")
        sys.exit(0)

    print(f"\nFound {len(migrations)} migration(s):")
    for migration in migrations:
        print(f"  - {migration.name}")

    using_cloud_sql = not os.getenv("DATABASE_URL")
    print("\n⚠️  This will apply migrations to:")
    if using_cloud_sql:
        print(f"   Instance: {os.getenv('INSTANCE_CONNECTION_NAME')}")
        print(f"   Database: {os.getenv('DB_NAME', 'tracksync')}")
        print(f"   User: {os.getenv('DB_USER')}")
        print("   Auth: IAM (Cloud SQL Connector)")
    else:
        print("   Database: DATABASE_URL")

    if not args.yes:
        response = input("\nProceed? (yes/no): ").strip().lower()
        if response not in ["yes", "y"]:
            print("❌ Migration cancelled")
            sys.exit(0)

    print("\n🔌 Connecting to database...")
    try:
        DatabaseConnection.initialize()
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    engine = DatabaseConnection.get_engine()

    print("\n" + "=" * 50)
    for migration in migrations:
        run_migration(migration, engine)

    if using_cloud_sql:
        grant_postgres_access(engine)

    DatabaseConnection.close()

    print("\n" + "=" * 50)
    print("✅ All migrations completed successfully!")


if __name__ == "__main__":
    main()
