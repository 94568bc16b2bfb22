#!/usr/bin/env python3
"""
Bootstrap script for the Classmate Central API

Checks the database connection, applies migrations and seeds the
permission catalogue. Run it from the repository root.
"""

import os
import subprocess
import sys

import psycopg2
from sqlalchemy.engine.url import make_url

from classmate.core.config import settings


def run_command(command, description):
    """Run a shell command and handle errors"""
    print(f"\n{description}...")
    try:
        subprocess.run(command, shell=True, check=True, capture_output=True, text=True)
        print(f"[ok] {description} completed successfully")
        return True
    except subprocess.CalledProcessError as e:
        print(f"[fail] {description} failed: {e}")
        print(f"Error output: {e.stderr}")
        return False


def check_database():
    """Check the database connection using DATABASE_URL"""
    print("\nChecking database connection...")
    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() != "postgresql":
        print(f"[skip] {url.get_backend_name()} database, nothing to check")
        return True
    try:
        conn = psycopg2.connect(settings.DATABASE_URL.replace("postgresql+psycopg2://", "postgresql://"))
        cursor = conn.cursor()
        cursor.execute("SELECT version();")
        version = cursor.fetchone()
        print(f"[ok] Connected to PostgreSQL: {version[0]}")
        cursor.close()
        conn.close()
        return True
    except psycopg2.Error as e:
        print(f"[fail] Error connecting to database: {e}")
        print("Please check DATABASE_URL in the environment")
        return False


def run_migrations():
    return run_command("alembic upgrade head", "Running database migrations")


def seed():
    """Insert any missing permissions"""
    from classmate.database import SessionLocal
    from classmate.services.rbac_service import seed_permissions

    db = SessionLocal()
    try:
        created = seed_permissions(db)
    finally:
        db.close()
    print(f"[ok] Permission catalogue seeded ({created} new)")
    return True


def main():
    print("Bootstrapping Classmate Central API")
    print("=" * 60)

    if not os.path.exists("alembic.ini"):
        print("[fail] Please run this script from the repository root")
        sys.exit(1)

    for step in (check_database, run_migrations, seed):
        if not step():
            print("\nBootstrap stopped. Fix the error above and run again.")
            sys.exit(1)

    print("\nDone. Start the API with: uvicorn main:app --reload")


if __name__ == "__main__":
    main()
