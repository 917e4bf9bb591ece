#!/usr/bin/env python3
"""
One-time setup: create tables, seed default lookups and the first admin user
Usage: python create_admin.py

Non-interactive mode (containers, CI):
  Provide these environment variables (or put them in .env):
    ADMIN_USERNAME
    ADMIN_PASSWORD
    ADMIN_NAME

If any of them is missing and a terminal is attached, the script prompts
for the missing values. Running it again is safe: existing lookups are
kept and no second admin is created.
"""
import os
import sys
from dotenv import load_dotenv
from evidence_tracker.db import SessionLocal, create_tables, transaction
from evidence_tracker.models.user import User, UserRole
from evidence_tracker.core.logger import setup_logging
from evidence_tracker.core.security import get_password_hash
from evidence_tracker.core.seed import seed_lookups


def create_admin_user():
    """Seed lookups and create the initial admin user"""
    load_dotenv()
    setup_logging()
    create_tables()

    db = SessionLocal()
    try:
        with transaction(db):
            added = seed_lookups(db)
        print(f"Lookup rows added: {added}")

        existing_admin = db.query(User).filter(User.role == UserRole.ADMIN).first()
        if existing_admin:
            print(f"Admin user already exists: {existing_admin.username}")
            return

        username = os.getenv("ADMIN_USERNAME", "").strip()
        password = os.getenv("ADMIN_PASSWORD", "").strip()
        full_name = os.getenv("ADMIN_NAME", "").strip() or "System Administrator"

        if not all([username, password]) and not sys.stdin.isatty():
            print("ADMIN_USERNAME and ADMIN_PASSWORD must be set when running non-interactively.")
            sys.exit(1)

        if not all([username, password]):
            username = username or input("Admin username: ").strip()
            password = password or input("Admin password: ").strip()

        if not all([username, password]):
            print("Username and password are required!")
            return
        if len(password) < 8:
            print("Password must be at least 8 characters.")
            return

        with transaction(db):
            admin_user = User(
                username=username,
                full_name=full_name,
                role=UserRole.ADMIN,
                password_hash=get_password_hash(password)
            )
            db.add(admin_user)
        db.refresh(admin_user)

        print("Admin user created successfully!")
        print(f"ID: {admin_user.id}")
        print(f"Username: {admin_user.username}")
        print(f"Name: {admin_user.full_name}")
        print(f"Role: {admin_user.role.value}")

    except Exception as e:
        print(f"Error during setup: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    create_admin_user()
